"""
Extcap descriptor and control packet data models.
"""

from .interface import DataLink, Dlt, Interface, Metadata, DEFAULT_DLT
from .config import (
    ConfigOption,
    ConfigOptionValue,
    MultiCheckValue,
    Reload,
    BooleanConfig,
    StringConfig,
    PasswordConfig,
    IntegerConfig,
    UnsignedConfig,
    LongConfig,
    DoubleConfig,
    SelectorConfig,
    RadioConfig,
    MultiCheckConfig,
    TimestampConfig,
    FileSelectConfig,
)
from .controls import (
    ButtonRole,
    ToolbarControl,
    BooleanControl,
    ButtonControl,
    LoggerControl,
    HelpButtonControl,
    RestoreButtonControl,
    StringControl,
    SelectorControl,
    SelectorControlOption,
)
from .packet import (
    BROADCAST_CONTROL,
    HEADER_SIZE,
    MAX_PAYLOAD_LENGTH,
    SYNC_BYTE,
    ControlCommand,
    ControlPacket,
    message_packet,
)
from .context import ExtcapContext, build_context

__all__ = [
    'DataLink', 'Dlt', 'Interface', 'Metadata', 'DEFAULT_DLT',
    'ConfigOption', 'ConfigOptionValue', 'MultiCheckValue', 'Reload',
    'BooleanConfig', 'StringConfig', 'PasswordConfig', 'IntegerConfig',
    'UnsignedConfig', 'LongConfig', 'DoubleConfig', 'SelectorConfig',
    'RadioConfig', 'MultiCheckConfig', 'TimestampConfig', 'FileSelectConfig',
    'ButtonRole', 'ToolbarControl', 'BooleanControl', 'ButtonControl',
    'LoggerControl', 'HelpButtonControl', 'RestoreButtonControl',
    'StringControl', 'SelectorControl', 'SelectorControlOption',
    'BROADCAST_CONTROL', 'HEADER_SIZE', 'MAX_PAYLOAD_LENGTH', 'SYNC_BYTE',
    'ControlCommand', 'ControlPacket', 'message_packet',
    'ExtcapContext', 'build_context',
]
