"""
pyextcap - write Wireshark extcap capture programs in Python.

Declare interfaces, config options and toolbar controls in an
ExtcapContext, decorate a click command with `extcap_options`, and let
`run_extcap` answer the host's negotiation steps and run the capture.
"""

__version__ = "0.1.0"

from .exceptions import (
    ExtcapError,
    UsageError,
    InvalidDescriptorError,
    UnknownInterfaceError,
    ParseError,
    FrameError,
    IoError,
)
from .steps import ExtcapArgs, resolve_step
from .cli import extcap_options, installation_instructions, run_extcap

__all__ = [
    '__version__',
    'ExtcapError',
    'UsageError',
    'InvalidDescriptorError',
    'UnknownInterfaceError',
    'ParseError',
    'FrameError',
    'IoError',
    'ExtcapArgs',
    'resolve_step',
    'extcap_options',
    'installation_instructions',
    'run_extcap',
]
