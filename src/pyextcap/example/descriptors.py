"""Interfaces, config options and toolbar controls of the example extcap."""

from ..capture.scapy_source import local_interfaces
from ..models import (
    BooleanConfig,
    BooleanControl,
    ButtonControl,
    ConfigOptionValue,
    DataLink,
    Dlt,
    DoubleConfig,
    FileSelectConfig,
    HelpButtonControl,
    IntegerConfig,
    Interface,
    LoggerControl,
    LongConfig,
    Metadata,
    MultiCheckConfig,
    MultiCheckValue,
    PasswordConfig,
    RadioConfig,
    Reload,
    RestoreButtonControl,
    SelectorConfig,
    SelectorControl,
    SelectorControlOption,
    StringConfig,
    StringControl,
    TimestampConfig,
    build_context,
)
from .. import __version__

METADATA = Metadata(
    version=__version__,
    help_url="http://www.wireshark.org",
    display_description="Python example extcap interface",
)

DEMO_DLT_DISPLAY = "Demo Implementation for Extcap"

INTERFACE1 = Interface(
    "py-example1",
    "Python example interface 1 for extcap",
    Dlt(DataLink.USER0, "USER0", DEMO_DLT_DISPLAY),
)
INTERFACE2 = Interface(
    "py-example2",
    "Python example interface 2 for extcap",
    Dlt(DataLink.USER1, "USER1", DEMO_DLT_DISPLAY),
)
INTERFACE_SNIFF = Interface(
    "py-sniff",
    "Python live capture (Scapy)",
    Dlt(DataLink.ETHERNET, "EN10MB", "Ethernet"),
)

# -------------------------------------------------------------------------
# Config options of the demo interfaces
# -------------------------------------------------------------------------

CONFIG_DELAY = IntegerConfig(
    0, "delay", "Time delay",
    tooltip="Time delay between packages",
    range=(1, 15),
    default_value=5,
)
CONFIG_MESSAGE = StringConfig(
    1, "message", "Message",
    tooltip="Package message content",
    required=True,
    placeholder="Please enter a message here ...",
)
CONFIG_VERIFY = BooleanConfig(
    2, "verify", "Verify",
    tooltip="Verify package content",
    default_value=True,
)


def reload_remotes():
    return [
        ConfigOptionValue("if1", "Remote Interface 1"),
        ConfigOptionValue("if2", "Remote Interface 2", default=True),
        ConfigOptionValue("if3", "Remote Interface 3"),
        ConfigOptionValue("if4", "Remote Interface 4"),
    ]


CONFIG_REMOTE = SelectorConfig(
    3, "remote", "Remote Channel",
    tooltip="Remote Channel Selector",
    reload=Reload("Load interfaces...", reload_remotes),
    options=[
        ConfigOptionValue("if1", "Remote1", default=True),
        ConfigOptionValue("if2", "Remote2"),
    ],
)
CONFIG_FAKE_IP = StringConfig(
    4, "fake_ip", "Fake IP Address",
    tooltip="Use this ip address as sender",
    validation=r"\b(?:(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)\.){3}"
               r"(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)\b",
)
CONFIG_LTEST = LongConfig(
    5, "ltest", "Long Test",
    tooltip="Long Test Value",
    default_value=123123123123123123,
    group="Numeric Values",
)
CONFIG_D1TEST = DoubleConfig(
    6, "d1test", "Double 1 Test",
    tooltip="Double Test Value",
    default_value=123.456,
    group="Numeric Values",
)
CONFIG_D2TEST = DoubleConfig(
    7, "d2test", "Double 2 Test",
    tooltip="Double Test Value",
    default_value=123456.0,
    group="Numeric Values",
)
CONFIG_PASSWORD = PasswordConfig(
    8, "password", "Password",
    tooltip="Package message password",
)
CONFIG_TIMESTAMP = TimestampConfig(
    9, "ts", "Start Time",
    tooltip="Capture start time",
    group="Time / Log",
)
CONFIG_LOGFILE = FileSelectConfig(
    10, "logfile", "Log File Test",
    tooltip="The Log File Test",
    group="Time / Log",
    file_extension_filter="Text files (*.txt);;XML files (*.xml)",
)
CONFIG_RADIO = RadioConfig(
    11, "radio", "Radio Test",
    tooltip="Radio Test Value",
    group="Selection",
    options=[
        ConfigOptionValue("r1", "Radio1"),
        ConfigOptionValue("r2", "Radio2", default=True),
    ],
)
CONFIG_MULTI = MultiCheckConfig(
    12, "multi", "MultiCheck Test",
    tooltip="MultiCheck Test Value",
    group="Selection",
    options=[
        MultiCheckValue("m1", "Checkable Parent 1", children=[
            MultiCheckValue("m1c1", "Checkable Child 1", children=[
                MultiCheckValue("m1c1g1", "Uncheckable Grandchild", enabled=False),
            ]),
            MultiCheckValue("m1c2", "Checkable Child 2"),
        ]),
        MultiCheckValue("m2", "Checkable Parent 2", children=[
            MultiCheckValue("m2c1", "Checkable Child 1", children=[
                MultiCheckValue("m2c1g1", "Checkable Grandchild"),
            ]),
            MultiCheckValue("m2c2", "Uncheckable Child 2", enabled=False, children=[
                MultiCheckValue("m2c2g1", "Uncheckable Grandchild", enabled=False),
            ]),
        ]),
    ],
)

DEMO_CONFIGS = [
    CONFIG_DELAY,
    CONFIG_MESSAGE,
    CONFIG_VERIFY,
    CONFIG_REMOTE,
    CONFIG_FAKE_IP,
    CONFIG_LTEST,
    CONFIG_D1TEST,
    CONFIG_D2TEST,
    CONFIG_PASSWORD,
    CONFIG_TIMESTAMP,
    CONFIG_LOGFILE,
    CONFIG_RADIO,
    CONFIG_MULTI,
]

# -------------------------------------------------------------------------
# Config options of the live capture interface
# -------------------------------------------------------------------------


def reload_local_interfaces():
    return [ConfigOptionValue(name, name) for name in local_interfaces()]


CONFIG_SNIFF_IFACE = SelectorConfig(
    0, "sniff_iface", "Local interface",
    tooltip="Interface Scapy sniffs on",
    reload=Reload("Load local interfaces...", reload_local_interfaces),
)
CONFIG_PROMISC = BooleanConfig(
    1, "promisc", "Promiscuous mode",
    default_value=True,
)

SNIFF_CONFIGS = [CONFIG_SNIFF_IFACE, CONFIG_PROMISC]

# -------------------------------------------------------------------------
# Toolbar controls
# -------------------------------------------------------------------------

CONTROL_MESSAGE = StringControl(
    0, "Message",
    tooltip="Package message content. Must start with a capital letter.",
    placeholder="Enter package message content here ...",
    validation=r"^[A-Z]+",
)
CONTROL_DELAY = SelectorControl(
    1, "Time delay",
    tooltip="Time delay between packets",
    options=[
        SelectorControlOption("1", "1s"),
        SelectorControlOption("2", "2s"),
        SelectorControlOption("3", "3s"),
        SelectorControlOption("4", "4s"),
        SelectorControlOption("5", "5s", default=True),
        SelectorControlOption("60", "60s"),
    ],
)
CONTROL_VERIFY = BooleanControl(2, "Verify", tooltip="Verify package control")
CONTROL_BUTTON = ButtonControl(3, "Turn on", tooltip="Turn on or off")
CONTROL_HELP = HelpButtonControl(4, "Help", tooltip="Show help")
CONTROL_RESTORE = RestoreButtonControl(5, "Restore", tooltip="Restore default values")
CONTROL_LOGGER = LoggerControl(6, "Log", tooltip="Show capture log")

CONTROLS = [
    CONTROL_MESSAGE,
    CONTROL_DELAY,
    CONTROL_VERIFY,
    CONTROL_BUTTON,
    CONTROL_HELP,
    CONTROL_RESTORE,
    CONTROL_LOGGER,
]


def validate_capture_filter(capture_filter: str):
    if capture_filter not in ("filter", "valid"):
        return "Illegal capture filter"
    return None


CONTEXT = build_context(
    METADATA,
    [INTERFACE1, INTERFACE2, INTERFACE_SNIFF],
    controls=CONTROLS,
    configs={
        INTERFACE1.value: DEMO_CONFIGS,
        INTERFACE2.value: DEMO_CONFIGS,
        INTERFACE_SNIFF.value: SNIFF_CONFIGS,
    },
    capture_filter_validator=validate_capture_filter,
)
