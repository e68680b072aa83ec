# Interface data model
"""
Interface descriptors for the extcap negotiation.

THESE MODELS ARE IMMUTABLE. They are registered once at process start and
read by every step of the same invocation.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional

from ..exceptions import InvalidDescriptorError


def check_single_line(owner: str, **fields) -> None:
    """Reject line breaks in fields that end up inside a sentence line."""
    for name, value in fields.items():
        if isinstance(value, str) and ("\n" in value or "\r" in value):
            raise InvalidDescriptorError(
                f"{owner} {name} must not contain line breaks: {value!r}"
            )


class DataLink(IntEnum):
    """libpcap DLT_* constants (from pcap/bpf.h) used by extcap programs."""
    NULL = 0          # BSD loopback
    ETHERNET = 1      # DLT_EN10MB
    RAW = 12          # Raw IP
    LINUX_SLL = 113   # Linux cooked socket
    USER0 = 147
    USER1 = 148
    USER2 = 149
    USER3 = 150
    USER4 = 151
    USER5 = 152
    USER6 = 153
    USER7 = 154
    USER8 = 155
    USER9 = 156
    USER10 = 157
    USER11 = 158
    USER12 = 159
    USER13 = 160
    USER14 = 161
    USER15 = 162


@dataclass(frozen=True)
class Metadata:
    """
    Version information printed in the `extcap` sentence of the
    --extcap-interfaces step.
    """
    version: str
    """Version string of this extcap program, shown in the About dialog."""

    help_url: str
    """URL opened by the help button for this extcap."""

    display_description: Optional[str] = None
    """Optional human-readable description of the program."""

    def __post_init__(self):
        check_single_line(
            "Metadata",
            version=self.version,
            help_url=self.help_url,
            display_description=self.display_description,
        )


@dataclass(frozen=True)
class Dlt:
    """
    Data link type of the packets written to the FIFO for an interface.
    """
    data_link_type: int
    """libpcap DLT number (see DataLink)."""

    name: str
    """Short name, e.g. 'USER0'."""

    display: str
    """Human-readable label."""

    def __post_init__(self):
        if not 0 <= int(self.data_link_type) <= 0xFFFF:
            raise InvalidDescriptorError(
                f"DLT number {self.data_link_type} out of range"
            )
        check_single_line("DLT", name=self.name, display=self.display)


DEFAULT_DLT = Dlt(
    data_link_type=DataLink.ETHERNET,
    name="EN10MB",
    display="Ethernet",
)


@dataclass(frozen=True)
class Interface:
    """
    A capture interface offered to the host.

    `value` is the stable machine name passed back with --extcap-interface;
    it must be unique within a run.
    """
    value: str
    display: str
    dlt: Optional[Dlt] = None
    """Per-interface DLT override. When unset, the context default is used."""

    def __post_init__(self):
        if not self.value:
            raise InvalidDescriptorError("Interface value must not be empty")
        if any(ch.isspace() for ch in self.value):
            raise InvalidDescriptorError(
                f"Interface value must not contain whitespace: {self.value!r}"
            )
        check_single_line("Interface", display=self.display)
