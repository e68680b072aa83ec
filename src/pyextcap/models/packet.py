# Control packet data model
"""
Control packets exchanged with the host over the extcap control pipes.

THESE MODELS ARE IMMUTABLE. A ControlPacket is built for one I/O event and
never stored; encoding and decoding live in pyextcap.controls.codec.

Frame layout (6-byte header + payload):

    [sync:1][control-index:1][command:1][length:3 big-endian][payload:length]
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional, Union

SYNC_BYTE = ord("T")
"""Sync pipe indication that starts every frame."""

HEADER_SIZE = 6

MAX_PAYLOAD_LENGTH = 2 ** 24 - 1
"""Largest payload the 3-byte length field can describe."""

BROADCAST_CONTROL = 255
"""Reserved control index addressing no particular control (status bar and
dialog messages, the INITIALIZED marker)."""


class ControlCommand(IntEnum):
    """Command codes of the control protocol."""
    INITIALIZED = 0
    """Sent once by the host after it opened control-in."""
    SET = 1
    """Host: the user changed a control. Extcap: change a control's value."""
    ADD = 2
    """Add a value to a selector or a line to a logger."""
    REMOVE = 3
    """Remove a value from a selector (empty payload clears it)."""
    ENABLE = 4
    DISABLE = 5
    STATUSBAR_MESSAGE = 6
    INFORMATION_MESSAGE = 7
    WARNING_MESSAGE = 8
    ERROR_MESSAGE = 9

    # Long-form aliases
    SET_VALUE = 1
    ADD_VALUE = 2
    REMOVE_VALUE = 3


@dataclass(frozen=True)
class ControlPacket:
    """
    One control frame.

    `command` holds a ControlCommand for known codes and the raw integer for
    codes this version does not know; such packets decode fine but are not
    acted upon.
    """
    control_number: int
    """Control index from the `control` sentences, or BROADCAST_CONTROL."""

    command: Union[ControlCommand, int]

    payload: bytes = b""

    def __post_init__(self):
        if not 0 <= self.control_number <= 255:
            raise ValueError(f"Control number {self.control_number} out of range")
        if not 0 <= int(self.command) <= 255:
            raise ValueError(f"Command code {int(self.command)} out of range")
        if not isinstance(self.payload, bytes):
            object.__setattr__(self, "payload", bytes(self.payload))

    @property
    def known_command(self) -> Optional[ControlCommand]:
        """The command as a ControlCommand, None for unknown codes."""
        try:
            return ControlCommand(int(self.command))
        except ValueError:
            return None

    @property
    def text(self) -> str:
        """Payload decoded as UTF-8 (invalid bytes replaced)."""
        return self.payload.decode("utf-8", errors="replace")

    def to_bytes(self) -> bytes:
        """Serialize to one wire frame."""
        from ..controls.codec import encode
        return encode(self.control_number, self.command, self.payload)

    @classmethod
    def from_bytes(cls, data: bytes) -> "ControlPacket":
        """Parse exactly one complete frame."""
        from ..controls.codec import decode_exact
        return decode_exact(data)


def message_packet(command: ControlCommand, message: str) -> ControlPacket:
    """Status bar / dialog message addressed to no particular control."""
    return ControlPacket(BROADCAST_CONTROL, command, message.encode("utf-8"))
