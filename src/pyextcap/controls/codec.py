"""
Control pipe frame codec.

    [sync:1][control-index:1][command:1][length:3 big-endian][payload:length]

`decode` works on whatever bytes are available: a short buffer yields
IncompleteFrame (read more and retry), a wrong sync byte yields InvalidFrame.
FrameDecoder keeps the buffer between reads and resynchronizes after garbage.
"""
import logging
import struct
from dataclasses import dataclass
from typing import List, Union

from ..exceptions import FrameError
from ..models.packet import (
    HEADER_SIZE,
    MAX_PAYLOAD_LENGTH,
    SYNC_BYTE,
    ControlCommand,
    ControlPacket,
)

logger = logging.getLogger(__name__)

# sync, control index, command, 3 length bytes
_HEADER = struct.Struct(">BBB3s")


@dataclass(frozen=True)
class IncompleteFrame:
    """Not enough bytes yet; `needed` is the minimum total buffer size."""
    needed: int
    consumed: int = 0


@dataclass(frozen=True)
class InvalidFrame:
    """Buffer does not start with the sync byte; skip `consumed` bytes."""
    consumed: int
    reason: str


@dataclass(frozen=True)
class Decoded:
    """A complete frame and the number of buffer bytes it occupied."""
    packet: ControlPacket
    consumed: int


DecodeResult = Union[Decoded, IncompleteFrame, InvalidFrame]


def encode(control_index: int, command: Union[ControlCommand, int], payload: bytes = b"") -> bytes:
    """Encode one frame. Raises FrameError for oversized payloads or bad header fields."""
    payload = bytes(payload)
    if len(payload) > MAX_PAYLOAD_LENGTH:
        raise FrameError(
            f"Payload of {len(payload)} bytes exceeds maximum of {MAX_PAYLOAD_LENGTH}"
        )
    if not 0 <= control_index <= 255:
        raise FrameError(f"Control index {control_index} does not fit in one byte")
    if not 0 <= int(command) <= 255:
        raise FrameError(f"Command code {int(command)} does not fit in one byte")
    length = len(payload).to_bytes(3, "big")
    return _HEADER.pack(SYNC_BYTE, control_index, int(command), length) + payload


def _command(code: int) -> Union[ControlCommand, int]:
    try:
        return ControlCommand(code)
    except ValueError:
        return code


def decode(buffer: Union[bytes, bytearray]) -> DecodeResult:
    """Decode the frame at the start of `buffer`. Only the payload is copied."""
    if not buffer:
        return IncompleteFrame(needed=HEADER_SIZE)
    if buffer[0] != SYNC_BYTE:
        # Skip up to the next candidate sync byte
        next_sync = buffer.find(bytes([SYNC_BYTE]), 1)
        consumed = next_sync if next_sync != -1 else len(buffer)
        return InvalidFrame(
            consumed=consumed,
            reason=f"expected sync byte 0x{SYNC_BYTE:02x}, got 0x{buffer[0]:02x}",
        )
    if len(buffer) < HEADER_SIZE:
        return IncompleteFrame(needed=HEADER_SIZE)

    _sync, control_index, code, raw_length = _HEADER.unpack_from(buffer)
    length = int.from_bytes(raw_length, "big")
    total = HEADER_SIZE + length
    if len(buffer) < total:
        return IncompleteFrame(needed=total)

    packet = ControlPacket(control_index, _command(code), bytes(buffer[HEADER_SIZE:total]))
    return Decoded(packet, total)


def decode_exact(data: bytes) -> ControlPacket:
    """Decode a buffer holding exactly one frame, no more and no less."""
    result = decode(data)
    if isinstance(result, InvalidFrame):
        raise FrameError(f"Invalid frame: {result.reason}")
    if isinstance(result, IncompleteFrame):
        raise FrameError(
            f"Truncated frame: declared {result.needed} bytes, got {len(data)}"
        )
    if result.consumed != len(data):
        raise FrameError(
            f"Declared frame length {result.consumed} does not match {len(data)} bytes"
        )
    return result.packet


class FrameDecoder:
    """
    Incremental decoder for a byte stream.

    Feed chunks of any size; complete packets come back in stream order.
    Garbage before a sync byte is discarded and logged, after which decoding
    continues at the next sync byte.
    """

    def __init__(self):
        self._buffer = bytearray()
        # buffer size the frame at the front needs before decoding again
        self._needed = 0
        self.discarded = 0

    def feed(self, chunk: bytes) -> List[ControlPacket]:
        self._buffer.extend(chunk)
        packets: List[ControlPacket] = []
        if len(self._buffer) < self._needed:
            return packets
        while True:
            result = decode(self._buffer)
            if isinstance(result, IncompleteFrame):
                self._needed = result.needed
                break
            self._needed = 0
            del self._buffer[:result.consumed]
            if isinstance(result, InvalidFrame):
                self.discarded += result.consumed
                logger.warning(
                    "Discarding %d byte(s) of malformed control data: %s",
                    result.consumed, result.reason,
                )
                continue
            packets.append(result.packet)
        return packets

    @property
    def pending(self) -> int:
        """Bytes buffered while waiting for the rest of a frame."""
        return len(self._buffer)
