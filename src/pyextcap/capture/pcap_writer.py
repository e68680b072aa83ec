"""
PCAP record encoder (legacy .pcap).

Reference: https://wiki.wireshark.org/Development/LibpcapFileFormat

The host reads the FIFO as a pcap stream:
- 24-byte global header, written once
- Repeated packet records:
  - 16-byte packet header (seconds, microseconds, captured length, wire length)
  - Packet data

The capture session treats the output as opaque records; this module only
builds them.
"""

import struct
import time
from typing import Iterable, Iterator, Optional, Tuple, Union

from ..models.interface import DataLink

Timestamp = Union[float, int]


class PcapWriter:
    """
    Builds pcap global header and packet records for one link type.

    Records are native-endian with microsecond timestamps, the variant
    every reader accepts.
    """

    MAGIC_NUMBER = 0xA1B2C3D4       # Microsecond resolution
    VERSION_MAJOR = 2
    VERSION_MINOR = 4
    DEFAULT_SNAPLEN = 65535

    GLOBAL_HEADER = struct.Struct("=IHHiIII")
    RECORD_HEADER = struct.Struct("=IIII")

    def __init__(self, link_type: int = DataLink.ETHERNET, snaplen: int = DEFAULT_SNAPLEN):
        if not 0 <= int(link_type) <= 0xFFFF:
            raise ValueError(f"Link type {link_type} out of range")
        if snaplen <= 0:
            raise ValueError("snaplen must be positive")
        self.link_type = int(link_type)
        self.snaplen = snaplen

    def global_header(self) -> bytes:
        return self.GLOBAL_HEADER.pack(
            self.MAGIC_NUMBER,
            self.VERSION_MAJOR,
            self.VERSION_MINOR,
            0,              # thiszone: GMT
            0,              # sigfigs
            self.snaplen,
            self.link_type,
        )

    def record(self, data: bytes, timestamp: Optional[Timestamp] = None,
               wire_length: Optional[int] = None) -> bytes:
        """
        One packet record. `timestamp` is seconds since the epoch (now if
        omitted); data longer than snaplen is truncated.
        """
        if timestamp is None:
            timestamp = time.time()
        seconds = int(timestamp)
        micros = int(round((timestamp - seconds) * 1_000_000))
        if micros >= 1_000_000:
            seconds += 1
            micros -= 1_000_000
        captured = bytes(data[:self.snaplen])
        if wire_length is None:
            wire_length = len(data)
        header = self.RECORD_HEADER.pack(seconds, micros, len(captured), wire_length)
        return header + captured

    def records(self, packets: Iterable[Union[bytes, Tuple[Timestamp, bytes]]]) -> Iterator[bytes]:
        """
        The global header followed by one record per packet. Items are raw
        frames or (timestamp, frame) pairs.
        """
        yield self.global_header()
        for item in packets:
            if isinstance(item, tuple):
                timestamp, data = item
                yield self.record(data, timestamp)
            else:
                yield self.record(item)
