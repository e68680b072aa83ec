"""Synthetic packets written by the demo interfaces."""
from typing import Iterator, Tuple

DATA = (
    b"Lorem ipsum dolor sit amet, consectetur adipiscing elit, sed do eiusmod tempor "
    b"incididunt ut labore et dolore magna aliqua. Ut enim ad minim veniam, quis nost "
    b"rud exercitation ullamco laboris nisi ut aliquip ex ea commodo consequat. Duis "
    b"aute irure dolor in reprehenderit in voluptate velit esse cillum dolore eu fugi "
    b"at nulla pariatur. Excepteur sint occaecat cupidatat non proident, sunt in culp "
    b"a qui officia deserunt mollit anim id est laborum."
)
CHUNK_SIZE = 20

MAC_A = "00:29:00:29:00:29"
MAC_B = "00:34:00:34:00:34"
DEST_IP = "127.0.0.1"


def data_chunks() -> Iterator[Tuple[int, int, bytes]]:
    """Endless (index, total, chunk) triples cycling through DATA."""
    total = len(DATA) // CHUNK_SIZE + 1
    while True:
        for index in range(total):
            yield index + 1, total, DATA[index * CHUNK_SIZE:(index + 1) * CHUNK_SIZE]


def out_payload(remote: str, index: int, total: int, chunk: bytes,
                message: bytes, verify: bool) -> bytes:
    """Length-prefixed fields of one demo message."""
    remote_bytes = remote.encode("utf-8")
    message = message[:255]
    return b"".join([
        bytes([len(remote_bytes)]), remote_bytes,
        bytes([index & 0xFF]),
        bytes([total & 0xFF]),
        bytes([len(chunk)]), chunk,
        bytes([len(message)]), message,
        bytes([1 if verify else 0]),
    ])


def fake_packet(payload: bytes, fake_ip: str, counter: int) -> bytes:
    """Ethernet/IPv4 frame from `fake_ip`; the MAC pair flips on every packet."""
    from scapy.layers.inet import IP
    from scapy.layers.l2 import Ether
    from scapy.packet import Raw

    dst, src = (MAC_A, MAC_B) if counter % 2 == 0 else (MAC_B, MAC_A)
    # protocol 254: experimentation and testing
    frame = (
        Ether(dst=dst, src=src)
        / IP(src=fake_ip, dst=DEST_IP, flags="DF", ttl=64, proto=254, id=0)
        / Raw(load=payload)
    )
    return bytes(frame)
