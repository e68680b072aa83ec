"""
Live packet source using Scapy.

Sniffs a local interface with an AsyncSniffer and yields pcap records for
the capture session to write to the FIFO. Scapy is imported on first use so
the negotiation steps stay fast.
"""
import logging
import queue
from typing import Iterator, List, Optional

from ..controls.pipes import POLL_INTERVAL
from ..models.interface import DataLink
from .pcap_writer import PcapWriter

logger = logging.getLogger(__name__)


def local_interfaces() -> List[str]:
    """Names of the interfaces Scapy can sniff on."""
    from scapy.interfaces import get_if_list
    return list(get_if_list())


class ScapySource:
    """
    Packet source for CaptureSession: `session = CaptureSession(fifo, ScapySource("eth0"))`.

    Packets are handed from Scapy's sniffer thread through a bounded queue;
    when the queue is full new packets are dropped and counted.
    """

    def __init__(self, iface: Optional[str] = None, capture_filter: Optional[str] = None,
                 promisc: bool = True, snaplen: int = PcapWriter.DEFAULT_SNAPLEN,
                 buffer_size: int = 10000):
        self.iface = iface
        self.capture_filter = capture_filter
        self.promisc = promisc
        self.snaplen = snaplen
        self.buffer_size = buffer_size
        self.packets_total = 0
        self.drops_total = 0

    def __call__(self, ctx) -> Iterator[bytes]:
        from scapy.sendrecv import AsyncSniffer

        link_type = ctx.dlt.data_link_type if ctx.dlt is not None else DataLink.ETHERNET
        writer = PcapWriter(link_type, self.snaplen)
        packet_queue: "queue.Queue" = queue.Queue(maxsize=self.buffer_size)

        def packet_callback(packet):
            try:
                packet_queue.put_nowait(packet)
            except queue.Full:
                self.drops_total += 1
                if self.drops_total % 100 == 1:
                    logger.warning("Packet queue full, %d dropped so far", self.drops_total)

        capture_filter = self.capture_filter or ctx.capture_filter
        logger.debug("Sniffing on %s (filter %r)", self.iface or "default interface", capture_filter)
        sniffer = AsyncSniffer(
            iface=self.iface,
            prn=packet_callback,
            filter=capture_filter,
            store=False,
            promisc=self.promisc,
        )

        yield writer.global_header()
        sniffer.start()
        try:
            while not ctx.cancelled:
                try:
                    packet = packet_queue.get(timeout=POLL_INTERVAL)
                except queue.Empty:
                    continue
                self.packets_total += 1
                yield writer.record(bytes(packet), float(packet.time), len(packet))
        finally:
            if sniffer.running:
                sniffer.stop()
            logger.info(
                "Sniffer stopped: %d packet(s), %d dropped",
                self.packets_total, self.drops_total,
            )
