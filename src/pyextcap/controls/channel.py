"""
Control channel: owns the control-in and control-out pipes during a capture.

Inbound, the channel yields the ControlPackets the host sends when the user
touches a toolbar control. Outbound, `send` writes one complete frame at a
time; concurrent senders never interleave bytes of two frames.

ControlChannel runs one reader thread and serializes sends with a lock.
AsyncControlChannel reads in the event loop and funnels sends through a
single writer task. Either direction is a no-op when its pipe was not
requested by the host.
"""
import asyncio
import logging
import os
import queue
import threading
from typing import AsyncIterator, Iterator, Optional

from ..capture.cancel import CancellationToken
from ..exceptions import IoError
from ..models.packet import ControlCommand, ControlPacket, message_packet
from . import pipes
from .codec import FrameDecoder

logger = logging.getLogger(__name__)

DRAIN_TIMEOUT = 1.0
"""Seconds the async writer gets to flush queued frames on close."""

_END = object()


class BaseControlChannel:
    """Framing, logging and message helpers shared by both channel kinds."""

    def __init__(self, in_fd: Optional[int] = None, out_fd: Optional[int] = None):
        self.in_fd = in_fd
        self.out_fd = out_fd
        self.closed = False
        self.sent = 0
        self.received = 0

    @property
    def is_noop(self) -> bool:
        return self.in_fd is None and self.out_fd is None

    def send(self, packet: ControlPacket):
        raise NotImplementedError

    def _frame(self, packet: ControlPacket) -> bytes:
        frame = packet.to_bytes()
        logger.debug(
            "-> control %d %s (%d bytes)",
            packet.control_number, _command_name(packet), len(packet.payload),
        )
        return frame

    def _decoded(self, packet: ControlPacket) -> ControlPacket:
        self.received += 1
        logger.debug(
            "<- control %d %s (%d bytes)",
            packet.control_number, _command_name(packet), len(packet.payload),
        )
        return packet

    # Host-wide messages. Each returns whatever `send` returns, so the
    # async channel's helpers are awaitable.

    def status_message(self, message: str):
        """Show `message` in the host's status bar."""
        return self.send(message_packet(ControlCommand.STATUSBAR_MESSAGE, message))

    def info_message(self, message: str):
        """Pop up an information dialog."""
        return self.send(message_packet(ControlCommand.INFORMATION_MESSAGE, message))

    def warning_message(self, message: str):
        return self.send(message_packet(ControlCommand.WARNING_MESSAGE, message))

    def error_message(self, message: str):
        return self.send(message_packet(ControlCommand.ERROR_MESSAGE, message))


def _command_name(packet: ControlPacket) -> str:
    known = packet.known_command
    return known.name if known is not None else f"command {int(packet.command)}"


# =========================================================================
# Thread variant
# =========================================================================

class ControlChannel(BaseControlChannel):
    """
    Blocking control channel.

    Call `start()` to launch the reader thread, iterate `packets()` for
    inbound packets, call `send()` from any thread. `close()` stops the
    reader and closes both pipes exactly once.
    """

    def __init__(self, in_fd: Optional[int] = None, out_fd: Optional[int] = None,
                 token: Optional[CancellationToken] = None):
        super().__init__(in_fd, out_fd)
        self._stop = CancellationToken()
        self._unlink = (token or CancellationToken()).add_callback(
            lambda: self._stop.cancel("session cancelled")
        )
        self._send_lock = threading.Lock()
        self._close_lock = threading.Lock()
        self._inbound: "queue.Queue" = queue.Queue()
        self._reader: Optional[threading.Thread] = None
        self.reader_error: Optional[BaseException] = None
        for fd in (in_fd, out_fd):
            if fd is not None:
                os.set_blocking(fd, False)

    @classmethod
    def open(cls, control_in: Optional[str], control_out: Optional[str],
             token: CancellationToken) -> Optional["ControlChannel"]:
        """
        Open the control pipes the host supplied. Returns None when the
        token is cancelled while waiting for the host; raises IoError when a
        supplied pipe cannot be opened.
        """
        in_fd = pipes.open_reader(control_in) if control_in else None
        try:
            out_fd = pipes.open_writer(control_out, token) if control_out else None
        except IoError:
            if in_fd is not None:
                pipes.close_fd(in_fd)
            raise
        if control_out and out_fd is None:
            if in_fd is not None:
                pipes.close_fd(in_fd)
            return None
        return cls(in_fd, out_fd, token)

    def start(self) -> None:
        if self.in_fd is None or self._reader is not None:
            return
        self._reader = threading.Thread(
            target=self._read_loop, name="extcap-control-reader", daemon=True
        )
        self._reader.start()

    def _read_loop(self) -> None:
        decoder = FrameDecoder()
        try:
            while True:
                chunk = pipes.read_chunk(self.in_fd, self._stop)
                if chunk is None:
                    break
                if not chunk:
                    logger.debug("Control-in reached end of stream")
                    break
                for packet in decoder.feed(chunk):
                    self._inbound.put(self._decoded(packet))
        except IoError as e:
            logger.error("Control-in read failed: %s", e)
            self.reader_error = e
        finally:
            self._inbound.put(_END)

    def packets(self) -> Iterator[ControlPacket]:
        """
        Inbound packets in arrival order. Ends at end of stream, on
        cancellation, or right away when there is no control-in pipe.
        """
        if self.in_fd is None:
            return
        self.start()
        while True:
            item = self._inbound.get()
            if item is _END:
                # leave the marker for any other consumer
                self._inbound.put(_END)
                return
            yield item

    def send(self, packet: ControlPacket) -> bool:
        """
        Write one frame. Returns False when it was discarded because there
        is no control-out pipe or the channel is shutting down.
        """
        frame = self._frame(packet)
        if self.out_fd is None:
            return False
        with self._send_lock:
            if self.closed:
                return False
            written = pipes.write_all(self.out_fd, frame, self._stop)
            if written:
                self.sent += 1
            return written

    def close(self) -> None:
        with self._close_lock:
            if self.closed:
                return
            self._stop.cancel("channel closed")
            self._unlink()
            if self._reader is not None and self._reader is not threading.current_thread():
                self._reader.join()
            with self._send_lock:
                self.closed = True
                for fd in (self.in_fd, self.out_fd):
                    if fd is not None:
                        pipes.close_fd(fd)
        logger.debug("Control channel closed (sent %d, received %d)", self.sent, self.received)


# =========================================================================
# asyncio variant
# =========================================================================

class AsyncControlChannel(BaseControlChannel):
    """
    Cooperative control channel for use inside a running event loop.

    `packets()` is an async iterator; `send()` is a coroutine that queues
    the frame for the single writer task and waits until it is written.
    """

    def __init__(self, in_fd: Optional[int] = None, out_fd: Optional[int] = None,
                 token: Optional[CancellationToken] = None):
        super().__init__(in_fd, out_fd)
        self._token = token or CancellationToken()
        self._stop: Optional[asyncio.Event] = None
        self._outbound: Optional[asyncio.Queue] = None
        self._writer: Optional[asyncio.Task] = None
        self._unlink = lambda: None
        for fd in (in_fd, out_fd):
            if fd is not None:
                os.set_blocking(fd, False)

    @classmethod
    async def open(cls, control_in: Optional[str], control_out: Optional[str],
                   token: CancellationToken) -> Optional["AsyncControlChannel"]:
        in_fd = pipes.open_reader(control_in) if control_in else None
        try:
            out_fd = await pipes.open_writer_async(control_out, token) if control_out else None
        except IoError:
            if in_fd is not None:
                pipes.close_fd(in_fd)
            raise
        if control_out and out_fd is None:
            if in_fd is not None:
                pipes.close_fd(in_fd)
            return None
        return cls(in_fd, out_fd, token)

    async def start(self) -> None:
        if self._stop is not None:
            return
        loop = asyncio.get_running_loop()
        self._stop = asyncio.Event()
        stop = self._stop
        self._unlink = self._token.add_callback(
            lambda: loop.call_soon_threadsafe(stop.set)
        )
        if self.out_fd is not None:
            self._outbound = asyncio.Queue()
            self._writer = asyncio.ensure_future(self._write_loop())

    async def _write_loop(self) -> None:
        while True:
            item = await self._outbound.get()
            if item is _END:
                return
            frame, done = item
            try:
                written = await pipes.write_all_async(self.out_fd, frame, self._stop)
            except IoError as e:
                if not done.done():
                    done.set_exception(e)
                continue
            if written:
                self.sent += 1
            if not done.done():
                done.set_result(written)

    async def packets(self) -> AsyncIterator[ControlPacket]:
        if self.in_fd is None:
            return
        await self.start()
        decoder = FrameDecoder()
        while True:
            chunk = await pipes.read_chunk_async(self.in_fd, self._stop)
            if chunk is None:
                return
            if not chunk:
                logger.debug("Control-in reached end of stream")
                return
            for packet in decoder.feed(chunk):
                yield self._decoded(packet)

    async def send(self, packet: ControlPacket) -> bool:
        frame = self._frame(packet)
        if self.out_fd is None or self.closed:
            return False
        await self.start()
        done = asyncio.get_running_loop().create_future()
        await self._outbound.put((frame, done))
        return await done

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self._writer is not None:
            await self._outbound.put(_END)
            try:
                await asyncio.wait_for(asyncio.shield(self._writer), DRAIN_TIMEOUT)
            except asyncio.TimeoutError:
                logger.warning("Control-out not drained within %.1fs", DRAIN_TIMEOUT)
            self._stop.set()
            await self._writer
            while not self._outbound.empty():
                item = self._outbound.get_nowait()
                if item is not _END and not item[1].done():
                    item[1].set_result(False)
        if self._stop is not None:
            self._stop.set()
        self._unlink()
        for fd in (self.in_fd, self.out_fd):
            if fd is not None:
                pipes.close_fd(fd)
        logger.debug("Control channel closed (sent %d, received %d)", self.sent, self.received)
