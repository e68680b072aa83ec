"""
Capture session: the `--capture` step.

    OPENING -> RUNNING -> DRAINING -> CLOSED

OPENING opens the packet FIFO and the control pipes the host supplied.
RUNNING writes the records produced by the packet source to the FIFO, in
order, while inbound control packets are dispatched to the control handler.
The session drains when the source is exhausted, when the cancellation
token is set, or when a FIFO write fails; draining stops control dispatch
and closes the FIFO and the control pipes exactly once.

CaptureSession runs the two activities on worker threads, AsyncCaptureSession
runs them as tasks in the current event loop.
"""
import asyncio
import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterable, Callable, Iterable, Optional, Union

from ..controls import pipes
from ..controls.channel import AsyncControlChannel, BaseControlChannel, ControlChannel
from ..exceptions import IoError
from ..models.interface import Dlt, Interface
from ..models.packet import ControlPacket
from .cancel import CancellationToken

logger = logging.getLogger(__name__)

CANCEL_GRACE = 2.0
"""Seconds a packet source gets to notice cancellation before it is abandoned."""


class SessionState(Enum):
    OPENING = "opening"
    RUNNING = "running"
    DRAINING = "draining"
    CLOSED = "closed"


class SessionOutcome(Enum):
    COMPLETED = "completed"
    """The packet source was exhausted."""
    CANCELLED = "cancelled"
    """The cancellation token was set (SIGINT/SIGTERM from the host)."""


@dataclass
class CaptureContext:
    """
    What a packet source sees of the running session.

    `options` holds the application's own config values (the `--<call>`
    flags the host passed for this interface).
    """
    fifo: str
    channel: BaseControlChannel
    token: CancellationToken
    interface: Optional[Interface] = None
    dlt: Optional[Dlt] = None
    capture_filter: Optional[str] = None
    options: dict = field(default_factory=dict)
    _stop_event: Optional[asyncio.Event] = field(default=None, repr=False)

    @property
    def cancelled(self) -> bool:
        return self.token.is_cancelled

    def wait(self, seconds: float) -> bool:
        """Sleep up to `seconds`; returns True if cancelled meanwhile."""
        return self.token.wait(seconds)

    async def sleep(self, seconds: float) -> bool:
        """Async counterpart of `wait`, for async packet sources."""
        if self._stop_event is None:
            await asyncio.sleep(seconds)
            return self.cancelled
        try:
            await asyncio.wait_for(self._stop_event.wait(), seconds)
        except asyncio.TimeoutError:
            pass
        return self.cancelled


PacketSource = Callable[[CaptureContext], Union[Iterable[bytes], AsyncIterable[bytes]]]
ControlHandler = Callable[[ControlPacket, Any], Any]


class _SessionBase:
    def __init__(self,
                 fifo: str,
                 source: PacketSource,
                 handler: Optional[ControlHandler] = None,
                 control_in: Optional[str] = None,
                 control_out: Optional[str] = None,
                 token: Optional[CancellationToken] = None,
                 interface: Optional[Interface] = None,
                 dlt: Optional[Dlt] = None,
                 capture_filter: Optional[str] = None,
                 options: Optional[dict] = None):
        self.fifo = fifo
        self.source = source
        self.handler = handler
        self.control_in = control_in
        self.control_out = control_out
        self.token = token or CancellationToken()
        self.interface = interface
        self.dlt = dlt
        self.capture_filter = capture_filter
        self.options = dict(options or {})

        self.state = SessionState.OPENING
        self.packets_written = 0
        self.channel: Optional[BaseControlChannel] = None
        self._fifo_fd: Optional[int] = None
        self._draining = False
        self._error: Optional[BaseException] = None

    def _transition(self, state: SessionState) -> None:
        logger.debug("Capture session %s -> %s", self.state.value, state.value)
        self.state = state

    def _begin(self) -> bool:
        if self.state is not SessionState.OPENING:
            raise RuntimeError("A capture session can only be run once")
        if self.token.is_cancelled:
            logger.info("Cancelled before capture started")
            self._transition(SessionState.CLOSED)
            return False
        return True

    def _context(self, stop_event: Optional[asyncio.Event] = None) -> CaptureContext:
        return CaptureContext(
            fifo=self.fifo,
            channel=self.channel,
            token=self.token,
            interface=self.interface,
            dlt=self.dlt,
            capture_filter=self.capture_filter,
            options=self.options,
            _stop_event=stop_event,
        )

    def _close_fifo(self) -> None:
        if self._fifo_fd is not None:
            fd, self._fifo_fd = self._fifo_fd, None
            pipes.close_fd(fd)

    def _record_error(self, error: BaseException) -> None:
        if self._error is None:
            self._error = error

    def _finish(self) -> SessionOutcome:
        self._transition(SessionState.CLOSED)
        logger.info("Capture finished: %d record(s) written", self.packets_written)
        if self._error is not None:
            raise self._error
        if self.token.is_cancelled:
            return SessionOutcome.CANCELLED
        return SessionOutcome.COMPLETED


class CaptureSession(_SessionBase):
    """Thread-based capture session. Not reusable."""

    def run(self) -> SessionOutcome:
        if not self._begin():
            return SessionOutcome.CANCELLED
        try:
            opened = self._open()
        except IoError:
            self._transition(SessionState.CLOSED)
            raise
        if not opened:
            self._transition(SessionState.CLOSED)
            return SessionOutcome.CANCELLED

        self._transition(SessionState.RUNNING)
        writer = threading.Thread(
            target=self._write_packets, name="extcap-packet-writer", daemon=True
        )
        dispatcher = threading.Thread(
            target=self._dispatch_controls, name="extcap-control-dispatch", daemon=True
        )
        self.channel.start()
        dispatcher.start()
        writer.start()

        self._wait_for_writer(writer)

        self._transition(SessionState.DRAINING)
        self._draining = True
        self.channel.close()
        dispatcher.join()
        self._close_fifo()
        return self._finish()

    def _open(self) -> bool:
        self._fifo_fd = pipes.open_writer(self.fifo, self.token, create=True)
        if self._fifo_fd is None:
            return False
        try:
            channel = ControlChannel.open(self.control_in, self.control_out, self.token)
        except IoError:
            self._close_fifo()
            raise
        if channel is None:
            self._close_fifo()
            return False
        self.channel = channel
        return True

    def _wait_for_writer(self, writer: threading.Thread) -> None:
        # Join in slices so signal handlers keep running on the main thread
        while writer.is_alive():
            writer.join(pipes.POLL_INTERVAL)
            if self.token.is_cancelled:
                writer.join(CANCEL_GRACE)
                if writer.is_alive():
                    logger.warning(
                        "Packet source ignored cancellation for %.1fs; abandoning it",
                        CANCEL_GRACE,
                    )
                break

    def _write_packets(self) -> None:
        try:
            for record in self.source(self._context()):
                if self.token.is_cancelled:
                    break
                if not pipes.write_all(self._fifo_fd, record, self.token):
                    break
                self.packets_written += 1
        except IoError as e:
            logger.error("FIFO write failed: %s", e)
            self._record_error(e)
        except Exception as e:
            logger.exception("Packet source failed")
            self._record_error(e)

    def _dispatch_controls(self) -> None:
        try:
            for packet in self.channel.packets():
                if self._draining:
                    break
                if self.handler is not None:
                    self.handler(packet, self.channel)
        except Exception as e:
            logger.exception("Control handler failed")
            self._record_error(e)
            self.token.cancel("control handler failed")
        else:
            if self.channel.reader_error is not None:
                self._record_error(self.channel.reader_error)
                self.token.cancel("control-in read failed")


class AsyncCaptureSession(_SessionBase):
    """asyncio capture session; `await session.run()` inside a running loop."""

    async def run(self) -> SessionOutcome:
        if not self._begin():
            return SessionOutcome.CANCELLED

        loop = asyncio.get_running_loop()
        stop = asyncio.Event()
        unlink = self.token.add_callback(lambda: loop.call_soon_threadsafe(stop.set))
        try:
            return await self._run(stop)
        finally:
            unlink()

    async def _run(self, stop: asyncio.Event) -> SessionOutcome:
        try:
            opened = await self._open()
        except IoError:
            self._transition(SessionState.CLOSED)
            raise
        if not opened:
            self._transition(SessionState.CLOSED)
            return SessionOutcome.CANCELLED

        self._transition(SessionState.RUNNING)
        await self.channel.start()
        writer = asyncio.ensure_future(self._write_packets(stop))
        dispatcher = asyncio.ensure_future(self._dispatch_controls())
        stopper = asyncio.ensure_future(stop.wait())

        await asyncio.wait({writer, stopper}, return_when=asyncio.FIRST_COMPLETED)
        stopper.cancel()
        if not writer.done():
            done, _ = await asyncio.wait({writer}, timeout=CANCEL_GRACE)
            if not done:
                logger.warning(
                    "Packet source ignored cancellation for %.1fs; cancelling it",
                    CANCEL_GRACE,
                )
                writer.cancel()
                await asyncio.gather(writer, return_exceptions=True)

        self._transition(SessionState.DRAINING)
        self._draining = True
        dispatcher.cancel()
        await asyncio.gather(dispatcher, return_exceptions=True)
        await self.channel.close()
        self._close_fifo()
        return self._finish()

    async def _open(self) -> bool:
        self._fifo_fd = await pipes.open_writer_async(self.fifo, self.token, create=True)
        if self._fifo_fd is None:
            return False
        try:
            channel = await AsyncControlChannel.open(
                self.control_in, self.control_out, self.token
            )
        except IoError:
            self._close_fifo()
            raise
        if channel is None:
            self._close_fifo()
            return False
        self.channel = channel
        return True

    async def _write_record(self, record: bytes, stop: asyncio.Event) -> bool:
        if stop.is_set():
            return False
        if not await pipes.write_all_async(self._fifo_fd, record, stop):
            return False
        self.packets_written += 1
        return True

    async def _write_packets(self, stop: asyncio.Event) -> None:
        records = self.source(self._context(stop))
        try:
            if hasattr(records, "__aiter__"):
                async for record in records:
                    if not await self._write_record(record, stop):
                        break
            else:
                for record in records:
                    if not await self._write_record(record, stop):
                        break
        except IoError as e:
            logger.error("FIFO write failed: %s", e)
            self._record_error(e)
        except Exception as e:
            logger.exception("Packet source failed")
            self._record_error(e)

    async def _dispatch_controls(self) -> None:
        try:
            async for packet in self.channel.packets():
                if self._draining:
                    break
                if self.handler is None:
                    continue
                result = self.handler(packet, self.channel)
                if asyncio.iscoroutine(result):
                    await result
        except IoError as e:
            logger.error("Control pipe failed: %s", e)
            self._record_error(e)
            self.token.cancel("control pipe failed")
        except Exception as e:
            logger.exception("Control handler failed")
            self._record_error(e)
            self.token.cancel("control handler failed")
