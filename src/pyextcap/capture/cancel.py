"""Cancellation token shared by the capture activities, set from signal handlers."""
import logging
import os
import signal
import threading
from typing import Callable, List, Optional, Sequence

logger = logging.getLogger(__name__)


class CancellationToken:
    """
    One-shot cancellation flag.

    Blocking pipe I/O polls `is_cancelled` every pipes.POLL_INTERVAL; asyncio
    code subscribes with `add_callback`. Once set the token stays set, so a
    cancellation that arrives before the session starts running is not lost.
    """

    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[], None]] = []
        self.reason: Optional[str] = None

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled") -> None:
        with self._lock:
            if self._event.is_set():
                return
            self.reason = reason
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []
        logger.debug("Cancellation requested: %s", reason)
        for callback in callbacks:
            callback()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until cancelled or `timeout` elapses. Returns the flag."""
        return self._event.wait(timeout)

    def add_callback(self, callback: Callable[[], None]) -> Callable[[], None]:
        """
        Run `callback` once when the token is cancelled (immediately if it
        already is). Returns a function that unregisters it.
        """
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return lambda: self._remove(callback)
        callback()
        return lambda: None

    def _remove(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)


def install_signal_handlers(token: CancellationToken,
                            signals: Sequence[int] = (signal.SIGINT, signal.SIGTERM)
                            ) -> Callable[[], None]:
    """
    Cancel `token` on SIGINT/SIGTERM. The host stops a capture by
    terminating the extcap, which must then shut down cleanly and exit 0.

    The handler runs on the main thread between any two bytecodes, possibly
    while that thread holds a token lock, so it only writes the signal
    number into a pipe. A watcher thread reads it and cancels the token.

    Returns a function restoring the previous handlers.
    """
    read_fd, write_fd = os.pipe()
    os.set_blocking(write_fd, False)
    previous = {}

    def _handler(signum, _frame):
        try:
            os.write(write_fd, bytes([signum]))
        except BlockingIOError:
            # pipe full: a cancellation is already pending
            pass

    def _watch():
        try:
            while True:
                data = os.read(read_fd, 64)
                if not data:
                    break
                token.cancel(f"received {signal.Signals(data[0]).name}")
        finally:
            os.close(read_fd)

    watcher = threading.Thread(target=_watch, name="extcap-signal-watcher", daemon=True)
    watcher.start()
    for sig in signals:
        previous[sig] = signal.getsignal(sig)
        signal.signal(sig, _handler)

    def restore() -> None:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
        # end of stream stops the watcher after it has seen every signal
        os.close(write_fd)
        watcher.join()

    return restore
