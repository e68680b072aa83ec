"""
Pipe I/O primitives for the packet FIFO and the control pipes.

Every blocking operation waits in `select` slices of POLL_INTERVAL (or on
asyncio reader/writer callbacks) and gives up once its stop token is set,
so no call blocks past a cancellation.

Opening a FIFO for writing fails with ENXIO until the host has opened the
read end; the open helpers retry until that happens or the token is set.
"""
import asyncio
import errno
import logging
import os
import select
import time
from typing import Optional

from ..exceptions import IoError

logger = logging.getLogger(__name__)

READ_SIZE = 4096

POLL_INTERVAL = 0.1
"""Seconds between cancellation checks in blocking pipe operations."""


def _try_open_writer(path: str, create: bool) -> Optional[int]:
    flags = os.O_WRONLY | os.O_NONBLOCK
    if create:
        flags |= os.O_CREAT | os.O_TRUNC
    try:
        return os.open(path, flags, 0o644)
    except OSError as e:
        if e.errno == errno.ENXIO:
            # FIFO without a reader yet
            return None
        raise IoError(f"Cannot open {path} for writing: {e.strerror}") from e


def open_writer(path: str, token, create: bool = False) -> Optional[int]:
    """
    Open `path` write-only and non-blocking. Returns None if `token` is
    cancelled before the read end shows up. Raises IoError on other failures.
    """
    waited = False
    while not token.is_cancelled:
        fd = _try_open_writer(path, create)
        if fd is not None:
            logger.debug("Opened %s for writing (fd %d)", path, fd)
            return fd
        if not waited:
            logger.debug("Waiting for a reader on %s", path)
            waited = True
        time.sleep(POLL_INTERVAL)
    return None


async def open_writer_async(path: str, token, create: bool = False) -> Optional[int]:
    while not token.is_cancelled:
        fd = _try_open_writer(path, create)
        if fd is not None:
            logger.debug("Opened %s for writing (fd %d)", path, fd)
            return fd
        await asyncio.sleep(POLL_INTERVAL)
    return None


def open_reader(path: str) -> int:
    """
    Open `path` read-only and non-blocking. Succeeds immediately for a FIFO
    even before the host opened the write end; readers wait for readiness
    before reading so that state is not mistaken for end of stream.
    """
    try:
        fd = os.open(path, os.O_RDONLY | os.O_NONBLOCK)
    except OSError as e:
        raise IoError(f"Cannot open {path} for reading: {e.strerror}") from e
    logger.debug("Opened %s for reading (fd %d)", path, fd)
    return fd


def close_fd(fd: int) -> None:
    try:
        os.close(fd)
    except OSError as e:
        logger.warning("Error closing fd %d: %s", fd, e)


# -------------------------------------------------------------------------
# Blocking (thread) primitives
# -------------------------------------------------------------------------

def write_all(fd: int, data: bytes, token) -> bool:
    """
    Write every byte of `data`. Returns False if `token` was cancelled
    first. Raises IoError when the write fails (e.g. the reader went away).
    """
    view = memoryview(data)
    while view:
        if token.is_cancelled:
            return False
        _, writable, _ = select.select([], [fd], [], POLL_INTERVAL)
        if not writable:
            continue
        try:
            written = os.write(fd, view)
        except BlockingIOError:
            continue
        except OSError as e:
            raise IoError(f"Write failed: {e.strerror}") from e
        view = view[written:]
    return True


def read_chunk(fd: int, token, size: int = READ_SIZE) -> Optional[bytes]:
    """
    Read what is available, waiting until data arrives. Returns b"" at end of
    stream and None if `token` was cancelled first.
    """
    while not token.is_cancelled:
        readable, _, _ = select.select([fd], [], [], POLL_INTERVAL)
        if not readable:
            continue
        try:
            return os.read(fd, size)
        except BlockingIOError:
            continue
        except OSError as e:
            raise IoError(f"Read failed: {e.strerror}") from e
    return None


# -------------------------------------------------------------------------
# asyncio primitives
# -------------------------------------------------------------------------

def _set_ready(future: asyncio.Future) -> None:
    if not future.done():
        future.set_result(None)


async def _wait_fd(fd: int, stop: asyncio.Event, writable: bool) -> bool:
    """Wait until `fd` is ready or `stop` is set. Returns readiness."""
    loop = asyncio.get_running_loop()
    ready = loop.create_future()
    if writable:
        loop.add_writer(fd, _set_ready, ready)
    else:
        loop.add_reader(fd, _set_ready, ready)
    stopper = asyncio.ensure_future(stop.wait())
    try:
        await asyncio.wait({ready, stopper}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        if writable:
            loop.remove_writer(fd)
        else:
            loop.remove_reader(fd)
        stopper.cancel()
        ready.cancel()
    return not stop.is_set()


async def read_chunk_async(fd: int, stop: asyncio.Event, size: int = READ_SIZE) -> Optional[bytes]:
    while not stop.is_set():
        if not await _wait_fd(fd, stop, writable=False):
            break
        try:
            return os.read(fd, size)
        except BlockingIOError:
            continue
        except OSError as e:
            raise IoError(f"Read failed: {e.strerror}") from e
    return None


async def write_all_async(fd: int, data: bytes, stop: asyncio.Event) -> bool:
    view = memoryview(data)
    while view:
        if stop.is_set():
            return False
        try:
            written = os.write(fd, view)
        except BlockingIOError:
            await _wait_fd(fd, stop, writable=True)
            continue
        except OSError as e:
            raise IoError(f"Write failed: {e.strerror}") from e
        view = view[written:]
    return True
