"""Unit tests for the control channels."""

import asyncio
import os
import threading
from unittest.mock import patch

from pyextcap.capture.cancel import CancellationToken
from pyextcap.controls import pipes
from pyextcap.controls.channel import AsyncControlChannel, ControlChannel
from pyextcap.controls.codec import FrameDecoder
from pyextcap.models import ControlCommand, ControlPacket


def read_available(fd):
    """Read everything currently buffered in a pipe."""
    os.set_blocking(fd, False)
    data = b""
    while True:
        try:
            chunk = os.read(fd, 65536)
        except BlockingIOError:
            return data
        if not chunk:
            return data
        data += chunk


class TestNoopChannel:
    """Tests for a channel without control pipes."""

    def test_noop(self):
        """Test sends are discarded and no packets arrive."""
        channel = ControlChannel()

        assert channel.is_noop
        assert channel.send(ControlPacket(0, ControlCommand.SET, b"x")) is False
        assert list(channel.packets()) == []
        channel.close()
        assert channel.closed


class TestControlChannelSend:
    """Tests for ControlChannel.send()."""

    def setup_method(self):
        """Channel writing into an os.pipe()."""
        self.read_fd, write_fd = os.pipe()
        self.channel = ControlChannel(out_fd=write_fd)

    def teardown_method(self):
        """Close the channel and the test's read end."""
        self.channel.close()
        os.close(self.read_fd)

    def test_send_writes_frame(self):
        """Test one packet becomes one frame."""
        packet = ControlPacket(1, ControlCommand.SET, b"3")

        assert self.channel.send(packet) is True
        assert read_available(self.read_fd) == packet.to_bytes()
        assert self.channel.sent == 1

    def test_message_helpers(self):
        """Test status and dialog messages use the broadcast index."""
        self.channel.status_message("Verify changed")
        self.channel.error_message("Boom")

        packets = FrameDecoder().feed(read_available(self.read_fd))

        assert packets == [
            ControlPacket(255, ControlCommand.STATUSBAR_MESSAGE, b"Verify changed"),
            ControlPacket(255, ControlCommand.ERROR_MESSAGE, b"Boom"),
        ]

    def test_concurrent_sends_do_not_interleave(self):
        """Test frames from many threads each arrive intact."""
        def sender(n):
            for i in range(50):
                self.channel.send(ControlPacket(n, ControlCommand.ADD, f"{n}:{i}\n".encode()))

        collected = []
        done = threading.Event()

        def reader():
            decoder = FrameDecoder()
            while len(collected) < 8 * 50:
                chunk = pipes.read_chunk(self.read_fd, CancellationToken())
                collected.extend(decoder.feed(chunk))
            assert decoder.discarded == 0
            done.set()

        os.set_blocking(self.read_fd, False)
        reader_thread = threading.Thread(target=reader, daemon=True)
        reader_thread.start()
        threads = [threading.Thread(target=sender, args=(n,)) for n in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert done.wait(5)
        assert len(collected) == 400
        for n in range(8):
            own = [p.payload for p in collected if p.control_number == n]
            assert own == [f"{n}:{i}\n".encode() for i in range(50)]

    def test_send_after_close(self):
        """Test sends after close are discarded."""
        self.channel.close()

        assert self.channel.send(ControlPacket(1, ControlCommand.SET)) is False


class TestControlChannelReceive:
    """Tests for ControlChannel.packets()."""

    def test_packets_until_end_of_stream(self):
        """Test inbound packets arrive in order and iteration ends at EOF."""
        read_fd, write_fd = os.pipe()
        channel = ControlChannel(in_fd=read_fd)
        inbound = [
            ControlPacket(255, ControlCommand.INITIALIZED),
            ControlPacket(0, ControlCommand.SET, b"Hello"),
            ControlPacket(2, ControlCommand.SET, b"\x01"),
        ]
        stream = b"".join(p.to_bytes() for p in inbound)
        os.write(write_fd, stream[:7])
        os.write(write_fd, stream[7:])
        os.close(write_fd)

        try:
            received = list(channel.packets())
        finally:
            channel.close()

        assert received == inbound
        assert channel.received == 3

    def test_garbage_before_frame_is_skipped(self):
        """Test the reader resynchronizes on the next sync byte."""
        read_fd, write_fd = os.pipe()
        channel = ControlChannel(in_fd=read_fd)
        packet = ControlPacket(0, ControlCommand.SET, b"Hello")
        os.write(write_fd, b"\x00\x01\x02" + packet.to_bytes())
        os.close(write_fd)

        try:
            received = list(channel.packets())
        finally:
            channel.close()

        assert received == [packet]

    def test_cancellation_ends_iteration(self):
        """Test the session token stops the reader."""
        read_fd, write_fd = os.pipe()
        token = CancellationToken()
        channel = ControlChannel(in_fd=read_fd, token=token)
        channel.start()
        threading.Timer(0.2, token.cancel).start()

        try:
            assert list(channel.packets()) == []
        finally:
            channel.close()
            os.close(write_fd)

    def test_close_is_idempotent(self):
        """Test each pipe is closed exactly once."""
        in_read, in_write = os.pipe()
        out_read, out_write = os.pipe()
        channel = ControlChannel(in_fd=in_read, out_fd=out_write)
        channel.start()

        with patch("pyextcap.controls.pipes.close_fd", wraps=pipes.close_fd) as close_fd:
            channel.close()
            channel.close()

        assert sorted(call.args[0] for call in close_fd.call_args_list) == sorted([in_read, out_write])
        os.close(in_write)
        os.close(out_read)


class TestAsyncControlChannel:
    """Tests for AsyncControlChannel."""

    def test_send_and_close(self):
        """Test queued sends are written by the writer task in order."""
        read_fd, write_fd = os.pipe()

        async def scenario():
            channel = AsyncControlChannel(out_fd=write_fd)
            await channel.start()
            results = await asyncio.gather(*(
                channel.send(ControlPacket(1, ControlCommand.ADD, f"{i}".encode()))
                for i in range(20)
            ))
            await channel.status_message("done")
            await channel.close()
            return results, channel

        results, channel = asyncio.run(scenario())
        packets = FrameDecoder().feed(read_available(read_fd))
        os.close(read_fd)

        assert results == [True] * 20
        assert channel.sent == 21
        assert sorted(p.payload for p in packets[:20]) == sorted(f"{i}".encode() for i in range(20))
        assert packets[-1].known_command is ControlCommand.STATUSBAR_MESSAGE

    def test_receive(self):
        """Test inbound packets and end of stream."""
        read_fd, write_fd = os.pipe()
        inbound = [
            ControlPacket(255, ControlCommand.INITIALIZED),
            ControlPacket(3, ControlCommand.SET),
        ]
        os.write(write_fd, b"".join(p.to_bytes() for p in inbound))
        os.close(write_fd)

        async def scenario():
            channel = AsyncControlChannel(in_fd=read_fd)
            received = [packet async for packet in channel.packets()]
            await channel.close()
            return received

        assert asyncio.run(scenario()) == inbound

    def test_noop(self):
        """Test a channel without pipes."""
        async def scenario():
            channel = AsyncControlChannel()
            sent = await channel.send(ControlPacket(0, ControlCommand.SET))
            received = [packet async for packet in channel.packets()]
            await channel.close()
            return sent, received

        assert asyncio.run(scenario()) == (False, [])

    def test_token_stops_receive(self):
        """Test cancelling the session token ends packets()."""
        read_fd, write_fd = os.pipe()
        token = CancellationToken()

        async def scenario():
            channel = AsyncControlChannel(in_fd=read_fd, token=token)
            asyncio.get_running_loop().call_later(0.1, token.cancel)
            received = [packet async for packet in channel.packets()]
            await channel.close()
            return received

        try:
            assert asyncio.run(scenario()) == []
        finally:
            os.close(write_fd)
