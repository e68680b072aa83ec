"""
Example extcap program.

Two demo interfaces write synthetic packets and drive the toolbar: the
message, delay and verify controls change the generated packets, the
button toggles its own label and the logger records what happened. A third
interface sniffs a local interface with Scapy.

Install into Wireshark's extcap folder (Help > About > Folders) with a small
wrapper script calling `pyextcap-example "$@"`.
"""
import ipaddress
import logging
import time
from dataclasses import dataclass
from typing import List, Optional

import click

from ..capture.pcap_writer import PcapWriter
from ..capture.scapy_source import ScapySource
from ..cli import SCHEDULERS, extcap_options, installation_instructions, run_extcap
from ..models import ControlCommand, ControlPacket, DataLink, message_packet
from ..steps import ExtcapArgs
from .descriptors import (
    CONTEXT,
    CONTROL_BUTTON,
    CONTROL_DELAY,
    CONTROL_LOGGER,
    CONTROL_MESSAGE,
    CONTROL_VERIFY,
    INTERFACE_SNIFF,
)
from .packets import data_chunks, fake_packet, out_payload

logger = logging.getLogger(__name__)


@dataclass
class DemoState:
    message: str
    delay: int
    verify: bool
    remote: str
    fake_ip: str
    count: int = 0
    initialized: bool = False
    button: bool = False
    button_disabled: bool = False
    packets_sent: int = 0


class DemoCapture:
    """
    Packet source and control handler of the demo interfaces.

    `react` maps one inbound control packet to the packets to send back;
    the thread and asyncio handlers only differ in how they send them.
    """

    def __init__(self, state: DemoState):
        self.state = state
        self.writer = PcapWriter(DataLink.ETHERNET)

    # -- control handling -------------------------------------------------

    def defaults(self) -> List[ControlPacket]:
        """Toolbar setup sent once the host reports the controls initialized."""
        state = self.state
        packets = [
            CONTROL_LOGGER.clear_and_add_log(f"Log started at {time.ctime()}"),
            CONTROL_MESSAGE.set_value(state.message),
            CONTROL_BUTTON.set_label(str(state.delay)),
            CONTROL_BUTTON.set_enabled(CONTROL_BUTTON.enabled),
            CONTROL_VERIFY.set_checked(state.verify),
        ]
        packets.extend(
            CONTROL_DELAY.add_value(str(i), f"{i} sec") for i in range(1, 16)
        )
        packets.append(CONTROL_DELAY.remove_value("60"))
        return packets

    def react(self, packet: ControlPacket) -> List[ControlPacket]:
        state = self.state
        command = packet.known_command
        if command is ControlCommand.INITIALIZED:
            state.initialized = True
            return self.defaults()
        if command is not ControlCommand.SET:
            logger.debug("Ignoring control command %r", packet.command)
            return []

        replies: List[ControlPacket] = []
        log: Optional[str] = None
        number = packet.control_number
        if number == CONTROL_MESSAGE.control_number:
            state.message = packet.text
            log = f"Message = {state.message}"
        elif number == CONTROL_DELAY.control_number:
            try:
                state.delay = int(packet.text)
            except ValueError:
                logger.warning("Ignoring invalid delay %r", packet.text)
                return []
            log = f"Time delay = {state.delay}"
        elif number == CONTROL_VERIFY.control_number:
            # Only read this after initialized
            if state.initialized:
                state.verify = packet.payload[:1] != b"\x00"
                log = f"Verify = {state.verify}"
                replies.append(_status("Verify changed"))
        elif number == CONTROL_BUTTON.control_number:
            replies.append(CONTROL_BUTTON.set_enabled(False))
            state.button_disabled = True
            state.button = not state.button
            if state.button:
                replies.append(CONTROL_BUTTON.set_label("Turn off"))
                log = "Button turned on"
            else:
                replies.append(CONTROL_BUTTON.set_label("Turn on"))
                log = "Button turned off"
        else:
            logger.warning("Unexpected control number %d", number)

        if log is not None:
            replies.append(CONTROL_LOGGER.add_log(log))
        return replies

    def handle(self, packet: ControlPacket, channel) -> None:
        for reply in self.react(packet):
            channel.send(reply)

    async def handle_async(self, packet: ControlPacket, channel) -> None:
        for reply in self.react(packet):
            await channel.send(reply)

    # -- packet generation ------------------------------------------------

    def _after_packet(self) -> List[ControlPacket]:
        state = self.state
        state.packets_sent += 1
        replies = [CONTROL_LOGGER.add_log(f"Received packet #{state.packets_sent}")]
        if state.button_disabled:
            replies.append(CONTROL_BUTTON.set_enabled(True))
            replies.append(_info("Turn action finished."))
            state.button_disabled = False
        return replies

    def _record(self, index: int, total: int, chunk: bytes, counter: int) -> bytes:
        state = self.state
        payload = out_payload(
            state.remote, index, total, chunk, state.message.encode("utf-8"), state.verify
        )
        return self.writer.record(fake_packet(payload, state.fake_ip, counter))

    def _exhausted(self, counter: int) -> bool:
        return bool(self.state.count) and counter >= self.state.count

    def packets(self, ctx):
        yield self.writer.global_header()
        for counter, (index, total, chunk) in enumerate(data_chunks()):
            if self._exhausted(counter):
                return
            yield self._record(index, total, chunk, counter)
            for reply in self._after_packet():
                ctx.channel.send(reply)
            if ctx.wait(self.state.delay):
                return

    async def packets_async(self, ctx):
        yield self.writer.global_header()
        for counter, (index, total, chunk) in enumerate(data_chunks()):
            if self._exhausted(counter):
                return
            yield self._record(index, total, chunk, counter)
            for reply in self._after_packet():
                await ctx.channel.send(reply)
            if await ctx.sleep(self.state.delay):
                return


def _status(message: str) -> ControlPacket:
    return message_packet(ControlCommand.STATUSBAR_MESSAGE, message)


def _info(message: str) -> ControlPacket:
    return message_packet(ControlCommand.INFORMATION_MESSAGE, message)


def _validate_ip(ctx, param, value):
    try:
        ipaddress.IPv4Address(value)
    except ValueError:
        raise click.BadParameter(f"{value!r} is not an IPv4 address")
    return value


@click.command(epilog=installation_instructions("pyextcap-example"))
@extcap_options
@click.option("--delay", type=click.IntRange(0, 15), default=5, show_default=True,
              help="Seconds between packets")
@click.option("--message", default="Extcap Test", show_default=True,
              help="Message carried in every packet")
@click.option("--verify", is_flag=True, help="Set the verify flag in packets")
@click.option("--remote", type=click.Choice(["if1", "if2", "if3", "if4"]),
              default="if1", show_default=True, help="Remote channel")
@click.option("--fake_ip", "--fake-ip", "fake_ip", default="127.0.0.1", show_default=True,
              callback=_validate_ip, help="Sender address of the packets")
@click.option("--ts", type=int, help="Capture start time")
@click.option("--ltest", help="Long test value")
@click.option("--d1test", help="Double test value")
@click.option("--d2test", help="Double test value")
@click.option("--password", help="Package message password")
@click.option("--logfile", type=click.Path(dir_okay=False), help="Log file")
@click.option("--radio", help="Radio test value")
@click.option("--multi", help="Comma-separated multicheck values")
@click.option("--sniff_iface", "--sniff-iface", "sniff_iface",
              help="Local interface for the live capture interface")
@click.option("--promisc", is_flag=True, help="Sniff in promiscuous mode")
@click.option("--count", type=click.IntRange(min=0), default=0,
              help="Stop after this many demo packets (0 = never)")
@click.option("--scheduler", type=click.Choice(SCHEDULERS), default="thread",
              show_default=True, help="Run the capture on threads or asyncio")
def main(delay, message, verify, remote, fake_ip, count, sniff_iface, promisc,
         scheduler, **kwargs):
    """Demo extcap interfaces for Wireshark, written with pyextcap."""
    args = ExtcapArgs.from_kwargs(kwargs)
    options = dict(kwargs, delay=delay, message=message, verify=verify,
                   remote=remote, fake_ip=fake_ip)

    if args.extcap_interface == INTERFACE_SNIFF.value:
        source = ScapySource(iface=sniff_iface, promisc=promisc)
        handler = None
    else:
        demo = DemoCapture(DemoState(
            message=message, delay=delay, verify=verify,
            remote=remote, fake_ip=fake_ip, count=count,
        ))
        if scheduler == "async":
            source, handler = demo.packets_async, demo.handle_async
        else:
            source, handler = demo.packets, demo.handle

    run_extcap(CONTEXT, args, source=source, handler=handler,
               options=options, scheduler=scheduler)


if __name__ == "__main__":
    main()
