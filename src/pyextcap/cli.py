"""
Click glue for extcap programs.

An extcap program is a click command decorated with `extcap_options`; it
builds its ExtcapContext and hands the parsed flags to `run_extcap`:

    @click.command()
    @extcap_options
    @click.option("--delay", type=int, default=5)
    def main(delay, **kwargs):
        args = ExtcapArgs.from_kwargs(kwargs)
        run_extcap(CONTEXT, args, source=make_packets)

Domain errors become click exceptions carrying the extcap exit codes:
2 usage error, 3 unknown interface, 4 capture I/O failure, 1 anything else.
"""
import asyncio
import logging
import os
import shutil
from typing import Callable, Optional

import click

from .capture.cancel import CancellationToken, install_signal_handlers
from .capture.session import ControlHandler, PacketSource, SessionOutcome
from .exceptions import ExtcapError, UsageError
from .logging_config import configure_logging
from .models.context import ExtcapContext
from .steps import CaptureStep, ExtcapArgs, resolve_step

logger = logging.getLogger(__name__)

SCHEDULERS = ("thread", "async")

EXTCAP_FOLDER = "~/.config/wireshark/extcap"
"""Personal extcap folder on Linux and macOS; see Help > About > Folders."""


def installation_instructions(program: str) -> str:
    """
    Help text for people who run the extcap by hand: how to make the host
    pick it up. Meant as the epilog of the click command.
    """
    path = shutil.which(program) or os.path.abspath(program)
    name = os.path.basename(path)
    return (
        "This is an extcap plugin meant to be used with Wireshark or tshark. "
        "To install it for Wireshark, symlink or copy this executable to your "
        "Wireshark extcap folder (Help > About > Folders):\n\n"
        "\b\n"
        f"  mkdir -p {EXTCAP_FOLDER} && ln -s \"{path}\" {EXTCAP_FOLDER}/{name}"
    )


def extcap_options(func: Callable) -> Callable:
    """Add the flags the host passes to every extcap invocation."""
    options = [
        click.option("--extcap-interfaces", is_flag=True,
                     help="List the interfaces and toolbar controls"),
        click.option("--extcap-dlts", is_flag=True,
                     help="List the data link type of --extcap-interface"),
        click.option("--extcap-config", is_flag=True,
                     help="List the config options of --extcap-interface"),
        click.option("--extcap-reload-option", metavar="CALL",
                     help="Reload the values of a selector config option"),
        click.option("--capture", is_flag=True,
                     help="Capture on --extcap-interface into --fifo"),
        click.option("--fifo", type=click.Path(dir_okay=False),
                     help="Packet FIFO to write pcap data to"),
        click.option("--extcap-control-in", type=click.Path(dir_okay=False),
                     help="Pipe carrying toolbar events from the host"),
        click.option("--extcap-control-out", type=click.Path(dir_okay=False),
                     help="Pipe carrying toolbar updates to the host"),
        click.option("--extcap-capture-filter", metavar="FILTER",
                     help="Capture filter; validated when given without --capture"),
        click.option("--extcap-interface", metavar="ID",
                     help="Interface the step applies to"),
        click.option("--extcap-version", metavar="VERSION",
                     help="Version of the host application"),
        click.option("--debug", is_flag=True, envvar="PYEXTCAP_DEBUG",
                     help="Log at debug level"),
        click.option("--debug-file", type=click.Path(dir_okay=False),
                     help="Also write the log to this file"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def run_extcap(context: ExtcapContext,
               args: ExtcapArgs,
               source: Optional[PacketSource] = None,
               handler: Optional[ControlHandler] = None,
               options: Optional[dict] = None,
               scheduler: str = "thread",
               echo: Callable[..., None] = click.echo) -> Optional[SessionOutcome]:
    """
    Run the step `args` asks for. Negotiation steps print to stdout and
    return None; a capture returns the session outcome.
    """
    configure_logging(args.debug, args.debug_file)
    logger.debug("Extcap invocation: %s", args)
    if scheduler not in SCHEDULERS:
        raise click.BadParameter(f"scheduler must be one of {', '.join(SCHEDULERS)}")

    try:
        step = resolve_step(args)
        logger.debug("Resolved step %s", type(step).__name__)
        if isinstance(step, CaptureStep):
            return _run_capture(step, context, source, handler, options, scheduler)
        step.run(context, lambda text: echo(text, nl=False))
        return None
    except UsageError as e:
        raise click.UsageError(str(e)) from e
    except ExtcapError as e:
        logger.error("%s", e)
        error = click.ClickException(str(e))
        error.exit_code = e.exit_code
        raise error from e


def _run_capture(step: CaptureStep,
                 context: ExtcapContext,
                 source: Optional[PacketSource],
                 handler: Optional[ControlHandler],
                 options: Optional[dict],
                 scheduler: str) -> SessionOutcome:
    if source is None:
        raise UsageError("This extcap does not support --capture")
    token = CancellationToken()
    restore = install_signal_handlers(token)
    try:
        session = step.create_session(
            context, source, handler=handler, token=token, options=options,
            asynchronous=(scheduler == "async"),
        )
        if scheduler == "async":
            outcome = asyncio.run(session.run())
        else:
            outcome = session.run()
    finally:
        restore()
    logger.info("Capture %s", outcome.value)
    return outcome
