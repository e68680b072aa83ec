"""
Step dispatcher.

The host invokes an extcap several times with different flags; each
invocation asks for exactly one step:

    --capture                       CaptureStep
    --extcap-capture-filter         ValidateFilterStep (without --capture)
    --extcap-reload-option <call>   ReloadConfigStep
    --extcap-config                 ConfigStep
    --extcap-dlts                   DltsStep
    --extcap-interfaces / nothing   InterfacesStep

Asking for two steps at once is a usage error. The negotiation steps render
their whole output before handing it to `echo`, so a failing step never
leaves partial output on stdout.
"""
import logging
from dataclasses import dataclass, fields
from typing import Callable, List, Optional, Union

from .capture.cancel import CancellationToken
from .capture.session import (
    AsyncCaptureSession,
    CaptureSession,
    ControlHandler,
    PacketSource,
)
from .exceptions import UsageError
from .models.config import SelectorConfig
from .models.context import ExtcapContext
from .sentences import parse_values, render_option_values, render_text

logger = logging.getLogger(__name__)

Echo = Callable[[str], None]


@dataclass
class ExtcapArgs:
    """The extcap flags of one invocation, already tokenized."""
    extcap_interfaces: bool = False
    extcap_dlts: bool = False
    extcap_config: bool = False
    extcap_reload_option: Optional[str] = None
    capture: bool = False
    fifo: Optional[str] = None
    extcap_control_in: Optional[str] = None
    extcap_control_out: Optional[str] = None
    extcap_capture_filter: Optional[str] = None
    extcap_interface: Optional[str] = None
    extcap_version: Optional[str] = None
    debug: bool = False
    debug_file: Optional[str] = None

    @classmethod
    def from_kwargs(cls, kwargs: dict) -> "ExtcapArgs":
        """Pop the extcap flags out of a click kwargs dict."""
        names = [f.name for f in fields(cls)]
        return cls(**{name: kwargs.pop(name) for name in names if name in kwargs})


class ExtcapStep:
    flag: str = ""

    def run(self, context: ExtcapContext, echo: Echo) -> None:
        raise NotImplementedError


@dataclass(frozen=True)
class InterfacesStep(ExtcapStep):
    flag = "--extcap-interfaces"

    def run(self, context: ExtcapContext, echo: Echo) -> None:
        text = render_text([context.metadata, *context.interfaces, *context.controls])
        echo(text)


@dataclass(frozen=True)
class DltsStep(ExtcapStep):
    interface: str

    flag = "--extcap-dlts"

    def run(self, context: ExtcapContext, echo: Echo) -> None:
        interface = context.get_interface(self.interface)
        echo(render_text([context.dlt_for(interface)]))


@dataclass(frozen=True)
class ConfigStep(ExtcapStep):
    interface: str

    flag = "--extcap-config"

    def run(self, context: ExtcapContext, echo: Echo) -> None:
        interface = context.get_interface(self.interface)
        echo(render_text(context.configs_for(interface)))


@dataclass(frozen=True)
class ReloadConfigStep(ExtcapStep):
    """Re-list the values of a reloadable selector."""
    interface: str
    option: str

    flag = "--extcap-reload-option"

    def run(self, context: ExtcapContext, echo: Echo) -> None:
        interface = context.get_interface(self.interface)
        option = context.find_config(interface, self.option)
        if option is None:
            raise UsageError(
                f"Unknown config option '{self.option}' for interface '{self.interface}'"
            )
        if not isinstance(option, SelectorConfig) or option.reload is None:
            raise UsageError(f"Config option '{self.option}' cannot be reloaded")
        result = option.reload.reload_fn()
        if isinstance(result, str):
            values = parse_values(result, option.number)
        else:
            values = list(result)
        logger.debug("Reloaded %d value(s) for '%s'", len(values), option.call)
        lines = render_option_values(option.number, values)
        echo("".join(line + "\n" for line in lines))


@dataclass(frozen=True)
class ValidateFilterStep(ExtcapStep):
    """Print an error message if the capture filter is invalid, nothing otherwise."""
    interface: str
    capture_filter: str

    flag = "--extcap-capture-filter"

    def run(self, context: ExtcapContext, echo: Echo) -> None:
        context.get_interface(self.interface)
        validator = context.capture_filter_validator
        message = validator(self.capture_filter) if validator is not None else None
        if message:
            echo(message + "\n")


@dataclass(frozen=True)
class CaptureStep:
    interface: str
    fifo: str
    control_in: Optional[str] = None
    control_out: Optional[str] = None
    capture_filter: Optional[str] = None

    flag = "--capture"

    def create_session(self,
                       context: ExtcapContext,
                       source: PacketSource,
                       handler: Optional[ControlHandler] = None,
                       token: Optional[CancellationToken] = None,
                       options: Optional[dict] = None,
                       asynchronous: bool = False) -> Union[CaptureSession, AsyncCaptureSession]:
        """Build (but do not run) the session for this capture request."""
        interface = context.get_interface(self.interface)
        session_cls = AsyncCaptureSession if asynchronous else CaptureSession
        return session_cls(
            fifo=self.fifo,
            source=source,
            handler=handler,
            control_in=self.control_in,
            control_out=self.control_out,
            token=token,
            interface=interface,
            dlt=context.dlt_for(interface),
            capture_filter=self.capture_filter,
            options=options,
        )


Step = Union[InterfacesStep, DltsStep, ConfigStep, ReloadConfigStep,
             ValidateFilterStep, CaptureStep]


def _requested_steps(args: ExtcapArgs) -> List[str]:
    requested = []
    if args.capture:
        requested.append("--capture")
    elif args.extcap_capture_filter is not None:
        requested.append("--extcap-capture-filter")
    if args.extcap_reload_option is not None:
        requested.append("--extcap-reload-option")
    # The host sends --extcap-config along with --extcap-reload-option
    if args.extcap_config and args.extcap_reload_option is None:
        requested.append("--extcap-config")
    if args.extcap_dlts:
        requested.append("--extcap-dlts")
    if args.extcap_interfaces:
        requested.append("--extcap-interfaces")
    return requested


def _require_interface(args: ExtcapArgs, flag: str) -> str:
    if not args.extcap_interface:
        raise UsageError(f"{flag} requires --extcap-interface")
    return args.extcap_interface


def resolve_step(args: ExtcapArgs) -> Step:
    """
    Pick the single step `args` asks for. Raises UsageError when flags of
    two steps are combined or a step is missing a required flag.
    """
    if not args.capture:
        stray = [flag for flag, value in (
            ("--fifo", args.fifo),
            ("--extcap-control-in", args.extcap_control_in),
            ("--extcap-control-out", args.extcap_control_out),
        ) if value is not None]
        if stray:
            raise UsageError(f"{', '.join(stray)} only valid with --capture")

    requested = _requested_steps(args)
    if len(requested) > 1:
        raise UsageError(f"Conflicting flags: {' and '.join(requested)}")

    if args.capture:
        interface = _require_interface(args, "--capture")
        if not args.fifo:
            raise UsageError("--capture requires --fifo")
        return CaptureStep(
            interface=interface,
            fifo=args.fifo,
            control_in=args.extcap_control_in,
            control_out=args.extcap_control_out,
            capture_filter=args.extcap_capture_filter,
        )
    if args.extcap_capture_filter is not None:
        interface = _require_interface(args, "--extcap-capture-filter")
        return ValidateFilterStep(interface, args.extcap_capture_filter)
    if args.extcap_reload_option is not None:
        interface = _require_interface(args, "--extcap-reload-option")
        return ReloadConfigStep(interface, args.extcap_reload_option)
    if args.extcap_config:
        return ConfigStep(_require_interface(args, "--extcap-config"))
    if args.extcap_dlts:
        return DltsStep(_require_interface(args, "--extcap-dlts"))
    return InterfacesStep()
