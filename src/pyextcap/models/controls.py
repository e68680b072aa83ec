# Toolbar control data model
"""
Toolbar controls shown in the host's interface toolbar (View > Interface
Toolbars) while capturing.

Controls are declared once in the --extcap-interfaces step. At capture time
the extcap changes them by sending control packets; the helper methods on
each control build those packets, which are then sent through a control
channel (see pyextcap.controls.channel).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from ..exceptions import InvalidDescriptorError
from .interface import check_single_line
from .packet import BROADCAST_CONTROL, ControlCommand, ControlPacket

MAX_STRING_CONTROL_LENGTH = 32767


class ButtonRole(Enum):
    """Role tag of a button control."""
    CONTROL = None
    """Plain button sending a SET packet when pressed."""
    LOGGER = "logger"
    """Opens a log window fed by ADD packets."""
    HELP = "help"
    """Opens the help URL from the metadata."""
    RESTORE = "restore"
    """Restores every control to its default value."""


@dataclass(frozen=True)
class ToolbarControl:
    """Fields shared by every control kind."""
    control_number: int
    """Unique control index; also the position in the toolbar."""

    display: str
    tooltip: Optional[str] = None

    kind = "base"

    def __post_init__(self):
        if not 0 <= self.control_number < BROADCAST_CONTROL:
            raise InvalidDescriptorError(
                f"Control number {self.control_number} out of range (0-254)"
            )
        if not self.display:
            raise InvalidDescriptorError(
                f"Control {self.control_number} has no display label"
            )
        check_single_line(
            f"Control {self.control_number}",
            display=self.display,
            tooltip=self.tooltip,
        )

    def _packet(self, command: ControlCommand, payload: bytes = b"") -> ControlPacket:
        return ControlPacket(self.control_number, command, payload)


class _Enableable:
    def set_enabled(self, enabled: bool) -> ControlPacket:
        command = ControlCommand.ENABLE if enabled else ControlCommand.DISABLE
        return self._packet(command)


class _Labelled:
    def set_label(self, label: str) -> ControlPacket:
        return self._packet(ControlCommand.SET, label.encode("utf-8"))


@dataclass(frozen=True)
class BooleanControl(_Enableable, _Labelled, ToolbarControl):
    """Checkbox. The host sends SET with a 1-byte payload when toggled."""
    default_value: bool = False

    kind = "boolean"

    def set_checked(self, checked: bool) -> ControlPacket:
        return self._packet(ControlCommand.SET, bytes([1 if checked else 0]))


@dataclass(frozen=True)
class ButtonControl(_Enableable, _Labelled, ToolbarControl):
    """
    Button. Plain buttons are enabled only while capturing; `enabled` is
    the state the extcap puts the button in once the capture starts, by
    sending `set_enabled(enabled)` after the host reports INITIALIZED.
    """
    role: ButtonRole = ButtonRole.CONTROL
    enabled: bool = True

    kind = "button"

    def __post_init__(self):
        super().__post_init__()
        if not isinstance(self.role, ButtonRole):
            object.__setattr__(self, "role", ButtonRole(self.role))

    def add_log(self, line: str) -> ControlPacket:
        """Append a line to the log window of a logger button."""
        self._require_logger()
        return self._packet(ControlCommand.ADD, f"{line}\n".encode("utf-8"))

    def clear_and_add_log(self, line: str) -> ControlPacket:
        """Replace the contents of the log window with a single line."""
        self._require_logger()
        return self._packet(ControlCommand.SET, f"{line}\n".encode("utf-8"))

    def _require_logger(self) -> None:
        if self.role is not ButtonRole.LOGGER:
            raise InvalidDescriptorError(
                f"Control {self.control_number} is not a logger button"
            )


def LoggerControl(control_number: int, display: str, tooltip: Optional[str] = None) -> ButtonControl:
    return ButtonControl(control_number, display, tooltip, role=ButtonRole.LOGGER)


def HelpButtonControl(control_number: int, display: str, tooltip: Optional[str] = None) -> ButtonControl:
    return ButtonControl(control_number, display, tooltip, role=ButtonRole.HELP)


def RestoreButtonControl(control_number: int, display: str, tooltip: Optional[str] = None) -> ButtonControl:
    return ButtonControl(control_number, display, tooltip, role=ButtonRole.RESTORE)


@dataclass(frozen=True)
class StringControl(_Enableable, ToolbarControl):
    """Editable text field."""
    placeholder: Optional[str] = None
    validation: Optional[str] = None
    default_value: Optional[str] = None

    kind = "string"

    def __post_init__(self):
        super().__post_init__()
        check_single_line(
            f"Control {self.control_number}",
            placeholder=self.placeholder,
            validation=self.validation,
            default_value=self.default_value,
        )

    def set_value(self, value: str) -> ControlPacket:
        payload = value.encode("utf-8")
        if len(payload) > MAX_STRING_CONTROL_LENGTH:
            raise InvalidDescriptorError(
                f"String control value longer than {MAX_STRING_CONTROL_LENGTH} bytes"
            )
        return self._packet(ControlCommand.SET, payload)


@dataclass(frozen=True)
class SelectorControlOption:
    value: str
    display: str
    default: bool = False

    def __post_init__(self):
        check_single_line("Selector option", value=self.value, display=self.display)


@dataclass(frozen=True)
class SelectorControl(_Enableable, ToolbarControl):
    """
    Drop-down selector. `options` is the initial list; at runtime values are
    added and removed with ADD/REMOVE packets.
    """
    options: Tuple[SelectorControlOption, ...] = ()

    kind = "selector"

    def __post_init__(self):
        super().__post_init__()
        if not isinstance(self.options, tuple):
            object.__setattr__(self, "options", tuple(self.options))
        if sum(1 for opt in self.options if opt.default) > 1:
            raise InvalidDescriptorError(
                f"More than one default option in control {self.control_number}"
            )

    def set_value(self, value: str) -> ControlPacket:
        return self._packet(ControlCommand.SET, value.encode("utf-8"))

    def add_value(self, value: str, display: Optional[str] = None) -> ControlPacket:
        payload = value if display is None else f"{value}\0{display}"
        return self._packet(ControlCommand.ADD, payload.encode("utf-8"))

    def remove_value(self, value: str) -> ControlPacket:
        if not value:
            # an empty REMOVE payload clears the whole selector
            raise ValueError("remove_value needs a value; use clear() to empty the selector")
        return self._packet(ControlCommand.REMOVE, value.encode("utf-8"))

    def clear(self) -> ControlPacket:
        return self._packet(ControlCommand.REMOVE)
