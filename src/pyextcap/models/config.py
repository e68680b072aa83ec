# Config option data model
"""
Config options ("arg" sentences) shown in the host's interface options
dialog. Each interface exposes its own set; the values the user picks are
passed back as command line flags (`--<call> <value>`) when capturing.

The set of option kinds is closed: every consumer (sentence rendering,
validation) handles exactly the classes defined in this module.
"""

from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence, Tuple, Union

from ..exceptions import InvalidDescriptorError
from .interface import check_single_line

_FORBIDDEN_CALL_CHARS = set("{}= \t\r\n")


def _as_tuple(obj, name: str) -> None:
    """Freeze a list-valued field into a tuple."""
    value = getattr(obj, name)
    if not isinstance(value, tuple):
        object.__setattr__(obj, name, tuple(value))


@dataclass(frozen=True)
class ConfigOptionValue:
    """One selectable value of a selector or radio option."""
    value: str
    display: str
    default: bool = False

    def __post_init__(self):
        if self.value == "":
            raise InvalidDescriptorError("Option value must not be empty")
        check_single_line("Option value", value=self.value, display=self.display)


@dataclass(frozen=True)
class MultiCheckValue:
    """A node in the tree of checkboxes of a MultiCheckConfig."""
    value: str
    display: str
    default_value: bool = False
    enabled: bool = True
    children: Tuple["MultiCheckValue", ...] = ()

    def __post_init__(self):
        _as_tuple(self, "children")
        check_single_line("Multicheck value", value=self.value, display=self.display)

    def walk(self, parent: Optional["MultiCheckValue"] = None):
        """Yield (node, parent) pairs depth-first in declaration order."""
        yield self, parent
        for child in self.children:
            yield from child.walk(self)


ReloadResult = Union[Sequence[ConfigOptionValue], str]


@dataclass(frozen=True)
class Reload:
    """
    Makes a SelectorConfig reloadable from the options dialog.

    The host shows a button labelled `label`; pressing it re-invokes the
    program with --extcap-reload-option <call>, which prints the result of
    `reload_fn`. The function returns either option values or `value {...}`
    sentence text (for instance the output of a helper command).
    """
    label: str
    reload_fn: Callable[[], ReloadResult] = field(compare=False)

    def __post_init__(self):
        check_single_line("Reload", label=self.label)


@dataclass(frozen=True)
class ConfigOption:
    """Fields shared by every config option kind."""
    number: int
    """Argument number, unique among the options of one interface."""

    call: str
    """Flag name without the leading '--'."""

    display: str
    tooltip: Optional[str] = None
    group: Optional[str] = None
    """Name of the tab the option is placed on in the options dialog."""

    required: bool = False

    kind = "base"

    def __post_init__(self):
        if not 0 <= self.number <= 255:
            raise InvalidDescriptorError(
                f"Config number {self.number} out of range for '{self.call}'"
            )
        if not self.call or self.call.startswith("-"):
            raise InvalidDescriptorError(
                f"Config call must be a bare flag name, got {self.call!r}"
            )
        if _FORBIDDEN_CALL_CHARS & set(self.call):
            raise InvalidDescriptorError(
                f"Config call contains forbidden characters: {self.call!r}"
            )
        if not self.display:
            raise InvalidDescriptorError(f"Config '{self.call}' has no display label")
        check_single_line(
            f"Config '{self.call}'",
            display=self.display,
            tooltip=self.tooltip,
            group=self.group,
        )


@dataclass(frozen=True)
class BooleanConfig(ConfigOption):
    default_value: bool = False
    always_include_option: bool = False
    """Render as `boolean` (always passed with a value) instead of
    `boolflag` (passed only when checked)."""

    kind = "boolean"


@dataclass(frozen=True)
class StringConfig(ConfigOption):
    placeholder: Optional[str] = None
    validation: Optional[str] = None
    """Regular expression the host validates the input against."""
    default_value: Optional[str] = None
    save: bool = True

    kind = "string"

    def __post_init__(self):
        super().__post_init__()
        check_single_line(
            f"Config '{self.call}'",
            placeholder=self.placeholder,
            validation=self.validation,
            default_value=self.default_value,
        )


@dataclass(frozen=True)
class PasswordConfig(ConfigOption):
    placeholder: Optional[str] = None
    validation: Optional[str] = None

    kind = "password"

    def __post_init__(self):
        super().__post_init__()
        check_single_line(
            f"Config '{self.call}'",
            placeholder=self.placeholder,
            validation=self.validation,
        )


@dataclass(frozen=True)
class _NumericConfig(ConfigOption):
    default_value: Union[int, float] = 0
    range: Optional[Tuple[Union[int, float], Union[int, float]]] = None

    min_value = None
    max_value = None

    def __post_init__(self):
        super().__post_init__()
        if self.range is not None:
            if len(self.range) != 2:
                raise InvalidDescriptorError(
                    f"Range of '{self.call}' must be a (min, max) pair"
                )
            object.__setattr__(self, "range", tuple(self.range))
            low, high = self.range
            if low > high:
                raise InvalidDescriptorError(
                    f"Range of '{self.call}' is empty: {low} > {high}"
                )
            if not low <= self.default_value <= high:
                raise InvalidDescriptorError(
                    f"Default {self.default_value} of '{self.call}' outside range {low},{high}"
                )
        bounds = [self.default_value] + list(self.range or ())
        for bound in bounds:
            if self.min_value is not None and bound < self.min_value:
                raise InvalidDescriptorError(
                    f"Value {bound} of '{self.call}' below {self.kind} minimum"
                )
            if self.max_value is not None and bound > self.max_value:
                raise InvalidDescriptorError(
                    f"Value {bound} of '{self.call}' above {self.kind} maximum"
                )


@dataclass(frozen=True)
class IntegerConfig(_NumericConfig):
    kind = "integer"
    min_value = -(2 ** 31)
    max_value = 2 ** 31 - 1


@dataclass(frozen=True)
class UnsignedConfig(_NumericConfig):
    kind = "unsigned"
    min_value = 0
    max_value = 2 ** 32 - 1


@dataclass(frozen=True)
class LongConfig(_NumericConfig):
    kind = "long"
    min_value = -(2 ** 63)
    max_value = 2 ** 63 - 1


@dataclass(frozen=True)
class DoubleConfig(_NumericConfig):
    kind = "double"


@dataclass(frozen=True)
class _ChoiceConfig(ConfigOption):
    options: Tuple[ConfigOptionValue, ...] = ()

    def __post_init__(self):
        super().__post_init__()
        _as_tuple(self, "options")
        values = [opt.value for opt in self.options]
        if len(values) != len(set(values)):
            raise InvalidDescriptorError(f"Duplicate option values in '{self.call}'")
        if sum(1 for opt in self.options if opt.default) > 1:
            raise InvalidDescriptorError(f"More than one default option in '{self.call}'")


@dataclass(frozen=True)
class SelectorConfig(_ChoiceConfig):
    reload: Optional[Reload] = None

    kind = "selector"


@dataclass(frozen=True)
class RadioConfig(_ChoiceConfig):
    kind = "radio"


@dataclass(frozen=True)
class MultiCheckConfig(ConfigOption):
    options: Tuple[MultiCheckValue, ...] = ()

    kind = "multicheck"

    def __post_init__(self):
        super().__post_init__()
        _as_tuple(self, "options")
        seen = set()
        for root in self.options:
            for node, _parent in root.walk():
                if node.value in seen:
                    raise InvalidDescriptorError(
                        f"Duplicate multicheck value '{node.value}' in '{self.call}'"
                    )
                seen.add(node.value)


@dataclass(frozen=True)
class TimestampConfig(ConfigOption):
    kind = "timestamp"


@dataclass(frozen=True)
class FileSelectConfig(ConfigOption):
    must_exist: bool = True
    file_extension_filter: Optional[str] = None
    """Qt-style filter, e.g. 'Text files (*.txt);;XML files (*.xml)'."""

    kind = "fileselect"

    def __post_init__(self):
        super().__post_init__()
        check_single_line(
            f"Config '{self.call}'",
            file_extension_filter=self.file_extension_filter,
        )
