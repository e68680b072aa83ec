"""
Extcap sentence codec.

The host reads one record per line in the form

    <tag> {key=value}{key=value}...

with tag in {extcap, interface, dlt, arg, value, control}. Braces and
backslashes inside values are backslash-escaped. Rendering walks the closed
set of descriptor classes with one registered renderer per class; parsing is
used for reload responses and accepts the same grammar.

Reference: https://www.wireshark.org/docs/wsdg_html_chunked/ChCaptureExtcap.html
"""
from __future__ import annotations

from dataclasses import dataclass
from functools import singledispatch
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from .exceptions import InvalidDescriptorError, ParseError
from .models.config import (
    BooleanConfig,
    ConfigOptionValue,
    FileSelectConfig,
    MultiCheckConfig,
    PasswordConfig,
    RadioConfig,
    SelectorConfig,
    StringConfig,
    TimestampConfig,
    _ChoiceConfig,
    _NumericConfig,
    ConfigOption,
)
from .models.controls import (
    BooleanControl,
    ButtonControl,
    SelectorControl,
    StringControl,
    ToolbarControl,
)
from .models.interface import Dlt, Interface, Metadata

TAGS = ("extcap", "interface", "dlt", "arg", "value", "control")

_ESCAPED = "\\{}"

Field = Tuple[str, str]


# =========================================================================
# Formatting
# =========================================================================

def escape_value(value: str) -> str:
    """Backslash-escape the characters used as delimiters."""
    return "".join("\\" + ch if ch in _ESCAPED else ch for ch in value)


def format_value(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if hasattr(value, "value") and not isinstance(value, (str, int)):
        # Enum members
        return str(value.value)
    return str(value)


def format_sentence(tag: str, fields: Iterable[Tuple[str, object]]) -> str:
    """Format one sentence line (without the trailing newline)."""
    if tag not in TAGS:
        raise ValueError(f"Unknown sentence tag: {tag}")
    parts = []
    for key, value in fields:
        text = format_value(value)
        if "\n" in text or "\r" in text:
            # the host reads one sentence per line
            raise InvalidDescriptorError(
                f"Field '{key}' of {tag} sentence contains a line break: {text!r}"
            )
        parts.append("{%s=%s}" % (key, escape_value(text)))
    body = "".join(parts)
    return f"{tag} {body}"


@singledispatch
def render(obj) -> List[str]:
    """Render a descriptor into its sentence lines."""
    raise TypeError(f"No sentence format for {type(obj).__name__}")


def render_text(objects: Iterable) -> str:
    """Render several descriptors into newline-terminated text."""
    lines: List[str] = []
    for obj in objects:
        lines.extend(render(obj))
    return "".join(line + "\n" for line in lines)


@render.register
def _render_metadata(metadata: Metadata) -> List[str]:
    fields: List[Tuple[str, object]] = [
        ("version", metadata.version),
        ("help", metadata.help_url),
    ]
    if metadata.display_description:
        fields.append(("display", metadata.display_description))
    return [format_sentence("extcap", fields)]


@render.register
def _render_interface(interface: Interface) -> List[str]:
    return [format_sentence("interface", [
        ("value", interface.value),
        ("display", interface.display),
    ])]


@render.register
def _render_dlt(dlt: Dlt) -> List[str]:
    return [format_sentence("dlt", [
        ("number", int(dlt.data_link_type)),
        ("name", dlt.name),
        ("display", dlt.display),
    ])]


# -------------------------------------------------------------------------
# Config options
# -------------------------------------------------------------------------

def _arg_fields(option: ConfigOption, kind: str,
                default: Optional[object] = None) -> List[Tuple[str, object]]:
    fields: List[Tuple[str, object]] = [
        ("number", option.number),
        ("call", "--" + option.call),
        ("display", option.display),
        ("type", kind),
    ]
    if default is not None:
        fields.append(("default", default))
    if option.required:
        fields.append(("required", True))
    if option.tooltip:
        fields.append(("tooltip", option.tooltip))
    return fields


def _with_group(option: ConfigOption, fields: List[Tuple[str, object]]) -> List[str]:
    if option.group:
        fields.append(("group", option.group))
    return [format_sentence("arg", fields)]


def _option_value_line(arg_number: int, option: ConfigOptionValue) -> str:
    return format_sentence("value", [
        ("arg", arg_number),
        ("value", option.value),
        ("display", option.display),
        ("default", option.default),
    ])


def render_option_values(arg_number: int, options: Sequence[ConfigOptionValue]) -> List[str]:
    """Value lines of a selector or radio option (also the reload output)."""
    return [_option_value_line(arg_number, opt) for opt in options]


@render.register
def _render_boolean_config(option: BooleanConfig) -> List[str]:
    kind = "boolean" if option.always_include_option else "boolflag"
    fields = _arg_fields(option, kind, True if option.default_value else None)
    return _with_group(option, fields)


@render.register
def _render_string_config(option: StringConfig) -> List[str]:
    fields = _arg_fields(option, option.kind, option.default_value)
    if option.placeholder:
        fields.append(("placeholder", option.placeholder))
    if option.validation:
        fields.append(("validation", option.validation))
    if not option.save:
        fields.append(("save", False))
    return _with_group(option, fields)


@render.register
def _render_password_config(option: PasswordConfig) -> List[str]:
    fields = _arg_fields(option, option.kind)
    if option.placeholder:
        fields.append(("placeholder", option.placeholder))
    if option.validation:
        fields.append(("validation", option.validation))
    return _with_group(option, fields)


@render.register
def _render_numeric_config(option: _NumericConfig) -> List[str]:
    fields = _arg_fields(option, option.kind, option.default_value)
    if option.range is not None:
        low, high = option.range
        fields.append(("range", f"{format_value(low)},{format_value(high)}"))
    return _with_group(option, fields)


@render.register
def _render_choice_config(option: _ChoiceConfig) -> List[str]:
    fields = _arg_fields(option, option.kind)
    if isinstance(option, SelectorConfig) and option.reload is not None:
        fields.append(("reload", True))
        fields.append(("placeholder", option.reload.label))
    lines = _with_group(option, fields)
    lines.extend(render_option_values(option.number, option.options))
    return lines


@render.register
def _render_multicheck_config(option: MultiCheckConfig) -> List[str]:
    lines = _with_group(option, _arg_fields(option, option.kind))
    for root in option.options:
        for node, parent in root.walk():
            fields: List[Tuple[str, object]] = [
                ("arg", option.number),
                ("value", node.value),
                ("display", node.display),
                ("default", node.default_value),
                ("enabled", node.enabled),
            ]
            if parent is not None:
                fields.append(("parent", parent.value))
            lines.append(format_sentence("value", fields))
    return lines


@render.register
def _render_timestamp_config(option: TimestampConfig) -> List[str]:
    return _with_group(option, _arg_fields(option, option.kind))


@render.register
def _render_fileselect_config(option: FileSelectConfig) -> List[str]:
    fields = _arg_fields(option, option.kind)
    fields.append(("mustexist", option.must_exist))
    if option.file_extension_filter:
        fields.append(("fileext", option.file_extension_filter))
    return _with_group(option, fields)


# -------------------------------------------------------------------------
# Toolbar controls
# -------------------------------------------------------------------------

def _control_fields(control: ToolbarControl, role=None) -> List[Tuple[str, object]]:
    fields: List[Tuple[str, object]] = [
        ("number", control.control_number),
        ("type", control.kind),
    ]
    if role is not None:
        fields.append(("role", role))
    fields.append(("display", control.display))
    if control.tooltip:
        fields.append(("tooltip", control.tooltip))
    return fields


@render.register
def _render_boolean_control(control: BooleanControl) -> List[str]:
    fields = _control_fields(control)
    fields.append(("default", control.default_value))
    return [format_sentence("control", fields)]


@render.register
def _render_button_control(control: ButtonControl) -> List[str]:
    return [format_sentence("control", _control_fields(control, control.role.value))]


@render.register
def _render_string_control(control: StringControl) -> List[str]:
    fields = _control_fields(control)
    if control.placeholder:
        fields.append(("placeholder", control.placeholder))
    if control.validation:
        fields.append(("validation", control.validation))
    if control.default_value is not None:
        fields.append(("default", control.default_value))
    return [format_sentence("control", fields)]


@render.register
def _render_selector_control(control: SelectorControl) -> List[str]:
    lines = [format_sentence("control", _control_fields(control))]
    for option in control.options:
        fields: List[Tuple[str, object]] = [
            ("control", control.control_number),
            ("value", option.value),
            ("display", option.display),
        ]
        if option.default:
            fields.append(("default", True))
        lines.append(format_sentence("value", fields))
    return lines


# =========================================================================
# Parsing
# =========================================================================

@dataclass(frozen=True)
class Sentence:
    """A parsed sentence: its tag and ordered key/value fields."""
    tag: str
    fields: Tuple[Field, ...]

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        for k, v in self.fields:
            if k == key:
                return v
        return default

    def require(self, key: str) -> str:
        value = self.get(key)
        if value is None:
            raise ParseError(f"'{self.tag}' sentence is missing '{key}'")
        return value

    def as_dict(self) -> Dict[str, str]:
        return dict(self.fields)


def parse_sentence(line: str) -> Sentence:
    """Parse one sentence line. Raises ParseError on any malformed input."""
    line = line.rstrip("\r\n")
    tag, sep, rest = line.partition(" ")
    if not sep:
        raise ParseError(f"Sentence has no fields: {line!r}")
    if tag not in TAGS:
        raise ParseError(f"Unknown sentence tag {tag!r}")

    fields: List[Field] = []
    seen = set()
    pos = 0
    while pos < len(rest):
        if rest[pos] != "{":
            raise ParseError(f"Expected '{{' at column {pos} in {line!r}")
        key, value, pos = _parse_field(rest, pos + 1, line)
        if key in seen:
            raise ParseError(f"Duplicate key {key!r} in {line!r}")
        seen.add(key)
        fields.append((key, value))
    if not fields:
        raise ParseError(f"Sentence has no fields: {line!r}")
    return Sentence(tag, tuple(fields))


def _parse_field(text: str, pos: int, line: str) -> Tuple[str, str, int]:
    eq = text.find("=", pos)
    close = text.find("}", pos)
    if eq == -1 or (close != -1 and close < eq):
        raise ParseError(f"Field without '=' in {line!r}")
    key = text[pos:eq]
    if not key or any(ch in key for ch in "{}\\ "):
        raise ParseError(f"Invalid key {key!r} in {line!r}")

    chars: List[str] = []
    pos = eq + 1
    while pos < len(text):
        ch = text[pos]
        if ch == "\\":
            if pos + 1 >= len(text) or text[pos + 1] not in _ESCAPED:
                raise ParseError(f"Invalid escape in {line!r}")
            chars.append(text[pos + 1])
            pos += 2
        elif ch == "{":
            raise ParseError(f"Unescaped '{{' in value of {key!r} in {line!r}")
        elif ch == "}":
            return key, "".join(chars), pos + 1
        else:
            chars.append(ch)
            pos += 1
    raise ParseError(f"Unterminated field {key!r} in {line!r}")


def parse_bool(value: str) -> bool:
    lowered = value.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    raise ParseError(f"Expected true or false, got {value!r}")


def parse_lines(text: str) -> List[Sentence]:
    """Parse every non-blank line of `text`."""
    return [parse_sentence(line) for line in text.splitlines() if line.strip()]


def parse_values(text: Union[str, Iterable[str]],
                 arg_number: Optional[int] = None) -> List[ConfigOptionValue]:
    """
    Parse `value {arg=N}{value=...}{display=...}{default=...}` lines, the
    format of a reload response. Every line must be a value sentence and,
    when `arg_number` is given, belong to that argument.
    """
    lines = text.splitlines() if isinstance(text, str) else list(text)
    values: List[ConfigOptionValue] = []
    for line in lines:
        if not line.strip():
            continue
        sentence = parse_sentence(line)
        if sentence.tag != "value":
            raise ParseError(f"Expected a value sentence, got {sentence.tag!r}")
        arg = sentence.require("arg")
        try:
            arg_value = int(arg)
        except ValueError:
            raise ParseError(f"Argument number is not an integer: {arg!r}")
        if arg_number is not None and arg_value != arg_number:
            raise ParseError(f"Value belongs to arg {arg_value}, expected {arg_number}")
        default = sentence.get("default")
        values.append(ConfigOptionValue(
            value=sentence.require("value"),
            display=sentence.require("display"),
            default=parse_bool(default) if default is not None else False,
        ))
    return values
