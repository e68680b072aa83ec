"""Immutable registry of everything an extcap program declares."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, Mapping, Optional, Sequence, Tuple

from ..exceptions import InvalidDescriptorError, UnknownInterfaceError
from .config import ConfigOption
from .controls import ToolbarControl
from .interface import DEFAULT_DLT, Dlt, Interface, Metadata


@dataclass(frozen=True)
class ExtcapContext:
    """
    Interfaces, toolbar controls and per-interface config options of one
    extcap program.

    Built once at startup and passed by reference to the step dispatcher and
    the capture session. Config options are looked up by interface value;
    the `default` key (or an interface without an entry) falls back to
    `default_configs`.
    """
    metadata: Metadata
    interfaces: Tuple[Interface, ...]
    controls: Tuple[ToolbarControl, ...] = ()
    configs: Mapping[str, Tuple[ConfigOption, ...]] = field(default_factory=dict)
    default_configs: Tuple[ConfigOption, ...] = ()
    default_dlt: Dlt = DEFAULT_DLT
    capture_filter_validator: Optional[Callable[[str], Optional[str]]] = field(
        default=None, compare=False
    )
    """Returns an error message for an invalid capture filter, None if valid."""

    def __post_init__(self):
        object.__setattr__(self, "interfaces", tuple(self.interfaces))
        object.__setattr__(self, "controls", tuple(self.controls))
        object.__setattr__(self, "default_configs", tuple(self.default_configs))
        object.__setattr__(
            self,
            "configs",
            {key: tuple(value) for key, value in dict(self.configs).items()},
        )
        self._validate()

    def _validate(self) -> None:
        _require_unique(
            (iface.value for iface in self.interfaces), "interface value"
        )
        _require_unique(
            (ctrl.control_number for ctrl in self.controls), "control number"
        )
        known = {iface.value for iface in self.interfaces}
        for name, options in self.configs.items():
            if name not in known:
                raise InvalidDescriptorError(
                    f"Config options registered for unknown interface '{name}'"
                )
            _validate_options(options, name)
        _validate_options(self.default_configs, "default")

    def get_interface(self, value: Optional[str]) -> Interface:
        for iface in self.interfaces:
            if iface.value == value:
                return iface
        raise UnknownInterfaceError(value or "")

    def dlt_for(self, interface: Interface) -> Dlt:
        return interface.dlt or self.default_dlt

    def configs_for(self, interface: Interface) -> Tuple[ConfigOption, ...]:
        return self.configs.get(interface.value, self.default_configs)

    def find_config(self, interface: Interface, call: str) -> Optional[ConfigOption]:
        call = call[2:] if call.startswith("--") else call
        for option in self.configs_for(interface):
            if option.call == call:
                return option
        return None


def build_context(metadata: Metadata,
                  interfaces: Sequence[Interface],
                  controls: Iterable[ToolbarControl] = (),
                  configs: Optional[Dict[str, Sequence[ConfigOption]]] = None,
                  default_configs: Sequence[ConfigOption] = (),
                  default_dlt: Dlt = DEFAULT_DLT,
                  capture_filter_validator: Optional[Callable[[str], Optional[str]]] = None
                  ) -> ExtcapContext:
    """Convenience constructor accepting lists."""
    return ExtcapContext(
        metadata=metadata,
        interfaces=tuple(interfaces),
        controls=tuple(controls),
        configs={k: tuple(v) for k, v in (configs or {}).items()},
        default_configs=tuple(default_configs),
        default_dlt=default_dlt,
        capture_filter_validator=capture_filter_validator,
    )


def _require_unique(values: Iterable, what: str) -> None:
    seen = set()
    for value in values:
        if value in seen:
            raise InvalidDescriptorError(f"Duplicate {what}: {value}")
        seen.add(value)


def _validate_options(options: Sequence[ConfigOption], owner: str) -> None:
    try:
        _require_unique((opt.number for opt in options), "config number")
        _require_unique((opt.call for opt in options), "config call")
    except InvalidDescriptorError as e:
        raise InvalidDescriptorError(f"{e} (interface '{owner}')") from e
