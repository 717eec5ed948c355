#
# config/models.py
#
"""
Attrs-based data models for the testwire configuration file.
"""

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from attrs import define, field, mutable

from testwire.protocol.events import ProtocolVersion

DISCOVER_ARGUMENT = "--discover_tests"
VERBOSE_ARGUMENT = "--verbose"
ADAPTER_INFO_ARGUMENT = "--adapter_info"


# --- Validators ---
def _validate_log_level(inst: Any, attr: Any, value: str) -> None:
    """Validator for standard logging level names."""
    valid = logging._nameToLevel.keys()
    if value.upper() not in valid:
        raise ValueError(f"Invalid log_level '{value}'. Must be one of {list(valid)}.")


def _validate_optional_positive(inst: Any, attr: Any, value: float | None) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, int | float) or value <= 0:
        raise ValueError(f"Field '{attr.name}' must be a positive number, got {value!r}")


def _validate_environment(inst: Any, attr: Any, value: Mapping[str, str]) -> None:
    for key, item in value.items():
        if not isinstance(key, str) or not isinstance(item, str):
            raise ValueError(f"Environment entries must be strings, got {key!r} = {item!r}")


# --- Target and Global Config Models ---
@mutable(slots=True)
class TargetConfig:
    """
    One test executable and the parameters it is launched with.

    Mutable so the loader can disable a target whose executable is missing.
    """
    executable: Path = field()
    working_directory: Path | None = field(default=None)
    environment: Mapping[str, str] = field(factory=dict, validator=_validate_environment)
    build_directory: Path | None = field(default=None)
    enabled: bool = field(default=True)
    protocol: ProtocolVersion = field(default=ProtocolVersion.EXPLICIT, converter=ProtocolVersion)
    lenient_messages: bool = field(default=False)
    debugger: list[str] | None = field(default=None)
    _path_valid: bool = field(default=True, repr=False, init=False)

    @property
    def cwd(self) -> Path:
        return self.working_directory or self.executable.parent

    def discovery_arguments(self) -> list[str]:
        args = [DISCOVER_ARGUMENT]
        if self.protocol is ProtocolVersion.EXPLICIT:
            args.append(ADAPTER_INFO_ARGUMENT)
        return args

    def run_arguments(self, identities: list[str] | None = None) -> list[str]:
        args = [VERBOSE_ARGUMENT]
        if self.protocol is ProtocolVersion.EXPLICIT:
            args.append(ADAPTER_INFO_ARGUMENT)
        if identities:
            args.extend(identities)
        return args


@define(frozen=True, slots=True)
class GlobalConfig:
    """Global default settings for testwire."""
    log_level: str = field(default="WARNING", validator=_validate_log_level)
    session_timeout: float | None = field(default=None, validator=_validate_optional_positive)

    @property
    def numeric_log_level(self) -> int:
        return logging.getLevelName(self.log_level.upper())


@define(frozen=True, slots=True)
class TestwireConfig:
    """Root configuration object for testwire."""
    __test__ = False

    targets: dict[str, TargetConfig] = field(factory=dict)
    global_config: GlobalConfig = field(factory=GlobalConfig, metadata={"toml_name": "global"})
    config_file_path: Path | None = field(default=None)

    def enabled_targets(self) -> dict[str, TargetConfig]:
        return {
            name: target
            for name, target in self.targets.items()
            if target.enabled and target._path_valid
        }


# 🔼⚙️
