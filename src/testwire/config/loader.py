#
# config/loader.py
#
"""
Loads the TOML configuration file into attrs models.
"""

import os
import tomllib
from pathlib import Path
from typing import Any

import structlog

from testwire.config.models import GlobalConfig, TargetConfig, TestwireConfig
from testwire.exceptions import ConfigurationError
from testwire.telemetry import StructLogger

log: StructLogger = structlog.get_logger("config.loader")

ENV_LOG_LEVEL = "TESTWIRE_LOG_LEVEL"
_TARGET_KEYS = {
    "executable",
    "working_directory",
    "environment",
    "build_directory",
    "enabled",
    "protocol",
    "lenient_messages",
    "debugger",
}


def _resolve(base: Path, value: str | None) -> Path | None:
    if value is None:
        return None
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = base / path
    return path.resolve()


def _build_target(name: str, raw: dict[str, Any], base: Path, config_path: Path) -> TargetConfig:
    target_log = log.bind(target=name)
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Target '{name}' must be a table", str(config_path))

    unknown = set(raw) - _TARGET_KEYS
    if unknown:
        raise ConfigurationError(f"Target '{name}' has unknown keys: {sorted(unknown)}", str(config_path))

    executable = raw.get("executable")
    if not isinstance(executable, str) or not executable:
        raise ConfigurationError(f"Target '{name}' requires an 'executable' string", str(config_path))

    debugger = raw.get("debugger")
    if debugger is not None and (
        not isinstance(debugger, list) or not all(isinstance(part, str) for part in debugger)
    ):
        raise ConfigurationError(f"Target '{name}': 'debugger' must be a list of strings", str(config_path))

    try:
        target = TargetConfig(
            executable=_resolve(base, executable),
            working_directory=_resolve(base, raw.get("working_directory")),
            environment=dict(raw.get("environment", {})),
            build_directory=_resolve(base, raw.get("build_directory")),
            enabled=bool(raw.get("enabled", True)),
            protocol=raw.get("protocol", "explicit"),
            lenient_messages=bool(raw.get("lenient_messages", False)),
            debugger=debugger,
        )
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid settings for target '{name}': {e}", str(config_path)) from e

    if not target.executable.is_file():
        target_log.warning(
            "Executable not found, disabling target",
            executable=str(target.executable),
            emoji_key="load",
        )
        target._path_valid = False
    else:
        target_log.debug("Target validated", executable=str(target.executable))
    return target


def load_config(config_path: Path) -> TestwireConfig:
    """
    Reads and validates ``config_path``.

    Relative paths inside the file are resolved against the file's directory.
    ``TESTWIRE_LOG_LEVEL`` overrides ``[global].log_level``.

    Raises:
        ConfigurationError: if the file cannot be read or is invalid.
    """
    config_path = Path(config_path)
    log.debug("Loading configuration", path=str(config_path), emoji_key="load")

    try:
        with config_path.open("rb") as f:
            data = tomllib.load(f)
    except FileNotFoundError as e:
        raise ConfigurationError("Configuration file not found", str(config_path)) from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid TOML: {e}", str(config_path)) from e
    except OSError as e:
        raise ConfigurationError(f"Cannot read configuration file: {e}", str(config_path)) from e

    raw_global = dict(data.get("global", {}))
    if env_level := os.environ.get(ENV_LOG_LEVEL):
        raw_global["log_level"] = env_level

    try:
        global_config = GlobalConfig(**raw_global)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid [global] settings: {e}", str(config_path)) from e

    base = config_path.resolve().parent
    raw_targets = data.get("targets", {})
    if not isinstance(raw_targets, dict):
        raise ConfigurationError("[targets] must be a table", str(config_path))

    targets = {
        name: _build_target(name, raw, base, config_path)
        for name, raw in raw_targets.items()
    }

    log.info("Configuration loaded", path=str(config_path), targets=len(targets), emoji_key="load")
    return TestwireConfig(targets=targets, global_config=global_config, config_file_path=config_path)

# 🔼⚙️
