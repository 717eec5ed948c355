# src/testwire/cli/utils.py

"""
Option decorators and helpers shared by every testwire command.
"""

import asyncio
import logging
import signal
from collections.abc import Callable
from pathlib import Path

import click
import structlog
from attrs import define

from testwire.config import TargetConfig, TestwireConfig, load_config
from testwire.exceptions import ConfigurationError
from testwire.telemetry.logger import setup_logging as core_setup_logging

log = structlog.get_logger("cli.utils")

LOG_LEVEL_CHOICES = click.Choice(list(logging._nameToLevel.keys()), case_sensitive=False)

_LOGGING_OPTIONS = (
    click.option(
        "-l",
        "--log-level",
        type=LOG_LEVEL_CHOICES,
        default=None,
        envvar="TESTWIRE_LOG_LEVEL",
        help="Minimum log level (overrides [global].log_level).",
    ),
    click.option(
        "--log-file",
        type=click.Path(dir_okay=False, writable=True, resolve_path=True),
        default=None,
        envvar="TESTWIRE_LOG_FILE",
        help="Also write JSON log records to this file.",
    ),
    click.option(
        "--json-logs",
        is_flag=True,
        default=None,
        envvar="TESTWIRE_JSON_LOGS",
        help="Render console logs as JSON.",
    ),
)


def logging_options(f):
    """Adds --log-level, --log-file and --json-logs to a command."""
    for option in reversed(_LOGGING_OPTIONS):
        f = option(f)
    return f


def config_path_option(f):
    """Decorator adding the shared ``--config-path`` option."""
    return click.option(
        "-c",
        "--config-path",
        type=click.Path(exists=True, file_okay=True, dir_okay=False, readable=True, path_type=Path),
        default=Path("testwire.conf"),
        show_default=True,
        envvar="TESTWIRE_CONF",
        help="Path to the testwire configuration file (env var TESTWIRE_CONF).",
        show_envvar=True,
    )(f)


@define(frozen=True, slots=True)
class LoggingSettings:
    """Logging options after command, group and default values are merged."""

    level: int
    log_file: str | None
    json_logs: bool

    @classmethod
    def resolve(
        cls,
        obj: dict,
        level_name: str | None,
        log_file: str | None,
        json_logs: bool | None,
        default_level: str,
    ) -> "LoggingSettings":
        name = (level_name or obj.get("LOG_LEVEL") or default_level).upper()
        level = logging.getLevelName(name)
        if not isinstance(level, int):
            level = logging.WARNING
        return cls(
            level=level,
            log_file=log_file or obj.get("LOG_FILE"),
            json_logs=json_logs if json_logs is not None else bool(obj.get("JSON_LOGS")),
        )


def setup_logging_from_context(
    ctx: click.Context,
    local_log_level: str | None = None,
    local_log_file: str | None = None,
    local_json_logs: bool | None = None,
    default_log_level: str = "WARNING",
) -> LoggingSettings:
    """
    Configures logging from the group options in ``ctx.obj``, letting the
    command's own options win.
    """
    ctx.ensure_object(dict)
    settings = LoggingSettings.resolve(
        ctx.obj,
        local_log_level,
        local_log_file,
        local_json_logs,
        default_log_level,
    )
    core_setup_logging(level=settings.level, json_logs=settings.json_logs, log_file=settings.log_file)
    log.debug(
        "CLI logging configured",
        level=logging.getLevelName(settings.level),
        file=settings.log_file or "console",
        json=settings.json_logs,
    )
    return settings


def load_config_or_exit(ctx: click.Context, config_path: Path, **log_options) -> TestwireConfig:
    """
    Loads the configuration, turning errors into a clean CLI exit.

    When no log level came from the command line or environment, the
    file's [global] log_level takes effect.
    """
    try:
        config = load_config(config_path)
    except ConfigurationError as e:
        log.error("Failed to load or validate configuration", error=str(e))
        click.echo(f"Error: Configuration problem in '{config_path}':\n{e}", err=True)
        ctx.exit(1)

    if not (log_options.get("log_level") or ctx.obj.get("LOG_LEVEL")):
        setup_logging_from_context(
            ctx,
            local_log_level=config.global_config.log_level,
            local_log_file=log_options.get("log_file"),
            local_json_logs=log_options.get("json_logs"),
        )
    return config


def select_targets(ctx: click.Context, config: TestwireConfig, names: tuple[str, ...]) -> dict[str, TargetConfig]:
    """Returns the enabled targets, narrowed to ``names`` when any are given."""
    enabled = config.enabled_targets()
    if names:
        unknown = [name for name in names if name not in config.targets]
        if unknown:
            click.echo(f"Error: Unknown target(s): {', '.join(unknown)}", err=True)
            ctx.exit(1)
        enabled = {name: target for name, target in enabled.items() if name in names}

    if not enabled:
        click.echo("Error: No enabled targets with an existing executable.", err=True)
        ctx.exit(1)
    return enabled


def install_cancel_handler(cancel: Callable[[], None]) -> bool:
    """Routes SIGINT/SIGTERM to ``cancel`` on the running loop. Returns False where unsupported."""
    loop = asyncio.get_running_loop()

    def _on_signal(sig: int) -> None:
        structlog.get_logger("cli.signal").warning(
            "Received signal, cancelling", signal=signal.Signals(sig).name
        )
        cancel()

    try:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, _on_signal, sig)
    except (NotImplementedError, RuntimeError):
        # add_signal_handler is unavailable on Windows event loops and off the main thread
        return False
    return True

# ⚙️🛠️
