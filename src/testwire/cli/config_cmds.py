# src/testwire/cli/config_cmds.py

from pathlib import Path

import click
import structlog
from rich.pretty import pretty_repr

from testwire.cli.utils import config_path_option, load_config_or_exit, logging_options, setup_logging_from_context
from testwire.telemetry import StructLogger

log: StructLogger = structlog.get_logger("cli.config")


@click.group(name="config")
def config_cli():
    """Commands for inspecting and validating configuration."""
    pass


@config_cli.command(name="show")
@config_path_option
@logging_options
@click.pass_context
def show_config(ctx: click.Context, config_path: Path, **kwargs):
    """Load, validate, and display the configuration."""
    setup_logging_from_context(
        ctx,
        local_log_level=kwargs.get("log_level"),
        local_log_file=kwargs.get("log_file"),
        local_json_logs=kwargs.get("json_logs"),
    )
    log.info("Executing 'config show' command", config_path=str(config_path))

    config = load_config_or_exit(ctx, config_path, **kwargs)
    click.echo(pretty_repr(config, expand_all=True))

    disabled = [name for name, target in config.targets.items() if not target._path_valid]
    if disabled:
        click.echo(f"Warning: executable missing, target disabled: {', '.join(disabled)}", err=True)
        log.warning(f"{len(disabled)} target executable(s) not found and auto-disabled.", count=len(disabled))
    else:
        log.info("All target executables found.")

# 🔼⚙️
