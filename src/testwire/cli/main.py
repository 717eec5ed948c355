# src/testwire/cli/main.py

"""
Entry point for the ``testwire`` command.

The group only collects the logging options; every subcommand loads the
configuration itself so ``config show`` can report problems in it.
"""

import sys

import click
import structlog

from testwire import __version__
from testwire.cli.config_cmds import config_cli
from testwire.cli.discover_cmds import discover_cli
from testwire.cli.run_cmds import run_cli
from testwire.cli.utils import logging_options, setup_logging_from_context
from testwire.cli.watch_cmds import watch_cli
from testwire.exceptions import TestwireError
from testwire.telemetry import StructLogger

log: StructLogger = structlog.get_logger("cli.main")

SUBCOMMANDS = (config_cli, discover_cli, run_cli, watch_cli)


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(__version__, "-V", "--version", prog_name="testwire")
@logging_options
@click.pass_context
def cli(ctx: click.Context, log_level: str | None, log_file: str | None, json_logs: bool | None):
    """
    Discover and run the tests of line-protocol test executables.

    Targets are read from testwire.conf (see `testwire config show`).
    Option precedence: command option > group option > environment > config file > default.
    """
    ctx.ensure_object(dict)
    ctx.obj.update(LOG_LEVEL=log_level, LOG_FILE=log_file, JSON_LOGS=bool(json_logs))
    settings = setup_logging_from_context(ctx)
    log.debug("testwire starting", version=__version__, level=settings.level)


for command in SUBCOMMANDS:
    cli.add_command(command)


def main() -> None:
    """Console-script entry point."""
    try:
        cli(obj={})
    except TestwireError as e:
        log.error("Command failed", error=str(e))
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except Exception:
        log.critical("Unexpected error", exc_info=True)
        click.echo("Error: unexpected failure; rerun with --log-level DEBUG for details.", err=True)
        sys.exit(2)


if __name__ == "__main__":
    main()

# 🖥️⚙️
