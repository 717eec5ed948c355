# src/testwire/cli/discover_cmds.py

import asyncio
from pathlib import Path

import click
import structlog
from rich.console import Console

from testwire.cli.render import ConsoleSink
from testwire.cli.utils import (
    config_path_option,
    load_config_or_exit,
    logging_options,
    select_targets,
    setup_logging_from_context,
)
from testwire.exceptions import DiscoveryFailed
from testwire.runtime import RunCoordinator
from testwire.telemetry import StructLogger

log: StructLogger = structlog.get_logger("cli.discover")


@click.command(name="discover")
@config_path_option
@click.argument("target_names", nargs=-1, metavar="[TARGET]...")
@logging_options
@click.pass_context
def discover_cli(ctx: click.Context, config_path: Path, target_names: tuple[str, ...], **kwargs):
    """List the tests each configured executable reports."""
    setup_logging_from_context(
        ctx,
        local_log_level=kwargs.get("log_level"),
        local_log_file=kwargs.get("log_file"),
        local_json_logs=kwargs.get("json_logs"),
    )
    config = load_config_or_exit(ctx, config_path, **kwargs)
    targets = select_targets(ctx, config, target_names)
    console = Console()

    sink = ConsoleSink(console, targets, show_trees=True)
    coordinator = RunCoordinator(sink=sink, session_timeout=config.global_config.session_timeout)

    async def _discover_all() -> int:
        failures = 0
        for name, target in targets.items():
            log.info("Discovering target", target=name)
            try:
                await coordinator.discover(target)
            except DiscoveryFailed:
                # already reported through the sink
                failures += 1
        return failures

    failures = asyncio.run(_discover_all())
    if failures:
        ctx.exit(1)

# 🔼⚙️
