# src/testwire/cli/watch_cmds.py
#

import asyncio
from pathlib import Path

import click
import structlog
from rich.console import Console

from testwire.cli.render import ConsoleSink
from testwire.cli.utils import (
    config_path_option,
    install_cancel_handler,
    load_config_or_exit,
    logging_options,
    select_targets,
    setup_logging_from_context,
)
from testwire.config import TargetConfig
from testwire.runtime import RunCoordinator
from testwire.runtime.watcher import ExecutableWatcher, RebuildProcessor
from testwire.telemetry import StructLogger

log: StructLogger = structlog.get_logger("cli.watch")


async def watch_targets(
    coordinator: RunCoordinator,
    targets: dict[str, TargetConfig],
    run_after_discovery: bool,
    shutdown_event: asyncio.Event,
) -> None:
    """Discovers every target once, then refreshes targets as they are rebuilt."""
    queue: asyncio.Queue[str] = asyncio.Queue()
    processor = RebuildProcessor(
        coordinator,
        targets,
        queue,
        shutdown_event,
        run_after_discovery=run_after_discovery,
    )
    for name in targets:
        await processor.refresh(name)

    watcher = ExecutableWatcher(targets, queue)
    watcher.start()
    try:
        await processor.run()
    finally:
        watcher.stop()


@click.command(name="watch")
@config_path_option
@click.option("--run", "run_after_discovery", is_flag=True, default=False, help="Run all tests after each rediscovery.")
@click.argument("target_names", nargs=-1, metavar="[TARGET]...")
@logging_options
@click.pass_context
def watch_cli(
    ctx: click.Context,
    config_path: Path,
    run_after_discovery: bool,
    target_names: tuple[str, ...],
    **kwargs,
):
    """Rediscover (and optionally rerun) tests whenever an executable is rebuilt."""
    setup_logging_from_context(
        ctx,
        local_log_level=kwargs.get("log_level"),
        local_log_file=kwargs.get("log_file"),
        local_json_logs=kwargs.get("json_logs"),
        default_log_level="INFO",
    )
    config = load_config_or_exit(ctx, config_path, **kwargs)
    targets = select_targets(ctx, config, target_names)
    console = Console()
    coordinator = RunCoordinator(
        sink=ConsoleSink(console, targets),
        session_timeout=config.global_config.session_timeout,
    )

    async def _main() -> None:
        shutdown_event = asyncio.Event()

        def _shutdown() -> None:
            coordinator.cancel()
            shutdown_event.set()

        install_cancel_handler(_shutdown)
        await watch_targets(coordinator, targets, run_after_discovery, shutdown_event)

    console.print("👀 Watching for rebuilds. Press Ctrl-C to stop.")
    asyncio.run(_main())
    log.info("Watch finished.")

# 🔼⚙️
