# src/testwire/cli/run_cmds.py

import asyncio
from pathlib import Path

import click
import structlog
from rich.console import Console

from testwire.cli.render import ConsoleSink, print_summary
from testwire.cli.utils import (
    config_path_option,
    install_cancel_handler,
    load_config_or_exit,
    logging_options,
    select_targets,
    setup_logging_from_context,
)
from testwire.config import TargetConfig
from testwire.exceptions import DiscoveryFailed, RunFailed
from testwire.models import RunReport, TestCase
from testwire.runtime import RunCoordinator
from testwire.telemetry import StructLogger

log: StructLogger = structlog.get_logger("cli.run")


async def _resolve_identities(
    coordinator: RunCoordinator,
    targets: dict[str, TargetConfig],
    identities: tuple[str, ...],
) -> tuple[list[TestCase], list[str]]:
    """Maps identities to discovered TestCases across all targets."""
    wanted = set(identities)
    found: list[TestCase] = []
    for name, target in targets.items():
        try:
            result = await coordinator.discover(target)
        except DiscoveryFailed as e:
            log.error("Discovery failed while resolving identities", target=name, error=str(e))
            continue
        found.extend(test for test in result if test.identity in wanted)
    known = {test.identity for test in found}
    return found, [identity for identity in identities if identity not in known]


async def _run(
    coordinator: RunCoordinator,
    targets: dict[str, TargetConfig],
    identities: tuple[str, ...],
    debug: bool,
) -> tuple[list[RunReport], list[str]]:
    install_cancel_handler(coordinator.cancel)

    if debug or len(targets) == 1:
        reports = []
        for target in targets.values():
            debugger = target.debugger if debug else None
            try:
                reports.append(await coordinator.run(target, identities, debugger=debugger))
            except RunFailed as e:
                report = e.report or RunReport(executable=target.executable)
                report.error = e
                reports.append(report)
            if reports[-1].cancelled:
                break
        return reports, []

    if not identities:
        return await coordinator.run_all(targets.values()), []

    tests, missing = await _resolve_identities(coordinator, targets, identities)
    by_executable = {target.executable: target for target in targets.values()}
    return await coordinator.run_tests(tests, by_executable), missing


@click.command(name="run")
@config_path_option
@click.option(
    "-t",
    "--target",
    "target_names",
    multiple=True,
    help="Limit the run to the named target (repeatable).",
)
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Launch under the target's configured debugger; no results are captured.",
)
@click.option("-v", "--verbose", is_flag=True, default=False, help="Also show tests as they start.")
@click.argument("identities", nargs=-1, metavar="[FIXTURE::TEST]...")
@logging_options
@click.pass_context
def run_cli(
    ctx: click.Context,
    config_path: Path,
    target_names: tuple[str, ...],
    debug: bool,
    verbose: bool,
    identities: tuple[str, ...],
    **kwargs,
):
    """Run tests and report each outcome as it happens."""
    setup_logging_from_context(
        ctx,
        local_log_level=kwargs.get("log_level"),
        local_log_file=kwargs.get("log_file"),
        local_json_logs=kwargs.get("json_logs"),
    )
    config = load_config_or_exit(ctx, config_path, **kwargs)
    targets = select_targets(ctx, config, target_names)

    if debug:
        missing_debugger = [name for name, target in targets.items() if not target.debugger]
        if missing_debugger:
            click.echo(f"Error: No debugger configured for: {', '.join(missing_debugger)}", err=True)
            ctx.exit(1)

    console = Console()
    sink = ConsoleSink(console, targets, show_running=verbose)
    coordinator = RunCoordinator(sink=sink, session_timeout=config.global_config.session_timeout)

    reports, missing = asyncio.run(_run(coordinator, targets, identities, debug))

    for identity in missing:
        console.print(f"[yellow]⚠️ No configured executable reports a test named '{identity}'[/]")
    print_summary(console, reports)

    failed = any(report.failed or report.error is not None for report in reports)
    if failed or missing:
        ctx.exit(1)

# 🔼⚙️
