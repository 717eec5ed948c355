# src/testwire/cli/render.py

"""
Rich rendering of discovery trees and live test updates.
"""

from collections.abc import Mapping

from rich.console import Console
from rich.markup import escape
from rich.tree import Tree

from testwire.config import TargetConfig
from testwire.exceptions import DiscoveryFailed
from testwire.models import DiscoveryResult, RunReport, TestUpdate
from testwire.paths import resolve_source_path
from testwire.state import OUTCOME_EMOJI_MAP, RunOutcome

OUTCOME_STYLES = {
    RunOutcome.RUNNING: "cyan",
    RunOutcome.PASSED: "green",
    RunOutcome.FAILED: "bold red",
    RunOutcome.SKIPPED: "yellow",
}


def discovery_tree(name: str, result: DiscoveryResult, target: TargetConfig) -> Tree:
    tree = Tree(f"[bold]{escape(name)}[/] [dim]({escape(str(result.executable))})[/]")
    for fixture, tests in result.fixtures.items():
        branch = tree.add(f"[bold cyan]{escape(fixture)}[/]")
        for test in tests:
            location = f"{resolve_source_path(test, target)}:{test.source_line}"
            branch.add(f"{escape(test.name)} [dim]{escape(location)}[/]")
    for warning in result.warnings:
        tree.add(f"[yellow]⚠️ {escape(str(warning))}[/]")
    return tree


class ConsoleSink:
    """TestEventSink that prints every event as it arrives."""

    def __init__(
        self,
        console: Console,
        targets: Mapping[str, TargetConfig] | None = None,
        show_running: bool = False,
        show_trees: bool = False,
    ):
        self.console = console
        self.show_running = show_running
        self.show_trees = show_trees
        self._names = {target.executable: name for name, target in (targets or {}).items()}
        self._targets = {target.executable: target for target in (targets or {}).values()}

    def discovery_finished(self, result: DiscoveryResult | DiscoveryFailed) -> None:
        if isinstance(result, DiscoveryFailed):
            self.console.print(f"[bold red]Discovery failed:[/] {escape(str(result))}")
            return

        name = self._names.get(result.executable, result.executable.name)
        target = self._targets.get(result.executable)
        if self.show_trees and target is not None:
            self.console.print(discovery_tree(name, result, target))
        else:
            self.console.print(
                f"🔎 [bold]{escape(name)}[/]: {len(result)} test(s) in {len(result.fixtures)} fixture(s)"
            )

    def test_state(self, update: TestUpdate) -> None:
        if update.outcome is RunOutcome.RUNNING and not self.show_running:
            return
        emoji = OUTCOME_EMOJI_MAP[update.outcome]
        style = OUTCOME_STYLES[update.outcome]
        self.console.print(f"{emoji} [{style}]{update.outcome.value:<8}[/] {escape(update.identity)}")
        if update.message:
            for line in update.message.splitlines():
                self.console.print(f"    [dim]{escape(line)}[/]")


def print_summary(console: Console, reports: list[RunReport]) -> None:
    counts = dict.fromkeys(RunOutcome, 0)
    for report in reports:
        for outcome in report.outcomes().values():
            counts[outcome] += 1

    console.print(
        f"\n[green]{counts[RunOutcome.PASSED]} passed[/], "
        f"[red]{counts[RunOutcome.FAILED]} failed[/], "
        f"[yellow]{counts[RunOutcome.SKIPPED]} skipped[/]"
    )
    for report in reports:
        if report.cancelled:
            console.print(f"[yellow]🛑 Cancelled:[/] {escape(str(report.executable))}")
        if report.error is not None:
            console.print(f"[bold red]❌ {escape(str(report.error))}[/]")
        if report.debugger_attached:
            console.print(f"[dim]Debugger session for {escape(str(report.executable))} ended; no results captured.[/]")

# 🔼⚙️
