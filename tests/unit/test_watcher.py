# tests/unit/test_watcher.py

"""Unit tests for rebuild watching and the rediscovery loop."""

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from testwire.config import TargetConfig
from testwire.exceptions import AlreadyRunningError, DiscoveryFailed
from testwire.models import DiscoveryResult, TestCase
from testwire.runtime.watcher import ExecutableWatcher, RebuildProcessor


def discovered(executable: Path, count: int = 1) -> DiscoveryResult:
    result = DiscoveryResult(executable)
    for index in range(count):
        result.add(TestCase(f"F::T{index}", executable, "f.cpp", index + 1))
    return result


@pytest.fixture
def targets(tmp_path: Path) -> dict[str, TargetConfig]:
    return {"unit": TargetConfig(executable=tmp_path / "unit_tests")}


@pytest.fixture
def mock_coordinator(targets) -> MagicMock:
    coordinator = MagicMock()
    coordinator.discover = AsyncMock(return_value=discovered(targets["unit"].executable))
    coordinator.run = AsyncMock()
    return coordinator


@pytest.mark.asyncio
class TestRebuildProcessor:
    async def test_burst_of_notifications_triggers_one_refresh(self, mock_coordinator, targets):
        queue: asyncio.Queue[str] = asyncio.Queue()
        shutdown_event = asyncio.Event()
        processor = RebuildProcessor(mock_coordinator, targets, queue, shutdown_event, debounce=0.05)

        task = asyncio.create_task(processor.run())
        for _ in range(3):
            queue.put_nowait("unit")
        for _ in range(100):
            if mock_coordinator.discover.await_count:
                break
            await asyncio.sleep(0.01)
        await asyncio.sleep(0.1)
        shutdown_event.set()
        await asyncio.wait_for(task, timeout=2)

        mock_coordinator.discover.assert_awaited_once_with(targets["unit"])
        mock_coordinator.run.assert_not_awaited()

    async def test_shutdown_stops_idle_processor(self, mock_coordinator, targets):
        shutdown_event = asyncio.Event()
        processor = RebuildProcessor(mock_coordinator, targets, asyncio.Queue(), shutdown_event)

        task = asyncio.create_task(processor.run())
        await asyncio.sleep(0.01)
        shutdown_event.set()
        await asyncio.wait_for(task, timeout=2)

        mock_coordinator.discover.assert_not_awaited()

    async def test_refresh_runs_after_discovery_when_asked(self, mock_coordinator, targets):
        processor = RebuildProcessor(
            mock_coordinator, targets, asyncio.Queue(), asyncio.Event(), run_after_discovery=True
        )

        await processor.refresh("unit")

        mock_coordinator.run.assert_awaited_once_with(targets["unit"])

    async def test_refresh_skips_run_when_nothing_discovered(self, mock_coordinator, targets):
        mock_coordinator.discover.return_value = discovered(targets["unit"].executable, count=0)
        processor = RebuildProcessor(
            mock_coordinator, targets, asyncio.Queue(), asyncio.Event(), run_after_discovery=True
        )

        await processor.refresh("unit")

        mock_coordinator.run.assert_not_awaited()

    @pytest.mark.parametrize(
        "error",
        [AlreadyRunningError("busy"), DiscoveryFailed("Discovery process failed")],
    )
    async def test_refresh_logs_session_errors(self, mock_coordinator, targets, error):
        mock_coordinator.discover.side_effect = error
        processor = RebuildProcessor(
            mock_coordinator, targets, asyncio.Queue(), asyncio.Event(), run_after_discovery=True
        )

        await processor.refresh("unit")

        mock_coordinator.run.assert_not_awaited()

    async def test_unknown_target_is_ignored(self, mock_coordinator, targets):
        processor = RebuildProcessor(mock_coordinator, targets, asyncio.Queue(), asyncio.Event())

        await processor.refresh("integration")

        mock_coordinator.discover.assert_not_awaited()


@pytest.mark.asyncio
class TestExecutableWatcher:
    async def test_rewrite_of_executable_is_reported(self, make_executable):
        fake = make_executable(name="unit_tests")
        queue: asyncio.Queue[str] = asyncio.Queue()
        watcher = ExecutableWatcher({"unit": TargetConfig(executable=fake.path)}, queue)

        watcher.start()
        try:
            assert watcher.is_running
            await asyncio.sleep(0.2)
            fake.path.write_text(fake.path.read_text(encoding="utf-8") + "\n", encoding="utf-8")
            name = await asyncio.wait_for(queue.get(), timeout=5)
        finally:
            watcher.stop()

        assert name == "unit"
        assert not watcher.is_running

    async def test_other_files_are_ignored(self, make_executable, tmp_path: Path):
        fake = make_executable(name="unit_tests")
        queue: asyncio.Queue[str] = asyncio.Queue()
        watcher = ExecutableWatcher({"unit": TargetConfig(executable=fake.path)}, queue)

        watcher.start()
        try:
            await asyncio.sleep(0.2)
            (tmp_path / "notes.txt").write_text("unrelated", encoding="utf-8")
            await asyncio.sleep(0.5)
        finally:
            watcher.stop()

        assert queue.empty()
