# tests/unit/test_supervisor.py

"""Unit tests for ProcessSupervisor."""

import asyncio
import sys

import pytest

from testwire.exceptions import AlreadyRunningError, LaunchError
from testwire.runtime.supervisor import ProcessSupervisor

PYTHON = sys.executable


async def collect(supervisor: ProcessSupervisor) -> list[str]:
    return [line async for line in supervisor.lines()]


@pytest.mark.asyncio
class TestProcessSupervisor:
    async def test_missing_executable_raises_launch_error(self, tmp_path):
        supervisor = ProcessSupervisor()

        with pytest.raises(LaunchError) as exc_info:
            await supervisor.start(tmp_path / "does_not_exist")

        assert isinstance(exc_info.value.details, FileNotFoundError)
        assert not supervisor.is_running

    async def test_streams_lines_and_reports_exit_code(self):
        supervisor = ProcessSupervisor()
        await supervisor.start(PYTHON, ["-c", "print('first'); print('second'); raise SystemExit(3)"])

        assert supervisor.is_running
        assert supervisor.pid is not None
        assert await collect(supervisor) == ["first", "second"]
        assert await supervisor.wait() == 3
        assert not supervisor.is_running

    async def test_unterminated_last_line_is_flushed(self):
        supervisor = ProcessSupervisor()
        await supervisor.start(PYTHON, ["-c", "import sys; sys.stdout.write('Complete.')"])

        assert await collect(supervisor) == ["Complete."]
        assert await supervisor.wait() == 0

    async def test_small_chunks_give_same_lines(self):
        script = "print('Test: Fixture::Name'); print('Test Complete: passed')"
        supervisor = ProcessSupervisor(chunk_size=3)
        await supervisor.start(PYTHON, ["-c", script])

        assert await collect(supervisor) == ["Test: Fixture::Name", "Test Complete: passed"]
        await supervisor.wait()

    async def test_chunk_hook_sees_raw_output(self):
        chunks: list[bytes] = []
        supervisor = ProcessSupervisor(on_chunk=chunks.append)
        await supervisor.start(PYTHON, ["-c", "print('raw')"])

        await collect(supervisor)
        await supervisor.wait()

        assert b"".join(chunks).strip() == b"raw"

    async def test_environment_is_overlaid_on_parent(self, monkeypatch):
        monkeypatch.setenv("TESTWIRE_PARENT", "inherited")
        script = "import os; print(os.environ['TESTWIRE_PARENT']); print(os.environ['TESTWIRE_CHILD'])"
        supervisor = ProcessSupervisor()
        await supervisor.start(PYTHON, ["-c", script], env={"TESTWIRE_CHILD": "added"})

        assert await collect(supervisor) == ["inherited", "added"]
        await supervisor.wait()

    async def test_working_directory(self, tmp_path):
        supervisor = ProcessSupervisor()
        await supervisor.start(PYTHON, ["-c", "import os; print(os.getcwd())"], cwd=tmp_path)

        lines = await collect(supervisor)
        await supervisor.wait()

        assert lines == [str(tmp_path.resolve())]

    async def test_second_start_is_rejected(self):
        supervisor = ProcessSupervisor()
        await supervisor.start(PYTHON, ["-c", "import time; time.sleep(30)"])
        try:
            with pytest.raises(AlreadyRunningError):
                await supervisor.start(PYTHON, ["-c", "pass"])
        finally:
            supervisor.cancel()
            await supervisor.wait()

    async def test_cancel_kills_and_is_idempotent(self):
        supervisor = ProcessSupervisor()
        await supervisor.start(PYTHON, ["-c", "import time; print('up', flush=True); time.sleep(30)"])

        lines = supervisor.lines()
        assert await anext(lines) == "up"

        supervisor.cancel()
        supervisor.cancel()
        assert [line async for line in lines] == []
        exit_code = await supervisor.wait()

        assert supervisor.cancelled
        assert exit_code != 0

    async def test_timed_out_wait_leaves_process_killable(self):
        supervisor = ProcessSupervisor()
        await supervisor.start(PYTHON, ["-c", "import time; time.sleep(30)"])

        with pytest.raises(TimeoutError):
            await asyncio.wait_for(supervisor.wait(), timeout=0.1)

        assert supervisor.is_running
        supervisor.cancel()
        assert await asyncio.wait_for(supervisor.wait(), timeout=10) != 0
        assert supervisor.cancelled
        assert not supervisor.is_running

    async def test_cancel_while_idle_is_noop(self):
        supervisor = ProcessSupervisor()
        supervisor.cancel()
        assert not supervisor.cancelled

    async def test_wait_without_start(self):
        with pytest.raises(RuntimeError):
            await ProcessSupervisor().wait()

    async def test_supervisor_is_reusable(self):
        supervisor = ProcessSupervisor()
        for expected in ("one", "two"):
            await supervisor.start(PYTHON, ["-c", f"print({expected!r})"])
            assert await collect(supervisor) == [expected]
            assert await supervisor.wait() == 0
