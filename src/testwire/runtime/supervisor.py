# src/testwire/runtime/supervisor.py

"""
Owns the lifecycle of one test executable subprocess at a time.
"""

import asyncio
import os
from collections.abc import AsyncIterator, Callable, Mapping, Sequence
from pathlib import Path

import structlog

from testwire.exceptions import AlreadyRunningError, LaunchError
from testwire.protocol.framer import LineFramer
from testwire.telemetry import StructLogger

log: StructLogger = structlog.get_logger("runtime.supervisor")

READ_CHUNK_SIZE = 4096

ChunkHook = Callable[[bytes], None]


class ProcessSupervisor:
    """
    Starts a subprocess, streams its stdout as complete lines and reaps it.

    A supervisor owns at most one live process. ``lines()`` ends when the
    process closes its stdout (normal exit or kill); any unterminated final
    line is flushed before it ends. ``wait()`` then returns the exit code and
    leaves the supervisor idle and reusable.
    """

    def __init__(self, on_chunk: ChunkHook | None = None, chunk_size: int = READ_CHUNK_SIZE):
        self._process: asyncio.subprocess.Process | None = None
        self._framer = LineFramer()
        self._on_chunk = on_chunk
        self._chunk_size = chunk_size
        self._cancelled = False
        self._log = log

    @property
    def is_running(self) -> bool:
        return self._process is not None

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process else None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    async def start(
        self,
        executable: Path | str,
        args: Sequence[str] = (),
        cwd: Path | str | None = None,
        env: Mapping[str, str] | None = None,
        capture_output: bool = True,
    ) -> asyncio.subprocess.Process:
        """
        Launches ``executable`` with ``args``.

        The child inherits the current environment overlaid with ``env``.
        With ``capture_output=False`` stdout is left attached to the parent,
        as needed when a debugger owns the console.

        Raises:
            AlreadyRunningError: if this supervisor already owns a live process.
            LaunchError: if the operating system refuses to create the process.
        """
        if self._process is not None:
            raise AlreadyRunningError("A test process is already running", executable=str(executable))

        command = [str(executable), *args]
        self._log = log.bind(executable=str(executable))
        self._log.info("Starting test process", args=list(args), cwd=str(cwd) if cwd else None)

        child_env = {**os.environ, **env} if env else None
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE if capture_output else None,
                stdin=asyncio.subprocess.DEVNULL,
                cwd=cwd,
                env=child_env,
            )
        except FileNotFoundError as e:
            self._log.error("Test executable not found", error=str(e))
            raise LaunchError("Test executable not found", executable=str(executable), details=e) from e
        except PermissionError as e:
            self._log.error("Permission denied launching test executable", error=str(e))
            raise LaunchError("Permission denied", executable=str(executable), details=e) from e
        except OSError as e:
            self._log.error("Failed to launch test executable", error=str(e))
            raise LaunchError("Failed to launch", executable=str(executable), details=e) from e

        self._process = process
        self._framer.reset()
        self._cancelled = False
        self._log = self._log.bind(pid=process.pid)
        self._log.debug("Test process started")
        return process

    async def lines(self) -> AsyncIterator[str]:
        """Yields complete stdout lines in output order until the stream closes."""
        process = self._process
        if process is None or process.stdout is None:
            return

        try:
            while True:
                chunk = await process.stdout.read(self._chunk_size)
                if not chunk:
                    break
                if self._on_chunk:
                    self._on_chunk(chunk)
                for line in self._framer.feed(chunk):
                    yield line
        except OSError as e:
            self._log.error("Error reading test process output", error=str(e))
            for line in self._framer.flush():
                yield line
            raise

        for line in self._framer.flush():
            yield line

    async def wait(self) -> int:
        """Waits for the process to exit and releases it."""
        process = self._process
        if process is None:
            raise RuntimeError("No test process has been started")

        # a cancelled wait keeps the process so cancel() can still kill it
        code = await process.wait()
        self._process = None

        # asyncio reports a kill as a negative signal number
        exit_code = 0 if code is None else code
        self._log.info("Test process exited", exit_code=exit_code, cancelled=self._cancelled)
        return exit_code

    def cancel(self) -> None:
        """Kills the live process, if any. Safe to call repeatedly."""
        process = self._process
        if process is None or process.returncode is not None:
            self._log.debug("Cancel requested with no live test process")
            return

        self._cancelled = True
        self._log.warning("Killing test process")
        try:
            process.kill()
        except ProcessLookupError:
            self._log.debug("Test process already gone")


# 🔼⚙️
