# src/testwire/runtime/coordinator.py

"""
High-level coordinator for discovery and run sessions.

A RunCoordinator owns at most one protocol session at a time. Front ends
construct one per workspace (or per configured target set) and receive
structured events through a TestEventSink.
"""

import asyncio
import os
from collections.abc import AsyncIterator, Callable, Iterable, Iterator, Mapping
from contextlib import contextmanager
from pathlib import Path

import structlog

from testwire.config.models import TargetConfig
from testwire.exceptions import (
    AlreadyRunningError,
    DiscoveryFailed,
    LaunchError,
    ProcessExitNonZero,
    ProtocolViolation,
    RunFailed,
)
from testwire.models import DiscoveryResult, RunReport, TestCase, TestUpdate
from testwire.protocol.decoder import DiscoveryDecoder, RunDecoder
from testwire.protocol.events import (
    Header,
    Malformed,
    ProtocolEvent,
    RunComplete,
    TestCompleted,
    TestSkipped,
    TestStarted,
    TestStatus,
)
from testwire.protocols import NullSink, TestEventSink
from testwire.runtime.supervisor import ProcessSupervisor
from testwire.state import RunOutcome, SessionKind, SessionState
from testwire.telemetry import StructLogger

log: StructLogger = structlog.get_logger("runtime.coordinator")

CANCELLED_MESSAGE = "Test run was cancelled before the test completed."
# Seconds an executable may take to exit after printing "Complete."
COMPLETION_GRACE = 1.0
STATUS_OUTCOMES = {
    TestStatus.PASSED: RunOutcome.PASSED,
    TestStatus.FAILED: RunOutcome.FAILED,
}


class RunCoordinator:
    """Serializes discovery and run requests against test executables."""

    def __init__(
        self,
        sink: TestEventSink | None = None,
        session_timeout: float | None = None,
        supervisor_factory: Callable[[], ProcessSupervisor] = ProcessSupervisor,
        completion_grace: float = COMPLETION_GRACE,
    ):
        self.sink: TestEventSink = sink or NullSink()
        self.session_timeout = session_timeout
        self.completion_grace = completion_grace
        self.session: SessionState | None = None
        self._supervisor_factory = supervisor_factory
        self._supervisor: ProcessSupervisor | None = None
        self._busy = False
        self._busy_with: str | None = None
        self._cancel_requested = False
        log.debug("RunCoordinator initialized", session_timeout=session_timeout)

    @property
    def is_active(self) -> bool:
        return self._busy

    # --- Public operations ---

    async def discover(self, target: TargetConfig) -> DiscoveryResult:
        """
        Enumerates the tests of one executable.

        Raises:
            AlreadyRunningError: if another session is active.
            DiscoveryFailed: on launch failure, nonzero exit or cancellation.
        """
        with self._exclusive(f"discover {target.executable.name}"):
            return await self._discover_and_notify(target)

    async def run(
        self,
        target: TargetConfig,
        identities: Iterable[str] | None = None,
        debugger: list[str] | None = None,
    ) -> RunReport:
        """
        Runs the given identities (all tests when None or empty) of one executable.

        Every update is forwarded to the sink as it is decoded. A cancelled run
        returns normally with ``cancelled`` set.

        Raises:
            AlreadyRunningError: if another session is active.
            RunFailed: on launch failure, protocol violation, timeout, a nonzero
                exit, or an exit that leaves the protocol unfinished.
        """
        selected = list(identities) if identities else None
        with self._exclusive(f"run {target.executable.name}"):
            return await self._run_session(target, selected, debugger)

    async def run_tests(
        self,
        tests: Iterable[TestCase],
        targets: Mapping[Path, TargetConfig],
    ) -> list[RunReport]:
        """
        Runs a selection of tests spanning any number of executables.

        Tests are grouped by owning executable so each executable is launched
        exactly once. A failed group is recorded on its report and the
        remaining groups still run; a cancel stops the remaining groups.
        """
        groups = group_by_executable(tests)
        with self._exclusive(f"run {len(groups)} executable(s)"):
            reports = []
            for executable, identities in groups.items():
                if self._cancel_requested:
                    log.info("Skipping remaining executables after cancel", executable=str(executable))
                    break
                target = targets.get(executable)
                if target is None:
                    log.error("No launch configuration for executable", executable=str(executable))
                    reports.append(
                        RunReport(
                            executable=executable,
                            error=LaunchError("No launch configuration", executable=str(executable)),
                        )
                    )
                    continue
                reports.append(await self._run_collecting(target, identities))
            return reports

    async def run_all(self, targets: Iterable[TargetConfig]) -> list[RunReport]:
        """Discovers every target, then runs all of its tests."""
        targets = list(targets)
        with self._exclusive(f"run all tests in {len(targets)} executable(s)"):
            reports = []
            for target in targets:
                if self._cancel_requested:
                    break
                try:
                    discovered = await self._discover_and_notify(target)
                except DiscoveryFailed as e:
                    log.error("Skipping executable that failed discovery", executable=str(target.executable), error=str(e))
                    reports.append(RunReport(executable=target.executable, error=e))
                    continue
                if not len(discovered):
                    log.info("No tests discovered, nothing to run", executable=str(target.executable))
                    continue
                reports.append(await self._run_collecting(target, None))
            return reports

    def cancel(self) -> None:
        """Kills the active test process, if any. Safe to call when idle."""
        if not self._busy:
            log.debug("Cancel requested while idle")
            return

        log.warning("Cancel requested", operation=self._busy_with, emoji_key="cancel")
        self._cancel_requested = True
        if self.session:
            self.session.cancel_requested = True
        if self._supervisor:
            self._supervisor.cancel()

    # --- Session plumbing ---

    @contextmanager
    def _exclusive(self, operation: str) -> Iterator[None]:
        # checked and set without awaiting, so no other task can interleave
        if self._busy:
            log.warning(
                "Rejecting request while another session is active",
                requested=operation,
                active=self._busy_with,
            )
            raise AlreadyRunningError(f"Cannot {operation} while '{self._busy_with}' is active")

        self._busy = True
        self._busy_with = operation
        self._cancel_requested = False
        try:
            yield
        finally:
            self._busy = False
            self._busy_with = None
            self._supervisor = None
            self.session = None

    def _begin(self, kind: SessionKind, executable: Path) -> tuple[SessionState, ProcessSupervisor]:
        self.session = SessionState(kind=kind, executable=executable)
        self.session.cancel_requested = self._cancel_requested
        self._supervisor = self._supervisor_factory()
        return self.session, self._supervisor

    async def _drain(
        self,
        supervisor: ProcessSupervisor,
        session: SessionState,
        on_line: Callable[[str], None],
        finished: Callable[[], bool] | None = None,
    ) -> int:
        """
        Feeds output lines to ``on_line`` and returns the exit code.

        Once ``finished()`` turns true the remaining output is discarded and
        the process gets ``completion_grace`` seconds to exit before it is
        killed.
        """
        if session.cancel_requested:
            # cancel() arrived while the process was being created
            supervisor.cancel()

        watchdog = None
        if self.session_timeout:
            def _expire() -> None:
                log.warning("Session timed out", timeout=self.session_timeout, emoji_key="time")
                session.timed_out = True
                supervisor.cancel()

            watchdog = asyncio.get_running_loop().call_later(self.session_timeout, _expire)

        lines = supervisor.lines()
        try:
            async for line in lines:
                on_line(line)
                if finished is not None and finished():
                    break
            if finished is not None and finished():
                return await self._reap_finished(supervisor, session, lines)
            return await supervisor.wait()
        except BaseException:
            supervisor.cancel()
            if supervisor.is_running:
                await supervisor.wait()
            raise
        finally:
            if watchdog:
                watchdog.cancel()

    async def _reap_finished(
        self,
        supervisor: ProcessSupervisor,
        session: SessionState,
        lines: AsyncIterator[str],
    ) -> int:
        async def _discard_and_wait() -> int:
            async for _ in lines:
                pass
            return await supervisor.wait()

        try:
            return await asyncio.wait_for(_discard_and_wait(), self.completion_grace)
        except TimeoutError:
            log.warning(
                "Executable still running after its protocol finished, killing it",
                executable=str(session.executable),
                grace=self.completion_grace,
            )
            session.killed_after_completion = True
            supervisor.cancel()
            return await supervisor.wait()

    # --- Discovery ---

    async def _discover_and_notify(self, target: TargetConfig) -> DiscoveryResult:
        try:
            result = await self._discover_session(target)
        except DiscoveryFailed as e:
            self.sink.discovery_finished(e)
            raise
        self.sink.discovery_finished(result)
        return result

    async def _discover_session(self, target: TargetConfig) -> DiscoveryResult:
        executable = target.executable
        session, supervisor = self._begin(SessionKind.DISCOVERY, executable)
        session_log = log.bind(executable=str(executable), session="discovery")
        session_log.info("Discovering tests", emoji_key="discover")

        try:
            await supervisor.start(
                executable,
                target.discovery_arguments(),
                cwd=target.cwd,
                env=target.environment,
            )
        except LaunchError as e:
            raise DiscoveryFailed("Could not launch executable", executable=str(executable), details=e) from e

        decoder = DiscoveryDecoder(executable)
        result = DiscoveryResult(executable=executable)

        def on_line(line: str) -> None:
            test_case = decoder.decode(line)
            if test_case is not None:
                result.add(test_case)

        try:
            exit_code = await self._drain(supervisor, session, on_line)
        except OSError as e:
            raise DiscoveryFailed("Error reading discovery output", executable=str(executable), details=e) from e

        result.warnings.extend(decoder.warnings)

        if session.cancel_requested or session.timed_out:
            reason = "timed out" if session.timed_out else "was cancelled"
            session_log.warning(f"Discovery {reason}")
            raise DiscoveryFailed(f"Discovery {reason}", executable=str(executable))
        if exit_code != 0:
            error = ProcessExitNonZero(exit_code, executable=str(executable))
            session_log.error("Discovery process failed", exit_code=exit_code)
            raise DiscoveryFailed("Discovery process failed", executable=str(executable), details=error) from error

        session_log.info(
            "Discovery finished",
            tests=len(result),
            fixtures=len(result.fixtures),
            warnings=len(result.warnings),
            emoji_key="success",
        )
        return result

    # --- Run ---

    async def _run_collecting(self, target: TargetConfig, identities: list[str] | None) -> RunReport:
        try:
            return await self._run_session(target, identities, None)
        except RunFailed as e:
            log.error("Run session failed", executable=str(target.executable), error=str(e))
            report = e.report or RunReport(executable=target.executable)
            report.error = e
            return report

    async def _run_session(
        self,
        target: TargetConfig,
        identities: list[str] | None,
        debugger: list[str] | None,
    ) -> RunReport:
        executable = target.executable
        session, supervisor = self._begin(SessionKind.RUN, executable)
        session_log = log.bind(executable=str(executable), session="run")
        report = RunReport(executable=executable, debugger_attached=bool(debugger))

        command: Path | str = executable
        args = target.run_arguments(identities)
        if debugger:
            command = debugger[0]
            args = [*debugger[1:], str(executable), *args]
        session_log.info("Running tests", selected=len(identities) if identities else "all", emoji_key="run")

        try:
            await supervisor.start(
                command,
                args,
                cwd=target.cwd,
                env=target.environment,
                capture_output=not debugger,
            )
        except LaunchError as e:
            raise RunFailed("Could not launch executable", executable=str(executable), details=e, report=report) from e

        decoder = RunDecoder(target.protocol, target.lenient_messages)
        violations: list[ProtocolViolation] = []

        def emit(identity: str, outcome: RunOutcome, message: str = "") -> None:
            update = TestUpdate(identity=identity, outcome=outcome, message=message, executable=executable)
            report.updates.append(update)
            session.record(identity, outcome)
            self.sink.test_state(update)

        def on_event(event: ProtocolEvent) -> None:
            match event:
                case TestStarted(identity=identity):
                    emit(identity, RunOutcome.RUNNING)
                case TestSkipped(identity=identity):
                    emit(identity, RunOutcome.SKIPPED)
                case TestCompleted(identity=identity, status=status, message=message):
                    emit(identity, STATUS_OUTCOMES[status], message)
                case RunComplete():
                    report.completed = True
                case Malformed(raw_line=raw_line, reason=reason):
                    violations.append(ProtocolViolation(reason, raw_line, executable=str(executable)))
                    # stop trusting the executable; nothing it prints now can be placed
                    supervisor.cancel()
                case Header(text=text):
                    session_log.debug("Run started", header=text)

        def on_line(line: str) -> None:
            for event in decoder.decode(line):
                on_event(event)

        try:
            report.exit_code = await self._drain(supervisor, session, on_line, finished=lambda: report.completed)
        except OSError as e:
            self._close_open_test(session, emit, f"Error reading test output: {e}", decoder.message_lines)
            raise RunFailed("Error reading test output", executable=str(executable), details=e, report=report) from e

        for event in decoder.finish():
            on_event(event)

        if report.debugger_attached:
            report.cancelled = session.cancel_requested
            session_log.info(
                "Debug session ended; no results are captured",
                exit_code=report.exit_code,
                cancelled=report.cancelled,
            )
            return report

        if session.cancel_requested and not session.timed_out:
            report.cancelled = True
            self._close_open_test(session, emit, CANCELLED_MESSAGE, decoder.message_lines)
            session_log.warning("Run cancelled", updates=len(report.updates), emoji_key="cancel")
            return report

        failure: Exception | None = None
        if violations:
            failure = violations[0]
        elif session.timed_out:
            failure = TimeoutError(f"Run timed out after {self.session_timeout}s")
        elif report.exit_code != 0 and not session.killed_after_completion:
            failure = ProcessExitNonZero(report.exit_code, executable=str(executable))
        elif session.open_test is not None:
            failure = ProtocolViolation("Output ended before the test completed", session.open_test, executable=str(executable))

        if failure is not None:
            self._close_open_test(session, emit, str(failure), decoder.message_lines)
            session_log.error(
                "Run session failed",
                error=str(failure),
                exit_code=report.exit_code,
                completed=report.completed,
            )
            raise RunFailed("Run session failed", executable=str(executable), details=failure, report=report) from failure

        session_log.info(
            "Run finished",
            updates=len(report.updates),
            failed=len(report.failed),
            emoji_key="success",
        )
        return report

    @staticmethod
    def _close_open_test(
        session: SessionState,
        emit: Callable[[str, RunOutcome, str], None],
        reason: str,
        collected: list[str],
    ) -> None:
        """Fails a test left running so no front end is left with a spinner."""
        if session.open_test is not None:
            emit(session.open_test, RunOutcome.FAILED, os.linesep.join([reason, *collected]))


def group_by_executable(tests: Iterable[TestCase]) -> dict[Path, list[str]]:
    """Partitions tests by owning executable, keeping first-seen order."""
    groups: dict[Path, list[str]] = {}
    for test in tests:
        identities = groups.setdefault(test.executable, [])
        if test.identity not in identities:
            identities.append(test.identity)
    return groups


# 🔼⚙️
