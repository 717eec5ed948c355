# src/testwire/protocol/decoder.py

"""
State machines for the discovery and run grammars spoken by test executables.

Discovery output is one ``Fixture::Test,SourceFile,SourceLine`` record per
line. Run output looks like::

    Running 3 test cases...
    Test: Math::Adds
    Test Complete: passed
    Test: Math::Divides
        @12 CHECK: expected 2, got 3
    Test Complete: failed
    Skip: Math::Slow
    Complete.
"""

import os
import re
from pathlib import Path

import structlog

from testwire.exceptions import DecodeWarning
from testwire.models import IDENTITY_SEPARATOR, TestCase
from testwire.protocol.events import (
    Header,
    Malformed,
    MessageLine,
    ProtocolEvent,
    ProtocolVersion,
    RunComplete,
    TestCompleted,
    TestSkipped,
    TestStarted,
    TestStatus,
)

log = structlog.get_logger("protocol.decoder")

MESSAGE_INDENT = "    "
TEST_COMPLETE_PREFIX = "Test Complete:"
SKIP_PREFIX = "Skip:"
TEST_PREFIX = "Test:"
HEADER_PREFIX = "Running"
RUN_COMPLETE_PREFIX = "Complete."
_SOURCE_LINE = re.compile(r"[0-9]+")


def decode_discovery_line(line: str, executable: Path) -> TestCase:
    """
    Parses one discovery record.

    Raises:
        DecodeWarning: if the line does not have the expected shape.
    """
    parts = line.split(",")
    if len(parts) != 3:
        raise DecodeWarning("Expected 3 comma-separated fields", line)

    identity, source_file, source_line = parts
    halves = identity.split(IDENTITY_SEPARATOR)
    if len(halves) != 2:
        raise DecodeWarning(f"Identity must contain exactly one '{IDENTITY_SEPARATOR}'", line)
    if not all(halves):
        raise DecodeWarning("Identity needs both a fixture and a test name", line)

    source_line = source_line.strip()
    if not _SOURCE_LINE.fullmatch(source_line):
        raise DecodeWarning("Source line is not a base-10 integer", line)

    return TestCase(
        identity=identity,
        executable=executable,
        source_file=source_file,
        source_line=int(source_line),
    )


class DiscoveryDecoder:
    """Collects TestCases from discovery lines, skipping malformed ones."""

    def __init__(self, executable: Path):
        self.executable = executable
        self.warnings: list[DecodeWarning] = []
        self._log = log.bind(executable=str(executable), mode="discovery")

    def decode(self, line: str) -> TestCase | None:
        if not line.strip():
            return None
        try:
            test_case = decode_discovery_line(line, self.executable)
        except DecodeWarning as warning:
            self._log.warning("Skipping malformed discovery line", reason=warning.reason, line=line)
            self.warnings.append(warning)
            return None
        self._log.debug("Discovered test", identity=test_case.identity)
        return test_case


class RunDecoder:
    """
    Decodes run output line by line into protocol events.

    The decoder stops trusting the stream at the first line it cannot place:
    it emits ``Malformed`` once and ignores everything after, just as it
    ignores everything after ``Complete.``.
    """

    def __init__(
        self,
        version: ProtocolVersion = ProtocolVersion.EXPLICIT,
        lenient_messages: bool = False,
    ):
        self.version = version
        self.lenient_messages = lenient_messages
        self.current_test: str | None = None
        self.message_lines: list[str] = []
        self.completed = False
        self.aborted = False
        self._log = log.bind(mode="run", protocol=version.value)

    @property
    def finished(self) -> bool:
        return self.completed or self.aborted

    def decode(self, line: str) -> list[ProtocolEvent]:
        """Returns the events produced by one complete line, in order."""
        if self.finished or not line:
            return []

        if line.startswith(MESSAGE_INDENT):
            if self.current_test is None:
                self._log.debug("Ignoring message line outside a test", line=line)
                return []
            return [self._append_message(line)]

        if line.startswith(TEST_COMPLETE_PREFIX) and self.version is ProtocolVersion.EXPLICIT:
            return [self._complete_current(line)]

        if self.current_test is not None:
            if self.version is ProtocolVersion.IMPLICIT:
                return self._close_implicit() + self._decode_control(line)
            if self.lenient_messages and line.strip():
                return [self._append_message(line)]
            return [self._abort(line, f"Unexpected end of test '{self.current_test}'")]

        return self._decode_control(line)

    def finish(self) -> list[ProtocolEvent]:
        """Called at end of stream. Nothing is inferred for a test left open."""
        if self.current_test is not None and not self.finished:
            self._log.debug("Stream ended with a test still open", identity=self.current_test)
        return []

    def _decode_control(self, line: str) -> list[ProtocolEvent]:
        if line.startswith(SKIP_PREFIX):
            identity = line[len(SKIP_PREFIX):].strip()
            self._log.debug("Test skipped", identity=identity)
            return [TestSkipped(identity)]

        if line.startswith(TEST_PREFIX):
            identity = line[len(TEST_PREFIX):].strip()
            self.current_test = identity
            self.message_lines = []
            self._log.debug("Test started", identity=identity)
            return [TestStarted(identity)]

        if line.startswith(HEADER_PREFIX):
            return [Header(line)]

        if line.startswith(RUN_COMPLETE_PREFIX):
            self.completed = True
            self._log.debug("Run complete")
            return [RunComplete()]

        return [self._abort(line, "Unrecognized control line")]

    def _append_message(self, line: str) -> MessageLine:
        text = line.lstrip()
        self.message_lines.append(text)
        return MessageLine(text)

    def _complete_current(self, line: str) -> ProtocolEvent:
        if self.current_test is None:
            return self._abort(line, "Test completion without a started test")
        return self._emit_completion(TestStatus.parse(line[len(TEST_COMPLETE_PREFIX):]))

    def _close_implicit(self) -> list[ProtocolEvent]:
        if self.current_test is None:
            return []
        status = TestStatus.FAILED if self.message_lines else TestStatus.PASSED
        return [self._emit_completion(status)]

    def _emit_completion(self, status: TestStatus) -> TestCompleted:
        event = TestCompleted(
            identity=self.current_test,
            status=status,
            message=os.linesep.join(self.message_lines),
        )
        self._log.debug("Test completed", identity=event.identity, status=status.value)
        self.current_test = None
        self.message_lines = []
        return event

    def _abort(self, line: str, reason: str) -> Malformed:
        self.aborted = True
        self._log.error("Protocol violation, ignoring remaining output", reason=reason, line=line)
        return Malformed(raw_line=line, reason=reason)


# 🔼⚙️
