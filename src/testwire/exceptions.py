# src/testwire/exceptions.py

"""
Exception hierarchy for testwire.

Every error raised by the package derives from TestwireError so front ends
can catch the whole family in one place.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from testwire.models import RunReport


class TestwireError(Exception):
    """Base class for all testwire errors."""

    __test__ = False  # keep pytest from collecting the class


class ConfigurationError(TestwireError):
    """Raised when the configuration file is missing, malformed or invalid."""

    def __init__(self, message: str, path: str | None = None):
        self.path = path
        full_message = message
        if path:
            full_message += f" (Config: '{path}')"
        super().__init__(full_message)


class SessionError(TestwireError):
    """Base class for errors tied to one protocol session against an executable."""

    def __init__(
        self,
        message: str,
        executable: str | None = None,
        details: Exception | None = None,
    ):
        self.executable = executable
        self.details = details
        full_message = message
        if executable:
            full_message += f" (Executable: '{executable}')"
        super().__init__(full_message)
        if details and hasattr(self, "add_note"):
            self.add_note(f"Original error: {type(details).__name__}: {details}")


class LaunchError(SessionError):
    """The operating system refused to create the test process."""

    pass


class AlreadyRunningError(SessionError):
    """A session is already active; the new request was rejected."""

    pass


class ProcessExitNonZero(SessionError):
    """The test process exited with a nonzero code."""

    def __init__(self, exit_code: int, executable: str | None = None):
        self.exit_code = exit_code
        super().__init__(f"Process exited with code {exit_code}", executable=executable)


class ProtocolViolation(SessionError):
    """A line arrived that the protocol does not allow in the current state."""

    def __init__(self, reason: str, line: str, executable: str | None = None):
        self.reason = reason
        self.line = line
        super().__init__(f"{reason}: {line!r}", executable=executable)


class DecodeWarning(TestwireError):
    """A discovery line did not have the expected shape and was skipped."""

    def __init__(self, reason: str, line: str):
        self.reason = reason
        self.line = line
        super().__init__(f"{reason}: {line!r}")


class DiscoveryFailed(SessionError):
    """A discovery session did not produce a usable result."""

    pass


class RunFailed(SessionError):
    """A run session ended without a well-formed final state."""

    def __init__(
        self,
        message: str,
        executable: str | None = None,
        details: Exception | None = None,
        report: "RunReport | None" = None,
    ):
        self.report = report
        super().__init__(message, executable=executable, details=details)


# 🔼⚙️
