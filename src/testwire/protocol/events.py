# src/testwire/protocol/events.py

"""
The closed set of events the run decoder can produce.
"""

from enum import Enum
from typing import TypeAlias

from attrs import define


class ProtocolVersion(Enum):
    """
    Run grammar spoken by the executable.

    EXPLICIT executables terminate every test with a ``Test Complete:`` line
    and are asked for it with ``--adapter_info``. IMPLICIT executables end a
    test when the next control line arrives.
    """

    EXPLICIT = "explicit"
    IMPLICIT = "implicit"


class TestStatus(Enum):
    __test__ = False

    PASSED = "passed"
    FAILED = "failed"

    @classmethod
    def parse(cls, text: str) -> "TestStatus":
        return cls.PASSED if text.strip() == "passed" else cls.FAILED


@define(frozen=True, slots=True)
class Header:
    """The ``Running N test cases...`` preamble."""

    text: str


@define(frozen=True, slots=True)
class TestStarted:
    __test__ = False

    identity: str


@define(frozen=True, slots=True)
class TestSkipped:
    __test__ = False

    identity: str


@define(frozen=True, slots=True)
class MessageLine:
    text: str


@define(frozen=True, slots=True)
class TestCompleted:
    """A test finished; ``message`` holds its collected message lines."""

    __test__ = False

    identity: str
    status: TestStatus
    message: str


@define(frozen=True, slots=True)
class RunComplete:
    pass


@define(frozen=True, slots=True)
class Malformed:
    """A line the grammar does not allow here. The session stops decoding."""

    raw_line: str
    reason: str


ProtocolEvent: TypeAlias = (
    Header | TestStarted | TestSkipped | MessageLine | TestCompleted | RunComplete | Malformed
)


# 🔼⚙️
