# src/testwire/models.py

"""
Attrs-based records produced by discovery and run sessions.
"""

from collections.abc import Iterator
from pathlib import Path

from attrs import define, field

from testwire.exceptions import DecodeWarning, TestwireError
from testwire.state import RunOutcome

IDENTITY_SEPARATOR = "::"


@define(frozen=True, slots=True)
class TestCase:
    """
    One test reported by an executable's discovery output.

    The identity is ``Fixture::Test`` and is unique within one executable.
    The source line is passed through exactly as the executable reported it
    (1-based).
    """

    __test__ = False

    identity: str
    executable: Path
    source_file: str
    source_line: int

    @property
    def fixture(self) -> str:
        return self.identity.split(IDENTITY_SEPARATOR, 1)[0]

    @property
    def name(self) -> str:
        return self.identity.split(IDENTITY_SEPARATOR, 1)[-1]


@define(slots=True)
class DiscoveryResult:
    """Output of one discovery session, grouped by fixture in first-seen order."""

    executable: Path
    fixtures: dict[str, list[TestCase]] = field(factory=dict)
    warnings: list[DecodeWarning] = field(factory=list)

    def add(self, test_case: TestCase) -> None:
        # dicts keep insertion order, so a fixture's position is fixed by its first test
        self.fixtures.setdefault(test_case.fixture, []).append(test_case)

    @property
    def tests(self) -> list[TestCase]:
        return [test for group in self.fixtures.values() for test in group]

    def __iter__(self) -> Iterator[TestCase]:
        return iter(self.tests)

    def __len__(self) -> int:
        return sum(len(group) for group in self.fixtures.values())


@define(frozen=True, slots=True)
class TestUpdate:
    """A single lifecycle change reported to the front end."""

    __test__ = False

    identity: str
    outcome: RunOutcome
    message: str = ""
    executable: Path | None = field(default=None, eq=False)


@define(slots=True)
class RunReport:
    """Summary of one run session against one executable."""

    executable: Path
    updates: list[TestUpdate] = field(factory=list)
    exit_code: int | None = None
    completed: bool = False
    cancelled: bool = False
    debugger_attached: bool = False
    error: TestwireError | None = None

    def outcomes(self) -> dict[str, RunOutcome]:
        """Final outcome per identity, in the order tests were first reported."""
        final: dict[str, RunOutcome] = {}
        for update in self.updates:
            final[update.identity] = update.outcome
        return final

    @property
    def failed(self) -> list[str]:
        return [identity for identity, outcome in self.outcomes().items() if outcome is RunOutcome.FAILED]


# 🔼⚙️
