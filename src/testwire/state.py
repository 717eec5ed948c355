# src/testwire/state.py
#
"""
Defines the test outcome enumeration and the mutable session state owned by a
RunCoordinator.
"""

from datetime import UTC, datetime
from enum import Enum, auto
from pathlib import Path

import structlog
from attrs import field, mutable

log: structlog.stdlib.BoundLogger = structlog.get_logger("state")


class RunOutcome(Enum):
    """Lifecycle states a test passes through during a run."""

    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def is_final(self) -> bool:
        return self is not RunOutcome.RUNNING


OUTCOME_EMOJI_MAP = {
    RunOutcome.RUNNING: "🔄",
    RunOutcome.PASSED: "✅",
    RunOutcome.FAILED: "❌",
    RunOutcome.SKIPPED: "⏭️",
}


class SessionKind(Enum):
    """Which protocol mode a session speaks."""

    DISCOVERY = auto()
    RUN = auto()


@mutable(slots=True)
class SessionState:
    """
    Bookkeeping for the single session a coordinator may have active.

    Only the coordinator that owns this object mutates it. ``open_test`` is
    the identity last reported as running and not yet completed.
    """

    kind: SessionKind = field()
    executable: Path = field()
    started_at: datetime = field(factory=lambda: datetime.now(UTC))
    open_test: str | None = field(default=None)
    cancel_requested: bool = field(default=False)
    timed_out: bool = field(default=False)
    killed_after_completion: bool = field(default=False)
    updates_emitted: int = field(default=0)

    def __attrs_post_init__(self):
        log.debug(
            "Session state created",
            kind=self.kind.name,
            executable=str(self.executable),
        )

    def record(self, identity: str, outcome: RunOutcome) -> None:
        """Tracks the open test as updates flow to the front end."""
        self.updates_emitted += 1
        if outcome is RunOutcome.RUNNING:
            self.open_test = identity
        elif self.open_test == identity:
            self.open_test = None

    @property
    def elapsed(self) -> float:
        return (datetime.now(UTC) - self.started_at).total_seconds()


# 🔼⚙️
