#
# src/testwire/protocols.py
#
"""
Defines the contract between the run coordinator and its front end.
"""
from typing import Protocol, runtime_checkable

from testwire.exceptions import DiscoveryFailed
from testwire.models import DiscoveryResult, TestUpdate


@runtime_checkable
class TestEventSink(Protocol):
    """
    Receives the structured events a coordinator produces.

    Calls for one session arrive in subprocess output order and are never
    replayed.
    """

    def discovery_finished(self, result: DiscoveryResult | DiscoveryFailed) -> None:
        """
        Called once per discovery session.

        Args:
            result: The grouped tests, or the failure that ended the session.
        """
        ...

    def test_state(self, update: TestUpdate) -> None:
        """
        Called for every lifecycle change of a test.

        Args:
            update: The identity, its new outcome and any failure message.
        """
        ...


class NullSink:
    """Sink that drops every event; used when the caller only wants return values."""

    def discovery_finished(self, result: DiscoveryResult | DiscoveryFailed) -> None:
        pass

    def test_state(self, update: TestUpdate) -> None:
        pass

# 🔼⚙️
