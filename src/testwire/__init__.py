#
# src/testwire/__init__.py
#
"""
testwire: drives line-protocol test executables for test-runner front ends.
"""
from importlib.metadata import PackageNotFoundError, version

from testwire.exceptions import (
    AlreadyRunningError,
    ConfigurationError,
    DecodeWarning,
    DiscoveryFailed,
    LaunchError,
    ProcessExitNonZero,
    ProtocolViolation,
    RunFailed,
    TestwireError,
)
from testwire.models import DiscoveryResult, RunReport, TestCase, TestUpdate
from testwire.protocols import TestEventSink
from testwire.runtime import ProcessSupervisor, RunCoordinator
from testwire.state import RunOutcome

try:
    __version__ = version("testwire")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

__all__ = [
    "AlreadyRunningError",
    "ConfigurationError",
    "DecodeWarning",
    "DiscoveryFailed",
    "DiscoveryResult",
    "LaunchError",
    "ProcessExitNonZero",
    "ProcessSupervisor",
    "ProtocolViolation",
    "RunCoordinator",
    "RunFailed",
    "RunOutcome",
    "RunReport",
    "TestCase",
    "TestEventSink",
    "TestUpdate",
    "TestwireError",
]

# 🔼⚙️
