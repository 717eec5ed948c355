# tests/conftest.py

"""Shared fixtures: fake test executables that replay canned protocol output."""

import logging
import os
import stat
import sys
import textwrap
from collections.abc import Callable
from pathlib import Path

import pytest
import structlog

from testwire.config import TargetConfig
from testwire.exceptions import DiscoveryFailed
from testwire.models import DiscoveryResult, TestUpdate
from testwire.protocol.events import ProtocolVersion

DISCOVERY_OUTPUT = (
    "Math::Adds,tests/math.cpp,10\n"
    "Math::Divides,tests/math.cpp,20\n"
    "Strings::Concat,tests/strings.cpp,5\n"
)

RUN_OUTPUT = (
    "Running 3 test cases...\n"
    "Test: Math::Adds\n"
    "Test Complete: passed\n"
    "Test: Math::Divides\n"
    "    @21 CHECK: expected 2, got 3\n"
    "    @22 CHECK: division by zero\n"
    "Test Complete: failed\n"
    "Skip: Strings::Concat\n"
    "Complete.\n"
    "    Passed:  1\n"
    "    Failed:  1\n"
    "    Skipped: 1\n"
)

_SCRIPT = """\
#!{python}
import os
import sys
import time

args = sys.argv[1:]
with open({calls!r}, "a", encoding="utf-8") as calls:
    calls.write(" ".join(args) + "\\n")

if "--discover_tests" in args:
    sys.stdout.write({discovery!r})
    sys.stdout.flush()
    sys.exit({discovery_exit})

sys.stdout.write({run!r})
sys.stdout.flush()
if {env_var!r}:
    sys.stdout.write(os.environ.get({env_var!r}, "<unset>"))
    sys.stdout.flush()
time.sleep({hang})
sys.exit({run_exit})
"""


class FakeExecutable:
    """A script standing in for a compiled test executable."""

    def __init__(self, path: Path, calls_path: Path):
        self.path = path
        self.calls_path = calls_path

    @property
    def calls(self) -> list[list[str]]:
        if not self.calls_path.exists():
            return []
        return [line.split() for line in self.calls_path.read_text(encoding="utf-8").splitlines()]


@pytest.fixture
def make_executable(tmp_path: Path) -> Callable[..., FakeExecutable]:
    """Factory writing an executable script that replays canned protocol output."""
    counter = {"n": 0}

    def _make(
        discovery: str = DISCOVERY_OUTPUT,
        run: str = RUN_OUTPUT,
        discovery_exit: int = 0,
        run_exit: int = 0,
        hang: float = 0,
        env_var: str = "",
        name: str | None = None,
    ) -> FakeExecutable:
        counter["n"] += 1
        stem = name or f"fake_tests_{counter['n']}"
        path = tmp_path / stem
        calls_path = tmp_path / f"{stem}.calls"
        path.write_text(
            _SCRIPT.format(
                python=sys.executable,
                calls=str(calls_path),
                discovery=discovery,
                discovery_exit=discovery_exit,
                run=run,
                run_exit=run_exit,
                hang=hang,
                env_var=env_var,
            ),
            encoding="utf-8",
        )
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return FakeExecutable(path, calls_path)

    return _make


@pytest.fixture
def make_target() -> Callable[..., TargetConfig]:
    def _make(fake: FakeExecutable, **overrides) -> TargetConfig:
        overrides.setdefault("protocol", ProtocolVersion.EXPLICIT)
        return TargetConfig(executable=fake.path, **overrides)

    return _make


class RecordingSink:
    """TestEventSink that keeps everything it receives."""

    def __init__(self):
        self.updates: list[TestUpdate] = []
        self.discoveries: list[DiscoveryResult | DiscoveryFailed] = []

    def discovery_finished(self, result: DiscoveryResult | DiscoveryFailed) -> None:
        self.discoveries.append(result)

    def test_state(self, update: TestUpdate) -> None:
        self.updates.append(update)

    @property
    def pairs(self) -> list[tuple[str, str]]:
        return [(update.identity, update.outcome.value) for update in self.updates]


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def config_file(tmp_path: Path, make_executable) -> Path:
    """A config file with one target pointing at a fake executable."""
    fake = make_executable(name="unit_tests")
    path = tmp_path / "testwire.conf"
    path.write_text(
        textwrap.dedent(
            f"""
            [global]
            log_level = "ERROR"

            [targets.unit]
            executable = "{fake.path.name}"
            build_directory = "build"

            [targets.unit.environment]
            TESTWIRE_FAKE = "1"
            """
        ),
        encoding="utf-8",
    )
    return path


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in list(os.environ):
        if name.startswith("TESTWIRE_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def missing_executable(tmp_path: Path) -> FakeExecutable:
    """An executable path that does not exist."""
    return FakeExecutable(tmp_path / "missing_tests", tmp_path / "missing_tests.calls")


@pytest.fixture(autouse=True)
def _reset_logging():
    """Drops handlers bound to streams that CliRunner closes after each invoke."""
    yield
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    structlog.reset_defaults()
