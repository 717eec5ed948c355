# src/testwire/paths.py

"""
Path helpers for front ends presenting discovered tests.
"""

from pathlib import Path, PurePath

from testwire.config.models import TargetConfig
from testwire.models import TestCase


def resolve_source_path(test_case: TestCase, target: TargetConfig) -> Path:
    """
    Returns the source file of ``test_case`` as an absolute path.

    Executables usually report source files relative to the directory they
    were compiled in, so relative paths are resolved against the target's
    build directory when one is configured and its working directory
    otherwise.
    """
    source = PurePath(test_case.source_file)
    if source.is_absolute():
        return Path(source)
    base = target.build_directory or target.cwd
    return Path(base) / source


def editor_line(test_case: TestCase) -> int:
    """Zero-based line number for editors that count from zero."""
    return max(test_case.source_line - 1, 0)

# 🔼⚙️
