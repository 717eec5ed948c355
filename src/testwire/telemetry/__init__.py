#
# src/testwire/telemetry/__init__.py
#
"""
Logging setup and shared logger types for testwire.
"""
from .logger import StructLogger, setup_logging

__all__ = [
    "StructLogger",
    "setup_logging",
]

# 🔼⚙️
