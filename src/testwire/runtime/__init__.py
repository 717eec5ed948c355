#
# src/testwire/runtime/__init__.py
#
"""
Process supervision and session coordination for testwire.
"""
from .coordinator import RunCoordinator, group_by_executable
from .supervisor import ProcessSupervisor

__all__ = [
    "ProcessSupervisor",
    "RunCoordinator",
    "group_by_executable",
]

# 🔼⚙️
