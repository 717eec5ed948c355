#
# config/__init__.py
#
"""
Configuration handling sub-package for testwire.

Exports the loading function and core configuration models.
"""

from .loader import load_config
from .models import GlobalConfig, TargetConfig, TestwireConfig

__all__ = [
    "GlobalConfig",
    "TargetConfig",
    "TestwireConfig",
    "load_config",
]

# 🔼⚙️
