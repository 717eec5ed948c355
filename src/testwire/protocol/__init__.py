#
# src/testwire/protocol/__init__.py
#
"""
Line framing and grammar decoding for the test executable's stdout protocol.
"""
from .decoder import DiscoveryDecoder, RunDecoder, decode_discovery_line
from .events import (
    Header,
    Malformed,
    MessageLine,
    ProtocolEvent,
    ProtocolVersion,
    RunComplete,
    TestCompleted,
    TestSkipped,
    TestStarted,
    TestStatus,
)
from .framer import LineFramer

__all__ = [
    "DiscoveryDecoder",
    "Header",
    "LineFramer",
    "Malformed",
    "MessageLine",
    "ProtocolEvent",
    "ProtocolVersion",
    "RunComplete",
    "RunDecoder",
    "TestCompleted",
    "TestSkipped",
    "TestStarted",
    "TestStatus",
    "decode_discovery_line",
]

# 🔼⚙️
