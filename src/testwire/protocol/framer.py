# src/testwire/protocol/framer.py

"""
Reassembles raw subprocess output chunks into complete text lines.
"""

import codecs
import re

import structlog

log = structlog.get_logger("protocol.framer")

_LINE_BREAKS = re.compile(r"[\r\n]+")


class LineFramer:
    """
    Sequential accumulator turning output fragments into complete lines.

    A chunk may end in the middle of a line or carry several lines at once.
    The last piece of every chunk is held back as the pending fragment until
    a later chunk (or ``flush``) proves it complete. Empty pieces are never
    emitted, so any fragmentation of the same stream yields the same lines.
    """

    def __init__(self, encoding: str = "utf-8"):
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._pending = ""

    @property
    def pending(self) -> str:
        return self._pending

    def feed(self, chunk: bytes | str) -> list[str]:
        """Consumes one chunk and returns the lines it completed."""
        text = self._decoder.decode(chunk) if isinstance(chunk, bytes) else chunk
        if not text:
            return []

        pieces = _LINE_BREAKS.split(text)
        pieces[0] = self._pending + pieces[0]
        self._pending = pieces.pop()
        return [piece for piece in pieces if piece]

    def flush(self) -> list[str]:
        """Emits the pending fragment as a final line, once."""
        tail = self._decoder.decode(b"", final=True)
        if tail:
            lines = self.feed(tail)
        else:
            lines = []
        if self._pending:
            log.debug("Flushing unterminated final line", length=len(self._pending))
            lines.append(self._pending)
            self._pending = ""
        return lines

    def reset(self) -> None:
        self._decoder.reset()
        self._pending = ""


# 🔼⚙️
