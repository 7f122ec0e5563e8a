"""Newline framing for the stdio transport.

Turns an arbitrarily chunked byte stream into complete lines. A line is
only emitted once its terminating ``\\n`` has arrived; the trailing partial
line is kept for the next chunk. UTF-8 sequences split across chunks are
reassembled by an incremental decoder.
"""

import codecs


class LineFramer:
    """Accumulates stdout chunks and yields complete, non-empty lines."""

    def __init__(self, encoding: str = "utf-8"):
        self._encoding = encoding
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._buffer = ""

    @property
    def pending(self) -> str:
        """Undelivered partial line."""
        return self._buffer

    def feed(self, chunk: bytes | str) -> list[str]:
        """Append a chunk and return every line it completes, in order.

        Args:
            chunk: Raw bytes from the pipe, or already-decoded text

        Returns:
            Complete lines with surrounding whitespace (including ``\\r``)
            removed; blank lines are skipped
        """
        if isinstance(chunk, bytes):
            chunk = self._decoder.decode(chunk)
        if not chunk:
            return []

        self._buffer += chunk
        if "\n" not in chunk:
            return []

        *lines, self._buffer = self._buffer.split("\n")
        return [stripped for stripped in (line.strip() for line in lines) if stripped]

    def reset(self) -> None:
        """Drop any partial line (connection teardown)."""
        self._buffer = ""
        self._decoder = codecs.getincrementaldecoder(self._encoding)(errors="replace")
