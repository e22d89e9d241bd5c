"""Incremental splitting of a raw byte stream into lines."""

from __future__ import annotations

NEWLINE = b"\n"


class LineBuffer:
    """Pending bytes of one pipe, split on ``\\n`` as chunks arrive.

    Incomplete trailing bytes stay buffered until more data arrives or the
    stream ends and :meth:`flush` hands them out as a final line.
    """

    __slots__ = ("_pending",)

    def __init__(self) -> None:
        self._pending = bytearray()

    def __bool__(self) -> bool:
        return bool(self._pending)

    def feed(self, chunk: bytes) -> list[str]:
        """Append ``chunk`` and return every complete line, in order."""

        if not chunk:
            return []
        # Pending bytes never hold a newline, so only the new chunk is searched.
        offset = len(self._pending)
        self._pending.extend(chunk)
        cut = chunk.rfind(NEWLINE)
        if cut < 0:
            return []
        cut += offset
        complete = bytes(self._pending[:cut])
        del self._pending[: cut + 1]
        return [_decode(raw) for raw in complete.split(NEWLINE)]

    def flush(self) -> str | None:
        """Return the unterminated remainder as a line, or None when empty."""

        if not self._pending:
            return None
        remainder = bytes(self._pending)
        self._pending.clear()
        return _decode(remainder)


def _decode(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace")
