"""Line-oriented scanning of git output.

Both the credential protocol (``username=...``) and config listings
(``key=value``) are parsed through ``LineScanner`` so the two paths share one
definition of what a line is.
"""

from __future__ import annotations

from typing import Iterator


class LineScanner:
    """Iterates the lines of a block of git output.

    Lines are split on ``\\n`` only and have a single trailing ``\\r``
    trimmed. A final fragment that is not newline-terminated is still yielded
    by iteration but is never used to answer ``value_for``: a value is only
    trusted once git finished writing its line.
    """

    def __init__(self, text: str | None) -> None:
        self._text = text or ""

    def _raw_lines(self) -> Iterator[tuple[str, bool]]:
        start = 0
        text = self._text
        while start < len(text):
            end = text.find("\n", start)
            if end < 0:
                yield text[start:], False
                return
            yield text[start:end], True
            start = end + 1

    def __iter__(self) -> Iterator[str]:
        for line, _terminated in self._raw_lines():
            yield line[:-1] if line.endswith("\r") else line

    def non_empty(self) -> Iterator[str]:
        for line in self:
            if line:
                yield line

    def value_for(self, prefix: str) -> str | None:
        """Return the text following the first occurrence of ``prefix``.

        The value runs up to the end of that line. Returns None when the
        prefix does not occur or its line was not newline-terminated.
        """
        if not prefix:
            return None
        for line, terminated in self._raw_lines():
            index = line.find(prefix)
            if index < 0:
                continue
            if not terminated:
                return None
            value = line[index + len(prefix) :]
            return value[:-1] if value.endswith("\r") else value
        return None
