from __future__ import annotations

import os
import sys
from typing import Protocol, cast


class ReconfigurableIO(Protocol):
    def reconfigure(self, *, encoding: str, errors: str) -> None: ...


def configure_utf8_console() -> bool:
    """Ensure stdin/stdout/stderr use UTF-8 encoding on Windows consoles.

    Returns whether stdin can be relied on to carry UTF-8 (without a byte order
    mark) into child processes. Callers capture the result once at startup and
    pass it to every ``GitProcess`` as ``GitProcessSettings.stdin_encoding_ok``.

    Always True on non-Windows platforms, where there is nothing to configure.
    """
    if os.name != "nt":
        return True

    stdin_ok = True
    for stream_name in ("stdin", "stdout", "stderr"):
        stream = getattr(sys, stream_name, None)
        if stream is None or not callable(getattr(stream, "reconfigure", None)):
            continue
        try:
            cast(ReconfigurableIO, stream).reconfigure(
                encoding="utf-8", errors="replace"
            )
        except (AttributeError, OSError, ValueError):
            # A redirected or detached handle (e.g. when running as a service)
            # cannot be reconfigured. Only stdin matters for git invocations.
            if stream_name == "stdin":
                stdin_ok = False
    return stdin_ok
