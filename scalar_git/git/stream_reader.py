from __future__ import annotations

import logging
import threading
import warnings
from typing import Callable, TextIO


logger = logging.getLogger(__name__)


class StreamDrainer:
    """Dedicated reader that drains one of a process's output streams.

    Keeping both stdout and stderr drained on their own threads is what stops
    git from blocking on a full pipe while the caller waits for it to exit.
    Every line (newline removed) is passed to ``on_line``. If ``on_line``
    raises, the failure is recorded in ``handler_error`` and the stream keeps
    draining without calling it again.
    """

    def __init__(
        self,
        stream: TextIO,
        name: str,
        on_line: Callable[[str], None] | None,
    ) -> None:
        self._stream = stream
        self._name = name
        self._on_line = on_line
        self.handler_error: BaseException | None = None
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        self._thread = threading.Thread(
            target=self.run, name=f"GitDrain-{self._name}", daemon=True
        )
        self._thread.start()

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the stream to reach EOF. Returns False if still draining."""
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def run(self) -> None:
        try:
            for line in self._stream:
                if line.endswith("\n"):
                    line = line[:-1]
                if self._on_line is None or self.handler_error is not None:
                    continue
                try:
                    self._on_line(line)
                except Exception as e:
                    logger.debug(f"{self._name} line handler failed: {e!r}")
                    self.handler_error = e
        except (ValueError, OSError) as e:
            # Closed file descriptors are a normal result of killing the process.
            if "closed file" not in str(e) and "Bad file descriptor" not in str(e):
                warnings.warn(f"{self._name} reader encountered error: {e}")
        finally:
            try:
                self._stream.close()
            except (ValueError, OSError) as err:
                warnings.warn(f"{self._name} reader failed to close stream: {err}")
