"""
Structured trace sink on top of the standard logging module.

Provides activity spans (``Tracer.start_activity``) and leveled records that
carry key/value metadata. Metadata is rendered into the message text and also
attached to the ``LogRecord`` as ``record.metadata`` so handlers can emit it
as structured data.

Example:
    tracer = Tracer()
    with tracer.start_activity("TryGetCredential") as activity:
        ...
        activity.stop({"Success": True})
"""

from __future__ import annotations

import logging
import time
from types import TracebackType
from typing import Any, Mapping


EventMetadata = dict[str, Any]


def _format_metadata(metadata: Mapping[str, Any] | None) -> str:
    if not metadata:
        return ""
    return " [" + ", ".join(f"{key}={value!r}" for key, value in metadata.items()) + "]"


class Tracer:
    """Emits trace events for one component through a logger."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger("scalar_git")

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    def _emit(
        self,
        level: int,
        message: str,
        metadata: Mapping[str, Any] | None,
        activity: str | None = None,
    ) -> None:
        if not self._logger.isEnabledFor(level):
            return
        self._logger.log(
            level,
            message + _format_metadata(metadata),
            extra={"metadata": dict(metadata or {}), "activity": activity},
        )

    def related_info(
        self, message: str, metadata: Mapping[str, Any] | None = None
    ) -> None:
        self._emit(logging.INFO, message, metadata)

    def related_warning(
        self, message: str, metadata: Mapping[str, Any] | None = None
    ) -> None:
        self._emit(logging.WARNING, message, metadata)

    def related_error(
        self, message: str, metadata: Mapping[str, Any] | None = None
    ) -> None:
        self._emit(logging.ERROR, message, metadata)

    def start_activity(self, name: str, level: int = logging.INFO) -> "Activity":
        return Activity(self, name, level)


class Activity:
    """A timed span. Stops itself on exit if the caller did not stop it."""

    def __init__(self, tracer: Tracer, name: str, level: int) -> None:
        self._tracer = tracer
        self.name = name
        self._level = level
        self._start = time.monotonic()
        self._stopped = False
        tracer._emit(logging.DEBUG, f"{name} started", None, activity=name)

    def __enter__(self) -> "Activity":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool:
        if not self._stopped:
            self.stop(None)
        # Do not suppress exceptions
        return False

    def related_warning(
        self, message: str, metadata: Mapping[str, Any] | None = None
    ) -> None:
        self._tracer._emit(logging.WARNING, message, metadata, activity=self.name)

    def stop(self, metadata: Mapping[str, Any] | None) -> None:
        if self._stopped:
            return
        self._stopped = True
        elapsed_ms = (time.monotonic() - self._start) * 1000.0
        payload: EventMetadata = dict(metadata or {})
        payload["DurationMs"] = round(elapsed_ms, 1)
        self._tracer._emit(self._level, f"{self.name} stopped", payload, self.name)
