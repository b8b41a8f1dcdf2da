"""Abuse log sinks for rate limit offenses.

Writes are best-effort: a sink must never raise into the request path or
block the limiter decision.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)


def format_abuse_line(key: str, offense_count: int, *, at: datetime | None = None) -> str:
    """Render one abuse log line: ``<ISO timestamp> | <key> | offense: <n>``.

    The timestamp is UTC with millisecond precision and a ``Z`` suffix.
    """
    moment = (at or datetime.now(timezone.utc)).astimezone(timezone.utc)
    timestamp = moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return f"{timestamp} | {key} | offense: {offense_count}\n"


class AbstractAbuseSink(ABC):
    """Destination for offense records."""

    @abstractmethod
    def record(self, key: str, offense_count: int) -> None:
        raise NotImplementedError

    def close(self) -> None:
        """Flush pending writes and release resources."""


class NullAbuseSink(AbstractAbuseSink):
    """Sink that discards every record."""

    def record(self, key: str, offense_count: int) -> None:
        return None


class FileAbuseLogSink(AbstractAbuseSink):
    """Append-only abuse log file written from a background thread.

    ``record`` only enqueues the line; a single worker thread performs the
    directory creation and append so writes stay ordered. Filesystem errors
    are logged at debug level and dropped.

    ``close`` drains pending writes and stops the worker. A later ``record``
    starts a fresh worker, so one sink can outlive several app lifespans.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._executor: ThreadPoolExecutor | None = None
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def record(self, key: str, offense_count: int) -> None:
        line = format_abuse_line(key, offense_count)
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="abuse-log")
            self._executor.submit(self._write, line)

    def _write(self, line: str) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.debug("abuse_log.mkdir_failed", extra={"error_msg": str(exc)})
        try:
            with self._path.open("a", encoding="utf-8") as fh:
                fh.write(line)
        except OSError as exc:
            logger.debug(
                "abuse_log.write_failed",
                extra={"path": str(self._path), "error_msg": str(exc)},
            )

    def close(self) -> None:
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)
