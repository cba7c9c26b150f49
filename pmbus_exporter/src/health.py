"""
Scrape health tracking for the exporter.

Keeps the outcome of the most recent walk in memory so ``GET /health``
can report whether the bus is answering without triggering a new walk.

Fields:
- last_scrape_ts: ISO timestamp of the most recent walk.
- last_scrape_ok: Whether every visited point succeeded.
- last_failed_points: Number of failed points in that walk.
- last_error: Message of the first failure, or ``None``.

CHANGELOG:
- 2026-10-16: Initial creation

TODO:
- None
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pmbus_exporter.src.walker import CycleReport


class HealthState:
    """Thread-safe record of the last scrape outcome."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._last_scrape_ts: str | None = None
        self._last_scrape_ok: bool | None = None
        self._last_failed_points: int = 0
        self._last_error: str | None = None

    def record_scrape(self, report: CycleReport) -> None:
        """Record the outcome of a finished walk."""
        failures = report.failures
        with self._lock:
            self._last_scrape_ts = report.started.isoformat()
            self._last_scrape_ok = report.ok
            self._last_failed_points = len(failures)
            self._last_error = str(failures[0].error) if failures else None

    def snapshot(self) -> dict[str, Any]:
        """Return the health fields as a JSON-serialisable dict."""
        with self._lock:
            return {
                "status": "ok",
                "last_scrape_ts": self._last_scrape_ts,
                "last_scrape_ok": self._last_scrape_ok,
                "last_failed_points": self._last_failed_points,
                "last_error": self._last_error,
            }
