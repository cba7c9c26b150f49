"""
Scrape integration: walk, publish, render.

:class:`Exporter` is what the HTTP layer calls once per ``/metrics``
request.  It serialises concurrent scrapes, runs one walk over the
catalog, writes the results into the metric sink and applies the
configured failure policy:

- ``skip``: failed points are dropped from the exposition for this
  scrape; the response still succeeds.
- ``abort``: the walk stops at the first failed point and the scrape
  fails with :class:`~pmbus_exporter.src.errors.ScrapeError`.  Values read
  before the failure are still written to the sink.

CHANGELOG:
- 2026-10-18: Record health inside the scrape lock
- 2026-10-15: Initial creation
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from typing import TYPE_CHECKING, Literal

from pmbus_exporter.src.errors import ScrapeError
from pmbus_exporter.src.health import HealthState
from pmbus_exporter.src.walker import CycleReport, walk

if TYPE_CHECKING:
    from pmbus_exporter.src.bus import BusAccessor
    from pmbus_exporter.src.metrics import MetricSink
    from pmbus_exporter.src.registers import MeasurementPoint

logger = logging.getLogger(__name__)

FailurePolicy = Literal["skip", "abort"]
FAILURE_POLICIES: tuple[str, ...] = ("skip", "abort")


class Exporter:
    """Runs one catalog walk per scrape and feeds the metric sink.

    Args:
        bus: Accessor for the I2C bus; its device path is the ``bus`` label.
        points: Measurement-point catalog, walked in order.
        sink: Metric sink receiving the decoded values.
        failure_policy: ``"skip"`` or ``"abort"`` (see module docstring).
        health: Health state updated after every walk.  A private one is
            created when omitted.
    """

    def __init__(
        self,
        *,
        bus: BusAccessor,
        points: Sequence[MeasurementPoint],
        sink: MetricSink,
        failure_policy: FailurePolicy = "skip",
        health: HealthState | None = None,
    ) -> None:
        if failure_policy not in FAILURE_POLICIES:
            raise ValueError(f"unknown failure policy '{failure_policy}'")
        self.bus = bus
        self.points = tuple(points)
        self.sink = sink
        self.failure_policy = failure_policy
        self.health = health if health is not None else HealthState()
        self._lock = threading.Lock()

    def collect(self) -> CycleReport:
        """Walk the catalog once and publish the results into the sink."""
        with self._lock:
            report = walk(
                self.bus,
                self.points,
                stop_on_error=self.failure_policy == "abort",
            )
            self.sink.publish(report, self.bus.device_path)
            self.health.record_scrape(report)
        return report

    def scrape(self) -> bytes:
        """Collect and return the exposition body.

        Raises:
            ScrapeError: Under the ``abort`` policy when a point failed.
        """
        report = self.collect()
        if self.failure_policy == "abort" and report.failures:
            first = report.failures[0]
            raise ScrapeError(
                f"scrape aborted at {first.point.metric} "
                f"(module {first.point.module}): {first.error}"
            ) from first.error
        return self.sink.render()
