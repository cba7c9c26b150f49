"""
Prometheus metric sink for decoded PMBus telemetry.

Owns a dedicated ``CollectorRegistry`` with one labeled gauge per metric
name in :data:`~pmbus_exporter.src.registers.METRIC_HELP` plus two scrape
bookkeeping gauges.  Values are written point by point, so anything set
before a later failure stays in the registry.

Exposed series (``<prefix>`` defaults to ``fsp_twins_exporter``):

- ``<prefix>_<metric>{bus, module}`` for fan, voltage, current and power.
- ``<prefix>_temperature{bus, module, sensor}``.
- ``<prefix>_scrape_duration_seconds{bus}``: duration of the last walk.
- ``<prefix>_scrape_errors{bus}``: failed points in the last walk.

CHANGELOG:
- 2026-10-15: Drop series of failed points instead of serving stale values
- 2026-10-12: Initial creation
"""

from __future__ import annotations

import contextlib
import logging
from typing import TYPE_CHECKING

from pmbus_exporter.src.registers import METRIC_HELP, SENSOR_METRICS
from prometheus_client import CollectorRegistry, Gauge, generate_latest

if TYPE_CHECKING:
    from pmbus_exporter.src.registers import MeasurementPoint
    from pmbus_exporter.src.walker import CycleReport

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "fsp_twins_exporter"

_MODULE_LABELS = ("bus", "module")
_SENSOR_LABELS = ("bus", "module", "sensor")


class MetricSink:
    """Gauge registry keyed by metric name and label tuple.

    Args:
        prefix: Metric name prefix.
        registry: Registry to register the gauges in.  A fresh one is
            created when omitted, keeping the process-wide default
            registry (and its process/platform collectors) out of the
            exposition.
    """

    def __init__(
        self,
        prefix: str = DEFAULT_PREFIX,
        registry: CollectorRegistry | None = None,
    ) -> None:
        self.prefix = prefix
        self.registry = registry if registry is not None else CollectorRegistry()
        self._gauges: dict[str, Gauge] = {
            metric: Gauge(
                f"{prefix}_{metric}",
                help_text,
                _SENSOR_LABELS if metric in SENSOR_METRICS else _MODULE_LABELS,
                registry=self.registry,
            )
            for metric, help_text in METRIC_HELP.items()
        }
        self._duration = Gauge(
            f"{prefix}_scrape_duration_seconds",
            "Duration of the last PMBus walk in seconds",
            ["bus"],
            registry=self.registry,
        )
        self._errors = Gauge(
            f"{prefix}_scrape_errors",
            "Number of measurement points that failed in the last walk",
            ["bus"],
            registry=self.registry,
        )

    def _gauge(self, point: MeasurementPoint) -> Gauge:
        try:
            return self._gauges[point.metric]
        except KeyError:
            raise ValueError(
                f"No gauge registered for metric '{point.metric}'"
            ) from None

    def set(self, point: MeasurementPoint, bus: str, value: float) -> None:
        """Set the gauge of *point* on *bus* to *value*."""
        self._gauge(point).labels(*point.labels(bus)).set(value)

    def clear(self, point: MeasurementPoint, bus: str) -> None:
        """Remove the series of *point* on *bus*, if present."""
        with contextlib.suppress(KeyError):
            self._gauge(point).remove(*point.labels(bus))

    def publish(self, report: CycleReport, bus: str) -> None:
        """Write a walk's results: set successes, drop failed series."""
        for result in report.results:
            if result.ok:
                self.set(result.point, bus, result.value)  # type: ignore[arg-type]
            else:
                self.clear(result.point, bus)
        self._duration.labels(bus).set(report.duration_s)
        self._errors.labels(bus).set(len(report.failures))

    def render(self) -> bytes:
        """Return the registry in Prometheus text exposition format."""
        return generate_latest(self.registry)
