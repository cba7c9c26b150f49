"""
Telemetry walker -- one pass over the measurement-point catalog.

Visits every :class:`~pmbus_exporter.src.registers.MeasurementPoint` in
catalog order, reads and decodes it through the bus accessor, and records
an explicit per-point result.  The resulting :class:`CycleReport` leaves
the failure policy (publish partial results or fail the scrape) to the
caller.

Failure handling:

- A bus error or out-of-range value is captured on its point and logged
  as a warning; it never aborts the remaining points unless
  ``stop_on_error`` is set.
- ``stop_on_error=True`` stops at the first failed point; points after it
  are not evaluated and do not appear in the report.
- Anything else (programming errors) propagates to the caller.

CHANGELOG:
- 2026-10-15: Collect per-point results instead of raising on first error
- 2026-10-12: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from pmbus_exporter.src import pmbus
from pmbus_exporter.src.errors import BusError, DecodeRangeError, ExporterError
from pmbus_exporter.src.registers import (
    LINEAR11,
    LINEAR16,
    RAW_BYTE,
    RAW_WORD,
    MeasurementPoint,
)

if TYPE_CHECKING:
    from pmbus_exporter.src.bus import BusAccessor

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class PointResult:
    """Outcome of reading one measurement point.

    Exactly one of *value* and *error* is set.
    """

    point: MeasurementPoint
    value: float | None = None
    error: ExporterError | None = None

    def __post_init__(self) -> None:  # noqa: D105
        if (self.value is None) == (self.error is None):
            raise ValueError("PointResult needs exactly one of value or error")

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(slots=True)
class CycleReport:
    """Results of one walk, in visiting order.

    Attributes:
        started: Wall-clock start of the cycle (UTC).
        results: One :class:`PointResult` per visited point.
        duration_s: Monotonic duration of the walk in seconds.
        stopped_early: True if the walk stopped at a failure before the
            end of the catalog.
    """

    started: datetime
    results: list[PointResult] = field(default_factory=list)
    duration_s: float = 0.0
    stopped_early: bool = False

    @property
    def successes(self) -> list[PointResult]:
        return [r for r in self.results if r.ok]

    @property
    def failures(self) -> list[PointResult]:
        return [r for r in self.results if not r.ok]

    @property
    def ok(self) -> bool:
        """True when no visited point failed."""
        return not self.failures


# ---------------------------------------------------------------------------
# Single point
# ---------------------------------------------------------------------------


def read_point(bus: BusAccessor, point: MeasurementPoint) -> float:
    """Read and decode one measurement point.

    Raises:
        BusError: Propagated unchanged from the accessor.
        DecodeRangeError: If the decoded value is outside the point's
            ``valid_range``.
    """
    if point.encoding == RAW_WORD:
        value = float(pmbus.decode_raw(bus, point.address, point.command))
    elif point.encoding == RAW_BYTE:
        value = float(pmbus.decode_raw_byte(bus, point.address, point.command))
    elif point.encoding == LINEAR11:
        value = pmbus.decode_linear11(bus, point.address, point.command)
    elif point.encoding == LINEAR16:
        value = pmbus.decode_linear16(
            bus,
            point.address,
            point.command,
            point.exponent_command,  # type: ignore[arg-type]
        )
    else:
        raise ValueError(f"unsupported encoding '{point.encoding}'")

    if point.valid_range is not None:
        lo, hi = point.valid_range
        if not lo <= value <= hi:
            raise DecodeRangeError(
                f"{point.metric} on module {point.module}: decoded value "
                f"{value:.4g} outside valid range ({lo}, {hi})"
            )
    return value


# ---------------------------------------------------------------------------
# Full cycle
# ---------------------------------------------------------------------------


def walk(
    bus: BusAccessor,
    points: Iterable[MeasurementPoint],
    *,
    stop_on_error: bool = False,
) -> CycleReport:
    """Read every point in order and return the cycle report.

    Args:
        bus: Accessor for the bus the points live on.
        points: Catalog to walk, in visiting order.
        stop_on_error: Stop at the first failed point instead of
            continuing with the remaining points.
    """
    report = CycleReport(started=datetime.now(tz=UTC))
    t0 = time.monotonic()
    catalog = list(points)

    for idx, point in enumerate(catalog):
        try:
            value = read_point(bus, point)
        except (BusError, DecodeRangeError) as exc:
            logger.warning(
                "Failed to read %s (module=%s sensor=%s address=0x%02X "
                "command=0x%02X): %s",
                point.metric,
                point.module,
                point.sensor,
                point.address,
                point.command,
                exc,
            )
            report.results.append(PointResult(point=point, error=exc))
            if stop_on_error:
                report.stopped_early = idx < len(catalog) - 1
                break
            continue

        logger.debug(
            "Read %s module=%s sensor=%s -> %s %s",
            point.metric,
            point.module,
            point.sensor,
            value,
            point.unit,
        )
        report.results.append(PointResult(point=point, value=value))

    report.duration_s = time.monotonic() - t0
    logger.info(
        "Walk on %s finished: %d ok, %d failed, %.3fs%s",
        bus.device_path,
        len(report.successes),
        len(report.failures),
        report.duration_s,
        " (stopped early)" if report.stopped_early else "",
    )
    return report
