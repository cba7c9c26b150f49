"""
Measurement-point catalog -- single source of truth for what gets polled.

A measurement point ties one PMBus telemetry register (slave address +
command byte, plus the exponent command for LINEAR16) to the Prometheus
metric and label values it is published under.  The default catalog
covers an FSP "twins" redundant supply: two modules at 0x58 and 0x59,
each with fan speed, input/output voltage, current and power, and two
temperature sensors.

Operators can replace the catalog with a JSON file (see
:func:`load_points` and :mod:`pmbus_exporter.src.models`).  The catalog is
built once at startup and never mutated.

References:
    - PMBus Power System Management Protocol Specification, Part II
    - https://gist.github.com/otya128/1784473224a80f3ae453e8667b5fe8e5

CHANGELOG:
- 2026-10-15: Read every module from its own slave address
- 2026-10-14: Load catalogs from JSON files
- 2026-10-12: Initial creation

TODO:
- None
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path

from pmbus_exporter.src import pmbus
from pmbus_exporter.src.errors import CatalogError
from pydantic import ValidationError

# ---------------------------------------------------------------------------
# Encodings and metrics
# ---------------------------------------------------------------------------

RAW_BYTE = "raw_byte"
RAW_WORD = "raw_word"
LINEAR11 = "linear11"
LINEAR16 = "linear16"

ENCODINGS: frozenset[str] = frozenset({RAW_BYTE, RAW_WORD, LINEAR11, LINEAR16})

METRIC_HELP: dict[str, str] = {
    "fan_rpm": "Speed of the fan",
    "input_voltage": "Input voltage from outlet",
    "input_current": "Input current (amp) from outlet",
    "input_power": "Power (W) being drawn from outlet",
    "output_voltage": "Voltage provided to PSU",
    "output_current": "Current (amp) provided to the main PSU",
    "output_power": "Power (W) being drawn by the PSU",
    "temperature": "Temperature",
}
"""Every publishable metric name (without prefix) and its help text."""

SENSOR_METRICS: frozenset[str] = frozenset({"temperature"})
"""Metrics that carry an extra ``sensor`` label."""


# ---------------------------------------------------------------------------
# Data definitions
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class MeasurementPoint:
    """Definition of one polled telemetry value.

    Attributes:
        module: Module identifier used as the ``module`` label.
        metric: Metric name without prefix; a key of :data:`METRIC_HELP`.
        address: I2C slave address of the module (7 or 10 bit).
        command: PMBus command byte holding the value (the mantissa for
            LINEAR16).
        encoding: One of :data:`ENCODINGS`.
        sensor: Sensor identifier for metrics in :data:`SENSOR_METRICS`,
            ``None`` otherwise.
        exponent_command: Command byte holding the LINEAR16 exponent.
        unit: Engineering unit of the decoded value.
        valid_range: Optional ``(min, max)`` for the decoded value.
        description: Free-text description.
    """

    module: str
    metric: str
    address: int
    command: int
    encoding: str
    sensor: str | None = None
    exponent_command: int | None = None
    unit: str = ""
    valid_range: tuple[float, float] | None = None
    description: str = ""

    def __post_init__(self) -> None:  # noqa: D105
        where = f"Point {self.metric}/{self.module}"
        if self.metric not in METRIC_HELP:
            raise ValueError(f"{where}: unknown metric '{self.metric}'")
        if self.encoding not in ENCODINGS:
            raise ValueError(f"{where}: unknown encoding '{self.encoding}'")
        if not 0 <= self.address <= 0x3FF:
            raise ValueError(f"{where}: address 0x{self.address:X} out of range")
        if not 0 <= self.command <= 0xFF:
            raise ValueError(f"{where}: command 0x{self.command:X} out of range")
        if (self.metric in SENSOR_METRICS) != (self.sensor is not None):
            raise ValueError(
                f"{where}: sensor label is required for "
                f"{sorted(SENSOR_METRICS)} and forbidden otherwise"
            )
        if self.encoding == LINEAR16:
            if self.exponent_command is None:
                raise ValueError(f"{where}: linear16 requires exponent_command")
            if not 0 <= self.exponent_command <= 0xFF:
                raise ValueError(
                    f"{where}: exponent_command 0x{self.exponent_command:X} "
                    "out of range"
                )
        elif self.exponent_command is not None:
            raise ValueError(f"{where}: exponent_command only applies to linear16")
        if self.valid_range is not None and self.valid_range[0] > self.valid_range[1]:
            raise ValueError(f"{where}: valid_range min exceeds max")

    def labels(self, bus: str) -> tuple[str, ...]:
        """Return the label values of this point on *bus*."""
        if self.sensor is None:
            return (bus, self.module)
        return (bus, self.module, self.sensor)


# ---------------------------------------------------------------------------
# Default catalog
# ---------------------------------------------------------------------------

MODULE_ADDRESSES: dict[str, int] = {
    "1": 0x58,
    "2": 0x59,
}
"""Module identifier -> PMBus slave address of the twins supply."""

TEMPERATURE_COMMANDS: dict[str, int] = {
    "1": pmbus.READ_TEMPERATURE_1,
    "2": pmbus.READ_TEMPERATURE_2,
}


def build_points(modules: Mapping[str, int]) -> list[MeasurementPoint]:
    """Build the standard per-module point list for *modules*.

    Points are returned grouped by module, in the order the walker visits
    them: fan, input voltage/current/power, output voltage/current/power,
    then the temperature sensors.
    """
    points: list[MeasurementPoint] = []
    for module, address in modules.items():
        points += [
            MeasurementPoint(
                module=module,
                metric="fan_rpm",
                address=address,
                command=pmbus.READ_FAN_SPEED_1,
                encoding=RAW_WORD,
                unit="RPM",
                description="Fan 1 speed",
            ),
            MeasurementPoint(
                module=module,
                metric="input_voltage",
                address=address,
                command=pmbus.READ_VIN,
                exponent_command=pmbus.VOUT_MODE,
                encoding=LINEAR16,
                unit="V",
                description="AC input voltage",
            ),
            MeasurementPoint(
                module=module,
                metric="input_current",
                address=address,
                command=pmbus.READ_IIN,
                encoding=LINEAR11,
                unit="A",
                description="AC input current",
            ),
            MeasurementPoint(
                module=module,
                metric="input_power",
                address=address,
                command=pmbus.READ_PIN,
                encoding=LINEAR11,
                unit="W",
                description="AC input power",
            ),
            MeasurementPoint(
                module=module,
                metric="output_voltage",
                address=address,
                command=pmbus.READ_VOUT,
                exponent_command=pmbus.VOUT_MODE,
                encoding=LINEAR16,
                unit="V",
                description="DC output voltage",
            ),
            MeasurementPoint(
                module=module,
                metric="output_current",
                address=address,
                command=pmbus.READ_IOUT,
                encoding=LINEAR11,
                unit="A",
                description="DC output current",
            ),
            MeasurementPoint(
                module=module,
                metric="output_power",
                address=address,
                command=pmbus.READ_POUT,
                encoding=LINEAR11,
                unit="W",
                description="DC output power",
            ),
        ]
        for sensor, command in TEMPERATURE_COMMANDS.items():
            points.append(
                MeasurementPoint(
                    module=module,
                    metric="temperature",
                    sensor=sensor,
                    address=address,
                    command=command,
                    encoding=LINEAR11,
                    unit="C",
                    description=f"Temperature sensor {sensor}",
                )
            )
    return points


DEFAULT_POINTS: tuple[MeasurementPoint, ...] = tuple(build_points(MODULE_ADDRESSES))
"""Catalog used when no points file is configured."""


# ---------------------------------------------------------------------------
# Loading and checks
# ---------------------------------------------------------------------------


def check_unique(points: Iterable[MeasurementPoint]) -> None:
    """Raise :class:`CatalogError` if two points share metric and labels."""
    seen: set[tuple[str, str, str | None]] = set()
    for point in points:
        key = (point.metric, point.module, point.sensor)
        if key in seen:
            raise CatalogError(
                f"Duplicate measurement point: metric={point.metric} "
                f"module={point.module} sensor={point.sensor}"
            )
        seen.add(key)


def load_points(path: str | Path) -> tuple[MeasurementPoint, ...]:
    """Load a measurement-point catalog from a JSON file.

    Raises:
        CatalogError: If the file cannot be read, is not valid JSON, does
            not match :class:`~pmbus_exporter.src.models.CatalogFile`, or
            contains duplicate points.
    """
    from pmbus_exporter.src.models import CatalogFile

    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise CatalogError(f"Cannot read points file {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise CatalogError(f"Points file {path} is not valid JSON: {exc}") from exc

    try:
        catalog = CatalogFile.model_validate(data)
        points = tuple(entry.to_point() for entry in catalog.points)
    except (ValidationError, ValueError) as exc:
        raise CatalogError(f"Invalid points file {path}: {exc}") from exc

    if not points:
        raise CatalogError(f"Points file {path} defines no measurement points")
    check_unique(points)
    return points
