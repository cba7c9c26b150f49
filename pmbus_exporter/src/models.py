"""
Pydantic models for measurement-point catalog files.

A catalog file is a JSON object with a ``points`` list; each entry maps
onto one :class:`~pmbus_exporter.src.registers.MeasurementPoint`.
Addresses and command bytes may be given as integers or as ``"0x.."``
strings::

    {
      "points": [
        {"module": "1", "metric": "fan_rpm", "address": "0x58",
         "command": "0x90", "encoding": "raw_word"},
        {"module": "1", "metric": "output_voltage", "address": "0x58",
         "command": "0x8B", "exponent_command": "0x20",
         "encoding": "linear16", "unit": "V"}
      ]
    }

CHANGELOG:
- 2026-10-14: Initial creation
"""

from __future__ import annotations

from typing import Literal

from pmbus_exporter.src.registers import MeasurementPoint
from pydantic import BaseModel, ConfigDict, field_validator


class PointSpec(BaseModel):
    """One catalog entry as written in a points file."""

    model_config = ConfigDict(extra="forbid")

    module: str
    metric: str
    address: int
    command: int
    encoding: Literal["raw_byte", "raw_word", "linear11", "linear16"]
    sensor: str | None = None
    exponent_command: int | None = None
    unit: str = ""
    valid_range: tuple[float, float] | None = None
    description: str = ""

    @field_validator("address", "command", "exponent_command", mode="before")
    @classmethod
    def _parse_int_literal(cls, v: object) -> object:
        """Accept ``"0x58"`` style strings alongside plain integers."""
        if isinstance(v, str):
            try:
                return int(v, 0)
            except ValueError:
                raise ValueError(f"not an integer literal: {v!r}") from None
        return v

    def to_point(self) -> MeasurementPoint:
        """Build the immutable catalog entry (runs its own validation)."""
        return MeasurementPoint(**self.model_dump())


class CatalogFile(BaseModel):
    """Top-level layout of a points file."""

    model_config = ConfigDict(extra="forbid")

    points: list[PointSpec]
