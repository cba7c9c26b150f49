"""
Exception hierarchy for the PMBus exporter.

Bus-level failures are wrapped once in the accessor and carry the
underlying ``OSError`` as ``cause``; everything above the accessor lets
them propagate unchanged until the walker records them per point.

CHANGELOG:
- 2026-10-12: Initial creation
"""

from __future__ import annotations


class ExporterError(Exception):
    """Base class for all exporter errors."""


class BusError(ExporterError):
    """A transfer on the I2C bus could not be completed.

    Attributes:
        device: Bus device path (e.g. ``/dev/i2c-1``).
        address: Slave address, or ``None`` when the failure happened
            before any slave was selected.
        command: PMBus command byte, or ``None`` for open failures.
        cause: The underlying exception raised by the transport.
    """

    def __init__(
        self,
        message: str,
        *,
        device: str,
        address: int | None = None,
        command: int | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.device = device
        self.address = address
        self.command = command
        self.cause = cause


class BusOpenError(BusError):
    """The bus device could not be opened or configured."""


class BusTransferError(BusError):
    """A register read failed (no-acknowledge, timeout, PEC mismatch)."""


class DecodeRangeError(ExporterError):
    """A raw field or decoded value is outside its allowed range."""


class CatalogError(ExporterError):
    """A measurement-point catalog file is missing or malformed."""


class ScrapeError(ExporterError):
    """A scrape cycle failed under the ``abort`` failure policy."""
