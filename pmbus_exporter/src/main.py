"""
Entrypoint for the PMBus exporter.

Parses the command line (flags mirror the environment variables in
:mod:`pmbus_exporter.src.config`), configures structured JSON logging,
builds the FastAPI application and serves it with uvicorn.

Usage:
    pmbus-exporter /dev/i2c-1
    pmbus-exporter -l 127.0.0.1 -p 9986 --failure-policy abort /dev/i2c-1
    PROMETHEUS_PMBUS_EXPORTER_DEVICE=/dev/i2c-1 pmbus-exporter

CHANGELOG:
- 2026-10-16: Serve through uvicorn instead of a bare WSGI server
- 2026-10-12: Initial creation

TODO:
- None
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any

import uvicorn
from pmbus_exporter.src import __version__
from pmbus_exporter.src.config import ExporterSettings
from pmbus_exporter.src.errors import CatalogError
from pydantic import ValidationError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Structured JSON logging setup
# ---------------------------------------------------------------------------


class JsonFormatter(logging.Formatter):
    """Minimal JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


def configure_logging(level: str = "INFO") -> None:
    """Install a JSON handler on stderr as the only root handler."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)


# ---------------------------------------------------------------------------
# Command line
# ---------------------------------------------------------------------------


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Every option defaults to ``None`` so that unset flags fall through to
    the environment in :class:`ExporterSettings`.
    """
    p = argparse.ArgumentParser(
        prog="pmbus-exporter",
        description="Prometheus exporter for PMBus power-supply telemetry",
    )
    p.add_argument(
        "device", nargs="?", help="I2C device to read from, e.g. /dev/i2c-1"
    )
    p.add_argument("-l", "--address", help="exporter bind address (default 0.0.0.0)")
    p.add_argument("-p", "--port", type=int, help="exporter port (default 9986)")
    p.add_argument(
        "--points-file", dest="points_file", help="JSON measurement-point catalog"
    )
    p.add_argument(
        "--failure-policy",
        dest="failure_policy",
        choices=("skip", "abort"),
        help="skip failed points or fail the whole scrape (default skip)",
    )
    p.add_argument("--log-level", dest="log_level", help="log level (default INFO)")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p.parse_args(argv)


def load_settings(args: argparse.Namespace) -> ExporterSettings:
    """Build settings from the environment, overridden by explicit flags."""
    overrides: dict[str, Any] = {
        key: value for key, value in vars(args).items() if value is not None
    }
    return ExporterSettings(**overrides)


def log_config_summary(settings: ExporterSettings) -> None:
    """Log the effective configuration at startup."""
    logger.info(
        "PMBus exporter starting with config: "
        "device=%s, address=%s, port=%s, points_file=%s, failure_policy=%s, "
        "persistent_handle=%s, pec=%s, bus_timeout_ms=%s, metric_prefix=%s",
        settings.device,
        settings.address,
        settings.port,
        settings.points_file,
        settings.failure_policy,
        settings.persistent_handle,
        settings.pec,
        settings.bus_timeout_ms,
        settings.metric_prefix,
    )


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


def main(argv: Sequence[str] | None = None) -> None:
    """Synchronous entrypoint for the exporter."""
    from pmbus_exporter.src.api import create_app

    args = parse_args(argv)
    try:
        settings = load_settings(args)
    except ValidationError as exc:
        sys.exit(f"pmbus-exporter: invalid configuration:\n{exc}")

    configure_logging(settings.log_level)
    log_config_summary(settings)

    try:
        app = create_app(settings)
    except CatalogError:
        logger.error("Cannot load measurement points", exc_info=True)
        sys.exit(1)

    uvicorn.run(app, host=settings.address, port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
