"""
Exporter configuration loaded from environment variables.

Uses Pydantic BaseSettings for automatic env var loading and validation.
Every field is read from ``PROMETHEUS_PMBUS_EXPORTER_<FIELD>`` (or a
``.env`` file); command-line flags parsed in :mod:`pmbus_exporter.src.main`
are passed as init kwargs and take precedence over the environment.

CHANGELOG:
- 2026-10-18: Type failure_policy as the scrape policy literal
- 2026-10-16: Add failure policy, persistent handle and bus timeout
- 2026-10-12: Initial creation

TODO:
- None
"""

import ipaddress
import logging

from pmbus_exporter.src.scrape import FAILURE_POLICIES, FailurePolicy
from pydantic import field_validator
from pydantic_settings import BaseSettings

ENV_PREFIX = "PROMETHEUS_PMBUS_EXPORTER_"


class ExporterSettings(BaseSettings):
    """PMBus exporter configuration.

    Attributes:
        device: I2C bus device path (e.g. ``/dev/i2c-1``).  Required.
        address: IP address the HTTP server binds to.
        port: TCP port the HTTP server listens on.
        points_file: Optional JSON measurement-point catalog; the built-in
            twins-supply catalog is used when unset.
        failure_policy: ``skip`` publishes partial results when a point
            fails, ``abort`` fails the whole scrape.
        persistent_handle: Keep the bus device open between reads.
        pec: Enable SMBus packet error checking.
        bus_timeout_ms: Optional I2C adapter timeout in milliseconds.
        metric_prefix: Prefix for every exported metric name.
        log_level: Root log level name.
    """

    device: str
    address: str = "0.0.0.0"
    port: int = 9986
    points_file: str | None = None
    failure_policy: FailurePolicy = "skip"
    persistent_handle: bool = True
    pec: bool = True
    bus_timeout_ms: int | None = None
    metric_prefix: str = "fsp_twins_exporter"
    log_level: str = "INFO"

    @field_validator("device")
    @classmethod
    def device_must_not_be_empty(cls, v: str) -> str:
        """Reject an empty device path."""
        if not v.strip():
            raise ValueError("DEVICE must be a non-empty I2C device path")
        return v

    @field_validator("address")
    @classmethod
    def address_must_be_ip(cls, v: str) -> str:
        """Validate the bind address is a literal IPv4/IPv6 address."""
        try:
            ipaddress.ip_address(v)
        except ValueError:
            raise ValueError(f"ADDRESS must be an IP address (got: '{v}')") from None
        return v

    @field_validator("port")
    @classmethod
    def port_must_be_valid(cls, v: int) -> int:
        """Validate TCP port is in valid range."""
        if v < 1 or v > 65535:
            raise ValueError("PORT must be between 1 and 65535")
        return v

    @field_validator("failure_policy", mode="before")
    @classmethod
    def failure_policy_must_be_known(cls, v: object) -> object:
        if isinstance(v, str):
            v = v.lower()
        if v not in FAILURE_POLICIES:
            raise ValueError("FAILURE_POLICY must be 'skip' or 'abort'")
        return v

    @field_validator("bus_timeout_ms")
    @classmethod
    def bus_timeout_must_cover_one_tick(cls, v: int | None) -> int | None:
        """The kernel counts adapter timeouts in 10 ms units."""
        if v is not None and v < 10:
            raise ValueError("BUS_TIMEOUT_MS must be >= 10")
        return v

    @field_validator("log_level")
    @classmethod
    def log_level_must_be_known(cls, v: str) -> str:
        v = v.upper()
        if not isinstance(logging.getLevelName(v), int):
            raise ValueError(f"LOG_LEVEL '{v}' is not a logging level")
        return v

    model_config = {
        "env_prefix": ENV_PREFIX,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }
