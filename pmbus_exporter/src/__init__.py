"""
PMBus power-supply exporter package.

Reads telemetry from PMBus power modules over a Linux I2C bus, decodes the
LINEAR11 / LINEAR16 register encodings, and serves the values as Prometheus
gauges on every scrape.

CHANGELOG:
- 2026-10-12: Initial creation

TODO:
- None
"""

__version__ = "0.1.0"
