"""
Shared test fixtures for the PMBus exporter tests.

Provides:
- Environment isolation for ExporterSettings (all exporter env vars are
  removed and the working directory moved so no ``.env`` is picked up).
- ``fake_bus``: an in-memory stand-in for BusAccessor, pre-loaded with
  plausible register contents for both twins modules.

CHANGELOG:
- 2026-10-12: Initial creation
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

import pytest
from pmbus_exporter.src.errors import BusTransferError

_ALL_EXPORTER_ENV_VARS = (
    "PROMETHEUS_PMBUS_EXPORTER_DEVICE",
    "PROMETHEUS_PMBUS_EXPORTER_ADDRESS",
    "PROMETHEUS_PMBUS_EXPORTER_PORT",
    "PROMETHEUS_PMBUS_EXPORTER_POINTS_FILE",
    "PROMETHEUS_PMBUS_EXPORTER_FAILURE_POLICY",
    "PROMETHEUS_PMBUS_EXPORTER_PERSISTENT_HANDLE",
    "PROMETHEUS_PMBUS_EXPORTER_PEC",
    "PROMETHEUS_PMBUS_EXPORTER_BUS_TIMEOUT_MS",
    "PROMETHEUS_PMBUS_EXPORTER_METRIC_PREFIX",
    "PROMETHEUS_PMBUS_EXPORTER_LOG_LEVEL",
)

FAKE_DEVICE = "/dev/i2c-test"

# Register contents per module: (words, bytes).  Expected decoded values
# are noted next to each entry.
MODULE_REGISTERS: dict[int, tuple[dict[int, int], dict[int, int]]] = {
    0x58: (
        {
            0x90: 5400,  # fan_rpm 5400
            0x88: 0x6000,  # input_voltage 24576 * 2**-9 = 48.0
            0x89: 0xF006,  # input_current 6 * 2**-2 = 1.5
            0x97: 0x0096,  # input_power 150.0
            0x8B: 0x1800,  # output_voltage 6144 * 2**-9 = 12.0
            0x8C: 0xF029,  # output_current 41 * 2**-2 = 10.25
            0x96: 0x007B,  # output_power 123.0
            0x8D: 0xF847,  # temperature 1: 71 * 2**-1 = 35.5
            0x8E: 0xF850,  # temperature 2: 80 * 2**-1 = 40.0
        },
        {0x20: 0x17},  # VOUT_MODE: linear, exponent -9
    ),
    0x59: (
        {
            0x90: 5600,
            0x88: 0x6000,
            0x89: 0xF008,  # 2.0
            0x97: 0x00C8,  # 200.0
            0x8B: 0x1800,
            0x8C: 0xF030,  # 12.0
            0x96: 0x0090,  # 144.0
            0x8D: 0xF84C,  # 38.0
            0x8E: 0xF852,  # 41.0
        },
        {0x20: 0x17},
    ),
}


class FakeHandle:
    """Handle returned by :meth:`FakeBus.session`."""

    def __init__(self, bus: FakeBus, address: int) -> None:
        self._bus = bus
        self.address = address

    def _lookup(self, table: dict[tuple[int, int], int], command: int) -> int:
        key = (self.address, command)
        self._bus.reads.append(key)
        if key in self._bus.failing:
            raise BusTransferError(
                f"simulated NACK at 0x{self.address:02X}/0x{command:02X}",
                device=self._bus.device_path,
                address=self.address,
                command=command,
                cause=OSError(121, "Remote I/O error"),
            )
        return table[key]

    def read_word(self, command: int) -> int:
        return self._lookup(self._bus.words, command)

    def read_byte(self, command: int) -> int:
        return self._lookup(self._bus.bytes, command)


class FakeBus:
    """In-memory BusAccessor replacement.

    Attributes:
        words: ``{(address, command): word}``.
        bytes: ``{(address, command): byte}``.
        failing: ``(address, command)`` pairs whose reads raise
            :class:`BusTransferError`.
        reads: Every ``(address, command)`` read, in order.
    """

    def __init__(self, device_path: str = FAKE_DEVICE) -> None:
        self.device_path = device_path
        self.words: dict[tuple[int, int], int] = {}
        self.bytes: dict[tuple[int, int], int] = {}
        self.failing: set[tuple[int, int]] = set()
        self.reads: list[tuple[int, int]] = []
        self.sessions: list[int] = []
        self.closed = False

    @contextmanager
    def session(self, address: int) -> Iterator[FakeHandle]:
        self.sessions.append(address)
        yield FakeHandle(self, address)

    def close(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def _clean_exporter_env(monkeypatch: pytest.MonkeyPatch, tmp_path: str) -> None:
    """Remove all exporter env vars and isolate from .env files."""
    for var in _ALL_EXPORTER_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture()
def fake_bus() -> FakeBus:
    """A FakeBus loaded with both twins modules."""
    bus = FakeBus()
    for address, (words, bytes_) in MODULE_REGISTERS.items():
        for command, value in words.items():
            bus.words[(address, command)] = value
        for command, value in bytes_.items():
            bus.bytes[(address, command)] = value
    return bus


@pytest.fixture()
def empty_bus() -> FakeBus:
    """A FakeBus with no registers loaded."""
    return FakeBus()


@pytest.fixture()
def env_vars_full(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Set every exporter environment variable."""
    env = {
        "PROMETHEUS_PMBUS_EXPORTER_DEVICE": "/dev/i2c-3",
        "PROMETHEUS_PMBUS_EXPORTER_ADDRESS": "127.0.0.1",
        "PROMETHEUS_PMBUS_EXPORTER_PORT": "9100",
        "PROMETHEUS_PMBUS_EXPORTER_POINTS_FILE": "/etc/pmbus/points.json",
        "PROMETHEUS_PMBUS_EXPORTER_FAILURE_POLICY": "abort",
        "PROMETHEUS_PMBUS_EXPORTER_PERSISTENT_HANDLE": "false",
        "PROMETHEUS_PMBUS_EXPORTER_PEC": "false",
        "PROMETHEUS_PMBUS_EXPORTER_BUS_TIMEOUT_MS": "250",
        "PROMETHEUS_PMBUS_EXPORTER_METRIC_PREFIX": "psu",
        "PROMETHEUS_PMBUS_EXPORTER_LOG_LEVEL": "debug",
    }
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    return env


@pytest.fixture()
def env_vars_required_only(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Set only the device path; everything else falls back to defaults."""
    env = {"PROMETHEUS_PMBUS_EXPORTER_DEVICE": "/dev/i2c-1"}
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    return env
