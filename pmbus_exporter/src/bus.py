"""
I2C bus accessor for PMBus register reads.

Wraps ``smbus2`` so the rest of the exporter never touches the transport
directly.  Every read happens inside a *session* bound to one slave
address; the session hands out a :class:`BusHandle` with byte and word
read primitives and releases the underlying device on every exit path.

Two handle lifetimes are supported:

- **Per-session** (``persistent=False``): the device is opened, PEC is
  enabled, one or more reads are issued and the device is closed again.
  This matches the plain ``read_byte`` / ``read_word`` helpers below.
- **Persistent** (``persistent=True``): one ``SMBus`` is kept open for the
  accessor lifetime and guarded by a lock, so sessions remain exclusive.
  A handle that failed a transfer is dropped and reopened on next use.

All transport failures are wrapped exactly once into
:class:`~pmbus_exporter.src.errors.BusOpenError` or
:class:`~pmbus_exporter.src.errors.BusTransferError`.  There is no retry.

CHANGELOG:
- 2026-10-18: Round partial adapter-timeout units up
- 2026-10-14: Add persistent handle and adapter timeout options
- 2026-10-12: Initial creation

TODO:
- None
"""

from __future__ import annotations

import fcntl
import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from pmbus_exporter.src.errors import BusOpenError, BusTransferError
from smbus2 import SMBus

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Linux i2c-dev ioctls not exported by smbus2
# ---------------------------------------------------------------------------

I2C_TIMEOUT: int = 0x0702
"""Set the adapter timeout, in units of 10 ms."""

I2C_TENBIT: int = 0x0704
"""Select 10-bit (non-zero) or 7-bit (zero) slave addressing."""

MAX_7BIT_ADDRESS: int = 0x7F
MAX_10BIT_ADDRESS: int = 0x3FF


def _check_address(address: int) -> None:
    if not 0 <= address <= MAX_10BIT_ADDRESS:
        raise ValueError(f"I2C slave address out of range: 0x{address:X}")


def _check_command(command: int) -> None:
    if not 0 <= command <= 0xFF:
        raise ValueError(f"PMBus command byte out of range: 0x{command:X}")


# ---------------------------------------------------------------------------
# Handle
# ---------------------------------------------------------------------------


class BusHandle:
    """Read primitives for one slave address on an open bus.

    Only valid inside the :meth:`BusAccessor.session` that produced it.
    """

    def __init__(self, device: str, smbus: SMBus, address: int) -> None:
        self.device = device
        self.address = address
        self._smbus = smbus

    def read_byte(self, command: int) -> int:
        """Read one byte from register *command*."""
        _check_command(command)
        try:
            return self._smbus.read_byte_data(self.address, command)
        except OSError as exc:
            raise self._transfer_error("byte", command, exc) from exc

    def read_word(self, command: int) -> int:
        """Read one 16-bit word (SMBus low-byte-first order) from *command*."""
        _check_command(command)
        try:
            return self._smbus.read_word_data(self.address, command)
        except OSError as exc:
            raise self._transfer_error("word", command, exc) from exc

    def _transfer_error(
        self, kind: str, command: int, exc: OSError
    ) -> BusTransferError:
        return BusTransferError(
            f"{kind} read of command 0x{command:02X} from 0x{self.address:02X} "
            f"on {self.device} failed: {exc}",
            device=self.device,
            address=self.address,
            command=command,
            cause=exc,
        )


# ---------------------------------------------------------------------------
# Accessor
# ---------------------------------------------------------------------------


class BusAccessor:
    """Scoped access to one I2C bus device.

    Args:
        device_path: Path of the i2c-dev node, e.g. ``/dev/i2c-1``.
        pec: Enable SMBus packet error checking on the handle.
        persistent: Keep one handle open across sessions instead of
            reopening the device for every session.
        timeout_ms: Optional adapter timeout applied after opening.  The
            kernel counts in 10 ms units; partial units round up, so the
            adapter never gives up earlier than requested.
    """

    def __init__(
        self,
        device_path: str,
        *,
        pec: bool = True,
        persistent: bool = False,
        timeout_ms: int | None = None,
    ) -> None:
        if not device_path:
            raise ValueError("device_path must not be empty")
        self.device_path = device_path
        self._pec = pec
        self._persistent = persistent
        self._timeout_ms = timeout_ms
        self._lock = threading.Lock()
        self._smbus: SMBus | None = None
        self._ten_bit = False

    @property
    def persistent(self) -> bool:
        return self._persistent

    def __enter__(self) -> BusAccessor:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @contextmanager
    def session(self, address: int) -> Iterator[BusHandle]:
        """Acquire the bus for *address* and yield a :class:`BusHandle`.

        The lock is held for the whole session, so reads issued inside one
        session (e.g. a LINEAR16 mantissa/exponent pair) are never
        interleaved with another session.

        Raises:
            ValueError: If *address* is not a valid 7/10-bit address.
            BusOpenError: If the device cannot be opened or configured.
            BusTransferError: Propagated from reads on the handle.
        """
        _check_address(address)
        with self._lock:
            smbus = self._smbus if self._smbus is not None else self._open()
            keep = self._persistent
            try:
                self._select_addressing(smbus, address)
                yield BusHandle(self.device_path, smbus, address)
            except (BusOpenError, BusTransferError):
                # Never reuse a handle after a failed transfer.
                keep = False
                raise
            finally:
                if keep:
                    self._smbus = smbus
                else:
                    self._smbus = None
                    self._close_handle(smbus)

    def close(self) -> None:
        """Release the persistent handle, if any."""
        with self._lock:
            if self._smbus is not None:
                self._close_handle(self._smbus)
                self._smbus = None

    # -- internals --

    def _open(self) -> SMBus:
        try:
            smbus = SMBus(self.device_path)
        except OSError as exc:
            raise BusOpenError(
                f"Cannot open I2C device {self.device_path}: {exc}",
                device=self.device_path,
                cause=exc,
            ) from exc

        try:
            if self._pec:
                smbus.pec = 1
            if self._timeout_ms is not None:
                fcntl.ioctl(smbus.fd, I2C_TIMEOUT, -(-self._timeout_ms // 10))
        except OSError as exc:
            smbus.close()
            raise BusOpenError(
                f"Cannot configure I2C device {self.device_path}: {exc}",
                device=self.device_path,
                cause=exc,
            ) from exc

        # A freshly opened i2c-dev file always starts in 7-bit mode.
        self._ten_bit = False
        logger.debug("Opened I2C device %s (pec=%s)", self.device_path, self._pec)
        return smbus

    def _select_addressing(self, smbus: SMBus, address: int) -> None:
        want = address > MAX_7BIT_ADDRESS
        if want == self._ten_bit:
            return
        try:
            fcntl.ioctl(smbus.fd, I2C_TENBIT, 1 if want else 0)
        except OSError as exc:
            raise BusOpenError(
                f"Cannot switch {self.device_path} to "
                f"{'10' if want else '7'}-bit addressing: {exc}",
                device=self.device_path,
                address=address,
                cause=exc,
            ) from exc
        self._ten_bit = want

    def _close_handle(self, smbus: SMBus) -> None:
        smbus.close()
        logger.debug("Closed I2C device %s", self.device_path)


# ---------------------------------------------------------------------------
# One-shot helpers
# ---------------------------------------------------------------------------


def read_byte(device_path: str, address: int, command: int, *, pec: bool = True) -> int:
    """Open *device_path*, read one byte from *command* at *address*, close."""
    with BusAccessor(device_path, pec=pec) as bus, bus.session(address) as handle:
        return handle.read_byte(command)


def read_word(device_path: str, address: int, command: int, *, pec: bool = True) -> int:
    """Open *device_path*, read one word from *command* at *address*, close."""
    with BusAccessor(device_path, pec=pec) as bus, bus.session(address) as handle:
        return handle.read_word(command)
