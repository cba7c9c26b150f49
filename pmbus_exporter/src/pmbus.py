"""
PMBus numeric formats and register readers.

PMBus telemetry registers use two binary floating formats:

- **LINEAR11**: one 16-bit word; bits 15-11 hold a signed 5-bit exponent
  and bits 10-0 a signed 11-bit mantissa.  value = mantissa * 2**exponent.
- **LINEAR16**: an unsigned 16-bit mantissa read from the telemetry
  register, scaled by a signed 5-bit exponent taken from the low bits of
  a separate mode byte (``VOUT_MODE``).

The conversion helpers are pure.  The ``decode_*`` readers compose them
with :class:`~pmbus_exporter.src.bus.BusAccessor` sessions.

Every decoded value is an exact product ``m * 2**e`` with ``|m| < 2**16``
and ``-16 <= e <= 15``, so it is exactly representable as a 32-bit float.

CHANGELOG:
- 2026-10-18: Drop the unused PAGE command code
- 2026-10-13: Reject out-of-range raw fields with DecodeRangeError
- 2026-10-12: Initial creation

TODO:
- None
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from pmbus_exporter.src.errors import DecodeRangeError

if TYPE_CHECKING:
    from pmbus_exporter.src.bus import BusAccessor

# ---------------------------------------------------------------------------
# PMBus command codes (PMBus Part II, command summary)
# ---------------------------------------------------------------------------

VOUT_MODE: int = 0x20
READ_VIN: int = 0x88
READ_IIN: int = 0x89
READ_VOUT: int = 0x8B
READ_IOUT: int = 0x8C
READ_TEMPERATURE_1: int = 0x8D
READ_TEMPERATURE_2: int = 0x8E
READ_FAN_SPEED_1: int = 0x90
READ_POUT: int = 0x96
READ_PIN: int = 0x97

# ---------------------------------------------------------------------------
# Field layout
# ---------------------------------------------------------------------------

EXPONENT_BITS: int = 5
LINEAR11_MANTISSA_BITS: int = 11

_EXPONENT_MASK = (1 << EXPONENT_BITS) - 1  # 0x1F
_LINEAR11_MANTISSA_MASK = (1 << LINEAR11_MANTISSA_BITS) - 1  # 0x7FF


# ---------------------------------------------------------------------------
# Pure conversions
# ---------------------------------------------------------------------------


def twos_complement(value: int, bits: int) -> int:
    """Interpret the *bits*-wide pattern *value* as a signed integer.

    Returns ``value - 2**bits`` when the sign bit (``bits - 1``) is set,
    otherwise *value* unchanged.

    Raises:
        DecodeRangeError: If *value* does not fit in *bits* bits.
        ValueError: If *bits* is not positive.
    """
    if bits <= 0:
        raise ValueError(f"bit width must be positive, got {bits}")
    if not 0 <= value < (1 << bits):
        raise DecodeRangeError(f"value 0x{value:X} does not fit in {bits} bits")
    if value & (1 << (bits - 1)):
        return value - (1 << bits)
    return value


def linear11_to_float(word: int) -> float:
    """Decode a LINEAR11 word into its real value.

    >>> linear11_to_float(0x0001)
    1.0
    >>> linear11_to_float(0x2001)  # exponent 4, mantissa 1
    16.0
    """
    if not 0 <= word <= 0xFFFF:
        raise DecodeRangeError(f"LINEAR11 word out of range: 0x{word:X}")
    exponent = twos_complement(
        (word >> LINEAR11_MANTISSA_BITS) & _EXPONENT_MASK, EXPONENT_BITS
    )
    mantissa = twos_complement(
        word & _LINEAR11_MANTISSA_MASK, LINEAR11_MANTISSA_BITS
    )
    return float(mantissa) * 2.0**exponent


def linear16_to_float(mantissa: int, exponent_byte: int) -> float:
    """Decode a LINEAR16 mantissa with the exponent from a mode byte.

    Only the low five bits of *exponent_byte* carry the exponent; the
    upper bits (the VOUT_MODE mode selector) are masked off before sign
    extension.
    """
    if not 0 <= mantissa <= 0xFFFF:
        raise DecodeRangeError(f"LINEAR16 mantissa out of range: 0x{mantissa:X}")
    if not 0 <= exponent_byte <= 0xFF:
        raise DecodeRangeError(
            f"LINEAR16 exponent byte out of range: 0x{exponent_byte:X}"
        )
    exponent = twos_complement(exponent_byte & _EXPONENT_MASK, EXPONENT_BITS)
    return float(mantissa) * 2.0**exponent


# ---------------------------------------------------------------------------
# Bus-backed readers
# ---------------------------------------------------------------------------


def decode_raw(bus: BusAccessor, address: int, command: int) -> int:
    """Read *command* as a plain unsigned 16-bit word."""
    with bus.session(address) as handle:
        return handle.read_word(command)


def decode_raw_byte(bus: BusAccessor, address: int, command: int) -> int:
    """Read *command* as a plain unsigned byte."""
    with bus.session(address) as handle:
        return handle.read_byte(command)


def decode_linear11(bus: BusAccessor, address: int, command: int) -> float:
    """Read *command* and decode it as LINEAR11."""
    with bus.session(address) as handle:
        word = handle.read_word(command)
    return linear11_to_float(word)


def decode_linear16(
    bus: BusAccessor,
    address: int,
    mantissa_command: int,
    exponent_command: int,
) -> float:
    """Read a LINEAR16 mantissa and its exponent byte in one bus session."""
    with bus.session(address) as handle:
        mantissa = handle.read_word(mantissa_command)
        exponent_byte = handle.read_byte(exponent_command)
    return linear16_to_float(mantissa, exponent_byte)
