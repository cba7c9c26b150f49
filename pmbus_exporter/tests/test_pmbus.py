"""
Tests for PMBus numeric formats and register readers.

Verifies two's complement sign extension, LINEAR11 and LINEAR16 decoding
(including the most negative field values and VOUT_MODE masking), range
rejection, and that the bus-backed readers issue the right reads.

CHANGELOG:
- 2026-10-12: Initial creation

TODO:
- None
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from pmbus_exporter.src.errors import BusTransferError, DecodeRangeError
from pmbus_exporter.src.pmbus import (
    READ_FAN_SPEED_1,
    READ_VOUT,
    VOUT_MODE,
    decode_linear11,
    decode_linear16,
    decode_raw,
    decode_raw_byte,
    linear11_to_float,
    linear16_to_float,
    twos_complement,
)

if TYPE_CHECKING:
    from conftest import FakeBus


def _linear11(mantissa: int, exponent: int) -> int:
    """Encode signed *mantissa* / *exponent* into a LINEAR11 word."""
    return ((exponent & 0x1F) << 11) | (mantissa & 0x7FF)


# ===========================================================================
# twos_complement
# ===========================================================================


class TestTwosComplement:
    """Sign extension for arbitrary bit widths."""

    @pytest.mark.parametrize("bits", [5, 11])
    def test_reencoding_reproduces_every_pattern(self, bits: int) -> None:
        """Masking the signed result back to n bits yields the input."""
        for v in range(1 << bits):
            assert twos_complement(v, bits) & ((1 << bits) - 1) == v

    @pytest.mark.parametrize("bits", [5, 11])
    def test_zero_is_zero(self, bits: int) -> None:
        assert twos_complement(0, bits) == 0

    @pytest.mark.parametrize("bits", [5, 11])
    def test_most_negative_value(self, bits: int) -> None:
        """Only the sign bit set decodes to -2**(n-1)."""
        assert twos_complement(1 << (bits - 1), bits) == -(1 << (bits - 1))

    @pytest.mark.parametrize("bits", [5, 11])
    def test_largest_positive_value(self, bits: int) -> None:
        top = (1 << (bits - 1)) - 1
        assert twos_complement(top, bits) == top

    def test_all_ones_is_minus_one(self) -> None:
        assert twos_complement(0x1F, 5) == -1
        assert twos_complement(0x7FF, 11) == -1

    def test_result_range(self) -> None:
        values = {twos_complement(v, 5) for v in range(32)}
        assert min(values) == -16
        assert max(values) == 15

    def test_value_too_wide_raises(self) -> None:
        with pytest.raises(DecodeRangeError):
            twos_complement(0x20, 5)

    def test_negative_input_raises(self) -> None:
        with pytest.raises(DecodeRangeError):
            twos_complement(-1, 5)

    def test_non_positive_width_raises(self) -> None:
        with pytest.raises(ValueError):
            twos_complement(0, 0)


# ===========================================================================
# LINEAR11
# ===========================================================================


class TestLinear11:
    """LINEAR11: 5-bit signed exponent, 11-bit signed mantissa."""

    def test_zero_word(self) -> None:
        assert linear11_to_float(0x0000) == 0.0

    def test_mantissa_one_exponent_zero(self) -> None:
        assert linear11_to_float(_linear11(1, 0)) == 1.0

    def test_mantissa_minus_one_exponent_zero(self) -> None:
        word = _linear11(-1, 0)
        assert word == 0x07FF
        assert linear11_to_float(word) == -1.0

    def test_mantissa_one_exponent_four(self) -> None:
        assert linear11_to_float(_linear11(1, 4)) == 16.0

    def test_negative_exponent(self) -> None:
        # 6 * 2**-2
        assert linear11_to_float(0xF006) == 1.5

    def test_most_negative_mantissa(self) -> None:
        assert linear11_to_float(_linear11(-1024, 0)) == -1024.0

    def test_most_negative_exponent(self) -> None:
        assert linear11_to_float(_linear11(1, -16)) == 2.0**-16

    def test_extremes(self) -> None:
        assert linear11_to_float(_linear11(1023, 15)) == 1023 * 2.0**15
        assert linear11_to_float(_linear11(-1024, 15)) == -1024 * 2.0**15

    def test_temperature_reading(self) -> None:
        # 71 * 2**-1
        assert linear11_to_float(0xF847) == 35.5

    def test_word_out_of_range_raises(self) -> None:
        with pytest.raises(DecodeRangeError):
            linear11_to_float(0x10000)


# ===========================================================================
# LINEAR16
# ===========================================================================


class TestLinear16:
    """LINEAR16: unsigned mantissa, exponent from the low 5 bits of a byte."""

    def test_mantissa_100_exponent_minus_two(self) -> None:
        exponent_byte = -2 & 0x1F  # 0x1E
        assert linear16_to_float(100, exponent_byte) == 25.0

    def test_mantissa_is_unsigned(self) -> None:
        assert linear16_to_float(0xFFFF, 0) == 65535.0

    def test_upper_mode_bits_are_masked(self) -> None:
        """VOUT_MODE bits 7-5 (mode selector) do not affect the exponent."""
        assert linear16_to_float(100, 0xE0 | 0x1E) == 25.0
        assert linear16_to_float(100, 0x40 | 0x1E) == 25.0

    def test_most_negative_exponent(self) -> None:
        # 0x10 -> exponent -16
        assert linear16_to_float(0x8000, 0x10) == 0.5

    def test_typical_vout_mode(self) -> None:
        # 0x17: exponent -9, 12 V rail
        assert linear16_to_float(0x1800, 0x17) == 12.0

    def test_mantissa_out_of_range_raises(self) -> None:
        with pytest.raises(DecodeRangeError):
            linear16_to_float(0x10000, 0)

    def test_exponent_byte_out_of_range_raises(self) -> None:
        with pytest.raises(DecodeRangeError):
            linear16_to_float(1, 0x100)


# ===========================================================================
# Bus-backed readers
# ===========================================================================


class TestDecodeReaders:
    """decode_* compose the accessor with the pure conversions."""

    def test_decode_raw_passes_word_through(self, fake_bus: FakeBus) -> None:
        assert decode_raw(fake_bus, 0x58, READ_FAN_SPEED_1) == 5400
        assert fake_bus.reads == [(0x58, READ_FAN_SPEED_1)]

    def test_decode_raw_byte(self, fake_bus: FakeBus) -> None:
        assert decode_raw_byte(fake_bus, 0x58, VOUT_MODE) == 0x17

    def test_decode_linear11(self, empty_bus: FakeBus) -> None:
        empty_bus.words[(0x40, 0x8C)] = _linear11(1, 4)
        assert decode_linear11(empty_bus, 0x40, 0x8C) == 16.0

    def test_decode_linear16_reads_pair_in_one_session(
        self, fake_bus: FakeBus
    ) -> None:
        assert decode_linear16(fake_bus, 0x59, READ_VOUT, VOUT_MODE) == 12.0
        assert fake_bus.sessions == [0x59]
        assert fake_bus.reads == [(0x59, READ_VOUT), (0x59, VOUT_MODE)]

    def test_decode_linear16_spec_example(self, empty_bus: FakeBus) -> None:
        empty_bus.words[(0x58, 0x8B)] = 100
        empty_bus.bytes[(0x58, 0x20)] = 0x1E
        assert decode_linear16(empty_bus, 0x58, 0x8B, 0x20) == 25.0

    def test_bus_errors_propagate_unchanged(self, fake_bus: FakeBus) -> None:
        fake_bus.failing.add((0x58, VOUT_MODE))
        with pytest.raises(BusTransferError) as exc_info:
            decode_linear16(fake_bus, 0x58, READ_VOUT, VOUT_MODE)
        assert exc_info.value.command == VOUT_MODE
        assert isinstance(exc_info.value.cause, OSError)
