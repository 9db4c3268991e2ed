"""
Decimal Conversion Tests.

============================================================
PURPOSE
============================================================
Exact raw-to-decimal conversion and detection of tokens whose
reported decimals do not match their raw amounts.

============================================================
"""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from wallet_analytics.decimals import (
    DecimalResolver,
    count_trailing_zeros,
    decimal_to_raw,
    detect_actual_decimals,
    raw_to_decimal,
)
from wallet_analytics.models import TokenInfo


# ============================================================
# CONVERSION
# ============================================================

class TestRawToDecimal:
    """Tests for exact conversion."""

    def test_eighteen_decimals_exact(self):
        """1 wei survives conversion without float loss."""
        assert raw_to_decimal(10 ** 18 + 1, 18) == Decimal("1.000000000000000001")

    def test_large_amounts(self):
        """Amounts beyond float precision stay exact."""
        raw = 123_456_789_012_345_678_901_234_567_890
        assert raw_to_decimal(raw, 18) == Decimal("123456789012.345678901234567890")

    def test_string_input(self):
        """Explorer strings are accepted."""
        assert raw_to_decimal("2500000", 6) == Decimal("2.5")

    def test_zero_and_empty(self):
        """Zero and empty values convert to zero."""
        assert raw_to_decimal(0, 18) == 0
        assert raw_to_decimal("", 6) == 0

    def test_negative_decimals_rejected(self):
        """Negative decimals are a caller error."""
        with pytest.raises(ValueError):
            raw_to_decimal(1, -1)

    def test_round_trip_across_decimals(self):
        """decimal_to_raw inverts raw_to_decimal for every common scale."""
        raw = 987_654_321_123_456_789
        for decimals in range(0, 19):
            assert decimal_to_raw(raw_to_decimal(raw, decimals), decimals) == raw

    def test_count_trailing_zeros(self):
        assert count_trailing_zeros(10 ** 18) == 18
        assert count_trailing_zeros(1230) == 1
        assert count_trailing_zeros(0) == 0


# ============================================================
# MISMATCH DETECTION
# ============================================================

class TestDetectActualDecimals:
    """Tests for decimal-mismatch detection."""

    def test_nine_with_eighteen_trailing_zeros(self):
        """Reported 9 with >= 18 trailing zeros resolves to 18."""
        assert detect_actual_decimals(5 * 10 ** 18, 9) == 18

    def test_nine_with_few_trailing_zeros_stays(self):
        """A genuine 9-decimal amount is left alone."""
        assert detect_actual_decimals(1_234_567_891, 9) == 9

    def test_implausible_supply_rescaled(self):
        """Whole-token count > 10^12 that is plausible at 18 decimals -> 18."""
        raw = 5 * 10 ** 20 + 1  # 5e14 whole tokens at 6 decimals, 500 at 18
        assert detect_actual_decimals(raw, 6) == 18

    def test_implausible_even_at_eighteen_stays(self):
        """If 18 decimals is also implausible, the reported value stands."""
        raw = 10 ** 30
        assert detect_actual_decimals(raw, 6) == 6

    def test_normal_amount_unchanged(self):
        """Ordinary USDC amount keeps 6 decimals."""
        assert detect_actual_decimals(1_500_000_000, 6) == 6

    def test_unparseable_raw(self):
        assert detect_actual_decimals("not-a-number", 6) == 6


# ============================================================
# RESOLVER
# ============================================================

class TestDecimalResolver:
    """Tests for the per-analysis resolver."""

    @pytest.mark.asyncio
    async def test_resolves_once_per_token(self):
        """First sample decides; later calls use the cached value."""
        lookup = AsyncMock(return_value=TokenInfo("0xtoken", "BAD", 9))
        resolver = DecimalResolver(lookup)

        first = await resolver.resolve("0xTOKEN", 7 * 10 ** 18)
        second = await resolver.resolve("0xtoken", 123)

        assert first == 18
        assert second == 18
        lookup.assert_awaited_once_with("0xtoken")
        assert resolver.known("0xtoken") == 18

    @pytest.mark.asyncio
    async def test_remember_skips_lookup(self):
        """Pinned decimals are returned without metadata lookup."""
        lookup = AsyncMock()
        resolver = DecimalResolver(lookup)
        resolver.remember("0xtoken", 6)

        assert await resolver.resolve("0xtoken", 1) == 6
        lookup.assert_not_awaited()
