"""
Token amount conversion and decimal-mismatch detection.

Some token contracts report a `decimals` value that does not match the
scale of the raw integers they emit (typically 18-decimal amounts with
metadata claiming 9). Amounts are converted exactly: integer part by
integer division, fractional part as a ratio, assembled as a Decimal.
"""

import logging
from decimal import Decimal, localcontext
from fractions import Fraction
from typing import Awaitable, Callable, Optional, Union

from wallet_analytics.models import TokenInfo


logger = logging.getLogger(__name__)


STANDARD_DECIMALS = 18

# Whole-token counts beyond this are treated as a decimals bug
IMPLAUSIBLE_SUPPLY = 10 ** 12
# ...unless re-scaling by 18 decimals brings the amount under this
PLAUSIBLE_SUPPLY_AT_18 = 10 ** 9

RawAmount = Union[int, str]


def _precision_for(raw: int, decimals: int) -> int:
    return len(str(abs(raw))) + decimals + 2


def raw_to_decimal(raw: RawAmount, decimals: int) -> Decimal:
    """
    Convert a raw integer amount to a token quantity without float loss.

    Args:
        raw: Integer amount in base units (int or decimal string)
        decimals: Token decimals (>= 0)

    Returns:
        Exact Decimal quantity
    """
    if decimals < 0:
        raise ValueError(f"decimals must be >= 0, got {decimals}")

    raw_int = int(raw) if raw not in (None, "") else 0
    if raw_int == 0:
        return Decimal(0)

    divisor = 10 ** decimals
    integer_part, remainder = divmod(raw_int, divisor)
    fraction = Fraction(remainder, divisor)

    # Denominator divides 10^decimals, so the division terminates exactly
    with localcontext() as ctx:
        ctx.prec = _precision_for(raw_int, decimals)
        return Decimal(integer_part) + Decimal(fraction.numerator) / Decimal(fraction.denominator)


def decimal_to_raw(amount: Decimal, decimals: int) -> int:
    """Inverse scaling of `raw_to_decimal`: quantity -> base units."""
    with localcontext() as ctx:
        ctx.prec = len(str(amount)) + decimals + 2
        return int(amount.scaleb(decimals))


def count_trailing_zeros(raw: RawAmount) -> int:
    digits = str(int(raw))
    if digits == "0":
        return 0
    return len(digits) - len(digits.rstrip("0"))


def detect_actual_decimals(raw: RawAmount, reported_decimals: int) -> int:
    """
    Guess the real decimals of a token from one sample raw amount.

    - reported 9 with >= 18 trailing zeros -> 18
    - raw / 10^reported > 10^12 whole tokens, but raw / 10^18 < 10^9 -> 18
    - otherwise the reported value stands
    """
    try:
        raw_int = int(raw)
    except (TypeError, ValueError):
        return reported_decimals

    if reported_decimals == 9 and count_trailing_zeros(raw_int) >= STANDARD_DECIMALS:
        return STANDARD_DECIMALS

    whole_tokens = raw_int // (10 ** reported_decimals)
    if whole_tokens > IMPLAUSIBLE_SUPPLY:
        if raw_int // (10 ** STANDARD_DECIMALS) < PLAUSIBLE_SUPPLY_AT_18:
            return STANDARD_DECIMALS

    return reported_decimals


MetadataLookup = Callable[[str], Awaitable[TokenInfo]]


class DecimalResolver:
    """
    Per-analysis cache of resolved token decimals.

    The first transfer seen for a token is the sample; the result is
    reused for every later transfer of that token.
    """

    def __init__(self, metadata_lookup: MetadataLookup) -> None:
        self._metadata_lookup = metadata_lookup
        self._resolved: dict[str, int] = {}

    def known(self, token_address: str) -> Optional[int]:
        return self._resolved.get(token_address.lower())

    async def resolve(self, token_address: str, sample_raw: RawAmount) -> int:
        key = token_address.lower()
        if key in self._resolved:
            return self._resolved[key]

        info = await self._metadata_lookup(key)
        actual = detect_actual_decimals(sample_raw, info.decimals)
        if actual != info.decimals:
            logger.warning(
                f"[decimals] Mismatch for {info.symbol} ({key}): "
                f"reported {info.decimals}, using {actual}"
            )
        self._resolved[key] = actual
        return actual

    def remember(self, token_address: str, decimals: int) -> None:
        """Pin decimals for a token without a metadata lookup."""
        self._resolved.setdefault(token_address.lower(), decimals)
