"""
Money conversion between Questrade major units and YNAB milliunits.

Currency Systems:
- Questrade reports balances as decimal amounts in major units ("1234.56")
- YNAB uses milliunits: 1000 milliunits = $1.00

Key Principles:
- Never use floating-point arithmetic for currency amounts
- Milliunits -> major units is exact (division by 1000 in Decimal)
- Major units -> milliunits rounds half-to-even at the third decimal place,
  so any amount with up to three decimals converts exactly
"""

from __future__ import annotations

from decimal import ROUND_HALF_EVEN, Decimal

from questrade_ynab.models.accounts import MILLIUNITS_PER_UNIT

MILLIUNIT = Decimal(1) / MILLIUNITS_PER_UNIT  # 0.001


def quantize_major(amount: Decimal) -> Decimal:
    """Round a major-unit amount to the milliunit scale (half-even)."""
    return amount.quantize(MILLIUNIT, rounding=ROUND_HALF_EVEN)


def to_milliunits(amount: Decimal) -> int:
    """
    Convert a major-unit amount to YNAB milliunits.

    Example:
        to_milliunits(Decimal("45.99")) -> 45990
        to_milliunits(Decimal("0.0005")) -> 0  # half-even
    """
    return int(quantize_major(amount) * MILLIUNITS_PER_UNIT)


def from_milliunits(milliunits: int) -> Decimal:
    """
    Convert YNAB milliunits to major units.

    Example:
        from_milliunits(-45990) -> Decimal("-45.99")
    """
    return Decimal(milliunits) / MILLIUNITS_PER_UNIT


def format_amount(amount: Decimal | None) -> str:
    """Dollar string for display: ``$1,234.56``, ``-$5.00``, ``N/A``."""
    if amount is None:
        return "N/A"
    cents = amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_EVEN)
    sign = "-" if cents < 0 else ""
    return f"{sign}${abs(cents):,.2f}"


def format_change(amount: Decimal) -> str:
    """Signed dollar string for a delta: ``+$50.00``, ``-$12.30``."""
    if amount > 0:
        return "+" + format_amount(amount)
    return format_amount(amount)
