"""
money.py — Integer-cent helpers.

Inside the balance core every amount is an int number of cents. Decimal only
exists at the two edges of the system:

  - storage: NUMERIC(12, 2) columns come back as Decimal → to_cents()
  - API:     response schemas turn cents back into Decimal → from_cents(),
             and the JSON provider writes Decimal as a string.

No float is ever involved.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")

# One minor currency unit. A balance with abs(value) <= TOLERANCE_CENTS is
# treated as settled; a transfer must exceed it to be worth emitting.
TOLERANCE_CENTS = 1


def to_cents(amount: Decimal | int | str) -> int:
    """
    Converts a monetary amount to integer cents.

    Values with more than two decimal places are rounded half-up. NUMERIC(12, 2)
    never produces them, but some drivers (SQLite) hand back Decimals with
    trailing float noise such as Decimal("33.3300000000").
    """
    value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    return int(value.quantize(CENT, rounding=ROUND_HALF_UP) * 100)


def from_cents(cents: int) -> Decimal:
    """Converts integer cents back to a two-place Decimal (e.g. 3000 → 30.00)."""
    return (Decimal(cents) / 100).quantize(CENT)


def is_settled(cents: int, tolerance_cents: int = TOLERANCE_CENTS) -> bool:
    """True when a balance is within tolerance of zero."""
    return abs(cents) <= tolerance_cents
