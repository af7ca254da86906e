from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

ZERO = Decimal("0")
CENT = Decimal("0.01")


def coerce_amount(amount: Decimal | float | int | str) -> Decimal:
    if isinstance(amount, Decimal):
        return amount
    return Decimal(str(amount))


def round_cents(amount: Decimal | float | int | str) -> Decimal:
    return coerce_amount(amount).quantize(CENT, rounding=ROUND_HALF_UP)
