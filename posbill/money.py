from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

CENT = Decimal("0.01")

# Numeric(10, 2) upper bound
MAX_AMOUNT = Decimal("99999999.99")


def to_money(value: Any) -> Decimal:
    """Coerce a number or numeric string to a 2-place Decimal (half-up)."""
    if isinstance(value, bool):
        raise InvalidOperation("booleans are not amounts")
    if isinstance(value, float):
        value = repr(value)
    return Decimal(str(value).strip()).quantize(CENT, rounding=ROUND_HALF_UP)


def money_str(value: Optional[Decimal]) -> Optional[str]:
    if value is None:
        return None
    return str(Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP))
