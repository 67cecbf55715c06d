"""Integer-pence helpers shared by the settlement services."""

from decimal import ROUND_HALF_UP, Decimal
from typing import Union

Number = Union[int, float, str, Decimal]


def round_half_up(value: Decimal) -> int:
    """Round to the nearest whole penny, halves away from zero."""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def to_decimal(value: Number) -> Decimal:
    # str() first so floats like 0.2 keep their printed value
    return value if isinstance(value, Decimal) else Decimal(str(value))


def pence_to_pounds(pence: int) -> str:
    """Format pence as a pound string, e.g. ``1250 -> "£12.50"``."""
    sign = "-" if pence < 0 else ""
    whole, part = divmod(abs(int(pence)), 100)
    return f"{sign}£{whole}.{part:02d}"
