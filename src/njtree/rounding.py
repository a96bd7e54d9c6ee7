import math
from decimal import Decimal, ROUND_HALF_UP


def round_half_up(value: float, digits: int) -> float:
    """
    Round ``value`` to ``digits`` fraction digits, halves away from zero.

    The float's shortest decimal form is rounded, so ``1.235`` becomes
    ``1.24`` even though its binary value is slightly below 1.235.
    Non-finite values are returned unchanged.
    """
    value = float(value)
    if not math.isfinite(value):
        return value
    quantum = Decimal(1).scaleb(-digits)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))
