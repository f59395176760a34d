# Overview: Exact fixed-point money helpers; amounts are Decimal in Python and integer cents at rest.

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

from .validation import ValidationError


CENT = Decimal("0.01")
ZERO = Decimal("0.00")

# Maximum single payment: 999,999.99
MAX_AMOUNT = Decimal("999999.99")


def quantize(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def parse_amount(raw: Any) -> Decimal:
    """
    Coerce client input into an exact Decimal without rounding.

    Accepts int, Decimal, float (through its shortest repr) or a plain
    numeric string. Booleans, NaN, infinities and scientific notation
    are rejected.
    """
    if raw is None or isinstance(raw, bool):
        raise ValidationError("AMOUNT_INVALID", "Payment amount must be a number")

    if isinstance(raw, Decimal):
        value = raw
    elif isinstance(raw, int):
        value = Decimal(raw)
    elif isinstance(raw, (float, str)):
        text = str(raw).strip()
        if not text or "e" in text.lower():
            raise ValidationError("AMOUNT_INVALID", "Payment amount must be a plain decimal number")
        try:
            value = Decimal(text)
        except InvalidOperation:
            raise ValidationError("AMOUNT_INVALID", "Payment amount must be a number")
    else:
        raise ValidationError("AMOUNT_INVALID", "Payment amount must be a number")

    if not value.is_finite():
        raise ValidationError("AMOUNT_INVALID", "Payment amount must be a finite number")
    return value


def decimal_places(value: Decimal) -> int:
    """Significant fractional digits, ignoring trailing zeros ("1.50" -> 1).

    Counted from the digit tuple so no context precision is applied.
    """
    _sign, digits, exponent = value.as_tuple()
    if not isinstance(exponent, int) or not any(digits):
        return 0
    digits = list(digits)
    while exponent < 0 and digits[-1] == 0:
        digits.pop()
        exponent += 1
    return max(0, -exponent)


def decimal_to_cents(value: Decimal) -> int:
    return int((quantize(value) * 100).to_integral_value())


def cents_to_decimal(cents: Optional[int]) -> Decimal:
    """Integer cents to a scale-2 Decimal; a NULL aggregate becomes exact zero."""
    if cents is None:
        return ZERO
    return quantize(Decimal(int(cents)).scaleb(-2))


def to_money_string(value: Any) -> str:
    """Render a money value with exactly two decimals ("0.00" for None)."""
    if value is None:
        return "0.00"
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return format(quantize(value), "f")
