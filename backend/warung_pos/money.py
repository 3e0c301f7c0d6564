# Overview: Decimal helpers for money (2 dp) and stock quantities (3 dp).

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

MONEY_STEP = Decimal("0.01")
QUANTITY_STEP = Decimal("0.001")


def quantize_money(value) -> Decimal:
    return Decimal(value).quantize(MONEY_STEP, rounding=ROUND_HALF_UP)


def quantize_quantity(value) -> Decimal:
    return Decimal(value).quantize(QUANTITY_STEP, rounding=ROUND_HALF_UP)


def money_str(value) -> Optional[str]:
    """Serialize money as a fixed 2-dp string ("100000.00")."""
    if value is None:
        return None
    return format(quantize_money(value), "f")


def quantity_str(value) -> Optional[str]:
    """Serialize stock quantities as a fixed 3-dp string ("4.800")."""
    if value is None:
        return None
    return format(quantize_quantity(value), "f")


def format_rupiah(value) -> str:
    """
    Receipt formatting with Indonesian separators: 150000 -> "150.000",
    1234.5 -> "1.234,50". Whole amounts drop the fraction.
    """
    amount = quantize_money(value)
    sign = "-" if amount < 0 else ""
    amount = abs(amount)
    whole, _, frac = format(amount, "f").partition(".")
    groups = []
    while whole:
        groups.insert(0, whole[-3:])
        whole = whole[:-3]
    text = ".".join(groups) or "0"
    if frac and frac != "00":
        text = f"{text},{frac}"
    return f"{sign}{text}"
