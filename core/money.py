"""
Money helpers for the Tumble dashboard.

All amounts are Decimal dollars quantized to cents (ROUND_HALF_UP).
Backend JSON sends floats; convert with to_decimal() before doing math.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Union

from django.conf import settings

Number = Union[Decimal, int, float, str]

CENT = Decimal('0.01')
ZERO = Decimal('0.00')


def to_decimal(value: Number) -> Decimal:
    """Convert a backend value (float, int, str, None) to Decimal."""
    if value is None or value == '':
        return ZERO
    if isinstance(value, Decimal):
        return value
    # str() avoids binary float artefacts (0.1 -> 0.1000000000000000055...)
    return Decimal(str(value))


def quantize(value: Number) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def dollars_to_cents(dollars: Number) -> int:
    """Convert dollars to integer cents, rounding half up."""
    return int((to_decimal(dollars) * 100).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def cents_to_dollars(cents: int) -> Decimal:
    return quantize(Decimal(cents) / 100)


def add_money(*amounts: Number) -> Decimal:
    return cents_to_dollars(sum(dollars_to_cents(a) for a in amounts))


def multiply_money(amount: Number, factor: Number) -> Decimal:
    return quantize(to_decimal(amount) * to_decimal(factor))


def calculate_tax(subtotal: Number, rate: Number = None) -> Decimal:
    """Sales tax on a subtotal (default rate from settings.TAX_RATE)."""
    if rate is None:
        rate = settings.TAX_RATE
    return multiply_money(subtotal, rate)


def format_money(amount: Number) -> str:
    """Format as a 2-decimal string: 12.5 -> '12.50'."""
    return f"{quantize(amount):.2f}"


class MoneyCalculator:
    """
    Chainable cent-precise calculator.

    Example:
        MoneyCalculator(45).multiply(2).add(10).to_dollars()  # Decimal('100.00')
    """

    def __init__(self, initial: Number = 0):
        self.cents = dollars_to_cents(initial)

    def add(self, amount: Number) -> 'MoneyCalculator':
        self.cents += dollars_to_cents(amount)
        return self

    def subtract(self, amount: Number) -> 'MoneyCalculator':
        self.cents -= dollars_to_cents(amount)
        return self

    def multiply(self, factor: Number) -> 'MoneyCalculator':
        self.cents = int((Decimal(self.cents) * to_decimal(factor)).quantize(
            Decimal('1'), rounding=ROUND_HALF_UP
        ))
        return self

    def to_dollars(self) -> Decimal:
        return cents_to_dollars(self.cents)

    def to_cents(self) -> int:
        return self.cents
