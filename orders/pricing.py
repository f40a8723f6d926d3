"""
Schedule Cost Calculator for Tumble

Estimates what a pickup will cost before the order is sent to the backend.
The backend recomputes the authoritative amounts at creation time.

Formula:
    Subtotal = PickupFee + Σ(UnitPrice × Quantity)
    Discount = PickupFee (if a subscription pickup remains)
             + BagPrice × min(StandardBags, BagsRemaining)
    FinalSubtotal = Max(0, Subtotal - Discount)
    Total = FinalSubtotal + FinalSubtotal × TaxRate + Tip
"""

import logging
from dataclasses import dataclass, asdict
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from django.conf import settings

from core.money import (
    MoneyCalculator, ZERO, add_money, calculate_tax, format_money,
    multiply_money, quantize, to_decimal,
)

logger = logging.getLogger(__name__)

STANDARD_BAG_SERVICE = 'standard_bag'
PICKUP_SERVICE = 'pickup_service'


@dataclass
class CostCalculation:
    subtotal: Decimal
    subscription_discount: Decimal
    final_subtotal: Decimal
    tax: Decimal
    tip: Decimal
    total: Decimal
    covered_bags: int
    pickup_covered: bool
    has_subscription_benefits: bool

    @property
    def fully_covered(self) -> bool:
        return self.final_subtotal == ZERO

    def as_dict(self) -> dict:
        """JSON-friendly dict (money as 2-decimal strings)."""
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, Decimal):
                data[key] = format_money(value)
        return data


class CostCalculator:
    """
    Order cost estimation from the services catalog and subscription usage.

    Services are backend dicts: {id, name, base_price, ...}
    Items are dicts: {service_id, quantity}
    Usage is the backend subscription usage dict or None.
    """

    def __init__(self):
        self.pickup_fee = to_decimal(settings.PICKUP_SERVICE_FEE)
        self.standard_bag_price = to_decimal(settings.STANDARD_BAG_PRICE)
        self.tax_rate = to_decimal(settings.TAX_RATE)

    def unit_price(self, service: Optional[dict]) -> Decimal:
        """Standard bags are flat-priced; other services use their base price."""
        if not service:
            return ZERO
        if service.get('name') == STANDARD_BAG_SERVICE:
            return self.standard_bag_price
        return to_decimal(service.get('base_price'))

    def calculate(
        self,
        items: Iterable[dict],
        services: List[dict],
        usage: Optional[dict] = None,
        tip=ZERO,
    ) -> CostCalculation:
        services_by_id = {str(s.get('id')): s for s in services}
        has_standard_bag = any(s.get('name') == STANDARD_BAG_SERVICE for s in services)

        bags = MoneyCalculator()
        standard_bags = 0
        for item in items:
            service = services_by_id.get(str(item.get('service_id')))
            quantity = int(item.get('quantity') or 0)
            bags.add(multiply_money(self.unit_price(service), quantity))
            if service and service.get('name') == STANDARD_BAG_SERVICE:
                standard_bags += quantity

        # Subscription coverage
        pickups_remaining = int((usage or {}).get('pickups_remaining') or 0)
        bags_remaining = int((usage or {}).get('bags_remaining') or 0)

        pickup_covered = pickups_remaining > 0
        covered_bags = 0
        if bags_remaining > 0 and has_standard_bag:
            covered_bags = min(standard_bags, bags_remaining)

        bag_discount = multiply_money(self.standard_bag_price, covered_bags)

        subtotal = add_money(self.pickup_fee, bags.to_dollars())
        subscription_discount = add_money(
            self.pickup_fee if pickup_covered else ZERO,
            bag_discount,
        )
        final_subtotal = max(ZERO, subtotal - subscription_discount)
        tax = calculate_tax(final_subtotal, self.tax_rate)
        tip = max(ZERO, quantize(tip))
        total = add_money(final_subtotal, tax, tip)

        return CostCalculation(
            subtotal=subtotal,
            subscription_discount=subscription_discount,
            final_subtotal=quantize(final_subtotal),
            tax=tax,
            tip=tip,
            total=total,
            covered_bags=covered_bags,
            pickup_covered=pickup_covered,
            has_subscription_benefits=pickup_covered or covered_bags > 0,
        )


def calculate_cost(items, services, usage=None, tip=ZERO) -> CostCalculation:
    return CostCalculator().calculate(items, services, usage, tip)


def tip_presets(final_subtotal) -> List[Tuple[int, Decimal]]:
    """
    Suggested tips as (percentage, amount) pairs.
    Empty when the order is fully covered.
    """
    final_subtotal = to_decimal(final_subtotal)
    if final_subtotal <= ZERO:
        return []
    return [
        (percentage, multiply_money(final_subtotal, Decimal(percentage) / 100))
        for percentage in settings.TIP_PRESET_PERCENTAGES
    ]


def default_dates(today: date) -> Tuple[date, date]:
    """Pickup tomorrow, delivery the day after."""
    return today + timedelta(days=1), today + timedelta(days=2)


def orderable_services(services: List[dict]) -> List[dict]:
    """Services a customer can add as items (the pickup fee is implicit)."""
    return [s for s in services if s.get('name') != PICKUP_SERVICE]


def default_item(services: List[dict]) -> Optional[dict]:
    """One standard bag, the starting item of a new schedule form."""
    for service in services:
        if service.get('name') == STANDARD_BAG_SERVICE:
            return {'service_id': service['id'], 'quantity': 1}
    return None
