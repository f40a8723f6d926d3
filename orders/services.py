"""
Orders Services - customer orders and the public services catalog.
"""

import logging
from typing import List, Optional

from django.conf import settings
from django.core.cache import cache

from core.backend import BackendClient

logger = logging.getLogger(__name__)


class CatalogService:
    """Public laundry services catalog (cached)."""

    CACHE_KEY = 'tumble:services'

    @classmethod
    def list_services(cls) -> List[dict]:
        services = cache.get(cls.CACHE_KEY)
        if services is not None:
            return services

        services = BackendClient.anonymous().get('services') or []
        cache.set(cls.CACHE_KEY, services, settings.CATALOG_CACHE_TTL)
        logger.info(f"Services catalog refreshed ({len(services)} services)")
        return services


class OrderService:
    """Orders of the signed-in user."""

    @classmethod
    def list_orders(cls, request) -> List[dict]:
        return BackendClient.for_request(request).get('orders') or []

    @classmethod
    def get_order(cls, request, order_id) -> dict:
        return BackendClient.for_request(request).get(f'orders/{order_id}')

    @classmethod
    def create_order(cls, request, payload: dict) -> dict:
        """
        POST /orders/create

        Returns a normalized dict:
            {order, requires_payment, payment_intent_id}
        The backend answers either a bare order or
        {order, requires_payment, checkout_url}; checkout_url carries
        the Stripe payment intent id.
        """
        result = BackendClient.for_request(request).post('orders/create', json=payload) or {}

        if 'order' in result:
            order = result['order']
            requires_payment = bool(result.get('requires_payment'))
            payment_intent_id = result.get('checkout_url') or None
        else:
            order = result
            requires_payment = False
            payment_intent_id = None

        logger.info(
            f"Order created: id={order.get('id')} total={order.get('total')} "
            f"requires_payment={requires_payment}"
        )
        return {
            'order': order,
            'requires_payment': requires_payment and bool(payment_intent_id),
            'payment_intent_id': payment_intent_id,
        }

    @classmethod
    def payment_intent(cls, request, payment_intent_id: str) -> Optional[dict]:
        """GET /payments/payment-intent/{id} -> {client_secret, ...}"""
        return BackendClient.for_request(request).get(f'payments/payment-intent/{payment_intent_id}')


def order_summary(order: dict, services: Optional[List[dict]] = None) -> str:
    """
    Short item description: "3 items: standard bag, comforter".

    Service names come from the item itself or the catalog.
    """
    items = order.get('items') or []
    if not items:
        return 'No items'

    names_by_id = {str(s.get('id')): s.get('name') for s in services or []}
    count = sum(int(item.get('quantity') or 0) for item in items)
    names = []
    for item in items:
        name = item.get('service_name') or names_by_id.get(str(item.get('service_id'))) or 'item'
        name = name.replace('_', ' ')
        if name not in names:
            names.append(name)

    noun = 'item' if count == 1 else 'items'
    return f"{count} {noun}: {', '.join(names)}"
