"""
Subscriptions Services - plans, subscription lifecycle, preferences and Stripe payments.
"""

import logging
from typing import List, Optional

from django.conf import settings
from django.core.cache import cache

from core.backend import BackendClient, get_or_none

logger = logging.getLogger(__name__)


class SubscriptionService:
    """
    Subscription management for the signed-in customer.

    Flow:
    1. list_plans() (public, cached)
    2. create() when the user has no subscription, update(plan_id) otherwise
    3. preview_change() before switching plans (proration computed by the backend)
    """

    PLANS_CACHE_KEY = 'tumble:subscription_plans'

    @classmethod
    def list_plans(cls) -> List[dict]:
        plans = cache.get(cls.PLANS_CACHE_KEY)
        if plans is not None:
            return plans

        plans = BackendClient.anonymous().get('subscriptions/plans') or []
        cache.set(cls.PLANS_CACHE_KEY, plans, settings.CATALOG_CACHE_TTL)
        return plans

    @classmethod
    def get_plan(cls, plan_id) -> Optional[dict]:
        for plan in cls.list_plans():
            if str(plan.get('id')) == str(plan_id):
                return plan
        return None

    @classmethod
    def current(cls, request) -> Optional[dict]:
        """Current subscription or None (404)."""
        return get_or_none(BackendClient.for_request(request), 'subscriptions/current')

    @classmethod
    def usage(cls, request) -> Optional[dict]:
        """
        Usage for the current billing period or None (404).

        {pickups_used, pickups_allowed, pickups_remaining,
         bags_used, bags_allowed, bags_remaining,
         current_period_start, current_period_end}
        """
        return get_or_none(BackendClient.for_request(request), 'subscriptions/usage')

    @classmethod
    def create(cls, request, plan_id) -> dict:
        subscription = BackendClient.for_request(request).post(
            'subscriptions/create', json={'plan_id': int(plan_id)}
        )
        logger.info(f"Subscription created: plan={plan_id}")
        return subscription

    @classmethod
    def update(cls, request, subscription_id, status: Optional[str] = None,
               plan_id=None) -> dict:
        payload = {}
        if status:
            payload['status'] = status
        if plan_id is not None:
            payload['plan_id'] = int(plan_id)

        subscription = BackendClient.for_request(request).put(
            f'subscriptions/{subscription_id}', json=payload
        )
        logger.info(f"Subscription {subscription_id} updated: {payload}")
        return subscription

    @classmethod
    def cancel(cls, request, subscription_id) -> None:
        BackendClient.for_request(request).post(f'subscriptions/{subscription_id}/cancel')
        logger.info(f"Subscription {subscription_id} cancelled")

    @classmethod
    def preview_change(cls, request, new_plan_id) -> dict:
        """
        Proration preview:
        {current_plan, new_plan, immediate_charge, immediate_credit,
         proration_description, new_billing_date, requires_payment_method}
        """
        return BackendClient.for_request(request).post(
            'subscriptions/preview-change', json={'new_plan_id': int(new_plan_id)}
        )

    @classmethod
    def preferences(cls, request) -> Optional[dict]:
        return get_or_none(BackendClient.for_request(request), 'subscriptions/preferences')

    @classmethod
    def save_preferences(cls, request, payload: dict) -> dict:
        return BackendClient.for_request(request).post('subscriptions/preferences', json=payload)


class PaymentService:
    """Stripe flows brokered by the backend (the browser talks to Stripe.js)."""

    @classmethod
    def create_setup_intent(cls, request) -> dict:
        """POST /payments/setup-intent -> {client_secret, ...}"""
        return BackendClient.for_request(request).post('payments/setup-intent') or {}

    @classmethod
    def create_subscription_payment(cls, request, plan_id, payment_method_id: str) -> dict:
        """
        POST /payments/subscription
        -> {subscription_id, status, requires_action, client_secret?}
        """
        result = BackendClient.for_request(request).post('payments/subscription', json={
            'plan_id': int(plan_id),
            'payment_method_id': payment_method_id,
        }) or {}
        logger.info(
            f"Subscription payment created: plan={plan_id} status={result.get('status')} "
            f"requires_action={result.get('requires_action')}"
        )
        return result
