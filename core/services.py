"""
Core Services - authentication and role dashboard statistics.
"""

import logging
from datetime import date
from typing import Optional

from dateutil import parser as date_parser
from django.utils import timezone

from .backend import BackendClient, BackendError, BackendAuthError
from .choices import OrderStatus
from .money import to_decimal, ZERO

logger = logging.getLogger(__name__)


def parse_api_date(value) -> Optional[date]:
    """Parse a backend date or timestamp into a date (None when invalid)."""
    if not value:
        return None
    try:
        return date_parser.isoparse(str(value)).date()
    except (ValueError, OverflowError):
        return None


class AuthService:
    """Backend login & registration."""

    @classmethod
    def login(cls, email: str, password: str) -> dict:
        """POST /auth/login -> {token, user}"""
        return BackendClient.anonymous().post('auth/login', json={
            'email': email,
            'password': password,
        })

    @classmethod
    def register(cls, payload: dict) -> dict:
        """POST /auth/register -> {token, user}"""
        return BackendClient.anonymous().post('auth/register', json=payload)


class DashboardService:
    """
    Statistics shown on the role home page.

    Every method degrades to empty values when the backend fails so the
    dashboard always renders.
    """

    PENDING_PICKUP_STATUSES = (OrderStatus.SCHEDULED, OrderStatus.PENDING)

    @staticmethod
    def next_pickup(orders: list, today: Optional[date] = None) -> Optional[dict]:
        """
        Earliest upcoming pickup among scheduled/pending orders.

        Returns the order dict or None.
        """
        today = today or timezone.localdate()
        upcoming = []
        for order in orders or []:
            if order.get('status') not in DashboardService.PENDING_PICKUP_STATUSES:
                continue
            pickup = parse_api_date(order.get('pickup_date'))
            if pickup and pickup >= today:
                upcoming.append((pickup, order))

        if not upcoming:
            return None
        upcoming.sort(key=lambda pair: pair[0])
        return upcoming[0][1]

    @classmethod
    def customer_stats(cls, request) -> dict:
        from orders.services import OrderService
        from subscriptions.services import SubscriptionService

        stats = {
            'subscription': None,
            'plan_name': 'No active plan',
            'subscription_status': 'inactive',
            'next_pickup': None,
        }
        try:
            subscription = SubscriptionService.current(request)
            if subscription:
                stats['subscription'] = subscription
                stats['plan_name'] = (subscription.get('plan') or {}).get('name') or 'No active plan'
                stats['subscription_status'] = subscription.get('status') or 'inactive'

            orders = OrderService.list_orders(request)
            stats['next_pickup'] = cls.next_pickup(orders)
        except BackendAuthError:
            raise
        except BackendError as e:
            logger.error(f"Failed to load customer dashboard: {e.message}")
        return stats

    @classmethod
    def driver_stats(cls, request, today: Optional[date] = None) -> dict:
        from drivers.services import DriverService

        today = today or timezone.localdate()
        stats = {'today_routes': 0, 'weekly_earnings': ZERO}
        try:
            routes = DriverService.routes(request)
            today_prefix = today.isoformat()
            stats['today_routes'] = sum(
                1 for route in routes if str(route.get('route_date', '')).startswith(today_prefix)
            )
            earnings = DriverService.earnings(request)
            stats['weekly_earnings'] = to_decimal((earnings or {}).get('thisWeek'))
        except BackendAuthError:
            raise
        except BackendError as e:
            logger.error(f"Failed to load driver dashboard: {e.message}")
        return stats

    @classmethod
    def admin_stats(cls, request) -> dict:
        from backoffice.services import AdminService

        stats = {'total_users': 0, 'active_orders': 0}
        try:
            stats['total_users'] = len(AdminService.users(request))
            summary = AdminService.orders_summary(request) or {}
            stats['active_orders'] = (
                int(summary.get('in_process_orders') or 0) + int(summary.get('pending_orders') or 0)
            )
        except BackendAuthError:
            raise
        except BackendError as e:
            logger.error(f"Failed to load admin dashboard: {e.message}")
        return stats
