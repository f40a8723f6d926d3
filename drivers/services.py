"""
Drivers Services - routes, deliveries, earnings and driver applications.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional

from core.backend import BackendClient, get_or_none
from core.money import ZERO, quantize, to_decimal

logger = logging.getLogger(__name__)

DELIVERY_PERIODS = {
    'week': 'This Week',
    'month': 'This Month',
    'all': 'All Time',
}

EARNINGS_PERIODS = ('week', 'month', 'year')


class DriverService:
    """
    Driver workspace calls.

    All methods act on behalf of the signed-in driver, except the
    application methods which are used by customers applying to drive.
    """

    @classmethod
    def routes(cls, request, route_date: Optional[str] = None) -> List[dict]:
        params = {'date': route_date} if route_date else None
        routes = BackendClient.for_request(request).get('driver/routes', params=params) or []
        for route in routes:
            route['orders'] = sorted(
                route.get('orders') or [],
                key=lambda stop: stop.get('sequence_number') or 0,
            )
        return routes

    @classmethod
    def start_route(cls, request, route_id) -> dict:
        result = BackendClient.for_request(request).put('driver/routes/start', params={'id': route_id})
        logger.info(f"[ROUTE] Route {route_id} started")
        return result

    @classmethod
    def update_stop(cls, request, route_order_id, status: str) -> dict:
        result = BackendClient.for_request(request).put(
            'driver/route-orders/status',
            params={'id': route_order_id},
            json={'status': status},
        )
        logger.info(f"[ROUTE] Stop {route_order_id} -> {status}")
        return result

    @classmethod
    def completed_deliveries(cls, request, period: str = 'week') -> List[dict]:
        return BackendClient.for_request(request).get(
            'driver/deliveries/completed', params={'period': period}
        ) or []

    @classmethod
    def earnings(cls, request) -> dict:
        return BackendClient.for_request(request).get('driver/earnings') or {}

    @classmethod
    def earnings_history(cls, request, period: str = 'week') -> List[dict]:
        return BackendClient.for_request(request).get(
            'driver/earnings/history', params={'period': period}
        ) or []

    @classmethod
    def my_application(cls, request) -> Optional[dict]:
        """The signed-in user's driver application, None when never applied."""
        return get_or_none(BackendClient.for_request(request), 'driver-applications/mine')

    @classmethod
    def submit_application(cls, request, payload: dict) -> dict:
        result = BackendClient.for_request(request).post('driver-applications/submit', json=payload)
        logger.info(f"[APPLICATION] Driver application submitted by {payload.get('first_name')} {payload.get('last_name')}")
        return result


def normalize_period(value: Optional[str], allowed, default: str) -> str:
    return value if value in allowed else default


def hourly_rate(earnings, hours) -> Decimal:
    """Earnings per hour, 0 when no hours were logged."""
    hours = to_decimal(hours)
    if hours <= 0:
        return ZERO
    return quantize(to_decimal(earnings) / hours)


def history_rows(history: List[dict]) -> List[dict]:
    """Earnings history rows with the hourly rate filled in."""
    rows = []
    for day in history or []:
        earnings = to_decimal(day.get('earnings'))
        hours = to_decimal(day.get('hours'))
        rows.append({
            'date': day.get('date', ''),
            'orders': int(day.get('orders') or 0),
            'earnings': quantize(earnings),
            'hours': hours,
            'rate': hourly_rate(earnings, hours),
        })
    return rows


def earnings_csv_filename(period: str, today: date) -> str:
    return f"driver_earnings_{period}_{today.isoformat()}.csv"
