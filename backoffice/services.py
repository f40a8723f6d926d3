"""
Backoffice Services - admin calls to the Tumble backend.

Users, orders, route assignment, failed-order resolutions, driver
applications and company analytics. Every method requires an admin
session; the backend answers 403 otherwise.
"""

import logging
from typing import List, Optional

from django.conf import settings

from core.backend import BackendClient

logger = logging.getLogger(__name__)


class AdminService:
    """Admin workspace calls."""

    # ==========================================
    # USERS
    # ==========================================

    @classmethod
    def users(cls, request, role: Optional[str] = None) -> List[dict]:
        params = {'role': role} if role else None
        return BackendClient.for_request(request).get('admin/users', params=params) or []

    @classmethod
    def create_user(cls, request, payload: dict) -> dict:
        user = BackendClient.for_request(request).post('admin/users', json=payload)
        logger.info(f"[ADMIN] User created: {payload.get('email')} ({payload.get('role')})")
        return user

    @classmethod
    def update_user(cls, request, user_id, payload: dict) -> dict:
        user = BackendClient.for_request(request).put(f'admin/users/{user_id}', json=payload)
        logger.info(f"[ADMIN] User {user_id} updated")
        return user

    @classmethod
    def update_user_role(cls, request, user_id, role: str) -> dict:
        result = BackendClient.for_request(request).put(f'admin/users/{user_id}/role', json={'role': role})
        logger.info(f"[ADMIN] User {user_id} role -> {role}")
        return result

    @classmethod
    def update_user_status(cls, request, user_id, status: str) -> dict:
        result = BackendClient.for_request(request).post(f'admin/users/{user_id}/status', json={'status': status})
        logger.info(f"[ADMIN] User {user_id} status -> {status}")
        return result

    @classmethod
    def delete_user(cls, request, user_id) -> None:
        BackendClient.for_request(request).delete(f'admin/users/{user_id}')
        logger.warning(f"[ADMIN] User {user_id} deleted")

    # ==========================================
    # ORDERS
    # ==========================================

    @classmethod
    def orders(cls, request, status: Optional[str] = None, date: Optional[str] = None,
               limit: Optional[int] = None, offset: int = 0) -> List[dict]:
        """GET /admin/orders (the backend caps limit at 100)."""
        page_size = settings.ADMIN_ORDER_PAGE_SIZE
        params = {'limit': min(limit or page_size, page_size), 'offset': offset}
        if status:
            params['status'] = status
        if date:
            params['date'] = date
        return BackendClient.for_request(request).get('admin/orders', params=params) or []

    @classmethod
    def find_order(cls, request, order_id) -> Optional[dict]:
        """
        Look up any order by id.

        There is no admin single-order endpoint: page through the
        admin order list until the id shows up or the pages run out.
        """
        page_size = settings.ADMIN_ORDER_PAGE_SIZE
        offset = 0
        while True:
            page = cls.orders(request, limit=page_size, offset=offset)
            for order in page:
                if str(order.get('id')) == str(order_id):
                    return order
            if len(page) < page_size:
                return None
            offset += page_size

    @classmethod
    def orders_summary(cls, request) -> dict:
        return BackendClient.for_request(request).get('admin/orders/summary') or {}

    @classmethod
    def bulk_update_status(cls, request, order_ids: List[int], status: str, notes: str = '') -> dict:
        """PUT /admin/orders/bulk-status -> {updated_count}"""
        payload = {'order_ids': order_ids, 'status': status}
        if notes:
            payload['notes'] = notes
        result = BackendClient.for_request(request).put('admin/orders/bulk-status', json=payload) or {}
        logger.info(f"[ADMIN] Bulk status {status}: {result.get('updated_count', 0)}/{len(order_ids)} orders")
        return result

    @classmethod
    def create_resolution(cls, request, payload: dict) -> dict:
        result = BackendClient.for_request(request).post('admin/orders/resolution', json=payload)
        logger.info(f"[ADMIN] Order {payload.get('order_id')} resolved: {payload.get('resolution_type')}")
        return result

    @classmethod
    def resolutions(cls, request, order_id) -> List[dict]:
        return BackendClient.for_request(request).get(f'admin/orders/{order_id}/resolutions') or []

    # ==========================================
    # ROUTES & DRIVERS
    # ==========================================

    @classmethod
    def driver_stats(cls, request) -> List[dict]:
        return BackendClient.for_request(request).get('admin/drivers/stats') or []

    @classmethod
    def assign_route(cls, request, driver_id, order_ids: List[int], route_date: str, route_type: str) -> dict:
        result = BackendClient.for_request(request).post('admin/drivers/assign', json={
            'driver_id': int(driver_id),
            'order_ids': order_ids,
            'route_date': route_date,
            'route_type': route_type,
        })
        logger.info(
            f"[ADMIN] {len(order_ids)} orders assigned to driver {driver_id} "
            f"({route_type} on {route_date})"
        )
        return result

    @classmethod
    def optimization_suggestions(cls, request, order_ids: List[int]) -> dict:
        """
        POST /admin/routes/optimize

        Response:
        {
            "total_orders": 4,
            "suggestions": [{"type": "...", "message": "...", "groups": {"name": [ids]}}],
            "orders": [{id, customer_name, pickup_address, ...}]
        }
        """
        return BackendClient.for_request(request).post(
            'admin/routes/optimize', json={'order_ids': order_ids}
        ) or {}

    # ==========================================
    # ANALYTICS
    # ==========================================

    @classmethod
    def revenue_analytics(cls, request, period: str = 'day') -> List[dict]:
        return BackendClient.for_request(request).get(
            'admin/analytics/revenue', params={'period': period}
        ) or []

    # ==========================================
    # DRIVER APPLICATIONS
    # ==========================================

    @classmethod
    def driver_applications(cls, request, status: Optional[str] = None) -> List[dict]:
        params = {'status': status} if status and status != 'all' else None
        return BackendClient.for_request(request).get('admin/driver-applications', params=params) or []

    @classmethod
    def review_application(cls, request, application_id, status: str, notes: str = '') -> dict:
        result = BackendClient.for_request(request).put(
            'admin/driver-applications/review',
            params={'id': application_id},
            json={'status': status, 'admin_notes': notes},
        )
        logger.info(f"[ADMIN] Driver application {application_id} {status}")
        return result
