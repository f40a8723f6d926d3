"""
Local filtering and counting for the admin pages.

The backend filters orders by status and date; search and assignment
filters run here over the fetched page.
"""

from typing import List

from core.choices import OrderStatus

PENDING_STATUSES = (OrderStatus.PENDING, OrderStatus.SCHEDULED)
IN_PROGRESS_STATUSES = (
    OrderStatus.PICKED_UP,
    OrderStatus.IN_PROCESS,
    OrderStatus.READY,
    OrderStatus.OUT_FOR_DELIVERY,
)
# Assigned orders can still be routed again once back at the facility
REROUTABLE_STATUSES = (OrderStatus.READY, OrderStatus.IN_PROCESS)


def filter_orders(orders: List[dict], search: str = '', assignment: str = '') -> List[dict]:
    search = (search or '').strip().lower()
    result = []
    for order in orders:
        if search:
            haystacks = (
                str(order.get('id', '')),
                (order.get('user_name') or '').lower(),
                (order.get('user_email') or '').lower(),
            )
            if not any(search in value for value in haystacks):
                continue
        if assignment == 'assigned' and not order.get('is_assigned'):
            continue
        if assignment == 'unassigned' and order.get('is_assigned'):
            continue
        result.append(order)
    return result


def is_selectable(order: dict) -> bool:
    """Whether an order can take part in a bulk action."""
    return not order.get('is_assigned') or order.get('status') in REROUTABLE_STATUSES


def selectable_orders(orders: List[dict]) -> List[dict]:
    return [order for order in orders if is_selectable(order)]


def order_stats(orders: List[dict]) -> dict:
    statuses = [order.get('status') for order in orders]
    return {
        'total': len(orders),
        'pending': sum(1 for s in statuses if s in PENDING_STATUSES),
        'in_progress': sum(1 for s in statuses if s in IN_PROGRESS_STATUSES),
        'delivered': statuses.count(OrderStatus.DELIVERED),
        'failed': statuses.count(OrderStatus.FAILED),
    }


def filter_users(users: List[dict], search: str = '', role: str = '', status: str = '') -> List[dict]:
    """Search on email or full name; role/status 'all' or empty match anything."""
    search = (search or '').strip().lower()
    result = []
    for user in users:
        if search:
            full_name = f"{user.get('first_name', '')} {user.get('last_name', '')}".lower()
            if search not in (user.get('email') or '').lower() and search not in full_name:
                continue
        if role and role != 'all' and user.get('role') != role:
            continue
        if status and status != 'all' and user.get('status') != status:
            continue
        result.append(user)
    return result


def suggestion_order_count(suggestion: dict) -> int:
    return sum(len(ids or []) for ids in (suggestion.get('groups') or {}).values())


def suggestion_title(suggestion_type: str) -> str:
    return (suggestion_type or '').replace('_', ' ')
