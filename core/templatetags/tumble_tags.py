"""
Template filters for backend data: money, dates and status badges.

Usage:
    {% load tumble_tags %}
    {{ order.total|money }}
    {{ order.pickup_date|api_date:"M j, Y" }}
    {{ order.status|status_badge }}
"""

from dateutil import parser as date_parser
from django import template
from django.utils import dateformat
from django.utils.html import format_html

from core.choices import ORDER_STATUS_COLORS, OrderStatus
from core.money import format_money

register = template.Library()


@register.filter
def money(value):
    """Format a dollar amount: 12.5 -> $12.50"""
    try:
        return f"${format_money(value)}"
    except (ArithmeticError, ValueError, TypeError):
        return "$0.00"


@register.filter
def api_date(value, fmt='M j, Y'):
    """Parse an ISO-8601 backend timestamp and format it."""
    if not value:
        return ''
    try:
        parsed = date_parser.isoparse(str(value))
    except (ValueError, OverflowError):
        return value
    return dateformat.format(parsed, fmt)


@register.filter
def status_label(value):
    try:
        return OrderStatus(value).label
    except ValueError:
        return str(value or '').replace('_', ' ').title()


@register.filter
def status_badge(value):
    """Render a coloured badge for an order status."""
    color = ORDER_STATUS_COLORS.get(value, 'gray')
    return format_html(
        '<span class="badge badge-{}">{}</span>',
        color,
        status_label(value),
    )


@register.filter
def humanize_key(value):
    """time_slot_grouping -> Time Slot Grouping"""
    return str(value or '').replace('_', ' ').title()


@register.filter
def get_item(mapping, key):
    if not mapping:
        return None
    return mapping.get(key)
