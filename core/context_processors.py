"""
Template context shared by every page: signed-in user and role navigation.
"""

from django.conf import settings
from django.urls import reverse

from .session import get_user


CUSTOMER_NAV = [
    ('Dashboard', 'core:dashboard'),
    ('Schedule Pickup', 'orders:schedule'),
    ('My Orders', 'orders:list'),
    ('Subscription', 'subscriptions:plans'),
    ('Settings', 'accounts:settings'),
]

DRIVER_NAV = [
    ('Dashboard', 'core:dashboard'),
    ('My Routes', 'drivers:routes'),
    ('Deliveries', 'drivers:deliveries'),
    ('Earnings', 'drivers:earnings'),
    ('Settings', 'accounts:settings'),
]

ADMIN_NAV = [
    ('Dashboard', 'core:dashboard'),
    ('Orders', 'backoffice:orders'),
    ('Users', 'backoffice:users'),
    ('Driver Applications', 'backoffice:applications'),
    ('Company Earnings', 'backoffice:earnings'),
    ('Settings', 'accounts:settings'),
]


def navigation_for(user):
    if not user.is_authenticated:
        return []
    if user.is_admin:
        items = ADMIN_NAV
    elif user.is_driver:
        items = DRIVER_NAV
    else:
        items = CUSTOMER_NAV
    return [{'label': label, 'url': reverse(name)} for label, name in items]


def tumble(request):
    user = get_user(request)
    return {
        'tumble_user': user,
        'nav_items': navigation_for(user),
        'STRIPE_PUBLISHABLE_KEY': settings.STRIPE_PUBLISHABLE_KEY,
    }
