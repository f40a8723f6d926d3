"""
Test helpers: signed-in sessions and canned backend records.
"""

from django.contrib.messages import get_messages

from .session import SESSION_KEY


def make_user(role='customer', **extra):
    user = {
        'id': extra.pop('id', 1),
        'email': f"{role or 'user'}@tumble.test",
        'first_name': role.title() if role else 'Test',
        'last_name': 'User',
        'phone': '',
        'role': role,
        'status': 'active',
        'access_token': 'test-token',
    }
    user.update(extra)
    return user


class SessionLoginMixin:
    """TestCase mixin storing a backend user in the test client session."""

    def login_as(self, role='customer', **extra):
        user = make_user(role, **extra)
        session = self.client.session
        session[SESSION_KEY] = user
        session.save()
        return user


def flash_messages(response):
    """Messages queued by the request behind `response` (no redirect follow)."""
    return [str(message) for message in get_messages(response.wsgi_request)]
