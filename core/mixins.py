"""
Role gates for class-based views.
"""

from urllib.parse import urlencode

from django.contrib import messages
from django.shortcuts import redirect
from django.urls import reverse

from .choices import UserRole
from .session import get_user


class SessionRequiredMixin:
    """Mixin that requires a signed-in backend user."""

    def dispatch(self, request, *args, **kwargs):
        if not get_user(request).is_authenticated:
            query = urlencode({'next': request.get_full_path()})
            return redirect(f"{reverse('core:signin')}?{query}")
        return super().dispatch(request, *args, **kwargs)

    @property
    def tumble_user(self):
        return get_user(self.request)


class RoleRequiredMixin(SessionRequiredMixin):
    """
    Mixin restricting a view to some roles.

    Users with another role are sent back to the dashboard home.
    """

    allowed_roles = ()
    denied_message = "You don't have access to that page."

    def has_role(self, user) -> bool:
        role = user.role or UserRole.CUSTOMER
        return role in self.allowed_roles

    def dispatch(self, request, *args, **kwargs):
        user = get_user(request)
        if user.is_authenticated and not self.has_role(user):
            messages.error(request, self.denied_message)
            return redirect('core:dashboard')
        return super().dispatch(request, *args, **kwargs)


class CustomerRequiredMixin(RoleRequiredMixin):
    allowed_roles = (UserRole.CUSTOMER,)


class DriverRequiredMixin(RoleRequiredMixin):
    allowed_roles = (UserRole.DRIVER,)
    denied_message = "This page is only available to drivers."


class AdminRequiredMixin(RoleRequiredMixin):
    allowed_roles = (UserRole.ADMIN,)
    denied_message = "Admin access required."
