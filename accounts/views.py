"""
ACCOUNTS App - Views for account settings

Profile, change password and saved addresses.
"""

import logging

from django.contrib import messages
from django.shortcuts import render, redirect
from django.views import View

from core.backend import BackendError, BackendAuthError
from core.mixins import SessionRequiredMixin
from core.session import get_user, update_profile

from .forms import AddressForm, ChangePasswordForm, ProfileForm
from .services import AddressService, ProfileService

logger = logging.getLogger(__name__)

SETTINGS_TEMPLATE = 'accounts/settings.html'


def settings_context(request, profile_form=None, address_form=None):
    addresses = []
    try:
        addresses = AddressService.list(request)
    except BackendAuthError:
        raise
    except BackendError as e:
        logger.error(f"Failed to load addresses: {e.message}")
        messages.error(request, "Failed to load addresses")

    user = get_user(request)
    return {
        'profile_form': profile_form or ProfileForm(initial={
            'first_name': user.first_name,
            'last_name': user.last_name,
            'email': user.email,
            'phone': user.phone,
        }),
        'address_form': address_form or AddressForm(initial={'is_default': not addresses}),
        'addresses': addresses,
    }


class SettingsView(SessionRequiredMixin, View):
    """
    Account settings.

    - Profile form (email is read-only)
    - Saved addresses with edit / delete / set default
    - New address form
    """

    def get(self, request):
        return render(request, SETTINGS_TEMPLATE, settings_context(request))

    def post(self, request):
        """Profile update."""
        form = ProfileForm(request.POST, initial={'email': self.tumble_user.email})
        if not form.is_valid():
            return render(request, SETTINGS_TEMPLATE, settings_context(request, profile_form=form))

        try:
            user = ProfileService.update(request, form.to_payload())
        except BackendAuthError:
            raise
        except BackendError as e:
            messages.error(request, e.message or "Failed to update profile")
            return render(request, SETTINGS_TEMPLATE, settings_context(request, profile_form=form))

        update_profile(request, user or form.to_payload())
        messages.success(request, "Profile updated successfully")
        return redirect('accounts:settings')


class ChangePasswordView(SessionRequiredMixin, View):
    template_name = 'accounts/change_password.html'

    def get(self, request):
        return render(request, self.template_name, {'form': ChangePasswordForm()})

    def post(self, request):
        form = ChangePasswordForm(request.POST)
        if not form.is_valid():
            return render(request, self.template_name, {'form': form})

        try:
            ProfileService.change_password(
                request,
                form.cleaned_data['current_password'],
                form.cleaned_data['new_password'],
            )
        except BackendAuthError:
            # the backend answers 401 for a wrong current password
            form.add_error('current_password', "Current password is incorrect")
            return render(request, self.template_name, {'form': form})
        except BackendError as e:
            form.add_error(None, e.message or "Failed to change password")
            return render(request, self.template_name, {'form': form})

        messages.success(request, "Password changed successfully!")
        return redirect('accounts:settings')


class AddressCreateView(SessionRequiredMixin, View):
    def post(self, request):
        form = AddressForm(request.POST)
        if not form.is_valid():
            return render(request, SETTINGS_TEMPLATE, settings_context(request, address_form=form))

        try:
            AddressService.create(request, form.to_payload())
        except BackendAuthError:
            raise
        except BackendError as e:
            messages.error(request, e.message or "Failed to save address")
        else:
            messages.success(request, "Address added")
        return redirect('accounts:settings')


class AddressUpdateView(SessionRequiredMixin, View):
    template_name = 'accounts/address_form.html'

    def get(self, request, address_id):
        try:
            address = AddressService.get(request, address_id)
        except BackendAuthError:
            raise
        except BackendError as e:
            logger.error(f"Failed to load address {address_id}: {e.message}")
            address = None

        if address is None:
            messages.error(request, "Address not found")
            return redirect('accounts:settings')

        form = AddressForm(initial=address)
        return render(request, self.template_name, {'form': form, 'address_id': address_id})

    def post(self, request, address_id):
        form = AddressForm(request.POST)
        if not form.is_valid():
            return render(request, self.template_name, {'form': form, 'address_id': address_id})

        try:
            AddressService.update(request, address_id, form.to_payload())
        except BackendAuthError:
            raise
        except BackendError as e:
            form.add_error(None, e.message or "Failed to save address")
            return render(request, self.template_name, {'form': form, 'address_id': address_id})

        messages.success(request, "Address updated")
        return redirect('accounts:settings')


class AddressDeleteView(SessionRequiredMixin, View):
    def post(self, request, address_id):
        try:
            AddressService.delete(request, address_id)
        except BackendAuthError:
            raise
        except BackendError as e:
            messages.error(request, e.message or "Failed to delete address")
        else:
            messages.success(request, "Address deleted")
        return redirect('accounts:settings')


class AddressSetDefaultView(SessionRequiredMixin, View):
    def post(self, request, address_id):
        try:
            AddressService.update(request, address_id, {'is_default': True})
        except BackendAuthError:
            raise
        except BackendError as e:
            messages.error(request, e.message or "Failed to update address")
        else:
            messages.success(request, "Default address updated")
        return redirect('accounts:settings')
