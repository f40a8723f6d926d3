"""
ACCOUNTS App - Tests for profile, password and saved addresses.
"""

from unittest.mock import patch

from django.test import TestCase, RequestFactory
from django.urls import reverse

from core.backend import BackendAuthError, BackendClient, BackendError
from core.session import SESSION_KEY
from core.testing import SessionLoginMixin, flash_messages, make_user

from .forms import AddressForm, ChangePasswordForm
from .services import AddressService, ProfileService

ADDRESSES = [
    {'id': 4, 'type': 'work', 'street_address': '1 Main St', 'city': 'Detroit', 'state': 'MI',
     'zip_code': '48201', 'is_default': False},
    {'id': 5, 'type': 'home', 'street_address': '9 Oak Ave', 'city': 'Detroit', 'state': 'MI',
     'zip_code': '48202', 'is_default': True},
]

ADDRESS_DATA = {
    'type': 'home', 'street_address': '9 Oak Ave', 'city': 'Detroit',
    'state': ' mi ', 'zip_code': '48202', 'is_default': 'on',
}


class AddressFormTest(TestCase):

    def test_normalizes_state(self):
        form = AddressForm(ADDRESS_DATA)
        self.assertTrue(form.is_valid(), form.errors)
        self.assertEqual(form.cleaned_data['state'], 'MI')
        self.assertTrue(form.to_payload()['is_default'])

    def test_zip_plus_four(self):
        form = AddressForm(dict(ADDRESS_DATA, zip_code='48202-1234'))
        self.assertTrue(form.is_valid(), form.errors)

    def test_invalid_zip(self):
        form = AddressForm(dict(ADDRESS_DATA, zip_code='4820'))
        self.assertIn('zip_code', form.errors)


class ChangePasswordFormTest(TestCase):

    def test_mismatch(self):
        form = ChangePasswordForm({
            'current_password': 'oldpass123', 'new_password': 'newpass123', 'confirm_password': 'newpass124',
        })
        self.assertEqual(form.errors['confirm_password'], ["Passwords do not match"])

    def test_same_as_current(self):
        form = ChangePasswordForm({
            'current_password': 'samepass1', 'new_password': 'samepass1', 'confirm_password': 'samepass1',
        })
        self.assertIn('new_password', form.errors)

    def test_too_short(self):
        form = ChangePasswordForm({
            'current_password': 'oldpass123', 'new_password': 'short', 'confirm_password': 'short',
        })
        self.assertEqual(form.errors['new_password'], ["Password must be at least 8 characters long"])


class AddressServiceTest(TestCase):

    def setUp(self):
        self.request = RequestFactory().get('/')
        self.request.session = {SESSION_KEY: make_user('customer')}

    def test_default_address(self):
        self.assertEqual(AddressService.default_address(ADDRESSES)['id'], 5)

    def test_default_address_fallback(self):
        addresses = [dict(a, is_default=False) for a in ADDRESSES]
        self.assertEqual(AddressService.default_address(addresses)['id'], 4)
        self.assertIsNone(AddressService.default_address(addresses, fallback=False))

    @patch.object(BackendClient, 'request', return_value=ADDRESSES)
    def test_get_by_id(self, _request):
        self.assertEqual(AddressService.get(self.request, '4')['street_address'], '1 Main St')
        self.assertIsNone(AddressService.get(self.request, 99))

    @patch.object(BackendClient, 'request')
    def test_change_password_payload(self, mock_request):
        ProfileService.change_password(self.request, 'oldpass123', 'newpass123')
        mock_request.assert_called_once_with('PUT', 'auth/change-password', params=None, json={
            'current_password': 'oldpass123', 'new_password': 'newpass123',
        })


@patch.object(AddressService, 'list', return_value=ADDRESSES)
class SettingsViewTest(SessionLoginMixin, TestCase):

    def setUp(self):
        self.login_as('customer', first_name='Ada', email='ada@tumble.test')

    def test_page(self, _addresses):
        response = self.client.get(reverse('accounts:settings'))
        self.assertEqual(response.context['profile_form'].initial['first_name'], 'Ada')
        self.assertContains(response, '9 Oak Ave')
        # An existing address means new ones are not default by default
        self.assertFalse(response.context['address_form'].initial['is_default'])

    @patch.object(ProfileService, 'update')
    def test_profile_update_refreshes_session(self, mock_update, _addresses):
        mock_update.return_value = {'id': 1, 'first_name': 'Augusta', 'last_name': 'King', 'phone': ''}
        response = self.client.post(reverse('accounts:settings'), {
            'first_name': 'Augusta', 'last_name': 'King', 'email': 'hacker@evil.test',
        })

        self.assertRedirects(response, reverse('accounts:settings'), fetch_redirect_response=False)
        self.assertNotIn('email', mock_update.call_args[0][1])
        session_user = self.client.session[SESSION_KEY]
        self.assertEqual(session_user['first_name'], 'Augusta')
        self.assertEqual(session_user['email'], 'ada@tumble.test')

    @patch.object(AddressService, 'create')
    def test_add_address(self, mock_create, _addresses):
        response = self.client.post(reverse('accounts:address-create'), ADDRESS_DATA)
        self.assertRedirects(response, reverse('accounts:settings'), fetch_redirect_response=False)
        self.assertEqual(mock_create.call_args[0][1]['state'], 'MI')
        self.assertIn("Address added", flash_messages(response))

    @patch.object(AddressService, 'create')
    def test_add_invalid_address(self, mock_create, _addresses):
        response = self.client.post(reverse('accounts:address-create'), dict(ADDRESS_DATA, zip_code='x'))
        self.assertEqual(response.status_code, 200)
        self.assertIn('zip_code', response.context['address_form'].errors)
        mock_create.assert_not_called()

    def test_edit_address_prefilled(self, _addresses):
        response = self.client.get(reverse('accounts:address-update', args=[4]))
        self.assertEqual(response.context['form'].initial['street_address'], '1 Main St')

    def test_edit_missing_address(self, _addresses):
        response = self.client.get(reverse('accounts:address-update', args=[99]))
        self.assertRedirects(response, reverse('accounts:settings'), fetch_redirect_response=False)
        self.assertIn("Address not found", flash_messages(response))

    @patch.object(AddressService, 'update')
    def test_set_default(self, mock_update, _addresses):
        self.client.post(reverse('accounts:address-default', args=[4]))
        self.assertEqual(mock_update.call_args[0][1:], (4, {'is_default': True}))

    @patch.object(AddressService, 'delete', side_effect=BackendError(409, 'Address is used by an order'))
    def test_delete_conflict(self, _delete, _addresses):
        response = self.client.post(reverse('accounts:address-delete', args=[4]))
        self.assertIn('Address is used by an order', flash_messages(response))


class ChangePasswordViewTest(SessionLoginMixin, TestCase):

    def setUp(self):
        self.login_as('driver')

    @patch.object(ProfileService, 'change_password', side_effect=BackendAuthError(401, 'invalid password'))
    def test_wrong_current_password_keeps_session(self, _change):
        """A 401 here is a wrong password, not an expired session."""
        response = self.client.post(reverse('accounts:change-password'), {
            'current_password': 'wrongpass1', 'new_password': 'newpass123', 'confirm_password': 'newpass123',
        })
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, "Current password is incorrect")
        self.assertIn(SESSION_KEY, self.client.session)

    @patch.object(ProfileService, 'change_password')
    def test_success(self, mock_change):
        response = self.client.post(reverse('accounts:change-password'), {
            'current_password': 'oldpass123', 'new_password': 'newpass123', 'confirm_password': 'newpass123',
        })
        self.assertRedirects(response, reverse('accounts:settings'), fetch_redirect_response=False)
        mock_change.assert_called_once()
        self.assertIn("Password changed successfully!", flash_messages(response))
