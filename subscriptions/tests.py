"""
SUBSCRIPTIONS App - Tests for plans, plan changes, checkout and preferences.

Tests cover:
- Plan presentation (inactive plans hidden, current/popular flags)
- Plan button routing (checkout, same plan, proration preview)
- Pause / resume / cancel
- Checkout gating on a default address and the AJAX completion
- Recurring pickup preferences
"""

from unittest.mock import patch

from django.test import TestCase, RequestFactory
from django.urls import reverse

from accounts.services import AddressService
from core.backend import BackendAuthError, BackendClient, BackendError
from core.session import SESSION_KEY
from core.testing import SessionLoginMixin, flash_messages, make_user
from orders.services import CatalogService

from .forms import PreferencesForm
from .plans import plan_features, present_plans
from .services import PaymentService, SubscriptionService
from .views import DEFAULT_ADDRESS_REQUIRED

PLANS = [
    {'id': 1, 'name': 'Bi-Weekly', 'price_per_month': 85.0, 'pickups_per_month': 2, 'is_active': True},
    {'id': 2, 'name': 'Weekly Standard', 'price_per_month': 170.0, 'pickups_per_month': 4, 'is_active': True},
    {'id': 3, 'name': 'Retired', 'price_per_month': 50.0, 'pickups_per_month': 1, 'is_active': False},
]

SUBSCRIPTION = {'id': 11, 'plan_id': 1, 'status': 'active', 'plan': {'id': 1, 'name': 'Bi-Weekly'}}

SERVICES = [
    {'id': 1, 'name': 'standard_bag', 'base_price': 45.0},
    {'id': 3, 'name': 'pickup_service', 'base_price': 10.0},
]

ADDRESSES = [{'id': 5, 'street_address': '9 Oak Ave', 'city': 'Detroit', 'is_default': True}]


class PlanPresentationTest(TestCase):

    def test_inactive_plans_hidden(self):
        self.assertEqual([p['id'] for p in present_plans(PLANS)], [1, 2])

    def test_current_and_popular(self):
        plans = {p['id']: p for p in present_plans(PLANS, current_plan_id='1')}
        self.assertTrue(plans[1]['is_current'])
        self.assertFalse(plans[2]['is_current'])
        self.assertTrue(plans[2]['is_popular'])
        self.assertEqual(plans[2]['price_display'], '170.00')

    def test_weekly_features(self):
        features = plan_features(PLANS[1])
        self.assertEqual(features[1], "Save $10/month vs pay-per-bag")
        self.assertIn("24-hour turnaround", features)
        self.assertNotIn("48-hour turnaround", features)

    def test_any_weekly_name_gets_fast_turnaround(self):
        """Bi-Weekly contains 'Weekly', so it shares the 24-hour bullets."""
        features = plan_features(PLANS[0])
        self.assertIn("24-hour turnaround", features)
        self.assertNotIn("Save $10/month vs pay-per-bag", features)

    def test_monthly_features(self):
        features = plan_features({'name': 'Monthly Basic', 'pickups_per_month': 1})
        self.assertIn("48-hour turnaround", features)
        self.assertNotIn("Priority support", features)


class SubscriptionServiceTest(TestCase):

    def setUp(self):
        self.request = RequestFactory().get('/')
        self.request.session = {SESSION_KEY: make_user('customer')}

    @patch.object(BackendClient, 'request')
    def test_update_sends_only_given_fields(self, mock_request):
        SubscriptionService.update(self.request, 11, status='paused')
        mock_request.assert_called_once_with(
            'PUT', 'subscriptions/11', params=None, json={'status': 'paused'}
        )

    @patch.object(BackendClient, 'request')
    def test_preview_change(self, mock_request):
        SubscriptionService.preview_change(self.request, '2')
        mock_request.assert_called_once_with(
            'POST', 'subscriptions/preview-change', params=None, json={'new_plan_id': 2}
        )

    @patch.object(BackendClient, 'request', side_effect=BackendError(404, 'No active subscription found'))
    def test_no_current_subscription(self, _request):
        self.assertIsNone(SubscriptionService.current(self.request))


@patch.object(SubscriptionService, 'usage', return_value=None)
@patch.object(SubscriptionService, 'list_plans', return_value=PLANS)
class PlansViewTest(SessionLoginMixin, TestCase):

    def setUp(self):
        self.login_as('customer')

    @patch.object(SubscriptionService, 'current', return_value=SUBSCRIPTION)
    def test_current_plan_highlighted(self, *_mocks):
        response = self.client.get(reverse('subscriptions:plans'))
        current = [p['id'] for p in response.context['plans'] if p['is_current']]
        self.assertEqual(current, [1])
        self.assertContains(response, 'Pause subscription')

    @patch.object(SubscriptionService, 'current', return_value=None)
    def test_no_subscription(self, *_mocks):
        response = self.client.get(reverse('subscriptions:plans'))
        self.assertIsNone(response.context['subscription'])
        self.assertContains(response, 'Choose a plan')


class ChoosePlanViewTest(SessionLoginMixin, TestCase):

    def setUp(self):
        self.login_as('customer')

    @patch.object(SubscriptionService, 'current', return_value=None)
    def test_no_subscription_goes_to_checkout(self, _current):
        response = self.client.post(reverse('subscriptions:choose', args=[2]))
        self.assertRedirects(response, reverse('subscriptions:checkout', args=[2]), fetch_redirect_response=False)

    @patch.object(SubscriptionService, 'current', return_value=dict(SUBSCRIPTION, status='cancelled'))
    def test_cancelled_subscription_goes_to_checkout(self, _current):
        response = self.client.post(reverse('subscriptions:choose', args=[1]))
        self.assertRedirects(response, reverse('subscriptions:checkout', args=[1]), fetch_redirect_response=False)

    @patch.object(SubscriptionService, 'current', return_value=SUBSCRIPTION)
    def test_same_plan_refused(self, _current):
        response = self.client.post(reverse('subscriptions:choose', args=[1]))
        self.assertRedirects(response, reverse('subscriptions:plans'), fetch_redirect_response=False)
        self.assertIn("Cannot change to the same plan", flash_messages(response))

    @patch.object(SubscriptionService, 'current', return_value=SUBSCRIPTION)
    def test_other_plan_previewed(self, _current):
        response = self.client.post(reverse('subscriptions:choose', args=[2]))
        self.assertRedirects(response, reverse('subscriptions:preview', args=[2]), fetch_redirect_response=False)


class PreviewChangeViewTest(SessionLoginMixin, TestCase):

    def setUp(self):
        self.login_as('customer')

    @patch.object(SubscriptionService, 'preview_change')
    def test_preview_rendered(self, mock_preview):
        mock_preview.return_value = {
            'current_plan': {'name': 'Bi-Weekly'}, 'new_plan': {'name': 'Weekly Standard'},
            'immediate_charge': 42.5, 'immediate_credit': 0,
            'proration_description': 'Prorated for 15 days', 'new_billing_date': '2026-11-01',
        }
        response = self.client.get(reverse('subscriptions:preview', args=[2]))
        self.assertContains(response, '$42.50')
        self.assertContains(response, 'Prorated for 15 days')

    @patch.object(SubscriptionService, 'preview_change', side_effect=BackendError(400, 'Same plan'))
    def test_preview_error(self, _preview):
        response = self.client.get(reverse('subscriptions:preview', args=[2]))
        self.assertIn('Same plan', flash_messages(response))

    @patch.object(SubscriptionService, 'update')
    @patch.object(SubscriptionService, 'current', return_value=SUBSCRIPTION)
    def test_confirm_change(self, _current, mock_update):
        response = self.client.post(reverse('subscriptions:preview', args=[2]))
        mock_update.assert_called_once()
        self.assertEqual(mock_update.call_args[0][1], 11)
        self.assertEqual(mock_update.call_args[1], {'plan_id': 2})
        self.assertIn("Plan changed successfully", flash_messages(response))


class SubscriptionLifecycleTest(SessionLoginMixin, TestCase):
    """Pause, resume and cancel."""

    def setUp(self):
        self.login_as('customer')

    @patch.object(SubscriptionService, 'update')
    @patch.object(SubscriptionService, 'current', return_value=SUBSCRIPTION)
    def test_pause(self, _current, mock_update):
        response = self.client.post(reverse('subscriptions:status'), {'status': 'paused'})
        self.assertEqual(mock_update.call_args[1], {'status': 'paused'})
        self.assertIn("Subscription paused successfully", flash_messages(response))

    @patch.object(SubscriptionService, 'update')
    def test_invalid_status(self, mock_update):
        response = self.client.post(reverse('subscriptions:status'), {'status': 'cancelled'})
        mock_update.assert_not_called()
        self.assertIn("Invalid subscription status", flash_messages(response))

    @patch.object(SubscriptionService, 'cancel')
    def test_cancel_needs_confirmation(self, mock_cancel):
        response = self.client.post(reverse('subscriptions:cancel'))
        mock_cancel.assert_not_called()
        self.assertIn("Please confirm the cancellation.", flash_messages(response))

    @patch.object(SubscriptionService, 'cancel')
    @patch.object(SubscriptionService, 'current', return_value=SUBSCRIPTION)
    def test_cancel(self, _current, mock_cancel):
        response = self.client.post(reverse('subscriptions:cancel'), {'confirm': 'on'})
        self.assertEqual(mock_cancel.call_args[0][1], 11)
        self.assertIn("Subscription cancelled successfully", flash_messages(response))

    @patch.object(SubscriptionService, 'cancel')
    @patch.object(SubscriptionService, 'current', return_value=None)
    def test_cancel_without_subscription(self, _current, mock_cancel):
        response = self.client.post(reverse('subscriptions:cancel'), {'confirm': 'on'})
        mock_cancel.assert_not_called()
        self.assertIn("You don't have a subscription", flash_messages(response))


@patch.object(SubscriptionService, 'list_plans', return_value=PLANS)
class CheckoutViewTest(SessionLoginMixin, TestCase):

    def setUp(self):
        self.login_as('customer')

    def test_unknown_plan(self, _plans):
        response = self.client.get(reverse('subscriptions:checkout', args=[99]))
        self.assertIn("Plan not found", flash_messages(response))

    @patch.object(AddressService, 'list', return_value=[dict(ADDRESSES[0], is_default=False)])
    def test_default_address_required(self, _addresses, _plans):
        response = self.client.get(reverse('subscriptions:checkout', args=[2]))
        self.assertRedirects(response, reverse('accounts:settings'), fetch_redirect_response=False)
        self.assertIn(DEFAULT_ADDRESS_REQUIRED, flash_messages(response))

    @patch.object(PaymentService, 'create_setup_intent', return_value={'client_secret': 'seti_secret'})
    @patch.object(AddressService, 'list', return_value=ADDRESSES)
    def test_checkout_page(self, _addresses, _intent, _plans):
        response = self.client.get(reverse('subscriptions:checkout', args=[2]))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context['plan']['price_display'], '170.00')
        self.assertContains(response, 'data-client-secret="seti_secret"')
        self.assertContains(response, reverse('subscriptions:checkout-complete', args=[2]))


class CheckoutCompleteTest(SessionLoginMixin, TestCase):
    """AJAX subscription creation after card setup."""

    def _post(self, data=None):
        return self.client.post(reverse('subscriptions:checkout-complete', args=[2]), data or {})

    def test_requires_session(self):
        """Anonymous callers get JSON, not the sign-in page."""
        response = self._post({'payment_method_id': 'pm_1'})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response['Content-Type'], 'application/json')

    @patch.object(AddressService, 'list', side_effect=BackendAuthError(401, 'token expired'))
    def test_expired_token_answers_json(self, _addresses):
        self.login_as('customer')
        response = self._post({'payment_method_id': 'pm_1'})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {'detail': 'Session expired'})
        self.assertNotIn(SESSION_KEY, self.client.session)

    def test_customers_only(self):
        self.login_as('driver')
        self.assertEqual(self._post({'payment_method_id': 'pm_1'}).status_code, 403)

    def test_missing_payment_method(self):
        self.login_as('customer')
        response = self._post()
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {'error': 'Missing payment method'})

    @patch.object(AddressService, 'list', return_value=[])
    def test_default_address_required(self, _addresses):
        self.login_as('customer')
        response = self._post({'payment_method_id': 'pm_1'})
        self.assertEqual(response.json()['error'], DEFAULT_ADDRESS_REQUIRED)

    @patch.object(PaymentService, 'create_subscription_payment')
    @patch.object(AddressService, 'list', return_value=ADDRESSES)
    def test_activated(self, _addresses, mock_payment):
        mock_payment.return_value = {'subscription_id': 11, 'status': 'active', 'requires_action': False}
        self.login_as('customer')
        response = self._post({'payment_method_id': 'pm_1'})

        mock_payment.assert_called_once()
        self.assertEqual(mock_payment.call_args[0][1:], (2, 'pm_1'))
        self.assertEqual(response.json(), {
            'requires_action': False, 'client_secret': None, 'redirect': reverse('subscriptions:plans'),
        })

    @patch.object(PaymentService, 'create_subscription_payment')
    @patch.object(AddressService, 'list', return_value=ADDRESSES)
    def test_requires_action(self, _addresses, mock_payment):
        mock_payment.return_value = {'status': 'incomplete', 'requires_action': True, 'client_secret': 'pi_secret'}
        self.login_as('customer')
        data = self._post({'payment_method_id': 'pm_1'}).json()
        self.assertTrue(data['requires_action'])
        self.assertEqual(data['client_secret'], 'pi_secret')

    @patch.object(PaymentService, 'create_subscription_payment',
                  side_effect=BackendError(400, 'user has no default address'))
    @patch.object(AddressService, 'list', return_value=ADDRESSES)
    def test_backend_address_error(self, _addresses, _payment):
        self.login_as('customer')
        response = self._post({'payment_method_id': 'pm_1'})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['error'], DEFAULT_ADDRESS_REQUIRED)


class PreferencesFormTest(TestCase):

    def test_initial_from_preferences(self):
        initial = PreferencesForm.initial_from({
            'default_pickup_address_id': 5, 'lead_time_days': 0,
            'default_services': [{'service_id': 1, 'quantity': 2}],
        })
        self.assertEqual(initial['default_pickup_address_id'], 5)
        self.assertEqual(initial['lead_time_days'], 1)
        self.assertEqual(initial['service_1'], 2)

    def test_pickup_fee_is_not_a_service_field(self):
        form = PreferencesForm(addresses=ADDRESSES, services=SERVICES)
        self.assertIn('service_1', form.fields)
        self.assertNotIn('service_3', form.fields)

    def test_to_payload(self):
        form = PreferencesForm({
            'default_pickup_address_id': '5', 'default_delivery_address_id': '',
            'preferred_pickup_day': 'monday', 'lead_time_days': '2',
            'auto_schedule_enabled': 'on', 'service_1': '3',
        }, addresses=ADDRESSES, services=SERVICES)
        self.assertTrue(form.is_valid(), form.errors)

        payload = form.to_payload()
        self.assertEqual(payload['default_pickup_address_id'], 5)
        self.assertIsNone(payload['default_delivery_address_id'])
        self.assertEqual(payload['default_services'], [{'service_id': 1, 'quantity': 3}])
        self.assertTrue(payload['auto_schedule_enabled'])

    def test_lead_time_bounds(self):
        form = PreferencesForm({'lead_time_days': '30'}, addresses=ADDRESSES, services=SERVICES)
        self.assertIn('lead_time_days', form.errors)


@patch.object(CatalogService, 'list_services', return_value=SERVICES)
@patch.object(AddressService, 'list', return_value=ADDRESSES)
@patch.object(SubscriptionService, 'preferences', return_value=None)
class PreferencesViewTest(SessionLoginMixin, TestCase):

    def setUp(self):
        self.login_as('customer')

    def test_page(self, *_mocks):
        response = self.client.get(reverse('subscriptions:preferences'))
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'Standard Bag')

    @patch.object(SubscriptionService, 'save_preferences')
    def test_save(self, mock_save, *_mocks):
        response = self.client.post(reverse('subscriptions:preferences'), {
            'lead_time_days': '1', 'service_1': '2',
        })
        self.assertRedirects(response, reverse('subscriptions:preferences'), fetch_redirect_response=False)
        self.assertEqual(mock_save.call_args[0][1]['default_services'], [{'service_id': 1, 'quantity': 2}])
        self.assertIn("Preferences saved successfully", flash_messages(response))
