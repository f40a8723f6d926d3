"""
ORDERS App - Tests for customer orders, scheduling and the cost estimate.

Tests cover:
- Cost calculation (pickup fee, subscription bag coverage, tax, tip)
- Tip presets
- Order creation response normalization
- Schedule form / formset validation and submission
- Order detail ownership checks
- Live cost estimate API
"""

from datetime import date, timedelta
from decimal import Decimal
from unittest.mock import patch

from django.core.cache import cache
from django.test import TestCase, RequestFactory
from django.urls import reverse
from django.utils import timezone

from accounts.services import AddressService
from core.backend import BackendClient, BackendError
from core.session import SESSION_KEY
from core.testing import SessionLoginMixin, flash_messages, make_user
from subscriptions.services import SubscriptionService

from .pricing import calculate_cost, default_dates, default_item, orderable_services, tip_presets
from .services import CatalogService, OrderService, order_summary

SERVICES = [
    {'id': 1, 'name': 'standard_bag', 'base_price': 30.0},
    {'id': 2, 'name': 'comforter', 'base_price': 25.0},
    {'id': 3, 'name': 'pickup_service', 'base_price': 10.0},
]

ADDRESSES = [
    {'id': 4, 'street_address': '1 Main St', 'city': 'Detroit', 'is_default': False},
    {'id': 5, 'street_address': '9 Oak Ave', 'city': 'Detroit', 'is_default': True},
]

ORDER = {
    'id': 9, 'user_id': 1, 'status': 'scheduled', 'pickup_date': '2026-10-20',
    'pickup_time_slot': '8:00 AM - 12:00 PM', 'delivery_date': '2026-10-21',
    'total': 47.7, 'created_at': '2026-10-19T09:00:00Z',
    'items': [{'service_id': 1, 'service_name': 'standard_bag', 'quantity': 2, 'price': 45.0}],
}


def _request_for(user):
    request = RequestFactory().get('/')
    request.session = {SESSION_KEY: user}
    return request


class CostCalculatorTest(TestCase):
    """Test the schedule cost estimate."""

    def test_no_subscription(self):
        """Pickup fee + items, 6% tax, tip added last."""
        items = [{'service_id': 1, 'quantity': 2}, {'service_id': 2, 'quantity': 1}]
        cost = calculate_cost(items, SERVICES, None, Decimal('5'))

        self.assertEqual(cost.subtotal, Decimal('125.00'))
        self.assertEqual(cost.subscription_discount, Decimal('0.00'))
        self.assertEqual(cost.tax, Decimal('7.50'))
        self.assertEqual(cost.total, Decimal('137.50'))
        self.assertFalse(cost.has_subscription_benefits)

    def test_standard_bag_uses_flat_price(self):
        """Bags are priced from settings, not the catalog base price."""
        cost = calculate_cost([{'service_id': 1, 'quantity': 1}], SERVICES)
        self.assertEqual(cost.subtotal, Decimal('55.00'))

    def test_partial_subscription_coverage(self):
        """Only the remaining bags are covered."""
        usage = {'pickups_remaining': 1, 'bags_remaining': 1}
        cost = calculate_cost([{'service_id': 1, 'quantity': 2}], SERVICES, usage)

        self.assertEqual(cost.subscription_discount, Decimal('55.00'))
        self.assertEqual(cost.final_subtotal, Decimal('45.00'))
        self.assertEqual(cost.tax, Decimal('2.70'))
        self.assertEqual(cost.total, Decimal('47.70'))
        self.assertEqual(cost.covered_bags, 1)
        self.assertTrue(cost.pickup_covered)

    def test_fully_covered(self):
        usage = {'pickups_remaining': 2, 'bags_remaining': 3}
        cost = calculate_cost([{'service_id': 1, 'quantity': 1}], SERVICES, usage)

        self.assertTrue(cost.fully_covered)
        self.assertEqual(cost.total, Decimal('0.00'))
        self.assertEqual(tip_presets(cost.final_subtotal), [])

    def test_no_pickup_left(self):
        """Bags can be covered while the pickup fee is charged."""
        usage = {'pickups_remaining': 0, 'bags_remaining': 2}
        cost = calculate_cost([{'service_id': 1, 'quantity': 1}], SERVICES, usage)

        self.assertFalse(cost.pickup_covered)
        self.assertEqual(cost.final_subtotal, Decimal('10.00'))

    def test_no_bag_coverage_without_standard_bag_service(self):
        services = [s for s in SERVICES if s['name'] != 'standard_bag']
        usage = {'pickups_remaining': 0, 'bags_remaining': 5}
        cost = calculate_cost([{'service_id': 2, 'quantity': 1}], services, usage)
        self.assertEqual(cost.covered_bags, 0)

    def test_negative_tip_ignored(self):
        cost = calculate_cost([{'service_id': 2, 'quantity': 1}], SERVICES, None, Decimal('-3'))
        self.assertEqual(cost.tip, Decimal('0.00'))

    def test_as_dict_formats_money(self):
        data = calculate_cost([{'service_id': 2, 'quantity': 1}], SERVICES).as_dict()
        self.assertEqual(data['subtotal'], '35.00')

    def test_tip_presets(self):
        self.assertEqual(tip_presets(Decimal('40.00')), [
            (15, Decimal('6.00')), (18, Decimal('7.20')), (20, Decimal('8.00')), (25, Decimal('10.00')),
        ])


class PricingHelpersTest(TestCase):

    def test_default_dates(self):
        self.assertEqual(default_dates(date(2026, 10, 19)), (date(2026, 10, 20), date(2026, 10, 21)))

    def test_default_item_is_one_bag(self):
        self.assertEqual(default_item(SERVICES), {'service_id': 1, 'quantity': 1})

    def test_pickup_service_not_orderable(self):
        self.assertEqual([s['id'] for s in orderable_services(SERVICES)], [1, 2])

    def test_order_summary(self):
        order = {'items': [
            {'service_id': 1, 'quantity': 2},
            {'service_id': 2, 'service_name': 'comforter', 'quantity': 1},
        ]}
        self.assertEqual(order_summary(order, SERVICES), '3 items: standard bag, comforter')
        self.assertEqual(order_summary({'items': []}), 'No items')


class OrderServiceTest(TestCase):
    """Test the order backend calls."""

    def setUp(self):
        cache.clear()
        self.request = _request_for(make_user('customer'))

    @patch.object(BackendClient, 'request')
    def test_create_order_requiring_payment(self, mock_request):
        mock_request.return_value = {'order': {'id': 9}, 'requires_payment': True, 'checkout_url': 'pi_123'}
        result = OrderService.create_order(self.request, {'items': []})

        mock_request.assert_called_once_with('POST', 'orders/create', params=None, json={'items': []})
        self.assertEqual(result, {'order': {'id': 9}, 'requires_payment': True, 'payment_intent_id': 'pi_123'})

    @patch.object(BackendClient, 'request')
    def test_create_order_bare_order(self, mock_request):
        """A plain order answer means the subscription covered it."""
        mock_request.return_value = {'id': 9, 'total': 0}
        result = OrderService.create_order(self.request, {})
        self.assertFalse(result['requires_payment'])
        self.assertEqual(result['order']['id'], 9)

    @patch.object(BackendClient, 'request')
    def test_payment_without_intent_is_not_required(self, mock_request):
        mock_request.return_value = {'order': {'id': 9}, 'requires_payment': True}
        self.assertFalse(OrderService.create_order(self.request, {})['requires_payment'])

    @patch.object(BackendClient, 'request', return_value=SERVICES)
    def test_catalog_cached(self, mock_request):
        CatalogService.list_services()
        CatalogService.list_services()
        mock_request.assert_called_once_with('GET', 'services', params=None)


def _schedule_data(**overrides):
    today = timezone.localdate()
    data = {
        'pickup_address_id': '5',
        'delivery_address_id': '5',
        'pickup_date': (today + timedelta(days=1)).isoformat(),
        'pickup_time_slot': '8:00 AM - 12:00 PM',
        'delivery_date': (today + timedelta(days=2)).isoformat(),
        'delivery_time_slot': '4:00 PM - 8:00 PM',
        'tip': '0',
        'special_instructions': '',
        'form-TOTAL_FORMS': '1',
        'form-INITIAL_FORMS': '0',
        'form-MIN_NUM_FORMS': '1',
        'form-MAX_NUM_FORMS': '1000',
        'form-0-service_id': '1',
        'form-0-quantity': '2',
    }
    data.update(overrides)
    return data


@patch.object(SubscriptionService, 'usage', return_value=None)
@patch.object(CatalogService, 'list_services', return_value=SERVICES)
@patch.object(AddressService, 'list', return_value=ADDRESSES)
class ScheduleViewTest(SessionLoginMixin, TestCase):
    """Test pickup scheduling."""

    def setUp(self):
        self.login_as('customer')

    def test_defaults(self, *_mocks):
        """Default address, one bag, pickup tomorrow."""
        response = self.client.get(reverse('orders:schedule'))
        form = response.context['form']

        self.assertEqual(form.initial['pickup_address_id'], '5')
        self.assertEqual(form.initial['pickup_date'], timezone.localdate() + timedelta(days=1))
        self.assertEqual(response.context['formset'].initial, [{'service_id': '1', 'quantity': 1}])
        self.assertEqual(response.context['cost'].subtotal, Decimal('55.00'))

    @patch.object(OrderService, 'create_order')
    def test_schedule_covered_order(self, mock_create, *_mocks):
        mock_create.return_value = {'order': {'id': 9}, 'requires_payment': False, 'payment_intent_id': None}
        response = self.client.post(reverse('orders:schedule'), _schedule_data())

        self.assertRedirects(response, reverse('orders:list'), fetch_redirect_response=False)
        payload = mock_create.call_args[0][1]
        self.assertEqual(payload['pickup_address_id'], 5)
        self.assertEqual(payload['items'], [{'service_id': 1, 'quantity': 2, 'price': 45.0}])
        self.assertNotIn('special_instructions', payload)
        self.assertIn("Pickup scheduled successfully!", flash_messages(response))

    @patch.object(OrderService, 'create_order')
    def test_schedule_requires_payment(self, mock_create, *_mocks):
        mock_create.return_value = {'order': {'id': 9}, 'requires_payment': True, 'payment_intent_id': 'pi_123'}
        response = self.client.post(reverse('orders:schedule'), _schedule_data())
        self.assertRedirects(
            response, f"{reverse('orders:pay', args=[9])}?intent=pi_123", fetch_redirect_response=False
        )

    @patch.object(OrderService, 'create_order')
    def test_past_pickup_rejected(self, mock_create, *_mocks):
        yesterday = (timezone.localdate() - timedelta(days=1)).isoformat()
        response = self.client.post(reverse('orders:schedule'), _schedule_data(pickup_date=yesterday))

        self.assertEqual(response.status_code, 200)
        self.assertIn('pickup_date', response.context['form'].errors)
        mock_create.assert_not_called()

    @patch.object(OrderService, 'create_order')
    def test_delivery_before_pickup_rejected(self, mock_create, *_mocks):
        today = timezone.localdate().isoformat()
        response = self.client.post(reverse('orders:schedule'), _schedule_data(delivery_date=today))
        self.assertIn('delivery_date', response.context['form'].errors)
        mock_create.assert_not_called()

    @patch.object(OrderService, 'create_order')
    def test_all_items_removed(self, mock_create, *_mocks):
        response = self.client.post(reverse('orders:schedule'), _schedule_data(**{'form-0-DELETE': 'on'}))
        self.assertIn("Add at least one item to your order.", response.context['formset'].non_form_errors())
        mock_create.assert_not_called()

    @patch.object(OrderService, 'create_order', side_effect=BackendError(400, 'Invalid address'))
    def test_backend_failure(self, _create, *_mocks):
        response = self.client.post(reverse('orders:schedule'), _schedule_data())
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, "Failed to schedule pickup")

    def test_drivers_cannot_schedule(self, *_mocks):
        self.login_as('driver')
        response = self.client.get(reverse('orders:schedule'))
        self.assertRedirects(response, reverse('core:dashboard'), fetch_redirect_response=False)


class OrderListViewTest(SessionLoginMixin, TestCase):

    @patch.object(CatalogService, 'list_services', return_value=SERVICES)
    @patch.object(OrderService, 'list_orders')
    def test_newest_first(self, mock_orders, _services):
        mock_orders.return_value = [
            dict(ORDER, id=1, created_at='2026-10-01T00:00:00Z'),
            dict(ORDER, id=2, created_at='2026-10-18T00:00:00Z'),
        ]
        self.login_as('customer')
        response = self.client.get(reverse('orders:list'))

        self.assertEqual([o['id'] for o in response.context['orders']], [2, 1])
        self.assertContains(response, '2 items: standard bag')

    def test_admin_redirected_to_admin_orders(self):
        self.login_as('admin')
        response = self.client.get(reverse('orders:list'))
        self.assertRedirects(response, reverse('backoffice:orders'), fetch_redirect_response=False)


class OrderDetailViewTest(SessionLoginMixin, TestCase):
    """Test order ownership."""

    @patch.object(OrderService, 'get_order', return_value=ORDER)
    def test_own_order(self, _order):
        self.login_as('customer', id=1)
        response = self.client.get(reverse('orders:detail', args=[9]))
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'Order #9')

    @patch.object(OrderService, 'get_order', return_value=dict(ORDER, user_id=99))
    def test_other_users_order_denied(self, _order):
        self.login_as('customer', id=1)
        response = self.client.get(reverse('orders:detail', args=[9]))
        self.assertEqual(response.status_code, 403)
        self.assertTemplateUsed(response, 'orders/access_denied.html')

    @patch.object(OrderService, 'get_order', side_effect=BackendError(404, 'Order not found'))
    def test_missing_order_denied(self, _order):
        self.login_as('customer', id=1)
        response = self.client.get(reverse('orders:detail', args=[9]))
        self.assertEqual(response.status_code, 403)

    def test_admin_sees_resolutions(self):
        self.login_as('admin')
        resolutions = [{'id': 1, 'resolution_type': 'full_refund', 'refund_amount': 47.7, 'notes': 'Lost bag'}]
        with patch('backoffice.services.AdminService.find_order', return_value=dict(ORDER, status='failed')), \
                patch('backoffice.services.AdminService.resolutions', return_value=resolutions):
            response = self.client.get(reverse('orders:detail', args=[9]))

        self.assertEqual(response.context['resolutions'], resolutions)
        self.assertContains(response, 'Lost bag')


class OrderPaymentViewTest(SessionLoginMixin, TestCase):

    def setUp(self):
        self.login_as('customer')

    def test_missing_intent(self):
        response = self.client.get(reverse('orders:pay', args=[9]))
        self.assertRedirects(response, reverse('orders:list'), fetch_redirect_response=False)

    @patch.object(OrderService, 'payment_intent', return_value={'client_secret': 'pi_123_secret'})
    def test_payment_page(self, mock_intent):
        response = self.client.get(f"{reverse('orders:pay', args=[9])}?intent=pi_123")
        mock_intent.assert_called_once()
        self.assertContains(response, 'data-client-secret="pi_123_secret"')
        self.assertTrue(response.context['return_url'].endswith(reverse('orders:paid', args=[9])))

    def test_payment_failed_return(self):
        response = self.client.get(f"{reverse('orders:paid', args=[9])}?redirect_status=failed")
        self.assertRedirects(response, reverse('orders:detail', args=[9]), fetch_redirect_response=False)
        self.assertIn("Payment was not completed", flash_messages(response))


class CostEstimateAPITest(SessionLoginMixin, TestCase):
    """Test the live estimate endpoint."""

    def setUp(self):
        cache.clear()

    def _post(self, body):
        return self.client.post(reverse('api-cost-estimate'), data=body, content_type='application/json')

    def test_requires_session(self):
        response = self._post({'items': [{'service_id': 1, 'quantity': 1}]})
        self.assertEqual(response.status_code, 401)

    @patch.object(SubscriptionService, 'usage', return_value={'pickups_remaining': 1, 'bags_remaining': 1})
    @patch.object(CatalogService, 'list_services', return_value=SERVICES)
    def test_estimate(self, _services, _usage):
        self.login_as('customer')
        response = self._post({'items': [{'service_id': 1, 'quantity': 2}], 'tip': '5.00'})

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data['final_subtotal'], '45.00')
        self.assertEqual(data['total'], '52.70')
        self.assertEqual(data['covered_bags'], 1)
        self.assertEqual(len(data['tip_presets']), 4)

    def test_empty_items_rejected(self):
        self.login_as('customer')
        response = self._post({'items': []})
        self.assertEqual(response.status_code, 400)

    @patch.object(CatalogService, 'list_services', side_effect=BackendError(500, 'db down'))
    def test_backend_failure(self, _services):
        self.login_as('customer')
        response = self._post({'items': [{'service_id': 1, 'quantity': 1}]})
        self.assertEqual(response.status_code, 502)
