"""
DRIVERS App - Tests for the driver workspace.

Tests cover:
- DriverService backend calls (stop ordering, 404 application)
- Hourly rate and earnings history rows
- Routes page gating (start only when planned, stops only while pending)
- Deliveries period fallback
- Earnings CSV export
- Driver application form validation and submission
"""

from datetime import date
from decimal import Decimal
from unittest.mock import patch

from django.test import Client, TestCase, RequestFactory
from django.urls import reverse

from core.backend import BackendClient, BackendError
from core.testing import SessionLoginMixin, flash_messages, make_user
from core.session import SESSION_KEY

from .forms import DriverApplicationForm, RouteStopStatusForm
from .services import DriverService, earnings_csv_filename, history_rows, hourly_rate


ROUTE = {
    'id': 7,
    'route_date': '2026-10-19',
    'route_type': 'pickup',
    'status': 'planned',
    'orders': [
        {'id': 31, 'order_id': 101, 'sequence_number': 2, 'status': 'pending',
         'customer_name': 'Ada Lovelace', 'address': '2 Main St'},
        {'id': 30, 'order_id': 100, 'sequence_number': 1, 'status': 'completed',
         'customer_name': 'Alan Turing', 'address': '1 Main St'},
    ],
}

APPLICATION = {
    'first_name': 'Ada', 'last_name': 'Lovelace', 'phone': '5551234567',
    'license_number': 'D123', 'license_state': 'mi',
    'vehicle_year': '2020', 'vehicle_make': 'Toyota', 'vehicle_model': 'Camry',
    'insurance_provider': 'Acme', 'insurance_policy_id': 'P-1',
    'availability': 'Weekends',
}


def _request_for(user):
    request = RequestFactory().get('/')
    request.session = {SESSION_KEY: user}
    return request


class DriverServiceTest(TestCase):
    """Test the driver backend calls."""

    def setUp(self):
        self.request = _request_for(make_user('driver'))

    @patch.object(BackendClient, 'request')
    def test_routes_sorted_by_sequence(self, mock_request):
        """Stops come back ordered by sequence_number."""
        mock_request.return_value = [dict(ROUTE, orders=list(ROUTE['orders']))]
        routes = DriverService.routes(self.request, '2026-10-19')

        mock_request.assert_called_once_with('GET', 'driver/routes', params={'date': '2026-10-19'})
        self.assertEqual([s['sequence_number'] for s in routes[0]['orders']], [1, 2])

    @patch.object(BackendClient, 'request')
    def test_routes_without_date(self, mock_request):
        """No date filter sends no params."""
        mock_request.return_value = None
        self.assertEqual(DriverService.routes(self.request), [])
        mock_request.assert_called_once_with('GET', 'driver/routes', params=None)

    @patch.object(BackendClient, 'request')
    def test_update_stop_payload(self, mock_request):
        """Stop status goes in the body, route order id in the query."""
        DriverService.update_stop(self.request, 31, 'completed')
        mock_request.assert_called_once_with(
            'PUT', 'driver/route-orders/status', params={'id': 31}, json={'status': 'completed'}
        )

    @patch.object(BackendClient, 'request')
    def test_start_route(self, mock_request):
        DriverService.start_route(self.request, 7)
        mock_request.assert_called_once_with('PUT', 'driver/routes/start', params={'id': 7}, json=None)

    @patch.object(BackendClient, 'request')
    def test_my_application_not_found(self, mock_request):
        """A 404 means the user never applied."""
        mock_request.side_effect = BackendError(404, 'No application found')
        self.assertIsNone(DriverService.my_application(self.request))

    @patch.object(BackendClient, 'request')
    def test_my_application_other_error_propagates(self, mock_request):
        mock_request.side_effect = BackendError(500, 'boom')
        with self.assertRaises(BackendError):
            DriverService.my_application(self.request)


class EarningsHelpersTest(TestCase):
    """Test the earnings math."""

    def test_hourly_rate(self):
        self.assertEqual(hourly_rate(100, 8), Decimal('12.50'))

    def test_hourly_rate_zero_hours(self):
        """No hours logged gives a zero rate, never a division error."""
        self.assertEqual(hourly_rate(45, 0), Decimal('0.00'))

    def test_history_rows(self):
        rows = history_rows([{'date': '2026-10-18', 'orders': 3, 'earnings': 45.5, 'hours': 2}])
        self.assertEqual(rows[0]['orders'], 3)
        self.assertEqual(rows[0]['earnings'], Decimal('45.50'))
        self.assertEqual(rows[0]['rate'], Decimal('22.75'))

    def test_csv_filename(self):
        self.assertEqual(
            earnings_csv_filename('month', date(2026, 10, 19)),
            'driver_earnings_month_2026-10-19.csv',
        )


class RoutesViewTest(SessionLoginMixin, TestCase):
    """Test the driver routes page."""

    def setUp(self):
        self.login_as('driver')

    # ==========================================
    # ACCESS
    # ==========================================

    def test_customer_redirected(self):
        """Customers are sent back to the dashboard."""
        self.login_as('customer')
        response = self.client.get(reverse('drivers:routes'))
        self.assertRedirects(response, reverse('core:dashboard'), fetch_redirect_response=False)

    def test_anonymous_redirected_to_signin(self):
        response = Client().get(reverse('drivers:routes'))
        self.assertEqual(response.status_code, 302)
        self.assertIn(reverse('core:signin'), response['Location'])

    # ==========================================
    # LISTING
    # ==========================================

    @patch.object(DriverService, 'routes')
    def test_start_only_for_planned(self, mock_routes):
        """A planned route can be started; pending stops can be updated."""
        route = dict(ROUTE, orders=sorted(ROUTE['orders'], key=lambda s: s['sequence_number']))
        mock_routes.return_value = [route]

        response = self.client.get(reverse('drivers:routes'))

        self.assertEqual(response.status_code, 200)
        routes = response.context['routes']
        self.assertTrue(routes[0]['can_start'])
        self.assertEqual([s['can_update'] for s in routes[0]['orders']], [False, True])

    @patch.object(DriverService, 'routes')
    def test_in_progress_route_cannot_start(self, mock_routes):
        mock_routes.return_value = [dict(ROUTE, status='in_progress', orders=[])]
        response = self.client.get(reverse('drivers:routes'))
        self.assertFalse(response.context['routes'][0]['can_start'])

    @patch.object(DriverService, 'routes')
    def test_date_filter_forwarded(self, mock_routes):
        mock_routes.return_value = []
        self.client.get(reverse('drivers:routes'), {'date': '2026-10-20'})
        self.assertEqual(mock_routes.call_args[0][1], '2026-10-20')

    @patch.object(DriverService, 'routes')
    def test_backend_failure_shows_error(self, mock_routes):
        mock_routes.side_effect = BackendError(500, 'down')
        response = self.client.get(reverse('drivers:routes'))
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, "Failed to load routes")

    # ==========================================
    # ACTIONS
    # ==========================================

    @patch.object(DriverService, 'update_stop')
    def test_update_pending_stop(self, mock_update):
        response = self.client.post(
            reverse('drivers:update-stop', args=[31]),
            {'status': 'completed', 'current_status': 'pending'},
        )
        self.assertRedirects(response, reverse('drivers:routes'), fetch_redirect_response=False)
        mock_update.assert_called_once()
        self.assertEqual(mock_update.call_args[0][1:], (31, 'completed'))

    @patch.object(DriverService, 'update_stop')
    def test_completed_stop_not_updated(self, mock_update):
        """Only pending stops reach the backend."""
        self.client.post(
            reverse('drivers:update-stop', args=[30]),
            {'status': 'failed', 'current_status': 'completed'},
        )
        mock_update.assert_not_called()

    @patch.object(DriverService, 'start_route')
    def test_start_route_error_message(self, mock_start):
        mock_start.side_effect = BackendError(400, 'Route already started')
        response = self.client.post(reverse('drivers:start-route', args=[7]))
        self.assertIn('Route already started', flash_messages(response))


class RouteStopStatusFormTest(TestCase):
    def test_pending_is_valid(self):
        form = RouteStopStatusForm(data={'status': 'failed', 'current_status': 'pending'})
        self.assertTrue(form.is_valid())

    def test_status_pending_not_offered(self):
        form = RouteStopStatusForm(data={'status': 'pending'})
        self.assertFalse(form.is_valid())


class DeliveriesViewTest(SessionLoginMixin, TestCase):
    def setUp(self):
        self.login_as('driver')

    @patch.object(DriverService, 'completed_deliveries')
    def test_default_period_is_week(self, mock_deliveries):
        mock_deliveries.return_value = []
        response = self.client.get(reverse('drivers:deliveries'))
        self.assertEqual(response.context['period'], 'week')
        self.assertEqual(response.context['period_label'], 'This Week')

    @patch.object(DriverService, 'completed_deliveries')
    def test_unknown_period_falls_back(self, mock_deliveries):
        mock_deliveries.return_value = []
        self.client.get(reverse('drivers:deliveries'), {'period': 'decade'})
        self.assertEqual(mock_deliveries.call_args[0][1], 'week')

    @patch.object(DriverService, 'completed_deliveries')
    def test_all_time(self, mock_deliveries):
        mock_deliveries.return_value = [{'id': 1, 'order_id': 100, 'customer_name': 'Ada'}]
        response = self.client.get(reverse('drivers:deliveries'), {'period': 'all'})
        self.assertEqual(response.context['period_label'], 'All Time')
        self.assertEqual(len(response.context['deliveries']), 1)


class EarningsViewTest(SessionLoginMixin, TestCase):
    """Test the driver earnings page and CSV export."""

    EARNINGS = {
        'today': 20, 'thisWeek': 120.5, 'thisMonth': 480, 'total': 2000,
        'completedOrders': 40, 'averagePerOrder': 12, 'hoursWorked': 30, 'hourlyRate': 16,
    }
    HISTORY = [
        {'date': '2026-10-18', 'orders': 4, 'earnings': 60, 'hours': 4},
        {'date': '2026-10-17', 'orders': 1, 'earnings': 15, 'hours': 0},
    ]

    def setUp(self):
        self.login_as('driver')

    @patch.object(DriverService, 'earnings_history')
    @patch.object(DriverService, 'earnings')
    def test_summary(self, mock_earnings, mock_history):
        mock_earnings.return_value = self.EARNINGS
        mock_history.return_value = self.HISTORY

        response = self.client.get(reverse('drivers:earnings'))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context['summary']['thisWeek'], Decimal('120.5'))
        self.assertEqual(response.context['summary']['completedOrders'], 40)
        self.assertEqual(response.context['history'][1]['rate'], Decimal('0.00'))

    @patch.object(DriverService, 'earnings_history')
    @patch.object(DriverService, 'earnings')
    def test_csv_export(self, mock_earnings, mock_history):
        mock_earnings.return_value = self.EARNINGS
        mock_history.return_value = self.HISTORY

        response = self.client.get(reverse('drivers:earnings'), {'period': 'month', 'format': 'csv'})

        self.assertEqual(response['Content-Type'], 'text/csv')
        self.assertIn('driver_earnings_month_', response['Content-Disposition'])
        lines = response.content.decode().strip().splitlines()
        self.assertEqual(lines[0], 'Date,Orders,Earnings,Hours,Rate')
        self.assertEqual(lines[1], '2026-10-18,4,$60.00,4.0,$15.00')
        self.assertEqual(lines[2], '2026-10-17,1,$15.00,0.0,$0.00')
        mock_history.assert_called_once()
        self.assertEqual(mock_history.call_args[0][1], 'month')


class DriverApplicationFormTest(TestCase):
    """Test driver application validation."""

    def _data(self, **overrides):
        return dict(APPLICATION, **overrides)

    def test_valid(self):
        form = DriverApplicationForm(data=self._data())
        self.assertTrue(form.is_valid(), form.errors)
        self.assertEqual(form.cleaned_data['license_state'], 'MI')

    def test_year_must_be_four_digits(self):
        form = DriverApplicationForm(data=self._data(vehicle_year='20'))
        self.assertIn('vehicle_year', form.errors)

    @patch('drivers.forms.timezone.localdate', return_value=date(2026, 10, 19))
    def test_year_not_after_next_year(self, _):
        self.assertTrue(DriverApplicationForm(data=self._data(vehicle_year='2027')).is_valid())
        self.assertIn('vehicle_year', DriverApplicationForm(data=self._data(vehicle_year='2028')).errors)

    def test_availability_required(self):
        form = DriverApplicationForm(data=self._data(availability=''))
        self.assertIn('availability', form.errors)


class ApplyDriverViewTest(SessionLoginMixin, TestCase):
    def setUp(self):
        self.login_as('customer')

    @patch.object(DriverService, 'my_application')
    def test_existing_application_shown(self, mock_mine):
        mock_mine.return_value = {'id': 3, 'status': 'pending'}
        response = self.client.get(reverse('drivers:apply'))
        self.assertEqual(response.context['application']['status'], 'pending')
        self.assertNotIn('form', response.context)

    @patch.object(DriverService, 'submit_application')
    @patch.object(DriverService, 'my_application', return_value=None)
    def test_submit(self, _mine, mock_submit):
        response = self.client.post(reverse('drivers:apply'), APPLICATION)
        self.assertRedirects(response, reverse('core:dashboard'), fetch_redirect_response=False)
        payload = mock_submit.call_args[0][1]
        self.assertEqual(payload['vehicle_make'], 'Toyota')

    @patch.object(DriverService, 'submit_application')
    @patch.object(DriverService, 'my_application', return_value=None)
    def test_submit_error_shown(self, _mine, mock_submit):
        mock_submit.side_effect = BackendError(400, 'Application already exists')
        response = self.client.post(reverse('drivers:apply'), APPLICATION)
        self.assertContains(response, 'Application already exists')

    def test_drivers_cannot_apply(self):
        self.login_as('driver')
        response = self.client.get(reverse('drivers:apply'))
        self.assertEqual(response.status_code, 302)
