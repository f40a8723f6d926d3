"""
Tumble Dashboard Core Tests
===========================

Tests for:
1. Backend client (auth header, error mapping, 404 handling)
2. Money helpers (cent rounding)
3. Session user (login, inactive accounts, profile refresh)
4. Middleware (login gate, expired tokens, rate limiting, headers)
5. Sign in / sign up / role dashboard
6. Health checks & session API
"""

import json
import logging
from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock, patch

import requests
from django.contrib.sessions.backends.db import SessionStore
from django.core.cache import cache
from django.test import TestCase, RequestFactory, override_settings
from django.urls import reverse

from orders.services import CatalogService

from .backend import (
    BackendAuthError, BackendClient, BackendError, BackendUnavailable, get_or_none,
)
from .money import (
    MoneyCalculator, add_money, calculate_tax, dollars_to_cents, format_money, quantize, to_decimal,
)
from .services import AuthService, DashboardService
from .session import (
    SESSION_KEY, AnonymousSessionUser, InactiveAccount, get_user, login, update_profile,
)
from .testing import SessionLoginMixin, flash_messages, make_user

AUTH_RESPONSE = {
    'token': 'fresh-token',
    'user': {
        'id': 12, 'email': 'ada@tumble.test', 'first_name': 'Ada', 'last_name': 'Lovelace',
        'phone': '5551234567', 'role': 'customer', 'status': 'active',
    },
}


def _response(status_code=200, body=None, text=''):
    response = MagicMock(spec=requests.Response)
    response.status_code = status_code
    response.text = json.dumps(body) if body is not None else text
    response.content = response.text.encode()
    response.json.side_effect = lambda: json.loads(response.text)
    return response


@override_settings(TUMBLE_API_URL='http://backend.test', TUMBLE_API_TIMEOUT=3)
class TestBackendClient(TestCase):
    """Tests for the REST backend client."""

    def test_bearer_token_header(self):
        client = BackendClient(token='abc')
        self.assertEqual(client.session.headers['Authorization'], 'Bearer abc')

    def test_anonymous_has_no_auth_header(self):
        self.assertNotIn('Authorization', BackendClient.anonymous().session.headers)

    def test_build_url(self):
        client = BackendClient()
        self.assertEqual(client.build_url('/orders'), 'http://backend.test/api/v1/orders')

    def test_for_request_uses_session_token(self):
        request = RequestFactory().get('/')
        request.session = {SESSION_KEY: make_user('customer', access_token='session-token')}
        client = BackendClient.for_request(request)
        self.assertEqual(client.token, 'session-token')

    @patch('core.backend.requests.Session.request')
    def test_json_body_returned(self, mock_send):
        mock_send.return_value = _response(200, {'id': 1})
        result = BackendClient(token='abc').get('orders/1', params={'x': 1})

        self.assertEqual(result, {'id': 1})
        mock_send.assert_called_once_with(
            'GET', 'http://backend.test/api/v1/orders/1', params={'x': 1}, json=None, timeout=3
        )

    @patch('core.backend.requests.Session.request')
    def test_empty_body_is_none(self, mock_send):
        mock_send.return_value = _response(204)
        self.assertIsNone(BackendClient().delete('addresses/1'))

    @patch('core.backend.requests.Session.request')
    def test_401_raises_auth_error(self, mock_send):
        mock_send.return_value = _response(401, text='Invalid token')
        with self.assertRaises(BackendAuthError) as ctx:
            BackendClient(token='stale').get('auth/me')
        self.assertEqual(ctx.exception.message, 'Invalid token')

    @patch('core.backend.requests.Session.request')
    def test_json_error_message(self, mock_send):
        """{"error": "..."} bodies give their message."""
        mock_send.return_value = _response(409, {'error': 'User has orders'})
        with self.assertRaises(BackendError) as ctx:
            BackendClient().delete('admin/users/3')
        self.assertTrue(ctx.exception.is_conflict)
        self.assertEqual(ctx.exception.message, 'User has orders')

    @patch('core.backend.requests.Session.request')
    def test_plain_text_error_message(self, mock_send):
        mock_send.return_value = _response(400, text='Pickup date is required\n')
        with self.assertRaises(BackendError) as ctx:
            BackendClient().post('orders', json={})
        self.assertEqual(ctx.exception.status_code, 400)
        self.assertEqual(ctx.exception.message, 'Pickup date is required')

    @patch('core.backend.requests.Session.request')
    def test_network_failure(self, mock_send):
        mock_send.side_effect = requests.ConnectionError('refused')
        with self.assertRaises(BackendUnavailable) as ctx:
            BackendClient().get('services')
        self.assertIsNone(ctx.exception.status_code)

    @patch.object(BackendClient, 'request')
    def test_get_or_none(self, mock_request):
        """404 is an empty state, other errors propagate."""
        mock_request.side_effect = BackendError(404, 'No active subscription found')
        self.assertIsNone(get_or_none(BackendClient(), 'subscriptions/current'))

        mock_request.side_effect = BackendError(500, 'boom')
        with self.assertRaises(BackendError):
            get_or_none(BackendClient(), 'subscriptions/current')


class TestMoney(TestCase):
    """Tests for cent-precise money helpers."""

    def test_to_decimal_avoids_float_artefacts(self):
        self.assertEqual(to_decimal(0.1), Decimal('0.1'))
        self.assertEqual(to_decimal(None), Decimal('0.00'))

    def test_quantize_rounds_half_up(self):
        self.assertEqual(quantize(2.675), Decimal('2.68'))
        self.assertEqual(quantize('1.005'), Decimal('1.01'))

    def test_dollars_to_cents(self):
        self.assertEqual(dollars_to_cents('19.99'), 1999)

    def test_add_money(self):
        self.assertEqual(add_money(0.1, 0.2), Decimal('0.30'))

    def test_calculate_tax(self):
        self.assertEqual(calculate_tax(Decimal('45.00'), Decimal('0.06')), Decimal('2.70'))

    def test_calculator_chain(self):
        self.assertEqual(MoneyCalculator(45).multiply(2).add(10).to_dollars(), Decimal('100.00'))
        self.assertEqual(MoneyCalculator(10).subtract('2.5').to_cents(), 750)

    def test_format_money(self):
        self.assertEqual(format_money(12.5), '12.50')


class TestSessionUser(TestCase):
    """Tests for the session-stored backend user."""

    def _request(self):
        request = RequestFactory().get('/')
        request.session = SessionStore()
        return request

    def test_login_stores_token(self):
        request = self._request()
        user = login(request, AUTH_RESPONSE)

        self.assertEqual(user.id, 12)
        self.assertEqual(user.full_name, 'Ada Lovelace')
        self.assertEqual(request.session[SESSION_KEY]['access_token'], 'fresh-token')

    def test_inactive_account_refused(self):
        request = self._request()
        auth = {'token': 't', 'user': dict(AUTH_RESPONSE['user'], status='suspended')}
        with self.assertRaises(InactiveAccount):
            login(request, auth)
        self.assertNotIn(SESSION_KEY, request.session)

    def test_missing_token_is_anonymous(self):
        request = self._request()
        request.session[SESSION_KEY] = make_user('customer', access_token='')
        self.assertIsInstance(get_user(request), AnonymousSessionUser)

    def test_no_role_acts_as_customer(self):
        request = self._request()
        request.session[SESSION_KEY] = make_user('')
        self.assertTrue(get_user(request).is_customer)

    def test_public_data_hides_token(self):
        request = self._request()
        user = login(request, AUTH_RESPONSE)
        self.assertNotIn('access_token', user.public_data())

    def test_update_profile(self):
        request = self._request()
        login(request, AUTH_RESPONSE)
        update_profile(request, {'first_name': 'Augusta', 'role': 'admin'})

        self.assertEqual(request.tumble_user.first_name, 'Augusta')
        # Only profile fields are refreshed
        self.assertEqual(request.tumble_user.role, 'customer')


class TestNextPickup(TestCase):
    """Tests for the customer dashboard next pickup."""

    def test_earliest_upcoming(self):
        orders = [
            {'id': 1, 'status': 'scheduled', 'pickup_date': '2026-10-25T00:00:00Z'},
            {'id': 2, 'status': 'pending', 'pickup_date': '2026-10-21'},
            {'id': 3, 'status': 'delivered', 'pickup_date': '2026-10-20'},
            {'id': 4, 'status': 'scheduled', 'pickup_date': '2026-10-01'},
        ]
        result = DashboardService.next_pickup(orders, today=date(2026, 10, 19))
        self.assertEqual(result['id'], 2)

    def test_none_upcoming(self):
        orders = [{'id': 1, 'status': 'scheduled', 'pickup_date': 'not a date'}]
        self.assertIsNone(DashboardService.next_pickup(orders, today=date(2026, 10, 19)))


class TestAuthViews(SessionLoginMixin, TestCase):
    """Tests for sign in, sign up and sign out."""

    def setUp(self):
        cache.clear()

    @patch.object(AuthService, 'login', return_value=AUTH_RESPONSE)
    def test_signin_success(self, mock_login):
        response = self.client.post(reverse('core:signin'), {
            'email': 'ada@tumble.test', 'password': 'secret123',
        })
        self.assertRedirects(response, reverse('core:dashboard'), fetch_redirect_response=False)
        mock_login.assert_called_once_with('ada@tumble.test', 'secret123')
        self.assertEqual(self.client.session[SESSION_KEY]['id'], 12)

    @patch.object(AuthService, 'login', return_value=AUTH_RESPONSE)
    def test_signin_ignores_offsite_next(self, _login):
        response = self.client.post(reverse('core:signin'), {
            'email': 'ada@tumble.test', 'password': 'secret123', 'next': 'https://evil.example/',
        })
        self.assertRedirects(response, reverse('core:dashboard'), fetch_redirect_response=False)

    @patch.object(AuthService, 'login', return_value=AUTH_RESPONSE)
    def test_signin_follows_local_next(self, _login):
        response = self.client.post(reverse('core:signin'), {
            'email': 'ada@tumble.test', 'password': 'secret123', 'next': '/dashboard/orders/',
        })
        self.assertRedirects(response, '/dashboard/orders/', fetch_redirect_response=False)

    @patch.object(AuthService, 'login', side_effect=BackendAuthError(401, 'Invalid credentials'))
    def test_signin_wrong_password(self, _login):
        response = self.client.post(reverse('core:signin'), {
            'email': 'ada@tumble.test', 'password': 'wrong-pass',
        })
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'Invalid credentials')
        self.assertNotIn(SESSION_KEY, self.client.session)

    @patch.object(AuthService, 'login')
    def test_signin_inactive_account(self, mock_login):
        mock_login.return_value = {'token': 't', 'user': dict(AUTH_RESPONSE['user'], status='inactive')}
        response = self.client.post(reverse('core:signin'), {
            'email': 'ada@tumble.test', 'password': 'secret123',
        })
        self.assertContains(response, 'Account is not active')

    def test_signin_page_redirects_when_signed_in(self):
        self.login_as('customer')
        response = self.client.get(reverse('core:signin'))
        self.assertRedirects(response, reverse('core:dashboard'), fetch_redirect_response=False)

    @patch.object(AuthService, 'register')
    def test_signup_password_mismatch(self, mock_register):
        response = self.client.post(reverse('core:signup'), {
            'first_name': 'Ada', 'last_name': 'Lovelace', 'email': 'ada@tumble.test',
            'password': 'secret123', 'password_confirm': 'secret124',
        })
        self.assertContains(response, 'Passwords do not match.')
        mock_register.assert_not_called()

    @patch.object(AuthService, 'register', return_value=AUTH_RESPONSE)
    def test_signup_success(self, mock_register):
        response = self.client.post(reverse('core:signup'), {
            'first_name': 'Ada', 'last_name': 'Lovelace', 'email': 'ada@tumble.test',
            'password': 'secret123', 'password_confirm': 'secret123',
        })
        self.assertRedirects(response, reverse('core:dashboard'), fetch_redirect_response=False)
        mock_register.assert_called_once_with({
            'email': 'ada@tumble.test', 'password': 'secret123',
            'first_name': 'Ada', 'last_name': 'Lovelace',
        })
        self.assertIn("Welcome to Tumble!", flash_messages(response))

    @patch.object(AuthService, 'register', side_effect=BackendError(409, 'User already exists'))
    def test_signup_duplicate_email(self, _register):
        response = self.client.post(reverse('core:signup'), {
            'first_name': 'Ada', 'last_name': 'Lovelace', 'email': 'ada@tumble.test',
            'password': 'secret123', 'password_confirm': 'secret123',
        })
        self.assertContains(response, 'User already exists')

    def test_signout(self):
        self.login_as('customer')
        response = self.client.post(reverse('core:signout'))
        self.assertRedirects(response, reverse('home:home'), fetch_redirect_response=False)
        self.assertNotIn(SESSION_KEY, self.client.session)


class TestDashboardView(SessionLoginMixin, TestCase):
    """Tests for the role home page."""

    @patch.object(DashboardService, 'customer_stats')
    def test_customer_dashboard(self, mock_stats):
        mock_stats.return_value = {
            'subscription': None, 'plan_name': 'No active plan',
            'subscription_status': 'inactive', 'next_pickup': None,
        }
        self.login_as('customer')
        response = self.client.get(reverse('core:dashboard'))
        self.assertContains(response, 'No active plan')
        self.assertContains(response, 'None scheduled')

    @patch.object(DashboardService, 'driver_stats')
    def test_driver_dashboard(self, mock_stats):
        mock_stats.return_value = {'today_routes': 2, 'weekly_earnings': Decimal('120.5')}
        self.login_as('driver')
        response = self.client.get(reverse('core:dashboard'))
        self.assertContains(response, '$120.50')

    @patch.object(DashboardService, 'admin_stats')
    def test_admin_dashboard(self, mock_stats):
        mock_stats.return_value = {'total_users': 42, 'active_orders': 7}
        self.login_as('admin')
        response = self.client.get(reverse('core:dashboard'))
        self.assertEqual(response.context['stats']['total_users'], 42)

    def test_admin_stats_counts_pending_and_in_process(self):
        request = RequestFactory().get('/')
        request.session = {SESSION_KEY: make_user('admin')}
        with patch('backoffice.services.AdminService.users', return_value=[{}, {}, {}]), \
                patch('backoffice.services.AdminService.orders_summary',
                      return_value={'pending_orders': 4, 'in_process_orders': 3}):
            stats = DashboardService.admin_stats(request)
        self.assertEqual(stats, {'total_users': 3, 'active_orders': 7})

    def test_driver_stats_backend_down(self):
        """A failing backend degrades to zeros."""
        request = RequestFactory().get('/')
        request.session = {SESSION_KEY: make_user('driver')}
        with patch('drivers.services.DriverService.routes', side_effect=BackendUnavailable('down')):
            stats = DashboardService.driver_stats(request, today=date(2026, 10, 19))
        self.assertEqual(stats['today_routes'], 0)


class TestSessionMiddleware(SessionLoginMixin, TestCase):
    """Tests for the login gate and expired tokens."""

    def test_anonymous_redirected_to_signin(self):
        response = self.client.get('/dashboard/orders/')
        self.assertRedirects(
            response, f"{reverse('core:signin')}?next=%2Fdashboard%2Forders%2F",
            fetch_redirect_response=False
        )

    def test_anonymous_ajax_gets_json_401(self):
        response = self.client.get('/dashboard/orders/', HTTP_X_REQUESTED_WITH='XMLHttpRequest')
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {'detail': 'Authentication required'})

    def test_anonymous_json_accept_gets_json_401(self):
        response = self.client.get('/dashboard/orders/', HTTP_ACCEPT='application/json')
        self.assertEqual(response.status_code, 401)

    @patch.object(DashboardService, 'customer_stats', side_effect=BackendAuthError(401, 'token expired'))
    def test_expired_token_signs_out(self, _stats):
        self.login_as('customer')
        response = self.client.get(reverse('core:dashboard'))

        self.assertTrue(response['Location'].startswith(reverse('core:signin')))
        self.assertNotIn(SESSION_KEY, self.client.session)

    @patch.object(CatalogService, 'list_services', side_effect=BackendAuthError(401, 'token expired'))
    def test_expired_token_on_api_answers_401(self, _services):
        self.login_as('customer')
        response = self.client.post(
            reverse('api-cost-estimate'),
            data={'items': [{'service_id': 1, 'quantity': 1}]},
            content_type='application/json',
        )
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {'detail': 'Session expired'})

    def test_wrong_role_sent_to_dashboard(self):
        self.login_as('driver')
        response = self.client.get(reverse('subscriptions:plans'))
        self.assertRedirects(response, reverse('core:dashboard'), fetch_redirect_response=False)
        self.assertIn("You don't have access to that page.", flash_messages(response))


class TestSecurityMiddleware(TestCase):
    """Tests for security headers and rate limiting."""

    def setUp(self):
        cache.clear()

    def test_security_headers_present(self):
        response = self.client.get('/health/')
        self.assertEqual(response['X-Content-Type-Options'], 'nosniff')
        self.assertEqual(response['X-Frame-Options'], 'DENY')
        self.assertIn('Referrer-Policy', response)

    @override_settings(DEBUG=False)
    @patch.object(AuthService, 'login', side_effect=BackendAuthError(401, 'Invalid credentials'))
    def test_signin_rate_limited(self, _login):
        """Eleventh sign-in POST within a minute is refused."""
        data = {'email': 'ada@tumble.test', 'password': 'wrong-pass'}
        for _ in range(10):
            response = self.client.post(reverse('core:signin'), data)
            self.assertEqual(response.status_code, 200)

        response = self.client.post(reverse('core:signin'), data)
        self.assertEqual(response.status_code, 429)
        self.assertEqual(response['Retry-After'], '60')

    @override_settings(DEBUG=False)
    def test_signin_get_not_limited(self):
        for _ in range(12):
            response = self.client.get(reverse('core:signin'))
        self.assertEqual(response.status_code, 200)

    @override_settings(DEBUG=False, RATE_LIMITS=[('/api/', (), 2, 60)])
    def test_api_limit_headers(self):
        response = self.client.get(reverse('api-session'))
        self.assertEqual(response['X-RateLimit-Limit'], '2')
        self.assertEqual(response['X-RateLimit-Remaining'], '1')

        response = self.client.get(reverse('api-session'))
        self.assertEqual(response['X-RateLimit-Remaining'], '0')

    @override_settings(DEBUG=False, RATE_LIMITS=[('/api/', (), 2, 60)])
    def test_api_limit_answers_json(self):
        for _ in range(2):
            self.client.get(reverse('api-session'))

        response = self.client.get(reverse('api-session'))
        self.assertEqual(response.status_code, 429)
        self.assertEqual(response.json()['error'], 'rate_limit_exceeded')
        self.assertEqual(response.json()['retry_after'], 60)
        self.assertEqual(response['X-RateLimit-Remaining'], '0')

    @override_settings(DEBUG=True, RATE_LIMIT_IN_DEBUG=False, RATE_LIMITS=[('/api/', (), 1, 60)])
    def test_disabled_in_debug(self):
        for _ in range(3):
            response = self.client.get(reverse('api-session'))
        self.assertEqual(response.status_code, 401)
        self.assertNotIn('X-RateLimit-Limit', response)


class TestHealthAndSessionAPI(SessionLoginMixin, TestCase):
    """Tests for health probes and the session endpoint."""

    def test_health_endpoint_accessible(self):
        response = self.client.get('/health/')
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data['status'], 'ok')
        self.assertEqual(data['service'], 'tumble-dashboard')

    @patch.object(BackendClient, 'ping', return_value=False)
    def test_readiness_backend_down(self, _ping):
        response = self.client.get('/health/ready/')
        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.json()['checks']['backend']['status'], 'unhealthy')

    @patch.object(BackendClient, 'ping', return_value=True)
    def test_readiness_ok(self, _ping):
        response = self.client.get('/health/ready/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['status'], 'healthy')

    @patch.object(BackendClient, 'ping', return_value=False)
    def test_readiness_failure_logged_on_monitoring_logger(self, _ping):
        monitoring = logging.getLogger('tumble.monitoring')
        self.assertFalse(monitoring.propagate)
        with self.assertLogs('tumble.monitoring', level='ERROR') as logs:
            self.client.get('/health/ready/')
        self.assertIn("'backend' failed", logs.output[0])

    def test_session_requires_login(self):
        response = self.client.get(reverse('api-session'))
        self.assertEqual(response.status_code, 401)

    def test_session_info(self):
        self.login_as('driver', id=5)
        response = self.client.get(reverse('api-session'))
        data = response.json()
        self.assertEqual(data['id'], 5)
        self.assertEqual(data['role'], 'driver')
        self.assertNotIn('access_token', data)
