"""
BACKOFFICE App - Tests for the admin workspace.

Tests cover:
- Order filters, selectability and stats
- User filters
- AdminService paging (find_order) and payloads
- Bulk actions: selection rules, route assignment, bulk status, optimization
- Failed order resolution validation
- User management (self delete, verbatim backend errors, highlight)
- Driver application review gating
- Company earnings and CSV export
"""

from datetime import date
from decimal import Decimal
from unittest.mock import patch

from django.test import TestCase, RequestFactory, override_settings
from django.urls import reverse

from core.backend import BackendClient, BackendError
from core.session import SESSION_KEY
from core.testing import SessionLoginMixin, flash_messages, make_user

from .filters import (
    filter_orders, filter_users, is_selectable, order_stats, selectable_orders,
    suggestion_order_count, suggestion_title,
)
from .forms import ResolutionForm
from .services import AdminService
from .views import average_order_value


ORDERS = [
    {'id': 101, 'status': 'pending', 'is_assigned': False,
     'user_name': 'Ada Lovelace', 'user_email': 'ada@example.com', 'total': 30.0},
    {'id': 102, 'status': 'ready', 'is_assigned': True, 'driver_name': 'Dan',
     'user_name': 'Alan Turing', 'user_email': 'alan@example.com', 'total': 45.0},
    {'id': 103, 'status': 'out_for_delivery', 'is_assigned': True,
     'user_name': 'Grace Hopper', 'user_email': 'grace@example.com', 'total': 20.0},
    {'id': 204, 'status': 'failed', 'is_assigned': True,
     'user_name': 'Edsger Dijkstra', 'user_email': 'ed@example.com', 'total': 25.0},
    {'id': 205, 'status': 'delivered', 'is_assigned': True,
     'user_name': 'Barbara Liskov', 'user_email': 'barbara@example.com', 'total': 50.0},
]

USERS = [
    {'id': 1, 'email': 'admin@tumble.test', 'first_name': 'Admin', 'last_name': 'User',
     'role': 'admin', 'status': 'active'},
    {'id': 2, 'email': 'dan@example.com', 'first_name': 'Dan', 'last_name': 'Driver',
     'role': 'driver', 'status': 'active'},
    {'id': 3, 'email': 'ada@example.com', 'first_name': 'Ada', 'last_name': 'Lovelace',
     'role': 'customer', 'status': 'suspended'},
]
DRIVERS = [USERS[1]]


class OrderFiltersTest(TestCase):
    """Test the local order filters."""

    def test_search_by_id_substring(self):
        self.assertEqual([o['id'] for o in filter_orders(ORDERS, '20')], [204, 205])

    def test_search_by_name_case_insensitive(self):
        self.assertEqual([o['id'] for o in filter_orders(ORDERS, 'GRACE')], [103])

    def test_search_by_email(self):
        self.assertEqual([o['id'] for o in filter_orders(ORDERS, 'alan@')], [102])

    def test_assignment_filter(self):
        self.assertEqual([o['id'] for o in filter_orders(ORDERS, assignment='unassigned')], [101])
        self.assertEqual(len(filter_orders(ORDERS, assignment='assigned')), 4)
        self.assertEqual(len(filter_orders(ORDERS)), 5)

    def test_selectable(self):
        """Unassigned orders, or assigned ones back at ready / in_process."""
        self.assertTrue(is_selectable(ORDERS[0]))
        self.assertTrue(is_selectable(ORDERS[1]))
        self.assertFalse(is_selectable(ORDERS[2]))
        self.assertEqual([o['id'] for o in selectable_orders(ORDERS)], [101, 102])

    def test_order_stats(self):
        stats = order_stats(ORDERS)
        self.assertEqual(stats, {
            'total': 5, 'pending': 1, 'in_progress': 2, 'delivered': 1, 'failed': 1,
        })


class UserFiltersTest(TestCase):
    def test_search_full_name(self):
        self.assertEqual([u['id'] for u in filter_users(USERS, 'ada love')], [3])

    def test_role_and_status(self):
        self.assertEqual([u['id'] for u in filter_users(USERS, role='driver')], [2])
        self.assertEqual([u['id'] for u in filter_users(USERS, status='suspended')], [3])
        self.assertEqual(len(filter_users(USERS, role='all', status='all')), 3)


class SuggestionHelpersTest(TestCase):
    def test_order_count(self):
        suggestion = {'type': 'time_slot_grouping', 'groups': {'8-12': [1, 2], '12-4': [3]}}
        self.assertEqual(suggestion_order_count(suggestion), 3)

    def test_title(self):
        self.assertEqual(suggestion_title('pickup_delivery_cycle'), 'pickup delivery cycle')


class AdminServiceTest(TestCase):
    """Test the admin backend calls."""

    def setUp(self):
        self.request = RequestFactory().get('/')
        self.request.session = {SESSION_KEY: make_user('admin')}

    @override_settings(ADMIN_ORDER_PAGE_SIZE=2)
    @patch.object(BackendClient, 'request')
    def test_find_order_pages(self, mock_request):
        """find_order keeps paging until the id is found."""
        mock_request.side_effect = [
            [{'id': 1}, {'id': 2}],
            [{'id': 3}, {'id': 4}],
        ]
        order = AdminService.find_order(self.request, 4)

        self.assertEqual(order, {'id': 4})
        self.assertEqual(mock_request.call_args_list[1][1]['params'], {'limit': 2, 'offset': 2})

    @override_settings(ADMIN_ORDER_PAGE_SIZE=2)
    @patch.object(BackendClient, 'request')
    def test_find_order_missing(self, mock_request):
        """A short page ends the search."""
        mock_request.side_effect = [[{'id': 1}, {'id': 2}], [{'id': 3}]]
        self.assertIsNone(AdminService.find_order(self.request, 99))
        self.assertEqual(mock_request.call_count, 2)

    @patch.object(BackendClient, 'request')
    def test_orders_limit_capped(self, mock_request):
        mock_request.return_value = []
        AdminService.orders(self.request, status='failed', limit=500)
        params = mock_request.call_args[1]['params']
        self.assertEqual(params['limit'], 100)
        self.assertEqual(params['status'], 'failed')
        self.assertNotIn('date', params)

    @patch.object(BackendClient, 'request')
    def test_assign_route_payload(self, mock_request):
        AdminService.assign_route(self.request, '2', [101, 102], '2026-10-20', 'pickup')
        mock_request.assert_called_once_with('POST', 'admin/drivers/assign', params=None, json={
            'driver_id': 2, 'order_ids': [101, 102], 'route_date': '2026-10-20', 'route_type': 'pickup',
        })

    @patch.object(BackendClient, 'request')
    def test_review_application(self, mock_request):
        AdminService.review_application(self.request, 9, 'approved', 'Looks good')
        mock_request.assert_called_once_with(
            'PUT', 'admin/driver-applications/review',
            params={'id': 9}, json={'status': 'approved', 'admin_notes': 'Looks good'},
        )

    @patch.object(BackendClient, 'request')
    def test_applications_all_has_no_filter(self, mock_request):
        mock_request.return_value = []
        AdminService.driver_applications(self.request, 'all')
        mock_request.assert_called_once_with('GET', 'admin/driver-applications', params=None)


class AdminOrdersViewTest(SessionLoginMixin, TestCase):
    """Test the admin orders page and its bulk actions."""

    def setUp(self):
        self.login_as('admin')

    # ==========================================
    # PAGE
    # ==========================================

    def test_customer_denied(self):
        self.login_as('customer')
        response = self.client.get(reverse('backoffice:orders'))
        self.assertRedirects(response, reverse('core:dashboard'), fetch_redirect_response=False)

    @patch.object(AdminService, 'users', return_value=DRIVERS)
    @patch.object(AdminService, 'orders', return_value=[dict(o) for o in ORDERS])
    def test_list_with_local_filters(self, mock_orders, _users):
        response = self.client.get(reverse('backoffice:orders'), {
            'status': 'ready', 'q': 'alan', 'assignment': 'assigned',
        })
        self.assertEqual(response.status_code, 200)
        self.assertEqual([o['id'] for o in response.context['orders']], [102])
        self.assertEqual(mock_orders.call_args[1], {'status': 'ready', 'date': None})

    @patch.object(AdminService, 'users', return_value=DRIVERS)
    @patch.object(AdminService, 'orders', return_value=[dict(o) for o in ORDERS])
    def test_preselection_keeps_selectable_only(self, _orders, _users):
        """Create Route preselects its group; unselectable ids are ignored."""
        response = self.client.get(reverse('backoffice:orders'), {
            'selected': '101,103', 'panel': 'assign',
        })
        selected = [o['id'] for o in response.context['orders'] if o['selected']]
        self.assertEqual(selected, [101])
        self.assertEqual(response.context['panel'], 'assign')

    @patch.object(AdminService, 'users', return_value=DRIVERS)
    @patch.object(AdminService, 'orders', return_value=[dict(o) for o in ORDERS])
    def test_failed_orders_resolvable(self, _orders, _users):
        response = self.client.get(reverse('backoffice:orders'))
        resolvable = [o['id'] for o in response.context['orders'] if o['can_resolve']]
        self.assertEqual(resolvable, [204])

    # ==========================================
    # BULK ACTIONS
    # ==========================================

    @patch.object(AdminService, 'bulk_update_status')
    @patch.object(AdminService, 'orders')
    def test_empty_selection_makes_no_call(self, mock_orders, mock_bulk):
        response = self.client.post(reverse('backoffice:bulk-status'), {'status': 'ready'})
        self.assertIn("Please select at least one order.", flash_messages(response))
        mock_orders.assert_not_called()
        mock_bulk.assert_not_called()

    @patch.object(AdminService, 'assign_route')
    @patch.object(AdminService, 'users', return_value=DRIVERS)
    @patch.object(AdminService, 'orders', return_value=ORDERS)
    def test_assign_route(self, _orders, _users, mock_assign):
        """Unselectable ids are dropped before the backend call."""
        response = self.client.post(reverse('backoffice:assign-route'), {
            'order_ids': ['101', '102', '103'],
            'driver_id': '2',
            'route_date': '2026-10-20',
            'route_type': 'pickup',
        }, follow=True)

        args = mock_assign.call_args[0]
        self.assertEqual(args[1:], ('2', [101, 102], '2026-10-20', 'pickup'))
        self.assertContains(response, "Successfully assigned 2 orders to Dan")

    @patch.object(AdminService, 'assign_route')
    @patch.object(AdminService, 'users', return_value=DRIVERS)
    @patch.object(AdminService, 'orders', return_value=ORDERS)
    def test_assign_route_requires_driver(self, _orders, _users, mock_assign):
        response = self.client.post(reverse('backoffice:assign-route'), {
            'order_ids': ['101'], 'route_date': '2026-10-20', 'route_type': 'pickup',
        }, follow=True)
        mock_assign.assert_not_called()
        self.assertContains(response, "Please select a driver.")

    @patch.object(AdminService, 'bulk_update_status', return_value={'updated_count': 2})
    @patch.object(AdminService, 'orders', return_value=ORDERS)
    def test_bulk_status(self, _orders, mock_bulk):
        response = self.client.post(reverse('backoffice:bulk-status'), {
            'order_ids': ['101', '102'], 'status': 'in_process', 'notes': '',
            'filter_status': '', 'filter_date': '',
        }, follow=True)
        mock_bulk.assert_called_once()
        self.assertContains(response, "Successfully updated 2 orders to in_process")

    @patch.object(AdminService, 'optimization_suggestions')
    @patch.object(AdminService, 'orders', return_value=ORDERS)
    def test_optimize_renders_suggestions(self, _orders, mock_optimize):
        mock_optimize.return_value = {
            'total_orders': 2,
            'suggestions': [{
                'type': 'geographic_clusters',
                'message': 'Groups orders by proximity.',
                'groups': {'48201': [101, 102]},
            }],
            'orders': [],
        }
        response = self.client.post(reverse('backoffice:optimize'), {'order_ids': ['101', '102']})

        self.assertEqual(response.status_code, 200)
        suggestion = response.context['suggestions'][0]
        self.assertEqual(suggestion['title'], 'geographic clusters')
        self.assertEqual(suggestion['order_count'], 2)
        url = suggestion['groups'][0]['create_route_url']
        self.assertIn('selected=101%2C102', url)
        self.assertIn('panel=assign', url)


class ResolutionFormTest(TestCase):
    """Test the conditional requirements of a resolution."""

    def test_reschedule_needs_date(self):
        form = ResolutionForm(data={'resolution_type': 'reschedule'})
        self.assertIn('reschedule_date', form.errors)

    def test_refund_needs_positive_amount(self):
        form = ResolutionForm(data={'resolution_type': 'partial_refund', 'refund_amount': '0'})
        self.assertIn('refund_amount', form.errors)

    def test_credit_needs_positive_amount(self):
        form = ResolutionForm(data={'resolution_type': 'credit'})
        self.assertIn('credit_amount', form.errors)

    def test_waive_fee_needs_nothing(self):
        form = ResolutionForm(data={'resolution_type': 'waive_fee'})
        self.assertTrue(form.is_valid(), form.errors)
        self.assertEqual(form.to_payload(204), {
            'order_id': 204, 'resolution_type': 'waive_fee', 'notes': '',
        })

    def test_refund_payload(self):
        form = ResolutionForm(data={
            'resolution_type': 'full_refund', 'refund_amount': '25.00', 'notes': 'Sorry',
        })
        self.assertTrue(form.is_valid(), form.errors)
        payload = form.to_payload(204)
        self.assertEqual(payload['refund_amount'], 25.0)
        self.assertNotIn('credit_amount', payload)

    def test_reschedule_payload(self):
        form = ResolutionForm(data={'resolution_type': 'reschedule', 'reschedule_date': '2026-10-22'})
        self.assertTrue(form.is_valid(), form.errors)
        self.assertEqual(form.to_payload(204)['reschedule_date'], '2026-10-22')


class ResolveOrderViewTest(SessionLoginMixin, TestCase):
    def setUp(self):
        self.login_as('admin')

    @patch.object(AdminService, 'create_resolution')
    @patch.object(AdminService, 'resolutions', return_value=[])
    @patch.object(AdminService, 'find_order', return_value=ORDERS[3])
    def test_resolve(self, _find, _resolutions, mock_create):
        response = self.client.post(reverse('backoffice:resolve', args=[204]), {
            'resolution_type': 'credit', 'credit_amount': '10.00',
        })
        self.assertEqual(mock_create.call_args[0][1]['credit_amount'], 10.0)
        self.assertIn("Order #204 has been resolved with credit", flash_messages(response))

    @patch.object(AdminService, 'find_order', return_value=None)
    def test_unknown_order(self, _find):
        response = self.client.get(reverse('backoffice:resolve', args=[999]))
        self.assertRedirects(response, reverse('backoffice:orders'), fetch_redirect_response=False)


class UsersViewTest(SessionLoginMixin, TestCase):
    """Test user management."""

    def setUp(self):
        self.login_as('admin', id=1)

    @patch.object(AdminService, 'users', return_value=USERS)
    def test_filter_and_highlight(self, _users):
        response = self.client.get(reverse('backoffice:users'), {
            'filter': 'customer', 'highlight': 'ada@example.com',
        })
        self.assertEqual([u['id'] for u in response.context['users']], [3])
        self.assertEqual(response.context['highlight'], 'ada@example.com')
        self.assertEqual(response.context['counts']['drivers'], 1)

    @patch.object(AdminService, 'delete_user')
    def test_cannot_delete_self(self, mock_delete):
        response = self.client.post(reverse('backoffice:user-delete', args=[1]), {'confirm': 'on'})
        mock_delete.assert_not_called()
        self.assertIn("Cannot delete yourself", flash_messages(response))

    @patch.object(AdminService, 'delete_user')
    def test_delete_requires_confirmation(self, mock_delete):
        self.client.post(reverse('backoffice:user-delete', args=[3]))
        mock_delete.assert_not_called()

    @patch.object(AdminService, 'users', return_value=USERS)
    @patch.object(AdminService, 'delete_user')
    def test_conflict_shown_verbatim(self, mock_delete, _users):
        mock_delete.side_effect = BackendError(409, 'User has active orders')
        response = self.client.post(reverse('backoffice:user-delete', args=[3]), {'confirm': 'on'}, follow=True)
        self.assertContains(response, 'User has active orders')

    @patch.object(AdminService, 'users', return_value=USERS)
    @patch.object(AdminService, 'create_user')
    def test_create_user(self, mock_create, _users):
        self.client.post(reverse('backoffice:user-add'), {
            'first_name': 'New', 'last_name': 'Driver', 'email': 'New@Example.com',
            'role': 'driver', 'status': 'active',
        })
        self.assertEqual(mock_create.call_args[0][1]['email'], 'new@example.com')

    @patch.object(AdminService, 'update_user_role')
    def test_change_role(self, mock_role):
        self.client.post(reverse('backoffice:user-role', args=[3]), {'role': 'driver'})
        mock_role.assert_called_once()
        self.assertEqual(mock_role.call_args[0][1:], (3, 'driver'))


class DriverApplicationsViewTest(SessionLoginMixin, TestCase):
    APPLICATIONS = [
        {'id': 9, 'status': 'pending', 'user_email': 'ada@example.com', 'user_name': 'Ada',
         'application_data': {'first_name': 'Ada', 'last_name': 'Lovelace'}},
        {'id': 8, 'status': 'approved', 'user_email': 'alan@example.com', 'user_name': 'Alan',
         'application_data': {'first_name': 'Alan', 'last_name': 'Turing'}},
    ]

    def setUp(self):
        self.login_as('admin')

    @patch.object(AdminService, 'driver_applications')
    def test_review_offered_only_while_pending(self, mock_apps):
        mock_apps.return_value = self.APPLICATIONS
        pending = self.client.get(reverse('backoffice:applications'), {'id': '9'})
        approved = self.client.get(reverse('backoffice:applications'), {'id': '8'})
        self.assertIsNotNone(pending.context['review_form'])
        self.assertIsNone(approved.context['review_form'])

    @patch.object(AdminService, 'driver_applications', return_value=[])
    def test_unknown_status_filter(self, mock_apps):
        response = self.client.get(reverse('backoffice:applications'), {'status': 'bogus'})
        self.assertEqual(response.context['status_filter'], 'all')

    @patch.object(AdminService, 'review_application')
    def test_review(self, mock_review):
        response = self.client.post(
            reverse('backoffice:review-application', args=[9]),
            {'status': 'approved', 'notes': 'Welcome aboard'},
        )
        self.assertRedirects(response, reverse('backoffice:applications'), fetch_redirect_response=False)
        self.assertEqual(mock_review.call_args[0][1:], (9, 'approved', 'Welcome aboard'))


class CompanyEarningsViewTest(SessionLoginMixin, TestCase):
    SUMMARY = {'total_orders': 4, 'total_revenue': 130.0, 'today_orders': 1, 'today_revenue': 30.0}
    ANALYTICS = [
        {'date': '2026-10-18', 'revenue': 100.0, 'order_count': 3},
        {'date': '2026-10-19', 'revenue': 0, 'order_count': 0},
    ]

    def setUp(self):
        self.login_as('admin')

    def test_average_order_value(self):
        self.assertEqual(average_order_value(100, 3), Decimal('33.33'))
        self.assertEqual(average_order_value(50, 0), Decimal('0.00'))

    @patch.object(AdminService, 'driver_stats', return_value=[])
    @patch.object(AdminService, 'revenue_analytics')
    @patch.object(AdminService, 'orders_summary')
    def test_page(self, mock_summary, mock_analytics, _drivers):
        mock_summary.return_value = self.SUMMARY
        mock_analytics.return_value = self.ANALYTICS
        response = self.client.get(reverse('backoffice:earnings'), {'period': 'week'})

        self.assertEqual(mock_analytics.call_args[0][1], 'week')
        self.assertEqual(response.context['summary']['average_order_value'], Decimal('32.50'))
        self.assertEqual(response.context['period_revenue'], Decimal('100.00'))
        self.assertEqual(response.context['analytics'][1]['average_order_value'], Decimal('0.00'))

    @patch('backoffice.views.timezone.localdate', return_value=date(2026, 10, 19))
    @patch.object(AdminService, 'driver_stats', return_value=[])
    @patch.object(AdminService, 'revenue_analytics')
    @patch.object(AdminService, 'orders_summary', return_value={})
    def test_csv(self, _summary, mock_analytics, _drivers, _today):
        mock_analytics.return_value = self.ANALYTICS
        response = self.client.get(reverse('backoffice:earnings'), {'period': 'month', 'format': 'csv'})

        self.assertEqual(
            response['Content-Disposition'],
            'attachment; filename="company_earnings_month_2026-10-19.csv"',
        )
        lines = response.content.decode().strip().splitlines()
        self.assertEqual(lines[0], 'Date,Revenue,Orders,Average Order Value')
        self.assertEqual(lines[1], '2026-10-18,100.00,3,33.33')
