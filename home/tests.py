"""
HOME App - Tests for the public landing page.
"""

from unittest.mock import patch

from django.test import TestCase
from django.urls import reverse

from core.backend import BackendUnavailable
from core.testing import SessionLoginMixin
from subscriptions.services import SubscriptionService

PLANS = [
    {'id': 1, 'name': 'Weekly Standard', 'price_per_month': 99.0, 'pickups_per_month': 4,
     'bags_per_pickup': 1, 'is_active': True},
    {'id': 2, 'name': 'Legacy', 'price_per_month': 10.0, 'is_active': False},
]


class HomeViewTest(SessionLoginMixin, TestCase):

    @patch.object(SubscriptionService, 'list_plans', return_value=PLANS)
    def test_active_plans_listed(self, _plans):
        """Inactive plans are not advertised."""
        response = self.client.get(reverse('home:home'))
        self.assertEqual(response.status_code, 200)
        self.assertEqual([p['id'] for p in response.context['plans']], [1])
        self.assertContains(response, 'Weekly Standard')

    @patch.object(SubscriptionService, 'list_plans', side_effect=BackendUnavailable('down'))
    def test_backend_down(self, _plans):
        """The landing page still renders without plans."""
        response = self.client.get(reverse('home:home'))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context['plans'], [])

    @patch.object(SubscriptionService, 'list_plans', return_value=[])
    def test_signed_in_gets_dashboard_link(self, _plans):
        self.login_as('customer')
        response = self.client.get(reverse('home:home'))
        self.assertContains(response, reverse('core:dashboard'))
