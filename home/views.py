"""
Home App Views - Landing Page
"""

import logging

from django.views.generic import TemplateView

from core.backend import BackendError
from subscriptions.plans import present_plans
from subscriptions.services import SubscriptionService

logger = logging.getLogger(__name__)


class HomeView(TemplateView):
    """
    Public landing page for Tumble.

    Shows how pickup & delivery works and the active subscription plans.
    The page renders without plans when the backend is down.
    """

    template_name = 'home/index.html'

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)

        plans = []
        try:
            plans = SubscriptionService.list_plans()
        except BackendError as e:
            logger.warning(f"Landing page without plans: {e.message}")

        context['plans'] = present_plans(plans)
        return context
