"""
SUBSCRIPTIONS App - Views for plans, plan changes, checkout and preferences
"""

import logging

from django.contrib import messages
from django.http import JsonResponse
from django.shortcuts import render, redirect
from django.urls import reverse
from django.views import View
from django.views.decorators.http import require_POST
from django.views.generic import TemplateView

from core.backend import BackendError, BackendAuthError
from core.choices import UserRole
from core.decorators import json_role_required
from core.mixins import CustomerRequiredMixin
from accounts.services import AddressService
from orders.services import CatalogService

from .forms import CancelSubscriptionForm, PreferencesForm, SubscriptionStatusForm
from .plans import present_plans
from .services import SubscriptionService, PaymentService

logger = logging.getLogger(__name__)

DEFAULT_ADDRESS_REQUIRED = (
    "Please set a default address in your account before subscribing. "
    "Go to Settings → Addresses to add your address for tax calculation."
)


class PlansView(CustomerRequiredMixin, TemplateView):
    """
    Subscription plans & current subscription.

    Shows:
    - Active plans with features (current plan highlighted)
    - Current subscription status with pause/resume/cancel
    - Usage for the current billing period
    """
    template_name = 'subscriptions/plans.html'

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        plans, subscription, usage = [], None, None
        try:
            plans = SubscriptionService.list_plans()
            subscription = SubscriptionService.current(self.request)
            usage = SubscriptionService.usage(self.request)
        except BackendAuthError:
            raise
        except BackendError as e:
            logger.error(f"Failed to load subscription plans: {e.message}")
            messages.error(self.request, "Failed to load subscription plans")

        current_plan_id = subscription.get('plan_id') if subscription else None
        context['plans'] = present_plans(plans, current_plan_id)
        context['subscription'] = subscription
        context['usage'] = usage
        context['cancel_form'] = CancelSubscriptionForm()
        return context


class ChoosePlanView(CustomerRequiredMixin, View):
    """
    Plan button handler.

    - No subscription: go to checkout
    - Same plan: error
    - Other plan: go to the proration preview
    """

    def post(self, request, plan_id):
        try:
            subscription = SubscriptionService.current(request)
        except BackendAuthError:
            raise
        except BackendError as e:
            logger.error(f"Failed to load subscription: {e.message}")
            messages.error(request, "Failed to update subscription")
            return redirect('subscriptions:plans')

        if not subscription or subscription.get('status') == 'cancelled':
            return redirect('subscriptions:checkout', plan_id=plan_id)

        if str(subscription.get('plan_id')) == str(plan_id):
            messages.error(request, "Cannot change to the same plan")
            return redirect('subscriptions:plans')

        return redirect('subscriptions:preview', plan_id=plan_id)


class PreviewChangeView(CustomerRequiredMixin, View):
    """Proration preview (GET) and plan change confirmation (POST)."""
    template_name = 'subscriptions/preview.html'

    def get(self, request, plan_id):
        try:
            preview = SubscriptionService.preview_change(request, plan_id)
        except BackendAuthError:
            raise
        except BackendError as e:
            messages.error(request, e.message or "Failed to preview plan change")
            return redirect('subscriptions:plans')

        return render(request, self.template_name, {'preview': preview, 'plan_id': plan_id})

    def post(self, request, plan_id):
        try:
            subscription = SubscriptionService.current(request)
            if not subscription:
                return redirect('subscriptions:checkout', plan_id=plan_id)
            SubscriptionService.update(request, subscription['id'], plan_id=plan_id)
        except BackendAuthError:
            raise
        except BackendError as e:
            messages.error(request, e.message or "Failed to update subscription")
            return redirect('subscriptions:plans')

        messages.success(request, "Plan changed successfully")
        return redirect('subscriptions:plans')


class SubscriptionStatusView(CustomerRequiredMixin, View):
    """Pause or resume the current subscription."""

    def post(self, request):
        form = SubscriptionStatusForm(request.POST)
        if not form.is_valid():
            messages.error(request, "Invalid subscription status")
            return redirect('subscriptions:plans')

        status = form.cleaned_data['status']
        try:
            subscription = SubscriptionService.current(request)
            if not subscription:
                messages.error(request, "You don't have a subscription")
                return redirect('subscriptions:plans')
            SubscriptionService.update(request, subscription['id'], status=status)
        except BackendAuthError:
            raise
        except BackendError as e:
            messages.error(request, e.message or "Failed to update subscription")
            return redirect('subscriptions:plans')

        messages.success(request, f"Subscription {status} successfully")
        return redirect('subscriptions:plans')


class CancelSubscriptionView(CustomerRequiredMixin, View):
    def post(self, request):
        form = CancelSubscriptionForm(request.POST)
        if not form.is_valid():
            messages.error(request, "Please confirm the cancellation.")
            return redirect('subscriptions:plans')

        try:
            subscription = SubscriptionService.current(request)
            if not subscription:
                messages.error(request, "You don't have a subscription")
                return redirect('subscriptions:plans')
            SubscriptionService.cancel(request, subscription['id'])
        except BackendAuthError:
            raise
        except BackendError as e:
            messages.error(request, e.message or "Failed to cancel subscription")
            return redirect('subscriptions:plans')

        messages.success(request, "Subscription cancelled successfully")
        return redirect('subscriptions:plans')


class CheckoutView(CustomerRequiredMixin, TemplateView):
    """
    Card setup for a new subscription (Stripe Elements).

    A default address is required first: the backend computes sales tax
    from it.
    """
    template_name = 'subscriptions/checkout.html'

    def get(self, request, *args, **kwargs):
        plan_id = kwargs['plan_id']
        try:
            plan = SubscriptionService.get_plan(plan_id)
            if plan is None:
                messages.error(request, "Plan not found")
                return redirect('subscriptions:plans')

            addresses = AddressService.list(request)
            if not AddressService.default_address(addresses, fallback=False):
                messages.error(request, DEFAULT_ADDRESS_REQUIRED)
                return redirect('accounts:settings')

            setup_intent = PaymentService.create_setup_intent(request)
        except BackendAuthError:
            raise
        except BackendError as e:
            logger.error(f"Failed to start checkout for plan {plan_id}: {e.message}")
            messages.error(request, "Failed to create setup intent")
            return redirect('subscriptions:plans')

        context = self.get_context_data(**kwargs)
        presented = present_plans([plan])
        context['plan'] = presented[0] if presented else plan
        context['client_secret'] = setup_intent.get('client_secret')
        context['complete_url'] = reverse('subscriptions:checkout-complete', args=[plan_id])
        context['success_url'] = reverse('subscriptions:plans')
        return self.render_to_response(context)


@json_role_required(UserRole.CUSTOMER)
@require_POST
def checkout_complete(request, plan_id):
    """
    AJAX: create the subscription once Stripe confirmed the card setup.

    Response:
    {
        "requires_action": false,
        "client_secret": null,
        "redirect": "/dashboard/subscription/"
    }
    """
    payment_method_id = request.POST.get('payment_method_id', '').strip()
    if not payment_method_id:
        return JsonResponse({'error': 'Missing payment method'}, status=400)

    try:
        addresses = AddressService.list(request)
        if not AddressService.default_address(addresses, fallback=False):
            return JsonResponse({'error': DEFAULT_ADDRESS_REQUIRED}, status=400)

        result = PaymentService.create_subscription_payment(request, plan_id, payment_method_id)
    except BackendAuthError:
        raise
    except BackendError as e:
        message = e.message or 'Failed to create subscription'
        if 'default address' in message:
            message = DEFAULT_ADDRESS_REQUIRED
        return JsonResponse({'error': message}, status=400 if e.status_code else 502)

    requires_action = bool(result.get('requires_action') and result.get('client_secret'))
    if not requires_action:
        messages.success(request, "Subscription activated successfully")

    return JsonResponse({
        'requires_action': requires_action,
        'client_secret': result.get('client_secret') if requires_action else None,
        'redirect': reverse('subscriptions:plans'),
    })


class PreferencesView(CustomerRequiredMixin, View):
    """Recurring pickup preferences."""
    template_name = 'subscriptions/preferences.html'

    def _load(self, request):
        data = {'preferences': None, 'addresses': [], 'services': []}
        try:
            data['preferences'] = SubscriptionService.preferences(request)
            data['addresses'] = AddressService.list(request)
            data['services'] = CatalogService.list_services()
        except BackendAuthError:
            raise
        except BackendError as e:
            logger.error(f"Failed to load preferences data: {e.message}")
            messages.error(request, "Failed to load preferences data")
        return data

    def get(self, request):
        data = self._load(request)
        form = PreferencesForm(
            initial=PreferencesForm.initial_from(data['preferences']),
            addresses=data['addresses'],
            services=data['services'],
        )
        return render(request, self.template_name, {'form': form})

    def post(self, request):
        data = self._load(request)
        form = PreferencesForm(request.POST, addresses=data['addresses'], services=data['services'])
        if not form.is_valid():
            return render(request, self.template_name, {'form': form})

        try:
            SubscriptionService.save_preferences(request, form.to_payload())
        except BackendAuthError:
            raise
        except BackendError as e:
            messages.error(request, e.message or "Failed to save preferences")
            return render(request, self.template_name, {'form': form})

        messages.success(request, "Preferences saved successfully")
        return redirect('subscriptions:preferences')
