"""
ORDERS App - Views for customer orders & pickup scheduling
"""

import logging

from django.contrib import messages
from django.shortcuts import render, redirect
from django.urls import reverse
from django.utils import timezone
from django.views import View
from django.views.generic import TemplateView

from core.backend import BackendError, BackendAuthError
from core.mixins import SessionRequiredMixin, CustomerRequiredMixin
from accounts.services import AddressService
from subscriptions.services import SubscriptionService

from .forms import ScheduleForm, OrderItemFormSet
from .pricing import (
    CostCalculator, default_dates, default_item, orderable_services, tip_presets,
)
from .services import OrderService, CatalogService, order_summary

logger = logging.getLogger(__name__)


class OrderListView(SessionRequiredMixin, TemplateView):
    """
    Customer order history.
    Admins manage every order from the admin orders page instead.
    """
    template_name = 'orders/order_list.html'

    def dispatch(self, request, *args, **kwargs):
        if self.tumble_user.is_admin:
            return redirect('backoffice:orders')
        return super().dispatch(request, *args, **kwargs)

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        orders = []
        services = []
        try:
            orders = OrderService.list_orders(self.request)
            services = CatalogService.list_services()
        except BackendAuthError:
            raise
        except BackendError as e:
            logger.error(f"Failed to load orders: {e.message}")
            messages.error(self.request, "Failed to load orders")

        for order in orders:
            order['summary'] = order_summary(order, services)

        context['orders'] = sorted(orders, key=lambda o: o.get('created_at') or '', reverse=True)
        return context


class OrderDetailView(SessionRequiredMixin, View):
    """
    Single order.

    - Admin: any order (looked up through the admin order list) + resolutions
    - Others: only their own orders; anything else is access denied
    """
    template_name = 'orders/order_detail.html'

    def get(self, request, order_id):
        user = self.tumble_user
        context = {'resolutions': []}

        try:
            if user.is_admin:
                from backoffice.services import AdminService
                order = AdminService.find_order(request, order_id)
                if order is not None:
                    context['resolutions'] = AdminService.resolutions(request, order_id)
            else:
                order = OrderService.get_order(request, order_id)
        except BackendAuthError:
            raise
        except BackendError as e:
            if e.status_code in (403, 404):
                order = None
            else:
                logger.error(f"Failed to load order {order_id}: {e.message}")
                messages.error(request, "Failed to load order")
                return redirect('orders:list')

        if not order or (not user.is_admin and order.get('user_id') not in (None, user.id)):
            return render(request, 'orders/access_denied.html', status=403)

        context['order'] = order
        context['summary'] = order_summary(order)
        return render(request, self.template_name, context)


class ScheduleView(CustomerRequiredMixin, View):
    """
    Schedule a pickup.

    Defaults:
    - Default address as pickup and delivery address
    - One standard bag
    - Pickup tomorrow, delivery the day after
    """
    template_name = 'orders/schedule.html'

    def _load(self, request):
        data = {'addresses': [], 'services': [], 'usage': None}
        try:
            data['addresses'] = AddressService.list(request)
            data['services'] = CatalogService.list_services()
            data['usage'] = SubscriptionService.usage(request)
        except BackendAuthError:
            raise
        except BackendError as e:
            logger.error(f"Failed to load schedule data: {e.message}")
            messages.error(request, "Failed to load schedule data")
        return data

    def _context(self, form, formset, data, items):
        tip = getattr(form, 'cleaned_data', {}).get('tip') or 0
        calculation = CostCalculator().calculate(items, data['services'], data['usage'], tip)
        return {
            'form': form,
            'formset': formset,
            'addresses': data['addresses'],
            'services': orderable_services(data['services']),
            'usage': data['usage'],
            'cost': calculation,
            'tip_presets': tip_presets(calculation.final_subtotal),
        }

    def get(self, request):
        data = self._load(request)
        pickup_date, delivery_date = default_dates(timezone.localdate())

        default_address = AddressService.default_address(data['addresses'])
        initial = {
            'pickup_date': pickup_date,
            'delivery_date': delivery_date,
            'tip': 0,
        }
        if default_address:
            initial['pickup_address_id'] = str(default_address['id'])
            initial['delivery_address_id'] = str(default_address['id'])

        first_item = default_item(data['services'])
        items = [first_item] if first_item else []

        form = ScheduleForm(initial=initial, addresses=data['addresses'])
        formset = OrderItemFormSet(
            initial=[{'service_id': str(i['service_id']), 'quantity': i['quantity']} for i in items],
            form_kwargs={'services': data['services']},
        )
        return render(request, self.template_name, self._context(form, formset, data, items))

    def post(self, request):
        data = self._load(request)
        form = ScheduleForm(request.POST, addresses=data['addresses'])
        formset = OrderItemFormSet(request.POST, form_kwargs={'services': data['services']})

        form_valid = form.is_valid()
        formset_valid = formset.is_valid()
        items = formset.items() if formset_valid else []

        if not (form_valid and formset_valid):
            return render(request, self.template_name, self._context(form, formset, data, items))

        calculator = CostCalculator()
        services_by_id = {str(s['id']): s for s in data['services']}
        for item in items:
            item['price'] = float(calculator.unit_price(services_by_id.get(str(item['service_id']))))

        try:
            result = OrderService.create_order(request, form.to_payload(items))
        except BackendAuthError:
            raise
        except BackendError as e:
            logger.error(f"Failed to schedule pickup: {e.message}")
            messages.error(request, "Failed to schedule pickup")
            return render(request, self.template_name, self._context(form, formset, data, items))

        order = result['order']
        if result['requires_payment']:
            url = reverse('orders:pay', args=[order['id']])
            return redirect(f"{url}?intent={result['payment_intent_id']}")

        messages.success(request, "Pickup scheduled successfully!")
        return redirect('orders:list')


class OrderPaymentView(CustomerRequiredMixin, TemplateView):
    """
    Card payment for an order that is not covered by a subscription.
    Stripe Elements confirms the payment intent in the browser.
    """
    template_name = 'orders/pay.html'

    def get(self, request, *args, **kwargs):
        intent_id = request.GET.get('intent')
        if not intent_id:
            messages.error(request, "Missing payment reference")
            return redirect('orders:list')
        return super().get(request, *args, **kwargs)

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        order_id = kwargs['order_id']
        intent_id = self.request.GET['intent']

        context['order_id'] = order_id
        context['client_secret'] = None
        try:
            intent = OrderService.payment_intent(self.request, intent_id) or {}
            context['client_secret'] = intent.get('client_secret')
        except BackendAuthError:
            raise
        except BackendError as e:
            logger.error(f"Failed to load payment intent {intent_id}: {e.message}")
            messages.error(self.request, "Failed to load payment details")

        context['return_url'] = self.request.build_absolute_uri(
            reverse('orders:paid', args=[order_id])
        )
        return context


class OrderPaidView(CustomerRequiredMixin, View):
    """Stripe return URL after a successful order payment."""

    def get(self, request, order_id):
        status = request.GET.get('redirect_status', 'succeeded')
        if status == 'succeeded':
            messages.success(request, "Payment received. Pickup scheduled successfully!")
        else:
            messages.error(request, "Payment was not completed")
        return redirect('orders:detail', order_id=order_id)
