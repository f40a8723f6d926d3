"""
DRIVERS App - Views for the driver workspace

Routes, completed deliveries, earnings and the apply-to-drive form.
"""

import csv
import logging

from django.contrib import messages
from django.http import HttpResponse
from django.shortcuts import render, redirect
from django.utils import timezone
from django.views import View
from django.views.generic import TemplateView

from core.backend import BackendError, BackendAuthError
from core.choices import RouteStatus, RouteOrderStatus
from core.mixins import CustomerRequiredMixin, DriverRequiredMixin
from core.money import format_money, to_decimal

from .forms import DriverApplicationForm, RouteStopStatusForm
from .services import (
    DELIVERY_PERIODS, EARNINGS_PERIODS, DriverService,
    earnings_csv_filename, history_rows, normalize_period,
)

logger = logging.getLogger(__name__)


class RoutesView(DriverRequiredMixin, TemplateView):
    """
    Assigned pickup/delivery routes.

    Stops are listed in sequence order. A planned route can be started;
    pending stops can be marked completed or failed.
    """
    template_name = 'drivers/routes.html'

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        route_date = self.request.GET.get('date', '').strip()
        routes = []
        try:
            routes = DriverService.routes(self.request, route_date or None)
        except BackendAuthError:
            raise
        except BackendError as e:
            logger.error(f"Failed to load routes: {e.message}")
            messages.error(self.request, "Failed to load routes")

        for route in routes:
            route['can_start'] = route.get('status') == RouteStatus.PLANNED
            for stop in route['orders']:
                stop['can_update'] = stop.get('status') == RouteOrderStatus.PENDING

        context['routes'] = routes
        context['route_date'] = route_date
        return context


class StartRouteView(DriverRequiredMixin, View):
    def post(self, request, route_id):
        try:
            DriverService.start_route(request, route_id)
        except BackendAuthError:
            raise
        except BackendError as e:
            messages.error(request, e.message or "Failed to start route")
        else:
            messages.success(request, "Route started")
        return redirect('drivers:routes')


class UpdateStopView(DriverRequiredMixin, View):
    def post(self, request, stop_id):
        form = RouteStopStatusForm(request.POST)
        if not form.is_valid():
            for error in form.non_field_errors() or ["Invalid stop status"]:
                messages.error(request, error)
            return redirect('drivers:routes')

        status = form.cleaned_data['status']
        try:
            DriverService.update_stop(request, stop_id, status)
        except BackendAuthError:
            raise
        except BackendError as e:
            messages.error(request, e.message or "Failed to update stop")
        else:
            messages.success(request, f"Stop marked {status}")
        return redirect('drivers:routes')


class DeliveriesView(DriverRequiredMixin, TemplateView):
    """Completed deliveries for this week, this month or all time."""
    template_name = 'drivers/deliveries.html'

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        period = normalize_period(self.request.GET.get('period'), DELIVERY_PERIODS, 'week')
        deliveries = []
        try:
            deliveries = DriverService.completed_deliveries(self.request, period)
        except BackendAuthError:
            raise
        except BackendError as e:
            logger.error(f"Failed to load deliveries: {e.message}")
            messages.error(self.request, "Failed to load deliveries")

        context['deliveries'] = deliveries
        context['period'] = period
        context['period_label'] = DELIVERY_PERIODS[period]
        context['periods'] = list(DELIVERY_PERIODS.items())
        return context


class EarningsView(DriverRequiredMixin, View):
    """
    Driver earnings.

    GET ?period=week|month|year
    GET ?period=...&format=csv -> history as a CSV download
    """
    template_name = 'drivers/earnings.html'

    def get(self, request):
        period = normalize_period(request.GET.get('period'), EARNINGS_PERIODS, 'week')
        earnings, history = {}, []
        try:
            earnings = DriverService.earnings(request)
            history = DriverService.earnings_history(request, period)
        except BackendAuthError:
            raise
        except BackendError as e:
            logger.error(f"Failed to load earnings: {e.message}")
            messages.error(request, "Failed to load earnings data")

        rows = history_rows(history)
        if request.GET.get('format') == 'csv':
            return self.export_csv(rows, period)

        summary = {
            key: to_decimal(earnings.get(key))
            for key in ('today', 'thisWeek', 'thisMonth', 'total', 'averagePerOrder', 'hourlyRate')
        }
        summary['completedOrders'] = int(earnings.get('completedOrders') or 0)
        summary['hoursWorked'] = to_decimal(earnings.get('hoursWorked'))

        return render(request, self.template_name, {
            'summary': summary,
            'history': rows,
            'period': period,
            'periods': EARNINGS_PERIODS,
        })

    def export_csv(self, rows, period):
        filename = earnings_csv_filename(period, timezone.localdate())
        response = HttpResponse(content_type='text/csv')
        response['Content-Disposition'] = f'attachment; filename="{filename}"'

        writer = csv.writer(response)
        writer.writerow(['Date', 'Orders', 'Earnings', 'Hours', 'Rate'])
        for row in rows:
            writer.writerow([
                row['date'],
                row['orders'],
                f"${format_money(row['earnings'])}",
                f"{row['hours']:.1f}",
                f"${format_money(row['rate'])}",
            ])

        logger.info(f"[EXPORT] Driver earnings CSV ({period}, {len(rows)} rows)")
        return response


class ApplyDriverView(CustomerRequiredMixin, View):
    """
    Apply to become a driver.
    When an application already exists its status is shown instead.
    """
    template_name = 'drivers/apply.html'

    def _existing(self, request):
        try:
            return DriverService.my_application(request)
        except BackendAuthError:
            raise
        except BackendError as e:
            logger.error(f"Failed to load driver application: {e.message}")
            return None

    def get(self, request):
        application = self._existing(request)
        if application:
            return render(request, self.template_name, {'application': application})

        user = self.tumble_user
        form = DriverApplicationForm(initial={
            'first_name': user.first_name,
            'last_name': user.last_name,
            'phone': user.phone,
        })
        return render(request, self.template_name, {'form': form})

    def post(self, request):
        application = self._existing(request)
        if application:
            messages.info(request, "You have already applied to drive.")
            return redirect('drivers:apply')

        form = DriverApplicationForm(request.POST)
        if not form.is_valid():
            return render(request, self.template_name, {'form': form})

        try:
            DriverService.submit_application(request, form.to_payload())
        except BackendAuthError:
            raise
        except BackendError as e:
            form.add_error(None, e.message or "Failed to submit application")
            return render(request, self.template_name, {'form': form})

        messages.success(request, "Application submitted! We'll review it and get back to you soon.")
        return redirect('core:dashboard')
