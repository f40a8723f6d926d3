"""
BACKOFFICE App - Views for the admin workspace

- Order management: filters, bulk route assignment, bulk status, route optimization
- Failed order resolution
- User management
- Driver application review
- Company earnings
"""

import csv
import logging
from urllib.parse import urlencode

from django.contrib import messages
from django.http import HttpResponse
from django.shortcuts import render, redirect
from django.urls import reverse
from django.utils import timezone
from django.views import View
from django.views.generic import TemplateView

from core.backend import BackendError, BackendAuthError
from core.choices import ApplicationStatus, OrderStatus, UserRole, UserStatus
from core.mixins import AdminRequiredMixin
from core.money import ZERO, add_money, format_money, quantize, to_decimal

from .filters import (
    filter_orders, filter_users, is_selectable, order_stats, selectable_orders,
    suggestion_order_count, suggestion_title,
)
from .forms import (
    ApplicationReviewForm, AssignRouteForm, BulkStatusForm, DeleteUserForm,
    OrderSelectionForm, ResolutionForm, UserForm, UserRoleForm, UserStatusForm,
)
from .services import AdminService

logger = logging.getLogger(__name__)

ANALYTICS_PERIODS = ('day', 'week', 'month')
APPLICATION_FILTERS = ('all',) + tuple(ApplicationStatus.values)


def orders_url(filter_status='', filter_date='', **extra):
    query = {k: v for k, v in {'status': filter_status, 'date': filter_date, **extra}.items() if v}
    url = reverse('backoffice:orders')
    return f"{url}?{urlencode(query)}" if query else url


def average_order_value(revenue, order_count):
    """Revenue per order, 0 when there were no orders."""
    if not order_count:
        return ZERO
    return quantize(to_decimal(revenue) / int(order_count))


# ============================================
# ORDERS
# ============================================

class AdminOrdersView(AdminRequiredMixin, TemplateView):
    """
    All orders.

    Query string:
        status, date     -> sent to the backend
        q, assignment    -> applied locally
        selected=1,2,3   -> preselected order ids
        panel=assign     -> open the route assignment panel
    """
    template_name = 'backoffice/orders.html'

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        params = self.request.GET
        status = params.get('status', '')
        date = params.get('date', '')
        search = params.get('q', '')
        assignment = params.get('assignment', '')

        orders, drivers = [], []
        try:
            orders = AdminService.orders(self.request, status=status or None, date=date or None)
            drivers = AdminService.users(self.request, role=UserRole.DRIVER)
        except BackendAuthError:
            raise
        except BackendError as e:
            logger.error(f"Failed to load admin orders: {e.message}")
            messages.error(self.request, "Failed to load orders")

        visible = [dict(order) for order in filter_orders(orders, search, assignment)]
        selectable_ids = {order['id'] for order in selectable_orders(visible)}
        selected = {
            int(raw) for raw in params.get('selected', '').split(',') if raw.strip().isdigit()
        } & selectable_ids
        for order in visible:
            order['selectable'] = is_selectable(order)
            order['selected'] = order.get('id') in selected
            order['can_resolve'] = order.get('status') == OrderStatus.FAILED

        filters = {'filter_status': status, 'filter_date': date}
        context.update({
            'orders': visible,
            'stats': order_stats(visible),
            'status_choices': OrderStatus.choices,
            'filters': {'status': status, 'date': date, 'q': search, 'assignment': assignment},
            'assign_form': AssignRouteForm(initial=filters, drivers=drivers),
            'bulk_form': BulkStatusForm(initial=filters),
            'panel': params.get('panel', ''),
            'has_selectable': bool(selectable_ids),
        })
        return context


class OrderActionView(AdminRequiredMixin, View):
    """
    Base for the bulk actions posted from the orders page.

    The orders are re-read under the same backend filters so only
    selectable ids reach the backend.
    """
    form_class = OrderSelectionForm

    def get_form_kwargs(self, request):
        return {}

    def post(self, request):
        filter_status = request.POST.get('filter_status', '')
        filter_date = request.POST.get('filter_date', '')
        back = orders_url(filter_status, filter_date)

        if not request.POST.getlist('order_ids'):
            messages.error(request, "Please select at least one order.")
            return redirect(back)

        try:
            orders = AdminService.orders(request, status=filter_status or None, date=filter_date or None)
            selectable_ids = [order['id'] for order in selectable_orders(orders)]
            form = self.form_class(
                request.POST, selectable_ids=selectable_ids, **self.get_form_kwargs(request)
            )
            if not form.is_valid():
                for errors in form.errors.values():
                    for error in errors:
                        messages.error(request, error)
                return redirect(back)
            return self.form_valid(request, form, orders, back)
        except BackendAuthError:
            raise
        except BackendError as e:
            messages.error(request, e.message or "Failed to update orders")
            return redirect(back)

    def form_valid(self, request, form, orders, back):
        raise NotImplementedError


class AssignRouteView(OrderActionView):
    form_class = AssignRouteForm

    def get_form_kwargs(self, request):
        return {'drivers': AdminService.users(request, role=UserRole.DRIVER)}

    def form_valid(self, request, form, orders, back):
        order_ids = form.cleaned_data['order_ids']
        AdminService.assign_route(
            request,
            form.cleaned_data['driver_id'],
            order_ids,
            form.cleaned_data['route_date'].isoformat(),
            form.cleaned_data['route_type'],
        )
        messages.success(
            request,
            f"Successfully assigned {len(order_ids)} orders to {form.driver_first_name()}"
        )
        return redirect(back)


class BulkStatusView(OrderActionView):
    form_class = BulkStatusForm

    def form_valid(self, request, form, orders, back):
        status = form.cleaned_data['status']
        result = AdminService.bulk_update_status(
            request, form.cleaned_data['order_ids'], status, form.cleaned_data['notes']
        )
        messages.success(
            request,
            f"Successfully updated {result.get('updated_count', 0)} orders to {status}"
        )
        return redirect(back)


class OptimizeRoutesView(OrderActionView):
    """Route optimization suggestions for the selected orders."""
    template_name = 'backoffice/optimize.html'

    def form_valid(self, request, form, orders, back):
        result = AdminService.optimization_suggestions(request, form.cleaned_data['order_ids'])
        filter_status = form.cleaned_data['filter_status']
        filter_date = form.cleaned_data['filter_date']

        suggestions = []
        for suggestion in result.get('suggestions') or []:
            groups = [
                {
                    'name': name,
                    'order_ids': ids,
                    'create_route_url': orders_url(
                        filter_status, filter_date,
                        selected=','.join(str(i) for i in ids), panel='assign',
                    ),
                }
                for name, ids in (suggestion.get('groups') or {}).items()
            ]
            suggestions.append({
                'type': suggestion.get('type', ''),
                'title': suggestion_title(suggestion.get('type', '')),
                'message': suggestion.get('message', ''),
                'order_count': suggestion_order_count(suggestion),
                'groups': groups,
            })

        return render(request, self.template_name, {
            'total_orders': result.get('total_orders', 0),
            'suggestions': suggestions,
            'orders': result.get('orders') or [],
            'back_url': back,
        })


class ResolveOrderView(AdminRequiredMixin, View):
    """Resolve a failed order (reschedule, refund, credit, waive fee)."""
    template_name = 'backoffice/resolve.html'

    def _load(self, request, order_id):
        try:
            order = AdminService.find_order(request, order_id)
            resolutions = AdminService.resolutions(request, order_id) if order else []
        except BackendAuthError:
            raise
        except BackendError as e:
            logger.error(f"Failed to load order {order_id}: {e.message}")
            messages.error(request, "Failed to load order")
            return None, []
        if order is None:
            messages.error(request, "Order not found")
        return order, resolutions

    def get(self, request, order_id):
        order, resolutions = self._load(request, order_id)
        if order is None:
            return redirect('backoffice:orders')
        form = ResolutionForm(initial={
            'reschedule_date': timezone.localdate(),
            'refund_amount': to_decimal(order.get('total')),
        })
        return render(request, self.template_name, {
            'order': order, 'resolutions': resolutions, 'form': form,
        })

    def post(self, request, order_id):
        order, resolutions = self._load(request, order_id)
        if order is None:
            return redirect('backoffice:orders')

        form = ResolutionForm(request.POST)
        if not form.is_valid():
            return render(request, self.template_name, {
                'order': order, 'resolutions': resolutions, 'form': form,
            })

        try:
            AdminService.create_resolution(request, form.to_payload(order_id))
        except BackendAuthError:
            raise
        except BackendError as e:
            form.add_error(None, e.message or "Failed to resolve order")
            return render(request, self.template_name, {
                'order': order, 'resolutions': resolutions, 'form': form,
            })

        resolution = form.cleaned_data['resolution_type'].replace('_', ' ')
        messages.success(request, f"Order #{order_id} has been resolved with {resolution}")
        return redirect('backoffice:orders')


# ============================================
# USERS
# ============================================

USERS_TEMPLATE = 'backoffice/users.html'


def users_context(request, add_form=None):
    """
    User management context.

    ?q= ?role= ?status= filter the list, ?filter=<role> presets the
    role filter and ?highlight=<email> searches and highlights one user.
    """
    params = request.GET
    highlight = params.get('highlight', '').strip()
    search = params.get('q', '') or highlight
    role = params.get('role', '')
    if params.get('filter') in UserRole.values:
        role = params['filter']
    status = params.get('status', '')

    users = []
    try:
        users = AdminService.users(request)
    except BackendAuthError:
        raise
    except BackendError as e:
        logger.error(f"Failed to load users: {e.message}")
        messages.error(request, "Failed to load users")

    return {
        'users': filter_users(users, search, role, status),
        'total_users': len(users),
        'counts': {
            'customers': sum(1 for u in users if u.get('role') == UserRole.CUSTOMER),
            'drivers': sum(1 for u in users if u.get('role') == UserRole.DRIVER),
            'active': sum(1 for u in users if u.get('status') == UserStatus.ACTIVE),
        },
        'filters': {'q': search, 'role': role or 'all', 'status': status or 'all'},
        'highlight': highlight,
        'role_choices': UserRole.choices,
        'status_choices': UserStatus.choices,
        'add_form': add_form or UserForm(),
    }


class UsersView(AdminRequiredMixin, TemplateView):
    template_name = USERS_TEMPLATE

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context.update(users_context(self.request))
        return context


class UserCreateView(AdminRequiredMixin, View):
    def post(self, request):
        form = UserForm(request.POST)
        if not form.is_valid():
            return render(request, USERS_TEMPLATE, users_context(request, add_form=form))

        try:
            AdminService.create_user(request, form.to_payload())
        except BackendAuthError:
            raise
        except BackendError as e:
            messages.error(request, e.message or "Failed to create user")
        else:
            messages.success(request, f"User {form.cleaned_data['email']} created")
        return redirect('backoffice:users')


class UserEditView(AdminRequiredMixin, View):
    template_name = 'backoffice/user_form.html'

    def _find(self, request, user_id):
        for user in AdminService.users(request):
            if str(user.get('id')) == str(user_id):
                return user
        return None

    def get(self, request, user_id):
        try:
            user = self._find(request, user_id)
        except BackendAuthError:
            raise
        except BackendError as e:
            logger.error(f"Failed to load user {user_id}: {e.message}")
            user = None
        if user is None:
            messages.error(request, "User not found")
            return redirect('backoffice:users')

        form = UserForm(initial={field: user.get(field) or '' for field in UserForm.base_fields})
        return render(request, self.template_name, {'form': form, 'edited_user': user})

    def post(self, request, user_id):
        form = UserForm(request.POST)
        if not form.is_valid():
            return render(request, self.template_name, {'form': form, 'edited_user': {'id': user_id}})

        try:
            AdminService.update_user(request, user_id, form.to_payload())
        except BackendAuthError:
            raise
        except BackendError as e:
            form.add_error(None, e.message or "Failed to update user")
            return render(request, self.template_name, {'form': form, 'edited_user': {'id': user_id}})

        messages.success(request, "User updated")
        return redirect('backoffice:users')


class UserRoleView(AdminRequiredMixin, View):
    def post(self, request, user_id):
        form = UserRoleForm(request.POST)
        if not form.is_valid():
            messages.error(request, "Invalid role")
            return redirect('backoffice:users')
        try:
            AdminService.update_user_role(request, user_id, form.cleaned_data['role'])
        except BackendAuthError:
            raise
        except BackendError as e:
            messages.error(request, e.message or "Failed to update role")
        else:
            messages.success(request, "Role updated")
        return redirect('backoffice:users')


class UserStatusView(AdminRequiredMixin, View):
    def post(self, request, user_id):
        form = UserStatusForm(request.POST)
        if not form.is_valid():
            messages.error(request, "Invalid status")
            return redirect('backoffice:users')
        try:
            AdminService.update_user_status(request, user_id, form.cleaned_data['status'])
        except BackendAuthError:
            raise
        except BackendError as e:
            messages.error(request, e.message or "Failed to update status")
        else:
            messages.success(request, "Status updated")
        return redirect('backoffice:users')


class UserDeleteView(AdminRequiredMixin, View):
    def post(self, request, user_id):
        if str(user_id) == str(self.tumble_user.id):
            messages.error(request, "Cannot delete yourself")
            return redirect('backoffice:users')

        form = DeleteUserForm(request.POST)
        if not form.is_valid():
            messages.error(request, "Please confirm the deletion.")
            return redirect('backoffice:users')

        try:
            AdminService.delete_user(request, user_id)
        except BackendAuthError:
            raise
        except BackendError as e:
            # 409: the user still has orders or routes
            messages.error(request, e.message or "Failed to delete user")
        else:
            messages.success(request, "User deleted")
        return redirect('backoffice:users')


# ============================================
# DRIVER APPLICATIONS
# ============================================

class DriverApplicationsView(AdminRequiredMixin, TemplateView):
    """
    Driver applications.

    ?status=all|pending|approved|rejected
    ?id=<application id> -> detail panel (+ review form while pending)
    """
    template_name = 'backoffice/applications.html'

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        status = self.request.GET.get('status', 'all')
        if status not in APPLICATION_FILTERS:
            status = 'all'

        applications = []
        try:
            applications = AdminService.driver_applications(self.request, status)
        except BackendAuthError:
            raise
        except BackendError as e:
            logger.error(f"Failed to load driver applications: {e.message}")
            messages.error(self.request, "Failed to load driver applications")

        selected_id = self.request.GET.get('id', '')
        selected = next(
            (app for app in applications if str(app.get('id')) == selected_id), None
        )

        context.update({
            'applications': applications,
            'status_filter': status,
            'status_filters': APPLICATION_FILTERS,
            'selected': selected,
            'review_form': (
                ApplicationReviewForm()
                if selected and selected.get('status') == ApplicationStatus.PENDING else None
            ),
        })
        return context


class ApplicationReviewView(AdminRequiredMixin, View):
    def post(self, request, application_id):
        form = ApplicationReviewForm(request.POST)
        back = f"{reverse('backoffice:applications')}?{urlencode({'id': application_id})}"
        if not form.is_valid():
            messages.error(request, "Please choose approve or reject.")
            return redirect(back)

        try:
            AdminService.review_application(
                request, application_id, form.cleaned_data['status'], form.cleaned_data['notes']
            )
        except BackendAuthError:
            raise
        except BackendError as e:
            messages.error(request, e.message or "Failed to review application")
            return redirect(back)

        messages.success(request, f"Application {form.cleaned_data['status']}")
        return redirect('backoffice:applications')


# ============================================
# COMPANY EARNINGS
# ============================================

class CompanyEarningsView(AdminRequiredMixin, View):
    """
    Company earnings.

    GET ?period=day|week|month
    GET ?period=...&format=csv -> revenue analytics as CSV
    """
    template_name = 'backoffice/earnings.html'

    def get(self, request):
        period = request.GET.get('period', 'day')
        if period not in ANALYTICS_PERIODS:
            period = 'day'

        summary, analytics, drivers = {}, [], []
        try:
            summary = AdminService.orders_summary(request)
            analytics = AdminService.revenue_analytics(request, period)
            drivers = AdminService.driver_stats(request)
        except BackendAuthError:
            raise
        except BackendError as e:
            logger.error(f"Failed to load company earnings: {e.message}")
            messages.error(request, "Failed to load earnings data")

        rows = [
            {
                'date': row.get('date', ''),
                'revenue': quantize(row.get('revenue')),
                'order_count': int(row.get('order_count') or 0),
                'average_order_value': average_order_value(row.get('revenue'), row.get('order_count')),
            }
            for row in analytics
        ]

        if request.GET.get('format') == 'csv':
            return self.export_csv(rows, period)

        period_revenue = add_money(*[row['revenue'] for row in rows]) if rows else ZERO
        period_orders = sum(row['order_count'] for row in rows)

        return render(request, self.template_name, {
            'period': period,
            'periods': ANALYTICS_PERIODS,
            'summary': {
                'total_revenue': quantize(summary.get('total_revenue')),
                'total_orders': int(summary.get('total_orders') or 0),
                'today_revenue': quantize(summary.get('today_revenue')),
                'today_orders': int(summary.get('today_orders') or 0),
                'completed_orders': int(summary.get('completed_orders') or 0),
                'average_order_value': average_order_value(
                    summary.get('total_revenue'), summary.get('total_orders')
                ),
            },
            'period_revenue': period_revenue,
            'period_orders': period_orders,
            'period_average': average_order_value(period_revenue, period_orders),
            'analytics': rows,
            'drivers': drivers,
        })

    def export_csv(self, rows, period):
        filename = f"company_earnings_{period}_{timezone.localdate().isoformat()}.csv"
        response = HttpResponse(content_type='text/csv')
        response['Content-Disposition'] = f'attachment; filename="{filename}"'

        writer = csv.writer(response)
        writer.writerow(['Date', 'Revenue', 'Orders', 'Average Order Value'])
        for row in rows:
            writer.writerow([
                row['date'],
                format_money(row['revenue']),
                row['order_count'],
                format_money(row['average_order_value']),
            ])

        logger.info(f"[EXPORT] Company earnings CSV ({period}, {len(rows)} rows)")
        return response
