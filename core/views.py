"""
Core App Views - Sign in, Sign up, Sign out & role dashboard
"""
import logging

from django.contrib import messages
from django.shortcuts import render, redirect
from django.utils.http import url_has_allowed_host_and_scheme
from django.views import View
from django.views.generic import TemplateView

from .backend import BackendError
from .forms import SignInForm, SignUpForm
from .mixins import SessionRequiredMixin
from .services import AuthService, DashboardService
from .session import login, logout, get_user, InactiveAccount

logger = logging.getLogger(__name__)


def _safe_next(request, default='core:dashboard'):
    next_url = request.POST.get('next') or request.GET.get('next')
    if next_url and url_has_allowed_host_and_scheme(
        next_url, allowed_hosts={request.get_host()}, require_https=request.is_secure()
    ):
        return next_url
    return default


class SignInView(View):
    """
    Email/password sign in against the backend.
    Redirects to ?next= (or the dashboard) on success.
    """

    template_name = 'core/signin.html'

    def get(self, request):
        if get_user(request).is_authenticated:
            return redirect('core:dashboard')
        return render(request, self.template_name, {
            'form': SignInForm(),
            'next': request.GET.get('next', ''),
        })

    def post(self, request):
        form = SignInForm(request.POST)
        context = {'form': form, 'next': request.POST.get('next', '')}

        if not form.is_valid():
            return render(request, self.template_name, context)

        try:
            auth = AuthService.login(form.cleaned_data['email'], form.cleaned_data['password'])
            login(request, auth)
        except InactiveAccount:
            form.add_error(None, "Account is not active")
            return render(request, self.template_name, context)
        except BackendError as e:
            form.add_error(None, e.message if e.status_code else "Invalid credentials")
            return render(request, self.template_name, context)

        return redirect(_safe_next(request))


class SignUpView(View):
    """
    Customer registration.
    The backend creates the account and returns a token: the user is
    signed in immediately.
    """

    template_name = 'core/signup.html'

    def get(self, request):
        if get_user(request).is_authenticated:
            return redirect('core:dashboard')
        return render(request, self.template_name, {'form': SignUpForm()})

    def post(self, request):
        form = SignUpForm(request.POST)
        if not form.is_valid():
            return render(request, self.template_name, {'form': form})

        try:
            auth = AuthService.register(form.to_payload())
            login(request, auth)
        except InactiveAccount:
            messages.info(request, "Your account was created and is awaiting activation.")
            return redirect('core:signin')
        except BackendError as e:
            form.add_error(None, e.message or "Registration failed")
            return render(request, self.template_name, {'form': form})

        messages.success(request, "Welcome to Tumble!")
        return redirect('core:dashboard')


class SignOutView(View):
    def post(self, request):
        logout(request)
        return redirect('home:home')


class DashboardView(SessionRequiredMixin, TemplateView):
    """
    Role home page.

    - Customer: plan, subscription status, next pickup
    - Driver: today's routes, weekly earnings
    - Admin: user count, active orders
    """

    template_name = 'core/dashboard.html'

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        user = self.tumble_user

        if user.is_admin:
            context['stats'] = DashboardService.admin_stats(self.request)
        elif user.is_driver:
            context['stats'] = DashboardService.driver_stats(self.request)
        else:
            context['stats'] = DashboardService.customer_stats(self.request)

        return context
