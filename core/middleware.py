"""
Tumble Dashboard Middleware
===========================

Provides:
1. Session user attached to every request (request.tumble_user)
2. Login gate for /dashboard/ pages, expired-token handling
3. Rate Limiting (per IP) using Django cache
4. Security Headers
5. Request Audit Logging for sensitive endpoints
"""

import hashlib
import logging
from urllib.parse import urlencode

from django.conf import settings
from django.contrib import messages
from django.core.cache import cache
from django.http import JsonResponse, HttpResponse
from django.shortcuts import redirect
from django.urls import reverse
from django.utils.deprecation import MiddlewareMixin

from .backend import BackendAuthError
from .session import get_user, logout

logger = logging.getLogger('tumble.security')


class SessionUserMiddleware(MiddlewareMixin):
    """Attach the signed-in backend user as request.tumble_user."""

    def process_request(self, request):
        request.tumble_user = get_user(request)
        return None


class LoginRequiredMiddleware(MiddlewareMixin):
    """
    Redirect anonymous visitors away from the dashboard.

    JSON callers (views marked `answers_json`, XHR and `Accept: application/json`
    requests, anything under /api/) get a 401 body instead of the sign-in page.

    Also turns a BackendAuthError (expired or revoked token) raised by
    any view into a sign-out followed by a redirect to the sign-in page.
    """

    PROTECTED_PREFIXES = ('/dashboard/',)

    def _signin_redirect(self, request):
        query = urlencode({'next': request.get_full_path()})
        return redirect(f"{reverse('core:signin')}?{query}")

    def _wants_json(self, request, view_func=None):
        if request.path.startswith('/api/'):
            return True
        if view_func is None and request.resolver_match is not None:
            view_func = request.resolver_match.func
        if getattr(view_func, 'answers_json', False):
            return True
        if request.headers.get('X-Requested-With') == 'XMLHttpRequest':
            return True
        return 'application/json' in request.headers.get('Accept', '')

    def process_view(self, request, view_func, view_args, view_kwargs):
        if not request.path.startswith(self.PROTECTED_PREFIXES):
            return None
        if get_user(request).is_authenticated:
            return None
        if self._wants_json(request, view_func):
            return JsonResponse({'detail': 'Authentication required'}, status=401)
        return self._signin_redirect(request)

    def process_exception(self, request, exception):
        if not isinstance(exception, BackendAuthError):
            return None

        logger.warning(f"Backend rejected session token on {request.path}; signing out")
        logout(request)

        if self._wants_json(request):
            return JsonResponse({'detail': 'Session expired'}, status=401)

        messages.warning(request, "Your session has expired. Please sign in again.")
        return self._signin_redirect(request)


def client_ip(request):
    """First hop of X-Forwarded-For when behind a proxy, REMOTE_ADDR otherwise."""
    forwarded = request.META.get('HTTP_X_FORWARDED_FOR', '')
    return forwarded.split(',')[0].strip() or request.META.get('REMOTE_ADDR', '0.0.0.0')


class RateLimitMiddleware(MiddlewareMixin):
    """
    Fixed-window request counter per client IP, kept in the Django cache.

    Rules come from settings.RATE_LIMITS as (path prefix, methods, max, window).
    The first matching rule wins; an empty methods tuple matches any method.
    Skipped entirely in DEBUG unless RATE_LIMIT_IN_DEBUG is set.
    """

    def _rule_for(self, request):
        for prefix, methods, max_requests, window in settings.RATE_LIMITS:
            if not request.path.startswith(prefix):
                continue
            if methods and request.method not in methods:
                return None
            return prefix, max_requests, window
        return None

    def _refuse(self, request, max_requests, window):
        headers = {
            'Retry-After': str(window),
            'X-RateLimit-Limit': str(max_requests),
            'X-RateLimit-Remaining': '0',
        }
        if request.path.startswith('/api/'):
            return JsonResponse({
                'error': 'rate_limit_exceeded',
                'message': 'Too many requests. Please try again later.',
                'retry_after': window,
            }, status=429, headers=headers)
        return HttpResponse(
            'Too many attempts. Please wait a minute and try again.',
            status=429, headers=headers,
        )

    def process_request(self, request):
        if settings.DEBUG and not settings.RATE_LIMIT_IN_DEBUG:
            return None

        rule = self._rule_for(request)
        if rule is None:
            return None
        prefix, max_requests, window = rule

        ip = client_ip(request)
        bucket = hashlib.sha1(prefix.encode()).hexdigest()[:10]
        key = f"tumble:rl:{bucket}:{ip}"

        used = cache.get(key, 0)
        if used >= max_requests:
            logger.warning(f"Rate limit hit: ip={ip} path={request.path} limit={max_requests}/{window}s")
            return self._refuse(request, max_requests, window)

        try:
            used = cache.incr(key)
        except ValueError:
            # window expired or first hit
            cache.set(key, 1, window)
            used = 1

        request.rate_limit = (max_requests, max(0, max_requests - used))
        return None

    def process_response(self, request, response):
        limit = getattr(request, 'rate_limit', None)
        if limit:
            response['X-RateLimit-Limit'] = str(limit[0])
            response['X-RateLimit-Remaining'] = str(limit[1])
        return response


class SecurityHeadersMiddleware(MiddlewareMixin):
    """Hardening headers on every response, HSTS outside DEBUG."""

    HEADERS = {
        'X-Content-Type-Options': 'nosniff',
        'X-Frame-Options': 'DENY',
        'Referrer-Policy': 'strict-origin-when-cross-origin',
        # Stripe Elements needs the payment API
        'Permissions-Policy': 'geolocation=(), camera=(), microphone=(), payment=(self "https://js.stripe.com")',
    }

    def process_response(self, request, response):
        for name, value in self.HEADERS.items():
            response[name] = value

        if 'Server' in response:
            del response['Server']

        if not settings.DEBUG:
            response['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains; preload'
        return response


class RequestAuditMiddleware(MiddlewareMixin):
    """
    One log line per sign-in/sign-up attempt, per admin write and per error.
    """

    ADMIN_PREFIXES = (
        '/dashboard/admin/',
        '/dashboard/users/',
        '/dashboard/driver-applications/',
    )
    WRITE_METHODS = ('POST', 'PUT', 'PATCH', 'DELETE')

    def _is_audited(self, request, response):
        path = request.path
        if response.status_code >= 500:
            return True
        if path.startswith('/api/') and response.status_code >= 400:
            return True
        if request.method not in self.WRITE_METHODS:
            return False
        return path.startswith('/auth/') or path.startswith(self.ADMIN_PREFIXES)

    def process_response(self, request, response):
        if not self._is_audited(request, response):
            return response

        user = getattr(request, 'tumble_user', None)
        actor = f"{user.id}:{user.role or 'customer'}" if user and user.is_authenticated else 'anonymous'
        line = (f"{request.method} {request.path} -> {response.status_code} "
                f"user={actor} ip={client_ip(request)}")

        if response.status_code >= 500:
            logger.error(f"AUDIT {line}")
        elif response.status_code >= 400:
            logger.warning(f"AUDIT {line}")
        else:
            logger.info(f"AUDIT {line}")
        return response
