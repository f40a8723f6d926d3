"""
Function-view counterparts of the role mixins.
"""

from functools import wraps

from django.http import JsonResponse

from .choices import UserRole
from .session import get_user


def json_role_required(*roles):
    """
    Restrict an AJAX view to signed-in users with one of `roles`.
    Answers JSON 401/403 instead of redirecting.
    """
    def decorator(view_func):
        @wraps(view_func)
        def wrapper(request, *args, **kwargs):
            user = get_user(request)
            if not user.is_authenticated:
                return JsonResponse({'error': 'Authentication required'}, status=401)
            if roles and (user.role or UserRole.CUSTOMER) not in roles:
                return JsonResponse({'error': 'Forbidden'}, status=403)
            return view_func(request, *args, **kwargs)
        # LoginRequiredMiddleware leaves the 401/403 to this wrapper
        wrapper.answers_json = True
        return wrapper
    return decorator
