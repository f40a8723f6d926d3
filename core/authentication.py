"""
DRF authentication backed by the dashboard session.
"""

from rest_framework.authentication import SessionAuthentication

from .session import get_user


class BackendSessionAuthentication(SessionAuthentication):
    """
    Authenticate DRF requests with the backend user stored in the session.

    CSRF is enforced exactly like DRF's SessionAuthentication.
    """

    def authenticate(self, request):
        user = get_user(request._request)
        if not user.is_authenticated:
            return None

        self.enforce_csrf(request)
        return (user, user.access_token)

    def authenticate_header(self, request):
        # A value here makes DRF answer 401 (not 403) without a session
        return 'Session'
