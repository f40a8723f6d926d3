"""
Signed-in user stored in the Django session.

The backend issues a bearer token at login; the dashboard keeps it
server-side in the session together with the public user fields.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from .choices import UserRole, UserStatus

logger = logging.getLogger('tumble.security')

SESSION_KEY = 'tumble_user'

PUBLIC_FIELDS = ('id', 'email', 'first_name', 'last_name', 'phone', 'role', 'status')


class InactiveAccount(Exception):
    """Login refused because the backend account is not active."""


@dataclass
class SessionUser:
    id: int
    email: str
    first_name: str = ''
    last_name: str = ''
    phone: str = ''
    role: str = ''
    status: str = UserStatus.ACTIVE
    access_token: str = field(default='', repr=False)

    is_authenticated = True
    is_anonymous = False

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip() or self.email

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_driver(self) -> bool:
        return self.role == UserRole.DRIVER

    @property
    def is_customer(self) -> bool:
        # Accounts created before roles existed have no role and act as customers
        return self.role == UserRole.CUSTOMER or not self.role

    def public_data(self) -> dict:
        return {name: getattr(self, name) for name in PUBLIC_FIELDS}

    @classmethod
    def from_session(cls, data: dict) -> 'SessionUser':
        return cls(
            id=data['id'],
            email=data.get('email', ''),
            first_name=data.get('first_name') or '',
            last_name=data.get('last_name') or '',
            phone=data.get('phone') or '',
            role=data.get('role') or '',
            status=data.get('status') or UserStatus.ACTIVE,
            access_token=data.get('access_token', ''),
        )


class AnonymousSessionUser:
    id = None
    email = ''
    first_name = ''
    last_name = ''
    full_name = ''
    role = ''
    access_token = None
    is_authenticated = False
    is_anonymous = True
    is_admin = False
    is_driver = False
    is_customer = False


def login(request, auth_response: dict) -> SessionUser:
    """
    Store the backend login response ({token, user}) in the session.

    Raises:
        InactiveAccount: if the user status is not 'active'
    """
    user = auth_response.get('user') or {}
    status = user.get('status') or UserStatus.ACTIVE

    if status != UserStatus.ACTIVE:
        logger.warning(f"Login refused for inactive account: {user.get('email')} ({status})")
        raise InactiveAccount("Account is not active")

    data = {name: user.get(name) for name in PUBLIC_FIELDS}
    data['status'] = status
    data['access_token'] = auth_response.get('token', '')

    request.session.cycle_key()
    request.session[SESSION_KEY] = data
    request.tumble_user = SessionUser.from_session(data)

    logger.info(f"User signed in: id={data['id']} role={data.get('role') or 'customer'}")
    return request.tumble_user


def logout(request) -> None:
    user = get_user(request)
    if user.is_authenticated:
        logger.info(f"User signed out: id={user.id}")
    request.session.flush()
    request.tumble_user = AnonymousSessionUser()


def get_user(request):
    """Return the SessionUser for this request, or an AnonymousSessionUser."""
    cached = getattr(request, 'tumble_user', None)
    if cached is not None:
        return cached

    data = request.session.get(SESSION_KEY) if hasattr(request, 'session') else None
    if not data or not data.get('access_token'):
        return AnonymousSessionUser()

    try:
        return SessionUser.from_session(data)
    except KeyError:
        logger.warning("Discarding malformed session user")
        return AnonymousSessionUser()


def update_profile(request, user_data: Optional[dict]) -> None:
    """Refresh the stored user fields after a profile edit."""
    data = request.session.get(SESSION_KEY)
    if not data or not user_data:
        return

    for name in ('first_name', 'last_name', 'phone', 'email'):
        if name in user_data:
            data[name] = user_data[name]

    request.session[SESSION_KEY] = data
    request.tumble_user = SessionUser.from_session(data)
