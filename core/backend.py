"""
Tumble Backend Client

Thin wrapper around the Tumble REST API (/api/v1).

Every dashboard page reads and writes through this client:
1. Bearer token taken from the signed-in session
2. JSON request/response bodies
3. Non-2xx answers raised as BackendError (message = backend text)
"""

import json
import logging
from typing import Any, Optional

import requests
from django.conf import settings

logger = logging.getLogger('tumble.backend')


class BackendError(Exception):
    """Raised when the backend answers with a non-2xx status."""

    def __init__(self, status_code: Optional[int], message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(message)

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404

    @property
    def is_forbidden(self) -> bool:
        return self.status_code == 403

    @property
    def is_conflict(self) -> bool:
        return self.status_code == 409


class BackendAuthError(BackendError):
    """The access token was rejected (401). The session must be dropped."""


class BackendUnavailable(BackendError):
    """The backend could not be reached (connection error, timeout)."""

    def __init__(self, message: str):
        super().__init__(None, message)


def _error_message(response: requests.Response) -> str:
    """
    Extract a human readable message from an error response.

    The backend answers errors as plain text (http.Error) but a few
    handlers return {"error": "..."} JSON.
    """
    text = (response.text or '').strip()
    if text.startswith('{'):
        try:
            body = json.loads(text)
        except ValueError:
            body = None
        if isinstance(body, dict):
            for key in ('error', 'message', 'detail'):
                if body.get(key):
                    return str(body[key])
    return text or f"HTTP {response.status_code}"


class BackendClient:
    """
    Session-scoped client for the Tumble REST API.

    Usage:
        client = BackendClient.for_request(request)
        orders = client.get('orders')
    """

    API_PREFIX = '/api/v1'

    def __init__(self, token: Optional[str] = None, base_url: Optional[str] = None,
                 timeout: Optional[float] = None):
        self.base_url = (base_url or settings.TUMBLE_API_URL).rstrip('/')
        self.timeout = timeout or settings.TUMBLE_API_TIMEOUT
        self.token = token

        self.session = requests.Session()
        self.session.headers['Content-Type'] = 'application/json'
        if token:
            self.session.headers['Authorization'] = f"Bearer {token}"

    @classmethod
    def for_request(cls, request) -> 'BackendClient':
        """Build a client carrying the access token of the signed-in user."""
        from .session import get_user
        return cls(token=get_user(request).access_token)

    @classmethod
    def anonymous(cls) -> 'BackendClient':
        """Client for public endpoints (plans, services, login)."""
        return cls()

    def build_url(self, path: str) -> str:
        return f"{self.base_url}{self.API_PREFIX}/{path.lstrip('/')}"

    def request(self, method: str, path: str, params: Optional[dict] = None,
                json: Any = None) -> Any:
        """
        Send a request and return the decoded JSON body.

        Returns None for an empty body.

        Raises:
            BackendAuthError: 401
            BackendError: any other non-2xx status
            BackendUnavailable: network failure or timeout
        """
        url = self.build_url(path)
        logger.debug(f"[BACKEND] {method} {path} params={params}")

        try:
            response = self.session.request(
                method,
                url,
                params=params,
                json=json,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"[BACKEND] {method} {path} unreachable: {e}")
            raise BackendUnavailable(f"Backend unavailable: {e}") from e

        if response.status_code >= 400:
            message = _error_message(response)
            if response.status_code >= 500:
                logger.error(f"[BACKEND] {method} {path} -> {response.status_code}: {message}")
            else:
                logger.warning(f"[BACKEND] {method} {path} -> {response.status_code}: {message}")

            if response.status_code == 401:
                raise BackendAuthError(401, message)
            raise BackendError(response.status_code, message)

        if not response.content:
            return None

        try:
            return response.json()
        except ValueError:
            return response.text

    def get(self, path: str, params: Optional[dict] = None) -> Any:
        return self.request('GET', path, params=params)

    def post(self, path: str, json: Any = None, params: Optional[dict] = None) -> Any:
        return self.request('POST', path, params=params, json=json)

    def put(self, path: str, json: Any = None, params: Optional[dict] = None) -> Any:
        return self.request('PUT', path, params=params, json=json)

    def delete(self, path: str, params: Optional[dict] = None) -> Any:
        return self.request('DELETE', path, params=params)

    def ping(self) -> bool:
        """Check the backend /health endpoint (outside the API prefix)."""
        try:
            response = self.session.get(f"{self.base_url}/health", timeout=self.timeout)
            response.raise_for_status()
            return True
        except requests.RequestException as e:
            logger.warning(f"[BACKEND] health ping failed: {e}")
            return False


def get_or_none(client: BackendClient, path: str, params: Optional[dict] = None) -> Any:
    """GET a resource whose absence is a valid state (404 -> None)."""
    try:
        return client.get(path, params=params)
    except BackendError as e:
        if e.is_not_found:
            return None
        raise
