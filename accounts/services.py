"""
Accounts Services - saved addresses and profile.
"""

import logging
from typing import List, Optional

from core.backend import BackendClient

logger = logging.getLogger(__name__)


class AddressService:
    """CRUD for the signed-in user's addresses."""

    @classmethod
    def list(cls, request) -> List[dict]:
        return BackendClient.for_request(request).get('addresses') or []

    @classmethod
    def create(cls, request, payload: dict) -> dict:
        address = BackendClient.for_request(request).post('addresses/create', json=payload)
        logger.info(f"Address created: id={(address or {}).get('id')}")
        return address

    @classmethod
    def update(cls, request, address_id, payload: dict) -> dict:
        return BackendClient.for_request(request).put(f'addresses/{address_id}', json=payload)

    @classmethod
    def delete(cls, request, address_id) -> None:
        BackendClient.for_request(request).delete(f'addresses/{address_id}')
        logger.info(f"Address deleted: id={address_id}")

    @classmethod
    def get(cls, request, address_id) -> Optional[dict]:
        for address in cls.list(request):
            if str(address.get('id')) == str(address_id):
                return address
        return None

    @staticmethod
    def default_address(addresses: List[dict], fallback: bool = True) -> Optional[dict]:
        """
        The address flagged is_default.
        With fallback, the first address when none is flagged.
        """
        for address in addresses or []:
            if address.get('is_default'):
                return address
        if fallback and addresses:
            return addresses[0]
        return None


class ProfileService:
    """Profile and password of the signed-in user."""

    @classmethod
    def update(cls, request, payload: dict) -> dict:
        """PUT /auth/profile -> updated user"""
        return BackendClient.for_request(request).put('auth/profile', json=payload)

    @classmethod
    def change_password(cls, request, current_password: str, new_password: str) -> None:
        BackendClient.for_request(request).put('auth/change-password', json={
            'current_password': current_password,
            'new_password': new_password,
        })
        logger.info("Password changed")
