"""Resolve who owns the current session's data"""

import asyncio
import logging
import secrets
import string
import time
from typing import Any, MutableMapping, Optional

from core.enums import OwnerKind
from core.models import Owner
from config import settings
from .local import LocalStore

logger = logging.getLogger(__name__)

GUEST_ID_KEY = "guestUserId"
_ALPHABET = string.ascii_lowercase + string.digits


def generate_guest_id() -> str:
    """``guest_{millis}_{random}``"""
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(9))
    return f"guest_{int(time.time() * 1000)}_{suffix}"


class IdentityResolver:
    """Single source of the current owner key for a session.

    Authenticated owners come from verifying an access token with Supabase
    Auth. Everyone else is a guest whose id lives in the local store and is
    mirrored into a cookie; the cookie is read back when the local copy is
    missing. Without a local store (server side) the cookie alone carries the
    guest id.
    """

    def __init__(
        self,
        local_store: Optional[LocalStore],
        auth_client: Any = None,
        cookies: Optional[MutableMapping[str, str]] = None,
    ):
        self.local_store = local_store
        self.auth_client = auth_client
        self.cookies = cookies if cookies is not None else {}
        self.cookie_updated = False
        self._owner: Optional[Owner] = None

    @property
    def owner(self) -> Owner:
        """Owner resolved for this session (guest until ``resolve`` says otherwise)"""
        if self._owner is None:
            self._owner = self.guest_owner()
        return self._owner

    @property
    def owner_key(self) -> str:
        return self.owner.key

    def current_owner(self) -> Owner:
        return self.owner

    def existing_guest_id(self) -> Optional[str]:
        """Guest id from local storage, falling back to the cookie"""
        guest_id = self.local_store.get_item(GUEST_ID_KEY) if self.local_store else None
        if guest_id:
            return guest_id
        guest_id = self.cookies.get(settings.GUEST_COOKIE_NAME)
        if guest_id:
            if self.local_store:
                self.local_store.set_item(GUEST_ID_KEY, guest_id)
            return guest_id
        return None

    def guest_id(self) -> str:
        """Existing guest id, or a newly generated and persisted one"""
        guest_id = self.existing_guest_id()
        if guest_id:
            return guest_id
        guest_id = generate_guest_id()
        if self.local_store:
            self.local_store.set_item(GUEST_ID_KEY, guest_id)
        self.cookies[settings.GUEST_COOKIE_NAME] = guest_id
        self.cookie_updated = True
        logger.info("Created new guest id %s", guest_id)
        return guest_id

    def guest_owner(self) -> Owner:
        return Owner(key=self.guest_id(), kind=OwnerKind.GUEST)

    async def verify_token(self, access_token: str) -> Optional[Owner]:
        """Owner for a valid access token, None otherwise"""
        if not access_token or self.auth_client is None:
            return None
        try:
            response = await asyncio.to_thread(self.auth_client.auth.get_user, access_token)
        except Exception as e:
            logger.warning("Access token rejected: %s", e)
            return None
        user = getattr(response, "user", None)
        if user is None:
            return None
        return Owner(key=str(user.id), kind=OwnerKind.AUTHENTICATED, email=getattr(user, "email", None))

    async def resolve(self, access_token: Optional[str] = None) -> Owner:
        """Resolve and remember the session owner"""
        owner = await self.verify_token(access_token) if access_token else None
        self._owner = owner or self.guest_owner()
        return self._owner
