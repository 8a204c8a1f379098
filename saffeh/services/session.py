# saffeh/services/session.py
"""
Authenticated session — gateway calls that carry the stored bearer token.

Any 401 clears the local credentials before the AuthError reaches the
caller; callers only have to send the user back to sign-in.
"""

from typing import Any, Optional

from saffeh.services.credential_store import CredentialStore
from saffeh.services.errors import AuthError
from saffeh.services.gateway import BackendGateway
from saffeh.utils.logger import get_logger

logger = get_logger(__name__)


class AuthenticatedSession:
    def __init__(self, gateway: BackendGateway, store: CredentialStore):
        self.gateway = gateway
        self.store = store

    @property
    def is_signed_in(self) -> bool:
        return self.store.get_token() is not None

    async def request(self, endpoint: str, method: str = "GET", body: Optional[dict] = None) -> Any:
        token = self.store.get_token()
        if not token:
            raise AuthError("Not signed in", 401)
        try:
            return await self.gateway.request(endpoint, method, body, token=token)
        except AuthError:
            logger.warning(f"401 on {method} {endpoint} — signing out")
            self.store.clear()
            raise

    async def public_request(self, endpoint: str, method: str = "GET", body: Optional[dict] = None) -> Any:
        """Unauthenticated call (sign-in, sign-up, public catalog)."""
        return await self.gateway.request(endpoint, method, body)
