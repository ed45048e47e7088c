"""
services/auth_service.py

Holds the logged-in user for one browser session.

The bearer token is issued by the backend; the client only reads its subject
claim (it never holds the signing key), then loads that user record.
"""

import logging
from typing import Callable, List, Optional

from jose import JWTError, jwt

from hr_portal.models.user_model import User
from hr_portal.services.api_client import BackendClient

logger = logging.getLogger(__name__)


def token_subject(token: str) -> int:
    """Return the integer user id in the token's `sub` claim."""
    try:
        claims = jwt.get_unverified_claims(token)
    except JWTError as e:
        raise ValueError("Malformed access token.") from e

    subject = claims.get("sub")
    if subject is None:
        raise ValueError("Access token has no subject.")
    try:
        return int(subject)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Access token subject is not a user id: {subject!r}") from e


class AuthSession:
    def __init__(self, client: BackendClient):
        self.client = client
        self._user: Optional[User] = None
        self._on_logout: List[Callable[[Optional[User]], None]] = []
        client.on_unauthorized(self.logout)

    @property
    def current_user(self) -> Optional[User]:
        return self._user

    @property
    def is_authenticated(self) -> bool:
        return self._user is not None

    def on_logout(self, callback: Callable[[Optional[User]], None]) -> None:
        self._on_logout.append(callback)

    async def login(self, token: str) -> User:
        user_id = token_subject(token)
        self.client.set_token(token)
        try:
            user = await self.client.get_user(user_id)
        except Exception:
            self.client.set_token(None)
            raise
        self._user = user
        logger.info(f"User {user.id} ({user.role.value}) logged in")
        return user

    async def refresh(self) -> User:
        """Reload the current user record (e.g. after an exam changes its history)."""
        if self._user is None:
            raise PermissionError("Not logged in.")
        self._user = await self.client.get_user(self._user.id)
        return self._user

    def logout(self) -> None:
        if self._user is None and self.client.token is None:
            return
        user, self._user = self._user, None
        if user is not None:
            logger.info(f"User {user.id} logged out")
        self.client.set_token(None)
        for callback in list(self._on_logout):
            callback(user)
