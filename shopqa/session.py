"""Bearer token acquisition and caching for the admin API.

The session manager owns the admin credential. A cached credential is
reused until ``expires_at - min_token_lifetime``; after that the next
``authenticate()`` issues exactly one new password-grant token request.

Example:
    >>> session = SessionManager(admin, config)
    >>> credential = await session.authenticate()   # POST /oauth/token
    >>> credential = await session.authenticate()   # cached, no request
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from shopqa.errors import AuthError, HttpError

if TYPE_CHECKING:
    from shopqa.client import ApiClient
    from shopqa.config import HarnessConfig

logger = logging.getLogger(__name__)

DEFAULT_SESSION_NAME = "bearerAuth"


class SessionState(Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    STALE = "stale"


@dataclass(frozen=True)
class Credential:
    """Admin API credential. ``expires_at`` is in unix seconds."""

    access_token: str
    refresh_token: str | None
    expires_at: float
    token_type: str = "Bearer"

    def is_fresh(self, now: float, margin: float) -> bool:
        return now < self.expires_at - margin

    @property
    def authorization_header(self) -> str:
        return f"{self.token_type} {self.access_token}"

    @classmethod
    def from_token_response(cls, body: dict[str, Any], now: float) -> Credential:
        access_token = body.get("access_token")
        if not access_token:
            raise AuthError("Token response missing access_token")
        expires_in = float(body.get("expires_in") or 0)
        return cls(
            access_token=access_token,
            refresh_token=body.get("refresh_token"),
            expires_at=now + expires_in,
            token_type=body.get("token_type") or "Bearer",
        )


class SessionStore:
    """In-memory credential store keyed by session name."""

    def __init__(self) -> None:
        self._credentials: dict[str, Credential] = {}

    def get(self, name: str) -> Credential | None:
        return self._credentials.get(name)

    def set(self, name: str, credential: Credential) -> None:
        self._credentials[name] = credential

    def delete(self, name: str) -> None:
        self._credentials.pop(name, None)

    def clear(self) -> None:
        self._credentials.clear()

    def __contains__(self, name: object) -> bool:
        return name in self._credentials


class SessionManager:
    """Obtains, caches and validates the admin bearer credential.

    Overlapping ``authenticate()`` calls are not serialized unless
    ``single_flight`` is enabled: each call that finds no fresh credential
    issues its own token request and the last response to arrive is the
    one cached.
    """

    TOKEN_PATH = "/oauth/token"
    VALIDATE_PATH = "/_info/version"

    def __init__(
        self,
        client: ApiClient,
        config: HarnessConfig,
        store: SessionStore | None = None,
        clock: Callable[[], float] = time.time,
        session_name: str = DEFAULT_SESSION_NAME,
        single_flight: bool | None = None,
    ) -> None:
        self.client = client
        self.config = config
        self.store = store or SessionStore()
        self.clock = clock
        self.session_name = session_name
        self.single_flight = config.auth_single_flight if single_flight is None else single_flight
        self.state = SessionState.UNAUTHENTICATED
        self._username = config.username
        self._password = config.password
        self._in_flight: asyncio.Task[Credential] | None = None
        self._generation = 0

    @property
    def credential(self) -> Credential | None:
        return self.store.get(self.session_name)

    def _cached(self) -> Credential | None:
        credential = self.credential
        if credential is None:
            return None
        if credential.is_fresh(self.clock(), self.config.min_token_lifetime):
            return credential
        self.state = SessionState.STALE
        return None

    async def authenticate(self) -> Credential:
        """Return a fresh credential, requesting a new token only when needed.

        Raises:
            AuthError: If the token request fails.
        """
        credential = self._cached()
        if credential is not None:
            self._install(credential)
            return credential

        if not self.single_flight:
            return await self._request_token()

        if self._in_flight is None or self._in_flight.done():
            self._in_flight = asyncio.ensure_future(self._request_token())
        return await asyncio.shield(self._in_flight)

    async def _request_token(self) -> Credential:
        self.state = SessionState.AUTHENTICATING
        generation = self._generation
        payload = {
            "grant_type": self.config.grant_type,
            "client_id": self.config.client_id,
            "scopes": self.config.scope,
            "username": self._username,
            "password": self._password,
        }
        logger.info(f"Requesting admin token for user '{self._username}'")

        try:
            body = await self.client.request(
                "POST", self.TOKEN_PATH, json=payload, headers={"Authorization": ""}
            )
        except HttpError as e:
            self.state = SessionState.UNAUTHENTICATED
            raise AuthError(
                f"Token request failed for user '{self._username}'",
                cause=e,
                status_code=e.status_code,
            ) from e

        if not isinstance(body, dict):
            self.state = SessionState.UNAUTHENTICATED
            raise AuthError("Token response is not a JSON object")

        try:
            credential = Credential.from_token_response(body, self.clock())
        except AuthError:
            self.state = SessionState.UNAUTHENTICATED
            raise

        # A login_as or invalidate while this request was pending supersedes it.
        if generation == self._generation:
            self.store.set(self.session_name, credential)
            self._install(credential)
        return credential

    def _install(self, credential: Credential) -> None:
        self.client.set_header("Authorization", credential.authorization_header)
        self.state = SessionState.AUTHENTICATED

    async def validate(self) -> bool:
        """Check the cached credential against the API.

        Any failure drops the credential so the next ``authenticate()``
        requests a new token.
        """
        credential = self.credential
        if credential is None:
            return False

        try:
            await self.client.request(
                "GET",
                self.VALIDATE_PATH,
                headers={"Authorization": credential.authorization_header},
            )
        except HttpError as e:
            logger.warning(f"Session '{self.session_name}' is no longer valid: {e}")
            self.invalidate()
            self.state = SessionState.STALE
            return False
        return True

    async def ensure_valid(self) -> Credential:
        """Authenticate and validate, re-authenticating once if validation fails."""
        credential = await self.authenticate()
        if await self.validate():
            return credential
        return await self.authenticate()

    def invalidate(self) -> None:
        """Forget the cached credential and any token request still pending."""
        self._generation += 1
        self._in_flight = None
        self.store.delete(self.session_name)
        self.client.clear_auth()
        self.state = SessionState.UNAUTHENTICATED

    async def login_as(self, username: str, password: str) -> Credential:
        """Force re-authentication as a different admin user."""
        self.invalidate()
        self._username = username
        self._password = password
        return await self.authenticate()

    def bearer_headers(self) -> dict[str, str]:
        credential = self.credential
        if credential is None:
            raise AuthError("No credential cached; call authenticate() first")
        return {"Authorization": credential.authorization_header}
