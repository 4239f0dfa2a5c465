"""
Token lifecycle management.

The `TokenManager` keeps a bearer token valid for every outbound request:

    Unauthenticated → Authenticating → Authenticated
    Authenticated → (near expiry) Refreshing → Authenticated
    Authenticating / Refreshing → (attempts exhausted) Unauthenticated

Renewal is single-flight: concurrent callers that find the token stale
wait on one lock, and only the first of them talks to the token endpoint.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional

import aiohttp
from pydantic import ValidationError

from ..api.errors import (
    AuthenticationFailed,
    HubspaceError,
    RemoteRejected,
    TransportError,
    read_error_description,
)
from ..api.responses import TokenResponse
from ..config import Config, DEFAULT_CLIENT_ID, DEFAULT_TOKEN_URL, RetryConfig
from .session import Credentials, Session

logger = logging.getLogger(__name__)


class TokenState(str, Enum):
    """Lifecycle state of the token manager."""
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    REFRESHING = "refreshing"


@dataclass
class RetryPolicy:
    """
    Bounded retry with exponential backoff.

    `max_attempts` of 0 or less means no bound; only the discovery loop
    uses that.
    """
    max_attempts: int = 3
    initial_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: float = 30.0

    @property
    def bounded(self) -> bool:
        return self.max_attempts > 0

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after the given failed attempt (1-based)."""
        if attempt <= 0:
            return 0.0
        delay = self.initial_delay * (self.multiplier ** (attempt - 1))
        return min(delay, self.max_delay)

    @classmethod
    def from_config(cls, config: RetryConfig) -> "RetryPolicy":
        return cls(
            max_attempts=config.max_attempts,
            initial_delay=config.initial_delay,
            multiplier=config.multiplier,
            max_delay=config.max_delay,
        )


class TokenManager:
    """
    Produces a currently valid bearer token on demand.

    Usage:
        tokens = TokenManager(Credentials("me@example.com", "secret"))
        token = await tokens.get_token()
        ...
        await tokens.close()
    """

    def __init__(
        self,
        credentials: Credentials,
        token_url: str = DEFAULT_TOKEN_URL,
        client_id: str = DEFAULT_CLIENT_ID,
        safety_margin: float = 300.0,
        retry: Optional[RetryPolicy] = None,
        timeout: float = 30.0,
        session: Optional[Session] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.token_url = token_url
        self.client_id = client_id
        self.safety_margin = safety_margin
        self.retry = retry or RetryPolicy()
        self.timeout = timeout
        self._credentials = credentials
        self._clock = clock
        self._session = session
        self._state = TokenState.AUTHENTICATED if session else TokenState.UNAUTHENTICATED
        self._lock = asyncio.Lock()
        self._http: Optional[aiohttp.ClientSession] = None

    @classmethod
    def from_config(cls, config: Config, **kwargs) -> "TokenManager":
        """Create a manager from the bridge configuration."""
        if not config.has_credentials:
            raise AuthenticationFailed("No username/password configured")
        return cls(
            Credentials(config.username, config.password),
            token_url=config.token_url,
            client_id=config.client_id,
            safety_margin=config.token_safety_margin,
            retry=RetryPolicy.from_config(config.auth_retry),
            timeout=config.request_timeout,
            **kwargs,
        )

    @property
    def state(self) -> TokenState:
        return self._state

    @property
    def session(self) -> Optional[Session]:
        return self._session

    async def _get_http(self) -> aiohttp.ClientSession:
        if self._http is None or self._http.closed:
            self._http = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        return self._http

    async def close(self) -> None:
        if self._http and not self._http.closed:
            await self._http.close()

    async def get_token(self) -> str:
        """
        Return a bearer token valid for at least the safety margin.

        Raises:
            AuthenticationFailed: If refresh and re-authentication both failed
        """
        session = self._session
        if session is not None and session.access_valid(self._clock(), self.safety_margin):
            return session.access_token

        async with self._lock:
            # Another caller may have renewed while we waited
            session = self._session
            if session is not None and session.access_valid(self._clock(), self.safety_margin):
                return session.access_token

            renewed = await self._renew(session)
            return renewed.access_token

    def invalidate(self, token: Optional[str] = None) -> None:
        """
        Force the next `get_token()` to renew; the refresh token is kept.

        When `token` is given, the session is only expired if it still holds
        that token. A rejection of an already replaced token is a no-op.
        """
        if self._session is None:
            return
        if token is not None and self._session.access_token != token:
            logger.debug("Rejected token was already replaced; keeping the current one")
            return
        self._session = self._session.expired()

    def clear(self) -> None:
        """Drop the session entirely."""
        self._session = None
        self._state = TokenState.UNAUTHENTICATED

    async def _renew(self, session: Optional[Session]) -> Session:
        if session is not None and session.refresh_valid(self._clock(), self.safety_margin):
            self._state = TokenState.REFRESHING
            logger.debug("Refreshing access token...")
            renewed = await self._attempt_grant(
                "refresh_token",
                {
                    "grant_type": "refresh_token",
                    "client_id": self.client_id,
                    "refresh_token": session.refresh_token,
                },
                previous=session,
            )
            if renewed is not None:
                return renewed
            logger.warning("Token refresh failed, falling back to full authentication")

        self._state = TokenState.AUTHENTICATING
        logger.debug(f"Authenticating as {self._credentials.username}...")
        renewed = await self._attempt_grant(
            "password",
            {
                "grant_type": "password",
                "client_id": self.client_id,
                "username": self._credentials.username,
                "password": self._credentials.password,
            },
        )
        if renewed is not None:
            return renewed

        self.clear()
        logger.error("Authentication failed; check the configured username and password")
        raise AuthenticationFailed(
            f"Could not obtain a token after {max(1, self.retry.max_attempts)} attempts"
        )

    async def _attempt_grant(
        self,
        grant: str,
        form: Dict[str, str],
        previous: Optional[Session] = None,
    ) -> Optional[Session]:
        """Run one grant type with bounded retries. Returns None when exhausted."""
        attempts = max(1, self.retry.max_attempts)

        for attempt in range(1, attempts + 1):
            try:
                response = await self._request_token(form)
            except HubspaceError as e:
                logger.warning(f"Token request ({grant}) failed (attempt {attempt}/{attempts}): {e}")
                if attempt < attempts:
                    await asyncio.sleep(self.retry.delay_for(attempt))
                continue

            now = self._clock()
            session = Session.from_token_response(response, now, previous)
            self._session = session
            self._state = TokenState.AUTHENTICATED
            logger.info(f"Obtained access token via {grant} grant")

            if not session.access_valid(now, self.safety_margin):
                logger.warning(
                    f"Access token lifetime ({response.expires_in:.0f}s) is shorter than the "
                    f"safety margin ({self.safety_margin:.0f}s); it will be renewed on every call"
                )
            return session

        return None

    async def _request_token(self, form: Dict[str, str]) -> TokenResponse:
        http = await self._get_http()

        try:
            async with http.post(self.token_url, data=form) as resp:
                if not 200 <= resp.status < 300:
                    description = await read_error_description(resp)
                    raise RemoteRejected(resp.status, description)
                payload = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(f"Token endpoint unreachable: {e}") from e
        except ValueError as e:
            raise HubspaceError(f"Malformed token response: {e}", code="MALFORMED_RESPONSE") from e

        try:
            return TokenResponse.model_validate(payload)
        except ValidationError as e:
            raise HubspaceError(
                f"Malformed token response: {e.error_count()} invalid field(s)",
                code="MALFORMED_RESPONSE",
            ) from e
