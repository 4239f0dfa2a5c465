"""
Authenticated client for the Afero cloud API.

Every request carries the token manager's current bearer token. A 401
triggers one forced token renewal and one retry; anything else is
classified into the bridge error taxonomy and raised to the caller.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional, Tuple

import aiohttp
from pydantic import ValidationError

from ..auth.tokens import TokenManager
from ..config import Config, DEFAULT_API_BASE_URL
from .endpoints import join_url, metadevices_path, user_details_path
from .errors import (
    HubspaceError,
    RateLimited,
    RemoteRejected,
    TransportError,
    Unauthorized,
    read_error_description,
)
from .responses import AccountResponse

logger = logging.getLogger(__name__)


class HubspaceClient:
    """
    Thin HTTP layer over aiohttp.

    Usage:
        client = HubspaceClient(tokens)
        account_id = await client.get_account_id()
        devices = await client.get_metadevices()
        await client.close()
    """

    def __init__(
        self,
        token_manager: TokenManager,
        base_url: str = DEFAULT_API_BASE_URL,
        timeout: float = 30.0,
    ):
        self.token_manager = token_manager
        self.base_url = base_url
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None
        self._account_id: Optional[str] = None
        self._account_lock = asyncio.Lock()

    @classmethod
    def from_config(cls, config: Config, token_manager: TokenManager) -> "HubspaceClient":
        return cls(token_manager, base_url=config.api_base_url, timeout=config.request_timeout)

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers={"Content-Type": "application/json"},
            )
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        await self.token_manager.close()

    async def request(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Issue an authenticated request and return the decoded JSON body.

        Raises:
            AuthenticationFailed: If no token could be obtained
            Unauthorized: If the API answers 401 even after a token refresh
            RateLimited: On HTTP 429
            RemoteRejected: On any other non-2xx status
            TransportError: On connection failures and timeouts
        """
        url = join_url(self.base_url, path)

        token = await self.token_manager.get_token()
        status, payload = await self._send(method, url, token, body)

        if status == 401:
            logger.debug(f"{method} {url} returned 401, refreshing token and retrying")
            self.token_manager.invalidate(token)
            token = await self.token_manager.get_token()
            status, payload = await self._send(method, url, token, body)
            if status == 401:
                raise Unauthorized(f"{method} {url} was rejected after a token refresh")

        return payload

    async def _send(
        self,
        method: str,
        url: str,
        token: str,
        body: Optional[Dict[str, Any]],
    ) -> Tuple[int, Any]:
        session = await self._get_session()
        headers = {"Authorization": f"Bearer {token}"}

        try:
            async with session.request(method, url, json=body, headers=headers) as resp:
                if resp.status == 401:
                    return resp.status, None

                if resp.status == 429:
                    raise RateLimited(_retry_after(resp.headers.get("Retry-After")))

                if not 200 <= resp.status < 300:
                    description = await read_error_description(resp)
                    raise RemoteRejected(resp.status, description, url=url)

                text = await resp.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(f"{method} {url} failed: {e!r}") from e

        if not text:
            return resp.status, None

        try:
            return resp.status, json.loads(text)
        except ValueError as e:
            raise HubspaceError(f"Malformed response from {url}", code="MALFORMED_RESPONSE") from e

    async def get_account_id(self) -> str:
        """Return the id of the first account the user can access."""
        if self._account_id is not None:
            return self._account_id

        async with self._account_lock:
            if self._account_id is None:
                payload = await self.request("GET", user_details_path())
                try:
                    account = AccountResponse.model_validate(payload or {})
                except ValidationError as e:
                    raise HubspaceError("Malformed account response", code="MALFORMED_RESPONSE") from e

                if not account.account_access:
                    raise HubspaceError("User has no accessible accounts", code="NO_ACCOUNT")

                self._account_id = account.account_access[0].account.account_id
                logger.debug(f"Loaded account {self._account_id}")

        return self._account_id

    async def get_metadevices(self) -> List[Dict[str, Any]]:
        """Fetch the raw device graph for the account."""
        account_id = await self.get_account_id()
        payload = await self.request("GET", metadevices_path(account_id))

        if not isinstance(payload, list):
            raise HubspaceError("Device list response is not an array", code="MALFORMED_RESPONSE")

        return payload


def _retry_after(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None
