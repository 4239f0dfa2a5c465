"""
In-process fake of the Afero cloud and raw device builders for tests.
"""

import asyncio
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from aiohttp import web
from aiohttp.test_utils import TestServer

from hubspace_bridge.api.client import HubspaceClient
from hubspace_bridge.auth.session import Credentials
from hubspace_bridge.auth.tokens import RetryPolicy, TokenManager

FAST_RETRY = RetryPolicy(max_attempts=3, initial_delay=0.0, multiplier=1.0, max_delay=0.0)


class FakeCloud:
    """
    Token endpoint plus the handful of API routes the bridge uses.

    Usage:
        async with FakeCloud() as cloud:
            client = cloud.client()
            ...
    """

    def __init__(self):
        self.account_id = "acct-1"
        self.metadevices: List[Any] = []
        self.states: Dict[str, Dict[str, Any]] = {}
        self.writes: List[Tuple[str, Dict[str, Any]]] = []
        self.requests: List[Tuple[str, str]] = []

        # Token endpoint behaviour
        self.token_requests: List[Dict[str, str]] = []
        self.rejected_grants: Set[str] = set()
        self.token_delay = 0.0
        self.expires_in = 3600
        self._issued = 0
        self._valid_tokens: Set[str] = set()

        # API behaviour: queued (status, body, headers) answers for the next calls
        self.forced: List[Tuple[int, Dict[str, Any], Dict[str, str]]] = []
        self.api_delay = 0.0

        self.server: Optional[TestServer] = None

    # -- setup ---------------------------------------------------------------

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_post("/token", self._token)
        app.router.add_get("/v1/users/me", self._user)
        app.router.add_get("/v1/accounts/{account_id}/metadevices", self._metadevices)
        app.router.add_get("/v1/accounts/{account_id}/devices/{device_id}", self._device_state)
        app.router.add_post("/v1/accounts/{account_id}/devices/{device_id}/actions", self._actions)
        return app

    async def start(self):
        self.server = TestServer(self.app())
        await self.server.start_server()

    async def close(self):
        if self.server is not None:
            await self.server.close()

    async def __aenter__(self) -> "FakeCloud":
        await self.start()
        return self

    async def __aexit__(self, *exc):
        await self.close()

    @property
    def token_url(self) -> str:
        return str(self.server.make_url("/token"))

    @property
    def api_url(self) -> str:
        return str(self.server.make_url("/v1/"))

    def token_manager(self, **kwargs) -> TokenManager:
        kwargs.setdefault("retry", FAST_RETRY)
        return TokenManager(
            Credentials("me@example.com", "hunter2"),
            token_url=self.token_url,
            **kwargs,
        )

    def client(self, token_manager: Optional[TokenManager] = None, timeout: float = 5.0) -> HubspaceClient:
        return HubspaceClient(
            token_manager or self.token_manager(),
            base_url=self.api_url,
            timeout=timeout,
        )

    def force(self, status: int, body: Optional[Dict[str, Any]] = None, headers: Optional[Dict[str, str]] = None):
        """Answer the next API call with `status`."""
        self.forced.append((status, body or {}, headers or {}))

    def revoke(self):
        """Reject every access token issued so far."""
        self._valid_tokens.clear()

    def set_state(self, device_id: str, attributes: Dict[str, Any], available: bool = True):
        """Attribute values are given in wire form and served as `data`."""
        self.states[device_id] = {
            "deviceId": device_id,
            "deviceState": {"available": available},
            "attributes": [
                {"id": key, "data": value, "updatedTimestamp": 0}
                for key, value in attributes.items()
            ],
        }

    @property
    def grant_types(self) -> List[str]:
        return [form.get("grant_type") for form in self.token_requests]

    def count(self, path_suffix: str) -> int:
        return sum(1 for _, path in self.requests if path.endswith(path_suffix))

    # -- handlers ------------------------------------------------------------

    async def _token(self, request: web.Request) -> web.Response:
        form = dict(await request.post())
        self.token_requests.append(form)

        if self.token_delay:
            await asyncio.sleep(self.token_delay)

        grant = form.get("grant_type")
        if grant in self.rejected_grants:
            return web.json_response(
                {"error": "invalid_grant", "error_description": "Invalid user credentials"},
                status=400,
            )

        self._issued += 1
        token = f"access-{self._issued}"
        self._valid_tokens.add(token)
        return web.json_response({
            "access_token": token,
            "refresh_token": f"refresh-{self._issued}",
            "expires_in": self.expires_in,
            "refresh_expires_in": 86400,
        })

    async def _guard(self, request: web.Request) -> Optional[web.Response]:
        self.requests.append((request.method, request.path))

        if self.api_delay:
            await asyncio.sleep(self.api_delay)

        if self.forced:
            status, body, headers = self.forced.pop(0)
            return web.json_response(body, status=status, headers=headers)

        header = request.headers.get("Authorization", "")
        if not header.startswith("Bearer ") or header[len("Bearer "):] not in self._valid_tokens:
            return web.json_response({"error": "unauthorized"}, status=401)

        return None

    async def _user(self, request: web.Request) -> web.Response:
        rejected = await self._guard(request)
        if rejected is not None:
            return rejected
        return web.json_response({
            "userId": "user-1",
            "accountAccess": [{"account": {"accountId": self.account_id}}],
        })

    async def _metadevices(self, request: web.Request) -> web.Response:
        rejected = await self._guard(request)
        if rejected is not None:
            return rejected
        return web.json_response(self.metadevices)

    async def _device_state(self, request: web.Request) -> web.Response:
        rejected = await self._guard(request)
        if rejected is not None:
            return rejected

        state = self.states.get(request.match_info["device_id"])
        if state is None:
            return web.json_response({"error": "not_found"}, status=404)
        return web.json_response(state)

    async def _actions(self, request: web.Request) -> web.Response:
        rejected = await self._guard(request)
        if rejected is not None:
            return rejected

        self.writes.append((request.match_info["device_id"], await request.json()))
        return web.Response(status=200)


# =============================================================================
# RAW DEVICE BUILDERS
# =============================================================================

def raw_function(
    function_class: str,
    instance: Optional[str] = None,
    keys: Sequence[Any] = ("1",),
    index: Optional[int] = None,
    slots: Optional[Sequence[Sequence[Any]]] = None,
) -> Dict[str, Any]:
    """One `description.functions` entry. `slots` builds a value array."""
    slot_keys = slots if slots is not None else [keys]
    entry = {
        "functionClass": function_class,
        "functionInstance": instance,
        "values": [
            {
                "name": f"{function_class}-{i}",
                "deviceValues": [{"type": "attribute", "key": key} for key in slot],
            }
            for i, slot in enumerate(slot_keys)
        ],
    }
    if index is not None:
        entry["positionalIndex"] = index
    return entry


def raw_device(
    node_id: str,
    device_class: Optional[str] = None,
    functions: Sequence[Dict[str, Any]] = (),
    children: Sequence[Dict[str, Any]] = (),
    name: Optional[str] = None,
    model: str = "HS-100",
) -> Dict[str, Any]:
    """One metadevice record. Without a device class there is no description."""
    raw = {
        "id": node_id,
        "deviceId": f"dev-{node_id}",
        "typeId": "metadevice.device",
        "friendlyName": name or node_id,
        "children": list(children),
    }
    if device_class is not None:
        raw["description"] = {
            "device": {
                "manufacturerName": "Hubspace",
                "model": model,
                "deviceClass": device_class,
            },
            "functions": list(functions),
        }
    return raw


def power_strip(node_id: str = "strip", outlets: int = 4) -> Dict[str, Any]:
    """A parent without description whose children are indexed outlets."""
    return raw_device(
        node_id,
        name="Power Strip",
        children=[
            raw_device(
                f"{node_id}-outlet-{i}",
                "power-outlet",
                functions=[raw_function("power", keys=[f"{10 + i}"], index=i)],
                name=f"Outlet {i + 1}",
            )
            for i in range(outlets)
        ],
    )


def light(node_id: str = "light", name: str = "Kitchen Light") -> Dict[str, Any]:
    return raw_device(
        node_id,
        "light",
        functions=[
            raw_function("power", keys=["1"]),
            raw_function("brightness", keys=["2"]),
            raw_function("color-temperature", keys=["3"]),
        ],
        name=name,
    )
