"""
Authenticated session state.

A `Session` is owned and mutated only by the `TokenManager`; everything
else reads the current bearer token through `TokenManager.get_token()`.
"""

from dataclasses import dataclass, field
from typing import Optional

from ..api.responses import TokenResponse


@dataclass(frozen=True)
class Credentials:
    """Account credentials. The password never appears in repr or logs."""
    username: str
    password: str = field(repr=False)


@dataclass(frozen=True)
class Session:
    """
    Tokens issued by the account service.

    Expiry values are absolute Unix timestamps in seconds.
    """
    access_token: str
    access_expiry: float
    refresh_token: Optional[str] = field(default=None, repr=False)
    refresh_expiry: Optional[float] = None

    def access_valid(self, now: float, margin: float) -> bool:
        """True if the access token outlives `now + margin`."""
        return bool(self.access_token) and self.access_expiry > now + margin

    def refresh_valid(self, now: float, margin: float) -> bool:
        """True if a refresh token exists and outlives `now + margin`."""
        if not self.refresh_token:
            return False
        # Servers that omit refresh_expires_in issue non-expiring refresh tokens
        if self.refresh_expiry is None:
            return True
        return self.refresh_expiry > now + margin

    def expired(self) -> "Session":
        """Copy of this session with the access token marked expired."""
        return Session(
            access_token=self.access_token,
            access_expiry=0.0,
            refresh_token=self.refresh_token,
            refresh_expiry=self.refresh_expiry,
        )

    @classmethod
    def from_token_response(
        cls,
        response: TokenResponse,
        now: float,
        previous: Optional["Session"] = None,
    ) -> "Session":
        """Build a session from a token response issued at `now`.

        A refresh grant may omit the refresh token; the previous one stays
        in use in that case.
        """
        refresh_token = response.refresh_token
        refresh_expiry = None
        if response.refresh_expires_in is not None:
            refresh_expiry = now + response.refresh_expires_in

        if refresh_token is None and previous is not None:
            refresh_token = previous.refresh_token
            refresh_expiry = previous.refresh_expiry

        return cls(
            access_token=response.access_token,
            access_expiry=now + response.expires_in,
            refresh_token=refresh_token,
            refresh_expiry=refresh_expiry,
        )
