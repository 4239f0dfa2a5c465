"""Authentication: credentials, sessions and the token manager."""
from .session import Credentials, Session
from .tokens import RetryPolicy, TokenManager, TokenState

__all__ = [
    "Credentials",
    "Session",
    "RetryPolicy",
    "TokenManager",
    "TokenState",
]
