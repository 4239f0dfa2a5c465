"""
Configuration management for the Hubspace bridge.

Handles:
- Account credentials
- Cloud endpoints and timeouts
- Retry policies for authentication and discovery
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
import logging

logger = logging.getLogger(__name__)

# Default paths
DEFAULT_DATA_DIR = Path.home() / ".hubspace"

# Afero cloud endpoints used by the Hubspace app
DEFAULT_API_BASE_URL = "https://api2.afero.net/v1/"
DEFAULT_TOKEN_URL = (
    "https://accounts.hubspaceconnect.com/auth/realms/thd/protocol/openid-connect/token"
)
DEFAULT_CLIENT_ID = "hubspace_android"


@dataclass
class RetryConfig:
    """Bounded retry settings for one kind of operation."""
    max_attempts: int = 3
    initial_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: float = 30.0

    def to_dict(self) -> dict:
        return {
            "max_attempts": self.max_attempts,
            "initial_delay": self.initial_delay,
            "multiplier": self.multiplier,
            "max_delay": self.max_delay,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RetryConfig":
        # Filter to only known fields to handle config evolution
        known_fields = {"max_attempts", "initial_delay", "multiplier", "max_delay"}
        filtered = {k: v for k, v in data.items() if k in known_fields}
        return cls(**filtered)


@dataclass
class Config:
    """
    Main bridge configuration.

    Stored at ~/.hubspace/config.json
    """
    # Account
    username: Optional[str] = None
    password: Optional[str] = field(default=None, repr=False)

    # Paths
    data_dir: Path = field(default_factory=lambda: DEFAULT_DATA_DIR)

    # Cloud
    api_base_url: str = DEFAULT_API_BASE_URL
    token_url: str = DEFAULT_TOKEN_URL
    client_id: str = DEFAULT_CLIENT_ID
    request_timeout: float = 30.0

    # Tokens are refreshed once they get this close to expiry
    token_safety_margin: float = 300.0
    auth_retry: RetryConfig = field(default_factory=RetryConfig)

    # Discovery
    discovery_interval: float = 300.0
    discovery_retry: RetryConfig = field(
        default_factory=lambda: RetryConfig(max_attempts=0, initial_delay=5.0, max_delay=300.0)
    )

    @property
    def config_path(self) -> Path:
        return self.data_dir / "config.json"

    @property
    def has_credentials(self) -> bool:
        return bool(self.username and self.password)

    def ensure_data_dir(self) -> None:
        """Create data directory if it doesn't exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def to_dict(self) -> dict:
        return {
            "username": self.username,
            "password": self.password,
            "api_base_url": self.api_base_url,
            "token_url": self.token_url,
            "client_id": self.client_id,
            "request_timeout": self.request_timeout,
            "token_safety_margin": self.token_safety_margin,
            "auth_retry": self.auth_retry.to_dict(),
            "discovery_interval": self.discovery_interval,
            "discovery_retry": self.discovery_retry.to_dict(),
        }

    def save(self) -> None:
        """Save configuration to disk."""
        self.ensure_data_dir()

        with open(self.config_path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

        logger.debug(f"Configuration saved to {self.config_path}")

    @classmethod
    def from_dict(cls, data: dict, data_dir: Optional[Path] = None) -> "Config":
        config = cls(
            data_dir=data_dir or DEFAULT_DATA_DIR,
            username=data.get("username"),
            password=data.get("password"),
            api_base_url=data.get("api_base_url", DEFAULT_API_BASE_URL),
            token_url=data.get("token_url", DEFAULT_TOKEN_URL),
            client_id=data.get("client_id", DEFAULT_CLIENT_ID),
            request_timeout=data.get("request_timeout", 30.0),
            token_safety_margin=data.get("token_safety_margin", 300.0),
            discovery_interval=data.get("discovery_interval", 300.0),
        )

        if "auth_retry" in data:
            config.auth_retry = RetryConfig.from_dict(data["auth_retry"])
        if "discovery_retry" in data:
            config.discovery_retry = RetryConfig.from_dict(data["discovery_retry"])

        return config

    @classmethod
    def load(cls, data_dir: Optional[Path] = None) -> "Config":
        """Load configuration from disk."""
        data_dir = data_dir or DEFAULT_DATA_DIR
        config_path = data_dir / "config.json"

        if not config_path.exists():
            return cls(data_dir=data_dir)

        with open(config_path, 'r') as f:
            data = json.load(f)

        return cls.from_dict(data, data_dir=data_dir)

    @classmethod
    def exists(cls, data_dir: Optional[Path] = None) -> bool:
        """Check if configuration exists."""
        data_dir = data_dir or DEFAULT_DATA_DIR
        return (data_dir / "config.json").exists()


# Global config instance
_config: Optional[Config] = None


def get_config(data_dir: Optional[Path] = None) -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config.load(data_dir)
    return _config


def set_config(config: Config) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config


def reset_config() -> None:
    """Reset the global configuration instance."""
    global _config
    _config = None
