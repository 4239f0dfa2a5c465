"""
Tests for configuration.
"""

import json
import tempfile
from pathlib import Path

from hubspace_bridge.config import (
    DEFAULT_API_BASE_URL,
    Config,
    RetryConfig,
    get_config,
    reset_config,
    set_config,
)


class TestConfig:
    """Tests for configuration loading and saving."""

    def test_defaults(self):
        config = Config()

        assert config.api_base_url == DEFAULT_API_BASE_URL
        assert config.client_id == "hubspace_android"
        assert config.token_safety_margin == 300.0
        assert config.auth_retry.max_attempts == 3
        assert config.discovery_retry.max_attempts == 0
        assert not config.has_credentials

    def test_password_hidden_from_repr(self):
        config = Config(username="me@example.com", password="hunter2")
        assert "hunter2" not in repr(config)
        assert config.has_credentials

    def test_save_load(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir)
            config = Config(data_dir=path, username="me@example.com", password="hunter2")
            config.request_timeout = 10.0
            config.auth_retry = RetryConfig(max_attempts=5)
            config.save()

            loaded = Config.load(path)

            assert loaded.username == "me@example.com"
            assert loaded.password == "hunter2"
            assert loaded.request_timeout == 10.0
            assert loaded.auth_retry.max_attempts == 5
            assert loaded.data_dir == path

    def test_load_missing_gives_defaults(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config = Config.load(Path(tmpdir))

            assert config.username is None
            assert not Config.exists(Path(tmpdir))

    def test_unknown_keys_ignored(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir)
            (path / "config.json").write_text(json.dumps({
                "username": "me@example.com",
                "legacy_option": True,
                "discovery_retry": {"max_attempts": 4, "jitter": 0.5},
            }))

            config = Config.load(path)

            assert config.username == "me@example.com"
            assert config.discovery_retry.max_attempts == 4

    def test_global_config(self):
        config = Config(username="someone")
        set_config(config)
        assert get_config() is config

        reset_config()
        with tempfile.TemporaryDirectory() as tmpdir:
            assert get_config(Path(tmpdir)) is not config
