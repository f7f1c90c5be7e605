"""Tests for the config module."""

from pathlib import Path

import pytest

from social_publisher.config import SocialConfig, load_config
from social_publisher.errors import ConfigError

FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for suffix in (
        "ENCRYPTION_KEY", "BASE_URL", "TWITTER_CLIENT_ID", "TWITTER_CLIENT_SECRET",
        "LINKEDIN_CLIENT_ID", "LINKEDIN_CLIENT_SECRET", "STORE_PATH", "HTTP_TIMEOUT",
        "MAX_WORKERS", "LOG_LEVEL", "LOG_JSON",
    ):
        monkeypatch.delenv(f"SOCIAL_{suffix}", raising=False)


class TestConfig:
    def test_load_from_yaml(self):
        cfg = load_config(FIXTURES / "sample_config.yaml")
        assert cfg.base_url == "https://publisher.test"
        assert cfg.twitter_client_id == "tw-client"
        assert cfg.twitter_client_secret == "tw-secret"
        assert cfg.linkedin_client_id == "li-client"
        assert cfg.store_path == "store.json"
        assert cfg.http_timeout == 10.0
        assert cfg.max_workers == 2
        assert cfg.log_level == "DEBUG"
        assert cfg.log_json is False

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("SOCIAL_TWITTER_CLIENT_ID", "env-client")
        cfg = load_config(FIXTURES / "sample_config.yaml")
        assert cfg.twitter_client_id == "env-client"

    def test_env_number(self, monkeypatch):
        monkeypatch.setenv("SOCIAL_MAX_WORKERS", "8")
        assert load_config().max_workers == 8

    def test_env_bool(self, monkeypatch):
        monkeypatch.setenv("SOCIAL_LOG_JSON", "no")
        assert load_config().log_json is False

    def test_default_config(self):
        cfg = load_config()
        assert cfg.encryption_key == ""
        assert cfg.store_path == "social_store.json"
        assert cfg.http_timeout == 30.0
        assert cfg.max_workers == 4
        assert cfg.log_json is True

    def test_missing_file(self):
        cfg = load_config(Path("/nonexistent/config.yaml"))
        assert cfg.twitter_client_id == ""

    def test_bad_number(self, monkeypatch):
        monkeypatch.setenv("SOCIAL_HTTP_TIMEOUT", "soon")
        with pytest.raises(ConfigError, match="SOCIAL_HTTP_TIMEOUT"):
            load_config()

    def test_non_positive_timeout(self, monkeypatch):
        monkeypatch.setenv("SOCIAL_HTTP_TIMEOUT", "0")
        with pytest.raises(ConfigError):
            load_config()

    def test_zero_workers(self, monkeypatch):
        monkeypatch.setenv("SOCIAL_MAX_WORKERS", "0")
        with pytest.raises(ConfigError):
            load_config()

    def test_non_mapping_yaml(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- one\n- two\n")
        with pytest.raises(ConfigError):
            load_config(path)

    def test_redirect_uri(self):
        cfg = SocialConfig(base_url="https://app.test/")
        assert cfg.redirect_uri("twitter") == "https://app.test/api/social/oauth/twitter/callback"

    def test_repr_hides_secrets(self):
        cfg = SocialConfig(encryption_key="super-secret", twitter_client_secret="tw-secret")
        text = repr(cfg)
        assert "super-secret" not in text
        assert "tw-secret" not in text
