"""Configuration loader for social-publisher.

Loads YAML config files with environment variable overrides.
All env vars use the SOCIAL_ prefix.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from social_publisher.errors import ConfigError


ENV_PREFIX = "SOCIAL_"


@dataclass
class SocialConfig:
    """Unified configuration for all social-publisher components."""
    encryption_key: str = ""
    base_url: str = "http://localhost:3000"
    twitter_client_id: str = ""
    twitter_client_secret: str = ""
    linkedin_client_id: str = ""
    linkedin_client_secret: str = ""
    store_path: str = "social_store.json"
    http_timeout: float = 30.0
    max_workers: int = 4
    log_level: str = "INFO"
    log_json: bool = True

    def redirect_uri(self, platform: str) -> str:
        return f"{self.base_url.rstrip('/')}/api/social/oauth/{platform}/callback"

    def __repr__(self) -> str:
        # Secrets stay out of logs and tracebacks.
        return (
            f"SocialConfig(base_url={self.base_url!r}, store_path={self.store_path!r}, "
            f"http_timeout={self.http_timeout!r}, max_workers={self.max_workers!r}, "
            f"encryption_key={'set' if self.encryption_key else 'unset'})"
        )


def load_config(path: Path | None = None) -> SocialConfig:
    """Load config from YAML file with env var overrides.

    Env vars override YAML values. Mapping:
      SOCIAL_ENCRYPTION_KEY → encryption_key
      SOCIAL_BASE_URL → base_url
      SOCIAL_TWITTER_CLIENT_ID → twitter.client_id
      SOCIAL_TWITTER_CLIENT_SECRET → twitter.client_secret
      SOCIAL_LINKEDIN_CLIENT_ID → linkedin.client_id
      SOCIAL_LINKEDIN_CLIENT_SECRET → linkedin.client_secret
      SOCIAL_STORE_PATH → store_path
      SOCIAL_HTTP_TIMEOUT → http_timeout
      SOCIAL_MAX_WORKERS → max_workers
      SOCIAL_LOG_LEVEL → log_level
      SOCIAL_LOG_JSON → log_json
    """
    raw: dict[str, Any] = {}
    if path and path.exists():
        loaded = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        if not isinstance(loaded, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")
        raw = loaded

    twitter = raw.get("twitter") or {}
    linkedin = raw.get("linkedin") or {}

    cfg = SocialConfig(
        encryption_key=_env_or("ENCRYPTION_KEY", raw.get("encryption_key", "")),
        base_url=_env_or("BASE_URL", raw.get("base_url", "http://localhost:3000")),
        twitter_client_id=_env_or("TWITTER_CLIENT_ID", twitter.get("client_id", "")),
        twitter_client_secret=_env_or(
            "TWITTER_CLIENT_SECRET",
            twitter.get("client_secret", ""),
        ),
        linkedin_client_id=_env_or("LINKEDIN_CLIENT_ID", linkedin.get("client_id", "")),
        linkedin_client_secret=_env_or(
            "LINKEDIN_CLIENT_SECRET",
            linkedin.get("client_secret", ""),
        ),
        store_path=_env_or("STORE_PATH", raw.get("store_path", "social_store.json")),
        http_timeout=_env_number("HTTP_TIMEOUT", raw.get("http_timeout", 30.0), float),
        max_workers=_env_number("MAX_WORKERS", raw.get("max_workers", 4), int),
        log_level=_env_or("LOG_LEVEL", raw.get("log_level", "INFO")),
        log_json=_env_bool("LOG_JSON", raw.get("log_json", True)),
    )

    if cfg.http_timeout <= 0:
        raise ConfigError("http_timeout must be positive")
    if cfg.max_workers < 1:
        raise ConfigError("max_workers must be at least 1")
    return cfg


def _env_or(suffix: str, default: str) -> str:
    return os.environ.get(f"{ENV_PREFIX}{suffix}", default)


def _env_bool(suffix: str, default: bool) -> bool:
    val = os.environ.get(f"{ENV_PREFIX}{suffix}")
    if val is None:
        return bool(default)
    return val.lower() in ("true", "1", "yes")


def _env_number(suffix: str, default: Any, cast: type) -> Any:
    val = os.environ.get(f"{ENV_PREFIX}{suffix}", default)
    try:
        return cast(val)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{ENV_PREFIX}{suffix} must be a number, got {val!r}") from exc
