"""Factory for wiring the publishing engine from a SocialConfig.

Shared by the CLI and by whatever periodic trigger calls
``publish_due_posts``; everything is constructed once and injected.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from social_publisher.accounts import AccountManager
from social_publisher.config import SocialConfig
from social_publisher.crypto import TokenCipher
from social_publisher.evergreen import EvergreenScheduler
from social_publisher.models import BatchSummary, Platform
from social_publisher.platforms import LinkedInClient, TwitterClient
from social_publisher.publisher import Publisher
from social_publisher.queue import QueueScheduler
from social_publisher.registry import PlatformRegistry
from social_publisher.store import JsonStore, Store
from social_publisher.transport import HttpTransport


@dataclass
class Engine:
    cipher: TokenCipher
    store: Store
    registry: PlatformRegistry
    accounts: AccountManager
    publisher: Publisher
    queue: QueueScheduler


def build_registry(
    cfg: SocialConfig,
    cipher: TokenCipher,
    transport: HttpTransport,
) -> PlatformRegistry:
    """Register a client for every implemented platform.

    Credentials are only checked when a client first needs its OAuth
    config, so an unconfigured platform still publishes with stored tokens.
    """
    return PlatformRegistry([
        TwitterClient(
            cipher, transport,
            client_id=cfg.twitter_client_id,
            client_secret=cfg.twitter_client_secret,
            redirect_uri=cfg.redirect_uri(Platform.TWITTER.value),
        ),
        LinkedInClient(
            cipher, transport,
            client_id=cfg.linkedin_client_id,
            client_secret=cfg.linkedin_client_secret,
            redirect_uri=cfg.redirect_uri(Platform.LINKEDIN.value),
        ),
    ])


def build_engine(
    cfg: SocialConfig,
    store: Store | None = None,
    transport: HttpTransport | None = None,
) -> Engine:
    """Build a fully wired Engine from a SocialConfig.

    Args:
        cfg: Configuration with the encryption key and platform credentials.
        store: Optional pre-built store. If None, a JsonStore is
            constructed from cfg.store_path.
        transport: Optional HTTP transport, mainly for tests.

    Raises:
        ConfigError: if the encryption key is missing or malformed.
    """
    cipher = TokenCipher.from_base64(cfg.encryption_key)

    if store is None:
        store = JsonStore(Path(cfg.store_path) if cfg.store_path else None)
    if transport is None:
        transport = HttpTransport(timeout=cfg.http_timeout)

    registry = build_registry(cfg, cipher, transport)
    accounts = AccountManager(store, registry)
    publisher = Publisher(
        store,
        registry,
        accounts,
        evergreen=EvergreenScheduler(store),
        max_workers=cfg.max_workers,
    )
    return Engine(
        cipher=cipher,
        store=store,
        registry=registry,
        accounts=accounts,
        publisher=publisher,
        queue=QueueScheduler(store),
    )


def publish_due_posts(cfg: SocialConfig, store: Store | None = None) -> BatchSummary:
    """Entry point for the periodic trigger: publish everything that is due."""
    return build_engine(cfg, store=store).publisher.publish_due_posts()
