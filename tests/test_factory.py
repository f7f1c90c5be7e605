"""Tests for engine wiring."""

import pytest

from social_publisher.config import SocialConfig
from social_publisher.crypto import generate_key
from social_publisher.errors import ConfigError
from social_publisher.factory import Engine, build_engine, publish_due_posts
from social_publisher.models import Platform, PostStatus, SocialPost, utcnow
from social_publisher.platforms import LinkedInClient, TwitterClient
from social_publisher.publisher import Publisher
from social_publisher.queue import QueueScheduler
from social_publisher.store import JsonStore


class TestBuildEngine:
    def test_build_with_key(self, tmp_path):
        cfg = SocialConfig(encryption_key=generate_key(), store_path=str(tmp_path / "s.json"))
        engine = build_engine(cfg)
        assert isinstance(engine, Engine)
        assert isinstance(engine.publisher, Publisher)
        assert isinstance(engine.queue, QueueScheduler)
        assert isinstance(engine.store, JsonStore)
        assert isinstance(engine.registry.get(Platform.TWITTER), TwitterClient)
        assert isinstance(engine.registry.get(Platform.LINKEDIN), LinkedInClient)

    def test_missing_key_is_fatal(self):
        with pytest.raises(ConfigError):
            build_engine(SocialConfig())

    def test_malformed_key_is_fatal(self):
        with pytest.raises(ConfigError):
            build_engine(SocialConfig(encryption_key="dG9vLXNob3J0"))

    def test_redirect_uris_from_base_url(self, transport):
        cfg = SocialConfig(
            encryption_key=generate_key(),
            base_url="https://app.test",
            twitter_client_id="id", twitter_client_secret="secret",
        )
        engine = build_engine(cfg, store=JsonStore(), transport=transport)
        oauth = engine.registry.get(Platform.TWITTER).oauth_config
        assert oauth.redirect_uri == "https://app.test/api/social/oauth/twitter/callback"

    def test_unconfigured_platform_credentials(self, transport):
        engine = build_engine(SocialConfig(encryption_key=generate_key()), store=JsonStore(), transport=transport)
        with pytest.raises(ConfigError):
            engine.registry.get(Platform.LINKEDIN).oauth_config


class TestPublishDuePosts:
    def test_entry_point_returns_summary(self):
        store = JsonStore()
        store.insert_post(SocialPost(
            user_id="u1", content="hi", target_platforms=[Platform.TWITTER],
            status=PostStatus.SCHEDULED, scheduled_at=utcnow(),
        ))

        summary = publish_due_posts(SocialConfig(encryption_key=generate_key()), store=store)

        assert summary.total == 1
        assert summary.failed == 1
        assert "No connected accounts" in summary.errors[0]["error"]
