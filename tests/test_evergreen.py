"""Tests for evergreen recycling."""

from datetime import datetime, timedelta, timezone

import pytest

from social_publisher.errors import ValidationError
from social_publisher.evergreen import EvergreenScheduler
from social_publisher.models import Platform, PostStatus

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class TestRecycle:
    def test_creates_scheduled_clone(self, store, make_post):
        original = make_post(
            [Platform.TWITTER, Platform.LINKEDIN],
            content="Timeless advice",
            content_variants={Platform.TWITTER: "Short advice"},
            media_ids=["m1"],
            link_url="https://example.com/post",
            status=PostStatus.PUBLISHED,
            is_evergreen=True,
            evergreen_interval_days=7,
            recycle_count=2,
        )

        clone = EvergreenScheduler(store).recycle(original, now=NOW)

        assert clone.id != original.id
        assert clone.status == PostStatus.SCHEDULED
        assert clone.scheduled_at == NOW + timedelta(days=7)
        assert clone.content == "Timeless advice"
        assert clone.content_variants == {Platform.TWITTER: "Short advice"}
        assert clone.media_ids == ["m1"]
        assert clone.link_url == "https://example.com/post"
        assert clone.target_platforms == [Platform.TWITTER, Platform.LINKEDIN]
        assert clone.is_evergreen is True
        assert clone.evergreen_interval_days == 7
        assert clone.recycle_count == 3
        assert store.get_post(clone.id).status == PostStatus.SCHEDULED

    def test_original_stamped_but_unchanged(self, store, make_post):
        original = make_post(status=PostStatus.PUBLISHED, is_evergreen=True, evergreen_interval_days=7)

        EvergreenScheduler(store).recycle(original, now=NOW)

        stored = store.get_post(original.id)
        assert stored.last_recycled_at == NOW
        assert stored.status == PostStatus.PUBLISHED
        assert stored.content == original.content
        assert stored.recycle_count == 0

    def test_clone_becomes_due(self, store, make_post):
        original = make_post(status=PostStatus.PUBLISHED, is_evergreen=True, evergreen_interval_days=7)
        clone = EvergreenScheduler(store).recycle(original, now=NOW)

        assert store.due_posts(NOW + timedelta(days=6)) == []
        assert [p.id for p in store.due_posts(NOW + timedelta(days=7))] == [clone.id]

    def test_uses_clock_by_default(self, store, make_post):
        original = make_post(status=PostStatus.PUBLISHED, is_evergreen=True, evergreen_interval_days=1)
        clone = EvergreenScheduler(store, clock=lambda: NOW).recycle(original)
        assert clone.scheduled_at == NOW + timedelta(days=1)

    def test_not_evergreen(self, store, make_post):
        post = make_post(status=PostStatus.PUBLISHED)
        with pytest.raises(ValidationError):
            EvergreenScheduler(store).recycle(post, now=NOW)
        assert len(store.all_posts()) == 1

    @pytest.mark.parametrize("interval", [None, 0, -3])
    def test_invalid_interval(self, store, make_post, interval):
        post = make_post(status=PostStatus.PUBLISHED, is_evergreen=True, evergreen_interval_days=interval)
        with pytest.raises(ValidationError):
            EvergreenScheduler(store).recycle(post, now=NOW)
        assert len(store.all_posts()) == 1
