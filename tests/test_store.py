"""Tests for the data model and the JSON store."""

import json
from datetime import datetime, timedelta, timezone

import pytest

from social_publisher.errors import NotFoundError, StoreError, ValidationError
from social_publisher.models import (
    MediaItem,
    Platform,
    PlatformPostResult,
    PostStatus,
    PublishedPost,
    QueueSlot,
    SocialAccount,
    SocialPost,
    TokenPair,
    utcnow,
)
from social_publisher.store import JsonStore


def _post(**kwargs):
    return SocialPost(user_id="u1", content="hello", target_platforms=[Platform.TWITTER], **kwargs)


class TestStatusTransitions:
    @pytest.mark.parametrize("start,end", [
        (PostStatus.DRAFT, PostStatus.SCHEDULED),
        (PostStatus.DRAFT, PostStatus.PUBLISHING),
        (PostStatus.SCHEDULED, PostStatus.PUBLISHING),
        (PostStatus.PUBLISHING, PostStatus.PUBLISHED),
        (PostStatus.PUBLISHING, PostStatus.FAILED),
        (PostStatus.FAILED, PostStatus.SCHEDULED),
    ])
    def test_allowed(self, start, end):
        post = _post(status=start)
        post.transition(end)
        assert post.status == end

    @pytest.mark.parametrize("start,end", [
        (PostStatus.PUBLISHED, PostStatus.PUBLISHING),
        (PostStatus.PUBLISHED, PostStatus.SCHEDULED),
        (PostStatus.PUBLISHING, PostStatus.PUBLISHING),
        (PostStatus.SCHEDULED, PostStatus.PUBLISHED),
        (PostStatus.FAILED, PostStatus.PUBLISHED),
    ])
    def test_rejected(self, start, end):
        post = _post(status=start)
        with pytest.raises(ValidationError):
            post.transition(end)
        assert post.status == start

    def test_schedule_sets_time(self):
        post = _post()
        when = utcnow() + timedelta(hours=1)
        post.schedule(when)
        assert post.status == PostStatus.SCHEDULED
        assert post.scheduled_at == when

    def test_content_variant_fallback(self):
        post = _post(content_variants={Platform.LINKEDIN: "long form"})
        assert post.content_for(Platform.LINKEDIN) == "long form"
        assert post.content_for(Platform.TWITTER) == "hello"


class TestAccountModel:
    def test_with_tokens_keeps_old_refresh(self):
        account = SocialAccount("u1", Platform.TWITTER, "42", "alice", "enc-a", "enc-r")
        updated = account.with_tokens(TokenPair(access_token="enc-b"))
        assert updated.access_token == "enc-b"
        assert updated.refresh_token == "enc-r"
        assert account.access_token == "enc-a"

    def test_is_expired(self):
        now = utcnow()
        account = SocialAccount("u1", Platform.TWITTER, "42", "alice", "enc", expires_at=now)
        assert account.is_expired(now) is True
        assert account.is_expired(now - timedelta(seconds=1)) is False
        account.expires_at = None
        assert account.is_expired(now) is False

    def test_repr_hides_tokens(self):
        account = SocialAccount("u1", Platform.TWITTER, "42", "alice", "enc-secret", "enc-refresh")
        assert "enc-secret" not in repr(account)
        assert "enc-refresh" not in repr(account)


class TestJsonStore:
    def test_insert_and_get(self, store):
        post = store.insert_post(_post())
        loaded = store.get_post(post.id)
        assert loaded.content == "hello"
        assert loaded is not post

    def test_duplicate_insert(self, store):
        post = store.insert_post(_post())
        with pytest.raises(StoreError):
            store.insert_post(post)

    def test_claim(self, store):
        post = store.insert_post(_post(status=PostStatus.SCHEDULED))
        claimed = store.claim_post_for_publishing(post.id)
        assert claimed.status == PostStatus.PUBLISHING
        assert store.get_post(post.id).status == PostStatus.PUBLISHING

    def test_second_claim_rejected(self, store):
        post = store.insert_post(_post(status=PostStatus.SCHEDULED))
        store.claim_post_for_publishing(post.id)
        with pytest.raises(ValidationError):
            store.claim_post_for_publishing(post.id)
        assert store.get_post(post.id).status == PostStatus.PUBLISHING

    def test_claim_missing(self, store):
        with pytest.raises(NotFoundError):
            store.claim_post_for_publishing("nope")

    def test_update_status_sets_posted_at(self, store):
        post = store.insert_post(_post(status=PostStatus.PUBLISHING))
        now = utcnow()
        updated = store.update_post_status(post.id, PostStatus.PUBLISHED, posted_at=now)
        assert updated.status == PostStatus.PUBLISHED
        assert store.get_post(post.id).posted_at == now

    def test_due_posts(self, store):
        now = utcnow()
        later = store.insert_post(_post(status=PostStatus.SCHEDULED, scheduled_at=now - timedelta(minutes=1)))
        earlier = store.insert_post(_post(status=PostStatus.SCHEDULED, scheduled_at=now - timedelta(hours=1)))
        store.insert_post(_post(status=PostStatus.SCHEDULED, scheduled_at=now + timedelta(hours=1)))
        store.insert_post(_post(status=PostStatus.DRAFT, scheduled_at=now - timedelta(hours=1)))
        store.insert_post(_post(status=PostStatus.SCHEDULED))
        assert [p.id for p in store.due_posts(now)] == [earlier.id, later.id]

    def test_active_accounts_filters(self, store):
        keep = SocialAccount("u1", Platform.TWITTER, "1", "a", "enc")
        store.save_account(keep)
        store.save_account(SocialAccount("u1", Platform.TWITTER, "2", "b", "enc", is_active=False))
        store.save_account(SocialAccount("u2", Platform.TWITTER, "3", "c", "enc"))
        store.save_account(SocialAccount("u1", Platform.FACEBOOK, "4", "d", "enc"))
        active = store.active_accounts("u1", [Platform.TWITTER, Platform.LINKEDIN])
        assert [a.id for a in active] == [keep.id]

    def test_media_lookup_skips_unknown(self, store):
        item = MediaItem("https://cdn.test/a.png", "image/png")
        store.save_media(item)
        assert [m.id for m in store.get_media([item.id, "missing"])] == [item.id]

    def test_results(self, store):
        account = SocialAccount("u1", Platform.TWITTER, "1", "a", "enc")
        ok = PlatformPostResult.posted("p1", account, PublishedPost("t1", "https://t/1", utcnow()))
        bad = PlatformPostResult.failed("p1", account, "boom")
        store.add_result(ok)
        store.add_result(bad)
        store.add_result(PlatformPostResult.failed("p2", account, "other"))
        results = store.results_for_post("p1")
        assert [r.remote_post_id for r in results] == ["t1", None]
        assert results[1].error_message == "boom"
        assert store.total_results == 3

    def test_duplicate_result(self, store):
        account = SocialAccount("u1", Platform.TWITTER, "1", "a", "enc")
        result = PlatformPostResult.failed("p1", account, "boom")
        store.add_result(result)
        with pytest.raises(StoreError):
            store.add_result(result)


class TestQueueSlots:
    def test_rejects_bad_day(self):
        with pytest.raises(ValidationError):
            QueueSlot("u1", 7, "09:00", [Platform.TWITTER])

    @pytest.mark.parametrize("value", ["9am", "24:00", "12:60", "12"])
    def test_rejects_bad_time(self, value):
        with pytest.raises(ValidationError):
            QueueSlot("u1", 0, value, [Platform.TWITTER])

    def test_at_uses_slot_time(self):
        slot = QueueSlot("u1", 0, "14:30", [Platform.TWITTER])
        day = datetime(2026, 1, 5, 9, 12, 45, tzinfo=timezone.utc)
        assert slot.at(day) == datetime(2026, 1, 5, 14, 30, tzinfo=timezone.utc)

    def test_active_slots_sorted(self):
        store = JsonStore()
        late = QueueSlot("u1", 0, "17:00", [Platform.TWITTER])
        early = QueueSlot("u1", 0, "09:00", [Platform.TWITTER])
        tuesday = QueueSlot("u1", 1, "08:00", [Platform.TWITTER])
        for slot in (tuesday, late, early):
            store.save_queue_slot(slot)
        store.save_queue_slot(QueueSlot("u1", 0, "06:00", [Platform.TWITTER], is_active=False))
        store.save_queue_slot(QueueSlot("u2", 0, "06:00", [Platform.TWITTER]))

        assert [s.id for s in store.queue_slots("u1")] == [early.id, late.id, tuesday.id]

    def test_slot_taken_window(self):
        store = JsonStore()
        when = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)
        store.insert_post(_post(status=PostStatus.SCHEDULED, scheduled_at=when + timedelta(minutes=4)))
        store.insert_post(_post(status=PostStatus.FAILED, scheduled_at=when))

        window = timedelta(minutes=5)
        assert store.slot_taken("u1", when, window) is True
        assert store.slot_taken("u1", when - timedelta(minutes=2), window) is False
        assert store.slot_taken("u2", when, window) is False

    def test_slots_persist(self, tmp_path):
        path = tmp_path / "store.json"
        slot = QueueSlot("u1", 3, "12:15", [Platform.LINKEDIN])
        JsonStore(path).save_queue_slot(slot)
        assert JsonStore(path).queue_slots("u1") == [slot]


class TestJsonStorePersistence:
    def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "store.json"
        first = JsonStore(path)
        post = first.insert_post(_post(
            status=PostStatus.SCHEDULED,
            scheduled_at=utcnow(),
            content_variants={Platform.TWITTER: "short"},
            is_evergreen=True,
            evergreen_interval_days=7,
        ))
        first.save_account(SocialAccount("u1", Platform.LINKEDIN, "1", "a", "enc"))

        second = JsonStore(path)
        loaded = second.get_post(post.id)
        assert loaded.content_variants == {Platform.TWITTER: "short"}
        assert loaded.evergreen_interval_days == 7
        assert loaded.scheduled_at == post.scheduled_at
        assert len(second.accounts_for_user("u1")) == 1

    def test_no_temp_file_left(self, tmp_path):
        path = tmp_path / "store.json"
        JsonStore(path).insert_post(_post())
        assert json.loads(path.read_text())["posts"]
        assert not (tmp_path / "store.tmp").exists()

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text("{not json")
        with pytest.raises(StoreError):
            JsonStore(path)
