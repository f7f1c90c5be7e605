"""Persistence contract and a JSON file-backed implementation.

The engine only talks to ``Store``; ``JsonStore`` keeps records in memory
and, when given a path, rewrites the file atomically after every change.
"""

from __future__ import annotations

import json
import os
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Iterable

from social_publisher.errors import NotFoundError, StoreError
from social_publisher.models import (
    MediaItem,
    Platform,
    PlatformPostResult,
    PostStatus,
    QueueSlot,
    SocialAccount,
    SocialPost,
    utcnow,
)


class Store(ABC):
    """CRUD for posts, accounts, media and publish results."""

    @abstractmethod
    def get_post(self, post_id: str) -> SocialPost | None: ...

    @abstractmethod
    def insert_post(self, post: SocialPost) -> SocialPost: ...

    @abstractmethod
    def save_post(self, post: SocialPost) -> None: ...

    @abstractmethod
    def all_posts(self) -> list[SocialPost]: ...

    @abstractmethod
    def claim_post_for_publishing(self, post_id: str) -> SocialPost:
        """Atomically move a post to PUBLISHING.

        Raises NotFoundError if the post is missing and ValidationError if
        its current status cannot move to PUBLISHING (for instance because
        another invocation already claimed it).
        """

    @abstractmethod
    def update_post_status(
        self,
        post_id: str,
        status: PostStatus,
        posted_at: datetime | None = None,
    ) -> SocialPost: ...

    @abstractmethod
    def due_posts(self, now: datetime) -> list[SocialPost]:
        """SCHEDULED posts with scheduled_at <= now, earliest first."""

    @abstractmethod
    def posts_for_user(
        self, user_id: str, status: PostStatus | None = None,
    ) -> list[SocialPost]: ...

    @abstractmethod
    def slot_taken(self, user_id: str, when: datetime, window: timedelta) -> bool:
        """True if a scheduled, publishing or published post of ``user_id``
        sits within ``window`` of ``when``."""

    @abstractmethod
    def get_account(self, account_id: str) -> SocialAccount | None: ...

    @abstractmethod
    def save_account(self, account: SocialAccount) -> None: ...

    @abstractmethod
    def accounts_for_user(self, user_id: str) -> list[SocialAccount]: ...

    @abstractmethod
    def active_accounts(
        self, user_id: str, platforms: Iterable[Platform],
    ) -> list[SocialAccount]: ...

    @abstractmethod
    def get_media(self, media_ids: Iterable[str]) -> list[MediaItem]: ...

    @abstractmethod
    def save_media(self, item: MediaItem) -> None: ...

    @abstractmethod
    def add_result(self, result: PlatformPostResult) -> None: ...

    @abstractmethod
    def results_for_post(self, post_id: str) -> list[PlatformPostResult]: ...

    @abstractmethod
    def queue_slots(self, user_id: str) -> list[QueueSlot]:
        """Active slots, ordered by day of week then time."""

    @abstractmethod
    def save_queue_slot(self, slot: QueueSlot) -> None: ...


class JsonStore(Store):
    """JSON file-backed store.

    Records are held as dicts, so callers always receive fresh objects and
    must ``save_*`` to persist a change.
    """

    def __init__(self, path: Path | None = None) -> None:
        self._path = path
        self._lock = threading.RLock()
        self._posts: dict[str, dict[str, Any]] = {}
        self._accounts: dict[str, dict[str, Any]] = {}
        self._media: dict[str, dict[str, Any]] = {}
        self._results: list[dict[str, Any]] = []
        self._queue_slots: dict[str, dict[str, Any]] = {}
        if path and path.exists():
            self._load()

    def _load(self) -> None:
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))  # type: ignore[union-attr]
        except (OSError, json.JSONDecodeError) as exc:
            raise StoreError(f"Cannot read store file {self._path}: {exc}") from exc
        self._posts = data.get("posts", {})
        self._accounts = data.get("accounts", {})
        self._media = data.get("media", {})
        self._results = data.get("results", [])
        self._queue_slots = data.get("queue_slots", {})

    def _save(self) -> None:
        if not self._path:
            return
        data = {
            "posts": self._posts,
            "accounts": self._accounts,
            "media": self._media,
            "results": self._results,
            "queue_slots": self._queue_slots,
        }
        tmp = self._path.with_suffix(".tmp")
        try:
            tmp.write_text(json.dumps(data, indent=2), encoding="utf-8")
            os.replace(str(tmp), str(self._path))
        except OSError as exc:
            raise StoreError(f"Cannot write store file {self._path}: {exc}") from exc

    # -- posts --

    def get_post(self, post_id: str) -> SocialPost | None:
        with self._lock:
            raw = self._posts.get(post_id)
            return SocialPost.from_dict(raw) if raw else None

    def insert_post(self, post: SocialPost) -> SocialPost:
        with self._lock:
            if post.id in self._posts:
                raise StoreError(f"Post {post.id} already exists")
            self._posts[post.id] = post.to_dict()
            self._save()
        return post

    def save_post(self, post: SocialPost) -> None:
        with self._lock:
            self._posts[post.id] = post.to_dict()
            self._save()

    def all_posts(self) -> list[SocialPost]:
        with self._lock:
            return [SocialPost.from_dict(raw) for raw in self._posts.values()]

    def claim_post_for_publishing(self, post_id: str) -> SocialPost:
        with self._lock:
            post = self.get_post(post_id)
            if post is None:
                raise NotFoundError("Post", post_id)
            post.transition(PostStatus.PUBLISHING)
            self.save_post(post)
            return post

    def update_post_status(
        self,
        post_id: str,
        status: PostStatus,
        posted_at: datetime | None = None,
    ) -> SocialPost:
        with self._lock:
            post = self.get_post(post_id)
            if post is None:
                raise NotFoundError("Post", post_id)
            post.transition(status)
            if posted_at is not None:
                post.posted_at = posted_at
            self.save_post(post)
            return post

    def due_posts(self, now: datetime) -> list[SocialPost]:
        with self._lock:
            due = [
                post for post in self.all_posts()
                if post.status == PostStatus.SCHEDULED
                and post.scheduled_at is not None
                and post.scheduled_at <= now
            ]
        return sorted(due, key=lambda p: p.scheduled_at)  # type: ignore[arg-type, return-value]

    def posts_for_user(
        self, user_id: str, status: PostStatus | None = None,
    ) -> list[SocialPost]:
        with self._lock:
            return [
                post for post in self.all_posts()
                if post.user_id == user_id and (status is None or post.status == status)
            ]

    def slot_taken(self, user_id: str, when: datetime, window: timedelta) -> bool:
        occupied = {PostStatus.SCHEDULED, PostStatus.PUBLISHING, PostStatus.PUBLISHED}
        with self._lock:
            return any(
                post.status in occupied
                and post.scheduled_at is not None
                and abs(post.scheduled_at - when) <= window
                for post in self.posts_for_user(user_id)
            )

    # -- accounts --

    def get_account(self, account_id: str) -> SocialAccount | None:
        with self._lock:
            raw = self._accounts.get(account_id)
            return SocialAccount.from_dict(raw) if raw else None

    def save_account(self, account: SocialAccount) -> None:
        with self._lock:
            account.updated_at = utcnow()
            self._accounts[account.id] = account.to_dict()
            self._save()

    def accounts_for_user(self, user_id: str) -> list[SocialAccount]:
        with self._lock:
            return [
                SocialAccount.from_dict(raw) for raw in self._accounts.values()
                if raw["user_id"] == user_id
            ]

    def active_accounts(
        self, user_id: str, platforms: Iterable[Platform],
    ) -> list[SocialAccount]:
        wanted = {p.value for p in platforms}
        with self._lock:
            return [
                SocialAccount.from_dict(raw) for raw in self._accounts.values()
                if raw["user_id"] == user_id
                and raw["platform"] in wanted
                and raw.get("is_active", True)
            ]

    # -- media --

    def get_media(self, media_ids: Iterable[str]) -> list[MediaItem]:
        with self._lock:
            return [
                MediaItem.from_dict(self._media[media_id])
                for media_id in media_ids
                if media_id in self._media
            ]

    def save_media(self, item: MediaItem) -> None:
        with self._lock:
            self._media[item.id] = item.to_dict()
            self._save()

    # -- results --

    def add_result(self, result: PlatformPostResult) -> None:
        with self._lock:
            if any(r["id"] == result.id for r in self._results):
                raise StoreError(f"Result {result.id} already recorded")
            self._results.append(result.to_dict())
            self._save()

    def results_for_post(self, post_id: str) -> list[PlatformPostResult]:
        with self._lock:
            return [
                PlatformPostResult.from_dict(raw)
                for raw in self._results
                if raw["post_id"] == post_id
            ]

    # -- queue slots --

    def queue_slots(self, user_id: str) -> list[QueueSlot]:
        with self._lock:
            slots = [
                QueueSlot.from_dict(raw) for raw in self._queue_slots.values()
                if raw["user_id"] == user_id and raw.get("is_active", True)
            ]
        return sorted(slots, key=lambda s: (s.day_of_week, s.time_slot))

    def save_queue_slot(self, slot: QueueSlot) -> None:
        with self._lock:
            self._queue_slots[slot.id] = slot.to_dict()
            self._save()

    @property
    def total_results(self) -> int:
        return len(self._results)
