"""Queue-slot scheduling: place posts into a user's recurring weekly slots.

A slot is free when none of the user's scheduled, publishing or published
posts sits within ``SLOT_WINDOW`` of it.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable, Iterator

import structlog

from social_publisher.errors import NotFoundError
from social_publisher.evergreen import recycled_copy
from social_publisher.models import (
    Platform,
    PostStatus,
    QueueSlot,
    QueueStats,
    SocialPost,
    utcnow,
)
from social_publisher.store import Store

logger = structlog.get_logger(__name__)

LOOKAHEAD_DAYS = 14
REASSIGN_HORIZON_DAYS = 365
SLOT_WINDOW = timedelta(minutes=5)


def _slot_times(
    slots: list[QueueSlot], now: datetime, days: int,
) -> Iterator[tuple[QueueSlot, datetime]]:
    """Future slot occurrences, in calendar order, starting today."""
    for offset in range(days):
        day = now + timedelta(days=offset)
        for slot in slots:
            if slot.day_of_week != day.weekday():
                continue
            when = slot.at(day)
            if when > now:
                yield slot, when


class QueueScheduler:
    def __init__(self, store: Store, clock: Callable[[], datetime] | None = None) -> None:
        self._store = store
        self._clock = clock or utcnow

    def next_available_slot(
        self,
        user_id: str,
        platforms: list[Platform],
        now: datetime | None = None,
    ) -> datetime | None:
        """The earliest free slot in the next two weeks serving any of ``platforms``."""
        now = now or self._clock()
        slots = self._store.queue_slots(user_id)
        for slot, when in _slot_times(slots, now, LOOKAHEAD_DAYS):
            if not slot.serves(platforms):
                continue
            if not self._store.slot_taken(user_id, when, SLOT_WINDOW):
                return when
        return None

    def add_to_queue(
        self, user_id: str, post_id: str, now: datetime | None = None,
    ) -> datetime | None:
        """Schedule a post at the next free slot.

        Returns the assigned time, or None (post unchanged) when no slot
        is free.

        Raises:
            NotFoundError: the post does not exist or belongs to another user.
            ValidationError: the post is publishing or already published.
        """
        post = self._owned_post(user_id, post_id)
        if post.status != PostStatus.SCHEDULED:
            post.transition(PostStatus.SCHEDULED)
        when = self.next_available_slot(user_id, post.target_platforms, now)
        if when is None:
            logger.info("queue_full", user_id=user_id, post_id=post_id)
            return None
        post.scheduled_at = when
        self._store.save_post(post)
        logger.info("post_queued", user_id=user_id, post_id=post_id, scheduled_at=when.isoformat())
        return when

    def reorder_queue(
        self, user_id: str, post_ids: list[str], now: datetime | None = None,
    ) -> None:
        """Give ``post_ids`` queue positions in list order, then re-slot the queue.

        Posts of other users are skipped.
        """
        for position, post_id in enumerate(post_ids):
            post = self._store.get_post(post_id)
            if post is None or post.user_id != user_id:
                logger.warning("queue_reorder_skipped", user_id=user_id, post_id=post_id)
                continue
            post.queue_position = position
            self._store.save_post(post)
        self._reassign_slots(user_id, now or self._clock())

    def _reassign_slots(self, user_id: str, now: datetime) -> None:
        # One pass over the slot calendar shared by all posts: each post takes
        # the first later slot serving one of its platforms.
        posts = sorted(
            self._store.posts_for_user(user_id, PostStatus.SCHEDULED),
            key=lambda p: (
                p.queue_position is None,
                p.queue_position or 0,
                p.scheduled_at or now,
            ),
        )
        slots = self._store.queue_slots(user_id)
        if not posts or not slots:
            return

        calendar = _slot_times(slots, now, REASSIGN_HORIZON_DAYS)
        for post in posts:
            for slot, when in calendar:
                if slot.serves(post.target_platforms):
                    post.scheduled_at = when
                    self._store.save_post(post)
                    break
            else:
                logger.warning("queue_slot_unassigned", user_id=user_id, post_id=post.id)
        logger.info("queue_reassigned", user_id=user_id, posts=len(posts))

    def fill_with_evergreen(
        self, user_id: str, days_ahead: int = 7, now: datetime | None = None,
    ) -> int:
        """Copy published evergreen posts into free slots within ``days_ahead`` days.

        The least recently recycled posts go first. Returns how many copies
        were scheduled.
        """
        now = now or self._clock()
        deadline = now + timedelta(days=days_ahead)
        sources = sorted(
            (
                p for p in self._store.posts_for_user(user_id, PostStatus.PUBLISHED)
                if p.is_evergreen
            ),
            key=lambda p: (p.last_recycled_at is not None, p.last_recycled_at or p.created_at),
        )

        filled = 0
        for source in sources:
            when = self.next_available_slot(user_id, source.target_platforms, now)
            if when is None or when > deadline:
                continue
            copy = recycled_copy(source, when, keep_evergreen=False)
            self._store.insert_post(copy)
            source.last_recycled_at = now
            self._store.save_post(source)
            filled += 1
            logger.info(
                "queue_filled_evergreen",
                user_id=user_id, post_id=source.id, new_post_id=copy.id,
                scheduled_at=when.isoformat(),
            )
        return filled

    def queue_stats(self, user_id: str, now: datetime | None = None) -> QueueStats:
        """Scheduled count, the earliest scheduled time, and free slots this week."""
        now = now or self._clock()
        scheduled = sorted(
            (
                p.scheduled_at for p in self._store.posts_for_user(user_id, PostStatus.SCHEDULED)
                if p.scheduled_at is not None
            ),
        )
        slots = self._store.queue_slots(user_id)
        empty = sum(
            1 for _, when in _slot_times(slots, now, 7)
            if not self._store.slot_taken(user_id, when, SLOT_WINDOW)
        )
        return QueueStats(
            total_scheduled=len(scheduled),
            next_post_at=scheduled[0] if scheduled else None,
            empty_slots=empty,
        )

    def _owned_post(self, user_id: str, post_id: str) -> SocialPost:
        post = self._store.get_post(post_id)
        if post is None or post.user_id != user_id:
            raise NotFoundError("Post", post_id)
        return post
