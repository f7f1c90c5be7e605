"""Evergreen recycling: re-queue successful evergreen posts at a fixed interval."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable

import structlog

from social_publisher.errors import NotFoundError, ValidationError
from social_publisher.models import PostStatus, SocialPost, utcnow
from social_publisher.store import Store

logger = structlog.get_logger(__name__)


def recycled_copy(
    post: SocialPost, scheduled_at: datetime, keep_evergreen: bool = True,
) -> SocialPost:
    """A new SCHEDULED post carrying ``post``'s content, one recycle further on."""
    return SocialPost(
        user_id=post.user_id,
        content=post.content,
        target_platforms=list(post.target_platforms),
        content_variants=dict(post.content_variants),
        media_ids=list(post.media_ids),
        link_url=post.link_url,
        status=PostStatus.SCHEDULED,
        scheduled_at=scheduled_at,
        is_evergreen=keep_evergreen,
        evergreen_interval_days=post.evergreen_interval_days if keep_evergreen else None,
        recycle_count=post.recycle_count + 1,
    )


class EvergreenScheduler:
    """Clones a published evergreen post into a new scheduled post.

    Invoked by the publisher once per successful publish; it never
    schedules itself.
    """

    def __init__(self, store: Store, clock: Callable[[], datetime] | None = None) -> None:
        self._store = store
        self._clock = clock or utcnow

    def recycle(self, post: SocialPost, now: datetime | None = None) -> SocialPost:
        if not post.is_evergreen:
            raise ValidationError(f"Post {post.id} is not evergreen")
        interval = post.evergreen_interval_days
        if not interval or interval <= 0:
            raise ValidationError(f"Post {post.id} has no positive recycle interval")

        now = now or self._clock()
        clone = recycled_copy(post, now + timedelta(days=interval))
        self._store.insert_post(clone)

        original = self._store.get_post(post.id)
        if original is None:
            raise NotFoundError("Post", post.id)
        original.last_recycled_at = now
        self._store.save_post(original)

        logger.info(
            "evergreen_recycled",
            post_id=post.id, new_post_id=clone.id,
            scheduled_at=clone.scheduled_at.isoformat(), recycle_count=clone.recycle_count,
        )
        return clone
