"""Fan-out publisher and due-post scan.

A post is claimed (PUBLISHING) before any network call, published to every
eligible account independently, and finishes PUBLISHED if at least one
account succeeded. Each attempt leaves exactly one PlatformPostResult.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Callable

import structlog

from social_publisher.accounts import AccountManager
from social_publisher.errors import (
    AuthError,
    NotFoundError,
    SocialPublisherError,
    StoreError,
    ValidationError,
)
from social_publisher.evergreen import EvergreenScheduler
from social_publisher.models import (
    BatchSummary,
    MediaItem,
    PlatformPostResult,
    PostStatus,
    PublishOutcome,
    ResultStatus,
    SocialAccount,
    SocialPost,
    utcnow,
)
from social_publisher.registry import PlatformRegistry
from social_publisher.store import Store

logger = structlog.get_logger(__name__)


class Publisher:
    """Publishes posts to all of their target accounts.

    Per-account attempts run concurrently on a bounded thread pool; their
    results are gathered from the futures and written by the calling
    thread.
    """

    def __init__(
        self,
        store: Store,
        registry: PlatformRegistry,
        accounts: AccountManager,
        evergreen: EvergreenScheduler | None = None,
        max_workers: int = 4,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._registry = registry
        self._accounts = accounts
        self._evergreen = evergreen
        self._max_workers = max(1, max_workers)
        self._clock = clock or utcnow

    def publish_post(self, post_id: str) -> PublishOutcome:
        if self._store.get_post(post_id) is None:
            raise NotFoundError("Post", post_id)
        # Raises ValidationError if another invocation holds the post; its
        # status is left untouched in that case.
        post = self._store.claim_post_for_publishing(post_id)
        log = logger.bind(post_id=post_id)
        log.info("publish_started", platforms=[p.value for p in post.target_platforms])

        try:
            accounts = self._store.active_accounts(post.user_id, post.target_platforms)
            if not accounts:
                raise ValidationError("No connected accounts found for target platforms")
            if not post.content.strip() and not post.media_ids:
                raise ValidationError("Post has neither content nor media")
            media = self._load_media(post)
            results = self._fan_out(post, accounts, media)
            for result in results:
                self._store.add_result(result)
        except Exception as exc:
            self._store.update_post_status(post_id, PostStatus.FAILED)
            log.error("publish_aborted", error=str(exc))
            raise

        posted = [r for r in results if r.status == ResultStatus.POSTED]
        errors = [
            f"{r.platform.value}: {r.error_message}"
            for r in results if r.status == ResultStatus.FAILED
        ]
        final = PostStatus.PUBLISHED if posted else PostStatus.FAILED
        self._store.update_post_status(
            post_id, final, posted_at=self._clock() if posted else None,
        )
        log.info(
            "publish_finished",
            status=final.value, accounts=len(accounts), posted=len(posted), failed=len(errors),
        )

        # Evergreen posts without a positive interval are published but never recycled.
        if (
            final == PostStatus.PUBLISHED
            and self._evergreen
            and post.is_evergreen
            and (post.evergreen_interval_days or 0) > 0
        ):
            self._evergreen.recycle(post)

        return PublishOutcome(post_id=post_id, status=final, results=results, errors=errors)

    def get_due_posts(self, now: datetime | None = None) -> list[SocialPost]:
        return self._store.due_posts(now or self._clock())

    def publish_due_posts(self) -> BatchSummary:
        """Publish every due post; one post's failure never stops the batch."""
        due = self.get_due_posts()
        summary = BatchSummary(total=len(due))
        for post in due:
            try:
                outcome = self.publish_post(post.id)
            except Exception as exc:
                logger.exception("due_post_failed", post_id=post.id)
                summary.record_failure(post.id, str(exc))
                continue
            if outcome.success:
                summary.successful += 1
            else:
                summary.record_failure(post.id, "; ".join(outcome.errors))
        logger.info(
            "due_posts_processed",
            total=summary.total, successful=summary.successful, failed=summary.failed,
        )
        return summary

    def _load_media(self, post: SocialPost) -> list[MediaItem]:
        if not post.media_ids:
            return []
        try:
            return self._store.get_media(post.media_ids)
        except StoreError as exc:
            logger.warning("media_unavailable", post_id=post.id, error=str(exc))
            return []

    def _fan_out(
        self,
        post: SocialPost,
        accounts: list[SocialAccount],
        media: list[MediaItem],
    ) -> list[PlatformPostResult]:
        workers = min(self._max_workers, len(accounts))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="publish") as pool:
            futures = [pool.submit(self._attempt, post, account, media) for account in accounts]
            return [future.result() for future in futures]

    def _attempt(
        self,
        post: SocialPost,
        account: SocialAccount,
        media: list[MediaItem],
    ) -> PlatformPostResult:
        """One account's publish; every failure becomes a failed result."""
        log = logger.bind(post_id=post.id, account_id=account.id, platform=account.platform.value)
        try:
            client = self._registry.get(account.platform)
            # A rejected refresh has already deactivated the account.
            account = self._accounts.ensure_fresh(account)
        except Exception as exc:
            log.warning("account_unavailable", error=str(exc))
            return PlatformPostResult.failed(post.id, account, str(exc))

        try:
            published = client.publish_post(account, post, media)
        except AuthError as exc:
            log.warning("account_publish_unauthorized", error=str(exc))
            self._recover_auth(account)
            return PlatformPostResult.failed(post.id, account, str(exc))
        except Exception as exc:
            log.warning("account_publish_failed", error=str(exc))
            return PlatformPostResult.failed(post.id, account, str(exc))
        log.info("account_published", remote_post_id=published.remote_post_id)
        return PlatformPostResult.posted(post.id, account, published)

    def _recover_auth(self, account: SocialAccount) -> None:
        try:
            self._accounts.handle_auth_failure(account)
        except SocialPublisherError as exc:
            logger.error(
                "auth_recovery_failed",
                account_id=account.id, platform=account.platform.value, error=str(exc),
            )
