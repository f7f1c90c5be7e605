"""Data model for the publishing engine.

Records are plain dataclasses that round-trip through ``to_dict`` /
``from_dict`` so the store can persist them as JSON.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from social_publisher.errors import ValidationError


class Platform(Enum):
    TWITTER = "twitter"
    LINKEDIN = "linkedin"
    FACEBOOK = "facebook"
    INSTAGRAM = "instagram"
    THREADS = "threads"


class PostStatus(Enum):
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    PUBLISHING = "publishing"
    PUBLISHED = "published"
    FAILED = "failed"


class ResultStatus(Enum):
    POSTED = "posted"
    FAILED = "failed"


ALLOWED_TRANSITIONS: dict[PostStatus, frozenset[PostStatus]] = {
    PostStatus.DRAFT: frozenset({PostStatus.SCHEDULED, PostStatus.PUBLISHING}),
    PostStatus.SCHEDULED: frozenset({PostStatus.PUBLISHING}),
    PostStatus.PUBLISHING: frozenset({PostStatus.PUBLISHED, PostStatus.FAILED}),
    PostStatus.PUBLISHED: frozenset(),
    PostStatus.FAILED: frozenset({PostStatus.SCHEDULED}),
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


def _dt_out(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _dt_in(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


@dataclass(frozen=True)
class TokenPair:
    """Encrypted tokens produced by an OAuth code exchange or refresh."""
    access_token: str
    refresh_token: str | None = None
    expires_at: datetime | None = None

    def __repr__(self) -> str:
        return (
            f"TokenPair(access_token=<encrypted>, "
            f"refresh_token={'<encrypted>' if self.refresh_token else None}, "
            f"expires_at={self.expires_at!r})"
        )


@dataclass
class SocialAccount:
    user_id: str
    platform: Platform
    platform_user_id: str
    platform_username: str
    access_token: str
    refresh_token: str | None = None
    expires_at: datetime | None = None
    is_active: bool = True
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def is_expired(self, now: datetime | None = None) -> bool:
        return self.expires_at is not None and self.expires_at <= (now or utcnow())

    def with_tokens(self, tokens: TokenPair) -> SocialAccount:
        return replace(
            self,
            access_token=tokens.access_token,
            # Platforms that don't rotate refresh tokens keep the old one.
            refresh_token=tokens.refresh_token or self.refresh_token,
            expires_at=tokens.expires_at,
            updated_at=utcnow(),
        )

    def __repr__(self) -> str:
        return (
            f"SocialAccount(id={self.id!r}, platform={self.platform.value!r}, "
            f"username={self.platform_username!r}, active={self.is_active!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "platform": self.platform.value,
            "platform_user_id": self.platform_user_id,
            "platform_username": self.platform_username,
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": _dt_out(self.expires_at),
            "is_active": self.is_active,
            "created_at": _dt_out(self.created_at),
            "updated_at": _dt_out(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SocialAccount:
        return cls(
            id=data["id"],
            user_id=data["user_id"],
            platform=Platform(data["platform"]),
            platform_user_id=data["platform_user_id"],
            platform_username=data["platform_username"],
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_at=_dt_in(data.get("expires_at")),
            is_active=data.get("is_active", True),
            created_at=_dt_in(data.get("created_at")) or utcnow(),
            updated_at=_dt_in(data.get("updated_at")) or utcnow(),
        )


@dataclass
class MediaItem:
    file_url: str
    file_type: str
    id: str = field(default_factory=new_id)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "file_url": self.file_url, "file_type": self.file_type}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MediaItem:
        return cls(id=data["id"], file_url=data["file_url"], file_type=data["file_type"])


@dataclass
class QueueSlot:
    """A recurring weekly posting time for one user.

    ``day_of_week`` follows ``datetime.weekday()`` (Monday is 0) and
    ``time_slot`` is ``HH:MM`` in UTC.
    """
    user_id: str
    day_of_week: int
    time_slot: str
    platforms: list[Platform] = field(default_factory=list)
    is_active: bool = True
    id: str = field(default_factory=new_id)

    def __post_init__(self) -> None:
        if not 0 <= self.day_of_week <= 6:
            raise ValidationError(f"day_of_week must be 0-6, got {self.day_of_week}")
        _parse_time_slot(self.time_slot)

    def at(self, day: datetime) -> datetime:
        """This slot's time on the date of ``day``."""
        hours, minutes = _parse_time_slot(self.time_slot)
        return day.replace(hour=hours, minute=minutes, second=0, microsecond=0)

    def serves(self, platforms: list[Platform]) -> bool:
        return any(p in self.platforms for p in platforms)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "day_of_week": self.day_of_week,
            "time_slot": self.time_slot,
            "platforms": [p.value for p in self.platforms],
            "is_active": self.is_active,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> QueueSlot:
        return cls(
            id=data["id"],
            user_id=data["user_id"],
            day_of_week=data["day_of_week"],
            time_slot=data["time_slot"],
            platforms=[Platform(p) for p in data.get("platforms", [])],
            is_active=data.get("is_active", True),
        )


def _parse_time_slot(value: str) -> tuple[int, int]:
    try:
        hours, minutes = (int(part) for part in value.split(":"))
    except ValueError as exc:
        raise ValidationError(f"time_slot must be HH:MM, got {value!r}") from exc
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        raise ValidationError(f"time_slot must be HH:MM, got {value!r}")
    return hours, minutes


@dataclass
class SocialPost:
    user_id: str
    content: str
    target_platforms: list[Platform] = field(default_factory=list)
    content_variants: dict[Platform, str] = field(default_factory=dict)
    media_ids: list[str] = field(default_factory=list)
    link_url: str | None = None
    status: PostStatus = PostStatus.DRAFT
    scheduled_at: datetime | None = None
    posted_at: datetime | None = None
    is_evergreen: bool = False
    evergreen_interval_days: int | None = None
    recycle_count: int = 0
    last_recycled_at: datetime | None = None
    queue_position: int | None = None
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)

    def content_for(self, platform: Platform) -> str:
        """Platform-specific variant, falling back to the base content."""
        return self.content_variants.get(platform) or self.content

    def transition(self, new_status: PostStatus) -> None:
        if new_status not in ALLOWED_TRANSITIONS[self.status]:
            raise ValidationError(
                f"Post {self.id} cannot move from {self.status.value} to {new_status.value}"
            )
        self.status = new_status

    def schedule(self, when: datetime) -> None:
        self.transition(PostStatus.SCHEDULED)
        self.scheduled_at = when

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "content": self.content,
            "target_platforms": [p.value for p in self.target_platforms],
            "content_variants": {p.value: text for p, text in self.content_variants.items()},
            "media_ids": list(self.media_ids),
            "link_url": self.link_url,
            "status": self.status.value,
            "scheduled_at": _dt_out(self.scheduled_at),
            "posted_at": _dt_out(self.posted_at),
            "is_evergreen": self.is_evergreen,
            "evergreen_interval_days": self.evergreen_interval_days,
            "recycle_count": self.recycle_count,
            "last_recycled_at": _dt_out(self.last_recycled_at),
            "queue_position": self.queue_position,
            "created_at": _dt_out(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SocialPost:
        return cls(
            id=data["id"],
            user_id=data["user_id"],
            content=data.get("content", ""),
            target_platforms=[Platform(p) for p in data.get("target_platforms", [])],
            content_variants={
                Platform(p): text for p, text in (data.get("content_variants") or {}).items()
            },
            media_ids=list(data.get("media_ids", [])),
            link_url=data.get("link_url"),
            status=PostStatus(data.get("status", "draft")),
            scheduled_at=_dt_in(data.get("scheduled_at")),
            posted_at=_dt_in(data.get("posted_at")),
            is_evergreen=data.get("is_evergreen", False),
            evergreen_interval_days=data.get("evergreen_interval_days"),
            recycle_count=data.get("recycle_count", 0),
            last_recycled_at=_dt_in(data.get("last_recycled_at")),
            queue_position=data.get("queue_position"),
            created_at=_dt_in(data.get("created_at")) or utcnow(),
        )


@dataclass(frozen=True)
class PublishedPost:
    """What a platform returns for a successful publish."""
    remote_post_id: str
    remote_post_url: str
    posted_at: datetime


@dataclass(frozen=True)
class AnalyticsData:
    impressions: int = 0
    engagements: int = 0
    likes: int = 0
    comments: int = 0
    shares: int = 0
    clicks: int = 0


@dataclass(frozen=True)
class PlatformPostResult:
    """Immutable record of one (post, account) publish attempt."""
    post_id: str
    account_id: str
    platform: Platform
    status: ResultStatus
    remote_post_id: str | None = None
    remote_post_url: str | None = None
    error_message: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    id: str = field(default_factory=new_id)

    @classmethod
    def posted(
        cls, post_id: str, account: SocialAccount, published: PublishedPost,
    ) -> PlatformPostResult:
        return cls(
            post_id=post_id,
            account_id=account.id,
            platform=account.platform,
            status=ResultStatus.POSTED,
            remote_post_id=published.remote_post_id,
            remote_post_url=published.remote_post_url,
            created_at=published.posted_at,
        )

    @classmethod
    def failed(cls, post_id: str, account: SocialAccount, error: str) -> PlatformPostResult:
        return cls(
            post_id=post_id,
            account_id=account.id,
            platform=account.platform,
            status=ResultStatus.FAILED,
            error_message=error,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "post_id": self.post_id,
            "account_id": self.account_id,
            "platform": self.platform.value,
            "status": self.status.value,
            "remote_post_id": self.remote_post_id,
            "remote_post_url": self.remote_post_url,
            "error_message": self.error_message,
            "created_at": _dt_out(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PlatformPostResult:
        return cls(
            id=data["id"],
            post_id=data["post_id"],
            account_id=data["account_id"],
            platform=Platform(data["platform"]),
            status=ResultStatus(data["status"]),
            remote_post_id=data.get("remote_post_id"),
            remote_post_url=data.get("remote_post_url"),
            error_message=data.get("error_message"),
            created_at=_dt_in(data.get("created_at")) or utcnow(),
        )


@dataclass
class PublishOutcome:
    post_id: str
    status: PostStatus
    results: list[PlatformPostResult] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """True only when every account posted."""
        return self.status == PostStatus.PUBLISHED and not self.errors


@dataclass
class BatchSummary:
    total: int = 0
    successful: int = 0
    failed: int = 0
    errors: list[dict[str, str]] = field(default_factory=list)

    def record_failure(self, post_id: str, error: str) -> None:
        self.failed += 1
        self.errors.append({"post_id": post_id, "error": error})


@dataclass(frozen=True)
class QueueStats:
    total_scheduled: int
    next_post_at: datetime | None
    empty_slots: int
