"""Twitter/X client: OAuth 2.0 with PKCE, API v2 for tweets, v1.1 media upload."""

from __future__ import annotations

import base64
import urllib.parse
from dataclasses import dataclass
from typing import Any

import structlog

from social_publisher.errors import AuthError, PlatformAPIError, ValidationError
from social_publisher.models import (
    AnalyticsData,
    MediaItem,
    Platform,
    PublishedPost,
    SocialAccount,
    SocialPost,
    TokenPair,
    utcnow,
)
from social_publisher.platforms.base import PlatformClient, PlatformUser, require
from social_publisher.transport import form_body, json_body

logger = structlog.get_logger(__name__)

TWITTER_API_BASE = "https://api.twitter.com/2"
TWITTER_UPLOAD_URL = "https://upload.twitter.com/1.1/media/upload.json"
TWEET_MAX_CHARS = 280
TWEET_TRUNCATE_AT = 277
TWEET_MAX_MEDIA = 4


def truncate_tweet(text: str) -> str:
    if len(text) <= TWEET_MAX_CHARS:
        return text
    return text[:TWEET_TRUNCATE_AT] + "..."


@dataclass(frozen=True)
class TweetRequest:
    text: str
    media_ids: tuple[str, ...] = ()

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"text": self.text}
        if self.media_ids:
            payload["media"] = {"media_ids": list(self.media_ids)}
        return payload


@dataclass(frozen=True)
class TweetCreated:
    id: str

    @classmethod
    def from_payload(cls, payload: Any) -> TweetCreated:
        return cls(id=str(require("twitter", payload, "data", "id")))


@dataclass(frozen=True)
class MediaUploadInit:
    media_id_string: str

    @classmethod
    def from_payload(cls, payload: Any) -> MediaUploadInit:
        return cls(media_id_string=str(require("twitter", payload, "media_id_string")))


@dataclass(frozen=True)
class TwitterUser:
    id: str
    username: str
    name: str
    profile_image_url: str | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> TwitterUser:
        data = require("twitter", payload, "data")
        return cls(
            id=str(require("twitter", data, "id")),
            username=str(require("twitter", data, "username")),
            name=str(data.get("name") or data["username"]),
            profile_image_url=data.get("profile_image_url"),
        )


@dataclass(frozen=True)
class PublicMetrics:
    impression_count: int = 0
    like_count: int = 0
    reply_count: int = 0
    retweet_count: int = 0
    quote_count: int = 0

    @classmethod
    def from_payload(cls, payload: Any) -> PublicMetrics:
        metrics = require("twitter", payload, "data", "public_metrics")
        return cls(
            impression_count=int(metrics.get("impression_count") or 0),
            like_count=int(metrics.get("like_count") or 0),
            reply_count=int(metrics.get("reply_count") or 0),
            retweet_count=int(metrics.get("retweet_count") or 0),
            quote_count=int(metrics.get("quote_count") or 0),
        )

    def to_analytics(self) -> AnalyticsData:
        return AnalyticsData(
            impressions=self.impression_count,
            engagements=self.retweet_count + self.reply_count + self.like_count,
            likes=self.like_count,
            comments=self.reply_count,
            shares=self.retweet_count,
            clicks=0,  # not exposed in public metrics
        )


class TwitterClient(PlatformClient):
    """Client for publishing to Twitter/X."""

    platform = Platform.TWITTER
    supports_refresh = True
    requires_pkce = True
    max_media = TWEET_MAX_MEDIA
    scopes = ("tweet.read", "tweet.write", "users.read", "offline.access")
    auth_url = "https://twitter.com/i/oauth2/authorize"
    token_url = "https://api.twitter.com/2/oauth2/token"

    def build_auth_url(self, state: str, code_challenge: str | None = None) -> str:
        if not code_challenge:
            raise ValidationError("Twitter authorization requires a PKCE code challenge")
        cfg = self.oauth_config
        params = {
            "response_type": "code",
            "client_id": cfg.client_id,
            "redirect_uri": cfg.redirect_uri,
            "scope": " ".join(cfg.scopes),
            "state": state,
            "code_challenge": code_challenge,
            "code_challenge_method": "S256",
        }
        return f"{cfg.auth_url}?{urllib.parse.urlencode(params, quote_via=urllib.parse.quote)}"

    def exchange_code(self, code: str, code_verifier: str | None = None) -> TokenPair:
        if not code_verifier:
            raise ValidationError("Twitter token exchange requires the PKCE code verifier")
        cfg = self.oauth_config
        response = self._send(
            "POST", cfg.token_url, "token exchange",
            headers=self._basic_auth_headers(),
            data=form_body({
                "code": code,
                "grant_type": "authorization_code",
                "client_id": cfg.client_id,
                "redirect_uri": cfg.redirect_uri,
                "code_verifier": code_verifier,
            }),
        )
        return self._token_pair(self._json(response, "token exchange"))

    def refresh_token(self, account: SocialAccount) -> TokenPair:
        if not account.refresh_token:
            raise AuthError(self.name, "no refresh token available")
        cfg = self.oauth_config
        try:
            response = self._send(
                "POST", cfg.token_url, "token refresh",
                headers=self._basic_auth_headers(),
                data=form_body({
                    "grant_type": "refresh_token",
                    "refresh_token": self._cipher.decrypt(account.refresh_token),
                    "client_id": cfg.client_id,
                }),
            )
        except PlatformAPIError as exc:
            # invalid_grant comes back as 400: the refresh token is dead.
            if exc.status == 400:
                raise AuthError(self.name, "token refresh rejected", exc.status, exc.body) from exc
            raise
        return self._token_pair(self._json(response, "token refresh"))

    def _get_user(self, access_token: str) -> PlatformUser:
        response = self._send(
            "GET", f"{TWITTER_API_BASE}/users/me?user.fields=profile_image_url",
            "user lookup", token=access_token,
        )
        user = TwitterUser.from_payload(self._json(response, "user lookup"))
        return PlatformUser(
            id=user.id, username=user.username, name=user.name,
            profile_image_url=user.profile_image_url,
        )

    def publish_post(
        self,
        account: SocialAccount,
        post: SocialPost,
        media: list[MediaItem],
    ) -> PublishedPost:
        token = self._access_token(account)
        text = truncate_tweet(post.content_for(self.platform))
        media_ids = tuple(self._upload_media(token, item) for item in media[:self.max_media])

        response = self._send(
            "POST", f"{TWITTER_API_BASE}/tweets", "post",
            token=token,
            headers={"Content-Type": "application/json"},
            data=json_body(TweetRequest(text=text, media_ids=media_ids).to_payload()),
        )
        tweet = TweetCreated.from_payload(self._json(response, "post"))
        logger.info("tweet_published", account_id=account.id, tweet_id=tweet.id, media=len(media_ids))
        return PublishedPost(
            remote_post_id=tweet.id,
            remote_post_url=f"https://twitter.com/{account.platform_username}/status/{tweet.id}",
            posted_at=utcnow(),
        )

    def delete_post(self, account: SocialAccount, remote_post_id: str) -> None:
        self._send(
            "DELETE", f"{TWITTER_API_BASE}/tweets/{urllib.parse.quote(remote_post_id)}",
            "delete", token=self._access_token(account),
        )

    def get_analytics(self, account: SocialAccount, remote_post_id: str) -> AnalyticsData:
        response = self._send(
            "GET",
            f"{TWITTER_API_BASE}/tweets/{urllib.parse.quote(remote_post_id)}"
            "?tweet.fields=public_metrics",
            "analytics", token=self._access_token(account),
        )
        return PublicMetrics.from_payload(self._json(response, "analytics")).to_analytics()

    def _upload_media(self, token: str, item: MediaItem) -> str:
        """Chunked upload: INIT, a single APPEND segment, FINALIZE."""
        content = self._download(item)
        form = {"Content-Type": "application/x-www-form-urlencoded"}

        init = self._send(
            "POST", TWITTER_UPLOAD_URL, "media upload init", token=token, headers=form,
            data=form_body({
                "command": "INIT",
                "total_bytes": str(len(content)),
                "media_type": item.file_type,
            }),
        )
        media_id = MediaUploadInit.from_payload(self._json(init, "media upload init")).media_id_string

        self._send(
            "POST", TWITTER_UPLOAD_URL, "media upload append", token=token, headers=form,
            data=form_body({
                "command": "APPEND",
                "media_id": media_id,
                "segment_index": "0",
                "media": base64.b64encode(content).decode("ascii"),
            }),
        )
        self._send(
            "POST", TWITTER_UPLOAD_URL, "media upload finalize", token=token, headers=form,
            data=form_body({"command": "FINALIZE", "media_id": media_id}),
        )
        return media_id

    def _basic_auth_headers(self) -> dict[str, str]:
        cfg = self.oauth_config
        credentials = base64.b64encode(
            f"{cfg.client_id}:{cfg.client_secret}".encode("utf-8")
        ).decode("ascii")
        return {
            "Content-Type": "application/x-www-form-urlencoded",
            "Authorization": f"Basic {credentials}",
        }
