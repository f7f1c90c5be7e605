"""LinkedIn client: OAuth 2.0 (no refresh tokens) and the UGC posts API."""

from __future__ import annotations

import urllib.parse
from dataclasses import dataclass
from typing import Any

import structlog

from social_publisher.errors import AuthError
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

LINKEDIN_API_BASE = "https://api.linkedin.com/v2"
LINKEDIN_MAX_MEDIA = 9
RESTLI_HEADERS = {"X-Restli-Protocol-Version": "2.0.0"}
UPLOAD_MECHANISM = "com.linkedin.digitalmedia.uploading.MediaUploadHttpRequest"
SHARE_CONTENT = "com.linkedin.ugc.ShareContent"


@dataclass(frozen=True)
class UgcPostRequest:
    author_urn: str
    text: str
    media_urns: tuple[str, ...] = ()

    def to_payload(self) -> dict[str, Any]:
        share: dict[str, Any] = {
            "shareCommentary": {"text": self.text},
            "shareMediaCategory": "IMAGE" if self.media_urns else "NONE",
        }
        if self.media_urns:
            share["media"] = [{"status": "READY", "media": urn} for urn in self.media_urns]
        return {
            "author": self.author_urn,
            "lifecycleState": "PUBLISHED",
            "specificContent": {SHARE_CONTENT: share},
            "visibility": {"com.linkedin.ugc.MemberNetworkVisibility": "PUBLIC"},
        }


@dataclass(frozen=True)
class UgcPostCreated:
    id: str

    @classmethod
    def from_payload(cls, payload: Any, restli_id: str | None = None) -> UgcPostCreated:
        if isinstance(payload, dict) and payload.get("id"):
            return cls(id=str(payload["id"]))
        if restli_id:
            return cls(id=restli_id)
        return cls(id=str(require("linkedin", payload, "id")))


@dataclass(frozen=True)
class RegisteredUpload:
    upload_url: str
    asset: str

    @classmethod
    def from_payload(cls, payload: Any) -> RegisteredUpload:
        return cls(
            upload_url=str(require(
                "linkedin", payload, "value", "uploadMechanism", UPLOAD_MECHANISM, "uploadUrl",
            )),
            asset=str(require("linkedin", payload, "value", "asset")),
        )


@dataclass(frozen=True)
class LinkedInUserInfo:
    sub: str
    email: str | None = None
    name: str | None = None
    given_name: str | None = None
    family_name: str | None = None
    picture: str | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> LinkedInUserInfo:
        return cls(
            sub=str(require("linkedin", payload, "sub")),
            email=payload.get("email"),
            name=payload.get("name"),
            given_name=payload.get("given_name"),
            family_name=payload.get("family_name"),
            picture=payload.get("picture"),
        )

    @property
    def username(self) -> str:
        return self.email.split("@")[0] if self.email else self.sub

    @property
    def display_name(self) -> str:
        if self.name:
            return self.name
        parts = [p for p in (self.given_name, self.family_name) if p]
        return " ".join(parts) or self.username


class LinkedInClient(PlatformClient):
    """Client for publishing to LinkedIn.

    LinkedIn issues no refresh tokens to this app type; an expired or
    revoked token means the user has to re-authenticate.
    """

    platform = Platform.LINKEDIN
    supports_refresh = False
    max_media = LINKEDIN_MAX_MEDIA
    scopes = ("openid", "profile", "w_member_social", "email")
    auth_url = "https://www.linkedin.com/oauth/v2/authorization"
    token_url = "https://www.linkedin.com/oauth/v2/accessToken"

    def build_auth_url(self, state: str, code_challenge: str | None = None) -> str:
        cfg = self.oauth_config
        params = {
            "response_type": "code",
            "client_id": cfg.client_id,
            "redirect_uri": cfg.redirect_uri,
            "scope": " ".join(cfg.scopes),
            "state": state,
        }
        return f"{cfg.auth_url}?{urllib.parse.urlencode(params, quote_via=urllib.parse.quote)}"

    def exchange_code(self, code: str, code_verifier: str | None = None) -> TokenPair:
        cfg = self.oauth_config
        response = self._send(
            "POST", cfg.token_url, "token exchange",
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            data=form_body({
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": cfg.redirect_uri,
                "client_id": cfg.client_id,
                "client_secret": cfg.client_secret,
            }),
        )
        return self._token_pair(self._json(response, "token exchange"))

    def refresh_token(self, account: SocialAccount) -> TokenPair:
        raise AuthError(
            self.name, "does not support token refresh; user must re-authenticate",
        )

    def _get_user(self, access_token: str) -> PlatformUser:
        response = self._send(
            "GET", f"{LINKEDIN_API_BASE}/userinfo", "user lookup", token=access_token,
        )
        info = LinkedInUserInfo.from_payload(self._json(response, "user lookup"))
        return PlatformUser(
            id=info.sub, username=info.username, name=info.display_name,
            profile_image_url=info.picture,
        )

    def publish_post(
        self,
        account: SocialAccount,
        post: SocialPost,
        media: list[MediaItem],
    ) -> PublishedPost:
        token = self._access_token(account)
        media_urns = tuple(
            self._upload_media(token, account.platform_user_id, item)
            for item in media[:self.max_media]
        )
        request = UgcPostRequest(
            author_urn=_person_urn(account.platform_user_id),
            text=post.content_for(self.platform),
            media_urns=media_urns,
        )
        response = self._send(
            "POST", f"{LINKEDIN_API_BASE}/ugcPosts", "post",
            token=token,
            headers={"Content-Type": "application/json", **RESTLI_HEADERS},
            data=json_body(request.to_payload()),
        )
        created = UgcPostCreated.from_payload(
            self._json(response, "post"), response.header("x-restli-id"),
        )
        logger.info("linkedin_post_published", account_id=account.id, media=len(media_urns))
        return PublishedPost(
            remote_post_id=created.id,
            remote_post_url=f"https://www.linkedin.com/feed/update/{created.id}",
            posted_at=utcnow(),
        )

    def delete_post(self, account: SocialAccount, remote_post_id: str) -> None:
        self._send(
            "DELETE",
            f"{LINKEDIN_API_BASE}/ugcPosts/{urllib.parse.quote(remote_post_id, safe='')}",
            "delete",
            token=self._access_token(account),
            headers=dict(RESTLI_HEADERS),
        )

    def get_analytics(self, account: SocialAccount, remote_post_id: str) -> AnalyticsData:
        # Share statistics need extra partner permissions; report zeros.
        return AnalyticsData()

    def _upload_media(self, token: str, person_id: str, item: MediaItem) -> str:
        """Register an upload, PUT the bytes, return the asset URN."""
        register = {
            "registerUploadRequest": {
                "recipes": ["urn:li:digitalmediaRecipe:feedshare-image"],
                "owner": _person_urn(person_id),
                "serviceRelationships": [{
                    "relationshipType": "OWNER",
                    "identifier": "urn:li:userGeneratedContent",
                }],
            },
        }
        response = self._send(
            "POST", f"{LINKEDIN_API_BASE}/assets?action=registerUpload",
            "media registration",
            token=token,
            headers={"Content-Type": "application/json", **RESTLI_HEADERS},
            data=json_body(register),
        )
        upload = RegisteredUpload.from_payload(self._json(response, "media registration"))

        self._send(
            "PUT", upload.upload_url, "media upload",
            token=token,
            headers={"Content-Type": item.file_type},
            data=self._download(item),
        )
        return upload.asset


def _person_urn(person_id: str) -> str:
    return f"urn:li:person:{person_id}"
