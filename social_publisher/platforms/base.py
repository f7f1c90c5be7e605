"""Capability interface shared by every platform client.

Each client wraps one platform's REST API and owns that platform's
publishing policy (length limits, media caps, upload protocol). Tokens are
decrypted only at the moment a request is built.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

import structlog

from social_publisher.crypto import TokenCipher
from social_publisher.errors import (
    AuthError,
    ConfigError,
    PlatformAPIError,
    SocialPublisherError,
)
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
from social_publisher.transport import HttpResponse, HttpTransport, TransportError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class OAuthConfig:
    client_id: str
    client_secret: str
    redirect_uri: str
    scopes: tuple[str, ...]
    auth_url: str
    token_url: str


@dataclass(frozen=True)
class PlatformUser:
    id: str
    username: str
    name: str
    profile_image_url: str | None = None


@dataclass(frozen=True)
class TokenResponse:
    """Standard OAuth 2.0 token endpoint payload."""
    access_token: str
    refresh_token: str | None = None
    expires_in: int | None = None

    @classmethod
    def from_payload(cls, platform: str, payload: Any) -> TokenResponse:
        access_token = require(platform, payload, "access_token")
        expires_in = payload.get("expires_in")
        return cls(
            access_token=str(access_token),
            refresh_token=payload.get("refresh_token") or None,
            expires_in=int(expires_in) if expires_in is not None else None,
        )


def require(platform: str, payload: Any, *path: str) -> Any:
    """Walk ``path`` through nested dicts, failing on any missing key."""
    node = payload
    for key in path:
        if not isinstance(node, dict) or node.get(key) is None:
            raise PlatformAPIError(
                platform, f"malformed response: missing {'.'.join(path)}",
            )
        node = node[key]
    return node


class PlatformClient(ABC):
    """Base class for platform REST clients."""

    platform: Platform
    supports_refresh: bool = False
    requires_pkce: bool = False
    max_media: int = 0
    scopes: tuple[str, ...] = ()
    auth_url: str = ""
    token_url: str = ""

    def __init__(
        self,
        cipher: TokenCipher,
        transport: HttpTransport,
        client_id: str = "",
        client_secret: str = "",
        redirect_uri: str = "",
    ) -> None:
        self._cipher = cipher
        self._transport = transport
        self._client_id = client_id
        self._client_secret = client_secret
        self._redirect_uri = redirect_uri

    @property
    def name(self) -> str:
        return self.platform.value

    @property
    def oauth_config(self) -> OAuthConfig:
        if not self._client_id or not self._client_secret:
            raise ConfigError(f"{self.name} API credentials not configured")
        return OAuthConfig(
            client_id=self._client_id,
            client_secret=self._client_secret,
            redirect_uri=self._redirect_uri,
            scopes=self.scopes,
            auth_url=self.auth_url,
            token_url=self.token_url,
        )

    # -- capability interface --

    def validate_token(self, account: SocialAccount) -> bool:
        """True if the platform accepts the account's token. Never raises."""
        try:
            self._get_user(self._cipher.decrypt(account.access_token))
            return True
        except SocialPublisherError as exc:
            logger.info(
                "token_validation_failed",
                platform=self.name, account_id=account.id, error=str(exc),
            )
            return False

    @abstractmethod
    def refresh_token(self, account: SocialAccount) -> TokenPair: ...

    @abstractmethod
    def publish_post(
        self,
        account: SocialAccount,
        post: SocialPost,
        media: list[MediaItem],
    ) -> PublishedPost: ...

    @abstractmethod
    def delete_post(self, account: SocialAccount, remote_post_id: str) -> None: ...

    @abstractmethod
    def get_analytics(self, account: SocialAccount, remote_post_id: str) -> AnalyticsData: ...

    # -- OAuth --

    @abstractmethod
    def build_auth_url(self, state: str, code_challenge: str | None = None) -> str: ...

    @abstractmethod
    def exchange_code(self, code: str, code_verifier: str | None = None) -> TokenPair: ...

    def get_user_info(self, tokens: TokenPair) -> PlatformUser:
        return self._get_user(self._cipher.decrypt(tokens.access_token))

    @abstractmethod
    def _get_user(self, access_token: str) -> PlatformUser: ...

    # -- helpers --

    def _access_token(self, account: SocialAccount) -> str:
        return self._cipher.decrypt(account.access_token)

    def _send(
        self,
        method: str,
        url: str,
        action: str,
        token: str | None = None,
        headers: dict[str, str] | None = None,
        data: bytes | None = None,
    ) -> HttpResponse:
        """Send a request and raise on anything but a 2xx response."""
        all_headers = dict(headers or {})
        if token:
            all_headers["Authorization"] = f"Bearer {token}"
        try:
            response = self._transport.request(method, url, headers=all_headers, data=data)
        except TransportError as exc:
            raise PlatformAPIError(self.name, f"{action} failed: {exc}") from exc
        if response.status == 401:
            raise AuthError(self.name, f"{action} unauthorized", response.status, response.text)
        if not response.ok:
            raise PlatformAPIError(self.name, f"{action} failed", response.status, response.text)
        return response

    def _json(self, response: HttpResponse, action: str) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise PlatformAPIError(
                self.name, f"{action} returned invalid JSON", response.status, response.text,
            ) from exc

    def _download(self, item: MediaItem) -> bytes:
        return self._send("GET", item.file_url, f"media download {item.id}").body

    def _token_pair(self, payload: Any) -> TokenPair:
        parsed = TokenResponse.from_payload(self.name, payload)
        expires_at = (
            utcnow() + timedelta(seconds=parsed.expires_in)
            if parsed.expires_in is not None else None
        )
        return TokenPair(
            access_token=self._cipher.encrypt(parsed.access_token),
            refresh_token=(
                self._cipher.encrypt(parsed.refresh_token) if parsed.refresh_token else None
            ),
            expires_at=expires_at,
        )
