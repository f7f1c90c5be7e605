"""Error taxonomy for the publishing engine.

Per-account failures are recorded as failed PlatformPostResult rows by the
publisher; everything else propagates to the caller.
"""

from __future__ import annotations


class SocialPublisherError(Exception):
    """Base class for all engine errors."""


class ConfigError(SocialPublisherError):
    """Missing or malformed encryption key or platform credentials."""


class EncryptionError(SocialPublisherError):
    """Raised when a token cannot be encrypted (e.g. empty input)."""


class DecryptionError(SocialPublisherError):
    """Malformed token format or authentication tag mismatch."""


class ValidationError(SocialPublisherError):
    """A post cannot be published as requested."""


class NotFoundError(SocialPublisherError):
    """A post or account does not exist in the store."""

    def __init__(self, kind: str, object_id: str) -> None:
        self.kind = kind
        self.object_id = object_id
        super().__init__(f"{kind} not found: {object_id}")


class StoreError(SocialPublisherError):
    """The persistence layer could not read or write its records."""


class UnsupportedPlatformError(ValidationError):
    """Raised by the registry for platforms without a client."""

    def __init__(self, platform: str) -> None:
        self.platform = platform
        super().__init__(f"Platform {platform} is not yet supported")


class PlatformAPIError(SocialPublisherError):
    """Non-2xx response, transport failure or malformed payload from a platform.

    ``body`` holds the raw response text for diagnostics.
    """

    def __init__(
        self,
        platform: str,
        message: str,
        status: int | None = None,
        body: str = "",
    ) -> None:
        self.platform = platform
        self.status = status
        self.body = body
        detail = f"{platform} {message}"
        if status is not None:
            detail += f" ({status})"
        if body:
            detail += f": {body}"
        super().__init__(detail)


class AuthError(PlatformAPIError):
    """Token rejected by the platform, or no way to renew it."""
