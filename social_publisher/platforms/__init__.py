"""Platform clients behind the common PlatformClient interface."""

from social_publisher.platforms.base import OAuthConfig, PlatformClient, PlatformUser
from social_publisher.platforms.linkedin import LinkedInClient
from social_publisher.platforms.twitter import TwitterClient

__all__ = [
    "OAuthConfig",
    "PlatformClient",
    "PlatformUser",
    "LinkedInClient",
    "TwitterClient",
]
