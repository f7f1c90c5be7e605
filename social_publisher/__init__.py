"""social-publisher: multi-platform social media publishing engine.

Encrypted OAuth account storage, per-platform clients behind one
interface, concurrent fan-out publishing and evergreen recycling.
"""

__version__ = "0.1.0"

from social_publisher.config import load_config, SocialConfig
from social_publisher.crypto import TokenCipher, generate_key
from social_publisher.errors import SocialPublisherError
from social_publisher.factory import Engine, build_engine, publish_due_posts
from social_publisher.models import (
    BatchSummary,
    Platform,
    PlatformPostResult,
    PostStatus,
    SocialAccount,
    SocialPost,
)
from social_publisher.publisher import Publisher
from social_publisher.registry import PlatformRegistry
from social_publisher.store import JsonStore, Store

__all__ = [
    "BatchSummary",
    "Engine",
    "JsonStore",
    "Platform",
    "PlatformPostResult",
    "PlatformRegistry",
    "PostStatus",
    "Publisher",
    "SocialAccount",
    "SocialConfig",
    "SocialPost",
    "SocialPublisherError",
    "Store",
    "TokenCipher",
    "build_engine",
    "generate_key",
    "load_config",
    "publish_due_posts",
]
