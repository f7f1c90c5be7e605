"""Maps platform identifiers to their client instances.

Adding a platform means registering one more client here; the publisher
never branches on platform names.
"""

from __future__ import annotations

from typing import Iterable

from social_publisher.errors import UnsupportedPlatformError
from social_publisher.models import Platform
from social_publisher.platforms.base import PlatformClient


class PlatformRegistry:
    def __init__(self, clients: Iterable[PlatformClient] = ()) -> None:
        self._clients: dict[Platform, PlatformClient] = {}
        for client in clients:
            self.register(client)

    def register(self, client: PlatformClient) -> None:
        self._clients[client.platform] = client

    def get(self, platform: Platform | str) -> PlatformClient:
        """Return the client for ``platform``.

        Raises UnsupportedPlatformError for known platforms without a client
        (Facebook, Instagram, Threads) and for unknown identifiers.
        """
        try:
            key = Platform(platform)
        except ValueError as exc:
            raise UnsupportedPlatformError(str(platform)) from exc
        client = self._clients.get(key)
        if client is None:
            raise UnsupportedPlatformError(key.value)
        return client

    def supports(self, platform: Platform | str) -> bool:
        try:
            return Platform(platform) in self._clients
        except ValueError:
            return False

    @property
    def platforms(self) -> list[Platform]:
        return list(self._clients)
