"""Shared fixtures: a recording fake transport and a wired engine."""

from __future__ import annotations

import json
import threading
from datetime import timedelta

import pytest

from social_publisher.accounts import AccountManager
from social_publisher.crypto import TokenCipher
from social_publisher.evergreen import EvergreenScheduler
from social_publisher.models import Platform, PostStatus, SocialAccount, SocialPost, utcnow
from social_publisher.platforms import LinkedInClient, TwitterClient
from social_publisher.publisher import Publisher
from social_publisher.registry import PlatformRegistry
from social_publisher.store import JsonStore
from social_publisher.transport import HttpResponse, HttpTransport, TransportError

TEST_KEY = bytes(range(32))


class FakeTransport(HttpTransport):
    """Serves canned responses by (method, URL prefix) and records every call.

    The longest matching prefix wins. A route with several responses hands
    them out in order and then keeps repeating the last one.
    """

    def __init__(self) -> None:
        super().__init__(timeout=1.0)
        self.calls: list[dict] = []
        self._routes: list[tuple[str, str, list]] = []
        self._lock = threading.Lock()

    def add(self, method, url_prefix, *responses):
        self._routes.append((method, url_prefix, list(responses)))

    def ok(self, method, url_prefix, body=None, status=200, headers=None):
        self.add(method, url_prefix, _response(status, body, headers))

    def fail(self, method, url_prefix, status, body=""):
        self.add(method, url_prefix, _response(status, body, None))

    def unreachable(self, method, url_prefix):
        self.add(method, url_prefix, TransportError(f"{method} {url_prefix} timed out"))

    def request(self, method, url, headers=None, data=None):
        with self._lock:
            self.calls.append({"method": method, "url": url, "headers": headers or {}, "data": data})
            matches = [r for r in self._routes if r[0] == method and url.startswith(r[1])]
            if not matches:
                return HttpResponse(404, b"no route")
            _, _, responses = max(matches, key=lambda r: len(r[1]))
            result = responses.pop(0) if len(responses) > 1 else responses[0]
        if isinstance(result, Exception):
            raise result
        return result

    def calls_to(self, method, url_prefix):
        return [c for c in self.calls if c["method"] == method and c["url"].startswith(url_prefix)]


def _response(status, body, headers):
    if isinstance(body, (dict, list)):
        raw = json.dumps(body).encode("utf-8")
    elif isinstance(body, str):
        raw = body.encode("utf-8")
    else:
        raw = body or b""
    return HttpResponse(status, raw, headers or {})


@pytest.fixture
def cipher():
    return TokenCipher(TEST_KEY)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def store():
    return JsonStore()


@pytest.fixture
def twitter(cipher, transport):
    return TwitterClient(
        cipher, transport,
        client_id="tw-id", client_secret="tw-secret",
        redirect_uri="http://localhost:3000/api/social/oauth/twitter/callback",
    )


@pytest.fixture
def linkedin(cipher, transport):
    return LinkedInClient(
        cipher, transport,
        client_id="li-id", client_secret="li-secret",
        redirect_uri="http://localhost:3000/api/social/oauth/linkedin/callback",
    )


@pytest.fixture
def registry(twitter, linkedin):
    return PlatformRegistry([twitter, linkedin])


@pytest.fixture
def accounts(store, registry):
    return AccountManager(store, registry)


@pytest.fixture
def evergreen(store):
    return EvergreenScheduler(store)


@pytest.fixture
def publisher(store, registry, accounts, evergreen):
    return Publisher(store, registry, accounts, evergreen=evergreen, max_workers=4)


@pytest.fixture
def make_account(store, cipher):
    def _make(platform=Platform.TWITTER, user_id="u1", refresh=True, expires_in=3600, **kwargs):
        account = SocialAccount(
            user_id=user_id,
            platform=platform,
            platform_user_id=kwargs.pop("platform_user_id", f"{platform.value}-42"),
            platform_username=kwargs.pop("platform_username", "alice"),
            access_token=cipher.encrypt(kwargs.pop("access", "access-1")),
            refresh_token=cipher.encrypt("refresh-1") if refresh else None,
            expires_at=utcnow() + timedelta(seconds=expires_in) if expires_in is not None else None,
            **kwargs,
        )
        store.save_account(account)
        return account
    return _make


@pytest.fixture
def make_post(store):
    def _make(platforms=(Platform.TWITTER,), user_id="u1", content="Hello world", **kwargs):
        kwargs.setdefault("status", PostStatus.SCHEDULED)
        kwargs.setdefault("scheduled_at", utcnow() - timedelta(minutes=1))
        post = SocialPost(user_id=user_id, content=content, target_platforms=list(platforms), **kwargs)
        store.insert_post(post)
        return post
    return _make
