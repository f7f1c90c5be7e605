"""Minimal HTTP transport over urllib with a bounded timeout on every call.

Non-2xx responses are returned, not raised, so each platform client can
turn them into its own error messages. Network failures and timeouts raise
TransportError.
"""

from __future__ import annotations

import json
import socket
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass, field
from typing import Any

from social_publisher.errors import SocialPublisherError


class TransportError(SocialPublisherError):
    """Connection failure or timeout before a response arrived."""


@dataclass(frozen=True)
class HttpResponse:
    status: int
    body: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        if not self.body:
            return {}
        return json.loads(self.body.decode("utf-8"))

    def header(self, name: str) -> str | None:
        lowered = name.lower()
        return next((v for k, v in self.headers.items() if k.lower() == lowered), None)


class HttpTransport:
    """Sends requests with urllib."""

    def __init__(self, timeout: float = 30.0) -> None:
        self.timeout = timeout

    def request(
        self,
        method: str,
        url: str,
        headers: dict[str, str] | None = None,
        data: bytes | None = None,
    ) -> HttpResponse:
        req = urllib.request.Request(url, data=data, headers=headers or {}, method=method)
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                return HttpResponse(resp.status, resp.read(), dict(resp.headers.items()))
        except urllib.error.HTTPError as exc:
            body = exc.read() if exc.fp else b""
            return HttpResponse(exc.code, body, dict(exc.headers.items()) if exc.headers else {})
        except (socket.timeout, TimeoutError) as exc:
            raise TransportError(f"{method} {url} timed out after {self.timeout}s") from exc
        except urllib.error.URLError as exc:
            raise TransportError(f"{method} {url} failed: {exc.reason}") from exc


def form_body(params: dict[str, str]) -> bytes:
    return urllib.parse.urlencode(params).encode("utf-8")


def json_body(payload: Any) -> bytes:
    return json.dumps(payload).encode("utf-8")
