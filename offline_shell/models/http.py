"""
Request and response value types shared by the classifier, the strategies and
the cache store.
"""

import base64
from dataclasses import dataclass, field, replace
from enum import Enum
from functools import cached_property
from typing import Any
from urllib.parse import parse_qs, urljoin, urlsplit

from multidict import CIMultiDict

HTTP_SCHEMES = ("http", "https")


class Category(Enum):
    """How an intercepted request is served."""

    STATIC_ASSET = "static-asset"
    API_DATA = "api-data"
    DEFAULT = "default"


@dataclass(frozen=True)
class RequestRecord:
    """
    An intercepted request. Lives for a single classify-dispatch-respond cycle
    and is never persisted.
    """

    url: str
    method: str = "GET"
    destination: str = ""
    headers: dict[str, str] = field(default_factory=dict, hash=False)
    body: bytes = b""

    @cached_property
    def _parts(self):
        return urlsplit(self.url)

    @property
    def scheme(self) -> str:
        return self._parts.scheme.lower()

    @property
    def is_http(self) -> bool:
        return self.scheme in HTTP_SCHEMES

    @property
    def path(self) -> str:
        return self._parts.path or "/"

    @property
    def query(self) -> dict[str, list[str]]:
        """Query parameters; parameters without a value are kept."""
        return parse_qs(self._parts.query, keep_blank_values=True)

    @property
    def is_navigation(self) -> bool:
        return self.destination == "document"

    @property
    def cache_key(self) -> str:
        return request_key(self.method, self.url)

    @property
    def root_url(self) -> str:
        """URL of the application shell document on this request's origin."""
        return urljoin(self.url, "/")


def request_key(method: str, url: str) -> str:
    """Normalized request identity used as the cache key."""
    return f"{method.upper()} {url.split('#', 1)[0]}"


@dataclass(frozen=True)
class CapturedResponse:
    """
    An immutable snapshot of a response (status, headers, body).

    Headers are a case-insensitive multidict so repeated fields such as
    Set-Cookie survive capture, storage and replay.
    """

    status: int
    headers: CIMultiDict = field(default_factory=CIMultiDict, hash=False)
    body: bytes = b""
    url: str = ""

    def __post_init__(self):
        if not isinstance(self.headers, CIMultiDict):
            object.__setattr__(self, "headers", CIMultiDict(self.headers))

    @property
    def ok(self) -> bool:
        return 200 <= self.status <= 299

    @property
    def content_type(self) -> str:
        return self.headers.get("Content-Type", "")

    def clone(self) -> "CapturedResponse":
        return replace(self, headers=self.headers.copy())

    def text(self, encoding: str = "utf-8") -> str:
        return self.body.decode(encoding)

    def to_dict(self) -> dict[str, Any]:
        """Serializes the snapshot into a JSON-safe dictionary."""
        return {
            "status": self.status,
            "headers": [[name, value] for name, value in self.headers.items()],
            "body": base64.b64encode(self.body).decode("ascii"),
            "url": self.url,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CapturedResponse":
        headers = data.get("headers", [])
        if isinstance(headers, dict):
            headers = headers.items()
        return cls(
            status=int(data["status"]),
            headers=CIMultiDict((name, value) for name, value in headers),
            body=base64.b64decode(data.get("body", "")),
            url=data.get("url", ""),
        )
