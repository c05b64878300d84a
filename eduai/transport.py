"""
HTTP primitives for the offline layer.

``Request`` and ``Response`` are small value objects that can be stored in
the response cache and replayed.  A *fetcher* is any callable taking a
``Request`` and returning a ``Response``; it raises ``NetworkError`` when
the server cannot be reached.  ``RequestsFetcher`` is the production
fetcher built on ``requests``.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional
from urllib.parse import urljoin, urlsplit

import requests
from requests.structures import CaseInsensitiveDict

from eduai.errors import NetworkError

logger = logging.getLogger(__name__)

OFFLINE_API_MESSAGE = (
    "You are currently offline. Please connect to the internet to access this feature."
)
OFFLINE_CONTENT_MESSAGE = (
    "This educational content is not available offline. Please download it first."
)


@dataclass
class Request:
    url: str
    method: str = "GET"
    headers: CaseInsensitiveDict = field(default_factory=CaseInsensitiveDict)
    body: Optional[bytes] = None

    def __post_init__(self):
        self.method = self.method.upper()
        if not isinstance(self.headers, CaseInsensitiveDict):
            self.headers = CaseInsensitiveDict(self.headers or {})

    @property
    def path(self) -> str:
        return urlsplit(self.url).path or "/"

    def accepts_html(self) -> bool:
        return "text/html" in self.headers.get("Accept", "")


@dataclass
class Response:
    status: int
    body: bytes = b""
    headers: CaseInsensitiveDict = field(default_factory=CaseInsensitiveDict)
    url: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.headers, CaseInsensitiveDict):
            self.headers = CaseInsensitiveDict(self.headers or {})

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        return json.loads(self.body)


Fetcher = Callable[[Request], Response]


def json_response(status: int, payload: Any) -> Response:
    return Response(
        status=status,
        body=json.dumps(payload).encode("utf-8"),
        headers={"Content-Type": "application/json"},
    )


def offline_api_response() -> Response:
    """Synthetic 503 returned for API calls made while offline."""
    return json_response(503, {"error": OFFLINE_API_MESSAGE})


def offline_content_response() -> Response:
    """Synthetic 503 returned for lesson content that was never downloaded."""
    return Response(
        status=503,
        body=OFFLINE_CONTENT_MESSAGE.encode("utf-8"),
        headers={"Content-Type": "text/plain"},
    )


class RequestsFetcher:
    """Fetcher backed by a ``requests.Session``.

    Relative URLs are resolved against ``base_url``.  Connection errors and
    timeouts surface as ``NetworkError``; HTTP error statuses are returned
    as normal responses.
    """

    def __init__(self, base_url: str, timeout: float = 10.0, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/") + "/"
        self.timeout = timeout
        self.session = session or requests.Session()

    def resolve(self, url: str) -> str:
        return urljoin(self.base_url, url)

    def __call__(self, request: Request) -> Response:
        target = self.resolve(request.url)
        try:
            resp = self.session.request(
                request.method,
                target,
                headers=dict(request.headers),
                data=request.body,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.debug("fetch %s %s failed: %s", request.method, target, e)
            raise NetworkError(str(e), url=target) from e

        return Response(
            status=resp.status_code,
            body=resp.content,
            headers=dict(resp.headers),
            url=request.url,
        )

    def close(self) -> None:
        self.session.close()


def post_json(fetcher: Fetcher, url: str, payload: Dict[str, Any]) -> Response:
    """POST ``payload`` as JSON through ``fetcher``."""
    return fetcher(
        Request(
            url=url,
            method="POST",
            headers={"Content-Type": "application/json"},
            body=json.dumps(payload).encode("utf-8"),
        )
    )
