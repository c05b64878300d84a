"""
Fetch interceptor: routes each outgoing request to a caching strategy.

Three request classes, three strategies:

* API (``/api/...``) -- network first, synthetic 503 JSON when offline.
* Educational content (``/lessons/...`` or paths mentioning content/quiz)
  -- cache first; a miss goes to the network but is never cached, because
  only explicitly downloaded lessons count as available offline.
* Everything else -- stale-while-revalidate against the current cache.

Network failures never propagate out of ``handle``; the caller always gets
a ``Response``.
"""

import enum
import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor, wait
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from eduai.cache_storage import Cache, CacheStorage
from eduai.errors import NetworkError
from eduai.transport import (
    Fetcher,
    Request,
    Response,
    offline_api_response,
    offline_content_response,
)

logger = logging.getLogger(__name__)


class RequestClass(enum.Enum):
    API = "api"
    EDUCATIONAL = "educational"
    OTHER = "other"


def classify_request(request: Request) -> RequestClass:
    path = request.path
    if path.startswith("/api/"):
        return RequestClass.API
    if path.startswith("/lessons/") or "content" in path or "quiz" in path:
        return RequestClass.EDUCATIONAL
    return RequestClass.OTHER


class FetchInterceptor:
    """Strategy dispatch for every request leaving the client."""

    def __init__(
        self,
        storage: CacheStorage,
        cache_name: str,
        fetcher: Fetcher,
        executor: Optional[Executor] = None,
        root_document: str = "/",
    ):
        self.storage = storage
        self.cache_name = cache_name
        self.fetcher = fetcher
        self.root_document = root_document
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=2, thread_name_prefix="revalidate")
        self._pending: List[Future] = []
        self._pending_lock = threading.Lock()

    @property
    def cache(self) -> Cache:
        return self.storage.open(self.cache_name)

    def handle(self, request: Request) -> Response:
        kind = classify_request(request)
        if kind is RequestClass.API:
            return self.network_first(request)
        if kind is RequestClass.EDUCATIONAL:
            return self.cache_first(request)
        return self.stale_while_revalidate(request)

    # ------------------------------------------------------------------
    # Strategies
    # ------------------------------------------------------------------

    def network_first(self, request: Request) -> Response:
        try:
            return self.fetcher(request)
        except NetworkError as e:
            logger.error("API fetch failed for %s: %s", request.url, e)
            return offline_api_response()

    def cache_first(self, request: Request) -> Response:
        cached = self._match(request)
        if cached is not None:
            return cached
        try:
            return self.fetcher(request)
        except NetworkError as e:
            logger.error("Educational content fetch failed for %s: %s", request.url, e)
            return offline_content_response()

    def stale_while_revalidate(self, request: Request) -> Response:
        cached = self._match(request)
        if cached is not None:
            self._schedule_revalidation(request)
            return cached

        try:
            response = self.fetcher(request)
        except NetworkError as e:
            logger.warning("Fetch failed for %s with no cached copy: %s", request.url, e)
            return self._offline_fallback(request)

        self._store(request, response)
        return response

    # ------------------------------------------------------------------
    # Revalidation
    # ------------------------------------------------------------------

    def _schedule_revalidation(self, request: Request) -> None:
        try:
            future = self._executor.submit(self._revalidate, request)
        except RuntimeError:
            # Executor already shut down; serve the cached copy unrefreshed
            logger.debug("Skipping revalidation of %s after shutdown", request.url)
            return
        with self._pending_lock:
            self._pending = [f for f in self._pending if not f.done()]
            self._pending.append(future)

    def _revalidate(self, request: Request) -> Optional[Response]:
        try:
            response = self.fetcher(request)
        except NetworkError as e:
            logger.debug("Revalidation of %s failed: %s", request.url, e)
            return None
        except Exception:
            logger.exception("Revalidation of %s raised", request.url)
            return None
        self._store(request, response)
        return response

    def wait_for_revalidation(self, timeout: Optional[float] = None) -> None:
        """Block until every scheduled background refresh has finished."""
        with self._pending_lock:
            pending = list(self._pending)
            self._pending = []
        if pending:
            wait(pending, timeout=timeout)

    def close(self) -> None:
        self.wait_for_revalidation()
        if self._owns_executor:
            self._executor.shutdown(wait=True)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _match(self, request: Request) -> Optional[Response]:
        try:
            return self.cache.match(request)
        except SQLAlchemyError as e:
            logger.error("Cache lookup failed for %s: %s", request.url, e)
            return None

    def _store(self, request: Request, response: Response) -> None:
        if request.method != "GET" or not response.ok:
            return
        try:
            self.cache.put(request, response)
        except SQLAlchemyError as e:
            logger.error("Cache write failed for %s: %s", request.url, e)

    def _offline_fallback(self, request: Request) -> Response:
        if request.accepts_html():
            root = self._match(Request(url=self.root_document))
            if root is not None:
                return root
        return Response(
            status=503,
            body=b"Offline",
            headers={"Content-Type": "text/plain"},
        )
