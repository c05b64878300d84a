"""
Persistent response cache with named namespaces.

Mirrors the browser Cache Storage model: ``CacheStorage`` holds named
caches, each ``Cache`` maps a request key (method + URL) to a stored
response.  Entries live in the local SQLite store so downloaded lessons
survive restarts.  Writes are last-write-wins.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Iterable, List, Optional, Tuple, Union
from urllib.parse import urlsplit

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from eduai.database import CachedResponse, CacheNamespace
from eduai.errors import CachePopulationError, NetworkError
from eduai.transport import Fetcher, Request, Response

logger = logging.getLogger(__name__)

RequestLike = Union[Request, str]


def _as_request(request: RequestLike) -> Request:
    if isinstance(request, Request):
        return request
    return Request(url=request)


def cache_url(url: str, origin: Optional[str] = None) -> str:
    """Key under which ``url`` is cached.

    URLs on ``origin`` are reduced to path and query, so ``/lessons/1`` and
    ``http://host/lessons/1`` share one entry.  Other URLs are kept as is.
    """
    if not origin:
        return url
    parts = urlsplit(url)
    home = urlsplit(origin)
    if not parts.scheme or (parts.scheme, parts.netloc) != (home.scheme, home.netloc):
        return url
    path = parts.path or "/"
    return f"{path}?{parts.query}" if parts.query else path


def _to_response(row: CachedResponse) -> Response:
    return Response(
        status=row.status,
        body=row.body or b"",
        headers=dict(row.headers or {}),
        url=row.url,
    )


class CacheStorage:
    """All cache namespaces in one local store."""

    def __init__(self, session_factory, origin: Optional[str] = None):
        self._session_factory = session_factory
        self.origin = origin

    @contextmanager
    def session_scope(self):
        """Yield a session that commits on success and rolls back on error."""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def open(self, name: str) -> "Cache":
        """Return the cache called ``name``, creating it if needed."""
        with self.session_scope() as session:
            if session.get(CacheNamespace, name) is None:
                session.add(CacheNamespace(name=name))
        return Cache(name, self)

    def keys(self) -> List[str]:
        """Names of every existing cache, oldest first."""
        with self.session_scope() as session:
            rows = session.query(CacheNamespace).order_by(CacheNamespace.created_at, CacheNamespace.name).all()
            return [row.name for row in rows]

    def delete(self, name: str) -> bool:
        """Delete a cache and all of its entries. Returns False if absent."""
        with self.session_scope() as session:
            namespace = session.get(CacheNamespace, name)
            if namespace is None:
                return False
            session.query(CachedResponse).filter_by(cache_name=name).delete()
            session.delete(namespace)
        logger.info("Deleted cache %s", name)
        return True


class Cache:
    """One named cache."""

    def __init__(self, name: str, storage: CacheStorage):
        self.name = name
        self.storage = storage

    def __repr__(self):
        return f"Cache({self.name!r})"

    def _url(self, request: Request) -> str:
        return cache_url(request.url, self.storage.origin)

    def _query(self, session, request: Request):
        return session.query(CachedResponse).filter_by(
            cache_name=self.name, method=request.method, url=self._url(request)
        )

    def match(self, request: RequestLike) -> Optional[Response]:
        request = _as_request(request)
        with self.storage.session_scope() as session:
            row = self._query(session, request).first()
            return _to_response(row) if row is not None else None

    def put(self, request: RequestLike, response: Response) -> None:
        """Store ``response`` under ``request``, replacing any previous entry."""
        request = _as_request(request)
        try:
            with self.storage.session_scope() as session:
                self._write(session, request, response)
        except IntegrityError:
            # Another writer inserted the same key first; overwrite it.
            with self.storage.session_scope() as session:
                self._write(session, request, response)

    def _write(self, session, request: Request, response: Response) -> None:
        row = self._query(session, request).first()
        if row is None:
            row = CachedResponse(cache_name=self.name, method=request.method, url=self._url(request))
            session.add(row)
        row.status = response.status
        row.headers = dict(response.headers)
        row.body = response.body
        row.stored_at = datetime.utcnow()

    def delete(self, request: RequestLike) -> bool:
        """Remove one entry. Returns False when nothing was stored."""
        request = _as_request(request)
        with self.storage.session_scope() as session:
            removed = self._query(session, request).delete()
        return removed > 0

    def keys(self) -> List[Tuple[str, str]]:
        """(method, url) of every entry, in insertion order."""
        with self.storage.session_scope() as session:
            rows = (
                session.query(CachedResponse.method, CachedResponse.url)
                .filter_by(cache_name=self.name)
                .order_by(CachedResponse.id)
                .all()
            )
            return [(method, url) for method, url in rows]

    def add_all(self, urls: Iterable[str], fetcher: Fetcher) -> None:
        """
        Fetch every URL and store all responses, or store nothing.

        Raises:
            CachePopulationError: a fetch failed, returned a non-2xx status,
                or the store rejected the write.
        """
        fetched = []
        for url in urls:
            request = _as_request(url)
            try:
                response = fetcher(request)
            except NetworkError as e:
                raise CachePopulationError(f"Failed to fetch {url}: {e}") from e
            if not response.ok:
                raise CachePopulationError(f"Failed to fetch {url}: HTTP {response.status}")
            fetched.append((request, response))

        try:
            with self.storage.session_scope() as session:
                for request, response in fetched:
                    self._write(session, request, response)
                    session.flush()
        except SQLAlchemyError as e:
            raise CachePopulationError(f"Failed to store cache entries: {e}") from e
