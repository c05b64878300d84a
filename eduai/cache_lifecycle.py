"""
Cache lifecycle management: install, activate, and the lesson download
message protocol.

The live cache version and the static asset list come from
``CacheSettings``; nothing here reads module-level constants, so tests can
rotate versions deterministically.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from eduai.cache_storage import CacheStorage
from eduai.clients import ClientRegistry
from eduai.config import CacheSettings
from eduai.errors import CachePopulationError, InvalidMessageError
from eduai.transport import Fetcher

logger = logging.getLogger(__name__)

CACHE_LESSON = "CACHE_LESSON"
REMOVE_CACHED_LESSON = "REMOVE_CACHED_LESSON"
CLEAR_OLD_CACHES = "CLEAR_OLD_CACHES"
LESSON_CACHED = "LESSON_CACHED"
LESSON_REMOVED = "LESSON_REMOVED"


def _notification(kind: str, lesson_id: Any, success: bool, error: Optional[str] = None) -> Dict[str, Any]:
    message = {"type": kind, "lessonId": lesson_id, "success": success}
    if error is not None:
        message["error"] = error
    return message


class CacheLifecycle:
    """Owns the current cache namespace and the operations on it."""

    def __init__(
        self,
        settings: CacheSettings,
        storage: CacheStorage,
        fetcher: Fetcher,
        clients: Optional[ClientRegistry] = None,
    ):
        self.settings = settings
        self.storage = storage
        self.fetcher = fetcher
        self.clients = clients if clients is not None else ClientRegistry()

    @property
    def current_cache(self):
        return self.storage.open(self.settings.version)

    def install(self) -> int:
        """Pre-populate the static assets into the current cache.

        All-or-nothing: one failed asset aborts the whole population.

        Returns:
            Number of assets cached.

        Raises:
            CachePopulationError: if any asset could not be fetched or stored.
        """
        assets = list(self.settings.static_assets)
        logger.info("Caching %d static assets into %s", len(assets), self.settings.version)
        self.current_cache.add_all(assets, self.fetcher)
        return len(assets)

    def activate(self) -> List[str]:
        """Delete every cache other than the current version.

        Returns:
            Names of the deleted caches.
        """
        deleted = []
        for name in self.storage.keys():
            if name != self.settings.version:
                logger.info("Deleting old cache %s", name)
                self.storage.delete(name)
                deleted.append(name)
        return deleted

    def clear_old_caches(self) -> List[str]:
        return self.activate()

    def stale_caches(self) -> List[str]:
        """Caches that exist and are listed as previous versions."""
        previous = set(self.settings.previous_versions)
        return [name for name in self.storage.keys() if name in previous]

    def cache_lesson(self, urls: Sequence[str], lesson_id: Any) -> bool:
        """Download every URL of a lesson into the current cache and notify clients."""
        try:
            self.current_cache.add_all(urls, self.fetcher)
        except (CachePopulationError, SQLAlchemyError) as e:
            logger.error("Failed to cache lesson %s: %s", lesson_id, e)
            self.clients.post_message(_notification(LESSON_CACHED, lesson_id, False, str(e)))
            return False

        logger.info("Cached lesson %s (%d urls)", lesson_id, len(urls))
        self.clients.post_message(_notification(LESSON_CACHED, lesson_id, True))
        return True

    def remove_cached_lesson(self, urls: Sequence[str], lesson_id: Any) -> bool:
        """Remove a lesson's URLs from the current cache and notify clients.

        URLs that were never cached are ignored.
        """
        cache = self.current_cache
        try:
            for url in urls:
                cache.delete(url)
        except SQLAlchemyError as e:
            logger.error("Failed to remove cached lesson %s: %s", lesson_id, e)
            self.clients.post_message(_notification(LESSON_REMOVED, lesson_id, False, str(e)))
            return False

        self.clients.post_message(_notification(LESSON_REMOVED, lesson_id, True))
        return True

    def handle_message(self, message: Dict[str, Any]) -> Optional[bool]:
        """Dispatch one protocol message.

        Returns the operation outcome for lesson messages, ``None`` for
        cache cleanup and for messages that were ignored.
        """
        if not isinstance(message, dict):
            logger.warning("Ignoring non-dict message: %r", message)
            return None

        kind = message.get("type")
        try:
            if kind == CACHE_LESSON:
                urls, lesson_id = _lesson_fields(message)
                return self.cache_lesson(urls, lesson_id)
            if kind == REMOVE_CACHED_LESSON:
                urls, lesson_id = _lesson_fields(message)
                return self.remove_cached_lesson(urls, lesson_id)
            if kind == CLEAR_OLD_CACHES:
                self.clear_old_caches()
                return None
        except InvalidMessageError as e:
            logger.warning("Ignoring malformed %s message: %s", kind, e)
            return None

        logger.debug("Ignoring unknown message type %r", kind)
        return None


def _lesson_fields(message: Dict[str, Any]):
    urls = message.get("urls")
    if not isinstance(urls, (list, tuple)) or not all(isinstance(u, str) for u in urls):
        raise InvalidMessageError("'urls' must be a list of strings")
    if "lessonId" not in message:
        raise InvalidMessageError("'lessonId' is required")
    return list(urls), message["lessonId"]
