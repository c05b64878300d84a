"""
Offline worker: the event surface of the EduAI offline layer.

Wires the cache storage, lifecycle manager, fetch interceptor, client
registry and sync trigger together and exposes one method per platform
event (install, activate, fetch, message, sync).
"""

import logging
from concurrent.futures import Executor
from typing import Any, Dict, Optional

from eduai.cache_lifecycle import CacheLifecycle
from eduai.cache_storage import CacheStorage
from eduai.clients import ClientRegistry
from eduai.config import CacheSettings, SyncSettings, cache_settings, sync_settings
from eduai.database import get_engine, get_session_factory, init_db
from eduai.interceptor import FetchInterceptor
from eduai.result_queue import ResultQueue
from eduai.sync import SyncReport, SyncTrigger
from eduai.transport import Fetcher, Request, RequestsFetcher, Response

logger = logging.getLogger(__name__)


class OfflineWorker:
    def __init__(
        self,
        engine,
        cache: CacheSettings,
        sync: SyncSettings,
        fetcher: Fetcher,
        executor: Optional[Executor] = None,
    ):
        self.engine = engine
        self.fetcher = fetcher
        init_db(engine)
        session_factory = get_session_factory(engine)

        self.clients = ClientRegistry()
        self.storage = CacheStorage(session_factory, origin=sync.api_base_url)
        self.queue = ResultQueue(engine, session_factory)
        self.lifecycle = CacheLifecycle(cache, self.storage, fetcher, self.clients)
        self.interceptor = FetchInterceptor(self.storage, cache.version, fetcher, executor=executor)
        self.sync_trigger = SyncTrigger(self.queue, fetcher, sync)

    # ------------------------------------------------------------------
    # Platform events
    # ------------------------------------------------------------------

    def on_install(self) -> int:
        return self.lifecycle.install()

    def on_activate(self):
        return self.lifecycle.activate()

    def on_fetch(self, request: Request) -> Response:
        return self.interceptor.handle(request)

    def on_message(self, message: Dict[str, Any]) -> Optional[bool]:
        return self.lifecycle.handle_message(message)

    def on_sync(self, tag: str) -> Optional[SyncReport]:
        return self.sync_trigger.on_sync(tag)

    # ------------------------------------------------------------------

    def fetch(self, url: str, method: str = "GET", headers=None, body: Optional[bytes] = None) -> Response:
        """Convenience wrapper building a Request for ``on_fetch``."""
        return self.on_fetch(Request(url=url, method=method, headers=headers or {}, body=body))

    def close(self) -> None:
        self.interceptor.close()
        if hasattr(self.fetcher, "close"):
            self.fetcher.close()
        self.engine.dispose()


def create_worker(
    config: Dict[str, Any],
    fetcher: Optional[Fetcher] = None,
    executor: Optional[Executor] = None,
    engine=None,
) -> OfflineWorker:
    """
    Build an OfflineWorker from an application config dict.

    Args:
        config: Config dict as returned by ``load_config``.
        fetcher: Transport override; defaults to a ``RequestsFetcher``
            pointed at ``api.base_url``.
        executor: Executor for background revalidation.
        engine: Engine override; defaults to the SQLite file at
            ``paths.database_file``.
    """
    settings = sync_settings(config)
    if fetcher is None:
        fetcher = RequestsFetcher(settings.api_base_url, timeout=settings.timeout_seconds)
    if engine is None:
        engine = get_engine(config["paths"]["database_file"])
    return OfflineWorker(engine, cache_settings(config), settings, fetcher, executor=executor)
