"""
Background sync of queued quiz results.

When connectivity is restored the platform fires a sync event tagged
``sync-quiz-results``; ``SyncTrigger.on_sync`` then drains the local
result queue against ``POST /api/users/<userId>/quiz-results``.

Records are submitted one at a time.  A 2xx response deletes the record.
Any other outcome is counted against the record; after ``max_attempts``
failures, or on a permanent client error, the record is dead-lettered
instead of being retried forever.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from eduai.config import SyncSettings
from eduai.errors import NetworkError
from eduai.result_queue import STATUS_FAILED, ResultQueue, to_payload
from eduai.transport import Fetcher, post_json

logger = logging.getLogger(__name__)

SYNC_TAG = "sync-quiz-results"

# Client errors that may succeed on a later attempt
RETRYABLE_CLIENT_STATUSES = {408, 425, 429}


@dataclass
class SyncReport:
    synced: List[str] = field(default_factory=list)
    retained: List[str] = field(default_factory=list)
    dead_lettered: List[str] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return len(self.synced) + len(self.retained) + len(self.dead_lettered)


def quiz_results_url(base_url: str, user_id: int) -> str:
    return f"{base_url.rstrip('/')}/api/users/{user_id}/quiz-results"


def is_permanent_failure(status: int) -> bool:
    """A 4xx the server will keep rejecting no matter how often we retry."""
    return 400 <= status < 500 and status not in RETRYABLE_CLIENT_STATUSES


def sync_quiz_results(queue: ResultQueue, fetcher: Fetcher, settings: SyncSettings) -> SyncReport:
    """
    Upload every pending quiz result, one record at a time.

    Args:
        queue: Local result queue to drain.
        fetcher: Transport used for the POST requests.
        settings: API base URL and retry limit.

    Returns:
        SyncReport listing which record ids were synced, kept for retry, or
        dead-lettered.
    """
    report = SyncReport()
    try:
        records = queue.pending()
    except SQLAlchemyError as e:
        logger.error("Error during quiz result sync: could not read queue: %s", e)
        return report

    if not records:
        return report

    logger.info("Syncing %d queued quiz results", len(records))
    for record in records:
        url = quiz_results_url(settings.api_base_url, record.user_id)
        try:
            response = post_json(fetcher, url, to_payload(record))
        except NetworkError as e:
            _record_failure(queue, record.id, str(e), settings, False, report)
            continue

        if response.ok:
            try:
                queue.delete(record.id)
            except SQLAlchemyError as e:
                # The server has it; the next sync resubmits and the API
                # deduplicates on the client id.
                logger.error("Synced quiz result %s but could not delete it: %s", record.id, e)
                continue
            report.synced.append(record.id)
            continue

        error = f"HTTP {response.status}"
        logger.warning("Server rejected quiz result %s: %s", record.id, _server_message(response))
        _record_failure(queue, record.id, error, settings, is_permanent_failure(response.status), report)

    logger.info(
        "Quiz result sync finished: %d synced, %d retained, %d dead-lettered",
        len(report.synced),
        len(report.retained),
        len(report.dead_lettered),
    )
    return report


def _server_message(response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text.strip() or "(empty body)"
    if isinstance(payload, dict) and payload.get("error"):
        return str(payload["error"])
    return response.text.strip()


def _record_failure(queue, result_id, error, settings, permanent, report):
    logger.warning("Failed to sync quiz result %s: %s", result_id, error)
    try:
        status = queue.record_failure(result_id, error, settings.max_attempts, permanent=permanent)
    except SQLAlchemyError as e:
        logger.error("Could not record sync failure for %s: %s", result_id, e)
        report.retained.append(result_id)
        return
    if status == STATUS_FAILED:
        report.dead_lettered.append(result_id)
    else:
        report.retained.append(result_id)


class SyncTrigger:
    """Runs the queue drain in response to tagged sync events.

    Overlapping events do not drain concurrently: a second event arriving
    while a drain is running returns ``None`` immediately.
    """

    def __init__(self, queue: ResultQueue, fetcher: Fetcher, settings: SyncSettings):
        self.queue = queue
        self.fetcher = fetcher
        self.settings = settings
        self._lock = threading.Lock()

    def on_sync(self, tag: str) -> Optional[SyncReport]:
        if tag != self.settings.tag:
            logger.debug("Ignoring sync event %r", tag)
            return None
        if not self._lock.acquire(blocking=False):
            logger.info("Quiz result sync already running; skipping %r", tag)
            return None
        try:
            self.queue.ensure_store()
            return sync_quiz_results(self.queue, self.fetcher, self.settings)
        finally:
            self._lock.release()
