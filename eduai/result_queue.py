"""
Local queue of quiz results waiting to be uploaded.

Results submitted while offline are stored here, keyed by a client-side
id, and drained by the sync trigger once connectivity returns.  Each
record is either ``pending`` (will be retried) or ``failed`` (dead
letter: retries exhausted or permanently rejected by the server).
"""

import logging
import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import func

from eduai.database import PendingQuizResult, init_db

logger = logging.getLogger(__name__)

STATUS_PENDING = "pending"
STATUS_FAILED = "failed"


def to_payload(record: PendingQuizResult) -> Dict[str, Any]:
    """Serialize a queued record as the JSON body sent to the API."""
    return {
        "id": record.id,
        "userId": record.user_id,
        "lessonId": record.lesson_id,
        "score": record.score,
        "maxScore": record.max_score,
        "timestamp": record.timestamp.isoformat() if record.timestamp else None,
    }


class ResultQueue:
    """Id-keyed store of ``PendingQuizResult`` rows."""

    def __init__(self, engine, session_factory):
        self.engine = engine
        self._session_factory = session_factory
        self._ready = False

    def ensure_store(self) -> None:
        """Create the queue table if it does not exist yet."""
        if not self._ready:
            init_db(self.engine)
            self._ready = True

    @contextmanager
    def session_scope(self):
        self.ensure_store()
        session = self._session_factory(expire_on_commit=False)
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def enqueue(
        self,
        user_id: int,
        lesson_id: int,
        score: float,
        max_score: float,
        timestamp: Optional[datetime] = None,
        result_id: Optional[str] = None,
    ) -> PendingQuizResult:
        """Queue a quiz result for upload and return the stored record."""
        record = PendingQuizResult(
            id=result_id or uuid.uuid4().hex,
            user_id=user_id,
            lesson_id=lesson_id,
            score=score,
            max_score=max_score,
            timestamp=timestamp or datetime.utcnow(),
            status=STATUS_PENDING,
            attempts=0,
        )
        with self.session_scope() as session:
            last = session.query(func.max(PendingQuizResult.sequence)).scalar()
            record.sequence = (last or 0) + 1
            session.add(record)
        logger.info("Queued quiz result %s for user %s lesson %s", record.id, user_id, lesson_id)
        return record

    def get(self, result_id: str) -> Optional[PendingQuizResult]:
        with self.session_scope() as session:
            return session.get(PendingQuizResult, result_id)

    def _list(self, status: Optional[str]) -> List[PendingQuizResult]:
        with self.session_scope() as session:
            query = session.query(PendingQuizResult)
            if status is not None:
                query = query.filter_by(status=status)
            return query.order_by(PendingQuizResult.sequence).all()

    def pending(self) -> List[PendingQuizResult]:
        return self._list(STATUS_PENDING)

    def failed(self) -> List[PendingQuizResult]:
        return self._list(STATUS_FAILED)

    def all(self) -> List[PendingQuizResult]:
        return self._list(None)

    def count(self, status: Optional[str] = None) -> int:
        with self.session_scope() as session:
            query = session.query(PendingQuizResult)
            if status is not None:
                query = query.filter_by(status=status)
            return query.count()

    def delete(self, result_id: str) -> bool:
        with self.session_scope() as session:
            removed = session.query(PendingQuizResult).filter_by(id=result_id).delete()
        return removed > 0

    def record_failure(self, result_id: str, error: str, max_attempts: int, permanent: bool = False) -> str:
        """Count a failed upload attempt.

        Returns the record's new status; ``failed`` once ``max_attempts``
        is reached or when ``permanent`` is set.
        """
        with self.session_scope() as session:
            record = session.get(PendingQuizResult, result_id)
            if record is None:
                return STATUS_FAILED
            record.attempts = (record.attempts or 0) + 1
            record.last_error = error
            record.last_attempt_at = datetime.utcnow()
            if permanent or record.attempts >= max_attempts:
                record.status = STATUS_FAILED
            return record.status

    def requeue_failed(self) -> int:
        """Move every dead-lettered record back to pending with zero attempts."""
        with self.session_scope() as session:
            records = session.query(PendingQuizResult).filter_by(status=STATUS_FAILED).all()
            for record in records:
                record.status = STATUS_PENDING
                record.attempts = 0
                record.last_error = None
            return len(records)

    def purge_failed(self) -> int:
        """Delete every dead-lettered record."""
        with self.session_scope() as session:
            return session.query(PendingQuizResult).filter_by(status=STATUS_FAILED).delete()
