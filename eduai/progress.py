"""
Learner progress and quiz result records for EduAI.

Server-side persistence behind the progress, quiz-result and
recommendation API routes.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from eduai.database import Lesson, QuizResult, User, UserProgress
from eduai.recommendations import KEEP_HIGHEST, Recommendation, top_recommendations

logger = logging.getLogger(__name__)


def _parse_timestamp(value: Any) -> datetime:
    """Accept a datetime, an ISO-8601 string, or nothing (now)."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00")).replace(tzinfo=None)
        except ValueError:
            logger.warning("Unparseable timestamp %r, using now", value)
    return datetime.utcnow()


def get_user(session: Session, user_id: int) -> Optional[User]:
    return session.query(User).filter_by(id=user_id).first()


def list_lessons(session: Session, grade: Optional[int] = None) -> List[Lesson]:
    """
    Query the lesson catalog.

    Args:
        session: SQLAlchemy session
        grade: Only lessons for this grade (all grades if None)

    Returns:
        List of Lesson objects ordered by id
    """
    query = session.query(Lesson)
    if grade is not None:
        query = query.filter(Lesson.grade == grade)
    return query.order_by(Lesson.id).all()


def get_progress(session: Session, user_id: int) -> List[UserProgress]:
    return session.query(UserProgress).filter_by(user_id=user_id).order_by(UserProgress.id).all()


def upsert_progress(
    session: Session,
    user_id: int,
    lesson_id: int,
    completed: bool = False,
    time_spent: int = 0,
    last_accessed: Any = None,
) -> UserProgress:
    """
    Create or update the progress record for one user and lesson.

    Args:
        session: SQLAlchemy session
        user_id: Learner ID
        lesson_id: Lesson ID
        completed: Whether the lesson is finished
        time_spent: Total seconds spent on the lesson
        last_accessed: datetime or ISO string (defaults to now)

    Returns:
        The stored UserProgress object
    """
    record = session.query(UserProgress).filter_by(user_id=user_id, lesson_id=lesson_id).first()
    if record is None:
        record = UserProgress(user_id=user_id, lesson_id=lesson_id)
        session.add(record)
    record.completed = bool(completed)
    record.time_spent = int(time_spent or 0)
    record.last_accessed = _parse_timestamp(last_accessed)
    session.commit()
    return record


def list_quiz_results(session: Session, user_id: int) -> List[QuizResult]:
    return session.query(QuizResult).filter_by(user_id=user_id).order_by(QuizResult.id).all()


def record_quiz_result(
    session: Session,
    user_id: int,
    lesson_id: int,
    score: float,
    max_score: float,
    date_taken: Any = None,
    client_id: Optional[str] = None,
):
    """
    Store a quiz result, ignoring replays of an already stored client id.

    Offline clients resubmit a result if they never saw the first response,
    so a known ``client_id`` returns the existing row instead of inserting
    a duplicate.

    Returns:
        (QuizResult, created) tuple
    """
    if client_id:
        existing = session.query(QuizResult).filter_by(client_id=client_id).first()
        if existing is not None:
            logger.info("Quiz result %s already recorded, ignoring replay", client_id)
            return existing, False

    result = QuizResult(
        user_id=user_id,
        lesson_id=lesson_id,
        client_id=client_id or None,
        score=score,
        max_score=max_score,
        date_taken=_parse_timestamp(date_taken),
    )
    session.add(result)
    try:
        session.commit()
    except IntegrityError:
        # A concurrent replay stored the same client id between lookup and insert
        session.rollback()
        existing = None
        if client_id:
            existing = session.query(QuizResult).filter_by(client_id=client_id).first()
        if existing is None:
            raise
        logger.info("Quiz result %s recorded concurrently, ignoring replay", client_id)
        return existing, False
    return result, True


def recommendations_for_user(
    session: Session, user: User, limit: int = 5, keep: str = KEEP_HIGHEST
) -> List[Recommendation]:
    """Run the recommendation engine over one user's stored history."""
    return top_recommendations(
        user.grade,
        list_lessons(session),
        get_progress(session, user.id),
        list_quiz_results(session, user.id),
        limit=limit,
        keep=keep,
    )


def lesson_to_dict(lesson: Lesson) -> Dict[str, Any]:
    return {
        "id": lesson.id,
        "title": lesson.title,
        "description": lesson.description,
        "subjectId": lesson.subject_id,
        "grade": lesson.grade,
        "difficulty": lesson.difficulty,
        "duration": lesson.duration,
        "downloadUrl": lesson.download_url,
    }


def progress_to_dict(record: UserProgress) -> Dict[str, Any]:
    return {
        "id": record.id,
        "userId": record.user_id,
        "lessonId": record.lesson_id,
        "completed": record.completed,
        "timeSpent": record.time_spent,
        "lastAccessed": record.last_accessed.isoformat() if record.last_accessed else None,
    }


def quiz_result_to_dict(result: QuizResult) -> Dict[str, Any]:
    return {
        "id": result.id,
        "clientId": result.client_id,
        "userId": result.user_id,
        "lessonId": result.lesson_id,
        "score": result.score,
        "maxScore": result.max_score,
        "dateTaken": result.date_taken.isoformat() if result.date_taken else None,
    }
