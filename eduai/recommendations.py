"""
Lesson recommendation engine for EduAI.

Scores grade-appropriate lessons for a learner from their progress and
quiz history.  Pure functions only: callers fetch the catalog, progress
and quiz results and pass them in; nothing here performs I/O.

Inputs may be ORM objects or dicts, with camelCase (API JSON) or
snake_case (ORM) field names.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

logger = logging.getLogger(__name__)

HIGH_SCORE_RATIO = 0.8
LOW_SCORE_RATIO = 0.6
INTRO_MAX_DIFFICULTY = 3
LONG_SESSION_SECONDS = 1200

KEEP_HIGHEST = "highest"
KEEP_LAST = "last"


class Reason(str, enum.Enum):
    CONTINUE = "continue"
    NEW_CONTENT = "new_content"
    QUIZ_PERFORMANCE = "quiz_performance"
    NEEDS_REVIEW = "needs_review"
    TIME_SPENT = "time_spent"
    GRADE_LEVEL = "grade_level"

    @property
    def description(self) -> str:
        return REASON_DESCRIPTIONS[self]


REASON_DESCRIPTIONS = {
    Reason.CONTINUE: "Continue where you left off",
    Reason.NEW_CONTENT: "New content for you",
    Reason.QUIZ_PERFORMANCE: "Based on your quiz performance",
    Reason.NEEDS_REVIEW: "To help improve your understanding",
    Reason.TIME_SPENT: "Based on topics you spent time with",
    Reason.GRADE_LEVEL: "Recommended for your grade level",
}

PRIORITIES = {
    Reason.CONTINUE: 10,
    Reason.NEEDS_REVIEW: 8,
    Reason.QUIZ_PERFORMANCE: 7,
    Reason.TIME_SPENT: 6,
    Reason.NEW_CONTENT: 5,
    Reason.GRADE_LEVEL: 1,
}


@dataclass(frozen=True)
class Recommendation:
    lesson_id: int
    priority: int
    reason: Reason

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lessonId": self.lesson_id,
            "priority": self.priority,
            "reason": self.reason.value,
            "description": self.reason.description,
        }


def _field(record: Any, *names: str, default: Any = None) -> Any:
    """Read the first present field from a dict or object."""
    for name in names:
        if isinstance(record, Mapping):
            if name in record:
                return record[name]
        elif hasattr(record, name):
            return getattr(record, name)
    return default


def _lesson_id(record):
    return _field(record, "lessonId", "lesson_id")


def _subject_id(lesson):
    return _field(lesson, "subjectId", "subject_id")


def _difficulty(lesson) -> int:
    return _field(lesson, "difficulty", default=0) or 0


def _score_ratio(result) -> Optional[float]:
    max_score = _field(result, "maxScore", "max_score", default=0) or 0
    if max_score <= 0:
        return None
    return (_field(result, "score", default=0) or 0) / max_score


def _candidate(lesson, reason: Reason) -> Recommendation:
    return Recommendation(lesson_id=_field(lesson, "id"), priority=PRIORITIES[reason], reason=reason)


def collapse(candidates: Iterable[Recommendation], keep: str = KEEP_HIGHEST) -> List[Recommendation]:
    """
    Reduce candidates to one per lesson, then rank by priority.

    Args:
        candidates: Candidates in the order the scoring passes produced them.
        keep: ``"highest"`` keeps each lesson's highest-priority candidate
            (the earliest one among equals); ``"last"`` keeps the candidate
            produced last, whatever its priority.

    Returns:
        Candidates sorted by priority, highest first.  Ties keep the order
        in which each lesson first appeared.
    """
    if keep not in (KEEP_HIGHEST, KEEP_LAST):
        raise ValueError(f"keep must be {KEEP_HIGHEST!r} or {KEEP_LAST!r}, got {keep!r}")

    chosen: Dict[Any, Recommendation] = {}
    for candidate in candidates:
        current = chosen.get(candidate.lesson_id)
        if current is None or keep == KEEP_LAST or candidate.priority > current.priority:
            chosen[candidate.lesson_id] = candidate

    # dicts keep first-insertion order; sorted() is stable
    return sorted(chosen.values(), key=lambda r: r.priority, reverse=True)


def generate_recommendations(
    user_grade: int,
    lessons: Sequence[Any],
    progress: Sequence[Any],
    quiz_results: Sequence[Any],
    keep: str = KEEP_HIGHEST,
) -> List[Recommendation]:
    """
    Rank grade-appropriate lessons for one learner.

    Args:
        user_grade: Learner's grade; only lessons of this grade are
            recommended.
        lessons: Full lesson catalog (id, subjectId, grade, difficulty).
        progress: Learner progress records (lessonId, completed, timeSpent).
        quiz_results: Learner quiz results (lessonId, score, maxScore).
        keep: De-duplication policy, see ``collapse``.

    Returns:
        One Recommendation per lesson, highest priority first.
    """
    lessons_by_id = {_field(lesson, "id"): lesson for lesson in lessons}
    grade_lessons = [lesson for lesson in lessons if _field(lesson, "grade") == user_grade]

    progress_by_lesson: Dict[Any, Any] = {}
    for record in progress:
        progress_by_lesson.setdefault(_lesson_id(record), record)
    completed = {
        _lesson_id(record) for record in progress if _field(record, "completed", default=False)
    }

    candidates: List[Recommendation] = []

    # 1. Started but not finished
    for lesson in grade_lessons:
        record = progress_by_lesson.get(_field(lesson, "id"))
        if record is not None and not _field(record, "completed", default=False):
            candidates.append(_candidate(lesson, Reason.CONTINUE))

    # 2. Never started
    for lesson in grade_lessons:
        if _field(lesson, "id") not in progress_by_lesson:
            candidates.append(_candidate(lesson, Reason.NEW_CONTENT))

    # 3. Strong quiz results: more of the same subject
    for result in quiz_results:
        ratio = _score_ratio(result)
        quiz_lesson = lessons_by_id.get(_lesson_id(result))
        if ratio is None or ratio < HIGH_SCORE_RATIO or quiz_lesson is None:
            continue
        quiz_lesson_id = _field(quiz_lesson, "id")
        for lesson in grade_lessons:
            lesson_id = _field(lesson, "id")
            if (
                _subject_id(lesson) == _subject_id(quiz_lesson)
                and lesson_id != quiz_lesson_id
                and lesson_id not in completed
            ):
                candidates.append(_candidate(lesson, Reason.QUIZ_PERFORMANCE))

    # 4. Weak quiz results: introductory lessons in the subject
    for result in quiz_results:
        ratio = _score_ratio(result)
        quiz_lesson = lessons_by_id.get(_lesson_id(result))
        if ratio is None or ratio >= LOW_SCORE_RATIO or quiz_lesson is None:
            continue
        for lesson in grade_lessons:
            if (
                _subject_id(lesson) == _subject_id(quiz_lesson)
                and _difficulty(lesson) <= INTRO_MAX_DIFFICULTY
                and _field(lesson, "id") not in completed
            ):
                candidates.append(_candidate(lesson, Reason.NEEDS_REVIEW))

    # 5. Long completed sessions: follow-ups at most one level harder
    for record in progress:
        time_spent = _field(record, "timeSpent", "time_spent", default=0) or 0
        if not _field(record, "completed", default=False) or time_spent <= LONG_SESSION_SECONDS:
            continue
        source = lessons_by_id.get(_lesson_id(record))
        if source is None:
            continue
        source_id = _field(source, "id")
        for lesson in grade_lessons:
            lesson_id = _field(lesson, "id")
            if (
                _subject_id(lesson) == _subject_id(source)
                and lesson_id != source_id
                and _difficulty(lesson) <= _difficulty(source) + 1
                and lesson_id not in completed
            ):
                candidates.append(_candidate(lesson, Reason.TIME_SPENT))

    logger.debug("Generated %d candidates for grade %s", len(candidates), user_grade)
    return collapse(candidates, keep=keep)


def top_recommendations(
    user_grade: int,
    lessons: Sequence[Any],
    progress: Sequence[Any],
    quiz_results: Sequence[Any],
    limit: int = 5,
    keep: str = KEEP_HIGHEST,
) -> List[Recommendation]:
    """Best ``limit`` recommendations, falling back to plain grade-level
    suggestions when the learner's history produces none."""
    ranked = generate_recommendations(user_grade, lessons, progress, quiz_results, keep=keep)
    if not ranked:
        ranked = [
            _candidate(lesson, Reason.GRADE_LEVEL)
            for lesson in lessons
            if _field(lesson, "grade") == user_grade
        ]
    return ranked[:limit]


def get_subject_strengths(lessons: Sequence[Any], quiz_results: Sequence[Any]) -> List[Dict[str, Any]]:
    """
    Average quiz percentage per subject, strongest first.

    Subjects without any scored quiz are omitted.

    Returns:
        List of {subject_id, average_score, quiz_count} dicts.
    """
    lessons_by_id = {_field(lesson, "id"): lesson for lesson in lessons}
    totals: Dict[Any, Dict[str, float]] = {}

    for result in quiz_results:
        ratio = _score_ratio(result)
        lesson = lessons_by_id.get(_lesson_id(result))
        if ratio is None or lesson is None:
            continue
        entry = totals.setdefault(_subject_id(lesson), {"total": 0.0, "count": 0})
        entry["total"] += ratio * 100
        entry["count"] += 1

    strengths = [
        {
            "subject_id": subject_id,
            "average_score": round(data["total"] / data["count"], 2),
            "quiz_count": data["count"],
        }
        for subject_id, data in totals.items()
    ]
    strengths.sort(key=lambda s: s["average_score"], reverse=True)
    return strengths
