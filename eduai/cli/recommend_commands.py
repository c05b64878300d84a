"""
Recommendation CLI command.
"""

import json

from eduai.cli import get_db_session
from eduai.config import recommendation_settings
from eduai.database import Subject
from eduai.progress import get_user, list_lessons, list_quiz_results, recommendations_for_user
from eduai.recommendations import get_subject_strengths


def register_recommend_commands(subparsers):
    p = subparsers.add_parser("recommend", help="Show lesson recommendations for a user.")
    p.add_argument("--user", dest="user_id", type=int, required=True, help="User ID.")
    p.add_argument("--limit", type=int, help="Maximum recommendations.")
    p.add_argument(
        "--format",
        dest="fmt",
        default="text",
        choices=["text", "json"],
        help="Output format.",
    )


def handle_recommend(config, args):
    """Print recommendations computed from the local server database."""
    engine, session = get_db_session(config)
    try:
        user = get_user(session, args.user_id)
        if not user:
            print(f"Error: User with ID {args.user_id} not found.")
            return

        try:
            settings = recommendation_settings(config)
        except ValueError as e:
            print(f"Error: {e}")
            return
        limit = args.limit or settings.limit
        recommendations = recommendations_for_user(session, user, limit=limit, keep=settings.keep)

        if args.fmt == "json":
            print(json.dumps([r.to_dict() for r in recommendations], indent=2))
            return

        print(f"\nRecommendations for: {user.username} (grade {user.grade})")
        print("-" * 50)
        if not recommendations:
            print("  No lessons available.")
        for r in recommendations:
            print(f"  lesson {r.lesson_id:<6} priority {r.priority:>2}  {r.reason.description}")

        strengths = get_subject_strengths(list_lessons(session), list_quiz_results(session, user.id))
        if strengths:
            names = {s.id: s.name for s in session.query(Subject).all()}
            print("\nSubject strengths:")
            for s in strengths:
                name = names.get(s["subject_id"], s["subject_id"])
                print(f"  {name:<20} {s['average_score']:>6.1f}%  ({s['quiz_count']} quizzes)")
    finally:
        session.close()
        engine.dispose()
