"""
Demo Data Setup Script for EduAI

Populates the server database with subjects, lessons, one learner and some
progress/quiz history so the recommendation API has something to rank.

Usage:
    python demo_data/setup_demo.py [database_file]

The script will:
- Create the schema
- Create 3 subjects and 8 grade-5 lessons
- Create a demo learner with progress and quiz results
- Print progress and summary

Note: This script is idempotent - it skips records that already exist.
"""

import os
import sys
from datetime import datetime, timedelta

# Add project root to sys.path so imports work from any directory
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, project_root)

from eduai.database import Lesson, Subject, User, get_engine, get_session, init_db
from eduai.progress import record_quiz_result, upsert_progress

SUBJECTS = [
    ("Mathematics", "calculate", "#3B82F6"),
    ("English", "menu_book", "#10B981"),
    ("Science", "science", "#F59E0B"),
]

# (title, subject name, difficulty, duration, slug)
LESSONS = [
    ("Fractions and Decimals", "Mathematics", 2, 30, "math/fractions-decimals"),
    ("Order of Operations", "Mathematics", 3, 30, "math/order-of-operations"),
    ("Volume of Solids", "Mathematics", 4, 35, "math/volume"),
    ("Main Idea and Details", "English", 1, 25, "english/main-idea"),
    ("Figurative Language", "English", 3, 30, "english/figurative-language"),
    ("States of Matter", "Science", 1, 25, "science/states-of-matter"),
    ("Ecosystems and Food Webs", "Science", 2, 30, "science/ecosystems"),
    ("Earth's Place in the Universe", "Science", 4, 40, "science/earth-universe"),
]


def _get_or_create(session, model, defaults=None, **lookup):
    obj = session.query(model).filter_by(**lookup).first()
    if obj is not None:
        return obj, False
    params = dict(lookup)
    params.update(defaults or {})
    obj = model(**params)
    session.add(obj)
    session.commit()
    return obj, True


def setup_demo_data(db_path="eduai_offline.db"):
    """
    Set up demo data for the EduAI API.

    Returns:
        True on success, False on failure.
    """
    print("\n=== EduAI Demo Data Setup ===\n")

    print("[1/4] Initializing database...")
    try:
        engine = get_engine(db_path)
        init_db(engine)
        session = get_session(engine)
        print("      [OK] Database schema initialized\n")
    except Exception as e:
        print(f"      [FAIL] Database initialization failed: {e}")
        return False

    try:
        print("[2/4] Creating subjects...")
        subjects = {}
        for name, icon, color in SUBJECTS:
            subject, created = _get_or_create(session, Subject, name=name, defaults={"icon": icon, "color": color})
            subjects[name] = subject
            print(f"      [{'OK' if created else 'SKIP'}] {name}")

        print("\n[3/4] Creating grade 5 lessons...")
        lessons = {}
        for title, subject_name, difficulty, duration, slug in LESSONS:
            lesson, created = _get_or_create(
                session,
                Lesson,
                title=title,
                defaults={
                    "description": f"{title} for grade 5.",
                    "subject_id": subjects[subject_name].id,
                    "grade": 5,
                    "difficulty": difficulty,
                    "duration": duration,
                    "download_url": f"/lessons/{slug}",
                },
            )
            lessons[title] = lesson
            print(f"      [{'OK' if created else 'SKIP'}] {title}")

        print("\n[4/4] Creating demo learner history...")
        user, _ = _get_or_create(session, User, username="demo_student", defaults={"grade": 5})
        now = datetime.utcnow()
        upsert_progress(
            session, user.id, lessons["Fractions and Decimals"].id,
            completed=True, time_spent=1500, last_accessed=now - timedelta(days=2),
        )
        upsert_progress(
            session, user.id, lessons["Main Idea and Details"].id,
            completed=False, time_spent=600, last_accessed=now - timedelta(days=1),
        )
        record_quiz_result(
            session, user.id, lessons["Fractions and Decimals"].id, 9, 10,
            date_taken=now - timedelta(days=2), client_id="demo-fractions",
        )
        record_quiz_result(
            session, user.id, lessons["States of Matter"].id, 4, 10,
            date_taken=now - timedelta(days=3), client_id="demo-matter",
        )
        print(f"      [OK] Learner '{user.username}' (ID: {user.id}) ready")
    except Exception as e:
        print(f"      [FAIL] Demo data setup failed: {e}")
        session.rollback()
        return False
    finally:
        session.close()
        engine.dispose()

    print("\nTry: python main.py recommend --user", user.id)
    return True


if __name__ == "__main__":
    target = sys.argv[1] if len(sys.argv) > 1 else "eduai_offline.db"
    sys.exit(0 if setup_demo_data(target) else 1)
