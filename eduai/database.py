from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    LargeBinary,
    String,
    Text,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker

Base = declarative_base()


# ---------------------------------------------------------------------------
# Server-side records (served by the web API, consumed by recommendations)
# ---------------------------------------------------------------------------


class Subject(Base):
    __tablename__ = "subjects"
    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False)
    icon = Column(String, default="school")
    color = Column(String, default="#3B82F6")
    lessons = relationship("Lesson", back_populates="subject")


class Lesson(Base):
    __tablename__ = "lessons"
    id = Column(Integer, primary_key=True)
    title = Column(String, nullable=False)
    description = Column(Text)
    subject_id = Column(Integer, ForeignKey("subjects.id"), nullable=False)
    grade = Column(Integer, nullable=False)
    difficulty = Column(Integer, nullable=False, default=1)  # 1-5
    duration = Column(Integer)  # minutes
    download_url = Column(String)
    subject = relationship("Subject", back_populates="lessons")


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True)
    username = Column(String, unique=True, nullable=False)
    grade = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class UserProgress(Base):
    __tablename__ = "user_progress"
    __table_args__ = (UniqueConstraint("user_id", "lesson_id"),)
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    lesson_id = Column(Integer, ForeignKey("lessons.id"), nullable=False)
    completed = Column(Boolean, default=False, nullable=False)
    time_spent = Column(Integer, default=0, nullable=False)  # seconds
    last_accessed = Column(DateTime, default=datetime.utcnow)


class QuizResult(Base):
    __tablename__ = "quiz_results"
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    lesson_id = Column(Integer, ForeignKey("lessons.id"), nullable=False)
    client_id = Column(String, unique=True)  # id assigned by the offline queue
    score = Column(Float, nullable=False)
    max_score = Column(Float, nullable=False)
    date_taken = Column(DateTime, default=datetime.utcnow)


# ---------------------------------------------------------------------------
# Client-side local store (response cache and offline result queue)
# ---------------------------------------------------------------------------


class CachedResponse(Base):
    __tablename__ = "cached_responses"
    __table_args__ = (UniqueConstraint("cache_name", "method", "url"),)
    id = Column(Integer, primary_key=True)
    cache_name = Column(String, nullable=False, index=True)
    method = Column(String, nullable=False, default="GET")
    url = Column(String, nullable=False)
    status = Column(Integer, nullable=False)
    headers = Column(JSON)
    body = Column(LargeBinary)
    stored_at = Column(DateTime, default=datetime.utcnow)


class CacheNamespace(Base):
    __tablename__ = "cache_namespaces"
    name = Column(String, primary_key=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class PendingQuizResult(Base):
    __tablename__ = "pending_quiz_results"
    id = Column(String, primary_key=True)
    user_id = Column(Integer, nullable=False)
    lesson_id = Column(Integer, nullable=False)
    score = Column(Float, nullable=False)
    max_score = Column(Float, nullable=False)
    timestamp = Column(DateTime, default=datetime.utcnow)
    status = Column(String, default="pending", nullable=False)  # pending, failed
    attempts = Column(Integer, default=0, nullable=False)
    last_error = Column(Text)
    last_attempt_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
    sequence = Column(Integer, nullable=False, default=0, index=True)  # enqueue order


def get_engine(db_path=None, url=None):
    """Returns a SQLAlchemy engine.

    SQLite engines allow cross-thread use so background cache
    revalidation can write through the same engine.
    """
    if url is None:
        url = f"sqlite:///{db_path}"
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, connect_args=connect_args)


def init_db(engine):
    """Creates all tables in the database."""
    Base.metadata.create_all(engine)


def get_session_factory(engine):
    """Returns a session factory bound to ``engine``."""
    return sessionmaker(bind=engine)


def get_session(engine):
    """Returns a new session."""
    Session = sessionmaker(bind=engine)
    return Session()
