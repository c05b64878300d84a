"""
Shared pytest fixtures for EduAI tests.

Provides database, fake network, and Flask test client fixtures so that
individual test files do not need to duplicate setup and teardown logic.

Fixture summary
---------------
Database:
    db_path              -- temp .db file path with cleanup
    engine               -- SQLAlchemy engine on db_path with all tables
    session_factory      -- sessionmaker bound to ``engine``
    db_session           -- a single session on ``engine``
    seeded_ids           -- ids from ``seed_catalog`` run on ``db_session``

Network:
    fetcher              -- ScriptedFetcher (routes URLs to canned responses)
    immediate_executor   -- Executor that runs submitted work inline

Offline layer:
    storage              -- CacheStorage on the temp database, origin http://api.test
    result_queue         -- ResultQueue on the temp database
    worker_config        -- config dict for a separate device-side database

Flask:
    flask_app            -- API app seeded with subjects, lessons, a learner
    flask_client         -- test client for ``flask_app``
    flask_fetcher        -- fetcher that routes requests into ``flask_client``
"""

import os
import tempfile
from concurrent.futures import Executor, Future
from urllib.parse import urlsplit

import pytest

from eduai.cache_storage import CacheStorage
from eduai.database import Lesson, Subject, User, get_engine, get_session, get_session_factory, init_db
from eduai.errors import NetworkError
from eduai.result_queue import ResultQueue
from eduai.transport import Response

# ---------------------------------------------------------------------------
# Fake network
# ---------------------------------------------------------------------------


class ScriptedFetcher:
    """Fetcher returning canned responses keyed by URL.

    ``routes[url]`` may be a Response, an exception instance (raised), or a
    callable taking the request.  Unknown URLs raise NetworkError, as if
    the device were offline.  Every request is recorded in ``calls``.
    """

    def __init__(self):
        self.routes = {}
        self.calls = []
        self.offline = False

    def add(self, url, status=200, body=b"", headers=None):
        if isinstance(body, str):
            body = body.encode("utf-8")
        self.routes[url] = Response(status=status, body=body, headers=headers or {})
        return self

    def fail(self, url, message="connection refused"):
        self.routes[url] = NetworkError(message, url=url)
        return self

    def urls_called(self, method=None):
        return [r.url for r in self.calls if method is None or r.method == method]

    def __call__(self, request):
        self.calls.append(request)
        if self.offline:
            raise NetworkError("offline", url=request.url)
        route = self.routes.get(request.url)
        if route is None:
            raise NetworkError("no route", url=request.url)
        if isinstance(route, Exception):
            raise route
        if callable(route):
            return route(request)
        return Response(status=route.status, body=route.body, headers=dict(route.headers), url=request.url)


class ImmediateExecutor(Executor):
    """Runs submitted callables synchronously; useful for deterministic tests."""

    def submit(self, fn, *args, **kwargs):
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:  # pragma: no cover - surfaced through the future
            future.set_exception(e)
        return future


@pytest.fixture
def fetcher():
    return ScriptedFetcher()


@pytest.fixture
def immediate_executor():
    return ImmediateExecutor()


# ---------------------------------------------------------------------------
# Core database fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def db_path():
    """Provide a temporary database file path with cleanup."""
    tmp = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
    tmp.close()
    yield tmp.name
    try:
        if os.path.exists(tmp.name):
            os.remove(tmp.name)
    except OSError:
        pass  # Windows may still hold the lock


@pytest.fixture
def engine(db_path):
    engine = get_engine(db_path)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return get_session_factory(engine)


@pytest.fixture
def db_session(engine):
    session = get_session(engine)
    yield session
    session.close()


@pytest.fixture
def storage(session_factory):
    return CacheStorage(session_factory, origin="http://api.test")


@pytest.fixture
def result_queue(engine, session_factory):
    return ResultQueue(engine, session_factory)


@pytest.fixture
def worker_config(tmp_path):
    """Config dict for ``create_worker`` with its own device-side database."""
    return {
        "paths": {"database_file": str(tmp_path / "offline.db")},
        "api": {"base_url": "http://api.test", "timeout_seconds": 5},
        "cache": {
            "version": "eduai-cache-v2",
            "previous_versions": ["eduai-cache-v1"],
            "static_assets": ["/", "/index.html", "/manifest.json"],
        },
        "sync": {"max_attempts": 3},
        "recommendations": {"limit": 5, "keep": "highest"},
        "logging": {"level": "WARNING"},
    }


# ---------------------------------------------------------------------------
# Data builders
# ---------------------------------------------------------------------------


def seed_catalog(session):
    """Insert two subjects, five grade-5 lessons, one grade-6 lesson and a learner.

    Returns a dict of the created objects keyed by short names.
    """
    math = Subject(name="Mathematics", icon="calculate")
    science = Subject(name="Science", icon="science")
    session.add_all([math, science])
    session.commit()

    lessons = {
        "fractions": Lesson(title="Fractions", subject_id=math.id, grade=5, difficulty=1),
        "decimals": Lesson(title="Decimals", subject_id=math.id, grade=5, difficulty=2),
        "volume": Lesson(title="Volume", subject_id=math.id, grade=5, difficulty=4),
        "matter": Lesson(title="States of Matter", subject_id=science.id, grade=5, difficulty=1),
        "ecosystems": Lesson(title="Ecosystems", subject_id=science.id, grade=5, difficulty=2),
        "algebra": Lesson(title="Intro to Algebra", subject_id=math.id, grade=6, difficulty=2),
    }
    session.add_all(lessons.values())
    user = User(username="student", grade=5)
    session.add(user)
    session.commit()

    objects = {"math": math, "science": science, "user": user}
    objects.update(lessons)
    return {key: obj.id for key, obj in objects.items()}


@pytest.fixture
def seeded_ids(db_session):
    """Seed ``db_path`` with the standard catalog and return the ids."""
    return seed_catalog(db_session)


# ---------------------------------------------------------------------------
# Flask fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def flask_app(db_path):
    """Provide an API app on a temp database seeded by ``seed_catalog``.

    The seeded ids are available as ``app.config["SEED_IDS"]``.
    """
    engine = get_engine(db_path)
    init_db(engine)
    session = get_session(engine)
    ids = seed_catalog(session)
    session.close()
    engine.dispose()

    from eduai.web.app import create_app

    app = create_app(
        {
            "paths": {"database_file": db_path},
            "recommendations": {"limit": 5, "keep": "highest"},
            "logging": {"level": "WARNING"},
        }
    )
    app.config["TESTING"] = True
    app.config["SEED_IDS"] = ids

    yield app

    app.config["DB_ENGINE"].dispose()


@pytest.fixture
def flask_client(flask_app):
    with flask_app.test_client() as client:
        yield client


class FlaskFetcher:
    """Fetcher that sends requests to a Flask test client instead of a socket."""

    def __init__(self, client):
        self.client = client
        self.offline = False
        self.calls = []

    def __call__(self, request):
        self.calls.append(request)
        if self.offline:
            raise NetworkError("offline", url=request.url)
        parts = urlsplit(request.url)
        path = parts.path + (f"?{parts.query}" if parts.query else "")
        resp = self.client.open(
            path,
            method=request.method,
            headers=dict(request.headers),
            data=request.body,
        )
        return Response(status=resp.status_code, body=resp.data, headers=dict(resp.headers), url=request.url)


@pytest.fixture
def flask_fetcher(flask_client):
    return FlaskFetcher(flask_client)
