"""
Tests for the CLI command modules in eduai/cli/ and the main.py parser.

Handlers are called directly with argparse.Namespace objects and a config
dict pointing at temporary databases; network access goes through the
ScriptedFetcher from conftest.
"""

import argparse
import json

import pytest
import yaml

import eduai.cli.cache_commands as cache_commands
import eduai.cli.queue_commands as queue_commands
from eduai.cli.cache_commands import (
    handle_cache_lesson,
    handle_cache_list,
    handle_clear_old_caches,
    handle_install,
    handle_remove_lesson,
)
from eduai.cli.queue_commands import (
    handle_queue_list,
    handle_queue_purge,
    handle_queue_requeue,
    handle_queue_result,
    handle_sync,
)
from eduai.cli.recommend_commands import handle_recommend
from eduai.database import QuizResult, UserProgress
from eduai.sync import quiz_results_url
from eduai.worker import create_worker
from main import build_parser, main

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def scripted_worker(monkeypatch, worker_config, fetcher, immediate_executor):
    """Make every CLI handler build its worker on the ScriptedFetcher."""

    def factory(config):
        return create_worker(config, fetcher=fetcher, executor=immediate_executor)

    monkeypatch.setattr(cache_commands, "get_worker", factory)
    monkeypatch.setattr(queue_commands, "get_worker", factory)
    return factory


def _serve_static(fetcher):
    for url in ("/", "/index.html", "/manifest.json"):
        fetcher.add(url, body="x")


# ---------------------------------------------------------------------------
# Cache commands
# ---------------------------------------------------------------------------


class TestCacheCommands:
    def test_install(self, worker_config, fetcher, scripted_worker, capsys):
        _serve_static(fetcher)
        handle_install(worker_config, argparse.Namespace())
        out = capsys.readouterr().out
        assert "[OK] Cached 3 static assets into eduai-cache-v2" in out

    def test_install_failure(self, worker_config, fetcher, scripted_worker, capsys):
        fetcher.add("/", body="x")
        handle_install(worker_config, argparse.Namespace())
        out = capsys.readouterr().out
        assert "[FAIL] Install aborted" in out

    def test_install_drops_old_versions(self, worker_config, fetcher, scripted_worker, capsys):
        _serve_static(fetcher)
        worker = scripted_worker(worker_config)
        worker.storage.open("eduai-cache-v1")
        worker.close()

        handle_install(worker_config, argparse.Namespace())

        assert "Deleted old cache: eduai-cache-v1" in capsys.readouterr().out

    def test_cache_and_remove_lesson(self, worker_config, fetcher, scripted_worker, capsys):
        fetcher.add("/lessons/5/index.html", body="five")
        args = argparse.Namespace(lesson_id=5, urls=["/lessons/5/index.html"])

        handle_cache_lesson(worker_config, args)
        assert "[OK] LESSON_CACHED lesson=5" in capsys.readouterr().out

        handle_remove_lesson(worker_config, args)
        assert "[OK] LESSON_REMOVED lesson=5" in capsys.readouterr().out

    def test_cache_lesson_failure(self, worker_config, fetcher, scripted_worker, capsys):
        handle_cache_lesson(worker_config, argparse.Namespace(lesson_id=5, urls=["/lessons/5/missing"]))
        assert "[FAIL] LESSON_CACHED lesson=5" in capsys.readouterr().out

    def test_clear_old_caches_and_list(self, worker_config, scripted_worker, capsys):
        worker = scripted_worker(worker_config)
        worker.storage.open("eduai-cache-v1")
        worker.storage.open("eduai-cache-v2")
        worker.close()

        handle_cache_list(worker_config, argparse.Namespace())
        out = capsys.readouterr().out
        assert "eduai-cache-v1" in out and "previous" in out
        assert "current" in out

        handle_clear_old_caches(worker_config, argparse.Namespace())
        out = capsys.readouterr().out
        assert "[OK] Removed 1 old cache(s)" in out

    def test_cache_list_empty(self, worker_config, scripted_worker, capsys):
        handle_cache_list(worker_config, argparse.Namespace())
        assert "No caches." in capsys.readouterr().out


# ---------------------------------------------------------------------------
# Queue commands
# ---------------------------------------------------------------------------


class TestQueueCommands:
    def _queue(self, config, user_id=1):
        args = argparse.Namespace(user_id=user_id, lesson_id=2, score=8.0, max_score=10.0)
        handle_queue_result(config, args)

    def test_queue_and_list(self, worker_config, scripted_worker, capsys):
        self._queue(worker_config)
        assert "[OK] Queued quiz result" in capsys.readouterr().out

        handle_queue_list(worker_config, argparse.Namespace(failed=False))
        out = capsys.readouterr().out
        assert "Pending: 1  Failed: 0" in out
        assert "8/10" in out

    def test_queue_rejects_bad_max_score(self, worker_config, scripted_worker, capsys):
        handle_queue_result(worker_config, argparse.Namespace(user_id=1, lesson_id=2, score=1.0, max_score=0.0))
        assert "Error" in capsys.readouterr().out
        handle_queue_list(worker_config, argparse.Namespace(failed=False))
        assert "Queue is empty." in capsys.readouterr().out

    def test_sync(self, worker_config, fetcher, scripted_worker, capsys):
        fetcher.add(quiz_results_url("http://api.test", 1), status=201)
        self._queue(worker_config)
        capsys.readouterr()

        handle_sync(worker_config, argparse.Namespace())

        assert "[OK] Synced 1 result(s)" in capsys.readouterr().out

    def test_sync_nothing_queued(self, worker_config, scripted_worker, capsys):
        handle_sync(worker_config, argparse.Namespace())
        assert "Nothing to sync." in capsys.readouterr().out

    def test_dead_letter_requeue_and_purge(self, worker_config, fetcher, scripted_worker, capsys):
        fetcher.add(quiz_results_url("http://api.test", 1), status=422)
        self._queue(worker_config)

        handle_sync(worker_config, argparse.Namespace())
        assert "1 dead-lettered" in capsys.readouterr().out

        handle_queue_list(worker_config, argparse.Namespace(failed=True))
        out = capsys.readouterr().out
        assert "last error: HTTP 422" in out

        handle_queue_requeue(worker_config, argparse.Namespace())
        assert "[OK] Re-queued 1 result(s)" in capsys.readouterr().out

        handle_sync(worker_config, argparse.Namespace())
        handle_queue_purge(worker_config, argparse.Namespace())
        assert "[OK] Purged 1 result(s)" in capsys.readouterr().out


# ---------------------------------------------------------------------------
# Recommend command
# ---------------------------------------------------------------------------


class TestRecommendCommand:
    @pytest.fixture
    def config(self, db_path):
        return {"paths": {"database_file": db_path}, "recommendations": {"limit": 5, "keep": "highest"}}

    def test_text_output(self, config, db_session, seeded_ids, capsys):
        db_session.add(QuizResult(user_id=seeded_ids["user"], lesson_id=seeded_ids["fractions"], score=9, max_score=10))
        db_session.add(UserProgress(user_id=seeded_ids["user"], lesson_id=seeded_ids["fractions"], completed=True))
        db_session.commit()

        handle_recommend(config, argparse.Namespace(user_id=seeded_ids["user"], limit=None, fmt="text"))

        out = capsys.readouterr().out
        assert "Recommendations for: student (grade 5)" in out
        assert "Based on your quiz performance" in out
        assert "Subject strengths:" in out
        assert "Mathematics" in out

    def test_json_output(self, config, seeded_ids, capsys):
        handle_recommend(config, argparse.Namespace(user_id=seeded_ids["user"], limit=2, fmt="json"))
        recs = json.loads(capsys.readouterr().out)
        assert len(recs) == 2
        assert recs[0]["reason"] == "new_content"

    def test_unknown_user(self, config, seeded_ids, capsys):
        handle_recommend(config, argparse.Namespace(user_id=999, limit=None, fmt="text"))
        assert "User with ID 999 not found" in capsys.readouterr().out

    def test_unknown_keep_policy(self, db_path, seeded_ids, capsys):
        config = {"paths": {"database_file": db_path}, "recommendations": {"keep": "Highest"}}
        handle_recommend(config, argparse.Namespace(user_id=seeded_ids["user"], limit=None, fmt="text"))
        assert "recommendations.keep must be" in capsys.readouterr().out


# ---------------------------------------------------------------------------
# main.py
# ---------------------------------------------------------------------------


class TestMain:
    def test_parser_requires_command(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_parser_cache_lesson(self):
        args = build_parser().parse_args(["cache-lesson", "--lesson", "4", "/a", "/b"])
        assert args.command == "cache-lesson"
        assert args.lesson_id == 4
        assert args.urls == ["/a", "/b"]

    def test_main_dispatches_with_config_file(self, tmp_path, capsys):
        config_path = tmp_path / "config.yaml"
        config_path.write_text(
            yaml.safe_dump({"paths": {"database_file": str(tmp_path / "cli.db")}, "logging": {"level": "WARNING"}}),
            encoding="utf-8",
        )
        main(["--config", str(config_path), "queue-result", "--user", "1", "--lesson", "2",
              "--score", "3", "--max-score", "4"])
        main(["--config", str(config_path), "queue-list"])
        out = capsys.readouterr().out
        assert "[OK] Queued quiz result" in out
        assert "3/4" in out
