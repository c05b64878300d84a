"""
Offline quiz result queue and sync CLI commands.
"""

from eduai.cli import get_worker
from eduai.result_queue import STATUS_FAILED, STATUS_PENDING
from eduai.sync import SYNC_TAG


def register_queue_commands(subparsers):
    """Register queue and sync subcommands."""

    p = subparsers.add_parser("queue-result", help="Queue a quiz result for upload.")
    p.add_argument("--user", dest="user_id", type=int, required=True, help="User ID.")
    p.add_argument("--lesson", dest="lesson_id", type=int, required=True, help="Lesson ID.")
    p.add_argument("--score", type=float, required=True, help="Points scored.")
    p.add_argument("--max-score", dest="max_score", type=float, required=True, help="Maximum points.")

    p = subparsers.add_parser("queue-list", help="List queued quiz results.")
    p.add_argument("--failed", action="store_true", help="Show dead-lettered results only.")

    subparsers.add_parser("queue-requeue", help="Move dead-lettered results back to pending.")
    subparsers.add_parser("queue-purge", help="Delete dead-lettered results.")
    subparsers.add_parser("sync", help="Upload queued quiz results to the API.")


def handle_queue_result(config, args):
    worker = get_worker(config)
    try:
        if args.max_score <= 0:
            print("Error: --max-score must be positive.")
            return
        record = worker.queue.enqueue(args.user_id, args.lesson_id, args.score, args.max_score)
        print(f"[OK] Queued quiz result {record.id}")
    finally:
        worker.close()


def handle_queue_list(config, args):
    worker = get_worker(config)
    try:
        records = worker.queue.failed() if args.failed else worker.queue.all()
        if not records:
            print("Queue is empty.")
            return
        print(f"Pending: {worker.queue.count(STATUS_PENDING)}  Failed: {worker.queue.count(STATUS_FAILED)}")
        print(f"  {'ID':<34} {'User':>5} {'Lesson':>6} {'Score':>9} {'Status':<8} {'Tries':>5}")
        for r in records:
            score = f"{r.score:g}/{r.max_score:g}"
            print(f"  {r.id:<34} {r.user_id:>5} {r.lesson_id:>6} {score:>9} {r.status:<8} {r.attempts:>5}")
            if r.last_error:
                print(f"      last error: {r.last_error}")
    finally:
        worker.close()


def handle_queue_requeue(config, args):
    worker = get_worker(config)
    try:
        count = worker.queue.requeue_failed()
        print(f"[OK] Re-queued {count} result(s)")
    finally:
        worker.close()


def handle_queue_purge(config, args):
    worker = get_worker(config)
    try:
        count = worker.queue.purge_failed()
        print(f"[OK] Purged {count} result(s)")
    finally:
        worker.close()


def handle_sync(config, args):
    worker = get_worker(config)
    try:
        report = worker.on_sync(SYNC_TAG)
        if report is None:
            print("Sync skipped.")
            return
        if report.attempted == 0:
            print("Nothing to sync.")
            return
        print(f"[OK] Synced {len(report.synced)} result(s)")
        if report.retained:
            print(f"  [FAIL] {len(report.retained)} kept for the next sync")
        if report.dead_lettered:
            print(f"  [FAIL] {len(report.dead_lettered)} dead-lettered (see queue-list --failed)")
    finally:
        worker.close()
