"""
Cache install, lesson download and cleanup CLI commands.
"""

from eduai.cache_lifecycle import CACHE_LESSON, CLEAR_OLD_CACHES, REMOVE_CACHED_LESSON
from eduai.cli import get_worker
from eduai.errors import CachePopulationError


def register_cache_commands(subparsers):
    """Register cache-related subcommands."""

    subparsers.add_parser("install", help="Cache static assets and drop old cache versions.")

    p = subparsers.add_parser("cache-lesson", help="Download a lesson's URLs for offline use.")
    p.add_argument("--lesson", dest="lesson_id", type=int, required=True, help="Lesson ID.")
    p.add_argument("urls", nargs="+", help="URLs belonging to the lesson.")

    p = subparsers.add_parser("remove-lesson", help="Remove a downloaded lesson from the cache.")
    p.add_argument("--lesson", dest="lesson_id", type=int, required=True, help="Lesson ID.")
    p.add_argument("urls", nargs="+", help="URLs belonging to the lesson.")

    subparsers.add_parser("clear-old-caches", help="Delete every cache except the current version.")
    subparsers.add_parser("cache-list", help="List caches and their entry counts.")


def _print_notification(message):
    status = "OK" if message.get("success") else "FAIL"
    line = f"[{status}] {message['type']} lesson={message.get('lessonId')}"
    if message.get("error"):
        line += f" ({message['error']})"
    print(line)


def handle_install(config, args):
    """Install static assets, then activate the current cache version."""
    worker = get_worker(config)
    try:
        try:
            count = worker.on_install()
        except CachePopulationError as e:
            print(f"[FAIL] Install aborted, nothing cached: {e}")
            return
        print(f"[OK] Cached {count} static assets into {worker.lifecycle.settings.version}")
        for name in worker.on_activate():
            print(f"  Deleted old cache: {name}")
    finally:
        worker.close()


def handle_cache_lesson(config, args):
    worker = get_worker(config)
    try:
        with worker.clients.subscribe(_print_notification):
            worker.on_message({"type": CACHE_LESSON, "urls": args.urls, "lessonId": args.lesson_id})
    finally:
        worker.close()


def handle_remove_lesson(config, args):
    worker = get_worker(config)
    try:
        with worker.clients.subscribe(_print_notification):
            worker.on_message({"type": REMOVE_CACHED_LESSON, "urls": args.urls, "lessonId": args.lesson_id})
    finally:
        worker.close()


def handle_clear_old_caches(config, args):
    worker = get_worker(config)
    try:
        before = set(worker.storage.keys())
        worker.on_message({"type": CLEAR_OLD_CACHES})
        removed = sorted(before - set(worker.storage.keys()))
        print(f"[OK] Removed {len(removed)} old cache(s)")
        for name in removed:
            print(f"  {name}")
    finally:
        worker.close()


def handle_cache_list(config, args):
    worker = get_worker(config)
    try:
        names = worker.storage.keys()
        if not names:
            print("No caches.")
            return
        current = worker.lifecycle.settings.version
        stale = set(worker.lifecycle.stale_caches())
        print(f"  {'Cache':<30} {'Entries':>7}  State")
        print(f"  {'---':<30} {'---':>7}  ---")
        for name in names:
            entries = len(worker.storage.open(name).keys())
            if name == current:
                state = "current"
            elif name in stale:
                state = "previous"
            else:
                state = "unknown"
            print(f"  {name[:28]:<30} {entries:>7}  {state}")
    finally:
        worker.close()
