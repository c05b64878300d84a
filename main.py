import argparse

from eduai.cli.cache_commands import (
    handle_cache_lesson,
    handle_cache_list,
    handle_clear_old_caches,
    handle_install,
    handle_remove_lesson,
    register_cache_commands,
)
from eduai.cli.queue_commands import (
    handle_queue_list,
    handle_queue_purge,
    handle_queue_requeue,
    handle_queue_result,
    handle_sync,
    register_queue_commands,
)
from eduai.cli.recommend_commands import handle_recommend, register_recommend_commands
from eduai.config import configure_logging, load_config

HANDLERS = {
    "install": handle_install,
    "cache-lesson": handle_cache_lesson,
    "remove-lesson": handle_remove_lesson,
    "clear-old-caches": handle_clear_old_caches,
    "cache-list": handle_cache_list,
    "queue-result": handle_queue_result,
    "queue-list": handle_queue_list,
    "queue-requeue": handle_queue_requeue,
    "queue-purge": handle_queue_purge,
    "sync": handle_sync,
    "recommend": handle_recommend,
}


def handle_serve(config, args):
    """Run the API with the Flask development server."""
    from eduai.web.app import create_app

    app = create_app(config)
    app.run(host=args.host, port=args.port, debug=args.debug)


def build_parser():
    parser = argparse.ArgumentParser(description="EduAI offline layer CLI.")
    parser.add_argument("--config", default="config.yaml", help="Path to config.yaml.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    register_cache_commands(subparsers)
    register_queue_commands(subparsers)
    register_recommend_commands(subparsers)

    p = subparsers.add_parser("serve", help="Run the EduAI API server.")
    p.add_argument("--host", default="127.0.0.1")
    p.add_argument("--port", type=int, default=8000)
    p.add_argument("--debug", action="store_true")
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    config = load_config(args.config)
    configure_logging(config)

    if args.command == "serve":
        handle_serve(config, args)
        return
    HANDLERS[args.command](config, args)


if __name__ == "__main__":
    main()
