from __future__ import annotations

import argparse
import asyncio
import json
import sys

from thread_board.config import settings
from thread_board.errors import BoardError
from thread_board.repository import ThreadRepository
from thread_board.retry import RetryPolicy
from thread_board.storage.factory import create_thread_store
from thread_board.telemetry import setup_telemetry


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="thread-board", description="Manage board threads in blob storage")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list", help="List threads, newest first")

    p = sub.add_parser("show", help="Print one thread")
    p.add_argument("thread_id")

    p = sub.add_parser("create", help="Create or update a thread")
    p.add_argument("thread_id")
    p.add_argument("--title", default=None)
    p.add_argument("--timestamp", default=None, help="ISO-8601 creation time")

    p = sub.add_parser("post", help="Append a post to an existing thread")
    p.add_argument("thread_id")
    p.add_argument("content")
    p.add_argument("--name", default=None)
    p.add_argument("--post-id", default=None)

    p = sub.add_parser("delete-post", help="Delete the first post with the given id")
    p.add_argument("thread_id")
    p.add_argument("post_id")

    p = sub.add_parser("delete-thread", help="Delete a thread blob")
    p.add_argument("thread_id")

    return parser


async def run(args: argparse.Namespace, repo: ThreadRepository) -> object:
    if args.command == "list":
        return [t.to_dict() for t in await repo.list_threads()]
    if args.command == "show":
        return (await repo.get_thread(args.thread_id)).to_dict()
    if args.command == "create":
        thread, created = await repo.create_or_update_thread(
            args.thread_id, title=args.title, timestamp=args.timestamp
        )
        return {"created": created, "thread": thread.to_dict()}
    if args.command == "post":
        post = await repo.append_post(args.thread_id, args.content, name=args.name, post_id=args.post_id)
        return {"threadId": args.thread_id, "post": post.to_dict()}
    if args.command == "delete-post":
        post = await repo.delete_post(args.thread_id, args.post_id)
        return {"threadId": args.thread_id, "deletedPost": post.to_dict()}
    if args.command == "delete-thread":
        await repo.delete_thread(args.thread_id)
        return {"threadId": args.thread_id, "deleted": True}
    raise ValueError(f"Unknown command: {args.command}")


async def _main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    setup_telemetry()

    try:
        store = create_thread_store(settings)
    except RuntimeError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    repo = ThreadRepository(
        store,
        retry=RetryPolicy(
            max_attempts=settings.exists_retry_attempts,
            delay=settings.exists_retry_delay_seconds,
        ),
    )
    try:
        result = await run(args, repo)
    except BoardError as e:
        print(f"error: {e.message}", file=sys.stderr)
        return 1
    finally:
        await store.close()

    print(json.dumps(result, ensure_ascii=False, indent=2))
    return 0


def main() -> None:
    sys.exit(asyncio.run(_main()))


if __name__ == "__main__":
    main()
