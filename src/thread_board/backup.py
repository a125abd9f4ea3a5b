"""
Fallback post submission into a separate backup container.

Clients that fail to reach the main post endpoint can park the post here.
Each thread gets one backup document `<threadId>_backup.json` with the same
shape as a thread plus `isBackup`/`createdAt`; each stored post carries
`savedToBackup` and `backupTimestamp`. Writes are last-write-wins, like the
main repository.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Tuple

from thread_board.codec import (
    Post,
    Thread,
    decode_thread,
    encode_thread,
    format_timestamp,
    post_from_dict,
    utc_now,
)
from thread_board.errors import BlobNotFound, DecodeError, ValidationError
from thread_board.storage.blob_store import BlobStore
from thread_board.telemetry import get_tracer

logger = logging.getLogger(__name__)
tracer = get_tracer("thread-board.backup")

BACKUP_SUFFIX = "_backup.json"


def backup_key(thread_id: str) -> str:
    return f"{thread_id}{BACKUP_SUFFIX}"


class BackupRepository:
    def __init__(self, store: BlobStore, now: Callable[[], datetime] = utc_now):
        self.store = store
        self.now = now

    async def save_backup_post(self, thread_id: str, post: Dict[str, Any]) -> Tuple[Post, bool]:
        if not thread_id:
            raise ValidationError("Missing required field: threadId")
        if not isinstance(post, dict):
            raise ValidationError("Missing required field: post")
        missing = [f for f in ("id", "name", "content") if not post.get(f)]
        if missing:
            raise ValidationError(
                "Invalid backup post",
                detail=f"post requires: {', '.join(missing)}",
                context={"threadId": thread_id},
            )

        key = backup_key(thread_id)
        with tracer.start_as_current_span("backup.save_post") as span:
            span.set_attribute("thread.id", thread_id)
            stamp = format_timestamp(self.now())

            created = False
            try:
                thread = decode_thread(await self.store.download(key), key=key)
            except BlobNotFound:
                created = True
                thread = Thread(id=thread_id, posts=[], extra={"isBackup": True, "createdAt": stamp})
            except DecodeError as e:
                logger.error("Replacing unreadable backup document %s: %s", key, e.message)
                thread = Thread(id=thread_id, posts=[], extra={"isBackup": True, "createdAt": stamp})

            saved = post_from_dict(post)
            saved.extra.update({"savedToBackup": True, "backupTimestamp": stamp})
            thread.posts.append(saved)

            await self.store.upload(
                key,
                encode_thread(thread),
                overwrite=True,
                metadata={"isBackup": "true", "lastUpdated": stamp},
            )
            span.set_attribute("backup.created", created)
            logger.info("Saved post %s to backup thread %s", saved.id, thread_id)
            return saved, created
