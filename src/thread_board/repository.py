"""
Read-modify-write access to thread documents.

Each thread is one JSON blob `<threadId>.json`. Every mutation downloads the
whole document, changes it in memory and uploads it again with an
unconditional overwrite. There is no etag check, so two writers racing on the
same thread resolve as last-write-wins: an `append_post` that reads before a
concurrent append uploads will drop that post when its own upload lands.
Different threads never interfere.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, List, Optional, Sequence, Tuple

from thread_board.codec import (
    DEFAULT_TITLE,
    Post,
    Thread,
    build_post,
    decode_thread,
    encode_thread,
    format_timestamp,
    new_thread,
    parse_timestamp,
    post_from_dict,
    utc_now,
)
from thread_board.errors import (
    BlobNotFound,
    DecodeError,
    PostNotFound,
    ThreadNotFound,
    ValidationError,
)
from thread_board.retry import RetryPolicy
from thread_board.storage.blob_store import BlobStore
from thread_board.telemetry import get_tracer

logger = logging.getLogger(__name__)
tracer = get_tracer("thread-board.repository")

BLOB_SUFFIX = ".json"


def blob_key(thread_id: str) -> str:
    return f"{thread_id}{BLOB_SUFFIX}"


def thread_id_from_key(key: str) -> Optional[str]:
    if not key.endswith(BLOB_SUFFIX):
        return None
    return key[: -len(BLOB_SUFFIX)]


class ThreadRepository:
    def __init__(
        self,
        store: BlobStore,
        retry: Optional[RetryPolicy] = None,
        now: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.retry = retry or RetryPolicy()
        self.now = now

    async def _read(self, thread_id: str) -> Thread:
        """Download and decode; raises BlobNotFound / DecodeError."""
        key = blob_key(thread_id)
        data = await self.store.download(key)
        thread = decode_thread(data, key=key)
        if thread.id is None:
            thread.id = thread_id
        return thread

    async def _write(self, thread_id: str, thread: Thread) -> None:
        # The key read from is the key written to, whatever the document says
        thread.id = thread_id
        await self.store.upload(blob_key(thread_id), encode_thread(thread), overwrite=True)

    async def _load(self, thread_id: str) -> Thread:
        """Read path: a missing or unreadable blob is a missing thread."""
        try:
            return await self._read(thread_id)
        except BlobNotFound:
            raise ThreadNotFound(thread_id)
        except DecodeError as e:
            logger.warning("Thread %s has an unreadable document: %s", thread_id, e.message)
            raise ThreadNotFound(thread_id)

    async def thread_exists(self, thread_id: str) -> bool:
        """Poll until the thread blob is visible or the retry policy gives up."""
        key = blob_key(thread_id)
        return await self.retry.until(lambda: self.store.exists(key), label=f"exists {key}")

    async def get_thread(self, thread_id: str) -> Thread:
        with tracer.start_as_current_span("threads.get") as span:
            span.set_attribute("thread.id", thread_id)
            return await self._load(thread_id)

    async def create_or_update_thread(
        self,
        thread_id: str,
        title: Optional[str] = None,
        timestamp: Optional[str] = None,
        posts: Optional[Sequence[Any]] = None,
    ) -> Tuple[Thread, bool]:
        """
        Save a thread, creating it when no blob exists yet.

        Omitted fields keep the stored values (title falls back to "No Title",
        timestamp to now). `posts`, when given, replaces the stored sequence.
        Returns the saved thread and whether it was created.
        """
        if not thread_id:
            raise ValidationError("Missing required field: threadId")
        new_posts = self._normalize_posts(posts) if posts is not None else None

        with tracer.start_as_current_span("threads.save") as span:
            span.set_attribute("thread.id", thread_id)

            existing: Optional[Thread] = None
            created = False
            try:
                existing = await self._read(thread_id)
            except BlobNotFound:
                created = True
            except DecodeError as e:
                logger.error("Overwriting unreadable document for thread %s: %s", thread_id, e.message)

            if existing is None:
                thread = new_thread(thread_id, title=title, timestamp=timestamp, now=self.now)
            else:
                thread = existing
                thread.id = thread_id
                thread.title = title or thread.title or DEFAULT_TITLE
                thread.timestamp = timestamp or thread.timestamp or format_timestamp(self.now())
            if new_posts is not None:
                thread.posts = new_posts
            await self._write(thread_id, thread)

            span.set_attribute("thread.created", created)
            span.set_attribute("thread.posts", len(thread.posts))
            logger.info("%s thread %s", "Created" if created else "Updated", thread_id)
            return thread, created

    def _normalize_posts(self, posts: Sequence[Any]) -> List[Post]:
        out: List[Post] = []
        for i, raw in enumerate(posts):
            if isinstance(raw, Post):
                post = raw
            else:
                try:
                    post = post_from_dict(raw)
                except DecodeError:
                    raise ValidationError(f"posts[{i}] must be an object")
            if not isinstance(post.content, str) or not post.content:
                raise ValidationError(f"posts[{i}].content is required")
            out.append(
                build_post(
                    post.content,
                    name=post.name,
                    post_id=post.id,
                    timestamp=post.timestamp,
                    now=self.now,
                    extra=post.extra,
                )
            )
        return out

    async def append_post(
        self,
        thread_id: str,
        content: str,
        name: Optional[str] = None,
        post_id: Optional[str] = None,
        timestamp: Optional[str] = None,
    ) -> Post:
        """
        Append a post to an existing thread.

        The thread blob may not be visible yet right after it was created, so
        existence is polled with the retry policy before reading. Fails with
        ThreadNotFound, without writing, when it never shows up.
        """
        if not thread_id:
            raise ValidationError("Missing required field: threadId")
        if not isinstance(content, str) or not content:
            raise ValidationError("Missing required field: content")

        with tracer.start_as_current_span("threads.append_post") as span:
            span.set_attribute("thread.id", thread_id)

            if not await self.thread_exists(thread_id):
                logger.error(
                    "Thread %s not found after %d attempts", thread_id, self.retry.max_attempts
                )
                raise ThreadNotFound(thread_id)

            thread = await self._load(thread_id)
            post = build_post(content, name=name, post_id=post_id, timestamp=timestamp, now=self.now)
            thread.posts.append(post)
            await self._write(thread_id, thread)

            span.set_attribute("post.id", post.id)
            span.set_attribute("thread.posts", len(thread.posts))
            logger.info("Added post %s to thread %s", post.id, thread_id)
            return post

    async def delete_post(self, thread_id: str, post_id: str) -> Post:
        """Remove the first post whose id matches and return it."""
        if not thread_id or not post_id:
            raise ValidationError("threadId and postId are required")

        with tracer.start_as_current_span("threads.delete_post") as span:
            span.set_attribute("thread.id", thread_id)
            span.set_attribute("post.id", post_id)

            thread = await self._load(thread_id)
            index = thread.find_post(post_id)
            if index < 0:
                raise PostNotFound(thread_id, post_id)
            removed = thread.posts.pop(index)
            await self._write(thread_id, thread)

            logger.info("Deleted post %s from thread %s", post_id, thread_id)
            return removed

    async def delete_thread(self, thread_id: str) -> None:
        if not thread_id:
            raise ValidationError("Missing required field: threadId")

        with tracer.start_as_current_span("threads.delete") as span:
            span.set_attribute("thread.id", thread_id)
            key = blob_key(thread_id)
            if not await self.store.exists(key):
                raise ThreadNotFound(thread_id)
            try:
                await self.store.delete(key)
            except BlobNotFound:
                # removed by someone else between the check and the delete
                raise ThreadNotFound(thread_id)
            logger.info("Deleted thread %s", thread_id)

    async def list_threads(self) -> List[Thread]:
        """
        All threads, newest `timestamp` first.

        A document that vanished after listing or fails to decode is skipped
        with a warning; store failures abort the listing.
        """
        with tracer.start_as_current_span("threads.list") as span:
            keys = [key async for key in self.store.list_keys()]
            threads: List[Thread] = []
            skipped = 0
            for key in keys:
                thread_id = thread_id_from_key(key)
                if thread_id is None:
                    logger.debug("Ignoring non-thread blob %s", key)
                    continue
                try:
                    threads.append(await self._read(thread_id))
                except BlobNotFound:
                    skipped += 1
                    logger.warning("Thread blob %s disappeared during listing", key)
                except DecodeError as e:
                    skipped += 1
                    logger.warning("Skipping unreadable thread blob %s: %s", key, e.message)

            threads.sort(key=lambda t: parse_timestamp(t.timestamp), reverse=True)
            span.set_attribute("threads.count", len(threads))
            span.set_attribute("threads.skipped", skipped)
            return threads
