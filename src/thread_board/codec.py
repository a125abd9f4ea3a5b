from __future__ import annotations

import json
import re
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from thread_board.errors import DecodeError

DEFAULT_TITLE = "No Title"
DEFAULT_NAME = "Anonymous"

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_THREAD_FIELDS = ("id", "title", "timestamp", "posts")
_POST_FIELDS = ("id", "content", "name", "timestamp")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(dt: datetime) -> str:
    """Render as `2024-05-01T12:00:00.000Z`."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


# fromisoformat before 3.11 wants 0, 3 or 6 fraction digits and a colon in the offset
_ISO_TAIL = re.compile(r"(?:\.(\d+))?(Z|z|[+-]\d{2}:?\d{2})?$")


def _normalize_iso(text: str) -> str:
    match = _ISO_TAIL.search(text)
    fraction, offset = match.group(1), match.group(2)
    if not fraction and not offset:
        return text
    tail = ""
    if fraction:
        tail += "." + fraction[:6].ljust(6, "0")
    if offset in ("Z", "z"):
        tail += "+00:00"
    elif offset:
        tail += offset if ":" in offset else f"{offset[:3]}:{offset[3:]}"
    return text[: match.start()] + tail


def parse_timestamp(value: Any) -> datetime:
    """
    Parse an ISO-8601 timestamp. Missing or unparsable values map to the epoch
    so that sorting stays deterministic.
    """
    if not isinstance(value, str) or not value:
        return EPOCH
    text = _normalize_iso(value.strip())
    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        return EPOCH
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def new_post_id(now: Optional[datetime] = None) -> str:
    millis = int(now.timestamp() * 1000) if now else int(time.time() * 1000)
    return f"post-{millis}-{uuid.uuid4().hex[:7]}"


@dataclass
class Post:
    id: Optional[str] = None
    content: Optional[str] = None
    name: Optional[str] = None
    timestamp: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return post_to_dict(self)


@dataclass
class Thread:
    id: Optional[str] = None
    title: Optional[str] = None
    timestamp: Optional[str] = None
    posts: List[Post] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return thread_to_dict(self)

    def find_post(self, post_id: str) -> int:
        """Index of the first post with `post_id`, or -1."""
        for i, post in enumerate(self.posts):
            if post.id == post_id:
                return i
        return -1


def post_to_dict(post: Post) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key in _POST_FIELDS:
        value = getattr(post, key)
        if value is not None:
            out[key] = value
    out.update(post.extra)
    return out


def thread_to_dict(thread: Thread) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    if thread.id is not None:
        out["id"] = thread.id
    if thread.title is not None:
        out["title"] = thread.title
    if thread.timestamp is not None:
        out["timestamp"] = thread.timestamp
    out["posts"] = [post_to_dict(p) for p in thread.posts]
    out.update(thread.extra)
    return out


def post_from_dict(data: Any, key: Optional[str] = None) -> Post:
    if not isinstance(data, dict):
        raise DecodeError(f"post must be a JSON object, got {type(data).__name__}", key=key)
    return Post(
        id=data.get("id"),
        content=data.get("content"),
        name=data.get("name"),
        timestamp=data.get("timestamp"),
        extra={k: v for k, v in data.items() if k not in _POST_FIELDS},
    )


def thread_from_dict(data: Any, key: Optional[str] = None) -> Thread:
    if not isinstance(data, dict):
        raise DecodeError(f"thread document must be a JSON object, got {type(data).__name__}", key=key)
    raw_posts = data.get("posts")
    if raw_posts is None:
        raw_posts = []
    if not isinstance(raw_posts, list):
        raise DecodeError("thread 'posts' must be a JSON array", key=key)
    return Thread(
        id=data.get("id"),
        title=data.get("title"),
        timestamp=data.get("timestamp"),
        posts=[post_from_dict(p, key=key) for p in raw_posts],
        extra={k: v for k, v in data.items() if k not in _THREAD_FIELDS},
    )


def encode_thread(thread: Thread) -> bytes:
    return json.dumps(thread_to_dict(thread), ensure_ascii=False, indent=2).encode("utf-8")


def decode_thread(data: bytes, key: Optional[str] = None) -> Thread:
    try:
        doc = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise DecodeError(f"invalid JSON: {e}", key=key) from e
    return thread_from_dict(doc, key=key)


def build_post(
    content: str,
    name: Optional[str] = None,
    post_id: Optional[str] = None,
    timestamp: Optional[str] = None,
    now: Callable[[], datetime] = utc_now,
    extra: Optional[Dict[str, Any]] = None,
) -> Post:
    """Create a post, filling id/name/timestamp defaults for omitted values."""
    ts = now()
    return Post(
        id=post_id or new_post_id(ts),
        content=content,
        name=name or DEFAULT_NAME,
        timestamp=timestamp or format_timestamp(ts),
        extra=dict(extra or {}),
    )


def new_thread(
    thread_id: str,
    title: Optional[str] = None,
    timestamp: Optional[str] = None,
    now: Callable[[], datetime] = utc_now,
) -> Thread:
    return Thread(
        id=thread_id,
        title=title or DEFAULT_TITLE,
        timestamp=timestamp or format_timestamp(now()),
        posts=[],
    )
