"""
Error types shared by the storage layer, the repositories and the HTTP handlers.
"""
from typing import Any, Dict, Optional


class BoardError(Exception):
    """Base exception for thread board errors."""
    def __init__(
        self,
        message: str,
        status_code: int = 500,
        detail: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.detail = detail or message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(BoardError):
    """Missing or malformed request field."""
    def __init__(self, message: str, detail: Optional[str] = None, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=400, detail=detail, context=context)


class NotFoundError(BoardError):
    """Resource not found exception."""
    def __init__(self, resource: str, resource_id: str, context: Optional[Dict[str, Any]] = None):
        message = f"{resource} {resource_id} not found"
        super().__init__(message, status_code=404, context=context)


class ThreadNotFound(NotFoundError):
    def __init__(self, thread_id: str):
        self.thread_id = thread_id
        super().__init__("Thread", thread_id, context={"threadId": thread_id})


class PostNotFound(NotFoundError):
    def __init__(self, thread_id: str, post_id: str):
        self.thread_id = thread_id
        self.post_id = post_id
        super().__init__("Post", post_id, context={"threadId": thread_id, "postId": post_id})


class StoreUnavailable(BoardError):
    """The backing blob store call itself failed (network, auth, throttling)."""
    def __init__(self, message: str = "Storage backend unavailable", detail: Optional[str] = None):
        super().__init__(message, status_code=500, detail=detail)


class DecodeError(BoardError):
    """A stored blob is not a valid thread document."""
    def __init__(self, message: str, key: Optional[str] = None):
        self.key = key
        super().__init__(message, status_code=500)


class BlobNotFound(BoardError):
    """The requested blob key does not exist in the container."""
    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Blob {key} not found", status_code=404)
