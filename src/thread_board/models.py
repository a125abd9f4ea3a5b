"""
Request models for the thread board API.

Fields are optional at the schema level; required-ness is checked by the
handlers so that a missing field answers 400 with a readable message.
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _Request(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ThreadSaveRequest(_Request):
    id: Optional[str] = None
    thread_id: Optional[str] = Field(default=None, alias="threadId")
    title: Optional[str] = None
    timestamp: Optional[str] = None
    posts: Optional[List[Any]] = None

    @property
    def effective_id(self) -> Optional[str]:
        return self.thread_id or self.id


class PostCreateRequest(_Request):
    thread_id: Optional[str] = Field(default=None, alias="threadId")
    id: Optional[str] = None
    content: Optional[str] = None
    name: Optional[str] = None
    timestamp: Optional[str] = None

    @property
    def effective_thread_id(self) -> Optional[str]:
        return self.thread_id or self.id

    @property
    def post_id(self) -> Optional[str]:
        # `id` names the post only when the thread is given as `threadId`
        return self.id if self.thread_id else None


class PostDeleteRequest(_Request):
    thread_id: Optional[str] = Field(default=None, alias="threadId")
    post_id: Optional[str] = Field(default=None, alias="postId")


class ThreadDeleteRequest(_Request):
    thread_id: Optional[str] = Field(default=None, alias="threadId")


class BackupPostRequest(_Request):
    thread_id: Optional[str] = Field(default=None, alias="threadId")
    post: Optional[Dict[str, Any]] = None
