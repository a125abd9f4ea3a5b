import logging

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from thread_board.backup import BackupRepository, backup_key
from thread_board.config import settings
from thread_board.errors import BoardError, StoreUnavailable, ValidationError
from thread_board.exception_handlers import (
    board_exception_handler,
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from thread_board.models import (
    BackupPostRequest,
    PostCreateRequest,
    PostDeleteRequest,
    ThreadDeleteRequest,
    ThreadSaveRequest,
)
from thread_board.repository import ThreadRepository
from thread_board.retry import RetryPolicy
from thread_board.storage.factory import create_backup_store, create_thread_store
from thread_board.telemetry import setup_telemetry

logger = logging.getLogger(__name__)


def get_repository(request: Request) -> ThreadRepository:
    repo = getattr(request.app.state, "repository", None)
    if repo is None:
        raise StoreUnavailable("Thread store not initialized")
    return repo


def get_backup_repository(request: Request) -> BackupRepository:
    repo = getattr(request.app.state, "backup_repository", None)
    if repo is None:
        raise StoreUnavailable("Backup store not initialized")
    return repo


def create_app() -> FastAPI:
    app = FastAPI(title="thread-board")

    app.add_exception_handler(BoardError, board_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    @app.on_event("startup")
    async def _startup():
        setup_telemetry()
        thread_store = create_thread_store(settings)
        backup_store = create_backup_store(settings)
        await thread_store.ensure_container()
        await backup_store.ensure_container()

        app.state.repository = ThreadRepository(
            thread_store,
            retry=RetryPolicy(
                max_attempts=settings.exists_retry_attempts,
                delay=settings.exists_retry_delay_seconds,
            ),
        )
        app.state.backup_repository = BackupRepository(backup_store)
        logger.info(
            "Thread board ready (backend=%s, containers=%s/%s)",
            settings.storage_backend,
            settings.threads_container,
            settings.backup_container,
        )

    @app.on_event("shutdown")
    async def _shutdown():
        for name in ("repository", "backup_repository"):
            repo = getattr(app.state, name, None)
            if repo is not None:
                await repo.store.close()
                setattr(app.state, name, None)

    @app.get("/api/threads")
    async def list_threads(repo: ThreadRepository = Depends(get_repository)):
        threads = await repo.list_threads()
        logger.debug("Retrieved threads: %d items", len(threads))
        return {"threads": [t.to_dict() for t in threads]}

    @app.post("/api/threads")
    async def save_thread(body: ThreadSaveRequest, repo: ThreadRepository = Depends(get_repository)):
        thread_id = body.effective_id
        if not thread_id:
            raise ValidationError("Missing required field: threadId (or id)")

        thread, created = await repo.create_or_update_thread(
            thread_id,
            title=body.title,
            timestamp=body.timestamp,
            posts=body.posts,
        )
        return JSONResponse(
            status_code=201 if created else 200,
            content={
                "message": "Thread created" if created else "Thread updated",
                "threadId": thread_id,
                "created": created,
                "thread": thread.to_dict(),
            },
        )

    @app.get("/api/threads/{thread_id}")
    async def get_thread(thread_id: str, repo: ThreadRepository = Depends(get_repository)):
        thread = await repo.get_thread(thread_id)
        return thread.to_dict()

    @app.delete("/api/threads")
    async def delete_thread(body: ThreadDeleteRequest, repo: ThreadRepository = Depends(get_repository)):
        if not body.thread_id:
            raise ValidationError("Missing required field: threadId")
        await repo.delete_thread(body.thread_id)
        return {"message": "Thread deleted", "threadId": body.thread_id}

    @app.post("/api/posts")
    async def save_post(body: PostCreateRequest, repo: ThreadRepository = Depends(get_repository)):
        if not body.content:
            raise ValidationError("Missing required field: content")
        thread_id = body.effective_thread_id
        if not thread_id:
            raise ValidationError("Missing required field: threadId")

        post = await repo.append_post(
            thread_id,
            body.content,
            name=body.name,
            post_id=body.post_id,
            timestamp=body.timestamp,
        )
        return JSONResponse(
            status_code=201,
            content={
                "message": "Post added",
                "threadId": thread_id,
                "postId": post.id,
                "post": post.to_dict(),
            },
        )

    @app.delete("/api/posts")
    async def delete_post(body: PostDeleteRequest, repo: ThreadRepository = Depends(get_repository)):
        if not body.thread_id or not body.post_id:
            raise ValidationError("Missing required fields: threadId and postId")
        deleted = await repo.delete_post(body.thread_id, body.post_id)
        return {
            "message": "Post deleted",
            "threadId": body.thread_id,
            "postId": body.post_id,
            "deletedPost": deleted.to_dict(),
        }

    @app.post("/api/backup/posts")
    async def save_backup_post(
        body: BackupPostRequest,
        repo: BackupRepository = Depends(get_backup_repository),
    ):
        if not body.thread_id or body.post is None:
            raise ValidationError("threadId and a valid post object are required")
        post, created = await repo.save_backup_post(body.thread_id, body.post)
        return {
            "message": "Post saved to backup",
            "threadId": body.thread_id,
            "post": post.to_dict(),
            "backupInfo": {
                "containerName": repo.store.container_name,
                "blobName": backup_key(body.thread_id),
                "created": created,
                "timestamp": post.extra.get("backupTimestamp"),
            },
        }

    return app


app = create_app()
