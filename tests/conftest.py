from datetime import datetime, timedelta, timezone
from typing import Generator, List

import pytest
from fastapi.testclient import TestClient

from thread_board.backup import BackupRepository
from thread_board.repository import ThreadRepository
from thread_board.retry import RetryPolicy
from thread_board.storage.memory_blob_store import MemoryBlobStore
from thread_board.webapp import create_app, get_backup_repository, get_repository

START = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Advances one second per reading so successive timestamps differ."""

    def __init__(self, start: datetime = START) -> None:
        self.current = start

    def __call__(self) -> datetime:
        value = self.current
        self.current = self.current + timedelta(seconds=1)
        return value


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleeps() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def store() -> MemoryBlobStore:
    return MemoryBlobStore(container_name="threads")


@pytest.fixture
def backup_store() -> MemoryBlobStore:
    return MemoryBlobStore(container_name="threads-backup")


@pytest.fixture
def repo(store: MemoryBlobStore, sleeps: RecordingSleep, clock: FakeClock) -> ThreadRepository:
    return ThreadRepository(store, retry=RetryPolicy(max_attempts=3, delay=3.0, sleep=sleeps), now=clock)


@pytest.fixture
def backup_repo(backup_store: MemoryBlobStore, clock: FakeClock) -> BackupRepository:
    return BackupRepository(backup_store, now=clock)


@pytest.fixture
def client(repo: ThreadRepository, backup_repo: BackupRepository) -> Generator[TestClient, None, None]:
    app = create_app()
    app.dependency_overrides[get_repository] = lambda: repo
    app.dependency_overrides[get_backup_repository] = lambda: backup_repo

    # No `with`: startup would build stores from the environment
    yield TestClient(app)
