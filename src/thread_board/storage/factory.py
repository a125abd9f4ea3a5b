"""
Factory functions to create blob stores based on configuration.
"""
from thread_board.config import Settings
from thread_board.storage.blob_store import BlobStore
from thread_board.storage.azure_blob_store import AzureBlobStore
from thread_board.storage.memory_blob_store import MemoryBlobStore


def create_blob_store(cfg: Settings, container_name: str) -> BlobStore:
    """Create a blob store for `container_name`.

    STORAGE_BACKEND selects "azure" (default) or "memory". The memory backend
    keeps nothing across restarts.
    """
    if cfg.storage_backend == "memory":
        return MemoryBlobStore(container_name=container_name)
    if cfg.storage_backend != "azure":
        raise RuntimeError(f"Unknown STORAGE_BACKEND: {cfg.storage_backend!r}")
    return AzureBlobStore.create_from_settings(cfg, container_name)


def create_thread_store(cfg: Settings) -> BlobStore:
    return create_blob_store(cfg, cfg.threads_container)


def create_backup_store(cfg: Settings) -> BlobStore:
    return create_blob_store(cfg, cfg.backup_container)
