from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import AsyncIterator, Dict, Optional

from thread_board.errors import BlobNotFound, StoreUnavailable


@dataclass
class MemoryBlobStore:
    """
    In-process BlobStore for local runs and tests.

    Every call yields to the event loop once, so concurrent requests interleave
    at the same points they would against a remote store.
    """
    container_name: str = "threads"
    blobs: Dict[str, bytes] = field(default_factory=dict)
    metadata: Dict[str, Dict[str, str]] = field(default_factory=dict)
    closed: bool = False

    async def _io(self) -> None:
        if self.closed:
            raise StoreUnavailable("Store is closed")
        await asyncio.sleep(0)

    async def close(self) -> None:
        self.closed = True

    async def ensure_container(self) -> None:
        await self._io()

    async def exists(self, key: str) -> bool:
        await self._io()
        return key in self.blobs

    async def download(self, key: str) -> bytes:
        await self._io()
        try:
            return self.blobs[key]
        except KeyError:
            raise BlobNotFound(key)

    async def upload(
        self,
        key: str,
        data: bytes,
        overwrite: bool = True,
        metadata: Optional[Dict[str, str]] = None,
    ) -> None:
        await self._io()
        if not overwrite and key in self.blobs:
            raise StoreUnavailable(f"Blob {key} already exists")
        self.blobs[key] = bytes(data)
        if metadata is not None:
            self.metadata[key] = dict(metadata)

    async def delete(self, key: str) -> None:
        await self._io()
        if key not in self.blobs:
            raise BlobNotFound(key)
        del self.blobs[key]
        self.metadata.pop(key, None)

    async def list_keys(self) -> AsyncIterator[str]:
        await self._io()
        for key in sorted(self.blobs):
            yield key
