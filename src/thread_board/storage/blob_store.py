from __future__ import annotations

from typing import AsyncIterator, Dict, Optional, Protocol


class BlobStore(Protocol):
    """
    Key -> bytes store over a single container.

    Implementations raise `BlobNotFound` from `download`/`delete` for missing
    keys and `StoreUnavailable` when the backend call itself fails. Two calls
    are never atomic with respect to each other.
    """

    container_name: str

    async def ensure_container(self) -> None: ...

    async def exists(self, key: str) -> bool: ...

    async def download(self, key: str) -> bytes: ...

    async def upload(
        self,
        key: str,
        data: bytes,
        overwrite: bool = True,
        metadata: Optional[Dict[str, str]] = None,
    ) -> None: ...

    async def delete(self, key: str) -> None: ...

    def list_keys(self) -> AsyncIterator[str]: ...

    async def close(self) -> None: ...
