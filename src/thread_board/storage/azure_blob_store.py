from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Dict, Iterator, Optional

from azure.core.exceptions import AzureError, ResourceExistsError, ResourceNotFoundError
from azure.identity.aio import DefaultAzureCredential
from azure.storage.blob import ContentSettings
from azure.storage.blob.aio import ContainerClient

from thread_board.config import Settings
from thread_board.errors import BlobNotFound, StoreUnavailable
from thread_board.telemetry import get_tracer

logger = logging.getLogger(__name__)
tracer = get_tracer("thread-board.blob")

JSON_CONTENT = ContentSettings(content_type="application/json")


@dataclass
class AzureBlobStore:
    container_name: str
    client: ContainerClient
    credential: Optional[DefaultAzureCredential] = None

    @staticmethod
    def create_from_settings(cfg: Settings, container_name: str) -> "AzureBlobStore":
        cfg.require_storage_credential()

        if cfg.storage_connection_string:
            client = ContainerClient.from_connection_string(
                cfg.storage_connection_string, container_name=container_name
            )
            return AzureBlobStore(container_name=container_name, client=client)

        cred = DefaultAzureCredential()
        client = ContainerClient(cfg.storage_account_url, container_name=container_name, credential=cred)
        return AzureBlobStore(container_name=container_name, client=client, credential=cred)

    async def close(self) -> None:
        await self.client.close()
        if self.credential is not None:
            await self.credential.close()

    @contextmanager
    def _span(self, op: str, key: Optional[str] = None) -> Iterator[None]:
        with tracer.start_as_current_span(f"blob.{op}") as span:
            span.set_attribute("blob.container", self.container_name)
            if key is not None:
                span.set_attribute("blob.key", key)
            t0 = time.perf_counter()
            try:
                yield
            except ResourceNotFoundError:
                raise BlobNotFound(key or self.container_name)
            except AzureError as e:
                logger.error("Blob %s failed for %s/%s: %s", op, self.container_name, key, e)
                raise StoreUnavailable(f"Blob {op} failed", detail=str(e)) from e
            finally:
                span.set_attribute(f"blob.{op}_ms", int((time.perf_counter() - t0) * 1000))

    async def ensure_container(self) -> None:
        with self._span("create_container"):
            try:
                await self.client.create_container()
                logger.info("Created container %s", self.container_name)
            except ResourceExistsError:
                pass

    async def exists(self, key: str) -> bool:
        with self._span("exists", key):
            return await self.client.get_blob_client(key).exists()

    async def download(self, key: str) -> bytes:
        with self._span("download", key):
            stream = await self.client.get_blob_client(key).download_blob()
            return await stream.readall()

    async def upload(
        self,
        key: str,
        data: bytes,
        overwrite: bool = True,
        metadata: Optional[Dict[str, str]] = None,
    ) -> None:
        with self._span("upload", key):
            await self.client.get_blob_client(key).upload_blob(
                data,
                overwrite=overwrite,
                content_settings=JSON_CONTENT,
                metadata=metadata,
            )

    async def delete(self, key: str) -> None:
        with self._span("delete", key):
            await self.client.get_blob_client(key).delete_blob()

    async def list_keys(self) -> AsyncIterator[str]:
        # Not a current span: the generator suspends at every yield
        span = tracer.start_span("blob.list")
        span.set_attribute("blob.container", self.container_name)
        count = 0
        try:
            async for props in self.client.list_blobs():
                count += 1
                yield props.name
        except AzureError as e:
            logger.error("Blob list failed for %s: %s", self.container_name, e)
            raise StoreUnavailable("Blob list failed", detail=str(e)) from e
        finally:
            span.set_attribute("blob.listed", count)
            span.end()
