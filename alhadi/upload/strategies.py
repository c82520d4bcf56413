"""
Upload strategies.

All strategies move the same bytes into the same storage; they differ in
the route. Direct upload talks to storage itself; the relayed and chunked
strategies send the bytes through the site's own upload endpoints.
Every strategy makes each network call at most once.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from alhadi.config import UploadConfig
from alhadi.errors import StorageServiceError, TransportError
from alhadi.storage.base import StorageClient
from alhadi.upload.chunks import split_chunks
from alhadi.upload.validation import FileKind, MediaFile

logger = logging.getLogger(__name__)


@dataclass
class TransferResult:
    """Where the bytes ended up."""

    storage_path: str
    public_url: str
    file_name: Optional[str] = None
    duration: Optional[str] = None


class UploadStrategy(ABC):
    """Abstract base for upload transports."""

    name = "abstract"

    @abstractmethod
    async def transfer(self, file: MediaFile, kind: FileKind, storage_path: str) -> TransferResult:
        """
        Move the file's bytes into storage.

        Raises:
            StorageServiceError: The collaborator answered with an error.
            TransportError: The collaborator could not be reached.
        """


class DirectUploadStrategy(UploadStrategy):
    """Upload straight to the storage collaborator."""

    name = "direct"

    def __init__(self, storage: StorageClient, cache_control: str = "3600"):
        self.storage = storage
        self.cache_control = cache_control

    async def transfer(self, file: MediaFile, kind: FileKind, storage_path: str) -> TransferResult:
        stored = await self.storage.upload(
            storage_path,
            file.data,
            content_type=file.mime_type,
            cache_control=self.cache_control,
            upsert=False,
        )
        return TransferResult(
            storage_path=stored.path,
            public_url=self.storage.get_public_url(stored.path),
        )


class _RelayStrategy(UploadStrategy):
    """Shared plumbing for strategies that go through the upload API."""

    def __init__(
        self,
        base_url: str,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 120.0,
    ):
        self.base_url = base_url.rstrip("/")
        self._http_client = http_client
        self.timeout = timeout

    async def _post(
        self,
        client: httpx.AsyncClient,
        endpoint: str,
        data: dict[str, Any],
        files: dict[str, Any],
    ) -> dict[str, Any]:
        try:
            response = await client.post(
                f"{self.base_url}{endpoint}", data=data, files=files, timeout=self.timeout
            )
        except httpx.HTTPError as e:
            logger.error(f"Relay upload transport error on {endpoint}: {e}")
            raise TransportError(f"Upload server unreachable: {e}") from e

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if response.status_code >= 400 or not payload.get("success", False):
            message = payload.get("error") or payload.get("detail") or f"HTTP {response.status_code}"
            logger.error(f"Relay upload failed on {endpoint}: {message}")
            raise StorageServiceError(str(message), status_code=response.status_code)
        return payload

    async def transfer(self, file: MediaFile, kind: FileKind, storage_path: str) -> TransferResult:
        if self._http_client is not None:
            return await self._send(self._http_client, file, kind)
        async with httpx.AsyncClient() as client:
            return await self._send(client, file, kind)

    @abstractmethod
    async def _send(self, client: httpx.AsyncClient, file: MediaFile, kind: FileKind) -> TransferResult:
        pass


class RelayedUploadStrategy(_RelayStrategy):
    """Send the whole file to the upload API, which stores it."""

    name = "relayed"

    async def _send(self, client: httpx.AsyncClient, file: MediaFile, kind: FileKind) -> TransferResult:
        endpoint = "/api/upload-video" if kind is FileKind.VIDEO else "/api/upload-image"
        logger.info(f"Relaying {file.name} ({file.size_bytes} bytes) to {endpoint}")
        payload = await self._post(
            client,
            endpoint,
            data={},
            files={"file": (file.name, file.data, file.mime_type)},
        )
        return TransferResult(
            storage_path=payload["file_path"],
            public_url=payload["url"],
            file_name=payload.get("file_name"),
            duration=payload.get("duration"),
        )


class ChunkedUploadStrategy(_RelayStrategy):
    """Send the file in fixed-size pieces that the upload API reassembles."""

    name = "chunked"

    def __init__(
        self,
        base_url: str,
        chunk_size: int,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 120.0,
    ):
        super().__init__(base_url, http_client=http_client, timeout=timeout)
        self.chunk_size = chunk_size

    async def _send(self, client: httpx.AsyncClient, file: MediaFile, kind: FileKind) -> TransferResult:
        upload_id = uuid.uuid4().hex
        payload: dict[str, Any] = {}
        for index, total, piece in split_chunks(file.data, self.chunk_size):
            payload = await self._post(
                client,
                "/api/upload-chunk",
                data={
                    "upload_id": upload_id,
                    "chunk_index": str(index),
                    "total_chunks": str(total),
                    "file_name": file.name,
                    "content_type": file.mime_type,
                },
                files={"chunk": (f"{file.name}.part{index}", piece, "application/octet-stream")},
            )
            logger.debug(f"Chunk {index + 1}/{total} accepted for {upload_id}")

        if "url" not in payload:
            raise StorageServiceError("Upload server did not assemble the file")
        return TransferResult(
            storage_path=payload["file_path"],
            public_url=payload["url"],
            file_name=payload.get("file_name"),
        )


def create_strategy(
    settings: UploadConfig,
    storage: Optional[StorageClient] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> UploadStrategy:
    """
    Build the upload strategy named by `settings.strategy`.

    Raises:
        ValueError: Unknown strategy, or a direct upload without storage.
    """
    if settings.strategy == DirectUploadStrategy.name:
        if storage is None:
            raise ValueError("Direct uploads need a storage client")
        return DirectUploadStrategy(storage, cache_control=settings.cache_control)
    if settings.strategy == RelayedUploadStrategy.name:
        return RelayedUploadStrategy(
            settings.relay_url, http_client=http_client, timeout=settings.relay_timeout
        )
    if settings.strategy == ChunkedUploadStrategy.name:
        return ChunkedUploadStrategy(
            settings.relay_url,
            chunk_size=settings.chunk_size,
            http_client=http_client,
            timeout=settings.relay_timeout,
        )
    raise ValueError(f"Unknown upload strategy: {settings.strategy}")
