"""
Blob storage collaborator interface.

The core only needs three operations from storage: upload bytes to a path,
turn a path into a public URL, and remove paths.
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional
from urllib.parse import unquote, urlparse

from alhadi.errors import InvalidInputError

logger = logging.getLogger(__name__)


@dataclass
class StoredObject:
    """An object written to storage."""

    path: str
    bucket: Optional[str] = None


class StorageClient(ABC):
    """Abstract base for blob storage clients."""

    @abstractmethod
    async def upload(
        self,
        path: str,
        data: bytes,
        content_type: str,
        cache_control: str = "3600",
        upsert: bool = False,
    ) -> StoredObject:
        """
        Upload bytes to a path.

        Raises:
            StorageServiceError: The service answered with an error payload.
            TransportError: The service could not be reached.
        """

    @abstractmethod
    def get_public_url(self, path: str) -> str:
        """Return the public URL for a stored path."""

    @abstractmethod
    async def remove(self, paths: list[str]) -> None:
        """Remove stored paths."""


def extract_path_from_url(url: Optional[str], bucket: str = "videos") -> Optional[str]:
    """
    Recover the storage path from a public object URL.

    Returns None for empty, malformed or foreign URLs.
    """
    if not url:
        return None
    try:
        parsed = urlparse(url)
    except ValueError as e:
        logger.error(f"Error extracting path from URL: {e}")
        return None
    match = re.search(rf"/storage/v1/object/public/{re.escape(bucket)}/(.+)", parsed.path)
    if match:
        return unquote(match.group(1))
    return None


async def delete_file(storage: StorageClient, path: str) -> None:
    """
    Remove one stored file.

    Raises:
        InvalidInputError: No path was given.
    """
    if not path:
        raise InvalidInputError("No file path provided")
    await storage.remove([path])
    logger.info(f"Deleted stored file: {path}")
