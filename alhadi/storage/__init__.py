"""
Blob storage for uploaded videos and thumbnails.
"""

from alhadi.storage.base import (
    StorageClient,
    StoredObject,
    delete_file,
    extract_path_from_url,
)
from alhadi.storage.supabase import SupabaseStorageClient

__all__ = [
    "StorageClient",
    "StoredObject",
    "SupabaseStorageClient",
    "delete_file",
    "extract_path_from_url",
]
