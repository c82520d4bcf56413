"""Collision-resistant names for files in shared storage."""

import secrets
import time
from typing import Optional

from alhadi.config import UploadConfig
from alhadi.upload.validation import FileKind

TOKEN_BYTES = 6


def file_extension(original_name: str, default: str = "") -> str:
    """Lower-cased extension of a file name, without the dot."""
    if "." not in original_name:
        return default
    extension = original_name.rsplit(".", 1)[1].strip().lower()
    return extension or default


def generate_unique_name(
    original_name: str,
    prefix: Optional[str] = None,
    default_extension: str = "bin",
) -> str:
    """
    Build `[<prefix>_]<timestamp-ms>_<random-token>.<ext>`.

    The random token keeps names unique even for files uploaded within the
    same millisecond.
    """
    timestamp = int(time.time() * 1000)
    token = secrets.token_hex(TOKEN_BYTES)
    extension = file_extension(original_name, default_extension)
    name = f"{timestamp}_{token}.{extension}"
    return f"{prefix}_{name}" if prefix else name


def storage_path_for(name: str, kind: FileKind, limits: UploadConfig) -> str:
    """Folder-prefixed storage path: `videos/...` or `thumbnails/...`."""
    folder = limits.video_folder if kind is FileKind.VIDEO else limits.image_folder
    return f"{folder}/{name}" if folder else name
