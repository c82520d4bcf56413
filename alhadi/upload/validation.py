"""
Local file validation.

Runs before any network call. A file that fails here never reaches the
storage collaborator.
"""

import mimetypes
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from alhadi import messages
from alhadi.config import MEGABYTE, UploadConfig
from alhadi.errors import UploadValidationError


class FileKind(str, Enum):
    """What a file is being uploaded as."""

    VIDEO = "video"
    IMAGE = "image"

    @property
    def mime_prefix(self) -> str:
        return f"{self.value}/"

    @property
    def default_extension(self) -> str:
        return "mp4" if self is FileKind.VIDEO else "jpg"

    @classmethod
    def from_mime_type(cls, mime_type: str) -> Optional["FileKind"]:
        for kind in cls:
            if mime_type.startswith(kind.mime_prefix):
                return kind
        return None


class ValidationReason(str, Enum):
    MISSING_FILE = "missing_file"
    WRONG_TYPE = "wrong_type"
    TOO_LARGE = "too_large"


@dataclass(frozen=True)
class ValidationFailure:
    """Why a file was rejected."""

    reason: ValidationReason
    message: str
    size_bytes: int = 0
    mime_type: str = ""


@dataclass
class MediaFile:
    """A file selected for upload."""

    name: str
    mime_type: str
    data: bytes

    @property
    def size_bytes(self) -> int:
        return len(self.data)

    @classmethod
    def from_path(cls, path: Union[str, Path], mime_type: Optional[str] = None) -> "MediaFile":
        path = Path(path)
        guessed = mime_type or mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        return cls(name=path.name, mime_type=guessed, data=path.read_bytes())


def max_size_for(kind: FileKind, limits: UploadConfig) -> int:
    return limits.max_video_bytes if kind is FileKind.VIDEO else limits.max_image_bytes


def too_large_message(kind: FileKind, limits: UploadConfig) -> str:
    template = messages.VIDEO_TOO_LARGE if kind is FileKind.VIDEO else messages.IMAGE_TOO_LARGE
    return template.format(max_mb=max_size_for(kind, limits) // MEGABYTE)


def validate(file: Optional[MediaFile], kind: FileKind, limits: UploadConfig) -> MediaFile:
    """
    Check a file's type and size for the given kind.

    Args:
        file: The selected file, or None when nothing was selected.
        kind: Video or image.
        limits: Upload limits.

    Returns:
        The same file, when valid.

    Raises:
        UploadValidationError: The file is missing, of the wrong type or too large.
    """
    if file is None:
        raise UploadValidationError(
            ValidationFailure(ValidationReason.MISSING_FILE, messages.NO_FILE_SELECTED)
        )

    if not file.mime_type.startswith(kind.mime_prefix):
        message = (
            messages.INVALID_VIDEO_TYPE if kind is FileKind.VIDEO else messages.INVALID_IMAGE_TYPE
        )
        raise UploadValidationError(
            ValidationFailure(
                ValidationReason.WRONG_TYPE,
                message,
                size_bytes=file.size_bytes,
                mime_type=file.mime_type,
            )
        )

    if file.size_bytes > max_size_for(kind, limits):
        raise UploadValidationError(
            ValidationFailure(
                ValidationReason.TOO_LARGE,
                too_large_message(kind, limits),
                size_bytes=file.size_bytes,
                mime_type=file.mime_type,
            )
        )

    return file
