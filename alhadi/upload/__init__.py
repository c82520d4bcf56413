"""Validated media uploads to blob storage."""

from alhadi.upload.chunks import (
    ChunkAssembler,
    ChunkBuffer,
    ChunkError,
    ChunkLimitError,
    split_chunks,
)
from alhadi.upload.duration import PLACEHOLDER_DURATION, DurationProbe, format_duration
from alhadi.upload.naming import file_extension, generate_unique_name, storage_path_for
from alhadi.upload.strategies import (
    ChunkedUploadStrategy,
    DirectUploadStrategy,
    RelayedUploadStrategy,
    TransferResult,
    UploadStrategy,
    create_strategy,
)
from alhadi.upload.uploader import ResilientUploader, UploadResult, UploadStatus, UploadTask
from alhadi.upload.validation import (
    FileKind,
    MediaFile,
    ValidationFailure,
    ValidationReason,
    max_size_for,
    validate,
)

__all__ = [
    "ChunkAssembler",
    "ChunkBuffer",
    "ChunkError",
    "ChunkLimitError",
    "ChunkedUploadStrategy",
    "DirectUploadStrategy",
    "DurationProbe",
    "FileKind",
    "MediaFile",
    "PLACEHOLDER_DURATION",
    "RelayedUploadStrategy",
    "ResilientUploader",
    "TransferResult",
    "UploadResult",
    "UploadStatus",
    "UploadStrategy",
    "UploadTask",
    "ValidationFailure",
    "ValidationReason",
    "create_strategy",
    "file_extension",
    "format_duration",
    "generate_unique_name",
    "max_size_for",
    "split_chunks",
    "storage_path_for",
    "validate",
]
