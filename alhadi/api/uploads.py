"""
Upload relay API.

Server-side counterpart of the upload strategies: whole-file uploads,
chunked uploads reassembled in memory, and removal of stored files.
Collaborators are taken from `app.state` so tests can swap them.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile

from alhadi import messages
from alhadi.config import UploadConfig, get_config
from alhadi.errors import InvalidInputError, StorageServiceError, TransportError, UploadValidationError
from alhadi.storage.base import StorageClient, delete_file
from alhadi.upload.chunks import ChunkAssembler, ChunkError, ChunkLimitError
from alhadi.upload.duration import DurationProbe
from alhadi.upload.naming import generate_unique_name, storage_path_for
from alhadi.upload.strategies import DirectUploadStrategy
from alhadi.upload.validation import (
    FileKind,
    MediaFile,
    max_size_for,
    too_large_message,
    validate,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Uploads"])


def get_storage(request: Request) -> StorageClient:
    storage = getattr(request.app.state, "storage", None)
    if storage is None:
        raise HTTPException(status_code=503, detail="Storage is not configured")
    return storage


def get_upload_settings(request: Request) -> UploadConfig:
    return getattr(request.app.state, "upload_settings", None) or get_config().upload


def get_assembler(
    request: Request,
    settings: UploadConfig = Depends(get_upload_settings),
) -> ChunkAssembler:
    assembler = getattr(request.app.state, "chunk_assembler", None)
    if assembler is None:
        assembler = ChunkAssembler(max_bytes=settings.max_video_bytes, ttl=settings.chunk_ttl)
        request.app.state.chunk_assembler = assembler
    return assembler


def get_duration_probe(request: Request) -> Optional[DurationProbe]:
    return getattr(request.app.state, "duration_probe", None)


async def _read_upload(file: Optional[UploadFile]) -> Optional[MediaFile]:
    if file is None:
        return None
    data = await file.read()
    return MediaFile(
        name=file.filename or "",
        mime_type=file.content_type or "application/octet-stream",
        data=data,
    )


def _check(media: Optional[MediaFile], kind: FileKind, settings: UploadConfig) -> MediaFile:
    """Validate a file, answering 400 when it is rejected."""
    try:
        return validate(media, kind, settings)
    except UploadValidationError as e:
        logger.warning(f"Upload rejected: {e.failure.reason.value}")
        raise HTTPException(status_code=400, detail=e.message) from e


async def store_upload(
    storage: StorageClient,
    media: MediaFile,
    kind: FileKind,
    settings: UploadConfig,
    probe: Optional[DurationProbe],
    storage_path: Optional[str] = None,
) -> dict[str, Any]:
    """Store one validated file and build the success payload."""
    path = storage_path or storage_path_for(
        generate_unique_name(media.name, default_extension=kind.default_extension),
        kind,
        settings,
    )
    logger.info(f"Processing file: {media.name}, type: {media.mime_type}, size: {media.size_bytes} bytes")

    strategy = DirectUploadStrategy(storage, cache_control=settings.cache_control)
    try:
        transfer = await strategy.transfer(media, kind, path)
    except (StorageServiceError, TransportError) as e:
        logger.error(f"Upload of {media.name} failed: {e.message}")
        raise HTTPException(
            status_code=502, detail=messages.UPLOAD_FAILED.format(reason=e.message)
        ) from e

    duration = None
    if kind is FileKind.VIDEO:
        duration = settings.placeholder_duration
        if probe is not None:
            duration = await probe.probe(transfer.public_url)

    logger.info(f"Upload successful: {transfer.public_url}")
    return {
        "success": True,
        "url": transfer.public_url,
        "file_path": transfer.storage_path,
        "file_name": path.rsplit("/", 1)[-1],
        "duration": duration,
    }


def kind_for_upload(file: Optional[UploadFile]) -> FileKind:
    """Pick video or image from the upload's MIME type."""
    if file is None:
        raise HTTPException(status_code=400, detail=messages.NO_FILE_SELECTED)
    kind = FileKind.from_mime_type(file.content_type or "")
    if kind is None:
        raise HTTPException(status_code=400, detail=messages.UNSUPPORTED_FILE_TYPE)
    return kind


async def validated_upload(
    file: Optional[UploadFile],
    kind: FileKind,
    storage: StorageClient,
    settings: UploadConfig,
    probe: Optional[DurationProbe],
) -> dict[str, Any]:
    media = _check(await _read_upload(file), kind, settings)
    return await store_upload(storage, media, kind, settings, probe)


@router.post("/upload")
async def upload_file(
    file: Optional[UploadFile] = File(None),
    storage: StorageClient = Depends(get_storage),
    settings: UploadConfig = Depends(get_upload_settings),
    probe: Optional[DurationProbe] = Depends(get_duration_probe),
) -> dict[str, Any]:
    """
    Upload a video or an image; the kind follows the file's MIME type.

    Raises:
        HTTPException: 400 on missing, unsupported or oversize files,
            502 when storage fails.
    """
    kind = kind_for_upload(file)
    return await validated_upload(file, kind, storage, settings, probe)


@router.post("/upload-video")
async def upload_video(
    file: Optional[UploadFile] = File(None),
    storage: StorageClient = Depends(get_storage),
    settings: UploadConfig = Depends(get_upload_settings),
    probe: Optional[DurationProbe] = Depends(get_duration_probe),
) -> dict[str, Any]:
    return await validated_upload(file, FileKind.VIDEO, storage, settings, probe)


@router.post("/upload-image")
async def upload_image(
    file: Optional[UploadFile] = File(None),
    storage: StorageClient = Depends(get_storage),
    settings: UploadConfig = Depends(get_upload_settings),
) -> dict[str, Any]:
    return await validated_upload(file, FileKind.IMAGE, storage, settings, None)


@router.post("/upload-chunk")
async def upload_chunk(
    chunk: Optional[UploadFile] = File(None),
    upload_id: str = Form(...),
    chunk_index: int = Form(...),
    total_chunks: int = Form(...),
    file_name: str = Form(""),
    content_type: str = Form("video/mp4"),
    storage: StorageClient = Depends(get_storage),
    assembler: ChunkAssembler = Depends(get_assembler),
    settings: UploadConfig = Depends(get_upload_settings),
    probe: Optional[DurationProbe] = Depends(get_duration_probe),
) -> dict[str, Any]:
    """
    Accept one piece of a chunked upload.

    Responds with the number of pieces received until the last one
    arrives; the assembled file is then validated like a whole-file
    upload, stored, and its URL returned.
    """
    if chunk is None:
        raise HTTPException(status_code=400, detail="No chunk provided")

    kind = FileKind.from_mime_type(content_type)
    if kind is None:
        assembler.discard(upload_id)
        logger.warning(f"Rejected chunked upload {upload_id} of type {content_type}")
        raise HTTPException(status_code=400, detail=messages.UNSUPPORTED_FILE_TYPE)

    data = await chunk.read()
    try:
        assembled = assembler.add_chunk(
            upload_id,
            chunk_index,
            total_chunks,
            data,
            file_name,
            max_bytes=max_size_for(kind, settings),
        )
    except ChunkLimitError as e:
        logger.warning(f"Rejected chunk {chunk_index} of {upload_id}: {e.message}")
        raise HTTPException(status_code=400, detail=too_large_message(kind, settings)) from e
    except ChunkError as e:
        logger.warning(f"Rejected chunk {chunk_index} of {upload_id}: {e.message}")
        raise HTTPException(status_code=400, detail=e.message) from e

    if assembled is None:
        buffer = assembler.get(upload_id)
        received = buffer.received if buffer else 0
        return {
            "success": True,
            "message": f"Chunk {chunk_index + 1}/{total_chunks} received",
            "received": received,
        }

    name = generate_unique_name(file_name, prefix="chunked", default_extension=kind.default_extension)
    path = f"{settings.chunk_folder}/{name}" if settings.chunk_folder else name
    media = _check(
        MediaFile(name=file_name or name, mime_type=content_type, data=assembled), kind, settings
    )
    logger.info(f"Assembled {len(assembled)} bytes for {upload_id}, storing as {path}")
    return await store_upload(storage, media, kind, settings, probe, storage_path=path)


@router.delete("/files")
async def remove_file(
    path: str = Query(""),
    storage: StorageClient = Depends(get_storage),
) -> dict[str, Any]:
    """Remove a stored file by its storage path."""
    try:
        await delete_file(storage, path)
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=e.message) from e
    except (StorageServiceError, TransportError) as e:
        raise HTTPException(status_code=502, detail=e.message) from e
    return {"success": True}
