"""Program media API: attach uploads to programs and delete programs with their files."""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile

from alhadi.config import UploadConfig
from alhadi.errors import StorageServiceError, TransportError
from alhadi.services.program_media import ProgramMediaService, ProgramNotFoundError
from alhadi.storage.base import StorageClient
from alhadi.upload.duration import DurationProbe
from alhadi.upload.uploader import UploadResult

from .uploads import (
    get_duration_probe,
    get_storage,
    get_upload_settings,
    kind_for_upload,
    validated_upload,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/programs", tags=["Programs"])


def get_program_media(request: Request) -> ProgramMediaService:
    service = getattr(request.app.state, "program_media", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Program storage is not configured")
    return service


@router.post("/{program_id}/media")
async def attach_program_media(
    program_id: int,
    file: Optional[UploadFile] = File(None),
    storage: StorageClient = Depends(get_storage),
    settings: UploadConfig = Depends(get_upload_settings),
    probe: Optional[DurationProbe] = Depends(get_duration_probe),
    service: ProgramMediaService = Depends(get_program_media),
) -> dict[str, Any]:
    """
    Upload a video or cover image and link it to a program.

    Videos fill `video_url` and `duration`; images fill `thumbnail_url`.
    """
    kind = kind_for_upload(file)
    payload = await validated_upload(file, kind, storage, settings, probe)
    result = UploadResult(
        public_url=payload["url"],
        storage_path=payload["file_path"],
        generated_name=payload["file_name"],
        duration=payload["duration"],
    )

    try:
        program = await service.attach_upload(program_id, result, kind)
    except ProgramNotFoundError as e:
        logger.warning(f"Uploaded {result.storage_path} for missing program {program_id}")
        raise HTTPException(status_code=404, detail="Program not found") from e
    except (StorageServiceError, TransportError) as e:
        raise HTTPException(status_code=502, detail=e.message) from e

    return {**payload, "program": program}


@router.delete("/{program_id}")
async def delete_program(
    program_id: int,
    service: ProgramMediaService = Depends(get_program_media),
) -> dict[str, Any]:
    """Delete a program and the files it points at."""
    try:
        deleted = await service.delete_program(program_id)
    except (StorageServiceError, TransportError) as e:
        raise HTTPException(status_code=502, detail=e.message) from e

    if deleted is None:
        raise HTTPException(status_code=404, detail="Program not found")
    return {"success": True, "program": deleted}
