"""
Program media service.

Links uploaded files to program rows and cleans up stored files when a
program goes away.
"""

import logging
from typing import Any, Optional

from alhadi.database.rest_client import Row, TableClient
from alhadi.errors import AlhadiError, StorageServiceError, TransportError
from alhadi.storage.base import StorageClient, delete_file, extract_path_from_url
from alhadi.upload.uploader import UploadResult
from alhadi.upload.validation import FileKind

logger = logging.getLogger(__name__)

PROGRAMS_TABLE = "programs"
MEDIA_COLUMNS = ("video_url", "thumbnail_url")


class ProgramNotFoundError(AlhadiError):
    """No program row has the requested id."""

    def __init__(self, program_id: int):
        super().__init__(f"Program {program_id} not found", {"program_id": program_id})
        self.program_id = program_id


class ProgramMediaService:
    """Attach and remove program media."""

    def __init__(self, storage: StorageClient, tables: TableClient, bucket: str = "videos"):
        self.storage = storage
        self.tables = tables
        self.bucket = bucket

    async def attach_upload(self, program_id: int, result: UploadResult, kind: FileKind) -> Row:
        """
        Write an upload's public URL into a program.

        Videos set `video_url` and `duration`; images set `thumbnail_url`.

        Raises:
            ProgramNotFoundError: The program does not exist.
        """
        if kind is FileKind.VIDEO:
            values: dict[str, Any] = {"video_url": result.public_url}
            if result.duration:
                values["duration"] = result.duration
        else:
            values = {"thumbnail_url": result.public_url}

        rows = await self.tables.update(PROGRAMS_TABLE, values, {"id": program_id})
        if not rows:
            raise ProgramNotFoundError(program_id)
        logger.info(f"Attached {kind.value} to program {program_id}: {result.public_url}")
        return rows[0]

    def media_paths(self, program: Row) -> list[str]:
        """Storage paths of the files a program row points at."""
        paths = []
        for column in MEDIA_COLUMNS:
            path = extract_path_from_url(program.get(column), self.bucket)
            if path:
                paths.append(path)
        return paths

    async def delete_program(self, program_id: int) -> Optional[Row]:
        """
        Delete a program and its stored media.

        Failing to remove a stored file is logged and does not block the
        row deletion.

        Returns:
            The deleted row, or None when no such program existed.
        """
        programs = await self.tables.select(
            PROGRAMS_TABLE, {"id": program_id}, columns="id,video_url,thumbnail_url"
        )
        if programs:
            for path in self.media_paths(programs[0]):
                try:
                    await delete_file(self.storage, path)
                except (StorageServiceError, TransportError) as e:
                    logger.error(f"Error deleting file {path}: {e.message}")

        deleted = await self.tables.delete(PROGRAMS_TABLE, {"id": program_id})
        if deleted:
            logger.info(f"Deleted program {program_id}")
            return deleted[0]
        return None
