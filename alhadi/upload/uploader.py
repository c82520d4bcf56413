"""
Validated, progress-reporting uploads.

An upload goes through two phases. Validation is local and synchronous; a
file that fails it never causes a network call. The upload phase names the
file, moves the bytes through the configured strategy exactly once, and
reports simulated progress while it waits. Retrying is up to the caller,
who re-invokes `upload()` for the whole flow.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from alhadi import messages
from alhadi.config import UploadConfig, get_config
from alhadi.errors import ErrorClassifier, ErrorType, UploadValidationError
from alhadi.storage.base import StorageClient
from alhadi.upload.duration import DurationProbe
from alhadi.upload.naming import generate_unique_name, storage_path_for
from alhadi.upload.strategies import UploadStrategy, create_strategy
from alhadi.upload.validation import FileKind, MediaFile, max_size_for, validate
from alhadi.utils.progress import ProgressSimulator

logger = logging.getLogger(__name__)


class UploadStatus(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    UPLOADING = "uploading"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class UploadTask:
    """
    State of one upload, from file selection until the outcome is shown.

    Only the resulting URL outlives the task.
    """

    file: Optional[MediaFile]
    kind: FileKind
    max_size_bytes: int
    generated_name: str = ""
    storage_path: str = ""
    progress: float = 0.0
    status: UploadStatus = UploadStatus.IDLE
    result_url: Optional[str] = None
    duration: Optional[str] = None
    error: Optional[str] = None
    error_type: Optional[ErrorType] = None
    simulator: Optional[ProgressSimulator] = field(default=None, repr=False, compare=False)


@dataclass
class UploadResult:
    public_url: str
    storage_path: str
    generated_name: str
    duration: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.public_url,
            "file_path": self.storage_path,
            "file_name": self.generated_name,
            "duration": self.duration,
        }


ProgressCallback = Callable[[UploadTask], None]


class ResilientUploader:
    """
    Runs upload tasks against a storage strategy.

    Usage:
        async with SupabaseStorageClient(config.supabase) as storage:
            uploader = ResilientUploader(storage=storage)
            result = await uploader.upload(MediaFile.from_path("clip.mp4"), FileKind.VIDEO)
    """

    def __init__(
        self,
        storage: Optional[StorageClient] = None,
        strategy: Optional[UploadStrategy] = None,
        duration_probe: Optional[DurationProbe] = None,
        settings: Optional[UploadConfig] = None,
        on_progress: Optional[ProgressCallback] = None,
    ):
        self.settings = settings or get_config().upload
        if strategy is None:
            strategy = create_strategy(self.settings, storage)
        self.strategy = strategy
        self.duration_probe = duration_probe
        self.on_progress = on_progress
        self.last_task: Optional[UploadTask] = None

    def new_task(self, file: Optional[MediaFile], kind: FileKind) -> UploadTask:
        return UploadTask(file=file, kind=kind, max_size_bytes=max_size_for(kind, self.settings))

    async def upload(self, file: Optional[MediaFile], kind: FileKind) -> UploadResult:
        """
        Validate and upload a file.

        Raises:
            UploadValidationError: The file was rejected locally.
            StorageServiceError: Storage answered with an error.
            TransportError: Storage could not be reached.
        """
        task = self.new_task(file, kind)
        self.last_task = task
        return await self.run(task)

    async def run(self, task: UploadTask) -> UploadResult:
        self._set_status(task, UploadStatus.VALIDATING)
        try:
            file = validate(task.file, task.kind, self.settings)
        except UploadValidationError as e:
            self._fail(task, e.message, ErrorType.VALIDATION)
            logger.warning(f"Upload rejected: {e.failure.reason.value} ({e.message})")
            raise

        task.generated_name = generate_unique_name(
            file.name, default_extension=task.kind.default_extension
        )
        task.storage_path = storage_path_for(task.generated_name, task.kind, self.settings)
        logger.info(
            f"Starting {self.strategy.name} upload: {file.name}, type: {file.mime_type}, "
            f"size: {file.size_bytes} bytes -> {task.storage_path}"
        )

        simulator = ProgressSimulator(
            interval=self.settings.progress_interval,
            step_max=self.settings.progress_step_max,
            cap=self.settings.progress_cap,
            reset_grace=self.settings.reset_grace,
            on_change=lambda value: self._set_progress(task, value),
        )
        task.simulator = simulator
        self._set_status(task, UploadStatus.UPLOADING)
        simulator.start()

        try:
            transfer = await self.strategy.transfer(file, task.kind, task.storage_path)
        except Exception as e:
            simulator.fail()
            classified = ErrorClassifier.classify(e)
            self._fail(
                task,
                messages.UPLOAD_FAILED.format(reason=classified.message),
                classified.error_type,
            )
            logger.error(f"Upload of {file.name} failed ({classified.error_type.value}): {classified.message}")
            raise
        finally:
            if simulator.running:
                simulator.cancel()

        task.storage_path = transfer.storage_path
        task.generated_name = transfer.file_name or task.generated_name
        task.result_url = transfer.public_url

        if task.kind is FileKind.VIDEO:
            task.duration = transfer.duration
            if self.duration_probe is not None:
                task.duration = await self.duration_probe.probe(transfer.public_url)
            task.duration = task.duration or self.settings.placeholder_duration

        simulator.complete()
        self._set_status(task, UploadStatus.SUCCEEDED)
        logger.info(f"Upload completed successfully: {task.result_url}")

        return UploadResult(
            public_url=task.result_url,
            storage_path=task.storage_path,
            generated_name=task.generated_name,
            duration=task.duration,
        )

    def _fail(self, task: UploadTask, message: str, error_type: ErrorType) -> None:
        task.error = message
        task.error_type = error_type
        self._set_status(task, UploadStatus.FAILED)

    def _set_status(self, task: UploadTask, status: UploadStatus) -> None:
        task.status = status
        self._notify(task)

    def _set_progress(self, task: UploadTask, value: float) -> None:
        task.progress = value
        self._notify(task)

    def _notify(self, task: UploadTask) -> None:
        if self.on_progress:
            try:
                self.on_progress(task)
            except Exception as e:
                logger.error(f"Upload progress callback failed: {e}")
