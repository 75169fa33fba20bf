"""
Upload Orchestration
====================

Validates batches of user-selected files and uploads the valid ones to the
media host concurrently, tracking per-file status and progress.

Key Features:
-------------
- Validate First: type and size checks run on every file before any network
  call; rejected files never reach the media host.
- Per-Task Settling: each upload succeeds or fails on its own. One failure
  never cancels or hides the others.
- Progress Forwarding: byte counts reported from worker threads are
  marshalled back onto the event loop before callbacks run.
- Retry Aware: each upload runs through the retry executor, so rate-limited
  uploads back off like every other remote call.
- Local Previews: Pillow thumbnails rendered as data URLs for pending images.

Author: Portfolio Admin Project
"""

import asyncio
import base64
import io
import logging
import mimetypes
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from PIL import Image, UnidentifiedImageError

from portfolio_admin.core import config
from portfolio_admin.core.errors import MediaTransferError, RemoteCallError, UploadValidationError, describe_error
from portfolio_admin.core.retry import DEFAULT_RETRY_POLICY, RemoteCallResult, RetryExecutor, RetryPolicy
from portfolio_admin.utils.concurrency import DaemonThreadPoolExecutor


# ============================================================================
# DATA CLASSES
# ============================================================================

class UploadStatus(Enum):
    """Lifecycle of a single upload task."""
    PENDING = "pending"
    UPLOADING = "uploading"
    DONE = "done"
    FAILED = "failed"


@dataclass
class MediaFile:
    """A user-selected file held in memory until it is uploaded."""
    filename: str
    content: bytes
    media_type: str

    @property
    def size(self) -> int:
        return len(self.content)

    @classmethod
    def from_path(cls, path, media_type: Optional[str] = None) -> "MediaFile":
        """Read a file from disk, guessing its media type from the extension."""
        path = Path(path)
        if media_type is None:
            media_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        return cls(filename=path.name, content=path.read_bytes(), media_type=media_type)


@dataclass(frozen=True)
class UploadRules:
    """Accepted media types and size ceiling for one kind of upload."""
    label: str
    allowed_types: Tuple[str, ...]
    max_bytes: int

    def accepts_type(self, media_type: str) -> bool:
        return (media_type or "").lower() in self.allowed_types


GALLERY_IMAGE_RULES = UploadRules(
    label="an image",
    allowed_types=config.ALLOWED_IMAGE_TYPES,
    max_bytes=config.MAX_IMAGE_SIZE_BYTES,
)

DOCUMENT_RULES = UploadRules(
    label="a PDF document",
    allowed_types=config.ALLOWED_DOCUMENT_TYPES,
    max_bytes=config.MAX_DOCUMENT_SIZE_BYTES,
)


@dataclass
class UploadedMedia:
    """Descriptor of a file stored on the media host."""
    url: str
    media_id: str
    width: Optional[int] = None
    height: Optional[int] = None
    format: Optional[str] = None
    byte_size: Optional[int] = None
    original_filename: str = ""

    @classmethod
    def from_host_response(cls, data: Dict[str, Any], original_filename: str) -> "UploadedMedia":
        return cls(
            url=data.get("url", ""),
            media_id=data.get("public_id", ""),
            width=data.get("width"),
            height=data.get("height"),
            format=data.get("format"),
            byte_size=data.get("bytes"),
            original_filename=original_filename,
        )


@dataclass
class UploadTask:
    """Status of one file within a batch."""
    file: MediaFile
    status: UploadStatus = UploadStatus.PENDING
    progress_percent: int = 0
    result: Optional[UploadedMedia] = None
    error: Optional[str] = None
    exception: Optional[Exception] = field(default=None, repr=False)
    preview: Optional[str] = field(default=None, repr=False)
    attempts: int = 0

    @property
    def settled(self) -> bool:
        return self.status in (UploadStatus.DONE, UploadStatus.FAILED)

    def outcome(self) -> RemoteCallResult:
        """The settled task as a result. Files rejected locally report zero attempts."""
        if self.status == UploadStatus.DONE:
            return RemoteCallResult.success(self.result, attempts=self.attempts)
        if self.status == UploadStatus.FAILED:
            return RemoteCallResult.failure(self.exception, attempts=self.attempts)
        raise RuntimeError(f"Upload of {self.file.filename} has not settled")


ProgressCallback = Callable[[int, int, UploadTask], None]


@dataclass
class UploadOptions:
    """Per-batch upload settings."""
    folder: Optional[str] = config.DEFAULT_UPLOAD_FOLDER
    tags: List[str] = field(default_factory=list)
    on_progress: Optional[ProgressCallback] = None
    rules: UploadRules = GALLERY_IMAGE_RULES
    with_previews: bool = False


# ============================================================================
# VALIDATION AND PREVIEWS
# ============================================================================

def validate_upload(file: MediaFile, rules: UploadRules = GALLERY_IMAGE_RULES) -> None:
    """
    Check a file against ``rules``.

    Raises:
        UploadValidationError: If the file is empty, of the wrong type, or too large.
    """
    if file.size == 0:
        raise UploadValidationError("File is empty")
    if not rules.accepts_type(file.media_type):
        raise UploadValidationError(f"File must be {rules.label}")
    if file.size > rules.max_bytes:
        limit_mb = rules.max_bytes // (1024 * 1024)
        raise UploadValidationError(f"File size must be less than {limit_mb}MB")


def create_preview(file: MediaFile, max_size: Tuple[int, int] = config.PREVIEW_MAX_SIZE) -> Optional[str]:
    """
    Render a thumbnail of an image file as a ``data:`` URL.

    Returns None for files Pillow cannot decode.
    """
    try:
        with Image.open(io.BytesIO(file.content)) as img:
            img.thumbnail(max_size)
            if img.mode not in ("RGB", "RGBA"):
                img = img.convert("RGBA")
            buffer = io.BytesIO()
            img.save(buffer, format="PNG")
    except (UnidentifiedImageError, OSError) as e:
        logging.getLogger(__name__).warning(f"Cannot create preview for {file.filename}: {e}")
        return None

    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return f"data:image/png;base64,{encoded}"


def summarize_batch(
    files: Sequence[MediaFile],
    results: Sequence[RemoteCallResult],
) -> Tuple[List[UploadedMedia], List[Tuple[MediaFile, Exception]]]:
    """
    Split batch results into uploaded media and failures, in input order.

    Args:
        files: The files passed to ``upload_batch``.
        results: What ``upload_batch`` returned for them.

    Returns:
        (uploaded media, list of (file, error) pairs)
    """
    uploaded, failed = [], []
    for file, result in zip(files, results):
        if result.ok:
            uploaded.append(result.value)
        else:
            failed.append((file, result.error))
    return uploaded, failed


# ============================================================================
# ORCHESTRATOR
# ============================================================================

class UploadOrchestrator:
    """
    Uploads batches of files to the media host.

    Usage:
        ```python
        orchestrator = UploadOrchestrator(MediaHostClient(cloud, preset))
        results = await orchestrator.upload_batch(files, UploadOptions(folder="portfolio/projects"))
        uploaded, failed = summarize_batch(files, results)
        ```
    """

    def __init__(
        self,
        media_host,
        executor: Optional[DaemonThreadPoolExecutor] = None,
        retry_executor: Optional[RetryExecutor] = None,
        retry_policy: RetryPolicy = DEFAULT_RETRY_POLICY,
    ):
        self.media_host = media_host
        self.executor = executor or DaemonThreadPoolExecutor(thread_name_prefix="UploadWorker")
        self.retry_executor = retry_executor or RetryExecutor()
        self.retry_policy = retry_policy
        self.logger = logging.getLogger(__name__)

    def prepare_tasks(self, files: Sequence[MediaFile], options: UploadOptions) -> List[UploadTask]:
        """Create one task per file and fail the ones that do not pass validation."""
        tasks = []
        for file in files:
            task = UploadTask(file=file)
            try:
                validate_upload(file, options.rules)
            except UploadValidationError as e:
                task.status = UploadStatus.FAILED
                task.error = str(e)
                task.exception = e
                self.logger.warning(f"[UPLOAD] Rejected {file.filename}: {e}")
            else:
                if options.with_previews:
                    task.preview = create_preview(file)
            tasks.append(task)
        return tasks

    async def upload_batch(
        self,
        files: Sequence[MediaFile],
        options: Optional[UploadOptions] = None,
    ) -> List[RemoteCallResult]:
        """
        Validate and upload ``files``.

        Returns:
            One ``RemoteCallResult`` per input file, in input order. Successes
            hold an ``UploadedMedia``. Files rejected locally hold their
            ``UploadValidationError`` and were never sent.
        """
        tasks = await self.upload_tasks(files, options)
        return [task.outcome() for task in tasks]

    async def upload_tasks(
        self,
        files: Sequence[MediaFile],
        options: Optional[UploadOptions] = None,
    ) -> List[UploadTask]:
        """
        Validate and upload ``files``, returning the settled tasks.

        Every valid file is dispatched concurrently, in declaration order, and
        each task settles independently. The returned list has one task per
        input file, in input order.
        """
        options = options or UploadOptions()
        tasks = self.prepare_tasks(files, options)
        pending = [(i, t) for i, t in enumerate(tasks) if t.status == UploadStatus.PENDING]

        if not pending:
            return tasks

        self.logger.info(f"[UPLOAD] Uploading {len(pending)} of {len(tasks)} file(s)")
        loop = asyncio.get_running_loop()
        outcomes = await asyncio.gather(
            *(self._run_task(index, task, options, loop) for index, task in pending),
            return_exceptions=True,
        )

        for (index, task), outcome in zip(pending, outcomes):
            if isinstance(outcome, BaseException):
                self.logger.error(
                    f"[UPLOAD] Unexpected failure uploading {task.file.filename}: {outcome}",
                    exc_info=outcome,
                )
                error = MediaTransferError(
                    f"Unexpected failure uploading {task.file.filename}: {outcome}",
                    user_message=describe_error(outcome),
                )
                error.__cause__ = outcome
                self._settle_failure(index, task, error, options)

        done = sum(1 for t in tasks if t.status == UploadStatus.DONE)
        self.logger.info(f"[UPLOAD] Batch finished: {done} uploaded, {len(tasks) - done} failed")
        return tasks

    async def _run_task(self, index: int, task: UploadTask, options: UploadOptions, loop):
        task.status = UploadStatus.UPLOADING
        self._notify(index, task, options)

        def on_bytes_sent(sent: int, total: int):
            percent = int(sent * 100 / total) if total else 100
            loop.call_soon_threadsafe(self._report_progress, index, task, percent, options)

        async def attempt():
            return await self.executor.run(
                self.media_host.upload,
                task.file.filename,
                task.file.content,
                task.file.media_type,
                options.folder,
                list(options.tags),
                on_bytes_sent,
            )

        outcome = await self.retry_executor.execute(
            attempt, self.retry_policy, label=f"upload {task.file.filename}"
        )
        task.attempts = outcome.attempts

        if outcome.ok:
            task.result = UploadedMedia.from_host_response(outcome.value, task.file.filename)
            task.status = UploadStatus.DONE
            task.progress_percent = 100
            self._notify(index, task, options)
        else:
            self._settle_failure(index, task, outcome.error, options)

    def _settle_failure(self, index: int, task: UploadTask, error: Exception, options: UploadOptions):
        task.status = UploadStatus.FAILED
        task.exception = error
        task.error = describe_error(error)
        if isinstance(error, RemoteCallError):
            self.logger.warning(f"[UPLOAD] {task.file.filename} failed: {error}")
        self._notify(index, task, options)

    def _report_progress(self, index: int, task: UploadTask, percent: int, options: UploadOptions):
        # Progress events can arrive after the task settled
        if task.status != UploadStatus.UPLOADING:
            return
        percent = max(0, min(100, percent))
        if percent <= task.progress_percent:
            return
        task.progress_percent = percent
        self._notify(index, task, options)

    def _notify(self, index: int, task: UploadTask, options: UploadOptions):
        if options.on_progress:
            options.on_progress(index, task.progress_percent, task)

    def close(self):
        self.executor.shutdown(wait=False)
