from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, List, Optional
import logging

from salaysay.errors import BackendError, BackendErrorKind
from salaysay.storage.config import get_uploads_bucket
from salaysay.storage.keys import make_upload_key
from salaysay.storage.ports import StorageAdapterProtocol
from salaysay.storage.upload_policy import UploadPolicy, policy_from_env
from salaysay.submissions import notices
from salaysay.submissions.batches import BatchCapacityExceeded, UploadBatchStore
from salaysay.submissions.models import (
    VIOLATION_TYPES,
    Submission,
    SubmissionStatus,
    UploadBatch,
    UploadStatus,
    UploadTask,
)
from salaysay.submissions.notices import Notice
from salaysay.submissions.ports import SubmissionRepoProtocol

logger = logging.getLogger("salaysay.submissions")


class UploadRejected(ValueError):
    """Raised before any remote call when a batch or request is unacceptable.

    `kind` is one of: empty_batch, wrong_type, too_large, missing_category,
    missing_identity, too_many_files, busy.
    """

    def __init__(self, kind: str, notice: Notice, *, file_name: Optional[str] = None):
        super().__init__(kind)
        self.kind = kind
        self.notice = notice
        self.file_name = file_name


@dataclass
class CandidateFile:
    file_name: str
    mime_type: str
    body: bytes
    # Size reported by the multipart parser; an oversized part is never read.
    declared_size: Optional[int] = None

    @property
    def size_bytes(self) -> int:
        return self.declared_size if self.declared_size is not None else len(self.body)


@dataclass
class AcceptFilesInput:
    owner_id: str
    files: List[CandidateFile]


class AcceptFilesUseCase:
    def __init__(self, batches: UploadBatchStore, policy: Optional[UploadPolicy] = None) -> None:
        self._batches = batches
        self._policy = policy

    def execute(self, req: AcceptFilesInput) -> UploadBatch:
        """Gate a whole selection of files and open an upload batch.

        Behavior:
            - Every file must be `application/pdf` and within the size limit.
            - The first violation rejects the entire selection; no task is
              created for any file (no partial acceptance).
            - Accepted files become `pending` tasks of a new batch owned by
              the caller.
        """
        policy = self._policy or policy_from_env()
        if not req.files:
            raise UploadRejected("empty_batch", notices.empty_batch())
        if len(req.files) > policy.max_files:
            raise UploadRejected("too_many_files", notices.too_many_files(policy.max_files))
        for f in req.files:
            if not policy.allows_mime(f.mime_type):
                raise UploadRejected("wrong_type", notices.wrong_type(), file_name=f.file_name)
            if not policy.allows_size(f.size_bytes):
                raise UploadRejected("too_large", notices.too_large(policy.max_size_bytes), file_name=f.file_name)
        batch = UploadBatch(
            owner_id=req.owner_id,
            tasks=[UploadTask(file_name=f.file_name, mime_type=f.mime_type, body=f.body) for f in req.files],
        )
        try:
            return self._batches.add(batch)
        except BatchCapacityExceeded as exc:
            logger.warning("upload batch refused: requested=%s available=%s", exc.requested, exc.available)
            raise UploadRejected("busy", notices.uploads_busy()) from None


@dataclass
class UploadTaskInput:
    task: UploadTask
    owner_id: Optional[str]
    violation_type: Optional[str]


@dataclass
class UploadOutcome:
    task: UploadTask
    submission: Optional[Submission] = None
    notice: Optional[Notice] = None

    @property
    def ok(self) -> bool:
        return self.task.status is UploadStatus.COMPLETED


def check_upload_preconditions(owner_id: Optional[str], violation_type: Optional[str]) -> str:
    """Validate the request-level inputs and return the normalized category."""
    category = (violation_type or "").strip()
    if not category or category not in VIOLATION_TYPES:
        raise UploadRejected("missing_category", notices.missing_category())
    if not (owner_id or "").strip():
        raise UploadRejected("missing_identity", notices.missing_identity())
    return category


class UploadTaskUseCase:
    def __init__(
        self,
        repo: SubmissionRepoProtocol,
        storage: StorageAdapterProtocol,
        *,
        bucket: Optional[str] = None,
        key_factory: Callable[[str], str] | None = None,
    ) -> None:
        self._repo = repo
        self._storage = storage
        self._bucket = bucket
        self._key_factory = key_factory or (lambda name: make_upload_key(filename=name))

    def execute(self, req: UploadTaskInput) -> UploadOutcome:
        """Write one file to storage, then register it as a submission row.

        Sequence:
            1. Validate category and identity (no remote call on failure).
            2. pending|error -> uploading.
            3. Derive a unique key and write the blob.
            4. Insert the row with status `pending_review`.
            5. uploading -> completed.

        Failure in 3 or 4 marks the task `error` with a notice chosen by error
        kind; errors outside the backend taxonomy count as `unavailable`. A blob
        written in 3 is not removed when 4 fails; a later retry reuses that key
        and only repeats the insert. A completed task no longer holds the bytes.
        """
        category = check_upload_preconditions(req.owner_id, req.violation_type)
        owner_id = str(req.owner_id).strip()
        task = req.task
        task.transition(UploadStatus.UPLOADING)
        bucket = self._bucket or get_uploads_bucket()

        try:
            if not task.blob_stored:
                task.key = self._key_factory(task.file_name)
                self._storage.put_object(bucket=bucket, key=task.key, body=task.body, content_type=task.mime_type)
                task.blob_stored = True
            submission = self._repo.insert_submission(
                user_id=owner_id,
                file_path=str(task.key),
                violation_type=category,
                status=SubmissionStatus.PENDING_REVIEW,
            )
        except Exception as exc:
            kind = exc.kind if isinstance(exc, BackendError) else BackendErrorKind.UNAVAILABLE
            task.transition(UploadStatus.ERROR)
            task.error = notices.upload_failed(kind)
            logger.warning(
                "upload failed: task=%s stage=%s kind=%s error=%s",
                task.id,
                "insert" if task.blob_stored else "write",
                kind.value,
                exc.__class__.__name__,
            )
            return UploadOutcome(task=task, notice=task.error)

        task.submission_id = submission.id
        task.transition(UploadStatus.COMPLETED)
        task.release_body()
        return UploadOutcome(task=task, submission=submission)


@dataclass
class SubmitBatchInput:
    batch: UploadBatch
    owner_id: Optional[str]
    violation_type: Optional[str]


@dataclass
class SubmitBatchResult:
    outcomes: List[UploadOutcome] = field(default_factory=list)

    @property
    def completed(self) -> int:
        return sum(1 for o in self.outcomes if o.ok)

    @property
    def failed(self) -> List[UploadOutcome]:
        return [o for o in self.outcomes if not o.ok]


class SubmitBatchUseCase:
    def __init__(self, upload: UploadTaskUseCase) -> None:
        self._upload = upload

    def execute(self, req: SubmitBatchInput) -> SubmitBatchResult:
        """Upload every pending task of a batch, strictly one after another.

        Preconditions are checked once up front so a missing category fails
        the whole submit without touching any task.
        """
        check_upload_preconditions(req.owner_id, req.violation_type)
        result = SubmitBatchResult()
        for task in list(req.batch.tasks):
            if task.status is not UploadStatus.PENDING:
                continue
            result.outcomes.append(
                self._upload.execute(UploadTaskInput(task=task, owner_id=req.owner_id, violation_type=req.violation_type))
            )
        return result


__all__ = [
    "UploadRejected",
    "CandidateFile",
    "AcceptFilesInput",
    "AcceptFilesUseCase",
    "UploadTaskInput",
    "UploadOutcome",
    "UploadTaskUseCase",
    "SubmitBatchInput",
    "SubmitBatchResult",
    "SubmitBatchUseCase",
    "check_upload_preconditions",
]
