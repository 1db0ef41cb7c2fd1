from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from salaysay.storage.config import get_signed_url_ttl_seconds, get_uploads_bucket
from salaysay.storage.ports import StorageAdapterProtocol
from salaysay.submissions.models import Scope, Submission, SubmissionStatus
from salaysay.submissions.policy import Caller, can_delete, can_edit_status, can_view
from salaysay.submissions.ports import SubmissionRepoProtocol


def _load(repo: SubmissionRepoProtocol, submission_id: str) -> Submission:
    sub = repo.get_submission(submission_id)
    if sub is None:
        raise LookupError("not_found")
    return sub


@dataclass
class UpdateStatusInput:
    submission_id: str
    status: str
    caller: Caller
    scope: Scope = Scope.MINE


@dataclass
class UpdateStatusResult:
    submission: Submission
    changed: bool


class UpdateStatusUseCase:
    def __init__(self, repo: SubmissionRepoProtocol) -> None:
        self._repo = repo

    def execute(self, req: UpdateStatusInput) -> UpdateStatusResult:
        """Set a submission's review status.

        Behavior:
            - Target must be one of pending_review/approved/rejected
              (ValueError("invalid_status") otherwise).
            - Any status may follow any other; a self-transition is a no-op
              and skips the write.
            - No audit trail is kept.

        Permissions:
            Owner, or a reviewer acting in the `all` scope. A reviewer looking
            at the own list cannot change other people's rows.
        """
        target = SubmissionStatus.parse(req.status)
        sub = _load(self._repo, req.submission_id)
        if not can_edit_status(req.caller, sub, req.scope):
            raise PermissionError("forbidden")
        if sub.status is target:
            return UpdateStatusResult(submission=sub, changed=False)
        self._repo.update_status(sub.id, target)
        sub.status = target
        return UpdateStatusResult(submission=sub, changed=True)


@dataclass
class DeleteSubmissionInput:
    submission_id: str
    caller: Caller


class DeleteSubmissionUseCase:
    def __init__(self, repo: SubmissionRepoProtocol, storage: StorageAdapterProtocol, *, bucket: Optional[str] = None) -> None:
        self._repo = repo
        self._storage = storage
        self._bucket = bucket

    def execute(self, req: DeleteSubmissionInput) -> None:
        """Delete the blob, then the row (owner only).

        A failing blob delete aborts before the row is touched. A failing row
        delete after the blob is gone leaves an orphan row that the listing
        sweep removes later.
        """
        sub = _load(self._repo, req.submission_id)
        if not can_delete(req.caller, sub):
            raise PermissionError("forbidden")
        self._storage.delete_object(bucket=self._bucket or get_uploads_bucket(), key=sub.file_path)
        self._repo.delete_submission(sub.id)


@dataclass
class ViewUrlInput:
    submission_id: str
    caller: Caller
    scope: Scope = Scope.MINE


class ViewUrlUseCase:
    def __init__(
        self,
        repo: SubmissionRepoProtocol,
        storage: StorageAdapterProtocol,
        *,
        bucket: Optional[str] = None,
        ttl_seconds: Optional[int] = None,
    ) -> None:
        self._repo = repo
        self._storage = storage
        self._bucket = bucket
        self._ttl = ttl_seconds

    def execute(self, req: ViewUrlInput) -> Dict[str, Any]:
        """Issue a short-lived signed read URL for the submission's PDF."""
        sub = _load(self._repo, req.submission_id)
        if not can_view(req.caller, sub, req.scope):
            raise PermissionError("forbidden")
        ttl = self._ttl or get_signed_url_ttl_seconds()
        signed = self._storage.presign_download(bucket=self._bucket or get_uploads_bucket(), key=sub.file_path, expires_in=ttl)
        return {"url": signed["url"], "expires_in": ttl, "file_name": sub.file_name}


__all__ = [
    "UpdateStatusInput",
    "UpdateStatusResult",
    "UpdateStatusUseCase",
    "DeleteSubmissionInput",
    "DeleteSubmissionUseCase",
    "ViewUrlInput",
    "ViewUrlUseCase",
]
