from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional
import asyncio
import logging

from salaysay.errors import BackendError
from salaysay.storage.config import get_uploads_bucket
from salaysay.storage.ports import StorageAdapterProtocol
from salaysay.submissions.models import Scope, Submission
from salaysay.submissions.policy import Caller, can_list
from salaysay.submissions.ports import SubmissionRepoProtocol

logger = logging.getLogger("salaysay.submissions")


@dataclass
class ListSubmissionsInput:
    caller: Caller
    scope: Scope = Scope.MINE


class ListSubmissionsUseCase:
    def __init__(
        self,
        repo: SubmissionRepoProtocol,
        storage: StorageAdapterProtocol,
        *,
        bucket: Optional[str] = None,
    ) -> None:
        self._repo = repo
        self._storage = storage
        self._bucket = bucket

    async def execute(self, req: ListSubmissionsInput) -> List[Submission]:
        """Return the rows for a scope, dropping rows whose blob is gone.

        Intent:
            Keep the list truthful when storage and rows drift apart (a blob
            removed directly, or a row whose delete failed after its blob was
            removed).

        Behavior:
            - `mine` lists the caller's rows; `all` lists every row and is
              reserved to reviewers (PermissionError otherwise).
            - One existence check per row, all issued together and awaited
              jointly. No batching, no caching between calls.
            - A confirmed-missing blob excludes the row and deletes it
              (best-effort; failures are logged only).
            - A failing existence check keeps the row: only absence is proof.
        """
        if not can_list(req.caller, req.scope):
            raise PermissionError("forbidden")
        owner_id = req.caller.sub if req.scope is Scope.MINE else None
        rows = self._repo.list_submissions(owner_id=owner_id)
        if not rows:
            return []
        bucket = self._bucket or get_uploads_bucket()
        present = await asyncio.gather(*(self._blob_present(bucket, row) for row in rows))
        kept: List[Submission] = []
        for row, exists in zip(rows, present):
            if exists is False:
                await self._discard_orphan(row)
                continue
            kept.append(row)
        return kept

    async def _blob_present(self, bucket: str, row: Submission) -> Optional[bool]:
        try:
            return await asyncio.to_thread(self._storage.object_exists, bucket=bucket, key=row.file_path)
        except BackendError as exc:
            logger.warning("existence check failed: submission=%s kind=%s", row.id, exc.kind.value)
            return None

    async def _discard_orphan(self, row: Submission) -> None:
        try:
            await asyncio.to_thread(self._repo.delete_submission, row.id)
        except Exception as exc:
            logger.warning("orphan row cleanup failed: submission=%s error=%s", row.id, exc.__class__.__name__)
            return
        logger.info("removed orphan row: submission=%s", row.id)


__all__ = ["ListSubmissionsInput", "ListSubmissionsUseCase"]
