"""Repository port for the submissions context."""
from __future__ import annotations

from typing import List, Optional, Protocol

from salaysay.submissions.models import Profile, Submission, SubmissionStatus


class SubmissionRepoProtocol(Protocol):
    """Row storage for submissions and profiles.

    Errors:
        Remote failures surface as `BackendError`; a missing row on update
        surfaces as `LookupError("not_found")`.
    """

    def list_submissions(self, *, owner_id: Optional[str]) -> List[Submission]: ...

    def get_submission(self, submission_id: str) -> Optional[Submission]: ...

    def insert_submission(self, *, user_id: str, file_path: str, violation_type: str, status: SubmissionStatus) -> Submission: ...

    def update_status(self, submission_id: str, status: SubmissionStatus) -> None: ...

    def delete_submission(self, submission_id: str) -> None: ...

    def get_profile(self, user_id: str) -> Optional[Profile]: ...

    def upsert_profile(self, profile: Profile) -> Profile: ...


__all__ = ["SubmissionRepoProtocol"]
