"""In-memory repository used in development without Postgres and in tests."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List, Optional
import uuid

from salaysay.errors import BackendError, BackendErrorKind
from salaysay.submissions.models import Profile, Submission, SubmissionStatus


class InMemorySubmissionRepo:
    """Dict-backed stand-in for `DBSubmissionRepo` with the same semantics.

    Mirrors the foreign key from submissions to profiles: inserting a row for
    an unknown profile raises an `integrity` BackendError, like Postgres would.
    """

    def __init__(self) -> None:
        self.submissions: Dict[str, Submission] = {}
        self.profiles: Dict[str, Profile] = {}

    def _with_owner(self, sub: Submission) -> Submission:
        prof = self.profiles.get(sub.user_id)
        return Submission(
            id=sub.id,
            user_id=sub.user_id,
            file_path=sub.file_path,
            violation_type=sub.violation_type,
            status=sub.status,
            created_at=sub.created_at,
            owner_email=prof.email if prof else None,
            owner_name=prof.full_name if prof else None,
        )

    def list_submissions(self, *, owner_id: Optional[str]) -> List[Submission]:
        items = [s for s in self.submissions.values() if owner_id is None or s.user_id == owner_id]
        items.sort(key=lambda s: (s.created_at, s.id), reverse=True)
        return [self._with_owner(s) for s in items]

    def get_submission(self, submission_id: str) -> Optional[Submission]:
        sub = self.submissions.get(submission_id)
        return self._with_owner(sub) if sub else None

    def insert_submission(self, *, user_id: str, file_path: str, violation_type: str, status: SubmissionStatus) -> Submission:
        if user_id not in self.profiles:
            raise BackendError(BackendErrorKind.INTEGRITY, "profile_missing")
        sub = Submission(
            id=str(uuid.uuid4()),
            user_id=user_id,
            file_path=file_path,
            violation_type=violation_type,
            status=status,
            created_at=datetime.now(timezone.utc),
        )
        self.submissions[sub.id] = sub
        return self._with_owner(sub)

    def update_status(self, submission_id: str, status: SubmissionStatus) -> None:
        sub = self.submissions.get(submission_id)
        if sub is None:
            raise LookupError("not_found")
        sub.status = status

    def delete_submission(self, submission_id: str) -> None:
        self.submissions.pop(submission_id, None)

    def get_profile(self, user_id: str) -> Optional[Profile]:
        return self.profiles.get(user_id)

    def upsert_profile(self, profile: Profile) -> Profile:
        existing = self.profiles.get(profile.id)
        if existing:
            profile = Profile(
                id=profile.id,
                email=profile.email,
                full_name=profile.full_name or existing.full_name,
                avatar_url=profile.avatar_url or existing.avatar_url,
            )
        self.profiles[profile.id] = profile
        return profile


__all__ = ["InMemorySubmissionRepo"]
