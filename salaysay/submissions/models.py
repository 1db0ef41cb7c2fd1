"""
Domain types for salaysay submissions.

Terms:
    - Submission: persisted row linking an uploaded blob to an owner,
      a violation category and a review status.
    - Profile: display data for a signed-in identity (one per `sub`).
    - UploadTask: transient, in-memory wrapper around one selected file for the
      duration of an upload dialog session. Never persisted.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone, tzinfo
from enum import Enum
from functools import lru_cache
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import logging
import os
import time
import uuid

from salaysay.storage.keys import display_name_from_key
from salaysay.submissions.notices import Notice

logger = logging.getLogger("salaysay.submissions")

DEFAULT_DISPLAY_TIMEZONE = "Asia/Manila"


VIOLATION_TYPES: tuple[str, ...] = (
    "Attendance Issue",
    "Dress Code Violation",
    "Academic Misconduct",
    "Behavioral Issue",
    "Property Damage",
    "Other",
)


class SubmissionStatus(str, Enum):
    PENDING_REVIEW = "pending_review"
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ")

    @classmethod
    def parse(cls, raw: object) -> "SubmissionStatus":
        try:
            return cls(str(raw or "").strip().lower())
        except ValueError:
            raise ValueError("invalid_status") from None


class UploadStatus(str, Enum):
    PENDING = "pending"
    UPLOADING = "uploading"
    COMPLETED = "completed"
    ERROR = "error"


class Scope(str, Enum):
    MINE = "mine"
    ALL = "all"

    @classmethod
    def parse(cls, raw: object) -> "Scope":
        try:
            return cls(str(raw or "mine").strip().lower())
        except ValueError:
            raise ValueError("invalid_scope") from None


@lru_cache(maxsize=8)
def _zone(name: str) -> tzinfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown SALAYSAY_TIMEZONE %r; showing times in UTC", name)
        return timezone.utc


def display_timezone() -> tzinfo:
    """Timezone the dashboard shows times in (SALAYSAY_TIMEZONE, default Asia/Manila)."""
    return _zone((os.getenv("SALAYSAY_TIMEZONE") or DEFAULT_DISPLAY_TIMEZONE).strip())


def format_created(value: datetime, tz: tzinfo | None = None) -> str:
    """Format a timestamp as dd/MM/yyyy h:mm AM in the display timezone.

    Naive values are taken as UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(tz or display_timezone())
    hour = value.hour % 12 or 12
    suffix = "AM" if value.hour < 12 else "PM"
    return f"{value:%d/%m/%Y} {hour}:{value:%M} {suffix}"


@dataclass
class Profile:
    id: str
    email: str
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "full_name": self.full_name,
            "avatar_url": self.avatar_url,
        }


@dataclass
class Submission:
    id: str
    user_id: str
    file_path: str
    violation_type: str
    status: SubmissionStatus
    created_at: datetime
    owner_email: Optional[str] = None
    owner_name: Optional[str] = None

    @property
    def file_name(self) -> str:
        return display_name_from_key(self.file_path)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "file_path": self.file_path,
            "file_name": self.file_name,
            "violation_type": self.violation_type,
            "status": self.status.value,
            "status_label": self.status.label,
            "created_at": self.created_at.isoformat(),
            "created_display": format_created(self.created_at),
            "owner": {"email": self.owner_email, "full_name": self.owner_name},
        }


# Allowed UploadTask transitions; `error -> uploading` is the manual retry.
_TRANSITIONS: dict[UploadStatus, frozenset[UploadStatus]] = {
    UploadStatus.PENDING: frozenset({UploadStatus.UPLOADING}),
    UploadStatus.UPLOADING: frozenset({UploadStatus.COMPLETED, UploadStatus.ERROR}),
    UploadStatus.ERROR: frozenset({UploadStatus.UPLOADING}),
    UploadStatus.COMPLETED: frozenset(),
}


class InvalidTransition(ValueError):
    def __init__(self, current: UploadStatus, target: UploadStatus):
        super().__init__("invalid_transition")
        self.current = current
        self.target = target


@dataclass
class UploadTask:
    file_name: str
    mime_type: str
    body: bytes = field(repr=False)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    key: Optional[str] = None
    status: UploadStatus = UploadStatus.PENDING
    error: Optional[Notice] = None
    submission_id: Optional[str] = None
    # Set once the blob write succeeded; a retry then only re-inserts the row.
    blob_stored: bool = False
    size_bytes: int = field(init=False, default=0)

    def __post_init__(self) -> None:
        self.size_bytes = len(self.body)

    def release_body(self) -> None:
        """Drop the file bytes once they are no longer needed for a retry."""
        self.body = b""

    def transition(self, target: UploadStatus) -> None:
        if target not in _TRANSITIONS[self.status]:
            raise InvalidTransition(self.status, target)
        self.status = target
        if target is not UploadStatus.ERROR:
            self.error = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "file_name": self.file_name,
            "mime_type": self.mime_type,
            "size_bytes": self.size_bytes,
            "key": self.key,
            "status": self.status.value,
            "error": self.error.to_dict() if self.error else None,
            "submission_id": self.submission_id,
        }


@dataclass
class UploadBatch:
    owner_id: str
    tasks: list[UploadTask] = field(default_factory=list)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    touched_at: float = field(default_factory=time.monotonic)

    @property
    def retained_bytes(self) -> int:
        return sum(len(t.body) for t in self.tasks)

    @property
    def in_flight(self) -> bool:
        return any(t.status is UploadStatus.UPLOADING for t in self.tasks)

    def find(self, task_id: str) -> UploadTask:
        for task in self.tasks:
            if task.id == task_id:
                return task
        raise LookupError("task_not_found")

    def remove(self, task_id: str) -> UploadTask:
        task = self.find(task_id)
        self.tasks.remove(task)
        return task

    def to_dict(self) -> dict:
        return {"id": self.id, "tasks": [t.to_dict() for t in self.tasks]}


__all__ = [
    "VIOLATION_TYPES",
    "SubmissionStatus",
    "UploadStatus",
    "Scope",
    "Profile",
    "Submission",
    "UploadTask",
    "UploadBatch",
    "InvalidTransition",
    "display_timezone",
    "format_created",
]
