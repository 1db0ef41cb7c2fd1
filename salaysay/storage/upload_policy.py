"""
Shared upload policy for salaysay documents.

Centralises MIME/size constraints so that the acceptance gate, the routes and
the tests reference a single source of truth.
"""

from __future__ import annotations

from dataclasses import dataclass

from salaysay.storage.config import get_max_upload_bytes

ALLOWED_FILE_MIME = frozenset({"application/pdf"})
MAX_FILES_PER_SELECTION = 20
# Room for multipart boundaries, part headers and small form fields.
MULTIPART_OVERHEAD_BYTES = 64 * 1024


@dataclass(frozen=True, slots=True)
class UploadPolicy:
    """Immutable policy object used at request-handling time."""

    allowed_mime_types: frozenset[str]
    max_size_bytes: int
    max_files: int = MAX_FILES_PER_SELECTION

    def allows_mime(self, mime_type: str | None) -> bool:
        return (mime_type or "").strip().lower() in self.allowed_mime_types

    def allows_size(self, size_bytes: int) -> bool:
        return 0 <= int(size_bytes) <= self.max_size_bytes

    def request_limit_bytes(self) -> int:
        """Upper bound for a whole multipart selection request."""
        return self.max_files * self.max_size_bytes + MULTIPART_OVERHEAD_BYTES


def policy_from_env() -> UploadPolicy:
    """Build the policy from environment defaults (evaluated per call)."""
    return UploadPolicy(allowed_mime_types=ALLOWED_FILE_MIME, max_size_bytes=get_max_upload_bytes())


__all__ = ["ALLOWED_FILE_MIME", "MAX_FILES_PER_SELECTION", "UploadPolicy", "policy_from_env"]
