"""
Backend error taxonomy shared by the storage and database adapters.

Why:
    Callers must react to remote failures (blob writes, row inserts) without
    inspecting exception message text. Adapters translate client exceptions
    into one of a small, closed set of kinds; use cases then switch on the kind.
"""
from __future__ import annotations

from enum import Enum


class BackendErrorKind(str, Enum):
    STORAGE_MISCONFIGURED = "storage_misconfigured"
    PERMISSION_DENIED = "permission_denied"
    INTEGRITY = "integrity"
    UNAVAILABLE = "unavailable"


class BackendError(Exception):
    """Raised by adapters when a remote call fails.

    The `kind` is the only contract; `detail` is for logs and must already be
    free of secrets.
    """

    def __init__(self, kind: BackendErrorKind, detail: str | None = None):
        super().__init__(kind.value)
        self.kind = kind
        self.detail = detail

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return f"BackendError(kind={self.kind.value!r})"


__all__ = ["BackendErrorKind", "BackendError"]
