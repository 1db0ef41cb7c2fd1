"""
Profile bootstrap after sign-in.

Intent:
    Every signed-in identity owns exactly one profile row. The row is created
    lazily on the first successful sign-in; later sign-ins only fill gaps
    (e.g., a display name that was missing the first time).
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

from salaysay.identity_access.domain import is_institutional_email
from salaysay.submissions.models import Profile


class ProfileRepoProtocol(Protocol):
    def get_profile(self, user_id: str) -> Optional[Profile]: ...

    def upsert_profile(self, profile: Profile) -> Profile: ...


@dataclass
class EnsureProfileInput:
    sub: str
    email: str
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None


class EnsureProfileUseCase:
    def __init__(self, repo: ProfileRepoProtocol, *, domain: Optional[str] = None) -> None:
        self._repo = repo
        self._domain = domain

    def execute(self, req: EnsureProfileInput) -> Profile:
        """Fetch the caller's profile, creating it when absent.

        Raises:
            PermissionError("invalid_email_domain") for non-institutional
            emails; no row is written in that case.
        """
        if not is_institutional_email(req.email, self._domain):
            raise PermissionError("invalid_email_domain")
        existing = self._repo.get_profile(req.sub)
        if existing and existing.full_name and existing.email == req.email:
            return existing
        return self._repo.upsert_profile(
            Profile(id=req.sub, email=req.email, full_name=req.full_name, avatar_url=req.avatar_url)
        )


__all__ = ["EnsureProfileInput", "EnsureProfileUseCase", "ProfileRepoProtocol"]
