"""
Authorization rules for reading and editing submissions.

Rules:
    - Owners may always view, edit the status of, and delete their own rows.
    - Reviewers may view and edit the status of any row, but only while they
      act in the "all users" scope. Viewing the own list never grants edit
      rights over somebody else's row.
    - Deletion is reserved to the owner, regardless of scope or role.
"""
from __future__ import annotations

from dataclasses import dataclass, field

from salaysay.identity_access.domain import REVIEWER_ROLE
from salaysay.submissions.models import Scope, Submission


@dataclass(frozen=True)
class Caller:
    sub: str
    email: str = ""
    roles: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_reviewer(self) -> bool:
        return REVIEWER_ROLE in self.roles


def can_list(caller: Caller, scope: Scope) -> bool:
    return scope is Scope.MINE or caller.is_reviewer


def can_view(caller: Caller, submission: Submission, scope: Scope) -> bool:
    if submission.user_id == caller.sub:
        return True
    return caller.is_reviewer and scope is Scope.ALL


def can_edit_status(caller: Caller, submission: Submission, scope: Scope) -> bool:
    return can_view(caller, submission, scope)


def can_delete(caller: Caller, submission: Submission) -> bool:
    return submission.user_id == caller.sub


__all__ = ["Caller", "can_list", "can_view", "can_edit_status", "can_delete"]
