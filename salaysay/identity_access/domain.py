"""
Identity domain constants and simple helpers.

Why:
- Centralize roles and the institutional email rule so the sign-in callback,
  the middleware and the submissions policy agree.
"""

from __future__ import annotations

import os

STUDENT_ROLE = "student"
REVIEWER_ROLE = "reviewer"

# Keep roles minimal and explicit. Immutable to prevent accidental mutation.
ALLOWED_ROLES = frozenset({STUDENT_ROLE, REVIEWER_ROLE})

DEFAULT_EMAIL_DOMAIN = "neu.edu.ph"


def allowed_email_domain() -> str:
    """Return the institutional domain without a leading '@' (lowercase)."""
    raw = (os.getenv("SALAYSAY_ALLOWED_EMAIL_DOMAIN") or DEFAULT_EMAIL_DOMAIN).strip().lower()
    return raw.lstrip("@")


def is_institutional_email(email: str | None, domain: str | None = None) -> bool:
    """Return True if the email ends with '@{domain}'.

    Behavior:
        - Compare the part after the last '@' in lowercase.
        - Invalid emails (no '@', empty local part) are treated as disallowed.
    """
    if not isinstance(email, str):
        return False
    normalized = email.strip().lower()
    if "@" not in normalized:
        return False
    local, host = normalized.rsplit("@", 1)
    if not local or not host:
        return False
    return host == (domain or allowed_email_domain())


def institutional_email_from_claims(
    claims: dict, domain: str | None = None, *, require_hosted_domain: bool = False
) -> str | None:
    """Return the normalized email when the ID token proves an institutional account.

    Behavior:
        - The `email` claim must be in the institutional domain.
        - `email_verified` must be the boolean True.
        - With `require_hosted_domain`, Google's `hd` claim must equal the domain;
          the `hd` login hint alone does not restrict the account chooser.
        - Returns None when any check fails.
    """
    domain = domain or allowed_email_domain()
    email = str(claims.get("email") or "").strip().lower()
    if not is_institutional_email(email, domain):
        return None
    if claims.get("email_verified") is not True:
        return None
    if require_hosted_domain and str(claims.get("hd") or "").strip().lower() != domain:
        return None
    return email


def _parse_reviewer_emails(raw: str | None) -> set[str]:
    """Parse a comma-separated list; ignore blanks so trailing commas are harmless."""
    if not raw:
        return set()
    return {part.strip().lower() for part in str(raw).split(",") if part.strip()}


def roles_for_email(email: str) -> list[str]:
    """Reviewers are configured by email; everybody else submits."""
    reviewers = _parse_reviewer_emails(os.getenv("SALAYSAY_REVIEWER_EMAILS"))
    if (email or "").strip().lower() in reviewers:
        return [REVIEWER_ROLE]
    return [STUDENT_ROLE]


def primary_role(roles: list[str]) -> str:
    lowered = [r.lower() for r in roles if isinstance(r, str)]
    return REVIEWER_ROLE if REVIEWER_ROLE in lowered else STUDENT_ROLE


__all__ = [
    "ALLOWED_ROLES",
    "STUDENT_ROLE",
    "REVIEWER_ROLE",
    "allowed_email_domain",
    "is_institutional_email",
    "institutional_email_from_claims",
    "roles_for_email",
    "primary_role",
]
