"""Postgres-backed repository for salaysay submissions and profiles."""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, List, Optional
import logging
import os
import re

try:  # pragma: no cover -- optional dependency in some environments
    import psycopg
    from psycopg import errors as pg_errors

    HAVE_PSYCOPG = True
except Exception:  # pragma: no cover
    psycopg = None  # type: ignore
    pg_errors = None  # type: ignore
    HAVE_PSYCOPG = False

from salaysay.errors import BackendError, BackendErrorKind
from salaysay.submissions.models import Profile, Submission, SubmissionStatus

logger = logging.getLogger("salaysay.submissions")

_ERROR_MAX_LENGTH = 256
_SENSITIVE_TOKEN_PATTERN = re.compile(r"(?i)(secret|token|password|key)[-_a-z0-9]*\s*[:=]\s*\S+")

_SUBMISSION_COLUMNS = """
    s.id::text,
    s.user_id::text,
    s.file_path,
    s.violation_type,
    s.status,
    s.created_at,
    p.email,
    p.full_name
"""


def _sanitize_error_message(value: Optional[str]) -> Optional[str]:
    """Strip secrets and truncate lengthy adapter errors for safe logging."""
    if not value:
        return None
    collapsed = " ".join(str(value).split())
    if not collapsed:
        return None
    scrubbed = _SENSITIVE_TOKEN_PATTERN.sub("[redacted]", collapsed)
    if len(scrubbed) > _ERROR_MAX_LENGTH:
        scrubbed = scrubbed[: _ERROR_MAX_LENGTH - 3].rstrip() + "..."
    return scrubbed


def classify_db_error(exc: Exception) -> BackendErrorKind:
    """Map psycopg exceptions onto the closed error taxonomy."""
    if pg_errors is not None:
        if isinstance(exc, pg_errors.InsufficientPrivilege):
            return BackendErrorKind.PERMISSION_DENIED
        if isinstance(exc, (pg_errors.ForeignKeyViolation, pg_errors.IntegrityConstraintViolation)):
            return BackendErrorKind.INTEGRITY
    if HAVE_PSYCOPG and isinstance(exc, psycopg.IntegrityError):
        return BackendErrorKind.INTEGRITY
    return BackendErrorKind.UNAVAILABLE


def _default_dev_dsn() -> str:
    """Return the local Supabase Postgres DSN used in development."""
    host = os.getenv("SALAYSAY_DB_HOST", "127.0.0.1")
    port = os.getenv("SALAYSAY_DB_PORT", "54322")
    user = os.getenv("APP_DB_USER", "postgres")
    password = os.getenv("APP_DB_PASSWORD", "postgres")
    return f"postgresql://{user}:{password}@{host}:{port}/postgres"


def _dsn() -> str:
    """Resolve the Postgres DSN with test-friendly precedence.

    Order of precedence (first non-empty wins):
      1) SALAYSAY_DATABASE_URL (context-specific override)
      2) DATABASE_URL (app-wide default)
      3) Fallback DSN pointing at the local Supabase (dev/test only)
    """
    env = (os.getenv("SALAYSAY_ENV", "dev") or "dev").lower()
    candidates = [
        os.getenv("SALAYSAY_DATABASE_URL"),
        os.getenv("DATABASE_URL"),
    ]
    if env not in {"prod", "production", "stage", "staging"}:
        candidates.append(_default_dev_dsn())
    for candidate in candidates:
        if candidate:
            return candidate
    raise RuntimeError("Database DSN unavailable for submissions repo")


def _as_aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _row_to_submission(row: tuple) -> Submission:
    return Submission(
        id=row[0],
        user_id=row[1],
        file_path=row[2],
        violation_type=row[3],
        status=SubmissionStatus(row[4]),
        created_at=_as_aware(row[5]),
        owner_email=row[6],
        owner_name=row[7],
    )


class DBSubmissionRepo:
    """Persistence adapter used by the submission use cases.

    Every call opens a short-lived connection; the two stores (rows and blobs)
    never share a transaction, so no call here spans more than one statement
    group.
    """

    def __init__(self, dsn: Optional[str] = None) -> None:
        if not HAVE_PSYCOPG:
            raise RuntimeError("psycopg3 is required for DBSubmissionRepo")
        self._dsn = dsn or _dsn()

    @contextmanager
    def _cursor(self, sub: Optional[str] = None) -> Iterator["psycopg.Cursor"]:
        try:
            with psycopg.connect(self._dsn) as conn:
                with conn.cursor() as cur:
                    if sub:
                        self._set_current_sub(cur, sub)
                    yield cur
        except BackendError:
            raise
        except (LookupError, PermissionError, ValueError):
            raise
        except Exception as exc:
            kind = classify_db_error(exc)
            detail = _sanitize_error_message(str(exc))
            logger.warning("submissions repo failed: kind=%s error=%s detail=%s", kind.value, exc.__class__.__name__, detail)
            raise BackendError(kind, detail) from exc

    @staticmethod
    def _set_current_sub(cur, sub: str) -> None:
        # Row level security policies read the caller from this setting.
        cur.execute("select set_config('app.current_sub', %s, true)", (sub,))

    # --- Submissions -----------------------------------------------------------

    def list_submissions(self, *, owner_id: Optional[str]) -> List[Submission]:
        """Return rows newest first, joined with the owner's profile.

        `owner_id=None` returns every row (reviewer scope).
        """
        query = f"""
            select {_SUBMISSION_COLUMNS}
              from public.salaysay_submissions s
              left join public.profiles p on p.id = s.user_id
        """
        params: tuple = ()
        if owner_id is not None:
            query += " where s.user_id = %s"
            params = (owner_id,)
        query += " order by s.created_at desc, s.id"
        with self._cursor(owner_id) as cur:
            cur.execute(query, params)
            return [_row_to_submission(row) for row in cur.fetchall()]

    def get_submission(self, submission_id: str) -> Optional[Submission]:
        with self._cursor() as cur:
            cur.execute(
                f"""
                select {_SUBMISSION_COLUMNS}
                  from public.salaysay_submissions s
                  left join public.profiles p on p.id = s.user_id
                 where s.id::text = %s
                """,
                (submission_id,),
            )
            row = cur.fetchone()
        return _row_to_submission(row) if row else None

    def insert_submission(self, *, user_id: str, file_path: str, violation_type: str, status: SubmissionStatus) -> Submission:
        with self._cursor(user_id) as cur:
            cur.execute(
                """
                insert into public.salaysay_submissions (user_id, file_path, violation_type, status)
                values (%s, %s, %s, %s)
                returning id::text, user_id::text, file_path, violation_type, status, created_at
                """,
                (user_id, file_path, violation_type, status.value),
            )
            row = cur.fetchone()
        return _row_to_submission(tuple(row) + (None, None))

    def update_status(self, submission_id: str, status: SubmissionStatus) -> None:
        with self._cursor() as cur:
            cur.execute(
                "update public.salaysay_submissions set status = %s where id::text = %s",
                (status.value, submission_id),
            )
            if cur.rowcount == 0:
                raise LookupError("not_found")

    def delete_submission(self, submission_id: str) -> None:
        with self._cursor() as cur:
            cur.execute("delete from public.salaysay_submissions where id::text = %s", (submission_id,))

    # --- Profiles --------------------------------------------------------------

    def get_profile(self, user_id: str) -> Optional[Profile]:
        with self._cursor(user_id) as cur:
            cur.execute(
                "select id::text, email, full_name, avatar_url from public.profiles where id::text = %s",
                (user_id,),
            )
            row = cur.fetchone()
        if not row:
            return None
        return Profile(id=row[0], email=row[1], full_name=row[2], avatar_url=row[3])

    def upsert_profile(self, profile: Profile) -> Profile:
        with self._cursor(profile.id) as cur:
            cur.execute(
                """
                insert into public.profiles (id, email, full_name, avatar_url)
                values (%s, %s, %s, %s)
                on conflict (id) do update
                   set email = excluded.email,
                       full_name = coalesce(excluded.full_name, public.profiles.full_name),
                       avatar_url = coalesce(excluded.avatar_url, public.profiles.avatar_url)
                """,
                (profile.id, profile.email, profile.full_name, profile.avatar_url),
            )
        return profile


__all__ = ["DBSubmissionRepo", "classify_db_error", "HAVE_PSYCOPG"]
