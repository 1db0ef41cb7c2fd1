"""
In-memory stores: StateStore and SessionStore.

Why: Keep server-side state (PKCE code_verifier, nonce, post-login redirect)
and sessions opaque to the client. A single app process owns them; a
multi-process deployment would back them with Redis or the database.

Security: Cookies carry only an opaque session id. Session data stays server-side.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional
import secrets
import threading
import time


def _now() -> int:
    return int(time.time())


@dataclass
class StateRecord:
    state: str
    code_verifier: str
    redirect: Optional[str]
    expires_at: int
    nonce: Optional[str] = None


class StateStore:
    def __init__(self):
        self._data: Dict[str, StateRecord] = {}
        self._lock = threading.Lock()

    def create(
        self,
        *,
        code_verifier: str,
        ttl_seconds: int = 900,
        redirect: Optional[str] = None,
        nonce: Optional[str] = None,
    ) -> StateRecord:
        state = secrets.token_urlsafe(24)
        rec = StateRecord(state=state, code_verifier=code_verifier, redirect=redirect, expires_at=_now() + ttl_seconds, nonce=nonce)
        with self._lock:
            self._data[state] = rec
        return rec

    def pop_valid(self, state: str) -> Optional[StateRecord]:
        """Return and consume the record; states are single-use."""
        with self._lock:
            rec = self._data.pop(state, None)
        if not rec:
            return None
        if rec.expires_at < _now():
            return None
        return rec


@dataclass
class SessionRecord:
    session_id: str
    sub: str
    email: str
    name: str
    roles: list[str] = field(default_factory=list)
    id_token: Optional[str] = None
    ttl_seconds: int = 3600
    expires_at: Optional[int] = None


class SessionStore:
    def __init__(self):
        self._data: Dict[str, SessionRecord] = {}
        self._lock = threading.Lock()

    def create(
        self,
        *,
        sub: str,
        email: str,
        name: str,
        roles: list[str],
        id_token: Optional[str] = None,
        ttl_seconds: int = 3600,
    ) -> SessionRecord:
        sid = secrets.token_urlsafe(24)
        rec = SessionRecord(
            session_id=sid,
            sub=sub,
            email=email,
            name=name,
            roles=list(roles),
            id_token=id_token,
            ttl_seconds=ttl_seconds,
            expires_at=_now() + ttl_seconds,
        )
        with self._lock:
            self._data[sid] = rec
        return rec

    def get(self, session_id: str) -> Optional[SessionRecord]:
        rec = self._data.get(session_id)
        if not rec:
            return None
        if rec.expires_at and rec.expires_at < _now():
            self.delete(session_id)
            return None
        return rec

    def delete(self, session_id: str) -> None:
        with self._lock:
            self._data.pop(session_id, None)
