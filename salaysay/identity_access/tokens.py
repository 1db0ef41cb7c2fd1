"""
Google ID token verification.

Google rotates its signing keys and publishes the current set at the JWKS
endpoint with a `Cache-Control: max-age`. `SigningKeys` holds each set for that
long. A token whose `kid` is not in the held set triggers one early refresh
(at most every `refresh_cooldown` seconds) before it is rejected, so a rotation
never locks users out until the cache expires.

Checks, in order:
    1. Signature with the matching RSA key (RS256 only) and audience = client id.
    2. Issuer is one of `OIDCConfig.accepted_issuers`.
    3. `exp` present and not passed; `iat`/`nbf` not in the future (small leeway).
"""
from __future__ import annotations

from typing import Callable, Dict
import re
import time

import requests
from jose import jwt
from jose.exceptions import JOSEError

from .oidc import OIDCConfig

LEEWAY_SECONDS = 5
DEFAULT_KEYS_TTL_SECONDS = 300
MAX_KEYS_TTL_SECONDS = 24 * 3600
REFRESH_COOLDOWN_SECONDS = 30

_MAX_AGE_RE = re.compile(r"max-age=(\d+)")


class IDTokenVerificationError(Exception):
    """Raised when the ID token fails verification; `code` names the check."""

    def __init__(self, code: str):
        super().__init__(code)
        self.code = code


def keys_ttl_from_cache_control(header: str | None, default: int = DEFAULT_KEYS_TTL_SECONDS) -> int:
    match = _MAX_AGE_RE.search(header or "")
    if not match:
        return default
    return min(int(match.group(1)), MAX_KEYS_TTL_SECONDS)


class SigningKeys:
    """Google's published RSA keys, indexed by `kid` per JWKS URI."""

    def __init__(
        self,
        *,
        default_ttl: int = DEFAULT_KEYS_TTL_SECONDS,
        refresh_cooldown: float = REFRESH_COOLDOWN_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._default_ttl = default_ttl
        self._cooldown = refresh_cooldown
        self._clock = clock
        self._keys: Dict[str, Dict[str, dict]] = {}
        self._expires_at: Dict[str, float] = {}
        self._fetched_at: Dict[str, float] = {}

    def key_for(self, cfg: OIDCConfig, kid: str) -> dict | None:
        uri = cfg.jwks_uri
        now = self._clock()
        if now >= self._expires_at.get(uri, 0.0):
            self._refresh(uri, now)
        key = self._keys[uri].get(kid)
        if key is None and now - self._fetched_at.get(uri, 0.0) >= self._cooldown:
            # Unknown kid: Google may have rotated ahead of our max-age.
            self._refresh(uri, now)
            key = self._keys[uri].get(kid)
        return key

    def _refresh(self, uri: str, now: float) -> None:
        try:
            resp = requests.get(uri, timeout=5)
        except requests.RequestException as exc:
            raise IDTokenVerificationError("jwks_fetch_failed") from exc
        if resp.status_code != 200:
            raise IDTokenVerificationError("jwks_fetch_failed")
        try:
            body = resp.json()
        except ValueError as exc:
            raise IDTokenVerificationError("jwks_invalid") from exc
        published = body.get("keys") if isinstance(body, dict) else None
        if not isinstance(published, list):
            raise IDTokenVerificationError("jwks_invalid")
        self._keys[uri] = {k["kid"]: k for k in published if isinstance(k, dict) and isinstance(k.get("kid"), str)}
        self._fetched_at[uri] = now
        self._expires_at[uri] = now + keys_ttl_from_cache_control(resp.headers.get("Cache-Control"), self._default_ttl)


GOOGLE_SIGNING_KEYS = SigningKeys()


def verify_id_token(*, id_token: str, cfg: OIDCConfig, keys: SigningKeys | None = None) -> Dict[str, object]:
    """Verify a Google ID token and return its claims.

    Raises IDTokenVerificationError with one of: invalid_id_token, missing_kid,
    unknown_kid, invalid_issuer, expired, not_yet_valid, jwks_fetch_failed,
    jwks_invalid.
    """
    keys = keys or GOOGLE_SIGNING_KEYS
    try:
        header = jwt.get_unverified_header(id_token)
    except JOSEError as exc:
        raise IDTokenVerificationError("invalid_id_token") from exc
    kid = header.get("kid")
    if not kid:
        raise IDTokenVerificationError("missing_kid")
    public_key = keys.key_for(cfg, kid)
    if public_key is None:
        raise IDTokenVerificationError("unknown_kid")

    # Lifetime and issuer are checked below with our own leeway and issuer set.
    try:
        claims = jwt.decode(
            id_token,
            public_key,
            algorithms=["RS256"],
            audience=cfg.client_id,
            options={"verify_iss": False, "verify_exp": False, "verify_iat": False, "verify_nbf": False, "verify_at_hash": False},
        )
    except JOSEError as exc:
        raise IDTokenVerificationError("invalid_id_token") from exc

    if claims.get("iss") not in cfg.accepted_issuers:
        raise IDTokenVerificationError("invalid_issuer")
    _check_lifetime(claims, now=time.time())
    return claims


def _check_lifetime(claims: Dict[str, object], *, now: float) -> None:
    exp = claims.get("exp")
    if not isinstance(exp, (int, float)) or exp + LEEWAY_SECONDS < now:
        raise IDTokenVerificationError("expired")
    for name in ("iat", "nbf"):
        value = claims.get(name)
        if isinstance(value, (int, float)) and value - LEEWAY_SECONDS > now:
            raise IDTokenVerificationError("not_yet_valid")


__all__ = ["GOOGLE_SIGNING_KEYS", "IDTokenVerificationError", "SigningKeys", "verify_id_token"]
