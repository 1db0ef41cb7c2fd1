"""
Minimal OIDC client for Google sign-in.

Why: Keep web framework independent identity logic in a separate module. The
web adapter (FastAPI) calls into this client to build the authorization URL and
exchange the authorization code for tokens.

Security: Uses PKCE (S256) parameters; caller is responsible for state &
code_verifier storage (server-side state store). The `hd` parameter only hints
the account chooser; the email domain is still verified after the callback.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional
import hashlib
import base64
import os
from urllib.parse import urlencode

# Small indirection to ease monkeypatching in tests
import requests as http

GOOGLE_ISSUER = "https://accounts.google.com"


def http_post(url: str, data: Dict[str, str], headers: Dict[str, str]):
    return http.post(url, data=data, headers=headers, timeout=10)


@dataclass(frozen=True)
class OIDCConfig:
    issuer: str  # e.g., https://accounts.google.com
    client_id: str
    redirect_uri: str  # e.g., http://localhost:8000/auth/callback
    client_secret: str | None = None
    auth_endpoint: str = "https://accounts.google.com/o/oauth2/v2/auth"
    token_endpoint: str = "https://oauth2.googleapis.com/token"
    jwks_uri: str = "https://www.googleapis.com/oauth2/v3/certs"
    hosted_domain: str | None = None  # e.g., neu.edu.ph

    @property
    def accepted_issuers(self) -> tuple[str, ...]:
        # Google signs tokens with either form of its issuer.
        if self.issuer == GOOGLE_ISSUER:
            return (GOOGLE_ISSUER, "accounts.google.com")
        return (self.issuer,)


class OIDCClient:
    def __init__(self, config: OIDCConfig):
        self.cfg = config

    @staticmethod
    def generate_code_verifier(length: int = 64) -> str:
        """Generate a high-entropy URL-safe code_verifier.

        Note: RFC suggests length between 43 and 128 characters.
        """
        return base64.urlsafe_b64encode(os.urandom(length)).decode("ascii").rstrip("=")

    @staticmethod
    def code_challenge_s256(code_verifier: str) -> str:
        """Derive S256 code challenge from verifier."""
        digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
        return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")

    def build_authorization_url(self, *, state: str, code_challenge: str, nonce: Optional[str] = None) -> str:
        """Return the authorization URL for the configured client.

        Parameters
        - state: Opaque anti-CSRF token
        - code_challenge: The S256 code challenge derived from the verifier
        - nonce: Optional OIDC replay protection value (recommended)
        """
        params = {
            "response_type": "code",
            "client_id": self.cfg.client_id,
            "redirect_uri": self.cfg.redirect_uri,
            "scope": "openid email profile",
            "state": state,
            "code_challenge": code_challenge,
            "code_challenge_method": "S256",
            "access_type": "offline",
            "prompt": "consent",
        }
        if self.cfg.hosted_domain:
            params["hd"] = self.cfg.hosted_domain
        if nonce:
            params["nonce"] = nonce
        return f"{self.cfg.auth_endpoint}?{urlencode(params)}"

    def exchange_code_for_tokens(self, *, code: str, code_verifier: str) -> Dict[str, str]:
        """Exchange authorization code for tokens at token endpoint.

        Returns tokens dict on success; raises ValueError on failure.
        """
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "client_id": self.cfg.client_id,
            "redirect_uri": self.cfg.redirect_uri,
            "code_verifier": code_verifier,
        }
        if self.cfg.client_secret:
            data["client_secret"] = self.cfg.client_secret
        headers = {"Content-Type": "application/x-www-form-urlencoded"}
        resp = http_post(self.cfg.token_endpoint, data=data, headers=headers)
        if resp.status_code != 200:
            raise ValueError("token_exchange_failed")
        return resp.json()
