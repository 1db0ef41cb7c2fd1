"""
Authentication-related FastAPI routes (router-only module).

Why:
    Keep sign-in and sign-out endpoints in a dedicated router. Shared state
    (OIDC config, state/session stores, cookie policy) is read from the app
    container so tests can swap it per app instance.

Notes:
    - `/auth/callback` lives in `main.py` next to the middleware that consumes
      the session it creates.
"""

from __future__ import annotations

import logging
import re
import secrets

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response

from salaysay.identity_access.oidc import OIDCClient
from salaysay.web.auth_utils import SESSION_COOKIE_NAME, session_cookie_kwargs
from salaysay.web.components import AccessDeniedPage, SignedOutPage
from salaysay.web.container import get_container


auth_router = APIRouter(tags=["Auth"])
logger = logging.getLogger("salaysay.web.auth")

# Absolute in-app paths only: no double slashes, no traversal.
INAPP_PATH_PATTERN = re.compile(r"^(?!.*//)(?!.*\.\.)/[A-Za-z0-9._\-/]*$")
MAX_INAPP_REDIRECT_LEN = 256

_NO_STORE = {"Cache-Control": "private, no-store"}


def _is_inapp_path(value: str) -> bool:
    """Return True if value is an absolute in-app path, e.g., "/", "/api/me".

    Examples (rejected):
        "submissions" (not absolute), "https://evil.com", "/a?b", "//evil", "/.."
    """
    if not value or not isinstance(value, str):
        return False
    if len(value) > MAX_INAPP_REDIRECT_LEN:
        return False
    return bool(INAPP_PATH_PATTERN.match(value))


@auth_router.get("/auth/login")
async def auth_login(request: Request, redirect: str | None = None):
    """
    Start the Google OIDC flow with PKCE and server-side state.

    Behavior:
        - Generates code_verifier + S256 code_challenge and a nonce.
        - Keeps `redirect` only when it is an absolute in-app path.
        - HTMX requests receive 204 + `HX-Redirect`; others a 302.
    Permissions:
        Public.
    """
    container = get_container(request)
    code_verifier = OIDCClient.generate_code_verifier()
    code_challenge = OIDCClient.code_challenge_s256(code_verifier)
    nonce = secrets.token_urlsafe(16)
    safe_redirect = redirect if (isinstance(redirect, str) and _is_inapp_path(redirect)) else None
    rec = container.state_store.create(code_verifier=code_verifier, redirect=safe_redirect, nonce=nonce)
    url = container.oidc.build_authorization_url(state=rec.state, code_challenge=code_challenge, nonce=nonce)
    headers = {"Cache-Control": "private, no-store", "Vary": "HX-Request"}
    if request.headers.get("HX-Request"):
        headers["HX-Redirect"] = url
        return Response(status_code=204, headers=headers)
    return RedirectResponse(url=url, status_code=302, headers=headers)


def clear_session_cookie(response: Response, environment: str) -> None:
    kwargs = session_cookie_kwargs(environment, max_age=0)
    response.set_cookie(value="", expires=0, **kwargs)


@auth_router.get("/auth/logout")
async def auth_logout(request: Request):
    """
    Sign out: drop the server-side session and expire the cookie.

    Google has no end-session endpoint for third-party apps, so the flow ends
    on the local success page.
    """
    container = get_container(request)
    sid = request.cookies.get(SESSION_COOKIE_NAME)
    if sid:
        try:
            container.session_store.delete(sid)
        except Exception as exc:
            logger.warning("Session delete failed during logout: %s", exc.__class__.__name__)
    resp = RedirectResponse(url="/auth/logout/success", status_code=302, headers=dict(_NO_STORE))
    clear_session_cookie(resp, container.settings.environment)
    return resp


@auth_router.get("/auth/logout/success", response_class=HTMLResponse)
async def auth_logout_success():
    """Render the signed-out page with a link back to /auth/login."""
    return HTMLResponse(content=SignedOutPage().render(), headers=dict(_NO_STORE))


@auth_router.get("/auth/denied", response_class=HTMLResponse)
async def auth_denied(request: Request):
    """Shown after a sign-in with an email outside the institutional domain."""
    domain = get_container(request).oidc_config.hosted_domain or ""
    return HTMLResponse(content=AccessDeniedPage(domain=domain).render(), status_code=403, headers=dict(_NO_STORE))


__all__ = ["auth_router", "clear_session_cookie", "_is_inapp_path"]
