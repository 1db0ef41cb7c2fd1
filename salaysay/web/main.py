"Salaysay web app"
from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
import logging
import os
import sys

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse, Response
from fastapi.staticfiles import StaticFiles

from salaysay.errors import BackendError
from salaysay.identity_access.domain import institutional_email_from_claims, primary_role, roles_for_email
from salaysay.identity_access.oidc import GOOGLE_ISSUER
from salaysay.identity_access.profiles import EnsureProfileInput, EnsureProfileUseCase
from salaysay.identity_access.tokens import IDTokenVerificationError, verify_id_token
from salaysay.web.auth_utils import SESSION_COOKIE_NAME, session_cookie_kwargs
from salaysay.web.config import ensure_secure_config_on_startup
from salaysay.web.container import AppContainer, build_container, get_container
from salaysay.web.routes.auth import auth_router, clear_session_cookie
from salaysay.web.routes.pages import pages_router
from salaysay.web.routes.submissions import submissions_router
from salaysay.web.storage_wiring import wire_supabase_adapter_if_configured


def _should_load_dotenv() -> bool:
    """Decide if we should load a local .env file.

    - Never load under pytest to avoid contaminating test env.
    - Allow explicit opt-out via SALAYSAY_ENABLE_DOTENV (default true
      outside pytest).
    """
    if "pytest" in sys.modules or os.getenv("PYTEST_CURRENT_TEST"):
        return False
    flag = (os.getenv("SALAYSAY_ENABLE_DOTENV", "true") or "").strip().lower()
    return flag in ("1", "true", "yes")


if _should_load_dotenv():
    from dotenv import load_dotenv

    load_dotenv()

# Minimal production safety checks (fail-fast on insecure config)
ensure_secure_config_on_startup()

logger = logging.getLogger("salaysay.web")

static_dir = Path(__file__).parent / "static"

_NO_STORE = {"Cache-Control": "private, no-store"}


def _is_public_path(path: str) -> bool:
    return path.startswith(("/auth/", "/static/")) or path in ("/health", "/favicon.ico")


def _set_session_cookie(response: Response, value: str, *, environment: str, max_age: int | None = None) -> None:
    response.set_cookie(value=value, **session_cookie_kwargs(environment, max_age=max_age))


async def auth_enforcement(request: Request, call_next):
    path = request.url.path
    if _is_public_path(path):
        return await call_next(request)

    container = get_container(request)
    sid = request.cookies.get(SESSION_COOKIE_NAME)
    rec = None
    if sid:
        try:
            rec = container.session_store.get(sid)
        except Exception as exc:
            logger.warning("Session store get failed: %s", exc.__class__.__name__)

    if not rec:
        if path.startswith("/api/"):
            headers = {"Cache-Control": "private, no-store", "Vary": "Origin"}
            return JSONResponse({"error": "unauthenticated"}, status_code=401, headers=headers)
        if "HX-Request" in request.headers:
            return Response(status_code=401, headers={"HX-Redirect": "/auth/login", "Cache-Control": "private, no-store", "Vary": "HX-Request"})
        return RedirectResponse(url="/auth/login", status_code=302)

    # Minimal, read-only user context for downstream handlers.
    request.state.user = {
        "sub": rec.sub,
        "email": rec.email,
        "name": rec.name,
        "role": primary_role(rec.roles),
        "roles": list(rec.roles),
    }
    return await call_next(request)


async def security_headers(request: Request, call_next):
    response = await call_next(request)
    environment = get_container(request).settings.environment
    if environment == "prod":
        csp = (
            "default-src 'self'; script-src 'self'; style-src 'self'; "
            "img-src 'self' data: https://lh3.googleusercontent.com; font-src 'self' data:; connect-src 'self';"
        )
    else:
        # Local SSR pages may carry inline styles while iterating.
        csp = (
            "default-src 'self'; script-src 'self' 'unsafe-inline'; style-src 'self' 'unsafe-inline'; "
            "img-src 'self' data: https://lh3.googleusercontent.com; font-src 'self' data:; connect-src 'self';"
        )
    response.headers.setdefault("Content-Security-Policy", csp)
    response.headers.setdefault("X-Frame-Options", "SAMEORIGIN")
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    if environment == "prod":
        response.headers.setdefault("Cross-Origin-Opener-Policy", "same-origin")
    response.headers.setdefault("Permissions-Policy", "geolocation=(), microphone=(), camera=()")
    response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
    return response


async def auth_callback(request: Request, code: str | None = None, state: str | None = None):
    """
    Finish the OIDC flow: verify tokens, enforce the email domain, bootstrap
    the profile and open a session.

    Behavior:
        - 400 JSON for invalid code/state, failed exchange, invalid token or
          nonce mismatch.
        - Email outside the institutional domain, unverified, or (Google)
          without a matching `hd` claim: any existing session is dropped,
          the cookie cleared and the browser sent to /auth/denied.
        - Otherwise the profile is fetched or created, a session opened and
          the browser redirected to the stored in-app target (default "/").
    """
    container = get_container(request)
    error_headers = dict(_NO_STORE)
    if not code or not state:
        return JSONResponse({"error": "invalid_code_or_state"}, status_code=400, headers=error_headers)
    rec = container.state_store.pop_valid(state)
    if not rec:
        return JSONResponse({"error": "invalid_code_or_state"}, status_code=400, headers=error_headers)
    try:
        tokens = container.oidc.exchange_code_for_tokens(code=code, code_verifier=rec.code_verifier)
    except Exception as exc:
        logger.warning("Token exchange failed: %s", exc.__class__.__name__)
        return JSONResponse({"error": "token_exchange_failed"}, status_code=400, headers=error_headers)
    id_token = tokens.get("id_token")
    if not id_token or not isinstance(id_token, str):
        return JSONResponse({"error": "invalid_id_token"}, status_code=400, headers=error_headers)
    try:
        claims = verify_id_token(id_token=id_token, cfg=container.oidc_config)
    except IDTokenVerificationError as exc:
        logger.warning("ID token verification failed: %s", exc.code)
        return JSONResponse({"error": "invalid_id_token"}, status_code=400, headers=error_headers)
    if getattr(rec, "nonce", None) and claims.get("nonce") != rec.nonce:
        return JSONResponse({"error": "invalid_nonce"}, status_code=400, headers=error_headers)

    environment = container.settings.environment
    domain = container.oidc_config.hosted_domain
    email = institutional_email_from_claims(
        claims, domain, require_hosted_domain=container.oidc_config.issuer == GOOGLE_ISSUER
    )
    if not email:
        old_sid = request.cookies.get(SESSION_COOKIE_NAME)
        if old_sid:
            container.session_store.delete(old_sid)
        logger.info("Sign-in rejected: unverified or non-institutional account")
        resp = RedirectResponse(url="/auth/denied", status_code=302, headers=dict(_NO_STORE))
        clear_session_cookie(resp, environment)
        return resp

    sub = str(claims.get("sub") or "")
    display_name = claims.get("name") or email.split("@")[0]
    try:
        profile = EnsureProfileUseCase(container.repo, domain=domain).execute(
            EnsureProfileInput(sub=sub, email=email, full_name=claims.get("name"), avatar_url=claims.get("picture"))
        )
    except BackendError as exc:
        logger.warning("Profile bootstrap failed: kind=%s", exc.kind.value)
        return JSONResponse({"error": "profile_unavailable"}, status_code=503, headers=error_headers)

    sess = container.session_store.create(
        sub=sub,
        email=email,
        name=str(profile.full_name or display_name),
        roles=roles_for_email(email),
        id_token=id_token,
    )
    resp = RedirectResponse(url=rec.redirect or "/", status_code=302, headers=dict(_NO_STORE))
    max_age = sess.ttl_seconds if environment == "prod" else None
    _set_session_cookie(resp, sess.session_id, environment=environment, max_age=max_age)
    return resp


async def get_me(request: Request):
    """Return the session user together with the stored profile (if reachable)."""
    container = get_container(request)
    rec = container.session_store.get(request.cookies.get(SESSION_COOKIE_NAME) or "")
    if not rec:
        return JSONResponse({"error": "unauthenticated"}, status_code=401, headers=dict(_NO_STORE))
    try:
        profile = container.repo.get_profile(rec.sub)
    except BackendError as exc:
        logger.warning("Profile lookup failed: kind=%s", exc.kind.value)
        profile = None
    exp_iso = datetime.fromtimestamp(rec.expires_at, tz=timezone.utc).isoformat(timespec="seconds") if rec.expires_at else None
    return JSONResponse({
        "sub": rec.sub,
        "email": rec.email,
        "name": rec.name,
        "roles": rec.roles,
        "role": primary_role(rec.roles),
        "expires_at": exp_iso,
        "profile": profile.to_dict() if profile else None,
    }, headers=dict(_NO_STORE))


async def health():
    return JSONResponse({"status": "healthy"}, headers=dict(_NO_STORE))


def create_app(container: AppContainer | None = None) -> FastAPI:
    """Build the ASGI app around a container.

    Without a container the default one is built from the environment and
    the Supabase storage adapter is wired when configured. Tests pass their
    own container (in-memory repo, fake storage).
    """
    if container is None:
        container = build_container()
        if not wire_supabase_adapter_if_configured(container):
            logger.info("Storage adapter not configured; uploads will fail until SUPABASE_URL is set")

    app = FastAPI(title="Salaysay", description="Incident report (salaysay) submissions", version="0.1.0")
    app.state.container = container
    app.mount("/static", StaticFiles(directory=str(static_dir)), name="static")

    # Last added runs first: security_headers wraps auth_enforcement.
    app.middleware("http")(auth_enforcement)
    app.middleware("http")(security_headers)

    app.add_api_route("/auth/callback", auth_callback, methods=["GET"])
    app.add_api_route("/api/me", get_me, methods=["GET"])
    app.add_api_route("/health", health, methods=["GET"])
    app.include_router(auth_router)
    app.include_router(submissions_router)
    app.include_router(pages_router)
    return app


app = create_app()
