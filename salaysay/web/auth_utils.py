"""
Shared authentication utilities.

Why:
    Avoid duplicating cookie policy logic between the app factory and the auth
    router.

Design:
    The helper is framework-agnostic and pure: it accepts an environment string
    and returns the corresponding cookie flags.
"""

from __future__ import annotations

SESSION_COOKIE_NAME = "salaysay_session"


def cookie_opts(environment: str) -> dict:
    """Return hardened cookie flags (dev = prod).

    Returns a mapping with keys:
      - secure: True
      - samesite: "lax"  # Allow top-level OAuth redirects to set/send cookie
    """
    # "Strict" would drop the cookie on the redirect back from Google.
    return {"secure": True, "samesite": "lax"}


def session_cookie_kwargs(environment: str, *, max_age: int | None = None) -> dict:
    opts = cookie_opts(environment)
    return {
        "key": SESSION_COOKIE_NAME,
        "httponly": True,
        "secure": opts["secure"],
        "samesite": opts["samesite"],
        "path": "/",
        "max_age": max_age,
    }
