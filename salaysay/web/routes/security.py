"""
Shared web security helpers (FastAPI-agnostic utilities for routes).

Contains the CSRF same-origin check used by every state-changing API route.
"""
from __future__ import annotations

import os
from urllib.parse import urlparse

from fastapi import Request


def _default_port(scheme: str) -> int:
    return 443 if scheme == "https" else 80


def _parse_origin(url: str) -> tuple[str, str, int]:
    p = urlparse(url)
    if not p.scheme or not p.hostname:
        raise ValueError("invalid_origin")
    scheme = p.scheme.lower()
    port = p.port if p.port is not None else _default_port(scheme)
    return scheme, p.hostname.lower(), int(port)


def _server_origin(request: Request) -> tuple[str, str, int]:
    """Return (scheme, host, port) of this server as the browser sees it.

    Proxy awareness: only trust X-Forwarded-* when SALAYSAY_TRUST_PROXY=true.
    """
    trust_proxy = (os.getenv("SALAYSAY_TRUST_PROXY", "false") or "").lower() == "true"
    scheme = (request.url.scheme or "http").lower()
    host = (request.url.hostname or "").lower()
    port = int(request.url.port) if request.url.port else _default_port(scheme)
    if not trust_proxy:
        return scheme, host, port

    xf_proto = (request.headers.get("x-forwarded-proto") or scheme).split(",")[0].strip().lower()
    xf_host = (request.headers.get("x-forwarded-host") or request.headers.get("host") or host).split(",")[0].strip()
    scheme = xf_proto or scheme
    if ":" in xf_host:
        host_only, port_str = xf_host.rsplit(":", 1)
        host = host_only.lower()
        port = int(port_str) if port_str.isdigit() else _default_port(scheme)
    else:
        host = xf_host.lower() or host
        port = _default_port(scheme) if request.headers.get("x-forwarded-proto") else port
    xf_port = (request.headers.get("x-forwarded-port") or "").split(",")[0].strip()
    if xf_port.isdigit():
        port = int(xf_port)
    return scheme, host, port


def _is_same_origin(request: Request) -> bool:
    """Verify same-origin using Origin or Referer headers.

    Behavior:
    - If Origin is present, require exact scheme/host/port match with server.
    - Else if Referer is present, validate its origin similarly.
    - Else (no headers): allow to not break non-browser clients.
    """
    try:
        server = _server_origin(request)
        origin_val = request.headers.get("origin")
        if origin_val:
            return _parse_origin(origin_val) == server
        referer_val = request.headers.get("referer")
        if referer_val:
            return _parse_origin(referer_val) == server
        return True
    except ValueError:
        return False


def _require_strict_same_origin(request: Request) -> bool:
    """Return True only when a same-origin indicator is present and matches.

    Browser-triggered writes must carry Origin or Referer; their absence is
    treated as a failed check.
    """
    if not (request.headers.get("origin") or request.headers.get("referer")):
        return False
    return _is_same_origin(request)
