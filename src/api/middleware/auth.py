"""Request authentication for the auto-reply API.

Two independent shared-secret checks:

- maybe_require_api_key: optional middleware protecting every /api/ path
  with the X-API-Key header when AUTO_REPLY_API_KEY is set.
- require_cron_secret: route dependency for the job drain endpoints,
  expecting 'Authorization: Bearer <AUTO_REPLY_CRON_SECRET>' when the
  secret is set.

Both compare secrets with hmac.compare_digest. Repeated API-key failures
from one client IP are throttled in-process.
"""

from __future__ import annotations

import hmac
import logging
import os
import threading
import time

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse, Response

from src.services.auto_reply_config import get_cron_secret

logger = logging.getLogger(__name__)

_PUBLIC_PATH_PREFIXES = (
    "/health",
    "/docs",
    "/redoc",
    "/openapi.json",
)

_AUTH_FAIL_MAX = 10
_AUTH_FAIL_WINDOW_SECONDS = 300
_auth_failures: dict[str, list[float]] = {}
_auth_lock = threading.Lock()


def _get_client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _is_rate_limited(client_ip: str) -> bool:
    """True when the IP reached _AUTH_FAIL_MAX failures inside the window."""
    with _auth_lock:
        now = time.monotonic()
        recent = [
            t for t in _auth_failures.get(client_ip, [])
            if now - t < _AUTH_FAIL_WINDOW_SECONDS
        ]
        _auth_failures[client_ip] = recent
        return len(recent) >= _AUTH_FAIL_MAX


def _record_auth_failure(client_ip: str) -> None:
    with _auth_lock:
        _auth_failures.setdefault(client_ip, []).append(time.monotonic())


def reset_rate_limiter() -> None:
    """Reset the rate limiter state. Used by tests."""
    with _auth_lock:
        _auth_failures.clear()


def get_expected_api_key() -> str:
    """Return configured API key; empty string means auth disabled."""
    return os.environ.get("AUTO_REPLY_API_KEY", "").strip()


def should_authenticate(path: str) -> bool:
    """Return True when this path should be protected by API-key auth."""
    if path.startswith(_PUBLIC_PATH_PREFIXES):
        return False
    return path.startswith("/api/")


async def maybe_require_api_key(request: Request, call_next) -> Response:
    """FastAPI middleware entrypoint for optional API-key auth."""
    if request.method.upper() == "OPTIONS":
        return await call_next(request)

    expected_key = get_expected_api_key()
    if not expected_key or not should_authenticate(request.url.path):
        return await call_next(request)

    client_ip = _get_client_ip(request)
    if _is_rate_limited(client_ip):
        logger.warning("Auth rate limit exceeded for IP %s", client_ip)
        return JSONResponse(
            status_code=429,
            content={"detail": "Too many authentication failures. Try again later."},
        )

    provided_key = request.headers.get("X-API-Key", "")
    if not provided_key or not hmac.compare_digest(provided_key, expected_key):
        _record_auth_failure(client_ip)
        return JSONResponse(
            status_code=401,
            content={"detail": "Invalid or missing API key"},
        )
    return await call_next(request)


def require_cron_secret(request: Request) -> None:
    """Dependency guarding the job drain routes.

    Raises:
        HTTPException: 401 when a cron secret is configured and the
            request does not carry it as a bearer token.
    """
    secret = get_cron_secret()
    if not secret:
        return

    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not hmac.compare_digest(token.strip(), secret):
        logger.warning(
            "Rejected cron request to %s from %s",
            request.url.path, _get_client_ip(request),
        )
        raise HTTPException(status_code=401, detail="Unauthorized")
