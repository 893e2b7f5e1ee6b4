"""
poa.security — Shared service plumbing: logging, request IDs, auth, rate limiting.

Log records emitted while a request is being served carry its request id
and client address.
"""

import hmac
import logging
import os
import time
import uuid
from contextvars import ContextVar
from typing import Optional

from fastapi import HTTPException, Request, Security
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import APIKeyHeader
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

SERVICE_NAME = "poa"
REQUEST_ID_HEADER = "X-Request-ID"

# ─── Log context ──────────────────────────────────────────────────

request_id_var: ContextVar[str] = ContextVar("request_id", default="")
client_var: ContextVar[str] = ContextVar("client", default="")


class LogContextFilter(logging.Filter):
    """Copy the current request context onto every record."""

    def filter(self, record):
        record.request_id = request_id_var.get()
        record.client = client_var.get()
        return True


def setup_structured_logging(level: str = "INFO", stream=None) -> logging.Logger:
    """Attach one JSON handler to the ``poa`` logger; later calls only change the level."""
    from pythonjsonlogger.json import JsonFormatter

    root = logging.getLogger(SERVICE_NAME)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    if not any(getattr(h, "_poa_json", False) for h in root.handlers):
        handler = logging.StreamHandler(stream)
        handler.setFormatter(JsonFormatter(
            fmt="%(asctime)s %(levelname)s %(name)s %(message)s %(request_id)s %(client)s",
            rename_fields={"asctime": "timestamp", "levelname": "level", "name": "logger"},
            static_fields={"service": SERVICE_NAME},
        ))
        handler.addFilter(LogContextFilter())
        handler._poa_json = True
        root.addHandler(handler)

    return root


logger = logging.getLogger("poa.api")


# ─── Rate Limiter (slowapi) ───────────────────────────────────────

limiter = Limiter(
    key_func=get_remote_address,
    enabled=os.environ.get("RATELIMIT_ENABLED", "True").lower() not in ("0", "false", "no"),
)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    """429 with a Retry-After header, the same signal our own probe looks for."""
    return JSONResponse(
        status_code=429,
        content={"error": "Rate limit exceeded. Try again later."},
        headers={"Retry-After": "60"},
    )


# ─── API Key Auth ─────────────────────────────────────────────────

_api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


async def require_write_auth(
    request: Request,
    api_key: Optional[str] = Security(_api_key_header),
) -> str:
    """Guard write endpoints when an API key is configured on the app."""
    expected = getattr(request.app.state, "api_key", None)
    if not expected:
        return "anonymous"
    if not api_key:
        log_auth_failure(request, "missing API key")
        raise HTTPException(status_code=401, detail="Missing X-API-Key header")
    if not hmac.compare_digest(api_key, expected):
        log_auth_failure(request, "invalid API key")
        raise HTTPException(status_code=403, detail="Invalid API key")
    return "api-key"


def log_auth_failure(request: Request, reason: str):
    logger.warning("Auth failure: %s on %s %s", reason, request.method, request.url.path,
                   extra={"event": "auth_failure", "reason": reason})


# ─── Request context middleware ───────────────────────────────────

class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Bind request id and client to the log context and log one line per request."""

    async def dispatch(self, request: Request, call_next):
        rid = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:12]
        rid_token = request_id_var.set(rid)
        client_token = client_var.set(request.client.host if request.client else "unknown")

        started = time.monotonic()
        try:
            response = await call_next(request)
            duration_ms = round((time.monotonic() - started) * 1000, 1)
            level = logging.WARNING if response.status_code >= 500 else logging.INFO
            logger.log(level, "%s %s -> %d", request.method, request.url.path,
                       response.status_code, extra={"duration_ms": duration_ms})
        finally:
            request_id_var.reset(rid_token)
            client_var.reset(client_token)

        response.headers[REQUEST_ID_HEADER] = rid
        response.headers["X-Content-Type-Options"] = "nosniff"
        return response


# ─── CORS configuration ──────────────────────────────────────────

def configure_cors(app, allowed_origins: Optional[list[str]] = None):
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins or ["*"],
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )


# ─── Global exception handler (never leak internals) ─────────────

async def generic_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled %s on %s", type(exc).__name__, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# ─── Apply all security to a FastAPI app ──────────────────────────

def apply_security(app, allowed_origins: Optional[list[str]] = None):
    """One-call setup: CORS, rate limiting, request context, error handlers."""
    configure_cors(app, allowed_origins)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
    app.add_middleware(RequestLoggingMiddleware)
