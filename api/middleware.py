"""
api/middleware.py

Request logging and the ops audit trail for the provisioner API.

1.  Request log  (Starlette middleware, hits every request)
    ───────────────────────────────────────────────────────
    One line per request on the "wolkenlauf.api" logger:
        POST /vm/create → 201 (1834 ms) from 1.2.3.4

2.  Ops Audit Log
    ─────────────
    Every mutating call appends to AUDIT_LOG_FILE (default audit.log):
        2026-02-27T12:34:56Z  CREATE  1.2.3.4  provider=aws type=t3.micro
    The file handler is attached on first write, so importing the app
    never touches the filesystem.
"""

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Callable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger("wolkenlauf.api")

# ─────────────────────────────────────────────────────────────────────────────
# Audit logger
# ─────────────────────────────────────────────────────────────────────────────

_audit_logger = logging.getLogger("wolkenlauf.audit")
_audit_logger.setLevel(logging.INFO)
_audit_logger.propagate = False
_audit_lock = threading.Lock()
_audit_path = "audit.log"


def configure_audit_log(path: str) -> None:
    """Set the audit file. Takes effect if no handler is attached yet."""
    global _audit_path
    _audit_path = path


def _ensure_audit_handler() -> None:
    with _audit_lock:
        if _audit_logger.handlers:
            return
        handler = logging.FileHandler(_audit_path, encoding="utf-8")
        handler.setFormatter(logging.Formatter("%(message)s"))
        _audit_logger.addHandler(handler)


def write_audit(operation: str, ip: str, extra: str = "") -> None:
    """Append one line to the audit log: timestamp  OPERATION  ip  [extra]."""
    _ensure_audit_handler()
    ts    = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
    parts = [ts, operation.upper(), ip]
    if extra:
        parts.append(extra)
    _audit_logger.info("  ".join(parts))


# ─────────────────────────────────────────────────────────────────────────────
# Request log
# ─────────────────────────────────────────────────────────────────────────────

class RequestLogMiddleware(BaseHTTPMiddleware):
    """Logs method, path, status and latency for every request."""

    async def dispatch(self, request: Request, call_next: Callable):
        started  = time.monotonic()
        response = await call_next(request)
        elapsed  = (time.monotonic() - started) * 1000
        logger.info(
            "%s %s → %d (%.0f ms) from %s",
            request.method,
            request.url.path,
            response.status_code,
            elapsed,
            get_client_ip(request),
        )
        return response


# ─────────────────────────────────────────────────────────────────────────────
# Shared helper
# ─────────────────────────────────────────────────────────────────────────────

def get_client_ip(request: Request) -> str:
    fwd = request.headers.get("X-Forwarded-For")
    if fwd:
        return fwd.split(",")[0].strip()
    return request.client.host if request.client else "unknown"
