from __future__ import annotations

import logging
import traceback
from typing import Callable, Dict, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response

from contract_engine.core.errors import (
    BytecodeError,
    ComputeError,
    ContractEngineError,
    ContractValidationError,
    IntegrityError,
    LoadError,
    ScriptEngineError,
    UnregisteredRuntimeError,
)

log = logging.getLogger("cengine.errors")

# most specific first
_STATUS = (
    (ContractValidationError, 400),
    (UnregisteredRuntimeError, 404),
    (IntegrityError, 422),
    (LoadError, 422),
    (ComputeError, 422),
    (BytecodeError, 422),
    (ScriptEngineError, 422),
)


def _request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None) or request.headers.get("x-request-id")


def status_for(exc: ContractEngineError) -> int:
    for cls, status in _STATUS:
        if isinstance(exc, cls):
            return status
    return 500


async def engine_error_handler(request: Request, exc: ContractEngineError) -> JSONResponse:
    """Engine errors carry client-safe messages; the type name travels as `error`."""
    status = status_for(exc)
    log.warning("Engine error %s status=%s path=%s: %s", type(exc).__name__, status, request.url.path, exc)
    payload: Dict[str, object] = {"detail": str(exc), "error": type(exc).__name__}
    if isinstance(exc, IntegrityError):
        payload["expected"] = exc.expected
        payload["actual"] = exc.actual
    rid = _request_id(request)
    if rid:
        payload["request_id"] = rid
    return JSONResponse(status_code=status, content=payload)


class SafeErrorMiddleware(BaseHTTPMiddleware):
    """
    - Never return stack traces to clients
    - Preserve request_id if present
    - Log traceback server-side
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            rid = _request_id(request)
            log.error(
                "Unhandled error: %s rid=%s path=%s\n%s",
                str(e),
                rid,
                request.url.path,
                traceback.format_exc(),
            )
            payload = {"detail": "Internal Server Error"}
            if rid:
                payload["request_id"] = rid
            return JSONResponse(status_code=500, content=payload)
