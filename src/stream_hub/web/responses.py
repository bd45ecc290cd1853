"""JSON envelope used by every non-streaming endpoint."""

from __future__ import annotations

import time
from typing import Any, Optional

from fastapi.responses import JSONResponse


def success(data: Any = None, message: str = "", status_code: int = 200) -> JSONResponse:
    body: dict[str, Any] = {
        "success": True,
        "status": status_code,
        "message": message,
        "timestamp": int(time.time()),
    }
    if data is not None:
        body["data"] = data
    return JSONResponse(body, status_code=status_code)


def error(status_code: int, code: str, message: str, details: Optional[dict[str, Any]] = None) -> JSONResponse:
    err: dict[str, Any] = {"code": code, "message": message}
    if details:
        err["details"] = details
    body = {
        "success": False,
        "status": status_code,
        "message": message,
        "error": err,
        "timestamp": int(time.time()),
    }
    return JSONResponse(body, status_code=status_code)


def bad_request(message: str, details: Optional[dict[str, Any]] = None) -> JSONResponse:
    return error(400, "BAD_REQUEST", message, details)


def not_found(message: str) -> JSONResponse:
    return error(404, "NOT_FOUND", message)
