# backend/app/errors.py
"""
Unified error envelope.

Every error response carries ``message``, ``code`` and ``details`` so clients
can branch on ``code`` and show ``details.errors`` verbatim.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.exceptions import DomainException

logger = logging.getLogger(__name__)


def _title_from_status(status_code: int) -> str:
    mapping = {
        400: "Bad Request",
        401: "Unauthorized",
        403: "Forbidden",
        404: "Not Found",
        409: "Conflict",
        422: "Unprocessable Entity",
        500: "Internal Server Error",
    }
    return mapping.get(status_code, "Error")


def _envelope(
    *,
    status: int,
    message: str,
    code: Optional[str] = None,
    details: Optional[Any] = None,
    instance: str = "",
) -> Dict[str, Any]:
    return {
        "message": message,
        "code": code or _title_from_status(status).upper().replace(" ", "_"),
        "details": jsonable_encoder(details) if details is not None else {},
        "status": status,
        "instance": instance,
    }


def _parse_detail(detail: Any) -> tuple[str, Optional[str], Optional[Any]]:
    if isinstance(detail, dict):
        code = detail.get("code") if isinstance(detail.get("code"), str) else None
        message = detail.get("message") or detail.get("detail")
        return (
            message if isinstance(message, str) else "",
            code,
            detail.get("details") or detail.get("errors"),
        )
    if isinstance(detail, str):
        return detail, None, None
    if detail is None:
        return "", None, None
    return str(detail), None, None


def register_error_handlers(app: FastAPI) -> None:
    async def http_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        assert isinstance(exc, StarletteHTTPException)
        message, code, details = _parse_detail(exc.detail)
        return JSONResponse(
            _envelope(
                status=exc.status_code,
                message=message or _title_from_status(exc.status_code),
                code=code,
                details=details,
                instance=request.url.path,
            ),
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
        )

    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)

    @app.exception_handler(DomainException)
    async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"Unhandled domain error on {request.url.path}: {exc.message}")
        return JSONResponse(
            _envelope(
                status=exc.status_code,
                message=exc.message,
                code=exc.code,
                details=exc.details,
                instance=request.url.path,
            ),
            status_code=exc.status_code,
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = jsonable_encoder(exc.errors())
        return JSONResponse(
            _envelope(
                status=422,
                message="Request validation failed",
                code="validation_error",
                details={"errors": errors},
                instance=request.url.path,
            ),
            status_code=422,
        )
