"""Exception handlers mapping relay errors to JSON responses.

Every error body has the shape ``{"error": CODE, "message": str,
"details"?: {...}}`` so wallets and the dashboard can branch on the code.
"""
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..exceptions import RelayError, ValidationError

logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    """Register relay exception handlers with the application."""

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = [
            {
                "field": ".".join(str(loc) for loc in error["loc"]),
                "message": error["msg"],
                "type": error["type"],
            }
            for error in exc.errors()
        ]
        logger.warning("Request validation failed on %s: %d field(s)", request.url.path, len(errors))
        error = ValidationError("Request validation failed", details={"errors": errors})
        return JSONResponse(status_code=error.http_status, content=error.to_dict())

    @app.exception_handler(RelayError)
    async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
        if exc.http_status >= 500:
            logger.error("%s on %s: %s", exc.error_code, request.url.path, exc.message)
        else:
            logger.warning("%s on %s: %s", exc.error_code, request.url.path, exc.message)
        return JSONResponse(status_code=exc.http_status, content=exc.to_dict())
