"""HTTP mapping for storefront errors.

Protean's own exceptions (validation, not found) keep the handlers from
``protean.integrations.fastapi``.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from storefront.errors import (
    ConflictError,
    ExternalServiceError,
    InsufficientFunds,
    InsufficientStock,
    StorefrontError,
)

logger = structlog.get_logger(__name__)

STATUS_CODES = {
    InsufficientStock: 409,
    ConflictError: 409,
    InsufficientFunds: 422,
    ExternalServiceError: 502,
}


def status_code_for(exc: StorefrontError) -> int:
    for error_class, status_code in STATUS_CODES.items():
        if isinstance(exc, error_class):
            return status_code
    return 400


async def storefront_error_handler(request: Request, exc: StorefrontError) -> JSONResponse:
    status_code = status_code_for(exc)
    logger.info("request_failed", path=request.url.path, code=exc.code, status_code=status_code)
    return JSONResponse(status_code=status_code, content=exc.to_dict())


def register_error_handlers(app: FastAPI) -> None:
    register_exception_handlers(app)
    app.add_exception_handler(StorefrontError, storefront_error_handler)
