"""
Turns the extraction error taxonomy into JSON error responses.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger

from api.models import ErrorResponse
from errors import (
    FetchFailure,
    ImageProcessingFailed,
    InvalidReceiptUrl,
    NoProductsFound,
    ProductValidationError,
    ReceiptError,
    RemoteFetchFailed,
)


def status_for(error: ReceiptError) -> int:
    if isinstance(error, InvalidReceiptUrl):
        return 400
    if isinstance(error, (ProductValidationError, ImageProcessingFailed)):
        return 422
    if isinstance(error, NoProductsFound):
        return 404
    if isinstance(error, RemoteFetchFailed):
        if error.reason == FetchFailure.TIMEOUT:
            return 504
        if error.reason == FetchFailure.UNAUTHORIZED:
            return 401
        return 502
    return 500


def error_body(error: ReceiptError) -> dict:
    reason = getattr(error, "reason", None)
    return ErrorResponse(
        error=error.kind,
        message=error.message,
        reason=reason.value if reason is not None else None,
    ).model_dump()


async def receipt_error_handler(request: Request, exc: ReceiptError) -> JSONResponse:
    status = status_for(exc)
    logger.warning(f"[API] {request.method} {request.url.path} → {status} {exc.kind}: {exc.message}")
    return JSONResponse(status_code=status, content=error_body(exc))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ReceiptError, receipt_error_handler)
