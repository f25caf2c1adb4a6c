"""
Error taxonomy for the receipt extraction service.

Only these kinds cross the extraction boundary. Every instance carries a
``message`` meant to be shown to the user as-is.
"""

from enum import Enum
from typing import Optional


class ReceiptError(Exception):
    """Base class for all user-facing extraction errors."""

    kind = "ReceiptError"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidReceiptUrl(ReceiptError):
    """Scanned content is not a usable fiscal receipt URL."""

    kind = "InvalidReceiptUrl"

    def __init__(self, message: str, url: Optional[str] = None):
        if url:
            message = f"{message} URL capturada: {url}"
        super().__init__(message)
        self.url = url


class FetchFailure(str, Enum):
    CROSS_ORIGIN = "cross_origin"
    NETWORK = "network"
    TIMEOUT = "timeout"
    UNAUTHORIZED = "unauthorized"
    ROUTE_NOT_FOUND = "route_not_found"
    SERVER_ERROR = "server_error"
    INVALID_RESPONSE = "invalid_response"


class RemoteFetchFailed(ReceiptError):
    """Document retrieval or backend call failed."""

    kind = "RemoteFetchFailed"

    def __init__(
        self,
        message: str,
        reason: FetchFailure = FetchFailure.NETWORK,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.reason = reason
        self.status_code = status_code


class NoProductsFound(ReceiptError):
    """Extraction finished cleanly but produced no products."""

    kind = "NoProductsFound"

    def __init__(self, message: str = "Nenhum produto encontrado na nota fiscal"):
        super().__init__(message)


class ImageProcessingFailed(ReceiptError):
    """OCR or QR decoding could not produce usable output."""

    kind = "ImageProcessingFailed"

    def __init__(self, message: str = "Erro ao processar a imagem da nota fiscal"):
        super().__init__(message)


class ProductValidationError(ReceiptError):
    """A reviewed product payload was rejected before reaching the backend."""

    kind = "ProductValidationError"
