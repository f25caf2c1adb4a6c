"""
API Package
Contains FastAPI routes, models and error handlers
"""

from api.handlers import register_exception_handlers
from api.models import (
    ErrorResponse,
    HealthResponse,
    ProductsResponse,
    UrlValidationResponse,
)
from api.routes import get_processor, router

__all__ = [
    'router',
    'get_processor',
    'register_exception_handlers',
    'ProductsResponse',
    'UrlValidationResponse',
    'HealthResponse',
    'ErrorResponse'
]
