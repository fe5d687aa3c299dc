"""Request logging and error envelope middleware."""

from .error_handler import allowed_methods, register_exception_handlers
from .logging import REQUEST_ID_HEADER, logging_middleware

__all__ = [
    "REQUEST_ID_HEADER",
    "allowed_methods",
    "logging_middleware",
    "register_exception_handlers",
]
