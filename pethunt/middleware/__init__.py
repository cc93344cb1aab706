"""Middleware package for the pet hunting backend."""

from pethunt.middleware.error_handler import setup_error_handlers

__all__ = [
    "setup_error_handlers",
]
