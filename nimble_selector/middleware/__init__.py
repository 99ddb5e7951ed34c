"""Middleware package for the Nimble selector."""

from nimble_selector.middleware.error_handler import setup_error_handlers

__all__ = [
    "setup_error_handlers",
]
