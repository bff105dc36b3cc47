# --- storefront/errors.py ---
from flask import jsonify

from .utils.api import api_error


class StorefrontError(Exception):
    """Base for errors that are answered with an api_error envelope."""

    status_code = 400

    def __init__(self, message, data=None, status_code=None):
        super().__init__(message)
        self.message = message
        self.data = data
        if status_code is not None:
            self.status_code = status_code

    def payload(self) -> dict:
        return {"success": False, "error": self.message, **(self.data or {})}


class ValidationError(StorefrontError):
    status_code = 400


class StockError(StorefrontError):
    """One or more line items cannot be fulfilled.

    ``stock_errors`` holds one dict per offending line:
    ``{"productId", "title", "available", "requested", "message"}``.
    """

    status_code = 400

    def __init__(self, stock_errors, message="Stock validation failed"):
        super().__init__(message)
        self.stock_errors = list(stock_errors)

    def payload(self) -> dict:
        return {"success": False, "error": self.message, "stockErrors": self.stock_errors}


class PaymentError(StorefrontError):
    status_code = 400


class PersistenceError(StorefrontError):
    status_code = 500


def register_error_handlers(app):
    @app.errorhandler(StorefrontError)
    def handle_storefront_error(e):
        r = jsonify(api_error(e.message, e.payload()))
        r.status_code = e.status_code
        return r
