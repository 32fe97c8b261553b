"""API error types and the JSON error handlers registered on the app.

Routes raise ``ApiError`` subclasses; everything else that escapes a view is
translated here into ``{"success": false, "message": ...}`` with a matching
status code.
"""

from flask import current_app, jsonify, request
from jose import ExpiredSignatureError, JWTError
from sqlalchemy.exc import DataError, IntegrityError, StatementError
from werkzeug.exceptions import HTTPException

from .extensions import db


class ApiError(Exception):
    status_code = 500
    message = "Internal server error"

    def __init__(self, message=None, status_code=None, data=None, errors=None):
        super().__init__(message or self.message)
        self.message = message or self.message
        if status_code is not None:
            self.status_code = status_code
        self.data = data
        self.errors = errors


class ValidationError(ApiError):
    status_code = 400
    message = "Validation failed"


class AuthenticationError(ApiError):
    status_code = 401
    message = "Authentication required"


class PaymentRequiredError(ApiError):
    status_code = 402
    message = "Payment required"


class PermissionDeniedError(ApiError):
    status_code = 403
    message = "Insufficient permissions"


class NotFoundError(ApiError):
    status_code = 404
    message = "Resource not found"


class ConflictError(ApiError):
    status_code = 409
    message = "Resource already exists"


class ServiceUnavailableError(ApiError):
    status_code = 503
    message = "Service temporarily unavailable"


class ModelValidationError(ValueError):
    """Raised by model validators when an attribute is assigned a bad value."""

    def __init__(self, field, message):
        super().__init__(message)
        self.field = field
        self.message = message


def form_errors(form):
    """Flatten WTForms errors into ``[{"field": ..., "message": ...}]``."""
    out = []
    for field, messages in form.errors.items():
        for msg in messages:
            out.append({"field": field, "message": msg})
    return out


def _body(message, data=None, errors=None, exc=None):
    body = {"success": False, "message": message}
    if data is not None:
        body["data"] = data
    if errors:
        body["errors"] = errors
    if exc is not None and current_app.debug:
        body["error"] = repr(exc)
    return body


def _log(status, exc):
    if status >= 500:
        current_app.logger.exception("Unhandled error on %s %s", request.method, request.path)
    else:
        current_app.logger.warning("%s %s -> %s: %s", request.method, request.path, status, exc)


def register_error_handlers(app):
    @app.errorhandler(ApiError)
    def handle_api_error(exc):
        _log(exc.status_code, exc)
        return jsonify(_body(exc.message, exc.data, exc.errors)), exc.status_code

    @app.errorhandler(ModelValidationError)
    def handle_model_validation(exc):
        db.session.rollback()
        _log(400, exc)
        errors = [{"field": exc.field, "message": exc.message}]
        return jsonify(_body("Validation error", errors=errors, exc=exc)), 400

    @app.errorhandler(IntegrityError)
    def handle_integrity(exc):
        db.session.rollback()
        _log(409, exc)
        return jsonify(_body("Duplicate field value", exc=exc)), 409

    @app.errorhandler(DataError)
    def handle_data_error(exc):
        db.session.rollback()
        _log(400, exc)
        return jsonify(_body("Invalid ID format", exc=exc)), 400

    @app.errorhandler(StatementError)
    def handle_statement_error(exc):
        db.session.rollback()
        if isinstance(exc.orig, ModelValidationError):
            return handle_model_validation(exc.orig)
        _log(400, exc)
        return jsonify(_body("Invalid ID format", exc=exc)), 400

    @app.errorhandler(ExpiredSignatureError)
    def handle_expired(exc):
        _log(401, exc)
        return jsonify(_body("Token expired")), 401

    @app.errorhandler(JWTError)
    def handle_jwt(exc):
        _log(401, exc)
        return jsonify(_body("Invalid token")), 401

    @app.errorhandler(HTTPException)
    def handle_http(exc):
        status = exc.code or 500
        if status == 404 and request.path.startswith("/api"):
            message = "API endpoint not found"
        elif status == 429:
            message = "Too many requests from this IP, please try again later."
        else:
            message = exc.description or exc.name
        _log(status, exc)
        return jsonify(_body(message)), status

    @app.errorhandler(Exception)
    def handle_unexpected(exc):
        db.session.rollback()
        _log(500, exc)
        return jsonify(_body("Internal server error", exc=exc)), 500
