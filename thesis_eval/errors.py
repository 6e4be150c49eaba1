from flask import current_app, jsonify
from sqlalchemy.exc import IntegrityError, OperationalError
from werkzeug.exceptions import HTTPException

from .extensions import db


class ServiceError(Exception):
    """Base for errors raised by the service layer.

    ``status_code`` is the HTTP status the API answers with; ``message`` is
    safe to show to the caller.
    """
    status_code = 500
    code = None

    def __init__(self, message="Request failed", code=None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class ValidationError(ServiceError):
    status_code = 400
    code = "validation_error"


class ForbiddenError(ServiceError):
    status_code = 403
    code = "forbidden"


class NotFoundError(ServiceError):
    status_code = 404
    code = "not_found"


class LockedError(ServiceError):
    status_code = 409
    code = "locked"


class ConflictError(ServiceError):
    status_code = 409
    code = "conflict"


class ServiceUnavailableError(ServiceError):
    status_code = 503
    code = "service_unavailable"


class InternalError(ServiceError):
    status_code = 500
    code = "internal_error"


def error_response(message, status, code=None):
    body = {"ok": False, "message": message}
    if code:
        body["code"] = code
    return jsonify(body), status


def register_error_handlers(app):
    @app.errorhandler(ServiceError)
    def handle_service_error(err):
        if err.status_code >= 500:
            current_app.logger.error('%s: %s', err.__class__.__name__, err.message)
        return error_response(err.message, err.status_code, err.code)

    @app.errorhandler(OperationalError)
    def handle_operational_error(err):
        db.session.rollback()
        current_app.logger.exception('Database unavailable')
        return error_response("Service temporarily unavailable", 503, ServiceUnavailableError.code)

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(err):
        db.session.rollback()
        current_app.logger.warning('Integrity error: %s', getattr(err, 'orig', err))
        return error_response("Conflicting or invalid reference", 409, ConflictError.code)

    @app.errorhandler(HTTPException)
    def handle_http_error(err):
        return error_response(err.description or err.name, err.code or 500)

    @app.errorhandler(Exception)
    def handle_unexpected(err):
        db.session.rollback()
        current_app.logger.exception('Unhandled error')
        return error_response("Internal server error", 500, InternalError.code)
