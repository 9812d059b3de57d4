# errors.py
import pydantic
import structlog
from flask import jsonify
from werkzeug.exceptions import HTTPException

from core import db

logger = structlog.get_logger(__name__)


class EcoKartError(Exception):
    status_code = 500

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class ValidationError(EcoKartError):
    status_code = 400


class UnauthorizedError(EcoKartError):
    status_code = 401


class ForbiddenError(EcoKartError):
    status_code = 403


class NotFoundError(EcoKartError):
    status_code = 404


class EmptyCartError(EcoKartError):
    status_code = 400

    def __init__(self, message="Cart is empty"):
        super().__init__(message)


class InsufficientPointsError(EcoKartError):
    status_code = 400

    def __init__(self, message="Insufficient points"):
        super().__init__(message)


class InsufficientStockError(EcoKartError):
    status_code = 400


def _describe(exc):
    first = exc.errors()[0]
    field = ".".join(str(part) for part in first["loc"])
    return f"{field}: {first['msg']}" if field else first["msg"]


def register_error_handlers(app):
    @app.errorhandler(EcoKartError)
    def handle_domain_error(exc):
        return jsonify({"message": exc.message}), exc.status_code

    @app.errorhandler(pydantic.ValidationError)
    def handle_invalid_body(exc):
        errors = [
            {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
            for err in exc.errors()
        ]
        return jsonify({"message": _describe(exc), "errors": errors}), 400

    @app.errorhandler(HTTPException)
    def handle_http_error(exc):
        return jsonify({"message": exc.description}), exc.code

    @app.errorhandler(Exception)
    def handle_unexpected(exc):
        db.session.rollback()
        logger.exception("Unhandled error", error=str(exc))
        return jsonify({"message": "Internal server error"}), 500
