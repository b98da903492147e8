from __future__ import annotations

import logging

from flask import Flask, jsonify

from ..core.exceptions import (
    AlreadyMarkedError,
    ConflictError,
    DomainError,
    ForbiddenError,
    NotFoundError,
    SessionClosedError,
    StorageError,
    ValidationError,
    WindowExpiredError,
)

logger = logging.getLogger(__name__)

# Order matters: subclasses before their bases.
_STATUS_BY_ERROR = (
    (AlreadyMarkedError, 409, "already_marked"),
    (ConflictError, 409, "conflict"),
    (SessionClosedError, 409, "session_closed"),
    (WindowExpiredError, 410, "window_expired"),
    (ValidationError, 400, "validation_error"),
    (ForbiddenError, 403, "forbidden"),
    (NotFoundError, 404, "not_found"),
    (StorageError, 503, "storage_unavailable"),
)


def error_payload(error: DomainError) -> tuple[dict, int]:
    for cls, status, code in _STATUS_BY_ERROR:
        if isinstance(error, cls):
            return {"error": code, "message": str(error)}, status
    return {"error": "domain_error", "message": str(error)}, 400


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(DomainError)
    def handle_domain_error(error: DomainError):
        payload, status = error_payload(error)
        if status >= 500:
            logger.error("request failed: %s", error)
        return jsonify(payload), status
