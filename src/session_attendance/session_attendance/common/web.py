from __future__ import annotations

import logging
from functools import wraps
from typing import Any, Iterable, Mapping

from flask import Flask, jsonify, request, session
from werkzeug.exceptions import HTTPException

from ..core.enums import Role
from ..core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    DomainError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Most specific first; NoActiveWindowError/NotEnrolledError report their own kind.
_STATUS_BY_ERROR = (
    (ValidationError, 400),
    (AuthenticationError, 401),
    (AuthorizationError, 403),
    (NotFoundError, 404),
    (PersistenceError, 503),
)


def error_response(kind: str, message: str, status: int):
    return jsonify({"success": False, "error": kind, "message": message}), status


def ok(payload: Any = None, status: int = 200, **extra):
    body = {"success": True, "data": payload}
    body.update(extra)
    return jsonify(body), status


def json_body() -> Mapping[str, Any]:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ValidationError("Request body must be a JSON object")
    return data


def current_handle() -> str:
    return session["handle"]


def current_role() -> Role:
    return Role(session["role"])


def login_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        if "handle" not in session:
            raise AuthenticationError("Please log in to continue")
        return view(*args, **kwargs)

    return wrapper


def roles_required(roles: Iterable[Role]):
    allowed = frozenset(roles)

    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            if "handle" not in session:
                raise AuthenticationError("Please log in to continue")
            if current_role() not in allowed:
                raise AuthorizationError("You do not have permission for this action")
            return view(*args, **kwargs)

        return wrapper

    return decorator


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(DomainError)
    def handle_domain_error(exc: DomainError):
        for kind, status in _STATUS_BY_ERROR:
            if isinstance(exc, kind):
                if status >= 500:
                    logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.path, exc)
                return error_response(type(exc).__name__, str(exc), status)
        logger.error("Unmapped domain error on %s %s: %s", request.method, request.path, exc)
        return error_response(type(exc).__name__, str(exc), 500)

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        return error_response(exc.name.replace(" ", ""), exc.description or exc.name, exc.code or 500)

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        message = str(exc) if app.config.get("DEBUG") else "Internal server error"
        return error_response("InternalError", message, 500)
