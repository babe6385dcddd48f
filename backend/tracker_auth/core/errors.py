"""Centralized JSON error handling for the API.

Every handled error is rendered with the same envelope used by successful
responses::

    {"success": false, "data": null, "message": "...", "errors": [...],
     "code": "...", "request_id": "..."}
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any

from flask import Flask, Response, jsonify, request
from marshmallow import ValidationError
from sqlalchemy.exc import OperationalError
from werkzeug.exceptions import HTTPException

from tracker_auth.core.logger import ensure_request_id

log = logging.getLogger(__name__)


def _http_status_to_code(status_code: int) -> str:
    """Map common HTTP status codes to canonical, stable error codes."""
    mapping = {
        400: "bad_request",
        401: "unauthorized",
        403: "forbidden",
        404: "not_found",
        405: "method_not_allowed",
        409: "conflict",
        413: "payload_too_large",
        415: "unsupported_media_type",
        429: "too_many_requests",
        500: "internal_server_error",
        503: "service_unavailable",
    }
    return mapping.get(status_code, "error")


def flatten_validation_messages(messages: Any, prefix: str = "") -> list[dict[str, str]]:
    """Flatten marshmallow's nested ``messages`` into ``[{field, message}]``.

    :param messages: ``ValidationError.messages`` (dict, list or str).
    :param prefix: Dotted path of the enclosing field, used while recursing.
    :returns: One entry per message, in field order.
    :rtype: list[dict[str, str]]
    """
    errors: list[dict[str, str]] = []
    if isinstance(messages, dict):
        for key, value in messages.items():
            path = f"{prefix}.{key}" if prefix else str(key)
            errors.extend(flatten_validation_messages(value, path))
    elif isinstance(messages, list | tuple):
        for item in messages:
            errors.extend(flatten_validation_messages(item, prefix))
    else:
        errors.append({"field": prefix or "_schema", "message": str(messages)})
    return errors


def _envelope(
    *,
    status: int,
    code: str,
    message: str,
    errors: list[Any] | None = None,
) -> dict[str, Any]:
    """
    Build the failure envelope shared by all error handlers.

    :param status: HTTP status code (kept for logging symmetry).
    :param code: Stable machine-consumable error code.
    :param message: Human-readable error summary (safe for clients).
    :param errors: Optional structured details (validation errors).
    :returns: JSON-serializable dictionary.
    :rtype: dict
    """
    body: dict[str, Any] = {
        "success": False,
        "data": None,
        "message": message,
        "code": code,
        "request_id": ensure_request_id(),
    }
    if errors:
        body["errors"] = errors
    return body


def _error_response(body: dict[str, Any], status: int) -> tuple[Response, int]:
    return jsonify(body), status


class APIError(Exception):
    """
    Represent a JSON-serializable API error.

    Parameters
    ----------
    message : str
        Human-readable description presented to clients.
    status_code : int, optional
        HTTP status code to return. Defaults to ``400``.
    code : str, optional
        Machine-readable identifier, typically snake_case. Defaults to
        ``"bad_request"``.
    errors : list[Any] | None, optional
        Optional structured payload included in the response body.
    """

    def __init__(
        self,
        message: str,
        status_code: int = 400,
        code: str = "bad_request",
        errors: list[Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = int(status_code)
        self.code = code
        self.errors = errors or []

    def to_body(self) -> dict[str, Any]:
        """Serialize error metadata into the failure envelope."""
        return _envelope(
            status=self.status_code,
            code=self.code,
            message=self.message,
            errors=self.errors or None,
        )


class Unauthorized(APIError):
    """401 when authentication fails."""

    def __init__(self, message: str = "Authorization token is missing or invalid") -> None:
        super().__init__(message, status_code=HTTPStatus.UNAUTHORIZED, code="unauthorized")


def init_app(app: Flask) -> None:
    """
    Attach JSON error handlers to the Flask app.

    Notes
    -----
    - Guarantees envelope responses for all handled errors.
    - Ensures a correlation ``request_id`` is present on every error.
    - Emits 5xx with ``exc_info`` for traceability; 4xx as warnings.
    """

    @app.errorhandler(APIError)
    def handle_api_error(err: APIError):
        body = err.to_body()
        level = log.error if err.status_code >= 500 else log.warning
        level(
            "APIError: code=%s status=%s msg=%s request_id=%s",
            err.code,
            err.status_code,
            err.message,
            body.get("request_id"),
        )
        return _error_response(body, err.status_code)

    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        status = int(err.code or HTTPStatus.INTERNAL_SERVER_ERROR)
        error_code = _http_status_to_code(status)
        message = (err.description or error_code.replace("_", " ").capitalize()).strip()
        if status == HTTPStatus.NOT_FOUND:
            message = f"Route '{request.path}' not found"
        elif status == HTTPStatus.TOO_MANY_REQUESTS:
            message = "Too many requests"
        body = _envelope(status=status, code=error_code, message=message)
        level = log.error if status >= 500 else log.warning
        level(
            "HTTPException: code=%s status=%s detail=%s request_id=%s",
            error_code,
            status,
            message,
            body.get("request_id"),
        )
        response, _ = _error_response(body, status)
        # Preserve protocol headers such as Retry-After / Allow
        for header, value in err.get_headers():
            if header.lower() != "content-type":
                response.headers[header] = value
        return response, status

    @app.errorhandler(ValidationError)
    def handle_validation_error(err: ValidationError):
        body = _envelope(
            status=HTTPStatus.BAD_REQUEST,
            code="validation_error",
            message="Validation failed",
            errors=flatten_validation_messages(err.messages),
        )
        log.warning("ValidationError: request_id=%s", body.get("request_id"))
        return _error_response(body, HTTPStatus.BAD_REQUEST)

    @app.errorhandler(OperationalError)
    def handle_operational_error(err: OperationalError):
        # E.g., transient DB connectivity, deadlocks, etc.
        body = _envelope(
            status=HTTPStatus.SERVICE_UNAVAILABLE,
            code="service_unavailable",
            message="Service temporarily unavailable",
        )
        log.error("OperationalError: request_id=%s", body.get("request_id"), exc_info=True)
        return _error_response(body, HTTPStatus.SERVICE_UNAVAILABLE)

    @app.errorhandler(Exception)
    def handle_unexpected_error(err: Exception):
        # Unexpected server-side error; never leak internal details
        body = _envelope(
            status=HTTPStatus.INTERNAL_SERVER_ERROR,
            code="internal_server_error",
            message="An unexpected error occurred",
        )
        log.error("Unhandled exception: request_id=%s", body.get("request_id"), exc_info=True)
        return _error_response(body, HTTPStatus.INTERNAL_SERVER_ERROR)
