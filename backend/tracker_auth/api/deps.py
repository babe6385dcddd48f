"""Shared API helpers for responses, authentication and service wiring."""

from __future__ import annotations

import functools
import time
from collections.abc import Callable
from http import HTTPStatus
from typing import Any, TypeVar

from flask import Response, current_app, jsonify, request
from flask_jwt_extended import verify_jwt_in_request
from marshmallow import Schema

from tracker_auth.core.errors import APIError
from tracker_auth.core.logger import ensure_request_id
from tracker_auth.infra.wiring import build_auth_service
from tracker_auth.services._shared.base import ServiceContext
from tracker_auth.services._shared.result import AuthResult
from tracker_auth.services.auth.service import AuthenticationService

F = TypeVar("F", bound=Callable[..., Any])

INFRASTRUCTURE_MESSAGE = "An unexpected error occurred"


def get_auth_service() -> AuthenticationService:
    """Return an authentication service bound to the current request."""

    return build_auth_service(
        current_app.config, ctx=ServiceContext(request_id=ensure_request_id())
    )


def require_auth(func: F) -> F:
    """Ensure the request carries a valid JWT access token."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        verify_jwt_in_request(optional=False)
        return func(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


def json_response(payload: Any, *, status: int = 200) -> Response:
    """Return a JSON response enforcing a consistent MIME type."""

    response = jsonify(payload)
    response.status_code = status
    return response


def envelope(data: Any = None, *, message: str | None = None) -> dict[str, Any]:
    """Wrap ``data`` in the success envelope shared with error responses."""

    return {
        "success": True,
        "data": data,
        "message": message,
        "request_id": ensure_request_id(),
    }


def result_response(
    result: AuthResult[Any],
    *,
    schema: Schema | None = None,
    status: int = HTTPStatus.OK,
    message: str | None = None,
) -> Response:
    """
    Translate a service :class:`AuthResult` into an HTTP response.

    :param result: Outcome returned by the service.
    :param schema: Optional schema used to dump ``result.data``.
    :param status: Status code for successful outcomes.
    :param message: Success message; defaults to ``result.message``.
    :raises APIError: 400 for domain failures; 500 with a generic message
        for infrastructure failures.
    """

    if not result.success:
        if result.is_infrastructure_failure:
            raise APIError(
                INFRASTRUCTURE_MESSAGE,
                status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
                code="internal_server_error",
            )
        raise APIError(result.message or "Request failed", errors=list(result.errors))
    data = schema.dump(result.data) if schema is not None else result.data
    return json_response(envelope(data, message=message or result.message), status=status)


def timing(func: F) -> F:
    """Decorator capturing handler execution time in milliseconds."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            request_endpoint = getattr(request, "endpoint", None)
            current_app.logger.debug(
                "request.elapsed",
                extra={"endpoint": request_endpoint, "elapsed_ms": round(elapsed_ms, 2)},
            )

    return wrapper  # type: ignore[return-value]
