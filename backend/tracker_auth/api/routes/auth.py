"""Authentication endpoints using the service layer."""

from __future__ import annotations

from http import HTTPStatus

from flask import Blueprint, current_app, request
from flask_jwt_extended import get_jwt

from tracker_auth.api.deps import (
    envelope,
    get_auth_service,
    json_response,
    require_auth,
    result_response,
    timing,
)
from tracker_auth.core.errors import Unauthorized
from tracker_auth.core.extensions import limiter
from tracker_auth.schemas import (
    LoginSchema,
    RefreshSchema,
    RegisterSchema,
    TokenPairSchema,
    UserSchema,
)
from tracker_auth.services.auth.dto import LoginIn, RefreshIn, RegisterIn
from tracker_auth.services.auth.service import user_id_from_claims

bp = Blueprint("auth", __name__)

register_schema = RegisterSchema()
login_schema = LoginSchema()
refresh_schema = RefreshSchema()
user_schema = UserSchema()
token_schema = TokenPairSchema()

LOGOUT_MESSAGE = "Logged out successfully"


def _login_rate_limit() -> str:
    return str(current_app.config.get("AUTH_LOGIN_RATE_LIMIT", "10 per minute"))


@bp.post("/register")
@timing
def register():
    """Register a new user and return the created representation."""

    data = register_schema.load(request.get_json(silent=True) or {})
    result = get_auth_service().register(RegisterIn(**data))
    return result_response(result, schema=user_schema, status=HTTPStatus.CREATED)


@bp.post("/login")
@limiter.limit(_login_rate_limit)
@timing
def login():
    """Authenticate credentials and issue an access/refresh token pair."""

    data = login_schema.load(request.get_json(silent=True) or {})
    result = get_auth_service().login(LoginIn(**data))
    return result_response(result, schema=token_schema)


@bp.post("/refresh")
@timing
def refresh():
    """Exchange a refresh token for a new pair; the presented token is consumed."""

    data = refresh_schema.load(request.get_json(silent=True) or {})
    result = get_auth_service().refresh(RefreshIn(**data))
    return result_response(result, schema=token_schema)


@bp.post("/logout")
@require_auth
@timing
def logout():
    """Revoke every refresh token of the authenticated user."""

    user_id = user_id_from_claims(get_jwt())
    if user_id is None:
        raise Unauthorized()
    result = get_auth_service().logout(user_id)
    if not result.success:
        return result_response(result)
    return json_response(envelope(True, message=LOGOUT_MESSAGE))


@bp.get("/me")
@require_auth
@timing
def me():
    """Return the authenticated user profile."""

    result = get_auth_service().get_current_user(get_jwt())
    if result.success and result.data is None:
        raise Unauthorized()
    return result_response(result, schema=user_schema)
