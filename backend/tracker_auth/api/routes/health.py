"""Health check endpoints."""

from __future__ import annotations

from datetime import UTC, datetime
from http import HTTPStatus

from flask import Blueprint, current_app
from sqlalchemy import func, select, text
from sqlalchemy.exc import SQLAlchemyError

from tracker_auth.api.deps import json_response, timing
from tracker_auth.core.extensions import db
from tracker_auth.models import User

bp = Blueprint("health", __name__)


@bp.get("")
@timing
def healthcheck():
    """Return process liveness, environment and version."""

    payload = {
        "status": "Healthy",
        "environment": current_app.config.get("ENVIRONMENT", "development"),
        "version": current_app.config.get("APP_VERSION", "dev"),
        "timestamp": datetime.now(UTC).isoformat(),
    }
    return json_response(payload)


@bp.get("/database")
@timing
def database_health():
    """Check connectivity with ``SELECT 1`` and report the user count."""

    try:
        db.session.execute(text("SELECT 1"))
        user_count = db.session.execute(select(func.count(User.id))).scalar_one()
    except SQLAlchemyError:
        current_app.logger.exception("healthcheck.db_error")
        db.session.rollback()
        payload = {"status": "Unhealthy", "database": "Disconnected"}
        return json_response(payload, status=HTTPStatus.SERVICE_UNAVAILABLE)
    return json_response({"status": "Healthy", "database": "Connected", "userCount": user_count})
