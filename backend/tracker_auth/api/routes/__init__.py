"""Blueprint registry for the HTTP API."""

from __future__ import annotations

from flask import Blueprint

# Import blueprints *only here* to keep imports localized and avoid cycles.
from .auth import bp as auth_bp
from .health import bp as health_bp

# Each tuple: (blueprint, url_prefix_relative_to_api_base)
REGISTRY: list[tuple[Blueprint, str]] = [
    (health_bp, "/health"),  # -> /api/health
    (auth_bp, "/auth"),  # -> /api/auth
]
