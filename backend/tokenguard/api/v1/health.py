"""Health check endpoint."""

from __future__ import annotations

from flask import Blueprint, current_app
from sqlalchemy import text

from tokenguard.api.deps import json_response, timing
from tokenguard.core.extensions import db, get_redis

bp = Blueprint("health", __name__)


def _store_status(backend: str) -> str:
    try:
        if backend == "sqlalchemy":
            db.session.execute(text("SELECT 1"))
        elif backend == "redis":
            get_redis().ping()
    except Exception:  # pragma: no cover - depends on store backend
        current_app.logger.exception("healthcheck.store_error")
        return "fail"
    return "ok"


@bp.get("/health")
@timing
def healthcheck():
    """Return application and token store health information."""

    backend = str(current_app.config.get("TOKEN_STORE_BACKEND", "memory"))
    version = current_app.config.get("APP_VERSION", "dev")
    payload = {
        "status": "ok",
        "store": {"backend": backend, "status": _store_status(backend)},
        "version": version,
    }
    return json_response(payload)
