"""
Problem+JSON (RFC 7807) rendering for token failures and everything else.

Service errors never reach clients directly: :func:`translate_service_error`
turns them into :class:`APIError` instances, and every handler below emits
``application/problem+json`` carrying the request id.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any

from flask import Flask, Response, jsonify, request
from sqlalchemy.exc import OperationalError
from werkzeug.exceptions import HTTPException

from tokenguard.core.logger import ensure_request_id
from tokenguard.services._shared.errors import (
    EncodingError,
    ServiceError,
    StoreUnavailable,
    TokenError,
)

log = logging.getLogger(__name__)

# Stable machine codes for the statuses this API emits.
STATUS_CODES: dict[int, str] = {
    400: "bad_request",
    401: "unauthorized",
    404: "not_found",
    405: "method_not_allowed",
    500: "internal_server_error",
    503: "service_unavailable",
}


def _code_for(status: int) -> str:
    return STATUS_CODES.get(status, "error")


def _as_problem(
    *,
    status: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Build a problem document.

    :param status: HTTP status code.
    :param code: Stable machine-readable code.
    :param message: Client-safe summary; never includes token contents.
    :param details: Optional structured details.
    """
    problem: dict[str, Any] = {
        "type": "about:blank",
        "title": HTTPStatus(status).phrase,
        "status": status,
        "detail": message,
        "instance": request.path if request else None,
        "code": code,
        "request_id": ensure_request_id(),
    }
    if details:
        problem["details"] = details
    return problem


def _problem_response(problem: dict[str, Any], status: int) -> tuple[Response, int]:
    resp = jsonify(problem)
    resp.mimetype = "application/problem+json"
    if status == HTTPStatus.UNAUTHORIZED:
        # Challenge for clients that speak the bearer scheme.
        resp.headers["WWW-Authenticate"] = "Bearer"
    return resp, status


def _log_problem(kind: str, problem: dict[str, Any], *, exc_info: bool = False) -> None:
    level = log.error if problem["status"] >= 500 else log.warning
    level(
        "%s: code=%s status=%s detail=%s request_id=%s",
        kind,
        problem["code"],
        problem["status"],
        problem["detail"],
        problem["request_id"],
        exc_info=exc_info,
    )


class APIError(Exception):
    """
    Error rendered as a problem document.

    :param message: Client-facing description.
    :param status_code: HTTP status (``400`` by default).
    :param code: Machine-readable code; derived from the status when omitted.
    :param details: Optional structured payload.
    """

    def __init__(
        self,
        message: str,
        status_code: int = 400,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = int(status_code)
        self.code = code or _code_for(self.status_code)
        self.details = details or {}

    def to_problem(self) -> dict[str, Any]:
        return _as_problem(
            status=self.status_code,
            code=self.code,
            message=self.message,
            details=self.details or None,
        )


class Unauthorized(APIError):
    """401: the presented credentials do not authorize the request."""

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message, status_code=HTTPStatus.UNAUTHORIZED)


class ServiceUnavailable(APIError):
    """503: a token store timed out or is unreachable; clients may retry."""

    def __init__(self, message: str = "Service temporarily unavailable") -> None:
        super().__init__(message, status_code=HTTPStatus.SERVICE_UNAVAILABLE)


def translate_service_error(exc: ServiceError) -> APIError:
    """
    Map a service-layer error to its HTTP counterpart.

    ``StoreUnavailable`` is never an authorization decision, so it maps to 503
    rather than 401. ``EncodingError`` is a server defect.
    """
    if isinstance(exc, StoreUnavailable):
        return ServiceUnavailable(str(exc))
    if isinstance(exc, EncodingError):
        return APIError(str(exc), status_code=HTTPStatus.INTERNAL_SERVER_ERROR)
    if isinstance(exc, TokenError):
        return Unauthorized(str(exc))
    return APIError(str(exc))


def init_app(app: Flask) -> None:
    """Register the problem+json handlers on ``app``."""

    @app.errorhandler(APIError)
    def handle_api_error(err: APIError):
        problem = err.to_problem()
        _log_problem("APIError", problem)
        return _problem_response(problem, err.status_code)

    @app.errorhandler(ServiceError)
    def handle_service_error(err: ServiceError):
        return handle_api_error(translate_service_error(err))

    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        status = int(err.code or HTTPStatus.INTERNAL_SERVER_ERROR)
        code = _code_for(status)
        if status == HTTPStatus.NOT_FOUND:
            message = f"Route '{request.path}' not found"
        else:
            message = (err.description or code.replace("_", " ").capitalize()).strip()
        problem = _as_problem(status=status, code=code, message=message)
        _log_problem("HTTPException", problem)
        return _problem_response(problem, status)

    @app.errorhandler(OperationalError)
    def handle_operational_error(err: OperationalError):
        # Database outage outside a store adapter (e.g. the health probe).
        problem = _as_problem(
            status=HTTPStatus.SERVICE_UNAVAILABLE,
            code="service_unavailable",
            message="Service temporarily unavailable",
        )
        _log_problem("OperationalError", problem, exc_info=True)
        return _problem_response(problem, HTTPStatus.SERVICE_UNAVAILABLE)

    @app.errorhandler(Exception)
    def handle_unexpected_error(err: Exception):
        problem = _as_problem(
            status=HTTPStatus.INTERNAL_SERVER_ERROR,
            code="internal_server_error",
            message="Unexpected error",
        )
        _log_problem("Unhandled exception", problem, exc_info=True)
        return _problem_response(problem, HTTPStatus.INTERNAL_SERVER_ERROR)
