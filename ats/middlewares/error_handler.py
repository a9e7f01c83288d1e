from __future__ import annotations

import logging
from typing import Any

from flask import Flask, g, jsonify
from werkzeug.exceptions import HTTPException

from ats.utils.errors import ApiError

_HTTP_CODES = {400: "BAD_REQUEST", 401: "AUTH_INVALID", 403: "FORBIDDEN", 404: "NOT_FOUND", 405: "BAD_REQUEST", 409: "CONFLICT", 429: "RATE_LIMITED"}


def error_payload(code: str, message: str, details: Any = None) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "success": False,
        "message": message,
        "error": {"code": code, "message": message, "details": details},
    }
    if getattr(g, "request_id", None):
        payload["request_id"] = g.request_id
    return payload


def error_response(err: ApiError):
    return jsonify(error_payload(err.code, err.message, err.details)), err.status


def init_error_handlers(app: Flask) -> None:
    @app.errorhandler(ApiError)
    def _api_error(err: ApiError):
        return error_response(err)

    @app.errorhandler(HTTPException)
    def _http_error(err: HTTPException):
        status = int(err.code or 500)
        code = _HTTP_CODES.get(status, f"HTTP_{status}")
        if status == 404:
            message = "Unknown endpoint. Use GET /health, POST /api for actions, or the /api/v1 routes."
        else:
            message = str(err.description or "HTTP error")
        return jsonify(error_payload(code, message)), status

    @app.errorhandler(Exception)
    def _unhandled(err: Exception):
        logging.getLogger("app").exception("Unhandled exception request_id=%s", getattr(g, "request_id", ""))
        return jsonify(error_payload("INTERNAL", "Unexpected error")), 500
