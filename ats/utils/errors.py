from __future__ import annotations

from dataclasses import dataclass
from typing import Any


ERROR_STATUS = {
    "BAD_REQUEST": 400,
    "VALIDATION_FAILED": 400,
    "AUTH_INVALID": 401,
    "FORBIDDEN": 403,
    "NOT_FOUND": 404,
    "CONFLICT": 409,
    "PARTIAL_FAILURE": 207,
    "RATE_LIMITED": 429,
    "INTERNAL": 500,
    "UPSTREAM_FAILURE": 502,
}


@dataclass(frozen=True)
class ApiError(Exception):
    code: str
    message: str
    status: int = 400
    details: Any | None = None

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


def api_error(code: str, message: str, details: Any | None = None) -> ApiError:
    c = str(code or "").upper().strip() or "INTERNAL"
    return ApiError(c, str(message or ""), status=ERROR_STATUS.get(c, 500), details=details)


def not_found(what: str) -> ApiError:
    return api_error("NOT_FOUND", f"{what} not found")


def forbidden(message: str = "Unauthorized") -> ApiError:
    return api_error("FORBIDDEN", message)


def validation_failed(message: str, details: Any | None = None) -> ApiError:
    return api_error("VALIDATION_FAILED", message, details=details)
