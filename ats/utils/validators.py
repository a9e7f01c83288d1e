from __future__ import annotations

import math
import re
from typing import Any

from flask import request

from ats.utils.errors import ApiError

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def require_json() -> dict[str, Any]:
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise ApiError("BAD_REQUEST", "JSON body must be an object", status=400)
    return body


def validate_email(value: Any) -> str:
    email = str(value or "").strip().lower()
    if not email or not _EMAIL_RE.match(email):
        raise ApiError("BAD_REQUEST", "Invalid email", status=400)
    return email


def validate_password(value: Any, *, allow_short: bool) -> str:
    password = str(value or "")
    if not password:
        raise ApiError("BAD_REQUEST", "Password required", status=400)
    if not allow_short and len(password) < 8:
        raise ApiError("BAD_REQUEST", "Password must be at least 8 characters", status=400)
    return password


def require_str(data: dict, key: str, label: str | None = None) -> str:
    value = str((data or {}).get(key) or "").strip()
    if not value:
        raise ApiError("BAD_REQUEST", f"Missing {label or key}", status=400)
    return value


def opt_str(data: dict, key: str, default: str = "") -> str:
    value = (data or {}).get(key)
    if value is None:
        return default
    return str(value).strip()


def opt_number(data: dict, key: str, default: float | None = None) -> float | None:
    raw = (data or {}).get(key)
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return default
    try:
        value = float(raw)
    except (TypeError, ValueError) as e:
        raise ApiError("BAD_REQUEST", f"{key} must be a number", status=400) from e
    if not math.isfinite(value):
        raise ApiError("BAD_REQUEST", f"{key} must be a number", status=400)
    return value


def require_int(data: dict, key: str, *, minimum: int | None = None, maximum: int | None = None) -> int:
    raw = (data or {}).get(key)
    try:
        value = int(raw)
    except (TypeError, ValueError) as e:
        raise ApiError("BAD_REQUEST", f"{key} must be an integer", status=400) from e
    if minimum is not None and value < minimum:
        raise ApiError("BAD_REQUEST", f"{key} must be at least {minimum}", status=400)
    if maximum is not None and value > maximum:
        raise ApiError("BAD_REQUEST", f"{key} must be at most {maximum}", status=400)
    return value


def str_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        parts = value.split(",")
    elif isinstance(value, (list, tuple, set)):
        parts = list(value)
    else:
        raise ApiError("BAD_REQUEST", "Expected a list", status=400)
    out: list[str] = []
    for p in parts:
        s = str(p or "").strip()
        if s and s not in out:
            out.append(s)
    return out


def require_id_list(data: dict, key: str) -> list[str]:
    ids = str_list((data or {}).get(key))
    if not ids:
        raise ApiError("BAD_REQUEST", f"Missing {key}", status=400)
    return ids
