from __future__ import annotations

import json
from typing import Any


def dump_json(value: Any, fallback: str = "") -> str:
    try:
        return json.dumps(value)
    except (TypeError, ValueError):
        return fallback


def load_json(raw: Any, default: Any = None) -> Any:
    if raw is None:
        return default
    if isinstance(raw, (list, dict)):
        return raw
    s = str(raw or "").strip()
    if not s:
        return default
    try:
        return json.loads(s)
    except ValueError:
        return default


def load_json_list(raw: Any) -> list:
    v = load_json(raw, [])
    return v if isinstance(v, list) else []


def load_json_dict(raw: Any) -> dict:
    v = load_json(raw, {})
    return v if isinstance(v, dict) else {}


_REDACT_KEYS = {
    "password",
    "token",
    "access_token",
    "resumeText",
    "fileBase64",
    "phone",
}


def redact_for_audit(obj: Any) -> Any:
    if not obj or not isinstance(obj, (dict, list)):
        return obj
    try:
        copy = json.loads(json.dumps(obj))
    except (TypeError, ValueError):
        return "[UNSERIALIZABLE]"

    def _walk(x: Any) -> Any:
        if isinstance(x, dict):
            for k in list(x.keys()):
                if k in _REDACT_KEYS:
                    x[k] = "[REDACTED]"
                else:
                    x[k] = _walk(x[k])
            return x
        if isinstance(x, list):
            return [_walk(v) for v in x]
        return x

    copy = _walk(copy)
    if isinstance(copy, dict) and isinstance(copy.get("items"), list):
        copy["items"] = f"[OMITTED:{len(copy['items'])}]"
    return copy
