from __future__ import annotations

import re
import time
import uuid
from typing import Any

from flask import Flask, g, request

REQUEST_ID_HEADER = "X-Request-ID"

# Ids from proxies and clients end up in audit rows and log lines.
_CLIENT_ID_RE = re.compile(r"^[A-Za-z0-9._:-]{8,64}$")


def accepted_request_id(raw: Any) -> str:
    """The caller's id when it is safe to echo, otherwise a fresh one."""
    candidate = str(raw or "").strip()
    if _CLIENT_ID_RE.match(candidate):
        return candidate
    return uuid.uuid4().hex


def init_request_id(app: Flask) -> None:
    @app.before_request
    def _assign_request_id():
        g.request_id = accepted_request_id(request.headers.get(REQUEST_ID_HEADER))
        g.start_ts = time.monotonic()

    @app.after_request
    def _echo_request_id(resp):
        if getattr(g, "request_id", ""):
            resp.headers[REQUEST_ID_HEADER] = g.request_id
        return resp
