from __future__ import annotations

from flask import Flask, request


def init_security_headers(app: Flask) -> None:
    cfg = app.config["CFG"]

    @app.after_request
    def _headers(resp):
        resp.headers.setdefault("X-Content-Type-Options", "nosniff")
        resp.headers.setdefault("X-Frame-Options", "DENY")
        resp.headers.setdefault("Referrer-Policy", "no-referrer")
        if request.path.startswith("/api"):
            resp.headers.setdefault("Cache-Control", "no-store")

        forwarded_https = cfg.TRUST_PROXY_HEADERS and str(request.headers.get("X-Forwarded-Proto") or "").lower() == "https"
        if cfg.IS_PRODUCTION and (request.is_secure or forwarded_https):
            resp.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
        return resp
