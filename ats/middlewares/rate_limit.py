from __future__ import annotations

from flask import Flask, current_app, request

from ats.utils.rate_limiter import InMemoryRateLimiter

limiter = InMemoryRateLimiter()

LOGIN_PATHS = {"/api/v1/auth/login", "/api/v1/auth/signup", "/api/v1/auth/organizations"}
LOGIN_ACTIONS = {"LOGIN", "SIGNUP", "ORG_CREATE"}


def client_ip() -> str:
    cfg = current_app.config["CFG"]
    if cfg.TRUST_PROXY_HEADERS:
        forwarded = str(request.headers.get("X-Forwarded-For") or "")
        if forwarded:
            return forwarded.split(",", 1)[0].strip()
    return request.remote_addr or ""


def check_action_limit(cfg, action: str) -> None:
    """Buckets for POST /api, where the path does not name the action."""
    ip = client_ip()
    if action in LOGIN_ACTIONS:
        limiter.check(f"{ip}:LOGIN", cfg.RATE_LIMIT_LOGIN)
        return
    limiter.check(f"{ip}:GLOBAL", cfg.RATE_LIMIT_GLOBAL)
    limiter.check(f"{ip}:API:{action}", cfg.RATE_LIMIT_DEFAULT)


def init_rate_limiting(app: Flask) -> None:
    cfg = app.config["CFG"]

    @app.before_request
    def _rate_limit():
        if request.method == "OPTIONS":
            return None
        path = request.path or ""
        if not path.startswith("/api/v1/"):
            return None

        ip = client_ip()
        if path in LOGIN_PATHS:
            limiter.check(f"{ip}:LOGIN", cfg.RATE_LIMIT_LOGIN)
            return None
        limiter.check(f"{ip}:GLOBAL", cfg.RATE_LIMIT_GLOBAL)
        limiter.check(f"{ip}:PATH:{path}", cfg.RATE_LIMIT_DEFAULT)
        return None
