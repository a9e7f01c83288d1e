from __future__ import annotations

import functools
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional, TypeVar

import bcrypt
import jwt
from flask import current_app, g, request

from ats import db as dbmod
from ats.access import RequestContext, normalize_role
from ats.models import User
from ats.utils.errors import ApiError

_T = TypeVar("_T", bound=Callable[..., Any])


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_access_token(cfg, user: User) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user.userId),
        "org_id": str(user.orgId or ""),
        "email": str(user.email or ""),
        "role": str(user.role or ""),
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=cfg.JWT_EXP_MINUTES)).timestamp()),
    }
    return jwt.encode(payload, cfg.JWT_SECRET, algorithm="HS256")


def decode_token(cfg, token: str) -> dict[str, Any]:
    try:
        return jwt.decode(token, cfg.JWT_SECRET, algorithms=["HS256"])
    except jwt.ExpiredSignatureError as e:
        raise ApiError("AUTH_INVALID", "Token expired", status=401) from e
    except jwt.InvalidTokenError as e:
        raise ApiError("AUTH_INVALID", "Invalid token", status=401) from e


def bearer_token() -> str:
    authz = str(request.headers.get("Authorization") or "").strip()
    if authz.lower().startswith("bearer "):
        return authz.split(" ", 1)[1].strip()
    return ""


def context_for_user(user: User) -> RequestContext:
    return RequestContext(
        valid=True,
        userId=str(user.userId),
        orgId=str(user.orgId or ""),
        role=normalize_role(user.role) or "",
        email=str(user.email or ""),
        name=user.fullName,
    )


def load_request_context(db, cfg, token: str) -> RequestContext:
    """Resolve a bearer token into the caller's identity.

    The user row is re-read so role changes and disabled accounts take
    effect before the token expires.
    """
    if not token:
        raise ApiError("AUTH_INVALID", "Missing bearer token", status=401)

    payload = decode_token(cfg, token)
    sub = str(payload.get("sub") or "").strip()
    if not sub:
        raise ApiError("AUTH_INVALID", "Invalid token payload", status=401)

    user = db.get(User, sub)
    if not user:
        raise ApiError("AUTH_INVALID", "User not found", status=401)
    if str(user.status or "ACTIVE").upper() != "ACTIVE":
        raise ApiError("FORBIDDEN", "User is disabled", status=403)
    return context_for_user(user)


def optional_request_context(db, cfg, token: str) -> Optional[RequestContext]:
    if not token:
        return None
    try:
        return load_request_context(db, cfg, token)
    except ApiError:
        return None


def require_roles(roles: list[str]) -> Callable[[_T], _T]:
    """Guard a plain route: resolve the caller and check the role.

    The resolved ``RequestContext`` is left on ``g.auth``.
    """
    allowed = {normalize_role(r) for r in (roles or []) if normalize_role(r)}

    def _decorator(fn: _T) -> _T:
        @functools.wraps(fn)
        def _wrapped(*args, **kwargs):
            cfg = current_app.config["CFG"]
            db = dbmod.SessionLocal()
            try:
                ctx = load_request_context(db, cfg, bearer_token())
            finally:
                db.close()
            if allowed and ctx.role not in allowed:
                raise ApiError("FORBIDDEN", "Insufficient role", status=403, details={"required": sorted(allowed)})
            g.auth = ctx
            return fn(*args, **kwargs)

        return _wrapped  # type: ignore[return-value]

    return _decorator
