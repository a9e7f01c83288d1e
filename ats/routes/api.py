from __future__ import annotations

import logging
import time
from typing import Any, Optional

from flask import Blueprint, current_app, g, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from ats import db as dbmod
from ats.access import RequestContext
from ats.actions import action_message, dispatch
from ats.actions.helpers import append_audit
from ats.middlewares.error_handler import error_response
from ats.middlewares.rate_limit import check_action_limit
from ats.rbac import assert_permission, is_public_action, role_or_public
from ats.utils.auth import bearer_token, load_request_context, optional_request_context
from ats.utils.errors import ApiError
from ats.utils.jsonfields import redact_for_audit
from ats.utils.validators import require_json

api_bp = Blueprint("api", __name__)

log = logging.getLogger("api")


def _write_error_audit(action: str, auth: Optional[RequestContext], data: Any, err: ApiError) -> None:
    db2 = dbmod.SessionLocal()
    try:
        append_audit(
            db2,
            entityType="API",
            entityId=auth.userId if auth else "PUBLIC",
            action=action or "UNKNOWN",
            stageTag="API_ERROR",
            actor=auth,
            remark=f"{err.code}: {err.message}",
            meta={"data": redact_for_audit(data or {}), "error": {"code": err.code, "message": err.message}},
        )
        db2.commit()
    except SQLAlchemyError:
        db2.rollback()
        log.warning("error audit write failed action=%s", action, exc_info=True)
    finally:
        db2.close()


def run_action(action: str, data: Any):
    """Run one action in its own session and wrap the result in the envelope.

    Used by POST /api and every REST route, so both surfaces share
    authentication, permissions, auditing and logging.
    """
    cfg = current_app.config["CFG"]
    action_u = str(action or "").upper().strip()
    data = data if isinstance(data, dict) else {}
    token = bearer_token()

    db = dbmod.SessionLocal()
    auth: Optional[RequestContext] = None
    try:
        if is_public_action(action_u):
            auth = optional_request_context(db, cfg, token)
        else:
            auth = load_request_context(db, cfg, token)

        assert_permission(role_or_public(auth), action_u)
        out = dispatch(action_u, data, auth, db, cfg)

        append_audit(
            db,
            entityType="API",
            entityId=auth.userId if auth else "PUBLIC",
            action=action_u,
            stageTag="API_CALL",
            actor=auth,
            meta={"data": redact_for_audit(data)},
        )
        db.commit()

        latency_ms = int((time.monotonic() - g.start_ts) * 1000)
        log.info(
            "request_id=%s action=%s user=%s role=%s latency_ms=%s",
            g.request_id,
            action_u,
            auth.userId if auth else "PUBLIC",
            auth.role if auth else "PUBLIC",
            latency_ms,
        )
        return jsonify({"success": True, "message": action_message(action_u), "data": out})
    except ApiError as e:
        db.rollback()
        _write_error_audit(action_u, auth, data, e)
        return error_response(e)
    except Exception:
        db.rollback()
        log.exception("request_id=%s action=%s", g.request_id, action_u)
        err = ApiError("INTERNAL", "Unexpected error", status=500)
        _write_error_audit(action_u, auth, data, err)
        return error_response(err)
    finally:
        db.close()


@api_bp.post("/api")
def api_route():
    cfg = current_app.config["CFG"]
    body = require_json()

    action = str(body.get("action") or "").upper().strip()
    if not action:
        raise ApiError("BAD_REQUEST", "Missing action", status=400)
    check_action_limit(cfg, action)

    data = body.get("data") or {}
    if not isinstance(data, dict):
        raise ApiError("BAD_REQUEST", "data must be an object", status=400)
    return run_action(action, data)


def body_with(**fields: Any) -> dict[str, Any]:
    """JSON body (empty for GET) with path/query values layered on top."""
    body = request.get_json(silent=True) if request.method != "GET" else None
    data = dict(body) if isinstance(body, dict) else {}
    data.update({k: v for k, v in fields.items() if v is not None})
    return data
