from __future__ import annotations

from io import BytesIO

from flask import Blueprint, current_app, g, jsonify, request, send_file

from ats import db as dbmod
from ats.access import RECRUITER_ROLES
from ats.reports.excel import build_applications_workbook
from ats.reports.queries import applications_for_export, funnel_report, visible_job_ids
from ats.utils.auth import require_roles
from ats.utils.errors import not_found

reports_bp = Blueprint("reports", __name__)


def _job_scope(db) -> tuple[str, list[str]]:
    job_id = str(request.args.get("job_id") or "").strip()
    job_ids = visible_job_ids(db, g.auth, job_id or None)
    if job_id and not job_ids:
        raise not_found("Job")
    return job_id or "organization", job_ids


@reports_bp.get("/funnel")
@require_roles(list(RECRUITER_ROLES))
def funnel():
    db = dbmod.SessionLocal()
    try:
        scope, job_ids = _job_scope(db)
        data = funnel_report(db, job_ids)
    finally:
        db.close()
    return jsonify({"success": True, "message": "OK", "data": {"scope": scope, "jobCount": len(job_ids), **data}})


@reports_bp.get("/applications.xlsx")
@require_roles(list(RECRUITER_ROLES))
def applications_xlsx():
    db = dbmod.SessionLocal()
    try:
        scope, job_ids = _job_scope(db)
        funnel_data = funnel_report(db, job_ids)
        rows = applications_for_export(db, job_ids)
    finally:
        db.close()

    xlsx_bytes = build_applications_workbook(
        scope=scope,
        timezone_display=current_app.config["CFG"].TIMEZONE_DISPLAY,
        funnel=funnel_data,
        applications=rows,
    )
    return send_file(
        BytesIO(xlsx_bytes),
        as_attachment=True,
        download_name=f"applications_{scope}.xlsx",
        mimetype="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    )
