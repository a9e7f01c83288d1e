from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from ats.access import RequestContext, is_authorized
from ats.actions.helpers import (
    append_audit,
    append_status_history,
    job_resource,
    move_application,
    require_application,
    require_application_access,
    require_job,
    require_job_access,
    users_by_id,
)
from ats.actions.profile import application_defaults
from ats.filters import apply_filters
from ats.models import Application, ApplicationStatusHistory, Job, Organization, User, new_id
from ats.scoring import clamp_mark, resume_match_score
from ats.status import ApplicationStatus, available_actions
from ats.utils.datetime import iso_utc_now
from ats.utils.errors import ApiError, forbidden
from ats.utils.jsonfields import dump_json, load_json_dict, load_json_list
from ats.utils.validators import opt_number, opt_str, require_str

log = logging.getLogger(__name__)

# Statuses that are entered through their own workflow (with a test
# assignment or an interview row), not through a bare status update.
_WORKFLOW_STATUSES = {
    ApplicationStatus.TEST_SCHEDULED: "TEST_ASSIGN",
    ApplicationStatus.INTERVIEW_SCHEDULED: "INTERVIEW_SCHEDULE",
}


def applicant_name(app_row: Application, user: User | None) -> str:
    data = load_json_dict(app_row.applicationDataJson)
    name = str(data.get("name") or "").strip()
    if name:
        return name
    return user.fullName if user else ""


def application_row(app_row: Application, job: Job, user: User | None) -> dict[str, Any]:
    data = load_json_dict(app_row.applicationDataJson)
    return {
        "id": app_row.applicationId,
        "jobId": app_row.jobId,
        "jobTitle": job.title,
        "department": job.department,
        "applicantId": app_row.applicantId,
        "name": applicant_name(app_row, user),
        "email": str(data.get("email") or (user.email if user else "")),
        "phone": str(data.get("phone") or ""),
        "status": app_row.status,
        "resumeScore": app_row.resumeScore,
        "appliedAt": app_row.appliedAt,
        "updatedAt": app_row.updatedAt,
    }


def application_submit(data, auth: RequestContext | None, db, cfg):
    job = require_job(db, require_str(data, "jobId"))
    if job.status != "Active":
        raise ApiError("VALIDATION_FAILED", "This job is not accepting applications", status=400)

    existing = db.execute(
        select(Application.applicationId).where(Application.jobId == job.jobId, Application.applicantId == auth.userId)
    ).first()
    if existing:
        raise ApiError("CONFLICT", "You have already applied for this job", status=409)

    app_data = data.get("applicationData") or {}
    if not isinstance(app_data, dict):
        raise ApiError("BAD_REQUEST", "applicationData must be an object", status=400)
    app_data.setdefault("name", auth.name)
    app_data.setdefault("email", auth.email)
    for key, value in application_defaults(db, auth.userId).items():
        app_data.setdefault(key, value)

    supplied = data.get("resumeScore")
    if supplied is None or str(supplied).strip() == "":
        score = resume_match_score(load_json_list(job.requiredSkillsJson), app_data)
    else:
        score = clamp_mark(supplied, 100)

    now = iso_utc_now()
    app_row = Application(
        applicationId=new_id("APP"),
        jobId=job.jobId,
        applicantId=auth.userId,
        status=ApplicationStatus.SUBMITTED.value,
        resumeScore=score,
        coverLetter=opt_str(data, "coverLetter"),
        applicationDataJson=dump_json(app_data, "{}"),
        appliedAt=now,
        updatedAt=now,
    )
    db.add(app_row)
    try:
        db.flush()
    except IntegrityError as e:
        raise ApiError("CONFLICT", "You have already applied for this job", status=409) from e

    append_status_history(
        db,
        applicationId=app_row.applicationId,
        oldStatus="",
        newStatus=app_row.status,
        performedBy=auth.userId,
        notes="Application submitted",
    )
    append_audit(
        db,
        entityType="APPLICATION",
        entityId=app_row.applicationId,
        action="APPLICATION_SUBMIT",
        stageTag="SUBMITTED",
        actor=auth,
        toState=app_row.status,
        meta={"jobId": job.jobId, "resumeScore": score},
    )
    log.info("application submitted app=%s job=%s", app_row.applicationId, job.jobId)
    return {
        "applicationId": app_row.applicationId,
        "status": app_row.status,
        "resumeScore": score,
        "appliedAt": app_row.appliedAt,
    }


def application_check(data, auth: RequestContext | None, db, cfg):
    job_id = require_str(data, "jobId")
    row = db.execute(
        select(Application).where(Application.jobId == job_id, Application.applicantId == auth.userId)
    ).scalar_one_or_none()
    if not row:
        return {"applied": False, "applicationId": None, "status": None}
    return {"applied": True, "applicationId": row.applicationId, "status": row.status}


def my_applications(data, auth: RequestContext | None, db, cfg):
    rows = db.execute(
        select(Application, Job, Organization.name)
        .join(Job, Job.jobId == Application.jobId)
        .join(Organization, Organization.orgId == Job.orgId, isouter=True)
        .where(Application.applicantId == auth.userId)
        .order_by(Application.appliedAt.desc())
    ).all()
    items = []
    for app_row, job, org_name in rows:
        items.append(
            {
                "id": app_row.applicationId,
                "jobId": job.jobId,
                "jobTitle": job.title,
                "organizationName": org_name or "",
                "location": job.location,
                "status": app_row.status,
                "resumeScore": app_row.resumeScore,
                "appliedAt": app_row.appliedAt,
                "updatedAt": app_row.updatedAt,
            }
        )
    return {"items": items}


def _status_counts(rows: list[dict[str, Any]]) -> dict[str, int]:
    counts = {s.value: 0 for s in ApplicationStatus}
    for r in rows:
        counts[r["status"]] = counts.get(r["status"], 0) + 1
    counts["total"] = len(rows)
    return counts


def job_applications_list(data, auth: RequestContext | None, db, cfg):
    data = data or {}
    job_id = str(data.get("jobId") or "").strip()
    if job_id:
        jobs = [require_job_access(db, auth, job_id)]
    else:
        all_jobs = db.execute(select(Job).where(Job.orgId == auth.orgId)).scalars().all()
        jobs = [j for j in all_jobs if is_authorized(auth, job_resource(j))]

    jobs_by_id = {j.jobId: j for j in jobs}
    if not jobs_by_id:
        return {"items": [], "counts": _status_counts([]), "total": 0}

    apps = db.execute(select(Application).where(Application.jobId.in_(list(jobs_by_id)))).scalars().all()
    users = users_by_id(db, list({a.applicantId for a in apps}))
    rows = [application_row(a, jobs_by_id[a.jobId], users.get(a.applicantId)) for a in apps]

    filtered = apply_filters(
        rows,
        status_filter=str(data.get("status") or "all"),
        search_text=str(data.get("search") or ""),
        score_min=opt_number(data, "scoreMin"),
        score_max=opt_number(data, "scoreMax"),
        sort_key=str(data.get("sortBy") or "applied_at"),
        sort_order=str(data.get("sortOrder") or "desc"),
    )
    return {"items": filtered, "counts": _status_counts(rows), "total": len(filtered)}


def _history_items(db, application_id: str) -> list[dict[str, Any]]:
    rows = db.execute(
        select(ApplicationStatusHistory)
        .where(ApplicationStatusHistory.applicationId == application_id)
        .order_by(ApplicationStatusHistory.performedAt.asc(), ApplicationStatusHistory.id.asc())
    ).scalars().all()
    performers = users_by_id(db, list({r.performedBy for r in rows if r.performedBy}))
    items = []
    for r in rows:
        who = performers.get(r.performedBy)
        items.append(
            {
                "oldStatus": r.oldStatus or None,
                "newStatus": r.newStatus,
                "notes": r.notes,
                "performedBy": r.performedBy,
                "performedByName": who.fullName if who else "",
                "performedAt": r.performedAt,
            }
        )
    return items


def application_get(data, auth: RequestContext | None, db, cfg):
    app_row, job = require_application_access(db, auth, require_str(data, "applicationId"))
    user = db.get(User, app_row.applicantId)
    out = application_row(app_row, job, user)
    out["coverLetter"] = app_row.coverLetter
    out["applicationData"] = load_json_dict(app_row.applicationDataJson)
    out["job"] = {
        "id": job.jobId,
        "title": job.title,
        "department": job.department,
        "requiredSkills": load_json_list(job.requiredSkillsJson),
        "experienceLevel": job.experienceLevel,
    }
    out["availableActions"] = available_actions(app_row.status, candidate_name=out["name"], job_title=job.title)
    out["history"] = _history_items(db, app_row.applicationId)
    return out


def application_status_update(data, auth: RequestContext | None, db, cfg):
    app_row, job = require_application_access(db, auth, require_str(data, "applicationId"))
    target = ApplicationStatus.parse(require_str(data, "status"))
    if target in _WORKFLOW_STATUSES:
        raise ApiError(
            "VALIDATION_FAILED",
            f"Use {_WORKFLOW_STATUSES[target]} to move an application to {target.value}",
            status=400,
        )

    previous = app_row.status
    user = db.get(User, app_row.applicantId)
    note = move_application(
        db,
        app_row,
        target,
        actor=auth,
        note=opt_str(data, "notes"),
        candidate_name=applicant_name(app_row, user),
        job_title=job.title,
    )
    return {
        "applicationId": app_row.applicationId,
        "previousStatus": previous,
        "status": app_row.status,
        "notes": note,
        "availableActions": available_actions(app_row.status),
    }


def application_status_history(data, auth: RequestContext | None, db, cfg):
    application_id = require_str(data, "applicationId")
    if auth.is_recruiter:
        app_row, _job = require_application_access(db, auth, application_id)
    else:
        app_row = require_application(db, application_id)
        if app_row.applicantId != auth.userId:
            raise forbidden("You can only view your own applications")
    return {"applicationId": app_row.applicationId, "status": app_row.status, "items": _history_items(db, app_row.applicationId)}


def job_application_stats(data, auth: RequestContext | None, db, cfg):
    job = require_job_access(db, auth, require_str(data, "jobId"))
    rows = db.execute(
        select(Application.status, func.count()).where(Application.jobId == job.jobId).group_by(Application.status)
    ).all()
    counts = {s.value: 0 for s in ApplicationStatus}
    for status, n in rows:
        counts[str(status)] = int(n)
    counts["total"] = sum(int(n) for _s, n in rows)
    return {"jobId": job.jobId, "counts": counts}
