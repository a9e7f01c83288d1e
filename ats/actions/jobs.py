from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import func, select

from ats.access import (
    ROLE_HR,
    RecruiterAccessSet,
    RequestContext,
    is_authorized,
    locked_recruiter_ids,
    partition_recruiters,
)
from ats.actions.auth_actions import default_recruiter_selection, org_recruiters, recruiter_dict
from ats.actions.helpers import (
    append_audit,
    job_assigned_ids,
    job_resource,
    require_job,
    require_job_access,
    require_job_manage,
)
from ats.cache_layer import cache_get, cache_invalidate, cache_set, make_cache_key
from ats.models import Application, Job, Organization, new_id
from ats.utils.datetime import iso_utc_now
from ats.utils.errors import ApiError, not_found
from ats.utils.jsonfields import dump_json, load_json_list
from ats.utils.validators import opt_number, opt_str, require_str, str_list

log = logging.getLogger(__name__)

JOB_STATUSES = ("Active", "Draft", "Closed")
JOB_TYPES = ("Full-time", "Part-time", "Contract", "Internship", "Temporary")
WORK_MODES = ("On-site", "Remote", "Hybrid")

_PUBLIC_CACHE_NS = "PUBLIC_JOBS"

# camelCase payload key -> (column, kind)
_EDITABLE_FIELDS: dict[str, tuple[str, str]] = {
    "title": ("title", "str"),
    "department": ("department", "str"),
    "jobType": ("jobType", "str"),
    "workMode": ("workMode", "str"),
    "location": ("location", "str"),
    "minSalary": ("minSalary", "num"),
    "maxSalary": ("maxSalary", "num"),
    "currency": ("currency", "str"),
    "experienceLevel": ("experienceLevel", "str"),
    "requiredSkills": ("requiredSkillsJson", "list"),
    "qualifications": ("qualificationsJson", "list"),
    "responsibilities": ("responsibilitiesJson", "list"),
    "description": ("description", "str"),
}


def _normalize_status(value: Any, default: str | None = None) -> str:
    raw = str(value or "").strip()
    if not raw and default:
        return default
    for s in JOB_STATUSES:
        if s.lower() == raw.lower():
            return s
    raise ApiError("VALIDATION_FAILED", f"status must be one of {', '.join(JOB_STATUSES)}", status=400)


def _check_salary(job: Job) -> None:
    if job.minSalary is not None and job.maxSalary is not None and job.minSalary > job.maxSalary:
        raise ApiError("VALIDATION_FAILED", "minSalary cannot exceed maxSalary", status=400)


def _apply_fields(job: Job, data: dict) -> list[str]:
    changed: list[str] = []
    for key, (column, kind) in _EDITABLE_FIELDS.items():
        if key not in data:
            continue
        if kind == "num":
            value: Any = opt_number(data, key)
        elif kind == "list":
            value = dump_json(str_list(data.get(key)), "[]")
        else:
            value = opt_str(data, key)
        if getattr(job, column) != value:
            setattr(job, column, value)
            changed.append(key)
    return changed


def job_to_dict(job: Job, *, org_name: str | None = None, application_count: int | None = None) -> dict[str, Any]:
    out = {
        "id": job.jobId,
        "orgId": job.orgId,
        "postedBy": job.postedBy,
        "title": job.title,
        "department": job.department,
        "jobType": job.jobType,
        "workMode": job.workMode,
        "location": job.location,
        "minSalary": job.minSalary,
        "maxSalary": job.maxSalary,
        "currency": job.currency,
        "experienceLevel": job.experienceLevel,
        "requiredSkills": load_json_list(job.requiredSkillsJson),
        "qualifications": load_json_list(job.qualificationsJson),
        "responsibilities": load_json_list(job.responsibilitiesJson),
        "description": job.description,
        "status": job.status,
        "assignedRecruiters": job_assigned_ids(job),
        "createdAt": job.createdAt,
        "updatedAt": job.updatedAt,
    }
    if org_name is not None:
        out["organizationName"] = org_name
    if application_count is not None:
        out["applicationCount"] = application_count
    return out


def public_job_dict(job: Job, org_name: str) -> dict[str, Any]:
    out = job_to_dict(job, org_name=org_name)
    out.pop("assignedRecruiters", None)
    out.pop("postedBy", None)
    return out


def _invalidate_public_jobs() -> None:
    cache_invalidate(_PUBLIC_CACHE_NS)


def _known_recruiter_ids(db, org_id: str) -> set[str]:
    return {u.userId for u in org_recruiters(db, org_id)}


def _check_recruiters_in_org(db, org_id: str, ids: list[str]) -> None:
    if not ids:
        return
    known = _known_recruiter_ids(db, org_id)
    unknown = [x for x in ids if x not in known]
    if unknown:
        raise ApiError(
            "VALIDATION_FAILED",
            "Some recruiters are not part of this organization",
            status=400,
            details={"unknown": unknown},
        )


def job_create(data, auth: RequestContext | None, db, cfg):
    title = require_str(data, "title")
    require_str(data, "jobType", "jobType")
    require_str(data, "experienceLevel", "experienceLevel")

    now = iso_utc_now()
    job = Job(
        jobId=new_id("JOB"),
        orgId=auth.orgId,
        postedBy=auth.userId,
        title=title,
        status=_normalize_status(data.get("status"), default="Draft"),
        createdAt=now,
        updatedAt=now,
    )
    _apply_fields(job, data)
    _check_salary(job)

    requested = str_list(data.get("assignedRecruiters"))
    _check_recruiters_in_org(db, auth.orgId, requested)
    defaults, locked = default_recruiter_selection(org_recruiters(db, auth.orgId), auth)
    access = RecruiterAccessSet(assigned=defaults + requested, locked=set(locked) | {auth.userId})
    job.assignedRecruitersJson = dump_json(access.ids(), "[]")

    db.add(job)
    append_audit(
        db,
        entityType="JOB",
        entityId=job.jobId,
        action="JOB_CREATE",
        stageTag="JOB",
        actor=auth,
        toState=job.status,
        meta={"assignedRecruiters": access.ids()},
    )
    _invalidate_public_jobs()
    log.info("job created job=%s org=%s by=%s", job.jobId, job.orgId, auth.userId)
    return job_to_dict(job)


def job_update(data, auth: RequestContext | None, db, cfg):
    job = require_job_manage(db, auth, require_str(data, "jobId"))
    before_status = job.status

    changed = _apply_fields(job, data)
    if "title" in changed and not job.title:
        raise ApiError("BAD_REQUEST", "Missing title", status=400)
    if "status" in data:
        job.status = _normalize_status(data.get("status"))
        if job.status != before_status:
            changed.append("status")
    _check_salary(job)

    if "assignedRecruiters" in data:
        requested = str_list(data.get("assignedRecruiters"))
        _check_recruiters_in_org(db, job.orgId, requested)
        access = RecruiterAccessSet(assigned=job_assigned_ids(job), locked=locked_recruiter_ids(job.postedBy, auth))
        access.replace(requested)
        ids = access.ids()
        if ids != job_assigned_ids(job):
            job.assignedRecruitersJson = dump_json(ids, "[]")
            changed.append("assignedRecruiters")

    if changed:
        job.updatedAt = iso_utc_now()
        append_audit(
            db,
            entityType="JOB",
            entityId=job.jobId,
            action="JOB_UPDATE",
            stageTag="JOB",
            actor=auth,
            fromState=before_status,
            toState=job.status,
            meta={"changed": changed},
        )
        _invalidate_public_jobs()
    return job_to_dict(job)


def job_status_update(data, auth: RequestContext | None, db, cfg):
    job = require_job_access(db, auth, require_str(data, "jobId"))
    new_status = _normalize_status(data.get("status"))
    old_status = job.status
    if new_status != old_status:
        job.status = new_status
        job.updatedAt = iso_utc_now()
        append_audit(
            db,
            entityType="JOB",
            entityId=job.jobId,
            action="JOB_STATUS_UPDATE",
            stageTag="JOB",
            actor=auth,
            fromState=old_status,
            toState=new_status,
        )
        _invalidate_public_jobs()
    return {"id": job.jobId, "status": job.status, "previousStatus": old_status}


def job_delete(data, auth: RequestContext | None, db, cfg):
    job = require_job_manage(db, auth, require_str(data, "jobId"))
    app_count = db.execute(select(func.count()).select_from(Application).where(Application.jobId == job.jobId)).scalar_one()
    if app_count:
        raise ApiError(
            "CONFLICT",
            "Job has applications; close it instead",
            status=409,
            details={"applications": int(app_count)},
        )
    append_audit(
        db,
        entityType="JOB",
        entityId=job.jobId,
        action="JOB_DELETE",
        stageTag="JOB",
        actor=auth,
        fromState=job.status,
        meta={"applications": int(app_count)},
    )
    db.delete(job)
    _invalidate_public_jobs()
    return {"id": job.jobId, "deleted": True}


def job_get(data, auth: RequestContext | None, db, cfg):
    job = require_job_access(db, auth, require_str(data, "jobId"))
    return job_to_dict(job)


def _application_counts(db, job_ids: list[str]) -> dict[str, int]:
    if not job_ids:
        return {}
    rows = db.execute(
        select(Application.jobId, func.count()).where(Application.jobId.in_(job_ids)).group_by(Application.jobId)
    ).all()
    return {str(jid): int(n) for jid, n in rows}


def job_list(data, auth: RequestContext | None, db, cfg):
    stmt = select(Job).where(Job.orgId == auth.orgId).order_by(Job.createdAt.desc())
    status = str((data or {}).get("status") or "").strip()
    if status and status.lower() != "all":
        stmt = stmt.where(Job.status == _normalize_status(status))
    jobs = db.execute(stmt).scalars().all()

    if auth.role == ROLE_HR:
        jobs = [j for j in jobs if is_authorized(auth, job_resource(j))]
    elif bool((data or {}).get("mine")):
        jobs = [j for j in jobs if j.postedBy == auth.userId or auth.userId in job_assigned_ids(j)]

    counts = _application_counts(db, [j.jobId for j in jobs])
    return {"items": [job_to_dict(j, application_count=counts.get(j.jobId, 0)) for j in jobs]}


def job_recruiters_get(data, auth: RequestContext | None, db, cfg):
    job = require_job_access(db, auth, require_str(data, "jobId"))
    recruiters = [recruiter_dict(r) for r in org_recruiters(db, job.orgId)]
    locked = locked_recruiter_ids(job.postedBy, auth)
    parts = partition_recruiters(recruiters, job_assigned_ids(job), locked)
    return {"jobId": job.jobId, **parts, "lockedIds": sorted(locked)}


def job_recruiters_update(data, auth: RequestContext | None, db, cfg):
    job = require_job_access(db, auth, require_str(data, "jobId"))
    locked = locked_recruiter_ids(job.postedBy, auth)
    access = RecruiterAccessSet(assigned=job_assigned_ids(job), locked=locked)

    before = access.ids()
    refused: list[str] = []
    if "recruiterIds" in data:
        requested = str_list(data.get("recruiterIds"))
        _check_recruiters_in_org(db, job.orgId, requested)
        access.replace(requested)
    else:
        to_add = str_list(data.get("add"))
        _check_recruiters_in_org(db, job.orgId, to_add)
        for rid in to_add:
            access.add(rid)
        for rid in str_list(data.get("remove")):
            if rid in locked:
                refused.append(rid)
            access.remove(rid)

    after = access.ids()
    if after != before:
        job.assignedRecruitersJson = dump_json(after, "[]")
        job.updatedAt = iso_utc_now()
        append_audit(
            db,
            entityType="JOB",
            entityId=job.jobId,
            action="JOB_RECRUITERS_UPDATE",
            stageTag="JOB",
            actor=auth,
            meta={"before": before, "after": after},
        )
    return {"jobId": job.jobId, "assignedRecruiters": after, "lockedIds": sorted(locked), "refused": refused}


def public_jobs_list(data, auth: RequestContext | None, db, cfg):
    search = str((data or {}).get("search") or "").strip().lower()
    key = make_cache_key(_PUBLIC_CACHE_NS, params={"search": search})
    cached = cache_get(key)
    if cached is not None:
        return cached

    rows = db.execute(
        select(Job, Organization.name)
        .join(Organization, Organization.orgId == Job.orgId)
        .where(Job.status == "Active")
        .order_by(Job.createdAt.desc())
    ).all()
    items = [public_job_dict(job, org_name) for job, org_name in rows]
    if search:
        items = [
            it
            for it in items
            if search in str(it["title"]).lower()
            or search in str(it["department"]).lower()
            or search in str(it["location"]).lower()
            or search in str(it.get("organizationName") or "").lower()
        ]
    out = {"items": items}
    cache_set(key, out)
    return out


def public_job_get(data, auth: RequestContext | None, db, cfg):
    job = require_job(db, require_str(data, "jobId"))
    if job.status != "Active":
        raise not_found("Job")
    org = db.get(Organization, job.orgId)
    return public_job_dict(job, org.name if org else "")
