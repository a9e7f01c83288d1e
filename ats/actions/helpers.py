from __future__ import annotations

import os
from typing import Any, Optional

from sqlalchemy import select

from ats.access import RequestContext, Resource, can_manage, is_authorized
from ats.models import Application, ApplicationStatusHistory, AuditLog, Job, Test, User
from ats.status import ApplicationStatus, check_transition, default_note
from ats.utils.datetime import iso_utc_now
from ats.utils.errors import ApiError, forbidden, not_found
from ats.utils.jsonfields import dump_json, load_json_list


def new_log_id() -> str:
    return f"LOG-{os.urandom(16).hex()}"


def append_audit(
    db,
    *,
    entityType: str,
    entityId: str,
    action: str,
    stageTag: str,
    actor: RequestContext | None,
    fromState: str = "",
    toState: str = "",
    remark: str = "",
    meta: Any = None,
    at: Optional[str] = None,
) -> None:
    if meta is None:
        meta_json = "{}"
    elif isinstance(meta, str):
        meta_json = meta
    else:
        meta_json = dump_json(meta, "{}")

    db.add(
        AuditLog(
            logId=new_log_id(),
            entityType=str(entityType or ""),
            entityId=str(entityId or ""),
            action=str(action or "").upper(),
            fromState=str(fromState or ""),
            toState=str(toState or ""),
            stageTag=str(stageTag or ""),
            remark=str(remark or ""),
            actorUserId=str(actor.userId if actor else "PUBLIC"),
            actorRole=str(actor.role if actor else "PUBLIC"),
            at=str(at or iso_utc_now()),
            metaJson=meta_json,
        )
    )


def append_status_history(
    db,
    *,
    applicationId: str,
    oldStatus: str,
    newStatus: str,
    performedBy: str,
    notes: str,
) -> None:
    db.add(
        ApplicationStatusHistory(
            applicationId=applicationId,
            oldStatus=str(oldStatus or ""),
            newStatus=str(newStatus or ""),
            performedBy=str(performedBy or ""),
            notes=str(notes or ""),
            performedAt=iso_utc_now(),
        )
    )


def job_assigned_ids(job: Job) -> list[str]:
    return [str(x) for x in load_json_list(job.assignedRecruitersJson) if str(x or "").strip()]


def job_resource(job: Job) -> Resource:
    return Resource(ownerId=str(job.postedBy), orgId=str(job.orgId), assignedIds=frozenset(job_assigned_ids(job)))


def require_job(db, job_id: str) -> Job:
    job = db.get(Job, str(job_id or "").strip())
    if not job:
        raise not_found("Job")
    return job


def require_job_access(db, ctx: RequestContext, job_id: str) -> Job:
    job = require_job(db, job_id)
    if not is_authorized(ctx, job_resource(job)):
        raise forbidden("You are not authorized to access this job")
    return job


def require_job_manage(db, ctx: RequestContext, job_id: str) -> Job:
    job = require_job(db, job_id)
    if not can_manage(ctx, job_resource(job)):
        raise forbidden("Only the job owner or an organization admin can do this")
    return job


def require_application(db, application_id: str) -> Application:
    app_row = db.get(Application, str(application_id or "").strip())
    if not app_row:
        raise not_found("Application")
    return app_row


def require_application_access(db, ctx: RequestContext, application_id: str) -> tuple[Application, Job]:
    app_row = require_application(db, application_id)
    job = require_job(db, app_row.jobId)
    if not is_authorized(ctx, job_resource(job)):
        raise forbidden("You are not authorized to access this application")
    return app_row, job


def require_org_test(db, ctx: RequestContext, test_id: str, *, active_only: bool = False) -> Test:
    test = db.get(Test, str(test_id or "").strip())
    if not test or test.orgId != ctx.orgId:
        raise not_found("Test")
    if active_only and not test.isActive:
        raise ApiError("VALIDATION_FAILED", "Test not found or inactive", status=400)
    return test


def users_by_id(db, ids: list[str]) -> dict[str, User]:
    if not ids:
        return {}
    rows = db.execute(select(User).where(User.userId.in_(ids))).scalars().all()
    return {u.userId: u for u in rows}


def move_application(
    db,
    app_row: Application,
    target: ApplicationStatus | str,
    *,
    actor: RequestContext,
    note: str = "",
    candidate_name: str = "",
    job_title: str = "",
    allow_same: bool = False,
) -> str:
    """Apply a pipeline move to ``app_row`` and record it.

    With ``allow_same`` a move into the current status is accepted as a
    re-entry: the status stays, the history note is still written.
    Returns the note that was stored.
    """
    current = ApplicationStatus.parse(app_row.status)
    wanted = ApplicationStatus.parse(target)
    if not (allow_same and current == wanted):
        wanted = check_transition(current, wanted)

    text = str(note or "").strip() or default_note(wanted, candidate_name=candidate_name, job_title=job_title)
    now = iso_utc_now()
    app_row.status = wanted.value
    app_row.updatedAt = now

    append_status_history(
        db,
        applicationId=app_row.applicationId,
        oldStatus=current.value,
        newStatus=wanted.value,
        performedBy=actor.userId,
        notes=text,
    )
    append_audit(
        db,
        entityType="APPLICATION",
        entityId=app_row.applicationId,
        action="STATUS_CHANGE",
        stageTag=wanted.value.upper(),
        actor=actor,
        fromState=current.value,
        toState=wanted.value,
        remark=text,
    )
    return text
