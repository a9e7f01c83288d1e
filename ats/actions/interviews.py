from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select

from ats.access import RequestContext
from ats.actions.applications import applicant_name
from ats.actions.helpers import (
    append_audit,
    append_status_history,
    move_application,
    require_application_access,
    require_job_access,
    users_by_id,
)
from ats.models import Interview, Job, User, new_id
from ats.status import ApplicationStatus
from ats.utils.datetime import iso_utc_now, parse_datetime_maybe, to_iso_utc
from ats.utils.errors import ApiError, not_found
from ats.utils.jsonfields import dump_json, load_json_list
from ats.utils.validators import opt_str, require_id_list, require_str

log = logging.getLogger(__name__)

INTERVIEW_TYPES = ("technical", "hr", "managerial", "cultural", "final")
MEETING_PLATFORMS = ("google_meet", "zoom", "teams", "in_person", "phone")
INTERVIEW_STATUSES = ("scheduled", "completed", "cancelled", "no_show")


def interview_to_dict(iv: Interview, *, job: Job | None = None, people: dict[str, User] | None = None) -> dict[str, Any]:
    ids = load_json_list(iv.interviewersJson)
    people = people or {}
    out = {
        "id": iv.interviewId,
        "jobId": iv.jobId,
        "applicationId": iv.applicationId,
        "applicantId": iv.applicantId,
        "scheduledBy": iv.scheduledBy,
        "scheduledAt": iv.scheduledAt,
        "durationMinutes": iv.durationMinutes,
        "interviewType": iv.interviewType,
        "meetingPlatform": iv.meetingPlatform,
        "meetingLink": iv.meetingLink,
        "meetingLocation": iv.meetingLocation,
        "interviewers": [
            {"id": i, "name": people[i].fullName if i in people else ""} for i in ids
        ],
        "notes": iv.notes,
        "status": iv.status,
        "createdAt": iv.createdAt,
        "updatedAt": iv.updatedAt,
    }
    if job is not None:
        out["jobTitle"] = job.title
    return out


def _parse_slot(data: dict, cfg, key: str = "scheduledAt") -> str:
    dt = parse_datetime_maybe(require_str(data, key), app_timezone=cfg.TIMEZONE_DISPLAY)
    if dt is None:
        raise ApiError("BAD_REQUEST", f"{key} must be an ISO date-time", status=400)
    return to_iso_utc(dt)


def _duration(data: dict, default: int = 60) -> int:
    raw = data.get("durationMinutes")
    if raw is None or str(raw).strip() == "":
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError) as e:
        raise ApiError("BAD_REQUEST", "durationMinutes must be an integer", status=400) from e
    if value <= 0 or value > 24 * 60:
        raise ApiError("VALIDATION_FAILED", "durationMinutes must be between 1 and 1440", status=400)
    return value


def _choice(data: dict, key: str, allowed: tuple[str, ...], default: str) -> str:
    value = opt_str(data, key, default).lower() or default
    if value not in allowed:
        raise ApiError("VALIDATION_FAILED", f"{key} must be one of {', '.join(allowed)}", status=400)
    return value


def _check_slot_free(db, application_id: str, scheduled_at: str, *, exclude_id: str = "") -> None:
    stmt = select(Interview.interviewId).where(
        Interview.applicationId == application_id,
        Interview.scheduledAt == scheduled_at,
        Interview.status != "cancelled",
    )
    if exclude_id:
        stmt = stmt.where(Interview.interviewId != exclude_id)
    if db.execute(stmt).first():
        raise ApiError(
            "CONFLICT",
            "An interview is already scheduled for this application at the selected time",
            status=409,
        )


def _require_interview(db, auth: RequestContext, interview_id: str) -> tuple[Interview, Job]:
    iv = db.get(Interview, interview_id)
    if not iv:
        raise not_found("Interview")
    job = require_job_access(db, auth, iv.jobId)
    return iv, job


def interview_schedule(data, auth: RequestContext | None, db, cfg):
    app_row, job = require_application_access(db, auth, require_str(data, "applicationId"))
    scheduled_at = _parse_slot(data, cfg)
    interviewers = require_id_list(data, "interviewers")

    people = users_by_id(db, interviewers)
    missing = [i for i in interviewers if i not in people or people[i].orgId != job.orgId]
    if missing:
        raise ApiError(
            "VALIDATION_FAILED",
            f"Some interviewers not found or access denied. Missing interviewer IDs: {', '.join(missing)}",
            status=400,
            details={"missing": missing},
        )
    _check_slot_free(db, app_row.applicationId, scheduled_at)

    interview_type = _choice(data, "interviewType", INTERVIEW_TYPES, "technical")
    now = iso_utc_now()
    iv = Interview(
        interviewId=new_id("INT"),
        jobId=job.jobId,
        applicationId=app_row.applicationId,
        applicantId=app_row.applicantId,
        scheduledBy=auth.userId,
        scheduledAt=scheduled_at,
        durationMinutes=_duration(data),
        interviewType=interview_type,
        meetingPlatform=_choice(data, "meetingPlatform", MEETING_PLATFORMS, "google_meet"),
        meetingLink=opt_str(data, "meetingLink"),
        meetingLocation=opt_str(data, "meetingLocation"),
        interviewersJson=dump_json(interviewers, "[]"),
        notes=opt_str(data, "notes"),
        status="scheduled",
        createdAt=now,
        updatedAt=now,
    )
    db.add(iv)

    note = f"Interview scheduled by {auth.name or 'recruiter'}. Type: {interview_type}, Date: {scheduled_at[:10]}"
    move_application(
        db,
        app_row,
        ApplicationStatus.INTERVIEW_SCHEDULED,
        actor=auth,
        note=note,
        candidate_name=applicant_name(app_row, db.get(User, app_row.applicantId)),
        job_title=job.title,
        allow_same=True,
    )
    append_audit(
        db,
        entityType="INTERVIEW",
        entityId=iv.interviewId,
        action="INTERVIEW_SCHEDULE",
        stageTag="INTERVIEW",
        actor=auth,
        toState="scheduled",
        meta={"applicationId": app_row.applicationId, "scheduledAt": scheduled_at},
    )
    log.info("interview scheduled interview=%s app=%s", iv.interviewId, app_row.applicationId)
    return interview_to_dict(iv, job=job, people=people)


def interview_reschedule(data, auth: RequestContext | None, db, cfg):
    iv, job = _require_interview(db, auth, require_str(data, "interviewId"))
    if iv.status == "completed":
        raise ApiError("VALIDATION_FAILED", "A completed interview cannot be rescheduled", status=400)

    scheduled_at = _parse_slot(data, cfg)
    _check_slot_free(db, iv.applicationId, scheduled_at, exclude_id=iv.interviewId)

    previous = iv.scheduledAt
    iv.scheduledAt = scheduled_at
    iv.durationMinutes = _duration(data, default=iv.durationMinutes)
    iv.status = "scheduled"
    reason = opt_str(data, "notes")
    if reason:
        iv.notes = f"{iv.notes}\n\nRescheduled: {reason}" if iv.notes else f"Rescheduled: {reason}"
    iv.updatedAt = iso_utc_now()

    append_status_history(
        db,
        applicationId=iv.applicationId,
        oldStatus=ApplicationStatus.INTERVIEW_SCHEDULED.value,
        newStatus=ApplicationStatus.INTERVIEW_SCHEDULED.value,
        performedBy=auth.userId,
        notes=f"Interview rescheduled from {previous} to {scheduled_at}" + (f". Reason: {reason}" if reason else ""),
    )
    append_audit(
        db,
        entityType="INTERVIEW",
        entityId=iv.interviewId,
        action="INTERVIEW_RESCHEDULE",
        stageTag="INTERVIEW",
        actor=auth,
        fromState=previous,
        toState=scheduled_at,
    )
    return interview_to_dict(iv, job=job, people=users_by_id(db, load_json_list(iv.interviewersJson)))


def interview_status_update(data, auth: RequestContext | None, db, cfg):
    iv, job = _require_interview(db, auth, require_str(data, "interviewId"))
    new_status = _choice(data, "status", INTERVIEW_STATUSES, "")
    old_status = iv.status
    iv.status = new_status
    iv.updatedAt = iso_utc_now()

    moved = False
    if new_status == "completed":
        app_row, _job = require_application_access(db, auth, iv.applicationId)
        if app_row.status == ApplicationStatus.INTERVIEW_SCHEDULED.value:
            move_application(
                db,
                app_row,
                ApplicationStatus.WAITING_FOR_RESULT,
                actor=auth,
                note=opt_str(data, "notes"),
                candidate_name=applicant_name(app_row, db.get(User, app_row.applicantId)),
                job_title=job.title,
            )
            moved = True

    append_audit(
        db,
        entityType="INTERVIEW",
        entityId=iv.interviewId,
        action="INTERVIEW_STATUS_UPDATE",
        stageTag="INTERVIEW",
        actor=auth,
        fromState=old_status,
        toState=new_status,
        remark=opt_str(data, "notes"),
    )
    return {"id": iv.interviewId, "status": iv.status, "previousStatus": old_status, "applicationMoved": moved}


def interviews_for_application(data, auth: RequestContext | None, db, cfg):
    app_row, job = require_application_access(db, auth, require_str(data, "applicationId"))
    rows = db.execute(
        select(Interview).where(Interview.applicationId == app_row.applicationId).order_by(Interview.scheduledAt.asc())
    ).scalars().all()
    ids: set[str] = set()
    for iv in rows:
        ids.update(load_json_list(iv.interviewersJson))
    people = users_by_id(db, sorted(ids))
    return {"items": [interview_to_dict(iv, job=job, people=people) for iv in rows]}


def my_interviews(data, auth: RequestContext | None, db, cfg):
    rows = db.execute(
        select(Interview, Job)
        .join(Job, Job.jobId == Interview.jobId)
        .where(Interview.applicantId == auth.userId)
        .order_by(Interview.scheduledAt.asc())
    ).all()
    ids: set[str] = set()
    for iv, _job in rows:
        ids.update(load_json_list(iv.interviewersJson))
    people = users_by_id(db, sorted(ids))
    return {"items": [interview_to_dict(iv, job=job, people=people) for iv, job in rows]}
