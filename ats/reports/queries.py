from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import func, select

from ats.access import RequestContext, is_authorized
from ats.actions.applications import applicant_name
from ats.actions.helpers import job_resource
from ats.models import Application, Job, User
from ats.status import ApplicationStatus


def visible_job_ids(db, ctx: RequestContext, job_id: Optional[str] = None) -> list[str]:
    stmt = select(Job).where(Job.orgId == ctx.orgId)
    if job_id:
        stmt = stmt.where(Job.jobId == job_id)
    return [j.jobId for j in db.execute(stmt).scalars().all() if is_authorized(ctx, job_resource(j))]


def funnel_report(db, job_ids: list[str]) -> dict[str, Any]:
    """Applications per pipeline status, in pipeline order."""
    counts = {s.value: 0 for s in ApplicationStatus}
    if job_ids:
        rows = db.execute(
            select(Application.status, func.count())
            .where(Application.jobId.in_(job_ids))
            .group_by(Application.status)
        ).all()
        for status, n in rows:
            counts[str(status)] = int(n)

    items = [{"status": s, "count": n} for s, n in counts.items()]
    return {"total": sum(counts.values()), "items": items}


def applications_for_export(db, job_ids: list[str]) -> list[dict[str, Any]]:
    if not job_ids:
        return []
    rows = db.execute(
        select(Application, Job.title, User)
        .join(Job, Job.jobId == Application.jobId)
        .join(User, User.userId == Application.applicantId, isouter=True)
        .where(Application.jobId.in_(job_ids))
        .order_by(Application.appliedAt.asc())
    ).all()

    return [
        {
            "applicationId": app_row.applicationId,
            "jobTitle": title,
            "name": applicant_name(app_row, user),
            "email": user.email if user else "",
            "status": app_row.status,
            "resumeScore": app_row.resumeScore,
            "appliedAt": app_row.appliedAt,
            "updatedAt": app_row.updatedAt,
        }
        for app_row, title, user in rows
    ]
