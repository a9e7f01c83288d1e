from __future__ import annotations

from sqlalchemy import func, select

from ats.access import RECRUITER_ROLES, RequestContext, is_authorized
from ats.actions.applications import applicant_name
from ats.actions.helpers import job_resource
from ats.actions.jobs import JOB_STATUSES, job_to_dict, public_job_dict
from ats.models import Application, Interview, Job, Organization, Test, TestAssignment, User
from ats.status import ApplicationStatus
from ats.utils.datetime import iso_utc_now
from ats.utils.jsonfields import load_json_dict

RECENT_APPLICATIONS = 10
RECENT_JOBS = 5
CANDIDATE_RECENT = 5
RECOMMENDED_JOBS = 8
PENDING_TEST_STATES = ("assigned", "in_progress")


def _status_counts(db, where) -> dict[str, int]:
    counts = {s.value: 0 for s in ApplicationStatus}
    rows = db.execute(select(Application.status, func.count()).where(where).group_by(Application.status)).all()
    for status, n in rows:
        counts[str(status)] = int(n)
    return counts


def org_dashboard(data, auth: RequestContext | None, db, cfg):
    """Organization overview limited to the jobs the caller can see."""
    jobs = [
        j
        for j in db.execute(select(Job).where(Job.orgId == auth.orgId).order_by(Job.createdAt.desc())).scalars().all()
        if is_authorized(auth, job_resource(j))
    ]
    job_ids = [j.jobId for j in jobs]
    by_id = {j.jobId: j for j in jobs}

    by_status = _status_counts(db, Application.jobId.in_(job_ids)) if job_ids else {s.value: 0 for s in ApplicationStatus}
    team = db.execute(
        select(func.count()).select_from(User).where(User.orgId == auth.orgId, User.role.in_(RECRUITER_ROLES))
    ).scalar_one()

    recent = []
    if job_ids:
        rows = db.execute(
            select(Application, User)
            .join(User, User.userId == Application.applicantId, isouter=True)
            .where(Application.jobId.in_(job_ids))
            .order_by(Application.appliedAt.desc())
            .limit(RECENT_APPLICATIONS)
        ).all()
        for app_row, user in rows:
            job = by_id[app_row.jobId]
            email = load_json_dict(app_row.applicationDataJson).get("email") or (user.email if user else "")
            recent.append(
                {
                    "id": app_row.applicationId,
                    "candidateName": applicant_name(app_row, user),
                    "email": str(email),
                    "status": app_row.status,
                    "resumeScore": app_row.resumeScore,
                    "appliedAt": app_row.appliedAt,
                    "jobId": job.jobId,
                    "jobTitle": job.title,
                    "department": job.department,
                }
            )

    jobs_by_status = {s: sum(1 for j in jobs if j.status == s) for s in JOB_STATUSES}
    return {
        "stats": {
            "totalJobs": len(jobs),
            "jobsByStatus": jobs_by_status,
            "totalApplications": sum(by_status.values()),
            "applicationsByStatus": by_status,
            "teamMembers": int(team),
        },
        "recentApplications": recent,
        "recentJobs": [job_to_dict(j) for j in jobs[:RECENT_JOBS]],
    }


def my_dashboard(data, auth: RequestContext | None, db, cfg):
    by_status = _status_counts(db, Application.applicantId == auth.userId)

    recent_rows = db.execute(
        select(Application, Job, Organization.name)
        .join(Job, Job.jobId == Application.jobId)
        .join(Organization, Organization.orgId == Job.orgId, isouter=True)
        .where(Application.applicantId == auth.userId)
        .order_by(Application.appliedAt.desc())
        .limit(CANDIDATE_RECENT)
    ).all()
    recent = [
        {
            "id": app_row.applicationId,
            "jobId": job.jobId,
            "jobTitle": job.title,
            "organizationName": org_name or "",
            "status": app_row.status,
            "resumeScore": app_row.resumeScore,
            "appliedAt": app_row.appliedAt,
            "jobType": job.jobType,
            "workMode": job.workMode,
            "location": job.location,
        }
        for app_row, job, org_name in recent_rows
    ]

    interview_rows = db.execute(
        select(Interview, Job.title)
        .join(Job, Job.jobId == Interview.jobId)
        .where(
            Interview.applicantId == auth.userId,
            Interview.status == "scheduled",
            Interview.scheduledAt > iso_utc_now(),
        )
        .order_by(Interview.scheduledAt.asc())
        .limit(CANDIDATE_RECENT)
    ).all()
    interviews = [
        {
            "id": iv.interviewId,
            "scheduledAt": iv.scheduledAt,
            "durationMinutes": iv.durationMinutes,
            "interviewType": iv.interviewType,
            "meetingLink": iv.meetingLink,
            "jobTitle": title,
        }
        for iv, title in interview_rows
    ]

    test_rows = db.execute(
        select(TestAssignment, Test.title, Job.title)
        .join(Test, Test.testId == TestAssignment.testId)
        .join(Application, Application.applicationId == TestAssignment.applicationId)
        .join(Job, Job.jobId == Application.jobId)
        .where(Application.applicantId == auth.userId, TestAssignment.status.in_(PENDING_TEST_STATES))
        .order_by(TestAssignment.startAt.asc())
    ).all()
    pending = [
        {
            "assignmentId": a.assignmentId,
            "testTitle": test_title,
            "jobTitle": job_title,
            "status": a.status,
            "startAt": a.startAt,
            "endAt": a.endAt,
        }
        for a, test_title, job_title in test_rows
    ]

    applied = select(Application.jobId).where(Application.applicantId == auth.userId)
    job_rows = db.execute(
        select(Job, Organization.name)
        .join(Organization, Organization.orgId == Job.orgId)
        .where(Job.status == "Active", Job.jobId.not_in(applied))
        .order_by(Job.createdAt.desc())
        .limit(RECOMMENDED_JOBS)
    ).all()
    recommended = [public_job_dict(job, org_name) for job, org_name in job_rows]

    return {
        "stats": {
            "totalApplications": sum(by_status.values()),
            "applicationsByStatus": by_status,
            "pendingTests": len(pending),
            "upcomingInterviews": len(interviews),
        },
        "recentApplications": recent,
        "upcomingInterviews": interviews,
        "pendingTests": pending,
        "recommendedJobs": recommended,
    }
