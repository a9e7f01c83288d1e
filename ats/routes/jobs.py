from __future__ import annotations

from flask import Blueprint, request

from ats.routes.api import body_with, run_action

jobs_bp = Blueprint("jobs", __name__)


@jobs_bp.get("/jobs")
def list_jobs():
    mine = str(request.args.get("mine") or "").lower() in ("1", "true", "yes")
    return run_action("JOB_LIST", {"mine": mine, "status": request.args.get("status")})


@jobs_bp.post("/jobs")
def create_job():
    return run_action("JOB_CREATE", body_with())


@jobs_bp.get("/jobs/<job_id>")
def get_job(job_id: str):
    return run_action("JOB_GET", {"jobId": job_id})


@jobs_bp.patch("/jobs/<job_id>")
def update_job(job_id: str):
    return run_action("JOB_UPDATE", body_with(jobId=job_id))


@jobs_bp.patch("/jobs/<job_id>/status")
def update_job_status(job_id: str):
    return run_action("JOB_STATUS_UPDATE", body_with(jobId=job_id))


@jobs_bp.delete("/jobs/<job_id>")
def delete_job(job_id: str):
    return run_action("JOB_DELETE", {"jobId": job_id})


@jobs_bp.get("/jobs/<job_id>/recruiters")
def job_recruiters(job_id: str):
    return run_action("JOB_RECRUITERS_GET", {"jobId": job_id})


@jobs_bp.put("/jobs/<job_id>/recruiters")
def update_job_recruiters(job_id: str):
    return run_action("JOB_RECRUITERS_UPDATE", body_with(jobId=job_id))


@jobs_bp.get("/jobs/<job_id>/applications")
def job_applications(job_id: str):
    args = request.args
    return run_action(
        "JOB_APPLICATIONS_LIST",
        {
            "jobId": job_id,
            "status": args.get("status"),
            "search": args.get("search"),
            "scoreMin": args.get("score_min"),
            "scoreMax": args.get("score_max"),
            "sortBy": args.get("sort_by"),
            "sortOrder": args.get("sort_order"),
        },
    )


@jobs_bp.get("/jobs/<job_id>/stats")
def job_stats(job_id: str):
    return run_action("JOB_APPLICATION_STATS", {"jobId": job_id})


@jobs_bp.get("/public/jobs")
def public_jobs():
    return run_action("PUBLIC_JOBS_LIST", {"search": request.args.get("search")})


@jobs_bp.get("/public/jobs/<job_id>")
def public_job(job_id: str):
    return run_action("PUBLIC_JOB_GET", {"jobId": job_id})
