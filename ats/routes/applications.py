from __future__ import annotations

from flask import Blueprint, request

from ats.routes.api import body_with, run_action

applications_bp = Blueprint("applications", __name__)


@applications_bp.post("/applications")
def submit_application():
    return run_action("APPLICATION_SUBMIT", body_with())


@applications_bp.get("/applications/mine")
def my_applications():
    return run_action("MY_APPLICATIONS", {})


@applications_bp.get("/applications/check")
def check_application():
    return run_action("APPLICATION_CHECK", {"jobId": request.args.get("job_id")})


@applications_bp.get("/applications")
def list_applications():
    args = request.args
    return run_action(
        "JOB_APPLICATIONS_LIST",
        {
            "jobId": args.get("job_id"),
            "status": args.get("status"),
            "search": args.get("search"),
            "scoreMin": args.get("score_min"),
            "scoreMax": args.get("score_max"),
            "sortBy": args.get("sort_by"),
            "sortOrder": args.get("sort_order"),
        },
    )


@applications_bp.get("/applications/<application_id>")
def get_application(application_id: str):
    return run_action("APPLICATION_GET", {"applicationId": application_id})


@applications_bp.patch("/applications/<application_id>/status")
def update_application_status(application_id: str):
    return run_action("APPLICATION_STATUS_UPDATE", body_with(applicationId=application_id))


@applications_bp.get("/applications/<application_id>/history")
def application_history(application_id: str):
    return run_action("APPLICATION_STATUS_HISTORY", {"applicationId": application_id})


@applications_bp.get("/applications/<application_id>/interviews")
def application_interviews(application_id: str):
    return run_action("INTERVIEWS_FOR_APPLICATION", {"applicationId": application_id})


@applications_bp.get("/applications/<application_id>/tests")
def application_tests(application_id: str):
    return run_action("TESTS_FOR_APPLICATION", {"applicationId": application_id})


@applications_bp.post("/applications/<application_id>/tests")
def assign_tests(application_id: str):
    return run_action("TEST_ASSIGN_MULTIPLE", body_with(applicationId=application_id))


@applications_bp.post("/interviews")
def schedule_interview():
    return run_action("INTERVIEW_SCHEDULE", body_with())


@applications_bp.get("/interviews/mine")
def my_interviews():
    return run_action("MY_INTERVIEWS", {})


@applications_bp.patch("/interviews/<interview_id>")
def reschedule_interview(interview_id: str):
    return run_action("INTERVIEW_RESCHEDULE", body_with(interviewId=interview_id))


@applications_bp.patch("/interviews/<interview_id>/status")
def update_interview_status(interview_id: str):
    return run_action("INTERVIEW_STATUS_UPDATE", body_with(interviewId=interview_id))


@applications_bp.post("/resume/parse")
def parse_resume():
    return run_action("RESUME_PARSE", body_with())


@applications_bp.get("/profile")
def get_profile():
    return run_action("PROFILE_GET", {})


@applications_bp.put("/profile")
def save_profile():
    return run_action("PROFILE_SAVE", body_with())


@applications_bp.get("/dashboard/organization")
def organization_dashboard():
    return run_action("ORG_DASHBOARD", {})


@applications_bp.get("/dashboard/me")
def candidate_dashboard():
    return run_action("MY_DASHBOARD", {})
