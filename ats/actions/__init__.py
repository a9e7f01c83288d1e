from __future__ import annotations

from typing import Any, Callable

from ats.access import RequestContext
from ats.actions import applications, assessments, auth_actions, dashboard, interviews, jobs, profile, resume
from ats.utils.errors import ApiError

Handler = Callable[[dict, "RequestContext | None", Any, Any], Any]

ACTION_HANDLERS: dict[str, Handler] = {
    # auth / organization
    "ORG_CREATE": auth_actions.org_create,
    "SIGNUP": auth_actions.signup,
    "LOGIN": auth_actions.login,
    "GET_ME": auth_actions.get_me,
    "USER_CREATE": auth_actions.user_create,
    "RECRUITERS_LIST": auth_actions.recruiters_list,
    # jobs
    "JOB_CREATE": jobs.job_create,
    "JOB_UPDATE": jobs.job_update,
    "JOB_STATUS_UPDATE": jobs.job_status_update,
    "JOB_DELETE": jobs.job_delete,
    "JOB_GET": jobs.job_get,
    "JOB_LIST": jobs.job_list,
    "JOB_RECRUITERS_GET": jobs.job_recruiters_get,
    "JOB_RECRUITERS_UPDATE": jobs.job_recruiters_update,
    "PUBLIC_JOBS_LIST": jobs.public_jobs_list,
    "PUBLIC_JOB_GET": jobs.public_job_get,
    # applications
    "APPLICATION_SUBMIT": applications.application_submit,
    "APPLICATION_CHECK": applications.application_check,
    "MY_APPLICATIONS": applications.my_applications,
    "JOB_APPLICATIONS_LIST": applications.job_applications_list,
    "APPLICATION_GET": applications.application_get,
    "APPLICATION_STATUS_UPDATE": applications.application_status_update,
    "APPLICATION_STATUS_HISTORY": applications.application_status_history,
    "JOB_APPLICATION_STATS": applications.job_application_stats,
    # interviews
    "INTERVIEW_SCHEDULE": interviews.interview_schedule,
    "INTERVIEW_RESCHEDULE": interviews.interview_reschedule,
    "INTERVIEW_STATUS_UPDATE": interviews.interview_status_update,
    "INTERVIEWS_FOR_APPLICATION": interviews.interviews_for_application,
    "MY_INTERVIEWS": interviews.my_interviews,
    # tests
    "TEST_CREATE": assessments.test_create,
    "TEST_LIST": assessments.test_list,
    "TEST_GET": assessments.test_get,
    "TEST_SET_ACTIVE": assessments.test_set_active,
    "TEST_WINDOW_CHECK": assessments.test_window_check,
    "TEST_ASSIGN": assessments.test_assign,
    "TEST_ASSIGN_MULTIPLE": assessments.test_assign_multiple,
    "TEST_RESCHEDULE": assessments.test_reschedule,
    "TESTS_FOR_APPLICATION": assessments.tests_for_application,
    "MY_TESTS": assessments.my_tests,
    "TEST_ATTEMPT_START": assessments.test_attempt_start,
    "TEST_QUESTIONS_GET": assessments.test_questions_get,
    "TEST_RESPONSE_SUBMIT": assessments.test_response_submit,
    "TEST_ATTEMPT_SUBMIT": assessments.test_attempt_submit,
    "PROCTORING_UPDATE": assessments.proctoring_update,
    "TEST_RESULTS_GET": assessments.test_results_get,
    "TEST_MARKS_UPDATE": assessments.test_marks_update,
    "TEST_MARKS_BULK_UPDATE": assessments.test_marks_bulk_update,
    # resume
    "RESUME_PARSE": resume.resume_parse,
    # profile and dashboards
    "PROFILE_GET": profile.profile_get,
    "PROFILE_SAVE": profile.profile_save,
    "ORG_DASHBOARD": dashboard.org_dashboard,
    "MY_DASHBOARD": dashboard.my_dashboard,
}

# Success messages shown by clients; anything else says "OK".
ACTION_MESSAGES: dict[str, str] = {
    "ORG_CREATE": "Organization created",
    "SIGNUP": "Account created",
    "LOGIN": "Logged in",
    "USER_CREATE": "User created",
    "JOB_CREATE": "Job created",
    "JOB_UPDATE": "Job updated",
    "JOB_STATUS_UPDATE": "Job status updated",
    "JOB_DELETE": "Job deleted",
    "JOB_RECRUITERS_UPDATE": "Recruiters updated",
    "APPLICATION_SUBMIT": "Application submitted successfully",
    "APPLICATION_STATUS_UPDATE": "Application status updated",
    "INTERVIEW_SCHEDULE": "Interview scheduled successfully",
    "INTERVIEW_RESCHEDULE": "Interview rescheduled successfully",
    "INTERVIEW_STATUS_UPDATE": "Interview status updated",
    "TEST_CREATE": "Test created successfully",
    "TEST_SET_ACTIVE": "Test updated",
    "TEST_ASSIGN": "Test assigned successfully",
    "TEST_ASSIGN_MULTIPLE": "Tests assigned successfully",
    "TEST_RESCHEDULE": "Test rescheduled successfully",
    "TEST_ATTEMPT_START": "Test started",
    "TEST_RESPONSE_SUBMIT": "Answer saved",
    "TEST_ATTEMPT_SUBMIT": "Test submitted successfully",
    "TEST_MARKS_UPDATE": "Marks updated successfully",
    "TEST_MARKS_BULK_UPDATE": "Marks updated successfully",
    "RESUME_PARSE": "Resume processed",
    "PROFILE_SAVE": "Profile saved",
}


def action_message(action: str) -> str:
    return ACTION_MESSAGES.get(action, "OK")


def dispatch(action: str, data: dict, auth: RequestContext | None, db, cfg) -> Any:
    handler = ACTION_HANDLERS.get(action)
    if handler is None:
        raise ApiError("BAD_REQUEST", f"Unknown action: {action}", status=400)
    return handler(data if isinstance(data, dict) else {}, auth, db, cfg)
