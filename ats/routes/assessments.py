from __future__ import annotations

from flask import Blueprint, request

from ats.routes.api import body_with, run_action

assessments_bp = Blueprint("assessments", __name__)


@assessments_bp.get("/tests")
def list_tests():
    active_only = str(request.args.get("active") or "").lower() in ("1", "true", "yes")
    return run_action("TEST_LIST", {"activeOnly": active_only})


@assessments_bp.post("/tests")
def create_test():
    return run_action("TEST_CREATE", body_with())


@assessments_bp.get("/tests/mine")
def my_tests():
    return run_action("MY_TESTS", {})


@assessments_bp.get("/tests/<test_id>")
def get_test(test_id: str):
    return run_action("TEST_GET", {"testId": test_id})


@assessments_bp.patch("/tests/<test_id>/active")
def set_test_active(test_id: str):
    return run_action("TEST_SET_ACTIVE", body_with(testId=test_id))


@assessments_bp.post("/tests/<test_id>/window-check")
def check_window(test_id: str):
    return run_action("TEST_WINDOW_CHECK", body_with(testId=test_id))


@assessments_bp.post("/tests/<test_id>/assign")
def assign_test(test_id: str):
    return run_action("TEST_ASSIGN", body_with(testId=test_id))


@assessments_bp.patch("/test-assignments/<assignment_id>")
def reschedule_test(assignment_id: str):
    return run_action("TEST_RESCHEDULE", body_with(assignmentId=assignment_id))


@assessments_bp.post("/test-assignments/<assignment_id>/start")
def start_attempt(assignment_id: str):
    return run_action("TEST_ATTEMPT_START", {"assignmentId": assignment_id})


@assessments_bp.get("/attempts/<attempt_id>/questions")
def attempt_questions(attempt_id: str):
    return run_action("TEST_QUESTIONS_GET", {"attemptId": attempt_id})


@assessments_bp.put("/attempts/<attempt_id>/responses/<question_id>")
def save_response(attempt_id: str, question_id: str):
    return run_action("TEST_RESPONSE_SUBMIT", body_with(attemptId=attempt_id, questionId=question_id))


@assessments_bp.post("/attempts/<attempt_id>/submit")
def submit_attempt(attempt_id: str):
    return run_action("TEST_ATTEMPT_SUBMIT", {"attemptId": attempt_id})


@assessments_bp.post("/attempts/<attempt_id>/proctoring")
def update_proctoring(attempt_id: str):
    return run_action("PROCTORING_UPDATE", body_with(attemptId=attempt_id))


@assessments_bp.get("/attempts/<attempt_id>/results")
def attempt_results(attempt_id: str):
    return run_action("TEST_RESULTS_GET", {"attemptId": attempt_id})


@assessments_bp.patch("/responses/<response_id>/marks")
def update_marks(response_id: str):
    return run_action("TEST_MARKS_UPDATE", body_with(responseId=response_id))


@assessments_bp.post("/responses/marks")
def bulk_update_marks():
    return run_action("TEST_MARKS_BULK_UPDATE", body_with())
