from __future__ import annotations

from datetime import timedelta

import pytest

from ats.actions import assessments
from ats.utils.datetime import to_iso_utc
from ats.utils.errors import api_error
from helpers import api, create_test, error_code, iso, move, now_utc, ok, open_window, pipeline, signup_candidate


def _assign(client, p, test_id, window=None):
    data = {"testId": test_id, "applicationIds": [p["application_id"]]}
    data.update(window or open_window())
    return ok(api(client, "TEST_ASSIGN", data, p["admin"]))["assignments"][0]


def _questions_by_type(client, p, attempt_id):
    out = ok(api(client, "TEST_QUESTIONS_GET", {"attemptId": attempt_id}, p["candidate"]))
    return {q["questionType"]: q for q in out["questions"]}


def _take_test(client, p, test_id):
    """Assign, start, answer and submit; returns the submit payload."""
    assignment = _assign(client, p, test_id)
    started = ok(api(client, "TEST_ATTEMPT_START", {"assignmentId": assignment["assignmentId"]}, p["candidate"]))
    attempt_id = started["attemptId"]
    qs = _questions_by_type(client, p, attempt_id)
    answers = [
        (qs["mcq_single"]["id"], {"selectedOptions": ["4"]}),
        (qs["mcq_multiple"]["id"], {"selectedOptions": ["tuple"]}),
        (qs["text"]["id"], {"answer": "One thread runs bytecode at a time"}),
    ]
    for qid, body in answers:
        ok(api(client, "TEST_RESPONSE_SUBMIT", {"attemptId": attempt_id, "questionId": qid, **body}, p["candidate"]))
    return ok(api(client, "TEST_ATTEMPT_SUBMIT", {"attemptId": attempt_id}, p["candidate"]))


def _responses(client, p, attempt_id):
    out = ok(api(client, "TEST_RESULTS_GET", {"attemptId": attempt_id}, p["admin"]))
    return {r["question"]["questionType"]: r for r in out["responses"]}


def test_create_computes_totals(app_client):
    _app, client = app_client
    p = pipeline(client)
    test = create_test(client, p["admin"])
    assert test["questionCount"] == 3
    assert test["totalMarks"] == 10
    assert test["isActive"] is True

    full = ok(api(client, "TEST_GET", {"testId": test["id"]}, p["admin"]))
    assert [q["orderIndex"] for q in full["questions"]] == [0, 1, 2]
    assert full["questions"][1]["correctOptions"] == ["tuple", "str"]


@pytest.mark.parametrize(
    "question",
    [
        {"questionType": "essay", "questionText": "?", "marks": 1},
        {"questionType": "mcq_single", "questionText": "?", "options": ["a"], "correctOptions": ["a"], "marks": 1},
        {"questionType": "mcq_single", "questionText": "?", "options": ["a", "b"], "correctOptions": ["c"], "marks": 1},
        {"questionType": "mcq_single", "questionText": "?", "options": ["a", "b"], "correctOptions": ["a", "b"], "marks": 1},
        {"questionType": "text", "questionText": "?", "marks": 0},
        {"questionType": "text", "questionText": "?", "marks": "many"},
        {"questionType": "text", "questionText": "?", "marks": 1001},
    ],
)
def test_create_rejects_bad_questions(app_client, question):
    _app, client = app_client
    p = pipeline(client)
    res = api(client, "TEST_CREATE", {"title": "Bad", "durationMinutes": 10, "questions": [question]}, p["admin"])
    assert res.status_code == 400
    assert error_code(res) == "VALIDATION_FAILED"


def test_create_refuses_marks_above_limit_instead_of_lowering(app_client):
    _app, client = app_client
    p = pipeline(client)
    question = {"questionType": "text", "questionText": "Design a cache", "marks": 1500}
    res = api(client, "TEST_CREATE", {"title": "Big", "durationMinutes": 10, "questions": [question]}, p["admin"])
    assert res.status_code == 400
    body = res.get_json()
    assert body["message"] == "Question 1: marks must be at most 1000"
    assert body["error"]["details"] == {"marks": 1500, "max": 1000}
    assert ok(api(client, "TEST_LIST", {}, p["admin"]))["items"] == []

    question["marks"] = 1000
    created = ok(api(client, "TEST_CREATE", {"title": "Big", "durationMinutes": 10, "questions": [question]}, p["admin"]))
    assert created["totalMarks"] == 1000


def test_list_and_deactivate(app_client):
    _app, client = app_client
    p = pipeline(client)
    first = create_test(client, p["admin"], title="First")
    create_test(client, p["admin"], title="Second")

    out = ok(api(client, "TEST_SET_ACTIVE", {"testId": first["id"], "isActive": False}, p["admin"]))
    assert out == {"id": first["id"], "isActive": False}

    active = ok(api(client, "TEST_LIST", {"activeOnly": True}, p["admin"]))["items"]
    assert [t["title"] for t in active] == ["Second"]
    assert len(ok(api(client, "TEST_LIST", {}, p["admin"]))["items"]) == 2

    res = api(
        client,
        "TEST_ASSIGN",
        {"testId": first["id"], "applicationIds": [p["application_id"]], **open_window()},
        p["admin"],
    )
    assert res.status_code == 400


def test_window_check(app_client):
    _app, client = app_client
    p = pipeline(client)
    test = create_test(client, p["admin"])
    start = now_utc() + timedelta(days=1)

    out = ok(api(client, "TEST_WINDOW_CHECK", {"testId": test["id"], "startAt": iso(start)}, p["admin"]))
    assert out["requiredMinutes"] == 35
    assert out["proposedEndAt"] == to_iso_utc(start + timedelta(minutes=35))
    assert "valid" not in out

    end = start + timedelta(minutes=20)
    out = ok(api(client, "TEST_WINDOW_CHECK", {"testId": test["id"], "startAt": iso(start), "endAt": iso(end)}, p["admin"]))
    assert out["valid"] is False
    assert out["actualMinutes"] == 20.0
    assert "at least 35 minutes" in out["message"]


def test_assign_rejects_short_window_without_writing(app_client):
    _app, client = app_client
    p = pipeline(client)
    test = create_test(client, p["admin"])
    start = now_utc()
    res = api(
        client,
        "TEST_ASSIGN",
        {
            "testId": test["id"],
            "applicationIds": [p["application_id"]],
            "startAt": iso(start),
            "endAt": iso(start + timedelta(minutes=30)),
        },
        p["admin"],
    )
    assert res.status_code == 400
    body = res.get_json()
    assert body["error"]["code"] == "VALIDATION_FAILED"
    assert body["error"]["details"]["requiredMinutes"] == 35

    listed = ok(api(client, "TESTS_FOR_APPLICATION", {"applicationId": p["application_id"]}, p["admin"]))
    assert listed["items"] == []
    got = ok(api(client, "APPLICATION_GET", {"applicationId": p["application_id"]}, p["admin"]))
    assert got["status"] == "submitted"


def test_assign_defaults_end_and_moves_application(app_client):
    _app, client = app_client
    p = pipeline(client)
    test = create_test(client, p["admin"])
    start = now_utc() + timedelta(hours=1)

    out = ok(
        api(
            client,
            "TEST_ASSIGN",
            {"testId": test["id"], "applicationIds": [p["application_id"]], "startAt": iso(start)},
            p["admin"],
        )
    )
    assert out["endAt"] == to_iso_utc(start + timedelta(minutes=35))
    assert out["assignments"][0]["reassigned"] is False

    got = ok(api(client, "APPLICATION_GET", {"applicationId": p["application_id"]}, p["admin"]))
    assert got["status"] == "test_scheduled"
    assert got["history"][-1]["notes"].startswith('Test "Python basics" assigned by Ada Admin.')

    mine = ok(api(client, "MY_TESTS", {}, p["candidate"]))["items"]
    assert mine[0]["window"] == "upcoming"
    assert mine[0]["jobTitle"] == "Backend Engineer"

    res = api(client, "TEST_ATTEMPT_START", {"assignmentId": out["assignments"][0]["assignmentId"]}, p["candidate"])
    assert res.status_code == 400
    assert res.get_json()["message"] == "This test has not started yet"


def test_reassign_keeps_one_assignment(app_client):
    _app, client = app_client
    p = pipeline(client)
    test = create_test(client, p["admin"])
    first = _assign(client, p, test["id"])
    second = _assign(client, p, test["id"])
    assert second["assignmentId"] == first["assignmentId"]
    assert second["reassigned"] is True
    assert len(ok(api(client, "TESTS_FOR_APPLICATION", {"applicationId": p["application_id"]}, p["admin"]))["items"]) == 1


def test_assign_refused_for_rejected_application(app_client):
    _app, client = app_client
    p = pipeline(client)
    test = create_test(client, p["admin"])
    move(client, p["admin"], p["application_id"], "rejected")
    res = api(
        client,
        "TEST_ASSIGN",
        {"testId": test["id"], "applicationIds": [p["application_id"]], **open_window()},
        p["admin"],
    )
    assert res.status_code == 400
    assert res.get_json()["error"]["details"]["from"] == "rejected"


def test_assign_multiple(app_client):
    _app, client = app_client
    p = pipeline(client)
    short = create_test(client, p["admin"], title="Short", durationMinutes=10)
    long = create_test(client, p["admin"], title="Long", durationMinutes=60)
    start = now_utc() + timedelta(hours=2)

    res = api(
        client,
        "TEST_ASSIGN_MULTIPLE",
        {
            "applicationId": p["application_id"],
            "testIds": [short["id"], long["id"]],
            "startAt": iso(start),
            "endAt": iso(start + timedelta(minutes=30)),
        },
        p["admin"],
    )
    assert res.status_code == 400
    assert 'for "Long"' in res.get_json()["message"]

    out = ok(
        api(
            client,
            "TEST_ASSIGN_MULTIPLE",
            {"applicationId": p["application_id"], "testIds": [short["id"], long["id"]], "startAt": iso(start)},
            p["admin"],
        )
    )
    # the default end fits the longest test
    assert out["endAt"] == to_iso_utc(start + timedelta(minutes=65))
    assert [a["testId"] for a in out["assignments"]] == [short["id"], long["id"]]

    history = ok(api(client, "APPLICATION_STATUS_HISTORY", {"applicationId": p["application_id"]}, p["admin"]))["items"]
    assert history[-1]["notes"].startswith('Tests "Short", "Long" assigned')

    res = api(
        client,
        "TEST_ASSIGN_MULTIPLE",
        {"applicationId": p["application_id"], "testIds": ["TEST-missing"], "startAt": iso(start)},
        p["admin"],
    )
    assert res.get_json()["error"]["details"] == {"missing": ["TEST-missing"]}


def test_candidate_flow_and_grading(app_client):
    _app, client = app_client
    p = pipeline(client)
    test = create_test(client, p["admin"])
    assignment = _assign(client, p, test["id"])

    started = ok(api(client, "TEST_ATTEMPT_START", {"assignmentId": assignment["assignmentId"]}, p["candidate"]))
    assert started["status"] == "in_progress"
    assert started["deadline"]

    questions = ok(api(client, "TEST_QUESTIONS_GET", {"attemptId": started["attemptId"]}, p["candidate"]))
    for q in questions["questions"]:
        assert "correctOptions" not in q
        assert "correctAnswer" not in q

    res = api(client, "TEST_RESULTS_GET", {"attemptId": started["attemptId"]}, p["candidate"])
    assert res.status_code == 400

    mcq = questions["questions"][0]
    res = api(
        client,
        "TEST_RESPONSE_SUBMIT",
        {"attemptId": started["attemptId"], "questionId": mcq["id"], "selectedOptions": ["7"]},
        p["candidate"],
    )
    assert res.status_code == 400

    # answers are saved again on each call
    for picked in (["3"], ["4"]):
        ok(
            api(
                client,
                "TEST_RESPONSE_SUBMIT",
                {"attemptId": started["attemptId"], "questionId": mcq["id"], "selectedOptions": picked},
                p["candidate"],
            )
        )
    saved = ok(api(client, "TEST_QUESTIONS_GET", {"attemptId": started["attemptId"]}, p["candidate"]))["responses"]
    assert saved[mcq["id"]]["selectedOptions"] == ["4"]

    submitted = ok(api(client, "TEST_ATTEMPT_SUBMIT", {"attemptId": started["attemptId"]}, p["candidate"]))
    assert submitted["late"] is False
    summary = submitted["summary"]
    # only the single-choice question was answered
    assert summary["totalScore"] == 4
    assert summary["totalPossible"] == 10
    assert summary["percentage"] == 40
    assert summary["passed"] is False
    assert summary["pendingManualReview"] == 1

    res = api(client, "TEST_ATTEMPT_SUBMIT", {"attemptId": started["attemptId"]}, p["candidate"])
    assert res.status_code == 400
    res = api(client, "TEST_ATTEMPT_START", {"assignmentId": assignment["assignmentId"]}, p["candidate"])
    assert res.status_code == 400

    results = ok(api(client, "TEST_RESULTS_GET", {"attemptId": started["attemptId"]}, p["candidate"]))
    assert results["attempt"]["isEvaluated"] is False
    assert all("correctOptions" not in r["question"] for r in results["responses"])


def test_partial_credit_and_manual_marks(app_client):
    _app, client = app_client
    p = pipeline(client)
    test = create_test(client, p["admin"])
    submitted = _take_test(client, p, test["id"])
    attempt_id = submitted["attemptId"]
    assert submitted["summary"]["totalScore"] == 6
    assert submitted["summary"]["partialCount"] == 1
    assert submitted["summary"]["passed"] is True

    responses = _responses(client, p, attempt_id)
    assert responses["mcq_multiple"]["marksAwarded"] == 2
    assert responses["text"]["isAutoGraded"] is False

    out = ok(
        api(
            client,
            "TEST_MARKS_UPDATE",
            {"responseId": responses["text"]["responseId"], "marks": 9, "reason": "Clear answer"},
            p["admin"],
        )
    )
    # clamped to the question maximum
    assert out["newMarks"] == 2
    assert out["previousMarks"] == 0
    assert out["summary"]["totalScore"] == 8
    assert out["summary"]["pendingManualReview"] == 0

    results = ok(api(client, "TEST_RESULTS_GET", {"attemptId": attempt_id}, p["admin"]))
    assert results["attempt"]["isEvaluated"] is True
    assert results["attempt"]["percentage"] == 80
    assert results["application"]["candidateName"] == "Casey Candidate"


def test_marks_need_a_submitted_attempt(app_client):
    _app, client = app_client
    p = pipeline(client)
    test = create_test(client, p["admin"])
    assignment = _assign(client, p, test["id"])
    started = ok(api(client, "TEST_ATTEMPT_START", {"assignmentId": assignment["assignmentId"]}, p["candidate"]))
    qid = _questions_by_type(client, p, started["attemptId"])["text"]["id"]
    saved = ok(
        api(client, "TEST_RESPONSE_SUBMIT", {"attemptId": started["attemptId"], "questionId": qid, "answer": "x"}, p["candidate"])
    )
    res = api(client, "TEST_MARKS_UPDATE", {"responseId": saved["responseId"], "marks": 1}, p["admin"])
    assert res.status_code == 400


def test_bulk_marks(app_client):
    _app, client = app_client
    p = pipeline(client)
    test = create_test(client, p["admin"])
    attempt_id = _take_test(client, p, test["id"])["attemptId"]
    responses = _responses(client, p, attempt_id)

    out = ok(
        api(
            client,
            "TEST_MARKS_BULK_UPDATE",
            {
                "items": [
                    {"responseId": responses["text"]["responseId"], "marks": 1.5},
                    {"responseId": responses["mcq_multiple"]["responseId"], "marks": 4},
                ],
                "reason": "Reviewed",
            },
            p["admin"],
        )
    )
    assert out["succeeded"] == 2
    assert out["failed"] == 0
    assert out["attempts"][attempt_id]["totalScore"] == 9.5

    after = _responses(client, p, attempt_id)
    assert after["mcq_multiple"]["isAutoGraded"] is False


def test_bulk_marks_rejects_duplicates(app_client):
    _app, client = app_client
    p = pipeline(client)
    test = create_test(client, p["admin"])
    attempt_id = _take_test(client, p, test["id"])["attemptId"]
    rid = _responses(client, p, attempt_id)["text"]["responseId"]
    res = api(
        client,
        "TEST_MARKS_BULK_UPDATE",
        {"items": [{"responseId": rid, "marks": 1}, {"responseId": rid, "marks": 2}]},
        p["admin"],
    )
    assert res.status_code == 400
    assert error_code(res) == "BAD_REQUEST"


def test_bulk_marks_partial_failure(app_client, monkeypatch):
    _app, client = app_client
    p = pipeline(client)
    test = create_test(client, p["admin"])
    attempt_id = _take_test(client, p, test["id"])["attemptId"]
    responses = _responses(client, p, attempt_id)
    good = responses["text"]["responseId"]
    bad = responses["mcq_multiple"]["responseId"]

    original = assessments._apply_mark

    def flaky(db, response, question, raw, **kwargs):
        if response.responseId == bad:
            raise api_error("CONFLICT", "Response is locked")
        return original(db, response, question, raw, **kwargs)

    monkeypatch.setattr(assessments, "_apply_mark", flaky)

    res = api(
        client,
        "TEST_MARKS_BULK_UPDATE",
        {"items": [{"responseId": good, "marks": 2}, {"responseId": bad, "marks": 4}]},
        p["admin"],
    )
    assert res.status_code == 207
    body = res.get_json()
    assert body["success"] is False
    assert body["error"]["code"] == "PARTIAL_FAILURE"
    details = body["error"]["details"]
    assert details["succeeded"] == 1
    assert details["failed"] == 1
    failed = [r for r in details["results"] if not r["ok"]]
    assert failed == [{"ok": False, "responseId": bad, "error": {"code": "CONFLICT", "message": "Response is locked"}}]

    # the good item stays committed and totals follow it
    monkeypatch.setattr(assessments, "_apply_mark", original)
    after = _responses(client, p, attempt_id)
    assert after["text"]["marksAwarded"] == 2
    assert after["mcq_multiple"]["marksAwarded"] == 2
    results = ok(api(client, "TEST_RESULTS_GET", {"attemptId": attempt_id}, p["admin"]))
    assert results["attempt"]["totalScore"] == 8


def test_reschedule(app_client):
    _app, client = app_client
    p = pipeline(client)
    test = create_test(client, p["admin"])
    assignment = _assign(client, p, test["id"])
    new_start = now_utc() + timedelta(days=1)

    out = ok(api(client, "TEST_RESCHEDULE", {"assignmentId": assignment["assignmentId"], "startAt": iso(new_start)}, p["admin"]))
    assert out["startAt"] == to_iso_utc(new_start)
    assert out["endAt"] == to_iso_utc(new_start + timedelta(minutes=35))

    history = ok(api(client, "APPLICATION_STATUS_HISTORY", {"applicationId": p["application_id"]}, p["admin"]))["items"]
    assert history[-1]["notes"].startswith('Test "Python basics" rescheduled by Ada Admin.')
    assert history[-1]["oldStatus"] == history[-1]["newStatus"] == "test_scheduled"


def test_reschedule_refused_after_submit(app_client):
    _app, client = app_client
    p = pipeline(client)
    test = create_test(client, p["admin"])
    _take_test(client, p, test["id"])
    assignment_id = ok(api(client, "TESTS_FOR_APPLICATION", {"applicationId": p["application_id"]}, p["admin"]))["items"][0][
        "assignmentId"
    ]
    res = api(client, "TEST_RESCHEDULE", {"assignmentId": assignment_id, **open_window()}, p["admin"])
    assert res.status_code == 400
    assert res.get_json()["message"] == "The candidate has already submitted this test"


def test_reschedule_restarts_an_attempt_in_progress(app_client):
    _app, client = app_client
    p = pipeline(client)
    test = create_test(client, p["admin"])
    assignment = _assign(client, p, test["id"])
    started = ok(api(client, "TEST_ATTEMPT_START", {"assignmentId": assignment["assignmentId"]}, p["candidate"]))
    qid = _questions_by_type(client, p, started["attemptId"])["text"]["id"]
    save = {"attemptId": started["attemptId"], "questionId": qid, "answer": "draft"}
    ok(api(client, "TEST_RESPONSE_SUBMIT", save, p["candidate"]))

    ok(api(client, "TEST_RESCHEDULE", {"assignmentId": assignment["assignmentId"], **open_window(1, 90)}, p["admin"]))
    item = ok(api(client, "TESTS_FOR_APPLICATION", {"applicationId": p["application_id"]}, p["admin"]))["items"][0]
    assert item["status"] == "assigned"
    assert item["attempt"]["status"] == "not_started"

    # the candidate starts again in the new window before saving more answers
    res = api(client, "TEST_RESPONSE_SUBMIT", save, p["candidate"])
    assert res.status_code == 400
    assert res.get_json()["message"] == "Attempt is not_started, not in progress"

    restarted = ok(api(client, "TEST_ATTEMPT_START", {"assignmentId": assignment["assignmentId"]}, p["candidate"]))
    assert restarted["attemptId"] == started["attemptId"]
    assert restarted["status"] == "in_progress"
    saved = ok(api(client, "TEST_QUESTIONS_GET", {"attemptId": started["attemptId"]}, p["candidate"]))["responses"]
    assert saved[qid]["answer"] == "draft"
    ok(api(client, "TEST_RESPONSE_SUBMIT", {**save, "answer": "final"}, p["candidate"]))


def test_retake_after_review_waits_for_a_new_review(app_client):
    _app, client = app_client
    p = pipeline(client)
    test = create_test(client, p["admin"])
    attempt_id = _take_test(client, p, test["id"])["attemptId"]
    text_id = _responses(client, p, attempt_id)["text"]["responseId"]
    ok(api(client, "TEST_MARKS_UPDATE", {"responseId": text_id, "marks": 2}, p["admin"]))
    assert ok(api(client, "TEST_RESULTS_GET", {"attemptId": attempt_id}, p["admin"]))["attempt"]["isEvaluated"] is True

    _assign(client, p, test["id"])
    item = ok(api(client, "TESTS_FOR_APPLICATION", {"applicationId": p["application_id"]}, p["admin"]))["items"][0]
    assert item["attempt"]["status"] == "not_started"
    assert item["attempt"]["isEvaluated"] is False
    assert item["attempt"]["totalScore"] == 0

    retake = _take_test(client, p, test["id"])
    assert retake["attemptId"] == attempt_id
    # the free-text answer is graded afresh and the earlier review no longer counts
    assert retake["summary"]["totalScore"] == 6
    assert retake["summary"]["pendingManualReview"] == 1
    assert ok(api(client, "TEST_RESULTS_GET", {"attemptId": attempt_id}, p["admin"]))["attempt"]["isEvaluated"] is False

    out = ok(api(client, "TEST_MARKS_UPDATE", {"responseId": text_id, "marks": 1}, p["admin"]))
    assert out["summary"]["pendingManualReview"] == 0
    assert out["summary"]["totalScore"] == 7
    assert ok(api(client, "TEST_RESULTS_GET", {"attemptId": attempt_id}, p["admin"]))["attempt"]["isEvaluated"] is True


def _backdate_start(attempt_id: str, started_at) -> None:
    from ats import db as dbmod
    from ats.models import TestAttempt

    with dbmod.SessionLocal() as db:
        db.get(TestAttempt, attempt_id).startedAt = to_iso_utc(started_at)
        db.commit()


def test_answers_refused_once_time_is_up(app_client):
    _app, client = app_client
    p = pipeline(client)
    test = create_test(client, p["admin"])
    assignment = _assign(client, p, test["id"], open_window(60, 180))
    started = ok(api(client, "TEST_ATTEMPT_START", {"assignmentId": assignment["assignmentId"]}, p["candidate"]))
    attempt_id = started["attemptId"]
    qs = _questions_by_type(client, p, attempt_id)
    ok(
        api(
            client,
            "TEST_RESPONSE_SUBMIT",
            {"attemptId": attempt_id, "questionId": qs["mcq_single"]["id"], "selectedOptions": ["4"]},
            p["candidate"],
        )
    )

    # 45 minutes into a 30 minute test, with the window still open
    started_at = now_utc() - timedelta(minutes=45)
    _backdate_start(attempt_id, started_at)

    res = api(
        client,
        "TEST_RESPONSE_SUBMIT",
        {"attemptId": attempt_id, "questionId": qs["text"]["id"], "answer": "late answer"},
        p["candidate"],
    )
    assert res.status_code == 400
    assert error_code(res) == "VALIDATION_FAILED"
    assert res.get_json()["error"]["details"] == {"deadline": to_iso_utc(started_at + timedelta(minutes=30))}

    submitted = ok(api(client, "TEST_ATTEMPT_SUBMIT", {"attemptId": attempt_id}, p["candidate"]))
    assert submitted["late"] is True
    assert submitted["summary"]["totalScore"] == 4
    assert _responses(client, p, attempt_id)["text"]["answer"] == ""


def test_proctoring_update(app_client):
    _app, client = app_client
    p = pipeline(client)
    test = create_test(client, p["admin"], isProctored=True)
    assignment = _assign(client, p, test["id"])
    attempt_id = ok(api(client, "TEST_ATTEMPT_START", {"assignmentId": assignment["assignmentId"]}, p["candidate"]))[
        "attemptId"
    ]

    out = ok(
        api(
            client,
            "PROCTORING_UPDATE",
            {"attemptId": attempt_id, "proctoringData": {"tabSwitches": 3, "violationScore": 3}},
            p["candidate"],
        )
    )
    assert out["violationScore"] == 3

    results = ok(api(client, "TEST_RESULTS_GET", {"attemptId": attempt_id}, p["admin"]))
    assert results["attempt"]["proctoringData"]["tabSwitches"] == 3


def test_other_candidate_cannot_touch_attempt(app_client):
    _app, client = app_client
    p = pipeline(client)
    test = create_test(client, p["admin"])
    assignment = _assign(client, p, test["id"])
    intruder = signup_candidate(client, email="intruder@example.com")

    res = api(client, "TEST_ATTEMPT_START", {"assignmentId": assignment["assignmentId"]}, intruder["access_token"])
    assert res.status_code == 404

    ok(api(client, "TEST_ATTEMPT_START", {"assignmentId": assignment["assignmentId"]}, p["candidate"]))
    res = api(client, "TEST_QUESTIONS_GET", {"attemptId": assignment["attemptId"]}, intruder["access_token"])
    assert res.status_code == 404


def test_rest_candidate_routes(app_client):
    _app, client = app_client
    p = pipeline(client)
    test = create_test(client, p["admin"])
    assignment = _assign(client, p, test["id"])
    headers = {"Authorization": f"Bearer {p['candidate']}"}

    res = client.post(f"/api/v1/test-assignments/{assignment['assignmentId']}/start", headers=headers)
    assert res.status_code == 200
    attempt_id = res.get_json()["data"]["attemptId"]

    res = client.get(f"/api/v1/attempts/{attempt_id}/questions", headers=headers)
    qid = res.get_json()["data"]["questions"][0]["id"]
    res = client.put(f"/api/v1/attempts/{attempt_id}/responses/{qid}", json={"selectedOptions": ["4"]}, headers=headers)
    assert res.get_json()["message"] == "Answer saved"

    res = client.post(f"/api/v1/attempts/{attempt_id}/submit", headers=headers)
    assert res.get_json()["data"]["summary"]["totalScore"] == 4


def test_response_rows_carry_only_graded_fields(app_client):
    from ats.models import TestResponse

    assert set(TestResponse.__table__.columns.keys()) == {
        "responseId",
        "attemptId",
        "questionId",
        "answer",
        "selectedOptionsJson",
        "marksAwarded",
        "isAutoGraded",
        "explanation",
        "createdAt",
        "updatedAt",
    }

    _app, client = app_client
    p = pipeline(client)
    test = create_test(client, p["admin"])
    attempt_id = _take_test(client, p, test["id"])["attemptId"]
    text = _responses(client, p, attempt_id)["text"]
    assert set(text) == {"responseId", "question", "answer", "selectedOptions", "marksAwarded", "isAutoGraded", "explanation"}
