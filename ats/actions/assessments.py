from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from ats import db as dbmod
from ats.access import RequestContext
from ats.actions.applications import applicant_name
from ats.actions.helpers import (
    append_audit,
    append_status_history,
    move_application,
    require_application,
    require_application_access,
    require_org_test,
)
from ats.models import (
    Application,
    Job,
    MarkAdjustment,
    Test,
    TestAssignment,
    TestAttempt,
    TestQuestion,
    TestResponse,
    User,
    new_id,
)
from ats.scoring import QUESTION_TYPES, ScoredResponse, clamp_mark, grade_response, summarize
from ats.status import ApplicationStatus, check_transition
from ats.utils.datetime import iso_utc_now, parse_datetime_maybe, to_iso_utc
from ats.utils.errors import ApiError, api_error, not_found
from ats.utils.jsonfields import dump_json, load_json_dict, load_json_list
from ats.utils.validators import opt_str, require_id_list, require_int, require_str, str_list
from ats.windows import WindowCheck, propose_end, too_short_message, validate_window, window_state

log = logging.getLogger(__name__)

DIFFICULTIES = ("easy", "medium", "hard")
MAX_QUESTION_MARKS = 1_000


# --- test authoring ---------------------------------------------------------


def _question_marks(raw: Any, where: str) -> float:
    try:
        marks = float(raw)
    except (TypeError, ValueError):
        marks = math.nan
    if not math.isfinite(marks) or marks <= 0:
        raise ApiError("VALIDATION_FAILED", f"{where}: marks must be greater than 0", status=400)
    if marks > MAX_QUESTION_MARKS:
        raise ApiError(
            "VALIDATION_FAILED",
            f"{where}: marks must be at most {MAX_QUESTION_MARKS}",
            status=400,
            details={"marks": marks, "max": MAX_QUESTION_MARKS},
        )
    return marks


def _parse_question(q: Any, idx: int) -> dict[str, Any]:
    if not isinstance(q, dict):
        raise ApiError("BAD_REQUEST", f"Question {idx + 1} must be an object", status=400)
    where = f"Question {idx + 1}"

    qtype = str(q.get("questionType") or "").strip().lower()
    if qtype not in QUESTION_TYPES:
        raise ApiError("VALIDATION_FAILED", f"{where}: questionType must be one of {', '.join(QUESTION_TYPES)}", status=400)
    text = str(q.get("questionText") or "").strip()
    if not text:
        raise ApiError("VALIDATION_FAILED", f"{where}: questionText is required", status=400)

    marks = _question_marks(q.get("marks"), where)

    options = str_list(q.get("options"))
    correct_options = str_list(q.get("correctOptions"))
    if qtype in ("mcq_single", "mcq_multiple"):
        if len(options) < 2:
            raise ApiError("VALIDATION_FAILED", f"{where}: at least two options are required", status=400)
        if not correct_options:
            raise ApiError("VALIDATION_FAILED", f"{where}: correctOptions is required", status=400)
        unknown = [c for c in correct_options if c not in options]
        if unknown:
            raise ApiError("VALIDATION_FAILED", f"{where}: correctOptions must be among options", status=400)
        if qtype == "mcq_single" and len(correct_options) != 1:
            raise ApiError("VALIDATION_FAILED", f"{where}: mcq_single takes exactly one correct option", status=400)

    difficulty = str(q.get("difficulty") or "medium").strip().lower()
    if difficulty not in DIFFICULTIES:
        difficulty = "medium"

    return {
        "questionType": qtype,
        "questionText": text,
        "marks": marks,
        "options": options,
        "correctOptions": correct_options,
        "correctAnswer": str(q.get("correctAnswer") or ""),
        "explanation": str(q.get("explanation") or ""),
        "difficulty": difficulty,
    }


def question_to_dict(q: TestQuestion, *, with_answers: bool) -> dict[str, Any]:
    out = {
        "id": q.questionId,
        "questionType": q.questionType,
        "questionText": q.questionText,
        "options": load_json_list(q.optionsJson),
        "marks": q.marks,
        "difficulty": q.difficulty,
        "orderIndex": q.orderIndex,
    }
    if with_answers:
        out["correctOptions"] = load_json_list(q.correctOptionsJson)
        out["correctAnswer"] = q.correctAnswer
        out["explanation"] = q.explanation
    return out


def test_to_dict(t: Test) -> dict[str, Any]:
    return {
        "id": t.testId,
        "title": t.title,
        "description": t.description,
        "instructions": t.instructions,
        "durationMinutes": t.durationMinutes,
        "questionCount": t.questionCount,
        "totalMarks": t.totalMarks,
        "passingMarks": t.passingMarks,
        "isProctored": bool(t.isProctored),
        "proctoringSettings": load_json_dict(t.proctoringSettingsJson),
        "isActive": bool(t.isActive),
        "createdBy": t.createdBy,
        "createdAt": t.createdAt,
        "updatedAt": t.updatedAt,
    }


def _questions(db, test_id: str) -> list[TestQuestion]:
    return list(
        db.execute(select(TestQuestion).where(TestQuestion.testId == test_id).order_by(TestQuestion.orderIndex.asc()))
        .scalars()
        .all()
    )


def test_create(data, auth: RequestContext | None, db, cfg):
    title = require_str(data, "title")
    duration = require_int(data, "durationMinutes", minimum=1, maximum=600)
    passing = clamp_mark(data.get("passingMarks"), 100)

    raw_questions = data.get("questions")
    if not isinstance(raw_questions, list) or not raw_questions:
        raise ApiError("BAD_REQUEST", "Missing questions", status=400)
    questions = [_parse_question(q, i) for i, q in enumerate(raw_questions)]

    now = iso_utc_now()
    test = Test(
        testId=new_id("TEST"),
        orgId=auth.orgId,
        createdBy=auth.userId,
        title=title,
        description=opt_str(data, "description"),
        instructions=opt_str(data, "instructions"),
        durationMinutes=duration,
        questionCount=len(questions),
        totalMarks=round(sum(q["marks"] for q in questions), 2),
        passingMarks=passing,
        isProctored=bool(data.get("isProctored")),
        proctoringSettingsJson=dump_json(data.get("proctoringSettings") or {}, "{}"),
        isActive=True,
        createdAt=now,
        updatedAt=now,
    )
    db.add(test)
    for i, q in enumerate(questions):
        db.add(
            TestQuestion(
                questionId=new_id("Q"),
                testId=test.testId,
                questionType=q["questionType"],
                questionText=q["questionText"],
                optionsJson=dump_json(q["options"], "[]"),
                correctAnswer=q["correctAnswer"],
                correctOptionsJson=dump_json(q["correctOptions"], "[]"),
                explanation=q["explanation"],
                marks=q["marks"],
                difficulty=q["difficulty"],
                orderIndex=i,
            )
        )
    append_audit(
        db,
        entityType="TEST",
        entityId=test.testId,
        action="TEST_CREATE",
        stageTag="TEST",
        actor=auth,
        meta={"questions": len(questions), "totalMarks": test.totalMarks},
    )
    return test_to_dict(test)


def test_list(data, auth: RequestContext | None, db, cfg):
    stmt = select(Test).where(Test.orgId == auth.orgId).order_by(Test.createdAt.desc())
    if bool((data or {}).get("activeOnly")):
        stmt = stmt.where(Test.isActive.is_(True))
    return {"items": [test_to_dict(t) for t in db.execute(stmt).scalars().all()]}


def test_get(data, auth: RequestContext | None, db, cfg):
    test = require_org_test(db, auth, require_str(data, "testId"))
    out = test_to_dict(test)
    out["questions"] = [question_to_dict(q, with_answers=True) for q in _questions(db, test.testId)]
    return out


def test_set_active(data, auth: RequestContext | None, db, cfg):
    test = require_org_test(db, auth, require_str(data, "testId"))
    active = bool(data.get("isActive"))
    if bool(test.isActive) != active:
        test.isActive = active
        test.updatedAt = iso_utc_now()
        append_audit(
            db,
            entityType="TEST",
            entityId=test.testId,
            action="TEST_SET_ACTIVE",
            stageTag="TEST",
            actor=auth,
            toState="ACTIVE" if active else "INACTIVE",
        )
    return {"id": test.testId, "isActive": bool(test.isActive)}


# --- windows and assignment -------------------------------------------------


def _parse_when(data: dict, key: str, cfg, *, required: bool) -> Optional[datetime]:
    raw = (data or {}).get(key)
    if raw is None or str(raw).strip() == "":
        if required:
            raise ApiError("BAD_REQUEST", f"Missing {key}", status=400)
        return None
    dt = parse_datetime_maybe(raw, app_timezone=cfg.TIMEZONE_DISPLAY)
    if dt is None:
        raise ApiError("BAD_REQUEST", f"{key} must be an ISO date-time", status=400)
    return dt


def _resolve_window(data: dict, tests: list[Test], cfg) -> tuple[datetime, datetime]:
    """Start/end for an assignment; the end defaults to the shortest valid one.

    Every test must fit the window; nothing is written before this passes.
    """
    start = _parse_when(data, "startAt", cfg, required=True)
    end = _parse_when(data, "endAt", cfg, required=False)
    grace = cfg.TEST_WINDOW_GRACE_MINUTES
    if end is None:
        end = max(propose_end(start, t.durationMinutes, grace) for t in tests)

    for t in tests:
        check = validate_window(start, end, t.durationMinutes, grace)
        if not check.valid:
            raise ApiError(
                "VALIDATION_FAILED",
                too_short_message(t.durationMinutes, check, t.title if len(tests) > 1 else ""),
                status=400,
                details={"testId": t.testId, **check.as_dict()},
            )
    return start, end


def test_window_check(data, auth: RequestContext | None, db, cfg):
    test = require_org_test(db, auth, require_str(data, "testId"))
    grace = cfg.TEST_WINDOW_GRACE_MINUTES
    start = _parse_when(data, "startAt", cfg, required=True)
    end = _parse_when(data, "endAt", cfg, required=False)
    proposed = propose_end(start, test.durationMinutes, grace)

    check: Optional[WindowCheck] = validate_window(start, end, test.durationMinutes, grace) if end else None
    out: dict[str, Any] = {
        "testId": test.testId,
        "durationMinutes": test.durationMinutes,
        "requiredMinutes": test.durationMinutes + grace,
        "proposedEndAt": to_iso_utc(proposed),
    }
    if check is not None:
        out.update(check.as_dict())
        if not check.valid:
            out["message"] = too_short_message(test.durationMinutes, check)
    return out


def _proctoring(data: dict, test: Test) -> tuple[bool, str]:
    if "isProctored" in (data or {}):
        is_proctored = bool(data.get("isProctored"))
    else:
        is_proctored = bool(test.isProctored)
    settings = data.get("proctoringSettings") if isinstance(data.get("proctoringSettings"), dict) else None
    return is_proctored, dump_json(settings, "{}") if settings is not None else test.proctoringSettingsJson


def _upsert_assignment(
    db,
    *,
    test: Test,
    app_row: Application,
    start: datetime,
    end: datetime,
    actor: RequestContext,
    proctoring: tuple[bool, str],
) -> tuple[TestAssignment, TestAttempt, bool]:
    now = iso_utc_now()
    assignment = db.execute(
        select(TestAssignment).where(
            TestAssignment.testId == test.testId, TestAssignment.applicationId == app_row.applicationId
        )
    ).scalar_one_or_none()
    created = assignment is None
    if created:
        assignment = TestAssignment(
            assignmentId=new_id("TA"),
            testId=test.testId,
            applicationId=app_row.applicationId,
            assignedAt=now,
        )
        db.add(assignment)
    assignment.assignedBy = actor.userId
    assignment.startAt = to_iso_utc(start)
    assignment.endAt = to_iso_utc(end)
    assignment.status = "assigned"
    assignment.isProctored, assignment.proctoringSettingsJson = proctoring
    assignment.updatedAt = now

    attempt = db.execute(
        select(TestAttempt).where(TestAttempt.testId == test.testId, TestAttempt.applicationId == app_row.applicationId)
    ).scalar_one_or_none()
    if attempt is None:
        attempt = TestAttempt(
            attemptId=new_id("ATT"),
            testId=test.testId,
            applicationId=app_row.applicationId,
            applicantId=app_row.applicantId,
            createdAt=now,
        )
        db.add(attempt)
    # Saved answers survive a reset; grading state does not.
    attempt.status = "not_started"
    attempt.startedAt = ""
    attempt.submittedAt = ""
    attempt.totalScore = 0
    attempt.percentage = 0
    attempt.isPassed = False
    attempt.isEvaluated = False
    attempt.updatedAt = now
    return assignment, attempt, created


def _check_can_schedule_test(app_row: Application) -> None:
    if app_row.status != ApplicationStatus.TEST_SCHEDULED.value:
        check_transition(app_row.status, ApplicationStatus.TEST_SCHEDULED)


def _assigned_note(titles: list[str], actor: RequestContext, start: datetime, end: datetime) -> str:
    quoted = ", ".join(f'"{t}"' for t in titles)
    label = "Test" if len(titles) == 1 else "Tests"
    return (
        f"{label} {quoted} assigned by {actor.name or 'recruiter'}. "
        f"Window: {to_iso_utc(start)} to {to_iso_utc(end)}"
    )


def test_assign(data, auth: RequestContext | None, db, cfg):
    test = require_org_test(db, auth, require_str(data, "testId"), active_only=True)
    application_ids = require_id_list(data, "applicationIds")

    start, end = _resolve_window(data, [test], cfg)
    pairs = [require_application_access(db, auth, aid) for aid in application_ids]
    for app_row, _job in pairs:
        _check_can_schedule_test(app_row)

    proctoring = _proctoring(data, test)
    note = _assigned_note([test.title], auth, start, end)
    results = []
    for app_row, job in pairs:
        assignment, attempt, created = _upsert_assignment(
            db, test=test, app_row=app_row, start=start, end=end, actor=auth, proctoring=proctoring
        )
        move_application(
            db,
            app_row,
            ApplicationStatus.TEST_SCHEDULED,
            actor=auth,
            note=note,
            candidate_name=applicant_name(app_row, db.get(User, app_row.applicantId)),
            job_title=job.title,
            allow_same=True,
        )
        results.append(
            {
                "applicationId": app_row.applicationId,
                "assignmentId": assignment.assignmentId,
                "attemptId": attempt.attemptId,
                "reassigned": not created,
            }
        )

    log.info("test assigned test=%s applications=%s", test.testId, len(results))
    return {
        "testId": test.testId,
        "startAt": to_iso_utc(start),
        "endAt": to_iso_utc(end),
        "assignments": results,
    }


def test_assign_multiple(data, auth: RequestContext | None, db, cfg):
    app_row, job = require_application_access(db, auth, require_str(data, "applicationId"))
    test_ids = require_id_list(data, "testIds")
    tests: list[Test] = []
    missing: list[str] = []
    for tid in test_ids:
        t = db.get(Test, tid)
        if not t or t.orgId != auth.orgId or not t.isActive:
            missing.append(tid)
        else:
            tests.append(t)
    if missing:
        raise ApiError(
            "VALIDATION_FAILED",
            f"Some tests not found, inactive, or access denied. Missing test IDs: {', '.join(missing)}",
            status=400,
            details={"missing": missing},
        )

    start, end = _resolve_window(data, tests, cfg)
    _check_can_schedule_test(app_row)

    results = []
    for test in tests:
        assignment, attempt, created = _upsert_assignment(
            db, test=test, app_row=app_row, start=start, end=end, actor=auth, proctoring=_proctoring(data, test)
        )
        results.append(
            {
                "testId": test.testId,
                "assignmentId": assignment.assignmentId,
                "attemptId": attempt.attemptId,
                "reassigned": not created,
            }
        )
    move_application(
        db,
        app_row,
        ApplicationStatus.TEST_SCHEDULED,
        actor=auth,
        note=_assigned_note([t.title for t in tests], auth, start, end),
        candidate_name=applicant_name(app_row, db.get(User, app_row.applicantId)),
        job_title=job.title,
        allow_same=True,
    )
    return {"applicationId": app_row.applicationId, "startAt": to_iso_utc(start), "endAt": to_iso_utc(end), "assignments": results}


def _require_assignment(db, auth: RequestContext, assignment_id: str) -> tuple[TestAssignment, Test, Application, Job]:
    assignment = db.get(TestAssignment, assignment_id)
    if not assignment:
        raise not_found("Test assignment")
    app_row, job = require_application_access(db, auth, assignment.applicationId)
    test = require_org_test(db, auth, assignment.testId)
    return assignment, test, app_row, job


def test_reschedule(data, auth: RequestContext | None, db, cfg):
    assignment, test, app_row, _job = _require_assignment(db, auth, require_str(data, "assignmentId"))
    attempt = _attempt_for(db, test.testId, app_row.applicationId)
    if attempt is not None and attempt.status == "submitted":
        raise ApiError("VALIDATION_FAILED", "The candidate has already submitted this test", status=400)

    start, end = _resolve_window(data, [test], cfg)
    previous = (assignment.startAt, assignment.endAt)
    _upsert_assignment(db, test=test, app_row=app_row, start=start, end=end, actor=auth, proctoring=_proctoring(data, test))

    append_status_history(
        db,
        applicationId=app_row.applicationId,
        oldStatus=app_row.status,
        newStatus=app_row.status,
        performedBy=auth.userId,
        notes=(
            f'Test "{test.title}" rescheduled by {auth.name or "recruiter"}. '
            f"New window: {to_iso_utc(start)} to {to_iso_utc(end)}"
        ),
    )
    append_audit(
        db,
        entityType="TEST_ASSIGNMENT",
        entityId=assignment.assignmentId,
        action="TEST_RESCHEDULE",
        stageTag="TEST",
        actor=auth,
        fromState=" / ".join(previous),
        toState=f"{assignment.startAt} / {assignment.endAt}",
    )
    return {"assignmentId": assignment.assignmentId, "startAt": assignment.startAt, "endAt": assignment.endAt, "status": assignment.status}


def _attempt_for(db, test_id: str, application_id: str) -> Optional[TestAttempt]:
    return db.execute(
        select(TestAttempt).where(TestAttempt.testId == test_id, TestAttempt.applicationId == application_id)
    ).scalar_one_or_none()


def _assignment_dict(a: TestAssignment, t: Test, attempt: Optional[TestAttempt], now: datetime) -> dict[str, Any]:
    start = parse_datetime_maybe(a.startAt)
    end = parse_datetime_maybe(a.endAt)
    return {
        "assignmentId": a.assignmentId,
        "testId": t.testId,
        "title": t.title,
        "durationMinutes": t.durationMinutes,
        "totalMarks": t.totalMarks,
        "applicationId": a.applicationId,
        "startAt": a.startAt,
        "endAt": a.endAt,
        "status": a.status,
        "window": window_state(start, end, now) if start and end else "unknown",
        "isProctored": bool(a.isProctored),
        "attempt": None
        if attempt is None
        else {
            "attemptId": attempt.attemptId,
            "status": attempt.status,
            "totalScore": attempt.totalScore,
            "percentage": attempt.percentage,
            "isPassed": bool(attempt.isPassed),
            "isEvaluated": bool(attempt.isEvaluated),
        },
    }


def tests_for_application(data, auth: RequestContext | None, db, cfg):
    app_row, _job = require_application_access(db, auth, require_str(data, "applicationId"))
    rows = db.execute(
        select(TestAssignment, Test)
        .join(Test, Test.testId == TestAssignment.testId)
        .where(TestAssignment.applicationId == app_row.applicationId)
        .order_by(TestAssignment.assignedAt.asc())
    ).all()
    now = datetime.now(timezone.utc)
    return {
        "items": [_assignment_dict(a, t, _attempt_for(db, t.testId, a.applicationId), now) for a, t in rows]
    }


def my_tests(data, auth: RequestContext | None, db, cfg):
    rows = db.execute(
        select(TestAssignment, Test, Job.title)
        .join(Test, Test.testId == TestAssignment.testId)
        .join(Application, Application.applicationId == TestAssignment.applicationId)
        .join(Job, Job.jobId == Application.jobId)
        .where(Application.applicantId == auth.userId)
        .order_by(TestAssignment.startAt.asc())
    ).all()
    now = datetime.now(timezone.utc)
    items = []
    for a, t, job_title in rows:
        item = _assignment_dict(a, t, _attempt_for(db, t.testId, a.applicationId), now)
        item["jobTitle"] = job_title
        item["instructions"] = t.instructions
        items.append(item)
    return {"items": items}


# --- candidate attempt flow -------------------------------------------------


def _own_attempt(db, auth: RequestContext, attempt_id: str) -> TestAttempt:
    attempt = db.get(TestAttempt, attempt_id)
    if not attempt or attempt.applicantId != auth.userId:
        raise not_found("Test attempt")
    return attempt


def _assignment_of(db, attempt: TestAttempt) -> TestAssignment:
    assignment = db.execute(
        select(TestAssignment).where(
            TestAssignment.testId == attempt.testId, TestAssignment.applicationId == attempt.applicationId
        )
    ).scalar_one_or_none()
    if not assignment:
        raise not_found("Test assignment")
    return assignment


def _require_open(assignment: TestAssignment, now: datetime) -> None:
    start = parse_datetime_maybe(assignment.startAt)
    end = parse_datetime_maybe(assignment.endAt)
    state = window_state(start, end, now) if start and end else "expired"
    if state == "upcoming":
        raise ApiError("VALIDATION_FAILED", "This test has not started yet", status=400, details={"startAt": assignment.startAt})
    if state == "expired":
        raise ApiError("VALIDATION_FAILED", "The test window has closed", status=400, details={"endAt": assignment.endAt})


def _deadline_at(attempt: TestAttempt, assignment: TestAssignment, test: Test) -> Optional[datetime]:
    """The earlier of the window end and start plus duration."""
    end = parse_datetime_maybe(assignment.endAt)
    started = parse_datetime_maybe(attempt.startedAt)
    if started is not None:
        timed = started + timedelta(minutes=test.durationMinutes)
        end = min(end, timed) if end is not None else timed
    return end


def _deadline(attempt: TestAttempt, assignment: TestAssignment, test: Test) -> str:
    end = _deadline_at(attempt, assignment, test)
    return to_iso_utc(end) if end else ""


def _require_before_deadline(attempt: TestAttempt, assignment: TestAssignment, test: Test, now: datetime) -> None:
    deadline = _deadline_at(attempt, assignment, test)
    if deadline is not None and now > deadline:
        raise ApiError(
            "VALIDATION_FAILED",
            "Time is up for this test; submit the saved answers",
            status=400,
            details={"deadline": to_iso_utc(deadline)},
        )


def test_attempt_start(data, auth: RequestContext | None, db, cfg):
    assignment = db.get(TestAssignment, require_str(data, "assignmentId"))
    if not assignment:
        raise not_found("Test assignment")
    app_row = require_application(db, assignment.applicationId)
    if app_row.applicantId != auth.userId:
        raise not_found("Test assignment")

    attempt = _attempt_for(db, assignment.testId, assignment.applicationId)
    if attempt is not None and attempt.status == "submitted":
        raise ApiError("VALIDATION_FAILED", "This test has already been submitted", status=400)

    now_dt = datetime.now(timezone.utc)
    _require_open(assignment, now_dt)

    now = iso_utc_now()
    if attempt is None:
        attempt = TestAttempt(
            attemptId=new_id("ATT"),
            testId=assignment.testId,
            applicationId=assignment.applicationId,
            applicantId=auth.userId,
            createdAt=now,
        )
        db.add(attempt)
    if attempt.status != "in_progress":
        attempt.status = "in_progress"
        attempt.startedAt = now
    attempt.updatedAt = now
    assignment.status = "in_progress"
    assignment.updatedAt = now

    test = db.get(Test, assignment.testId)
    return {
        "attemptId": attempt.attemptId,
        "status": attempt.status,
        "startedAt": attempt.startedAt,
        "deadline": _deadline(attempt, assignment, test),
        "durationMinutes": test.durationMinutes,
    }


def _require_in_progress(attempt: TestAttempt) -> None:
    if attempt.status != "in_progress":
        raise ApiError("VALIDATION_FAILED", f"Attempt is {attempt.status}, not in progress", status=400)


def test_questions_get(data, auth: RequestContext | None, db, cfg):
    attempt = _own_attempt(db, auth, require_str(data, "attemptId"))
    _require_in_progress(attempt)
    assignment = _assignment_of(db, attempt)
    test = db.get(Test, attempt.testId)

    responses = db.execute(select(TestResponse).where(TestResponse.attemptId == attempt.attemptId)).scalars().all()
    saved = {
        r.questionId: {"answer": r.answer, "selectedOptions": load_json_list(r.selectedOptionsJson)} for r in responses
    }
    return {
        "attemptId": attempt.attemptId,
        "test": {
            "id": test.testId,
            "title": test.title,
            "instructions": test.instructions,
            "durationMinutes": test.durationMinutes,
            "isProctored": bool(assignment.isProctored),
            "proctoringSettings": load_json_dict(assignment.proctoringSettingsJson),
        },
        "deadline": _deadline(attempt, assignment, test),
        "questions": [question_to_dict(q, with_answers=False) for q in _questions(db, test.testId)],
        "responses": saved,
    }


def test_response_submit(data, auth: RequestContext | None, db, cfg):
    attempt = _own_attempt(db, auth, require_str(data, "attemptId"))
    _require_in_progress(attempt)
    assignment = _assignment_of(db, attempt)
    now_dt = datetime.now(timezone.utc)
    _require_open(assignment, now_dt)
    _require_before_deadline(attempt, assignment, db.get(Test, attempt.testId), now_dt)

    question = db.get(TestQuestion, require_str(data, "questionId"))
    if not question or question.testId != attempt.testId:
        raise not_found("Question")

    selected = str_list(data.get("selectedOptions"))
    options = load_json_list(question.optionsJson)
    if selected and options and any(s not in options for s in selected):
        raise ApiError("VALIDATION_FAILED", "selectedOptions must be among the question options", status=400)

    now = iso_utc_now()
    response = db.execute(
        select(TestResponse).where(TestResponse.attemptId == attempt.attemptId, TestResponse.questionId == question.questionId)
    ).scalar_one_or_none()
    if response is None:
        response = TestResponse(
            responseId=new_id("RESP"),
            attemptId=attempt.attemptId,
            questionId=question.questionId,
            createdAt=now,
        )
        db.add(response)
    response.answer = opt_str(data, "answer")
    response.selectedOptionsJson = dump_json(selected, "[]")
    response.updatedAt = now
    attempt.updatedAt = now
    return {"responseId": response.responseId, "questionId": question.questionId, "savedAt": now}


def _reviewed_response_ids(db, attempt: TestAttempt) -> set[str]:
    """Responses a recruiter marked since the attempt was last submitted.

    Adjustments from an earlier sitting of a reassigned test do not count.
    """
    stmt = select(MarkAdjustment.responseId).where(MarkAdjustment.attemptId == attempt.attemptId)
    if attempt.submittedAt:
        stmt = stmt.where(MarkAdjustment.adjustedAt >= attempt.submittedAt)
    return {str(r[0]) for r in db.execute(stmt).all()}


def recompute_attempt(db, attempt: TestAttempt) -> dict[str, Any]:
    """Recalculate totals of ``attempt`` from its stored responses."""
    test = db.get(Test, attempt.testId)
    rows = db.execute(
        select(TestResponse, TestQuestion)
        .join(TestQuestion, TestQuestion.questionId == TestResponse.questionId)
        .where(TestResponse.attemptId == attempt.attemptId)
    ).all()
    summary = summarize(
        [ScoredResponse(marksAwarded=r.marksAwarded, maxMarks=q.marks) for r, q in rows],
        test.passingMarks if test else 0,
    )
    reviewed = _reviewed_response_ids(db, attempt)
    pending = [r.responseId for r, _q in rows if not r.isAutoGraded and r.responseId not in reviewed]

    attempt.totalScore = summary.totalScore
    attempt.percentage = summary.percentage
    attempt.isPassed = summary.passed
    attempt.isEvaluated = attempt.status == "submitted" and not pending
    attempt.updatedAt = iso_utc_now()

    out = summary.as_dict()
    out["pendingManualReview"] = len(pending)
    return out


def test_attempt_submit(data, auth: RequestContext | None, db, cfg):
    attempt = _own_attempt(db, auth, require_str(data, "attemptId"))
    _require_in_progress(attempt)
    assignment = _assignment_of(db, attempt)
    # A late submit is accepted and grades only what was saved in time.
    deadline = _deadline_at(attempt, assignment, db.get(Test, attempt.testId))
    late = deadline is not None and datetime.now(timezone.utc) > deadline

    now = iso_utc_now()
    existing = {
        r.questionId: r
        for r in db.execute(select(TestResponse).where(TestResponse.attemptId == attempt.attemptId)).scalars().all()
    }
    for q in _questions(db, attempt.testId):
        response = existing.get(q.questionId)
        if response is None:
            response = TestResponse(
                responseId=new_id("RESP"),
                attemptId=attempt.attemptId,
                questionId=q.questionId,
                answer="",
                selectedOptionsJson="[]",
                createdAt=now,
            )
            db.add(response)
        grade = grade_response(
            q.questionType,
            q.marks,
            selected_options=load_json_list(response.selectedOptionsJson),
            correct_options=load_json_list(q.correctOptionsJson),
        )
        response.marksAwarded = grade.marksAwarded
        response.isAutoGraded = grade.isAutoGraded
        response.explanation = grade.explanation
        response.updatedAt = now
    db.flush()

    attempt.status = "submitted"
    attempt.submittedAt = now
    assignment.status = "completed"
    assignment.updatedAt = now
    summary = recompute_attempt(db, attempt)

    append_audit(
        db,
        entityType="TEST_ATTEMPT",
        entityId=attempt.attemptId,
        action="TEST_ATTEMPT_SUBMIT",
        stageTag="TEST",
        actor=auth,
        fromState="in_progress",
        toState="submitted",
        meta={"percentage": summary["percentage"], "passed": summary["passed"], "late": late},
    )
    return {"attemptId": attempt.attemptId, "status": attempt.status, "submittedAt": now, "late": late, "summary": summary}


def proctoring_update(data, auth: RequestContext | None, db, cfg):
    attempt = _own_attempt(db, auth, require_str(data, "attemptId"))
    _require_in_progress(attempt)
    proctoring = data.get("proctoringData")
    if not isinstance(proctoring, dict):
        raise ApiError("BAD_REQUEST", "proctoringData must be an object", status=400)
    try:
        score = max(0, int(proctoring.get("violationScore") or data.get("violationScore") or 0))
    except (TypeError, ValueError) as e:
        raise ApiError("BAD_REQUEST", "violationScore must be an integer", status=400) from e

    attempt.proctoringDataJson = dump_json(proctoring, "{}")
    attempt.violationScore = score
    attempt.updatedAt = iso_utc_now()
    return {"attemptId": attempt.attemptId, "violationScore": score}


# --- results and marking ----------------------------------------------------


def _attempt_with_access(db, auth: RequestContext, attempt_id: str) -> tuple[TestAttempt, Application, Job | None]:
    attempt = db.get(TestAttempt, attempt_id)
    if not attempt:
        raise not_found("Test attempt")
    if auth.is_recruiter:
        app_row, job = require_application_access(db, auth, attempt.applicationId)
        return attempt, app_row, job
    if attempt.applicantId != auth.userId:
        raise not_found("Test attempt")
    return attempt, require_application(db, attempt.applicationId), None


def test_results_get(data, auth: RequestContext | None, db, cfg):
    attempt, app_row, job = _attempt_with_access(db, auth, require_str(data, "attemptId"))
    test = db.get(Test, attempt.testId)
    recruiter_view = job is not None
    if not recruiter_view and attempt.status != "submitted":
        raise ApiError("VALIDATION_FAILED", "Results are available after submission", status=400)

    rows = db.execute(
        select(TestResponse, TestQuestion)
        .join(TestQuestion, TestQuestion.questionId == TestResponse.questionId)
        .where(TestResponse.attemptId == attempt.attemptId)
        .order_by(TestQuestion.orderIndex.asc())
    ).all()
    summary = summarize([ScoredResponse(r.marksAwarded, q.marks) for r, q in rows], test.passingMarks)

    responses = []
    for r, q in rows:
        item = {
            "responseId": r.responseId,
            "question": question_to_dict(q, with_answers=recruiter_view),
            "answer": r.answer,
            "selectedOptions": load_json_list(r.selectedOptionsJson),
            "marksAwarded": r.marksAwarded,
            "isAutoGraded": bool(r.isAutoGraded),
            "explanation": r.explanation,
        }
        responses.append(item)

    out = {
        "attempt": {
            "id": attempt.attemptId,
            "status": attempt.status,
            "startedAt": attempt.startedAt,
            "submittedAt": attempt.submittedAt,
            "totalScore": attempt.totalScore,
            "percentage": attempt.percentage,
            "isPassed": bool(attempt.isPassed),
            "isEvaluated": bool(attempt.isEvaluated),
            "violationScore": attempt.violationScore,
        },
        "test": test_to_dict(test),
        "application": {"id": app_row.applicationId, "status": app_row.status},
        "responses": responses,
        "summary": summary.as_dict(),
    }
    if recruiter_view:
        out["attempt"]["proctoringData"] = load_json_dict(attempt.proctoringDataJson)
        out["application"]["candidateName"] = applicant_name(app_row, db.get(User, app_row.applicantId))
    return out


def _apply_mark(db, response: TestResponse, question: TestQuestion, raw: Any, *, reason: str, actor_id: str) -> dict[str, Any]:
    previous = float(response.marksAwarded or 0)
    new = clamp_mark(raw, question.marks)
    now = iso_utc_now()
    db.add(
        MarkAdjustment(
            responseId=response.responseId,
            attemptId=response.attemptId,
            previousMarks=previous,
            newMarks=new,
            reason=reason,
            adjustedBy=actor_id,
            adjustedAt=now,
        )
    )
    response.marksAwarded = new
    response.isAutoGraded = False
    response.updatedAt = now
    return {"responseId": response.responseId, "previousMarks": previous, "newMarks": new, "maxMarks": question.marks}


def _response_for_marking(db, auth: RequestContext, response_id: str) -> tuple[TestResponse, TestQuestion, TestAttempt]:
    response = db.get(TestResponse, response_id)
    if not response:
        raise not_found("Response")
    attempt, _app, _job = _attempt_with_access(db, auth, response.attemptId)
    if attempt.status != "submitted":
        raise ApiError("VALIDATION_FAILED", "Marks can be changed only after submission", status=400)
    question = db.get(TestQuestion, response.questionId)
    if not question:
        raise not_found("Question")
    return response, question, attempt


def test_marks_update(data, auth: RequestContext | None, db, cfg):
    response, question, attempt = _response_for_marking(db, auth, require_str(data, "responseId"))
    if "marks" not in data:
        raise ApiError("BAD_REQUEST", "Missing marks", status=400)

    result = _apply_mark(db, response, question, data.get("marks"), reason=opt_str(data, "reason"), actor_id=auth.userId)
    db.flush()
    summary = recompute_attempt(db, attempt)
    append_audit(
        db,
        entityType="TEST_RESPONSE",
        entityId=response.responseId,
        action="TEST_MARKS_UPDATE",
        stageTag="TEST",
        actor=auth,
        fromState=str(result["previousMarks"]),
        toState=str(result["newMarks"]),
        remark=opt_str(data, "reason"),
    )
    return {**result, "attemptId": attempt.attemptId, "summary": summary}


def _write_one_mark(item: dict[str, Any], actor_id: str) -> dict[str, Any]:
    """One bulk item in its own session and transaction."""
    response_id = str(item.get("responseId") or "")
    db = dbmod.SessionLocal()
    try:
        response = db.get(TestResponse, response_id)
        question = db.get(TestQuestion, response.questionId) if response else None
        if not response or not question:
            raise api_error("NOT_FOUND", "Response not found")
        result = _apply_mark(db, response, question, item.get("marks"), reason=str(item.get("reason") or ""), actor_id=actor_id)
        db.commit()
        return {"ok": True, "attemptId": response.attemptId, **result}
    except ApiError as e:
        db.rollback()
        return {"ok": False, "responseId": response_id, "error": {"code": e.code, "message": e.message}}
    except SQLAlchemyError:
        db.rollback()
        log.exception("bulk mark write failed response=%s", response_id)
        return {"ok": False, "responseId": response_id, "error": {"code": "INTERNAL", "message": "Database error"}}
    finally:
        db.close()


def test_marks_bulk_update(data, auth: RequestContext | None, db, cfg):
    items = data.get("items")
    if not isinstance(items, list) or not items:
        raise ApiError("BAD_REQUEST", "Missing items", status=400)
    default_reason = opt_str(data, "reason")

    prepared: list[dict[str, Any]] = []
    seen: set[str] = set()
    for it in items:
        if not isinstance(it, dict) or "marks" not in it:
            raise ApiError("BAD_REQUEST", "Each item needs responseId and marks", status=400)
        rid = str(it.get("responseId") or "").strip()
        if not rid:
            raise ApiError("BAD_REQUEST", "Each item needs responseId and marks", status=400)
        if rid in seen:
            raise ApiError("BAD_REQUEST", f"Duplicate responseId: {rid}", status=400)
        seen.add(rid)
        # Access is checked up front; only the writes run concurrently.
        _response_for_marking(db, auth, rid)
        prepared.append({"responseId": rid, "marks": it.get("marks"), "reason": str(it.get("reason") or default_reason)})

    with ThreadPoolExecutor(max_workers=min(cfg.BULK_MARKS_MAX_WORKERS, len(prepared))) as pool:
        results = list(pool.map(lambda it: _write_one_mark(it, auth.userId), prepared))

    touched = sorted({r["attemptId"] for r in results if r.get("ok")})
    summaries: dict[str, Any] = {}
    if touched:
        fresh = dbmod.SessionLocal()
        try:
            for attempt_id in touched:
                attempt = fresh.get(TestAttempt, attempt_id)
                if attempt is not None:
                    summaries[attempt_id] = recompute_attempt(fresh, attempt)
            append_audit(
                fresh,
                entityType="TEST_ATTEMPT",
                entityId=",".join(touched),
                action="TEST_MARKS_BULK_UPDATE",
                stageTag="TEST",
                actor=auth,
                meta={"items": len(prepared), "succeeded": sum(1 for r in results if r.get("ok"))},
            )
            fresh.commit()
        except SQLAlchemyError:
            fresh.rollback()
            raise
        finally:
            fresh.close()

    failed = [r for r in results if not r.get("ok")]
    out = {
        "results": results,
        "succeeded": len(results) - len(failed),
        "failed": len(failed),
        "attempts": summaries,
    }
    if failed:
        log.warning("bulk marks partial failure failed=%s of=%s", len(failed), len(results))
        raise ApiError("PARTIAL_FAILURE", f"{len(failed)} of {len(results)} mark updates failed", status=207, details=out)
    return out
