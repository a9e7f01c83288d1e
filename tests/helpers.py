from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any


def api(client, action: str, data: dict | None = None, token: str | None = None):
    headers = {"Authorization": f"Bearer {token}"} if token else {}
    return client.post("/api", json={"action": action, "data": data or {}}, headers=headers)


def ok(res) -> Any:
    body = res.get_json()
    assert res.status_code == 200, body
    assert body["success"] is True, body
    return body["data"]


def error_code(res) -> str:
    body = res.get_json()
    assert body["success"] is False, body
    return body["error"]["code"]


def iso(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def now_utc() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


def create_org(client, email: str = "admin@acme.test", name: str = "Acme") -> dict:
    return ok(
        api(
            client,
            "ORG_CREATE",
            {"orgName": name, "email": email, "password": "password123", "firstName": "Ada", "lastName": "Admin"},
        )
    )


def add_recruiter(client, admin_token: str, email: str, role: str = "HR", first: str = "Hank") -> dict:
    ok(
        api(
            client,
            "USER_CREATE",
            {"email": email, "password": "password123", "firstName": first, "lastName": "Recruiter", "role": role},
            admin_token,
        )
    )
    return ok(api(client, "LOGIN", {"email": email, "password": "password123"}))


def signup_candidate(client, email: str = "cand@example.com", first: str = "Casey") -> dict:
    return ok(api(client, "SIGNUP", {"email": email, "password": "password123", "firstName": first, "lastName": "Candidate"}))


def create_job(client, token: str, **fields) -> dict:
    data = {
        "title": "Backend Engineer",
        "jobType": "Full-time",
        "experienceLevel": "Mid",
        "department": "Engineering",
        "requiredSkills": ["Python", "SQL"],
        "status": "Active",
    }
    data.update(fields)
    return ok(api(client, "JOB_CREATE", data, token))


def apply(client, token: str, job_id: str, **fields) -> dict:
    data = {"jobId": job_id, "applicationData": {"skills": ["Python"]}}
    data.update(fields)
    return ok(api(client, "APPLICATION_SUBMIT", data, token))


def pipeline(client):
    """An org with an active job and one candidate who applied."""
    admin = create_org(client)
    cand = signup_candidate(client)
    job = create_job(client, admin["access_token"])
    application = apply(client, cand["access_token"], job["id"])
    return {
        "admin": admin["access_token"],
        "admin_id": admin["user"]["id"],
        "candidate": cand["access_token"],
        "candidate_id": cand["user"]["id"],
        "job_id": job["id"],
        "application_id": application["applicationId"],
    }


def move(client, token: str, application_id: str, *statuses: str) -> None:
    for s in statuses:
        ok(api(client, "APPLICATION_STATUS_UPDATE", {"applicationId": application_id, "status": s}, token))


def create_test(client, token: str, **fields) -> dict:
    data = {
        "title": "Python basics",
        "durationMinutes": 30,
        "passingMarks": 50,
        "questions": [
            {
                "questionType": "mcq_single",
                "questionText": "2 + 2?",
                "options": ["3", "4"],
                "correctOptions": ["4"],
                "marks": 4,
            },
            {
                "questionType": "mcq_multiple",
                "questionText": "Immutable types?",
                "options": ["tuple", "list", "str", "dict"],
                "correctOptions": ["tuple", "str"],
                "marks": 4,
            },
            {"questionType": "text", "questionText": "Explain the GIL", "marks": 2},
        ],
    }
    data.update(fields)
    return ok(api(client, "TEST_CREATE", data, token))


def open_window(minutes_before: int = 5, length: int = 120) -> dict:
    start = now_utc() - timedelta(minutes=minutes_before)
    return {"startAt": iso(start), "endAt": iso(start + timedelta(minutes=length))}
