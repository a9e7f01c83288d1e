from __future__ import annotations

from datetime import timedelta

from ats.utils.datetime import to_iso_utc
from helpers import add_recruiter, api, create_org, error_code, iso, move, now_utc, ok, pipeline


def _schedule(client, p, when, **fields):
    data = {
        "applicationId": p["application_id"],
        "scheduledAt": iso(when),
        "interviewers": [p["admin_id"]],
        "interviewType": "technical",
    }
    data.update(fields)
    return api(client, "INTERVIEW_SCHEDULE", data, p["admin"])


def test_schedule_moves_application(app_client):
    _app, client = app_client
    p = pipeline(client)
    when = now_utc() + timedelta(days=2)

    iv = ok(_schedule(client, p, when, meetingPlatform="Zoom"))
    assert iv["status"] == "scheduled"
    assert iv["meetingPlatform"] == "zoom"
    assert iv["interviewers"] == [{"id": p["admin_id"], "name": "Ada Admin"}]

    got = ok(api(client, "APPLICATION_GET", {"applicationId": p["application_id"]}, p["admin"]))
    assert got["status"] == "interview_scheduled"
    assert got["history"][-1]["notes"].startswith("Interview scheduled by Ada Admin. Type: technical")

    mine = ok(api(client, "MY_INTERVIEWS", {}, p["candidate"]))["items"]
    assert [i["id"] for i in mine] == [iv["id"]]
    assert mine[0]["jobTitle"] == "Backend Engineer"


def test_second_interview_keeps_status(app_client):
    _app, client = app_client
    p = pipeline(client)
    base = now_utc() + timedelta(days=2)
    ok(_schedule(client, p, base))
    ok(_schedule(client, p, base + timedelta(hours=3), interviewType="hr"))

    items = ok(api(client, "INTERVIEWS_FOR_APPLICATION", {"applicationId": p["application_id"]}, p["admin"]))["items"]
    assert [i["interviewType"] for i in items] == ["technical", "hr"]
    history = ok(api(client, "APPLICATION_STATUS_HISTORY", {"applicationId": p["application_id"]}, p["admin"]))["items"]
    assert [h["newStatus"] for h in history] == ["submitted", "interview_scheduled", "interview_scheduled"]


def test_duplicate_slot_conflicts(app_client):
    _app, client = app_client
    p = pipeline(client)
    when = now_utc() + timedelta(days=1)
    ok(_schedule(client, p, when))
    res = _schedule(client, p, when)
    assert res.status_code == 409
    assert error_code(res) == "CONFLICT"


def test_interviewers_must_belong_to_org(app_client):
    _app, client = app_client
    p = pipeline(client)
    outsider = create_org(client, email="admin@globex.test", name="Globex")
    res = _schedule(client, p, now_utc() + timedelta(days=1), interviewers=[outsider["user"]["id"]])
    assert res.status_code == 400
    assert res.get_json()["error"]["details"] == {"missing": [outsider["user"]["id"]]}


def test_schedule_refused_after_rejection(app_client):
    _app, client = app_client
    p = pipeline(client)
    move(client, p["admin"], p["application_id"], "rejected")
    res = _schedule(client, p, now_utc() + timedelta(days=1))
    assert res.status_code == 400
    assert error_code(res) == "VALIDATION_FAILED"


def test_completed_interview_moves_to_waiting(app_client):
    _app, client = app_client
    p = pipeline(client)
    iv = ok(_schedule(client, p, now_utc() + timedelta(days=1)))

    out = ok(api(client, "INTERVIEW_STATUS_UPDATE", {"interviewId": iv["id"], "status": "completed"}, p["admin"]))
    assert out == {"id": iv["id"], "status": "completed", "previousStatus": "scheduled", "applicationMoved": True}

    got = ok(api(client, "APPLICATION_GET", {"applicationId": p["application_id"]}, p["admin"]))
    assert got["status"] == "waiting_for_result"

    move(client, p["admin"], p["application_id"], "hired")

    res = api(
        client,
        "INTERVIEW_RESCHEDULE",
        {"interviewId": iv["id"], "scheduledAt": iso(now_utc() + timedelta(days=3))},
        p["admin"],
    )
    assert res.status_code == 400


def test_reschedule_writes_history(app_client):
    _app, client = app_client
    p = pipeline(client)
    first = now_utc() + timedelta(days=1)
    iv = ok(_schedule(client, p, first))
    later = first + timedelta(days=1)

    out = ok(
        api(
            client,
            "INTERVIEW_RESCHEDULE",
            {"interviewId": iv["id"], "scheduledAt": iso(later), "notes": "Panel unavailable"},
            p["admin"],
        )
    )
    assert out["scheduledAt"] == to_iso_utc(later)
    assert out["notes"] == "Rescheduled: Panel unavailable"

    history = ok(api(client, "APPLICATION_STATUS_HISTORY", {"applicationId": p["application_id"]}, p["admin"]))["items"]
    assert history[-1]["notes"].endswith("Reason: Panel unavailable")


def test_invalid_interview_status(app_client):
    _app, client = app_client
    p = pipeline(client)
    iv = ok(_schedule(client, p, now_utc() + timedelta(days=1)))
    res = api(client, "INTERVIEW_STATUS_UPDATE", {"interviewId": iv["id"], "status": "postponed"}, p["admin"])
    assert res.status_code == 400


def test_unassigned_hr_cannot_schedule(app_client):
    _app, client = app_client
    p = pipeline(client)
    hr = add_recruiter(client, p["admin"], "hr@acme.test")
    res = api(
        client,
        "INTERVIEW_SCHEDULE",
        {
            "applicationId": p["application_id"],
            "scheduledAt": iso(now_utc() + timedelta(days=1)),
            "interviewers": [hr["user"]["id"]],
        },
        hr["access_token"],
    )
    assert res.status_code == 403
