from __future__ import annotations

from datetime import timedelta

from helpers import add_recruiter, api, create_job, create_test, iso, now_utc, ok, open_window, pipeline


def test_org_dashboard_counts(app_client):
    _app, client = app_client
    p = pipeline(client)
    create_job(client, p["admin"], title="Designer", status="Draft")
    add_recruiter(client, p["admin"], "hr@acme.test")

    out = ok(api(client, "ORG_DASHBOARD", {}, p["admin"]))
    stats = out["stats"]
    assert stats["totalJobs"] == 2
    assert stats["jobsByStatus"] == {"Active": 1, "Draft": 1, "Closed": 0}
    assert stats["totalApplications"] == 1
    assert stats["applicationsByStatus"]["submitted"] == 1
    assert stats["applicationsByStatus"]["hired"] == 0
    assert stats["teamMembers"] == 2

    assert [a["id"] for a in out["recentApplications"]] == [p["application_id"]]
    assert out["recentApplications"][0]["candidateName"] == "Casey Candidate"
    assert out["recentApplications"][0]["jobTitle"] == "Backend Engineer"
    assert [j["title"] for j in out["recentJobs"]] == ["Designer", "Backend Engineer"]


def test_org_dashboard_only_shows_jobs_hr_can_see(app_client):
    _app, client = app_client
    p = pipeline(client)
    hr = add_recruiter(client, p["admin"], "hr@acme.test")

    out = ok(api(client, "ORG_DASHBOARD", {}, hr["access_token"]))
    assert out["stats"]["totalJobs"] == 0
    assert out["stats"]["totalApplications"] == 0
    assert out["recentApplications"] == []
    assert out["stats"]["teamMembers"] == 2


def test_candidate_dashboard(app_client):
    _app, client = app_client
    p = pipeline(client)
    other = create_job(client, p["admin"], title="Data Engineer")
    create_job(client, p["admin"], title="Hidden draft", status="Draft")

    test = create_test(client, p["admin"])
    ok(
        api(
            client,
            "TEST_ASSIGN",
            {"testId": test["id"], "applicationIds": [p["application_id"]], **open_window()},
            p["admin"],
        )
    )
    ok(
        api(
            client,
            "INTERVIEW_SCHEDULE",
            {
                "applicationId": p["application_id"],
                "scheduledAt": iso(now_utc() + timedelta(days=2)),
                "interviewers": [p["admin_id"]],
            },
            p["admin"],
        )
    )

    out = ok(api(client, "MY_DASHBOARD", {}, p["candidate"]))
    assert out["stats"]["totalApplications"] == 1
    assert out["stats"]["applicationsByStatus"]["interview_scheduled"] == 1
    assert out["stats"]["pendingTests"] == 1
    assert out["stats"]["upcomingInterviews"] == 1

    assert out["recentApplications"][0]["organizationName"] == "Acme"
    assert out["pendingTests"][0]["testTitle"] == "Python basics"
    assert out["upcomingInterviews"][0]["jobTitle"] == "Backend Engineer"
    # applied and draft jobs are not recommended
    assert [j["id"] for j in out["recommendedJobs"]] == [other["id"]]
    assert "assignedRecruiters" not in out["recommendedJobs"][0]


def test_dashboards_by_role(app_client):
    _app, client = app_client
    p = pipeline(client)
    assert api(client, "ORG_DASHBOARD", {}, p["candidate"]).status_code == 403
    assert api(client, "MY_DASHBOARD", {}, p["admin"]).status_code == 403

    res = client.get("/api/v1/dashboard/organization", headers={"Authorization": f"Bearer {p['admin']}"})
    assert res.status_code == 200
    assert res.get_json()["data"]["stats"]["totalJobs"] == 1
    res = client.get("/api/v1/dashboard/me", headers={"Authorization": f"Bearer {p['candidate']}"})
    assert res.get_json()["data"]["stats"]["totalApplications"] == 1
