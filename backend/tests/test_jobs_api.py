from conftest import ALICE, BOB


FULL_JOB = {
    "id": "job-1",
    "title": "Senior React Developer",
    "company": "Acme",
    "location": "Berlin",
    "salaryRange": "80k-95k EUR",
    "description": "Build dashboards.",
    "source": "LinkedIn",
    "detectedAt": "2026-10-01T09:00:00Z",
    "status": "Saved",
    "matchScore": 82,
    "requirements": ["React", "TypeScript"],
    "coverLetter": "Dear Hiring Manager, ...",
    "customizedResume": "Jane Doe - React",
    "notes": "referral from Sam",
    "logoUrl": "https://acme.example/logo.png",
    "applicationUrl": "https://acme.example/jobs/1",
}


def _jobs(client, headers=ALICE):
    resp = client.get("/api/jobs", headers=headers)
    assert resp.status_code == 200
    return resp.get_json()["jobs"]


def test_upsert_then_list_returns_every_supplied_field(client):
    resp = client.post("/api/jobs", json=FULL_JOB, headers=ALICE)
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["success"] is True
    assert body["job"] == FULL_JOB

    assert _jobs(client) == [FULL_JOB]


def test_omitted_fields_come_back_as_empty_values(client):
    client.post("/api/jobs", json={"id": "job-min", "title": "QA"}, headers=ALICE)
    (job,) = _jobs(client)
    assert job["title"] == "QA"
    assert job["company"] == ""
    assert job["location"] == ""
    assert job["salaryRange"] == ""
    assert job["requirements"] == []
    assert job["matchScore"] == 0
    assert job["status"] == "Detected"
    assert job["source"] == "Manual"
    assert job["coverLetter"] == ""
    assert job["customizedResume"] == ""
    assert job["notes"] == ""
    assert job["logoUrl"] == ""
    assert job["applicationUrl"] == ""
    assert job["detectedAt"]  # falls back to the row's creation time


def test_upsert_updates_existing_row(client):
    client.post("/api/jobs", json=FULL_JOB, headers=ALICE)
    changed = dict(FULL_JOB, status="Interview", matchScore=91, notes="")
    client.post("/api/jobs", json=changed, headers=ALICE)
    assert _jobs(client) == [changed]


def test_any_status_can_follow_any_other(client):
    client.post("/api/jobs", json={"id": "j", "status": "Offer"}, headers=ALICE)
    client.post("/api/jobs", json={"id": "j", "status": "Detected"}, headers=ALICE)
    assert _jobs(client)[0]["status"] == "Detected"


def test_list_is_newest_first_and_owner_scoped(client):
    client.post("/api/jobs", json={"id": "old"}, headers=ALICE)
    client.post("/api/jobs", json={"id": "new"}, headers=ALICE)
    client.post("/api/jobs", json={"id": "bobs"}, headers=BOB)
    assert [j["id"] for j in _jobs(client)] == ["new", "old"]
    assert [j["id"] for j in _jobs(client, BOB)] == ["bobs"]


def test_delete_removes_own_job(client):
    client.post("/api/jobs", json={"id": "j1"}, headers=ALICE)
    resp = client.delete("/api/jobs?id=j1", headers=ALICE)
    assert resp.status_code == 200
    assert resp.get_json() == {"success": True, "deleted": True}
    assert _jobs(client) == []


def test_delete_of_another_users_job_leaves_it(client):
    client.post("/api/jobs", json={"id": "alice-job"}, headers=ALICE)
    resp = client.delete("/api/jobs?id=alice-job", headers=BOB)
    assert resp.status_code == 200
    assert resp.get_json()["deleted"] is False
    assert [j["id"] for j in _jobs(client)] == ["alice-job"]


def test_upsert_of_another_users_id_does_not_touch_their_row(client):
    client.post("/api/jobs", json={"id": "shared", "title": "Mine"}, headers=ALICE)
    resp = client.post("/api/jobs", json={"id": "shared", "title": "Hijacked"}, headers=BOB)
    assert resp.status_code == 404
    assert _jobs(client)[0]["title"] == "Mine"
    assert _jobs(client, BOB) == []


def test_delete_without_id_is_bad_request(client):
    resp = client.delete("/api/jobs", headers=ALICE)
    assert resp.status_code == 400
    assert resp.get_json() == {"error": "Missing Job ID"}


def test_post_without_id_is_bad_request(client):
    resp = client.post("/api/jobs", json={"title": "no id"}, headers=ALICE)
    assert resp.status_code == 400
    assert resp.get_json() == {"error": "Invalid Job Payload"}


def test_post_with_unknown_status_is_bad_request(client):
    resp = client.post("/api/jobs", json={"id": "j", "status": "Ghosted"}, headers=ALICE)
    assert resp.status_code == 400


def test_post_with_non_list_requirements_is_bad_request(client):
    resp = client.post("/api/jobs", json={"id": "j", "requirements": "React"}, headers=ALICE)
    assert resp.status_code == 400


def test_missing_or_unknown_token_is_unauthorized(client):
    assert client.get("/api/jobs").status_code == 401
    resp = client.get("/api/jobs", headers={"Authorization": "Bearer nope"})
    assert resp.status_code == 401
    assert resp.get_json() == {"error": "Unauthorized"}


def test_unsupported_verb_is_405_json(client):
    resp = client.put("/api/jobs", json={"id": "j"}, headers=ALICE)
    assert resp.status_code == 405
    assert resp.get_json() == {"error": "Method Not Allowed"}


def test_preflight_is_empty_200_with_cors_headers(client):
    resp = client.options(
        "/api/jobs",
        headers={"Origin": "https://app.example", "Access-Control-Request-Method": "DELETE"},
    )
    assert resp.status_code == 200
    assert resp.data == b""
    assert resp.headers.get("Access-Control-Allow-Origin") in ("*", "https://app.example")
    assert "DELETE" in resp.headers.get("Access-Control-Allow-Methods", "")


def test_regular_responses_carry_cors_header(client):
    resp = client.get("/api/jobs", headers={**ALICE, "Origin": "https://app.example"})
    assert resp.headers.get("Access-Control-Allow-Origin") in ("*", "https://app.example")


def test_database_failure_is_generic_500(client, app, monkeypatch):
    store = app.extensions["jobflow"]["store"]

    def boom(user_id):
        raise RuntimeError("connection reset by peer")

    monkeypatch.setattr(store, "list_jobs", boom)
    resp = client.get("/api/jobs", headers=ALICE)
    assert resp.status_code == 500
    assert resp.get_json() == {"error": "Internal Server Error"}


def _post_raw(client, raw):
    return client.post("/api/jobs", data=raw, content_type="application/json", headers=ALICE)


def test_non_finite_match_score_is_bad_request(client):
    for raw in ('{"id": "j1", "matchScore": NaN}', '{"id": "j1", "matchScore": Infinity}',
                '{"id": "j1", "matchScore": -Infinity}'):
        resp = _post_raw(client, raw)
        assert resp.status_code == 400
        assert resp.get_json() == {"error": "matchScore must be a number"}
    assert _jobs(client) == []


def test_fractional_match_score_is_rejected_not_truncated(client):
    resp = client.post("/api/jobs", json={"id": "j2", "matchScore": 72.5}, headers=ALICE)
    assert resp.status_code == 400
    assert resp.get_json() == {"error": "matchScore must be a whole number"}
    assert _jobs(client) == []


def test_whole_float_match_score_is_stored_as_int(client):
    client.post("/api/jobs", json={"id": "j3", "matchScore": 72.0}, headers=ALICE)
    assert _jobs(client)[0]["matchScore"] == 72


def test_out_of_range_match_score_is_clamped(client):
    client.post("/api/jobs", json={"id": "hi", "matchScore": 140}, headers=ALICE)
    client.post("/api/jobs", json={"id": "lo", "matchScore": -3}, headers=ALICE)
    scores = {j["id"]: j["matchScore"] for j in _jobs(client)}
    assert scores == {"hi": 100, "lo": 0}
