from conftest import ALICE, FakeResponse


def test_init_db(app):
    result = app.test_cli_runner().invoke(args=["init-db"])
    assert result.exit_code == 0
    assert "tables created" in result.output


def test_import_links_from_virtual_workspace(app, client, llm, http):
    llm.reply = '{"title": "React Dev", "company": "Acme"}'
    result = app.test_cli_runner().invoke(args=["import-links", "--user", "user_alice"])
    assert result.exit_code == 0, result.output
    assert "imported 3 job(s) from workspace/jobs.txt" in result.output

    jobs = client.get("/api/jobs", headers=ALICE).get_json()["jobs"]
    assert len(jobs) == 3
    assert {j["source"] for j in jobs} == {"Imported Link"}
    assert {j["status"] for j in jobs} == {"Detected"}
    assert {j["title"] for j in jobs} == {"React Dev"}
    assert len({j["id"] for j in jobs}) == 3


def test_import_links_from_directory_cleans_urls(app, client, llm, http, tmp_path):
    (tmp_path / "jobs.txt").write_text(
        "# saved from newsletter\n\nhttps://jobs.example/1?utm_source=mail&id=1\n", encoding="utf-8"
    )
    http.replies["get"].append(FakeResponse(200, text="<h1>Dev</h1>"))
    llm.reply = '{"title": "Dev", "company": "Beta"}'

    result = app.test_cli_runner().invoke(args=["import-links", "--user", "user_alice", "--dir", str(tmp_path)])
    assert result.exit_code == 0, result.output

    (job,) = client.get("/api/jobs", headers=ALICE).get_json()["jobs"]
    assert job["applicationUrl"] == "https://jobs.example/1?id=1"
    assert job["company"] == "Beta"
    assert http.calls[0][1] == "https://jobs.example/1?id=1"


def test_import_links_missing_file(app, tmp_path):
    result = app.test_cli_runner().invoke(
        args=["import-links", "--user", "user_alice", "--dir", str(tmp_path), "--file", "links.txt"]
    )
    assert result.exit_code != 0
    assert "File not found: links.txt" in result.output


def test_import_links_undecodable_file(app, tmp_path):
    (tmp_path / "jobs.txt").write_bytes(b"\xff\xfehttps://x")
    result = app.test_cli_runner().invoke(args=["import-links", "--user", "user_alice", "--dir", str(tmp_path)])
    assert result.exit_code != 0
    assert "Cannot decode jobs.txt as UTF-8" in result.output
