import pytest
import requests

from app import create_app
from auth import DEV_USER_ID, TokenVerifier, bearer_token
from config import ProdConfig, TestConfig
from errors import ExternalServiceError, UnauthenticatedError
from job_store import make_engine

from conftest import FakeLLM, FakeResponse, FakeSession

VERIFY_URL = "https://auth.example/v1/tokens/verify"


def _verifier(*replies, dev_bypass=False):
    session = FakeSession(post=list(replies))
    return TokenVerifier("sk_test", VERIFY_URL, dev_bypass=dev_bypass, session=session), session


@pytest.mark.parametrize("header", [None, "", "Bearer", "Bearer ", "Basic abc", "token abc"])
def test_bearer_token_rejects_malformed_headers(header):
    assert bearer_token(header) is None


def test_verified_token_yields_sub():
    verifier, session = _verifier(FakeResponse(200, {"sub": "user_42", "sid": "sess_1"}))
    assert verifier.resolve("Bearer abc") == "user_42"

    (verb, url, kwargs) = session.calls[0]
    assert (verb, url) == ("post", VERIFY_URL)
    assert kwargs["headers"]["Authorization"] == "Bearer sk_test"
    assert kwargs["json"] == {"token": "abc"}


def test_missing_header_never_reaches_provider():
    verifier, session = _verifier()
    with pytest.raises(UnauthenticatedError):
        verifier.resolve(None)
    assert session.calls == []


def test_provider_rejection_is_unauthenticated():
    verifier, _ = _verifier(FakeResponse(401, {"errors": []}))
    with pytest.raises(UnauthenticatedError):
        verifier.resolve("Bearer expired")


def test_network_failure_is_unauthenticated():
    verifier, _ = _verifier(requests.ConnectionError("dns"))
    with pytest.raises(UnauthenticatedError):
        verifier.resolve("Bearer abc")


@pytest.mark.parametrize("payload", [{"user_id": "user_42"}, {"userId": "user_42"}, {"sub": ""}, ["user_42"]])
def test_out_of_contract_response_is_external_failure(payload):
    verifier, _ = _verifier(FakeResponse(200, payload))
    with pytest.raises(ExternalServiceError):
        verifier.resolve("Bearer abc")


def test_dev_bypass_ignores_header_entirely():
    verifier, session = _verifier(dev_bypass=True)
    assert verifier.resolve(None) == DEV_USER_ID
    assert verifier.resolve("garbage") == DEV_USER_ID
    assert session.calls == []


class DevBypassConfig(TestConfig):
    AUTH_DEV_BYPASS = True


class ProdTestConfig(ProdConfig):
    DATABASE_URL = "sqlite://"
    AUTH_SECRET_KEY = "sk_live"
    RATELIMIT_ENABLED = False


def test_dev_bypass_app_serves_requests_without_token():
    app = create_app(DevBypassConfig, engine=make_engine("sqlite://"), llm=FakeLLM(), http=FakeSession())
    client = app.test_client()
    resp = client.post("/api/jobs", json={"id": "dev-job"}, headers={"Authorization": "Bearer whatever"})
    assert resp.status_code == 200
    assert [j["id"] for j in client.get("/api/jobs").get_json()["jobs"]] == ["dev-job"]


def test_production_config_has_bypass_disabled():
    assert ProdConfig.AUTH_DEV_BYPASS is False
    http = FakeSession(post=[FakeResponse(401, {})])
    app = create_app(ProdTestConfig, engine=make_engine("sqlite://"), llm=FakeLLM(), http=http)
    app.extensions["jobflow"]["store"].create_schema()
    client = app.test_client()
    assert client.get("/api/jobs", base_url="https://localhost").status_code == 401


def test_production_app_refuses_bypass():
    class Misconfigured(ProdTestConfig):
        AUTH_DEV_BYPASS = True

    with pytest.raises(RuntimeError):
        create_app(Misconfigured, engine=make_engine("sqlite://"), llm=FakeLLM(), http=FakeSession())


def test_validate_required_secrets_rejects_bypass_in_prod(monkeypatch):
    from config import validate_required_secrets

    monkeypatch.setenv("ENV", "prod")
    monkeypatch.setenv("DATABASE_URL", "postgresql://db/jobflow")
    monkeypatch.setenv("AUTH_SECRET_KEY", "sk_live")
    monkeypatch.setenv("AUTH_DEV_BYPASS", "1")
    with pytest.raises(RuntimeError):
        validate_required_secrets()

    monkeypatch.delenv("AUTH_DEV_BYPASS")
    validate_required_secrets()
