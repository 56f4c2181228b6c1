import pytest

from app import create_app
from config import TestConfig
from errors import UnauthenticatedError
from job_store import make_engine


class FakeLLM:
    """Stands in for LLMClient: returns canned text, records prompts."""

    def __init__(self, reply="", error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    def complete(self, prompt, *, temperature, max_tokens=None, json_mode=False):
        self.calls.append({"prompt": prompt, "temperature": temperature,
                           "max_tokens": max_tokens, "json_mode": json_mode})
        if self.error:
            raise self.error
        return self.reply


class TokenMapVerifier:
    """Tokens map straight to user ids; anything else is unauthenticated."""

    def __init__(self, tokens):
        self.tokens = tokens

    def resolve(self, authorization):
        token = (authorization or "").replace("Bearer ", "", 1)
        if token not in self.tokens:
            raise UnauthenticatedError()
        return self.tokens[token]


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    @property
    def ok(self):
        return 200 <= self.status_code < 300

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload

    def raise_for_status(self):
        import requests

        if not self.ok:
            raise requests.HTTPError(f"{self.status_code}")


class FakeSession:
    """Records every call; replies from queues keyed by HTTP verb."""

    def __init__(self, get=None, put=None, post=None):
        self.replies = {"get": list(get or []), "put": list(put or []), "post": list(post or [])}
        self.calls = []

    def _reply(self, verb, url, **kwargs):
        self.calls.append((verb, url, kwargs))
        queue = self.replies[verb]
        reply = queue.pop(0) if queue else FakeResponse(404, {"message": "Not Found"})
        if isinstance(reply, Exception):
            raise reply
        return reply

    def get(self, url, **kwargs):
        return self._reply("get", url, **kwargs)

    def put(self, url, **kwargs):
        return self._reply("put", url, **kwargs)

    def post(self, url, **kwargs):
        return self._reply("post", url, **kwargs)


ALICE = {"Authorization": "Bearer alice-token"}
BOB = {"Authorization": "Bearer bob-token"}


@pytest.fixture
def llm():
    return FakeLLM()


@pytest.fixture
def http():
    return FakeSession()


@pytest.fixture
def app(llm, http):
    return create_app(
        TestConfig,
        engine=make_engine("sqlite://"),
        llm=llm,
        http=http,
        verifier=TokenMapVerifier({"alice-token": "user_alice", "bob-token": "user_bob"}),
    )


@pytest.fixture
def client(app):
    return app.test_client()
