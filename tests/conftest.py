"""Pytest configuration and shared fixtures."""
import json
import os
import tempfile
from pathlib import Path

_TMP = Path(tempfile.mkdtemp(prefix="dm_chat_tests_"))
os.environ.setdefault("DM_CHAT_LOG_DIR", str(_TMP / "logs"))
os.environ.setdefault("DM_CHAT_STORAGE", str(_TMP / "client.json"))
os.environ["DM_CHAT_DATABASE_URL"] = "sqlite://"

import pytest  # noqa: E402
import requests  # noqa: E402

from dm_chat.client.api import APIClient  # noqa: E402
from dm_chat.client.session import Session  # noqa: E402
from dm_chat.client.storage import LocalStore  # noqa: E402

BASE_URL = "http://chat.test/api"


class FakeResponse:
    """Minimal stand-in for ``requests.Response``."""

    def __init__(self, payload=None, status_code=200, lines=None):
        self.status_code = status_code
        self.lines = list(lines or [])
        self.closed = False
        self.content = b"" if payload is None else json.dumps(payload).encode()

    def json(self):
        return json.loads(self.content)

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}")

    def iter_lines(self, decode_unicode=False):
        yield from self.lines

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class FakeHTTP:
    """Stands in for ``requests.Session``.

    Responses are registered per (method, path). The last registered response
    for a route is replayed once earlier ones are used up; an exception
    instance is raised instead of returned. Unknown routes raise
    ``requests.ConnectionError`` like an unreachable server.
    """

    def __init__(self):
        self.routes = {}
        self.calls = []
        self.closed = False

    def add(self, method, path, *responses):
        self.routes.setdefault((method.upper(), path), []).extend(responses)

    def request(self, method, url, **kwargs):
        path = url.split("/api", 1)[-1]
        self.calls.append((method.upper(), path, kwargs))
        queue = self.routes.get((method.upper(), path))
        if not queue:
            raise requests.ConnectionError(f"no route for {method} {path}")
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        return item

    def get(self, url, **kwargs):
        return self.request("GET", url, **kwargs)

    def close(self):
        self.closed = True

    def paths(self, method=None):
        return [p for m, p, _ in self.calls if method is None or m == method.upper()]


@pytest.fixture
def fake_http():
    return FakeHTTP()


@pytest.fixture
def store(tmp_path):
    """A local store backed by a temporary file."""
    return LocalStore(tmp_path / "client.json")


@pytest.fixture
def session():
    return Session(username="alice", token="tok-alice", user_id=1)


@pytest.fixture
def api(fake_http, session):
    return APIClient(BASE_URL, session=session, http=fake_http)


@pytest.fixture
def server():
    """A test client for the development server on a fresh in-memory database."""
    from fastapi.testclient import TestClient

    from dm_chat.server import auth
    from dm_chat.server.database import Base, engine
    from dm_chat.server.main import app

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    auth.TOKEN_STORE.clear()
    with TestClient(app) as client:
        yield client


@pytest.fixture
def register(server):
    """Sign a user up, log them in and return their bearer headers."""

    def _register(userid, password="secret"):
        assert server.post("/api/signup", json={"userid": userid, "password": password}).json()["success"] == 1
        token = server.post("/api/login", json={"userid": userid, "password": password}).json()["token"]
        return {"Authorization": f"Bearer {token}"}

    return _register
