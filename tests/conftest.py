"""
LensDesk Test Configuration

Shared fixtures: an in-memory Redis double, a scripted upstream API behind
httpx.MockTransport, sample users/repairs/appointments and a TestClient
with the cache, submit guard and current user overridden.
"""
import json
import re
from datetime import datetime
from zoneinfo import ZoneInfo

import httpx
import pytest
from fastapi.testclient import TestClient

from lensdesk.auth import AuthUser, get_current_user
from lensdesk.cache import QueryCache, get_query_cache
from lensdesk.main import app
from lensdesk.submit_guard import SubmitGuard, get_submit_guard
from lensdesk.upstream import UpstreamClient

TZ = ZoneInfo("Europe/Amsterdam")


# =============================================================================
# DOUBLES
# =============================================================================


class FakeRedis:
    """The subset of redis.Redis used by the query cache and submit guard"""

    def __init__(self):
        self.store = {}

    def ping(self):
        return True

    def get(self, key):
        return self.store.get(key)

    def setex(self, key, ttl, value):
        self.store[key] = value
        return True

    def set(self, key, value, nx=False, ex=None):
        if nx and key in self.store:
            return None
        self.store[key] = value
        return True

    def delete(self, *keys):
        return sum(1 for key in keys if self.store.pop(key, None) is not None)

    def scan_iter(self, match=None):
        # Only trailing-* patterns are used; strip the glob escapes
        prefix = re.sub(r"\\(.)", r"\1", match[:-1])
        return [key for key in list(self.store) if key.startswith(prefix)]


class UpstreamStub:
    """Scripted upstream REST API; records every request it receives"""

    def __init__(self):
        self.routes = {}
        self.requests = []

    def add(self, method, path, body=None, status=200, content=None, headers=None):
        self.routes[(method, path)] = (status, body, content, headers)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        if key not in self.routes:
            return httpx.Response(404, json={"error": f"No route for {key[0]} {key[1]}"})
        status, body, content, headers = self.routes[key]
        if callable(body):
            return body(request)
        if content is not None:
            return httpx.Response(status, content=content, headers=headers)
        if body is None:
            return httpx.Response(status, headers=headers)
        return httpx.Response(status, json=body, headers=headers)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def calls(self, method, path):
        return [r for r in self.requests if r.method == method and r.url.path == path]

    @staticmethod
    def json(request: httpx.Request):
        return json.loads(request.content)


# =============================================================================
# FIXTURES: Infrastructure
# =============================================================================


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def cache(fake_redis):
    return QueryCache(client_factory=lambda: fake_redis)


@pytest.fixture
def guard(fake_redis):
    return SubmitGuard(client_factory=lambda: fake_redis)


@pytest.fixture
def upstream_stub():
    return UpstreamStub()


@pytest.fixture
def upstream(upstream_stub):
    return UpstreamClient(transport=upstream_stub.transport())


# =============================================================================
# FIXTURES: Users
# =============================================================================


@pytest.fixture
def admin_user():
    return AuthUser(id="u-admin", email="anna@lensdesk.nl", role="ADMIN", firstName="Anna", lastName="de Vries")


@pytest.fixture
def technician_user():
    return AuthUser(id="u-tech", email="tom@lensdesk.nl", role="TECHNICUS", firstName="Tom", lastName="Bakker")


@pytest.fixture
def support_user():
    return AuthUser(id="u-support", email="sara@lensdesk.nl", role="SUPPORT", firstName="Sara")


@pytest.fixture
def current_user(admin_user):
    return admin_user


@pytest.fixture
def sample_users():
    return [
        {"id": "u-admin", "username": "anna", "firstName": "Anna", "lastName": "de Vries", "role": "ADMIN"},
        {"id": "u-tech", "username": "tom", "firstName": "Tom", "lastName": "Bakker", "role": "TECHNICUS"},
        {"id": "u-tech2", "username": "kees", "firstName": None, "lastName": None, "role": "TECHNICUS"},
        {"id": "u-support", "username": "sara", "firstName": "Sara", "lastName": "", "role": "SUPPORT"},
    ]


# =============================================================================
# FIXTURES: Sample Data
# =============================================================================


@pytest.fixture
def sample_repairs():
    return [
        {
            "id": "r1",
            "title": "Autofocus defect 24-70mm",
            "status": "completed",
            "priority": "high",
            "issueCategory": "Lensdefect - autofocus werkt niet",
            "assignedUserId": "u-tech",
            "createdAt": "2026-10-01T08:00:00.000Z",
            "updatedAt": "2026-10-05T08:00:00.000Z",
        },
        {
            "id": "r2",
            "title": "Sluiter vervangen",
            "status": "returned",
            "priority": "medium",
            "issueCategory": "Camera - sluiter defect",
            "assignedUserId": "u-tech",
            "createdAt": "2026-10-02T08:00:00.000Z",
            "updatedAt": "2026-10-04T08:00:00.000Z",
        },
        {
            "id": "r3",
            "title": "Sensor reinigen",
            "status": "diagnosing",
            "priority": "urgent",
            "issueCategory": "Lensdefect - autofocus werkt niet",
            "assignedUserId": "u-tech2",
            "slaDeadline": "2026-10-10T12:00:00.000Z",
            "createdAt": "2026-10-03T08:00:00.000Z",
            "updatedAt": "2026-10-03T08:00:00.000Z",
        },
        {
            "id": "r4",
            "title": "Display vervangen",
            "status": "canceled",
            "priority": "urgent",
            "issueCategory": "Camera - display defect",
            "slaDeadline": "2026-10-01T12:00:00.000Z",
            "createdAt": "2026-09-20T08:00:00.000Z",
        },
        {
            "id": "r5",
            "title": "Diafragma vastgelopen",
            "status": "new",
            "priority": "low",
            "slaDeadline": "2026-12-01T12:00:00.000Z",
            "photos": ["https://files.example/r5/a.jpg", "https://files.example/undefined"],
            "createdAt": "2026-10-10T08:00:00.000Z",
        },
    ]


@pytest.fixture
def sample_appointments():
    return [
        {
            "id": "a1",
            "title": "Intake Canon R5",
            "type": "afspraak",
            "startTime": datetime(2026, 10, 14, 9, 0, tzinfo=TZ).isoformat(),
            "endTime": datetime(2026, 10, 14, 10, 0, tzinfo=TZ).isoformat(),
        },
        {
            "id": "a2",
            "title": "Teamoverleg",
            "type": "intern",
            "startTime": datetime(2026, 10, 15, 13, 0, tzinfo=TZ).isoformat(),
            "endTime": datetime(2026, 10, 15, 14, 30, tzinfo=TZ).isoformat(),
        },
        {
            "id": "a3",
            "title": "Kalibratie",
            "type": "taak",
            "startTime": datetime(2026, 10, 13, 18, 0, tzinfo=TZ).isoformat(),
            "endTime": datetime(2026, 10, 15, 11, 0, tzinfo=TZ).isoformat(),
        },
    ]


# =============================================================================
# FIXTURES: App
# =============================================================================


@pytest.fixture
def client(upstream_stub, cache, guard, current_user):
    """TestClient signed in as `current_user`, talking to the upstream stub"""
    app.dependency_overrides[get_query_cache] = lambda: cache
    app.dependency_overrides[get_submit_guard] = lambda: guard
    app.dependency_overrides[get_current_user] = lambda: current_user
    app.state.upstream_transport = upstream_stub.transport()
    yield TestClient(app)
    app.dependency_overrides.clear()
    app.state.upstream_transport = None


@pytest.fixture
def anonymous_client(upstream_stub, cache, guard):
    """TestClient that resolves the user through the upstream session"""
    app.dependency_overrides[get_query_cache] = lambda: cache
    app.dependency_overrides[get_submit_guard] = lambda: guard
    app.state.upstream_transport = upstream_stub.transport()
    yield TestClient(app)
    app.dependency_overrides.clear()
    app.state.upstream_transport = None
