import os

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# In-memory DB and fake upstream credentials for tests
os.environ["DATABASE_PATH"] = ":memory:"
os.environ["CMS_API_URL"] = "http://cms.test"
os.environ["PAYSTACK_SECRET_KEY"] = "sk_test_key"
os.environ["ONESIGNAL_APP_ID"] = "test-app"
os.environ["ONESIGNAL_REST_API_KEY"] = "test-rest-key"

from admin_portal.database import close_db, init_db
from admin_portal.main import app
from admin_portal.services.cms_client import CmsClient
from admin_portal.services.notifications import NotificationClient
from admin_portal.services.payout import PayoutOrchestrator
from admin_portal.services.paystack import PaystackClient
from admin_portal.services.sessions import SessionStore


class Upstream:
    """Scripted upstream HTTP service behind ``httpx.MockTransport``.

    Routes map ``(method, path)`` to a ``(status, json_body)`` pair or to a
    callable taking the ``httpx.Request``. Unknown routes answer 404.
    """

    def __init__(self):
        self.routes = {}
        self.requests: list[httpx.Request] = []

    def add(self, method, path, body=None, status=200):
        self.routes[(method, path)] = (status, body)

    def add_handler(self, method, path, handler):
        self.routes[(method, path)] = handler

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"error": {"message": "Not Found"}})
        if callable(route):
            return route(request)
        status, body = route
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def calls(self, method, path) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]


@pytest_asyncio.fixture
async def db():
    """Provide a fresh in-memory database for each test."""
    import admin_portal.database as db_mod

    if db_mod._db is not None:
        await db_mod.close_db()
    db_mod.DATABASE_PATH = ":memory:"

    await init_db()
    database = await db_mod.get_db()
    yield database
    await close_db()


@pytest.fixture
def cms_upstream():
    return Upstream()


@pytest.fixture
def paystack_upstream():
    return Upstream()


@pytest.fixture
def onesignal_upstream():
    return Upstream()


@pytest_asyncio.fixture
async def cms(cms_upstream):
    client = CmsClient(base_url="http://cms.test", transport=cms_upstream.transport())
    yield client
    await client.aclose()


@pytest_asyncio.fixture
async def paystack(paystack_upstream):
    client = PaystackClient(
        secret_key="sk_test_key",
        base_url="http://paystack.test",
        transport=paystack_upstream.transport(),
    )
    yield client
    await client.aclose()


@pytest_asyncio.fixture
async def notifier(onesignal_upstream):
    client = NotificationClient(
        app_id="test-app",
        api_key="test-rest-key",
        url="http://onesignal.test/api/v1/notifications",
        transport=onesignal_upstream.transport(),
    )
    yield client
    await client.aclose()


@pytest.fixture
def sessions():
    return SessionStore()


@pytest.fixture
def auth_headers(sessions):
    """Bearer header for a signed-in admin (user id 1)."""
    session = sessions.create(1)
    return {"Authorization": f"Bearer {session.token}"}


@pytest_asyncio.fixture
async def async_client(db, cms, paystack, notifier, sessions):
    """Async httpx client against the app, wired to the fake upstreams."""
    app.state.cms = cms
    app.state.paystack = paystack
    app.state.notifier = notifier
    app.state.sessions = sessions
    app.state.orchestrator = PayoutOrchestrator(paystack, cms)
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
