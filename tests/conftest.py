from __future__ import annotations

import json
import time
from collections.abc import Callable, Generator
from typing import Any

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from mpapps.auth.deps import CurrentUser, get_current_user, get_optional_user
from mpapps.auth.session import SessionUser
from mpapps.core.db import Base, get_db
from mpapps.main import app
from mpapps.ministry_platform.client import MinistryPlatformClient
from mpapps.ministry_platform.provider import MinistryPlatformProvider, get_provider
from mpapps.models.application import Application, AppPermission

SQLALCHEMY_TEST_URL = "sqlite+pysqlite:///:memory:"
engine = create_engine(
    SQLALCHEMY_TEST_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)

MP_BASE_URL = "https://mp.test/ministryplatformapi"
MP_OAUTH_URL = "https://mp.test/oauth"

Responder = Callable[[httpx.Request], Any]


class FakeMinistryPlatform:
    """Routes MinistryPlatform API calls to canned responses.

    Responses may be plain JSON values, ``httpx.Response`` objects or callables
    taking the request. Unrouted calls answer 404 like the real API.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Any] = {}
        self.requests: list[httpx.Request] = []
        self.token_requests: list[httpx.Request] = []
        self.token_delay = 0.0

    def on(self, method: str, path: str, response: Any) -> None:
        self.routes[(method.upper(), path)] = response

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method.upper() and self._api_path(r) == path]

    def last_json(self, method: str, path: str) -> Any:
        return json.loads(self.calls(method, path)[-1].content)

    @staticmethod
    def _api_path(request: httpx.Request) -> str:
        return request.url.path.removeprefix("/ministryplatformapi")

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/oauth/connect/token":
            self.token_requests.append(request)
            if self.token_delay:
                time.sleep(self.token_delay)
            return httpx.Response(200, json={"access_token": "service-token", "expires_in": 3600})

        self.requests.append(request)
        route = self.routes.get((request.method, self._api_path(request)))
        if route is None:
            return httpx.Response(404, json={"Message": "No route"})
        value = route(request) if callable(route) else route
        if isinstance(value, httpx.Response):
            return value
        return httpx.Response(200, json=value)

    def client(self, **kwargs: Any) -> MinistryPlatformClient:
        return MinistryPlatformClient(
            MP_BASE_URL,
            "client-id",
            "client-secret",
            oauth_url=MP_OAUTH_URL,
            transport=httpx.MockTransport(self.handler),
            **kwargs,
        )

    def provider(self) -> MinistryPlatformProvider:
        return MinistryPlatformProvider(self.client())


def override_get_db() -> Generator[Session, None, None]:
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="session", autouse=True)
def setup_database() -> Generator[None, None, None]:
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    session = TestingSessionLocal()
    try:
        yield session
        session.commit()
    finally:
        session.close()
        # Each test starts from empty tables.
        with engine.begin() as connection:
            for table in reversed(Base.metadata.sorted_tables):
                connection.execute(table.delete())


@pytest.fixture()
def fake_mp() -> FakeMinistryPlatform:
    return FakeMinistryPlatform()


@pytest.fixture()
def mp(fake_mp: FakeMinistryPlatform) -> MinistryPlatformProvider:
    return fake_mp.provider()


@pytest.fixture()
def client(db_session: Session, mp: MinistryPlatformProvider) -> Generator[TestClient, None, None]:
    app.dependency_overrides.clear()
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_provider] = lambda: mp
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def authorize(client: TestClient):
    def _apply(user: CurrentUser):
        app.dependency_overrides[get_current_user] = lambda: user
        app.dependency_overrides[get_optional_user] = lambda: user

    yield _apply
    app.dependency_overrides.pop(get_current_user, None)
    app.dependency_overrides.pop(get_optional_user, None)


def make_user(roles: list[str], **overrides: Any) -> CurrentUser:
    session = SessionUser(
        sub=overrides.pop("sub", "0f6a2f1e-1111-4c3b-9a55-000000000001"),
        user_id=overrides.pop("user_id", 42),
        contact_id=overrides.pop("contact_id", 1001),
        email=overrides.pop("email", "staff@example.org"),
        name=overrides.pop("name", "Pat Staff"),
        roles=roles,
        **overrides,
    )
    return CurrentUser(session=session)


@pytest.fixture()
def admin_user() -> CurrentUser:
    return make_user(["Administrators"], email="admin@example.org", sub="admin-sub")


@pytest.fixture()
def staff_user() -> CurrentUser:
    return make_user(["All Staff"])


@pytest.fixture()
def member_user() -> CurrentUser:
    return make_user([], email="member@example.org", sub="member-sub", contact_id=2002, user_id=77)


@pytest.fixture()
def make_application(db_session: Session):
    def _create(key: str, permissions: list[dict[str, Any]] | None = None) -> Application:
        application = Application(name=key.title(), key=key, route=f"/{key}")
        db_session.add(application)
        db_session.flush()
        for permission in permissions or []:
            db_session.add(AppPermission(application_id=application.id, **permission))
        db_session.commit()
        db_session.refresh(application)
        return application

    return _create


@pytest.fixture()
def user_factory():
    return make_user


BUDGET_APP_PERMISSIONS = [
    {"role_name": "Budgets - View", "can_view": True},
    {"role_name": "Budgets - Edit", "can_view": True, "can_edit": True},
    {"role_name": "All Staff", "can_view": True, "can_edit": True},
    {"role_name": "Budgets - Admin", "can_view": True, "can_edit": True, "can_delete": True},
]


@pytest.fixture()
def budgets_app(make_application) -> Application:
    return make_application("budgets", BUDGET_APP_PERMISSIONS)
