from __future__ import annotations

import base64

import pytest
from jose import jwt

from mpapps.auth.session import SessionError, SessionUser, decode_session_token, issue_session_token
from mpapps.auth.simulation import Simulation, decode_simulation, encode_simulation
from mpapps.core.config import settings


def _bearer(user) -> dict[str, str]:
    return {"Authorization": f"Bearer {issue_session_token(user.session)}"}


def test_session_token_round_trip_keeps_roles():
    user = SessionUser(sub="abc", user_id=5, email="a@example.org", roles=["All Staff"], expires_at=123.0)
    decoded = decode_session_token(issue_session_token(user))
    assert decoded == user


def test_session_token_hides_mp_tokens():
    user = SessionUser(sub="abc", access_token="mp-access-value", refresh_token="mp-refresh-value")
    token = issue_session_token(user)

    assert token.count(".") == 4
    for segment in token.split("."):
        padded = segment + "=" * (-len(segment) % 4)
        assert b"mp-refresh-value" not in base64.urlsafe_b64decode(padded)
    assert decode_session_token(token).refresh_token == "mp-refresh-value"


def test_plain_signed_session_is_rejected():
    signed = jwt.encode({"sub": "abc", "roles": ["Administrators"]}, settings.SESSION_SECRET, algorithm=settings.JWT_ALG)
    with pytest.raises(SessionError):
        decode_session_token(signed)


def test_missing_or_invalid_token_is_rejected(client):
    assert client.get("/auth/whoami").status_code == 401
    response = client.get("/auth/whoami", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid token"


def test_tampered_simulation_cookie_is_ignored():
    token = encode_simulation(Simulation(type="roles", admin_user_id="admin-sub", roles=["Staff"]))
    assert decode_simulation(token.rsplit(".", 1)[0] + ".bad-signature") is None
    assert decode_simulation(None) is None


def test_admin_role_simulation_changes_effective_roles(client, admin_user):
    headers = _bearer(admin_user)

    started = client.post("/admin/simulation/roles", json={"roles": ["Budgets - View", " "]}, headers=headers)
    assert started.status_code == 200
    assert settings.SIMULATION_COOKIE_NAME in started.cookies

    whoami = client.get("/auth/whoami", headers=headers).json()
    assert whoami["roles"] == ["Budgets - View"]
    assert whoami["real_roles"] == ["Administrators"]
    assert whoami["is_admin"] is True
    assert whoami["simulation"]["type"] == "roles"

    status = client.get("/admin/simulation/status", headers=headers).json()
    assert status == {"active": True, "type": "roles", "roles": ["Budgets - View"], "user": None}

    client.delete("/admin/simulation", headers=headers)
    client.cookies.clear()
    assert client.get("/auth/whoami", headers=headers).json()["simulation"] is None


def test_simulation_cookie_only_applies_to_issuing_admin(client, user_factory):
    other_admin = user_factory(["Administrators"], sub="other-admin")
    token = encode_simulation(Simulation(type="roles", admin_user_id="admin-sub", roles=["Staff"]))
    client.cookies.set(settings.SIMULATION_COOKIE_NAME, token)

    whoami = client.get("/auth/whoami", headers=_bearer(other_admin)).json()

    assert whoami["roles"] == ["Administrators"]
    assert whoami["simulation"] is None


def test_simulation_cookie_ignored_for_non_admin(client, staff_user):
    token = encode_simulation(Simulation(type="roles", admin_user_id=staff_user.session.sub, roles=["Administrators"]))
    client.cookies.set(settings.SIMULATION_COOKIE_NAME, token)

    whoami = client.get("/auth/whoami", headers=_bearer(staff_user)).json()

    assert whoami["roles"] == ["All Staff"]


def test_impersonation_swaps_contact(client, fake_mp, admin_user):
    fake_mp.on(
        "GET",
        "/tables/Contacts",
        [{"Contact_ID": 555, "First_Name": "Jo", "Last_Name": "Member", "Email_Address": "jo@example.org"}],
    )
    fake_mp.on("GET", "/tables/dp_Users", [{"User_GUID": "guid-555"}])
    headers = _bearer(admin_user)

    assert client.post("/admin/simulation/impersonate", json={"contact_id": 555}, headers=headers).status_code == 200

    whoami = client.get("/auth/whoami", headers=headers).json()
    assert whoami["contact_id"] == 555
    assert whoami["simulation"] == {"type": "impersonate", "roles": [], "contact_id": 555}

    status = client.get("/admin/simulation/status", headers=headers).json()
    assert status["active"] is True
    assert status["user"]["first_name"] == "Jo"
    assert status["user"]["user_guid"] == "guid-555"


def test_impersonation_of_unknown_contact_reports_inactive(client, fake_mp, admin_user):
    fake_mp.on("GET", "/tables/Contacts", [])
    headers = _bearer(admin_user)
    client.post("/admin/simulation/impersonate", json={"contact_id": 9}, headers=headers)

    assert client.get("/admin/simulation/status", headers=headers).json()["active"] is False


def test_simulation_endpoints_require_admin(client, staff_user):
    response = client.post("/admin/simulation/roles", json={"roles": ["Staff"]}, headers=_bearer(staff_user))
    assert response.status_code == 403


def test_app_simulation_flow(client, make_application, admin_user):
    application = make_application("counter", [{"role_name": "Ushers", "can_view": True}])
    headers = _bearer(admin_user)

    assert client.get("/admin/simulation/app/status", params={"application_id": application.id}, headers=headers).json() == {
        "active": False,
        "simulation": None,
    }
    assert client.post("/admin/simulation/app/enable", json={"application_id": application.id}, headers=headers).status_code == 200
    status = client.get("/admin/simulation/app/status", params={"application_id": application.id}, headers=headers).json()
    assert status["active"] is True
    assert status["simulation"]["user_email"] == "admin@example.org"

    set_cookie = client.post("/admin/simulation/app", json={"application_id": application.id, "roles": ["Ushers"]}, headers=headers)
    assert set_cookie.json()["message"] == "Simulating 1 role(s) for Counter"
    assert client.get("/admin/simulation/app", headers=headers).json() == {
        "active": True,
        "application_id": application.id,
        "roles": ["Ushers"],
    }

    roles = client.get("/admin/simulation/app/roles", params={"application_id": application.id}, headers=headers).json()
    assert roles == [{"role_name": "Ushers", "can_view": True, "can_edit": False, "can_delete": False}]

    assert client.post("/admin/simulation/app/disable", json={"application_id": application.id}, headers=headers).status_code == 200
    again = client.post("/admin/simulation/app/disable", json={"application_id": application.id}, headers=headers)
    assert again.status_code == 404
    assert again.json()["detail"] == "No active simulation found"


def test_app_simulation_unknown_application(client, admin_user):
    response = client.post("/admin/simulation/app", json={"application_id": 404, "roles": []}, headers=_bearer(admin_user))
    assert response.status_code == 404


def test_login_returns_authorize_url(client):
    response = client.get("/auth/login", params={"redirect_uri": "https://app.test/cb"})
    body = response.json()
    assert body["authorize_url"].startswith("https://mp.test/oauth/connect/authorize?")
    assert f"state={body['state']}" in body["authorize_url"]


def test_callback_issues_session_with_contact(client, fake_mp):
    fake_mp.on(
        "GET",
        "/oauth/connect/userinfo",
        {"sub": "guid-1", "email": "pat@example.org", "name": "Pat", "user_id": "42", "role": "All Staff"},
    )
    fake_mp.on("GET", "/tables/dp_Users", [{"User_GUID": "guid-1", "Contact_ID": 1001}])
    fake_mp.on("GET", "/tables/Contacts", [{"Contact_ID": 1001, "First_Name": "Pat"}])

    response = client.post("/auth/callback", json={"code": "abc", "redirect_uri": "https://app.test/cb"})

    assert response.status_code == 200
    session = decode_session_token(response.json()["access_token"])
    assert session.sub == "guid-1"
    assert session.user_id == 42
    assert session.contact_id == 1001
    assert session.roles == ["All Staff"]
    assert session.access_token == "service-token"


def test_callback_rejected_userinfo_is_401(client, fake_mp):
    import httpx

    fake_mp.on("GET", "/oauth/connect/userinfo", httpx.Response(401))
    response = client.post("/auth/callback", json={"code": "abc", "redirect_uri": "https://app.test/cb"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Sign-in failed"


def test_refresh_without_refresh_token_expires_session(client, user_factory):
    user = user_factory(["All Staff"], access_token="old", expires_at=1.0)
    response = client.post("/auth/refresh", headers=_bearer(user))
    assert response.status_code == 401
    assert response.json()["detail"] == "Session expired"


def test_refresh_exchanges_refresh_token(client, fake_mp, user_factory):
    user = user_factory(["All Staff"], access_token="old", refresh_token="refresh-1", expires_at=1.0)

    response = client.post("/auth/refresh", headers=_bearer(user))

    assert response.status_code == 200
    session = decode_session_token(response.json()["access_token"])
    assert session.access_token == "service-token"
    assert session.refresh_token == "refresh-1"
    assert fake_mp.token_requests[-1].content.startswith(b"grant_type=refresh_token")


def test_logout_clears_simulation_cookies(client):
    response = client.post("/auth/logout")
    assert response.status_code == 204
    cookies = response.headers.get_list("set-cookie")
    assert any(cookie.startswith(f"{settings.SIMULATION_COOKIE_NAME}=") for cookie in cookies)
    assert any(cookie.startswith(f"{settings.APP_SIMULATION_COOKIE_NAME}=") for cookie in cookies)
