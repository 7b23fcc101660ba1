"""
Tests end-to-end de /admin: invitaciones, equipo, auditoría y clínica.
"""

import pytest
from sqlalchemy import select

from app.config import get_settings
from app.models.audit_log import AuditLog
from app.models.user import UserRole

settings = get_settings()


async def _invite(client, api, email="nurse@clinic.com", role="receptionist", **extra):
    response = await client.post(
        f"{api}/admin/users/invite", json={"email": email, "role": role, **extra}
    )
    assert response.status_code == 200, response.text
    return response.json()["invite"]


def _cookie_header(client) -> dict[str, str]:
    token = client.cookies.get(settings.SESSION_COOKIE_NAME)
    return {"Cookie": f"{settings.SESSION_COOKIE_NAME}={token}"}


async def _register(client, api, email, password="secret1"):
    return await client.post(f"{api}/auth/register", json={"email": email, "password": password})


# ── Autorización ─────────────────────────────────────
@pytest.mark.asyncio
@pytest.mark.parametrize("method, path", [
    ("GET", "/admin/audit"),
    ("GET", "/admin/users"),
    ("GET", "/admin/clinic"),
    ("POST", "/admin/users/invite"),
])
async def test_admin_routes_require_session(client, api, method, path):
    response = await client.request(method, f"{api}{path}", json={})
    assert response.status_code == 401
    assert response.json() == {"error": "unauthorized"}


@pytest.mark.asyncio
async def test_admin_routes_forbid_other_roles(client, api, test_doctor):
    await client.post(f"{api}/auth/login-password", json={
        "email": "doctor@clinic.com", "password": "secret1",
    })
    response = await client.get(f"{api}/admin/audit")
    assert response.status_code == 403
    assert response.json() == {"error": "forbidden"}


# ── Invitaciones ─────────────────────────────────────
@pytest.mark.asyncio
async def test_invite_then_register_applies_role(admin_client, api, load_user):
    invite = await _invite(admin_client, api, expiresDays=14)
    assert invite["status"] == "pending"
    assert invite["role"] == "receptionist"

    admin = await load_user("admin@clinic.com")
    assert admin.clinic_id is not None
    assert invite["clinic_id"] == str(admin.clinic_id)

    response = await _register(admin_client, api, "nurse@clinic.com")
    assert response.json() == {"ok": True, "role": "receptionist"}

    nurse = await load_user("nurse@clinic.com")
    assert nurse.role == UserRole.RECEPTIONIST
    assert nurse.clinic_id == admin.clinic_id

    invites = (await admin_client.get(f"{api}/admin/invites")).json()["invites"]
    assert [i["status"] for i in invites] == ["accepted"]


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [
    {"email": "nurse@clinic.com", "role": "receptionist", "expiresDays": 0},
    {"email": "nurse@clinic.com", "role": "receptionist", "expiresDays": 61},
    {"email": "nurse@clinic.com", "role": "janitor"},
    {"email": "not-an-email", "role": "doctor"},
])
async def test_invite_invalid_input(admin_client, api, payload):
    response = await admin_client.post(f"{api}/admin/users/invite", json=payload)
    assert response.status_code == 400
    assert response.json() == {"error": "invalid_input"}


@pytest.mark.asyncio
async def test_revoked_invite_is_not_applied(admin_client, api, load_user):
    invite = await _invite(admin_client, api)

    response = await admin_client.post(f"{api}/admin/invites/{invite['id']}/revoke")
    assert response.json() == {"ok": True}

    response = await admin_client.post(f"{api}/admin/invites/{invite['id']}/revoke")
    assert response.status_code == 409
    assert response.json() == {"error": "invite_not_pending"}

    response = await _register(admin_client, api, "nurse@clinic.com")
    assert response.json()["role"] == "doctor"
    assert (await load_user("nurse@clinic.com")).clinic_id is None


@pytest.mark.asyncio
async def test_revoke_unknown_invite(admin_client, api):
    response = await admin_client.post(
        f"{api}/admin/invites/00000000-0000-0000-0000-000000000000/revoke"
    )
    assert response.status_code == 404
    assert response.json() == {"error": "not_found"}


# ── Equipo ───────────────────────────────────────────
@pytest.mark.asyncio
async def test_manage_team_member(admin_client, api, load_user):
    await _invite(admin_client, api)
    await _register(admin_client, api, "nurse@clinic.com")
    nurse = await load_user("nurse@clinic.com")

    users = (await admin_client.get(f"{api}/admin/users")).json()["users"]
    assert {u["email"] for u in users} == {"admin@clinic.com", "nurse@clinic.com"}

    response = await admin_client.patch(f"{api}/admin/users/{nurse.id}", json={"role": "doctor"})
    assert response.status_code == 200
    assert response.json()["user"]["role"] == "doctor"

    response = await admin_client.post(f"{api}/admin/users/{nurse.id}/reset-auth")
    assert response.json() == {"ok": True}

    response = await admin_client.delete(f"{api}/admin/users/{nurse.id}")
    assert response.json() == {"ok": True}
    assert await load_user("nurse@clinic.com") is None


@pytest.mark.asyncio
async def test_admin_cannot_demote_or_remove_self(admin_client, api, test_admin):
    response = await admin_client.patch(
        f"{api}/admin/users/{test_admin.id}", json={"role": "doctor"}
    )
    assert response.status_code == 400

    response = await admin_client.delete(f"{api}/admin/users/{test_admin.id}")
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_members_of_other_clinics_are_invisible(admin_client, api, test_doctor):
    response = await admin_client.patch(
        f"{api}/admin/users/{test_doctor.id}", json={"role": "receptionist"}
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_removed_user_loses_sessions(client, api, test_admin, load_user):
    await client.post(f"{api}/auth/login-password", json={
        "email": "admin@clinic.com", "password": "secret1",
    })
    await _invite(client, api, role="doctor")
    await _register(client, api, "nurse@clinic.com")
    nurse = await load_user("nurse@clinic.com")
    admin_cookie = _cookie_header(client)

    client.cookies.clear()
    await client.post(f"{api}/auth/login-password", json={
        "email": "nurse@clinic.com", "password": "secret1",
    })
    assert (await client.get(f"{api}/auth/me")).json()["user"]["email"] == "nurse@clinic.com"
    nurse_cookie = _cookie_header(client)

    client.cookies.clear()
    response = await client.delete(f"{api}/admin/users/{nurse.id}", headers=admin_cookie)
    assert response.json() == {"ok": True}

    response = await client.get(f"{api}/auth/me", headers=nurse_cookie)
    assert response.json() == {"user": None}


# ── Auditoría ────────────────────────────────────────
@pytest.mark.asyncio
async def test_audit_log_records_admin_activity(admin_client, api, audit_writer):
    await _invite(admin_client, api)
    await admin_client.get(f"{api}/admin/users")
    await audit_writer.drain()

    logs = (await admin_client.get(f"{api}/admin/audit")).json()["logs"]
    paths = [(log["method"], log["path"], log["status"]) for log in logs]
    assert ("GET", f"{api}/admin/users", 200) in paths
    assert ("POST", f"{api}/admin/users/invite", 200) in paths
    assert all(log["email"] == "admin@clinic.com" for log in logs)


@pytest.mark.asyncio
async def test_audit_records_failed_requests(client, api, audit_writer, db_session):
    await client.post(f"{api}/auth/login-password", json={"email": "x@y.com", "password": "nope12"})
    await audit_writer.drain()

    row = (await db_session.execute(select(AuditLog))).scalar_one()
    assert row.path == f"{api}/auth/login-password"
    assert row.status_code == 400
    assert row.user_id is None


@pytest.mark.asyncio
async def test_audit_captures_forwarded_ip_and_user_agent(client, api, audit_writer, db_session):
    await client.get(f"{api}/auth/me", headers={
        "X-Forwarded-For": "1.2.3.4, 10.0.0.1",
        "User-Agent": "clinic-tests/1.0",
    })
    await audit_writer.drain()

    row = (await db_session.execute(select(AuditLog))).scalar_one()
    assert row.ip_address == "1.2.3.4"
    assert row.user_agent == "clinic-tests/1.0"


@pytest.mark.asyncio
async def test_audit_falls_back_to_socket_address(client, api, audit_writer, db_session):
    await client.get(f"{api}/auth/me")
    await audit_writer.drain()

    row = (await db_session.execute(select(AuditLog))).scalar_one()
    # ASGITransport usa 127.0.0.1 como cliente por defecto
    assert row.ip_address == "127.0.0.1"


@pytest.mark.asyncio
async def test_audit_records_logout_actor(client, api, audit_writer, db_session, test_doctor):
    await client.post(f"{api}/auth/login-password", json={
        "email": test_doctor.email, "password": "secret1",
    })
    response = await client.post(f"{api}/auth/logout")
    assert response.json() == {"ok": True}
    await audit_writer.drain()

    row = (
        await db_session.execute(
            select(AuditLog).where(AuditLog.path == f"{api}/auth/logout")
        )
    ).scalar_one()
    assert row.user_id == test_doctor.id
    assert row.clinic_id == test_doctor.clinic_id


# ── Clínica ──────────────────────────────────────────
@pytest.mark.asyncio
async def test_clinic_settings(admin_client, api):
    clinic = (await admin_client.get(f"{api}/admin/clinic")).json()["clinic"]
    assert clinic["name"] == "My Clinic"
    assert clinic["contactEmail"] == "admin@clinic.com"
    assert "receptionist" in clinic["permissions"]

    response = await admin_client.put(f"{api}/admin/clinic", json={
        "name": "Clínica San Martín",
        "timings": {"mon": {"open": "08:00", "close": "18:00"}},
        "permissions": {"receptionist": ["appointments"]},
    })
    assert response.status_code == 200
    updated = response.json()["clinic"]
    assert updated["id"] == clinic["id"]
    assert updated["name"] == "Clínica San Martín"
    assert updated["timings"]["mon"]["open"] == "08:00"
    assert updated["permissions"]["receptionist"] == ["appointments"]

    response = await admin_client.put(f"{api}/admin/clinic", json={
        "permissions": {"receptionist": ["teleport"]},
    })
    assert response.status_code == 400
