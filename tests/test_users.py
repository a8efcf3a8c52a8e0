"""Tests for profile endpoints and user administration."""

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from helpers import FakeMailer, grant, login_user, signup
from taskhub.core.security import hash_password
from taskhub.models.auth_session import AuthSession
from taskhub.models.user import Permission, User
from taskhub.models.user_otp import UserOtp

ALL_OFF = {
    "edit_user": False, "delete_user": False, "create_task": False,
    "edit_task": False, "delete_task": False, "edit_task_state": False,
}


# ── Own profile ─────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_routes_require_session(async_client: AsyncClient):
    resp = await async_client.post("/api/users/getUser", json={})
    assert resp.status_code == 401
    assert resp.json()["status"] == "error"


@pytest.mark.asyncio
async def test_get_user(async_client: AsyncClient, mailer: FakeMailer):
    token = await signup(async_client, mailer, "alice")
    resp = await async_client.post("/api/users/getUser", json={"cookie": token})
    assert resp.status_code == 200
    user = resp.json()["user"]
    assert user == {
        "user_id": "alice",
        "name": "alice",
        "power": 100000,
        "role": "New User",
        "email": "alice@example.com",
        "permissions": ALL_OFF,
    }


@pytest.mark.asyncio
async def test_rename_user(async_client: AsyncClient, mailer: FakeMailer, db_session: AsyncSession):
    token = await signup(async_client, mailer, "alice")

    resp = await async_client.post("/api/users/renameUser", json={"cookie": token, "newName": "Alice A."})
    assert resp.status_code == 200
    assert (await db_session.get(User, "alice")).name == "Alice A."

    resp = await async_client.post("/api/users/renameUser", json={"cookie": token, "newName": "   "})
    assert resp.status_code == 400

    resp = await async_client.post("/api/users/renameUser", json={"cookie": token, "newName": "x" * 46})
    assert resp.status_code == 400


# ── Email change ────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_email_change_flow(async_client: AsyncClient, mailer: FakeMailer, db_session: AsyncSession):
    token = await signup(async_client, mailer, "alice")

    resp = await async_client.post(
        "/api/users/emailChange", json={"cookie": token, "newEmail": "new@example.com"}
    )
    assert resp.status_code == 200
    assert resp.json()["message"] == "OTP has been sent to new@example.com"
    assert mailer.sent[-1][0] == "new@example.com"

    resp = await async_client.post("/api/users/verifyEmailOTP", json={"cookie": token, "otp": "000000"})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Invalid or expired OTP."

    resp = await async_client.post(
        "/api/users/verifyEmailOTP", json={"cookie": token, "otp": mailer.last_otp("new@example.com")}
    )
    assert resp.status_code == 200
    assert (await db_session.get(User, "alice")).email == "new@example.com"
    assert await db_session.get(UserOtp, "alice") is None


@pytest.mark.asyncio
async def test_email_change_rejects_taken_address(async_client: AsyncClient, mailer: FakeMailer):
    await signup(async_client, mailer, "bob")
    token = await signup(async_client, mailer, "alice")
    resp = await async_client.post(
        "/api/users/emailChange", json={"cookie": token, "newEmail": "bob@example.com"}
    )
    assert resp.status_code == 400


# ── Password change ─────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_password_change_flow(async_client: AsyncClient, mailer: FakeMailer, db_session: AsyncSession):
    token = await signup(async_client, mailer, "alice")

    resp = await async_client.post("/api/users/passwordChange", json={
        "cookie": token,
        "currentPassword": "pw12345678",
        "newPassword": "newpass123",
        "confirmPassword": "newpass123",
    })
    assert resp.status_code == 200
    assert resp.json()["message"] == "An OTP has been sent to al****@example.com"

    # Old password still works until the OTP is verified
    assert (await db_session.get(User, "alice")).password_hash == hash_password("pw12345678")

    resp = await async_client.post(
        "/api/users/verifyPasswordOTP", json={"cookie": token, "otp": mailer.last_otp()}
    )
    assert resp.status_code == 200

    await login_user(async_client, mailer, "alice", "newpass123")
    resp = await async_client.post("/api/auth/login", json={"username": "alice", "password": "pw12345678"})
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_password_change_validation(async_client: AsyncClient, mailer: FakeMailer):
    token = await signup(async_client, mailer, "alice")
    base = {"cookie": token, "currentPassword": "pw12345678"}

    resp = await async_client.post("/api/users/passwordChange", json={
        **base, "newPassword": "newpass123", "confirmPassword": "newpass124",
    })
    assert resp.status_code == 400
    assert "do not match" in resp.json()["message"]

    resp = await async_client.post("/api/users/passwordChange", json={
        **base, "newPassword": "short", "confirmPassword": "short",
    })
    assert resp.status_code == 400
    assert "between 8 and 36" in resp.json()["message"]

    resp = await async_client.post("/api/users/passwordChange", json={
        "cookie": token, "currentPassword": "wrong-one",
        "newPassword": "newpass123", "confirmPassword": "newpass123",
    })
    assert resp.status_code == 400
    assert resp.json()["message"] == "Current password is incorrect."


@pytest.mark.asyncio
async def test_login_otp_cannot_confirm_password_change(async_client: AsyncClient, mailer: FakeMailer):
    token = await signup(async_client, mailer, "alice")
    await async_client.post("/api/auth/login", json={"username": "alice", "password": "pw12345678"})
    resp = await async_client.post(
        "/api/users/verifyPasswordOTP", json={"cookie": token, "otp": mailer.last_otp()}
    )
    assert resp.status_code == 400


# ── Lookup ──────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_search_and_get_by_id(async_client: AsyncClient, mailer: FakeMailer):
    await signup(async_client, mailer, "bob")
    await signup(async_client, mailer, "bobby")
    token = await signup(async_client, mailer, "alice")

    resp = await async_client.post("/api/users/searchUsers", json={"cookie": token, "search": "bob"})
    assert resp.status_code == 200
    assert [u["user_id"] for u in resp.json()["users"]] == ["bob", "bobby"]

    resp = await async_client.post("/api/users/getUserbyId", json={"cookie": token, "user_id": "bob"})
    assert resp.status_code == 200
    assert resp.json()["user"]["email"] == "bob@example.com"

    resp = await async_client.post("/api/users/getUserbyId", json={"cookie": token, "user_id": "zed"})
    assert resp.status_code == 404


# ── Administration ─────────────────────────────────────────────────
def _update(token: str, user_id: str, power: int, **flags) -> dict:
    return {
        "cookie": token,
        "targetUser": {
            "user_id": user_id,
            "name": user_id.title(),
            "power": power,
            "role": "Member",
            "permissions": {**ALL_OFF, **flags},
        },
    }


@pytest.mark.asyncio
async def test_update_user_requires_capability(async_client: AsyncClient, mailer: FakeMailer):
    await signup(async_client, mailer, "bob")
    token = await signup(async_client, mailer, "alice")
    resp = await async_client.post("/api/users/updateUser", json=_update(token, "bob", 50))
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_update_user_power_hierarchy(
    async_client: AsyncClient, mailer: FakeMailer, db_session: AsyncSession
):
    await signup(async_client, mailer, "senior")
    await signup(async_client, mailer, "junior")
    token = await signup(async_client, mailer, "manager")
    await grant(db_session, "manager", "edit_user", power=10)
    await grant(db_session, "junior", power=20)
    await grant(db_session, "senior", power=5)

    # Cannot act on a user with more authority
    resp = await async_client.post("/api/users/updateUser", json=_update(token, "senior", 50))
    assert resp.status_code == 403

    # Cannot lift a user above one's own rank
    resp = await async_client.post("/api/users/updateUser", json=_update(token, "junior", 5))
    assert resp.status_code == 403

    # Cannot edit oneself
    resp = await async_client.post("/api/users/updateUser", json=_update(token, "manager", 10))
    assert resp.status_code == 403

    resp = await async_client.post("/api/users/updateUser", json=_update(token, "ghost", 50))
    assert resp.status_code == 404

    resp = await async_client.post(
        "/api/users/updateUser", json=_update(token, "junior", 15, edit_task=True)
    )
    assert resp.status_code == 200

    db_session.expire_all()
    junior = await db_session.get(User, "junior")
    assert (junior.name, junior.power, junior.role) == ("Junior", 15, "Member")
    permission = await db_session.get(Permission, "junior")
    assert permission.edit_task and not permission.edit_user


@pytest.mark.asyncio
async def test_delete_user(async_client: AsyncClient, mailer: FakeMailer, db_session: AsyncSession):
    await signup(async_client, mailer, "senior")
    await signup(async_client, mailer, "junior")
    token = await signup(async_client, mailer, "manager")
    await grant(db_session, "manager", "delete_user", power=10)
    await grant(db_session, "junior", power=20)
    await grant(db_session, "senior", power=5)

    resp = await async_client.post("/api/users/deleteUser", json={"cookie": token, "targetUser": "senior"})
    assert resp.status_code == 403
    resp = await async_client.post("/api/users/deleteUser", json={"cookie": token, "targetUser": "manager"})
    assert resp.status_code == 403
    resp = await async_client.post("/api/users/deleteUser", json={"cookie": token, "targetUser": "ghost"})
    assert resp.status_code == 404

    resp = await async_client.post("/api/users/deleteUser", json={"cookie": token, "targetUser": "junior"})
    assert resp.status_code == 200
    assert resp.json()["message"] == "User with ID junior deleted successfully."

    db_session.expire_all()
    assert await db_session.get(User, "junior") is None
    assert await db_session.get(Permission, "junior") is None
    sessions = await db_session.execute(select(AuthSession).where(AuthSession.user_id == "junior"))
    assert sessions.scalars().all() == []


@pytest.mark.asyncio
async def test_email_otp_accepted_as_json_number(
    async_client: AsyncClient, mailer: FakeMailer, db_session: AsyncSession
):
    token = await signup(async_client, mailer, "alice")
    await async_client.post("/api/users/emailChange", json={"cookie": token, "newEmail": "new@example.com"})
    resp = await async_client.post(
        "/api/users/verifyEmailOTP", json={"cookie": token, "otp": int(mailer.last_otp())}
    )
    assert resp.status_code == 200
    assert (await db_session.get(User, "alice")).email == "new@example.com"


@pytest.mark.asyncio
async def test_email_change_mail_failure_keeps_previous_challenge(
    async_client: AsyncClient, mailer: FakeMailer, db_session: AsyncSession
):
    token = await signup(async_client, mailer, "alice")
    await async_client.post("/api/users/emailChange", json={"cookie": token, "newEmail": "first@example.com"})
    code = mailer.last_otp()

    mailer.fail = True
    resp = await async_client.post(
        "/api/users/emailChange", json={"cookie": token, "newEmail": "second@example.com"}
    )
    assert resp.status_code == 500

    row = await db_session.get(UserOtp, "alice")
    assert (row.otp, row.state, row.email) == (code, "Email Change", "first@example.com")


@pytest.mark.asyncio
async def test_password_change_mail_failure_keeps_previous_challenge(
    async_client: AsyncClient, mailer: FakeMailer, db_session: AsyncSession
):
    token = await signup(async_client, mailer, "alice")
    request = {
        "cookie": token,
        "currentPassword": "pw12345678",
        "newPassword": "newpass123",
        "confirmPassword": "newpass123",
    }
    await async_client.post("/api/users/passwordChange", json=request)
    code = mailer.last_otp()

    mailer.fail = True
    resp = await async_client.post(
        "/api/users/passwordChange",
        json={**request, "newPassword": "other-pass9", "confirmPassword": "other-pass9"},
    )
    assert resp.status_code == 500

    row = await db_session.get(UserOtp, "alice")
    assert (row.otp, row.state, row.password) == (code, "Password Change", "newpass123")
