"""Flow helpers shared by the API tests."""

from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.core.exceptions import MailDeliveryError
from taskhub.core.mail import Mailer
from taskhub.models.user import Permission, User

PASSWORD = "pw12345678"


class FakeMailer(Mailer):
    """Records every message; set ``fail = True`` to simulate an SMTP outage."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, str]] = []
        self.fail = False

    async def send(self, to: str, subject: str, body: str) -> None:
        if self.fail:
            raise MailDeliveryError()
        self.sent.append((to, subject, body))

    def last_otp(self, to: str | None = None) -> str:
        for addr, _subject, body in reversed(self.sent):
            if to is None or addr == to:
                return body.rsplit(" ", 1)[-1]
        raise AssertionError(f"no mail sent to {to}")


# ── Flow helpers ────────────────────────────────────────────────────
async def register_user(
    client: AsyncClient,
    mailer: FakeMailer,
    username: str,
    email: str | None = None,
    password: str = PASSWORD,
) -> None:
    email = email or f"{username}@example.com"
    resp = await client.post(
        "/api/auth/register",
        json={"username": username, "email": email, "password": password},
    )
    assert resp.status_code == 200, resp.text
    resp = await client.post(
        "/api/auth/verifyOTP", json={"username": username, "otp": mailer.last_otp(email)}
    )
    assert resp.status_code == 200, resp.text


async def login_user(
    client: AsyncClient,
    mailer: FakeMailer,
    username: str,
    password: str = PASSWORD,
) -> str:
    """Log in through both steps and return the encrypted session token."""
    resp = await client.post("/api/auth/login", json={"username": username, "password": password})
    assert resp.status_code == 200, resp.text
    resp = await client.post(
        "/api/auth/verifyLoginOTP", json={"username": username, "otp": mailer.last_otp()}
    )
    assert resp.status_code == 200, resp.text
    # Tests authenticate through the body field, not the cookie jar
    client.cookies.clear()
    return resp.json()["cookie"]


async def signup(client: AsyncClient, mailer: FakeMailer, username: str, **kwargs) -> str:
    await register_user(client, mailer, username, **kwargs)
    return await login_user(client, mailer, username, kwargs.get("password", PASSWORD))


async def grant(
    db: AsyncSession,
    user_id: str,
    *flags: str,
    power: int | None = None,
) -> None:
    """Set capability flags (and optionally power) directly in the database."""
    db.expire_all()
    permission = await db.get(Permission, user_id)
    for flag in flags:
        setattr(permission, flag, True)
    if power is not None:
        user = await db.get(User, user_id)
        user.power = power
    await db.commit()
