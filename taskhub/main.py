"""
TaskHub — Application entry point.

This is the **only** file that assembles the app.  All business logic
lives in the `api/`, `services/`, `models/`, and `core/` packages.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from taskhub.api.api import api_router
from taskhub.api.endpoints.auth import limiter
from taskhub.core.config import settings
from taskhub.core.exceptions import register_exception_handlers
from taskhub.core.security import hash_password
from taskhub.db.base import Base
from taskhub.db.session import async_session_factory, engine

# Ensure all models are imported so metadata.create_all can see them
from taskhub.models.auth_session import AuthSession  # noqa: F401
from taskhub.models.task import Task, TaskActivity, UserTaskMap  # noqa: F401
from taskhub.models.user import Permission, User
from taskhub.models.user_otp import UserOtp  # noqa: F401
from taskhub.services.permissions import CAPABILITIES

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


async def seed_admin() -> None:
    """Create the first administrator (power 0, every capability) if missing."""
    async with async_session_factory() as session:
        if await session.get(User, settings.FIRST_ADMIN_USERNAME) is not None:
            return
        admin = User(
            user_id=settings.FIRST_ADMIN_USERNAME,
            email=settings.FIRST_ADMIN_EMAIL,
            password_hash=hash_password(settings.FIRST_ADMIN_PASSWORD),
            name="System Administrator",
            type="Admin",
            role="Administrator",
            power=0,
        )
        admin.permission = Permission(**{flag: True for flag in CAPABILITIES})
        session.add(admin)
        await session.commit()
        logger.info(
            "Default admin created: %s (password: <redacted>)",
            settings.FIRST_ADMIN_USERNAME,
        )


# ── Lifespan ────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(_app: FastAPI):
    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialised")

    await seed_admin()

    logger.info("TaskHub v%s started", settings.VERSION)
    yield
    await engine.dispose()
    logger.info("Shutdown complete")


# ── App factory ─────────────────────────────────────────────────────
def create_app() -> FastAPI:
    application = FastAPI(
        title=settings.PROJECT_NAME,
        description="Task management with OTP-confirmed sessions",
        version=settings.VERSION,
        openapi_url=f"{settings.API_PREFIX}/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS — credentials allowed so the session cookie survives cross-origin
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Rate limiting on register / login (429s are enveloped by the handlers below)
    application.state.limiter = limiter

    # Global exception handlers (prevent stack-trace leakage)
    register_exception_handlers(application)

    application.include_router(api_router, prefix=settings.API_PREFIX)

    return application


app = create_app()
