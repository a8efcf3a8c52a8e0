"""
Health endpoint — public liveness probe with database connectivity.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.core.config import settings
from taskhub.db.session import get_db
from taskhub.schemas.common import HealthResponse

router = APIRouter(tags=["health"])
logger = logging.getLogger(__name__)


@router.get("/health", response_model=HealthResponse)
async def health(db: AsyncSession = Depends(get_db)) -> HealthResponse:
    result = HealthResponse(version=settings.VERSION, db=False)
    try:
        await db.execute(select(1))
        result.db = True
    except SQLAlchemyError as e:
        logger.error("Health check DB failure: %s", e)
        result.status = "error"
    return result
