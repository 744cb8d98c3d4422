"""Liveness and readiness probes."""

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy import func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.config import get_settings
from taskhub.db.session import get_db_session
from taskhub.models.project import BoardColumn

router = APIRouter()
logger = structlog.get_logger()
settings = get_settings()

HEALTHY = "healthy"
UNHEALTHY = "unhealthy"


@router.get("/health")
async def health_check() -> dict[str, str]:
    return {
        "status": HEALTHY,
        "version": settings.app_version,
        "environment": settings.environment,
    }


async def _probe(db: AsyncSession, name: str, statement) -> str:
    try:
        await db.execute(statement)
    except SQLAlchemyError as e:
        logger.warning("readiness_probe_failed", probe=name, error=str(e))
        return UNHEALTHY
    return HEALTHY


@router.get("/health/ready")
async def readiness_check(db: AsyncSession = Depends(get_db_session)) -> dict:
    """Ready once the database answers and the board schema is migrated.

    Also reports the Done column cap so operators can confirm which
    retention rule the running build enforces.
    """
    checks = {"database": await _probe(db, "database", text("SELECT 1"))}
    if checks["database"] == HEALTHY:
        checks["schema"] = await _probe(db, "schema", select(func.count()).select_from(BoardColumn))
    else:
        checks["schema"] = UNHEALTHY

    return {
        "status": HEALTHY if all(v == HEALTHY for v in checks.values()) else UNHEALTHY,
        "version": settings.app_version,
        "done_column_limit": settings.done_column_limit,
        "checks": checks,
    }
