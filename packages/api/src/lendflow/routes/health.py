# This project was developed with assistance from AI tools.
"""Liveness endpoint: one item per component."""

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from .. import __version__
from ..dependencies import get_db

logger = logging.getLogger(__name__)

router = APIRouter()


class HealthItem(BaseModel):
    name: str
    status: str
    message: str
    version: str | None = None


_DIALECT_LABELS = {"postgresql": "PostgreSQL", "sqlite": "SQLite"}


@router.get("/", response_model=list[HealthItem])
async def health(session: AsyncSession = Depends(get_db)) -> list[HealthItem]:
    items = [HealthItem(name="API", status="healthy", message="Lendflow API", version=__version__)]

    dialect = _DIALECT_LABELS.get(session.get_bind().dialect.name, "database")
    try:
        await session.execute(text("SELECT 1"))
        items.append(HealthItem(name="Database", status="healthy", message=f"{dialect} reachable"))
    except SQLAlchemyError as exc:
        logger.error("Database health check failed: %s", exc)
        items.append(
            HealthItem(name="Database", status="unhealthy", message=f"{dialect} unreachable")
        )
    return items
