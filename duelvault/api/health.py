"""
Health check endpoints.

/health answers whenever the process is up. /ready also reports how many cards the
metadata cache holds, since deck editing resolves every card through it.
"""

from importlib.metadata import version as pkg_version
from typing import Annotated

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from duelvault.db.database import get_session
from duelvault.models.db import CardDB

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    version: str


class ReadinessResponse(BaseModel):
    status: str
    database: str
    cached_cards: int | None = None


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Liveness check. Does not check dependencies."""
    return HealthResponse(status="healthy", version=pkg_version("duelvault"))


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    responses={503: {"model": ReadinessResponse}},
)
async def ready(
    response: Response,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> ReadinessResponse:
    """Readiness check. Returns 503 if the database is unreachable."""
    try:
        result = await session.execute(select(func.count()).select_from(CardDB))
    except SQLAlchemyError:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return ReadinessResponse(status="not ready", database="disconnected")
    return ReadinessResponse(status="ready", database="connected", cached_cards=result.scalar_one())
