from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from importlib.metadata import version as pkg_version

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from duelvault.api import (
    cards_router,
    collection_router,
    decks_router,
    health_router,
    proposals_router,
)
from duelvault.config import settings
from duelvault.db.database import init_db
from duelvault.models.failure import KnownError


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    await init_db()
    yield


app = FastAPI(
    title=settings.app_name,
    version=pkg_version("duelvault"),
    lifespan=lifespan,
)

app.include_router(cards_router)
app.include_router(collection_router)
app.include_router(decks_router)
app.include_router(health_router)
app.include_router(proposals_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Tighten in production
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(KnownError)
async def known_error_handler(_request: Request, exc: KnownError) -> JSONResponse:
    """Render a known failure with its classification and suggestion."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "detail": exc.message,
            "kind": exc.kind.value,
            "suggestion": exc.suggestion,
        },
    )
