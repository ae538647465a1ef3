import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from importlib.metadata import version as pkg_version

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from cardswap.api import (
    comments_router,
    health_router,
    inventory_router,
    matches_router,
    notifications_router,
    trades_router,
)
from cardswap.config import settings
from cardswap.db.database import init_db
from cardswap.models.failure import KnownError, UpstreamError
from cardswap.services.notifications import drain_pushes

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    await init_db()
    yield
    await drain_pushes()


app = FastAPI(
    title=settings.app_name,
    version=pkg_version("cardswap"),
    lifespan=lifespan,
)


def error_response(error: KnownError) -> JSONResponse:
    return JSONResponse(
        status_code=error.status_code,
        content={
            "detail": error.message,
            "kind": error.kind.value,
            "suggestion": error.suggestion,
        },
    )


@app.exception_handler(KnownError)
async def known_error_handler(_request: Request, exc: KnownError) -> JSONResponse:
    return error_response(exc)


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("Store failure on %s %s: %s", request.method, request.url.path, exc)
    return error_response(UpstreamError(detail=type(exc).__name__))


app.include_router(matches_router)
app.include_router(trades_router)
app.include_router(comments_router)
app.include_router(notifications_router)
app.include_router(inventory_router)
app.include_router(health_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Tighten in production
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


def serve() -> None:
    """Run the API with uvicorn."""
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    serve()
