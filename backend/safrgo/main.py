"""
SAFRGO messaging service entry point.

WHAT: FastAPI app serving traveler <-> agency conversations
WHY: The marketplace frontend talks to the chat core over HTTP
HOW: Logging first, then the app with lifespan, CORS, error handlers, v1 routes
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from .core.config import settings
from .core.database import init_db, close_db, engine
from .utils.logger import setup_logging, get_logger
from .middleware.error_handler import register_exception_handlers
from .api.v1.router import api_router

setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the conversation tables on startup, release the pool on shutdown."""
    logger.info(
        f"Starting {settings.APP_NAME} v{settings.APP_VERSION} "
        f"(store: {engine.dialect.name}, max message length: {settings.MESSAGE_MAX_LENGTH})"
    )
    init_db()

    yield

    close_db()
    logger.info(f"{settings.APP_NAME} stopped")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Conversations between travelers and travel agencies, scoped to offers",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins_list(),
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", settings.USER_ID_HEADER],
)

register_exception_handlers(app)
app.include_router(api_router)


@app.get("/")
async def root():
    """Service banner."""
    return {
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "api": "/api/v1",
        "health": "/api/v1/health",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "safrgo.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG
    )
