import os
import logging
import logging.config
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from app.api.error_handlers import register_error_handlers
from app.api.routes import auth, dashboard, pipeline, playground, system
from app.core.config import settings
from app.db.base import Base
from app.db.session import engine, async_session
from app.db import models  # noqa: F401  registers every table on Base.metadata

# Load logging config if present
if os.path.exists("logging.conf"):
    logging.config.fileConfig("logging.conf", disable_existing_loggers=False)
logger = logging.getLogger("root")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup logic
    if settings.AUTO_CREATE_TABLES:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database initialized")

    yield  # App runs here

    await engine.dispose()
    logger.info("Shutting down...")


app = FastAPI(
    title="Pocket Universe API",
    version=settings.APP_VERSION,
    lifespan=lifespan,
)

if settings.APP_ENV == "development":
    origins = ["http://localhost:3000", "http://127.0.0.1:3000"]
    logger.info("CORS allowed for development environment")
else:
    origins = []
    logger.info("Running in production environment - CORS restricted")

origins.extend(settings.CORS_ORIGINS)
if origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

register_error_handlers(app)

# API routes
app.include_router(auth.router)
app.include_router(pipeline.router)
app.include_router(dashboard.router)
app.include_router(playground.router)
app.include_router(system.router)


@app.api_route("/api/health", methods=["GET", "HEAD"])
async def health():
    status = {"api": "ok", "database": None}
    http_status = 200

    try:
        async with async_session() as db:
            await db.execute(text("SELECT 1"))
        status["database"] = "connected"
    except Exception as e:
        logger.warning(f"Health check database error: {e}")
        status["database"] = "error"
        http_status = 503

    return JSONResponse(content=status, status_code=http_status)
