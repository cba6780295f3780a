"""
Bloggy API application
======================
Users, blog posts with embedded comments, password and GitHub login,
image uploads and transactional emails on top of MongoDB.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from bloggy.config import Settings, get_settings
from bloggy.database import Database
from bloggy.errors import register_exception_handlers
from bloggy.logging_config import configure_logging
from bloggy.middleware import log_requests
from bloggy.routes import blog_posts, comments, github, login, users
from bloggy.uploads import configure_cloudinary

logger = structlog.get_logger(__name__)


def create_app(settings: Optional[Settings] = None, mongo_client: Optional[Any] = None) -> FastAPI:
    """Build the application; mongo_client replaces the Motor client when given"""
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    database = Database(settings, client=mongo_client)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("bloggy_starting", version=settings.version)
        await database.connect()
        configure_cloudinary(settings)

        yield

        database.close()
        logger.info("bloggy_stopped")

    app = FastAPI(
        title=settings.app_name,
        description="Blogging platform REST API",
        version=settings.version,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.database = database

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["Authorization"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.middleware("http")(log_requests)

    register_exception_handlers(app)

    app.include_router(login.router)
    app.include_router(users.router)
    app.include_router(blog_posts.router)
    app.include_router(comments.router)
    app.include_router(github.router)

    Path(settings.upload_dir).mkdir(parents=True, exist_ok=True)
    app.mount("/uploads", StaticFiles(directory=settings.upload_dir), name="uploads")

    @app.get("/", tags=["Root"])
    async def root():
        """API information"""
        return {
            "name": settings.app_name,
            "version": settings.version,
            "documentation": {"swagger": "/docs", "openapi": "/openapi.json"},
        }

    @app.get("/health", tags=["Monitoring"])
    async def health_check():
        database_ok = await database.ping()
        return JSONResponse(content={
            "status": "healthy" if database_ok else "degraded",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": settings.version,
            "checks": {"database": "healthy" if database_ok else "unhealthy"},
        })

    return app
