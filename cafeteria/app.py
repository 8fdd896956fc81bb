"""
Cafeteria meal redemption service - application entry point.

Main modules:
- employee lookup by NFC card or short code
- subsidised pricing and one-meal-per-type-per-day redemption
- meal catalogue, coupon and user administration
- support reports and receipts

Stack: FastAPI + DuckDB + JWT
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api import api_router
from .app_logging import configure_logging
from .config.settings import settings
from .core.database import db_manager
from .core.error_handler import (
    application_error_handler,
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from .core.exceptions import BaseApplicationError, PersistenceError
from .services.user_service import UserService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    db_manager.init_database()
    if settings.admin_username and settings.admin_password:
        UserService().ensure_admin(settings.admin_username, settings.admin_password)
    logger.info("%s %s started", settings.api_title, settings.api_version)

    yield

    db_manager.close()


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="Cafeteria meal redemption API",
        debug=settings.debug,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(BaseApplicationError, application_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    app.include_router(api_router, prefix=settings.api_prefix)

    @app.get("/health")
    def health_check():
        try:
            db_manager.fetch_one("SELECT 1 AS ok")
            database = "connected"
        except PersistenceError as e:
            database = f"error: {e.message}"
        return {
            "status": "healthy" if database == "connected" else "unhealthy",
            "version": settings.api_version,
            "database": database,
        }

    @app.get("/")
    def root():
        return {
            "name": settings.api_title,
            "version": settings.api_version,
            "description": "Cafeteria meal redemption API",
        }

    return app


app = create_app()
