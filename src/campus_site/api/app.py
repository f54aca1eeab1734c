"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from pathlib import Path

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from campus_site.api.realtime import router as realtime_router
from campus_site.api.records import (
    announcements_router,
    inquiries_router,
    schools_router,
)
from campus_site.app_logging import configure_logging
from campus_site.config import parse_cors_origins
from campus_site.containers import AppContainer
from campus_site.domain.errors import CampusSiteError

API_VERSION = "1.0.0"


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "Campus site API starting: environment=%s store=%s",
            container.settings.environment,
            container.settings.store_backend,
        )
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=parse_cors_origins(container.settings.cors_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(CampusSiteError)
    async def handle_domain_error(
        request: Request, exc: CampusSiteError
    ) -> JSONResponse:
        if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
            logger.error("Request failed: %s %s: %s", request.method, request.url, exc)
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "message": str(exc)},
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "success": False,
                "message": "Invalid request body",
                "errors": jsonable_errors(exc),
            },
        )

    app.include_router(inquiries_router)
    app.include_router(announcements_router)
    app.include_router(schools_router)
    app.include_router(realtime_router)

    @app.get("/api/health")
    async def health() -> dict[str, object]:
        """Simple health check endpoint."""
        return {
            "success": True,
            "message": "Server is running!",
            "timestamp": datetime.now(tz=UTC).isoformat(),
        }

    @app.get("/")
    async def index() -> dict[str, object]:
        """Describe the available API endpoints."""
        return {
            "message": "Campus Site API",
            "version": API_VERSION,
            "endpoints": {
                "GET /api/health": "Server health check",
                "GET|POST /api/inquiries": "List or submit inquiries",
                "GET|POST /api/announcements": "List or create announcements",
                "GET|PUT|DELETE /api/announcements/{id}": "Manage an announcement",
                "GET|POST /api/schools": "List or create schools",
                "GET|PUT|DELETE /api/schools/{id}": "Manage a school",
                "WS /ws": "Realtime change events",
            },
        }

    @app.api_route(
        "/api/{path:path}",
        methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
        include_in_schema=False,
    )
    async def api_not_found(path: str) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"success": False, "message": "API endpoint not found"},
        )

    app.mount(
        "/uploads",
        StaticFiles(directory=Path(container.settings.uploads_dir), check_dir=False),
        name="uploads",
    )
    return app


def jsonable_errors(exc: RequestValidationError) -> list[dict[str, object]]:
    """Reduce pydantic error details to JSON-safe location/message pairs."""
    return [
        {"loc": [str(part) for part in error.get("loc", ())], "msg": error.get("msg")}
        for error in exc.errors()
    ]
