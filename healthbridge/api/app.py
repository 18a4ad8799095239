"""
HealthBridge API server.

Usage:
    healthbridge-api                    # uses ENVIRONMENT / API_* settings
    uvicorn healthbridge.api.app:create_app --factory
"""

from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from healthbridge import __version__
from healthbridge.api.routes import router
from healthbridge.clock import Clock, now_ms
from healthbridge.config import AppConfig, get_config, validate_config
from healthbridge.errors import InvalidInputError, NotFoundError, UnrecognizedInputError
from healthbridge.observability import configure_logging
from healthbridge.services.container import ServiceContainer
from healthbridge.services.notifications import NotificationChannel
from healthbridge.storage import storage_session

logger = structlog.get_logger(__name__)


def _describe_validation_errors(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()) if item != "body")
        message = error.get("msg", "invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts) or "Invalid request"


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": _describe_validation_errors(exc)})

    @app.exception_handler(InvalidInputError)
    async def invalid_input(request: Request, exc: InvalidInputError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(UnrecognizedInputError)
    async def unrecognized_input(request: Request, exc: UnrecognizedInputError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": str(exc), "command": exc.command})

    @app.exception_handler(NotFoundError)
    async def not_found(request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"error": str(exc)})

    @app.exception_handler(Exception)
    async def unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("request_failed", path=request.url.path, error=str(exc))
        return JSONResponse(status_code=500, content={"error": "Internal server error"})


def create_app(
    config: AppConfig | None = None,
    clock: Clock = now_ms,
    channels: Sequence[NotificationChannel] | None = None,
) -> FastAPI:
    config = config or get_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging(config.logging)
        logger.info("api_starting", environment=config.environment, version=__version__)
        async with storage_session(config.database, config.monitoring) as storage:
            app.state.services = ServiceContainer(storage, config, clock=clock, channels=channels)
            yield
        logger.info("api_stopped")

    app = FastAPI(
        title="HealthBridge",
        description="Vital-sign threshold monitoring and emergency alert dispatch.",
        version=__version__,
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    _install_error_handlers(app)
    app.include_router(router)
    return app


def main() -> None:
    validate_config()
    config = get_config()
    uvicorn.run(
        "healthbridge.api.app:create_app",
        factory=True,
        host=config.api.host,
        port=config.api.port,
        reload=config.api.reload,
        workers=config.api.worker_count,
    )


if __name__ == "__main__":
    main()
