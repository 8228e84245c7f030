import uvicorn
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.containers import AppContainer
from api.middleware.error_handling import ErrorHandlingMiddleware, register_exception_handlers
from api.routers import instruments, system, user
from core.logging import get_api_logger_safe, configure_logging

logger = get_api_logger_safe("api.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    # Startup
    container = app.state.container
    settings = container.settings()
    logger.info("Starting Kite Gateway API server", environment=settings.environment.value)

    db_manager = container.db_manager()
    try:
        await db_manager.init()
        logger.info("API services initialized successfully")
    except Exception as e:
        logger.error("Failed to initialize API services", error=str(e))
        raise

    yield

    # Shutdown
    logger.info("Shutting down Kite Gateway API server")
    try:
        await db_manager.shutdown()
    except Exception as e:
        logger.error("Error during API shutdown", error=str(e))


def _build_uvicorn_log_config() -> dict:
    """Keep uvicorn from replacing the handlers configured by configure_logging."""
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "loggers": {
            "uvicorn": {"level": "INFO"},
            "uvicorn.error": {"level": "INFO"},
            "uvicorn.access": {"level": "INFO"},
        },
    }


def create_app(container: Optional[AppContainer] = None) -> FastAPI:
    """Creates and configures the FastAPI application"""
    container = container or AppContainer()
    settings = container.settings()

    app = FastAPI(
        title="Kite Gateway API",
        version=settings.version,
        description="""
        # Kite Gateway API

        Issues and caches Zerodha Kite sessions and serves a local mirror of
        the instrument master.

        ## Features
        - **Sessions**: web (OMS) login with TOTP, optional Kite Connect token exchange
        - **Session cache**: stored sessions are reused while the broker accepts them
        - **Instruments**: daily-refreshed mirror with filtered queries
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.state.container = container

    # Configure logging for API context (idempotent)
    configure_logging(settings)

    # Wire dependency injection
    container.wire(modules=[
        "api.dependencies",
        "api.routers.user",
        "api.routers.instruments",
        "api.routers.system",
    ])

    app.add_middleware(ErrorHandlingMiddleware)
    register_exception_handlers(app)

    # Security check for production
    cors_origins = settings.api.cors_origins
    if settings.environment == "production" and "*" in cors_origins:
        raise ValueError(
            "CORS wildcard (*) not allowed in production. "
            "Specify exact origins in API__CORS_ORIGINS environment variable."
        )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_methods=settings.api.cors_methods,
        allow_headers=["Content-Type"],
    )

    app.include_router(user.router)
    app.include_router(instruments.router)
    app.include_router(system.router)

    @app.get("/", tags=["Root"])
    def root():
        return {
            "service": settings.app_name,
            "version": settings.version,
            "docs": "/docs",
            "health": "/health",
            "endpoints": {
                "register": "POST /user/register",
                "login": "POST /user/login",
                "logout": "DELETE /user/logout",
                "totp": "POST /user/totp",
                "instruments_refresh": "GET /instruments/refresh",
                "instruments_query": "GET /instruments/query",
            },
        }

    return app


def run():
    """Main function to run the API server"""
    app = create_app()
    settings = app.state.container.settings()

    uvicorn.run(
        app,
        host=settings.api.host,
        port=settings.api.port,
        log_level=settings.logging.level.lower(),
        access_log=True,
        log_config=_build_uvicorn_log_config(),
        reload=False
    )


if __name__ == "__main__":
    run()
