"""FastAPI application factory for the ForwardDesk order API.

This module creates and configures the FastAPI application with:
- REST API endpoints (versioned at /api/v1/)
- CORS middleware
- Request logging
- Error handling
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from api.config import get_config
from api.dependencies import close_state_manager, get_lifecycle_manager
from api.middleware.error_handler import (
    APIError,
    ErrorHandlerMiddleware,
    engine_error_handler,
    error_handler,
    request_validation_handler,
)
from api.middleware.logging import RequestLoggingMiddleware
from api.routers.admin_orders import router as admin_orders_router
from api.routers.health import router as health_router
from api.routers.orders import router as orders_router
from api.routers.positions import router as positions_router
from config.engine import get_engine_config
from execution.orders.errors import OrderEngineError
from utils.logger import CATEGORY_SYSTEM, ROOT_LOGGER_NAME, get_logger, setup_logger

logger = get_logger(CATEGORY_SYSTEM, f"{ROOT_LOGGER_NAME}.api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager.

    Handles startup and shutdown tasks.
    """
    engine_config = get_engine_config()
    setup_logger(ROOT_LOGGER_NAME, level=engine_config.log_level, json_format=engine_config.json_logs)

    # Startup
    logger.info("Starting ForwardDesk API server...")

    # Opens the order store (bootstrapping the schema) and wires the engine
    get_lifecycle_manager()

    logger.info("ForwardDesk API server started successfully")

    yield

    # Shutdown
    logger.info("Shutting down ForwardDesk API server...")

    close_state_manager()

    logger.info("ForwardDesk API server shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application
    """
    config = get_config()

    app = FastAPI(
        title="ForwardDesk Order API",
        description="""
## Overview

Order entry and trade desk API for energy forward products
(`BASE_Y-26`, `PEAK_Q-1-26`, `BASE_M-07-26`, ...).

Every order is checked against the organization's contracted yearly
limits per delivery month before it is accepted.

## REST Endpoints

All REST endpoints are versioned at `/api/v1/`:

- **Orders**: `/api/v1/orders` - Submit, read and cancel orders
- **Trade desk**: `/api/v1/admin/orders` - Fills, rejections, expiry sweeps
- **Positions**: `/api/v1/positions` - Exposure per delivery year

Caller identity is taken from the `X-User-Id`, `X-Organization-Id` and
`X-User-Role` headers set by the upstream authentication proxy.
        """,
        version="1.0.0",
        docs_url="/docs" if config.docs_enabled else None,
        redoc_url="/redoc" if config.docs_enabled else None,
        lifespan=lifespan,
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=config.cors_allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add custom middleware
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(ErrorHandlerMiddleware)

    # Exception handlers
    app.add_exception_handler(OrderEngineError, engine_error_handler)
    app.add_exception_handler(APIError, error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    # Include routers
    app.include_router(health_router)
    app.include_router(orders_router)
    app.include_router(admin_orders_router)
    app.include_router(positions_router)

    return app


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    config = get_config()
    uvicorn.run(
        "api.main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level=config.log_level.lower(),
    )
