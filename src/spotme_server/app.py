"""Litestar application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from advanced_alchemy.config.asyncio import AsyncSessionConfig
from litestar import Litestar
from litestar.config.cors import CORSConfig
from litestar.datastructures import State
from litestar.openapi import OpenAPIConfig
from litestar.plugins.sqlalchemy import SQLAlchemyAsyncConfig, SQLAlchemyPlugin
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from spotme_server import __version__
from spotme_server.api import api_routers
from spotme_server.core.auth import ensure_bootstrap_admin
from spotme_server.core.config import settings
from spotme_server.core.database import close_database, engine, init_database
from spotme_server.routes import root_redirect
from spotme_server.services.geocoding import ReverseGeocoder


def configure_logging() -> None:
    """Configure stdlib logging and structured logging."""
    logging.basicConfig(level=settings.log_level, format="%(message)s")

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: Litestar) -> AsyncIterator[None]:
    """Application lifespan manager.

    Handles startup and shutdown tasks:
    - Verify database schema on startup
    - Create the bootstrap admin account if configured
    - Close database connections on shutdown
    """
    logger.info(
        "Starting spotme-server",
        version=__version__,
        api_prefix=settings.api_prefix,
        admin_bootstrap=settings.admin_password is not None,
    )

    await init_database(app.state.engine)
    logger.info("Database initialized")

    async with app.state.session_maker() as session:
        await ensure_bootstrap_admin(session)

    yield

    if app.state.owns_engine:
        await close_database(app.state.engine)
    logger.info("Shutdown complete")


def create_app(
    db_engine: AsyncEngine | None = None,
    geocoder: ReverseGeocoder | None = None,
) -> Litestar:
    """Create Litestar application.

    Args:
        db_engine: Engine to use instead of the configured one (tests, embedding)
        geocoder: Reverse geocoder instead of the default Nominatim client

    Returns:
        Configured Litestar app instance
    """
    owns_engine = db_engine is None
    db_engine = db_engine or engine

    # Used outside request handlers (guards, lifespan)
    session_maker = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)

    return Litestar(
        route_handlers=[root_redirect, *api_routers],
        lifespan=[lifespan],
        openapi_config=OpenAPIConfig(
            title="spotme-server API",
            version=__version__,
            description="Real-time location sharing with an admin console",
        ),
        plugins=[
            SQLAlchemyPlugin(
                config=SQLAlchemyAsyncConfig(
                    engine_instance=db_engine,
                    session_dependency_key="session",
                    session_config=AsyncSessionConfig(expire_on_commit=False),
                ),
            ),
        ],
        cors_config=CORSConfig(allow_origins=settings.cors_allow_origins),
        state=State(
            {
                "engine": db_engine,
                "owns_engine": owns_engine,
                "session_maker": session_maker,
                "geocoder": geocoder or ReverseGeocoder(),
            }
        ),
        debug=settings.log_level == "DEBUG",
    )


# Application instance
app = create_app()
