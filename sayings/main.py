import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from sayings.config import settings
from sayings.database import Base, engine
from sayings.exception_handlers import register_exception_handlers
from sayings.middleware.logging import StructuredLoggingMiddleware, setup_structured_logging
from sayings.routes import monitoring, search, topics
from sayings.services.fulltext import create_search_indexes
from sayings.utils.metrics import PrometheusMiddleware

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.debug:
        # Development convenience; deployed databases are migrated with Alembic
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
            await create_search_indexes(conn)
    logger.info(f"{settings.app_name} {settings.app_version} started ({settings.environment})")
    yield
    await engine.dispose()
    logger.info("Database engine disposed")


def create_app() -> FastAPI:
    """Create the FastAPI application."""
    setup_structured_logging(log_level=settings.log_level, json_format=settings.log_json)

    app = FastAPI(
        title=settings.app_name,
        description="Search API for voice posts, creators and topics",
        debug=settings.debug,
        version=settings.app_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(PrometheusMiddleware)
    app.add_middleware(StructuredLoggingMiddleware)

    app.include_router(search.router, prefix="/api/search", tags=["Search"])
    app.include_router(topics.router, prefix="/api/topics", tags=["Topics"])
    app.include_router(monitoring.router)

    register_exception_handlers(app)
    return app


app = create_app()
