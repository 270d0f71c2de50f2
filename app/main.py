from typing import Optional
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
import uvicorn

from app.core.config import Settings, settings as default_settings
from app.core.database import (
    close_db,
    create_db_and_tables,
    create_engine_from_settings,
    create_session_maker,
    get_async_session,
    ping,
)
from app.core.logging import setup_logging
from app.schemas.product_schemas import HealthResponse
from app.middleware.logging_middleware import LoggingMiddleware
from app.controllers import product_controller, category_controller
from app.services.image_service import ImageStorage, UPLOADS_PREFIX

import structlog

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    logger.info("Application startup", environment=settings.environment)

    engine = create_engine_from_settings(settings)
    try:
        await create_db_and_tables(engine)
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error("Failed to initialize database", error=str(e))
        await close_db(engine)
        raise

    app.state.engine = engine
    app.state.session_maker = create_session_maker(engine)

    yield

    logger.info("Application shutdown")
    try:
        await close_db(engine)
        logger.info("Database connections closed")
    except Exception as e:
        logger.error("Error during shutdown", error=str(e))


async def health_check(db: AsyncSession = Depends(get_async_session)):
    try:
        db_ok = await ping(db)
    except Exception as e:
        logger.error("Health check failed", error=str(e))
        return JSONResponse(status_code=500, content={"status": "error", "message": str(e)})
    return {"status": "ok", "db": db_ok}


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    logger.warning(
        "HTTP Exception",
        status_code=exc.status_code,
        detail=exc.detail,
        path=request.url.path,
        method=request.method
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(
        "Request validation failed",
        errors=exc.errors(),
        path=request.url.path,
        method=request.method
    )
    return JSONResponse(status_code=400, content={"error": "Invalid request parameters"})


async def general_exception_handler(request: Request, exc: Exception):
    logger.error(
        "Unhandled Exception",
        error=str(exc),
        path=request.url.path,
        method=request.method
    )
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or default_settings
    setup_logging(settings)

    app = FastAPI(
        title="Product Catalog API",
        description="Product catalog with search, filtering, pagination and image uploads",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_cors_origins_list(),
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)

    storage = ImageStorage(settings)
    storage.ensure_directory()
    app.state.image_storage = storage

    app.include_router(product_controller.router)
    app.include_router(category_controller.router)
    app.add_api_route("/health", health_check, methods=["GET"], response_model=HealthResponse, tags=["Health"])
    app.mount(UPLOADS_PREFIX.rstrip("/"), StaticFiles(directory=settings.upload_dir), name="uploads")

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "app.main:app",
        host=default_settings.host,
        port=default_settings.port,
        reload=default_settings.environment == "local",
        log_config=None
    )
