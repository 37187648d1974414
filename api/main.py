import sys
import time
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic_core import _pydantic_core
from sqlalchemy import text
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request

from api.shared.exceptions import DatabaseError, TimesheetAppException
from core.logging import configure_logging
from core.settings import SETTINGS
from di.container import ApplicationContainer as DependencyContainer

configure_logging()

logger = structlog.get_logger("timesheet")


class CustomFastAPI(FastAPI):
    container: DependencyContainer


@asynccontextmanager
async def lifespan(_app: CustomFastAPI):
    logger.info("app.startup.begin")
    start_time = time.time()

    try:
        db_start = time.time()
        db_resource = _app.container.infrastructure.database()
        await db_resource.init()
        async with db_resource.engine.begin() as _conn:
            if db_resource.engine.dialect.name == "postgresql":
                await _conn.execute(text("SET lock_timeout = '4s'"))
                await _conn.execute(text("SET statement_timeout = '8s'"))
            await _conn.execute(text("SELECT 1"))
        logger.info("app.startup.database_ready", seconds=round(time.time() - db_start, 2))

        _app.container.infrastructure.bot_adapter()
        logger.info("app.startup.complete", seconds=round(time.time() - start_time, 2))
    except Exception as e:
        logger.exception("app.startup.failed", error=str(e))
        raise

    yield

    try:
        dispatcher = _app.container.services.notification_dispatcher()
        if dispatcher.pending_count:
            logger.info("app.shutdown.draining_notifications", pending=dispatcher.pending_count)
        await dispatcher.drain()
        db_resource = _app.container.infrastructure.database()
        if db_resource:
            await db_resource.shutdown()
        logger.info("app.shutdown.complete")
    except Exception as e:
        logger.exception("app.shutdown.failed", error=str(e))


def create_fastapi_app() -> CustomFastAPI:
    origins = {
        "http://localhost",
        "http://localhost:3000",
        "http://localhost:8000",
        SETTINGS.BOT.APP_BASE_URI,
    }

    _app = CustomFastAPI(
        title="Timesheet Notifications API",
        description="Proactive Teams bot notifications for timesheet approvals and reminders",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Initialize dependency container
    _app.container = DependencyContainer()
    _app.container.infrastructure.config.from_dict(SETTINGS.model_dump(mode="json"))
    _app.container.wire(modules=[sys.modules[__name__]])
    _app.container.init_resources()

    _app.add_middleware(
        CORSMiddleware,
        allow_origins=sorted(origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include feature routers
    from api.features.bot.router import router as bot_router
    from api.features.conversations.router import router as conversations_router
    from api.features.notifications.router import router as notifications_router

    _app.include_router(bot_router, prefix="/api", tags=["Bot"])
    _app.include_router(
        conversations_router, prefix="/api/v1/conversations", tags=["Conversations"]
    )
    _app.include_router(
        notifications_router, prefix="/api/v1/notifications", tags=["Notifications"]
    )

    return _app


app = create_fastapi_app()


# Health check endpoints
@app.get("/")
async def root():
    return {"message": "Timesheet Notifications API is running", "status": "ok"}


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/ready")
async def ready():
    return {"status": "ok"}


# Exception handlers
@app.exception_handler(404)
async def not_found_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=404,
        content={
            "error": "Not Found",
            "detail": f"{exc.detail} : {request.url}",
            "status_code": 404,
        },
    )


@app.exception_handler(TimesheetAppException)
async def app_exception_handler(request: Request, exc: TimesheetAppException):
    status_code = 500 if isinstance(exc, DatabaseError) else 400
    logger.warning(
        "app.error", error_code=exc.error_code, message=exc.message, status_code=status_code
    )
    return JSONResponse(
        status_code=status_code,
        content={
            "error": exc.error_code,
            "detail": exc.message,
            "details": exc.details,
            "status_code": status_code,
        },
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content={"error": "Validation Error", "detail": str(exc), "status_code": 422},
    )


@app.exception_handler(_pydantic_core.ValidationError)
async def pydantic_validation_handler(
    request: Request, exc: _pydantic_core.ValidationError
):
    return JSONResponse(
        status_code=422,
        content={"error": "Validation Error", "detail": str(exc), "status_code": 422},
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.exception("app.unhandled_exception", error=str(exc))
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal Server Error",
            "detail": "An unexpected error occurred",
            "status_code": 500,
        },
    )
