from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.routes import allocations, duties, events, health, sessions
from app.core.config import get_settings
from app.core.exceptions import AppError
from app.core.logging import configure_logging
from app.db.bootstrap import ensure_runtime_schema
from app.services.event_distributor import event_distributor

settings = get_settings()
configure_logging(settings.log_level)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    if settings.auto_create_schema:
        ensure_runtime_schema(create_missing=True)
    yield
    event_distributor.clear()


async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.warning("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "message": exc.message,
            "code": exc.code,
            "retryable": exc.retryable,
            "details": exc.details,
        },
    )


app = FastAPI(title=settings.project_name, lifespan=lifespan)
app.add_exception_handler(AppError, app_error_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, prefix=settings.api_prefix, tags=["health"])
app.include_router(duties.router, prefix=settings.api_prefix, tags=["duties"])
app.include_router(sessions.router, prefix=settings.api_prefix, tags=["sessions"])
app.include_router(allocations.router, prefix=settings.api_prefix, tags=["allocations"])
app.include_router(events.router, prefix=settings.api_prefix, tags=["events"])
