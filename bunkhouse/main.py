import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from bunkhouse.api import claims, health, history, houses, rooms, stays, windows
from bunkhouse.core.config import settings
from bunkhouse.core.exceptions import (
    AuthorizationError,
    BunkhouseError,
    ConflictError,
    NotFoundError,
    PreconditionError,
)
from bunkhouse.core.logging import setup_logging
from bunkhouse.core.messages import messages
from bunkhouse.core.rate_limiter import limiter
from bunkhouse.middleware.request_logger import RequestLoggerMiddleware


# -------------------------------------------------
# Logging
# -------------------------------------------------

setup_logging()
logger = logging.getLogger(__name__)


# -------------------------------------------------
# FastAPI
# -------------------------------------------------

app = FastAPI(
    title="Bunkhouse",
    description="Bed sign-up for shared weekend houses",
    version="0.1.0",
)

# -------------------------------------------------
# Rate Limiting (slowapi)
# -------------------------------------------------
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(RequestLoggerMiddleware)


# -------------------------------------------------
# Domain errors
# -------------------------------------------------

ERROR_STATUS = (
    (ConflictError, status.HTTP_409_CONFLICT),
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
    (PreconditionError, status.HTTP_412_PRECONDITION_FAILED),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
)


@app.exception_handler(BunkhouseError)
async def domain_error_handler(request: Request, exc: BunkhouseError):
    status_code = status.HTTP_400_BAD_REQUEST
    for error_class, code in ERROR_STATUS:
        if isinstance(exc, error_class):
            status_code = code
            break

    logger.info(
        "%s %s -> %s (%s): %s",
        request.method, request.url.path, status_code, exc.code, exc.message,
    )
    return JSONResponse(
        status_code=status_code,
        content={"error": exc.code, "detail": messages.for_error(exc)},
    )


app.include_router(health.router)
app.include_router(houses.router)
app.include_router(rooms.router)
app.include_router(windows.router)
app.include_router(claims.router)
app.include_router(stays.router)
app.include_router(history.router)


# -------------------------------------------------
# Lifecycle
# -------------------------------------------------


@app.on_event("startup")
async def on_startup():
    logger.info("FastAPI startup")

    from bunkhouse.database import init_db

    await init_db()

    if settings.enable_scheduler:
        from bunkhouse.services.scheduler_service import scheduler_service

        scheduler_service.start()
    else:
        logger.info("Scheduler disabled in settings")


@app.on_event("shutdown")
async def on_shutdown():
    logger.info("FastAPI shutdown")

    if settings.enable_scheduler:
        from bunkhouse.services.scheduler_service import scheduler_service

        scheduler_service.shutdown()
