"""
FastAPI application factory.

* Registers routes for rides, ride requests, chat, users, suggestions and admin.
* Starts / stops the background notification dispatcher via lifespan events.
* Renders rejected lifecycle operations as ``{"detail", "code"}`` errors.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from src.api.middleware import limiter
from src.api.routes import admin, chat, requests, rides, suggestions, users
from src.config import settings
from src.domain.exceptions import LifecycleError
from src.infrastructure import redis_client
from src.workers import notifier as _notifier

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

# reason code -> HTTP status
ERROR_STATUS: dict[str, int] = {
    "not_found": 404,
    "not_authorized": 403,
    "invalid_transition": 409,
    "duplicate_request": 409,
    "stale_state": 409,
    "otp_malformed": 422,
    "otp_mismatch": 422,
    "invalid_message": 422,
    "store_failure": 503,
}


async def lifecycle_error_handler(request: Request, exc: LifecycleError) -> JSONResponse:
    status_code = ERROR_STATUS.get(exc.code, 400)
    logger.info(
        "Rejected %s %s: %s (%s)", request.method, request.url.path, exc.code, exc
    )
    return JSONResponse(
        status_code=status_code, content={"detail": exc.message, "code": exc.code}
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the notification dispatcher on startup; stop on shutdown."""
    await _notifier.start_dispatcher()
    yield
    await _notifier.stop_dispatcher()
    await redis_client.close_redis()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Community Ride Pairing API",
        description=(
            "Post ride offers and requests, match with a co-rider, confirm "
            "trips with an in-person OTP handshake, chat, and raise SOS "
            "alerts.  Includes an AI route / cost-split suggestion endpoint."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Rejected lifecycle operations
    app.add_exception_handler(LifecycleError, lifecycle_error_handler)

    # Routers
    app.include_router(rides.router, prefix="/api/v1")
    app.include_router(requests.router, prefix="/api/v1")
    app.include_router(chat.router, prefix="/api/v1")
    app.include_router(users.router, prefix="/api/v1")
    app.include_router(suggestions.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
