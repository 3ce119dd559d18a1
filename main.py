"""
main.py

Application entrypoint for the CraftConnect API.
- Initializes structured logging
- Sets up FastAPI application and middlewares
- Starts and stops the realtime bridge with the application
- Maps request validation failures to 400 responses
- Registers all API routers
- Integrates rate limiting via SlowAPI
- Adds common security headers
- Configures CORS
"""

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.middleware import SlowAPIMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from app.applications.routes import router as applications_router
from app.core.config import settings
from app.core.limiter import limiter
from app.core.logging import init_logging
from app.health.routes import router as health_router
from app.jobs.routes import router as jobs_router
from app.messaging.realtime import bridge
from app.messaging.routes import router as messaging_router
from app.messaging.websocket import router as messaging_ws_router
from app.users.routes import router as users_router

logger = logging.getLogger(__name__)


# -----------------------------
# Application Lifespan
# -----------------------------
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    await bridge.start()
    logger.info(f"[APP] {settings.APP_NAME} {settings.APP_VERSION} started ({settings.ENVIRONMENT})")
    try:
        yield
    finally:
        await bridge.stop()
        logger.info("[APP] Shutdown complete")


# -----------------------------
# FastAPI App Initialization
# -----------------------------
init_logging()
app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION, lifespan=lifespan)

# -----------------------------
# Middleware Configuration
# -----------------------------
app.state.limiter = limiter


async def rate_limit_exceeded_handler(request: Request, exc: Exception) -> Response:
    return _rate_limit_exceeded_handler(request, exc)  # type: ignore[arg-type]


app.add_exception_handler(429, rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)


# -----------------------------
# Validation Error Handler
# -----------------------------
async def validation_exception_handler(request: Request, exc: Exception) -> Response:
    """Missing or malformed input is a 400 with the standard error body."""
    errors = exc.errors() if isinstance(exc, RequestValidationError) else []
    fields = [str(err["loc"][-1]) for err in errors if err.get("loc")]
    logger.info(f"[VALIDATION] {request.method} {request.url.path}: {fields}")
    message = (
        f"Fehlende oder ungültige Felder: {', '.join(dict.fromkeys(fields))}"
        if fields
        else "Ungültige Anfrage"
    )
    details = [{"field": str(err["loc"][-1]), "message": err["msg"]} for err in errors if err.get("loc")]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": {"error": message, "fields": details}},
    )


app.add_exception_handler(RequestValidationError, validation_exception_handler)


# -----------------------------
# Security Headers Middleware
# -----------------------------
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Middleware to add common security headers to responses.
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        response: Response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        return response


app.add_middleware(SecurityHeadersMiddleware)

# -----------------------------
# CORSMiddleware Configuration
# -----------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# -----------------------------
# API Router Registration
# -----------------------------
app.include_router(health_router)
app.include_router(users_router)
app.include_router(jobs_router)
app.include_router(applications_router)
app.include_router(messaging_router)
app.include_router(messaging_ws_router)
