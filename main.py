"""Account API - user accounts with opaque session tokens."""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from app.config import get_settings
from app.database import SessionLocal
from app.exceptions import ApiError, ValidationFailure, collect_validation_errors
from app.rate_limit import limiter
from app.routers import auth_router, users_router
from app.services.file import get_file_service
from app.services.token import TokenSweeper

# Logging
logger = logging.getLogger("account_api")
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

ONE_YEAR_IN_SECONDS = 365 * 24 * 60 * 60


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create upload folders and run the token sweeper for the lifetime of the app."""
    settings = get_settings()
    for warning in settings.validate():
        logger.warning(warning)

    get_file_service().create_folders()

    sweeper: TokenSweeper | None = None
    if settings.TOKEN_SWEEP_ENABLED:
        sweeper = TokenSweeper(SessionLocal, settings.TOKEN_SWEEP_INTERVAL_SECONDS)
        sweeper.start()
    app.state.token_sweeper = sweeper

    yield

    if sweeper is not None:
        sweeper.stop()


app = FastAPI(title="Account API", version="0.1.0", lifespan=lifespan)
app.state.limiter = limiter


# --- Security headers middleware ---
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response


# --- Request size limit middleware ---
class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    MAX_BODY_SIZE = 3 * 1024 * 1024  # 3MB (a 2MB image grows by a third in base64)

    async def dispatch(self, request: Request, call_next) -> Response:
        content_length = request.headers.get("content-length")
        if content_length and int(content_length) > self.MAX_BODY_SIZE:
            return error_response(request, 413, "Request body too large")
        return await call_next(request)


# --- Audit logging middleware ---
class AuditLogMiddleware(BaseHTTPMiddleware):
    AUDIT_PATHS = {"/api/1.0/auth", "/api/1.0/logout", "/api/1.0/users", "/api/1.0/user/"}

    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.time()
        response = await call_next(request)
        duration_ms = (time.time() - start) * 1000

        path = request.url.path
        method = request.method
        if method in ("POST", "PUT", "DELETE") and any(path.startswith(p) for p in self.AUDIT_PATHS):
            logger.info(
                "AUDIT %s %s -> %d (%.0fms) from %s",
                method,
                path,
                response.status_code,
                duration_ms,
                request.client.host if request.client else "unknown",
            )

        return response


class CachedStaticFiles(StaticFiles):
    """Static files served with a one year browser cache."""

    def file_response(self, *args, **kwargs) -> Response:
        response = super().file_response(*args, **kwargs)
        response.headers["Cache-Control"] = f"public, max-age={ONE_YEAR_IN_SECONDS}"
        return response


app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestSizeLimitMiddleware)
app.add_middleware(AuditLogMiddleware)

# Profile images
app.mount(
    "/images",
    CachedStaticFiles(directory=get_file_service().profile_folder(), check_dir=False),
    name="images",
)

# API routers
app.include_router(users_router)
app.include_router(auth_router)


def error_response(
    request: Request, status_code: int, message: str, validation_errors: dict[str, str] | None = None
) -> JSONResponse:
    """Build the common error body: path, timestamp (ms) and message."""
    content: dict = {
        "path": request.url.path,
        "timestamp": int(time.time() * 1000),
        "message": message,
    }
    if validation_errors:
        content["validationErrors"] = validation_errors
    return JSONResponse(status_code=status_code, content=content)


# --- Error handlers ---
@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    """Render service errors."""
    validation_errors = exc.validation_errors if isinstance(exc, ValidationFailure) else None
    return error_response(request, exc.status_code, exc.message, validation_errors)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed bodies as a 400 with per-field messages."""
    return error_response(
        request, 400, ValidationFailure.default_message, collect_validation_errors(list(exc.errors()))
    )


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Handle rate limit exceeded."""
    return error_response(request, 429, "Rate limit exceeded. Try again later.")


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render framework errors (unknown routes, missing images) in the same shape."""
    return error_response(request, exc.status_code, str(exc.detail))


# --- Health check ---
@app.get("/api/health")
def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "ok", "app": "account-api", "version": "0.1.0"}
