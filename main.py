# main.py
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.staticfiles import StaticFiles
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import RedirectResponse

from api.error_handlers import register_error_handlers
from api.v1.router import router as v1_router
from apps.invest.config import get_invest_settings
from apps.invest.db import init_invest_db
from apps.invest.redis_client import close_redis_connection, init_redis_connection
from apps.invest.seed import setup_reference_data
from common.utils.observability import setup_logging
from core.auth.db import setup_initial_data

logger = logging.getLogger(__name__)

# Get settings
settings = get_invest_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)
    await init_invest_db()

    # Default admin user; the API still starts if this fails
    try:
        await setup_initial_data()
    except Exception as e:
        logger.error(f"Auth setup failed, continuing without default admin: {e}", exc_info=True)

    if settings.SEED_ON_STARTUP:
        await setup_reference_data()

    if not await init_redis_connection():
        logger.warning("Redis unavailable at startup; uploads will fail to queue until it is reachable")

    logger.info("INVEST API started")
    yield
    await close_redis_connection()
    logger.info("INVEST API shutting down")


app = FastAPI(title="INVEST Platform API", version="1.0.0", lifespan=lifespan)

# Add trusted host middleware for security
app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=["*"]  # Configure this properly for production
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=settings.CORS_ALLOW_METHODS,
    allow_headers=settings.CORS_ALLOW_HEADERS,
)


# Custom middleware to handle HTTPS redirects and proxy headers
class HTTPSRedirectMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        forwarded_proto = request.headers.get("x-forwarded-proto")
        forwarded_host = request.headers.get("x-forwarded-host")

        # Behind a proxy on plain HTTP: redirect to HTTPS
        if forwarded_proto == "http" and forwarded_host:
            https_url = f"https://{forwarded_host}{request.url.path}"
            if request.url.query:
                https_url += f"?{request.url.query}"
            return RedirectResponse(url=https_url, status_code=301)

        return await call_next(request)


# Custom middleware to add security headers
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        response.headers["Content-Security-Policy"] = "upgrade-insecure-requests"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        return response


# Add HTTPS redirect middleware
app.add_middleware(HTTPSRedirectMiddleware)

# Add security headers middleware
app.add_middleware(SecurityHeadersMiddleware)

register_error_handlers(app)

app.include_router(v1_router, prefix="/api/v1")

# Stored files are served where PUBLIC_BASE_URL points
if settings.SERVE_FILES:
    Path(settings.STORAGE_ROOT).mkdir(parents=True, exist_ok=True)
    app.mount("/files", StaticFiles(directory=settings.STORAGE_ROOT), name="files")
