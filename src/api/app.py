"""FastAPI application factory for the token aggregation API."""

from __future__ import annotations

from fastapi import FastAPI
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.middleware.cors import CORSMiddleware

from config.environment import Environment, get_environment
from config.settings import settings
from src.api.middleware import SecurityHeadersMiddleware

# Rate limiter (shared instance)
limiter = Limiter(key_func=get_remote_address)


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    debug = get_environment() == Environment.DEVELOPMENT
    app = FastAPI(
        title="Pulse Aggregator API",
        version="0.1.0",
        docs_url="/api/docs" if debug else None,
        redoc_url=None,
        openapi_url="/api/openapi.json" if debug else None,
    )

    # Rate limiting
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Security headers
    app.add_middleware(SecurityHeadersMiddleware)

    # CORS: the Next.js dev frontend runs on :3000
    origins = [o.strip() for o in settings.api_cors_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["*"],
    )

    # Import and include routers
    from src.api.routers.auth import router as auth_router
    from src.api.routers.health import router as health_router
    from src.api.routers.telegram import router as telegram_router
    from src.api.routers.tokens import router as tokens_router

    app.include_router(health_router)
    app.include_router(tokens_router)
    app.include_router(telegram_router)
    app.include_router(auth_router)

    return app
