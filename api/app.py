# server/api/app.py
"""
FastAPI application factory
"""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from api.v1.router import api_router
from core.config import get_settings
from core.exceptions import (
    AgentError, AuthError, CalculationError, InputValidationError,
    RateLimitError, UpstreamUnavailableError
)

logger = logging.getLogger(__name__)

def _error(status_code: int, error: str, message: str, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error, "detail": message},
        headers=headers
    )

def register_exception_handlers(app: FastAPI) -> None:
    """Map the backend error taxonomy onto HTTP responses"""

    @app.exception_handler(InputValidationError)
    async def validation_error_handler(request: Request, exc: InputValidationError):
        return _error(400, "validation_error", str(exc))

    @app.exception_handler(RateLimitError)
    async def rate_limit_handler(request: Request, exc: RateLimitError):
        return _error(429, "rate_limited", str(exc), headers={"Retry-After": str(max(1, round(exc.retry_after)))})

    @app.exception_handler(CalculationError)
    async def calculation_error_handler(request: Request, exc: CalculationError):
        logger.error(f"Calculation error on {request.url.path}: {exc}")
        return _error(422, "calculation_error", str(exc))

    @app.exception_handler(UpstreamUnavailableError)
    async def upstream_error_handler(request: Request, exc: UpstreamUnavailableError):
        return _error(503, "upstream_unavailable", str(exc))

    @app.exception_handler(AuthError)
    async def auth_error_handler(request: Request, exc: AuthError):
        return _error(503, "upstream_auth_failed", str(exc))

    @app.exception_handler(AgentError)
    async def agent_error_handler(request: Request, exc: AgentError):
        return _error(500, "agent_error", str(exc))

def create_app(lifespan=None) -> FastAPI:
    """Create FastAPI application"""
    settings = get_settings()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        debug=settings.debug,
        lifespan=lifespan
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    register_exception_handlers(app)

    # Include routers
    app.include_router(api_router, prefix="/api")

    @app.get("/")
    async def root():
        return {
            "service": settings.api_title,
            "version": settings.api_version,
            "status": "healthy"
        }

    return app
