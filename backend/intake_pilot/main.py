"""FastAPI application entry point.

This module creates and configures the FastAPI application, including:
- CORS (answers OPTIONS preflight for the browser client)
- Exception handlers rendering {"success": false, "error", "code"}
- API v1 router mounting
- Health check endpoint
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from intake_pilot.api.v1.router import router as v1_router
from intake_pilot.core.config import settings
from intake_pilot.core.errors import APIError, InternalError
from intake_pilot.core.rate_limiting import limiter, rate_limit_exceeded_handler
from intake_pilot.core.responses import ErrorResponse

logger = structlog.get_logger()


def _error_body(error: ErrorResponse) -> dict:
    return error.model_dump(by_alias=True, exclude_none=True)


def api_error_handler(_request: Request, exc: APIError) -> JSONResponse:
    """Handle custom API errors.

    Args:
        request: The incoming request.
        exc: The APIError that was raised.

    Returns:
        JSONResponse with error envelope and appropriate status code.
    """
    if exc.status_code >= 500:
        logger.warning("api_error", code=exc.code, message=exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(
            ErrorResponse(error=exc.message, code=exc.code, details=exc.details)
        ),
    )


def validation_error_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle Pydantic validation errors from FastAPI.

    Converts FastAPI's 422 validation errors into the 400 VALIDATION_ERROR
    envelope with field-level details.
    """
    return JSONResponse(
        status_code=400,
        content=_error_body(
            ErrorResponse(
                error="Request validation failed",
                code="VALIDATION_ERROR",
                details=[
                    {"loc": list(e["loc"]), "msg": e["msg"], "type": e["type"]}
                    for e in exc.errors()
                ],
            )
        ),
    )


def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions.

    WHY: Never expose internal error details to clients. Log for debugging.

    Args:
        request: The incoming request.
        exc: The unhandled exception.

    Returns:
        JSONResponse with generic error message (500).
    """
    logger.exception("Unhandled exception", exc_info=exc, path=str(request.url.path))

    error = InternalError()
    return JSONResponse(
        status_code=error.status_code,
        content=_error_body(ErrorResponse(error=error.message, code=error.code)),
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    WHY FACTORY FUNCTION:
    - Enables testing with different configurations
    - Clear separation between app creation and startup

    Returns:
        Configured FastAPI application instance.
    """
    app = FastAPI(
        title="Intake Pilot API",
        version="1.0.0",
        description="LLM-assisted EDI onboarding pipeline",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials="*" not in settings.allowed_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Accept", "Authorization", "X-Client-Info", "Apikey"],
    )

    # Order matters: specific handlers first, then catch-all
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_exception_handler(Exception, internal_error_handler)

    # Prevents LLM cost explosion
    app.state.limiter = limiter

    app.include_router(v1_router, prefix="/api/v1")

    @app.get("/health")
    def health_check() -> dict:
        """Health check endpoint for monitoring.

        Returns:
            {"status": "ok"} if service is running.
        """
        return {"status": "ok"}

    return app


# Used by uvicorn: uvicorn intake_pilot.main:app
app = create_app()
