"""Rate limiting configuration using slowapi.

Security: Prevents API abuse and LLM cost explosion by limiting request
frequency on the model-calling pipeline endpoints. Requests are keyed by
client IP (there is no authenticated user to key on).

Usage in routers:
    from intake_pilot.core.rate_limiting import limiter

    @router.post("/analyze")
    @limiter.limit(settings.rate_limit_llm)
    async def analyze(request: Request, ...):
        ...
"""

from fastapi import Request, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from intake_pilot.core.config import settings
from intake_pilot.core.responses import ErrorResponse

# Global limiter instance
# Configured with in-memory storage (suitable for single-instance deployment)
# For multi-instance, configure Redis storage via RATELIMIT_STORAGE_URL
limiter = Limiter(
    key_func=get_remote_address,
    enabled=settings.rate_limit_enabled,
)


def rate_limit_exceeded_handler(
    _request: Request,
    exc: RateLimitExceeded,
) -> Response:
    """Handle rate limit exceeded errors.

    Security: Returns 429 Too Many Requests with standard error envelope.

    Args:
        request: The incoming request.
        exc: The rate limit exception.

    Returns:
        JSONResponse with 429 status and retry-after header.
    """
    # Parse retry-after from exception detail (e.g., "10 per 1 minute")
    # Fallback to 60 seconds if parsing fails
    try:
        retry_after = str(exc.detail.split()[-1])
        int(retry_after.rstrip("s"))
    except (ValueError, AttributeError, IndexError):
        retry_after = "60"

    return JSONResponse(
        status_code=429,
        content=ErrorResponse(
            error=f"Rate limit exceeded: {exc.detail}",
            code="RATE_LIMITED",
        ).model_dump(by_alias=True, exclude_none=True),
        headers={"Retry-After": retry_after},
    )
