"""Response envelope models.

Consistent response format for all pipeline endpoints: every body carries a
``success`` discriminator, and keys are serialized in camelCase for the
browser client.

WHY RESPONSE ENVELOPES:
- Easy to distinguish success from error responses
- Non-2xx statuses always pair with ``success: false`` and an ``error`` string
- Type-safe response building in endpoints
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase JSON keys.

    Field names stay snake_case in Python; ``populate_by_name`` lets tests
    and services construct instances with either spelling.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SuccessEnvelope(CamelModel):
    """Base for success bodies.

    Usage:
        class RunListResponse(SuccessEnvelope):
            runs: list[RunSummary]

        return RunListResponse(runs=runs)
    """

    success: bool = True


class ErrorResponse(CamelModel):
    """Standard error response envelope.

    Usage in exception handlers:
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(error=exc.message, code=exc.code).model_dump(
                by_alias=True, exclude_none=True
            ),
        )

    Attributes:
        success: Always False.
        error: Human-readable error message.
        code: Machine-readable error code (e.g., "NOT_FOUND").
        details: Optional list of field-level or failure details.
    """

    success: bool = False
    error: str
    code: str
    details: list[dict] | None = None
