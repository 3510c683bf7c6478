"""API error classes.

HTTP status codes and error codes for the pipeline API.

WHY CUSTOM ERROR CLASSES:
- Consistent error response format across all endpoints
- Easy to map to HTTP status codes in exception handlers
- Routers translate stage outcomes into these in one place
"""


class APIError(Exception):
    """Base class for API errors.

    All API errors have a code, message, and HTTP status.
    Subclasses set default status_code.

    Attributes:
        code: Machine-readable error code (e.g., "NOT_FOUND").
        message: Human-readable error message.
        status_code: HTTP status code to return.
        details: Optional list of additional error details.
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: list[dict] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class ValidationError(APIError):
    """Field validation failed (400).

    Use for request body validation errors, query param errors, etc.
    """

    def __init__(
        self,
        message: str,
        details: list[dict] | None = None,
    ) -> None:
        super().__init__(
            code="VALIDATION_ERROR",
            message=message,
            status_code=400,
            details=details,
        )


class NotFoundError(APIError):
    """Resource not found (404).

    Use when the intake case (or another addressed record) doesn't exist.
    """

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        if resource_id:
            message = f"{resource} with id '{resource_id}' not found"
        else:
            message = f"{resource} not found"
        super().__init__(
            code="NOT_FOUND",
            message=message,
            status_code=404,
        )


class PreconditionFailedError(APIError):
    """A prior pipeline stage has not produced its artifact yet (422).

    Raised before any model call is made, so no run is recorded.
    """

    def __init__(self, message: str) -> None:
        super().__init__(
            code="PRECONDITION_FAILED",
            message=message,
            status_code=422,
        )


class UpstreamModelError(APIError):
    """The model backend failed or produced unusable output (502).

    Args:
        message: Failure reason as recorded in the run ledger.
        failure_kind: FailureKind value, echoed in details so clients can
            tell transport failures from invalid output.
        run_id: The failed run's identifier.
    """

    def __init__(
        self,
        message: str,
        failure_kind: str | None = None,
        run_id: str | None = None,
    ) -> None:
        details = None
        if failure_kind or run_id:
            details = [{"failure_kind": failure_kind, "run_id": run_id}]
        super().__init__(
            code="UPSTREAM_MODEL_ERROR",
            message=message,
            status_code=502,
            details=details,
        )


class ServiceUnavailableError(APIError):
    """Service misconfigured, e.g. missing provider credentials (503)."""

    def __init__(self, message: str = "Service is not configured") -> None:
        super().__init__(
            code="SERVICE_UNAVAILABLE",
            message=message,
            status_code=503,
        )


class InternalError(APIError):
    """Unexpected server error (500).

    Use for unhandled exceptions. Never expose stack traces to clients.
    """

    def __init__(self, message: str = "An unexpected error occurred") -> None:
        super().__init__(
            code="INTERNAL_ERROR",
            message=message,
            status_code=500,
        )
