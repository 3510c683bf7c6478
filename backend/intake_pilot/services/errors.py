"""Pipeline error taxonomy.

Errors raised by the run ledger and the stage pipeline. Model failures are
not exceptions (the guarded caller returns ModelFailure); these cover the
conditions around the model call.

- PreconditionError: raised before any model call, so no run exists.
- OutputContractError: the reply parsed but is not usable; the stage
  records the run as failed and reports it like any other model failure.
"""


class PipelineError(Exception):
    """Base class for pipeline errors."""


class PreconditionError(PipelineError):
    """A stage's subject or required prior artifact does not exist.

    Attributes:
        resource: What is missing (e.g., "Intake", "Analysis").
        subject_id: The intake the stage was invoked for.
    """

    def __init__(self, resource: str, subject_id: str, message: str | None = None):
        self.resource = resource
        self.subject_id = subject_id
        super().__init__(
            message or f"{resource} not found for intake '{subject_id}'"
        )

    @property
    def is_missing_subject(self) -> bool:
        """True when the intake case itself is missing (not a prior artifact)."""
        return self.resource == "Intake"


class OutputContractError(PipelineError):
    """Parsed model output lacks a required key or has the wrong shape."""
