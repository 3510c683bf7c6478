"""Stage pipeline - the template every pipeline stage runs through.

A stage invocation is:

    gather -> build request -> begin run -> invoke -> post-process
           -> persist artifact -> complete run -> outcome

Rules enforced here, for every stage:
- Preconditions (missing intake, missing required prior artifact) raise
  PreconditionError from ``gather``, before a run exists or a token is spent.
- A ModelFailure is recorded on the run and no artifact is written.
- The artifact is written before the run is completed and carries the run
  id. If the write raises, the run is failed and the exception propagates.
- Cancellation between ``begin`` and ``complete`` leaves the run pending
  for the reconciliation sweep.

Concurrent invocations for the same intake are not serialized. Each has its
own run; artifacts of the same kind resolve last-write-wins and readers take
the newest by ``created_at``.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar, Generic, TypeVar

import structlog

from intake_pilot.providers.guarded_caller import (
    FailureKind,
    GuardedModelCaller,
    ModelFailure,
    ModelRequest,
    ModelSuccess,
)
from intake_pilot.providers.llm.base import LLMMessage, TaskType
from intake_pilot.repositories.record_store import Collection, RecordStore
from intake_pilot.services.errors import OutputContractError, PreconditionError
from intake_pilot.services.run_ledger import RunLedger

logger = structlog.get_logger()

RequestT = TypeVar("RequestT")

_PERSISTENCE_FAILURE_MESSAGE = "Failed to store stage output"


# =============================================================================
# Data Models
# =============================================================================


@dataclass
class StageContext:
    """Dependencies gathered for one stage invocation.

    Attributes:
        subject_id: Intake case id.
        intake: The intake case record.
        dependencies: Prior records by name. Optional dependencies that do
            not exist are present with value None, so prompt builders
            degrade explicitly instead of probing for keys.
    """

    subject_id: str
    intake: dict[str, Any]
    dependencies: dict[str, dict[str, Any] | None] = field(default_factory=dict)

    def dependency_ids(self) -> dict[str, str | None]:
        """Record ids of the dependencies used, for run provenance."""
        return {
            name: record["id"] if record else None
            for name, record in self.dependencies.items()
        }


@dataclass
class StageOutcome:
    """Result of one stage invocation.

    Attributes:
        success: Whether an artifact was produced.
        run_id: The run recorded for this invocation.
        subject_id: Intake case id.
        payload: Post-processed output (None on failure).
        tokens_used: Token cost spent, including on failure.
        error: Failure reason (None on success).
        failure_kind: Failure classification (None on success).
        extras: Stage-specific identifiers (artifact id, session id, ...).
    """

    success: bool
    run_id: str
    subject_id: str
    payload: Any = None
    tokens_used: int = 0
    error: str | None = None
    failure_kind: FailureKind | None = None
    extras: dict[str, Any] = field(default_factory=dict)


# =============================================================================
# Shared Helpers
# =============================================================================


async def require_intake(store: RecordStore, subject_id: str) -> dict[str, Any]:
    """Fetch the intake case or raise PreconditionError."""
    intake = await store.get(Collection.INTAKE_CASES, subject_id)
    if intake is None:
        raise PreconditionError("Intake", subject_id)
    return intake


async def require_latest(
    store: RecordStore,
    collection: Collection,
    subject_id: str,
    resource: str,
) -> dict[str, Any]:
    """Fetch the newest ``collection`` record for the intake or raise."""
    record = await store.get_latest(collection, intake_id=subject_id)
    if record is None:
        raise PreconditionError(
            resource,
            subject_id,
            f"{resource} is required before this stage can run for intake "
            f"'{subject_id}'",
        )
    return record


# =============================================================================
# Stage Template
# =============================================================================


class PipelineStage(ABC, Generic[RequestT]):
    """Base class for the pipeline stages.

    Subclasses set the class attributes and implement ``gather``,
    ``build_user_prompt``, ``post_process`` and ``persist``.

    Args:
        store: Record store for dependencies and artifacts.
        caller: Guarded model caller.
        ledger: Run ledger (defaults to one over ``store``).
        instructions: Override for the stage's system instructions.
    """

    stage_type: ClassVar[str]
    task: ClassVar[TaskType]
    temperature: ClassVar[float]
    max_output_tokens: ClassVar[int]
    default_instructions: ClassVar[str]

    def __init__(
        self,
        store: RecordStore,
        caller: GuardedModelCaller,
        ledger: RunLedger | None = None,
        instructions: str | None = None,
    ) -> None:
        self.store = store
        self.caller = caller
        self.ledger = ledger if ledger is not None else RunLedger(store)
        self.instructions = instructions or self.default_instructions

    # -------------------------------------------------------------------------
    # Hooks
    # -------------------------------------------------------------------------

    @abstractmethod
    async def gather(self, request: RequestT) -> StageContext:
        """Load the intake and prior artifacts.

        Raises:
            PreconditionError: If a required record is missing.
        """
        ...

    @abstractmethod
    def build_user_prompt(self, request: RequestT, context: StageContext) -> str:
        """Render the stage's user prompt from the gathered context."""
        ...

    @abstractmethod
    def post_process(
        self, data: Any, request: RequestT, context: StageContext
    ) -> Any:
        """Validate and normalize the parsed model output.

        Raises:
            OutputContractError: If the output cannot be used.
        """
        ...

    @abstractmethod
    async def persist(
        self,
        payload: Any,
        request: RequestT,
        context: StageContext,
        run_id: str,
    ) -> dict[str, Any]:
        """Write the artifact (tagged with ``run_id``).

        Returns:
            Stage-specific identifiers for the outcome's ``extras``.
        """
        ...

    def describe_request(self, request: RequestT) -> dict[str, Any]:
        """Request summary stored as run provenance (no raw document text)."""
        return {}

    async def on_failure(
        self, request: RequestT, context: StageContext, run_id: str
    ) -> None:
        """Stage-specific cleanup after a failed run. Default: nothing."""

    # -------------------------------------------------------------------------
    # Template
    # -------------------------------------------------------------------------

    def build_messages(
        self, request: RequestT, context: StageContext
    ) -> tuple[LLMMessage, ...]:
        return (
            LLMMessage(role="system", content=self.instructions),
            LLMMessage(role="user", content=self.build_user_prompt(request, context)),
        )

    async def run(self, request: RequestT) -> StageOutcome:
        """Execute the stage end to end.

        Returns:
            StageOutcome; ``success`` is False when the model call failed or
            its output violated the stage contract.

        Raises:
            PreconditionError: Missing intake or required prior artifact.
        """
        context = await self.gather(request)
        model_request = ModelRequest(
            messages=self.build_messages(request, context),
            task=self.task,
            temperature=self.temperature,
            max_output_tokens=self.max_output_tokens,
        )

        run_id = await self.ledger.begin(
            context.subject_id,
            self.stage_type,
            model=self.caller.model_for(self.task),
            inputs={
                "request": self.describe_request(request),
                "dependencies": context.dependency_ids(),
            },
        )
        logger.info(
            "stage_started",
            stage=self.stage_type,
            intake_id=context.subject_id,
            run_id=run_id,
        )

        result = await self.caller.invoke(model_request)
        if isinstance(result, ModelFailure):
            await self.ledger.complete(run_id, result)
            return await self._failed(request, context, run_id, result)

        try:
            payload = self.post_process(result.data, request, context)
        except Exception as e:
            # Valid JSON that breaks a normalizer is still unusable output
            if isinstance(e, OutputContractError):
                reason = f"Model output rejected: {e}"
            else:
                logger.exception(
                    "stage_post_process_failed",
                    stage=self.stage_type,
                    intake_id=context.subject_id,
                    run_id=run_id,
                )
                reason = f"Model output rejected: could not normalize ({type(e).__name__})"
            failure = ModelFailure(
                reason=reason,
                kind=FailureKind.INVALID_OUTPUT,
                tokens_used=result.tokens_used,
            )
            await self.ledger.complete(run_id, failure)
            return await self._failed(request, context, run_id, failure)

        try:
            extras = await self.persist(payload, request, context, run_id)
        except Exception:
            logger.exception(
                "stage_persist_failed",
                stage=self.stage_type,
                intake_id=context.subject_id,
                run_id=run_id,
            )
            await self.ledger.fail(
                run_id,
                _PERSISTENCE_FAILURE_MESSAGE,
                FailureKind.PERSISTENCE,
                tokens_used=result.tokens_used,
            )
            await self.on_failure(request, context, run_id)
            raise

        await self.ledger.complete(
            run_id,
            ModelSuccess(
                data=payload, tokens_used=result.tokens_used, model=result.model
            ),
        )
        logger.info(
            "stage_succeeded",
            stage=self.stage_type,
            intake_id=context.subject_id,
            run_id=run_id,
            tokens_used=result.tokens_used,
        )
        return StageOutcome(
            success=True,
            run_id=run_id,
            subject_id=context.subject_id,
            payload=payload,
            tokens_used=result.tokens_used,
            extras=extras,
        )

    async def _failed(
        self,
        request: RequestT,
        context: StageContext,
        run_id: str,
        failure: ModelFailure,
    ) -> StageOutcome:
        await self.on_failure(request, context, run_id)
        logger.warning(
            "stage_failed",
            stage=self.stage_type,
            intake_id=context.subject_id,
            run_id=run_id,
            failure_kind=failure.kind.value,
            tokens_used=failure.tokens_used,
        )
        return StageOutcome(
            success=False,
            run_id=run_id,
            subject_id=context.subject_id,
            tokens_used=failure.tokens_used,
            error=failure.reason,
            failure_kind=failure.kind,
        )
