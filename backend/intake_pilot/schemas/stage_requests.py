"""Parameter objects for pipeline stage invocations.

Frozen dataclasses the stages accept. The HTTP layer converts its camelCase
request bodies into these, so the stages never depend on pydantic or FastAPI.
"""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class AttachmentInput:
    """Supporting document analyzed alongside the main intake document."""

    text: str
    file_name: str
    category: str | None = None
    file_type: str | None = None
    description: str | None = None


@dataclass(frozen=True)
class AnalyzeRequest:
    """Analyze an onboarding document.

    Attributes:
        document_text: Raw text of the main intake document.
        file_name: Original file name.
        attachments: Supporting documents.
        intake_id: Existing intake to re-analyze. When None a new intake
            case is created.
        file_type: MIME type of the main document.
        file_size: Size in bytes of the main document.
    """

    document_text: str
    file_name: str
    attachments: tuple[AttachmentInput, ...] = ()
    intake_id: str | None = None
    file_type: str | None = None
    file_size: int | None = None


@dataclass(frozen=True)
class RiskDiagnosticsRequest:
    """Diagnose onboarding and mapping risks for an intake."""

    intake_id: str


@dataclass(frozen=True)
class ActionPlanRequest:
    """Generate the action plan for an intake.

    Attributes:
        intake_id: Intake case id.
        interview_summary: Free-text summary to include. When None the
            latest interview session (if any) is summarized instead.
    """

    intake_id: str
    interview_summary: str | None = None


@dataclass(frozen=True)
class WorkflowRequest:
    """Recommend operational workflows for an intake."""

    intake_id: str


@dataclass(frozen=True)
class PreflightPackRequest:
    """Build the go-live preflight pack for an intake."""

    intake_id: str


@dataclass(frozen=True)
class TranscriptEntry:
    """One message of an interview transcript."""

    role: str
    content: str
    timestamp: str | None = None

    def to_record(self) -> dict[str, str | None]:
        return {"role": self.role, "content": self.content, "timestamp": self.timestamp}


@dataclass(frozen=True)
class InterviewRequest:
    """Run one interview turn.

    Attributes:
        intake_id: Intake case id.
        session_id: Client-chosen session key.
        user_message: The user's new utterance.
        conversation_history: Caller-supplied prior turns, used to seed a new
            session. Ignored once the session exists (the stored transcript
            is authoritative).
    """

    intake_id: str
    session_id: str
    user_message: str
    conversation_history: tuple[TranscriptEntry, ...] = field(default_factory=tuple)
