"""SQLAlchemy ORM models for Intake Pilot.

All models are exported from this module for convenient imports:
    from intake_pilot.models import IntakeCase, AIRun, ...

Models are organized by domain:
- intake.py: UploadedDocument, IntakeCase, IntakeAttachment
- ai_run.py: AIRun (run ledger)
- artifacts.py: AnalysisArtifact, RiskDiagnosticsArtifact, ActionItemSet,
  WorkflowRecommendationSet, PreflightPack, CustomerEnrichment
- interview.py: InterviewSession
"""

from intake_pilot.models.ai_run import AIRun
from intake_pilot.models.artifacts import (
    ActionItemSet,
    AnalysisArtifact,
    CustomerEnrichment,
    PreflightPack,
    RiskDiagnosticsArtifact,
    WorkflowRecommendationSet,
)
from intake_pilot.models.base import Base, TimestampMixin
from intake_pilot.models.intake import IntakeAttachment, IntakeCase, UploadedDocument
from intake_pilot.models.interview import InterviewSession

__all__ = [
    # Base classes
    "Base",
    "TimestampMixin",
    # Intake
    "UploadedDocument",
    "IntakeCase",
    "IntakeAttachment",
    # Run ledger
    "AIRun",
    # Artifacts
    "AnalysisArtifact",
    "RiskDiagnosticsArtifact",
    "ActionItemSet",
    "WorkflowRecommendationSet",
    "PreflightPack",
    "CustomerEnrichment",
    # Interview
    "InterviewSession",
]
