"""Prompt templates for the pipeline stages.

Each module contains the system instructions and user prompt builder for
one stage. Instructions are defaults; a stage accepts an override.

Modules:
    intake_analysis: Analyze (readiness analysis + field extraction)
    risk_diagnostics: Diagnose Risk
    action_planning: Plan Actions
    workflow_recommendation: Recommend Workflows
    preflight_pack: Build Preflight Pack
    interview: Interview turns
"""
