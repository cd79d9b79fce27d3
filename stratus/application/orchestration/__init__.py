"""Dependency-ordered, parallel execution of plan, apply and destroy steps."""

from stratus.application.orchestration.dag_orchestrator import (
    DAGOrchestrator,
    WorkflowStep,
    OrchestrationError,
)

__all__ = ["DAGOrchestrator", "WorkflowStep", "OrchestrationError"]
