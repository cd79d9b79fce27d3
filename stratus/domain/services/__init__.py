"""
Domain Services Package

Architectural Intent:
- Contains domain services implementing provider logic
- Polling primitive and change planning are pure domain code
"""

from stratus.domain.services.state_waiter import (
    DELETED,
    StateChangeConf,
    WaitResult,
    check_deleted,
    check_for_retryable_error,
    is_not_found,
    retry,
)
from stratus.domain.services.reconciler import (
    PlanAction,
    ResourceChange,
    diff_attributes,
    plan_change,
)

__all__ = [
    "DELETED",
    "StateChangeConf",
    "WaitResult",
    "check_deleted",
    "check_for_retryable_error",
    "is_not_found",
    "retry",
    "PlanAction",
    "ResourceChange",
    "diff_attributes",
    "plan_change",
]
