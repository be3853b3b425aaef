"""
Remediation
Fix plan synthesis, validation and execution.
"""

from iamwarden.remediation.executor import ExecutionState, PlanExecutor, validate_plan
from iamwarden.remediation.plan import ActionType, FixCommand, FixPlan, format_plan
from iamwarden.remediation.planner import PlanSynthesizer

__all__ = [
    'ActionType',
    'ExecutionState',
    'FixCommand',
    'FixPlan',
    'PlanExecutor',
    'PlanSynthesizer',
    'format_plan',
    'validate_plan',
]
