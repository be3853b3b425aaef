"""
Error Taxonomy
Exceptions raised by the detection, remediation and dispatch pipeline.
"""

from typing import Optional


class IAMWardenError(Exception):
    """Base class for all iamwarden errors."""


class ParseError(IAMWardenError):
    """A policy document or report could not be parsed."""


class ProviderError(IAMWardenError):
    """The data provider could not return the requested entity."""


class ValidationError(IAMWardenError):
    """A fix plan is structurally invalid and must not be executed."""

    def __init__(self, message: str, field: Optional[str] = None, index: Optional[int] = None):
        super().__init__(message)
        self.field = field
        self.index = index


class ConfirmationRequired(IAMWardenError):
    """Plan execution was attempted without explicit confirmation."""


class ExecutionError(IAMWardenError):
    """
    A command in a fix plan failed.

    Attributes:
        index: 1-based position of the failing command in the plan
        action: Action of the failing command
        cause: Underlying exception reported by the action executor
    """

    def __init__(self, index: int, action: str, cause: Exception):
        super().__init__(f'command {index} ({action}) failed: {cause}')
        self.index = index
        self.action = action
        self.cause = cause


class UnsupportedAction(ExecutionError):
    """A fix plan references an action the executor cannot perform."""

    def __init__(self, index: int, action: str):
        super().__init__(index, action, ValueError(f'unsupported action: {action}'))


class OperationError(IAMWardenError):
    """A single dispatched operation failed."""


class OperationCancelled(IAMWardenError):
    """The caller cancelled the dispatcher while it was waiting for results."""
