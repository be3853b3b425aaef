"""
Plan Validator & Executor
Structural plan checks and sequential, fail-fast command execution.
"""

import logging
from enum import Enum
from typing import Any, Callable, Dict, Optional

from iamwarden.errors import ConfirmationRequired, ExecutionError, UnsupportedAction, ValidationError
from iamwarden.provider import IAMActionExecutor
from iamwarden.remediation.documents import extract_role_name, extract_user_name
from iamwarden.remediation.plan import EXECUTABLE_ACTIONS, FixCommand, FixPlan

ACCESS_KEY_INACTIVE = 'Inactive'


class ExecutionState(Enum):
    PENDING = 'pending'
    VALIDATING = 'validating'
    REJECTED = 'rejected'
    RUNNING = 'running'
    COMPLETED = 'completed'
    FAILED = 'failed'


def validate_plan(plan: Optional[FixPlan]):
    """
    Check a plan before execution.

    Raises:
        ValidationError: Naming the offending field (and command index, 0-based)
    """
    if plan is None:
        raise ValidationError('plan is missing', field='plan')

    if not plan.id:
        raise ValidationError('plan has no ID', field='id')

    if not plan.commands and not plan.notes:
        raise ValidationError('plan has no commands or notes', field='commands')

    for i, cmd in enumerate(plan.commands):
        if not cmd.action:
            raise ValidationError(f'command {i} has no action', field='action', index=i)
        if not cmd.resource_arn:
            raise ValidationError(f'command {i} has no resource ARN', field='resource_arn', index=i)


def _required_param(cmd: FixCommand, name: str) -> str:
    value = cmd.parameters.get(name)
    if not isinstance(value, str) or not value:
        raise ValueError(f'{name} parameter required for {cmd.action}')
    return value


class PlanExecutor:
    """
    Applies fix plans through an action executor.

    Commands run strictly in order and the first failure stops the plan.
    Commands that already ran are not rolled back; ``FixCommand.rollback`` is
    carried for reviewers and never executed here.
    """

    def __init__(self, action_executor: IAMActionExecutor):
        self.action_executor = action_executor
        self.state = ExecutionState.PENDING
        self.completed = 0
        self.logger = logging.getLogger(self.__class__.__name__)
        self._handlers: Dict[str, Callable[[FixCommand], Any]] = {
            action: getattr(self, f'_{action}') for action in EXECUTABLE_ACTIONS
        }

    def apply_plan(self, plan: FixPlan, confirm: bool = False):
        """
        Validate and apply a plan.

        Args:
            plan: Plan to apply
            confirm: Explicit consent; without it nothing is executed

        Raises:
            ValidationError: If the plan is structurally invalid
            ConfirmationRequired: If ``confirm`` is false
            ExecutionError: If a command fails (``index`` is 1-based)
        """
        self.state = ExecutionState.VALIDATING
        self.completed = 0
        try:
            validate_plan(plan)
        except ValidationError:
            self.state = ExecutionState.REJECTED
            raise

        if not confirm:
            self.state = ExecutionState.REJECTED
            raise ConfirmationRequired('plan execution requires confirmation')

        self.state = ExecutionState.RUNNING
        self.logger.info(f'Applying plan: {plan.summary}')

        total = len(plan.commands)
        for i, cmd in enumerate(plan.commands, 1):
            self.logger.info(f'Executing command {i}/{total}: {cmd.action} on {cmd.resource_arn}')
            try:
                self.execute_command(cmd, i)
            except ExecutionError as e:
                self.state = ExecutionState.FAILED
                self.logger.error(str(e))
                raise
            self.completed = i

        self.state = ExecutionState.COMPLETED
        self.logger.info('Plan applied successfully')

    def execute_command(self, cmd: FixCommand, index: int = 1):
        """
        Execute a single command.

        Raises:
            UnsupportedAction: If the action has no handler
            ExecutionError: If a parameter is missing or the action executor fails
        """
        handler = self._handlers.get(cmd.action)
        if handler is None:
            raise UnsupportedAction(index, cmd.action)

        try:
            handler(cmd)
        except Exception as e:
            raise ExecutionError(index, cmd.action, e) from e

    def _create_policy_version(self, cmd: FixCommand):
        document = _required_param(cmd, 'document')
        self.action_executor.create_policy_version(cmd.resource_arn, document, True)

    def _update_trust_policy(self, cmd: FixCommand):
        document = _required_param(cmd, 'document')
        self.action_executor.update_assume_role_policy(extract_role_name(cmd.resource_arn), document)

    def _attach_policy(self, cmd: FixCommand):
        policy_arn = _required_param(cmd, 'policy_arn')
        self.action_executor.attach_role_policy(extract_role_name(cmd.resource_arn), policy_arn)

    def _detach_policy(self, cmd: FixCommand):
        policy_arn = _required_param(cmd, 'policy_arn')
        self.action_executor.detach_role_policy(extract_role_name(cmd.resource_arn), policy_arn)

    def _deactivate_access_key(self, cmd: FixCommand):
        access_key_id = _required_param(cmd, 'access_key_id')
        self.action_executor.update_access_key(extract_user_name(cmd.resource_arn), access_key_id,
                                               ACCESS_KEY_INACTIVE)
