"""
Fix Plans
Remediation plans, their commands and display formatting.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from iamwarden.errors import ParseError
from iamwarden.findings import Finding
from iamwarden.models import parse_timestamp


class ActionType:
    """Action names carried by fix commands (stable on the wire)."""

    UPDATE_POLICY = 'update_policy'
    CREATE_POLICY_VERSION = 'create_policy_version'
    ATTACH_POLICY = 'attach_policy'
    DETACH_POLICY = 'detach_policy'
    DELETE_POLICY_VERSION = 'delete_policy_version'
    DEACTIVATE_ACCESS_KEY = 'deactivate_access_key'
    DELETE_ACCESS_KEY = 'delete_access_key'
    ROTATE_ACCESS_KEY = 'rotate_access_key'
    UPDATE_TRUST_POLICY = 'update_trust_policy'


# Actions the plan executor knows how to perform
EXECUTABLE_ACTIONS = (
    ActionType.CREATE_POLICY_VERSION,
    ActionType.UPDATE_TRUST_POLICY,
    ActionType.ATTACH_POLICY,
    ActionType.DETACH_POLICY,
    ActionType.DEACTIVATE_ACCESS_KEY,
)

MAX_PARAMETER_DISPLAY = 100


@dataclass
class FixCommand:
    """A single remediation step against one resource."""

    id: str
    action: str
    resource_arn: str
    parameters: Dict[str, Any] = field(default_factory=dict)
    reason: str = ''
    rollback: Optional['FixCommand'] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'action': self.action,
            'resource_arn': self.resource_arn,
            'parameters': dict(self.parameters),
            'reason': self.reason,
        }
        if self.rollback is not None:
            data['rollback'] = self.rollback.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'FixCommand':
        rollback = data.get('rollback')
        return cls(
            id=data.get('id', ''),
            action=data.get('action', ''),
            resource_arn=data.get('resource_arn', ''),
            parameters=dict(data.get('parameters') or {}),
            reason=data.get('reason', ''),
            rollback=cls.from_dict(rollback) if rollback else None,
        )


@dataclass
class FixPlan:
    """
    Ordered remediation commands plus human guidance for one finding.

    ``finding`` is a snapshot of the finding the plan was built for.
    """

    id: str
    summary: str
    finding: Finding
    commands: List[FixCommand] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_manual(self) -> bool:
        """True when the plan carries no commands, only guidance."""
        return not self.commands

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'summary': self.summary,
            'finding': self.finding.to_dict(),
            'commands': [c.to_dict() for c in self.commands],
            'created_at': self.created_at.isoformat(),
        }
        if self.notes:
            data['notes'] = list(self.notes)
        if self.warnings:
            data['warnings'] = list(self.warnings)
        return data

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'FixPlan':
        return cls(
            id=data.get('id', ''),
            summary=data.get('summary', ''),
            finding=Finding.from_dict(data.get('finding') or {}),
            commands=[FixCommand.from_dict(c) for c in data.get('commands') or []],
            notes=list(data.get('notes') or []),
            warnings=list(data.get('warnings') or []),
            created_at=parse_timestamp(data.get('created_at')) or datetime.now(timezone.utc),
        )

    @classmethod
    def from_json(cls, plan_json: str) -> 'FixPlan':
        """
        Parse and check a serialized plan.

        Raises:
            ParseError: If the JSON is invalid or the plan has no ID or summary
        """
        try:
            data = json.loads(plan_json)
        except json.JSONDecodeError as e:
            raise ParseError(f'invalid plan JSON: {e}') from e

        if not isinstance(data, dict):
            raise ParseError('invalid plan JSON: expected an object')
        if not data.get('id'):
            raise ParseError('plan missing ID')
        if not data.get('summary'):
            raise ParseError('plan missing summary')

        return cls.from_dict(data)


def _display_value(value: Any) -> str:
    text = value if isinstance(value, str) else str(value)
    if len(text) > MAX_PARAMETER_DISPLAY:
        text = text[:MAX_PARAMETER_DISPLAY] + '...'
    return text


def format_plan(plan: FixPlan) -> str:
    """Render a fix plan for human review."""
    lines = [
        f'Fix Plan: {plan.id}',
        f'Summary: {plan.summary}',
        f'Created: {plan.created_at.strftime("%Y-%m-%d %H:%M:%S")}',
        '',
        'Finding:',
        f'  Type: {plan.finding.type}',
        f'  Severity: {plan.finding.severity}',
        f'  Resource: {plan.finding.resource_arn}',
        f'  Description: {plan.finding.description}',
        '',
    ]

    if plan.commands:
        lines.append('Commands:')
        for i, cmd in enumerate(plan.commands, 1):
            lines.append(f'  {i}. {cmd.action}')
            lines.append(f'     Resource: {cmd.resource_arn}')
            lines.append(f'     Reason: {cmd.reason}')
            if cmd.parameters:
                lines.append('     Parameters:')
                for key, value in cmd.parameters.items():
                    lines.append(f'       {key}: {_display_value(value)}')
        lines.append('')

    if plan.notes:
        lines.append('Notes:')
        lines.extend(f'  - {note}' for note in plan.notes)
        lines.append('')

    if plan.warnings:
        lines.append('Warnings:')
        lines.extend(f'  ! {warning}' for warning in plan.warnings)

    return '\n'.join(lines) + '\n'
