"""
Remediation Strategies
One handler per finding type. Each handler returns ``(commands, notes, warnings)``
and decides which finding types get automated commands at all.
"""

import logging
from typing import Callable, Dict, List, NamedTuple, Optional, Tuple

from iamwarden.errors import ProviderError
from iamwarden.findings import (
    FINDING_ADMIN_ACCESS,
    FINDING_CROSS_ACCOUNT_TRUST,
    FINDING_INACTIVE_KEYS,
    FINDING_MISSING_MFA,
    FINDING_OLD_ACCESS_KEYS,
    FINDING_OVERPERMISSIVE_POLICY,
    FINDING_UNUSED_ROLE,
    FINDING_WILDCARD_RESOURCE,
    Finding,
)
from iamwarden.ids import IDGenerator
from iamwarden.provider import IAMDataProvider
from iamwarden.remediation.documents import (
    document_text,
    extract_role_name,
    extract_user_name,
    suggest_least_privilege_policy,
    suggest_secure_trust_policy,
)
from iamwarden.remediation.plan import ActionType, FixCommand

logger = logging.getLogger(__name__)

HandlerResult = Tuple[List[FixCommand], List[str], List[str]]
Handler = Callable[[Finding, Optional[IAMDataProvider], IDGenerator], HandlerResult]


class Strategy(NamedTuple):
    summary: str
    handler: Handler


def _require(provider: Optional[IAMDataProvider]) -> IAMDataProvider:
    if provider is None:
        raise ProviderError('no data provider configured')
    return provider


def plan_overpermissive_policy(finding: Finding, provider: Optional[IAMDataProvider],
                               ids: IDGenerator) -> HandlerResult:
    commands: List[FixCommand] = []
    notes = ['This fix will create a new policy version with restricted permissions']
    warnings = ['Review the suggested policy changes carefully before applying']

    try:
        detail = _require(provider).get_policy_document(finding.resource_arn)
    except Exception as e:
        logger.warning(f'Unable to retrieve policy {finding.resource_arn}: {e}')
        notes.append(f'Unable to retrieve current policy: {e}')
        notes.append(f'Manual review required: {finding.remediation}')
        return commands, notes, warnings

    current = detail.policy_document
    commands.append(FixCommand(
        id=ids.command_id(),
        action=ActionType.CREATE_POLICY_VERSION,
        resource_arn=finding.resource_arn,
        parameters={'document': suggest_least_privilege_policy(current, finding.actions)},
        reason='Replace overly permissive actions with least-privilege alternatives',
        rollback=FixCommand(
            id=ids.command_id(),
            action=ActionType.CREATE_POLICY_VERSION,
            resource_arn=finding.resource_arn,
            parameters={'document': document_text(current)},
            reason='Restore the previous policy document',
        ),
    ))

    return commands, notes, warnings


def plan_admin_access(finding: Finding, provider: Optional[IAMDataProvider],
                      ids: IDGenerator) -> HandlerResult:
    # Manual review only; no commands are generated for admin access
    warnings = [
        'Removing administrative access may break functionality',
        'Ensure workloads do not require admin access before applying',
    ]
    notes = [
        'Review which specific permissions are actually needed',
        'Consider using AWS Access Analyzer to identify required permissions',
        'Automated fix not recommended for admin access findings',
        finding.remediation,
    ]
    return [], notes, warnings


def plan_wildcard_resource(finding: Finding, provider: Optional[IAMDataProvider],
                           ids: IDGenerator) -> HandlerResult:
    notes = [
        'Identify specific resources that need to be accessed',
        'Replace Resource: "*" with specific ARNs',
    ]

    try:
        _require(provider).get_policy_document(finding.resource_arn)
    except Exception as e:
        logger.warning(f'Unable to retrieve policy {finding.resource_arn}: {e}')
        notes.append(f'Unable to retrieve current policy: {e}')
        return [], notes, []

    notes.append('Current policy document retrieved for review')
    notes.append('Manual specification of target resources required')
    notes.append(f'Actions to scope: {", ".join(finding.actions)}')
    return [], notes, []


def plan_cross_account_trust(finding: Finding, provider: Optional[IAMDataProvider],
                             ids: IDGenerator) -> HandlerResult:
    commands: List[FixCommand] = []
    warnings = ['Modifying trust policy may break cross-account access']
    notes = [
        'Add conditions to restrict cross-account trust:',
        '  - aws:SourceArn: Restrict to specific resource ARNs',
        '  - aws:SourceAccount: Restrict to specific accounts',
        '  - aws:PrincipalOrgID: Restrict to organization',
    ]

    role_name = extract_role_name(finding.resource_arn)
    try:
        detail = _require(provider).get_role_details(role_name)
    except Exception as e:
        logger.warning(f'Unable to retrieve role {role_name}: {e}')
        notes.append(f'Unable to retrieve role details: {e}')
        return commands, notes, warnings

    current = detail.assume_role_policy_document
    suggested = suggest_secure_trust_policy(current)
    if suggested:
        commands.append(FixCommand(
            id=ids.command_id(),
            action=ActionType.UPDATE_TRUST_POLICY,
            resource_arn=finding.resource_arn,
            parameters={'document': suggested},
            reason='Add conditions to trust policy for confused deputy protection',
            rollback=FixCommand(
                id=ids.command_id(),
                action=ActionType.UPDATE_TRUST_POLICY,
                resource_arn=finding.resource_arn,
                parameters={'document': document_text(current)},
                reason='Restore the previous trust policy',
            ),
        ))

    return commands, notes, warnings


def plan_missing_mfa(finding: Finding, provider: Optional[IAMDataProvider],
                     ids: IDGenerator) -> HandlerResult:
    notes = [
        'MFA must be enabled by the user themselves or an administrator',
        'Steps to enable MFA:',
        '  1. Sign in to AWS Console as the user',
        '  2. Go to IAM > Users > Security credentials',
        '  3. Assign MFA device (virtual or hardware)',
        'For programmatic enforcement, consider:',
        '  - Adding MFA condition to IAM policies',
        '  - Using SCP to require MFA for sensitive actions',
    ]
    return [], notes, []


def plan_access_key_rotation(finding: Finding, provider: Optional[IAMDataProvider],
                             ids: IDGenerator) -> HandlerResult:
    warnings = [
        'Deactivating access keys may break applications using them',
        'Create new access keys before deactivating old ones',
    ]
    notes = [
        'Recommended rotation process:',
        '  1. Create a new access key',
        '  2. Update applications to use the new key',
        '  3. Test that applications work with new key',
        '  4. Deactivate the old key',
        '  5. After verification period, delete the old key',
    ]
    return [], notes, warnings


def plan_inactive_keys(finding: Finding, provider: Optional[IAMDataProvider],
                       ids: IDGenerator) -> HandlerResult:
    commands: List[FixCommand] = []
    notes = [
        'Unused access keys should be deactivated or deleted',
        'Verify the key is truly unused before removal',
    ]

    user_name = extract_user_name(finding.resource_arn)
    if not user_name:
        return commands, notes, []

    try:
        keys = _require(provider).list_access_keys(user_name)
    except Exception as e:
        logger.warning(f'Unable to list access keys for {user_name}: {e}')
        notes.append(f'Unable to list access keys: {e}')
        return commands, notes, []

    for key in keys:
        if key.last_used_date is None and key.is_active:
            commands.append(FixCommand(
                id=ids.command_id(),
                action=ActionType.DEACTIVATE_ACCESS_KEY,
                resource_arn=finding.resource_arn,
                parameters={'access_key_id': key.access_key_id},
                reason='Deactivate unused access key',
            ))

    return commands, notes, []


def plan_unused_role(finding: Finding, provider: Optional[IAMDataProvider],
                     ids: IDGenerator) -> HandlerResult:
    warnings = [
        'Deleting roles is irreversible',
        'Ensure the role is truly unused before deletion',
    ]
    notes = [
        'Steps to safely remove unused role:',
        '  1. Verify role is not referenced in any application configs',
        '  2. Check CloudTrail for recent AssumeRole events',
        '  3. Detach all policies from the role',
        '  4. Remove role from any instance profiles',
        '  5. Delete the role',
        'Automated deletion not recommended - manual review required',
    ]
    return [], notes, warnings


STRATEGIES: Dict[str, Strategy] = {
    FINDING_OVERPERMISSIVE_POLICY: Strategy('Restrict overly permissive IAM policy', plan_overpermissive_policy),
    FINDING_ADMIN_ACCESS: Strategy('Review and restrict administrative IAM access', plan_admin_access),
    FINDING_WILDCARD_RESOURCE: Strategy('Add resource scoping to IAM policy', plan_wildcard_resource),
    FINDING_CROSS_ACCOUNT_TRUST: Strategy('Secure cross-account trust relationship', plan_cross_account_trust),
    FINDING_MISSING_MFA: Strategy('Enable MFA for user', plan_missing_mfa),
    FINDING_OLD_ACCESS_KEYS: Strategy('Rotate old access keys', plan_access_key_rotation),
    FINDING_INACTIVE_KEYS: Strategy('Deactivate or delete unused access keys', plan_inactive_keys),
    FINDING_UNUSED_ROLE: Strategy('Review and potentially delete unused role', plan_unused_role),
}
