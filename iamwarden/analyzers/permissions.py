"""
Permission Classifier
Rule-based analysis of permission policy statements.
"""

from typing import List, Sequence

from iamwarden.findings import (
    FINDING_ADMIN_ACCESS,
    FINDING_EXCESSIVE_PERMISSIONS,
    FINDING_MISSING_RESOURCE_SCOPING,
    FINDING_OVERPERMISSIVE_POLICY,
    FINDING_PUBLIC_S3_ACCESS,
    SEVERITY_CRITICAL,
    SEVERITY_HIGH,
    SEVERITY_MEDIUM,
    Finding,
)
from iamwarden.ids import IDGenerator
from iamwarden.policy import PolicySource, parse_policy_document

HIGH_RISK_SERVICES = frozenset([
    'iam', 'sts', 'organizations', 'kms', 'secretsmanager',
    'cloudtrail', 'config', 'guardduty', 'securityhub',
])

ADMIN_ACTIONS = (
    'iam:*',
    'iam:CreateUser',
    'iam:CreateRole',
    'iam:AttachRolePolicy',
    'iam:AttachUserPolicy',
    'iam:PutRolePolicy',
    'iam:PutUserPolicy',
    'iam:CreatePolicyVersion',
    'iam:SetDefaultPolicyVersion',
    'iam:PassRole',
)

SENSITIVE_VERBS = (
    'Create', 'Delete', 'Put', 'Update', 'Attach', 'Detach',
    'Get', 'List', 'Describe',
)


def contains_action(actions: Sequence[str], target: str) -> bool:
    """
    Check whether a list of granted actions covers ``target``.

    Matching is case-insensitive. ``*`` covers everything and ``svc:*`` covers
    every action of ``svc``.
    """
    target_lower = target.lower()
    target_service = target_lower.split(':', 1)[0]
    for action in actions:
        action_lower = action.lower()
        if action_lower == target_lower or action == '*':
            return True
        if action_lower.endswith(':*') and action_lower[:-2] == target_service:
            return True
    return False


def is_high_risk_service(service: str) -> bool:
    return service.lower() in HIGH_RISK_SERVICES


def filter_sensitive_actions(actions: Sequence[str]) -> List[str]:
    sensitive = []
    for action in actions:
        lowered = action.lower()
        if action == '*' or any(verb.lower() in lowered for verb in SENSITIVE_VERBS):
            sensitive.append(action)
    return sensitive


def filter_s3_actions(actions: Sequence[str]) -> List[str]:
    return [a for a in actions if a.lower().startswith('s3:') or a == '*']


def find_wildcard_actions(resource_arn: str, actions: Sequence[str], resources: Sequence[str],
                          ids: IDGenerator) -> List[Finding]:
    findings = []

    for action in actions:
        if action == '*':
            findings.append(Finding(
                id=ids.finding_id(),
                severity=SEVERITY_CRITICAL,
                type=FINDING_OVERPERMISSIVE_POLICY,
                resource_arn=resource_arn,
                description='Policy grants all actions (*) which provides full administrative access',
                remediation='Replace wildcard action with specific actions required for the workload',
                actions=(action,),
                resources=tuple(resources),
            ))
        elif action.endswith(':*'):
            service = action[:-2]
            severity = SEVERITY_CRITICAL if is_high_risk_service(service) else SEVERITY_HIGH
            findings.append(Finding(
                id=ids.finding_id(),
                severity=severity,
                type=FINDING_OVERPERMISSIVE_POLICY,
                resource_arn=resource_arn,
                description=f'Policy grants all actions for service {service}',
                remediation=f'Replace {action} with specific {service} actions required',
                actions=(action,),
                resources=tuple(resources),
            ))

    return findings


def find_admin_privileges(resource_arn: str, actions: Sequence[str], ids: IDGenerator) -> List[Finding]:
    admin_lower = {a.lower() for a in ADMIN_ACTIONS}
    found = [a for a in actions if a == '*' or a.lower() in admin_lower]
    if not found:
        return []

    severity = SEVERITY_HIGH
    description = 'Policy grants IAM administrative actions that could allow privilege escalation'

    has_pass_role = contains_action(found, 'iam:PassRole')
    has_create_role = contains_action(found, 'iam:CreateRole')
    has_attach_policy = (contains_action(found, 'iam:AttachRolePolicy')
                         or contains_action(found, 'iam:AttachUserPolicy'))

    if has_pass_role and (has_create_role or has_attach_policy):
        severity = SEVERITY_CRITICAL
        description = 'Policy grants dangerous IAM action combination that enables privilege escalation'

    return [Finding(
        id=ids.finding_id(),
        severity=severity,
        type=FINDING_ADMIN_ACCESS,
        resource_arn=resource_arn,
        description=description,
        remediation='Review and restrict IAM permissions to the minimum required',
        actions=tuple(found),
    )]


def find_overly_permissive_resources(resource_arn: str, actions: Sequence[str], resources: Sequence[str],
                                     ids: IDGenerator) -> List[Finding]:
    if '*' not in resources:
        return []

    sensitive = filter_sensitive_actions(actions)
    if not sensitive:
        return []

    return [Finding(
        id=ids.finding_id(),
        severity=SEVERITY_MEDIUM,
        type=FINDING_MISSING_RESOURCE_SCOPING,
        resource_arn=resource_arn,
        description='Policy grants sensitive actions on all resources (*)',
        remediation='Scope Resource to specific ARNs or use resource-based conditions',
        actions=tuple(sensitive),
        resources=tuple(resources),
    )]


def find_dangerous_action_combinations(resource_arn: str, actions: Sequence[str], resources: Sequence[str],
                                       ids: IDGenerator) -> List[Finding]:
    findings = []

    # iam:PassRole + Lambda create/update lets a caller run code as any passable role
    has_pass_role = contains_action(actions, 'iam:PassRole')
    has_lambda_create = (contains_action(actions, 'lambda:CreateFunction')
                         or contains_action(actions, 'lambda:UpdateFunctionCode'))

    if has_pass_role and has_lambda_create:
        findings.append(Finding(
            id=ids.finding_id(),
            severity=SEVERITY_CRITICAL,
            type=FINDING_EXCESSIVE_PERMISSIONS,
            resource_arn=resource_arn,
            description='Policy allows iam:PassRole with Lambda create/update which enables privilege escalation',
            remediation='Add conditions to iam:PassRole to restrict which roles can be passed',
            actions=('iam:PassRole', 'lambda:CreateFunction'),
            resources=tuple(resources),
        ))

    has_ecs_run = contains_action(actions, 'ecs:RunTask') or contains_action(actions, 'ecs:CreateService')

    if has_pass_role and has_ecs_run:
        findings.append(Finding(
            id=ids.finding_id(),
            severity=SEVERITY_HIGH,
            type=FINDING_EXCESSIVE_PERMISSIONS,
            resource_arn=resource_arn,
            description='Policy allows iam:PassRole with ECS task execution which may enable privilege escalation',
            remediation='Add conditions to iam:PassRole to restrict which roles can be passed to ECS',
            actions=('iam:PassRole', 'ecs:RunTask'),
            resources=tuple(resources),
        ))

    # S3 data exfiltration
    has_s3_read = contains_action(actions, 's3:GetObject') or contains_action(actions, 's3:*')
    has_s3_wildcard_resource = any(r == '*' or r.startswith('arn:aws:s3:::*') for r in resources)

    if has_s3_read and has_s3_wildcard_resource:
        findings.append(Finding(
            id=ids.finding_id(),
            severity=SEVERITY_HIGH,
            type=FINDING_PUBLIC_S3_ACCESS,
            resource_arn=resource_arn,
            description='Policy grants S3 read access to all buckets which poses a data exfiltration risk',
            remediation='Restrict S3 access to specific buckets required for the workload',
            actions=tuple(filter_s3_actions(actions)),
            resources=tuple(resources),
        ))

    return findings


def analyze_permissions(resource_arn: str, document: PolicySource, ids: IDGenerator) -> List[Finding]:
    """
    Analyze a permission policy document for security issues.

    Every ``Allow`` statement is checked independently by four rule families
    (wildcard actions, admin privileges, resource wildcarding, dangerous
    combinations); one statement can produce several findings. Documents that
    fail to parse produce no findings.

    Args:
        resource_arn: ARN or name the findings are attributed to
        document: Policy JSON text or decoded mapping
        ids: ID generator for finding IDs

    Returns:
        Findings in generation order
    """
    findings: List[Finding] = []

    for stmt in parse_policy_document(document):
        if not stmt.is_allow:
            continue

        findings.extend(find_wildcard_actions(resource_arn, stmt.actions, stmt.resources, ids))
        findings.extend(find_admin_privileges(resource_arn, stmt.actions, ids))
        findings.extend(find_overly_permissive_resources(resource_arn, stmt.actions, stmt.resources, ids))
        findings.extend(find_dangerous_action_combinations(resource_arn, stmt.actions, stmt.resources, ids))

    return findings
