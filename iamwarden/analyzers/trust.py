"""
Trust Classifier
Rule-based analysis of role trust (assume-role) policies.
"""

from typing import List

from iamwarden.findings import (
    FINDING_CROSS_ACCOUNT_TRUST,
    SEVERITY_CRITICAL,
    SEVERITY_HIGH,
    SEVERITY_MEDIUM,
    Finding,
)
from iamwarden.ids import IDGenerator
from iamwarden.policy import PolicySource, parse_trust_policy

SERVICE_PRINCIPAL_SUFFIX = '.amazonaws.com'

# Services that commonly need confused deputy protection
CONFUSED_DEPUTY_RISK_SERVICES = frozenset([
    'lambda', 's3', 'cloudwatch', 'events', 'sns', 'sqs',
    'logs', 'apigateway', 'cloudformation', 'codebuild',
    'codepipeline', 'ecs', 'states', 'firehose',
])


def extract_account_id(arn: str) -> str:
    """Return the account field of an ARN (``arn:aws:iam::<account>:...``)."""
    parts = arn.split(':')
    if len(parts) >= 5:
        return parts[4]
    return ''


def is_confused_deputy_risk_service(service: str) -> bool:
    return service.lower() in CONFUSED_DEPUTY_RISK_SERVICES


def analyze_trust_policy(role_name: str, trust_policy: PolicySource, ids: IDGenerator) -> List[Finding]:
    """
    Analyze a role trust policy.

    Args:
        role_name: Role the findings are attributed to
        trust_policy: Trust policy JSON text or decoded mapping
        ids: ID generator for finding IDs

    Returns:
        Findings in generation order; empty if the policy does not parse
    """
    findings: List[Finding] = []

    for stmt in parse_trust_policy(trust_policy):
        if not stmt.is_allow:
            continue

        for principal in stmt.principals:
            if principal == '*':
                findings.append(Finding(
                    id=ids.finding_id(),
                    severity=SEVERITY_CRITICAL,
                    type=FINDING_CROSS_ACCOUNT_TRUST,
                    resource_arn=role_name,
                    description='Role trust policy allows anyone (*) to assume the role',
                    remediation='Restrict Principal to specific AWS accounts or services',
                ))
                continue

            if 'arn:aws:iam::' in principal:
                account_id = extract_account_id(principal)
                if account_id:
                    findings.append(Finding(
                        id=ids.finding_id(),
                        severity=SEVERITY_MEDIUM if stmt.has_condition else SEVERITY_HIGH,
                        type=FINDING_CROSS_ACCOUNT_TRUST,
                        resource_arn=role_name,
                        description=f'Role can be assumed by account {account_id}',
                        remediation='Ensure cross-account trust is intended and add conditions like aws:SourceArn',
                    ))

            if principal.endswith(SERVICE_PRINCIPAL_SUFFIX) and not stmt.has_condition:
                service = principal[:-len(SERVICE_PRINCIPAL_SUFFIX)]
                if is_confused_deputy_risk_service(service):
                    findings.append(Finding(
                        id=ids.finding_id(),
                        severity=SEVERITY_MEDIUM,
                        type=FINDING_CROSS_ACCOUNT_TRUST,
                        resource_arn=role_name,
                        description=f'Role trust policy for {service} service lacks confused deputy protection',
                        remediation='Add aws:SourceArn or aws:SourceAccount conditions to prevent confused deputy attacks',
                    ))

    return findings
