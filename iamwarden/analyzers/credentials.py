"""
Credential Report Classifier
Checks root account usage, MFA coverage and access key hygiene.
"""

from datetime import datetime, timedelta, timezone
from typing import List, Optional

from iamwarden.findings import (
    FINDING_INACTIVE_KEYS,
    FINDING_MISSING_MFA,
    FINDING_OLD_ACCESS_KEYS,
    FINDING_ROOT_ACCOUNT_USAGE,
    SEVERITY_CRITICAL,
    SEVERITY_HIGH,
    SEVERITY_LOW,
    SEVERITY_MEDIUM,
    Finding,
)
from iamwarden.ids import IDGenerator
from iamwarden.models import CredentialReport, CredentialReportEntry

ACCESS_KEY_ROTATION_THRESHOLD = timedelta(days=90)


def _root_findings(user: CredentialReportEntry, ids: IDGenerator) -> List[Finding]:
    findings = []
    if user.access_key_1_active or user.access_key_2_active:
        findings.append(Finding(
            id=ids.finding_id(),
            severity=SEVERITY_CRITICAL,
            type=FINDING_ROOT_ACCOUNT_USAGE,
            resource_arn=user.arn or user.user,
            description='Root account has active access keys',
            remediation='Delete root account access keys and use IAM users/roles instead',
        ))
    if not user.mfa_active:
        findings.append(Finding(
            id=ids.finding_id(),
            severity=SEVERITY_CRITICAL,
            type=FINDING_MISSING_MFA,
            resource_arn=user.arn or user.user,
            description='Root account does not have MFA enabled',
            remediation='Enable MFA on the root account immediately',
        ))
    return findings


def key_age_days(last_rotated: datetime, now: datetime) -> int:
    return int((now - last_rotated).total_seconds() // 86400)


def stale_access_keys(user: CredentialReportEntry, now: datetime):
    """Yield ``(slot, age_days)`` for active keys older than the rotation threshold."""
    for slot, active, last_rotated, _ in user.access_key_slots():
        if active and last_rotated is not None and now - last_rotated > ACCESS_KEY_ROTATION_THRESHOLD:
            yield slot, key_age_days(last_rotated, now)


def analyze_credential_report(report: CredentialReport, ids: IDGenerator,
                              now: Optional[datetime] = None) -> List[Finding]:
    """
    Analyze a credential report for security issues.

    Args:
        report: Parsed credential report
        ids: ID generator for finding IDs
        now: Reference time for key age (defaults to current UTC time)

    Returns:
        Findings in generation order
    """
    now = now or datetime.now(timezone.utc)
    findings: List[Finding] = []

    for user in report.users:
        if user.is_root:
            findings.extend(_root_findings(user, ids))
            continue

        if user.password_enabled and not user.mfa_active:
            findings.append(Finding(
                id=ids.finding_id(),
                severity=SEVERITY_HIGH,
                type=FINDING_MISSING_MFA,
                resource_arn=user.arn or user.user,
                description=f'User {user.user} has console access but no MFA enabled',
                remediation='Enable MFA for all users with console access',
            ))

        for slot, age in stale_access_keys(user, now):
            findings.append(Finding(
                id=ids.finding_id(),
                severity=SEVERITY_MEDIUM,
                type=FINDING_OLD_ACCESS_KEYS,
                resource_arn=user.arn or user.user,
                description=f'User {user.user} has access key {slot} that is {age} days old',
                remediation='Rotate access keys regularly (recommended: every 90 days)',
            ))

        for slot, active, _, last_used in user.access_key_slots():
            if active and last_used is None:
                findings.append(Finding(
                    id=ids.finding_id(),
                    severity=SEVERITY_LOW,
                    type=FINDING_INACTIVE_KEYS,
                    resource_arn=user.arn or user.user,
                    description=f'User {user.user} has active access key {slot} that has never been used',
                    remediation='Delete unused access keys to reduce security risk',
                ))

    return findings
