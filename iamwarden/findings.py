"""
Finding Model & Ranking
Security findings, severity ordering and aggregation helpers.
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Tuple

SEVERITY_CRITICAL = 'critical'
SEVERITY_HIGH = 'high'
SEVERITY_MEDIUM = 'medium'
SEVERITY_LOW = 'low'
SEVERITY_INFO = 'info'

SEVERITY_SCORES = {
    SEVERITY_CRITICAL: 5,
    SEVERITY_HIGH: 4,
    SEVERITY_MEDIUM: 3,
    SEVERITY_LOW: 2,
    SEVERITY_INFO: 1,
}

# Finding types
FINDING_OVERPERMISSIVE_POLICY = 'overpermissive_policy'
FINDING_ADMIN_ACCESS = 'admin_access'
FINDING_WILDCARD_RESOURCE = 'wildcard_resource'
FINDING_UNUSED_ROLE = 'unused_role'
FINDING_CROSS_ACCOUNT_TRUST = 'cross_account_trust'
FINDING_MISSING_MFA = 'missing_mfa'
FINDING_OLD_ACCESS_KEYS = 'old_access_keys'
FINDING_INACTIVE_KEYS = 'inactive_keys'
FINDING_ROOT_ACCOUNT_USAGE = 'root_account_usage'
FINDING_PUBLIC_S3_ACCESS = 'public_s3_access'
FINDING_EXCESSIVE_PERMISSIONS = 'excessive_permissions'
FINDING_MISSING_RESOURCE_SCOPING = 'missing_resource_scoping'

FINDING_TYPES = (
    FINDING_OVERPERMISSIVE_POLICY,
    FINDING_ADMIN_ACCESS,
    FINDING_WILDCARD_RESOURCE,
    FINDING_UNUSED_ROLE,
    FINDING_CROSS_ACCOUNT_TRUST,
    FINDING_MISSING_MFA,
    FINDING_OLD_ACCESS_KEYS,
    FINDING_INACTIVE_KEYS,
    FINDING_ROOT_ACCOUNT_USAGE,
    FINDING_PUBLIC_S3_ACCESS,
    FINDING_EXCESSIVE_PERMISSIONS,
    FINDING_MISSING_RESOURCE_SCOPING,
)


@dataclass(frozen=True)
class Finding:
    """A security issue detected by one of the classifiers."""

    id: str
    severity: str
    type: str
    resource_arn: str
    description: str
    remediation: str
    actions: Tuple[str, ...] = field(default_factory=tuple)
    resources: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        # Callers may pass lists; store tuples so the finding stays immutable.
        object.__setattr__(self, 'actions', tuple(self.actions))
        object.__setattr__(self, 'resources', tuple(self.resources))

    @property
    def score(self) -> int:
        return severity_score(self.severity)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the flat JSON structure used for persistence."""
        data = {
            'id': self.id,
            'severity': self.severity,
            'type': self.type,
            'resource_arn': self.resource_arn,
            'description': self.description,
            'remediation': self.remediation,
        }
        if self.actions:
            data['actions'] = list(self.actions)
        if self.resources:
            data['resources'] = list(self.resources)
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'Finding':
        return cls(
            id=data.get('id', ''),
            severity=data.get('severity', ''),
            type=data.get('type', ''),
            resource_arn=data.get('resource_arn', ''),
            description=data.get('description', ''),
            remediation=data.get('remediation', ''),
            actions=tuple(data.get('actions') or ()),
            resources=tuple(data.get('resources') or ()),
        )


def severity_score(severity: str) -> int:
    """Return the numeric score for a severity (0 for unknown values)."""
    return SEVERITY_SCORES.get(severity, 0)


def sort_findings_by_severity(findings: Iterable[Finding]) -> List[Finding]:
    """
    Sort findings critical first.

    The sort is stable: findings of equal severity keep their generation order.

    Args:
        findings: Findings to sort

    Returns:
        New sorted list
    """
    return sorted(findings, key=lambda f: severity_score(f.severity), reverse=True)


def filter_findings_by_severity(findings: Iterable[Finding], min_severity: str) -> List[Finding]:
    """Return findings at or above the given severity."""
    min_score = severity_score(min_severity)
    return [f for f in findings if severity_score(f.severity) >= min_score]


def group_findings_by_resource(findings: Iterable[Finding]) -> Dict[str, List[Finding]]:
    grouped: Dict[str, List[Finding]] = {}
    for f in findings:
        grouped.setdefault(f.resource_arn, []).append(f)
    return grouped


def group_findings_by_type(findings: Iterable[Finding]) -> Dict[str, List[Finding]]:
    grouped: Dict[str, List[Finding]] = {}
    for f in findings:
        grouped.setdefault(f.type, []).append(f)
    return grouped


def get_overall_risk(findings: Iterable[Finding]) -> str:
    """Highest severity present, or ``info`` for an empty set."""
    max_severity = SEVERITY_INFO
    max_score = 0
    for f in findings:
        score = severity_score(f.severity)
        if score > max_score:
            max_score = score
            max_severity = f.severity
    return max_severity


def count_by_severity(findings: Iterable[Finding]) -> Dict[str, int]:
    counts = Counter(f.severity for f in findings)
    return {severity: counts.get(severity, 0) for severity in SEVERITY_SCORES}


def format_finding(finding: Finding) -> str:
    """Format a single finding for display."""
    lines = [
        f'[{finding.severity.upper()}] {finding.type}',
        f'Resource: {finding.resource_arn}',
        f'Description: {finding.description}',
    ]
    if finding.actions:
        lines.append(f"Actions: {', '.join(finding.actions)}")
    if finding.resources:
        lines.append(f"Resources: {', '.join(finding.resources)}")
    lines.append(f'Remediation: {finding.remediation}')
    return '\n'.join(lines) + '\n'


def format_findings(findings: Iterable[Finding]) -> str:
    """Format findings as a severity-sorted report with a summary header."""
    ordered = sort_findings_by_severity(findings)
    if not ordered:
        return 'No security findings identified.'

    separator = '-' * 60
    parts = [f'Security Analysis Results: {len(ordered)} findings\n', 'Summary by Severity:']

    for severity, count in count_by_severity(ordered).items():
        if count:
            parts.append(f'  - {severity.capitalize()}: {count}')

    parts.append('')
    parts.append('Detailed Findings:')
    parts.append(separator)

    for i, f in enumerate(ordered, start=1):
        parts.append(f'\n{i}. {format_finding(f)}{separator}')

    return '\n'.join(parts) + '\n'
