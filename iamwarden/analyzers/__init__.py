"""
Finding Detection
Entry points that run the permission, trust and credential classifiers.
"""

import logging
from typing import List, Optional, Union

from iamwarden.analyzers.credentials import analyze_credential_report
from iamwarden.analyzers.permissions import analyze_permissions
from iamwarden.analyzers.trust import analyze_trust_policy
from iamwarden.findings import FINDING_UNUSED_ROLE, SEVERITY_LOW, Finding
from iamwarden.ids import IDGenerator
from iamwarden.models import CredentialReport
from iamwarden.policy import PolicySource
from iamwarden.provider import IAMDataProvider

__all__ = [
    'FindingDetector',
    'IAMAnalyzer',
    'analyze_credential_report',
    'analyze_permissions',
    'analyze_trust_policy',
]

KIND_PERMISSIONS = 'permissions'
KIND_TRUST = 'trust'


class FindingDetector:
    """Runs the stateless classifiers with a shared ID generator."""

    def __init__(self, ids: Optional[IDGenerator] = None):
        self.ids = ids or IDGenerator()

    def detect_permissions(self, resource_arn: str, document: PolicySource) -> List[Finding]:
        return analyze_permissions(resource_arn, document, self.ids)

    def detect_trust(self, role_name: str, trust_policy: PolicySource) -> List[Finding]:
        return analyze_trust_policy(role_name, trust_policy, self.ids)

    def detect_credentials(self, report: CredentialReport) -> List[Finding]:
        return analyze_credential_report(report, self.ids)

    def detect_findings(self, source: Union[PolicySource, CredentialReport], resource_arn: str = '',
                        kind: str = KIND_PERMISSIONS) -> List[Finding]:
        """
        Detect findings in a permission policy, trust policy or credential report.

        Args:
            source: Policy document (text or mapping) or a CredentialReport
            resource_arn: Policy ARN or role name the findings are attributed to
            kind: ``permissions`` or ``trust`` for policy documents; ignored
                for credential reports

        Returns:
            Findings in generation order
        """
        if isinstance(source, CredentialReport):
            return self.detect_credentials(source)
        if kind == KIND_TRUST:
            return self.detect_trust(resource_arn, source)
        if kind == KIND_PERMISSIONS:
            return self.detect_permissions(resource_arn, source)
        raise ValueError(f'Unknown document kind: {kind}')


class IAMAnalyzer:
    """
    Security analysis of IAM resources read through a data provider.

    Provider failures never abort an analysis: the affected item is logged and
    contributes no findings.
    """

    def __init__(self, provider: IAMDataProvider, detector: Optional[FindingDetector] = None):
        self.provider = provider
        self.detector = detector or FindingDetector()
        self.logger = logging.getLogger(self.__class__.__name__)

    def analyze_account(self) -> List[Finding]:
        """Analyze every role, every customer managed policy and the credential report."""
        self.logger.info('Starting account-wide security analysis...')

        findings: List[Finding] = []
        findings.extend(self._analyze_all_roles())
        findings.extend(self._analyze_all_policies())
        findings.extend(self._analyze_credentials())

        self.logger.info(f'Analysis complete. Found {len(findings)} security issues.')
        return findings

    def analyze_role(self, role_name: str) -> List[Finding]:
        """
        Analyze one role: trust policy, attached and inline policies, usage.

        Raises:
            Exception: Whatever the provider raises when the role cannot be read
            ProviderError: If the role details cannot be retrieved
        """
        self.logger.debug(f'Analyzing role: {role_name}')
        detail = self.provider.get_role_details(role_name)

        findings = self.detector.detect_trust(detail.role_name, detail.assume_role_policy_document)

        for policy in detail.attached_policies:
            try:
                policy_detail = self.provider.get_policy_document(policy.policy_arn)
            except Exception as e:
                self.logger.warning(f'Skipping attached policy {policy.policy_arn}: {e}')
                continue
            findings.extend(self.detector.detect_permissions(policy.policy_arn, policy_detail.policy_document))

        for policy in detail.inline_policies:
            findings.extend(self.detector.detect_permissions(
                f'{detail.role_arn} (inline: {policy.policy_name})',
                policy.policy_document,
            ))

        if detail.last_used is None:
            findings.append(Finding(
                id=self.detector.ids.finding_id(),
                severity=SEVERITY_LOW,
                type=FINDING_UNUSED_ROLE,
                resource_arn=detail.role_arn or detail.role_name,
                description=f'Role {detail.role_name} has never been used',
                remediation='Consider deleting unused roles to reduce attack surface',
            ))

        return findings

    def analyze_policy(self, policy_arn: str) -> List[Finding]:
        self.logger.debug(f'Analyzing policy: {policy_arn}')
        detail = self.provider.get_policy_document(policy_arn)
        return self.detector.detect_permissions(policy_arn, detail.policy_document)

    def _analyze_all_roles(self) -> List[Finding]:
        try:
            roles = self.provider.list_roles()
        except Exception as e:
            self.logger.warning(f'Error listing roles: {e}')
            return []

        findings = []
        for role in roles:
            try:
                findings.extend(self.analyze_role(role.role_name))
            except Exception as e:
                self.logger.warning(f'Error analyzing role {role.role_name}: {e}')
        return findings

    def _analyze_all_policies(self) -> List[Finding]:
        try:
            policies = self.provider.list_policies()
        except Exception as e:
            self.logger.warning(f'Error listing policies: {e}')
            return []

        findings = []
        for policy in policies:
            try:
                findings.extend(self.analyze_policy(policy.policy_arn))
            except Exception as e:
                self.logger.warning(f'Error analyzing policy {policy.policy_name}: {e}')
        return findings

    def _analyze_credentials(self) -> List[Finding]:
        try:
            report = self.provider.get_credential_report()
        except Exception as e:
            self.logger.warning(f'Error getting credential report: {e}')
            return []
        return self.detector.detect_credentials(report)
