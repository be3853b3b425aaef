"""
SARIF Exporter
Exports findings to SARIF (Static Analysis Results Interchange Format).
SARIF is a standard format for static analysis tool output.
"""

import json
from typing import Any, Dict, List, Optional

from iamwarden import __version__
from iamwarden.findings import (
    FINDING_TYPES,
    SEVERITY_CRITICAL,
    SEVERITY_HIGH,
    SEVERITY_MEDIUM,
    Finding,
    sort_findings_by_severity,
)
from iamwarden.output_formats.base_exporter import BaseExporter
from iamwarden.remediation.plan import FixPlan

SARIF_LEVELS = {
    SEVERITY_CRITICAL: 'error',
    SEVERITY_HIGH: 'error',
    SEVERITY_MEDIUM: 'warning',
}

RULE_DESCRIPTIONS = {
    'overpermissive_policy': 'Policy grants wildcard actions',
    'admin_access': 'Policy grants IAM administrative actions',
    'wildcard_resource': 'Policy applies to all resources',
    'unused_role': 'Role has never been used',
    'cross_account_trust': 'Role trust policy allows external principals',
    'missing_mfa': 'Identity has no MFA device',
    'old_access_keys': 'Access key exceeds the rotation threshold',
    'inactive_keys': 'Active access key has never been used',
    'root_account_usage': 'Root account has active access keys',
    'public_s3_access': 'Policy grants S3 read access to all buckets',
    'excessive_permissions': 'Policy grants a privilege escalation combination',
    'missing_resource_scoping': 'Sensitive actions are not scoped to resources',
}


def rule_id(finding_type: str) -> str:
    return f'IAM-{finding_type.upper().replace("_", "-")}'


def _rule_name(finding_type: str) -> str:
    return ''.join(part.capitalize() for part in finding_type.split('_'))


class SARIFExporter(BaseExporter):
    """
    Export findings to SARIF format.

    SARIF is a standard JSON format for static analysis results,
    supported by GitHub Security, VS Code, and other tools.
    """

    def export(self, findings: List[Finding], filename: str, metadata: Optional[Dict[str, Any]] = None,
               plans: Optional[List[FixPlan]] = None) -> str:
        """
        Export findings to SARIF format.

        Plan summaries are attached to the result of the finding they fix.

        Returns:
            Full path to exported file
        """
        output_file = self.get_full_path(filename, '.sarif')

        plans_by_finding = {p.finding.id: p for p in plans or []}

        sarif = {
            'version': '2.1.0',
            '$schema': 'https://json.schemastore.org/sarif-2.1.0.json',
            'runs': [
                {
                    'tool': {
                        'driver': {
                            'name': 'iamwarden',
                            'version': __version__,
                            'semanticVersion': __version__,
                            'rules': self._generate_rules()
                        }
                    },
                    'results': self._generate_results(findings, plans_by_finding),
                    'properties': self.build_summary(findings, metadata),
                }
            ]
        }

        with open(output_file, 'w') as f:
            json.dump(sarif, f, indent=2, ensure_ascii=False)

        return output_file

    def _generate_rules(self) -> List[Dict[str, Any]]:
        """One rule per finding type."""
        return [
            {
                'id': rule_id(finding_type),
                'name': _rule_name(finding_type),
                'shortDescription': {
                    'text': RULE_DESCRIPTIONS.get(finding_type, finding_type)
                },
                'properties': {
                    'tags': ['security', 'iam']
                }
            }
            for finding_type in FINDING_TYPES
        ]

    def _generate_results(self, findings: List[Finding], plans_by_finding: Dict[str, FixPlan]) -> List[Dict[str, Any]]:
        results = []

        for finding in sort_findings_by_severity(findings):
            result = {
                'ruleId': rule_id(finding.type),
                'level': self._determine_level(finding.severity),
                'message': {
                    'text': finding.description
                },
                'locations': [
                    {
                        'logicalLocations': [
                            {
                                'fullyQualifiedName': finding.resource_arn,
                                'kind': 'resource'
                            }
                        ]
                    }
                ],
                'properties': {
                    'finding_id': finding.id,
                    'severity': finding.severity,
                    'remediation': finding.remediation,
                }
            }

            if finding.actions:
                result['properties']['actions'] = list(finding.actions)
            if finding.resources:
                result['properties']['resources'] = list(finding.resources)

            plan = plans_by_finding.get(finding.id)
            if plan is not None:
                result['properties']['fix_plan'] = {
                    'id': plan.id,
                    'summary': plan.summary,
                    'commands': len(plan.commands),
                }

            results.append(result)

        return results

    def _determine_level(self, severity: str) -> str:
        """
        Map a finding severity to a SARIF level.

        Returns:
            'error', 'warning', or 'note'
        """
        return SARIF_LEVELS.get(severity, 'note')
