"""
JSON Exporter
Exports findings and fix plans to JSON format.
"""

import json
from typing import Any, Dict, List, Optional

from iamwarden.findings import Finding, sort_findings_by_severity
from iamwarden.output_formats.base_exporter import BaseExporter
from iamwarden.remediation.plan import FixPlan


class JSONExporter(BaseExporter):
    """Export scan results to JSON format."""

    def export(self, findings: List[Finding], filename: str, metadata: Optional[Dict[str, Any]] = None,
               plans: Optional[List[FixPlan]] = None) -> str:
        """
        Export findings to JSON format.

        Findings are written critical first; plans keep their given order.

        Returns:
            Full path to exported file
        """
        output_file = self.get_full_path(filename, '.json')

        data = {
            'scan_metadata': self.build_summary(findings, metadata),
            'findings': [f.to_dict() for f in sort_findings_by_severity(findings)],
            'plans': [p.to_dict() for p in plans or []],
        }

        with open(output_file, 'w') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

        return output_file
