"""
Base Exporter Class
Abstract base class for all output format exporters.
"""

import os
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from iamwarden.findings import Finding, count_by_severity, get_overall_risk
from iamwarden.remediation.plan import FixPlan


class BaseExporter(ABC):
    """Abstract base class for output format exporters."""

    def __init__(self, output_dir: str = './cache'):
        """
        Initialize exporter.

        Args:
            output_dir: Directory to save output files
        """
        self.output_dir = output_dir
        os.makedirs(output_dir, exist_ok=True)

    @abstractmethod
    def export(self, findings: List[Finding], filename: str, metadata: Optional[Dict[str, Any]] = None,
               plans: Optional[List[FixPlan]] = None) -> str:
        """
        Export findings (and optionally their fix plans) to the format.

        Args:
            findings: Findings to export
            filename: Output filename (without extension)
            metadata: Additional metadata to include
            plans: Fix plans generated for the findings

        Returns:
            Full path to exported file
        """
        pass

    def get_full_path(self, filename: str, extension: str) -> str:
        """
        Get full file path with extension.

        Args:
            filename: Base filename
            extension: File extension (with or without dot)

        Returns:
            Full file path
        """
        if not extension.startswith('.'):
            extension = f'.{extension}'

        if not filename.endswith(extension):
            filename = f'{filename}{extension}'

        return os.path.join(self.output_dir, filename)

    def build_summary(self, findings: List[Finding], metadata: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Scan summary shared by all formats."""
        return {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'total_findings': len(findings),
            'by_severity': count_by_severity(findings),
            'overall_risk': get_overall_risk(findings),
            **(metadata or {})
        }
