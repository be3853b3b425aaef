"""
Account Scanner
Runs the full pipeline against a data provider: detection, ranking, plan
synthesis and export.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from iamwarden.analyzers import FindingDetector, IAMAnalyzer
from iamwarden.config import load_config
from iamwarden.findings import (
    SEVERITY_INFO,
    Finding,
    count_by_severity,
    filter_findings_by_severity,
    get_overall_risk,
    sort_findings_by_severity,
)
from iamwarden.ids import IDGenerator
from iamwarden.output_formats import get_exporter
from iamwarden.provider import IAMDataProvider
from iamwarden.remediation.plan import FixPlan
from iamwarden.remediation.planner import PlanSynthesizer


class IAMScanner:
    """Scans one account through a data provider and keeps the results."""

    def __init__(self, provider: IAMDataProvider, config: Optional[Dict[str, Any]] = None,
                 config_path: Optional[str] = None, ids: Optional[IDGenerator] = None):
        """
        Initialize the scanner.

        Args:
            provider: Source of IAM data
            config: Loaded configuration; read from ``config_path`` when omitted
            config_path: Path to configuration YAML file
            ids: ID generator shared by findings and plans
        """
        self.provider = provider
        self.config = config if config is not None else load_config(config_path)
        self.logger = logging.getLogger(self.__class__.__name__)
        self.ids = ids or IDGenerator()
        self.analyzer = IAMAnalyzer(provider, FindingDetector(self.ids))
        self.synthesizer = PlanSynthesizer(provider, self.ids)
        self.findings: List[Finding] = []
        self.plans: List[FixPlan] = []
        self.scan_start_time: Optional[datetime] = None
        self.scan_end_time: Optional[datetime] = None

    def scan(self) -> List[Finding]:
        """Analyze the whole account; findings are stored critical first."""
        self.scan_start_time = datetime.now(timezone.utc)
        self.findings = sort_findings_by_severity(self.analyzer.analyze_account())
        self.scan_end_time = datetime.now(timezone.utc)
        return self.findings

    def plan_fixes(self, findings: Optional[List[Finding]] = None,
                   min_severity: Optional[str] = None) -> List[FixPlan]:
        """
        Build one fix plan per finding at or above ``min_severity``.

        Args:
            findings: Findings to plan for (defaults to the last scan)
            min_severity: Lowest severity to plan for (defaults to config)

        Returns:
            Plans in finding order
        """
        if findings is None:
            findings = self.findings
        if min_severity is None:
            min_severity = self.config.get('remediation', {}).get('min_severity', SEVERITY_INFO)

        selected = filter_findings_by_severity(findings, min_severity)
        self.plans = self.synthesizer.generate_fix_plans(selected)
        self.logger.info(f'Generated {len(self.plans)} fix plans for {len(selected)} findings')
        return self.plans

    def get_scan_timestamp(self) -> str:
        """Get formatted timestamp for scan outputs."""
        output_config = self.config.get('output', {})
        if output_config.get('include_timestamp', True):
            return datetime.now(timezone.utc).strftime('%Y-%m-%d-%H%MZ')
        return ''

    def export_multiple_formats(self, base_filename: str, metadata: Optional[Dict[str, Any]] = None) -> List[str]:
        """
        Export findings and plans to every configured format.

        A failing format is logged and skipped.

        Returns:
            Paths of the files written
        """
        output_config = self.config.get('output', {})
        formats = output_config.get('formats', ['json'])
        output_dir = output_config.get('directory', './cache')

        scan_metadata = {
            'scan_start': self.scan_start_time.isoformat() if self.scan_start_time else None,
            'scan_end': self.scan_end_time.isoformat() if self.scan_end_time else None,
            **(metadata or {})
        }

        written = []
        for fmt in formats:
            try:
                exporter = get_exporter(fmt, output_dir)
                output_file = exporter.export(self.findings, base_filename, scan_metadata, plans=self.plans)
            except (ValueError, OSError) as e:
                self.logger.error(f'Error exporting to {fmt}: {e}')
                continue
            self.logger.info(f'Exported to {fmt.upper()}: {output_file}')
            written.append(output_file)

        return written

    def print_scan_summary(self):
        """Log scan summary statistics."""
        if not self.findings:
            self.logger.info('No security findings identified')
            return

        self.logger.info('=' * 60)
        self.logger.info('SCAN SUMMARY')
        self.logger.info('=' * 60)
        self.logger.info(f'Total Findings: {len(self.findings)}')
        self.logger.info(f'Overall Risk: {get_overall_risk(self.findings).upper()}')
        for severity, count in count_by_severity(self.findings).items():
            if count:
                self.logger.info(f'  {severity.capitalize()}: {count}')
        if self.plans:
            automated = sum(1 for p in self.plans if p.commands)
            self.logger.info(f'Fix Plans: {len(self.plans)} ({automated} with commands)')
        self.logger.info('=' * 60)
