"""
Remediation Plan Synthesizer
Turns a finding into a reviewable fix plan using the per-type strategies.
"""

import logging
from typing import Iterable, List, Optional

from iamwarden.findings import Finding
from iamwarden.ids import IDGenerator
from iamwarden.provider import IAMDataProvider
from iamwarden.remediation.plan import FixPlan
from iamwarden.remediation.strategies import STRATEGIES


class PlanSynthesizer:
    """
    Builds fix plans for findings.

    Only some finding types ever produce commands; everything else yields a
    notes-only plan for manual review. A plan is never empty: when a handler
    returns neither commands nor notes, two default notes are added.
    """

    def __init__(self, provider: Optional[IAMDataProvider] = None, ids: Optional[IDGenerator] = None):
        self.provider = provider
        self.ids = ids or IDGenerator()
        self.logger = logging.getLogger(self.__class__.__name__)

    def generate_fix_plan(self, finding: Finding) -> FixPlan:
        """
        Generate a remediation plan for a finding.

        Args:
            finding: Finding to remediate

        Returns:
            FixPlan with commands, notes and warnings
        """
        self.logger.debug(f'Generating fix plan for finding: {finding.type} ({finding.resource_arn})')

        plan = FixPlan(id=self.ids.plan_id(), summary='', finding=finding)

        strategy = STRATEGIES.get(finding.type)
        if strategy is not None:
            commands, notes, warnings = strategy.handler(finding, self.provider, self.ids)
            plan.commands = list(commands)
            plan.notes = list(notes)
            plan.warnings = list(warnings)
            plan.summary = strategy.summary
        else:
            plan.summary = f'Manual review required for {finding.type} finding'
            plan.notes = [
                'This finding type requires manual review',
                finding.remediation,
            ]

        if not plan.commands and not plan.notes:
            plan.notes = [
                'No automated fix available for this finding',
                f'Manual remediation suggested: {finding.remediation}',
            ]

        self.logger.debug(f'Plan {plan.id}: {len(plan.commands)} commands, {len(plan.notes)} notes')
        return plan

    def generate_fix_plans(self, findings: Iterable[Finding]) -> List[FixPlan]:
        return [self.generate_fix_plan(f) for f in findings]
