"""
Local Operations
Resolves exploratory operation names to report text using an IAM data provider.
"""

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional

from iamwarden.analyzers.credentials import stale_access_keys
from iamwarden.dispatcher import OperationExecutor
from iamwarden.errors import OperationError
from iamwarden.models import (
    ROOT_ACCOUNT_USER,
    AccessKeyInfo,
    CredentialReport,
    PolicyDetail,
    PolicyInfo,
    RoleDetail,
    RoleInfo,
)
from iamwarden.policy import parse_policy_document, parse_trust_policy
from iamwarden.provider import IAMDataProvider

UNUSED_ROLE_WINDOW = timedelta(days=30)

DATE_FORMAT = '%Y-%m-%d'
DATETIME_FORMAT = '%Y-%m-%d %H:%M:%S'


def _fmt(value: Optional[datetime], fmt: str = DATE_FORMAT) -> str:
    return value.strftime(fmt) if value else ''


def _yes_no(flag: bool) -> str:
    return 'Yes' if flag else 'No'


def _pretty_json(document: str) -> str:
    try:
        return json.dumps(json.loads(document), indent=2)
    except (json.JSONDecodeError, TypeError):
        return document


def format_role_list(roles: List[RoleInfo]) -> str:
    if not roles:
        return 'No IAM roles found'

    lines = [f'Found {len(roles)} IAM roles:', '', 'NAME\tPATH\tCREATED']
    lines.extend(f'{r.role_name}\t{r.path}\t{_fmt(r.create_date)}' for r in roles)
    return '\n'.join(lines) + '\n'


def _policy_name_lines(detail: RoleDetail) -> List[str]:
    lines = ['', 'Attached Policies:']
    if detail.attached_policies:
        lines.extend(f'  - {p.policy_name} ({p.policy_arn})' for p in detail.attached_policies)
    else:
        lines.append('  (none)')

    lines.extend(['', 'Inline Policies:'])
    if detail.inline_policies:
        lines.extend(f'  - {p.policy_name}' for p in detail.inline_policies)
    else:
        lines.append('  (none)')
    return lines


def format_role_detail(detail: RoleDetail) -> str:
    lines = [
        f'Role: {detail.role_name}',
        f'ARN: {detail.role_arn}',
        f'Path: {detail.path}',
        f'Created: {_fmt(detail.create_date, DATETIME_FORMAT)}',
    ]
    if detail.description:
        lines.append(f'Description: {detail.description}')
    if detail.last_used:
        lines.append(f'Last Used: {_fmt(detail.last_used, DATETIME_FORMAT)}')

    lines.extend(_policy_name_lines(detail))
    lines.extend(['', 'Trust Policy:', detail.assume_role_policy_document])
    return '\n'.join(lines)


def format_role_policies(detail: RoleDetail) -> str:
    lines = [f'Policies for role {detail.role_name}:', '', 'Attached Managed Policies:']
    if detail.attached_policies:
        for p in detail.attached_policies:
            lines.append(f'  - {p.policy_name}')
            lines.append(f'    ARN: {p.policy_arn}')
    else:
        lines.append('  (none)')

    lines.extend(['', 'Inline Policies:'])
    if detail.inline_policies:
        for p in detail.inline_policies:
            lines.append(f'  - {p.policy_name}:')
            lines.append(p.policy_document)
    else:
        lines.append('  (none)')
    return '\n'.join(lines) + '\n'


def format_policy_list(policies: List[PolicyInfo]) -> str:
    if not policies:
        return 'No customer-managed IAM policies found'

    lines = [f'Found {len(policies)} customer-managed IAM policies:', '', 'NAME\tATTACHMENTS\tCREATED']
    lines.extend(f'{p.policy_name}\t{p.attachment_count}\t{_fmt(p.create_date)}' for p in policies)
    return '\n'.join(lines) + '\n'


def format_policy_detail(detail: PolicyDetail) -> str:
    lines = [
        f'Policy: {detail.policy_name}',
        f'ARN: {detail.policy_arn}',
        f'Path: {detail.path}',
        f'Attachment Count: {detail.attachment_count}',
        f'Created: {_fmt(detail.create_date, DATETIME_FORMAT)}',
        '',
        'Policy Document:',
        _pretty_json(detail.policy_document),
    ]
    return '\n'.join(lines)


def format_access_keys(keys: List[AccessKeyInfo]) -> str:
    if not keys:
        return 'No access keys found'

    lines = [f'Found {len(keys)} access keys:', '']
    for k in keys:
        lines.append(f'Key ID: {k.access_key_id}')
        lines.append(f'  Status: {k.status}')
        lines.append(f'  Created: {_fmt(k.create_date)}')
        if k.last_used_date:
            lines.append(f'  Last Used: {_fmt(k.last_used_date)}')
            if k.last_used_service:
                lines.append(f'  Last Service: {k.last_used_service}')
            if k.last_used_region:
                lines.append(f'  Last Region: {k.last_used_region}')
        else:
            lines.append('  Last Used: Never')
        lines.append('')
    return '\n'.join(lines) + '\n'


def format_credential_report(report: CredentialReport) -> str:
    lines = [
        f'Credential Report (Generated: {_fmt(report.generated_time, DATETIME_FORMAT)})',
        '',
        f'Total Users: {len(report.users)}',
        '',
        'USER\tMFA\tPASSWORD\tKEY1\tKEY2',
    ]
    for u in report.users:
        lines.append('\t'.join([
            u.user,
            _yes_no(u.mfa_active),
            _yes_no(u.password_enabled),
            _yes_no(u.access_key_1_active),
            _yes_no(u.access_key_2_active),
        ]))
    return '\n'.join(lines) + '\n'


def format_access_key_rotation_status(report: CredentialReport, now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    needs_rotation = [
        f'{u.user} (Key {slot}: {age} days old)'
        for u in report.users
        for slot, age in stale_access_keys(u, now)
    ]

    lines = ['Access Key Rotation Status:', '']
    if not needs_rotation:
        lines.append('All active access keys are within rotation threshold (90 days)')
        return '\n'.join(lines)

    lines.append(f'{len(needs_rotation)} access keys need rotation:')
    lines.extend(f'  - {k}' for k in needs_rotation)
    return '\n'.join(lines) + '\n'


def format_mfa_status(report: CredentialReport) -> str:
    without_mfa: List[str] = []
    with_mfa: List[str] = []

    for u in report.users:
        if u.user == ROOT_ACCOUNT_USER:
            if not u.mfa_active:
                without_mfa.insert(0, 'ROOT ACCOUNT (CRITICAL)')
            continue
        if u.password_enabled and not u.mfa_active:
            without_mfa.append(u.user)
        elif u.mfa_active:
            with_mfa.append(u.user)

    lines = [
        'MFA Status Report:',
        '',
        f'Users with MFA enabled: {len(with_mfa)}',
        f'Users without MFA: {len(without_mfa)}',
        '',
    ]
    if without_mfa:
        lines.append('Users requiring MFA:')
        lines.extend(f'  - {u}' for u in without_mfa)
    return '\n'.join(lines) + '\n'


def format_permission_analysis(detail: RoleDetail) -> str:
    lines = [f'Permission Analysis for Role: {detail.role_name}', '', 'Attached Managed Policies:']
    lines.extend(f'  - {p.policy_name}' for p in detail.attached_policies)
    lines.extend(['', 'Inline Policy Permissions:'])
    for p in detail.inline_policies:
        lines.extend(['', f'[{p.policy_name}]:', p.policy_document])
    return '\n'.join(lines) + '\n'


def _bulleted(header: str, items: List[str]) -> str:
    return '\n'.join([header, ''] + [f'- {item}' for item in items]) + '\n'


class LocalOperationExecutor(OperationExecutor):
    """
    Operation executor backed by an IAM data provider.

    Args:
        provider: Source of IAM data
        account_id: Caller's own account; trusts of this account are not
            reported as cross-account
    """

    def __init__(self, provider: IAMDataProvider, account_id: str = ''):
        self.provider = provider
        self.account_id = account_id
        self.logger = logging.getLogger(self.__class__.__name__)
        self._operations: Dict[str, Callable[[Mapping[str, Any]], str]] = {
            'list_roles': self.list_roles,
            'get_role_details': self.get_role_details,
            'get_role_policies': self.get_role_policies,
            'analyze_role_trust': self.analyze_role_trust,
            'list_policies': self.list_policies,
            'get_policy_document': self.get_policy_document,
            'list_access_keys': self.list_access_keys,
            'get_credential_report': self.get_credential_report,
            'check_access_key_rotation': self.check_access_key_rotation,
            'check_mfa_status': self.check_mfa_status,
            'find_overpermissive_policies': self.find_overpermissive_policies,
            'find_admin_access': self.find_admin_access,
            'find_unused_roles': self.find_unused_roles,
            'find_cross_account_trusts': self.find_cross_account_trusts,
            'analyze_permissions': self.analyze_permissions,
        }

    @property
    def operations(self) -> List[str]:
        return list(self._operations)

    def execute_operation(self, operation: str, parameters: Mapping[str, Any]) -> str:
        handler = self._operations.get(operation)
        if handler is None:
            raise OperationError(f'unknown operation: {operation}')
        return handler(parameters or {})

    @staticmethod
    def _param(parameters: Mapping[str, Any], key: str, required: bool = False) -> str:
        value = parameters.get(key)
        if isinstance(value, str) and value:
            return value
        if required:
            raise OperationError(f'{key} required')
        return ''

    def list_roles(self, parameters: Mapping[str, Any]) -> str:
        return format_role_list(self.provider.list_roles())

    def get_role_details(self, parameters: Mapping[str, Any]) -> str:
        role_name = self._param(parameters, 'role_name', required=True)
        return format_role_detail(self.provider.get_role_details(role_name))

    def get_role_policies(self, parameters: Mapping[str, Any]) -> str:
        role_name = self._param(parameters, 'role_name', required=True)
        return format_role_policies(self.provider.get_role_details(role_name))

    def analyze_role_trust(self, parameters: Mapping[str, Any]) -> str:
        role_name = self._param(parameters, 'role_name', required=True)
        detail = self.provider.get_role_details(role_name)
        return f'Trust Policy for role {role_name}:\n{detail.assume_role_policy_document}'

    def list_policies(self, parameters: Mapping[str, Any]) -> str:
        return format_policy_list(self.provider.list_policies())

    def get_policy_document(self, parameters: Mapping[str, Any]) -> str:
        policy_arn = self._param(parameters, 'policy_arn', required=True)
        return format_policy_detail(self.provider.get_policy_document(policy_arn))

    def list_access_keys(self, parameters: Mapping[str, Any]) -> str:
        user_name = self._param(parameters, 'user_name', required=True)
        return format_access_keys(self.provider.list_access_keys(user_name))

    def get_credential_report(self, parameters: Mapping[str, Any]) -> str:
        return format_credential_report(self.provider.get_credential_report())

    def check_access_key_rotation(self, parameters: Mapping[str, Any]) -> str:
        return format_access_key_rotation_status(self.provider.get_credential_report())

    def check_mfa_status(self, parameters: Mapping[str, Any]) -> str:
        return format_mfa_status(self.provider.get_credential_report())

    def analyze_permissions(self, parameters: Mapping[str, Any]) -> str:
        role_name = self._param(parameters, 'role_name')
        if role_name:
            return format_permission_analysis(self.provider.get_role_details(role_name))

        policy_arn = self._param(parameters, 'policy_arn')
        if policy_arn:
            detail = self.provider.get_policy_document(policy_arn)
            return f'Policy: {policy_arn}\nDocument:\n{detail.policy_document}'

        raise OperationError('role_name or policy_arn required')

    def find_overpermissive_policies(self, parameters: Mapping[str, Any]) -> str:
        issues = []
        for policy in self.provider.list_policies():
            try:
                detail = self.provider.get_policy_document(policy.policy_arn)
            except Exception as e:
                self.logger.debug(f'Skipping policy {policy.policy_name}: {e}')
                continue

            for stmt in parse_policy_document(detail.policy_document):
                if not stmt.is_allow:
                    continue
                wildcard = next((a for a in stmt.actions if a == '*' or a.endswith(':*')), None)
                if wildcard:
                    issues.append(f'Policy {policy.policy_name} has wildcard action: {wildcard}')
                if '*' in stmt.resources:
                    issues.append(f'Policy {policy.policy_name} has wildcard resource')

        if not issues:
            return 'No overpermissive policies found'
        return _bulleted(f'Found {len(issues)} overpermissive policy issues:', issues)

    def find_admin_access(self, parameters: Mapping[str, Any]) -> str:
        admin_roles = []
        for role in self.provider.list_roles():
            try:
                detail = self.provider.get_role_details(role.role_name)
            except Exception as e:
                self.logger.debug(f'Skipping role {role.role_name}: {e}')
                continue

            for p in detail.attached_policies:
                if 'AdministratorAccess' in p.policy_arn or 'AdministratorAccess' in p.policy_name:
                    admin_roles.append(f'{role.role_name} (via {p.policy_name})')
                    break

        if not admin_roles:
            return 'No roles with AdministratorAccess found'
        return _bulleted(f'Found {len(admin_roles)} roles with administrator access:', admin_roles)

    def find_unused_roles(self, parameters: Mapping[str, Any]) -> str:
        cutoff = datetime.now(timezone.utc) - UNUSED_ROLE_WINDOW
        unused = []
        for role in self.provider.list_roles():
            try:
                detail = self.provider.get_role_details(role.role_name)
            except Exception as e:
                self.logger.debug(f'Skipping role {role.role_name}: {e}')
                continue

            if detail.last_used is None or detail.last_used < cutoff:
                last_used = _fmt(detail.last_used) or 'Never'
                unused.append(f'{role.role_name} (Last used: {last_used})')

        if not unused:
            return 'No unused roles found (all roles used within last 30 days)'
        return _bulleted(f'Found {len(unused)} roles not used in 30+ days:', unused)

    def find_cross_account_trusts(self, parameters: Mapping[str, Any]) -> str:
        trusts = []
        for role in self.provider.list_roles():
            for stmt in parse_trust_policy(role.assume_role_policy_document):
                for principal in stmt.principals:
                    if 'arn:aws:iam::' not in principal:
                        continue
                    if self.account_id and self.account_id in principal:
                        continue
                    trusts.append(f'{role.role_name} trusts {principal}')

        if not trusts:
            return 'No cross-account trust relationships found'
        return _bulleted(f'Found {len(trusts)} cross-account trust relationships:', trusts)
