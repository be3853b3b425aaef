"""
External Capabilities
Interfaces for the IAM data provider and action executor, plus an in-memory
provider backed by a JSON snapshot.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional

from iamwarden.errors import ProviderError
from iamwarden.models import (
    AccessKeyInfo,
    CredentialReport,
    InlinePolicy,
    PolicyDetail,
    PolicyInfo,
    RoleDetail,
    RoleInfo,
    parse_timestamp,
)


class IAMDataProvider(ABC):
    """Read-only source of IAM policy and credential material."""

    @abstractmethod
    def list_roles(self) -> List[RoleInfo]:
        pass

    @abstractmethod
    def list_policies(self) -> List[PolicyInfo]:
        pass

    @abstractmethod
    def get_role_details(self, role_name: str) -> RoleDetail:
        pass

    @abstractmethod
    def get_policy_document(self, policy_arn: str) -> PolicyDetail:
        pass

    @abstractmethod
    def list_access_keys(self, user_name: str) -> List[AccessKeyInfo]:
        pass

    @abstractmethod
    def get_credential_report(self) -> CredentialReport:
        pass


class IAMActionExecutor(ABC):
    """
    Performs the real-world mutations behind fix commands.

    Implementations raise an exception to report failure.
    """

    @abstractmethod
    def create_policy_version(self, policy_arn: str, document: str, set_as_default: bool = True):
        pass

    @abstractmethod
    def update_assume_role_policy(self, role_name: str, document: str):
        pass

    @abstractmethod
    def attach_role_policy(self, role_name: str, policy_arn: str):
        pass

    @abstractmethod
    def detach_role_policy(self, role_name: str, policy_arn: str):
        pass

    @abstractmethod
    def update_access_key(self, user_name: str, access_key_id: str, status: str):
        pass


def _document_text(value: Any) -> str:
    if value is None:
        return ''
    if isinstance(value, str):
        return value
    return json.dumps(value)


def _policy_info(data: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        'policy_name': data.get('policy_name', ''),
        'policy_arn': data.get('policy_arn', ''),
        'path': data.get('path', '/'),
        'attachment_count': int(data.get('attachment_count', 0)),
        'default_version_id': data.get('default_version_id', ''),
        'create_date': parse_timestamp(data.get('create_date')),
    }


class SnapshotProvider(IAMDataProvider):
    """
    In-memory data provider loaded from a snapshot mapping.

    Snapshot layout::

        {
          "roles": [{"role_name": ..., "role_arn": ..., "assume_role_policy_document": ...,
                     "attached_policies": [...], "inline_policies": [...], "last_used": ...}],
          "policies": [{"policy_name": ..., "policy_arn": ..., "policy_document": ...}],
          "access_keys": {"<user>": [{"access_key_id": ..., "status": ..., "last_used_date": ...}]},
          "credential_report": {"generated_time": ..., "users": [...]}
        }

    ``credential_report_csv`` may be given instead of ``credential_report``.
    Policy documents may be JSON text or nested objects.
    """

    def __init__(self, snapshot: Optional[Mapping[str, Any]] = None):
        self.snapshot = dict(snapshot or {})
        self.logger = logging.getLogger(self.__class__.__name__)
        self._roles = {r['role_name']: r for r in self.snapshot.get('roles', [])}
        self._policies = {p['policy_arn']: p for p in self.snapshot.get('policies', [])}

    @classmethod
    def from_file(cls, path: str) -> 'SnapshotProvider':
        """Load a snapshot from a JSON file."""
        with open(path, 'r') as f:
            return cls(json.load(f))

    def list_roles(self) -> List[RoleInfo]:
        return [self._role_info(r) for r in self._roles.values()]

    def list_policies(self) -> List[PolicyInfo]:
        return [PolicyInfo(**_policy_info(p)) for p in self._policies.values()]

    def get_role_details(self, role_name: str) -> RoleDetail:
        data = self._roles.get(role_name)
        if data is None:
            raise ProviderError(f'role {role_name} not found')

        info = self._role_info(data)
        return RoleDetail(
            **info.__dict__,
            attached_policies=[PolicyInfo(**_policy_info(p)) for p in data.get('attached_policies', [])],
            inline_policies=[
                InlinePolicy(policy_name=p.get('policy_name', ''),
                             policy_document=_document_text(p.get('policy_document')))
                for p in data.get('inline_policies', [])
            ],
            last_used=parse_timestamp(data.get('last_used')),
            tags=dict(data.get('tags', {})),
        )

    def get_policy_document(self, policy_arn: str) -> PolicyDetail:
        data = self._policies.get(policy_arn)
        if data is None:
            raise ProviderError(f'policy {policy_arn} not found')
        return PolicyDetail(**_policy_info(data), policy_document=_document_text(data.get('policy_document')))

    def list_access_keys(self, user_name: str) -> List[AccessKeyInfo]:
        keys = self.snapshot.get('access_keys', {}).get(user_name, [])
        return [
            AccessKeyInfo(
                user_name=user_name,
                access_key_id=k.get('access_key_id', ''),
                status=k.get('status', 'Active'),
                create_date=parse_timestamp(k.get('create_date')),
                last_used_date=parse_timestamp(k.get('last_used_date')),
                last_used_service=k.get('last_used_service', ''),
                last_used_region=k.get('last_used_region', ''),
            )
            for k in keys
        ]

    def get_credential_report(self) -> CredentialReport:
        if 'credential_report_csv' in self.snapshot:
            return CredentialReport.from_csv(self.snapshot['credential_report_csv'])
        if 'credential_report' in self.snapshot:
            return CredentialReport.from_dict(self.snapshot['credential_report'])
        raise ProviderError('snapshot has no credential report')

    def _role_info(self, data: Mapping[str, Any]) -> RoleInfo:
        return RoleInfo(
            role_name=data['role_name'],
            role_arn=data.get('role_arn', ''),
            path=data.get('path', '/'),
            create_date=parse_timestamp(data.get('create_date')),
            description=data.get('description', ''),
            assume_role_policy_document=_document_text(data.get('assume_role_policy_document')),
        )
