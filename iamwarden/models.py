"""
IAM Entity Records
Plain records returned by a data provider: roles, policies, access keys and
the credential report.
"""

import csv
import io
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

ROOT_ACCOUNT_USER = '<root_account>'

# Credential report placeholders that mean "no timestamp"
_MISSING_TIMESTAMPS = ('', 'N/A', 'not_supported', 'no_information')


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp into an aware datetime.

    Returns None for empty values and the credential report placeholders
    ``N/A``, ``not_supported`` and ``no_information``.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

    text = str(value).strip()
    if text in _MISSING_TIMESTAMPS:
        return None
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _format_timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class PolicyInfo:
    policy_name: str
    policy_arn: str
    path: str = '/'
    attachment_count: int = 0
    default_version_id: str = ''
    create_date: Optional[datetime] = None


@dataclass
class PolicyDetail(PolicyInfo):
    policy_document: str = ''


@dataclass
class InlinePolicy:
    policy_name: str
    policy_document: str


@dataclass
class RoleInfo:
    role_name: str
    role_arn: str
    path: str = '/'
    create_date: Optional[datetime] = None
    description: str = ''
    assume_role_policy_document: str = ''


@dataclass
class RoleDetail(RoleInfo):
    attached_policies: List[PolicyInfo] = field(default_factory=list)
    inline_policies: List[InlinePolicy] = field(default_factory=list)
    last_used: Optional[datetime] = None
    tags: Dict[str, str] = field(default_factory=dict)


@dataclass
class AccessKeyInfo:
    user_name: str
    access_key_id: str
    status: str
    create_date: Optional[datetime] = None
    last_used_date: Optional[datetime] = None
    last_used_service: str = ''
    last_used_region: str = ''

    @property
    def is_active(self) -> bool:
        return self.status.lower() == 'active'


@dataclass
class CredentialReportEntry:
    """One row of the credential report."""

    user: str
    arn: str = ''
    user_creation_time: Optional[datetime] = None
    password_enabled: bool = False
    password_last_used: Optional[datetime] = None
    password_last_changed: Optional[datetime] = None
    mfa_active: bool = False
    access_key_1_active: bool = False
    access_key_1_last_rotated: Optional[datetime] = None
    access_key_1_last_used_date: Optional[datetime] = None
    access_key_1_last_used_region: str = ''
    access_key_1_last_used_service: str = ''
    access_key_2_active: bool = False
    access_key_2_last_rotated: Optional[datetime] = None
    access_key_2_last_used_date: Optional[datetime] = None
    access_key_2_last_used_region: str = ''
    access_key_2_last_used_service: str = ''

    @property
    def is_root(self) -> bool:
        return self.user == ROOT_ACCOUNT_USER

    def access_key_slots(self):
        """Yield ``(slot, active, last_rotated, last_used_date)`` for both key slots."""
        yield 1, self.access_key_1_active, self.access_key_1_last_rotated, self.access_key_1_last_used_date
        yield 2, self.access_key_2_active, self.access_key_2_last_rotated, self.access_key_2_last_used_date

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> 'CredentialReportEntry':
        """Build an entry from a CSV row or a JSON mapping."""

        def flag(key: str) -> bool:
            value = row.get(key, False)
            if isinstance(value, bool):
                return value
            return str(value).strip().lower() == 'true'

        def text(key: str) -> str:
            value = row.get(key)
            return '' if value in (None, 'N/A') else str(value)

        return cls(
            user=text('user'),
            arn=text('arn'),
            user_creation_time=parse_timestamp(row.get('user_creation_time')),
            password_enabled=flag('password_enabled'),
            password_last_used=parse_timestamp(row.get('password_last_used')),
            password_last_changed=parse_timestamp(row.get('password_last_changed')),
            mfa_active=flag('mfa_active'),
            access_key_1_active=flag('access_key_1_active'),
            access_key_1_last_rotated=parse_timestamp(row.get('access_key_1_last_rotated')),
            access_key_1_last_used_date=parse_timestamp(row.get('access_key_1_last_used_date')),
            access_key_1_last_used_region=text('access_key_1_last_used_region'),
            access_key_1_last_used_service=text('access_key_1_last_used_service'),
            access_key_2_active=flag('access_key_2_active'),
            access_key_2_last_rotated=parse_timestamp(row.get('access_key_2_last_rotated')),
            access_key_2_last_used_date=parse_timestamp(row.get('access_key_2_last_used_date')),
            access_key_2_last_used_region=text('access_key_2_last_used_region'),
            access_key_2_last_used_service=text('access_key_2_last_used_service'),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        for name, value in self.__dict__.items():
            data[name] = _format_timestamp(value) if isinstance(value, datetime) else value
        return data


@dataclass
class CredentialReport:
    generated_time: Optional[datetime] = None
    users: List[CredentialReportEntry] = field(default_factory=list)

    @classmethod
    def from_csv(cls, content: Any, generated_time: Optional[datetime] = None) -> 'CredentialReport':
        """
        Parse the credential report CSV.

        Args:
            content: CSV text or bytes with a header row
            generated_time: When the report was generated

        Returns:
            CredentialReport with one entry per data row
        """
        if isinstance(content, bytes):
            content = content.decode('utf-8')
        reader = csv.DictReader(io.StringIO(content or ''))
        users = [CredentialReportEntry.from_row(row) for row in reader]
        return cls(generated_time=generated_time, users=users)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'CredentialReport':
        return cls(
            generated_time=parse_timestamp(data.get('generated_time')),
            users=[CredentialReportEntry.from_row(row) for row in data.get('users', [])],
        )
