"""
Unit tests for the credential report classifier and report parsing
"""

from datetime import datetime, timezone

import pytest

from iamwarden.analyzers.credentials import analyze_credential_report, key_age_days
from iamwarden.findings import (
    FINDING_INACTIVE_KEYS,
    FINDING_MISSING_MFA,
    FINDING_OLD_ACCESS_KEYS,
    FINDING_ROOT_ACCOUNT_USAGE,
)
from iamwarden.ids import IDGenerator
from iamwarden.models import CredentialReport, CredentialReportEntry

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)

CSV_REPORT = """user,arn,user_creation_time,password_enabled,password_last_used,password_last_changed,password_next_rotation,mfa_active,access_key_1_active,access_key_1_last_rotated,access_key_1_last_used_date,access_key_1_last_used_region,access_key_1_last_used_service,access_key_2_active,access_key_2_last_rotated,access_key_2_last_used_date,access_key_2_last_used_region,access_key_2_last_used_service,cert_1_active,cert_1_last_rotated,cert_2_active,cert_2_last_rotated
<root_account>,arn:aws:iam::123456789012:root,2020-01-01T00:00:00+00:00,not_supported,2024-05-01T00:00:00+00:00,not_supported,not_supported,false,true,2021-01-01T00:00:00+00:00,2024-05-01T00:00:00+00:00,us-east-1,iam,false,N/A,N/A,N/A,N/A,false,N/A,false,N/A
bob,arn:aws:iam::123456789012:user/bob,2023-01-01T00:00:00+00:00,true,2024-05-20T00:00:00+00:00,2023-01-01T00:00:00+00:00,N/A,true,true,2024-05-01T00:00:00+00:00,2024-05-30T00:00:00+00:00,us-east-1,s3,false,N/A,N/A,N/A,N/A,false,N/A,false,N/A
"""


@pytest.fixture
def ids():
    return IDGenerator()


def report(*entries):
    return CredentialReport(users=list(entries))


class TestCredentialReportParsing:
    """Test suite for CredentialReport parsing"""

    def test_from_csv(self):
        """Test the provider CSV format is parsed"""
        parsed = CredentialReport.from_csv(CSV_REPORT)

        assert len(parsed.users) == 2
        root, bob = parsed.users
        assert root.is_root
        assert root.access_key_1_active is True
        assert root.password_enabled is False
        assert root.access_key_2_last_rotated is None
        assert bob.mfa_active is True
        assert bob.access_key_1_last_rotated == datetime(2024, 5, 1, tzinfo=timezone.utc)
        assert bob.access_key_1_last_used_service == "s3"

    def test_from_csv_bytes(self):
        """Test bytes content is accepted"""
        parsed = CredentialReport.from_csv(CSV_REPORT.encode("utf-8"))
        assert [u.user for u in parsed.users] == ["<root_account>", "bob"]

    def test_from_row_accepts_booleans(self):
        """Test JSON-style boolean flags"""
        entry = CredentialReportEntry.from_row({"user": "carol", "password_enabled": True, "mfa_active": "FALSE"})

        assert entry.password_enabled is True
        assert entry.mfa_active is False
        assert entry.arn == ""

    def test_placeholder_timestamps(self):
        """Test N/A, not_supported and no_information mean missing"""
        entry = CredentialReportEntry.from_row({
            "user": "dave",
            "access_key_1_last_rotated": "N/A",
            "access_key_1_last_used_date": "no_information",
            "password_last_used": "not_supported",
        })

        assert entry.access_key_1_last_rotated is None
        assert entry.access_key_1_last_used_date is None
        assert entry.password_last_used is None

    def test_z_suffix_timestamp(self):
        """Test trailing Z timestamps are parsed as UTC"""
        entry = CredentialReportEntry.from_row({"user": "erin", "access_key_1_last_rotated": "2024-01-02T03:04:05Z"})
        assert entry.access_key_1_last_rotated == datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


class TestAnalyzeCredentialReport:
    """Test suite for analyze_credential_report"""

    def test_console_user_without_mfa(self, ids):
        """Test alice with a password and no MFA yields exactly one high finding"""
        findings = analyze_credential_report(
            report(CredentialReportEntry(user="alice", password_enabled=True, mfa_active=False)), ids, now=NOW)

        assert len(findings) == 1
        assert findings[0].severity == "high"
        assert findings[0].type == FINDING_MISSING_MFA
        assert findings[0].resource_arn == "alice"
        assert "alice" in findings[0].description

    def test_user_arn_preferred(self, ids):
        """Test the user ARN is used as resource when present"""
        user = CredentialReportEntry(user="alice", arn="arn:aws:iam::123456789012:user/alice", password_enabled=True)
        findings = analyze_credential_report(report(user), ids, now=NOW)

        assert findings[0].resource_arn == "arn:aws:iam::123456789012:user/alice"

    def test_programmatic_user_without_mfa_is_clean(self, ids):
        """Test users without a password are not flagged for MFA"""
        assert analyze_credential_report(report(CredentialReportEntry(user="svc")), ids, now=NOW) == []

    def test_root_with_active_key_and_no_mfa(self, ids):
        """Test both root findings fire, and only root checks run"""
        root = CredentialReportEntry(
            user="<root_account>",
            arn="arn:aws:iam::123456789012:root",
            access_key_1_active=True,
            access_key_1_last_rotated=datetime(2020, 1, 1, tzinfo=timezone.utc),
        )
        findings = analyze_credential_report(report(root), ids, now=NOW)

        assert [(f.severity, f.type) for f in findings] == [
            ("critical", FINDING_ROOT_ACCOUNT_USAGE),
            ("critical", FINDING_MISSING_MFA),
        ]

    def test_root_without_arn_uses_user_name(self, ids):
        """Test root findings fall back to the user column when the ARN is blank"""
        root = CredentialReportEntry(user="<root_account>", access_key_2_active=True)
        findings = analyze_credential_report(report(root), ids, now=NOW)

        assert [f.resource_arn for f in findings] == ["<root_account>", "<root_account>"]

    def test_root_with_mfa_and_no_keys_is_clean(self, ids):
        """Test a well configured root account is clean"""
        root = CredentialReportEntry(user="<root_account>", mfa_active=True)
        assert analyze_credential_report(report(root), ids, now=NOW) == []

    def test_old_access_key(self, ids):
        """Test an active key rotated over 90 days ago is medium with its age"""
        user = CredentialReportEntry(
            user="bob",
            mfa_active=True,
            access_key_1_active=True,
            access_key_1_last_rotated=datetime(2024, 1, 1, tzinfo=timezone.utc),
            access_key_1_last_used_date=datetime(2024, 5, 30, tzinfo=timezone.utc),
        )
        findings = analyze_credential_report(report(user), ids, now=NOW)

        assert len(findings) == 1
        assert findings[0].type == FINDING_OLD_ACCESS_KEYS
        assert findings[0].severity == "medium"
        assert findings[0].description == "User bob has access key 1 that is 152 days old"

    def test_key_at_threshold_is_not_old(self, ids):
        """Test a key exactly 90 days old is within the threshold"""
        user = CredentialReportEntry(
            user="bob",
            access_key_2_active=True,
            access_key_2_last_rotated=datetime(2024, 3, 3, tzinfo=timezone.utc),
            access_key_2_last_used_date=datetime(2024, 5, 30, tzinfo=timezone.utc),
        )
        assert analyze_credential_report(report(user), ids, now=NOW) == []

    def test_never_used_key(self, ids):
        """Test an active key that was never used is low"""
        user = CredentialReportEntry(
            user="carol",
            access_key_2_active=True,
            access_key_2_last_rotated=datetime(2024, 5, 1, tzinfo=timezone.utc),
        )
        findings = analyze_credential_report(report(user), ids, now=NOW)

        assert len(findings) == 1
        assert findings[0].type == FINDING_INACTIVE_KEYS
        assert findings[0].severity == "low"
        assert "access key 2" in findings[0].description

    def test_inactive_key_slots_ignored(self, ids):
        """Test disabled keys are never flagged"""
        user = CredentialReportEntry(
            user="dave",
            access_key_1_active=False,
            access_key_1_last_rotated=datetime(2019, 1, 1, tzinfo=timezone.utc),
        )
        assert analyze_credential_report(report(user), ids, now=NOW) == []

    def test_finding_order(self, ids):
        """Test MFA, then old keys, then unused keys"""
        user = CredentialReportEntry(
            user="erin",
            password_enabled=True,
            access_key_1_active=True,
            access_key_1_last_rotated=datetime(2023, 1, 1, tzinfo=timezone.utc),
            access_key_2_active=True,
            access_key_2_last_rotated=datetime(2024, 5, 1, tzinfo=timezone.utc),
        )
        findings = analyze_credential_report(report(user), ids, now=NOW)

        assert [f.type for f in findings] == [
            FINDING_MISSING_MFA,
            FINDING_OLD_ACCESS_KEYS,
            FINDING_INACTIVE_KEYS,
            FINDING_INACTIVE_KEYS,
        ]

    def test_parsed_csv_report(self, ids):
        """Test analysis of a parsed CSV report"""
        findings = analyze_credential_report(CredentialReport.from_csv(CSV_REPORT), ids, now=NOW)

        assert [(f.severity, f.type) for f in findings] == [
            ("critical", FINDING_ROOT_ACCOUNT_USAGE),
            ("critical", FINDING_MISSING_MFA),
        ]


class TestKeyAge:
    """Test suite for key age computation"""

    def test_floor_of_days(self):
        """Test partial days are floored"""
        rotated = datetime(2024, 5, 30, 12, 0, tzinfo=timezone.utc)
        assert key_age_days(rotated, NOW) == 1
