"""
Unit tests for policy document synthesis and fix plan serialization
"""

import json
from datetime import datetime, timezone

import pytest

from iamwarden.errors import ParseError
from iamwarden.findings import Finding
from iamwarden.remediation.documents import (
    ACCOUNT_ID_PLACEHOLDER,
    WILDCARD_REVIEW_PLACEHOLDER,
    document_text,
    extract_role_name,
    extract_user_name,
    suggest_least_privilege_policy,
    suggest_secure_trust_policy,
    suggest_service_actions,
)
from iamwarden.remediation.plan import ActionType, FixCommand, FixPlan, format_plan


def policy(*statements):
    return {"Version": "2012-10-17", "Statement": list(statements)}


class TestLeastPrivilegePolicy:
    """Test suite for suggest_least_privilege_policy"""

    def test_bare_wildcard_becomes_placeholder(self):
        """Test a lone '*' is replaced by the review placeholder string"""
        suggested = json.loads(suggest_least_privilege_policy(
            policy({"Effect": "Allow", "Action": "*", "Resource": "*"}), ["*"]))

        assert suggested["Statement"][0]["Action"] == WILDCARD_REVIEW_PLACEHOLDER

    def test_problematic_actions_removed(self):
        """Test flagged non-wildcard actions are dropped"""
        doc = policy({"Effect": "Allow", "Action": ["iam:PassRole", "s3:GetObject"], "Resource": "*"})
        suggested = json.loads(suggest_least_privilege_policy(doc, ["IAM:PASSROLE"]))

        assert suggested["Statement"][0]["Action"] == "s3:GetObject"

    def test_statement_kept_when_everything_removed(self):
        """Test a statement is left unchanged rather than emptied"""
        doc = policy({"Effect": "Allow", "Action": ["iam:PassRole"], "Resource": "*"})
        suggested = json.loads(suggest_least_privilege_policy(doc, ["iam:PassRole"]))

        assert suggested["Statement"][0]["Action"] == ["iam:PassRole"]

    def test_deny_statements_untouched(self):
        """Test Deny statements keep their wildcard"""
        doc = policy({"Effect": "Deny", "Action": "*", "Resource": "*"})
        suggested = json.loads(suggest_least_privilege_policy(doc, ["*"]))

        assert suggested["Statement"][0]["Action"] == "*"

    def test_input_not_mutated(self):
        """Test the caller's document is left as it was"""
        doc = policy({"Effect": "Allow", "Action": "s3:*", "Resource": "*"})
        suggest_least_privilege_policy(doc, ["s3:*"])

        assert doc["Statement"][0]["Action"] == "s3:*"

    def test_unparseable_document_returned_as_is(self):
        """Test malformed text is handed back unchanged"""
        assert suggest_least_privilege_policy("{broken", ["*"]) == "{broken"


class TestServiceActions:
    """Test suite for read-only action suggestions"""

    def test_known_service(self):
        """Test a service with a curated read-only list"""
        assert suggest_service_actions("ec2") == ["ec2:Describe*"]

    def test_unknown_service(self):
        """Test the generic Get/List/Describe fallback"""
        assert suggest_service_actions("kinesis") == ["kinesis:Get*", "kinesis:List*", "kinesis:Describe*"]

    def test_curated_list_is_copied(self):
        """Test callers cannot mutate the curated table"""
        actions = suggest_service_actions("s3")
        actions.append("s3:PutObject")

        assert "s3:PutObject" not in suggest_service_actions("s3")


class TestSecureTrustPolicy:
    """Test suite for suggest_secure_trust_policy"""

    def test_service_principal_gets_conditions(self):
        """Test unconditioned service principals get source account and ARN conditions"""
        doc = policy({"Effect": "Allow", "Principal": {"Service": "sns.amazonaws.com"}, "Action": "sts:AssumeRole"})
        suggested = json.loads(suggest_secure_trust_policy(doc))
        condition = suggested["Statement"][0]["Condition"]

        assert condition["StringEquals"]["aws:SourceAccount"] == ACCOUNT_ID_PLACEHOLDER
        assert ACCOUNT_ID_PLACEHOLDER in condition["ArnLike"]["aws:SourceArn"]

    def test_existing_condition_kept(self):
        """Test nothing changes when a condition is already present"""
        doc = policy({"Effect": "Allow", "Principal": {"Service": "sns.amazonaws.com"},
                      "Action": "sts:AssumeRole", "Condition": {"StringEquals": {"aws:SourceAccount": "1"}}})
        assert suggest_secure_trust_policy(doc) == ""

    def test_unparseable_trust_policy(self):
        """Test malformed trust policies yield no suggestion"""
        assert suggest_secure_trust_policy("not json") == ""


class TestHelpers:
    """Test suite for document helpers"""

    @pytest.mark.parametrize("arn,name", [
        ("arn:aws:iam::123456789012:role/DeployRole", "DeployRole"),
        ("arn:aws:iam::123456789012:role/service-role/Nested", "Nested"),
        ("DeployRole", "DeployRole"),
    ])
    def test_extract_role_name(self, arn, name):
        """Test the last path segment is the role name"""
        assert extract_role_name(arn) == name

    def test_extract_user_name(self):
        """Test user names from ARNs and bare names"""
        assert extract_user_name("arn:aws:iam::123456789012:user/carol") == "carol"
        assert extract_user_name("carol") == "carol"

    def test_document_text_pretty_prints(self):
        """Test parseable documents are indented JSON"""
        assert document_text('{"Statement":[]}') == '{\n  "Statement": []\n}'

    def test_document_text_raw_fallback(self):
        """Test unparseable documents are returned verbatim"""
        assert document_text("<<raw>>") == "<<raw>>"


@pytest.fixture
def sample_plan():
    finding = Finding(
        id="IAM-1-1",
        severity="critical",
        type="overpermissive_policy",
        resource_arn="arn:aws:iam::123456789012:policy/P",
        description="Policy grants all actions (*)",
        remediation="Replace * with specific actions",
        actions=["*"],
    )
    return FixPlan(
        id="FIX-1-2",
        summary="Restrict overly permissive IAM policy",
        finding=finding,
        commands=[
            FixCommand(
                id="CMD-1-3",
                action=ActionType.CREATE_POLICY_VERSION,
                resource_arn=finding.resource_arn,
                parameters={"document": "x" * 150},
                reason="Replace overly permissive actions",
                rollback=FixCommand(id="CMD-1-4", action=ActionType.CREATE_POLICY_VERSION,
                                    resource_arn=finding.resource_arn, parameters={"document": "{}"}),
            )
        ],
        notes=["Check the new version"],
        warnings=["Review carefully"],
        created_at=datetime(2024, 6, 1, 12, 30, tzinfo=timezone.utc),
    )


class TestFixPlanSerialization:
    """Test suite for plan JSON handling"""

    def test_json_round_trip(self, sample_plan):
        """Test a plan survives to_json/from_json including its rollback"""
        restored = FixPlan.from_json(sample_plan.to_json())

        assert restored == sample_plan
        assert restored.commands[0].rollback.id == "CMD-1-4"

    def test_empty_lists_omitted(self, sample_plan):
        """Test notes and warnings are omitted when empty"""
        sample_plan.notes = []
        sample_plan.warnings = []
        data = sample_plan.to_dict()

        assert "notes" not in data
        assert "warnings" not in data
        assert data["commands"][0]["action"] == "create_policy_version"

    @pytest.mark.parametrize("payload,message", [
        ("{nope", "invalid plan JSON"),
        ('{"summary": "s"}', "plan missing ID"),
        ('{"id": "FIX-1"}', "plan missing summary"),
        ("[]", "expected an object"),
    ])
    def test_from_json_rejects(self, payload, message):
        """Test malformed plans raise ParseError"""
        with pytest.raises(ParseError, match=message):
            FixPlan.from_json(payload)

    def test_is_manual(self, sample_plan):
        """Test notes-only plans are manual"""
        assert not sample_plan.is_manual
        sample_plan.commands = []
        assert sample_plan.is_manual


class TestFormatPlan:
    """Test suite for format_plan"""

    def test_layout(self, sample_plan):
        """Test header, finding, commands, notes and warnings sections"""
        text = format_plan(sample_plan)

        assert text.startswith("Fix Plan: FIX-1-2\nSummary: Restrict overly permissive IAM policy\n")
        assert "Created: 2024-06-01 12:30:00" in text
        assert "  Type: overpermissive_policy" in text
        assert "  1. create_policy_version" in text
        assert "  - Check the new version" in text
        assert "  ! Review carefully" in text

    def test_long_parameters_truncated(self, sample_plan):
        """Test parameter values over 100 characters are cut with an ellipsis"""
        text = format_plan(sample_plan)

        assert f"document: {'x' * 100}..." in text
        assert "x" * 101 not in text

    def test_sections_skipped_when_empty(self, sample_plan):
        """Test empty sections are not rendered"""
        sample_plan.commands = []
        sample_plan.warnings = []
        text = format_plan(sample_plan)

        assert "Commands:" not in text
        assert "Warnings:" not in text
        assert "Notes:" in text
