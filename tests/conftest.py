"""
Shared fixtures: an account snapshot exercising every classifier
"""

from datetime import datetime, timedelta, timezone

import pytest

from iamwarden.provider import SnapshotProvider

ACCOUNT_ID = "123456789012"
FOREIGN_ACCOUNT_ID = "210987654321"


def _days_ago(days):
    return (datetime.now(timezone.utc) - timedelta(days=days)).isoformat()


@pytest.fixture
def snapshot():
    return {
        "roles": [
            {
                "role_name": "DeployRole",
                "role_arn": f"arn:aws:iam::{ACCOUNT_ID}:role/DeployRole",
                "create_date": "2023-02-01T10:00:00Z",
                "description": "CI deployments",
                "assume_role_policy_document": {
                    "Version": "2012-10-17",
                    "Statement": [{
                        "Effect": "Allow",
                        "Principal": {"AWS": f"arn:aws:iam::{FOREIGN_ACCOUNT_ID}:root"},
                        "Action": "sts:AssumeRole",
                    }],
                },
                "attached_policies": [{
                    "policy_name": "AdministratorAccess",
                    "policy_arn": "arn:aws:iam::aws:policy/AdministratorAccess",
                }],
                "inline_policies": [{
                    "policy_name": "s3-read",
                    "policy_document": {
                        "Version": "2012-10-17",
                        "Statement": [{"Effect": "Allow", "Action": "s3:GetObject",
                                       "Resource": "arn:aws:s3:::artifacts/*"}],
                    },
                }],
                "last_used": _days_ago(120),
            },
            {
                "role_name": "LambdaExec",
                "role_arn": f"arn:aws:iam::{ACCOUNT_ID}:role/LambdaExec",
                "create_date": "2023-03-01T10:00:00Z",
                "assume_role_policy_document": {
                    "Version": "2012-10-17",
                    "Statement": [{
                        "Effect": "Allow",
                        "Principal": {"Service": "lambda.amazonaws.com"},
                        "Action": "sts:AssumeRole",
                    }],
                },
                "attached_policies": [{
                    "policy_name": "AppPolicy",
                    "policy_arn": f"arn:aws:iam::{ACCOUNT_ID}:policy/AppPolicy",
                }],
            },
            {
                "role_name": "InternalRole",
                "role_arn": f"arn:aws:iam::{ACCOUNT_ID}:role/InternalRole",
                "create_date": "2023-04-01T10:00:00Z",
                "assume_role_policy_document": (
                    '{"Version":"2012-10-17","Statement":[{"Effect":"Allow",'
                    f'"Principal":{{"AWS":"arn:aws:iam::{ACCOUNT_ID}:role/ci"}},'
                    '"Action":"sts:AssumeRole","Condition":{"Bool":{"aws:MultiFactorAuthPresent":"true"}}}]}'
                ),
                "last_used": _days_ago(1),
            },
        ],
        "policies": [
            {
                "policy_name": "AppPolicy",
                "policy_arn": f"arn:aws:iam::{ACCOUNT_ID}:policy/AppPolicy",
                "attachment_count": 1,
                "create_date": "2023-03-01T10:00:00Z",
                "policy_document": {
                    "Version": "2012-10-17",
                    "Statement": [{"Effect": "Allow", "Action": "s3:*", "Resource": "arn:aws:s3:::*"}],
                },
            },
            {
                "policy_name": "ReadOnlyEc2",
                "policy_arn": f"arn:aws:iam::{ACCOUNT_ID}:policy/ReadOnlyEc2",
                "attachment_count": 0,
                "create_date": "2023-05-01T10:00:00Z",
                "policy_document": (
                    '{"Version":"2012-10-17","Statement":[{"Effect":"Allow","Action":"ec2:DescribeInstances",'
                    f'"Resource":"arn:aws:ec2:us-east-1:{ACCOUNT_ID}:instance/i-1"}}]}}'
                ),
            },
        ],
        "access_keys": {
            "carol": [
                {"access_key_id": "AKIACAROLUNUSED", "status": "Active", "create_date": _days_ago(10)},
                {"access_key_id": "AKIACAROLOLD", "status": "Inactive", "create_date": _days_ago(400),
                 "last_used_date": _days_ago(300), "last_used_service": "s3", "last_used_region": "us-east-1"},
            ],
        },
        "credential_report": {
            "generated_time": "2024-06-01T00:00:00Z",
            "users": [
                {"user": "<root_account>", "arn": f"arn:aws:iam::{ACCOUNT_ID}:root", "mfa_active": True},
                {"user": "alice", "arn": f"arn:aws:iam::{ACCOUNT_ID}:user/alice",
                 "password_enabled": True, "mfa_active": False},
                {"user": "bob", "arn": f"arn:aws:iam::{ACCOUNT_ID}:user/bob",
                 "password_enabled": True, "mfa_active": True,
                 "access_key_1_active": True, "access_key_1_last_rotated": _days_ago(200),
                 "access_key_1_last_used_date": _days_ago(1)},
                {"user": "carol", "arn": f"arn:aws:iam::{ACCOUNT_ID}:user/carol",
                 "access_key_1_active": True, "access_key_1_last_rotated": _days_ago(10)},
            ],
        },
    }


@pytest.fixture
def provider(snapshot):
    return SnapshotProvider(snapshot)
