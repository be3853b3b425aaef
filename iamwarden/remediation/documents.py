"""
Document Synthesis
Builds restricted permission policies and secured trust policies for fix plans.
"""

import copy
import json
import logging
from typing import Any, Dict, Iterable, List

from iamwarden.errors import ParseError
from iamwarden.policy import EFFECT_ALLOW, PolicySource, extract_principals, load_document, raw_statements, to_string_list

logger = logging.getLogger(__name__)

WILDCARD_REVIEW_PLACEHOLDER = '# REVIEW: Replace * with specific actions'

ACCOUNT_ID_PLACEHOLDER = '${AWS_ACCOUNT_ID}'

# Common read-only actions offered in place of a service wildcard
READ_ONLY_ACTIONS = {
    's3': ['s3:GetObject', 's3:GetObjectVersion', 's3:GetBucketLocation', 's3:ListBucket'],
    'ec2': ['ec2:Describe*'],
    'iam': ['iam:Get*', 'iam:List*'],
    'lambda': ['lambda:GetFunction', 'lambda:ListFunctions', 'lambda:GetFunctionConfiguration'],
    'dynamodb': ['dynamodb:GetItem', 'dynamodb:Query', 'dynamodb:Scan', 'dynamodb:DescribeTable'],
    'sqs': ['sqs:GetQueueAttributes', 'sqs:GetQueueUrl', 'sqs:ReceiveMessage'],
    'sns': ['sns:GetTopicAttributes', 'sns:ListTopics'],
    'logs': ['logs:Describe*', 'logs:Get*', 'logs:FilterLogEvents'],
    'cloudwatch': ['cloudwatch:Describe*', 'cloudwatch:Get*', 'cloudwatch:List*'],
}


def render_document(doc: Dict[str, Any]) -> str:
    return json.dumps(doc, indent=2)


def document_text(source: PolicySource) -> str:
    """Return a policy document as pretty JSON text, or the raw text if it does not parse."""
    try:
        return render_document(load_document(source))
    except ParseError:
        if isinstance(source, bytes):
            return source.decode('utf-8', errors='replace')
        return source if isinstance(source, str) else ''


def suggest_service_actions(service: str) -> List[str]:
    """Suggest read-only actions for a service; unknown services get Get*/List*/Describe*."""
    service = service.lower()
    if service in READ_ONLY_ACTIONS:
        return list(READ_ONLY_ACTIONS[service])
    return [f'{service}:Get*', f'{service}:List*', f'{service}:Describe*']


def suggest_least_privilege_policy(current: PolicySource, problematic_actions: Iterable[str]) -> str:
    """
    Suggest a more restrictive version of a permission policy.

    In every ``Allow`` statement a bare ``*`` becomes a review placeholder,
    ``svc:*`` is expanded into read-only actions for that service and any other
    action listed in ``problematic_actions`` is removed. A statement whose
    actions would all be removed is left unchanged.

    Args:
        current: Current policy document
        problematic_actions: Actions flagged by the finding

    Returns:
        Suggested policy document as indented JSON; the current document
        unchanged if it cannot be parsed
    """
    try:
        doc = copy.deepcopy(load_document(current))
    except ParseError as e:
        logger.debug(f'Cannot restrict unparseable policy document: {e}')
        return document_text(current)

    problematic = {a.lower() for a in problematic_actions}

    for stmt in raw_statements(doc):
        if stmt.get('Effect') != EFFECT_ALLOW:
            continue

        new_actions: List[str] = []
        for action in to_string_list(stmt.get('Action')):
            if action == '*':
                new_actions.append(WILDCARD_REVIEW_PLACEHOLDER)
            elif action.endswith(':*'):
                new_actions.extend(suggest_service_actions(action[:-2]))
            elif action.lower() not in problematic:
                new_actions.append(action)

        if len(new_actions) == 1:
            stmt['Action'] = new_actions[0]
        elif new_actions:
            stmt['Action'] = new_actions

    return render_document(doc)


def suggest_secure_trust_policy(current: PolicySource) -> str:
    """
    Add confused deputy protection to a trust policy.

    Every ``Allow`` statement without a condition that trusts a service
    principal gets ``aws:SourceAccount`` and ``aws:SourceArn`` conditions with
    an account placeholder to fill in.

    Returns:
        The modified document as indented JSON, or an empty string if the
        document does not parse or no statement needed a change
    """
    try:
        doc = copy.deepcopy(load_document(current))
    except ParseError as e:
        logger.debug(f'Cannot secure unparseable trust policy: {e}')
        return ''

    modified = False
    for stmt in raw_statements(doc):
        if stmt.get('Effect') != EFFECT_ALLOW or stmt.get('Condition') is not None:
            continue

        principals = extract_principals(stmt.get('Principal'))
        if any(p.endswith('.amazonaws.com') for p in principals):
            stmt['Condition'] = {
                'StringEquals': {'aws:SourceAccount': ACCOUNT_ID_PLACEHOLDER},
                'ArnLike': {'aws:SourceArn': f'arn:aws:*:*:{ACCOUNT_ID_PLACEHOLDER}:*'},
            }
            modified = True

    if not modified:
        return ''
    return render_document(doc)


def _last_path_segment(arn: str) -> str:
    # arn:aws:iam::123456789012:role/path/name -> name; plain names pass through
    parts = arn.split('/')
    if len(parts) >= 2:
        return parts[-1]
    return arn


def extract_role_name(arn: str) -> str:
    return _last_path_segment(arn)


def extract_user_name(arn: str) -> str:
    return _last_path_segment(arn)
