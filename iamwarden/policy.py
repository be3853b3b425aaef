"""
Policy Normalizer
Parses permission and trust policy JSON into a canonical statement list.

IAM lets ``Action``, ``Resource`` and ``Principal`` be a single string, a list,
or (for principals) a mapping of principal type to string(s). Everything
downstream of this module only sees the list form.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union
from urllib.parse import unquote

from iamwarden.errors import ParseError

logger = logging.getLogger(__name__)

EFFECT_ALLOW = 'Allow'
EFFECT_DENY = 'Deny'

PolicySource = Union[str, bytes, Mapping[str, Any], None]


@dataclass(frozen=True)
class Statement:
    """One normalized allow/deny rule."""

    effect: str
    actions: List[str] = field(default_factory=list)
    resources: List[str] = field(default_factory=list)
    principals: List[str] = field(default_factory=list)
    condition: Optional[Any] = None
    sid: Optional[str] = None

    @property
    def is_allow(self) -> bool:
        return self.effect == EFFECT_ALLOW

    @property
    def has_condition(self) -> bool:
        return self.condition is not None


def to_string_list(value: Any) -> List[str]:
    """
    Materialize a scalar-or-list IAM field as a list of strings.

    ``"s3:*"`` and ``["s3:*"]`` both become ``["s3:*"]``. Non-string list
    entries are dropped; anything else becomes an empty list.
    """
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple)):
        return [item for item in value if isinstance(item, str)]
    return []


def extract_principals(principal: Any) -> List[str]:
    """
    Flatten a Principal element into an ordered list of principal strings.

    Handles ``"*"``, ``{"Service": "lambda.amazonaws.com"}`` and
    ``{"AWS": ["arn:...", "arn:..."]}``.
    """
    if isinstance(principal, str):
        return [principal]

    principals: List[str] = []
    if isinstance(principal, Mapping):
        for value in principal.values():
            principals.extend(to_string_list(value))
    return principals


def decode_document(document: str) -> str:
    """URL-decode a document as returned by the IAM API; plain JSON passes through."""
    if not document or document.lstrip().startswith(('{', '[')):
        return document
    return unquote(document)


def load_document(source: PolicySource) -> Dict[str, Any]:
    """
    Decode a policy document into a mapping.

    Raises:
        ParseError: If the source is not a JSON object
    """
    if source is None:
        raise ParseError('policy document is empty')

    if isinstance(source, Mapping):
        return dict(source)

    if isinstance(source, bytes):
        try:
            source = source.decode('utf-8')
        except UnicodeDecodeError as e:
            raise ParseError(f'policy document is not valid UTF-8: {e}') from e

    try:
        doc = json.loads(decode_document(source))
    except (json.JSONDecodeError, TypeError) as e:
        raise ParseError(f'policy document is not valid JSON: {e}') from e

    if not isinstance(doc, dict):
        raise ParseError(f'policy document must be a JSON object, got {type(doc).__name__}')

    return doc


def normalize_statement(raw: Mapping[str, Any]) -> Statement:
    """Convert one raw statement mapping into a Statement."""
    sid = raw.get('Sid')
    return Statement(
        effect=raw.get('Effect', ''),
        actions=to_string_list(raw.get('Action')),
        resources=to_string_list(raw.get('Resource')),
        principals=extract_principals(raw.get('Principal')),
        condition=raw.get('Condition'),
        sid=sid if isinstance(sid, str) else None,
    )


def raw_statements(doc: Mapping[str, Any]) -> List[Dict[str, Any]]:
    """Return the raw statement mappings of a decoded document."""
    statements = doc.get('Statement', [])
    if isinstance(statements, Mapping):
        statements = [statements]
    if not isinstance(statements, list):
        return []
    return [s for s in statements if isinstance(s, dict)]


def parse_policy_document(source: PolicySource) -> List[Statement]:
    """
    Parse a permission policy into normalized statements.

    Statements of every effect are returned; callers filter on ``is_allow``.
    A document that fails to parse yields an empty list.

    Args:
        source: JSON text, bytes, or an already decoded mapping

    Returns:
        List of Statement objects
    """
    try:
        doc = load_document(source)
    except ParseError as e:
        logger.debug(f'Skipping unparseable policy document: {e}')
        return []

    return [normalize_statement(raw) for raw in raw_statements(doc)]


def parse_trust_policy(source: PolicySource) -> List[Statement]:
    """Parse a role trust policy. Same normalization as permission policies."""
    return parse_policy_document(source)
