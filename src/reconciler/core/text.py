#!/usr/bin/env python3
"""
Description Text Utilities

Normalization and fuzzy label matching for bank descriptions, which arrive
truncated, upper-cased, and decorated with store numbers and reference codes.

Functions:
- normalize_description: Canonical lowercase form used by every matcher
- label_matches: Token-aware check that a description names a merchant label
- text_similarity: Score in [0, 1] for ranking candidates
"""

import re
from difflib import SequenceMatcher

from rapidfuzz.distance import Levenshtein

TOKEN_MIN_LENGTH = 4
TOKEN_PREFIX_MATCH = 4
FUZZY_MIN_LENGTH = 6
FUZZY_MAX_DISTANCE = 2
LABEL_COVERAGE_THRESHOLD = 0.4

_WHITESPACE = re.compile(r"\s+")
_NON_ALNUM = re.compile(r"[^a-z0-9 ]")


def normalize_description(description: str | None) -> str:
    """
    Lowercase, trim, collapse whitespace, and drop everything but [a-z0-9 ].

    Example:
        normalize_description("  NETFLIX.COM   #123 ") -> "netflixcom 123"
    """
    if not description:
        return ""
    collapsed = _WHITESPACE.sub(" ", description.lower().strip())
    return _NON_ALNUM.sub("", collapsed)


def _significant_tokens(normalized: str) -> list[str]:
    return [token for token in normalized.split(" ") if len(token) >= TOKEN_MIN_LENGTH]


def _common_prefix_length(a: str, b: str) -> int:
    i = 0
    for left, right in zip(a, b):
        if left != right:
            break
        i += 1
    return i


def tokens_match(label_token: str, row_token: str) -> bool:
    """
    Compare two normalized tokens.

    Tokens match when equal, when one prefixes the other, when they share a
    four character prefix, or when longer tokens are within two edits.
    """
    if label_token == row_token:
        return True
    if len(label_token) < TOKEN_MIN_LENGTH or len(row_token) < TOKEN_MIN_LENGTH:
        return False
    if label_token.startswith(row_token) or row_token.startswith(label_token):
        return True
    if _common_prefix_length(label_token, row_token) >= TOKEN_PREFIX_MATCH:
        return True
    longest = max(len(label_token), len(row_token))
    return longest >= FUZZY_MIN_LENGTH and Levenshtein.distance(label_token, row_token) <= FUZZY_MAX_DISTANCE


def label_matches(description: str, label: str) -> bool:
    """
    Check whether a transaction description names the given label.

    Args:
        description: Raw or normalized transaction description
        label: Merchant label from a recurring definition

    Returns:
        True on containment either way, or when enough significant label
        tokens appear in the description
    """
    row = normalize_description(description)
    target = normalize_description(label)
    if not row or not target:
        return False
    if target in row or row in target:
        return True

    row_tokens = _significant_tokens(row)
    label_tokens = _significant_tokens(target)
    if not row_tokens or not label_tokens:
        return False

    matched_tokens = 0
    matched_length = 0
    label_length = 0
    for label_token in label_tokens:
        label_length += len(label_token)
        if any(tokens_match(label_token, row_token) for row_token in row_tokens):
            matched_tokens += 1
            matched_length += len(label_token)

    if matched_tokens == 0:
        return False
    # A one-word description that matched is as specific as it gets
    if len(row_tokens) == 1:
        return True

    coverage = matched_length / label_length if label_length else 0.0
    return matched_tokens >= 2 or coverage >= LABEL_COVERAGE_THRESHOLD


def text_similarity(text_a: str | None, text_b: str | None) -> float:
    """
    Similarity score between two descriptions.

    Returns:
        1.0 for normalized containment, 0.8 for a token-level label match,
        otherwise the difflib ratio of the normalized strings. 0.0 when
        either side is empty.
    """
    a = normalize_description(text_a)
    b = normalize_description(text_b)
    if not a or not b:
        return 0.0
    if a in b or b in a:
        return 1.0
    if label_matches(a, b):
        return 0.8
    return round(SequenceMatcher(None, a, b).ratio(), 4)


def contains_keyword(text: str | None, keywords: list[str] | tuple[str, ...]) -> bool:
    """Case-insensitive keyword containment on normalized text."""
    normalized = normalize_description(text)
    if not normalized:
        return False
    return any(normalize_description(keyword) in normalized for keyword in keywords)
