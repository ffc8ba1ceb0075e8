#!/usr/bin/env python3
"""
Ignore Rule Filter

Suppresses transactions whose description contains a user-defined pattern
(transfers between own accounts, card payments, known noise) before they
reach budgeting views.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from ..core.models import IgnoreRule, Transaction
from ..core.text import normalize_description

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IgnoreMatch:
    """Which rule suppressed a description."""

    rule_id: str
    pattern: str


class IgnoreRuleFilter:
    """
    Evaluates active ignore rules against transaction descriptions.

    Matching is a case-insensitive substring test on normalized text, so
    "AMZN Mktp" and "amzn mktp" behave the same. Rules are tried in the
    order given and the first hit short-circuits; whether a description is
    ignored does not depend on that order, only which rule gets reported.
    """

    def __init__(self, rules: Iterable[IgnoreRule]):
        self._rules = [rule for rule in rules if rule.active and rule.normalized_pattern]

    @property
    def rules(self) -> list[IgnoreRule]:
        return list(self._rules)

    def match(self, description: str | None) -> IgnoreMatch | None:
        """
        Find the first rule matching a description.

        Args:
            description: Raw description text

        Returns:
            IgnoreMatch for the first matching rule, or None
        """
        normalized = normalize_description(description)
        if not normalized:
            return None
        for rule in self._rules:
            if rule.normalized_pattern in normalized:
                return IgnoreMatch(rule_id=rule.id, pattern=rule.pattern)
        return None

    def is_ignored(self, description: str | None) -> bool:
        return self.match(description) is not None

    def matches_transaction(self, transaction: Transaction) -> IgnoreMatch | None:
        """Match against description plus sub-description."""
        return self.match(transaction.full_description)

    def apply(self, transactions: Iterable[Transaction]) -> list[Transaction]:
        """
        Mark matching transactions as ignored.

        Rows already ignored are left alone, including rows a user ignored
        by hand. Never un-ignores anything.

        Returns:
            The transactions that changed
        """
        changed = []
        for transaction in transactions:
            if transaction.ignored:
                continue
            hit = self.matches_transaction(transaction)
            if hit is None:
                continue
            transaction.ignored = True
            transaction.ignored_by_rule_id = hit.rule_id
            changed.append(transaction)

        if changed:
            logger.info("Ignore rules suppressed %d transactions", len(changed))
        return changed
