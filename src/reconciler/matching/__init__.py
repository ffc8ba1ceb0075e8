"""
Matching Package

Deterministic matchers that bind transactions to the records explaining
them, built on one shared scoring primitive.

Modules:
- scorer: MatchScorer, the weighted amount/date/text score
- scheduling: projected occurrence dates for recurring rules
- orders: OrderMatcher (suggest, auto-match, manual link)
- recurring: RecurringMatcher over open budget periods
- order_loader: marketplace order CSV loading and import
"""

from .order_loader import OrderImporter, OrderImportResult, load_order_csv, parse_order_record
from .orders import OrderCandidate, OrderDecision, OrderMatcher, OrderMatchSummary
from .recurring import RecurringMatch, RecurringMatcher, RecurringMatchSummary
from .scheduling import nearest_business_day, projected_dates
from .scorer import MatchScorer, percent_tolerance_cents, score

__all__ = [
    "MatchScorer",
    "OrderCandidate",
    "OrderDecision",
    "OrderImportResult",
    "OrderImporter",
    "OrderMatchSummary",
    "OrderMatcher",
    "RecurringMatch",
    "RecurringMatchSummary",
    "RecurringMatcher",
    "load_order_csv",
    "nearest_business_day",
    "parse_order_record",
    "percent_tolerance_cents",
    "projected_dates",
    "score",
]
