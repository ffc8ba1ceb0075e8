#!/usr/bin/env python3
"""
Marketplace Order Loader

Loads order records from CSV exports or plain dicts, validates them, and
stores the ones the ledger has not seen yet.

Functions:
- load_order_csv: Read an order history CSV into order records
- parse_order_record: Validate one record into an ExternalOrder
- OrderImporter.import_records: Dedupe and create new orders

Amazon's Retail.OrderHistory export has one row per item with a per-item
"Total Owed"; those rows are summed per order. Exports with an order-level
total column use the first row's value.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pandas as pd

from ..core.dates import FinancialDate
from ..core.errors import ValidationError
from ..core.models import ExternalOrder, MatchStatus
from ..core.money import Money
from ..ledger.store import LedgerStore

logger = logging.getLogger(__name__)

ORDER_ID_HEADERS = ["order id", "order_id", "orderid", "order number"]
ORDER_DATE_HEADERS = ["order date", "order_date", "orderdate", "date"]
ORDER_TOTAL_HEADERS = ["order total", "order_total", "ordertotal", "total"]
ITEM_TOTAL_HEADERS = ["total owed", "item total", "item_total"]
ITEM_NAME_HEADERS = ["product name", "title", "item", "items"]
CURRENCY_HEADERS = ["currency"]


def _first(data: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = data.get(key)
        if value is not None and value != "":
            return value
    return None


def parse_order_record(record: dict[str, Any]) -> ExternalOrder:
    """
    Validate one order record.

    Accepts snake_case or camelCase keys (order_id / orderId, order_date /
    orderDate, order_total / orderTotal / total). Items may be a list or a
    "|"-separated string.

    Raises:
        ValidationError: On a missing id, an unparseable date, or a bad total
    """
    if not isinstance(record, dict):
        raise ValidationError("Order record must be a mapping")
    order_id = str(_first(record, "order_id", "orderId") or "").strip()
    if not order_id:
        raise ValidationError("Order record is missing an order id")

    raw_date = _first(record, "order_date", "orderDate")
    try:
        order_date = FinancialDate.parse(raw_date)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Order {order_id} has an invalid date: {raw_date!r}") from e

    raw_total = _first(record, "order_total", "orderTotal", "total")
    try:
        if isinstance(raw_total, int) and not isinstance(raw_total, bool):
            total = Money.from_dollars(raw_total)
        elif isinstance(raw_total, float):
            total = Money.from_float(raw_total)
        else:
            total = Money.from_dollars(str(raw_total))
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Order {order_id} has an invalid total: {raw_total!r}") from e

    items = record.get("items") or []
    if isinstance(items, str):
        items = items.split("|")
    account_ids = record.get("account_ids") or []
    if isinstance(account_ids, str):
        account_ids = account_ids.split(",")

    return ExternalOrder(
        order_id=order_id,
        order_date=order_date,
        total=total,
        currency=str(record.get("currency") or "USD").upper(),
        items=[str(item).strip() for item in items if str(item).strip()],
        account_ids=sorted({str(a).strip() for a in account_ids if str(a).strip()}),
    )


def _find_column(columns: list[str], candidates: list[str]) -> str | None:
    lookup = {column.strip().lower(): column for column in columns}
    for candidate in candidates:
        if candidate in lookup:
            return lookup[candidate]
    return None


def load_order_csv(path: str | Path) -> list[dict[str, Any]]:
    """
    Read an order history CSV into order records.

    Args:
        path: CSV file

    Returns:
        One record dict per order id, in first-seen order

    Raises:
        FileNotFoundError: If the file does not exist
        ValidationError: If the file cannot be parsed or lacks required columns
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Order file not found: {path}")
    try:
        df = pd.read_csv(path, dtype=str, keep_default_na=False)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise ValidationError(f"Could not read {path.name}: {e}") from e

    columns = list(df.columns)
    id_column = _find_column(columns, ORDER_ID_HEADERS)
    date_column = _find_column(columns, ORDER_DATE_HEADERS)
    item_total_column = _find_column(columns, ITEM_TOTAL_HEADERS)
    order_total_column = _find_column(columns, ORDER_TOTAL_HEADERS)
    name_column = _find_column(columns, ITEM_NAME_HEADERS)
    currency_column = _find_column(columns, CURRENCY_HEADERS)

    if not id_column or not date_column or not (item_total_column or order_total_column):
        raise ValidationError(f"{path.name} needs order id, order date, and total columns")

    records: dict[str, dict[str, Any]] = {}
    item_sums: dict[str, Money] = {}
    for _, row in df.iterrows():
        order_id = str(row[id_column]).strip()
        if not order_id:
            continue
        record = records.setdefault(
            order_id,
            {
                "order_id": order_id,
                "order_date": str(row[date_column]).strip(),
                "items": [],
                "currency": str(row[currency_column]).strip() if currency_column else None,
            },
        )
        if name_column and str(row[name_column]).strip():
            record["items"].append(str(row[name_column]).strip())

        if item_total_column:
            try:
                amount = Money.from_dollars(str(row[item_total_column]))
            except ValueError:
                record["order_total"] = str(row[item_total_column])
                continue
            item_sums[order_id] = item_sums.get(order_id, Money.zero()) + amount
        elif "order_total" not in record:
            record["order_total"] = str(row[order_total_column])

    for order_id, total in item_sums.items():
        # An unparseable item total already poisoned the record; keep it invalid
        records[order_id].setdefault("order_total", total.to_dollars())

    logger.info("Loaded %d orders from %s", len(records), path.name)
    return list(records.values())


@dataclass
class OrderImportResult:
    received: int = 0
    created: int = 0
    skipped: int = 0
    invalid: int = 0
    order_ids: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "received": self.received,
            "created": self.created,
            "skipped": self.skipped,
            "invalid": self.invalid,
            "order_ids": list(self.order_ids),
            "errors": list(self.errors),
        }


class OrderImporter:
    """Creates ExternalOrders the ledger does not have yet."""

    def __init__(self, store: LedgerStore):
        self.store = store

    def import_records(self, records: list[dict[str, Any]]) -> OrderImportResult:
        """
        Validate, dedupe by order id, and create only new orders.

        The first valid record for an order id wins. Existing orders are
        counted as skipped and never modified, so links and ignore flags
        survive a re-import.
        """
        result = OrderImportResult(received=len(records))
        seen: dict[str, ExternalOrder] = {}
        for record in records:
            try:
                order = parse_order_record(record)
            except ValidationError as e:
                result.invalid += 1
                result.errors.append(e.message)
                continue
            if order.order_id in seen:
                result.skipped += 1
                continue
            seen[order.order_id] = order

        with self.store.unit_of_work() as store:
            for order_id, order in seen.items():
                if store.find_order(order_id) is not None:
                    result.skipped += 1
                    continue
                order.match_status = MatchStatus.UNMATCHED
                store.put_order(order)
                result.created += 1
                result.order_ids.append(order_id)

        logger.info(
            "Imported orders: %d created, %d already known, %d invalid",
            result.created,
            result.skipped,
            result.invalid,
        )
        return result
