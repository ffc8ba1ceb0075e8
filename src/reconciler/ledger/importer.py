#!/usr/bin/env python3
"""
Bank CSV Transaction Importer

Loads bank and card CSV exports into source=import ledger rows.

Rows are deduplicated by a content hash (account, budget month, date,
amount in cents, normalized description), so re-importing an overlapping
export is safe. Amounts are stored as the export reports them, after
applying any debit/credit type column; expense sign is derived on read.

Functions:
- detect_column_mapping: Guess column names from common export headers
- compute_import_hash: Deduplication key for an imported row
- TransactionImporter.import_file: Load, validate, dedupe, filter, persist
"""

import hashlib
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pandas as pd

from ..core.dates import FinancialDate
from ..core.errors import ValidationError
from ..core.models import Transaction, TransactionSource, imported_transaction_id
from ..core.money import Money
from ..core.text import normalize_description
from .amounts import normalize_import_amount
from .ignore_rules import IgnoreRuleFilter
from .store import LedgerStore

logger = logging.getLogger(__name__)

DATE_HEADERS = ["date", "transaction date", "posted date", "trans date", "posting date"]
DESCRIPTION_HEADERS = ["description", "desc", "merchant", "payee", "details", "name"]
AMOUNT_HEADERS = ["amount", "amt", "value", "transaction amount"]
SUB_DESCRIPTION_HEADERS = ["sub-description", "subdescription", "memo", "merchant"]
TYPE_HEADERS = ["type", "transaction type", "type of transaction", "debit/credit"]
DEBIT_HEADERS = ["debit", "withdrawal", "withdrawals"]
CREDIT_HEADERS = ["credit", "deposit", "deposits"]


@dataclass
class ColumnMapping:
    """
    CSV column names for each transaction field.

    Either amount, or debit and/or credit, must be set. A separate debit
    column holds outflows and a credit column holds inflows, both unsigned.
    """

    date: str
    description: str
    amount: str | None = None
    sub_description: str | None = None
    transaction_type: str | None = None
    debit: str | None = None
    credit: str | None = None
    date_format: str | None = None

    def __post_init__(self) -> None:
        if not (self.amount or self.debit or self.credit):
            raise ValidationError("Column mapping needs an amount column or debit/credit columns")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ColumnMapping":
        try:
            return cls(**{k: v for k, v in data.items() if v})
        except TypeError as e:
            raise ValidationError(f"Invalid column mapping: {e}") from e

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in self.__dict__.items() if v is not None}


def _find_header(headers: list[str], candidates: list[str], exclude: set[str]) -> str | None:
    lowered = {h.strip().lower(): h for h in headers if h not in exclude}
    for candidate in candidates:
        if candidate in lowered:
            return lowered[candidate]
    return None


def detect_column_mapping(headers: list[str]) -> ColumnMapping:
    """
    Guess a column mapping from CSV headers.

    Raises:
        ValidationError: If date, description, or an amount column is missing
    """
    used: set[str] = set()

    def take(candidates: list[str]) -> str | None:
        found = _find_header(headers, candidates, used)
        if found:
            used.add(found)
        return found

    date_col = take(DATE_HEADERS)
    description_col = take(DESCRIPTION_HEADERS)
    amount_col = take(AMOUNT_HEADERS)
    debit_col = take(DEBIT_HEADERS) if amount_col is None else None
    credit_col = take(CREDIT_HEADERS) if amount_col is None else None
    type_col = take(TYPE_HEADERS)
    sub_col = take(SUB_DESCRIPTION_HEADERS)

    if not date_col or not description_col:
        raise ValidationError(f"Could not detect date/description columns in {headers}")
    return ColumnMapping(
        date=date_col,
        description=description_col,
        amount=amount_col,
        sub_description=sub_col,
        transaction_type=type_col,
        debit=debit_col,
        credit=credit_col,
    )


def compute_import_hash(
    account_id: str, period_key: str, date: FinancialDate, amount: Money, normalized_description: str
) -> str:
    """SHA-256 of account|period|ISO date|cents|normalized description."""
    data = f"{account_id}|{period_key}|{date.to_iso_string()}|{amount.to_cents()}|{normalized_description}"
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


@dataclass
class ImportResult:
    """Outcome counts for one CSV import."""

    account_id: str
    source_file: str
    total_rows: int = 0
    imported: int = 0
    duplicates: int = 0
    out_of_period: int = 0
    ignored: int = 0
    invalid: int = 0
    errors: list[str] = field(default_factory=list)
    transaction_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "account_id": self.account_id,
            "source_file": self.source_file,
            "total_rows": self.total_rows,
            "imported": self.imported,
            "duplicates": self.duplicates,
            "out_of_period": self.out_of_period,
            "ignored": self.ignored,
            "invalid": self.invalid,
            "errors": list(self.errors),
            "transaction_ids": list(self.transaction_ids),
        }


def _cell(row: pd.Series, column: str | None) -> str:
    if not column:
        return ""
    value = row.get(column, "")
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return ""
    return str(value).strip()


class TransactionImporter:
    """Imports bank/card CSV exports into the ledger."""

    def __init__(self, store: LedgerStore):
        self.store = store

    def load_frame(self, path: str | Path) -> pd.DataFrame:
        """
        Read a CSV export as strings.

        Raises:
            FileNotFoundError: If the file does not exist
            ValidationError: If the file cannot be parsed or has no rows
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"CSV file not found: {path}")
        try:
            frame = pd.read_csv(path, dtype=str, keep_default_na=False, skip_blank_lines=True)
        except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
            raise ValidationError(f"Could not parse {path.name}: {e}") from e
        frame.columns = [str(c).strip() for c in frame.columns]
        if frame.empty:
            raise ValidationError(f"No rows found in {path.name}")
        return frame

    def _row_amount(self, row: pd.Series, mapping: ColumnMapping, account_type: Any) -> Money:
        if mapping.amount:
            amount = Money.from_dollars(_cell(row, mapping.amount))
            return normalize_import_amount(amount, account_type, _cell(row, mapping.transaction_type))

        debit = _cell(row, mapping.debit)
        credit = _cell(row, mapping.credit)
        if debit:
            return normalize_import_amount(Money.from_dollars(debit), account_type, "debit")
        if credit:
            return normalize_import_amount(Money.from_dollars(credit), account_type, "credit")
        raise ValueError("Row has neither a debit nor a credit amount")

    def import_file(
        self,
        account_id: str,
        path: str | Path,
        mapping: ColumnMapping | None = None,
        period: tuple[int, int] | None = None,
    ) -> ImportResult:
        """
        Import one CSV export for an account.

        Args:
            account_id: Owning account
            path: CSV file
            mapping: Column mapping; detected from headers when None
            period: Optional (year, month); rows outside it are counted, not imported

        Returns:
            ImportResult with per-status counts

        Raises:
            NotFound: If the account does not exist
            ValidationError: If the file or mapping is unusable
        """
        account = self.store.get_account(account_id)
        frame = self.load_frame(path)
        if mapping is None:
            mapping = detect_column_mapping(list(frame.columns))

        missing = [c for c in (mapping.date, mapping.description, mapping.amount) if c and c not in frame.columns]
        if missing:
            raise ValidationError(f"Columns not found in CSV: {missing}")

        result = ImportResult(account_id=account_id, source_file=str(path), total_rows=len(frame))
        rule_filter = IgnoreRuleFilter(self.store.list_ignore_rules())
        seen_hashes: set[str] = set()
        new_rows: list[Transaction] = []

        for line_number, (_, row) in enumerate(frame.iterrows(), start=2):
            try:
                raw_date = _cell(row, mapping.date)
                date = (
                    FinancialDate.from_string(raw_date, mapping.date_format)
                    if mapping.date_format
                    else FinancialDate.parse(raw_date)
                )
                amount = self._row_amount(row, mapping, account.type)
            except ValueError as e:
                result.invalid += 1
                result.errors.append(f"Line {line_number}: {e}")
                continue

            description = _cell(row, mapping.description)
            sub_description = _cell(row, mapping.sub_description) or None
            if not description and not sub_description:
                result.invalid += 1
                result.errors.append(f"Line {line_number}: missing description")
                continue

            if period is not None and not date.in_period(*period):
                result.out_of_period += 1
                continue

            composite = " ".join(part for part in (description, sub_description) if part)
            import_hash = compute_import_hash(
                account.id,
                f"{date.year:04d}-{date.month:02d}",
                date,
                amount,
                normalize_description(composite),
            )
            transaction_id = imported_transaction_id(import_hash)
            if import_hash in seen_hashes or self.store.find_transaction(transaction_id) is not None:
                result.duplicates += 1
                continue
            seen_hashes.add(import_hash)

            transaction = Transaction(
                id=transaction_id,
                account_id=account.id,
                amount=amount,
                date=date,
                description=description or (sub_description or ""),
                sub_description=sub_description if description else None,
                source=TransactionSource.IMPORT,
                import_hash=import_hash,
            )
            hit = rule_filter.matches_transaction(transaction)
            if hit is not None:
                transaction.ignored = True
                transaction.ignored_by_rule_id = hit.rule_id
                result.ignored += 1
            new_rows.append(transaction)

        with self.store.unit_of_work() as store:
            for transaction in new_rows:
                store.put_transaction(transaction)
                store.ensure_period(transaction.date.year, transaction.date.month)

        result.imported = len(new_rows)
        result.transaction_ids = [t.id for t in new_rows]
        logger.info(
            "Imported %d of %d rows from %s into %s (%d duplicates, %d invalid, %d out of period)",
            result.imported,
            result.total_rows,
            Path(path).name,
            account_id,
            result.duplicates,
            result.invalid,
            result.out_of_period,
        )
        return result
