import csv
import logging
from dataclasses import dataclass
from decimal import Decimal
from io import StringIO
from typing import Iterator, Optional, Sequence

from models import TransactionDirection
from parsing import direction_from_marker, parse_amount, parse_date
from schemas import TransactionCandidate

logger = logging.getLogger(__name__)

CSV_ENCODINGS = ("utf-8-sig", "cp1252")

DATE_COLUMNS = ("date", "transaction date", "txn date", "posting date")
DESCRIPTION_COLUMNS = ("description", "narration", "particulars", "details")
AMOUNT_COLUMNS = ("amount", "transaction amount", "txn amount")
DEBIT_COLUMNS = ("debit", "withdrawal", "debit amount")
CREDIT_COLUMNS = ("credit", "deposit", "credit amount")
TYPE_COLUMNS = ("type", "transaction type", "txn type")
BALANCE_COLUMNS = ("balance", "closing balance", "available balance")


def decode_csv_bytes(content: bytes) -> str:
    for encoding in CSV_ENCODINGS:
        try:
            return content.decode(encoding)
        except UnicodeDecodeError:
            continue
    return content.decode("latin-1")


def find_column(
    fieldnames: Sequence[Optional[str]], candidates: Sequence[str]
) -> Optional[str]:
    """First header (case-insensitive) matching the candidates, in candidate order."""
    by_lower: dict[str, str] = {}
    for name in fieldnames:
        if name is None:
            continue
        by_lower.setdefault(name.strip().lower(), name)
    for candidate in candidates:
        match = by_lower.get(candidate)
        if match is not None:
            return match
    return None


@dataclass(frozen=True)
class ColumnMap:
    date: Optional[str]
    description: Optional[str]
    amount: Optional[str]
    debit: Optional[str]
    credit: Optional[str]
    type: Optional[str]
    balance: Optional[str]

    @classmethod
    def from_header(cls, fieldnames: Sequence[Optional[str]]) -> "ColumnMap":
        return cls(
            date=find_column(fieldnames, DATE_COLUMNS),
            description=find_column(fieldnames, DESCRIPTION_COLUMNS),
            amount=find_column(fieldnames, AMOUNT_COLUMNS),
            debit=find_column(fieldnames, DEBIT_COLUMNS),
            credit=find_column(fieldnames, CREDIT_COLUMNS),
            type=find_column(fieldnames, TYPE_COLUMNS),
            balance=find_column(fieldnames, BALANCE_COLUMNS),
        )


def _cell(row: dict, column: Optional[str]) -> str:
    if column is None:
        return ""
    value = row.get(column)
    if value is None:
        return ""
    return str(value).strip()


def resolve_amount(
    row: dict, columns: ColumnMap
) -> Optional[tuple[Decimal, TransactionDirection]]:
    """
    Amount and direction of a row: a unified amount column wins, otherwise
    whichever of the debit/credit columns holds a non-zero value.
    """
    raw_amount = _cell(row, columns.amount)
    if raw_amount:
        amount = parse_amount(raw_amount)
        if amount is None:
            return None
        direction = direction_from_marker(_cell(row, columns.type))
        if direction is None:
            direction = TransactionDirection.outflow
        return abs(amount), direction

    debit = parse_amount(_cell(row, columns.debit))
    if debit:
        return abs(debit), TransactionDirection.outflow
    credit = parse_amount(_cell(row, columns.credit))
    if credit:
        return abs(credit), TransactionDirection.inflow
    return None


def row_to_candidate(row: dict, columns: ColumnMap) -> Optional[TransactionCandidate]:
    txn_date = parse_date(_cell(row, columns.date))
    if txn_date is None:
        return None
    description = _cell(row, columns.description)
    if not description:
        return None
    resolved = resolve_amount(row, columns)
    if resolved is None:
        return None
    amount, direction = resolved
    if amount <= 0:
        return None
    return TransactionCandidate(
        date=txn_date,
        description=description,
        amount=amount,
        direction=direction,
        balance=parse_amount(_cell(row, columns.balance)),
    )


def iter_csv_candidates(content: str) -> Iterator[TransactionCandidate]:
    """Yield candidates row by row; rows that cannot be resolved are skipped."""
    reader = csv.DictReader(StringIO(content))
    try:
        fieldnames = reader.fieldnames or []
    except csv.Error as exc:
        logger.warning(f"csv_parse: unreadable header error={exc}")
        return
    columns = ColumnMap.from_header(fieldnames)

    row_number = 1
    while True:
        row_number += 1
        try:
            row = next(reader)
        except StopIteration:
            break
        except csv.Error as exc:
            logger.debug(f"csv_parse: skipped row={row_number} error={exc}")
            continue
        candidate = row_to_candidate(row, columns)
        if candidate is None:
            logger.debug(f"csv_parse: skipped row={row_number} reason=unresolved")
            continue
        yield candidate


def parse_csv(content: str) -> list[TransactionCandidate]:
    return list(iter_csv_candidates(content))
