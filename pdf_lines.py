import io
import logging
import re
from dataclasses import dataclass
from typing import Iterator, Optional, Sequence

import pdfplumber

from models import TransactionDirection
from parsing import direction_from_marker, parse_amount, parse_date
from schemas import TransactionCandidate

logger = logging.getLogger(__name__)

_DATE = r"(?P<date>\d{4}-\d{2}-\d{2}|\d{1,2}[/-]\d{1,2}[/-]\d{2,4})"
_MARKER = r"(?:\s*(?P<marker>debit|credit|dr|cr)\.?(?![a-z]))?"
_DECIMAL_AMOUNT = r"\d[\d,]*\.\d{2}"
_PLAIN_AMOUNT = r"\d[\d,]*(?:\.\d+)?"


def _line_regex(amount: str) -> re.Pattern:
    return re.compile(
        rf"^\s*{_DATE}\s+(?P<description>.+?)\s+(?P<amount>{amount}){_MARKER}"
        rf"(?:\s+(?P<balance>{amount})(?:\s*(?:dr|cr)\.?)?)?(?!\S)",
        re.IGNORECASE,
    )


@dataclass(frozen=True)
class LinePattern:
    """
    One statement line layout. The regex must expose ``date``, ``description``
    and ``amount`` groups, and may expose ``marker`` and ``balance``.
    """

    name: str
    regex: re.Pattern

    def match(self, line: str) -> Optional[dict[str, Optional[str]]]:
        found = self.regex.match(line)
        if not found:
            return None
        return found.groupdict()


DEFAULT_LINE_PATTERNS: tuple[LinePattern, ...] = (
    # 01/12/2023 ZOMATO PAYMENT 450.00 Dr 25,550.00 REF123
    LinePattern("decimal_amounts", _line_regex(_DECIMAL_AMOUNT)),
    # 01/12/2023 SALARY 50000 Cr 75550
    LinePattern("plain_amounts", _line_regex(_PLAIN_AMOUNT)),
)


class StatementLineParser:
    def __init__(self, patterns: Sequence[LinePattern] = DEFAULT_LINE_PATTERNS) -> None:
        if not patterns:
            raise ValueError("At least one line pattern is required")
        self.patterns = tuple(patterns)

    def _groups(self, line: str) -> Optional[dict[str, Optional[str]]]:
        for pattern in self.patterns:
            groups = pattern.match(line)
            if groups is not None:
                return groups
        return None

    def parse_line(self, line: str) -> Optional[TransactionCandidate]:
        groups = self._groups(line)
        if groups is None:
            return None
        txn_date = parse_date(groups.get("date"))
        description = (groups.get("description") or "").strip()
        amount = parse_amount(groups.get("amount"))
        if txn_date is None or not description or amount is None or amount <= 0:
            return None
        direction = direction_from_marker(groups.get("marker"))
        return TransactionCandidate(
            date=txn_date,
            description=description,
            amount=amount,
            direction=direction or TransactionDirection.outflow,
            balance=parse_amount(groups.get("balance")),
        )

    def iter_text(self, text: str) -> Iterator[TransactionCandidate]:
        for line_number, line in enumerate(text.splitlines(), start=1):
            if not line.strip():
                continue
            candidate = self.parse_line(line)
            if candidate is None:
                logger.debug(f"pdf_parse: skipped line={line_number}")
                continue
            yield candidate

    def parse_text(self, text: str) -> list[TransactionCandidate]:
        return list(self.iter_text(text))


def extract_pdf_text(content: bytes) -> str:
    pages: list[str] = []
    with pdfplumber.open(io.BytesIO(content)) as pdf:
        for page in pdf.pages:
            text = page.extract_text()
            if text and text.strip():
                pages.append(text)
    if not pages:
        logger.warning("pdf_parse: no text extracted, statement may need OCR")
    return "\n".join(pages)
