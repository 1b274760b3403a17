"""Bank statement ingestion: raw PDF or CSV bytes into transaction candidates."""

import logging
from enum import Enum
from typing import Optional

from csv_utils import decode_csv_bytes, parse_csv
from pdf_lines import StatementLineParser, extract_pdf_text
from schemas import TransactionCandidate

logger = logging.getLogger(__name__)


class UnsupportedFormat(ValueError):
    pass


class StatementFormat(str, Enum):
    pdf = "pdf"
    csv = "csv"


MIME_TYPES: dict[str, StatementFormat] = {
    "application/pdf": StatementFormat.pdf,
    "text/csv": StatementFormat.csv,
    "application/csv": StatementFormat.csv,
}


def detect_format(mime_type: Optional[str]) -> StatementFormat:
    normalized = (mime_type or "").split(";", 1)[0].strip().lower()
    statement_format = MIME_TYPES.get(normalized)
    if statement_format is None:
        raise UnsupportedFormat(
            "Unsupported file format. Only PDF and CSV files are supported."
        )
    return statement_format


def _parse_pdf(
    content: bytes, line_parser: StatementLineParser
) -> list[TransactionCandidate]:
    try:
        text = extract_pdf_text(content)
    except Exception as exc:
        logger.warning(f"statement_parse: unreadable pdf error={exc!r}")
        return []
    return line_parser.parse_text(text)


def parse_statement(
    content: bytes,
    mime_type: Optional[str],
    *,
    line_parser: Optional[StatementLineParser] = None,
) -> list[TransactionCandidate]:
    """
    Extract transaction candidates from an uploaded statement.

    Only an unsupported MIME type raises. Lines and rows that cannot be read
    are dropped, so an empty or unrecognised file yields an empty list; the
    caller decides whether zero candidates is worth reporting.
    """
    statement_format = detect_format(mime_type)
    if not content:
        return []

    if statement_format == StatementFormat.pdf:
        candidates = _parse_pdf(content, line_parser or StatementLineParser())
    else:
        candidates = parse_csv(decode_csv_bytes(content))

    logger.info(
        f"statement_parse: format={statement_format.value} bytes={len(content)} "
        f"candidates={len(candidates)}"
    )
    return candidates
