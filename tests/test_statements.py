import re
from datetime import date
from decimal import Decimal

import pytest

import statements
from models import TransactionDirection
from pdf_lines import LinePattern, StatementLineParser, extract_pdf_text
from statements import (
    StatementFormat,
    UnsupportedFormat,
    detect_format,
    parse_statement,
)


def test_detect_format_normalizes_mime_type():
    assert detect_format("application/pdf") == StatementFormat.pdf
    assert detect_format("text/csv; charset=utf-8") == StatementFormat.csv
    assert detect_format("Application/CSV") == StatementFormat.csv
    with pytest.raises(UnsupportedFormat):
        detect_format("text/plain")
    with pytest.raises(UnsupportedFormat):
        detect_format(None)


def test_unsupported_format_is_a_value_error():
    with pytest.raises(ValueError):
        parse_statement(b"anything", "image/png")


def test_empty_content_yields_no_candidates():
    assert parse_statement(b"", "text/csv") == []
    assert parse_statement(b"", "application/pdf") == []


def test_csv_with_type_column_preserves_row_order():
    content = (
        "date,description,amount,type\n"
        "2024-03-01,Zomato order,450.00,debit\n"
        "2024-03-02,Salary March,50000,credit\n"
        "2024-03-03,Metro card,200,Dr\n"
    ).encode()

    candidates = parse_statement(content, "text/csv")

    assert [c.description for c in candidates] == [
        "Zomato order",
        "Salary March",
        "Metro card",
    ]
    assert [c.direction for c in candidates] == [
        TransactionDirection.outflow,
        TransactionDirection.inflow,
        TransactionDirection.outflow,
    ]
    assert candidates[0].amount == Decimal("450.00")
    assert candidates[0].date == date(2024, 3, 1)


def test_csv_with_debit_and_credit_columns():
    content = (
        "Txn Date,Narration,Withdrawal,Deposit,Closing Balance\n"
        "01/03/2024,ATM cash,\"2,000.00\",,8000.00\n"
        "02/03/2024,Salary,0.00,\"50,000.00\",\"58,000.00\"\n"
    ).encode()

    first, second = parse_statement(content, "text/csv")

    assert first.direction == TransactionDirection.outflow
    assert first.amount == Decimal("2000.00")
    assert first.balance == Decimal("8000.00")
    assert second.direction == TransactionDirection.inflow
    assert second.amount == Decimal("50000.00")
    assert second.balance == Decimal("58000.00")


def test_csv_negative_amount_without_type_is_outflow():
    content = b"Date,Description,Amount\n2024-03-05,Coffee,-45.50\n"

    (candidate,) = parse_statement(content, "text/csv")

    assert candidate.amount == Decimal("45.50")
    assert candidate.direction == TransactionDirection.outflow


def test_csv_untyped_positive_amount_is_outflow():
    content = b"Date,Description,Amount\n2024-03-31,Salary,5000\n"

    (candidate,) = parse_statement(content, "text/csv")

    assert candidate.amount == Decimal("5000")
    assert candidate.direction == TransactionDirection.outflow


def test_csv_skips_rows_missing_fields():
    content = (
        "date,description,amount\n"
        "2024-03-01,Good row,10.00\n"
        "2024-03-02,,20.00\n"
        "not a date,Bad date,30.00\n"
        "2024-03-04,No amount,\n"
        "2024-03-05,Zero amount,0\n"
    ).encode()

    candidates = parse_statement(content, "text/csv")

    assert len(candidates) == 1
    assert candidates[0].description == "Good row"


def test_csv_decoding_handles_bom_and_legacy_encodings():
    with_bom = "\ufeffdate,description,amount\n2024-03-01,Tea,5\n".encode("utf-8")
    legacy = "date,description,amount\n2024-03-01,Café Noir,5\n".encode("cp1252")
    plain = "date,description,amount\n2024-03-01,Crème brûlée,5\n".encode("utf-8")

    assert parse_statement(with_bom, "text/csv")[0].description == "Tea"
    assert parse_statement(legacy, "text/csv")[0].description == "Café Noir"
    assert parse_statement(plain, "text/csv")[0].description == "Crème brûlée"


def test_csv_without_known_columns_yields_nothing():
    content = b"foo,bar\n1,2\n"
    assert parse_statement(content, "text/csv") == []


STATEMENT_TEXT = """HDFC BANK STATEMENT
Date Narration Amount Balance
01/03/2024 ZOMATO PAYMENT 450.00 Dr 25,550.00
02/03/2024 SALARY ACME LTD 50,000.00 Cr 75,550.00
05/03/2024 Coffee shop 120.50
01/12/2023 SALARY 50000 Cr 75550
07/03/2024 UBER TRIP 230.00 Dr 25,320.00 REF123 07/03/2024
Page 1 of 2
"""


def test_line_parser_reads_statement_lines():
    candidates = StatementLineParser().parse_text(STATEMENT_TEXT)

    assert len(candidates) == 5
    zomato, salary, coffee, plain, uber = candidates
    assert zomato.description == "ZOMATO PAYMENT"
    assert zomato.amount == Decimal("450.00")
    assert zomato.direction == TransactionDirection.outflow
    assert zomato.balance == Decimal("25550.00")
    assert salary.direction == TransactionDirection.inflow
    assert salary.amount == Decimal("50000.00")
    assert coffee.direction == TransactionDirection.outflow
    assert coffee.balance is None
    assert plain.amount == Decimal("50000")
    assert plain.date == date(2023, 12, 1)
    assert uber.description == "UBER TRIP"
    assert uber.amount == Decimal("230.00")
    assert uber.direction == TransactionDirection.outflow
    assert uber.balance == Decimal("25320.00")


def test_line_parser_tolerates_trailing_reference_columns():
    parser = StatementLineParser()

    (decimal,) = parser.parse_text(
        "01/12/2023 ZOMATO PAYMENT 450.00 Dr 25,550.00 REF123\n"
    )
    (plain,) = parser.parse_text("01/12/2023 SALARY 50000 Cr 75550 CHQ 004512")

    assert decimal.description == "ZOMATO PAYMENT"
    assert decimal.amount == Decimal("450.00")
    assert decimal.balance == Decimal("25550.00")
    assert plain.direction == TransactionDirection.inflow
    assert plain.balance == Decimal("75550")


def test_line_parser_accepts_custom_patterns():
    pipe = LinePattern(
        "pipe_separated",
        re.compile(
            r"^(?P<date>\d{4}-\d{2}-\d{2})\|(?P<description>[^|]+)\|"
            r"(?P<amount>[\d.]+)\|(?P<marker>\w+)$"
        ),
    )
    parser = StatementLineParser([pipe])

    (candidate,) = parser.parse_text("2024-03-01|Rent March|15000.00|CR\nnoise")

    assert candidate.description == "Rent March"
    assert candidate.direction == TransactionDirection.inflow


def test_line_parser_requires_patterns():
    with pytest.raises(ValueError):
        StatementLineParser([])


def test_pdf_statement_uses_extracted_text(monkeypatch):
    monkeypatch.setattr(statements, "extract_pdf_text", lambda content: STATEMENT_TEXT)

    candidates = parse_statement(b"%PDF-1.4 ...", "application/pdf")

    assert len(candidates) == 5


def test_unreadable_pdf_yields_no_candidates():
    assert parse_statement(b"this is not a pdf", "application/pdf") == []


def _text_pdf(lines):
    """Single-page PDF drawing each line in Helvetica, one below the other."""
    ops = ["BT", "/F1 10 Tf", "14 TL", "50 750 Td"]
    for line in lines:
        escaped = line.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")
        ops.append(f"({escaped}) Tj T*")
    ops.append("ET")
    stream = "\n".join(ops).encode("latin-1")

    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
        b"/Resources << /Font << /F1 4 0 R >> >> /Contents 5 0 R >>",
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
        b"<< /Length %d >>\nstream\n" % len(stream) + stream + b"\nendstream",
    ]
    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += b"%d 0 obj\n" % number + body + b"\nendobj\n"
    xref_at = len(out)
    out += b"xref\n0 %d\n0000000000 65535 f \n" % (len(objects) + 1)
    for offset in offsets:
        out += b"%010d 00000 n \n" % offset
    out += b"trailer\n<< /Size %d /Root 1 0 R >>\nstartxref\n%d\n%%%%EOF\n" % (
        len(objects) + 1,
        xref_at,
    )
    return bytes(out)


def test_pdf_statement_is_read_with_pdfplumber():
    content = _text_pdf(
        [
            "ACME BANK STATEMENT",
            "01/03/2024 ZOMATO PAYMENT 450.00 Dr 25,550.00",
            "02/03/2024 SALARY ACME LTD 50,000.00 Cr 75,550.00",
        ]
    )

    assert "ZOMATO PAYMENT" in extract_pdf_text(content)

    zomato, salary = parse_statement(content, "application/pdf")
    assert zomato.date == date(2024, 3, 1)
    assert zomato.amount == Decimal("450.00")
    assert zomato.direction == TransactionDirection.outflow
    assert salary.description == "SALARY ACME LTD"
    assert salary.direction == TransactionDirection.inflow
