import pytest
from ticket_classifier.core.config import settings
from ticket_classifier.core.errors import ValidationError
from ticket_classifier.services.csv_import import parse_tickets_csv, sanitize_cell

HEADER = "issue_key,summary,description,reporter"


def test_sanitize_cell_strips_formula_prefixes():
    assert sanitize_cell("=SUM(A1:A10)") == "SUM(A1:A10)"
    assert sanitize_cell("+-@cmd") == "cmd"
    assert sanitize_cell("\t=1+1 ") == "1+1"
    assert sanitize_cell("plain - text") == "plain - text"

def test_metadata_block_is_parsed():
    content = (
        "# METADATA - DO NOT EDIT THIS SECTION\r\n"
        "# session_id: s-77\r\n"
        "# nonce: 0123abcd\r\n"
        "# END METADATA\r\n"
        "\r\n"
        f"{HEADER}\r\n"
        "API-1,Broken link,The docs link returns 404.,a@b.io\r\n"
    )

    parsed = parse_tickets_csv(content)

    assert parsed.metadata == {"session_id": "s-77", "nonce": "0123abcd"}
    assert parsed.rows == [
        {"issue_key": "API-1", "summary": "Broken link", "description": "The docs link returns 404.", "reporter": "a@b.io"}
    ]

def test_header_names_are_case_insensitive_and_extra_columns_ignored():
    content = (
        "\ufeffReporter,Labels,Issue Key,Summary,Description\n"
        'a@b.io,"ui,login",API-2,Login loop,"Redirects back to the\nlogin page forever."\n'
    )

    parsed = parse_tickets_csv(content)

    assert parsed.metadata == {}
    assert parsed.rows == [{
        "issue_key": "API-2",
        "summary": "Login loop",
        "description": "Redirects back to the\nlogin page forever.",
        "reporter": "a@b.io",
    }]

def test_short_rows_are_padded_with_blanks():
    parsed = parse_tickets_csv(f"{HEADER}\nAPI-3,Only a summary\n")

    assert parsed.rows == [{"issue_key": "API-3", "summary": "Only a summary", "description": "", "reporter": ""}]

def test_missing_columns_rejected():
    with pytest.raises(ValidationError) as exc:
        parse_tickets_csv("issue_key,summary\nAPI-1,Broken link\n")

    assert exc.value.errors == {"csv": ["Missing required columns: description, reporter."]}

def test_empty_file_and_header_only_rejected():
    with pytest.raises(ValidationError) as exc:
        parse_tickets_csv("# session_id: s-1\n\n")
    assert "header" in exc.value.errors["csv"][0]

    with pytest.raises(ValidationError) as exc:
        parse_tickets_csv(f"{HEADER}\n\n")
    assert "at least one data row" in exc.value.errors["csv"][0]

def test_row_limit(monkeypatch):
    monkeypatch.setattr(settings, "CSV_MAX_ROWS", 2)
    rows = "\n".join(f"API-{i},Summary {i},Description number {i},u{i}@example.com" for i in range(3))

    with pytest.raises(ValidationError) as exc:
        parse_tickets_csv(f"{HEADER}\n{rows}\n")

    assert exc.value.errors == {"csv": ["The CSV file cannot contain more than 2 tickets."]}
