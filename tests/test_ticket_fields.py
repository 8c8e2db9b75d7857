from ticket_classifier.services.ticket_fields import (
    CATEGORIES,
    normalize_choice,
    normalize_classification,
    normalize_description,
    normalize_raw_ticket,
    normalize_summary,
)


def test_normalize_choice_returns_canonical_spelling():
    assert normalize_choice("  BILLING ", CATEGORIES) == "Billing"
    assert normalize_choice("hardware", CATEGORIES) is None
    assert normalize_choice(None, CATEGORIES) is None

def test_summary_capitalises_first_letter_only():
    assert normalize_summary("  payment gateway DOWN ") == "Payment gateway DOWN"

def test_description_strips_markup():
    assert normalize_description("<div>Hello <script>x</script>world</div>\n") == "Hello xworld"

def test_raw_ticket_is_normalised():
    values, errors = normalize_raw_ticket({
        "issue_key": " api-12 ",
        "summary": "timeout on export",
        "description": "<p>Export job times out after 30s.</p>",
        "reporter": " Ops@Example.COM",
    })

    assert errors == {}
    assert values == {
        "issue_key": "API-12",
        "summary": "Timeout on export",
        "description": "Export job times out after 30s.",
        "reporter": "ops@example.com",
    }

def test_raw_ticket_requires_every_field():
    _, errors = normalize_raw_ticket({"issue_key": "api-12"}, prefix="tickets[0].")

    assert errors == {
        "tickets[0].summary": ["The summary field is required."],
        "tickets[0].description": ["The description field is required."],
        "tickets[0].reporter": ["The reporter field is required."],
    }

def test_raw_ticket_format_rules():
    _, errors = normalize_raw_ticket({
        "issue_key": "!!! ???",
        "summary": "x",
        "description": "<b>short</b>",
        "reporter": "not-an-email",
    })

    assert errors == {
        "issue_key": ["The issue_key field must look like PROJ-123."],
        "summary": ["The summary field must be at least 5 characters."],
        "description": ["The description field must be at least 10 characters."],
        "reporter": ["The reporter field must be a valid email address."],
    }

def test_raw_ticket_length_limits():
    _, errors = normalize_raw_ticket({
        "issue_key": "ABCDEFGHIJKLMNOPQ-123",
        "summary": "s" * 201,
        "description": "d" * 2001,
        "reporter": "a" * 250 + "@example.com",
    })

    assert errors["issue_key"] == ["The issue_key field must not exceed 20 characters."]
    assert errors["summary"] == ["The summary field must not exceed 200 characters."]
    assert errors["description"] == ["The description field must not exceed 2000 characters."]
    assert errors["reporter"] == ["The reporter field must not exceed 255 characters."]

def test_classification_errors_list_allowed_values():
    _, errors = normalize_classification("Technical", "angry", "High", "High", "High")

    assert list(errors) == ["sentiment"]
    assert "Positive, Negative, Neutral" in errors["sentiment"][0]
