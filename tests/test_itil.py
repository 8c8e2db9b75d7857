from datetime import datetime, timedelta
import pytest
from ticket_classifier.core.errors import ValidationError
from ticket_classifier.services.itil import calculate_priority, calculate_priority_and_sla, calculate_sla_due_date

CREATED = datetime(2026, 3, 2, 9, 30)


@pytest.mark.parametrize("impact,urgency,expected", [
    ("High", "High", "Critical"),
    ("High", "Medium", "High"),
    ("High", "Low", "Medium"),
    ("Medium", "High", "High"),
    ("Medium", "Medium", "Medium"),
    ("Medium", "Low", "Low"),
    ("Low", "High", "Medium"),
    ("Low", "Medium", "Low"),
    ("Low", "Low", "Low"),
])
def test_priority_matrix(impact, urgency, expected):
    assert calculate_priority(impact, urgency) == expected

def test_priority_is_case_insensitive():
    assert calculate_priority("HIGH", "high") == "Critical"

def test_priority_rejects_unknown_values():
    with pytest.raises(ValidationError) as exc:
        calculate_priority("severe", "soon")

    assert set(exc.value.errors) == {"impact", "urgency"}

@pytest.mark.parametrize("priority,window", [
    ("Critical", timedelta(hours=1)),
    ("High", timedelta(hours=4)),
    ("Medium", timedelta(days=2)),
    ("Low", timedelta(days=7)),
])
def test_sla_windows(priority, window):
    assert calculate_sla_due_date(priority, CREATED) == CREATED + window

def test_sla_rejects_unknown_priority():
    with pytest.raises(ValidationError) as exc:
        calculate_sla_due_date("Urgent", CREATED)

    assert "priority" in exc.value.errors

def test_priority_and_sla():
    result = calculate_priority_and_sla("medium", "HIGH", CREATED)

    assert result == {
        "priority": "High",
        "impact": "Medium",
        "urgency": "High",
        "sla_due_date": CREATED + timedelta(hours=4),
    }
