from datetime import datetime, timedelta
from typing import Dict, Any
from ticket_classifier.core.errors import ValidationError
from ticket_classifier.services.ticket_fields import IMPACTS, PRIORITIES, URGENCIES, normalize_choice

# impact -> urgency -> priority
PRIORITY_MATRIX = {
    "High": {"High": "Critical", "Medium": "High", "Low": "Medium"},
    "Medium": {"High": "High", "Medium": "Medium", "Low": "Low"},
    "Low": {"High": "Medium", "Medium": "Low", "Low": "Low"},
}

SLA_WINDOWS = {
    "Critical": timedelta(hours=1),
    "High": timedelta(hours=4),
    "Medium": timedelta(days=2),
    "Low": timedelta(days=7),
}


def calculate_priority(impact: str, urgency: str) -> str:
    """Priority from the ITIL impact x urgency matrix."""
    errors = {}
    canonical_impact = normalize_choice(impact, IMPACTS)
    canonical_urgency = normalize_choice(urgency, URGENCIES)
    if canonical_impact is None:
        errors["impact"] = [f"Invalid impact value: {impact}. Must be one of: {', '.join(IMPACTS)}."]
    if canonical_urgency is None:
        errors["urgency"] = [f"Invalid urgency value: {urgency}. Must be one of: {', '.join(URGENCIES)}."]
    if errors:
        raise ValidationError("Invalid impact/urgency combination", errors)

    return PRIORITY_MATRIX[canonical_impact][canonical_urgency]


def calculate_sla_due_date(priority: str, created_at: datetime) -> datetime:
    canonical = normalize_choice(priority, PRIORITIES)
    if canonical is None:
        raise ValidationError(
            "Invalid priority",
            {"priority": [f"Invalid priority value: {priority}. Must be one of: {', '.join(PRIORITIES)}."]},
        )
    return created_at + SLA_WINDOWS[canonical]


def calculate_priority_and_sla(impact: str, urgency: str, created_at: datetime) -> Dict[str, Any]:
    priority = calculate_priority(impact, urgency)
    return {
        "priority": priority,
        "impact": normalize_choice(impact, IMPACTS),
        "urgency": normalize_choice(urgency, URGENCIES),
        "sla_due_date": calculate_sla_due_date(priority, created_at),
    }
