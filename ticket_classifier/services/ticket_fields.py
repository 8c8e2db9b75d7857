"""
Input normalisation and output vocabularies for ticket records.

Raw ticket rows arrive from API clients and CSV imports with inconsistent
casing and stray markup; everything is cleaned here before it is written.
"""
import re
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

CATEGORIES = ("Technical", "Commercial", "Billing", "General", "Support")
SENTIMENTS = ("Positive", "Negative", "Neutral")
PRIORITIES = ("Critical", "High", "Medium", "Low")
IMPACTS = ("High", "Medium", "Low")
URGENCIES = ("High", "Medium", "Low")

RAW_TICKET_FIELDS = ("issue_key", "summary", "description", "reporter")

# (min, max) lengths of the normalised values
FIELD_LENGTHS = {
    "issue_key": (None, 20),
    "summary": (5, 200),
    "description": (10, 2000),
    "reporter": (None, 255),
}

_TAG_RE = re.compile(r"<[^>]*>")
_ISSUE_KEY_RE = re.compile(r"^[A-Z]+-[0-9]+$")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s.]+$")


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def normalize_issue_key(value: Any) -> str:
    return _text(value).upper()


def normalize_summary(value: Any) -> str:
    text = _text(value)
    return text[:1].upper() + text[1:]


def normalize_description(value: Any) -> str:
    return _TAG_RE.sub("", "" if value is None else str(value)).strip()


def normalize_reporter(value: Any) -> str:
    return _text(value).lower()


def normalize_choice(value: Any, choices: Sequence[str]) -> Optional[str]:
    """Return the canonical spelling of ``value`` in ``choices``, or None."""
    needle = _text(value).lower()
    for choice in choices:
        if choice.lower() == needle:
            return choice
    return None


def _field_errors(field: str, value: str) -> List[str]:
    if not value:
        return [f"The {field} field is required."]

    errors = []
    minimum, maximum = FIELD_LENGTHS[field]
    if minimum is not None and len(value) < minimum:
        errors.append(f"The {field} field must be at least {minimum} characters.")
    if len(value) > maximum:
        errors.append(f"The {field} field must not exceed {maximum} characters.")

    if field == "issue_key" and not _ISSUE_KEY_RE.match(value):
        errors.append("The issue_key field must look like PROJ-123.")
    elif field == "reporter" and not _EMAIL_RE.match(value):
        errors.append("The reporter field must be a valid email address.")
    return errors


def normalize_raw_ticket(raw: Mapping[str, Any], prefix: str = "") -> Tuple[Dict[str, str], Dict[str, List[str]]]:
    """
    Clean one raw ticket row.

    Returns the normalised values and a mapping of field name to violation
    messages; the mapping is empty when the row is valid. Length and format
    rules apply to the normalised value, so ``<b>`` markup does not count
    towards a description's length.
    """
    values = {
        "issue_key": normalize_issue_key(raw.get("issue_key")),
        "summary": normalize_summary(raw.get("summary")),
        "description": normalize_description(raw.get("description")),
        "reporter": normalize_reporter(raw.get("reporter")),
    }

    errors: Dict[str, List[str]] = {}
    for field in RAW_TICKET_FIELDS:
        messages = _field_errors(field, values[field])
        if messages:
            errors[f"{prefix}{field}"] = messages

    return values, errors


def normalize_classification(
    category: Any,
    sentiment: Any,
    priority: Any,
    impact: Any,
    urgency: Any,
) -> Tuple[Dict[str, Optional[str]], Dict[str, List[str]]]:
    values = {
        "category": normalize_choice(category, CATEGORIES),
        "sentiment": normalize_choice(sentiment, SENTIMENTS),
        "priority": normalize_choice(priority, PRIORITIES),
        "impact": normalize_choice(impact, IMPACTS),
        "urgency": normalize_choice(urgency, URGENCIES),
    }
    raw = {"category": category, "sentiment": sentiment, "priority": priority, "impact": impact, "urgency": urgency}
    vocabularies = {
        "category": CATEGORIES,
        "sentiment": SENTIMENTS,
        "priority": PRIORITIES,
        "impact": IMPACTS,
        "urgency": URGENCIES,
    }

    errors: Dict[str, List[str]] = {}
    for field, value in values.items():
        if value is None:
            errors[field] = [f"Invalid {field} value: {raw[field]!r}. Must be one of: {', '.join(vocabularies[field])}."]
    return values, errors
