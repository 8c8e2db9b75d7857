"""
Parsing of ticket CSV exports.

An export starts with an optional block of ``# key: value`` comment lines
(the metadata block written by the exporter), followed by a header row and
one row per ticket. Header names are matched case-insensitively, so both
``issue_key`` and ``Issue Key`` are accepted; unknown columns are ignored.
"""
import csv
import io
import logging
import re
from typing import Dict, List, NamedTuple
from ticket_classifier.core.config import settings
from ticket_classifier.core.errors import ValidationError
from ticket_classifier.services.ticket_fields import RAW_TICKET_FIELDS

logger = logging.getLogger(__name__)

METADATA_MARKERS = ("# METADATA - DO NOT EDIT THIS SECTION", "# END METADATA")

# Leading characters a spreadsheet would evaluate as a formula
_FORMULA_PREFIX_RE = re.compile(r"^[=+\-@\t\r]+")


class ParsedCsv(NamedTuple):
    metadata: Dict[str, str]
    rows: List[Dict[str, str]]


def sanitize_cell(value: str) -> str:
    return _FORMULA_PREFIX_RE.sub("", value.strip()).strip()


def _column_name(header: str) -> str:
    return re.sub(r"\s+", "_", header.strip().lower())


def _split_metadata(lines: List[str]) -> int:
    """Index of the first line after the leading comment block."""
    for index, line in enumerate(lines):
        stripped = line.strip()
        if stripped and not stripped.startswith("#"):
            return index
    return len(lines)


def _parse_metadata(lines: List[str]) -> Dict[str, str]:
    metadata = {}
    for line in lines:
        line = line.strip()
        if not line.startswith("# ") or line in METADATA_MARKERS:
            continue
        key, sep, value = line[2:].partition(": ")
        if sep:
            metadata[key.strip()] = value.strip()
    return metadata


def parse_tickets_csv(content: str) -> ParsedCsv:
    """
    Split an export into its metadata and ticket rows.

    Raises ``ValidationError`` keyed ``csv`` when the file has no header,
    lacks one of the ticket columns, has no data rows or more than
    ``CSV_MAX_ROWS``. Row-level checks are left to the job service.
    """
    if content.startswith("\ufeff"):
        content = content[1:]
    lines = content.replace("\r\n", "\n").replace("\r", "\n").split("\n")
    start = _split_metadata(lines)
    metadata = _parse_metadata(lines[:start])

    reader = csv.reader(io.StringIO("\n".join(lines[start:])))
    try:
        records = [record for record in reader if any(cell.strip() for cell in record)]
    except csv.Error as e:
        raise ValidationError("Invalid CSV upload", {"csv": [f"Malformed CSV: {e}"]}) from e

    if not records:
        raise ValidationError("Invalid CSV upload", {"csv": ["The CSV file has no header row."]})

    header = [_column_name(name) for name in records[0]]
    missing = [field for field in RAW_TICKET_FIELDS if field not in header]
    if missing:
        raise ValidationError("Invalid CSV upload", {"csv": [f"Missing required columns: {', '.join(missing)}."]})

    data = records[1:]
    if not data:
        raise ValidationError("Invalid CSV upload", {"csv": ["The CSV file must contain at least one data row."]})
    if len(data) > settings.CSV_MAX_ROWS:
        raise ValidationError(
            "Invalid CSV upload",
            {"csv": [f"The CSV file cannot contain more than {settings.CSV_MAX_ROWS} tickets."]},
        )

    positions = {field: header.index(field) for field in RAW_TICKET_FIELDS}
    rows = []
    for record in data:
        rows.append({
            field: sanitize_cell(record[position]) if position < len(record) else ""
            for field, position in positions.items()
        })

    logger.info("Parsed CSV with %d rows and %d metadata entries", len(rows), len(metadata))
    return ParsedCsv(metadata=metadata, rows=rows)
