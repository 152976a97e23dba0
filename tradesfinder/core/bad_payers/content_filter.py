"""Personal-data filter for bad payer reports.

Reports are published publicly, so free-text fields must not identify the
customer: no phone numbers, emails, full postcodes, social handles, vehicle
registrations, street addresses or titled names.
"""

import re

from pydantic import BaseModel

PHONE_PATTERNS = [
    re.compile(r"\b07\d{3}\s?\d{6}\b"),  # UK mobile
    re.compile(r"\b0[1-9]\d{2,4}\s?\d{6}\b"),  # UK landline
    re.compile(r"\+44\s?\d{10,11}\b"),
]

EMAIL_PATTERN = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")

# Only the outward part ("SW1") is allowed
FULL_POSTCODE_PATTERN = re.compile(r"\b[A-Z]{1,2}\d[A-Z\d]?\s?\d[A-Z]{2}\b", re.IGNORECASE)

SOCIAL_MEDIA_PATTERNS = [
    re.compile(r"@[A-Za-z0-9_]{1,30}"),
    re.compile(r"facebook\.com/[A-Za-z0-9.]+", re.IGNORECASE),
    re.compile(r"twitter\.com/[A-Za-z0-9_]+", re.IGNORECASE),
    re.compile(r"instagram\.com/[A-Za-z0-9_.]+", re.IGNORECASE),
    re.compile(r"linkedin\.com/in/[A-Za-z0-9-]+", re.IGNORECASE),
]

VEHICLE_REG_PATTERN = re.compile(r"\b[A-Z]{2}\d{2}\s?[A-Z]{3}\b", re.IGNORECASE)

ADDRESS_PATTERNS = [
    re.compile(
        r"\b\d+[A-Za-z]?\s+[A-Za-z]+\s+"
        r"(?:street|st|road|rd|avenue|ave|lane|ln|drive|dr|close|cl|way|court|ct|place|pl|crescent|cres)\b",
        re.IGNORECASE,
    ),
    re.compile(r"\bflat\s+\d+[A-Za-z]?\b", re.IGNORECASE),
    re.compile(r"\bunit\s+\d+[A-Za-z]?\b", re.IGNORECASE),
]

TITLED_NAME_PATTERN = re.compile(
    r"\b(?:mr|mrs|ms|miss|dr|prof)\.?\s+[A-Z][a-z]+(?:\s+[A-Z][a-z]+)?\b", re.IGNORECASE
)

CHECKS = [
    ("PHONE_NUMBER", PHONE_PATTERNS, "Phone numbers are not allowed"),
    ("EMAIL", [EMAIL_PATTERN], "Email addresses are not allowed"),
    (
        "FULL_POSTCODE",
        [FULL_POSTCODE_PATTERN],
        'Full postcodes are not allowed. Only use the first part (e.g., "SW1" instead of "SW1A 1AA")',
    ),
    ("SOCIAL_MEDIA", SOCIAL_MEDIA_PATTERNS, "Social media handles and links are not allowed"),
    ("VEHICLE_REG", [VEHICLE_REG_PATTERN], "Vehicle registration numbers are not allowed"),
    ("ADDRESS", ADDRESS_PATTERNS, "Specific street addresses are not allowed"),
    ("PERSONAL_NAME", [TITLED_NAME_PATTERN], "Personal names with titles (Mr, Mrs, etc.) are not allowed"),
]

FIELD_LABELS = {
    "work_description": "Work description",
    "location_area": "Location area",
    "communication_summary": "Communication summary",
}


class FilterIssue(BaseModel):
    field: str
    type: str
    message: str
    matches: list[str]


class FilterResult(BaseModel):
    is_valid: bool
    issues: list[FilterIssue]


def _find_matches(text: str, patterns: list[re.Pattern]) -> list[str]:
    found: list[str] = []
    for pattern in patterns:
        found.extend(m.group(0) for m in pattern.finditer(text))
    return list(dict.fromkeys(found))


def check_text(text: str, field: str) -> list[FilterIssue]:
    issues = []
    for issue_type, patterns, message in CHECKS:
        matches = _find_matches(text, patterns)
        if matches:
            issues.append(FilterIssue(field=field, type=issue_type, message=message, matches=matches))
    return issues


def filter_report_content(
    work_description: str,
    location_area: str,
    communication_summary: str | None = None,
) -> FilterResult:
    issues = check_text(work_description, "work_description")
    issues += check_text(location_area, "location_area")
    if communication_summary:
        issues += check_text(communication_summary, "communication_summary")
    return FilterResult(is_valid=not issues, issues=issues)


def filter_error_message(issues: list[FilterIssue]) -> str:
    grouped: dict[str, list[str]] = {}
    for issue in issues:
        grouped.setdefault(issue.field, []).append(issue.message)

    parts = [f"{FIELD_LABELS.get(field, field)}: {'; '.join(messages)}" for field, messages in grouped.items()]
    return "Your report contains identifying information that must be removed:\n" + "\n".join(parts)
