"""
Identity Resolver - normalization and derived keys for imported records.

Implements the identity rules shared by all importers:
1. Student identity is the trimmed, lowercased email
2. Rows with no email get a deterministic placeholder address
3. Module codes are trimmed and uppercased, with a filename fallback
4. Intakes are normalized to Spring | Summer | Autumn
5. A meeting session is identified by a composite key built from the
   cohort, the meeting times and the title

Design Decision: the session key is derived, not stored from the export,
because meeting platforms do not ship a stable meeting identifier in the
attendance report. Every discriminating field goes into the key so two
meetings of the same cohort never collide, while re-uploading an identical
file always reproduces the same key.
"""

import hashlib
import os
import re
from datetime import datetime
from typing import Optional, Tuple

# ──────────────────────────────────────────────────────────────
# Configuration constants
# ──────────────────────────────────────────────────────────────
STUDENT_EMAIL_SUFFIX = os.getenv("STUDENT_EMAIL_SUFFIX", "@stu.nexteducationgroup.com")
PLACEHOLDER_EMAIL_DOMAIN = "invalid.local"

INTAKES = {
    "spring": "Spring",
    "summer": "Summer",
    "autumn": "Autumn",
    "fall": "Autumn",
}

MODULE_CODE_FILENAME_PATTERN = re.compile(r"\b[A-Z]{2}\d{4}NU\b", re.IGNORECASE)
INTAKE_YEAR_FILENAME_PATTERN = re.compile(r"\b(Spring|Summer|Autumn|Fall)\b.*?\b(20\d{2})\b", re.IGNORECASE)


def normalize_email(email: Optional[str]) -> str:
    """
    Normalize an email address for identity matching.

    Returns an empty string when no email was provided so callers can
    decide on the placeholder fallback.
    """
    if not email:
        return ""
    return email.strip().lower()


def placeholder_email(line_index: int, session_key: str) -> str:
    """
    Synthesize a unique address for a participant row without an email.

    The physical line index keeps every emailless row of one export apart;
    the session key digest keeps rows at the same line of different
    meetings apart. Both are deterministic, so re-imports converge.
    """
    digest = hashlib.sha1(session_key.encode("utf-8")).hexdigest()[:12]
    return f"unknown-{digest}-{line_index}@{PLACEHOLDER_EMAIL_DOMAIN}"


def is_eligible_email(email: str, suffix: str = None) -> bool:
    """True when the email ends with the institution's student domain."""
    suffix = (suffix if suffix is not None else STUDENT_EMAIL_SUFFIX).strip().lower()
    if not email or not suffix:
        return False
    return email.strip().lower().endswith(suffix)


def normalize_intake(value: Optional[str]) -> Optional[str]:
    """Map free text to Spring | Summer | Autumn ("fall" -> Autumn); None if unknown."""
    if not value:
        return None
    return INTAKES.get(value.strip().lower())


def normalize_module_code(value: Optional[str]) -> str:
    if not value:
        return ""
    return value.strip().upper()


def module_code_from_filename(filename: Optional[str]) -> Optional[str]:
    """Extract a module code such as MN5070NU from an uploaded filename."""
    if not filename:
        return None
    match = MODULE_CODE_FILENAME_PATTERN.search(filename)
    return match.group(0).upper() if match else None


def intake_year_from_filename(filename: Optional[str]) -> Tuple[Optional[str], Optional[int]]:
    """Infer (intake, year) from names like "Spring 2026 ... MN5070NU.csv"."""
    if not filename:
        return None, None
    match = INTAKE_YEAR_FILENAME_PATTERN.search(filename)
    if not match:
        return None, None
    return normalize_intake(match.group(1)), int(match.group(2))


def format_iso_utc(value: Optional[datetime]) -> str:
    """
    Render a naive-UTC datetime as YYYY-MM-DDTHH:MM:SS.mmmZ.

    Empty string for None, so absent times still produce a stable key.
    """
    if value is None:
        return ""
    return value.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


def build_session_key(intake: str, year: int, module_code: str,
                      start_time: Optional[datetime], end_time: Optional[datetime],
                      meeting_name: Optional[str]) -> str:
    """
    Build the derived identity of a meeting session.

    Format (lower-cased, pipe-delimited):
        intake|year|module|start_iso|end_iso|title

    This key is the uniqueness target of the session upsert and is never
    shown to users; callers receive the session's opaque id instead.
    """
    parts = [
        intake,
        str(year),
        module_code,
        format_iso_utc(start_time),
        format_iso_utc(end_time),
        meeting_name or "",
    ]
    return "|".join(parts).lower()
