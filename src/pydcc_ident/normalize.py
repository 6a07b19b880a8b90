"""Normalize and validate CV numbers and CV=value assignment strings."""

import re

from .errors import InvalidAssignmentError
from .types import MAX_CV

# Optional "CV" prefix (with optional space) + 1-4 digit number
_CV_PATTERN = re.compile(r"^(?:CV\s*)?(\d{1,4})$", re.IGNORECASE)

# CV part, "=", decimal or 0x hex byte
_ASSIGNMENT_PATTERN = re.compile(
    r"^([^=]+)=\s*(0x[0-9a-f]+|\d+)$",
    re.IGNORECASE,
)


def normalize_cv(raw: str) -> int:
    """
    Return the CV number for strings like "8", "cv8" or "CV 8".

    Raises InvalidAssignmentError for malformed or out-of-range CVs.
    """
    s = raw.strip()
    if not s:
        raise InvalidAssignmentError(raw, "CV cannot be empty")

    m = _CV_PATTERN.match(s)
    if not m:
        raise InvalidAssignmentError(raw, f"Malformed CV: {raw!r}")

    cv = int(m.group(1))
    if not 1 <= cv <= MAX_CV:
        raise InvalidAssignmentError(raw, f"CV number out of range 1–{MAX_CV}: {cv}")
    return cv


def parse_assignment(raw: str) -> tuple[int, int]:
    """
    Parse "CV253=0x02" or "253=2" into (cv, value).

    The value must fit in one byte. Raises InvalidAssignmentError otherwise.
    """
    m = _ASSIGNMENT_PATTERN.match(raw.strip())
    if not m:
        raise InvalidAssignmentError(raw, f"Expected CV=VALUE, got {raw!r}")

    try:
        cv = normalize_cv(m.group(1))
    except InvalidAssignmentError as e:
        raise InvalidAssignmentError(raw, str(e)) from None
    value_str = m.group(2)
    value = int(value_str, 16) if value_str.lower().startswith("0x") else int(value_str)
    if not 0 <= value <= 255:
        raise InvalidAssignmentError(raw, f"CV {cv} value out of range 0–255: {value}")
    return cv, value
