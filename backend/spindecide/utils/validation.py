"""
Input validation helpers.

All functions are pure and never raise: anything that is not a string is
simply invalid. Name and option text checks return the trimmed value so the
caller stores the trimmed form, never the raw input.
"""
import re
from enum import Enum
from typing import Any, NamedTuple


ROOM_CODE_RE = re.compile(r"^[A-HJ-NP-Z2-9]{6}$")

MAX_NAME_LENGTH = 50
MAX_OPTION_TEXT_LENGTH = 100


class Category(str, Enum):
    EAT = "eat"
    WATCH = "watch"
    DO = "do"


CATEGORY_VALUES = tuple(c.value for c in Category)


class ValidationResult(NamedTuple):
    is_valid: bool
    trimmed: str


def validate_room_code(code: Any) -> bool:
    return isinstance(code, str) and ROOM_CODE_RE.fullmatch(code) is not None


def _validate_trimmed_length(value: Any, max_length: int) -> ValidationResult:
    if not isinstance(value, str):
        return ValidationResult(False, "")
    trimmed = value.strip()
    return ValidationResult(1 <= len(trimmed) <= max_length, trimmed)


def validate_name(name: Any) -> ValidationResult:
    """Participant display name: 1-50 characters after trimming."""
    return _validate_trimmed_length(name, MAX_NAME_LENGTH)


def validate_option_text(text: Any) -> ValidationResult:
    """Option text: 1-100 characters after trimming."""
    return _validate_trimmed_length(text, MAX_OPTION_TEXT_LENGTH)


def validate_category(category: Any) -> bool:
    return isinstance(category, str) and category in CATEGORY_VALUES
