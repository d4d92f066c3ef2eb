"""
Input validation for free text and times entered by clients and companions.
"""

import re
from datetime import datetime, time
from typing import Optional

from utils.exceptions import ValidationError

# Control characters other than tab and newline
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")


def clean_text(text: Optional[str]) -> str:
    """Normalize line endings, drop control characters and trim."""
    if not text:
        return ""
    text = str(text).replace("\r\n", "\n").replace("\r", "\n")
    return _CONTROL_CHARS.sub("", text).strip()


def required_text(text: Optional[str], label: str, max_length: int) -> str:
    """
    Clean a mandatory text field.

    Raises:
        ValidationError: If nothing is left after cleaning, or it is too long
    """
    cleaned = clean_text(text)
    if not cleaned:
        raise ValidationError(f"{label} is required")
    if len(cleaned) > max_length:
        raise ValidationError(f"{label} exceeds {max_length} characters")
    return cleaned


def optional_text(
    text: Optional[str], label: str, max_length: Optional[int] = None
) -> Optional[str]:
    """Like required_text, but blank input becomes None."""
    cleaned = clean_text(text)
    if not cleaned:
        return None
    if max_length is not None and len(cleaned) > max_length:
        raise ValidationError(f"{label} exceeds {max_length} characters")
    return cleaned


def parse_start_time(value: str) -> time:
    """
    Parse a booking start time.

    Accepts 24-hour ``HH:MM`` / ``HH:MM:SS`` and the 12-hour ``HH:MM AM`` form
    offered by the booking screen.

    Raises:
        ValueError: If the string matches neither form
    """
    cleaned = value.strip().upper()
    for fmt in ("%H:%M:%S", "%H:%M", "%I:%M %p", "%I:%M%p"):
        try:
            return datetime.strptime(cleaned, fmt).time()
        except ValueError:
            continue
    raise ValueError(f"Invalid start time: {value}")
