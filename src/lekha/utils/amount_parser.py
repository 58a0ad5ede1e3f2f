"""Amount parsing utilities."""

import math
import re
from typing import Optional

# Leading numeric prefix of a cleaned cell
_LEADING_NUMBER = re.compile(r"^-?(\d+\.?\d*|\.\d+)")


def strip_to_numeric(value: str) -> str:
    """Drop every character except digits, '.' and '-'."""
    return re.sub(r"[^0-9.\-]+", "", value)


def parse_loose_number(value: str) -> Optional[float]:
    """Parse a CSV cell as a number after stripping non-numeric characters.

    Only the leading numeric part of the cleaned string is used, so
    "1.2.3" reads as 1.2. Returns None when nothing numeric remains.
    """
    cleaned = strip_to_numeric(value or "")
    match = _LEADING_NUMBER.match(cleaned)
    if match is None:
        return None
    number = float(match.group(0))
    if not math.isfinite(number):
        return None
    return number
