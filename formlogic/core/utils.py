"""
Shared parsing helpers for the formlogic core.
"""

import math
import re
from typing import Any

# Plain decimal or scientific notation, surrounding whitespace allowed
_NUMBER_PATTERN = re.compile(r"^\s*[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?\s*$")


def parse_number(value: Any) -> float | None:
    """Parse a field or compare value as a finite number.

    Only plain numeric text is accepted: no ``inf``/``nan``, no digit
    separators, no hex. Booleans are not numbers.

    Args:
        value: A string or number.

    Returns:
        The parsed float, or None if the value is not numeric.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str) and _NUMBER_PATTERN.match(value):
        number = float(value)
    else:
        return None
    return number if math.isfinite(number) else None

