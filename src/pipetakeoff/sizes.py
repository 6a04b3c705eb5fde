"""
Nominal size parsing utilities.

Size attributes arrive as free text: "150", "150.0", "700x500x700",
"100 x 50", "1-1/2". These helpers extract whatever numbers they find; an
unparsable string means "no diameter known", never an exception.
"""

from __future__ import annotations

import math
import re

_NUMBER = re.compile(r"\d+(?:\.\d+)?")

# Sizes within this tolerance are treated as equal
SIZE_TOLERANCE = 1e-9


def parse_nds_from_size(size: str | None) -> list[float]:
    """
    Extract the positive numeric tokens of a size string, in order.

    Examples:
        >>> parse_nds_from_size("700x500x700")
        [700.0, 500.0, 700.0]
        >>> parse_nds_from_size("150A")
        [150.0]
        >>> parse_nds_from_size("n/a")
        []
    """
    if not size:
        return []
    values = []
    for token in _NUMBER.findall(str(size)):
        value = float(token)
        if value > 0:
            values.append(value)
    return values


def nps_to_float(nps: str) -> float:
    """
    Convert an NPS string (whole, fractional or mixed) to a float.

    Examples:
        >>> nps_to_float("4")
        4.0
        >>> nps_to_float("1-1/2")
        1.5
        >>> nps_to_float("3/4")
        0.75

    Raises:
        ValueError: If the string is not a recognizable NPS value
    """
    nps = nps.strip().strip('"')

    if re.match(r"^\d+(\.\d+)?$", nps):
        return float(nps)

    match = re.match(r"^(?:(\d+)-)?(\d+)/(\d+)$", nps)
    if match:
        whole = float(match.group(1) or 0)
        denom = float(match.group(3))
        if denom == 0:
            raise ValueError(f"Cannot parse NPS: {nps}")
        return whole + float(match.group(2)) / denom

    raise ValueError(f"Cannot parse NPS: {nps}")


def leading_nd(size: str | None) -> float | None:
    """
    First nominal diameter of a size attribute ("1-1/2" -> 1.5,
    "700x500x700" -> 700.0), or None when nothing is parsable.
    """
    if not size:
        return None
    try:
        return nps_to_float(str(size))
    except ValueError:
        values = parse_nds_from_size(size)
        return values[0] if values else None


def format_number(value: float) -> str:
    """Format a size number without trailing zeros ("10.0" -> "10")."""
    if abs(value - round(value)) < SIZE_TOLERANCE:
        return str(int(round(value)))
    return f"{value:.3f}".rstrip("0").rstrip(".")


def normalize_size(size: str | float | None) -> str:
    """
    Normalize a size attribute for use in identity keys.

    Examples:
        >>> normalize_size("10.0")
        '10'
        >>> normalize_size("100 x 50")
        '100x50'
        >>> normalize_size(None)
        ''
    """
    if size is None:
        return ""
    if isinstance(size, (int, float)):
        return format_number(float(size))
    text = str(size).strip()
    if not text:
        return ""
    try:
        value = float(text)
    except ValueError:
        return text.replace(" ", "")
    if math.isfinite(value):
        return format_number(value)
    return text


def guess_run_branch_nds(size: str | None) -> tuple[float | None, float | None]:
    """
    Estimate (run, branch) nominal diameters of a branching fitting from its
    size attribute.

    Rules:
    - a repeated value is the run, the odd one out is the branch
      ("700x500x700" -> (700, 500))
    - otherwise the run is the largest value and the branch the smallest
    - a single value serves both
    - nothing parsable -> (None, None)
    """
    values = parse_nds_from_size(size)
    if not values:
        return (None, None)
    if len(values) == 1:
        return (values[0], values[0])

    for i, v in enumerate(values):
        if any(abs(v - w) < SIZE_TOLERANCE for w in values[i + 1:]):
            others = [w for w in values if abs(w - v) >= SIZE_TOLERANCE]
            if others:
                return (v, min(others))
            return (v, v)

    return (max(values), min(values))
