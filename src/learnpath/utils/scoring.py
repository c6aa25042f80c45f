"""Score arithmetic helpers."""

import math


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives.

    Python's round() uses banker's rounding (round(12.5) == 12); scores and
    percentages here follow the usual half-up convention instead.
    """
    return int(math.floor(value + 0.5))


def percentage(part: int, total: int) -> int:
    """Integer percentage of part over total, 0 when total is 0."""
    if total <= 0:
        return 0
    return round_half_up(100 * part / total)
