"""Half-up rounding.

Python's ``round`` uses banker's rounding (``round(2.5) == 2``); slot counts,
percentages and published scores here round halves up.
"""

import math


def round_half_up(value: float, ndigits: int = 0) -> float:
    factor = 10 ** ndigits
    return math.floor(value * factor + 0.5) / factor


def round_count(value: float) -> int:
    return int(round_half_up(value))
