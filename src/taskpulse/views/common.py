# src/taskpulse/views/common.py

from __future__ import annotations

import math


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Half-up rounding (2.5 -> 3), unlike round()'s banker's rounding."""
    scale = 10**ndigits
    return math.floor(value * scale + 0.5) / scale


def percent(part: int, whole: int) -> int:
    """part/whole as a whole percentage; 0 when whole is 0."""
    if whole <= 0:
        return 0
    return int(round_half_up(part / whole * 100))
