"""
statfin_dash/scaling.py

"Nice" y-axis bounds for charts.

Bounds are rounded to 1, 2 or 5 times a power of ten so axis ticks land on
readable numbers. When change data crosses zero the axis is made symmetric
so the zero line sits in the middle of the chart.
"""

from __future__ import annotations

import math
from typing import Any, Iterable, Optional, Sequence

import numpy as np

ZERO_BASED = "zero-based"
SYMMETRIC_OR_PADDED = "symmetric-or-padded"
RELATIVE = "relative"
MODES = (ZERO_BASED, SYMMETRIC_OR_PADDED, RELATIVE)


def _scale(value: float, exponent: int) -> float:
    # Multiply/divide by an exact integer power of ten to avoid 0.1-style drift.
    if exponent >= 0:
        return value * 10**exponent
    return value / 10**-exponent


def get_nice_number(value: float, round_up: bool) -> float:
    """
    Round a magnitude to 1, 2, 5 or 10 times 10**floor(log10(|value|)).

    round_up=True picks the smallest nice number >= value; otherwise the
    nearest one. The sign of `value` is kept.
    """
    if value == 0:
        return 0.0
    magnitude = abs(value)
    exponent = math.floor(math.log10(magnitude))
    fraction = _scale(magnitude, -exponent)

    if round_up:
        if fraction <= 1:
            nice = 1
        elif fraction <= 2:
            nice = 2
        elif fraction <= 5:
            nice = 5
        else:
            nice = 10
    else:
        if fraction < 1.5:
            nice = 1
        elif fraction < 3:
            nice = 2
        elif fraction < 7:
            nice = 5
        else:
            nice = 10

    return math.copysign(_scale(float(nice), exponent), value)


def collect_values(rows: Sequence[dict[str, Any]], keys: Iterable[str]) -> list[float]:
    """Every numeric cell of the given columns."""
    keys = list(keys)
    out: list[float] = []
    for row in rows:
        for key in keys:
            value = row.get(key)
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                out.append(float(value))
    return out


def nice_bounds(values: Iterable[Any], mode: str = ZERO_BASED) -> Optional[tuple[float, float]]:
    """
    Axis range for a set of values.

    Modes:
    - "zero-based": [0, nice(max * 1.1)]; mirrored below zero when all data is negative
    - "symmetric-or-padded": [-M, M] when data crosses zero, otherwise 10% padding
      with the zero-side bound clamped to 0
    - "relative": 15% padding rounded to tens, never below zero

    Returns None ("auto") when there is nothing finite to scale or the range is empty.
    """
    if mode not in MODES:
        raise ValueError(f"mode must be one of {list(MODES)}, got {mode!r}")

    arr = np.asarray(
        [v for v in values if isinstance(v, (int, float)) and not isinstance(v, bool)],
        dtype=float,
    )
    arr = arr[np.isfinite(arr)]
    if arr.size == 0:
        return None

    lo = float(arr.min())
    hi = float(arr.max())

    if mode == ZERO_BASED:
        if hi <= 0:
            bounds = (-get_nice_number(abs(lo) * 1.1, True), 0.0)
        else:
            bounds = (0.0, get_nice_number(hi * 1.1, True))

    elif mode == SYMMETRIC_OR_PADDED:
        if lo < 0 < hi:
            m = get_nice_number(max(abs(lo), abs(hi)) * 1.1, True)
            bounds = (-m, m)
        else:
            padding = (hi - lo) * 0.1
            lower = 0.0 if lo >= 0 else -get_nice_number(abs(lo - padding), True)
            upper = 0.0 if hi <= 0 else get_nice_number(hi + padding, True)
            bounds = (lower, upper)

    else:
        padding = (hi - lo) * 0.15
        lower = max(0.0, math.floor((lo - padding) / 10) * 10)
        upper = float(math.ceil((hi + padding) / 10) * 10)
        bounds = (float(lower), upper)

    if bounds[0] >= bounds[1]:
        return None
    return bounds
