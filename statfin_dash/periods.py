"""
statfin_dash/periods.py

Helpers for the time axis of a PxWeb table: which variable is time, what
granularity it has, and how far back a year-over-year comparison reaches.
"""

from __future__ import annotations

import re
from typing import Iterable, Optional

from statfin_dash.config import ALL_PERIODS_LABEL, PERIODS_BACK, TIME_PERIOD_OPTIONS, TIME_TOKENS
from statfin_dash.jsonstat import Dimension

MONTH_RE = re.compile(r"^\d{4}M\d{2}$")
QUARTER_RE = re.compile(r"^\d{4}Q\d$")
YEAR_RE = re.compile(r"^\d{4}$")


def is_time_variable(code: str) -> bool:
    code = (code or "").lower()
    return any(token in code for token in TIME_TOKENS)


def _looks_like_period(value: str) -> bool:
    return bool(MONTH_RE.match(value) or QUARTER_RE.match(value) or YEAR_RE.match(value))


def _all_periods(dimension: Dimension) -> bool:
    return bool(dimension.categories) and all(_looks_like_period(code) for code in dimension.codes)


def find_time_dimension(dimensions: Iterable[Dimension]) -> Optional[str]:
    """
    Pick the time dimension of a table.

    Order of preference:
    1) an id that names a time variable, and among several such ids the
       one whose category codes all look like periods
    2) the first dimension whose category codes all look like periods
    3) a label that names a time variable

    Labels come last: "Ikä vuosina" (age in years) mentions "vuosi" but is
    not a time axis.
    """
    dimensions = list(dimensions)
    by_id = [d for d in dimensions if is_time_variable(d.id)]
    for d in by_id:
        if _all_periods(d):
            return d.id
    if by_id:
        return by_id[0].id
    for d in dimensions:
        if _all_periods(d):
            return d.id
    for d in dimensions:
        if is_time_variable(d.label):
            return d.id
    return None


def detect_time_unit(code: str, values: Optional[list[str]] = None) -> str:
    """Return "monthly", "quarterly", "yearly" or "unknown"."""
    code = (code or "").lower()
    if "kuukausi" in code or "month" in code:
        return "monthly"
    if "neljännes" in code or "quarter" in code:
        return "quarterly"
    if ("vuosi" in code or "year" in code) and "neljännes" not in code:
        return "yearly"

    if values:
        sample = values[0]
        if "M" in sample:
            return "monthly"
        if "Q" in sample:
            return "quarterly"
        if YEAR_RE.match(sample):
            return "yearly"
    return "unknown"


def periods_back_for(unit: str) -> Optional[int]:
    """Year-over-year lag for a time unit; None when the granularity is unknown."""
    return PERIODS_BACK.get(unit)


def period_options(unit: str, available: Optional[int] = None) -> list[tuple[int, str]]:
    """
    Time span choices for the sandbox.

    When the number of available periods is known, options longer than that
    are dropped and an "all periods" option is appended.
    """
    base = TIME_PERIOD_OPTIONS.get(unit, TIME_PERIOD_OPTIONS["unknown"])
    if available is None:
        return list(base)
    options = [opt for opt in base if opt[0] <= available]
    options.append((available, ALL_PERIODS_LABEL))
    return options


def format_period(period: str) -> str:
    """Short axis label: 2023M01 -> 01/23, 2023Q2 -> Q2/23, anything else unchanged."""
    if not isinstance(period, str):
        return str(period)
    if "M" in period:
        year, month = period.split("M", 1)
        return f"{month}/{year[2:]}"
    if "Q" in period:
        year, quarter = period.split("Q", 1)
        return f"Q{quarter}/{year[2:]}"
    return period
