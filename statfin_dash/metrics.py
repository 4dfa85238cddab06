"""
statfin_dash/metrics.py

Derived series computed from flattened rows.

Year-over-year change compares each period with the one `periods_back`
earlier (12 for monthly, 4 for quarterly, 1 for yearly data):
- rates (already percentages) are compared in percentage points
- counts/levels are compared as relative % change
"""

from __future__ import annotations

import logging
import math
from typing import Any, Mapping, Optional, Sequence, Union

from statfin_dash.config import MEASURE_DIMENSION, METRIC_META, RATE_HINTS
from statfin_dash.flatten import PERIOD_KEY
from statfin_dash.jsonstat import Category

logger = logging.getLogger(__name__)

RateFlag = Union[bool, Mapping[str, bool]]


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return float(value)


def _change(current: Any, reference: Any, is_rate: bool) -> float:
    cur = _number(current)
    ref = _number(reference)
    if cur is None or ref is None:
        return 0.0
    if is_rate:
        return cur - ref
    if ref == 0:
        return 0.0
    return (cur - ref) / ref * 100


def _rate_for(is_rate: RateFlag, key: str) -> bool:
    if isinstance(is_rate, Mapping):
        return bool(is_rate.get(key, False))
    return bool(is_rate)


def has_enough_data(rows: Sequence[Any], periods_back: int) -> bool:
    return len(rows) > periods_back


def is_rate_metric(code: str, label: str = "") -> bool:
    """
    Whether one measure category is a rate.

    `code`/`label` are the measure ("Tiedot") category's own code and label,
    not a composed column name: METRIC_META decides for known codes, the
    label hints for the rest.
    """
    meta = METRIC_META.get(code)
    if meta is not None:
        return meta["type"] == "rate"
    text = f"{code} {label}".lower()
    return any(hint in text for hint in RATE_HINTS)


def measure_category(categories: Mapping[str, Category]) -> Optional[Category]:
    """
    The category that names what a column measures.

    That is the MEASURE_DIMENSION category when the table has one, otherwise
    any category listed in METRIC_META.
    """
    category = categories.get(MEASURE_DIMENSION)
    if category is not None:
        return category
    return next((c for c in categories.values() if c.code in METRIC_META), None)


def rate_flags(columns: Mapping[str, Mapping[str, Category]]) -> dict[str, bool]:
    """
    Rate/level flag per column for compute_yoy.

    `columns` is flatten.column_categories() output. Columns without a
    measure category are treated as levels.
    """
    flags = {}
    for key, categories in columns.items():
        measure = measure_category(categories)
        flags[key] = is_rate_metric(measure.code, measure.label) if measure else False
    return flags


def metric_unit(categories: Mapping[str, Category]) -> Optional[str]:
    """Display unit of a column from METRIC_META, or None when unknown."""
    measure = measure_category(categories)
    meta = METRIC_META.get(measure.code) if measure else None
    return meta["unit"] if meta else None


def metric_name(code: str) -> str:
    """Display name of a measure code, falling back to the code itself."""
    meta = METRIC_META.get(code)
    return meta["name"] if meta else code


def compute_yoy(
    rows: Sequence[dict[str, Any]],
    metric_keys: Sequence[str],
    periods_back: int,
    is_rate: RateFlag,
    prefix: str = "",
) -> list[dict[str, Any]]:
    """
    Year-over-year (or N-periods-back) change for each metric key.

    Parameters
    ----------
    rows:
        Flattened rows in chronological order.
    metric_keys:
        Columns to transform.
    periods_back:
        Lag in periods. Must be >= 1.
    is_rate:
        True/False for all keys, or a mapping key -> bool.
    prefix:
        Prepended to every output column name ("" keeps the input names).

    Returns
    -------
    One row per period from index `periods_back` onwards, labelled with the
    later period. Empty when there is not enough history.

    Missing or non-numeric cells give 0, and so does a zero reference value
    for a relative change.
    """
    if periods_back < 1:
        raise ValueError(f"periods_back must be >= 1, got {periods_back}")
    if not has_enough_data(rows, periods_back):
        logger.info("YoY unavailable: %d rows for a lag of %d", len(rows), periods_back)
        return []

    out: list[dict[str, Any]] = []
    for i, current in enumerate(rows[periods_back:]):
        reference = rows[i]
        result: dict[str, Any] = {PERIOD_KEY: current[PERIOD_KEY]}
        for key in metric_keys:
            result[f"{prefix}{key}"] = _change(
                current.get(key), reference.get(key), _rate_for(is_rate, key)
            )
        out.append(result)
    return out


def latest_summary(
    rows: Sequence[dict[str, Any]],
    key: str,
    periods_back: int,
    is_rate: bool,
) -> dict[str, Any]:
    """
    Latest value of one metric plus its short- and long-run change.

    Returns:
      latest:        latest value (None when there are no rows)
      period:        period of the latest value
      change:        change vs. the previous period
      change_yoy:    change vs. `periods_back` periods earlier

    Changes use the same rate/level rules as compute_yoy and are None when
    the history is too short.
    """
    if not rows:
        return {"latest": None, "period": None, "change": None, "change_yoy": None}

    last = rows[-1]
    change = _change(last.get(key), rows[-2].get(key), is_rate) if len(rows) >= 2 else None
    change_yoy = (
        _change(last.get(key), rows[-1 - periods_back].get(key), is_rate)
        if periods_back >= 1 and has_enough_data(rows, periods_back)
        else None
    )
    return {
        "latest": _number(last.get(key)),
        "period": last[PERIOD_KEY],
        "change": change,
        "change_yoy": change_yoy,
    }
