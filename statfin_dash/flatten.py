"""
statfin_dash/flatten.py

Flattens an N-dimensional JSON-stat table into one row per time period.

Output format (the "wide" shape the dashboard charts and exports):

  {"period": "2023M01", "<metric key>": value, ...}

There is one column per combination of the non-time ("other") dimensions.
Column names are built from category labels:

  0 other dimensions : "value"
  1 other dimension  : "<label>"
  2 other dimensions : "<label2> (<label1>)", or just "<label2>" when the
                       first one has a single category
  3+                 : "<label1> / <label2> / ..."

Addressing follows JSON-stat's row-major convention: the first id in the
response varies slowest in the value array, the last one fastest. Strides are
computed from the declared order, so the time dimension does not have to be
the outermost one.
"""

from __future__ import annotations

import itertools
import logging
import math
from collections import Counter
from typing import Any, Optional, Sequence

import pandas as pd

from statfin_dash.jsonstat import Category, Dimension, MalformedDimension, StatTable, ValueArrayMismatch
from statfin_dash.periods import find_time_dimension

logger = logging.getLogger(__name__)

PERIOD_KEY = "period"
VALUE_KEY = "value"


def _strides(sizes: Sequence[int]) -> list[int]:
    """Row-major strides: stride[k] = product of the sizes after k."""
    strides = [1] * len(sizes)
    for k in range(len(sizes) - 2, -1, -1):
        strides[k] = strides[k + 1] * sizes[k + 1]
    return strides


def _combination_key(others: Sequence[Dimension], indices: Sequence[int]) -> str:
    labels = [d.categories[i].label for d, i in zip(others, indices)]
    if len(others) == 1:
        return labels[0]
    if len(others) == 2:
        return f"{labels[1]} ({labels[0]})" if others[0].size > 1 else labels[1]
    return " / ".join(labels)


def _column_keys(others: Sequence[Dimension], combos: list[tuple[int, ...]]) -> list[str]:
    """
    Column name for every combination, in combination order.

    Names that collide (two category combinations with the same label text,
    or a label equal to "period") get the category codes appended.
    """
    if not others:
        return [VALUE_KEY]

    keys = [_combination_key(others, combo) for combo in combos]
    counts = Counter(keys)
    clashing = {k for k, n in counts.items() if n > 1}
    if PERIOD_KEY in counts:
        clashing.add(PERIOD_KEY)
    if not clashing:
        return keys

    logger.warning("Disambiguating %d duplicate column label(s) with category codes", len(clashing))
    # Suffixed names can still match another label verbatim ("A [x]").
    taken = {k for k in keys if k not in clashing}
    resolved = []
    for key, combo in zip(keys, combos):
        if key in clashing:
            codes = "/".join(d.categories[i].code for d, i in zip(others, combo))
            candidate = f"{key} [{codes}]"
            n = 2
            while candidate in taken:
                candidate = f"{key} [{codes}] ({n})"
                n += 1
            key = candidate
            taken.add(key)
        resolved.append(key)
    return resolved


def _other_dimensions(dimensions: Sequence[Dimension], time_dim_id: str) -> list[Dimension]:
    order = [d.id for d in dimensions]
    if time_dim_id not in order:
        raise MalformedDimension(f"Time dimension '{time_dim_id}' is not one of {order}")
    return [d for d in dimensions if d.id != time_dim_id]


def _combinations(others: Sequence[Dimension]) -> list[tuple[int, ...]]:
    # Mixed-radix enumeration: first other dimension is the most significant digit.
    return list(itertools.product(*(range(d.size) for d in others)))


def column_categories(
    dimensions: Sequence[Dimension],
    time_dim_id: str,
) -> dict[str, dict[str, Category]]:
    """
    Which categories every flattened column stands for.

    Returns {column key: {dimension id: Category}} in column order, with the
    same keys flatten() produces for these dimensions.
    """
    others = _other_dimensions(dimensions, time_dim_id)
    combos = _combinations(others)
    keys = _column_keys(others, combos)
    return {
        key: {d.id: d.categories[i] for d, i in zip(others, combo)}
        for key, combo in zip(keys, combos)
    }


def flatten(
    dimensions: Sequence[Dimension],
    time_dim_id: str,
    values: Sequence[Any],
    missing: Optional[float] = 0.0,
) -> list[dict[str, Any]]:
    """
    Reshape a value cube into one row per time period.

    Parameters
    ----------
    dimensions:
        Resolved dimensions in the response's declared order.
    time_dim_id:
        Id of the dimension that holds the periods.
    values:
        Flat, row-major value array (None for missing cells).
    missing:
        Value written for missing cells. 0.0 keeps charts continuous;
        pass None to keep "no data" distinguishable from a true zero.

    Returns
    -------
    list of dicts, one per time category, in the time dimension's order.
    """
    others = _other_dimensions(dimensions, time_dim_id)
    order = [d.id for d in dimensions]

    sizes = [d.size for d in dimensions]
    total = math.prod(sizes)
    if len(values) != total:
        raise ValueArrayMismatch(
            f"Expected {total} values (product of dimension sizes {sizes}) but got {len(values)}"
        )

    strides = _strides(sizes)
    time_pos = order.index(time_dim_id)
    time_dim = dimensions[time_pos]
    other_pos = [k for k in range(len(dimensions)) if k != time_pos]

    combos = _combinations(others)
    keys = _column_keys(others, combos)
    combo_offsets = [
        sum(i * strides[k] for i, k in zip(combo, other_pos)) for combo in combos
    ]

    rows: list[dict[str, Any]] = []
    for t, category in enumerate(time_dim.categories):
        base = t * strides[time_pos]
        row: dict[str, Any] = {PERIOD_KEY: category.code}
        for key, offset in zip(keys, combo_offsets):
            value = values[base + offset]
            row[key] = missing if value is None else value
        rows.append(row)
    return rows


def flatten_table(
    table: StatTable,
    time_dim_id: Optional[str] = None,
    missing: Optional[float] = 0.0,
) -> list[dict[str, Any]]:
    """flatten() over a parsed StatTable, detecting the time dimension when not given."""
    if time_dim_id is None:
        time_dim_id = find_time_dimension(table.dimensions)
        if time_dim_id is None:
            raise MalformedDimension(
                f"Could not identify a time dimension among {table.dimension_order}"
            )
    return flatten(table.dimensions, time_dim_id, table.values, missing=missing)


def metric_keys(rows: Sequence[dict[str, Any]]) -> list[str]:
    """Column names of a flattened row set, without the period column."""
    if not rows:
        return []
    return [k for k in rows[0] if k != PERIOD_KEY]


def rows_to_frame(rows: Sequence[dict[str, Any]]) -> pd.DataFrame:
    """Wide DataFrame indexed by period, columns in row-key order."""
    if not rows:
        return pd.DataFrame(index=pd.Index([], name=PERIOD_KEY))
    df = pd.DataFrame(list(rows), columns=list(rows[0].keys()))
    return df.set_index(PERIOD_KEY)
