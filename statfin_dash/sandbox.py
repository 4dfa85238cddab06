"""
statfin_dash/sandbox.py

Ad-hoc ("sandbox") queries against any PxWeb table:

  metadata -> query body -> JSON-stat2 -> StatTable -> flat rows

Each call works on its own freshly fetched data; nothing is kept between
queries.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Sequence, Union

import pandas as pd

from statfin_dash.config import DEFAULT_PERIOD_COUNT
from statfin_dash.flatten import column_categories, flatten_table, metric_keys, rows_to_frame
from statfin_dash.jsonstat import Category, MalformedDimension, parse_stat_table
from statfin_dash.metrics import compute_yoy, has_enough_data, measure_category, metric_unit, rate_flags
from statfin_dash.periods import detect_time_unit, find_time_dimension, periods_back_for
from statfin_dash.statfin_api import (
    build_query,
    default_selections,
    find_time_variable,
    get_table_metadata,
    query_table,
)

logger = logging.getLogger(__name__)


@dataclass
class SandboxResult:
    rows: list[dict[str, Any]]
    metric_keys: list[str]
    time_dim_id: str
    time_unit: str
    periods_back: Optional[int]
    title: str = ""
    query: dict[str, Any] = field(default_factory=dict)
    # column key -> {dimension id: Category}
    columns: dict[str, dict[str, Category]] = field(default_factory=dict)

    @property
    def yoy_available(self) -> bool:
        return self.periods_back is not None and has_enough_data(self.rows, self.periods_back)

    def frame(self) -> pd.DataFrame:
        return rows_to_frame(self.rows)

    def rate_flags(self) -> dict[str, bool]:
        return rate_flags(self.columns)

    def unit(self, keys: Optional[Sequence[str]] = None) -> Optional[str]:
        """Shared display unit of the given columns (all by default), None when mixed or unknown."""
        keys = self.metric_keys if keys is None else keys
        units = {metric_unit(self.columns.get(k, {})) for k in keys}
        if len(units) != 1:
            return None
        return units.pop()

    def key_for(self, measure_code: str) -> Optional[str]:
        """First column measuring the given measure code."""
        for key, categories in self.columns.items():
            measure = measure_category(categories)
            if measure is not None and measure.code == measure_code:
                return key
        return None


def result_from_response(
    response: dict[str, Any],
    title: str = "",
    query: Optional[dict[str, Any]] = None,
    missing: Optional[float] = 0.0,
    time_dim_id: Optional[str] = None,
) -> SandboxResult:
    """
    Flatten a JSON-stat2 response and work out its time granularity.

    `time_dim_id` is the time variable the query was built around; the
    dimensions are searched for one when it is not given.
    """
    table = parse_stat_table(response)
    if time_dim_id is None:
        time_dim_id = find_time_dimension(table.dimensions)
    if time_dim_id is None:
        raise MalformedDimension(
            f"Could not identify a time dimension among {table.dimension_order}"
        )

    rows = flatten_table(table, time_dim_id, missing=missing)
    time_unit = detect_time_unit(time_dim_id, table.dimension(time_dim_id).codes)
    return SandboxResult(
        rows=rows,
        metric_keys=metric_keys(rows),
        time_dim_id=time_dim_id,
        time_unit=time_unit,
        periods_back=periods_back_for(time_unit),
        title=title or (table.label or ""),
        query=query or {},
        columns=column_categories(table.dimensions, time_dim_id),
    )


def run_query(
    dataset: str,
    table_id: str,
    selections: Optional[dict[str, list[str]]] = None,
    period_count: int = DEFAULT_PERIOD_COUNT,
    metadata: Optional[dict[str, Any]] = None,
    missing: Optional[float] = 0.0,
) -> SandboxResult:
    """
    Run one sandbox query end to end.

    `metadata` can be passed in when the caller already fetched it (the
    dashboard does, to render the selection widgets). When `selections` is
    None the default selection is used.
    """
    if metadata is None:
        metadata = get_table_metadata(dataset, table_id)
    if selections is None:
        selections = default_selections(metadata)

    query = build_query(metadata, selections, period_count)
    time_var = find_time_variable(metadata)
    logger.info("Querying %s/%s for %d periods", dataset, table_id, period_count)
    response = query_table(dataset, table_id, query)
    return result_from_response(
        response,
        title=metadata.get("title", ""),
        query=query,
        missing=missing,
        time_dim_id=time_var["code"] if time_var else None,
    )


def yoy_view(
    result: SandboxResult,
    is_rate: Union[bool, Mapping[str, bool]],
    prefix: str = "",
) -> list[dict[str, Any]]:
    """YoY rows for a sandbox result, or [] when the granularity or history doesn't allow it."""
    if not result.yoy_available:
        return []
    return compute_yoy(result.rows, result.metric_keys, result.periods_back, is_rate, prefix=prefix)


def display_rows(result: SandboxResult, yoy: bool) -> tuple[list[dict[str, Any]], bool]:
    """
    Rows to show for the current view.

    Returns (rows, yoy_applied). YoY is applied only when asked for and
    available; otherwise the levels come back with yoy_applied False.
    """
    if yoy and result.yoy_available:
        return yoy_view(result, result.rate_flags()), True
    return result.rows, False
