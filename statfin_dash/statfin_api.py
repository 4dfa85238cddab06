"""
statfin_dash/statfin_api.py

Small wrapper around the Statistics Finland PxWeb API.

Why this file exists:
- Keeps API request/response handling isolated from the rest of the project
- Makes it easy to try queries from a notebook or from the command line
- Builds PxWeb query bodies the same way for the dashboard and the CLI

Main outputs:
- list_tables(...): tables available in a dataset folder
- get_table_metadata(...): variables and their values for one table
- query_table(...): JSON-stat2 response for a PxWeb query
- build_query(...): PxWeb query body from sandbox selections

Notes about PxWeb:
- GET on a table returns its metadata; POST on the same URL runs a query.
- GET on a folder returns a list of entries; type "t" is a table, "l" a sub-folder.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Optional

import requests

from statfin_dash.config import MAX_SELECTED_VALUES, STATFIN_BASE_URL
from statfin_dash.periods import is_time_variable

logger = logging.getLogger(__name__)

RETRY_STATUSES = (429, 500, 502, 503, 504)


class StatFinError(RuntimeError):
    """Raised when the PxWeb API returns an error status or unusable payload."""
    pass


def _request_json(
    method: str,
    url: str,
    *,
    payload: Optional[dict[str, Any]] = None,
    timeout_s: int = 30,
    max_retries: int = 3,
) -> Any:
    """
    Send one request with retries for transient errors and return the decoded JSON.

    Client errors (4xx other than 429) are not retried: they mean the query
    itself is wrong, so we fail straight away with the server's message.
    """
    headers = {"Content-Type": "application/json", "Accept": "application/json"}
    last_err: Optional[Exception] = None

    for attempt in range(1, max_retries + 1):
        try:
            resp = requests.request(method, url, json=payload, headers=headers, timeout=timeout_s)
        except requests.RequestException as e:
            last_err = e
            logger.warning("PxWeb %s %s failed (attempt %d/%d): %s", method, url, attempt, max_retries, e)
            time.sleep(1 * attempt)
            continue

        if resp.status_code in RETRY_STATUSES:
            last_err = StatFinError(f"HTTP {resp.status_code} from {url}")
            logger.warning("PxWeb %s %s returned %d (attempt %d/%d)", method, url, resp.status_code, attempt, max_retries)
            time.sleep(2 * attempt)
            continue

        if not resp.ok:
            raise StatFinError(f"PxWeb request failed (HTTP {resp.status_code}): {resp.text[:200]}")

        try:
            return resp.json()
        except ValueError as e:
            raise StatFinError(f"PxWeb returned a non-JSON response from {url}") from e

    raise StatFinError(f"PxWeb request failed after {max_retries} attempts: {last_err}")


def _url(*parts: str) -> str:
    return "/".join([STATFIN_BASE_URL, *(p.strip("/") for p in parts)])


def list_tables(dataset: str, *, tables_only: bool = True) -> list[dict[str, Any]]:
    """Entries of a dataset folder, e.g. list_tables("tyti")."""
    data = _request_json("GET", _url(dataset))
    if not isinstance(data, list):
        raise StatFinError(f"Expected a table list for dataset '{dataset}'")
    if tables_only:
        return [item for item in data if item.get("type") == "t"]
    return data


def get_table_metadata(dataset: str, table_id: str) -> dict[str, Any]:
    """
    Table metadata:

      {"title": "...",
       "variables": [{"code": "Kuukausi", "text": "Kuukausi",
                      "values": ["2023M01", ...], "valueTexts": ["2023M01", ...]}, ...]}
    """
    data = _request_json("GET", _url(dataset, table_id))
    if not isinstance(data, dict) or "variables" not in data:
        raise StatFinError(f"Table '{table_id}' metadata has no variables")
    return data


def query_table(
    dataset: str,
    table_id: str,
    query: dict[str, Any],
    *,
    timeout_s: int = 60,
) -> dict[str, Any]:
    """POST a PxWeb query and return the JSON-stat2 response."""
    data = _request_json("POST", _url(dataset, table_id), payload=query, timeout_s=timeout_s)
    if not isinstance(data, dict):
        raise StatFinError(f"Table '{table_id}' query returned an unexpected payload")
    return data


def find_time_variable(metadata: dict[str, Any]) -> Optional[dict[str, Any]]:
    for var in metadata.get("variables", []):
        if is_time_variable(var.get("code", "")):
            return var
    return None


def _time_code(metadata: dict[str, Any]) -> Optional[str]:
    var = find_time_variable(metadata)
    return var["code"] if var else None


def default_selections(metadata: dict[str, Any]) -> dict[str, list[str]]:
    """
    Initial selection for every non-time variable:
    the first 3 values of short lists (<= 5 values), the first 2 otherwise.
    """
    time_code = _time_code(metadata)
    selections: dict[str, list[str]] = {}
    for var in metadata.get("variables", []):
        code = var.get("code", "")
        if code == time_code:
            continue
        values = list(var.get("values") or [])
        selections[code] = values[:3] if len(values) <= 5 else values[:2]
    return selections


def toggle_selection(
    selections: dict[str, list[str]],
    code: str,
    value: str,
    max_selected: int = MAX_SELECTED_VALUES,
) -> dict[str, list[str]]:
    """
    Add or remove one value, returning a new selections dict.

    A variable never ends up with zero values, and never with more than
    `max_selected`.
    """
    current = list(selections.get(code, []))
    if value in current:
        if len(current) <= 1:
            return selections
        current.remove(value)
    else:
        if len(current) >= max_selected:
            return selections
        current.append(value)
    return {**selections, code: current}


def build_query(
    metadata: dict[str, Any],
    selections: dict[str, list[str]],
    period_count: int,
) -> dict[str, Any]:
    """
    PxWeb query body for a sandbox request.

    The time variable asks for the latest `period_count` periods ("top" filter);
    every other variable asks for its selected values, or its first value when
    nothing is selected.
    """
    time_code = _time_code(metadata)
    query = []
    for var in metadata.get("variables", []):
        code = var.get("code", "")
        values = list(var.get("values") or [])
        if code == time_code:
            count = min(period_count, len(values)) if values else period_count
            query.append({"code": code, "selection": {"filter": "top", "values": [str(count)]}})
        else:
            selected = selections.get(code) or values[:1]
            query.append({"code": code, "selection": {"filter": "item", "values": list(selected)}})
    return {"query": query, "response": {"format": "json-stat2"}}
