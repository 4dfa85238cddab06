"""
statfin_dash/jsonstat.py

Turns a JSON-stat2 response from PxWeb into ordered, typed dimensions.

Why this file exists:
- JSON-stat2 stores each dimension's categories as a mapping code -> position.
  The flat `value` array is addressed by that position, NOT by the order the
  mapping happens to iterate in, so we always sort by the declared index.
- Structural problems are detected here, once, so the flattening code can do
  plain index arithmetic without guarding every lookup.

Main outputs:
- resolve(...): dimension map + declared order -> list[Dimension]
- parse_stat_table(...): whole JSON-stat2 payload -> StatTable
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Optional


class JsonStatError(ValueError):
    """Base class for structurally invalid JSON-stat input."""
    pass


class MalformedDimension(JsonStatError):
    """A dimension is missing or its category index is not a 0..N-1 permutation."""
    pass


class ValueArrayMismatch(JsonStatError):
    """The value array does not match the product of the dimension sizes."""
    pass


@dataclass(frozen=True)
class Category:
    code: str
    label: str
    index: int


@dataclass(frozen=True)
class Dimension:
    id: str
    label: str
    categories: tuple[Category, ...] = field(default_factory=tuple)

    @property
    def size(self) -> int:
        return len(self.categories)

    @property
    def codes(self) -> list[str]:
        return [c.code for c in self.categories]

    @property
    def labels(self) -> dict[str, str]:
        return {c.code: c.label for c in self.categories}

    def label_for(self, code: str) -> str:
        for c in self.categories:
            if c.code == code:
                return c.label
        return code


@dataclass(frozen=True)
class StatTable:
    dimensions: tuple[Dimension, ...]
    values: tuple[Optional[float], ...]
    label: Optional[str] = None
    updated: Optional[str] = None

    @property
    def dimension_order(self) -> list[str]:
        return [d.id for d in self.dimensions]

    @property
    def sizes(self) -> list[int]:
        return [d.size for d in self.dimensions]

    def dimension(self, dim_id: str) -> Dimension:
        for d in self.dimensions:
            if d.id == dim_id:
                return d
        raise MalformedDimension(f"Unknown dimension '{dim_id}'")


def _category_index(dim_id: str, category: dict[str, Any]) -> dict[str, int]:
    """
    Read `category.index` as a code -> position mapping.

    JSON-stat2 allows three shapes:
      - {"index": {"A": 0, "B": 1}}     (PxWeb always sends this one)
      - {"index": ["A", "B"]}
      - no "index" at all, in which case the label keys give the order
    """
    raw = category.get("index")
    if raw is None:
        labels = category.get("label") or {}
        if not isinstance(labels, dict) or not labels:
            raise MalformedDimension(f"Dimension '{dim_id}' has no categories")
        return {str(code): pos for pos, code in enumerate(labels)}

    if isinstance(raw, list):
        if len(set(raw)) != len(raw):
            raise MalformedDimension(f"Dimension '{dim_id}' repeats a category code")
        return {str(code): pos for pos, code in enumerate(raw)}

    if isinstance(raw, dict):
        index: dict[str, int] = {}
        for code, pos in raw.items():
            if isinstance(pos, bool) or not isinstance(pos, int):
                raise MalformedDimension(
                    f"Dimension '{dim_id}' has a non-integer index for category '{code}'"
                )
            index[str(code)] = pos
        return index

    raise MalformedDimension(f"Dimension '{dim_id}' has an unreadable category index")


def resolve(
    raw_dimensions: dict[str, Any],
    declared_order: list[str],
    sizes: Optional[list[int]] = None,
) -> list[Dimension]:
    """
    Build ordered dimensions from a JSON-stat2 `dimension` map.

    Parameters
    ----------
    raw_dimensions:
        The `dimension` object of the response, keyed by dimension id.
    declared_order:
        The response's `id` array. Its order is the flattening radix order.
    sizes:
        Optional `size` array; when given, each category count must match.

    Returns
    -------
    One Dimension per id in `declared_order`, categories sorted by the
    declared integer index.
    """
    if sizes is not None and len(sizes) != len(declared_order):
        raise MalformedDimension(
            f"'size' has {len(sizes)} entries but 'id' declares {len(declared_order)} dimensions"
        )

    dimensions: list[Dimension] = []
    for pos, dim_id in enumerate(declared_order):
        raw = raw_dimensions.get(dim_id)
        if not isinstance(raw, dict):
            raise MalformedDimension(f"Declared dimension '{dim_id}' is missing from the response")

        category = raw.get("category")
        if not isinstance(category, dict):
            raise MalformedDimension(f"Dimension '{dim_id}' has no category block")

        index = _category_index(dim_id, category)
        if sorted(index.values()) != list(range(len(index))):
            raise MalformedDimension(
                f"Dimension '{dim_id}' index is not a contiguous 0..{len(index) - 1} permutation"
            )
        if sizes is not None and sizes[pos] != len(index):
            raise MalformedDimension(
                f"Dimension '{dim_id}' declares size {sizes[pos]} but has {len(index)} categories"
            )

        labels = category.get("label") or {}
        categories = tuple(
            Category(code=code, label=str(labels.get(code) or code), index=i)
            for code, i in sorted(index.items(), key=lambda item: item[1])
        )
        dimensions.append(
            Dimension(id=dim_id, label=str(raw.get("label") or dim_id), categories=categories)
        )

    return dimensions


def _to_number(value: Any) -> Optional[float]:
    # PxWeb sends null for suppressed cells; anything non-numeric is treated the same.
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).replace(",", "."))
    except ValueError:
        return None


def _dense_values(raw: Any, total: int) -> list[Optional[float]]:
    """Return the value array as a dense list, expanding the sparse mapping form."""
    if isinstance(raw, dict):
        dense: list[Optional[float]] = [None] * total
        for key, value in raw.items():
            try:
                offset = int(key)
            except (TypeError, ValueError):
                raise ValueArrayMismatch(f"Sparse value key '{key}' is not an offset") from None
            if not 0 <= offset < total:
                raise ValueArrayMismatch(
                    f"Sparse value offset {offset} is outside the {total}-cell cube"
                )
            dense[offset] = _to_number(value)
        return dense

    if not isinstance(raw, list):
        raise ValueArrayMismatch("'value' must be a list or a mapping of offsets")
    if len(raw) != total:
        raise ValueArrayMismatch(
            f"Expected {total} values (product of dimension sizes) but got {len(raw)}"
        )
    return [_to_number(v) for v in raw]


def parse_stat_table(payload: dict[str, Any]) -> StatTable:
    """
    Parse a JSON-stat2 dataset as returned by PxWeb (`"response": {"format": "json-stat2"}`).

    Both the bare dataset and a {"dataset": {...}} wrapper are accepted.
    """
    if payload.get("class") != "dataset" and isinstance(payload.get("dataset"), dict):
        payload = payload["dataset"]

    declared_order = payload.get("id")
    raw_dimensions = payload.get("dimension")
    if not isinstance(declared_order, list) or not isinstance(raw_dimensions, dict):
        raise MalformedDimension("Response has no 'id' list or 'dimension' map")

    sizes = payload.get("size")
    dimensions = resolve(raw_dimensions, [str(d) for d in declared_order], sizes)

    total = math.prod(d.size for d in dimensions)
    values = _dense_values(payload.get("value", []), total)

    return StatTable(
        dimensions=tuple(dimensions),
        values=tuple(values),
        label=payload.get("label"),
        updated=payload.get("updated"),
    )
