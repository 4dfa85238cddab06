"""
Pytest fixtures: small JSON-stat2 payloads shaped like PxWeb responses.
"""
from __future__ import annotations

import pytest


def make_dimension(label, codes, labels=None, index=None):
    """Build a JSON-stat2 dimension block; `index` overrides the code -> position map."""
    labels = labels or {c: c for c in codes}
    return {
        "label": label,
        "category": {
            "index": index if index is not None else {c: i for i, c in enumerate(codes)},
            "label": labels,
        },
    }


def make_payload(dims, values, label="Test table"):
    """`dims` is a list of (id, dimension block) in declared order."""
    return {
        "version": "2.0",
        "class": "dataset",
        "label": label,
        "updated": "2024-01-01T08:00:00Z",
        "id": [d for d, _ in dims],
        "size": [len(block["category"]["index"]) for _, block in dims],
        "dimension": dict(dims),
        "value": values,
    }


@pytest.fixture
def monthly_gender_payload():
    """time x gender, 2 x 2."""
    return make_payload(
        [
            ("Kuukausi", make_dimension("Kuukausi", ["2023M01", "2023M02"])),
            ("Sukupuoli", make_dimension("Sukupuoli", ["M", "F"])),
        ],
        [10, 20, 30, 40],
    )


@pytest.fixture
def labour_force_payload():
    """time x gender x indicator, 3 x 1 x 2 (one selected gender)."""
    return make_payload(
        [
            ("Kuukausi", make_dimension("Kuukausi", ["2023M01", "2023M02", "2023M03"])),
            ("Sukupuoli", make_dimension("Sukupuoli", ["SSS"], {"SSS": "Yhteensä"})),
            (
                "Tiedot",
                make_dimension(
                    "Tiedot",
                    ["Tyolliset", "Tyottomyysaste"],
                    {"Tyolliset": "Työlliset", "Tyottomyysaste": "Työttömyysaste"},
                ),
            ),
        ],
        [2600, 7.1, 2610, 7.4, 2590, 7.9],
        label="Työvoimatutkimuksen tunnuslukuja",
    )


@pytest.fixture
def metadata():
    """Table metadata as returned by GET on a PxWeb table."""
    return {
        "title": "Työvoimatutkimuksen tunnuslukuja",
        "variables": [
            {
                "code": "Kuukausi",
                "text": "Kuukausi",
                "values": ["2023M01", "2023M02", "2023M03"],
                "valueTexts": ["2023M01", "2023M02", "2023M03"],
            },
            {
                "code": "Sukupuoli",
                "text": "Sukupuoli",
                "values": ["SSS", "1", "2"],
                "valueTexts": ["Yhteensä", "Miehet", "Naiset"],
            },
            {
                "code": "Ikäluokka",
                "text": "Ikäluokka",
                "values": ["15-74", "15-64", "15-24", "25-34", "35-44", "45-54", "55-64"],
                "valueTexts": ["15-74", "15-64", "15-24", "25-34", "35-44", "45-54", "55-64"],
            },
        ],
    }


@pytest.fixture
def build_dimension():
    return make_dimension


@pytest.fixture
def build_payload():
    return make_payload
