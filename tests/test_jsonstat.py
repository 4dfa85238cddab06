"""
Tests for statfin_dash.jsonstat.
"""
from __future__ import annotations

import pytest

from statfin_dash.jsonstat import (
    JsonStatError,
    MalformedDimension,
    ValueArrayMismatch,
    parse_stat_table,
    resolve,
)


class TestResolve:
    """Tests for resolve()."""

    def test_categories_sorted_by_declared_index(self, build_dimension):
        """Index values decide the order, not the mapping's iteration order."""
        raw = {
            "Tiedot": build_dimension(
                "Tiedot",
                ["C", "A", "B"],
                {"A": "Alpha", "B": "Beta", "C": "Gamma"},
                index={"C": 2, "A": 0, "B": 1},
            )
        }

        (dim,) = resolve(raw, ["Tiedot"])

        assert dim.codes == ["A", "B", "C"]
        assert [c.label for c in dim.categories] == ["Alpha", "Beta", "Gamma"]
        assert [c.index for c in dim.categories] == [0, 1, 2]

    def test_follows_declared_order(self, build_dimension):
        raw = {
            "Tiedot": build_dimension("Tiedot", ["x"]),
            "Kuukausi": build_dimension("Kuukausi", ["2023M01", "2023M02"]),
        }

        dims = resolve(raw, ["Kuukausi", "Tiedot"])

        assert [d.id for d in dims] == ["Kuukausi", "Tiedot"]
        assert [d.size for d in dims] == [2, 1]

    def test_label_falls_back_to_code(self):
        raw = {"Alue": {"label": "Alue", "category": {"index": {"MK01": 0, "MK02": 1}, "label": {"MK01": "Uusimaa"}}}}

        (dim,) = resolve(raw, ["Alue"])

        assert dim.labels == {"MK01": "Uusimaa", "MK02": "MK02"}
        assert dim.label_for("MK02") == "MK02"
        assert dim.label_for("unknown") == "unknown"

    def test_list_index_form(self):
        raw = {"Vuosi": {"label": "Vuosi", "category": {"index": ["2021", "2022"]}}}

        (dim,) = resolve(raw, ["Vuosi"])

        assert dim.codes == ["2021", "2022"]

    def test_missing_index_uses_label_order(self):
        raw = {"Sukupuoli": {"label": "Sukupuoli", "category": {"label": {"SSS": "Yhteensä"}}}}

        (dim,) = resolve(raw, ["Sukupuoli"])

        assert dim.codes == ["SSS"]
        assert dim.categories[0].label == "Yhteensä"

    def test_dimension_label_defaults_to_id(self):
        raw = {"Alue": {"category": {"index": {"MK01": 0}}}}

        (dim,) = resolve(raw, ["Alue"])

        assert dim.label == "Alue"

    def test_unknown_declared_id(self, build_dimension):
        with pytest.raises(MalformedDimension, match="Ikäluokka"):
            resolve({"Kuukausi": build_dimension("Kuukausi", ["2023M01"])}, ["Kuukausi", "Ikäluokka"])

    @pytest.mark.parametrize(
        "index",
        [
            {"A": 0, "B": 2},        # gap
            {"A": 1, "B": 2},        # does not start at zero
            {"A": 0, "B": 0},        # duplicate position
            {"A": 0, "B": "1"},      # not an integer
        ],
    )
    def test_non_contiguous_index(self, index):
        raw = {"D": {"label": "D", "category": {"index": index}}}

        with pytest.raises(MalformedDimension):
            resolve(raw, ["D"])

    def test_size_mismatch(self, build_dimension):
        raw = {"D": build_dimension("D", ["a", "b"])}

        with pytest.raises(MalformedDimension, match="size 3"):
            resolve(raw, ["D"], sizes=[3])

    def test_missing_category_block(self):
        with pytest.raises(MalformedDimension):
            resolve({"D": {"label": "D"}}, ["D"])

    def test_errors_are_value_errors(self):
        assert issubclass(MalformedDimension, JsonStatError)
        assert issubclass(ValueArrayMismatch, ValueError)


class TestParseStatTable:
    """Tests for parse_stat_table()."""

    def test_parses_dense_payload(self, monthly_gender_payload):
        table = parse_stat_table(monthly_gender_payload)

        assert table.dimension_order == ["Kuukausi", "Sukupuoli"]
        assert table.sizes == [2, 2]
        assert table.values == (10.0, 20.0, 30.0, 40.0)
        assert table.label == "Test table"
        assert table.dimension("Sukupuoli").codes == ["M", "F"]

    def test_null_values_become_none(self, build_payload, build_dimension):
        payload = build_payload([("Vuosi", build_dimension("Vuosi", ["2021", "2022"]))], [None, 3])

        table = parse_stat_table(payload)

        assert table.values == (None, 3.0)

    def test_sparse_values_are_densified(self, build_payload, build_dimension):
        payload = build_payload(
            [("Vuosi", build_dimension("Vuosi", ["2020", "2021", "2022"]))],
            {"0": 1.5, "2": 4},
        )

        table = parse_stat_table(payload)

        assert table.values == (1.5, None, 4.0)

    def test_sparse_offset_outside_cube(self, build_payload, build_dimension):
        payload = build_payload([("Vuosi", build_dimension("Vuosi", ["2020"]))], {"3": 1})

        with pytest.raises(ValueArrayMismatch):
            parse_stat_table(payload)

    def test_value_length_mismatch(self, monthly_gender_payload):
        monthly_gender_payload["value"] = [1, 2, 3]

        with pytest.raises(ValueArrayMismatch, match="Expected 4 values"):
            parse_stat_table(monthly_gender_payload)

    def test_accepts_dataset_wrapper(self, monthly_gender_payload):
        table = parse_stat_table({"dataset": monthly_gender_payload})

        assert table.sizes == [2, 2]

    def test_rejects_payload_without_dimensions(self):
        with pytest.raises(MalformedDimension):
            parse_stat_table({"class": "dataset", "value": []})

    def test_unknown_dimension_lookup(self, monthly_gender_payload):
        table = parse_stat_table(monthly_gender_payload)

        with pytest.raises(MalformedDimension):
            table.dimension("Alue")
