"""
Tests for statfin_dash.sandbox and the query CLI (PxWeb calls are mocked).
"""
from __future__ import annotations

import pandas as pd
import pytest

from statfin_dash import query_cli, sandbox
from statfin_dash.config import METRIC_META, OVERVIEW_METRICS, TABLES, TREND_METRICS
from statfin_dash.jsonstat import MalformedDimension
from statfin_dash.metrics import latest_summary
from statfin_dash.sandbox import display_rows, result_from_response, run_query, yoy_view


@pytest.fixture
def yearly_payload(build_payload, build_dimension):
    return build_payload(
        [
            ("Vuosi", build_dimension("Vuosi", ["2021", "2022", "2023"])),
            (
                "Tiedot",
                build_dimension(
                    "Tiedot",
                    ["Tyolliset", "Tyottomyysaste"],
                    {"Tyolliset": "Työlliset", "Tyottomyysaste": "Työttömyysaste"},
                ),
            ),
        ],
        [2500, 7.0, 2550, 6.5, 2525, 7.5],
        label="Työlliset ja työttömyysaste",
    )


@pytest.fixture
def fake_pxweb(monkeypatch, metadata):
    """Patch the API calls used by run_query; returns the recorded queries."""
    state = {"queries": [], "response": None, "metadata_calls": 0}

    def _metadata(dataset, table_id):
        state["metadata_calls"] += 1
        return metadata

    def _query(dataset, table_id, query):
        state["queries"].append(query)
        state["table_id"] = table_id
        return state["response"]

    monkeypatch.setattr(sandbox, "get_table_metadata", _metadata)
    monkeypatch.setattr(sandbox, "query_table", _query)
    return state


class TestResultFromResponse:
    def test_monthly(self, labour_force_payload):
        result = result_from_response(labour_force_payload)

        assert result.time_dim_id == "Kuukausi"
        assert result.time_unit == "monthly"
        assert result.periods_back == 12
        assert result.metric_keys == ["Työlliset", "Työttömyysaste"]
        assert result.title == "Työvoimatutkimuksen tunnuslukuja"
        assert not result.yoy_available

    def test_yearly_yoy(self, yearly_payload):
        result = result_from_response(yearly_payload)

        rows = yoy_view(result, {"Työlliset": False, "Työttömyysaste": True})

        assert result.yoy_available
        assert [r["period"] for r in rows] == ["2022", "2023"]
        assert rows[0]["Työlliset"] == pytest.approx(2.0)
        assert rows[0]["Työttömyysaste"] == pytest.approx(-0.5)
        assert rows[1]["Työttömyysaste"] == pytest.approx(1.0)

    def test_yoy_unavailable_is_empty(self, labour_force_payload):
        result = result_from_response(labour_force_payload)

        assert yoy_view(result, True) == []

    def test_frame(self, yearly_payload):
        df = result_from_response(yearly_payload).frame()

        assert isinstance(df, pd.DataFrame)
        assert df.shape == (3, 2)

    def test_age_label_is_not_time(self, build_payload, build_dimension):
        payload = build_payload(
            [
                ("Ikä", build_dimension("Ikä vuosina", ["15-24", "25-34"])),
                ("Kuukausi", build_dimension("Kuukausi", ["2023M01", "2023M02"])),
            ],
            [1.0, 2.0, 3.0, 4.0],
        )

        result = result_from_response(payload)

        assert result.time_dim_id == "Kuukausi"
        assert result.rows == [
            {"period": "2023M01", "15-24": 1.0, "25-34": 3.0},
            {"period": "2023M02", "15-24": 2.0, "25-34": 4.0},
        ]

    def test_given_time_dimension(self, build_payload, build_dimension):
        payload = build_payload(
            [
                ("Vuosi", build_dimension("Vuosi", ["2022", "2023"])),
                ("Kuukausi", build_dimension("Kuukausi", ["2023M01"])),
            ],
            [1.0, 2.0],
        )

        result = result_from_response(payload, time_dim_id="Kuukausi")

        assert result.time_dim_id == "Kuukausi"
        assert result.rows == [{"period": "2023M01", "2022": 1.0, "2023": 2.0}]

    def test_rate_flags_and_units(self, labour_force_payload):
        result = result_from_response(labour_force_payload)

        assert result.rate_flags() == {"Työlliset": False, "Työttömyysaste": True}
        assert result.unit(["Työttömyysaste"]) == "%"
        assert result.unit() is None
        assert result.key_for("Tyolliset") == "Työlliset"
        assert result.key_for("Tyovoima") is None

    def test_display_rows_levels_when_yoy_unavailable(self, labour_force_payload):
        result = result_from_response(labour_force_payload)

        rows, yoy_applied = display_rows(result, True)

        assert rows == result.rows
        assert not yoy_applied

    def test_display_rows_yoy(self, yearly_payload):
        result = result_from_response(yearly_payload)

        rows, yoy_applied = display_rows(result, True)
        levels, off = display_rows(result, False)

        assert yoy_applied
        assert rows[0]["Työlliset"] == pytest.approx(2.0)
        assert rows[0]["Työttömyysaste"] == pytest.approx(-0.5)
        assert levels == result.rows
        assert not off

    def test_requires_time_dimension(self, build_payload, build_dimension):
        payload = build_payload([("Toimiala", build_dimension("Toimiala", ["C"]))], [1])

        with pytest.raises(MalformedDimension):
            result_from_response(payload)


class TestRunQuery:
    def test_uses_default_selections(self, fake_pxweb, labour_force_payload):
        fake_pxweb["response"] = labour_force_payload

        result = run_query("tyti", "statfin_tyti_pxt_135y.px", period_count=12)

        (query,) = fake_pxweb["queries"]
        assert query["query"][0]["selection"] == {"filter": "top", "values": ["3"]}
        assert query["query"][1]["selection"]["values"] == ["SSS", "1", "2"]
        assert result.query == query
        assert len(result.rows) == 3

    def test_flattens_along_queried_time_variable(self, fake_pxweb, build_payload, build_dimension):
        fake_pxweb["response"] = build_payload(
            [
                ("Vuosi", build_dimension("Vuosi", ["2022", "2023"])),
                ("Kuukausi", build_dimension("Kuukausi", ["2023M01"])),
            ],
            [1.0, 2.0],
        )

        result = run_query("tyti", "t.px")

        assert result.time_dim_id == "Kuukausi"
        assert [r["period"] for r in result.rows] == ["2023M01"]

    def test_reuses_given_metadata(self, fake_pxweb, labour_force_payload, metadata):
        fake_pxweb["response"] = labour_force_payload

        run_query("tyti", "t.px", selections={"Sukupuoli": ["2"]}, metadata=metadata)

        assert fake_pxweb["metadata_calls"] == 0
        assert fake_pxweb["queries"][0]["query"][1]["selection"]["values"] == ["2"]


class TestQueryCli:
    def test_parse_selection(self):
        assert query_cli.parse_selection(None) is None
        assert query_cli.parse_selection(["Tiedot=Tyolliset, Tyottomat", "Sukupuoli=SSS"]) == {
            "Tiedot": ["Tyolliset", "Tyottomat"],
            "Sukupuoli": ["SSS"],
        }

    def test_parse_selection_rejects_bad_item(self):
        with pytest.raises(ValueError):
            query_cli.parse_selection(["Tiedot"])

    def test_prints_table(self, fake_pxweb, labour_force_payload, capsys):
        fake_pxweb["response"] = labour_force_payload

        assert query_cli.main(["tyti", "t.px"]) == 0

        out = capsys.readouterr().out
        assert "Työttömyysaste" in out
        assert "2023M03" in out

    def test_writes_yoy_csv(self, fake_pxweb, yearly_payload, tmp_path):
        fake_pxweb["response"] = yearly_payload
        out = tmp_path / "out" / "yoy.csv"

        assert query_cli.main(["tyti", "t.px", "--yoy", "--output", str(out)]) == 0

        df = pd.read_csv(out, index_col="period", dtype={"period": str})
        assert list(df.index) == ["2022", "2023"]
        assert df.loc["2023", "Työttömyysaste"] == pytest.approx(1.0)

    def test_yoy_falls_back_to_levels(self, fake_pxweb, labour_force_payload, capsys):
        fake_pxweb["response"] = labour_force_payload

        assert query_cli.main(["tyti", "t.px", "--yoy"]) == 0

        assert "[warn]" in capsys.readouterr().out

    def test_malformed_data_exit_code(self, fake_pxweb, labour_force_payload, capsys):
        labour_force_payload["value"] = [1]
        fake_pxweb["response"] = labour_force_payload

        assert query_cli.main(["tyti", "t.px"]) == 2
        assert "Unexpected data format" in capsys.readouterr().out

    def test_table_alias(self, fake_pxweb, labour_force_payload, capsys):
        fake_pxweb["response"] = labour_force_payload

        assert query_cli.main(["tyti", "LABOUR_FORCE_MONTHLY"]) == 0
        assert fake_pxweb["table_id"] == "statfin_tyti_pxt_135y.px"


class TestOverviewCards:
    def test_headline_summary(self, labour_force_payload):
        result = result_from_response(labour_force_payload)
        key = result.key_for("Tyottomyysaste")

        summary = latest_summary(result.rows, key, result.periods_back, result.rate_flags()[key])

        assert summary["latest"] == pytest.approx(7.9)
        assert summary["period"] == "2023M03"
        assert summary["change"] == pytest.approx(0.5)
        assert summary["change_yoy"] is None

    def test_overview_metrics_are_described(self):
        codes = list(OVERVIEW_METRICS) + list(TREND_METRICS) + list(TREND_METRICS.values())

        assert all(code in METRIC_META for code in codes)
        assert {"LABOUR_FORCE_MONTHLY", "KEY_INDICATORS_TREND"} <= set(TABLES)
