"""
app.py

Streamlit dashboard for Statistics Finland labour-market tables.

Tabs:
- "Yleiskatsaus" (overview): headline cards for the monthly Labour Force
  Survey (latest value, change from the previous month and from a year ago)
  with gender / age group filters, and original vs. trend series of the key
  indicators
- "Hiekkalaatikko" (sandbox):
    * Pick a dataset (Labour Force Survey / Employment Service Statistics) and a table
    * Choose values for every table variable (up to 5 per variable)
    * Choose how many of the latest periods to fetch
    * View the result as a line chart, a bar chart, or a table
      (combined or one chart per series, absolute or relative y-axis)
    * Switch to year-over-year change (pp for rates, % for counts) when the
      table has enough history
    * Download the flattened data as CSV

Every query fetches fresh data; only the latest result per view is kept.
"""

from __future__ import annotations

from typing import Optional

import altair as alt
import pandas as pd
import streamlit as st

from statfin_dash.config import (
    AGE_GROUP_OPTIONS,
    DATASETS,
    GENDER_OPTIONS,
    MAX_SELECTED_VALUES,
    METRIC_META,
    OVERVIEW_METRICS,
    OVERVIEW_PERIOD_COUNT,
    TABLES,
    TREND_METRICS,
)
from statfin_dash.flatten import rows_to_frame
from statfin_dash.jsonstat import JsonStatError
from statfin_dash.metrics import latest_summary, metric_name
from statfin_dash.periods import detect_time_unit, format_period, period_options
from statfin_dash.sandbox import SandboxResult, display_rows, run_query
from statfin_dash.scaling import RELATIVE, SYMMETRIC_OR_PADDED, ZERO_BASED, collect_values, nice_bounds
from statfin_dash.statfin_api import (
    StatFinError,
    default_selections,
    find_time_variable,
    get_table_metadata,
    list_tables,
)


# ---------------------------------------------------------------------
# Cached loaders
# ---------------------------------------------------------------------
# Table lists and metadata change rarely and are needed on every rerun to
# draw the widgets. Query results are NOT cached.
@st.cache_data(ttl=3600)
def load_tables(dataset: str) -> list[dict]:
    return list_tables(dataset)


@st.cache_data(ttl=3600)
def load_metadata(dataset: str, table_id: str) -> dict:
    return get_table_metadata(dataset, table_id)


# ---------------------------------------------------------------------
# Helper functions
# ---------------------------------------------------------------------
def to_long(rows: list[dict], keys: list[str]) -> pd.DataFrame:
    """Long format for Altair: period | period_label | series | value."""
    wide = rows_to_frame(rows)[keys].reset_index()
    long = wide.melt("period", var_name="series", value_name="value").dropna()
    long["period_label"] = long["period"].map(format_period)
    return long


def y_domain(rows: list[dict], keys: list[str], yoy: bool, scale_mode: str):
    mode = SYMMETRIC_OR_PADDED if yoy else scale_mode
    bounds = nice_bounds(collect_values(rows, keys), mode)
    return list(bounds) if bounds else alt.Undefined


def make_chart(long: pd.DataFrame, viz: str, domain, y_title: str, height: int, legend: bool = True) -> alt.Chart:
    order = list(dict.fromkeys(long["period_label"]))
    base = alt.Chart(long)
    mark = base.mark_line(strokeWidth=2.5) if viz == "Line" else base.mark_bar()
    encoding = {
        "x": alt.X("period_label:O", title="", sort=order),
        "y": alt.Y("value:Q", title=y_title, scale=alt.Scale(domain=domain)),
        "tooltip": [
            alt.Tooltip("period:N", title="Aikajakso"),
            alt.Tooltip("series:N", title="Sarja"),
            alt.Tooltip("value:Q", title="Arvo", format=",.2f"),
        ],
    }
    if legend:
        encoding["color"] = alt.Color("series:N", title="Sarja")
        if viz == "Bar":
            encoding["xOffset"] = "series:N"
    return mark.encode(**encoding).properties(height=height).interactive()


def fmt_value(value: Optional[float], unit: Optional[str]) -> str:
    if value is None:
        return "–"
    if unit == "%":
        return f"{value:.1f} %"
    return f"{value:,.0f}".replace(",", " ")


def fmt_change(value: Optional[float], is_rate: bool, suffix: str) -> Optional[str]:
    if value is None:
        return None
    return f"{value:+.1f} {'pp' if is_rate else '%'} {suffix}"


def fetch_overview(gender: str, age_group: str) -> tuple[SandboxResult, SandboxResult]:
    """
    Monthly labour force (filtered) and key indicator trends.

    Kept in session state for the current filters only, so changing a filter
    always fetches fresh data.
    """
    filters = (gender, age_group)
    if st.session_state.get("overview_filters") != filters:
        labour = run_query(
            "tyti",
            TABLES["LABOUR_FORCE_MONTHLY"],
            selections={"Sukupuoli": [gender], "Ikäluokka": [age_group], "Tiedot": OVERVIEW_METRICS},
            period_count=OVERVIEW_PERIOD_COUNT,
        )
        trend = run_query(
            "tyti",
            TABLES["KEY_INDICATORS_TREND"],
            selections={"Tiedot": list(TREND_METRICS) + list(TREND_METRICS.values())},
            period_count=OVERVIEW_PERIOD_COUNT,
        )
        st.session_state["overview_labour"] = labour
        st.session_state["overview_trend"] = trend
        st.session_state["overview_filters"] = filters
    return st.session_state["overview_labour"], st.session_state["overview_trend"]


# ---------------------------------------------------------------------
# App layout
# ---------------------------------------------------------------------
st.set_page_config(page_title="Työmarkkinat – Tilastokeskus", layout="wide")
st.title("Suomen työmarkkinat")
st.caption("Lähde: Tilastokeskus, PxWeb-rajapinta (StatFin)")

tab_overview, tab_sandbox = st.tabs(["Yleiskatsaus", "Hiekkalaatikko"])


# ---------------------------------------------------------------------
# Overview tab
# ---------------------------------------------------------------------
def render_overview() -> None:
    f1, f2 = st.columns(2)
    gender = f1.selectbox("Sukupuoli", list(GENDER_OPTIONS), format_func=GENDER_OPTIONS.get)
    age_group = f2.selectbox("Ikäluokka", list(AGE_GROUP_OPTIONS), format_func=AGE_GROUP_OPTIONS.get)

    try:
        with st.spinner("Haetaan tietoja..."):
            labour, trend = fetch_overview(gender, age_group)
    except JsonStatError as e:
        st.error(f"Tietojen muoto oli odottamaton: {e}")
        return
    except StatFinError as e:
        st.error(f"Tietojen haku epäonnistui: {e}")
        return

    # Headline cards: latest value with yearly and monthly change.
    flags = labour.rate_flags()
    trend_flags = trend.rate_flags()
    cols = st.columns(len(OVERVIEW_METRICS))
    for col, code in zip(cols, OVERVIEW_METRICS):
        key = labour.key_for(code)
        if key is None:
            col.metric(metric_name(code), "–")
            continue
        unit = METRIC_META.get(code, {}).get("unit")
        summary = latest_summary(labour.rows, key, labour.periods_back or 0, flags[key])
        col.metric(
            metric_name(code),
            fmt_value(summary["latest"], unit),
            fmt_change(summary["change_yoy"], flags[key], "vuodessa"),
        )
        monthly = fmt_change(summary["change"], flags[key], "kuukaudessa")
        if monthly:
            col.caption(f"{format_period(summary['period'])}: {monthly}")
        trend_key = trend.key_for(TREND_METRICS.get(code, ""))
        if trend_key is not None:
            latest_trend = latest_summary(trend.rows, trend_key, trend.periods_back or 0, trend_flags[trend_key])
            col.caption(f"Trendi: {fmt_value(latest_trend['latest'], unit)}")

    st.divider()
    st.subheader("Työvoima kuukausittain")
    cols2 = st.columns(2)
    for i, key in enumerate(labour.metric_keys):
        domain = y_domain(labour.rows, [key], False, RELATIVE)
        chart = make_chart(
            to_long(labour.rows, [key]), "Line", domain, labour.unit([key]) or "Arvo", height=220, legend=False
        )
        cols2[i % 2].altair_chart(chart.properties(title=key), use_container_width=True)

    st.subheader("Alkuperäinen sarja ja trendi")
    cols3 = st.columns(2)
    for i, (code, trend_code) in enumerate(TREND_METRICS.items()):
        keys = [k for k in (trend.key_for(code), trend.key_for(trend_code)) if k is not None]
        if not keys:
            continue
        domain = y_domain(trend.rows, keys, False, RELATIVE)
        chart = make_chart(to_long(trend.rows, keys), "Line", domain, trend.unit(keys) or "Arvo", height=240)
        cols3[i % 2].altair_chart(chart.properties(title=metric_name(code)), use_container_width=True)


with tab_overview:
    render_overview()


# ---------------------------------------------------------------------
# Sandbox tab (controls in the sidebar)
# ---------------------------------------------------------------------
def render_sandbox() -> None:
    with st.sidebar:
        st.header("Hiekkalaatikko")

        dataset = st.selectbox("Tietokanta", options=list(DATASETS), format_func=lambda d: DATASETS[d])

        try:
            tables = load_tables(dataset)
        except StatFinError as e:
            st.error(f"Taulukkoluettelon haku epäonnistui: {e}")
            return

        table_labels = {t["id"]: t.get("text", t["id"]) for t in tables}
        table_id = st.selectbox(
            f"Taulukko ({len(tables)} taulukkoa)",
            options=[""] + list(table_labels),
            format_func=lambda t: table_labels.get(t, "Valitse taulukko..."),
        )

    st.caption("Räätälöi omat kyselysi Tilastokeskuksen tietokantoihin")
    if not table_id:
        st.info("Valitse tietokanta ja taulukko sivupalkista.")
        return

    try:
        metadata = load_metadata(dataset, table_id)
    except StatFinError as e:
        st.error(f"Taulukon metatietojen haku epäonnistui: {e}")
        return

    time_var = find_time_variable(metadata)
    time_values = time_var.get("values", []) if time_var else []
    time_unit = detect_time_unit(time_var["code"], time_values) if time_var else "unknown"
    defaults = default_selections(metadata)

    with st.sidebar:
        st.subheader(metadata.get("title", table_id))
        st.caption(f"{len(metadata.get('variables', []))} muuttujaa · {len(time_values)} aikajaksoa")

        options = period_options(time_unit, len(time_values) if time_var else None)
        period_count = st.radio(
            "Aikajakso",
            options=[o[0] for o in options],
            format_func=lambda n: dict(options)[n],
            index=min(1, len(options) - 1),
            horizontal=True,
        )

        selections: dict[str, list[str]] = {}
        for var in metadata.get("variables", []):
            if time_var is not None and var["code"] == time_var["code"]:
                continue
            texts = dict(zip(var.get("values", []), var.get("valueTexts", [])))
            selections[var["code"]] = st.multiselect(
                var.get("text", var["code"]),
                options=var.get("values", []),
                default=defaults.get(var["code"], []),
                format_func=lambda v, texts=texts: texts.get(v, v),
                max_selections=MAX_SELECTED_VALUES,
                key=f"sel_{table_id}_{var['code']}",
            )

        viz = st.radio("Näkymä", ["Line", "Bar", "Table"], horizontal=True)
        chart_mode = st.radio("Kaaviot", ["Combined", "Separate"], horizontal=True)
        scale_label = st.radio("Asteikko", ["Absoluuttinen", "Suhteellinen"], horizontal=True)
        scale_mode = ZERO_BASED if scale_label == "Absoluuttinen" else RELATIVE

        run = st.button("Hae tiedot", type="primary")

    # Run the query
    query_key = f"result_{dataset}_{table_id}"
    if run:
        with st.spinner("Haetaan tietoja..."):
            try:
                st.session_state[query_key] = run_query(
                    dataset,
                    table_id,
                    selections={k: v for k, v in selections.items() if v},
                    period_count=period_count,
                    metadata=metadata,
                )
            except JsonStatError as e:
                st.error(f"Tietojen muoto oli odottamaton: {e}")
                return
            except StatFinError as e:
                st.error(f"Tietojen haku epäonnistui. Tarkista valinnat ja yritä uudelleen. ({e})")
                return

    result = st.session_state.get(query_key)
    if result is None:
        st.info("Valitse muuttujat ja paina 'Hae tiedot'.")
        return
    if not result.rows:
        st.warning("Kysely ei palauttanut tietoja.")
        return

    # Value / year-over-year toggle
    c1, c2 = st.columns([1, 3])
    show_yoy = c1.toggle(
        "Vuosimuutos",
        value=False,
        disabled=not result.yoy_available,
        help="Prosenttiyksikköinä asteille, prosentteina määrille.",
    )
    if not result.yoy_available:
        c2.caption("Vuosimuutos ei ole saatavilla: liian vähän aikajaksoja tai tuntematon aikayksikkö.")

    # The toggle can stay on while disabled, so only yoy_applied drives the view.
    rows, yoy_applied = display_rows(result, show_yoy)
    keys = result.metric_keys

    def y_title(chart_keys: list[str]) -> str:
        if yoy_applied:
            return "Muutos (pp / %)"
        return result.unit(chart_keys) or "Arvo"

    # Output
    st.subheader(result.title)

    if viz == "Table":
        st.dataframe(rows_to_frame(rows), use_container_width=True)
    elif chart_mode == "Separate" and len(keys) > 1:
        cols = st.columns(2)
        for i, key in enumerate(keys):
            domain = y_domain(rows, [key], yoy_applied, scale_mode)
            chart = make_chart(to_long(rows, [key]), viz, domain, y_title([key]), height=250, legend=False)
            cols[i % 2].altair_chart(chart.properties(title=key), use_container_width=True)
    else:
        domain = y_domain(rows, keys, yoy_applied, scale_mode)
        st.altair_chart(
            make_chart(to_long(rows, keys), viz, domain, y_title(keys), height=380), use_container_width=True
        )

    st.download_button(
        "Lataa CSV",
        data=rows_to_frame(rows).to_csv(sep=";").encode("utf-8-sig"),
        file_name="hiekkalaatikko_tulokset.csv",
        mime="text/csv",
    )


with tab_sandbox:
    render_sandbox()
