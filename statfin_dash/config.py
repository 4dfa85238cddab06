"""
statfin_dash/config.py

This file is the "single source of truth" for:

1) Where the Statistics Finland PxWeb API lives and which datasets/tables we use
2) How the sandbox recognises time variables and picks a year-over-year lag
3) How well-known metrics are displayed (friendly name/unit/type)

Important vocabulary:
- "tyti" is the Labour Force Survey (Työvoimatutkimus)
- "tyonv" is the Employment Service Statistics (Työnvälitystilasto)

Table IDs are *exactly* as defined by Statistics Finland.
"""

import os

# Public API root. Override with STATFIN_BASE_URL to go through a proxy.
STATFIN_BASE_URL = os.getenv(
    "STATFIN_BASE_URL",
    "https://pxdata.stat.fi/PXWeb/api/v1/fi/StatFin",
).rstrip("/")

DATASETS: dict[str, str] = {
    "tyti": "Työvoimatutkimus",
    "tyonv": "Työnvälitystilasto",
}

# Commonly used tables.
TABLES: dict[str, str] = {
    "LABOUR_FORCE_MONTHLY": "statfin_tyti_pxt_135y.px",
    "KEY_INDICATORS_TREND": "statfin_tyti_pxt_135z.px",
    "LABOUR_MARKET_STATUS": "statfin_tyti_pxt_13aj.px",
    "UNEMPLOYED_SEEKERS": "statfin_tyonv_pxt_12r5.px",
    "UNEMPLOYMENT_RATE": "statfin_tyonv_pxt_12tf.px",
    "REGIONAL_QUARTERLY": "statfin_tyti_pxt_13lx.px",
    "INDUSTRY_EMPLOYMENT": "statfin_tyti_pxt_13aq.px",
    "INDUSTRY_QUARTERLY": "statfin_tyti_pxt_137l.px",
    "OPEN_POSITIONS_REGION": "statfin_tyonv_pxt_12tv.px",
    "OCCUPATION_DATA": "statfin_tyonv_pxt_12ti.px",
}

# Substrings (lower-case) that mark a PxWeb variable as the time axis.
TIME_TOKENS: tuple[str, ...] = (
    "kuukausi",
    "vuosineljännes",
    "vuosi",
    "aika",
    "viikko",
    "month",
    "quarter",
    "year",
    "time",
)

# Year-over-year lag in periods, by time granularity.
PERIODS_BACK: dict[str, int] = {
    "monthly": 12,
    "quarterly": 4,
    "yearly": 1,
}

# Time span choices offered by the sandbox, in periods.
TIME_PERIOD_OPTIONS: dict[str, list[tuple[int, str]]] = {
    "monthly": [(12, "1v"), (24, "2v"), (36, "3v"), (60, "5v"), (120, "10v")],
    "quarterly": [(4, "1v"), (8, "2v"), (12, "3v"), (20, "5v"), (40, "10v")],
    "yearly": [(5, "5v"), (10, "10v"), (20, "20v")],
    "unknown": [(24, "24 jaksoa"), (48, "48 jaksoa")],
}
ALL_PERIODS_LABEL = "Kaikki"

# Sandbox selection limits.
MAX_SELECTED_VALUES = 5
DEFAULT_PERIOD_COUNT = 24

# Metadata for "Tiedot" values we know about.
#
# Fields:
# - name: What users see in the dashboard
# - unit: Human-readable unit label used in axes/tables
# - type: "level" for counts/amounts, "rate" for percent rates (drives YoY math)
METRIC_META: dict[str, dict[str, str]] = {
    "Tyovoima": {"name": "Työvoima", "unit": "Tuhatta henkeä", "type": "level"},
    "Tyolliset": {"name": "Työlliset", "unit": "Tuhatta henkeä", "type": "level"},
    "Tyottomat": {"name": "Työttömät", "unit": "Tuhatta henkeä", "type": "level"},
    "Tyottomyysaste": {"name": "Työttömyysaste", "unit": "%", "type": "rate"},
    "Tyollisyysaste": {"name": "Työllisyysaste", "unit": "%", "type": "rate"},
    "Tyollisyysaste_15_64": {"name": "Työllisyysaste 15-64", "unit": "%", "type": "rate"},
    "tyolliset_trendi": {"name": "Työlliset, trendi", "unit": "Tuhatta henkeä", "type": "level"},
    "tyottomat_trendi": {"name": "Työttömät, trendi", "unit": "Tuhatta henkeä", "type": "level"},
    "tyottaste_trendi": {"name": "Työttömyysaste, trendi", "unit": "%", "type": "rate"},
    "tyollaste_15_64_trendi": {"name": "Työllisyysaste 15-64, trendi", "unit": "%", "type": "rate"},
    "TYOTTOMATLOPUSSA": {"name": "Työttömät työnhakijat", "unit": "Henkeä", "type": "level"},
    "TYOTOSUUS": {"name": "Työttömien osuus", "unit": "%", "type": "rate"},
    "AVPAIKATLOPUSSA": {"name": "Avoimet työpaikat", "unit": "Kpl", "type": "level"},
}

# Labels containing one of these (lower-case) are treated as rates when a
# metric is not listed in METRIC_META.
RATE_HINTS: tuple[str, ...] = ("aste", "osuus", "%", "rate", "prosentti")

# PxWeb variable holding the measure ("Tiedot") of a table. Its category code
# decides how a column's year-over-year change is computed.
MEASURE_DIMENSION = "Tiedot"

# ---------------------------------------------------------------------
# Overview tab
# ---------------------------------------------------------------------
GENDER_OPTIONS: dict[str, str] = {
    "SSS": "Yhteensä",
    "1": "Miehet",
    "2": "Naiset",
}

AGE_GROUP_OPTIONS: dict[str, str] = {
    "15-74": "15-74 vuotiaat",
    "15-64": "15-64 vuotiaat",
    "15-24": "15-24 vuotiaat (nuoret)",
    "25-34": "25-34 vuotiaat",
    "35-44": "35-44 vuotiaat",
    "45-54": "45-54 vuotiaat",
    "55-64": "55-64 vuotiaat",
}

# Headline cards, in display order (monthly labour force table).
OVERVIEW_METRICS: list[str] = [
    "Tyolliset",
    "Tyollisyysaste",
    "Tyottomat",
    "Tyottomyysaste",
]

# Seasonally adjusted trend series of the key indicators table, keyed by the
# original series they smooth.
TREND_METRICS: dict[str, str] = {
    "Tyolliset": "tyolliset_trendi",
    "Tyottomat": "tyottomat_trendi",
    "Tyottomyysaste": "tyottaste_trendi",
    "Tyollisyysaste_15_64": "tyollaste_15_64_trendi",
}

OVERVIEW_PERIOD_COUNT = 60
