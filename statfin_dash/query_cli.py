"""
statfin_dash/query_cli.py

Command-line version of the dashboard's sandbox.

What it does:
1) Reads the table metadata from the Statistics Finland PxWeb API.
2) Builds a query from the given selections (or the default selection).
3) Flattens the JSON-stat2 answer to one row per period.
4) Optionally turns the rows into year-over-year changes.
5) Prints the wide table, or writes it to a CSV file.

How to run locally:
  python -m statfin_dash.query_cli tyti statfin_tyti_pxt_135y.px \
      --select Tiedot=Tyolliset,Tyottomyysaste --periods 36 --yoy

Environment variables:
- STATFIN_BASE_URL (optional): API root, e.g. a local proxy.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

# ---------------------------------------------------------------------
# Import setup
# ---------------------------------------------------------------------
# When running as "python -m statfin_dash.query_cli", imports work naturally.
# When running as "python statfin_dash/query_cli.py", Python may not include
# the repo root on sys.path. This block makes both run modes work consistently.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from statfin_dash.config import DEFAULT_PERIOD_COUNT, TABLES
from statfin_dash.flatten import rows_to_frame
from statfin_dash.jsonstat import JsonStatError
from statfin_dash.sandbox import run_query, yoy_view
from statfin_dash.statfin_api import StatFinError


def parse_selection(items: Optional[list[str]]) -> Optional[dict[str, list[str]]]:
    """
    Turn ["Tiedot=Tyolliset,Tyottomat", "Sukupuoli=SSS"] into a selections dict.

    Returns None when nothing was given so the default selection applies.
    """
    if not items:
        return None
    selections: dict[str, list[str]] = {}
    for item in items:
        code, sep, values = item.partition("=")
        if not sep or not code or not values:
            raise ValueError(f"Selection must look like CODE=value1,value2 (got {item!r})")
        selections.setdefault(code.strip(), []).extend(v.strip() for v in values.split(",") if v.strip())
    return selections


def main(argv: Optional[list[str]] = None) -> int:
    """
    CLI entrypoint so the script can be run with:
        python -m statfin_dash.query_cli <dataset> <table>
    """
    parser = argparse.ArgumentParser(description="Query a Statistics Finland PxWeb table and flatten the result.")
    parser.add_argument("dataset", help="Dataset folder, e.g. tyti or tyonv")
    parser.add_argument("table", help="Table id (e.g. statfin_tyti_pxt_135y.px) or a name from config.TABLES")
    parser.add_argument("--select", action="append", metavar="CODE=V1,V2", help="Values to select for a variable (repeatable).")
    parser.add_argument("--periods", type=int, default=DEFAULT_PERIOD_COUNT, help="Number of latest periods to fetch.")
    parser.add_argument("--yoy", action="store_true", help="Show year-over-year change instead of levels.")
    parser.add_argument("--rate", choices=["auto", "yes", "no"], default="auto",
                        help="Treat metrics as rates (pp change) or levels (%% change) in YoY mode.")
    parser.add_argument("--keep-missing", action="store_true", help="Leave missing cells empty instead of 0.")
    parser.add_argument("--output", help="Write CSV here instead of printing.")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")

    try:
        selections = parse_selection(args.select)
        result = run_query(
            args.dataset,
            TABLES.get(args.table, args.table),
            selections=selections,
            period_count=args.periods,
            missing=None if args.keep_missing else 0.0,
        )
    except ValueError as e:
        # JsonStatError is a ValueError too; keep the message specific.
        kind = "Unexpected data format" if isinstance(e, JsonStatError) else "Invalid arguments"
        print(f"[error] {kind}: {e}")
        return 2
    except StatFinError as e:
        print(f"[error] {e}")
        return 1

    rows = result.rows
    if args.yoy:
        if args.rate == "auto":
            is_rate = result.rate_flags()
        else:
            is_rate = args.rate == "yes"
        rows = yoy_view(result, is_rate)
        if result.periods_back is None:
            print("[warn] Unknown time granularity, cannot compute year-over-year change; showing levels.")
            rows = result.rows
        elif not rows:
            print(
                f"[warn] Year-over-year change needs more than {result.periods_back} periods "
                f"({result.time_unit} data, {len(result.rows)} fetched); showing levels."
            )
            rows = result.rows

    df = rows_to_frame(rows)
    if args.output:
        out = Path(args.output)
        out.parent.mkdir(parents=True, exist_ok=True)
        df.to_csv(out)
        print(f"Wrote {len(df)} rows x {len(df.columns)} columns to {out}")
    else:
        print(result.title)
        print(df.to_string())
    return 0


if __name__ == "__main__":
    sys.exit(main())
