from __future__ import annotations

import argparse
import sys
from pathlib import Path

import numpy as np
import pandas as pd


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from markup_pricing.config import (  # noqa: E402
    ARTIFACTS,
    COST_COL,
    GROUP_COL,
    MARKUP_BANDS,
    MARKUP_COL,
    OUTPUTS_DIR,
    SIMULATED_FILE,
    TARGET_COL,
)
from markup_pricing.data.coding import sale_rate_by_group, sale_rate_by_markup_band  # noqa: E402
from markup_pricing.data.ingest import load_sales  # noqa: E402
from markup_pricing.reporting.figures import plot_sale_rate_by_markup_band  # noqa: E402
from markup_pricing.utils.logging import run_metadata, write_json  # noqa: E402


def _numeric_summary(df: pd.DataFrame, cols) -> pd.DataFrame:
    rows = []
    for col in cols:
        s = df[col].astype(float)
        rows.append(
            {
                "variable": col,
                "n": int(s.notna().sum()),
                "mean": round(float(s.mean()), 6),
                "sd": round(float(s.std(ddof=1)), 6) if len(s) > 1 else np.nan,
                "min": round(float(s.min()), 6),
                "median": round(float(s.median()), 6),
                "max": round(float(s.max()), 6),
            }
        )
    return pd.DataFrame(rows)


def main() -> None:
    parser = argparse.ArgumentParser(description="Descriptive tables and figures for the simulated sales data.")
    parser.add_argument("--in-parquet", type=Path, default=SIMULATED_FILE, help="Simulated sales parquet.")
    parser.add_argument("--nrows", type=int, default=None, help="Use only the first N rows (deterministic head).")
    parser.add_argument("--outdir", type=Path, default=OUTPUTS_DIR, help="Output directory (default: outputs/).")
    parser.add_argument("--head", type=int, default=6, help="Rows shown in the data preview table.")
    args = parser.parse_args()

    if not args.in_parquet.exists():
        raise SystemExit(f"Simulated data not found: {args.in_parquet}. Run scripts/01_simulate_data.py first.")
    if args.nrows is not None and args.nrows <= 0:
        raise SystemExit("--nrows must be a positive integer.")

    df = load_sales(args.in_parquet, nrows=args.nrows)

    tables_dir = args.outdir / "tables"
    figures_dir = args.outdir / "figures"
    logs_dir = args.outdir / "logs"
    for d in [tables_dir, figures_dir, logs_dir]:
        d.mkdir(parents=True, exist_ok=True)

    preview_cols = ["product_id", GROUP_COL, COST_COL, MARKUP_COL, "price", TARGET_COL]
    preview = df[[c for c in preview_cols if c in df.columns]].head(args.head)
    preview.to_csv(tables_dir / ARTIFACTS["simulated_head"], index=False)

    summary = _numeric_summary(df, [c for c in [COST_COL, MARKUP_COL, "price", TARGET_COL] if c in df.columns])
    summary.to_csv(tables_dir / ARTIFACTS["numeric_summary"], index=False)

    by_type = sale_rate_by_group(df, GROUP_COL, target_col=TARGET_COL)
    by_type.to_csv(tables_dir / ARTIFACTS["sale_rate_by_type"], index=False)

    by_band = sale_rate_by_markup_band(df, MARKUP_BANDS, target_col=TARGET_COL)
    by_band.to_csv(tables_dir / ARTIFACTS["sale_rate_by_band"], index=False)

    plot_sale_rate_by_markup_band(by_band, figures_dir / ARTIFACTS["sale_rate_by_band_fig"])

    write_json(
        logs_dir / ARTIFACTS["eda_log"],
        run_metadata(
            input_parquet=str(args.in_parquet),
            nrows=args.nrows,
            n=int(len(df)),
            outdir=str(args.outdir),
            notes=["EDA is descriptive context only; no model is fitted here."],
        ),
    )

    print(f"Wrote EDA artifacts to {args.outdir}/")


if __name__ == "__main__":
    main()
