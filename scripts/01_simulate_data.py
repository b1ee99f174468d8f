import sys
from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import argparse
import hashlib

import pandas as pd

from markup_pricing.config import (
    ARTIFACTS,
    COST_RANGE,
    COST_SHIFT,
    DATASET_VERSION,
    MARKUP_RANGE,
    N_OBSERVATIONS,
    OUTPUTS_DIR,
    PRODUCT_TYPE_WEIGHTS,
    PRODUCT_TYPES,
    SIMULATED_FILE,
    SIMULATION_SEED,
    TRUE_COEFFICIENTS,
)
from markup_pricing.data.simulate import simulate_sales
from markup_pricing.data.validate import assert_binary_outcome
from markup_pricing.utils.logging import run_metadata, write_json


def _sha256_df(df: pd.DataFrame) -> str:
    h = hashlib.sha256()
    h.update("||".join(df.columns.astype(str).tolist()).encode("utf-8"))
    h.update("||".join(map(str, df.dtypes.tolist())).encode("utf-8"))
    row_hashes = pd.util.hash_pandas_object(df, index=True).to_numpy()
    h.update(row_hashes.tobytes())
    return h.hexdigest()


def main() -> None:
    parser = argparse.ArgumentParser(description="Simulate product listings with a known logistic sale model.")
    parser.add_argument("--n", type=int, default=N_OBSERVATIONS, help="Number of simulated products.")
    parser.add_argument("--seed", type=int, default=SIMULATION_SEED, help="Random seed for the simulation.")
    parser.add_argument("--out-parquet", type=Path, default=SIMULATED_FILE, help="Output parquet path.")
    parser.add_argument("--outdir", type=Path, default=OUTPUTS_DIR, help="Output directory for logs (default: outputs/).")
    args = parser.parse_args()

    if args.n <= 0:
        raise SystemExit("--n must be a positive integer.")

    df = simulate_sales(args.n, args.seed)
    assert_binary_outcome(df["sold"])

    args.out_parquet.parent.mkdir(parents=True, exist_ok=True)
    df.to_parquet(args.out_parquet, index=False)

    n_sold = int(df["sold"].sum())
    by_type = df.groupby("product_type", observed=False)["sold"].agg(["size", "mean"])
    log_path = args.outdir / "logs" / ARTIFACTS["simulation_log"]
    write_json(
        log_path,
        run_metadata(
            dataset_version=DATASET_VERSION,
            n=int(len(df)),
            seed=args.seed,
            n_sold=n_sold,
            sale_rate=round(n_sold / len(df), 6),
            sale_rate_by_type={str(k): round(float(v), 6) for k, v in by_type["mean"].fillna(0.0).items()},
            n_by_type={str(k): int(v) for k, v in by_type["size"].items()},
            true_coefficients=dict(TRUE_COEFFICIENTS),
            simulation_settings={
                "product_types": list(PRODUCT_TYPES),
                "product_type_weights": list(PRODUCT_TYPE_WEIGHTS),
                "cost_range": list(COST_RANGE),
                "cost_shift": dict(COST_SHIFT),
                "markup_range": list(MARKUP_RANGE),
            },
            output_parquet=str(args.out_parquet),
            content_hash_sha256=_sha256_df(df),
        ),
    )

    print(f"Wrote {args.out_parquet}")
    print(f"Wrote {log_path}")


if __name__ == "__main__":
    main()
