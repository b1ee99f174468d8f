from __future__ import annotations

import argparse
import sys
from pathlib import Path

import numpy as np


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from markup_pricing.config import (  # noqa: E402
    ARTIFACTS,
    GROUP_COL,
    MARKUP_COL,
    MARKUP_GRID,
    MARKUP_START,
    MC_N_JOBS,
    MC_POLICY,
    MC_REPLICATES,
    MC_SEED,
    OUTPUTS_DIR,
    SIMULATED_FILE,
    TRUE_COEFFICIENTS,
    UNSOLD_COST_SHARE,
)
from markup_pricing.data.ingest import load_sales  # noqa: E402
from markup_pricing.models.logistic import fit_logistic  # noqa: E402
from markup_pricing.optimization.impact import simulate_business_impact, summarize_impact  # noqa: E402
from markup_pricing.optimization.markup import (  # noqa: E402
    MarkupOptimizationError,
    expected_profit,
    optimize_markup,
    optimize_markup_by_group,
    profit_curve,
    true_optimal_markup,
)
from markup_pricing.reporting.figures import plot_profit_curve, plot_uplift_distribution  # noqa: E402
from markup_pricing.utils.logging import read_json, run_metadata, write_json  # noqa: E402


def main() -> None:
    parser = argparse.ArgumentParser(description="Recommend a profit-optimal markup and simulate its business impact.")
    parser.add_argument("--in-parquet", type=Path, default=SIMULATED_FILE, help="Simulated sales parquet.")
    parser.add_argument("--nrows", type=int, default=None, help="Optional dev mode: head(n) rows deterministically.")
    parser.add_argument("--outdir", type=Path, default=OUTPUTS_DIR, help="Output directory (default: outputs/).")
    parser.add_argument("--start", type=float, default=MARKUP_START, help="Starting markup for the optimizer.")
    parser.add_argument("--maxiter", type=int, default=None, help="Iteration cap for BFGS (default: scipy's).")
    parser.add_argument(
        "--unsold-cost-share",
        type=float,
        default=UNSOLD_COST_SHARE,
        help="Share of production cost lost on an unsold item.",
    )
    parser.add_argument("--policy", choices=["uniform", "by_type"], default=MC_POLICY)
    parser.add_argument("--n-replicates", type=int, default=MC_REPLICATES, help="Monte Carlo replicates.")
    parser.add_argument("--n-jobs", type=int, default=MC_N_JOBS, help="Parallel workers (-1: all cores).")
    parser.add_argument("--mc-seed", type=int, default=MC_SEED)
    args = parser.parse_args()

    if not args.in_parquet.exists():
        raise SystemExit(f"Simulated data not found: {args.in_parquet}. Run scripts/01_simulate_data.py first.")
    fit_log_path = args.outdir / "logs" / ARTIFACTS["fit_log"]
    if not fit_log_path.exists():
        raise SystemExit(f"Model fit log not found: {fit_log_path}. Run scripts/03_fit_models.py first.")
    if args.nrows is not None and args.nrows <= 0:
        raise SystemExit("--nrows must be a positive integer.")
    if args.unsold_cost_share < 0:
        raise SystemExit("--unsold-cost-share must be >= 0.")
    if args.n_replicates < 0:
        raise SystemExit("--n-replicates must be >= 0.")

    df = load_sales(args.in_parquet, nrows=args.nrows)
    fit_log = read_json(fit_log_path)
    fit = fit_logistic(fit_log["selected_formula"], df, name=fit_log["selected_model"])

    tables_dir = args.outdir / "tables"
    figures_dir = args.outdir / "figures"
    logs_dir = args.outdir / "logs"
    for d in [tables_dir, figures_dir, logs_dir]:
        d.mkdir(parents=True, exist_ok=True)

    try:
        optimum = optimize_markup(
            fit, df, start=args.start, unsold_cost_share=args.unsold_cost_share, maxiter=args.maxiter
        )
        true_optimum = true_optimal_markup(
            df,
            coefficients=TRUE_COEFFICIENTS,
            start=args.start,
            unsold_cost_share=args.unsold_cost_share,
            maxiter=args.maxiter,
        )
        by_type = optimize_markup_by_group(
            fit,
            df,
            group_col=GROUP_COL,
            start=args.start,
            unsold_cost_share=args.unsold_cost_share,
            coefficients=TRUE_COEFFICIENTS,
            maxiter=args.maxiter,
        )
    except MarkupOptimizationError as exc:
        raise SystemExit(f"Aborting: {exc}") from exc
    by_type.to_csv(tables_dir / ARTIFACTS["optimum_by_type"], index=False)

    grid = np.linspace(*MARKUP_GRID[:2], int(MARKUP_GRID[2]))
    curve = profit_curve(
        fit, df, grid, unsold_cost_share=args.unsold_cost_share, coefficients=TRUE_COEFFICIENTS
    )
    curve.to_csv(tables_dir / ARTIFACTS["profit_curve"], index=False)
    plot_profit_curve(
        curve,
        optimum.markup_pct,
        figures_dir / ARTIFACTS["profit_curve_fig"],
        true_optimal_markup=true_optimum.markup_pct,
    )

    if args.policy == "by_type":
        recommended = dict(zip(by_type[GROUP_COL], by_type["optimal_markup"]))
    else:
        recommended = optimum.markup_pct

    draws = simulate_business_impact(
        fit,
        df,
        recommended,
        n_replicates=args.n_replicates,
        seed=args.mc_seed,
        n_jobs=args.n_jobs,
        policy=args.policy,
        unsold_cost_share=args.unsold_cost_share,
    )
    draws.to_csv(tables_dir / ARTIFACTS["impact_draws"], index=False)
    impact = summarize_impact(draws)
    if not draws.empty:
        plot_uplift_distribution(draws, figures_dir / ARTIFACTS["impact_fig"])

    current_profit = expected_profit(
        fit, df, df[MARKUP_COL].to_numpy(dtype=float), unsold_cost_share=args.unsold_cost_share
    )
    write_json(
        logs_dir / ARTIFACTS["optimization_log"],
        run_metadata(
            input_parquet=str(args.in_parquet),
            nrows=args.nrows,
            n=int(len(df)),
            selected_model=fit.name,
            selected_formula=fit.formula,
            unsold_cost_share=args.unsold_cost_share,
            optimum=optimum.as_dict(),
            true_optimum=true_optimum.as_dict(),
            current={
                "markup_mean": float(df[MARKUP_COL].mean()),
                "expected_profit": float(np.mean(current_profit)),
            },
            policy=args.policy,
            recommended=recommended,
            impact_summary=impact,
            n_replicates=args.n_replicates,
            n_jobs=args.n_jobs,
            mc_seed=args.mc_seed,
        ),
    )

    print(f"Recommended markup: {optimum.markup_pct:.2f}% (true optimum {true_optimum.markup_pct:.2f}%)")
    print(f"Wrote optimization artifacts to {args.outdir}/")


if __name__ == "__main__":
    main()
