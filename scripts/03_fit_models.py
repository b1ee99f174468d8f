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
    BINNED_RESIDUAL_BINS,
    BOOT_SEED,
    CANDIDATE_FORMULAS,
    CI_LEVEL,
    CI_METHOD,
    DATASET_VERSION,
    DFBETAS_THRESHOLD_SCALE,
    EXPERIMENT_NAMESPACE,
    MARKUP_COL,
    N_BOOT,
    OUTPUTS_DIR,
    PROB_BINS,
    SIMULATED_FILE,
    TARGET_COL,
    TRUE_COEFFICIENTS,
)
from markup_pricing.data.ingest import load_sales  # noqa: E402
from markup_pricing.evaluation.bootstrap import (  # noqa: E402
    METRIC_NAMES,
    stratified_bootstrap_metric_draws,
    summarize_bootstrap_ci,
)
from markup_pricing.evaluation.influence import (  # noqa: E402
    dfbetas_frame,
    dfbetas_threshold,
    influence_summary,
    influential_observations,
)
from markup_pricing.evaluation.metrics import calibration_curve_df, compute_binary_metrics  # noqa: E402
from markup_pricing.evaluation.residuals import binned_residual_summary, binned_residuals  # noqa: E402
from markup_pricing.models.logistic import (  # noqa: E402
    coefficient_table,
    compare_models_bic,
    fit_candidates,
    select_by_bic,
)
from markup_pricing.reporting.figures import (  # noqa: E402
    plot_binned_residuals,
    plot_calibration,
    plot_dfbetas,
)
from markup_pricing.utils.logging import run_metadata, write_json  # noqa: E402


def main() -> None:
    parser = argparse.ArgumentParser(description="Fit candidate logistic models, select by BIC and check the fit.")
    parser.add_argument("--in-parquet", type=Path, default=SIMULATED_FILE, help="Simulated sales parquet.")
    parser.add_argument("--nrows", type=int, default=None, help="Optional dev mode: head(n) rows deterministically.")
    parser.add_argument("--outdir", type=Path, default=OUTPUTS_DIR, help="Output directory (default: outputs/).")
    parser.add_argument("--ci-method", choices=["profile", "wald"], default=CI_METHOD)
    parser.add_argument("--ci-level", type=float, default=CI_LEVEL)
    parser.add_argument("--n-bins", type=int, default=BINNED_RESIDUAL_BINS, help="Bins for binned residual plots.")
    parser.add_argument(
        "--n-boot",
        type=int,
        default=N_BOOT,
        help="Number of stratified bootstrap resamples for performance confidence intervals.",
    )
    parser.add_argument("--boot-seed", type=int, default=BOOT_SEED)
    args = parser.parse_args()

    if not args.in_parquet.exists():
        raise SystemExit(f"Simulated data not found: {args.in_parquet}. Run scripts/01_simulate_data.py first.")
    if args.nrows is not None and args.nrows <= 0:
        raise SystemExit("--nrows must be a positive integer.")
    if not 0.0 < args.ci_level < 1.0:
        raise SystemExit("--ci-level must be in (0, 1).")
    if args.n_bins is not None and args.n_bins <= 0:
        raise SystemExit("--n-bins must be a positive integer.")
    if args.n_boot < 0:
        raise SystemExit("--n-boot must be >= 0.")

    df = load_sales(args.in_parquet, nrows=args.nrows)

    tables_dir = args.outdir / "tables"
    figures_dir = args.outdir / "figures"
    logs_dir = args.outdir / "logs"
    for d in [tables_dir, figures_dir, logs_dir]:
        d.mkdir(parents=True, exist_ok=True)

    # Candidate fits and BIC comparison
    fits = fit_candidates(CANDIDATE_FORMULAS, df)
    bic_table = compare_models_bic(fits.values())
    bic_table.to_csv(tables_dir / ARTIFACTS["bic_table"], index=False)
    selected = select_by_bic(fits)

    coefs = coefficient_table(selected, level=args.ci_level, method=args.ci_method, truth=TRUE_COEFFICIENTS)
    coefs.to_csv(tables_dir / ARTIFACTS["coefficients"], index=False)

    # Binned residuals against the fitted probability and against markup
    y = df[TARGET_COL].to_numpy(dtype=int)
    p_hat = np.asarray(selected.result.fittedvalues, dtype=float)
    binned_fitted = binned_residuals(p_hat, y, p_hat, n_bins=args.n_bins)
    binned_markup = binned_residuals(df[MARKUP_COL].to_numpy(dtype=float), y, p_hat, n_bins=args.n_bins)
    binned_fitted.to_csv(tables_dir / ARTIFACTS["binned_fitted"], index=False)
    binned_markup.to_csv(tables_dir / ARTIFACTS["binned_markup"], index=False)
    plot_binned_residuals(binned_fitted, figures_dir / ARTIFACTS["binned_fitted_fig"])
    plot_binned_residuals(binned_markup, figures_dir / ARTIFACTS["binned_markup_fig"], xlabel="Markup (%)")

    # DFBETAS
    dfb = dfbetas_frame(selected)
    threshold = dfbetas_threshold(len(dfb), DFBETAS_THRESHOLD_SCALE)
    dfb_summary = influence_summary(dfb, threshold)
    dfb_flagged = influential_observations(dfb, threshold)
    dfb_summary.to_csv(tables_dir / ARTIFACTS["dfbetas_summary"], index=False)
    dfb_flagged.to_csv(tables_dir / ARTIFACTS["dfbetas_influential"], index=False)
    plot_dfbetas(dfb, threshold, figures_dir / ARTIFACTS["dfbetas_fig"])

    # In-sample predictive performance with stratified bootstrap intervals
    point = compute_binary_metrics(y, p_hat)
    draws = stratified_bootstrap_metric_draws(y_true=y, y_prob=p_hat, n_boot=args.n_boot, seed=args.boot_seed)
    draws.to_csv(tables_dir / ARTIFACTS["bootstrap_draws"], index=False)
    ci = summarize_bootstrap_ci(draws)
    performance = pd.DataFrame(
        [
            {
                "metric": m,
                "value": float(point[m]),
                "ci95_low": ci[m][0],
                "ci95_high": ci[m][1],
            }
            for m in METRIC_NAMES
        ]
    )
    performance.to_csv(tables_dir / ARTIFACTS["performance"], index=False)

    calibration = calibration_curve_df(y, p_hat, n_bins=PROB_BINS)
    calibration.to_csv(tables_dir / ARTIFACTS["calibration"], index=False)
    plot_calibration(calibration, figures_dir / ARTIFACTS["calibration_fig"])

    write_json(
        logs_dir / ARTIFACTS["fit_log"],
        run_metadata(
            dataset_version=DATASET_VERSION,
            experiment_namespace=EXPERIMENT_NAMESPACE,
            input_parquet=str(args.in_parquet),
            nrows=args.nrows,
            n=int(len(df)),
            candidates=dict(CANDIDATE_FORMULAS),
            selected_model=selected.name,
            selected_formula=selected.formula,
            params={k: float(v) for k, v in selected.params.items()},
            ci_method=args.ci_method,
            ci_level=args.ci_level,
            coverage={
                "n_terms": int(len(coefs)),
                "n_covered": int(coefs["covers_truth"].sum()),
            },
            binned_residuals={
                "fitted": binned_residual_summary(binned_fitted),
                "markup": binned_residual_summary(binned_markup),
            },
            dfbetas={
                "threshold": threshold,
                "n_flagged_values": int(len(dfb_flagged)),
                "n_flagged_observations": int(dfb_flagged["observation"].nunique()),
            },
            performance=point,
            n_boot=args.n_boot,
            boot_seed=args.boot_seed,
            scope_notes=[
                "Performance metrics are in-sample; the model is used for inference and pricing, not held-out prediction.",
                "True coefficients are known because the data are simulated.",
            ],
        ),
    )

    print(f"Selected model: {selected.name} ({selected.formula})")
    print(f"Wrote model artifacts to {args.outdir}/")


if __name__ == "__main__":
    main()
