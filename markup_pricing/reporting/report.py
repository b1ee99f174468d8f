"""Render the analysis write-up as a Quarto-flavoured Markdown article.

The report is assembled from the tables, figures and JSON run logs written by
the pipeline scripts; nothing is recomputed here.
"""

from __future__ import annotations

import os
from datetime import date
from pathlib import Path
from typing import Dict, Optional

import pandas as pd

from markup_pricing.config import ARTIFACTS
from markup_pricing.utils.logging import package_versions, read_json

REQUIRED_TABLES = [
    "simulated_head",
    "sale_rate_by_type",
    "bic_table",
    "coefficients",
    "binned_fitted",
    "dfbetas_summary",
    "performance",
    "profit_curve",
    "optimum_by_type",
    "impact_draws",
]
REQUIRED_LOGS = ["simulation_log", "fit_log", "optimization_log"]


def _md_table(df: pd.DataFrame, floatfmt: str = ".4f") -> str:
    return df.to_markdown(index=False, floatfmt=floatfmt)


def _rel(path: Path, start: Path) -> str:
    return Path(os.path.relpath(path, start)).as_posix()


def load_artifacts(outdir: Path) -> Dict[str, object]:
    tables_dir = outdir / "tables"
    logs_dir = outdir / "logs"
    missing = [ARTIFACTS[k] for k in REQUIRED_TABLES if not (tables_dir / ARTIFACTS[k]).exists()]
    missing += [ARTIFACTS[k] for k in REQUIRED_LOGS if not (logs_dir / ARTIFACTS[k]).exists()]
    if missing:
        raise FileNotFoundError(f"Missing pipeline artifacts under {outdir}: {missing}")

    out: Dict[str, object] = {k: pd.read_csv(tables_dir / ARTIFACTS[k]) for k in REQUIRED_TABLES}
    out.update({k: read_json(logs_dir / ARTIFACTS[k]) for k in REQUIRED_LOGS})
    return out


def _model_equation(terms) -> str:
    parts = []
    for term in terms:
        if term == "Intercept":
            parts.append(r"\beta_0")
        else:
            name = term.replace("product_type[T.", "").replace("]", "").replace("_", r"\_")
            parts.append(rf"\beta_{{\text{{{name}}}}}\, x_{{\text{{{name}}},i}}")
    return r"\operatorname{logit}(p_i) = \log\frac{p_i}{1-p_i} = " + " + ".join(parts)


def _coefficient_section(coefs: pd.DataFrame, fit_log: dict) -> str:
    cols = ["term", "estimate", "std_error", "ci_low", "ci_high", "odds_ratio"]
    if "true_value" in coefs.columns:
        cols += ["true_value", "covers_truth"]
    n_cov = int(coefs["covers_truth"].sum()) if "covers_truth" in coefs.columns else None
    level = int(round(100 * float(fit_log.get("ci_level", 0.95))))
    method = "profile-likelihood" if fit_log.get("ci_method") == "profile" else "Wald"
    lines = [
        f"Estimates with {level}% {method} confidence intervals. Because the data are simulated, "
        "the true coefficients are known and listed alongside.",
        "",
        _md_table(coefs[cols]),
        "",
    ]
    if n_cov is not None:
        lines.append(f"{n_cov} of {len(coefs)} intervals contain the true value.")
        lines.append("")
    return "\n".join(lines)


def render_report(
    outdir: Path,
    *,
    out_path: Optional[Path] = None,
    title: str = "Finding the Profit-Optimal Markup with Logistic Regression",
    report_date: Optional[str] = None,
) -> Path:
    art = load_artifacts(outdir)
    figures_dir = outdir / "figures"
    out_path = out_path or outdir / "report" / ARTIFACTS["report"]
    out_path.parent.mkdir(parents=True, exist_ok=True)
    fig_base = out_path.parent

    def fig(key: str, caption: str) -> str:
        path = figures_dir / ARTIFACTS[key]
        if not path.exists():
            return f"*Figure not available: {ARTIFACTS[key]}*"
        return f"![{caption}]({_rel(path, fig_base)})"

    sim = art["simulation_log"]
    fit_log = art["fit_log"]
    opt_log = art["optimization_log"]
    bic = art["bic_table"]
    coefs = art["coefficients"]
    binned = art["binned_fitted"]
    dfb = art["dfbetas_summary"]
    perf = art["performance"]
    by_type = art["optimum_by_type"]
    draws = art["impact_draws"]

    optimum = opt_log["optimum"]
    true_optimum = opt_log.get("true_optimum") or {}
    impact = opt_log.get("impact_summary", {})
    selected = fit_log["selected_model"]
    binned_summary = fit_log.get("binned_residuals", {}).get("fitted", {})
    dfb_info = fit_log.get("dfbetas", {})

    lines = [
        "---",
        f'title: "{title}"',
        f'date: "{report_date or date.today().isoformat()}"',
        "format: gfm",
        "---",
        "",
        "## Introduction",
        "",
        "An online shop sets the price of each product as a markup on its production cost. "
        "A higher markup earns more per sale but makes a sale less likely. This article fits a "
        "logistic regression of the sale outcome on markup, production cost and product type, "
        "selects the model by BIC, checks its assumptions, and uses it to recommend the markup "
        "that maximises expected profit. A Monte Carlo simulation then estimates the business "
        "impact of the recommendation.",
        "",
        "## Simulated data",
        "",
        f"The data set has {sim['n']} listed products (seed {sim['seed']}). Each product has a type, "
        "a production cost and a markup percentage; whether it sold is drawn from a known logistic model, "
        f"giving an overall sale rate of {float(sim['sale_rate']):.1%}.",
        "",
        _md_table(art["simulated_head"], floatfmt=".2f"),
        "",
        _md_table(art["sale_rate_by_type"]),
        "",
        fig("sale_rate_by_band_fig", "Sale rate by markup band"),
        "",
        "## Model",
        "",
        "For product $i$ with sale probability $p_i$ the selected model is",
        "",
        "$$",
        _model_equation(coefs["term"].tolist()),
        "$$",
        "",
        "### Model selection",
        "",
        "Candidate models were compared with the Bayesian Information Criterion, "
        r"$\mathrm{BIC} = -2\log L + k\log n$. Lower is better.",
        "",
        _md_table(bic[["model", "formula", "n_params", "log_likelihood", "bic", "delta_bic", "selected"]], ".2f"),
        "",
        f"The selected model is **{selected}** (`{fit_log['selected_formula']}`).",
        "",
        "### Coefficients",
        "",
        _coefficient_section(coefs, fit_log),
        "## Model checking",
        "",
        "### Binned residuals",
        "",
        "Residuals $y_i - \\hat p_i$ are averaged within bins of the fitted probability. "
        "About 95% of bin means should lie inside $\\pm 2$ standard errors.",
        "",
        fig("binned_fitted_fig", "Binned residuals against fitted probability"),
        "",
        fig("binned_markup_fig", "Binned residuals against markup"),
        "",
        f"{int(binned_summary.get('n_outside', binned['outside'].sum()))} of "
        f"{int(binned_summary.get('n_bins', len(binned)))} bins fall outside the bounds.",
        "",
        "### Influential observations",
        "",
        "DFBETAS measure the change in each coefficient, in standard errors, when one observation is "
        f"removed. Values beyond $2/\\sqrt{{n}} = {float(dfb_info.get('threshold', dfb['threshold'].iloc[0])):.4f}$ "
        "are flagged.",
        "",
        _md_table(dfb),
        "",
        fig("dfbetas_fig", "DFBETAS by observation"),
        "",
        "### Predictive performance",
        "",
        _md_table(perf),
        "",
        fig("calibration_fig", "Calibration curve"),
        "",
        "## Optimal markup",
        "",
        "With production cost $c$ and markup $m$ (percent), the expected profit of a listed product is",
        "",
        "$$",
        r"\mathbb{E}[\pi(m)] = \hat p(m)\, c\, \frac{m}{100} - \bigl(1 - \hat p(m)\bigr)\, c\, s,",
        "$$",
        "",
        f"where $s = {float(opt_log.get('unsold_cost_share', 0.0)):g}$ is the share of cost lost on an unsold item. "
        "The markup maximising the average expected profit over the product mix was found with BFGS.",
        "",
        fig("profit_curve_fig", "Expected profit by markup"),
        "",
        f"The recommended markup is **{float(optimum['markup_pct']):.2f}%** with an expected profit of "
        f"{float(optimum['expected_profit']):.3f} per listed product "
        f"(optimizer converged after {int(optimum['n_iterations'])} iterations).",
    ]
    if true_optimum:
        lines += [
            "",
            f"Under the true data-generating model the optimum is {float(true_optimum['markup_pct']):.2f}%.",
        ]
    lines += [
        "",
        "Optimising separately by product type:",
        "",
        _md_table(by_type),
        "",
        "## Business impact",
        "",
        f"{int(impact.get('n_replicates', len(draws)))} Monte Carlo replicates resampled the product mix, "
        "drew coefficients from their estimated sampling distribution and simulated sales at the "
        f"current markups and under the recommended policy (`{opt_log.get('policy', 'uniform')}`).",
        "",
    ]
    if impact.get("n_replicates"):
        lines += [
            f"- Mean profit uplift: {impact['uplift_mean']:.2f} "
            f"(95% interval {impact['uplift_ci_low']:.2f} to {impact['uplift_ci_high']:.2f})",
            f"- Mean relative uplift: {impact['uplift_pct_mean']:.1f}% "
            f"(95% interval {impact['uplift_pct_ci_low']:.1f}% to {impact['uplift_pct_ci_high']:.1f}%)",
            f"- Probability that the recommendation beats current pricing: {impact['prob_positive_uplift']:.1%}",
            "",
        ]
    lines += [
        fig("impact_fig", "Distribution of simulated profit uplift"),
        "",
        "## Session information",
        "",
        _md_table(
            pd.DataFrame(
                [{"package": k, "version": v or "not installed"} for k, v in package_versions().items()]
            )
        ),
        "",
    ]

    out_path.write_text("\n".join(lines), encoding="utf-8")
    return out_path
