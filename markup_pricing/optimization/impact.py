from __future__ import annotations

from typing import Dict, List, Mapping, Union

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from scipy.special import expit

from markup_pricing.config import (
    COST_COL,
    GROUP_COL,
    MARKUP_COL,
    MC_N_JOBS,
    MC_POLICY,
    MC_REPLICATES,
    MC_SEED,
    UNSOLD_COST_SHARE,
)
from markup_pricing.models.logistic import FittedModel, design_matrix

IMPACT_COLUMNS = [
    "replicate",
    "n_products",
    "baseline_sold",
    "optimized_sold",
    "baseline_profit",
    "optimized_profit",
    "uplift",
    "uplift_pct",
]


def recommended_markups(
    frame: pd.DataFrame, recommended: Union[float, Mapping[str, float]], policy: str = MC_POLICY
) -> np.ndarray:
    """Per-row markup under a pricing policy.

    ``uniform`` prices every product at one markup; ``by_type`` looks up the
    markup of each row's product type.
    """
    if policy == "uniform":
        if isinstance(recommended, Mapping):
            raise ValueError("policy='uniform' needs a single markup, not a mapping.")
        return np.full(len(frame), float(recommended))
    if policy == "by_type":
        if not isinstance(recommended, Mapping):
            raise ValueError("policy='by_type' needs a mapping of product type -> markup.")
        types = frame[GROUP_COL].astype(str)
        missing = sorted(set(types.unique()) - set(recommended))
        if missing:
            raise ValueError(f"No recommended markup for product types: {missing}")
        return types.map({k: float(v) for k, v in recommended.items()}).to_numpy(dtype=float)
    raise ValueError(f"Unknown pricing policy: {policy}")


def _realized_profit(sold: np.ndarray, cost: np.ndarray, markup: np.ndarray, unsold_cost_share: float) -> float:
    return float(np.sum(sold * cost * markup / 100.0 - (1 - sold) * cost * unsold_cost_share))


def _run_replicate(
    replicate: int,
    seed_seq: np.random.SeedSequence,
    params: np.ndarray,
    cov: np.ndarray,
    X_current: np.ndarray,
    X_target: np.ndarray,
    cost: np.ndarray,
    current: np.ndarray,
    target: np.ndarray,
    unsold_cost_share: float,
) -> Dict[str, float]:
    rng = np.random.default_rng(seed_seq)
    n = cost.size

    # Product mix uncertainty: bootstrap the listed products.
    idx = rng.integers(0, n, size=n)
    # Parameter uncertainty: draw coefficients from the asymptotic normal of the estimates.
    beta = rng.multivariate_normal(params, cov)

    p_base = expit(X_current[idx] @ beta)
    p_opt = expit(X_target[idx] @ beta)
    sold_base = (rng.uniform(size=n) < p_base).astype(int)
    sold_opt = (rng.uniform(size=n) < p_opt).astype(int)

    baseline = _realized_profit(sold_base, cost[idx], current[idx], unsold_cost_share)
    optimized = _realized_profit(sold_opt, cost[idx], target[idx], unsold_cost_share)
    uplift = optimized - baseline
    return {
        "replicate": replicate,
        "n_products": n,
        "baseline_sold": int(sold_base.sum()),
        "optimized_sold": int(sold_opt.sum()),
        "baseline_profit": baseline,
        "optimized_profit": optimized,
        "uplift": uplift,
        # A share of a non-positive baseline has no meaningful sign.
        "uplift_pct": 100.0 * uplift / baseline if baseline > 0 else np.nan,
    }


def simulate_business_impact(
    fit: FittedModel,
    frame: pd.DataFrame,
    recommended: Union[float, Mapping[str, float]],
    *,
    n_replicates: int = MC_REPLICATES,
    seed: int = MC_SEED,
    n_jobs: int = MC_N_JOBS,
    policy: str = MC_POLICY,
    unsold_cost_share: float = UNSOLD_COST_SHARE,
) -> pd.DataFrame:
    """Monte Carlo comparison of current markups against the recommended policy.

    Every replicate resamples the products, draws a coefficient vector and
    simulates which items sell under both pricings. Replicates run in parallel;
    each gets its own child seed, so results do not depend on ``n_jobs``.
    """
    if int(n_replicates) <= 0:
        return pd.DataFrame(columns=IMPACT_COLUMNS)
    if len(frame) == 0:
        raise ValueError("Cannot simulate business impact for an empty set of products.")

    target = recommended_markups(frame, recommended, policy)
    # Workers get plain arrays; patsy design info does not pickle.
    params = fit.params.to_numpy(dtype=float)
    cov = fit.cov_params.to_numpy(dtype=float)
    X_current = design_matrix(fit, frame).to_numpy(dtype=float)
    X_target = design_matrix(fit, frame.assign(**{MARKUP_COL: target})).to_numpy(dtype=float)
    cost = frame[COST_COL].to_numpy(dtype=float)
    current = frame[MARKUP_COL].to_numpy(dtype=float)

    children: List[np.random.SeedSequence] = np.random.SeedSequence(seed).spawn(int(n_replicates))
    rows = Parallel(n_jobs=n_jobs)(
        delayed(_run_replicate)(
            i, ss, params, cov, X_current, X_target, cost, current, target, float(unsold_cost_share)
        )
        for i, ss in enumerate(children)
    )
    return pd.DataFrame(rows, columns=IMPACT_COLUMNS)


def summarize_impact(draws: pd.DataFrame, *, alpha: float = 0.05) -> Dict[str, float]:
    if draws.empty:
        return {"n_replicates": 0}
    lo = 100.0 * (alpha / 2.0)
    hi = 100.0 * (1.0 - alpha / 2.0)
    out: Dict[str, float] = {"n_replicates": int(len(draws))}
    for col in ["baseline_profit", "optimized_profit", "uplift", "uplift_pct"]:
        vals = draws[col].dropna().to_numpy(dtype=float)
        out[f"{col}_mean"] = float(np.mean(vals)) if vals.size else np.nan
        out[f"{col}_median"] = float(np.median(vals)) if vals.size else np.nan
        out[f"{col}_ci_low"] = float(np.percentile(vals, lo)) if vals.size else np.nan
        out[f"{col}_ci_high"] = float(np.percentile(vals, hi)) if vals.size else np.nan
    out["prob_positive_uplift"] = float((draws["uplift"] > 0).mean())
    return out
