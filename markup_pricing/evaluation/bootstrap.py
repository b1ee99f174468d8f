from __future__ import annotations

from typing import Dict, Iterable, Tuple

import numpy as np
import pandas as pd

from markup_pricing.evaluation.metrics import compute_binary_metrics

METRIC_NAMES = ("roc_auc", "pr_auc", "brier", "log_loss", "calibration_slope", "calibration_intercept")


def _safe_metric_values(y_true: np.ndarray, y_prob: np.ndarray) -> Dict[str, float]:
    y = np.asarray(y_true, dtype=int)
    out = {m: np.nan for m in METRIC_NAMES}
    # Ranking and calibration metrics need both classes in the resample.
    if y.size == 0 or np.unique(y).size < 2:
        return out
    out.update(compute_binary_metrics(y, y_prob))
    return out


def _stratified_bootstrap_indices(y_true: np.ndarray, rng: np.random.Generator) -> np.ndarray:
    y = np.asarray(y_true, dtype=int)
    idx_pos = np.where(y == 1)[0]
    idx_neg = np.where(y == 0)[0]

    if idx_pos.size == 0 or idx_neg.size == 0:
        return rng.integers(0, y.size, size=y.size, endpoint=False)

    s_pos = idx_pos[rng.integers(0, idx_pos.size, size=idx_pos.size, endpoint=False)]
    s_neg = idx_neg[rng.integers(0, idx_neg.size, size=idx_neg.size, endpoint=False)]
    s = np.concatenate([s_pos, s_neg])
    rng.shuffle(s)
    return s


def stratified_bootstrap_metric_draws(
    *,
    y_true: np.ndarray,
    y_prob: np.ndarray,
    n_boot: int,
    seed: int,
) -> pd.DataFrame:
    """Resample sold/unsold rows separately and recompute the fit metrics."""
    if n_boot <= 0:
        return pd.DataFrame(columns=["iter", *METRIC_NAMES])
    y = np.asarray(y_true, dtype=int)
    p = np.asarray(y_prob, dtype=float)
    rng = np.random.default_rng(seed)
    rows = []
    for i in range(n_boot):
        idx = _stratified_bootstrap_indices(y, rng)
        rows.append({"iter": i, **_safe_metric_values(y[idx], p[idx])})
    return pd.DataFrame(rows)


def summarize_bootstrap_ci(
    draws: pd.DataFrame,
    *,
    alpha: float = 0.05,
    metrics: Iterable[str] = METRIC_NAMES,
) -> Dict[str, Tuple[float, float]]:
    if draws.empty:
        return {m: (np.nan, np.nan) for m in metrics}
    lo = float(100.0 * (alpha / 2.0))
    hi = float(100.0 * (1.0 - alpha / 2.0))
    out: Dict[str, Tuple[float, float]] = {}
    for m in metrics:
        vals = draws[m].dropna().to_numpy(dtype=float)
        if vals.size == 0:
            out[m] = (np.nan, np.nan)
        else:
            out[m] = (float(np.percentile(vals, lo)), float(np.percentile(vals, hi)))
    return out
