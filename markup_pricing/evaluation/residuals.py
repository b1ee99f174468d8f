from __future__ import annotations

from typing import Dict, Optional

import numpy as np
import pandas as pd


def default_bin_count(n: int) -> int:
    """Rule-of-thumb number of bins for a binned residual plot."""
    n = int(n)
    if n >= 100:
        return int(np.floor(np.sqrt(n)))
    if n > 10:
        return 10
    return max(1, n // 2)


def binned_residuals(x, y, p, *, n_bins: Optional[int] = None) -> pd.DataFrame:
    """Average response residuals (y - p) within quantile bins of ``x``.

    ``x`` is usually the fitted probability but may be any continuous
    covariate. Each bin reports the mean residual and a +/- 2 standard error
    band; for a well specified model about 95% of bin means fall inside it.
    """

    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    p = np.asarray(p, dtype=float)
    if not (x.size == y.size == p.size):
        raise ValueError("x, y and p must have the same length.")
    if x.size == 0:
        raise ValueError("Cannot bin an empty set of residuals.")

    n_bins = default_bin_count(x.size) if n_bins is None else int(n_bins)
    if n_bins <= 0:
        raise ValueError(f"n_bins must be positive; got {n_bins}.")

    codes = pd.qcut(pd.Series(x).rank(method="first"), q=min(n_bins, x.size), labels=False)
    frame = pd.DataFrame({"bin": codes.to_numpy(dtype=int), "x": x, "residual": y - p})

    rows = []
    for b, g in frame.groupby("bin", sort=True):
        n = int(len(g))
        sd = float(g["residual"].std(ddof=1)) if n > 1 else np.nan
        bound = 2.0 * sd / np.sqrt(n) if n > 1 else np.nan
        mean_resid = float(g["residual"].mean())
        rows.append(
            {
                "bin": int(b) + 1,
                "n": n,
                "x_mean": float(g["x"].mean()),
                "x_min": float(g["x"].min()),
                "x_max": float(g["x"].max()),
                "residual_mean": mean_resid,
                "residual_sd": sd,
                "bound": bound,
                "outside": bool(np.isfinite(bound) and abs(mean_resid) > bound),
            }
        )
    return pd.DataFrame(rows)


def binned_residual_summary(table: pd.DataFrame) -> Dict[str, float]:
    n_bins = int(len(table))
    n_outside = int(table["outside"].sum()) if n_bins else 0
    return {
        "n_bins": n_bins,
        "n_outside": n_outside,
        "share_inside": round(1.0 - n_outside / n_bins, 6) if n_bins else np.nan,
    }
