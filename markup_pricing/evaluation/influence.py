from __future__ import annotations

import numpy as np
import pandas as pd

from markup_pricing.config import DFBETAS_THRESHOLD_SCALE


def dfbetas_frame(fit) -> pd.DataFrame:
    """DFBETAS for every observation (rows) and coefficient (columns).

    Uses the one-step approximation of the change in each coefficient when an
    observation is dropped, scaled by the coefficient's standard error.
    """

    influence = fit.result.get_influence(observed=False)
    values = np.asarray(influence.dfbetas, dtype=float)
    return pd.DataFrame(values, columns=fit.term_names, index=pd.RangeIndex(values.shape[0], name="observation"))


def dfbetas_threshold(n: int, scale: float = DFBETAS_THRESHOLD_SCALE) -> float:
    if int(n) <= 0:
        raise ValueError(f"n must be positive; got {n}.")
    return float(scale) / float(np.sqrt(int(n)))


def influential_observations(dfbetas: pd.DataFrame, threshold: float) -> pd.DataFrame:
    """Long table of (observation, term, dfbetas) with |DFBETAS| above threshold."""

    long = dfbetas.reset_index().melt(id_vars="observation", var_name="term", value_name="dfbetas")
    out = long.loc[long["dfbetas"].abs() > float(threshold)].copy()
    out["abs_dfbetas"] = out["dfbetas"].abs()
    return out.sort_values(["term", "abs_dfbetas"], ascending=[True, False], kind="mergesort").reset_index(drop=True)


def influence_summary(dfbetas: pd.DataFrame, threshold: float) -> pd.DataFrame:
    n = int(len(dfbetas))
    rows = []
    for term in dfbetas.columns:
        a = dfbetas[term].abs()
        n_above = int((a > float(threshold)).sum())
        rows.append(
            {
                "term": term,
                "max_abs_dfbetas": float(a.max()) if n else np.nan,
                "observation_of_max": int(a.idxmax()) if n else -1,
                "threshold": float(threshold),
                "n_above_threshold": n_above,
                "share_above_threshold": round(n_above / n, 6) if n else np.nan,
            }
        )
    return pd.DataFrame(rows)
