"""Confidence intervals for logistic regression coefficients.

Profile-likelihood intervals invert the likelihood-ratio test: for coefficient
j the interval holds every value b for which the deviance of the model refitted
with beta_j fixed at b (entered as an offset) exceeds the minimum deviance by
less than the chi-square(1) quantile. The signed square root of that deviance
increase is close to linear in b, so each bound is found by bracketing around
the Wald interval and solving with Brent's method.
"""

from __future__ import annotations

from typing import Optional

import numpy as np
import pandas as pd
import statsmodels.api as sm
from scipy.optimize import brentq
from scipy.special import expit
from scipy.stats import norm


def _z_quantile(level: float) -> float:
    if not 0.0 < float(level) < 1.0:
        raise ValueError(f"level must be in (0, 1); got {level}.")
    return float(norm.ppf(0.5 + float(level) / 2.0))


def wald_confidence_intervals(fit, *, level: float = 0.95) -> pd.DataFrame:
    ci = fit.result.conf_int(alpha=1.0 - float(level))
    ci = np.asarray(ci, dtype=float)
    return pd.DataFrame({"term": fit.term_names, "ci_low": ci[:, 0], "ci_high": ci[:, 1]})


def _fixed_coefficient_deviance(fit, j: int, value: float, start_params: Optional[np.ndarray]) -> float:
    X = fit.exog.to_numpy(dtype=float)
    y = fit.endog
    offset = float(value) * X[:, j]
    others = np.delete(X, j, axis=1)
    family = sm.families.Binomial()
    if others.shape[1] == 0:
        return float(family.deviance(y, expit(offset)))
    res = sm.GLM(y, others, family=family, offset=offset).fit(start_params=start_params, maxiter=100)
    return float(res.deviance)


def _profile_bound(fit, j: int, z: float, direction: int, max_expansions: int) -> float:
    params = fit.params.to_numpy(dtype=float)
    estimate = float(params[j])
    se = float(np.asarray(fit.result.bse, dtype=float)[j])
    deviance_hat = float(fit.result.deviance)
    start = np.delete(params, j)

    if not np.isfinite(se) or se <= 0:
        return np.nan

    def signed_root(b: float) -> float:
        increase = max(_fixed_coefficient_deviance(fit, j, b, start) - deviance_hat, 0.0)
        return float(np.sign(b - estimate) * np.sqrt(increase))

    def objective(b: float) -> float:
        return signed_root(b) - direction * z

    inner = estimate
    step = z * se
    for _ in range(max_expansions):
        outer = estimate + direction * step
        if direction * objective(outer) > 0:
            low, high = sorted((inner, outer))
            return float(brentq(objective, low, high, xtol=1e-10 * max(1.0, abs(estimate))))
        inner = outer
        step *= 2.0
    return np.nan


def profile_confidence_intervals(fit, *, level: float = 0.95, max_expansions: int = 8) -> pd.DataFrame:
    """Profile-likelihood interval for every coefficient of ``fit``.

    A bound is NaN when the deviance does not rise far enough within
    ``max_expansions`` doublings of the Wald half-width (e.g. separation).
    """

    z = _z_quantile(level)
    rows = []
    for j, term in enumerate(fit.term_names):
        rows.append(
            {
                "term": term,
                "ci_low": _profile_bound(fit, j, z, -1, max_expansions),
                "ci_high": _profile_bound(fit, j, z, +1, max_expansions),
            }
        )
    return pd.DataFrame(rows)
