"""Profit-optimal markup from a fitted sale-probability model.

For a product with production cost c listed at markup m (percent), the expected
profit is

    P(sold | m) * c * m / 100  -  (1 - P(sold | m)) * c * s

where s is the share of cost lost on an unsold item (0 by default). A single
markup applied to a whole set of products maximises the mean expected profit
over the set. The maximiser is found with BFGS; failure to converge aborts.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Mapping, Optional, Tuple

import numpy as np
import pandas as pd
from scipy.optimize import minimize
from scipy.special import expit

from markup_pricing.config import (
    COST_COL,
    GROUP_COL,
    MARKUP_COL,
    MARKUP_START,
    OPTIMIZER_GTOL,
    TRUE_COEFFICIENTS,
    UNSOLD_COST_SHARE,
)
from markup_pricing.data.simulate import true_linear_predictor
from markup_pricing.models.logistic import FittedModel, linear_predictor

# Markup step (percentage points) for the derivative of the linear predictor.
_ETA_STEP = 1e-3


class MarkupOptimizationError(RuntimeError):
    def __init__(self, message: str, result=None):
        super().__init__(message)
        self.result = result


@dataclass(frozen=True)
class MarkupOptimum:
    markup_pct: float
    expected_profit: float
    gradient: float
    n_iterations: int
    n_evaluations: int
    converged: bool
    message: str
    start: float

    def as_dict(self) -> dict:
        return {
            "markup_pct": self.markup_pct,
            "expected_profit": self.expected_profit,
            "gradient": self.gradient,
            "n_iterations": self.n_iterations,
            "n_evaluations": self.n_evaluations,
            "converged": self.converged,
            "message": self.message,
            "start": self.start,
        }


EtaFunction = Callable[[np.ndarray], np.ndarray]


def fitted_eta(fit: FittedModel, frame: pd.DataFrame, params: Optional[np.ndarray] = None) -> EtaFunction:
    """Linear predictor of the fitted model as a function of the markup."""

    def eta(markup) -> np.ndarray:
        return linear_predictor(fit, frame.assign(**{MARKUP_COL: markup}), params)

    return eta


def true_eta(frame: pd.DataFrame, coefficients: Mapping[str, float] = TRUE_COEFFICIENTS) -> EtaFunction:
    def eta(markup) -> np.ndarray:
        return true_linear_predictor(frame.assign(**{MARKUP_COL: markup}), coefficients)

    return eta


def _profit_terms(
    eta: EtaFunction, cost: np.ndarray, markup, unsold_cost_share: float
) -> Tuple[np.ndarray, np.ndarray]:
    """Per-row expected profit and its derivative with respect to the markup."""

    m = np.broadcast_to(np.asarray(markup, dtype=float), cost.shape)
    p = expit(eta(m))
    d_eta = (eta(m + _ETA_STEP) - eta(m - _ETA_STEP)) / (2.0 * _ETA_STEP)
    d_p = p * (1.0 - p) * d_eta

    profit = p * cost * m / 100.0 - (1.0 - p) * cost * unsold_cost_share
    d_profit = cost * (d_p * m / 100.0 + p / 100.0 + d_p * unsold_cost_share)
    return profit, d_profit


def expected_profit(
    fit: FittedModel,
    frame: pd.DataFrame,
    markup_pct,
    *,
    params: Optional[np.ndarray] = None,
    unsold_cost_share: float = UNSOLD_COST_SHARE,
) -> np.ndarray:
    """Expected profit of every row of ``frame`` listed at ``markup_pct`` (scalar or per-row array)."""
    cost = frame[COST_COL].to_numpy(dtype=float)
    profit, _ = _profit_terms(fitted_eta(fit, frame, params), cost, markup_pct, unsold_cost_share)
    return profit


def portfolio_profit(
    fit: FittedModel,
    frame: pd.DataFrame,
    markup_pct: float,
    *,
    params: Optional[np.ndarray] = None,
    unsold_cost_share: float = UNSOLD_COST_SHARE,
) -> float:
    return float(
        np.mean(expected_profit(fit, frame, markup_pct, params=params, unsold_cost_share=unsold_cost_share))
    )


def maximize_profit(
    eta: EtaFunction,
    cost: np.ndarray,
    *,
    start: float = MARKUP_START,
    unsold_cost_share: float = UNSOLD_COST_SHARE,
    gtol: float = OPTIMIZER_GTOL,
    maxiter: Optional[int] = None,
) -> MarkupOptimum:
    cost = np.asarray(cost, dtype=float)
    if cost.size == 0:
        raise ValueError("Cannot optimise the markup of an empty set of products.")

    def negative_profit(x: np.ndarray) -> Tuple[float, np.ndarray]:
        profit, d_profit = _profit_terms(eta, cost, float(x[0]), unsold_cost_share)
        return -float(np.mean(profit)), np.array([-float(np.mean(d_profit))])

    options = {"gtol": gtol}
    if maxiter is not None:
        options["maxiter"] = int(maxiter)
    res = minimize(negative_profit, x0=np.array([float(start)]), jac=True, method="BFGS", options=options)
    if not res.success:
        raise MarkupOptimizationError(f"Markup optimisation did not converge: {res.message}", result=res)

    return MarkupOptimum(
        markup_pct=float(res.x[0]),
        expected_profit=-float(res.fun),
        gradient=-float(np.ravel(res.jac)[0]),
        n_iterations=int(res.nit),
        n_evaluations=int(res.nfev),
        converged=bool(res.success),
        message=str(res.message),
        start=float(start),
    )


def optimize_markup(
    fit: FittedModel,
    frame: pd.DataFrame,
    *,
    start: float = MARKUP_START,
    params: Optional[np.ndarray] = None,
    unsold_cost_share: float = UNSOLD_COST_SHARE,
    gtol: float = OPTIMIZER_GTOL,
    maxiter: Optional[int] = None,
) -> MarkupOptimum:
    """Single markup maximising the mean expected profit over ``frame``.

    Raises MarkupOptimizationError if BFGS reports failure.
    """
    return maximize_profit(
        fitted_eta(fit, frame, params),
        frame[COST_COL].to_numpy(dtype=float),
        start=start,
        unsold_cost_share=unsold_cost_share,
        gtol=gtol,
        maxiter=maxiter,
    )


def true_optimal_markup(
    frame: pd.DataFrame,
    *,
    coefficients: Mapping[str, float] = TRUE_COEFFICIENTS,
    start: float = MARKUP_START,
    unsold_cost_share: float = UNSOLD_COST_SHARE,
    maxiter: Optional[int] = None,
) -> MarkupOptimum:
    return maximize_profit(
        true_eta(frame, coefficients),
        frame[COST_COL].to_numpy(dtype=float),
        start=start,
        unsold_cost_share=unsold_cost_share,
        maxiter=maxiter,
    )


def optimize_markup_by_group(
    fit: FittedModel,
    frame: pd.DataFrame,
    *,
    group_col: str = GROUP_COL,
    start: float = MARKUP_START,
    unsold_cost_share: float = UNSOLD_COST_SHARE,
    coefficients: Optional[Mapping[str, float]] = None,
    maxiter: Optional[int] = None,
) -> pd.DataFrame:
    rows = []
    for g, gdf in frame.groupby(group_col, observed=True, sort=True):
        opt = optimize_markup(fit, gdf, start=start, unsold_cost_share=unsold_cost_share, maxiter=maxiter)
        current = expected_profit(fit, gdf, gdf[MARKUP_COL].to_numpy(dtype=float), unsold_cost_share=unsold_cost_share)
        row = {
            group_col: str(g),
            "n": int(len(gdf)),
            "current_markup_mean": float(gdf[MARKUP_COL].mean()),
            "current_expected_profit": float(np.mean(current)),
            "optimal_markup": opt.markup_pct,
            "optimal_expected_profit": opt.expected_profit,
            "iterations": opt.n_iterations,
        }
        if coefficients is not None:
            row["true_optimal_markup"] = true_optimal_markup(
                gdf,
                coefficients=coefficients,
                start=start,
                unsold_cost_share=unsold_cost_share,
                maxiter=maxiter,
            ).markup_pct
        rows.append(row)
    return pd.DataFrame(rows)


def profit_curve(
    fit: FittedModel,
    frame: pd.DataFrame,
    grid,
    *,
    unsold_cost_share: float = UNSOLD_COST_SHARE,
    coefficients: Optional[Mapping[str, float]] = None,
) -> pd.DataFrame:
    """Mean expected profit (fitted, and true when ``coefficients`` is given) on a markup grid."""
    grid = np.asarray(grid, dtype=float)
    cost = frame[COST_COL].to_numpy(dtype=float)
    eta_fit = fitted_eta(fit, frame)
    fitted = [float(np.mean(_profit_terms(eta_fit, cost, m, unsold_cost_share)[0])) for m in grid]
    out = pd.DataFrame({"markup_pct": grid, "expected_profit": fitted})
    if coefficients is not None:
        eta_true = true_eta(frame, coefficients)
        out["true_expected_profit"] = [
            float(np.mean(_profit_terms(eta_true, cost, m, unsold_cost_share)[0])) for m in grid
        ]
    return out
