from __future__ import annotations

from typing import Dict, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy.special import expit

from markup_pricing.config import (
    COST_RANGE,
    COST_SHIFT,
    MARKUP_RANGE,
    PRODUCT_TYPE_WEIGHTS,
    PRODUCT_TYPES,
    TRUE_COEFFICIENTS,
)
from markup_pricing.data.coding import as_product_type


SIMULATED_COLUMNS = [
    "product_id",
    "product_type",
    "production_cost",
    "markup_pct",
    "price",
    "sold",
    "p_true",
]


def _check_range(name: str, bounds: Tuple[float, float]) -> Tuple[float, float]:
    low, high = float(bounds[0]), float(bounds[1])
    if not low < high:
        raise ValueError(f"{name} must satisfy low < high; got {bounds}.")
    return low, high


def true_linear_predictor(frame: pd.DataFrame, coefficients: Mapping[str, float]) -> np.ndarray:
    """Linear predictor of the data-generating model.

    ``coefficients`` is keyed by design-matrix term names (``Intercept``,
    ``markup_pct``, ``production_cost``, ``product_type[T.<level>]``); terms that
    are absent contribute zero.
    """

    eta = np.full(len(frame), float(coefficients.get("Intercept", 0.0)))
    eta = eta + float(coefficients.get("markup_pct", 0.0)) * frame["markup_pct"].to_numpy(dtype=float)
    eta = eta + float(coefficients.get("production_cost", 0.0)) * frame["production_cost"].to_numpy(dtype=float)

    types = frame["product_type"].astype(str).to_numpy()
    for level in PRODUCT_TYPES[1:]:
        eta = eta + float(coefficients.get(f"product_type[T.{level}]", 0.0)) * (types == level)
    return eta


def true_sale_probability(frame: pd.DataFrame, coefficients: Mapping[str, float] = TRUE_COEFFICIENTS) -> np.ndarray:
    return expit(true_linear_predictor(frame, coefficients))


def simulate_sales(
    n: int,
    seed: int,
    *,
    coefficients: Mapping[str, float] = TRUE_COEFFICIENTS,
    type_weights: Sequence[float] = PRODUCT_TYPE_WEIGHTS,
    cost_range: Tuple[float, float] = COST_RANGE,
    cost_shift: Optional[Dict[str, float]] = None,
    markup_range: Tuple[float, float] = MARKUP_RANGE,
) -> pd.DataFrame:
    """Simulate product listings and whether each one sold.

    Each row is one listed product with a product type, a production cost and a
    markup percentage. The sale outcome is a Bernoulli draw from the logistic
    model defined by ``coefficients``. Output is deterministic for a given seed.
    """

    if int(n) <= 0:
        raise ValueError(f"n must be a positive integer; got {n}.")
    weights = np.asarray(type_weights, dtype=float)
    if weights.size != len(PRODUCT_TYPES) or np.any(weights < 0) or weights.sum() <= 0:
        raise ValueError(f"type_weights must be {len(PRODUCT_TYPES)} non-negative values with a positive sum.")
    weights = weights / weights.sum()

    cost_low, cost_high = _check_range("cost_range", cost_range)
    markup_low, markup_high = _check_range("markup_range", markup_range)
    shift = dict(COST_SHIFT if cost_shift is None else cost_shift)
    unknown = sorted(set(shift) - set(PRODUCT_TYPES))
    if unknown:
        raise ValueError(f"Unknown product types in cost_shift: {unknown}")

    rng = np.random.default_rng(seed)
    n = int(n)
    product_type = rng.choice(np.asarray(PRODUCT_TYPES, dtype=object), size=n, p=weights)
    base_cost = rng.uniform(cost_low, cost_high, size=n)
    production_cost = base_cost + np.array([shift.get(t, 0.0) for t in product_type], dtype=float)
    markup_pct = rng.uniform(markup_low, markup_high, size=n)

    df = pd.DataFrame(
        {
            "product_id": np.arange(n, dtype=np.int64),
            "product_type": as_product_type(pd.Series(product_type)),
            "production_cost": np.round(production_cost, 2),
            "markup_pct": np.round(markup_pct, 2),
        }
    )
    df["price"] = np.round(df["production_cost"] * (1.0 + df["markup_pct"] / 100.0), 2)

    p_true = true_sale_probability(df, coefficients)
    df["sold"] = (rng.uniform(size=n) < p_true).astype(np.int64)
    df["p_true"] = p_true
    return df[SIMULATED_COLUMNS]
