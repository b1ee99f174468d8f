from __future__ import annotations

from typing import Iterable, Sequence

import numpy as np
import pandas as pd

from markup_pricing.config import PRODUCT_TYPES


def as_product_type(series: pd.Series, *, levels: Sequence[str] = PRODUCT_TYPES) -> pd.Series:
    """Convert a Series of product-type labels to a categorical with fixed levels.

    The first level is the regression reference category, so the level order is
    kept even when some levels are not observed. Missing values stay missing.

    Raises ValueError if labels outside ``levels`` are observed.
    """

    s = series.astype("string")
    unexpected = sorted(set(s.dropna().unique().tolist()) - set(levels))
    if unexpected:
        raise ValueError(f"Unexpected product types: {unexpected}; expected one of {list(levels)}.")
    return pd.Series(pd.Categorical(s.astype(object), categories=list(levels)), index=series.index, name=series.name)


def _sale_summary(gdf: pd.DataFrame, target_col: str) -> dict:
    n = int(len(gdf))
    n_sold = int(gdf[target_col].sum())
    return {
        "n": n,
        "n_sold": n_sold,
        "sale_rate": round(n_sold / n, 6) if n else np.nan,
        "markup_mean": round(float(gdf["markup_pct"].mean()), 6) if n else np.nan,
        "cost_mean": round(float(gdf["production_cost"].mean()), 6) if n else np.nan,
    }


def sale_rate_by_group(df: pd.DataFrame, group_col: str, *, target_col: str = "sold") -> pd.DataFrame:
    """Per-group observation counts, sale rate and mean markup/cost, in category order."""

    rows = []
    for g, gdf in df.groupby(group_col, observed=False, sort=True):
        rows.append({group_col: str(g), **_sale_summary(gdf, target_col)})
    return pd.DataFrame(rows)


def sale_rate_by_markup_band(
    df: pd.DataFrame, bands: Iterable[float], *, target_col: str = "sold"
) -> pd.DataFrame:
    edges = sorted(float(b) for b in bands)
    if len(edges) < 2:
        raise ValueError("bands must contain at least two edges.")
    labels = [f"{lo:g}-{hi:g}" for lo, hi in zip(edges[:-1], edges[1:])]
    band = pd.cut(df["markup_pct"], bins=edges, labels=labels, include_lowest=True)

    rows = []
    for label in labels:
        gdf = df.loc[band == label]
        rows.append(
            {
                "markup_band": label,
                "band_low": edges[labels.index(label)],
                "band_high": edges[labels.index(label) + 1],
                **_sale_summary(gdf, target_col),
            }
        )
    return pd.DataFrame(rows)
