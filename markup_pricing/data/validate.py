from typing import Iterable

import pandas as pd


def assert_required_columns(df, required: Iterable[str]) -> None:
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise ValueError(f"Missing required columns: {missing}")


def assert_binary_outcome(y: pd.Series) -> None:
    if y.isna().any():
        raise ValueError(f"Outcome column {y.name!r} contains missing values.")
    vals = set(y.unique().tolist())
    if not vals.issubset({0, 1}):
        raise ValueError(f"Outcome column {y.name!r} must be binary {{0,1}}; observed values: {sorted(vals)}")
