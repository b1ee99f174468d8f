from pathlib import Path
from typing import Optional

import pandas as pd

from markup_pricing.config import COST_COL, GROUP_COL, MARKUP_COL, TARGET_COL
from markup_pricing.data.coding import as_product_type
from markup_pricing.data.validate import assert_binary_outcome, assert_required_columns

REQUIRED_COLUMNS = [TARGET_COL, MARKUP_COL, COST_COL, GROUP_COL]


def load_sales(path: Path, nrows: Optional[int] = None) -> pd.DataFrame:
    """Read the simulated sales table and restore the analysis dtypes."""
    df = pd.read_parquet(path)
    assert_required_columns(df, REQUIRED_COLUMNS)
    if nrows is not None:
        df = df.head(nrows).copy()
    df[GROUP_COL] = as_product_type(df[GROUP_COL])
    assert_binary_outcome(df[TARGET_COL])
    df[TARGET_COL] = df[TARGET_COL].astype(int)
    return df.reset_index(drop=True)
