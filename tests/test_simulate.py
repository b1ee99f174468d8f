import numpy as np
import pandas as pd
import pytest

from markup_pricing.config import PRODUCT_TYPES, TRUE_COEFFICIENTS
from markup_pricing.data.coding import as_product_type, sale_rate_by_group, sale_rate_by_markup_band
from markup_pricing.data.simulate import SIMULATED_COLUMNS, simulate_sales, true_sale_probability
from markup_pricing.data.validate import assert_binary_outcome, assert_required_columns


def test_simulation_is_deterministic_per_seed():
    a = simulate_sales(500, seed=11)
    b = simulate_sales(500, seed=11)
    c = simulate_sales(500, seed=12)
    pd.testing.assert_frame_equal(a, b)
    assert not a["sold"].equals(c["sold"]) or not a["markup_pct"].equals(c["markup_pct"])


def test_simulated_columns_and_ranges():
    df = simulate_sales(2000, seed=3)
    assert df.columns.tolist() == SIMULATED_COLUMNS
    assert len(df) == 2000
    assert set(df["sold"].unique().tolist()) <= {0, 1}
    assert df["p_true"].between(0, 1, inclusive="neither").all()
    assert df["markup_pct"].between(5, 100).all()
    assert (df["production_cost"] > 0).all()
    assert list(df["product_type"].cat.categories) == PRODUCT_TYPES
    np.testing.assert_allclose(df["price"], df["production_cost"] * (1 + df["markup_pct"] / 100), atol=0.01)


def test_sale_probability_decreases_with_markup():
    frame = pd.DataFrame(
        {
            "product_type": as_product_type(pd.Series(["Clothing"] * 3)),
            "production_cost": [20.0, 20.0, 20.0],
            "markup_pct": [10.0, 50.0, 90.0],
        }
    )
    p = true_sale_probability(frame, TRUE_COEFFICIENTS)
    assert p[0] > p[1] > p[2]
    eta0 = 3.0 + 0.5 - 0.06 * 10.0 - 0.02 * 20.0
    assert p[0] == pytest.approx(1.0 / (1.0 + np.exp(-eta0)))


def test_simulation_rejects_bad_inputs():
    with pytest.raises(ValueError):
        simulate_sales(0, seed=1)
    with pytest.raises(ValueError):
        simulate_sales(10, seed=1, markup_range=(50.0, 10.0))
    with pytest.raises(ValueError):
        simulate_sales(10, seed=1, cost_shift={"Toys": 1.0})


def test_product_type_coding_keeps_unobserved_levels():
    s = as_product_type(pd.Series(["Home", "Home", None]))
    assert list(s.cat.categories) == PRODUCT_TYPES
    assert s.isna().sum() == 1
    with pytest.raises(ValueError, match="Unexpected product types"):
        as_product_type(pd.Series(["Home", "Toys"]))


def test_sale_rate_tables():
    df = simulate_sales(1000, seed=5)
    by_type = sale_rate_by_group(df, "product_type")
    assert by_type["product_type"].tolist() == PRODUCT_TYPES
    assert by_type["n"].sum() == 1000
    assert by_type["n_sold"].sum() == df["sold"].sum()

    by_band = sale_rate_by_markup_band(df, [0, 50, 100])
    assert by_band["markup_band"].tolist() == ["0-50", "50-100"]
    assert by_band["n"].sum() == 1000
    # Higher markups sell less often.
    assert by_band["sale_rate"].iloc[0] > by_band["sale_rate"].iloc[1]


def test_validation_helpers():
    df = pd.DataFrame({"sold": [0, 1, 1]})
    assert_required_columns(df, ["sold"])
    assert_binary_outcome(df["sold"])
    with pytest.raises(ValueError, match="Missing required columns"):
        assert_required_columns(df, ["sold", "markup_pct"])
    with pytest.raises(ValueError, match="binary"):
        assert_binary_outcome(pd.Series([0, 2], name="sold"))
    with pytest.raises(ValueError, match="missing"):
        assert_binary_outcome(pd.Series([0, None], name="sold"))


def test_markup_band_labels_keep_fractional_edges():
    df = pd.DataFrame({"markup_pct": [0.1, 0.4, 0.5, 0.9], "production_cost": 10.0, "sold": [1, 1, 0, 0]})
    table = sale_rate_by_markup_band(df, [0, 0.3, 0.6, 1])
    assert table["markup_band"].tolist() == ["0-0.3", "0.3-0.6", "0.6-1"]
    assert table["n"].tolist() == [1, 2, 1]
