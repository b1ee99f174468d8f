import numpy as np
import pandas as pd
import pytest

from markup_pricing.config import CANDIDATE_FORMULAS
from markup_pricing.data.simulate import simulate_sales
from markup_pricing.evaluation.bootstrap import (
    METRIC_NAMES,
    stratified_bootstrap_metric_draws,
    summarize_bootstrap_ci,
)
from markup_pricing.evaluation.influence import (
    dfbetas_frame,
    dfbetas_threshold,
    influence_summary,
    influential_observations,
)
from markup_pricing.evaluation.metrics import calibration_curve_df, compute_binary_metrics
from markup_pricing.evaluation.residuals import binned_residual_summary, binned_residuals, default_bin_count
from markup_pricing.models.logistic import fit_logistic


@pytest.fixture(scope="module")
def fit():
    df = simulate_sales(3000, seed=7)
    return fit_logistic(CANDIDATE_FORMULAS["markup_cost_type"], df, name="markup_cost_type")


@pytest.mark.parametrize("n, expected", [(5000, 70), (100, 10), (99, 10), (11, 10), (10, 5), (3, 1), (1, 1)])
def test_default_bin_count(n, expected):
    assert default_bin_count(n) == expected


def test_binned_residuals_of_correct_model_mostly_inside_band(fit):
    p = fit.result.fittedvalues.to_numpy(dtype=float)
    table = binned_residuals(p, fit.endog, p)
    assert len(table) == default_bin_count(3000)
    assert table["n"].sum() == 3000
    assert table["x_mean"].is_monotonic_increasing
    summary = binned_residual_summary(table)
    assert summary["n_bins"] == len(table)
    assert summary["share_inside"] >= 0.8


def test_binned_residuals_flag_a_misspecified_model():
    # Outcome depends on x**2 but the "fit" ignores it.
    rng = np.random.default_rng(0)
    x = rng.uniform(-3, 3, size=4000)
    y = (rng.uniform(size=x.size) < 1 / (1 + np.exp(-(x**2 - 2)))).astype(int)
    p = np.full(x.size, y.mean())
    table = binned_residuals(x, y, p, n_bins=20)
    assert binned_residual_summary(table)["n_outside"] >= 5


def test_binned_residuals_input_checks():
    with pytest.raises(ValueError):
        binned_residuals([0.1, 0.2], [0, 1, 1], [0.1, 0.2, 0.3])
    with pytest.raises(ValueError):
        binned_residuals([], [], [])
    with pytest.raises(ValueError):
        binned_residuals([0.1, 0.2], [0, 1], [0.1, 0.2], n_bins=0)


def test_dfbetas_shape_and_threshold(fit):
    d = dfbetas_frame(fit)
    assert d.shape == (3000, fit.n_params)
    assert d.columns.tolist() == fit.term_names
    assert d.index.name == "observation"
    assert np.isfinite(d.to_numpy()).all()

    threshold = dfbetas_threshold(len(d))
    assert threshold == pytest.approx(2.0 / np.sqrt(3000))
    with pytest.raises(ValueError):
        dfbetas_threshold(0)

    summary = influence_summary(d, threshold)
    assert summary["term"].tolist() == fit.term_names
    flagged = influential_observations(d, threshold)
    assert (flagged["abs_dfbetas"] > threshold).all()
    assert len(flagged) == int(summary["n_above_threshold"].sum())
    # No single simulated sale should dominate any coefficient.
    assert (summary["max_abs_dfbetas"] < 1.0).all()


def test_influence_summary_locates_the_largest_value():
    d = pd.DataFrame({"a": [0.1, -0.9, 0.2], "b": [0.0, 0.0, 0.5]}).rename_axis("observation")
    summary = influence_summary(d, threshold=0.3).set_index("term")
    assert summary.loc["a", "observation_of_max"] == 1
    assert summary.loc["a", "n_above_threshold"] == 1
    assert summary.loc["b", "max_abs_dfbetas"] == pytest.approx(0.5)
    flagged = influential_observations(d, 0.3)
    assert flagged[["observation", "term"]].values.tolist() == [[1, "a"], [2, "b"]]


def test_performance_metrics_and_bootstrap(fit):
    p = fit.result.fittedvalues.to_numpy(dtype=float)
    metrics = compute_binary_metrics(fit.endog, p)
    assert set(metrics) == set(METRIC_NAMES)
    assert 0.6 < metrics["roc_auc"] < 1.0
    assert 0.0 < metrics["brier"] < 0.25
    # In-sample maximum likelihood fits are calibrated by construction.
    assert metrics["calibration_slope"] == pytest.approx(1.0, abs=0.05)
    assert metrics["calibration_intercept"] == pytest.approx(0.0, abs=0.05)

    draws = stratified_bootstrap_metric_draws(y_true=fit.endog, y_prob=p, n_boot=25, seed=1)
    assert len(draws) == 25
    again = stratified_bootstrap_metric_draws(y_true=fit.endog, y_prob=p, n_boot=25, seed=1)
    pd.testing.assert_frame_equal(draws, again)
    ci = summarize_bootstrap_ci(draws)
    low, high = ci["roc_auc"]
    assert low <= high

    curve = calibration_curve_df(fit.endog, p, n_bins=10)
    assert list(curve.columns) == ["mean_predicted", "fraction_positive"]
    assert np.abs(curve["mean_predicted"] - curve["fraction_positive"]).max() < 0.12
