import numpy as np
import pandas as pd
import patsy
import pytest

from markup_pricing.config import CANDIDATE_FORMULAS, SIMULATION_SEED, TRUE_COEFFICIENTS
from markup_pricing.data.simulate import simulate_sales
from markup_pricing.models.logistic import (
    coefficient_table,
    compare_models_bic,
    fit_candidates,
    fit_logistic,
    predict_probability,
    select_by_bic,
)
from markup_pricing.models.profile import profile_confidence_intervals, wald_confidence_intervals


@pytest.fixture(scope="module")
def sales() -> pd.DataFrame:
    return simulate_sales(5000, seed=SIMULATION_SEED)


@pytest.fixture(scope="module")
def candidates(sales):
    return fit_candidates(CANDIDATE_FORMULAS, sales)


def test_bic_selects_the_generating_model(candidates):
    table = compare_models_bic(candidates.values())
    assert table["bic"].is_monotonic_increasing
    assert table["delta_bic"].iloc[0] == 0.0
    assert table["selected"].sum() == 1
    assert table.loc[0, "model"] == "markup_cost_type"
    assert select_by_bic(candidates).name == "markup_cost_type"


def test_bic_matches_likelihood_definition(candidates):
    fit = candidates["markup_only"]
    table = compare_models_bic([fit])
    expected = -2.0 * fit.result.llf + 2 * np.log(5000)
    assert table.loc[0, "bic"] == pytest.approx(expected)
    assert table.loc[0, "n_params"] == 2


def test_estimates_recover_true_coefficients(candidates):
    fit = candidates["markup_cost_type"]
    coefs = coefficient_table(fit, method="wald", truth=TRUE_COEFFICIENTS)
    assert set(coefs["term"]) == set(TRUE_COEFFICIENTS)
    z = (coefs["estimate"] - coefs["true_value"]).abs() / coefs["std_error"]
    assert (z < 4.0).all()
    assert coefs.loc[coefs["term"] == "markup_pct", "estimate"].iloc[0] < 0


def test_profile_intervals_are_close_to_wald(candidates):
    fit = candidates["markup_cost_type"]
    prof = profile_confidence_intervals(fit, level=0.95)
    wald = wald_confidence_intervals(fit, level=0.95)
    se = np.asarray(fit.result.bse, dtype=float)
    est = fit.params.to_numpy(dtype=float)

    assert prof["term"].tolist() == fit.term_names
    assert prof[["ci_low", "ci_high"]].notna().all().all()
    assert (prof["ci_low"].to_numpy() < est).all() and (est < prof["ci_high"].to_numpy()).all()
    assert np.all(np.abs(prof["ci_low"].to_numpy() - wald["ci_low"].to_numpy()) < 0.2 * se)
    assert np.all(np.abs(prof["ci_high"].to_numpy() - wald["ci_high"].to_numpy()) < 0.2 * se)


def test_coefficient_table_coverage_flags(candidates):
    fit = candidates["markup_x_type"]
    coefs = coefficient_table(fit, method="profile", truth=TRUE_COEFFICIENTS)
    # Interaction terms are absent from the generating model.
    interactions = coefs.loc[coefs["term"].str.contains(":"), "true_value"]
    assert len(interactions) == 2
    assert (interactions == 0.0).all()
    expected = (coefs["ci_low"] <= coefs["true_value"]) & (coefs["true_value"] <= coefs["ci_high"])
    assert coefs["covers_truth"].tolist() == expected.tolist()
    np.testing.assert_allclose(coefs["odds_ratio"], np.exp(coefs["estimate"]))


def test_unknown_interval_method_is_rejected(candidates):
    with pytest.raises(ValueError, match="Unknown confidence interval method"):
        coefficient_table(candidates["markup_only"], method="bootstrap")


def test_prediction_uses_stored_coding(sales, candidates):
    fit = candidates["markup_cost_type"]
    # A frame holding a single product type still gets the full dummy coding.
    home = sales.loc[sales["product_type"] == "Home"].head(20)
    p = predict_probability(fit, home)
    np.testing.assert_allclose(p, fit.result.fittedvalues.to_numpy()[home.index.to_numpy()], rtol=1e-10)
    higher = predict_probability(fit, home.assign(markup_pct=home["markup_pct"] + 10.0))
    assert (higher < p).all()


def test_fit_rejects_missing_values(sales):
    broken = sales.head(100).copy()
    broken.loc[0, "markup_pct"] = np.nan
    with pytest.raises(patsy.PatsyError):
        fit_logistic("sold ~ markup_pct", broken)


def test_fit_raises_when_irls_does_not_converge(sales):
    with pytest.raises(RuntimeError, match="IRLS did not converge"):
        fit_logistic(CANDIDATE_FORMULAS["markup_cost_type"], sales, maxiter=1)


def test_profile_bounds_are_nan_without_a_bracket():
    # Nearly separated: sold below a markup of 50, except two flipped rows.
    markup = np.linspace(10.0, 88.0, 40)
    sold = (markup < 50).astype(int)
    sold[[19, 21]] = 1 - sold[[19, 21]]
    fit = fit_logistic("sold ~ markup_pct", pd.DataFrame({"sold": sold, "markup_pct": markup}))

    prof = profile_confidence_intervals(fit, level=0.95, max_expansions=1).set_index("term")
    est = fit.params
    # The likelihood flattens towards steeper separation, so those bounds are not bracketed.
    assert np.isnan(prof.loc["markup_pct", "ci_low"])
    assert np.isnan(prof.loc["Intercept", "ci_high"])
    assert prof.loc["markup_pct", "ci_high"] > est["markup_pct"]
    assert prof.loc["Intercept", "ci_low"] < est["Intercept"]
