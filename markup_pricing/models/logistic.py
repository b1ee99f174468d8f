from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional

import numpy as np
import pandas as pd
import patsy
import statsmodels.api as sm
from scipy.special import expit

from markup_pricing.config import CI_LEVEL, CI_METHOD
from markup_pricing.models.profile import profile_confidence_intervals, wald_confidence_intervals


@dataclass
class FittedModel:
    """A binomial GLM (logit link) fitted on a patsy design matrix.

    The design info is kept so the same coding can be applied to new frames
    (e.g. the same products priced at a different markup).
    """

    name: str
    formula: str
    result: object
    design_info: patsy.DesignInfo
    endog: np.ndarray
    exog: pd.DataFrame

    @property
    def params(self) -> pd.Series:
        return self.result.params

    @property
    def cov_params(self) -> pd.DataFrame:
        return self.result.cov_params()

    @property
    def term_names(self) -> List[str]:
        return list(self.exog.columns)

    @property
    def n_obs(self) -> int:
        return int(self.endog.size)

    @property
    def n_params(self) -> int:
        return int(self.exog.shape[1])


def fit_logistic(formula: str, data: pd.DataFrame, *, name: Optional[str] = None, maxiter: int = 100) -> FittedModel:
    y, X = patsy.dmatrices(formula, data, return_type="dataframe", NA_action="raise")
    if y.shape[1] != 1:
        raise ValueError(f"Formula must have a single binary outcome: {formula!r}")
    endog = y.iloc[:, 0].to_numpy(dtype=float)
    model = sm.GLM(endog, X, family=sm.families.Binomial())
    result = model.fit(maxiter=maxiter)
    if not getattr(result, "converged", True):
        raise RuntimeError(f"IRLS did not converge within {maxiter} iterations for {formula!r}.")
    return FittedModel(
        name=name or formula,
        formula=formula,
        result=result,
        design_info=X.design_info,
        endog=endog,
        exog=X,
    )


def fit_candidates(formulas: Mapping[str, str], data: pd.DataFrame) -> Dict[str, FittedModel]:
    return {name: fit_logistic(formula, data, name=name) for name, formula in formulas.items()}


def compare_models_bic(fits: Iterable[FittedModel]) -> pd.DataFrame:
    """One row per candidate, sorted by BIC (ties: fewer parameters first).

    BIC is the likelihood-based -2 log L + k log n. The first row is selected.
    """

    rows = []
    for fit in fits:
        res = fit.result
        rows.append(
            {
                "model": fit.name,
                "formula": fit.formula,
                "n_obs": fit.n_obs,
                "n_params": fit.n_params,
                "log_likelihood": float(res.llf),
                "deviance": float(res.deviance),
                "aic": float(res.aic),
                "bic": float(-2.0 * res.llf + fit.n_params * np.log(fit.n_obs)),
            }
        )
    if not rows:
        raise ValueError("No fitted models to compare.")

    table = pd.DataFrame(rows).sort_values(["bic", "n_params"], kind="mergesort").reset_index(drop=True)
    table["delta_bic"] = table["bic"] - float(table["bic"].iloc[0])
    table["selected"] = table.index == 0
    return table


def select_by_bic(fits: Mapping[str, FittedModel]) -> FittedModel:
    table = compare_models_bic(fits.values())
    return fits[str(table.loc[0, "model"])]


def design_matrix(fit: FittedModel, frame: pd.DataFrame) -> pd.DataFrame:
    (X,) = patsy.build_design_matrices([fit.design_info], frame, return_type="dataframe", NA_action="raise")
    return X


def linear_predictor(fit: FittedModel, frame: pd.DataFrame, params: Optional[np.ndarray] = None) -> np.ndarray:
    beta = fit.params.to_numpy(dtype=float) if params is None else np.asarray(params, dtype=float)
    X = design_matrix(fit, frame).to_numpy(dtype=float)
    if X.shape[1] != beta.size:
        raise ValueError(f"Coefficient vector has {beta.size} values; design has {X.shape[1]} columns.")
    return X @ beta


def predict_probability(fit: FittedModel, frame: pd.DataFrame, params: Optional[np.ndarray] = None) -> np.ndarray:
    return expit(linear_predictor(fit, frame, params))


def coefficient_table(
    fit: FittedModel,
    *,
    level: float = CI_LEVEL,
    method: str = CI_METHOD,
    truth: Optional[Mapping[str, float]] = None,
) -> pd.DataFrame:
    """Estimates, standard errors, Wald tests and confidence intervals per term.

    With ``truth`` (known simulation coefficients; absent terms are zero) the
    table also reports whether each interval covers the true value.
    """

    if method == "profile":
        ci = profile_confidence_intervals(fit, level=level)
    elif method == "wald":
        ci = wald_confidence_intervals(fit, level=level)
    else:
        raise ValueError(f"Unknown confidence interval method: {method}")

    res = fit.result
    table = pd.DataFrame(
        {
            "term": fit.term_names,
            "estimate": fit.params.to_numpy(dtype=float),
            "std_error": np.asarray(res.bse, dtype=float),
            "z_value": np.asarray(res.tvalues, dtype=float),
            "p_value": np.asarray(res.pvalues, dtype=float),
            "ci_low": ci["ci_low"].to_numpy(dtype=float),
            "ci_high": ci["ci_high"].to_numpy(dtype=float),
        }
    )
    table["odds_ratio"] = np.exp(table["estimate"])
    table["odds_ratio_ci_low"] = np.exp(table["ci_low"])
    table["odds_ratio_ci_high"] = np.exp(table["ci_high"])
    table["ci_method"] = method
    table["ci_level"] = level

    if truth is not None:
        table["true_value"] = [float(truth.get(t, 0.0)) for t in table["term"]]
        table["covers_truth"] = (table["ci_low"] <= table["true_value"]) & (table["true_value"] <= table["ci_high"])
    return table
