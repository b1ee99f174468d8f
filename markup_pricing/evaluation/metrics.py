from typing import Dict

import numpy as np
import pandas as pd
from sklearn.calibration import calibration_curve
from sklearn.linear_model import LogisticRegression
from sklearn.metrics import average_precision_score, brier_score_loss, log_loss, roc_auc_score

from markup_pricing.config import PROB_BINS


def _clip_probs(y_prob) -> np.ndarray:
    return np.clip(np.asarray(y_prob, dtype=float), 1e-6, 1.0 - 1e-6)


def calibration_slope_intercept(y_true, y_prob):
    logit = np.log(_clip_probs(y_prob) / (1 - _clip_probs(y_prob))).reshape(-1, 1)
    # Near-unregularized logistic regression of the outcome on the logit scores.
    model = LogisticRegression(C=1e6, solver="lbfgs", max_iter=1000)
    model.fit(logit, np.asarray(y_true, dtype=int))
    return float(model.coef_[0][0]), float(model.intercept_[0])


def compute_binary_metrics(y_true, y_prob) -> Dict[str, float]:
    y = np.asarray(y_true, dtype=int)
    p = _clip_probs(y_prob)
    slope, intercept = calibration_slope_intercept(y, p)
    return {
        "roc_auc": float(roc_auc_score(y, p)),
        "pr_auc": float(average_precision_score(y, p)),
        "brier": float(brier_score_loss(y, p)),
        "log_loss": float(log_loss(y, p, labels=[0, 1])),
        "calibration_slope": slope,
        "calibration_intercept": intercept,
    }


def calibration_curve_df(y_true, y_prob, n_bins: int = PROB_BINS) -> pd.DataFrame:
    frac_pos, mean_pred = calibration_curve(y_true, _clip_probs(y_prob), n_bins=n_bins, strategy="quantile")
    return pd.DataFrame({"mean_predicted": mean_pred, "fraction_positive": frac_pos})
