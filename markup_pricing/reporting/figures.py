from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Optional

import numpy as np
import pandas as pd

# Matplotlib must be configured before importing pyplot.
_mpl_cache_dir = Path(tempfile.gettempdir()) / "matplotlib"
_mpl_cache_dir.mkdir(parents=True, exist_ok=True)
os.environ.setdefault("MPLCONFIGDIR", str(_mpl_cache_dir))

import matplotlib  # noqa: E402

matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402


def save_figure(fig, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(path, dpi=300, bbox_inches="tight")
    plt.close(fig)


def plot_sale_rate_by_markup_band(table: pd.DataFrame, path: Path) -> None:
    fig, ax = plt.subplots(figsize=(8, 5))
    ax.bar(table["markup_band"], table["sale_rate"], color="steelblue")
    ax.set_title("Observed Sale Rate by Markup Band")
    ax.set_xlabel("Markup (%)")
    ax.set_ylabel("Share of products sold")
    ax.set_ylim(0, 1)
    save_figure(fig, path)


def plot_binned_residuals(table: pd.DataFrame, path: Path, *, xlabel: str = "Expected probability") -> None:
    fig, ax = plt.subplots(figsize=(7, 5))
    inside = ~table["outside"].astype(bool)
    ax.scatter(table.loc[inside, "x_mean"], table.loc[inside, "residual_mean"], s=18, color="black", label="Bin mean")
    ax.scatter(
        table.loc[~inside, "x_mean"],
        table.loc[~inside, "residual_mean"],
        s=18,
        color="firebrick",
        label="Outside bounds",
    )
    ax.plot(table["x_mean"], table["bound"], color="gray", linewidth=1)
    ax.plot(table["x_mean"], -table["bound"], color="gray", linewidth=1)
    ax.axhline(0.0, color="gray", linestyle="--", linewidth=1)
    ax.set_title("Binned Residual Plot")
    ax.set_xlabel(xlabel)
    ax.set_ylabel("Average residual")
    ax.legend()
    save_figure(fig, path)


def plot_dfbetas(dfbetas: pd.DataFrame, threshold: float, path: Path) -> None:
    terms = list(dfbetas.columns)
    ncols = min(3, len(terms))
    nrows = int(np.ceil(len(terms) / ncols))
    fig, axes = plt.subplots(nrows, ncols, figsize=(4.5 * ncols, 3.2 * nrows), squeeze=False)
    index = dfbetas.index.to_numpy()
    for ax, term in zip(axes.ravel(), terms):
        vals = dfbetas[term].to_numpy(dtype=float)
        flagged = np.abs(vals) > threshold
        ax.scatter(index[~flagged], vals[~flagged], s=3, color="steelblue")
        ax.scatter(index[flagged], vals[flagged], s=5, color="firebrick")
        ax.axhline(threshold, color="gray", linestyle="--", linewidth=1)
        ax.axhline(-threshold, color="gray", linestyle="--", linewidth=1)
        ax.set_title(term, fontsize=9)
        ax.set_xlabel("Observation")
        ax.set_ylabel("DFBETAS")
    for ax in axes.ravel()[len(terms):]:
        ax.set_visible(False)
    fig.tight_layout()
    save_figure(fig, path)


def plot_profit_curve(
    curve: pd.DataFrame, optimal_markup: float, path: Path, *, true_optimal_markup: Optional[float] = None
) -> None:
    fig, ax = plt.subplots(figsize=(8, 5))
    ax.plot(curve["markup_pct"], curve["expected_profit"], linewidth=2, label="Fitted model")
    if "true_expected_profit" in curve.columns:
        ax.plot(curve["markup_pct"], curve["true_expected_profit"], "--", linewidth=1.5, label="True model")
    ax.axvline(optimal_markup, color="firebrick", linewidth=1, label=f"Optimum {optimal_markup:.1f}%")
    if true_optimal_markup is not None:
        ax.axvline(true_optimal_markup, color="gray", linestyle=":", linewidth=1, label=f"True {true_optimal_markup:.1f}%")
    ax.set_title("Expected Profit per Listed Product")
    ax.set_xlabel("Markup (%)")
    ax.set_ylabel("Expected profit")
    ax.legend()
    save_figure(fig, path)


def plot_uplift_distribution(draws: pd.DataFrame, path: Path) -> None:
    fig, ax = plt.subplots(figsize=(8, 5))
    ax.hist(draws["uplift"].to_numpy(dtype=float), bins=40, color="steelblue", edgecolor="white")
    ax.axvline(0.0, color="gray", linestyle="--", linewidth=1)
    ax.axvline(float(draws["uplift"].mean()), color="firebrick", linewidth=1.5, label="Mean uplift")
    ax.set_title("Simulated Profit Uplift of the Recommended Markup")
    ax.set_xlabel("Profit uplift (optimized - current)")
    ax.set_ylabel("Replicates")
    ax.legend()
    save_figure(fig, path)


def plot_calibration(curve: pd.DataFrame, path: Path) -> None:
    fig, ax = plt.subplots(figsize=(6, 5))
    ax.plot([0, 1], [0, 1], "--", color="gray", linewidth=1, label="Ideal")
    ax.plot(curve["mean_predicted"], curve["fraction_positive"], marker="o", linewidth=2, label="Selected model")
    ax.set_title("Calibration Curve")
    ax.set_xlabel("Mean predicted probability")
    ax.set_ylabel("Fraction sold")
    ax.set_xlim(0, 1)
    ax.set_ylim(0, 1)
    ax.legend()
    save_figure(fig, path)
