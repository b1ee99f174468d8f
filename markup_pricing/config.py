from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]

DATA_DIR = PROJECT_ROOT / "data"
PROCESSED_DIR = DATA_DIR / "processed"

OUTPUTS_DIR = PROJECT_ROOT / "outputs"
FIGURES_DIR = OUTPUTS_DIR / "figures"
TABLES_DIR = OUTPUTS_DIR / "tables"
LOGS_DIR = OUTPUTS_DIR / "logs"
REPORT_DIR = OUTPUTS_DIR / "report"

SIMULATED_FILE = PROCESSED_DIR / "sales_simulated.parquet"

# Dataset and experiment identifiers (used in outputs/ metadata)
DATASET_VERSION = "sales_simulated_v1"
EXPERIMENT_NAMESPACE = "markup_logit_v1"

# Simulation protocol
N_OBSERVATIONS = 5000
SIMULATION_SEED = 2024

# First level is the reference category of the regression.
PRODUCT_TYPES = ["Electronics", "Clothing", "Home"]
PRODUCT_TYPE_WEIGHTS = [0.4, 0.35, 0.25]

COST_RANGE = (5.0, 50.0)
# Additive shift of production cost per product type.
COST_SHIFT = {"Electronics": 15.0, "Clothing": 0.0, "Home": 5.0}
MARKUP_RANGE = (5.0, 100.0)

# Keys are design-matrix term names of the data-generating model.
TRUE_COEFFICIENTS = {
    "Intercept": 3.0,
    "product_type[T.Clothing]": 0.5,
    "product_type[T.Home]": -0.3,
    "markup_pct": -0.06,
    "production_cost": -0.02,
}

# Modeling configuration (analysis-column names in the processed parquet)
TARGET_COL = "sold"
MARKUP_COL = "markup_pct"
COST_COL = "production_cost"
GROUP_COL = "product_type"

# Candidate models compared by BIC, in order of increasing complexity.
CANDIDATE_FORMULAS = {
    "markup_only": "sold ~ markup_pct",
    "markup_cost": "sold ~ markup_pct + production_cost",
    "markup_cost_type": "sold ~ markup_pct + production_cost + product_type",
    "markup_x_type": "sold ~ markup_pct * product_type + production_cost",
    "full_interactions": "sold ~ (markup_pct + production_cost) * product_type",
}

CI_LEVEL = 0.95
CI_METHOD = "profile"  # choices: profile, wald

# Diagnostics
DFBETAS_THRESHOLD_SCALE = 2.0
# None selects the rule-of-thumb bin count from the number of observations.
BINNED_RESIDUAL_BINS = None

# Markup optimization
MARKUP_START = 30.0
# Share of production cost lost when an item does not sell.
UNSOLD_COST_SHARE = 0.0
OPTIMIZER_GTOL = 1e-6
MARKUP_GRID = (0.0, 150.0, 301)
MARKUP_BANDS = [0, 20, 40, 60, 80, 100]

# Monte Carlo business impact
MC_REPLICATES = 1000
MC_SEED = 2025
MC_N_JOBS = -1
MC_POLICY = "uniform"  # choices: uniform, by_type

# Predictive performance
N_BOOT = 500
BOOT_SEED = 2026
PROB_BINS = 10

# Artifact file names, relative to the tables/, figures/ and logs/ output folders.
ARTIFACTS = {
    "simulation_log": "simulation.json",
    "simulated_head": "simulated_head.csv",
    "numeric_summary": "numeric_summary.csv",
    "sale_rate_by_type": "sale_rate_by_product_type.csv",
    "sale_rate_by_band": "sale_rate_by_markup_band.csv",
    "sale_rate_by_band_fig": "sale_rate_by_markup_band.png",
    "eda_log": "eda_run_metadata.json",
    "bic_table": "model_comparison_bic.csv",
    "coefficients": "coefficients_selected.csv",
    "binned_fitted": "binned_residuals_fitted.csv",
    "binned_markup": "binned_residuals_markup.csv",
    "binned_fitted_fig": "binned_residuals_fitted.png",
    "binned_markup_fig": "binned_residuals_markup.png",
    "dfbetas_summary": "dfbetas_summary.csv",
    "dfbetas_influential": "dfbetas_influential.csv",
    "dfbetas_fig": "dfbetas.png",
    "performance": "performance_metrics.csv",
    "bootstrap_draws": "bootstrap_draws.csv",
    "calibration": "calibration_curve.csv",
    "calibration_fig": "calibration_curve.png",
    "fit_log": "model_fit.json",
    "profit_curve": "profit_curve.csv",
    "profit_curve_fig": "profit_curve.png",
    "optimum_by_type": "optimal_markup_by_type.csv",
    "impact_draws": "business_impact_draws.csv",
    "impact_fig": "uplift_distribution.png",
    "optimization_log": "markup_optimization.json",
    "report": "markup_optimization.md",
}
