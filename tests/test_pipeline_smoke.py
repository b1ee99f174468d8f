import json
import shutil
import subprocess
import sys
from pathlib import Path

import pandas as pd
import pytest


REPO_ROOT = Path(__file__).resolve().parents[1]


def _run(script: str, *args) -> subprocess.CompletedProcess:
    cmd = [sys.executable, str(REPO_ROOT / "scripts" / script), *map(str, args)]
    return subprocess.run(cmd, cwd=REPO_ROOT, check=True, capture_output=True, text=True)


@pytest.fixture(scope="module")
def pipeline(tmp_path_factory):
    outdir = tmp_path_factory.mktemp("outputs")
    parquet = outdir / "sales_simulated.parquet"
    data = ["--in-parquet", parquet]

    _run("01_simulate_data.py", "--n", 1500, "--seed", 99, "--out-parquet", parquet, "--outdir", outdir)
    _run("02_eda.py", *data, "--outdir", outdir)
    _run("03_fit_models.py", *data, "--outdir", outdir, "--n-boot", 10)
    _run("04_optimize_markup.py", *data, "--outdir", outdir, "--n-replicates", 20, "--n-jobs", 1)
    _run("05_render_report.py", "--outdir", outdir, "--date", "2024-01-31")
    return outdir, parquet


def test_simulation_smoke(pipeline):
    outdir, parquet = pipeline
    df = pd.read_parquet(parquet)
    assert len(df) == 1500
    assert df.columns.tolist() == [
        "product_id",
        "product_type",
        "production_cost",
        "markup_pct",
        "price",
        "sold",
        "p_true",
    ]
    assert set(df["sold"].unique().tolist()) <= {0, 1}

    payload = json.loads((outdir / "logs" / "simulation.json").read_text(encoding="utf-8"))
    assert payload["n"] == 1500
    assert payload["seed"] == 99
    assert payload["n_sold"] == int(df["sold"].sum())
    assert len(payload["content_hash_sha256"]) == 64


def test_eda_smoke(pipeline):
    outdir, _ = pipeline
    required_paths = [
        "tables/simulated_head.csv",
        "tables/numeric_summary.csv",
        "tables/sale_rate_by_product_type.csv",
        "tables/sale_rate_by_markup_band.csv",
        "figures/sale_rate_by_markup_band.png",
        "logs/eda_run_metadata.json",
    ]
    for rel in required_paths:
        assert (outdir / rel).exists(), f"Missing expected EDA artifact: {rel}"


def test_fit_models_smoke(pipeline):
    outdir, _ = pipeline
    for rel in [
        "tables/model_comparison_bic.csv",
        "tables/coefficients_selected.csv",
        "tables/binned_residuals_fitted.csv",
        "tables/binned_residuals_markup.csv",
        "tables/dfbetas_summary.csv",
        "tables/dfbetas_influential.csv",
        "tables/performance_metrics.csv",
        "tables/bootstrap_draws.csv",
        "tables/calibration_curve.csv",
        "figures/binned_residuals_fitted.png",
        "figures/binned_residuals_markup.png",
        "figures/dfbetas.png",
        "figures/calibration_curve.png",
    ]:
        assert (outdir / rel).exists(), f"Missing expected model artifact: {rel}"

    bic = pd.read_csv(outdir / "tables" / "model_comparison_bic.csv")
    assert len(bic) == 5
    assert bic["bic"].is_monotonic_increasing

    payload = json.loads((outdir / "logs" / "model_fit.json").read_text(encoding="utf-8"))
    assert payload["selected_model"] == bic.loc[0, "model"]
    assert payload["ci_method"] == "profile"
    coefs = pd.read_csv(outdir / "tables" / "coefficients_selected.csv")
    assert coefs["term"].iloc[0] == "Intercept"
    assert coefs[["ci_low", "ci_high"]].notna().all().all()


def test_optimize_markup_smoke(pipeline):
    outdir, _ = pipeline
    payload = json.loads((outdir / "logs" / "markup_optimization.json").read_text(encoding="utf-8"))
    assert payload["optimum"]["converged"] is True
    assert 0.0 < payload["optimum"]["markup_pct"] < 150.0
    assert payload["policy"] == "uniform"
    assert payload["impact_summary"]["n_replicates"] == 20

    draws = pd.read_csv(outdir / "tables" / "business_impact_draws.csv")
    assert len(draws) == 20
    by_type = pd.read_csv(outdir / "tables" / "optimal_markup_by_type.csv")
    assert by_type["product_type"].tolist() == ["Electronics", "Clothing", "Home"]
    assert (outdir / "figures" / "profit_curve.png").exists()
    assert (outdir / "figures" / "uplift_distribution.png").exists()


def test_report_smoke(pipeline):
    outdir, _ = pipeline
    report = outdir / "report" / "markup_optimization.md"
    assert report.exists()
    text = report.read_text(encoding="utf-8")
    assert text.startswith("---\n")
    assert 'date: "2024-01-31"' in text
    for heading in ["### Model selection", "## Model checking", "## Optimal markup", "## Business impact"]:
        assert f"\n{heading}\n" in text
    assert "](../figures/profit_curve.png)" in text
    assert "$$" in text


def test_optimizer_abort_exits_nonzero(pipeline):
    outdir, parquet = pipeline
    # One BFGS iteration cannot reach the gradient tolerance.
    cmd = [
        sys.executable,
        str(REPO_ROOT / "scripts" / "04_optimize_markup.py"),
        "--in-parquet",
        str(parquet),
        "--outdir",
        str(outdir),
        "--n-replicates",
        "0",
        "--maxiter",
        "1",
    ]
    proc = subprocess.run(cmd, cwd=REPO_ROOT, capture_output=True, text=True)
    assert proc.returncode != 0
    assert "Aborting" in proc.stderr


def test_report_requires_pipeline_outputs(tmp_path):
    cmd = [sys.executable, str(REPO_ROOT / "scripts" / "05_render_report.py"), "--outdir", str(tmp_path)]
    proc = subprocess.run(cmd, cwd=REPO_ROOT, capture_output=True, text=True)
    assert proc.returncode != 0
    assert "Missing pipeline artifacts" in proc.stderr


def test_optimize_markup_by_type_policy_smoke(pipeline, tmp_path):
    outdir, parquet = pipeline
    shutil.copytree(outdir / "logs", tmp_path / "logs")
    _run(
        "04_optimize_markup.py",
        "--in-parquet",
        parquet,
        "--outdir",
        tmp_path,
        "--policy",
        "by_type",
        "--n-replicates",
        5,
        "--n-jobs",
        1,
    )

    payload = json.loads((tmp_path / "logs" / "markup_optimization.json").read_text(encoding="utf-8"))
    assert payload["policy"] == "by_type"
    assert sorted(payload["recommended"]) == ["Clothing", "Electronics", "Home"]
    assert payload["impact_summary"]["n_replicates"] == 5
    draws = pd.read_csv(tmp_path / "tables" / "business_impact_draws.csv")
    assert len(draws) == 5
