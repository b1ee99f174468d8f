"""Run the numbered analysis scripts in order, sharing one output directory."""

import argparse
import subprocess
import sys
from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parents[1]
SCRIPTS_DIR = PROJECT_ROOT / "scripts"


def main() -> None:
    parser = argparse.ArgumentParser(description="Simulate, fit, optimize and render the markup report.")
    parser.add_argument("--outdir", type=Path, default=PROJECT_ROOT / "outputs")
    parser.add_argument("--out-parquet", type=Path, default=None, help="Simulated data path (default: data/processed/).")
    parser.add_argument("--n", type=int, default=None)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--n-boot", type=int, default=None)
    parser.add_argument("--n-replicates", type=int, default=None)
    parser.add_argument("--n-jobs", type=int, default=None)
    args = parser.parse_args()

    common = ["--outdir", str(args.outdir)]
    data = ["--out-parquet", str(args.out_parquet)] if args.out_parquet else []
    data_in = ["--in-parquet", str(args.out_parquet)] if args.out_parquet else []

    def opt(flag: str, value) -> list:
        return [flag, str(value)] if value is not None else []

    steps = [
        ["01_simulate_data.py", *common, *data, *opt("--n", args.n), *opt("--seed", args.seed)],
        ["02_eda.py", *common, *data_in],
        ["03_fit_models.py", *common, *data_in, *opt("--n-boot", args.n_boot)],
        [
            "04_optimize_markup.py",
            *common,
            *data_in,
            *opt("--n-replicates", args.n_replicates),
            *opt("--n-jobs", args.n_jobs),
        ],
        ["05_render_report.py", *common],
    ]
    for script, *rest in steps:
        print(f"==> {script}")
        subprocess.run([sys.executable, str(SCRIPTS_DIR / script), *rest], cwd=PROJECT_ROOT, check=True)


if __name__ == "__main__":
    main()
