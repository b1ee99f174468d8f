import sys
from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import argparse

from markup_pricing.config import OUTPUTS_DIR, SIMULATED_FILE
from markup_pricing.utils.logging import run_metadata, write_json


def main() -> None:
    parser = argparse.ArgumentParser(description="Record interpreter and package versions for the run log.")
    parser.add_argument("--outdir", type=Path, default=OUTPUTS_DIR, help="Output directory (default: outputs/).")
    args = parser.parse_args()

    info = run_metadata(simulated_file_exists=SIMULATED_FILE.exists())
    missing = sorted(pkg for pkg, version in info["packages"].items() if version is None)
    info["missing_packages"] = missing

    out_path = args.outdir / "logs" / "environment_check.json"
    write_json(out_path, info)
    print(f"Wrote {out_path}")
    if missing:
        raise SystemExit(f"Missing packages: {missing}")


if __name__ == "__main__":
    main()
