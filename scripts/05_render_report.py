import sys
from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import argparse

from markup_pricing.config import OUTPUTS_DIR
from markup_pricing.reporting.report import render_report


def main() -> None:
    parser = argparse.ArgumentParser(description="Render the markup optimization article as Markdown.")
    parser.add_argument("--outdir", type=Path, default=OUTPUTS_DIR, help="Pipeline output directory (default: outputs/).")
    parser.add_argument("--out", type=Path, default=None, help="Report path (default: <outdir>/report/markup_optimization.md).")
    parser.add_argument("--date", type=str, default=None, help="Date shown in the front matter (default: today).")
    args = parser.parse_args()

    try:
        path = render_report(args.outdir, out_path=args.out, report_date=args.date)
    except FileNotFoundError as exc:
        raise SystemExit(f"{exc}. Run scripts 01-04 first.") from exc
    print(f"Wrote {path}")


if __name__ == "__main__":
    main()
