#!/usr/bin/env python
import argparse
import json
from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parent
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from school_projection.modules.m0_setup.runner import run_m0
from school_projection.modules.m7_projection.runner import run_projection


# --- Main CLI ---
def main():
    parser = argparse.ArgumentParser(description="School 30-year financial projection")
    sub = parser.add_subparsers(dest="cmd", required=True)

    # --- Command Definitions ---
    p0 = sub.add_parser("validate", help="Run M0 (validate the input pack and export inputs)")
    p1 = sub.add_parser("project", help="Run the full projection (M0-M7)")
    p1.add_argument("--strict", action="store_true", help="Fail when the solver does not converge")

    for p in [p0, p1]:
        p.add_argument("--input", required=True, help="Path to the input pack (.xlsx or .json)")
        p.add_argument("--out", required=True, help="Output folder")

    args = parser.parse_args()
    out_dir = Path(args.out)
    out_dir.mkdir(parents=True, exist_ok=True)

    if args.cmd == "validate":
        written = run_m0(args.input, str(out_dir))
        print(f"M0 finished. See smoke report at: {out_dir / 'm0_smoke_report.md'}")
    else:
        written = run_projection(args.input, str(out_dir), strict=args.strict)
        print(f"Projection finished. See smoke report at: {out_dir / 'projection_smoke_report.md'}")
    print(json.dumps(written, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
