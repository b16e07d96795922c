from __future__ import annotations
import argparse, json
from datetime import datetime
from pathlib import Path
import pandas as pd

from .engine import (
    load_and_validate_input_pack,   # validates the Excel input pack
    build_projection_params,        # sheets -> ProjectionParams
    load_input_pack,                # JSON or Excel -> ProjectionParams
    create_calendar,
    describe_period,
    get_period_for_year,
    Period,
)


def _normalize_object_columns(df: pd.DataFrame) -> pd.DataFrame:
    """
    Make heterogeneous object columns parquet-safe:
    - bytes/bytearray -> utf-8 strings
    - object dtype -> pandas StringDtype()
    Note: numeric/datetime columns remain unchanged.
    """
    out = df.copy()
    for col in out.columns:
        if pd.api.types.is_object_dtype(out[col].dtype):
            out[col] = out[col].map(
                lambda x: x.decode("utf-8", "ignore") if isinstance(x, (bytes, bytearray)) else x
            )
            out[col] = out[col].astype("string")
    return out


def run_m0(input_pack: str, out_dir: str) -> dict:
    """
    M0 export:
      1) Load & validate the input pack (.xlsx sheets or .json document).
      2) Excel only: export every sheet to <out>/m0_inputs/<Sheet>.parquet.
      3) Write m0_params.json (the validated, normalised parameters).
      4) Write m0_calendar.parquet (Year, Year_Index, Period).
      5) Emit smoke report + run log.
    """
    in_path = Path(input_pack)
    out_base = Path(out_dir)
    out_base.mkdir(parents=True, exist_ok=True)

    written: dict[str, int] = {}

    if in_path.suffix.lower() == ".json":
        params = load_input_pack(in_path)
    else:
        sheets = load_and_validate_input_pack(in_path)
        params = build_projection_params(sheets)
        m0_inputs = out_base / "m0_inputs"
        m0_inputs.mkdir(parents=True, exist_ok=True)
        for sheet_name, df in sheets.items():
            if df is None or df.empty:
                continue
            _normalize_object_columns(df).to_parquet(m0_inputs / f"{sheet_name}.parquet")
            written[f"m0_inputs/{sheet_name}.parquet"] = len(df)

    (out_base / "m0_params.json").write_text(params.model_dump_json(indent=2), encoding="utf-8")
    written["m0_params.json"] = 1

    cal = create_calendar(params.start_year, params.end_year)
    cal.to_parquet(out_base / "m0_calendar.parquet")
    written["m0_calendar.parquet"] = len(cal)

    smoke = out_base / "m0_smoke_report.md"
    lines = [f"# M0 Smoke Report ({datetime.now().strftime('%Y-%m-%d %H:%M:%S')})", ""]
    lines.append(f"- curricula: {len(params.curricula)}")
    lines.append(f"- rent model: {params.rent_plan.rent_model.model}")
    lines.append(f"- horizon: {params.start_year}..{params.end_year}")
    periods = {get_period_for_year(y) for y in range(params.start_year, params.end_year + 1)}
    for period in (p for p in Period if p in periods):
        lines.append(f"- {period.value}: {describe_period(period)}")
    for k, v in sorted(written.items()):
        lines.append(f"- {k}: {v} rows")
    smoke.write_text("\n".join(lines), encoding="utf-8")

    run_log = out_base / "m0_run_log.json"
    run_log.write_text(
        json.dumps(
            {
                "started_at": datetime.now().isoformat(timespec="seconds"),
                "input_pack": str(in_path),
                "outputs_dir": str(out_base),
                "written": written,
            },
            indent=2,
        ),
        encoding="utf-8",
    )

    return written


def _cli():
    ap = argparse.ArgumentParser(description="Run M0 (validate + export inputs).")
    ap.add_argument("--input", required=True, help="Path to the input pack (.xlsx or .json)")
    ap.add_argument("--out", required=True, help="Output directory (e.g., ./outputs)")
    args = ap.parse_args()
    wrote = run_m0(args.input, args.out)
    print("[M0] Wrote:", json.dumps(wrote, indent=2))


if __name__ == "__main__":
    _cli()
