from __future__ import annotations
import argparse, json
from datetime import datetime
from decimal import Decimal
from pathlib import Path
import pandas as pd

from school_projection.modules.m0_setup.engine import load_input_pack
from .engine import calculate_full_projection, projection_to_frame, summary_to_dict

# ---------- utilities ----------

def _print(msg: str) -> None:
    print(msg, flush=True)

def _fail(msg: str) -> None:
    raise RuntimeError(f"[M7][FAIL] {msg}")

def _warn(msg: str) -> None:
    _print(f"[M7][WARN] {msg}")

def _ok(msg: str) -> None:
    _print(f"[M7][OK]  {msg}")

def _info(msg: str) -> None:
    _print(f"[M7][INFO] {msg}")


def _arrow_safe(df: pd.DataFrame) -> pd.DataFrame:
    """Decimal columns -> float64 for parquet; other object columns -> string."""
    out = df.copy()
    for c in out.columns:
        if pd.api.types.is_object_dtype(out[c]):
            if out[c].map(lambda v: isinstance(v, Decimal)).all():
                out[c] = out[c].map(float).astype("float64")
            else:
                out[c] = out[c].astype("string")
    return out


def _write_parquet(df: pd.DataFrame, path: Path) -> None:
    try:
        _arrow_safe(df).to_parquet(path, index=False)
    except Exception as exc:
        raise RuntimeError(
            f"Failed to write parquet at {path}. Hint: install pyarrow. Original error: {exc}"
        ) from exc


def run_projection(input_pack: str, out_dir: str, strict: bool = False) -> dict:
    """
    Full projection run:
      - projection_years.parquet       (one row per year, money as float64 for presentation)
      - projection_summary.json        (decimals as strings, solver metadata, diagnostics)
      - projection_smoke_report.md
      - projection_run_log.json
    ``strict`` turns a non-converged solve into a failure.
    """
    started = datetime.now()
    in_path = Path(input_pack)
    out = Path(out_dir)
    out.mkdir(parents=True, exist_ok=True)

    params = load_input_pack(in_path)
    _info(f"Loaded {in_path.name}: {len(params.curricula)} curricula, rent model {params.rent_plan.rent_model.model}")

    result = calculate_full_projection(params)
    meta = result.metadata
    if meta.converged:
        _ok(f"Solver converged in {meta.iterations} iteration(s), max diff {meta.max_difference}")
    elif strict:
        _fail(f"Solver did not converge after {meta.iterations} iterations (max diff {meta.max_difference})")
    else:
        _warn(f"Solver did not converge after {meta.iterations} iterations (max diff {meta.max_difference})")
    for d in result.diagnostics:
        _warn(d)

    written: dict[str, int] = {}

    df = projection_to_frame(result)
    _write_parquet(df, out / "projection_years.parquet")
    written["projection_years.parquet"] = len(df)

    summary = summary_to_dict(result)
    (out / "projection_summary.json").write_text(json.dumps(summary, indent=2), encoding="utf-8")
    written["projection_summary.json"] = 1

    smoke = out / "projection_smoke_report.md"
    lines = [
        f"# Projection Smoke Report ({started.strftime('%Y-%m-%d %H:%M:%S')})",
        "",
        f"- Years: {df['Year'].min()}..{df['Year'].max()} ({len(df)} rows)",
        f"- Converged: {meta.converged} (iterations={meta.iterations}, max_difference={meta.max_difference})",
        f"- Total revenue: {result.summary.total_revenue:,.2f}",
        f"- NPV rent (2028-2052): {result.summary.npv_rent:,.2f}",
        f"- Avg EBITDA margin: {result.summary.avg_ebitda_margin:.2f}%",
        f"- Avg rent load: {result.summary.avg_rent_load:.2f}%",
        f"- Diagnostics: {len(result.diagnostics)}",
    ]
    smoke.write_text("\n".join(lines), encoding="utf-8")
    written["projection_smoke_report.md"] = 1

    (out / "projection_run_log.json").write_text(
        json.dumps(
            {
                "started_at": started.isoformat(timespec="seconds"),
                "finished_at": datetime.now().isoformat(timespec="seconds"),
                "input_pack": str(in_path),
                "outputs_dir": str(out),
                "converged": meta.converged,
                "written": written,
            },
            indent=2,
        ),
        encoding="utf-8",
    )
    return written


def _cli():
    ap = argparse.ArgumentParser(description="Run the full 30-year school projection.")
    ap.add_argument("--input", required=True, help="Path to the input pack (.xlsx or .json)")
    ap.add_argument("--out", required=True, help="Output directory (e.g., ./outputs)")
    ap.add_argument("--strict", action="store_true", help="Fail when the solver does not converge")
    args = ap.parse_args()
    wrote = run_projection(args.input, args.out, strict=args.strict)
    print("[M7] Wrote:", json.dumps(wrote, indent=2))


if __name__ == "__main__":
    _cli()
