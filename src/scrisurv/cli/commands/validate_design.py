from __future__ import annotations

from typing import Any, List

import numpy as np
import pandas as pd

from scrisurv.cli.bundle import prepare_out_dir, write_report_md, write_results_json, write_run_meta, write_table
from scrisurv.cli.options import fail, parse_float_list, parse_int_list, settings_from_args
from scrisurv.sequential.null_model import null_model
from scrisurv.sequential.validation import simulate_operating_characteristics


def _equally_spaced(n_looks: int, max_n: int) -> List[int]:
    sizes = np.unique(np.ceil(np.linspace(max_n / n_looks, max_n, n_looks)).astype(int))
    return [int(n) for n in sizes if n > 0]


def _render_md(rows: pd.DataFrame, boundary: pd.DataFrame, alpha: float, p0: float) -> str:
    lines = [
        "# scrisurv design validation",
        "",
        f"- p0: `{p0:.4f}`",
        f"- nominal alpha: `{alpha}`",
        "",
        "## Operating characteristics",
        "",
        "| RR | rejection rate | SE | exact | mean signal look |",
        "|---:|---:|---:|---:|---:|",
    ]
    for _, r in rows.iterrows():
        msl = "(none)" if pd.isna(r["mean_signal_look"]) else f"{r['mean_signal_look']:.2f}"
        lines.append(
            f"| {r['relative_risk']:.2f} | {r['rejection_rate']:.4f} | {r['standard_error']:.4f} | {r['exact_probability']:.4f} | {msl} |"
        )
    lines += ["", "## Boundary", "", "| look | n | CV | threshold | cumulative alpha |", "|---:|---:|---:|---:|---:|"]
    for _, b in boundary.iterrows():
        lines.append(
            f"| {int(b['look'])} | {int(b['n'])} | {b['critical_value']:.4f} | {int(b['threshold'])} | {b['cumulative_alpha']:.5f} |"
        )
    return "\n".join(lines) + "\n"


def cmd_validate_design(args) -> int:
    settings = settings_from_args(args)
    cfg = settings.surveillance

    if getattr(args, "sample_sizes", None):
        sizes = parse_int_list(args.sample_sizes)
    else:
        max_n = cfg.max_sample_size
        if max_n is None:
            return fail("validate-design requires --sample-sizes or --max-n")
        sizes = _equally_spaced(cfg.planned_number_of_looks, int(max_n))
    if not sizes:
        return fail("empty sample-size schedule")

    rr_values = parse_float_list(args.rr_values) if getattr(args, "rr_values", None) else [1.0, cfg.target_relative_risk]
    n_sims = int(getattr(args, "n_sims", 1000) or 1000)
    seed = int(getattr(args, "seed", 42) or 42)

    rows: List[dict[str, Any]] = []
    boundary = None
    for i, rr in enumerate(rr_values):
        oc = simulate_operating_characteristics(
            sizes,
            settings.windows,
            cfg,
            relative_risk=rr,
            n_sims=n_sims,
            seed=seed + i,
            max_sample_size=cfg.max_sample_size,
        )
        boundary = oc.boundary
        rows.append(
            {
                "relative_risk": oc.relative_risk,
                "allocation_probability": oc.allocation_probability,
                "rejection_rate": oc.rejection_rate,
                "standard_error": oc.standard_error,
                "exact_probability": oc.exact_probability,
                "mean_signal_look": np.nan if oc.mean_signal_look is None else oc.mean_signal_look,
            }
        )
    table = pd.DataFrame(rows)
    p0 = null_model(settings.windows).p0

    print(table.to_string(index=False, float_format=lambda v: f"{v:.4f}"))

    if getattr(args, "out", None):
        out_dir = prepare_out_dir(args.out, command="validate-design")
        write_run_meta(out_dir, args, extra={"command": "validate-design"})
        artifacts = {
            "report_md": "report.md",
            "tables": [
                write_table(out_dir, "operating_characteristics", table),
                write_table(out_dir, "boundary", boundary),
            ],
        }
        write_results_json(
            out_dir,
            {
                "command": "validate-design",
                "inputs": {"windows": settings.windows, "config": cfg, "sample_sizes": sizes, "n_sims": n_sims, "seed": seed},
                "estimates": {"operating_characteristics": rows},
                "warnings": [],
                "artifacts": artifacts,
            },
        )
        write_report_md(out_dir, _render_md(table, boundary, cfg.overall_alpha, p0))
    return 0
