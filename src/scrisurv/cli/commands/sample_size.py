from __future__ import annotations

from typing import Any

from scrisurv.cli.bundle import prepare_out_dir, write_results_json, write_run_meta, write_table
from scrisurv.cli.options import parse_float_list, settings_from_args
from scrisurv.power import DEFAULT_RR_GRID, operational_estimates, power_table, sample_size_scri


def cmd_sample_size(args) -> int:
    settings = settings_from_args(args)
    cfg = settings.surveillance
    sim = settings.simulation
    power = float(getattr(args, "power", 0.9) or 0.9)

    ss = sample_size_scri(
        settings.windows,
        alpha=cfg.overall_alpha,
        n_looks=cfg.planned_number_of_looks,
        target_relative_risk=cfg.target_relative_risk,
        power=power,
    )
    rr_values = parse_float_list(args.rr_values) if getattr(args, "rr_values", None) else list(DEFAULT_RR_GRID)
    table = power_table(settings.windows, ss.n_cases, alpha=cfg.overall_alpha, n_looks=cfg.planned_number_of_looks, rr_values=rr_values)
    ops = operational_estimates(
        ss.n_cases,
        settings.windows,
        sim.baseline_event_rate,
        population_size=sim.population_size,
        season_length_days=(sim.season_end - sim.season_start).days,
    )

    print(f"p0={ss.p0:.3f}  p1={ss.p1:.3f} (RR={ss.target_relative_risk:.2f})")
    print(f"single-test cases: {ss.n_single:.0f}")
    print(f"inflation factor ({ss.n_looks} looks): {ss.inflation_factor:.2f}")
    print(f"required cases: {ss.n_cases}")
    print(f"vaccinations needed: {ops.vaccinations_needed} (population {ops.population_size}, adequate={ops.adequate})")
    print(table.to_string(index=False, float_format=lambda v: f"{v:.3f}"))

    if getattr(args, "out", None):
        out_dir = prepare_out_dir(args.out, command="sample-size")
        write_run_meta(out_dir, args, extra={"command": "sample-size"})
        artifacts: dict[str, Any] = {"tables": [write_table(out_dir, "power_table", table)]}
        write_results_json(
            out_dir,
            {
                "command": "sample-size",
                "inputs": {"windows": settings.windows, "config": cfg, "power": power},
                "estimates": {"sample_size": ss, "operational": ops},
                "warnings": [] if ops.adequate in (None, True) else [
                    f"Required vaccinations ({ops.vaccinations_needed}) exceed population ({ops.population_size}); "
                    f"recommend population_size >= {ops.recommended_population}."
                ],
                "artifacts": artifacts,
            },
        )
    return 0
