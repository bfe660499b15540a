from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any, List

from scrisurv.cli.bundle import (
    prepare_out_dir,
    save_plot,
    write_report_md,
    write_results_json,
    write_run_meta,
    write_status_report,
    write_table,
)
from scrisurv.cli.options import fail, parse_date, settings_from_args, warn
from scrisurv.config import SurveillanceSettings
from scrisurv.io.reader import read_csv, validate_df
from scrisurv.io.schema import CASE_SCHEMA
from scrisurv.sequential import BoundaryComputationError, SurveillanceController, SurveillanceResult, cases_from_frame
from scrisurv.sequential.reporting import (
    alert_table,
    look_table,
    make_surveillance_plots,
    render_status_report,
    render_surveillance_md,
)

logger = logging.getLogger(__name__)


def write_surveillance_bundle(
    out_dir: Path,
    result: SurveillanceResult,
    settings: SurveillanceSettings,
    *,
    input_path: str | None = None,
    extra_warnings: List[str] | None = None,
) -> dict[str, Any]:
    windows, cfg = settings.windows, settings.surveillance
    if extra_warnings:
        result.warnings = list(extra_warnings) + list(result.warnings)

    artifacts: dict[str, Any] = {"report_md": "report.md", "status_report": "status_report.txt", "plots": [], "tables": []}
    artifacts["tables"].append(write_table(out_dir, "look_table", look_table(result.records)))
    artifacts["tables"].append(write_table(out_dir, "alerts", alert_table(result)))

    for name, fig in make_surveillance_plots(result, cfg).items():
        artifacts["plots"].append(save_plot(out_dir, name, fig))

    latest = result.latest
    payload: dict[str, Any] = {
        "command": "surveil",
        "status": result.status.value,
        "inputs": {
            "input": input_path,
            "windows": windows,
            "config": cfg,
            "season_start": settings.season_start,
        },
        "estimates": {
            "signal_detected": result.signal_detected,
            "stopped": result.state.stopped,
            "terminal_look_index": result.state.terminal_look_index,
            "looks_performed": result.state.looks_performed,
            "cumulative_alpha_spent": result.state.cumulative_alpha_spent,
            "latest": latest.to_dict() if latest else None,
        },
        "boundary_history": result.state.boundary_history,
        "diagnostics": result.diagnostics,
        "warnings": result.warnings,
        "artifacts": artifacts,
    }

    write_results_json(out_dir, payload)
    write_report_md(out_dir, render_surveillance_md(result, windows, cfg))
    write_status_report(out_dir, render_status_report(result, windows, cfg))
    return payload


def cmd_surveil(args) -> int:
    settings = settings_from_args(args)

    df = read_csv(args.input)
    errors = validate_df(df, CASE_SCHEMA)
    if errors:
        return fail("; ".join(errors))

    cases, warn_adm = cases_from_frame(
        df,
        settings.windows,
        observation_end=parse_date(getattr(args, "observation_end", None)),
    )
    for w in warn_adm:
        warn(w)

    out_dir = prepare_out_dir(getattr(args, "out", None), command="surveil")
    write_run_meta(out_dir, args, extra={"command": "surveil", "n_cases_admitted": len(cases)})

    controller = SurveillanceController(settings.windows, settings.surveillance, season_start=settings.season_start)
    try:
        result = controller.run(cases)
    except BoundaryComputationError as exc:
        result = controller.result()
        write_surveillance_bundle(out_dir, result, settings, input_path=args.input, extra_warnings=warn_adm)
        print(f"[scrisurv][error] surveillance aborted: {exc}", file=sys.stderr)
        print(f"partial bundle written to {out_dir}")
        return 3

    write_surveillance_bundle(out_dir, result, settings, input_path=args.input, extra_warnings=warn_adm)
    logger.info("Surveillance bundle written to %s", out_dir)

    latest = result.latest
    print(f"status: {result.status.value}")
    if latest is not None:
        print(
            f"latest look {latest.look_index} ({latest.calendar_date}): n={latest.cumulative_cases}, "
            f"RR={latest.rate_ratio:.2f}, LLR={latest.test_statistic:.3f}, CV={latest.critical_value:.3f}"
        )
    print(f"bundle: {out_dir}")
    return 0
