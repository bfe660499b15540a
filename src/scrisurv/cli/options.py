"""Shared argparse options: a YAML config plus per-flag overrides."""

from __future__ import annotations

import argparse
import sys
from dataclasses import replace
from datetime import date
from typing import Any, List, Optional

from scrisurv.config import SurveillanceSettings, load_yaml, settings_from_dict
from scrisurv.sequential.schema import SpendingFamily, WindowSpec


def fail(msg: str) -> int:
    print(f"[scrisurv][error] {msg}", file=sys.stderr)
    return 2


def warn(msg: str) -> None:
    print(f"[scrisurv][warn] {msg}", file=sys.stderr)


def parse_int_list(s: str) -> List[int]:
    parts = [p.strip() for p in str(s).split(",") if p.strip()]
    return [int(p) for p in parts]


def parse_float_list(s: str) -> List[float]:
    parts = [p.strip() for p in str(s).split(",") if p.strip()]
    return [float(p) for p in parts]


def parse_date(s: Optional[str]) -> Optional[date]:
    if s is None or str(s).strip() == "":
        return None
    return date.fromisoformat(str(s).strip())


def add_design_args(sp: argparse.ArgumentParser) -> None:
    sp.add_argument("--config", default=None, help="YAML config (scri_design / sequential_analysis / simulation).")
    sp.add_argument("--risk-window", default=None, help="Risk window as START,END days after exposure (e.g. 1,28).")
    sp.add_argument("--control-window", default=None, help="Control window as START,END (e.g. 29,56).")
    sp.add_argument("--alpha", type=float, default=None, help="Overall one-sided alpha.")
    sp.add_argument("--looks", type=int, default=None, help="Planned number of looks.")
    sp.add_argument("--look-interval", type=int, default=None, help="Days between candidate looks.")
    sp.add_argument("--min-cases", type=int, default=None, help="Minimum cumulative cases for a look.")
    sp.add_argument("--spending", choices=[f.value for f in SpendingFamily], default=None)
    sp.add_argument("--rho", type=float, default=None, help="Power-type spending exponent.")
    sp.add_argument("--target-rr", type=float, default=None, help="Relative risk the Wald curve targets.")
    sp.add_argument("--max-n", type=int, default=None, help="Maximum sample size N_max (default: admitted cases).")
    sp.add_argument("--no-stop-on-signal", action="store_true", help="Keep monitoring after a signal.")


def _window_arg(s: str, name: str) -> tuple[int, int]:
    vals = parse_int_list(s)
    if len(vals) != 2:
        raise ValueError(f"{name} must be START,END, got {s!r}")
    return vals[0], vals[1]


def settings_from_args(args: Any) -> SurveillanceSettings:
    cfg_path = getattr(args, "config", None)
    settings = settings_from_dict(load_yaml(cfg_path) if cfg_path else {})

    windows = settings.windows
    if getattr(args, "risk_window", None) or getattr(args, "control_window", None):
        rs, re_ = windows.risk_start, windows.risk_end
        cs, ce = windows.control_start, windows.control_end
        if getattr(args, "risk_window", None):
            rs, re_ = _window_arg(args.risk_window, "--risk-window")
        if getattr(args, "control_window", None):
            cs, ce = _window_arg(args.control_window, "--control-window")
        windows = WindowSpec(risk_start=rs, risk_end=re_, control_start=cs, control_end=ce)

    overrides: dict[str, Any] = {}
    for attr, field_name in [
        ("alpha", "overall_alpha"),
        ("looks", "planned_number_of_looks"),
        ("look_interval", "look_interval_days"),
        ("min_cases", "minimum_cases_per_look"),
        ("spending", "alpha_spending_family"),
        ("rho", "spending_rho"),
        ("target_rr", "target_relative_risk"),
        ("max_n", "max_sample_size"),
    ]:
        v = getattr(args, attr, None)
        if v is not None:
            overrides[field_name] = v
    if getattr(args, "no_stop_on_signal", False):
        overrides["stop_on_signal"] = False
    surveillance = replace(settings.surveillance, **overrides) if overrides else settings.surveillance

    season_start = parse_date(getattr(args, "season_start", None)) or settings.season_start

    return replace(settings, windows=windows, surveillance=surveillance, season_start=season_start)
