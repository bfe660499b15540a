"""YAML configuration for surveillance runs.

Expected layout (all sections optional, defaults as in the dataclasses)::

    scri_design:
      risk_window: {start_day: 1, end_day: 28}
      control_window: {start_day: 29, end_day: 56}
    sequential_analysis:
      overall_alpha: 0.05
      number_of_looks: 8
      look_interval_days: 14
      minimum_cases_per_look: 20
      stop_on_signal: true
      alpha_spending: wald          # or power_type
      spending_rho: 1.0
      max_sample_size: null
      target_relative_risk: 1.5     # falls back to simulation.true_relative_risk
      season_start: 2024-10-01      # falls back to simulation.season_start, then earliest exposure
    simulation:
      population_size: 20000
      season_start: 2024-10-01
      season_end: 2025-03-31
      baseline_event_rate: 0.0002
      true_relative_risk: 1.5
      random_seed: 12345
    output:
      directory: surveillance_outputs
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from scrisurv.sequential.errors import InvalidWindowConfig
from scrisurv.sequential.schema import SpendingFamily, SurveillanceConfig, WindowSpec
from scrisurv.sequential.simulate import SCRISimConfig


@dataclass(frozen=True)
class SurveillanceSettings:
    windows: WindowSpec
    surveillance: SurveillanceConfig
    simulation: SCRISimConfig
    season_start: Optional[date] = None
    output_directory: str = "surveillance_outputs"


def _section(cfg: Dict[str, Any], name: str) -> Dict[str, Any]:
    sec = cfg.get(name, {}) or {}
    if not isinstance(sec, dict):
        raise ValueError(f"Config section `{name}` must be a mapping (YAML dict).")
    return sec


def _as_date(v: Any, field_name: str) -> date:
    if isinstance(v, date):
        return v
    try:
        return date.fromisoformat(str(v))
    except ValueError as exc:
        raise ValueError(f"{field_name} must be an ISO date (YYYY-MM-DD), got {v!r}") from exc


def _window(design: Dict[str, Any], name: str, default_start: int, default_end: int) -> tuple[int, int]:
    w = design.get(name, {}) or {}
    if not isinstance(w, dict):
        raise InvalidWindowConfig(f"scri_design.{name} must be a mapping with start_day/end_day.")
    try:
        return int(w.get("start_day", default_start)), int(w.get("end_day", default_end))
    except (TypeError, ValueError) as exc:
        raise InvalidWindowConfig(f"scri_design.{name} start_day/end_day must be integers.") from exc


def windows_from_dict(cfg: Dict[str, Any]) -> WindowSpec:
    design = _section(cfg, "scri_design")
    rs, re_ = _window(design, "risk_window", 1, 28)
    cs, ce = _window(design, "control_window", 29, 56)
    return WindowSpec(risk_start=rs, risk_end=re_, control_start=cs, control_end=ce)


def settings_from_dict(cfg: Dict[str, Any]) -> SurveillanceSettings:
    windows = windows_from_dict(cfg)
    seq = _section(cfg, "sequential_analysis")
    sim = _section(cfg, "simulation")
    out = _section(cfg, "output")

    sim_defaults = SCRISimConfig()
    simulation = SCRISimConfig(
        population_size=int(sim.get("population_size", sim_defaults.population_size)),
        season_start=_as_date(sim.get("season_start", sim_defaults.season_start), "simulation.season_start"),
        season_end=_as_date(sim.get("season_end", sim_defaults.season_end), "simulation.season_end"),
        baseline_event_rate=float(sim.get("baseline_event_rate", sim_defaults.baseline_event_rate)),
        relative_risk=float(sim.get("true_relative_risk", sim_defaults.relative_risk)),
        vaccination_decay_rate=float(sim.get("vaccination_decay_rate", sim_defaults.vaccination_decay_rate)),
        seed=int(sim.get("random_seed", sim_defaults.seed)),
    )

    max_n: Optional[Any] = seq.get("max_sample_size")
    surveillance = SurveillanceConfig(
        overall_alpha=float(seq.get("overall_alpha", 0.05)),
        planned_number_of_looks=int(seq.get("number_of_looks", 8)),
        look_interval_days=int(seq.get("look_interval_days", 14)),
        minimum_cases_per_look=int(seq.get("minimum_cases_per_look", 20)),
        stop_on_signal=bool(seq.get("stop_on_signal", True)),
        target_relative_risk=float(seq.get("target_relative_risk", simulation.relative_risk)),
        alpha_spending_family=SpendingFamily(str(seq.get("alpha_spending", "wald")).replace("-", "_").lower()),
        spending_rho=float(seq.get("spending_rho", 1.0)),
        max_sample_size=int(max_n) if max_n is not None else None,
        boundary_tolerance=float(seq.get("boundary_tolerance", 1e-7)),
        boundary_max_iterations=int(seq.get("boundary_max_iterations", 200)),
    )

    season_start: Optional[date] = None
    if seq.get("season_start") is not None:
        season_start = _as_date(seq["season_start"], "sequential_analysis.season_start")
    elif sim.get("season_start") is not None:
        season_start = simulation.season_start

    return SurveillanceSettings(
        windows=windows,
        surveillance=surveillance,
        simulation=simulation,
        season_start=season_start,
        output_directory=str(out.get("directory", "surveillance_outputs")),
    )


def load_yaml(path: str) -> Dict[str, Any]:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Config not found: {path}")
    data = yaml.safe_load(p.read_text(encoding="utf-8"))
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError("Config root must be a mapping (YAML dict).")
    return data


def load_settings(path: str) -> SurveillanceSettings:
    return settings_from_dict(load_yaml(path))
