from __future__ import annotations

from dataclasses import dataclass
from datetime import date

import numpy as np
import pandas as pd

from scrisurv.sequential.schema import WindowSpec


@dataclass(frozen=True)
class SCRISimConfig:
    population_size: int = 20000
    season_start: date = date(2024, 10, 1)
    season_end: date = date(2025, 3, 31)
    baseline_event_rate: float = 0.0002  # per person-day
    relative_risk: float = 1.5
    vaccination_decay_rate: float = 0.02  # exponential uptake over the season
    seed: int = 12345

    def __post_init__(self) -> None:
        if self.population_size < 0:
            raise ValueError("population_size must be >= 0.")
        if self.season_end <= self.season_start:
            raise ValueError("season_end must be after season_start.")
        if self.baseline_event_rate < 0:
            raise ValueError("baseline_event_rate must be >= 0.")
        if not self.relative_risk > 0:
            raise ValueError("relative_risk must be > 0.")


def simulate_scri_cases(cfg: SCRISimConfig, windows: WindowSpec) -> pd.DataFrame:
    """Generate a case-only SCRI dataset for one season.

    Vaccination dates decay exponentially from the season start; only people
    whose control window ends within the season can become cases. Each case's
    event falls in the risk window with probability
    RR*risk_len / (RR*risk_len + control_len), on a uniformly drawn day.
    """
    rng = np.random.default_rng(int(cfg.seed))
    season_len = (cfg.season_end - cfg.season_start).days

    days = np.arange(season_len + 1)
    weights = np.exp(-float(cfg.vaccination_decay_rate) * days)
    weights = weights / weights.sum()
    offsets = rng.choice(days, size=int(cfg.population_size), replace=True, p=weights)

    complete = offsets + windows.control_end <= season_len
    offsets = offsets[complete]
    person_ids = np.flatnonzero(complete) + 1

    risk_len = windows.risk_length
    control_len = windows.control_length
    rr = float(cfg.relative_risk)
    risk_pt = float(len(offsets) * risk_len)
    total_pt = float(len(offsets) * (risk_len + control_len))

    expected = cfg.baseline_event_rate * total_pt * (1.0 + (rr - 1.0) * risk_pt / total_pt) if total_pt > 0 else 0.0
    n_cases = int(min(rng.poisson(expected), len(offsets)))

    idx = np.sort(rng.choice(len(offsets), size=n_cases, replace=False))
    p_risk = rr * risk_len / (rr * risk_len + control_len)
    in_risk = rng.random(n_cases) < p_risk

    day_in_risk = windows.risk_start + rng.integers(0, risk_len, size=n_cases)
    day_in_control = windows.control_start + rng.integers(0, control_len, size=n_cases)
    event_day = np.where(in_risk, day_in_risk, day_in_control)

    start = pd.Timestamp(cfg.season_start)
    exposure = start + pd.to_timedelta(offsets[idx], unit="D")
    event = exposure + pd.to_timedelta(event_day, unit="D")

    return pd.DataFrame(
        {
            "case_id": [f"P{int(i):05d}" for i in person_ids[idx]],
            "exposure_date": exposure.date,
            "event_date": event.date,
            "days_to_event": event_day.astype(int),
            "window": np.where(in_risk, "risk", "control"),
            "control_window_end": (exposure + pd.to_timedelta(windows.control_end, unit="D")).date,
        }
    )
