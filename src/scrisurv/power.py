"""
Sample size planning for SCRI sequential surveillance.

Focus:
- required number of cases (events) to detect a target relative risk;
- approximate power across a grid of relative risks;
- operational translation of cases into person-time and vaccinations.

The formulas are normal approximations to the one-sided binomial test of
the risk-window proportion, inflated by an empirical factor for repeated
looks. They are planning numbers; the exact operating characteristics of a
chosen look schedule come from :mod:`scrisurv.sequential.validation`.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
import pandas as pd
from scipy.stats import norm

from scrisurv.sequential.null_model import null_model
from scrisurv.sequential.schema import WindowSpec


DEFAULT_RR_GRID = (1.0, 1.2, 1.5, 2.0, 2.5, 3.0)


@dataclass
class SCRISampleSize:
    """
    Container for SCRI sample size calculations.

    Attributes
    ----------
    n_single : float
        Cases required for a single (non-sequential) one-sided test.
    inflation_factor : float
        Multiplier applied for sequential monitoring.
    n_cases : int
        Required number of cases, rounded up.
    p0 : float
        Risk-window proportion under H0.
    p1 : float
        Risk-window proportion at the target relative risk.
    alpha : float
        One-sided significance level.
    power : float
        Target statistical power.
    n_looks : int
        Planned number of sequential looks.
    target_relative_risk : float
        Relative risk the design should detect.
    """
    n_single: float
    inflation_factor: float
    n_cases: int
    p0: float
    p1: float
    alpha: float
    power: float
    n_looks: int
    target_relative_risk: float


@dataclass
class OperationalEstimate:
    n_cases: int
    person_time_per_case: float
    total_person_time: float
    vaccinations_needed: int
    population_size: Optional[int]
    adequate: Optional[bool]
    recommended_population: Optional[int]
    expected_surveillance_days: Optional[int]


def _z_alpha(alpha: float) -> float:
    """Return the one-sided critical z-value for a given alpha."""
    if not 0 < alpha < 1:
        raise ValueError("alpha must be in (0, 1).")
    return norm.ppf(1 - alpha)


def _z_beta(power: float) -> float:
    """Return z-value corresponding to the desired power (1 - beta)."""
    if not 0 < power < 1:
        raise ValueError("power must be in (0, 1).")
    return norm.ppf(power)


def sequential_inflation(n_looks: int) -> float:
    """Empirical sample-size inflation for Wald-type spending over n_looks."""
    if n_looks < 1:
        raise ValueError("n_looks must be >= 1.")
    return 1.0 + (0.05 + 0.01 * n_looks)


def alternative_proportion(relative_risk: float, windows: WindowSpec) -> float:
    """
    Risk-window proportion of events when the risk-window rate is RR times the control rate.

    Parameters
    ----------
    relative_risk : float
        True relative risk (> 0).
    windows : WindowSpec
        Risk and control window definition.

    Returns
    -------
    float
        p1 = RR * risk_len / (RR * risk_len + control_len).
    """
    if relative_risk <= 0:
        raise ValueError("relative_risk must be positive.")
    rl = windows.risk_length
    cl = windows.control_length
    return relative_risk * rl / (relative_risk * rl + cl)


def sample_size_scri(
    windows: WindowSpec,
    alpha: float = 0.05,
    n_looks: int = 8,
    target_relative_risk: float = 1.5,
    power: float = 0.9,
) -> SCRISampleSize:
    """
    Compute the number of cases required to detect a target relative risk.

    Parameters
    ----------
    windows : WindowSpec
        Risk and control window definition.
    alpha : float, optional
        One-sided significance level, by default 0.05.
    n_looks : int, optional
        Planned number of sequential looks, by default 8.
    target_relative_risk : float, optional
        Relative risk to detect (> 1), by default 1.5.
    power : float, optional
        Desired power (1 - beta), by default 0.9.

    Returns
    -------
    SCRISampleSize
        Single-test and sequentially inflated sample sizes.
    """
    if target_relative_risk <= 1.0:
        raise ValueError("target_relative_risk must be > 1 for a one-sided safety test.")

    p0 = null_model(windows).p0
    p1 = alternative_proportion(target_relative_risk, windows)
    z_a = _z_alpha(alpha)
    z_b = _z_beta(power)

    # n = (z_a + z_b)^2 * (p0(1-p0) + p1(1-p1)) / (p1 - p0)^2
    n_single = ((z_a + z_b) ** 2 * (p0 * (1 - p0) + p1 * (1 - p1))) / ((p1 - p0) ** 2)
    inflation = sequential_inflation(n_looks)

    return SCRISampleSize(
        n_single=float(n_single),
        inflation_factor=float(inflation),
        n_cases=int(math.ceil(n_single * inflation)),
        p0=float(p0),
        p1=float(p1),
        alpha=float(alpha),
        power=float(power),
        n_looks=int(n_looks),
        target_relative_risk=float(target_relative_risk),
    )


def approximate_power(
    relative_risk: float,
    windows: WindowSpec,
    n_cases: int,
    alpha: float = 0.05,
    n_looks: int = 8,
) -> float:
    """
    Approximate power of the sequential test with n_cases at a given relative risk.

    Normal approximation with the critical value shrunk by sqrt(inflation);
    at RR = 1 this is close to, but not exactly, alpha.
    """
    if n_cases <= 0:
        raise ValueError("n_cases must be positive.")
    p0 = null_model(windows).p0
    p1 = alternative_proportion(relative_risk, windows)
    z_a = _z_alpha(alpha)
    ncp = math.sqrt(n_cases) * (p1 - p0) / math.sqrt(p0 * (1 - p0))
    return float(norm.cdf(ncp - z_a / math.sqrt(sequential_inflation(n_looks))))


def power_table(
    windows: WindowSpec,
    n_cases: int,
    alpha: float = 0.05,
    n_looks: int = 8,
    rr_values: Sequence[float] = DEFAULT_RR_GRID,
) -> pd.DataFrame:
    rows = []
    for rr in rr_values:
        rows.append(
            {
                "relative_risk": float(rr),
                "p1": alternative_proportion(float(rr), windows),
                "power": approximate_power(float(rr), windows, n_cases, alpha=alpha, n_looks=n_looks),
            }
        )
    return pd.DataFrame(rows, columns=["relative_risk", "p1", "power"])


def operational_estimates(
    n_cases: int,
    windows: WindowSpec,
    baseline_rate: float,
    population_size: Optional[int] = None,
    season_length_days: Optional[int] = None,
) -> OperationalEstimate:
    """
    Translate a case count into person-time and vaccinations.

    Parameters
    ----------
    n_cases : int
        Required number of cases.
    windows : WindowSpec
        Risk and control window definition.
    baseline_rate : float
        Baseline event rate per person-day.
    population_size : int, optional
        Current vaccinated population; enables the adequacy check.
    season_length_days : int, optional
        Season length; surveillance is expected to take ~80% of it.

    Returns
    -------
    OperationalEstimate
        Person-time, vaccinations needed and adequacy of the population.
    """
    if n_cases <= 0:
        raise ValueError("n_cases must be positive.")
    if not 0 < baseline_rate < 1:
        raise ValueError("baseline_rate must be in (0, 1).")

    total_window = windows.risk_length + windows.control_length
    per_case = total_window / baseline_rate
    total = n_cases * per_case
    vaccinations = int(np.ceil(total / total_window))

    adequate: Optional[bool] = None
    recommended: Optional[int] = None
    if population_size is not None:
        adequate = vaccinations <= int(population_size)
        recommended = int(population_size) if adequate else int(math.ceil(vaccinations * 1.2))

    duration = int(math.ceil(0.8 * season_length_days)) if season_length_days is not None else None

    return OperationalEstimate(
        n_cases=int(n_cases),
        person_time_per_case=float(per_case),
        total_person_time=float(total),
        vaccinations_needed=vaccinations,
        population_size=int(population_size) if population_size is not None else None,
        adequate=adequate,
        recommended_population=recommended,
        expected_surveillance_days=duration,
    )
