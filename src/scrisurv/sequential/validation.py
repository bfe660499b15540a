"""Type-I error and power checks for a fixed look schedule.

Boundaries depend only on the cumulative sample sizes at the analyzed looks,
never on the observed counts, so for a fixed schedule they are computed once
and reused across every simulated path.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd

from scrisurv.sequential.boundary import critical_value, exact_rejection_probability, rejection_by_look
from scrisurv.sequential.null_model import null_model
from scrisurv.sequential.schema import BoundaryPoint, SurveillanceConfig, WindowSpec
from scrisurv.sequential.spending import make_spending


def boundary_schedule(
    sample_sizes: Sequence[int],
    windows: WindowSpec,
    cfg: SurveillanceConfig,
    *,
    max_sample_size: Optional[int] = None,
) -> List[BoundaryPoint]:
    """Exact boundaries for looks at the given cumulative sample sizes."""
    sizes = [int(n) for n in sample_sizes]
    if not sizes:
        raise ValueError("sample_sizes is empty")
    if any(b <= a for a, b in zip(sizes, sizes[1:])):
        raise ValueError(f"sample_sizes must be strictly increasing, got {sizes}")

    model = null_model(windows)
    n_max = int(max_sample_size or cfg.max_sample_size or sizes[-1])
    spending = make_spending(
        cfg.alpha_spending_family,
        cfg.overall_alpha,
        p0=model.p0,
        n_max=n_max,
        min_events=cfg.minimum_cases_per_look,
        target_relative_risk=cfg.target_relative_risk,
        rho=cfg.spending_rho,
        tol=cfg.boundary_tolerance,
        max_iter=cfg.boundary_max_iterations,
    )
    history: List[BoundaryPoint] = []
    for n in sizes:
        history.append(
            critical_value(
                n,
                history,
                spending,
                p0=model.p0,
                n_max=n_max,
                tol=cfg.boundary_tolerance,
                max_iter=cfg.boundary_max_iterations,
            )
        )
    return history


def boundary_frame(history: Sequence[BoundaryPoint]) -> pd.DataFrame:
    return pd.DataFrame(
        {
            "look": np.arange(1, len(history) + 1),
            "n": [b.n for b in history],
            "information_fraction": [b.information_fraction for b in history],
            "critical_value": [b.critical_value for b in history],
            "threshold": [b.threshold for b in history],
            "alpha_target": [b.alpha_target for b in history],
            "cumulative_alpha": [b.cumulative_alpha for b in history],
        }
    )


@dataclass
class OperatingCharacteristics:
    relative_risk: float
    allocation_probability: float
    n_sims: int
    rejection_rate: float
    standard_error: float
    exact_probability: float
    mean_signal_look: Optional[float]
    boundary: pd.DataFrame = field(repr=False)
    exact_by_look: List[float] = field(default_factory=list)


def simulate_operating_characteristics(
    sample_sizes: Sequence[int],
    windows: WindowSpec,
    cfg: SurveillanceConfig,
    *,
    relative_risk: float = 1.0,
    n_sims: int = 1000,
    seed: int = 42,
    max_sample_size: Optional[int] = None,
) -> OperatingCharacteristics:
    """Monte-Carlo rejection rate of the sequential test, next to its exact value.

    relative_risk = 1 estimates the Type-I error; larger values estimate power.
    """
    if n_sims <= 0:
        raise ValueError("n_sims must be > 0")
    history = boundary_schedule(sample_sizes, windows, cfg, max_sample_size=max_sample_size)
    p = null_model(windows).allocation_probability(relative_risk)

    rng = np.random.default_rng(int(seed))
    sizes = np.array([b.n for b in history], dtype=int)
    steps = np.diff(np.concatenate([[0], sizes]))
    counts = np.cumsum(rng.binomial(steps, p, size=(int(n_sims), len(steps))), axis=1)
    thresholds = np.array([b.threshold for b in history], dtype=int)
    crossed = counts >= thresholds[None, :]

    any_cross = crossed.any(axis=1)
    rate = float(any_cross.mean())
    first = np.argmax(crossed, axis=1) + 1
    mean_look = float(first[any_cross].mean()) if any_cross.any() else None

    return OperatingCharacteristics(
        relative_risk=float(relative_risk),
        allocation_probability=float(p),
        n_sims=int(n_sims),
        rejection_rate=rate,
        standard_error=float(np.sqrt(max(rate * (1.0 - rate), 1e-12) / n_sims)),
        exact_probability=exact_rejection_probability(history, p),
        mean_signal_look=mean_look,
        boundary=boundary_frame(history),
        exact_by_look=rejection_by_look(history, p),
    )
