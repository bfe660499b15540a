from __future__ import annotations

import warnings
from typing import Tuple

import numpy as np
from scipy import optimize

from scrisurv.sequential.errors import ConfidenceIntervalWarning


def rate_ratio(events_risk: int, events_control: int, risk_length: int, control_length: int) -> float:
    """Window-length-normalized rate ratio with +0.5 continuity correction on both counts."""
    risk_rate = (events_risk + 0.5) / risk_length
    control_rate = (events_control + 0.5) / control_length
    return float(risk_rate / control_rate)


def _profile_llr(log_rr: float, x: float, m: float, z: float) -> float:
    """Likelihood-ratio distance between the observed split (x, m) and allocation at RR = exp(log_rr)."""
    n = x + m
    p_hat = x / n
    p = 1.0 / (1.0 + z * np.exp(-log_rr))
    return float(x * np.log(p_hat / p) + m * np.log((1.0 - p_hat) / (1.0 - p)))


def sequential_confidence_interval(
    events_risk: int,
    events_control: int,
    critical_value: float,
    z: float,
    *,
    search_range: Tuple[float, float] = (1e-6, 1e6),
) -> Tuple[float, float]:
    """Repeated confidence interval for the rate ratio at one look.

    Returns the rate ratios at which the likelihood-ratio statistic of the
    (continuity-corrected) counts reaches `critical_value` on either side of
    the corrected point estimate; those are the values a test at this look's
    boundary would only just reject. The corrected estimate is always inside.

    If a bound cannot be bracketed within `search_range`, that bound is NaN and
    a ConfidenceIntervalWarning is issued; the test decision is unaffected.
    """
    x = float(events_risk) + 0.5
    m = float(events_control) + 0.5
    center = float(np.log(z * x / m))
    lo_log, hi_log = float(np.log(search_range[0])), float(np.log(search_range[1]))
    cv = float(critical_value)

    if not np.isfinite(cv) or cv <= 0:
        warnings.warn(
            f"Cannot invert critical value {cv!r} into a confidence interval.",
            ConfidenceIntervalWarning,
            stacklevel=2,
        )
        return float("nan"), float("nan")

    def f(log_rr: float) -> float:
        return _profile_llr(float(log_rr), x, m, z) - cv

    def solve(a: float, b: float) -> float:
        if not a < b or np.sign(f(a)) == np.sign(f(b)):
            return float("nan")
        try:
            return float(np.exp(optimize.brentq(f, a, b, xtol=1e-12, maxiter=200)))
        except (RuntimeError, ValueError):
            return float("nan")

    lower = solve(lo_log, center)
    upper = solve(center, hi_log)

    if not (np.isfinite(lower) and np.isfinite(upper)):
        warnings.warn(
            f"Sequential-adjusted CI not bracketed within RR range {search_range} "
            f"(events_risk={events_risk}, events_control={events_control}, cv={cv:.6g}).",
            ConfidenceIntervalWarning,
            stacklevel=2,
        )
    return lower, upper
