from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from scipy.stats import norm


def binomial_llr(x, n: int, p0: float) -> np.ndarray:
    """One-sided binomial MaxSPRT log-likelihood ratio for risk-window counts `x` out of `n`.

    LLR = x*ln(x/(n*p0)) + (n-x)*ln((n-x)/(n*(1-p0))) when x/n > p0, else 0.
    Vectorized over `x`.
    """
    xs = np.asarray(x, dtype=float)
    nn = float(n)
    rest = nn - xs
    with np.errstate(divide="ignore", invalid="ignore"):
        t1 = np.where(xs > 0, xs * np.log(np.where(xs > 0, xs, 1.0) / (nn * p0)), 0.0)
        t2 = np.where(rest > 0, rest * np.log(np.where(rest > 0, rest, 1.0) / (nn * (1.0 - p0))), 0.0)
    llr = np.maximum(t1 + t2, 0.0)
    return np.where(xs > nn * p0, llr, 0.0)


def llr_statistic(events_risk: int, n: int, p0: float) -> float:
    if n <= 0:
        return 0.0
    return float(binomial_llr(np.array([events_risk]), n, p0)[0])


def z_statistic(events_risk: int, n: int, p0: float) -> float:
    """Standardized proportion in the risk window (display only)."""
    if n <= 0:
        return float("nan")
    se = np.sqrt(p0 * (1.0 - p0) / n)
    return float((events_risk / n - p0) / se)


@dataclass(frozen=True)
class LookDecision:
    statistic: float
    critical_value: float
    rejected: bool
    z_statistic: float
    p_value: float


def sequential_test(events_risk: int, events_control: int, critical_value: float, p0: float) -> LookDecision:
    """Upper-tailed decision for one look: reject iff LLR >= critical value."""
    n = int(events_risk) + int(events_control)
    stat = llr_statistic(int(events_risk), n, p0)
    cv = float(critical_value)
    rejected = bool(np.isfinite(cv) and stat >= cv)
    z = z_statistic(int(events_risk), n, p0)
    p = float(norm.sf(z)) if np.isfinite(z) else float("nan")
    return LookDecision(statistic=stat, critical_value=cv, rejected=rejected, z_statistic=z, p_value=p)
