"""Alpha-spending families.

A spending function f(t) allocates the overall Type-I error across looks as a
function of the information fraction t = n / N_max, with f(0) = 0 and f(1) = alpha.

* ``power_type``: f(t) = alpha * t**rho.
* ``wald``: the spending curve of Wald's continuous sequential test with a flat
  upper boundary, checked after every event from the minimum case count up to
  N_max. With a target relative risk above 1 the per-event statistic is the
  classical SPRT log-likelihood ratio against that target; otherwise the
  maximized (MaxSPRT) likelihood ratio is used. The flat boundary is solved so
  that the continuous test spends at most alpha, and its cumulative crossing
  probabilities are rescaled to reach exactly alpha at t = 1. The curve is
  front-loaded, spending a large share of alpha early.

The family is chosen once per run through :func:`make_spending`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional, Union

import numpy as np

from scrisurv.sequential.errors import BoundaryComputationError
from scrisurv.sequential.schema import SpendingFamily
from scrisurv.sequential.tester import binomial_llr


@dataclass(frozen=True)
class PowerSpending:
    alpha: float
    rho: float = 1.0

    def __call__(self, t: float) -> float:
        tt = float(min(1.0, max(0.0, t)))
        return float(self.alpha * tt**self.rho)


@dataclass(frozen=True)
class WaldSpending:
    alpha: float
    n_max: int
    flat_level: float
    curve: np.ndarray = field(repr=False, compare=False)

    def __call__(self, t: float) -> float:
        tt = float(min(1.0, max(0.0, t)))
        if tt >= 1.0:
            return float(self.alpha)
        total = float(self.curve[-1])
        n = int(np.floor(tt * self.n_max + 1e-9))
        return float(self.alpha * self.curve[n] / total)


AlphaSpending = Union[PowerSpending, WaldSpending]


def _per_event_threshold(n: int, level: float, p0: float, p1: Optional[float]) -> int:
    """Smallest risk-window count at sample size n whose statistic reaches `level`."""
    if p1 is not None:
        a = np.log(p1 / p0)
        b = np.log((1.0 - p1) / (1.0 - p0))
        c = int(np.ceil((level - n * b) / (a - b) - 1e-12))
        return int(min(max(c, 0), n + 1))
    llr = np.maximum.accumulate(binomial_llr(np.arange(n + 1), n, p0))
    return int(np.searchsorted(llr, level, side="left"))


def flat_boundary_curve(
    p0: float,
    n_max: int,
    min_events: int,
    level: float,
    p1: Optional[float] = None,
    stop_above: Optional[float] = None,
) -> np.ndarray:
    """Cumulative H0 crossing probability, by event count, of a flat boundary checked after every event.

    Returns an array of length n_max + 1 (entry n = probability of having
    crossed by the n-th event). When `stop_above` is given the recursion stops
    as soon as the spent probability exceeds it; the remaining entries then
    hold that partial value.
    """
    curve = np.zeros(n_max + 1, dtype=float)
    active = np.array([1.0])
    spent = 0.0
    for n in range(1, n_max + 1):
        nxt = np.zeros(n + 1, dtype=float)
        nxt[:-1] += active * (1.0 - p0)
        nxt[1:] += active * p0
        if n >= min_events:
            c = _per_event_threshold(n, level, p0, p1)
            if c <= n:
                spent += float(nxt[c:].sum())
                nxt[c:] = 0.0
        curve[n] = spent
        active = nxt
        if stop_above is not None and spent > stop_above:
            curve[n:] = spent
            break
    return curve


def _solve_flat_level(
    alpha: float,
    p0: float,
    n_max: int,
    min_events: int,
    p1: Optional[float],
    tol: float,
    max_iter: int,
) -> float:
    if p1 is not None:
        hi = n_max * float(np.log(p1 / p0)) + 1.0
    else:
        hi = n_max * float(np.log(1.0 / p0)) + 1.0
    lo = 0.0
    it = 0
    while hi - lo > tol:
        if it >= max_iter:
            raise BoundaryComputationError(
                f"Wald spending: flat boundary did not converge in {max_iter} iterations "
                f"(bracket [{lo:.6g}, {hi:.6g}])."
            )
        mid = 0.5 * (lo + hi)
        total = flat_boundary_curve(p0, n_max, min_events, mid, p1=p1, stop_above=alpha)[-1]
        if total <= alpha + 1e-12:
            hi = mid
        else:
            lo = mid
        it += 1
    return hi


@lru_cache(maxsize=32)
def _wald_spending(
    alpha: float,
    p0: float,
    n_max: int,
    min_events: int,
    p1: Optional[float],
    tol: float,
    max_iter: int,
) -> WaldSpending:
    level = _solve_flat_level(alpha, p0, n_max, min_events, p1, tol, max_iter)
    curve = flat_boundary_curve(p0, n_max, min_events, level, p1=p1)
    if not curve[-1] > 0:
        raise BoundaryComputationError(
            f"Wald spending: flat boundary at level {level:.6g} is never crossed by N_max={n_max} "
            f"(min_events={min_events}); the spending curve is identically zero."
        )
    curve.setflags(write=False)
    return WaldSpending(alpha=alpha, n_max=n_max, flat_level=level, curve=curve)


def make_spending(
    family: SpendingFamily,
    alpha: float,
    *,
    p0: float,
    n_max: int,
    min_events: int = 1,
    target_relative_risk: float = 1.5,
    rho: float = 1.0,
    tol: float = 1e-7,
    max_iter: int = 200,
) -> AlphaSpending:
    family = SpendingFamily(family)
    if family == SpendingFamily.POWER_TYPE:
        return PowerSpending(alpha=float(alpha), rho=float(rho))

    if n_max < 1:
        raise ValueError("n_max must be >= 1.")
    rr = float(target_relative_risk)
    z = (1.0 - p0) / p0
    p1 = rr / (rr + z) if rr > 1.0 else None
    return _wald_spending(float(alpha), float(p0), int(n_max), max(1, int(min_events)), p1, float(tol), int(max_iter))
