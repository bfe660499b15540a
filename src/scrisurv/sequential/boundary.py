"""Exact sequential critical values for the binomial MaxSPRT.

Under H0 the risk-window count at cumulative sample size n is Binomial(n, p0),
and counts at successive looks form one random walk. At look k the calculator
propagates the probability mass of paths that have not crossed any earlier
boundary (forward recursion over cumulative counts), then bisects the critical
value on the log-likelihood-ratio scale until the mass rejected at look k,
added to everything rejected before, stays within the cumulative alpha the
spending function allows at the current information fraction.

Counts are discrete, so the target can rarely be hit exactly: the calculator
returns the smallest critical value whose cumulative rejected mass does not
exceed the target. Alpha left unspent at one look remains available later
because targets are cumulative.
"""

from __future__ import annotations

from typing import List, Sequence

import numpy as np
from scipy.stats import binom

from scrisurv.sequential.errors import BoundaryComputationError
from scrisurv.sequential.schema import BoundaryPoint
from scrisurv.sequential.spending import AlphaSpending
from scrisurv.sequential.tester import binomial_llr


def information_fraction(n: int, n_max: int) -> float:
    if n_max <= 0:
        return float("nan")
    return float(min(1.0, max(0.0, n / n_max)))


def _advance(active: np.ndarray, steps: int, p: float) -> np.ndarray:
    """Distribution of cumulative counts after `steps` more Bernoulli(p) events."""
    increment = binom.pmf(np.arange(steps + 1), steps, p)
    return np.convolve(active, increment)


def surviving_mass(history: Sequence[BoundaryPoint], p: float) -> np.ndarray:
    """Mass over cumulative counts 0..n_last of paths that never crossed a boundary in `history`."""
    active = np.array([1.0])
    prev_n = 0
    for point in history:
        if point.n <= prev_n:
            raise BoundaryComputationError(
                f"Cumulative sample sizes must increase across looks (got {point.n} after {prev_n})."
            )
        active = _advance(active, point.n - prev_n, p)
        if point.threshold <= point.n:
            active[point.threshold :] = 0.0
        prev_n = point.n
    return active


def rejection_by_look(history: Sequence[BoundaryPoint], p: float) -> List[float]:
    """Probability of first crossing at each look when events fall in the risk window w.p. `p`."""
    out: List[float] = []
    active = np.array([1.0])
    prev_n = 0
    for point in history:
        if point.n <= prev_n:
            raise BoundaryComputationError(
                f"Cumulative sample sizes must increase across looks (got {point.n} after {prev_n})."
            )
        active = _advance(active, point.n - prev_n, p)
        if point.threshold <= point.n:
            out.append(float(active[point.threshold :].sum()))
            active[point.threshold :] = 0.0
        else:
            out.append(0.0)
        prev_n = point.n
    return out


def exact_rejection_probability(history: Sequence[BoundaryPoint], p: float) -> float:
    """Probability of crossing any boundary in `history`; p = p0 gives the attained Type-I error."""
    return float(sum(rejection_by_look(history, p)))


def critical_value(
    n: int,
    history: Sequence[BoundaryPoint],
    spending: AlphaSpending,
    *,
    p0: float,
    n_max: int,
    tol: float = 1e-7,
    max_iter: int = 200,
) -> BoundaryPoint:
    """Critical value for the next analyzed look at cumulative sample size `n`.

    Raises BoundaryComputationError if `n` does not exceed the previous look's
    sample size or the bisection does not reach `tol` within `max_iter` steps.
    """
    n = int(n)
    prev_n = history[-1].n if history else 0
    if n <= prev_n:
        raise BoundaryComputationError(
            f"Cumulative sample size must increase across analyzed looks (got n={n} after n={prev_n})."
        )

    active = _advance(surviving_mass(history, p0), n - prev_n, p0)
    # tail[c] = mass at counts >= c; tail[n + 1] = 0
    tail = np.concatenate([np.cumsum(active[::-1])[::-1], [0.0]])

    spent_before = history[-1].cumulative_alpha if history else 0.0
    t = information_fraction(n, n_max)
    target = float(spending(t))

    llr = np.maximum.accumulate(binomial_llr(np.arange(n + 1), n, p0))

    def threshold_for(cv: float) -> int:
        return int(np.searchsorted(llr, cv, side="left"))

    def within_budget(cv: float) -> bool:
        return spent_before + float(tail[threshold_for(cv)]) <= target + 1e-12

    lo = 0.0
    hi = float(llr[-1]) + 1.0
    it = 0
    while hi - lo > tol:
        if it >= max_iter:
            raise BoundaryComputationError(
                f"Critical value bisection did not converge in {max_iter} iterations at n={n} "
                f"(bracket [{lo:.6g}, {hi:.6g}], tol={tol:g})."
            )
        mid = 0.5 * (lo + hi)
        if within_budget(mid):
            hi = mid
        else:
            lo = mid
        it += 1

    c = threshold_for(hi)
    return BoundaryPoint(
        n=n,
        information_fraction=t,
        critical_value=float(hi),
        threshold=c,
        alpha_target=target,
        cumulative_alpha=float(spent_before + tail[c]),
    )
