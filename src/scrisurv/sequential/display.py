"""Display-only z-scale boundaries.

Reject/continue decisions always come from the exact boundary in
:mod:`scrisurv.sequential.boundary`; these constants are drawn on plots next to
the standardized z-statistic.
"""

from __future__ import annotations

from typing import List

import numpy as np
from scipy import optimize
from scipy.stats import multivariate_normal, norm


def _corr_from_sample_sizes(sizes: List[int]) -> np.ndarray:
    """Correlation of cumulative z-statistics at sample sizes n_i, n_j: sqrt(min/max)."""
    n = np.maximum(np.asarray(sizes, dtype=float), 1e-12)
    lo = np.minimum.outer(n, n)
    hi = np.maximum.outer(n, n)
    return np.sqrt(lo / hi)


def pocock_display_boundary(alpha: float, sample_sizes: List[int]) -> float:
    """One-sided Pocock constant z-boundary for the analyzed looks.

    Falls back to Bonferroni (alpha / K) if the multivariate-normal root-find fails.
    """
    K = len(sample_sizes)
    if K <= 0:
        return np.nan
    z_single = float(norm.ppf(1 - alpha))
    if K == 1:
        return z_single

    mvn = multivariate_normal(mean=np.zeros(K), cov=_corr_from_sample_sizes(list(sample_sizes)), allow_singular=True)

    def excess(c: float) -> float:
        return (1.0 - float(mvn.cdf(np.full(K, c)))) - float(alpha)

    try:
        return float(optimize.brentq(excess, z_single, 6.0, maxiter=200))
    except (ValueError, RuntimeError):
        return float(norm.ppf(1 - alpha / K))


def bonferroni_display_boundary(alpha: float, n_looks: int) -> float:
    return float(norm.ppf(1 - alpha / max(1, int(n_looks))))
