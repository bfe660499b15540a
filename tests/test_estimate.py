import numpy as np
import pytest

from scrisurv.sequential.errors import ConfidenceIntervalWarning
from scrisurv.sequential.estimate import rate_ratio, sequential_confidence_interval


def test_rate_ratio_no_events_is_one():
    assert rate_ratio(0, 0, 28, 28) == 1.0


def test_rate_ratio_reciprocal_symmetry():
    for a, b in [(3, 7), (0, 12), (25, 5)]:
        assert rate_ratio(a, b, 28, 28) == pytest.approx(1.0 / rate_ratio(b, a, 28, 28))


def test_rate_ratio_normalizes_window_lengths():
    # 14-day risk vs 42-day control: equal daily rates give RR ~ 1
    assert rate_ratio(10, 30, 14, 42) == pytest.approx((10.5 / 14) / (30.5 / 42))


def test_rate_ratio_signal_example():
    assert rate_ratio(50, 10, 28, 28) == pytest.approx(50.5 / 10.5)


@pytest.mark.parametrize("x,m,z", [(5, 15, 1.0), (30, 10, 1.0), (12, 12, 1.0), (8, 40, 3.0), (0, 25, 1.0)])
def test_ci_contains_corrected_estimate(x, m, z):
    cv = 2.5
    lo, hi = sequential_confidence_interval(x, m, cv, z)
    rr = ((x + 0.5)) / ((m + 0.5) / z)
    assert np.isfinite(lo) and np.isfinite(hi)
    assert lo <= rr <= hi
    assert lo < hi


def test_ci_widens_with_critical_value():
    lo1, hi1 = sequential_confidence_interval(20, 10, 1.5, 1.0)
    lo2, hi2 = sequential_confidence_interval(20, 10, 4.0, 1.0)
    assert lo2 < lo1
    assert hi2 > hi1


def test_ci_invalid_critical_value_warns_and_returns_nan():
    with pytest.warns(ConfidenceIntervalWarning):
        lo, hi = sequential_confidence_interval(5, 5, 0.0, 1.0)
    assert np.isnan(lo) and np.isnan(hi)

    with pytest.warns(ConfidenceIntervalWarning):
        lo, hi = sequential_confidence_interval(5, 5, float("inf"), 1.0)
    assert np.isnan(lo) and np.isnan(hi)


def test_ci_unbracketed_bound_warns():
    # a narrow search range cannot contain the upper bound
    with pytest.warns(ConfidenceIntervalWarning):
        lo, hi = sequential_confidence_interval(30, 2, 3.0, 1.0, search_range=(0.5, 2.0))
    assert np.isnan(hi)
