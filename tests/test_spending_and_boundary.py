import numpy as np
import pytest

from scrisurv.sequential.boundary import (
    critical_value,
    exact_rejection_probability,
    information_fraction,
    rejection_by_look,
)
from scrisurv.sequential.errors import BoundaryComputationError
from scrisurv.sequential.schema import SpendingFamily, SurveillanceConfig, WindowSpec
from scrisurv.sequential.spending import PowerSpending, WaldSpending, make_spending
from scrisurv.sequential.tester import binomial_llr, sequential_test
from scrisurv.sequential.validation import boundary_schedule, simulate_operating_characteristics


ALPHA = 0.05
SIZES = [50, 100, 150, 200, 250, 300, 350, 400]


def test_information_fraction_bounds():
    assert information_fraction(10, 100) == pytest.approx(0.1)
    assert information_fraction(100, 100) == 1.0
    assert information_fraction(200, 100) == 1.0


def test_power_spending_endpoints_and_monotone():
    f = PowerSpending(alpha=ALPHA, rho=2.0)
    ts = np.linspace(0, 1, 21)
    vals = np.array([f(t) for t in ts])
    assert vals[0] == 0.0
    assert vals[-1] == pytest.approx(ALPHA)
    assert np.all(np.diff(vals) >= 0)
    assert f(0.5) == pytest.approx(ALPHA * 0.25)


def test_wald_spending_endpoints_monotone_and_front_loaded():
    f = make_spending(SpendingFamily.WALD, ALPHA, p0=0.5, n_max=200, min_events=20, target_relative_risk=1.5)
    assert isinstance(f, WaldSpending)
    ts = np.linspace(0, 1, 41)
    vals = np.array([f(t) for t in ts])
    assert vals[0] == 0.0
    assert vals[-1] == pytest.approx(ALPHA)
    assert np.all(np.diff(vals) >= -1e-15)
    assert np.all(vals <= ALPHA + 1e-12)
    assert f(0.5) > 0.25 * ALPHA
    assert f.flat_level > 0


def test_wald_spending_without_target_rr_uses_maxsprt():
    f = make_spending(SpendingFamily.WALD, ALPHA, p0=0.5, n_max=100, min_events=10, target_relative_risk=1.0)
    assert f(1.0) == pytest.approx(ALPHA)
    assert 0.0 <= f(0.3) <= ALPHA


def test_wald_spending_with_target_rr_is_not_linear():
    f = make_spending(SpendingFamily.WALD, ALPHA, p0=0.5, n_max=400, min_events=20, target_relative_risk=1.5)
    assert f.flat_level > 1.0
    assert f.curve[-1] > 0
    assert f(0.25) != pytest.approx(0.25 * ALPHA, abs=1e-4)
    assert f(0.5) > 0.5 * ALPHA

    g = make_spending(SpendingFamily.WALD, ALPHA, p0=0.5, n_max=400, min_events=20, target_relative_risk=2.0)
    assert g.flat_level > 1.0
    assert g(0.25) != pytest.approx(f(0.25), abs=1e-6)


def test_wald_and_power_type_targets_differ():
    wald = boundary_schedule(SIZES, WindowSpec(), SurveillanceConfig(minimum_cases_per_look=20, max_sample_size=400))
    power = boundary_schedule(
        SIZES,
        WindowSpec(),
        SurveillanceConfig(alpha_spending_family="power_type", minimum_cases_per_look=20, max_sample_size=400),
    )
    assert [b.alpha_target for b in wald] != pytest.approx([b.alpha_target for b in power], abs=1e-6)


def test_wald_spending_never_crossed_raises():
    with pytest.raises(BoundaryComputationError):
        make_spending(SpendingFamily.WALD, ALPHA, p0=0.5, n_max=10, min_events=20, target_relative_risk=1.5)


def test_llr_is_zero_at_or_below_null():
    n = 40
    x = np.arange(n + 1)
    llr = binomial_llr(x, n, 0.5)
    assert np.all(llr[: n // 2 + 1] == 0.0)
    assert np.all(np.diff(llr[n // 2 :]) > 0)


def test_boundary_cumulative_alpha_non_decreasing_and_bounded():
    cfg = SurveillanceConfig(minimum_cases_per_look=20, max_sample_size=400)
    history = boundary_schedule(SIZES, WindowSpec(), cfg)

    cum = np.array([b.cumulative_alpha for b in history])
    targets = np.array([b.alpha_target for b in history])
    assert np.all(np.diff(cum) >= -1e-15)
    assert np.all(cum <= targets + 1e-12)
    assert cum[-1] <= ALPHA + 1e-12
    assert all(b.threshold <= b.n + 1 for b in history)

    # the calculator's bookkeeping matches an independent recursion over the same boundary
    assert exact_rejection_probability(history, 0.5) == pytest.approx(cum[-1], abs=1e-10)
    assert np.cumsum(rejection_by_look(history, 0.5)) == pytest.approx(cum, abs=1e-10)


def test_boundary_decision_matches_threshold():
    cfg = SurveillanceConfig(alpha_spending_family="power_type", max_sample_size=400)
    history = boundary_schedule([100], WindowSpec(), cfg)
    b = history[0]
    assert sequential_test(b.threshold, b.n - b.threshold, b.critical_value, 0.5).rejected
    assert not sequential_test(b.threshold - 1, b.n - b.threshold + 1, b.critical_value, 0.5).rejected


def test_non_increasing_sample_size_raises():
    spending = PowerSpending(alpha=ALPHA)
    first = critical_value(100, [], spending, p0=0.5, n_max=400)
    with pytest.raises(BoundaryComputationError):
        critical_value(100, [first], spending, p0=0.5, n_max=400)
    with pytest.raises(BoundaryComputationError):
        critical_value(80, [first], spending, p0=0.5, n_max=400)


def test_bisection_budget_exhaustion_raises():
    spending = PowerSpending(alpha=ALPHA)
    with pytest.raises(BoundaryComputationError):
        critical_value(100, [], spending, p0=0.5, n_max=400, tol=1e-12, max_iter=3)


@pytest.mark.parametrize("family", ["power_type", "wald"])
def test_type_one_error_monte_carlo_matches_exact(family):
    cfg = SurveillanceConfig(alpha_spending_family=family, minimum_cases_per_look=20, max_sample_size=400)
    oc = simulate_operating_characteristics(SIZES, WindowSpec(), cfg, relative_risk=1.0, n_sims=20000, seed=7)

    # exact boundaries spend close to alpha, never more
    assert oc.exact_probability <= ALPHA + 1e-12
    assert oc.exact_probability >= 0.04
    se = np.sqrt(oc.exact_probability * (1 - oc.exact_probability) / oc.n_sims)
    assert abs(oc.rejection_rate - oc.exact_probability) <= 4 * se + 1e-3
    assert 0.035 <= oc.rejection_rate <= 0.06


def test_power_exceeds_type_one_error():
    cfg = SurveillanceConfig(minimum_cases_per_look=20, max_sample_size=400)
    null = simulate_operating_characteristics(SIZES, WindowSpec(), cfg, relative_risk=1.0, n_sims=2000, seed=1)
    alt = simulate_operating_characteristics(SIZES, WindowSpec(), cfg, relative_risk=2.0, n_sims=2000, seed=2)
    assert alt.exact_probability > 0.9
    assert alt.exact_probability > null.exact_probability
    assert alt.mean_signal_look is not None


def test_boundary_schedule_rejects_unsorted_sizes():
    with pytest.raises(ValueError):
        boundary_schedule([100, 50], WindowSpec(), SurveillanceConfig())
