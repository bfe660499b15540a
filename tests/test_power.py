import math

import numpy as np
import pytest

from scrisurv.power import (
    alternative_proportion,
    approximate_power,
    operational_estimates,
    power_table,
    sample_size_scri,
    sequential_inflation,
)
from scrisurv.sequential.schema import WindowSpec


def test_alternative_proportion():
    w = WindowSpec()
    assert alternative_proportion(1.0, w) == pytest.approx(0.5)
    assert alternative_proportion(1.5, w) == pytest.approx(0.6)
    w2 = WindowSpec(1, 14, 15, 56)
    assert alternative_proportion(3.0, w2) == pytest.approx(0.5)


def test_sample_size_default_design():
    ss = sample_size_scri(WindowSpec(), alpha=0.05, n_looks=8, target_relative_risk=1.5, power=0.9)
    assert ss.p0 == pytest.approx(0.5)
    assert ss.p1 == pytest.approx(0.6)
    assert ss.n_single == pytest.approx(419.63, rel=1e-3)
    assert ss.inflation_factor == pytest.approx(1.13)
    assert ss.n_cases == math.ceil(ss.n_single * ss.inflation_factor)


def test_sample_size_grows_with_looks_and_shrinks_with_rr():
    w = WindowSpec()
    assert sample_size_scri(w, n_looks=12).n_cases > sample_size_scri(w, n_looks=4).n_cases
    assert sample_size_scri(w, target_relative_risk=2.0).n_cases < sample_size_scri(w, target_relative_risk=1.5).n_cases


def test_sample_size_input_validation():
    with pytest.raises(ValueError):
        sample_size_scri(WindowSpec(), target_relative_risk=1.0)
    with pytest.raises(ValueError):
        sample_size_scri(WindowSpec(), power=1.2)
    with pytest.raises(ValueError):
        sequential_inflation(0)


def test_power_table_monotone_in_rr():
    t = power_table(WindowSpec(), n_cases=475)
    assert list(t.columns) == ["relative_risk", "p1", "power"]
    pw = t["power"].to_numpy()
    assert np.all(np.diff(pw) >= 0)
    assert pw[0] < pw[1] < pw[2]
    assert pw[-1] > 0.99
    assert pw[0] < 0.1
    assert approximate_power(1.5, WindowSpec(), 475) > 0.9


def test_operational_estimates():
    ops = operational_estimates(475, WindowSpec(), 0.0002, population_size=20000, season_length_days=181)
    assert ops.person_time_per_case == pytest.approx(56 / 0.0002)
    assert ops.vaccinations_needed == pytest.approx(475 / 0.0002, rel=1e-9)
    assert ops.adequate is False
    assert ops.recommended_population >= int(1.2 * 475 / 0.0002)
    assert ops.expected_surveillance_days == math.ceil(0.8 * 181)

    ok = operational_estimates(10, WindowSpec(), 0.01, population_size=5000)
    assert ok.adequate is True
    assert ok.recommended_population == 5000
    assert ok.expected_surveillance_days is None
