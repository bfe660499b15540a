import pytest

from scrisurv.sequential.errors import InvalidWindowConfig
from scrisurv.sequential.null_model import null_model
from scrisurv.sequential.schema import SurveillanceConfig, SpendingFamily, WindowMembership, WindowSpec


def test_equal_windows_give_half():
    m = null_model(WindowSpec(risk_start=1, risk_end=28, control_start=29, control_end=56))
    assert m.p0 == pytest.approx(0.5)
    assert m.z == pytest.approx(1.0)


def test_unequal_windows():
    m = null_model(WindowSpec(risk_start=1, risk_end=14, control_start=15, control_end=56))
    assert m.p0 == pytest.approx(0.25)
    assert m.z == pytest.approx(3.0)
    assert m.allocation_probability(1.0) == pytest.approx(m.p0)
    assert m.allocation_probability(3.0) == pytest.approx(0.5)


def test_window_lengths_are_inclusive():
    w = WindowSpec(risk_start=0, risk_end=0, control_start=5, control_end=9)
    assert w.risk_length == 1
    assert w.control_length == 5


@pytest.mark.parametrize(
    "kwargs",
    [
        dict(risk_start=10, risk_end=5, control_start=29, control_end=56),
        dict(risk_start=1, risk_end=28, control_start=56, control_end=29),
        dict(risk_start=1, risk_end=28, control_start=20, control_end=56),
        dict(risk_start=-1, risk_end=28, control_start=29, control_end=56),
        dict(risk_start=1.5, risk_end=28, control_start=29, control_end=56),
    ],
)
def test_invalid_windows_raise(kwargs):
    with pytest.raises(InvalidWindowConfig):
        WindowSpec(**kwargs)


def test_invalid_window_is_value_error():
    with pytest.raises(ValueError):
        WindowSpec(risk_start=1, risk_end=28, control_start=28, control_end=56)


def test_classify():
    w = WindowSpec()
    assert w.classify(1) == WindowMembership.RISK
    assert w.classify(28) == WindowMembership.RISK
    assert w.classify(29) == WindowMembership.CONTROL
    assert w.classify(56) == WindowMembership.CONTROL
    assert w.classify(0) is None
    assert w.classify(57) is None


def test_config_validation_and_family_coercion():
    cfg = SurveillanceConfig(alpha_spending_family="power_type")
    assert cfg.alpha_spending_family == SpendingFamily.POWER_TYPE

    with pytest.raises(ValueError):
        SurveillanceConfig(overall_alpha=1.5)
    with pytest.raises(ValueError):
        SurveillanceConfig(minimum_cases_per_look=0)
    with pytest.raises(ValueError):
        SurveillanceConfig(alpha_spending_family="pocock")
