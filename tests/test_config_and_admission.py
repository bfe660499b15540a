from datetime import date

import pandas as pd
import pytest

from scrisurv.config import load_settings, settings_from_dict
from scrisurv.io.reader import validate_df
from scrisurv.io.schema import CASE_SCHEMA, get_schema
from scrisurv.sequential.errors import InvalidWindowConfig
from scrisurv.sequential.preprocess import cases_from_frame, summarize_days_to_event
from scrisurv.sequential.schema import SpendingFamily, WindowMembership, WindowSpec
from scrisurv.sequential.simulate import SCRISimConfig, simulate_scri_cases


CONFIG_YAML = """
scri_design:
  risk_window: {start_day: 1, end_day: 14}
  control_window: {start_day: 15, end_day: 56}
sequential_analysis:
  overall_alpha: 0.01
  number_of_looks: 6
  look_interval_days: 7
  minimum_cases_per_look: 10
  stop_on_signal: false
  alpha_spending: power-type
  spending_rho: 2
simulation:
  season_start: 2023-09-15
  season_end: 2024-02-28
  true_relative_risk: 2.0
  random_seed: 7
output:
  directory: my_outputs
"""


def test_load_settings_from_yaml(tmp_path):
    p = tmp_path / "config.yaml"
    p.write_text(CONFIG_YAML, encoding="utf-8")
    s = load_settings(str(p))

    assert s.windows == WindowSpec(risk_start=1, risk_end=14, control_start=15, control_end=56)
    assert s.surveillance.overall_alpha == 0.01
    assert s.surveillance.planned_number_of_looks == 6
    assert s.surveillance.look_interval_days == 7
    assert s.surveillance.minimum_cases_per_look == 10
    assert s.surveillance.stop_on_signal is False
    assert s.surveillance.alpha_spending_family == SpendingFamily.POWER_TYPE
    assert s.surveillance.spending_rho == 2.0
    # target RR falls back to the simulated true RR
    assert s.surveillance.target_relative_risk == 2.0
    assert s.simulation.seed == 7
    assert s.season_start == date(2023, 9, 15)
    assert s.output_directory == "my_outputs"


def test_empty_config_uses_defaults():
    s = settings_from_dict({})
    assert s.windows == WindowSpec()
    assert s.surveillance.alpha_spending_family == SpendingFamily.WALD
    assert s.season_start is None


def test_bad_window_config_raises():
    with pytest.raises(InvalidWindowConfig):
        settings_from_dict({"scri_design": {"risk_window": {"start_day": 1, "end_day": 30}}})


def test_config_root_must_be_mapping(tmp_path):
    p = tmp_path / "bad.yaml"
    p.write_text("- 1\n- 2\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_settings(str(p))


def test_missing_config_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_settings(str(tmp_path / "nope.yaml"))


def _frame():
    return pd.DataFrame(
        {
            "case_id": ["a", "b", "c", "d", "e", "f"],
            "exposure_date": ["2024-10-20", "2024-10-01", "2024-10-01", "not a date", "2024-10-05", "2025-02-20"],
            "event_date": ["2024-10-25", "2024-11-05", "2024-12-30", "2024-10-09", "2024-10-05", "2025-02-25"],
        }
    )


def test_cases_from_frame_filters_and_orders():
    cases, warnings = cases_from_frame(_frame(), WindowSpec(), observation_end=date(2025, 3, 1))

    # c: day 90 (outside), d: bad date, e: day 0 (outside), f: follow-up incomplete
    assert [c.case_id for c in cases] == ["b", "a"]
    assert cases[0].window == WindowMembership.CONTROL
    assert cases[1].window == WindowMembership.RISK
    assert cases[1].days_to_event == 5
    assert len(warnings) == 3


def test_cases_are_reclassified_under_new_windows():
    df = pd.DataFrame({"case_id": ["x"], "exposure_date": ["2024-10-01"], "event_date": ["2024-10-21"]})
    (c1,), _ = cases_from_frame(df, WindowSpec(1, 28, 29, 56))
    (c2,), _ = cases_from_frame(df, WindowSpec(1, 14, 15, 42))
    assert c1.window == WindowMembership.RISK
    assert c2.window == WindowMembership.CONTROL


def test_summarize_days_to_event():
    s = summarize_days_to_event(_frame(), WindowSpec())
    counts = dict(zip(s["window"], s["n_cases"]))
    assert counts == {"risk": 2, "control": 1, "outside": 2, "missing": 1}


def test_validate_df_reports_problems():
    assert validate_df(_frame().drop(columns=["event_date"]), CASE_SCHEMA) == ["Missing required column: event_date"]

    errors = validate_df(_frame(), CASE_SCHEMA)
    assert any("Unparsable dates in 'exposure_date'" in e for e in errors)

    bad = pd.DataFrame({"case_id": ["a"], "exposure_date": ["2024-10-10"], "event_date": ["2024-10-01"]})
    errors = validate_df(bad, get_schema("cases"))
    assert any("Event before exposure" in e for e in errors)


def test_simulated_cases_are_admissible():
    windows = WindowSpec()
    df = simulate_scri_cases(SCRISimConfig(population_size=5000, relative_risk=1.5, seed=3), windows)
    assert set(["case_id", "exposure_date", "event_date", "days_to_event", "window"]).issubset(df.columns)
    assert df["days_to_event"].between(windows.risk_start, windows.control_end).all()
    assert validate_df(df, CASE_SCHEMA) == []

    cases, warnings = cases_from_frame(df, windows)
    assert len(cases) == len(df)
    assert warnings == []
    n_risk = sum(c.in_risk_window for c in cases)
    assert n_risk == int((df["window"] == "risk").sum())


def test_simulation_is_deterministic():
    cfg = SCRISimConfig(population_size=3000, seed=11)
    a = simulate_scri_cases(cfg, WindowSpec())
    b = simulate_scri_cases(cfg, WindowSpec())
    pd.testing.assert_frame_equal(a, b)
