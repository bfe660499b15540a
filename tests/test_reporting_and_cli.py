import json

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from scrisurv.cli.main import main
from scrisurv.sequential.controller import run_surveillance
from scrisurv.sequential.display import bonferroni_display_boundary, pocock_display_boundary
from scrisurv.sequential.preprocess import cases_from_frame
from scrisurv.sequential.reporting import (
    alert_table,
    look_table,
    make_surveillance_plots,
    render_status_report,
    render_surveillance_md,
)
from scrisurv.sequential.schema import SurveillanceConfig, WindowSpec
from scrisurv.sequential.simulate import SCRISimConfig, simulate_scri_cases


WINDOWS = WindowSpec()


def _result(rr: float, seed: int):
    sim = SCRISimConfig(population_size=20000, relative_risk=rr, seed=seed)
    cases, _ = cases_from_frame(simulate_scri_cases(sim, WINDOWS), WINDOWS)
    cfg = SurveillanceConfig()
    return run_surveillance(cases, WINDOWS, cfg, season_start=sim.season_start), cfg


def test_pocock_display_boundary_between_single_and_bonferroni():
    sizes = [50, 100, 150, 200]
    zc = pocock_display_boundary(0.05, sizes)
    assert np.isfinite(zc)
    assert zc > pocock_display_boundary(0.05, [50])
    assert zc <= bonferroni_display_boundary(0.05, len(sizes)) + 1e-6
    assert np.isnan(pocock_display_boundary(0.05, []))


def test_reports_for_signal_run():
    res, cfg = _result(4.0, 99)

    md = render_surveillance_md(res, WINDOWS, cfg)
    assert "SAFETY SIGNAL DETECTED" in md
    assert "sequential-adjusted CI" in md

    txt = render_status_report(res, WINDOWS, cfg)
    assert "STATUS: SAFETY SIGNAL DETECTED" in txt
    assert "Immediate investigation recommended" in txt

    alerts = alert_table(res)
    assert list(alerts.columns) == ["Metric", "Value", "Alert_Level"]
    assert "CRITICAL" in set(alerts["Alert_Level"])

    lt = look_table(res.records)
    assert len(lt) == cfg.planned_number_of_looks
    assert {"look_index", "skip_reason", "critical_value", "ci_lower", "ci_upper"}.issubset(lt.columns)

    figs = make_surveillance_plots(res, cfg)
    assert set(figs) == {"monitoring", "rate_ratio", "cases_timeline"}
    for fig in figs.values():
        plt.close(fig)


def test_reports_with_nothing_analyzed():
    cfg = SurveillanceConfig(planned_number_of_looks=2)
    res = run_surveillance([], WINDOWS, cfg, season_start=SCRISimConfig().season_start)
    assert "no look has been analyzed" in render_surveillance_md(res, WINDOWS, cfg)
    assert "NO SIGNAL - CONTINUE MONITORING" in render_status_report(res, WINDOWS, cfg)
    assert len(alert_table(res)) == 2
    for fig in make_surveillance_plots(res, cfg).values():
        plt.close(fig)


def test_cli_simulate_and_surveil_bundle(tmp_path):
    cases = tmp_path / "cases.csv"
    assert main(["simulate", "--output", str(cases), "--true-rr", "3.0", "--seed", "5"]) == 0
    assert cases.exists()

    out = tmp_path / "bundle"
    rc = main(["surveil", "--input", str(cases), "--out", str(out), "--season-start", "2024-10-01"])
    assert rc == 0
    for rel in [
        "tables/look_table.csv",
        "tables/alerts.csv",
        "plots/monitoring.png",
        "plots/rate_ratio.png",
        "plots/cases_timeline.png",
        "results.json",
        "report.md",
        "status_report.txt",
        "run_meta.json",
    ]:
        assert (out / rel).exists(), rel

    payload = json.loads((out / "results.json").read_text(encoding="utf-8"))
    assert payload["command"] == "surveil"
    assert payload["status"] in ("signal_detected", "exhausted")
    assert len(pd.read_csv(out / "tables" / "look_table.csv")) == 8


def test_cli_surveil_failed_run_writes_partial_bundle(tmp_path):
    cases = tmp_path / "cases.csv"
    assert main(["simulate", "--output", str(cases), "--seed", "8"]) == 0

    cfg = tmp_path / "cfg.yaml"
    cfg.write_text(
        "sequential_analysis:\n  alpha_spending: power_type\n  boundary_tolerance: 1.0e-12\n  boundary_max_iterations: 2\n",
        encoding="utf-8",
    )
    out = tmp_path / "failed"
    rc = main(["surveil", "--config", str(cfg), "--input", str(cases), "--out", str(out), "--season-start", "2024-10-01"])
    assert rc == 3
    payload = json.loads((out / "results.json").read_text(encoding="utf-8"))
    assert payload["status"] == "failed"
    assert "SURVEILLANCE ABORTED" in (out / "status_report.txt").read_text(encoding="utf-8")


def test_cli_usage_errors_return_2(tmp_path, capsys):
    bad = tmp_path / "bad.csv"
    pd.DataFrame({"case_id": ["a"], "exposure_date": ["2024-10-01"]}).to_csv(bad, index=False)
    assert main(["surveil", "--input", str(bad), "--out", str(tmp_path / "x")]) == 2
    assert "[scrisurv][error]" in capsys.readouterr().err

    assert main(["surveil", "--input", str(bad), "--risk-window", "1,30", "--control-window", "20,40"]) == 2


def test_cli_check_sample_size_and_validate_design(tmp_path, capsys):
    cases = tmp_path / "cases.csv"
    assert main(["simulate", "--output", str(cases), "--population", "5000"]) == 0
    assert main(["check", "--input", str(cases)]) == 0
    assert "OK" in capsys.readouterr().out

    assert main(["sample-size", "--out", str(tmp_path / "ss")]) == 0
    assert (tmp_path / "ss" / "tables" / "power_table.csv").exists()

    out = tmp_path / "vd"
    rc = main(
        [
            "validate-design",
            "--sample-sizes", "40,80,120",
            "--rr-values", "1.0,2.0",
            "--n-sims", "500",
            "--out", str(out),
        ]
    )
    assert rc == 0
    oc = pd.read_csv(out / "tables" / "operating_characteristics.csv")
    assert (oc["exact_probability"].iloc[0] <= 0.05 + 1e-12)
    assert oc["exact_probability"].iloc[1] > oc["exact_probability"].iloc[0]


def test_cli_run_config(tmp_path):
    cases = tmp_path / "cases.csv"
    assert main(["simulate", "--output", str(cases), "--seed", "21"]) == 0
    out = tmp_path / "rc"
    cfg = tmp_path / "run.yaml"
    cfg.write_text(
        f"command: surveil\ninput: {cases.as_posix()}\nout: {out.as_posix()}\n"
        "sequential_analysis:\n  season_start: 2024-10-01\n  number_of_looks: 4\n",
        encoding="utf-8",
    )
    assert main(["run-config", "--config", str(cfg)]) == 0
    assert len(pd.read_csv(out / "tables" / "look_table.csv")) == 4

    bad = tmp_path / "bad.yaml"
    bad.write_text("input: x.csv\n", encoding="utf-8")
    assert main(["run-config", "--config", str(bad)]) == 2
