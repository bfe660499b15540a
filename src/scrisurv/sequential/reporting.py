from __future__ import annotations

from datetime import date
from typing import Dict, Optional, Sequence

import numpy as np
import pandas as pd
from matplotlib.figure import Figure
import matplotlib.pyplot as plt

from scrisurv.sequential.display import pocock_display_boundary
from scrisurv.sequential.null_model import null_model
from scrisurv.sequential.schema import LookRecord, RunStatus, SurveillanceConfig, SurveillanceResult, WindowSpec


def _fmt(x: Optional[float], spec: str = ".4g") -> str:
    if x is None or not np.isfinite(x):
        return "(n/a)"
    return format(float(x), spec)


def _signal_status(result: SurveillanceResult) -> str:
    if result.status == RunStatus.FAILED:
        return "SURVEILLANCE ABORTED"
    if result.signal_detected:
        return "SAFETY SIGNAL DETECTED"
    return "NO SIGNAL - CONTINUE MONITORING"


def _recommendation(result: SurveillanceResult) -> str:
    if result.status == RunStatus.FAILED:
        return "Boundary computation failed; results after the last completed look are not valid. Review input data."
    if result.signal_detected:
        return "Immediate investigation recommended. Consider regulatory action."
    return "Continue routine surveillance."


def look_table(records: Sequence[LookRecord]) -> pd.DataFrame:
    """One row per scheduled look date, skipped looks included."""
    cols = list(LookRecord.__dataclass_fields__)
    return pd.DataFrame([r.to_dict() for r in records], columns=cols)


def render_surveillance_md(result: SurveillanceResult, windows: WindowSpec, cfg: SurveillanceConfig) -> str:
    latest = result.latest
    model = null_model(windows)
    analyzed = result.analyzed_records
    stop_str = (
        f"Yes (look {result.state.terminal_look_index})" if result.state.stopped else "No"
    )

    if latest is not None:
        latest_block = "\n".join(
            [
                f"- analysis date: `{latest.calendar_date}`",
                f"- cases analyzed: `{latest.cumulative_cases}` (risk={latest.events_risk}, control={latest.events_control})",
                f"- rate ratio (continuity-corrected): `{_fmt(latest.rate_ratio)}`",
                f"- sequential-adjusted CI: `[{_fmt(latest.ci_lower)}, {_fmt(latest.ci_upper)}]`",
                f"- LLR statistic / critical value: `{_fmt(latest.test_statistic)}` / `{_fmt(latest.critical_value)}`",
                f"- cumulative alpha spent: `{_fmt(latest.cumulative_alpha_spent)}`",
            ]
        )
    else:
        latest_block = "- no look has been analyzed"

    warn_block = ("- " + "\n- ".join(result.warnings)) if result.warnings else "(none)"

    return f"""# scrisurv surveillance report

## Inputs
- risk window: days {windows.risk_start}-{windows.risk_end} ({windows.risk_length} days)
- control window: days {windows.control_start}-{windows.control_end} ({windows.control_length} days)
- p0: `{model.p0:.4f}`, matching ratio z: `{model.z:.4f}`
- alpha: `{cfg.overall_alpha}`, spending: `{cfg.alpha_spending_family.value}`
- planned looks: `{cfg.planned_number_of_looks}` every `{cfg.look_interval_days}` days, min cases `{cfg.minimum_cases_per_look}`
- max sample size: `{result.state.max_sample_size}`

## Decision
- status: **{_signal_status(result)}** (`{result.status.value}`)
- analyzed looks: `{len(analyzed)}` of `{len(result.records)}` scheduled
- stopped early: **{stop_str}**

## Latest analyzed look
{latest_block}

## Notes
- Decisions use exact binomial MaxSPRT critical values on the log-likelihood-ratio scale,
  computed from the cumulative alpha-spending target at each look.
- The Pocock line in the monitoring plot is a z-scale reference for display only.

## Warnings
{warn_block}

## Artifacts
- tables/look_table.csv
- tables/alerts.csv
- plots/monitoring.png
- plots/rate_ratio.png
- plots/cases_timeline.png
"""


def render_status_report(
    result: SurveillanceResult,
    windows: WindowSpec,
    cfg: SurveillanceConfig,
    *,
    report_date: Optional[date] = None,
) -> str:
    latest = result.latest
    lines = [
        "=======================================================",
        "VACCINE SAFETY SURVEILLANCE",
        "CURRENT STATUS REPORT",
        "=======================================================",
        "",
        f"Report Generated: {report_date or date.today()}",
        f"Latest Analysis Date: {latest.calendar_date if latest else '(none)'}",
        f"Sequential Looks Performed: {result.state.looks_performed}",
    ]
    if latest is not None:
        n = latest.cumulative_cases
        lines += [
            "",
            "--- CUMULATIVE DATA ---",
            f"Total Cases Analyzed: {n}",
            f"Events in Risk Window (Days {windows.risk_start}-{windows.risk_end}): "
            f"{latest.events_risk} ({100.0 * latest.events_risk / n:.1f}%)",
            f"Events in Control Window (Days {windows.control_start}-{windows.control_end}): "
            f"{latest.events_control} ({100.0 * latest.events_control / n:.1f}%)",
            "",
            "--- STATISTICAL ANALYSIS ---",
            f"Observed Relative Risk: {_fmt(latest.rate_ratio, '.2f')}",
            f"CI (Sequential-Adjusted): {_fmt(latest.ci_lower, '.2f')} - {_fmt(latest.ci_upper, '.2f')}",
            f"LLR Statistic: {_fmt(latest.test_statistic, '.4f')} (critical value {_fmt(latest.critical_value, '.4f')})",
            f"Cumulative Alpha Spent: {_fmt(latest.cumulative_alpha_spent, '.5f')} of {cfg.overall_alpha}",
        ]
    lines += [
        "",
        "--- SIGNAL STATUS ---",
        f"STATUS: {_signal_status(result)}",
        "",
        "--- RECOMMENDATION ---",
        _recommendation(result),
        "",
        "=======================================================",
    ]
    return "\n".join(lines) + "\n"


def alert_table(result: SurveillanceResult) -> pd.DataFrame:
    latest = result.latest
    if latest is None:
        return pd.DataFrame(
            {
                "Metric": ["Surveillance Status", "Cases Analyzed"],
                "Value": [result.status.value.upper(), "0"],
                "Alert_Level": ["Normal", "Normal"],
            }
        )

    n = latest.cumulative_cases
    prop_risk = latest.events_risk / n
    rr = float(latest.rate_ratio)
    if rr > 2.0:
        rr_level = "Critical"
    elif rr > 1.5:
        rr_level = "Warning"
    else:
        rr_level = "Normal"

    return pd.DataFrame(
        {
            "Metric": [
                "Surveillance Status",
                "Cases Analyzed",
                "Risk Window Events",
                "Control Window Events",
                "Observed RR",
                "LLR / CV",
                "Signal",
            ],
            "Value": [
                "ACTIVE" if result.status == RunStatus.RUNNING else result.status.value.upper(),
                str(n),
                f"{latest.events_risk} ({100.0 * prop_risk:.1f}%)",
                f"{latest.events_control} ({100.0 * latest.events_control / n:.1f}%)",
                f"{rr:.2f}",
                f"{latest.test_statistic:.3f} / {latest.critical_value:.3f}",
                "YES" if result.signal_detected else "NO",
            ],
            "Alert_Level": [
                "Critical" if result.status == RunStatus.FAILED else "Normal",
                "Normal",
                "Warning" if prop_risk > 0.6 else "Normal",
                "Normal",
                rr_level,
                "Alert" if latest.rejected else "Normal",
                "CRITICAL" if result.signal_detected else "Normal",
            ],
        }
    )


def make_monitoring_plot(result: SurveillanceResult, cfg: SurveillanceConfig) -> Figure:
    lt = pd.DataFrame([r.to_dict() for r in result.analyzed_records])
    fig = plt.figure(figsize=(9, 7))
    ax1 = fig.add_subplot(211)
    ax2 = fig.add_subplot(212)

    if len(lt):
        x = lt["look_index"]
        ax1.plot(x, lt["test_statistic"], marker="o", label="LLR statistic")
        ax1.plot(x, lt["critical_value"], linestyle="--", marker="_", label="exact critical value")
        sig = lt[lt["rejected"]]
        if len(sig):
            ax1.scatter(sig["look_index"], sig["test_statistic"], marker="*", s=200, color="red", label="signal", zorder=3)

        ax2.plot(x, lt["z_statistic"], marker="o", label="z")
        zc = pocock_display_boundary(cfg.overall_alpha, [int(n) for n in lt["cumulative_cases"]])
        ax2.axhline(zc, linestyle="--", color="red", label="Pocock (display)")
    ax1.set_title("Sequential monitoring: LLR vs exact boundary")
    ax1.set_ylabel("LLR")
    ax1.legend(loc="best")
    ax2.axhline(0.0, linewidth=1.0, color="gray")
    ax2.set_title("Standardized proportion in risk window")
    ax2.set_xlabel("analyzed look")
    ax2.set_ylabel("z")
    ax2.legend(loc="best")
    fig.tight_layout()
    return fig


def make_rate_ratio_plot(result: SurveillanceResult) -> Figure:
    lt = pd.DataFrame([r.to_dict() for r in result.analyzed_records])
    fig = plt.figure(figsize=(8, 4.5))
    ax = fig.add_subplot(111)
    if len(lt):
        x = lt["look_index"]
        ax.plot(x, lt["rate_ratio"], marker="o", label="rate ratio")
        lo = pd.to_numeric(lt["ci_lower"], errors="coerce")
        hi = pd.to_numeric(lt["ci_upper"], errors="coerce")
        ax.fill_between(x, lo, hi, alpha=0.2, label="sequential-adjusted CI")
    ax.axhline(1.0, linestyle="--", color="black", label="no effect")
    ax.set_yscale("log")
    ax.set_title("Observed rate ratio over time")
    ax.set_xlabel("analyzed look")
    ax.set_ylabel("rate ratio")
    ax.legend(loc="best")
    fig.tight_layout()
    return fig


def make_cases_timeline_plot(result: SurveillanceResult) -> Figure:
    lt = look_table(result.records)
    fig = plt.figure(figsize=(8, 4.5))
    ax = fig.add_subplot(111)
    if len(lt):
        d = pd.to_datetime(lt["calendar_date"])
        ax.plot(d, lt["cumulative_cases"], marker="o", label="total cases")
        ax.plot(d, lt["events_risk"], marker="^", label="risk window")
        ax.plot(d, lt["events_control"], marker="s", label="control window")
    ax.set_title("Cumulative cases at each scheduled look")
    ax.set_xlabel("date")
    ax.set_ylabel("cumulative count")
    ax.legend(loc="best")
    fig.autofmt_xdate()
    fig.tight_layout()
    return fig


def make_surveillance_plots(result: SurveillanceResult, cfg: SurveillanceConfig) -> Dict[str, Figure]:
    return {
        "monitoring": make_monitoring_plot(result, cfg),
        "rate_ratio": make_rate_ratio_plot(result),
        "cases_timeline": make_cases_timeline_plot(result),
    }
