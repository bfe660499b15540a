from __future__ import annotations

from datetime import date
from typing import List, Optional, Tuple

import numpy as np
import pandas as pd

from scrisurv.sequential.schema import Case, WindowSpec


def ensure_columns(df: pd.DataFrame, cols: List[str]) -> None:
    missing = [c for c in cols if c not in df.columns]
    if missing:
        raise ValueError(f"Missing required columns: {missing}. Present columns: {list(df.columns)}")


def days_to_event(df: pd.DataFrame, *, exposure_col: str = "exposure_date", event_col: str = "event_date") -> pd.Series:
    exposure = pd.to_datetime(df[exposure_col], errors="coerce")
    event = pd.to_datetime(df[event_col], errors="coerce")
    return (event - exposure).dt.days


def cases_from_frame(
    df: pd.DataFrame,
    windows: WindowSpec,
    *,
    observation_end: Optional[date] = None,
    id_col: str = "case_id",
    exposure_col: str = "exposure_date",
    event_col: str = "event_date",
) -> Tuple[List[Case], List[str]]:
    """Admit cases for analysis under `windows`, ordered by the date their control window ends.

    Window membership is re-derived from days-to-event, so the same frame can
    be re-classified under different windows. Rows are dropped when dates are
    missing, when the event lies outside both windows, or when the control
    window is not fully observed by `observation_end`.
    """
    warnings: List[str] = []
    ensure_columns(df, [id_col, exposure_col, event_col])

    out = df[[id_col, exposure_col, event_col]].copy()
    out[exposure_col] = pd.to_datetime(out[exposure_col], errors="coerce")
    out[event_col] = pd.to_datetime(out[event_col], errors="coerce")

    bad_dates = out[exposure_col].isna() | out[event_col].isna()
    if bad_dates.any():
        warnings.append(f"Dropped {int(bad_dates.sum())} rows with missing or unparsable dates.")
        out = out[~bad_dates]

    d = (out[event_col] - out[exposure_col]).dt.days.to_numpy(dtype=int)
    in_risk = (d >= windows.risk_start) & (d <= windows.risk_end)
    in_control = (d >= windows.control_start) & (d <= windows.control_end)
    outside = ~(in_risk | in_control)
    if outside.any():
        warnings.append(
            f"Dropped {int(outside.sum())} cases with events outside both windows "
            f"(risk {windows.risk_start}-{windows.risk_end}, control {windows.control_start}-{windows.control_end})."
        )

    keep = ~outside
    control_end = out[exposure_col] + pd.to_timedelta(windows.control_end, unit="D")
    if observation_end is not None:
        incomplete = (control_end > pd.Timestamp(observation_end)).to_numpy() & keep
        if incomplete.any():
            warnings.append(f"Dropped {int(incomplete.sum())} cases without complete follow-up by {observation_end}.")
        keep = keep & ~incomplete

    out = out.assign(_available=control_end)[keep]
    out = out.sort_values("_available", kind="mergesort")

    cases = [
        Case(
            case_id=str(row[0]),
            exposure_date=row[1].date(),
            event_date=row[2].date(),
            window=windows.classify((row[2] - row[1]).days),
        )
        for row in out[[id_col, exposure_col, event_col]].itertuples(index=False, name=None)
    ]
    return cases, warnings


def summarize_days_to_event(df: pd.DataFrame, windows: WindowSpec) -> pd.DataFrame:
    """Case counts by window membership, including events outside both windows."""
    d = days_to_event(df)
    labels = np.where(
        (d >= windows.risk_start) & (d <= windows.risk_end),
        "risk",
        np.where((d >= windows.control_start) & (d <= windows.control_end), "control", "outside"),
    )
    labels = np.where(d.isna(), "missing", labels)
    counts = pd.Series(labels).value_counts()
    order = ["risk", "control", "outside", "missing"]
    return pd.DataFrame(
        {
            "window": order,
            "n_cases": [int(counts.get(k, 0)) for k in order],
            "days_from": [windows.risk_start, windows.control_start, None, None],
            "days_to": [windows.risk_end, windows.control_end, None, None],
        }
    )
