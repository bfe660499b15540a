from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterator, List, Sequence

import numpy as np

from scrisurv.sequential.schema import Case, SurveillanceConfig, WindowSpec


@dataclass(frozen=True)
class ScheduledLook:
    schedule_index: int
    calendar_date: date
    cumulative_cases: int
    events_risk: int
    events_control: int
    analyzable: bool


class LookScheduler:
    """Calendar looks and the data available at each of them.

    A case becomes available once its control window has ended, i.e. on
    exposure_date + control_end days.
    """

    def __init__(self, season_start: date, windows: WindowSpec, cfg: SurveillanceConfig, cases: Sequence[Case]):
        self.season_start = season_start
        self.windows = windows
        self.cfg = cfg
        exposure = np.array([np.datetime64(c.exposure_date, "D") for c in cases], dtype="datetime64[D]")
        self._available_on = exposure + np.timedelta64(int(windows.control_end), "D")
        self._in_risk = np.array([c.in_risk_window for c in cases], dtype=bool)

    @property
    def first_look_date(self) -> date:
        return self.season_start + timedelta(days=self.windows.control_length + self.cfg.look_interval_days)

    def candidate_dates(self) -> List[date]:
        step = timedelta(days=self.cfg.look_interval_days)
        first = self.first_look_date
        return [first + k * step for k in range(self.cfg.planned_number_of_looks)]

    def counts_at(self, look_date: date) -> tuple[int, int]:
        """(events_risk, events_control) among cases available by `look_date`."""
        mask = self._available_on <= np.datetime64(look_date, "D")
        n = int(mask.sum())
        risk = int(self._in_risk[mask].sum())
        return risk, n - risk

    def __iter__(self) -> Iterator[ScheduledLook]:
        for i, d in enumerate(self.candidate_dates(), start=1):
            risk, control = self.counts_at(d)
            n = risk + control
            yield ScheduledLook(
                schedule_index=i,
                calendar_date=d,
                cumulative_cases=n,
                events_risk=risk,
                events_control=control,
                analyzable=n >= self.cfg.minimum_cases_per_look,
            )
