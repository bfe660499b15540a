from __future__ import annotations

import logging
import warnings
from datetime import date
from typing import List, Optional, Sequence, Tuple

from scrisurv.sequential.boundary import critical_value
from scrisurv.sequential.errors import BoundaryComputationError, ConfidenceIntervalWarning
from scrisurv.sequential.estimate import rate_ratio, sequential_confidence_interval
from scrisurv.sequential.null_model import null_model
from scrisurv.sequential.scheduler import LookScheduler
from scrisurv.sequential.schema import (
    TERMINAL_STATUSES,
    Case,
    LookRecord,
    RunStatus,
    SkipReason,
    SpendingFamily,
    SurveillanceConfig,
    SurveillanceResult,
    SurveillanceState,
    WindowSpec,
)
from scrisurv.sequential.spending import WaldSpending, make_spending
from scrisurv.sequential.tester import sequential_test

logger = logging.getLogger(__name__)


def _skipped(
    reason: SkipReason,
    state: SurveillanceState,
    schedule_index: int,
    calendar_date: Optional[date],
    events_risk: int,
    events_control: int,
) -> LookRecord:
    return LookRecord(
        schedule_index=schedule_index,
        look_index=state.looks_performed,
        calendar_date=calendar_date,
        cumulative_cases=events_risk + events_control,
        events_risk=events_risk,
        events_control=events_control,
        analyzed=False,
        skip_reason=reason,
    )


def evaluate_look(
    cumulative_cases: int,
    events_risk: int,
    events_control: int,
    windows: WindowSpec,
    cfg: SurveillanceConfig,
    state: SurveillanceState,
    *,
    calendar_date: Optional[date] = None,
    schedule_index: Optional[int] = None,
) -> Tuple[LookRecord, SurveillanceState]:
    """Evaluate a single look against the prior state.

    Returns the look's record and an updated copy of the state; `state` itself
    is never modified. Raises BoundaryComputationError when the exact boundary
    cannot be computed.
    """
    events_risk = int(events_risk)
    events_control = int(events_control)
    if events_risk < 0 or events_control < 0:
        raise ValueError("Event counts must be non-negative.")
    if int(cumulative_cases) != events_risk + events_control:
        raise ValueError(
            f"cumulative_cases={cumulative_cases} does not equal events_risk + events_control "
            f"({events_risk} + {events_control})."
        )
    if state.status in (RunStatus.FAILED, RunStatus.EXHAUSTED):
        raise RuntimeError(f"Surveillance run is {state.status.value}; start a new state.")

    new = state.copy()
    if new.status == RunStatus.IDLE:
        new.status = RunStatus.RUNNING
    idx = int(schedule_index) if schedule_index is not None else new.looks_performed + 1

    if new.stopped:
        return _skipped(SkipReason.STOPPED, new, idx, calendar_date, events_risk, events_control), new
    if cumulative_cases < cfg.minimum_cases_per_look:
        return _skipped(SkipReason.INSUFFICIENT_DATA, new, idx, calendar_date, events_risk, events_control), new
    if new.boundary_history and cumulative_cases == new.boundary_history[-1].n:
        return _skipped(SkipReason.NO_NEW_DATA, new, idx, calendar_date, events_risk, events_control), new

    n_max = new.max_sample_size or cfg.max_sample_size
    if n_max is None:
        raise ValueError("max_sample_size must be set on the config or the state before analyzing a look.")
    new.max_sample_size = int(n_max)

    model = null_model(windows)
    spending = make_spending(
        cfg.alpha_spending_family,
        cfg.overall_alpha,
        p0=model.p0,
        n_max=new.max_sample_size,
        min_events=cfg.minimum_cases_per_look,
        target_relative_risk=cfg.target_relative_risk,
        rho=cfg.spending_rho,
        tol=cfg.boundary_tolerance,
        max_iter=cfg.boundary_max_iterations,
    )
    point = critical_value(
        cumulative_cases,
        new.boundary_history,
        spending,
        p0=model.p0,
        n_max=new.max_sample_size,
        tol=cfg.boundary_tolerance,
        max_iter=cfg.boundary_max_iterations,
    )
    decision = sequential_test(events_risk, events_control, point.critical_value, model.p0)
    rr = rate_ratio(events_risk, events_control, windows.risk_length, windows.control_length)
    ci_lower, ci_upper = sequential_confidence_interval(
        events_risk,
        events_control,
        point.critical_value,
        model.z,
        search_range=cfg.ci_search_range,
    )

    new.boundary_history.append(point)
    new.cumulative_alpha_spent = point.cumulative_alpha
    look_index = new.looks_performed
    if decision.rejected and cfg.stop_on_signal:
        new.stopped = True
        new.terminal_look_index = look_index
        new.status = RunStatus.SIGNAL_DETECTED

    record = LookRecord(
        schedule_index=idx,
        look_index=look_index,
        calendar_date=calendar_date,
        cumulative_cases=int(cumulative_cases),
        events_risk=events_risk,
        events_control=events_control,
        analyzed=True,
        rejected=decision.rejected,
        null_proportion=model.p0,
        test_statistic=decision.statistic,
        critical_value=point.critical_value,
        rate_ratio=rr,
        ci_lower=ci_lower,
        ci_upper=ci_upper,
        information_fraction=point.information_fraction,
        alpha_target=point.alpha_target,
        cumulative_alpha_spent=point.cumulative_alpha,
        z_statistic=decision.z_statistic,
        p_value=decision.p_value,
    )
    return record, new


class SurveillanceController:
    """Drives one surveillance run over the scheduled calendar looks.

    States: IDLE -> RUNNING -> SIGNAL_DETECTED | EXHAUSTED, or FAILED when a
    boundary cannot be computed (the error is re-raised, never retried).
    """

    def __init__(self, windows: WindowSpec, cfg: SurveillanceConfig, *, season_start: Optional[date] = None):
        self.windows = windows
        self.cfg = cfg
        self.season_start = season_start
        self.state = SurveillanceState()
        self.records: List[LookRecord] = []
        self.warnings: List[str] = []

    @property
    def status(self) -> RunStatus:
        return self.state.status

    def _step(self, look) -> LookRecord:
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always", ConfidenceIntervalWarning)
            record, self.state = evaluate_look(
                look.cumulative_cases,
                look.events_risk,
                look.events_control,
                self.windows,
                self.cfg,
                self.state,
                calendar_date=look.calendar_date,
                schedule_index=look.schedule_index,
            )
        for w in caught:
            if issubclass(w.category, ConfidenceIntervalWarning):
                msg = f"{look.calendar_date}: {w.message}"
                self.warnings.append(msg)
                logger.warning(msg)
            else:
                warnings.warn(w.message, w.category)
        return record

    def run(self, cases: Sequence[Case]) -> SurveillanceResult:
        if self.state.status != RunStatus.IDLE:
            raise RuntimeError(f"Controller already used (status={self.state.status.value}).")

        season_start = self.season_start
        if season_start is None:
            if not cases:
                raise ValueError("season_start is required when there are no cases.")
            season_start = min(c.exposure_date for c in cases)
        self.season_start = season_start

        scheduler = LookScheduler(season_start, self.windows, self.cfg, cases)
        self.state.max_sample_size = max(1, int(self.cfg.max_sample_size or len(cases)))
        self.state.status = RunStatus.RUNNING
        logger.info(
            "Surveillance start: %d cases, %d planned looks, N_max=%d",
            len(cases),
            self.cfg.planned_number_of_looks,
            self.state.max_sample_size,
        )

        for look in scheduler:
            try:
                record = self._step(look)
            except BoundaryComputationError as exc:
                self.state.status = RunStatus.FAILED
                self.warnings.append(f"{look.calendar_date}: surveillance aborted: {exc}")
                logger.error("Surveillance aborted at %s: %s", look.calendar_date, exc)
                raise
            self.records.append(record)
            if record.analyzed:
                logger.info(
                    "Look %d (%s): n=%d, RR=%.2f, LLR=%.3f, CV=%.3f%s",
                    record.look_index,
                    record.calendar_date,
                    record.cumulative_cases,
                    record.rate_ratio,
                    record.test_statistic,
                    record.critical_value,
                    " *** SIGNAL ***" if record.rejected else "",
                )
            else:
                logger.info("%s: skipped (%s, n=%d)", look.calendar_date, record.skip_reason.value, look.cumulative_cases)

        if self.state.status not in TERMINAL_STATUSES:
            self.state.status = RunStatus.EXHAUSTED
        if self.state.looks_performed == 0:
            self.warnings.append(
                f"No scheduled look reached minimum_cases_per_look={self.cfg.minimum_cases_per_look}; "
                "nothing was analyzed."
            )
        return self.result()

    def result(self) -> SurveillanceResult:
        model = null_model(self.windows)
        diagnostics = {
            "p0": model.p0,
            "z": model.z,
            "alpha_spending_family": self.cfg.alpha_spending_family.value,
            "overall_alpha": self.cfg.overall_alpha,
            "max_sample_size": self.state.max_sample_size,
            "season_start": self.season_start.isoformat() if self.season_start else None,
        }
        if (
            self.cfg.alpha_spending_family == SpendingFamily.WALD
            and self.state.looks_performed > 0
            and self.state.status != RunStatus.FAILED
        ):
            spending = make_spending(
                self.cfg.alpha_spending_family,
                self.cfg.overall_alpha,
                p0=model.p0,
                n_max=self.state.max_sample_size,
                min_events=self.cfg.minimum_cases_per_look,
                target_relative_risk=self.cfg.target_relative_risk,
                rho=self.cfg.spending_rho,
                tol=self.cfg.boundary_tolerance,
                max_iter=self.cfg.boundary_max_iterations,
            )
            if isinstance(spending, WaldSpending):
                diagnostics["wald_flat_level"] = spending.flat_level
        return SurveillanceResult(
            records=list(self.records),
            state=self.state,
            warnings=list(self.warnings),
            diagnostics=diagnostics,
        )


def run_surveillance(
    cases: Sequence[Case],
    windows: WindowSpec,
    cfg: SurveillanceConfig,
    *,
    season_start: Optional[date] = None,
) -> SurveillanceResult:
    """Run sequential surveillance over all scheduled looks."""
    return SurveillanceController(windows, cfg, season_start=season_start).run(cases)
