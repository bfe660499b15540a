from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd

from scrisurv.sequential.errors import InvalidWindowConfig


class SpendingFamily(str, Enum):
    WALD = "wald"
    POWER_TYPE = "power_type"


class WindowMembership(str, Enum):
    RISK = "risk"
    CONTROL = "control"


class SkipReason(str, Enum):
    INSUFFICIENT_DATA = "insufficient_data"
    NO_NEW_DATA = "no_new_data"
    STOPPED = "stopped"


class RunStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    SIGNAL_DETECTED = "signal_detected"
    EXHAUSTED = "exhausted"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({RunStatus.SIGNAL_DETECTED, RunStatus.EXHAUSTED, RunStatus.FAILED})


@dataclass(frozen=True)
class WindowSpec:
    """Risk and control windows in days post-exposure (inclusive bounds)."""

    risk_start: int = 1
    risk_end: int = 28
    control_start: int = 29
    control_end: int = 56

    def __post_init__(self) -> None:
        for name in ("risk_start", "risk_end", "control_start", "control_end"):
            v = getattr(self, name)
            if isinstance(v, bool) or not isinstance(v, int):
                raise InvalidWindowConfig(f"{name} must be an integer day offset, got {v!r}")
        if self.risk_start < 0:
            raise InvalidWindowConfig("risk_start must be >= 0 (days post-exposure).")
        if self.risk_end < self.risk_start:
            raise InvalidWindowConfig(f"Risk window [{self.risk_start}, {self.risk_end}] has non-positive length.")
        if self.control_end < self.control_start:
            raise InvalidWindowConfig(
                f"Control window [{self.control_start}, {self.control_end}] has non-positive length."
            )
        if self.control_start <= self.risk_end:
            raise InvalidWindowConfig(
                f"Risk window must end before the control window starts "
                f"(risk_end={self.risk_end}, control_start={self.control_start})."
            )

    @property
    def risk_length(self) -> int:
        return self.risk_end - self.risk_start + 1

    @property
    def control_length(self) -> int:
        return self.control_end - self.control_start + 1

    def classify(self, days_to_event: int) -> Optional[WindowMembership]:
        """Window containing the event, or None if it falls outside both."""
        d = int(days_to_event)
        if self.risk_start <= d <= self.risk_end:
            return WindowMembership.RISK
        if self.control_start <= d <= self.control_end:
            return WindowMembership.CONTROL
        return None


@dataclass(frozen=True)
class Case:
    case_id: str
    exposure_date: date
    event_date: date
    window: WindowMembership

    @property
    def days_to_event(self) -> int:
        return (self.event_date - self.exposure_date).days

    @property
    def in_risk_window(self) -> bool:
        return self.window == WindowMembership.RISK


@dataclass(frozen=True)
class SurveillanceConfig:
    overall_alpha: float = 0.05
    planned_number_of_looks: int = 8
    look_interval_days: int = 14
    minimum_cases_per_look: int = 20
    stop_on_signal: bool = True

    # Shapes the Wald spending curve only; never enters the test itself.
    target_relative_risk: float = 1.5
    alpha_spending_family: SpendingFamily = SpendingFamily.WALD
    spending_rho: float = 1.0

    # None -> number of admitted cases at run start.
    max_sample_size: Optional[int] = None

    boundary_tolerance: float = 1e-7
    boundary_max_iterations: int = 200
    ci_search_range: Tuple[float, float] = (1e-6, 1e6)

    def __post_init__(self) -> None:
        if not 0 < self.overall_alpha < 1:
            raise ValueError("overall_alpha must be in (0, 1).")
        if self.planned_number_of_looks < 1:
            raise ValueError("planned_number_of_looks must be >= 1.")
        if self.look_interval_days <= 0:
            raise ValueError("look_interval_days must be > 0.")
        if self.minimum_cases_per_look < 1:
            raise ValueError("minimum_cases_per_look must be >= 1.")
        if not self.target_relative_risk > 0:
            raise ValueError("target_relative_risk must be > 0.")
        if not self.spending_rho > 0:
            raise ValueError("spending_rho must be > 0.")
        if self.max_sample_size is not None and self.max_sample_size < 1:
            raise ValueError("max_sample_size must be >= 1 when given.")
        if not self.boundary_tolerance > 0:
            raise ValueError("boundary_tolerance must be > 0.")
        if self.boundary_max_iterations < 1:
            raise ValueError("boundary_max_iterations must be >= 1.")
        lo, hi = self.ci_search_range
        if not 0 < lo < 1 < hi:
            raise ValueError("ci_search_range must satisfy 0 < low < 1 < high.")
        object.__setattr__(self, "alpha_spending_family", SpendingFamily(self.alpha_spending_family))


@dataclass(frozen=True)
class BoundaryPoint:
    """One analyzed look's boundary, as needed by the recursion at later looks."""

    n: int
    information_fraction: float
    critical_value: float
    threshold: int  # smallest risk-window count that rejects at this look
    alpha_target: float
    cumulative_alpha: float


@dataclass(frozen=True)
class LookRecord:
    schedule_index: int
    look_index: int
    calendar_date: Optional[date]
    cumulative_cases: int
    events_risk: int
    events_control: int
    analyzed: bool
    rejected: bool = False
    skip_reason: Optional[SkipReason] = None

    null_proportion: Optional[float] = None
    test_statistic: Optional[float] = None
    critical_value: Optional[float] = None
    rate_ratio: Optional[float] = None
    ci_lower: Optional[float] = None
    ci_upper: Optional[float] = None

    information_fraction: Optional[float] = None
    alpha_target: Optional[float] = None
    cumulative_alpha_spent: Optional[float] = None
    z_statistic: Optional[float] = None
    p_value: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["calendar_date"] = self.calendar_date.isoformat() if self.calendar_date else None
        d["skip_reason"] = self.skip_reason.value if self.skip_reason else None
        return d


@dataclass
class SurveillanceState:
    cumulative_alpha_spent: float = 0.0
    boundary_history: List[BoundaryPoint] = field(default_factory=list)
    stopped: bool = False
    terminal_look_index: Optional[int] = None
    status: RunStatus = RunStatus.IDLE
    max_sample_size: Optional[int] = None

    @property
    def looks_performed(self) -> int:
        return len(self.boundary_history)

    def copy(self) -> "SurveillanceState":
        return SurveillanceState(
            cumulative_alpha_spent=self.cumulative_alpha_spent,
            boundary_history=list(self.boundary_history),
            stopped=self.stopped,
            terminal_look_index=self.terminal_look_index,
            status=self.status,
            max_sample_size=self.max_sample_size,
        )

    def snapshot(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "stopped": self.stopped,
            "terminal_look_index": self.terminal_look_index,
            "looks_performed": self.looks_performed,
            "cumulative_alpha_spent": self.cumulative_alpha_spent,
            "max_sample_size": self.max_sample_size,
        }


@dataclass
class SurveillanceResult:
    records: List[LookRecord]
    state: SurveillanceState
    warnings: List[str] = field(default_factory=list)
    diagnostics: Dict[str, Any] = field(default_factory=dict)

    @property
    def status(self) -> RunStatus:
        return self.state.status

    @property
    def signal_detected(self) -> bool:
        return any(r.rejected for r in self.records)

    @property
    def analyzed_records(self) -> List[LookRecord]:
        return [r for r in self.records if r.analyzed]

    @property
    def latest(self) -> Optional[LookRecord]:
        analyzed = self.analyzed_records
        return analyzed[-1] if analyzed else None

    def look_table(self) -> pd.DataFrame:
        return pd.DataFrame([r.to_dict() for r in self.records])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "signal_detected": self.signal_detected,
            "state": self.state.snapshot(),
            "boundary_history": [asdict(b) for b in self.state.boundary_history],
            "records": [r.to_dict() for r in self.records],
            "warnings": list(self.warnings),
            "diagnostics": dict(self.diagnostics),
        }
