from __future__ import annotations

from dataclasses import dataclass

from scrisurv.sequential.schema import WindowSpec


@dataclass(frozen=True)
class NullModel:
    """Event allocation under H0: each case falls in the risk window w.p. p0."""

    p0: float
    z: float  # matching ratio control_length / risk_length

    def allocation_probability(self, relative_risk: float) -> float:
        """P(event in risk window | event) when the risk-window rate is `relative_risk` times baseline."""
        rr = float(relative_risk)
        return rr / (rr + self.z)


def null_model(windows: WindowSpec) -> NullModel:
    risk = windows.risk_length
    control = windows.control_length
    return NullModel(p0=risk / (risk + control), z=control / risk)
