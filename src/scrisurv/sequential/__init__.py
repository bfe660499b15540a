"""Sequential safety surveillance for self-controlled risk interval (SCRI) designs.

Each case contributes one event that falls either in a post-exposure risk
window or in a later control window. Under H0 the risk-window count among n
cases is Binomial(n, p0) with p0 = risk_len / (risk_len + control_len).
Cumulative counts are tested at scheduled calendar looks with the binomial
MaxSPRT:

* exact critical values from an alpha-spending function (Wald or power-type),
  solved by forward recursion over the surviving null paths;
* a continuity-corrected, window-length-normalized rate ratio;
* a repeated (sequential-adjusted) confidence interval from inverting the
  look's critical value.

Looks must be evaluated in calendar order; each run owns one
:class:`SurveillanceState`.
"""

from scrisurv.sequential.errors import (
    BoundaryComputationError,
    ConfidenceIntervalWarning,
    InvalidWindowConfig,
)
from scrisurv.sequential.schema import (
    BoundaryPoint,
    Case,
    LookRecord,
    RunStatus,
    SkipReason,
    SpendingFamily,
    SurveillanceConfig,
    SurveillanceResult,
    SurveillanceState,
    WindowMembership,
    WindowSpec,
)
from scrisurv.sequential.null_model import NullModel, null_model
from scrisurv.sequential.controller import SurveillanceController, evaluate_look, run_surveillance
from scrisurv.sequential.preprocess import cases_from_frame
