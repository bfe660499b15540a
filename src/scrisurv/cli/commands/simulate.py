from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path

from scrisurv.cli.options import settings_from_args
from scrisurv.sequential.simulate import simulate_scri_cases

logger = logging.getLogger(__name__)


def cmd_simulate(args) -> int:
    settings = settings_from_args(args)

    overrides = {}
    for attr, field_name in [
        ("population", "population_size"),
        ("baseline_rate", "baseline_event_rate"),
        ("true_rr", "relative_risk"),
        ("seed", "seed"),
    ]:
        v = getattr(args, attr, None)
        if v is not None:
            overrides[field_name] = v
    sim_cfg = replace(settings.simulation, **overrides) if overrides else settings.simulation

    df = simulate_scri_cases(sim_cfg, settings.windows)

    path = Path(args.output)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)

    n_risk = int((df["window"] == "risk").sum())
    logger.info("Simulated %d cases (risk=%d, control=%d) with RR=%.2f", len(df), n_risk, len(df) - n_risk, sim_cfg.relative_risk)
    print(f"wrote {len(df)} cases to {path} (risk={n_risk}, control={len(df) - n_risk})")
    return 0
