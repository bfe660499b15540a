from __future__ import annotations

from types import SimpleNamespace
from typing import Any

from scrisurv.cli.commands.check import cmd_check
from scrisurv.cli.commands.sample_size import cmd_sample_size
from scrisurv.cli.commands.simulate import cmd_simulate
from scrisurv.cli.commands.surveil import cmd_surveil
from scrisurv.cli.commands.validate_design import cmd_validate_design
from scrisurv.cli.options import fail
from scrisurv.config import load_yaml


def _as_args(d: dict[str, Any]) -> SimpleNamespace:
    # cmd_* functions expect attribute access (args.foo)
    return SimpleNamespace(**d)


def cmd_run_config(args) -> int:
    """Run one command from a YAML file.

    The same file carries the design sections (scri_design, sequential_analysis,
    simulation) plus `command`, `input`, `out` and command-specific `params`.
    """
    cfg_path = str(args.config)
    cfg = load_yaml(cfg_path)

    command = str(cfg.get("command", "")).strip().replace("_", "-")
    if not command:
        return fail("Missing required field: command")

    input_path = cfg.get("input", None)
    out_dir = cfg.get("out", None)
    if out_dir is None:
        out_dir = (cfg.get("output", {}) or {}).get("directory")

    params = cfg.get("params", {}) or {}
    if not isinstance(params, dict):
        return fail("Field `params` must be a mapping (YAML dict).")

    base_args: dict[str, Any] = {"config": cfg_path, "out": out_dir}

    if command == "check":
        if input_path is None:
            return fail("check requires `input`")
        return int(cmd_check(_as_args({**base_args, "input": input_path, "schema": params.get("schema", "scri_cases")})))

    if command == "simulate":
        output = params.get("output", input_path)
        if output is None:
            return fail("simulate requires params.output (or `input`) as the CSV path to write")
        return int(cmd_simulate(_as_args({**base_args, "output": output})))

    if command == "surveil":
        if input_path is None:
            return fail("surveil requires `input`")
        merged = {
            **base_args,
            "input": input_path,
            "observation_end": params.get("observation_end"),
            "season_start": params.get("season_start"),
        }
        return int(cmd_surveil(_as_args(merged)))

    if command == "sample-size":
        merged = {
            **base_args,
            "power": float(params.get("power", 0.9)),
            "rr_values": params.get("rr_values"),
        }
        return int(cmd_sample_size(_as_args(merged)))

    if command == "validate-design":
        sizes = params.get("sample_sizes")
        merged = {
            **base_args,
            "sample_sizes": ",".join(str(int(n)) for n in sizes) if isinstance(sizes, list) else sizes,
            "rr_values": params.get("rr_values"),
            "n_sims": int(params.get("n_sims", 1000)),
            "seed": int(params.get("seed", 42)),
        }
        return int(cmd_validate_design(_as_args(merged)))

    return fail(f"Unknown command: {command}")
