from __future__ import annotations

import argparse
import logging

from scrisurv.cli.commands.check import cmd_check
from scrisurv.cli.commands.run_config import cmd_run_config
from scrisurv.cli.commands.sample_size import cmd_sample_size
from scrisurv.cli.commands.simulate import cmd_simulate
from scrisurv.cli.commands.surveil import cmd_surveil
from scrisurv.cli.commands.validate_design import cmd_validate_design
from scrisurv.cli.commands.version import cmd_version
from scrisurv.cli.options import add_design_args, fail


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="scrisurv", description="SCRI sequential vaccine-safety surveillance CLI.")
    p.add_argument("--verbose", action="store_true", help="Log one line per look (INFO).")
    sub = p.add_subparsers(dest="command", required=True)

    sp = sub.add_parser("version", help="Print installed package version.")
    sp.set_defaults(func=cmd_version)

    sp = sub.add_parser("check", help="Validate a case CSV and summarize days-to-event by window.")
    sp.add_argument("--input", required=True)
    sp.add_argument("--schema", default="scri_cases")
    sp.add_argument("--out", default=None)
    add_design_args(sp)
    sp.set_defaults(func=cmd_check)

    sp = sub.add_parser("simulate", help="Simulate a one-season SCRI case dataset.")
    sp.add_argument("--output", required=True, help="CSV path to write.")
    sp.add_argument("--population", type=int, default=None)
    sp.add_argument("--baseline-rate", type=float, default=None)
    sp.add_argument("--true-rr", type=float, default=None)
    sp.add_argument("--seed", type=int, default=None)
    add_design_args(sp)
    sp.set_defaults(func=cmd_simulate)

    sp = sub.add_parser("surveil", help="Run sequential surveillance over a case CSV and write a bundle.")
    sp.add_argument("--input", required=True)
    sp.add_argument("--out", default=None)
    sp.add_argument("--season-start", default=None, help="YYYY-MM-DD (default: config, then earliest exposure).")
    sp.add_argument("--observation-end", default=None, help="YYYY-MM-DD; drop cases with incomplete follow-up.")
    add_design_args(sp)
    sp.set_defaults(func=cmd_surveil)

    sp = sub.add_parser("sample-size", help="Cases needed to detect the target RR; approximate power table.")
    sp.add_argument("--power", type=float, default=0.9)
    sp.add_argument("--rr-values", default=None, help="Comma-separated RR grid for the power table.")
    sp.add_argument("--out", default=None)
    add_design_args(sp)
    sp.set_defaults(func=cmd_sample_size)

    sp = sub.add_parser("validate-design", help="Exact and simulated Type-I error / power for a look schedule.")
    sp.add_argument("--sample-sizes", default=None, help="Comma-separated cumulative cases per look.")
    sp.add_argument("--rr-values", default=None, help="Comma-separated RR values (default: 1 and target RR).")
    sp.add_argument("--n-sims", type=int, default=1000)
    sp.add_argument("--seed", type=int, default=42)
    sp.add_argument("--out", default=None)
    add_design_args(sp)
    sp.set_defaults(func=cmd_validate_design)

    sp = sub.add_parser("run-config", help="Run a command described by a YAML file.")
    sp.add_argument("--config", required=True)
    sp.set_defaults(func=cmd_run_config)

    return p


def main(argv: list[str] | None = None) -> int:
    p = build_parser()
    args = p.parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    try:
        return int(args.func(args))
    except (ValueError, FileNotFoundError) as exc:
        return fail(str(exc))


if __name__ == "__main__":
    raise SystemExit(main())
