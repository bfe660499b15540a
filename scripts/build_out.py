from __future__ import annotations

import argparse
import shutil
import subprocess
from pathlib import Path


def run(cmd: list[str], ok_codes: tuple[int, ...] = (0,)) -> None:
    print("+", " ".join(cmd))
    rc = subprocess.run(cmd).returncode
    if rc not in ok_codes:
        raise SystemExit(rc)


def main() -> int:
    p = argparse.ArgumentParser(description="Build out/ bundles from the example config.")
    p.add_argument("--out", default="out", help="Output directory (default: out)")
    p.add_argument("--clean", action="store_true", help="Remove out/ before building")
    p.add_argument("--print-tree", action="store_true", help="Print out/ file tree after build")
    args = p.parse_args()

    out = Path(args.out)
    cfg = "examples/config.yaml"

    if args.clean and out.exists():
        shutil.rmtree(out)

    run(["scrisurv", "--help"])
    run(["scrisurv", "version"])

    cases = str(out / "simulated_cases.csv")
    cases_null = str(out / "simulated_cases_null.csv")
    run(["scrisurv", "simulate", "--config", cfg, "--output", cases])
    run(["scrisurv", "simulate", "--config", cfg, "--true-rr", "1.0", "--seed", "2024", "--output", cases_null])

    run(["scrisurv", "check", "--config", cfg, "--input", cases, "--out", str(out / "check")])

    run(["scrisurv", "--verbose", "surveil", "--config", cfg, "--input", cases, "--out", str(out / "surveil_rr1.5")])
    run(["scrisurv", "surveil", "--config", cfg, "--input", cases_null, "--out", str(out / "surveil_null")])
    run([
        "scrisurv", "surveil",
        "--config", cfg,
        "--input", cases,
        "--spending", "power_type",
        "--rho", "2.0",
        "--no-stop-on-signal",
        "--out", str(out / "surveil_power_type"),
    ])

    run(["scrisurv", "sample-size", "--config", cfg, "--out", str(out / "sample_size")])
    run([
        "scrisurv", "validate-design",
        "--config", cfg,
        "--sample-sizes", "40,80,120,160,200,240",
        "--rr-values", "1.0,1.5,2.0",
        "--n-sims", "2000",
        "--out", str(out / "validate_design"),
    ])

    run(["scrisurv", "run-config", "--config", "examples/run_surveil.yaml"])

    if args.print_tree:
        for path in sorted(out.rglob("*")):
            print(path)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
