from __future__ import annotations

from scrisurv.cli.bundle import prepare_out_dir, write_results_json, write_table
from scrisurv.cli.options import settings_from_args
from scrisurv.io.reader import read_csv, validate_df
from scrisurv.io.schema import get_schema
from scrisurv.sequential.preprocess import summarize_days_to_event


def cmd_check(args) -> int:
    schema = get_schema(getattr(args, "schema", "scri_cases"))
    df = read_csv(args.input)
    errors = validate_df(df, schema)

    if errors:
        print("INVALID")
        for e in errors:
            print("-", e)
        return 2

    windows = settings_from_args(args).windows
    summary = summarize_days_to_event(df, windows)

    print("OK")
    print(f"rows: {len(df)}")
    print(summary.to_string(index=False))

    if getattr(args, "out", None):
        out_dir = prepare_out_dir(args.out, command="check")
        table = write_table(out_dir, "days_to_event_summary", summary)
        write_results_json(
            out_dir,
            {
                "command": "check",
                "inputs": {"input": args.input, "schema": schema.name, "windows": windows},
                "estimates": {"n_rows": int(len(df))},
                "warnings": [],
                "artifacts": {"tables": [table]},
            },
        )
    return 0
