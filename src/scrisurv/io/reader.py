from __future__ import annotations

import pandas as pd

from scrisurv.io.schema import DatasetSchema


def read_csv(path: str) -> pd.DataFrame:
    return pd.read_csv(path)


def validate_df(df: pd.DataFrame, schema: DatasetSchema) -> list[str]:
    errors: list[str] = []

    cols = set(df.columns)
    for c in schema.required:
        if c.name not in cols:
            errors.append(f"Missing required column: {c.name}")

    if errors:
        return errors

    parsed = {}
    for c in schema.required:
        if c.dtype != "date":
            continue
        raw = df[c.name]
        d = pd.to_datetime(raw, errors="coerce")
        bad = int((d.isna() & raw.notna()).sum())
        if bad:
            errors.append(f"Unparsable dates in '{c.name}': {bad} rows")
        parsed[c.name] = d

    exp = parsed.get(schema.exposure_col)
    evt = parsed.get(schema.event_col)
    if exp is not None and evt is not None:
        before = int((evt < exp).sum())
        if before:
            errors.append(f"Event before exposure in {before} rows ('{schema.event_col}' < '{schema.exposure_col}')")

    return errors
