from __future__ import annotations

from dataclasses import dataclass
from typing import List


@dataclass(frozen=True)
class ColumnSpec:
    name: str
    dtype: str  # "str", "date"


@dataclass(frozen=True)
class DatasetSchema:
    name: str
    required: List[ColumnSpec]
    exposure_col: str = "exposure_date"
    event_col: str = "event_date"


CASE_SCHEMA = DatasetSchema(
    name="scri_cases",
    required=[
        ColumnSpec("case_id", "str"),
        ColumnSpec("exposure_date", "date"),
        ColumnSpec("event_date", "date"),
    ],
)


def get_schema(name: str) -> DatasetSchema:
    name = name.strip().lower()

    if name in ("scri_cases", "cases", "scri"):
        return CASE_SCHEMA

    raise ValueError(f"Unknown schema: {name}")
