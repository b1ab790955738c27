"""
Export tidy tables
==================

CSV is great for spreadsheets; JSON is great for programs and keeps field
names; XLSX is for people who live in Excel. Dates are written as ISO strings
and missing values as empty cells / null.
"""

from __future__ import annotations
from dataclasses import asdict, fields
from datetime import date
from typing import Any, Dict, List, Sequence
import csv
import json
import os

EXPORT_FORMATS = ("csv", "json", "xlsx")


def _row(record) -> Dict[str, Any]:
    out = asdict(record)
    for k, v in out.items():
        if isinstance(v, date):
            out[k] = v.isoformat()
        elif isinstance(v, tuple):
            out[k] = list(v)
    return out


def export_records(records: Sequence, path: str, fmt: str = "csv") -> str:
    """Write a sequence of same-typed dataclass records to `path`."""
    fmt = fmt.lower()
    if fmt not in EXPORT_FORMATS:
        raise ValueError(f"format must be one of {EXPORT_FORMATS}")
    if not records:
        raise ValueError("Nothing to export: no records.")

    columns = [f.name for f in fields(records[0])]
    rows: List[Dict[str, Any]] = [_row(r) for r in records]
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)

    if fmt == "csv":
        with open(path, "w", newline="", encoding="utf-8") as f:
            w = csv.DictWriter(f, fieldnames=columns)
            w.writeheader()
            w.writerows(rows)
    elif fmt == "json":
        with open(path, "w", encoding="utf-8") as f:
            json.dump(rows, f, ensure_ascii=False, indent=2)
    else:
        import pandas as pd
        pd.DataFrame(rows, columns=columns).to_excel(path, index=False, engine="openpyxl")
    return path
