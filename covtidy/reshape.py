"""
Reshaper (wide -> long)
=======================

One output record per (input row, date column), in row-major order.
Attribute columns that are not requested (lat/long, ISO codes, ...) are dropped.
"""

from __future__ import annotations
from typing import List, Sequence

from .errors import ParseFailure
from .models import LongRecord, LongTable, RawWideTable


def to_long(table: RawWideTable, id_columns: Sequence[str], metric: str) -> LongTable:
    """Unpivot `table`, keeping `id_columns` as the region identifiers.

    The output always has `table.cell_count()` records.
    """
    missing = [c for c in id_columns if c not in table.attribute_columns]
    if missing:
        raise ParseFailure(table.name, f"missing identifying columns {missing}")
    positions = [table.attribute_columns.index(c) for c in id_columns]

    records: List[LongRecord] = []
    for attrs, values in table.rows:
        ids = tuple(attrs[p] for p in positions)
        for d, v in zip(table.date_columns, values):
            records.append(LongRecord(ids=ids, date=d, value=v))

    return LongTable(
        name=table.name,
        id_columns=tuple(id_columns),
        metric=metric,
        records=tuple(records),
    )
