"""
Joiner
======

Cases and deaths arrive as two LongTables. They are merged with a full outer
join on the identifying columns both tables share, plus the date:

- a key found in both tables gets both metrics;
- a key found in only one table appears once, the other metric is None.

None is kept as None here. The filters downstream treat "missing" and "zero"
differently, so nothing is coerced at join time.

The global data additionally gets a synthesized display key and the
population from the lookup table (left join on province/state + country).
"""

from __future__ import annotations
from dataclasses import replace
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple
import logging

from .errors import IntegrityError
from .models import JoinedRecord, LongTable, LookupRow

logger = logging.getLogger(__name__)


# id columns a JoinedRecord carries, in constructor order
_RECORD_ID_COLUMNS = ("county", "province_state", "country_region", "population", "combined_key")


def _key_func(table: LongTable, common: Sequence[str]) -> Callable[[tuple], tuple]:
    """Project a record's ids onto the shared columns, without copying when they already match."""
    pos = [table.id_columns.index(c) for c in common]
    if pos == list(range(len(table.id_columns))):
        return lambda ids: ids
    return lambda ids: tuple(ids[p] for p in pos)


def _merge_ids(c_ids: Optional[tuple], d_ids: Optional[tuple], sources) -> List:
    out = []
    for cp, dp in sources:
        v = c_ids[cp] if c_ids is not None and cp is not None else None
        if v is None and d_ids is not None and dp is not None:
            v = d_ids[dp]
        out.append(v)
    return out


def full_outer_join(cases: LongTable, deaths: LongTable) -> Tuple[JoinedRecord, ...]:
    """Full outer join of a cases table and a deaths table.

    Output order: keys in cases order, then deaths-only keys in deaths order.
    Identifying columns found in only one table (e.g. `population` on the US
    deaths table) are carried from that table.

    Records are built straight from the two tables. The only index is
    key -> position in the deaths table.
    """
    common = [c for c in cases.id_columns if c in deaths.id_columns]
    if "country_region" not in common:
        raise ValueError("cases and deaths tables must share country_region")
    case_key = _key_func(cases, common)
    death_key = _key_func(deaths, common)
    sources = [
        (
            cases.id_columns.index(c) if c in cases.id_columns else None,
            deaths.id_columns.index(c) if c in deaths.id_columns else None,
        )
        for c in _RECORD_ID_COLUMNS
    ]

    # key -> deaths position; -1 once the key has been taken by a cases record
    taken = -1
    at: Dict[tuple, int] = {}
    for i, r in enumerate(deaths.records):
        key = (death_key(r.ids), r.date)
        if key in at:
            raise IntegrityError(f"{deaths.name}: duplicate key {key}")
        at[key] = i

    out: List[JoinedRecord] = []
    for r in cases.records:
        key = (case_key(r.ids), r.date)
        i = at.get(key)
        if i == taken:
            raise IntegrityError(f"{cases.name}: duplicate key {key}")
        at[key] = taken
        d = deaths.records[i] if i is not None else None
        county, province, country, population, combined = _merge_ids(
            r.ids, d.ids if d is not None else None, sources
        )
        out.append(JoinedRecord(
            county=county,
            province_state=province,
            country_region=country,
            date=r.date,
            cases=r.value,
            deaths=d.value if d is not None else None,
            population=population,
            combined_key=combined,
        ))

    for i in at.values():
        if i == taken:
            continue
        d = deaths.records[i]
        county, province, country, population, combined = _merge_ids(None, d.ids, sources)
        out.append(JoinedRecord(
            county=county,
            province_state=province,
            country_region=country,
            date=d.date,
            cases=None,
            deaths=d.value,
            population=population,
            combined_key=combined,
        ))
    return tuple(out)


def combine_key(province_state: Optional[str], country_region: str, sep: str = ", ") -> str:
    """"Province, Country", or just "Country" when there is no province."""
    return sep.join(p for p in (province_state, country_region) if p)


def attach_lookup(records: Iterable[JoinedRecord], lookup: Iterable[LookupRow]) -> Tuple[JoinedRecord, ...]:
    """Left join population (and display key) from the lookup table.

    Only lookup rows without a county take part, so every
    (province_state, country_region) maps to at most one row.
    """
    index: Dict[Tuple[Optional[str], str], LookupRow] = {}
    for row in lookup:
        if row.county is not None:
            continue
        k = (row.province_state, row.country_region)
        if k in index:
            logger.warning("lookup: duplicate region %s, keeping the first row", k)
            continue
        index[k] = row

    out: List[JoinedRecord] = []
    unmatched = set()
    for r in records:
        m = index.get((r.province_state, r.country_region))
        if m is None:
            unmatched.add((r.province_state, r.country_region))
            out.append(replace(r, population=None))
            continue
        out.append(replace(r, population=m.population, combined_key=m.combined_key or r.combined_key))
    if unmatched:
        logger.info("lookup: %d regions without a population match", len(unmatched))
    return tuple(out)


def join_global(cases: LongTable, deaths: LongTable, lookup: Iterable[LookupRow]) -> Tuple[JoinedRecord, ...]:
    keyed = (
        replace(r, combined_key=combine_key(r.province_state, r.country_region))
        for r in full_outer_join(cases, deaths)
    )
    return attach_lookup(keyed, lookup)


def join_us(cases: LongTable, deaths: LongTable) -> Tuple[JoinedRecord, ...]:
    """US tables already carry population (deaths table), no lookup merge."""
    return full_outer_join(cases, deaths)
