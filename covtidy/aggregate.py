"""
Aggregator (county -> state -> nation)
=====================================

Group-by is a plain dict (group key -> accumulator), the same idea as an
index from value to row list. Output rows are then sorted by (region, date)
so the result does not depend on input order.

Per-capita fields are None when the population is missing, zero or not a
finite number.
Day-over-day fields are None on the first date of each region. If dates are
missing in the middle of a series, the difference spans the gap.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from datetime import date
from typing import Dict, List, Optional, Sequence, Set, Tuple
import logging
import math

from .errors import IntegrityError
from .models import JoinedRecord, RegionAggregate, StateSummary

logger = logging.getLogger(__name__)


@dataclass
class _Acc:
    """Running sums for one group."""
    cases: int = 0
    deaths: int = 0
    population: Optional[float] = None

    def add(self, cases: Optional[int], deaths: Optional[int], population: Optional[float]) -> None:
        # a missing count contributes nothing to the sum
        self.cases += cases or 0
        self.deaths += deaths or 0
        if population is not None:
            self.population = (self.population or 0.0) + population


def _has_population(population: Optional[float]) -> bool:
    return population is not None and math.isfinite(population) and population > 0


def per_million(count: int, population: Optional[float]) -> Optional[float]:
    if not _has_population(population):
        return None
    return count * 1_000_000 / population


def check_unique_counties(records: Sequence[JoinedRecord]) -> None:
    """Each county may report at most one row per (state, country, date).

    State population is a sum over county rows, so a repeated county
    would count its population twice.
    """
    # one small date set per county instead of one key tuple per record
    dates_by_county: Dict[Tuple[Optional[str], str, Optional[str]], Set[date]] = {}
    for r in records:
        county = r.combined_key or r.county
        seen = dates_by_county.setdefault((r.province_state, r.country_region, county), set())
        if r.date in seen:
            raise IntegrityError(
                f"county {county!r} of {r.province_state}, {r.country_region} "
                f"appears more than once on {r.date.isoformat()}"
            )
        seen.add(r.date)


def add_increments(rows: Sequence[RegionAggregate]) -> Tuple[RegionAggregate, ...]:
    """Sort by (region, date) and fill new_cases / new_deaths."""
    ordered = sorted(rows, key=lambda r: (r.region(), r.date))
    out: List[RegionAggregate] = []
    prev: Optional[RegionAggregate] = None
    for r in ordered:
        if prev is not None and prev.region() == r.region():
            out.append(replace(r, new_cases=r.cases - prev.cases, new_deaths=r.deaths - prev.deaths))
        else:
            out.append(replace(r, new_cases=None, new_deaths=None))
        prev = r
    return tuple(out)


def _finish(groups: Dict[Tuple[Optional[str], str, date], _Acc]) -> Tuple[RegionAggregate, ...]:
    rows = [
        RegionAggregate(
            province_state=state,
            country_region=country,
            date=d,
            cases=acc.cases,
            deaths=acc.deaths,
            population=acc.population,
            deaths_per_million=per_million(acc.deaths, acc.population),
            cases_per_million=per_million(acc.cases, acc.population),
            new_cases=None,
            new_deaths=None,
        )
        for (state, country, d), acc in groups.items()
    ]
    return add_increments(rows)


def state_totals(records: Sequence[JoinedRecord]) -> Tuple[RegionAggregate, ...]:
    """Roll US county rows up to (province_state, country_region, date)."""
    check_unique_counties(records)
    groups: Dict[Tuple[Optional[str], str, date], _Acc] = {}
    for r in records:
        groups.setdefault((r.province_state, r.country_region, r.date), _Acc()).add(
            r.cases, r.deaths, r.population
        )
    out = _finish(groups)
    logger.info("state totals: %d rows for %d states", len(out), len({r.region() for r in out}))
    return out


def national_totals(state_rows: Sequence[RegionAggregate]) -> Tuple[RegionAggregate, ...]:
    """Roll state rows up to (country_region, date)."""
    groups: Dict[Tuple[Optional[str], str, date], _Acc] = {}
    for r in state_rows:
        groups.setdefault((None, r.country_region, r.date), _Acc()).add(r.cases, r.deaths, r.population)
    out = _finish(groups)
    logger.info("national totals: %d rows", len(out))
    return out


# -----------------------------
# Latest-date summary per state
# -----------------------------

def _per_thousand(count: int, population: Optional[float]) -> Optional[float]:
    if not _has_population(population):
        return None
    return count * 1000 / population


def summarize_states(state_rows: Sequence[RegionAggregate]) -> Tuple[StateSummary, ...]:
    """Latest-date totals for every state, sorted by state name."""
    latest: Dict[Tuple[str, str], RegionAggregate] = {}
    for r in state_rows:
        k = r.region()
        if k not in latest or r.date > latest[k].date:
            latest[k] = r
    return tuple(
        StateSummary(
            province_state=r.province_state or "",
            country_region=r.country_region,
            date=r.date,
            cases=r.cases,
            deaths=r.deaths,
            population=r.population,
            cases_per_thousand=_per_thousand(r.cases, r.population),
            deaths_per_thousand=_per_thousand(r.deaths, r.population),
        )
        for _, r in sorted(latest.items())
    )


def rank_states(summaries: Sequence[StateSummary], field: str, n: int = 10, lowest: bool = False) -> List[StateSummary]:
    """Top (or bottom) n states by `field`. States where it is None are skipped."""
    if field not in StateSummary.__dataclass_fields__:
        raise ValueError(f"unknown field {field!r}")
    present = [s for s in summaries if getattr(s, field) is not None]
    present.sort(key=lambda s: (getattr(s, field), s.province_state), reverse=not lowest)
    return present[:n]
