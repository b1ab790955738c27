"""
Pipeline
========

The analysis is a fixed sequence of stages. Each stage is a function that
takes the previous stage's immutable output and returns a new one:

1) reshape   -> LongTable per source table
2) join      -> JoinedRecord tuples (global, US)
3) filter    -> kept records + DropReport
4) aggregate -> state totals, national totals, per-state summary
5) compare   -> ComparisonRecord tuples for one state
6) model     -> RegressionResult per ModelSpec

Each stage can be called (and tested) on its own. A full `run` keeps only
the filtered records and what is derived from them. Source tables are
released once both datasets are joined and filtered.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Tuple
import logging

from .aggregate import national_totals, state_totals, summarize_states
from .config import AnalysisConfig
from .join import join_global, join_us
from .loader import SourceTables, load_sources
from .modeler import compare, fit_models
from .models import (
    ComparisonRecord,
    DropReport,
    JoinedRecord,
    RegionAggregate,
    RegressionResult,
    StateSummary,
)
from .reshape import to_long
from .validate import filter_global, filter_us

logger = logging.getLogger(__name__)

GLOBAL_ID_COLUMNS = ("province_state", "country_region")
US_CASES_ID_COLUMNS = ("county", "province_state", "country_region", "combined_key")
US_DEATHS_ID_COLUMNS = US_CASES_ID_COLUMNS + ("population",)


@dataclass(frozen=True)
class AnalysisResult:
    """Everything one run produced."""
    global_records: Tuple[JoinedRecord, ...]
    us_records: Tuple[JoinedRecord, ...]
    global_drops: DropReport
    us_drops: DropReport
    state_rows: Tuple[RegionAggregate, ...]
    national_rows: Tuple[RegionAggregate, ...]
    state_summaries: Tuple[StateSummary, ...]
    state: str
    comparison: Tuple[ComparisonRecord, ...]
    regressions: Tuple[RegressionResult, ...]

    def states(self) -> Tuple[str, ...]:
        return tuple(s.province_state for s in self.state_summaries)


def tidy_global(tables: SourceTables) -> Tuple[JoinedRecord, ...]:
    cases = to_long(tables.global_cases, GLOBAL_ID_COLUMNS, "cases")
    deaths = to_long(tables.global_deaths, GLOBAL_ID_COLUMNS, "deaths")
    return join_global(cases, deaths, tables.lookup)


def tidy_us(tables: SourceTables) -> Tuple[JoinedRecord, ...]:
    cases = to_long(tables.us_cases, US_CASES_ID_COLUMNS, "cases")
    deaths = to_long(tables.us_deaths, US_DEATHS_ID_COLUMNS, "deaths")
    return join_us(cases, deaths)


def tidy_and_filter(tables: SourceTables) -> Tuple[Tuple[JoinedRecord, ...], DropReport, Tuple[JoinedRecord, ...], DropReport]:
    """Reshape, join and filter both datasets.

    The long tables and the unfiltered joins are temporaries of this call.
    Only the kept records leave it.
    """
    global_records, global_drops = filter_global(tidy_global(tables))
    us_records, us_drops = filter_us(tidy_us(tables))
    return global_records, global_drops, us_records, us_drops


def _analyze(
    global_records: Tuple[JoinedRecord, ...],
    global_drops: DropReport,
    us_records: Tuple[JoinedRecord, ...],
    us_drops: DropReport,
    config: AnalysisConfig,
) -> AnalysisResult:
    states = state_totals(us_records)
    nation = national_totals(states)
    comparison = compare(states, nation, config.state)
    regressions = fit_models(comparison, config.models)

    return AnalysisResult(
        global_records=global_records,
        us_records=us_records,
        global_drops=global_drops,
        us_drops=us_drops,
        state_rows=states,
        national_rows=nation,
        state_summaries=summarize_states(states),
        state=config.state,
        comparison=comparison,
        regressions=regressions,
    )


def run_analysis(tables: SourceTables, config: Optional[AnalysisConfig] = None) -> AnalysisResult:
    config = config or AnalysisConfig()
    return _analyze(*tidy_and_filter(tables), config)


def run(config: Optional[AnalysisConfig] = None) -> AnalysisResult:
    """Load the five sources and run every stage."""
    config = config or AnalysisConfig()
    tables = load_sources(config.sources)
    filtered = tidy_and_filter(tables)
    # the raw wide tables are not needed once both datasets are joined
    del tables
    return _analyze(*filtered, config)
