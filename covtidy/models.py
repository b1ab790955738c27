"""
Data model
==========

Every stage returns tuples of frozen dataclasses, so nothing produced by one
stage can be edited by the next one. Missing values are `None` everywhere:
a missing count, an undefined ratio (zero population) and a first-row
difference are all `None`, never 0.

The per-cell and per-region records use `slots=True`: a full run holds
millions of them, and a slotted instance has no per-object `__dict__`.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Optional, Tuple


@dataclass(frozen=True)
class RawWideTable:
    """A time-series table as published: one row per region, one column per date."""
    name: str
    attribute_columns: Tuple[str, ...]
    date_columns: Tuple[date, ...]
    # (attribute values aligned with attribute_columns, counts aligned with date_columns)
    rows: Tuple[Tuple[tuple, Tuple[Optional[int], ...]], ...]

    def cell_count(self) -> int:
        return len(self.rows) * len(self.date_columns)


@dataclass(frozen=True, slots=True)
class LookupRow:
    """One row of the UID/ISO/FIPS lookup table (codes are not kept)."""
    province_state: Optional[str]
    country_region: str
    county: Optional[str]
    population: Optional[float]
    combined_key: Optional[str]


@dataclass(frozen=True, slots=True)
class LongRecord:
    ids: tuple
    date: date
    value: Optional[int]


@dataclass(frozen=True)
class LongTable:
    """Long-form table: one record per (region, date)."""
    name: str
    id_columns: Tuple[str, ...]
    metric: str
    records: Tuple[LongRecord, ...]


@dataclass(frozen=True, slots=True)
class JoinedRecord:
    """Cases and deaths for one region and date.

    `county` is always None for the global dataset.
    """
    county: Optional[str]
    province_state: Optional[str]
    country_region: str
    date: date
    cases: Optional[int]
    deaths: Optional[int]
    population: Optional[float]
    combined_key: Optional[str]


@dataclass(frozen=True)
class DropReport:
    """How many rows a filter examined and dropped, by reason."""
    dataset: str
    rule: str
    examined: int
    kept: int
    dropped: int
    reasons: Tuple[Tuple[str, int], ...] = ()

    def count(self, reason: str) -> int:
        for r, n in self.reasons:
            if r == reason:
                return n
        return 0


@dataclass(frozen=True, slots=True)
class RegionAggregate:
    """State total (province_state set) or national total (province_state None)."""
    province_state: Optional[str]
    country_region: str
    date: date
    cases: int
    deaths: int
    population: Optional[float]
    deaths_per_million: Optional[float]
    cases_per_million: Optional[float]
    new_cases: Optional[int] = None
    new_deaths: Optional[int] = None

    def region(self) -> Tuple[str, str]:
        return (self.province_state or "", self.country_region)


@dataclass(frozen=True)
class StateSummary:
    """Latest-date totals of one state, used for rankings."""
    province_state: str
    country_region: str
    date: date
    cases: int
    deaths: int
    population: Optional[float]
    cases_per_thousand: Optional[float]
    deaths_per_thousand: Optional[float]


@dataclass(frozen=True)
class ComparisonRecord:
    """One date of a state's series next to the national series."""
    date: date
    state_name: str
    state_cases: int
    state_deaths: int
    state_population: Optional[float]
    state_deaths_per_million: Optional[float]
    state_cases_per_million: Optional[float]
    state_new_cases: Optional[int]
    state_new_deaths: Optional[int]
    national_cases: int
    national_deaths: int
    national_population: Optional[float]
    national_deaths_per_million: Optional[float]
    national_cases_per_million: Optional[float]
    national_new_cases: Optional[int]
    national_new_deaths: Optional[int]


@dataclass(frozen=True)
class RegressionResult:
    """OLS fit of `y = intercept + slope * x`."""
    name: str
    x: str
    y: str
    intercept: float
    slope: float
    intercept_se: float
    slope_se: float
    slope_pvalue: float
    f_pvalue: float
    r_squared: float
    nobs: int
    # aligned with the records the model was fitted on; None where x is missing
    predictions: Tuple[Optional[float], ...]
    summary_text: str = field(default="", compare=False, repr=False)

    def predict(self, x: float) -> float:
        return self.intercept + self.slope * x
