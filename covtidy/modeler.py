"""
Modeler
=======

- `compare` lines up one state's series with the national series by date.
- `fit_ols` fits `y = a + b*x` with statsmodels.

Rows with a missing x or y are left out of the fit. Predictions are made for
every row whose x is present, including rows whose y was missing.
"""

from __future__ import annotations
from typing import List, Optional, Sequence, Tuple
import logging
import math

import numpy as np
import statsmodels.api as sm

from .config import ModelSpec
from .models import ComparisonRecord, RegionAggregate, RegressionResult

logger = logging.getLogger(__name__)

MIN_OBSERVATIONS = 3


def compare(state_rows: Sequence[RegionAggregate], national_rows: Sequence[RegionAggregate], state: str) -> Tuple[ComparisonRecord, ...]:
    """Inner join of `state`'s rows with the national rows on date."""
    mine = {r.date: r for r in state_rows if r.province_state == state}
    if not mine:
        raise KeyError(f"No rows for state {state!r}")
    country = next(iter(mine.values())).country_region
    nation = {r.date: r for r in national_rows if r.country_region == country}

    out: List[ComparisonRecord] = []
    for d in sorted(mine):
        n = nation.get(d)
        if n is None:
            continue
        s = mine[d]
        out.append(ComparisonRecord(
            date=d,
            state_name=state,
            state_cases=s.cases,
            state_deaths=s.deaths,
            state_population=s.population,
            state_deaths_per_million=s.deaths_per_million,
            state_cases_per_million=s.cases_per_million,
            state_new_cases=s.new_cases,
            state_new_deaths=s.new_deaths,
            national_cases=n.cases,
            national_deaths=n.deaths,
            national_population=n.population,
            national_deaths_per_million=n.deaths_per_million,
            national_cases_per_million=n.cases_per_million,
            national_new_cases=n.new_cases,
            national_new_deaths=n.new_deaths,
        ))
    return tuple(out)


def _value(record: ComparisonRecord, column: str) -> Optional[float]:
    v = getattr(record, column)
    if v is None:
        return None
    v = float(v)
    return v if math.isfinite(v) else None


def _num(v) -> float:
    return float(v) if v is not None else float("nan")


def fit_ols(records: Sequence[ComparisonRecord], x: str, y: str, name: Optional[str] = None) -> RegressionResult:
    """Ordinary least squares `y ~ x` over the complete (x, y) pairs."""
    for col in (x, y):
        if col not in ComparisonRecord.__dataclass_fields__:
            raise ValueError(f"unknown column {col!r}")

    xs = [_value(r, x) for r in records]
    ys = [_value(r, y) for r in records]
    pairs = [(a, b) for a, b in zip(xs, ys) if a is not None and b is not None]
    if len(pairs) < MIN_OBSERVATIONS:
        raise ValueError(f"{y} ~ {x}: need at least {MIN_OBSERVATIONS} complete rows, got {len(pairs)}")

    X = np.array([p[0] for p in pairs])
    Y = np.array([p[1] for p in pairs])
    results = sm.OLS(Y, sm.add_constant(X, has_constant="add")).fit()

    intercept, slope = (float(v) for v in results.params)
    predictions = tuple(intercept + slope * a if a is not None else None for a in xs)
    label = name or f"{y} ~ {x}"
    logger.info("%s: intercept=%.4g slope=%.4g r2=%.4f n=%d", label, intercept, slope, results.rsquared, len(pairs))

    return RegressionResult(
        name=label,
        x=x,
        y=y,
        intercept=intercept,
        slope=slope,
        intercept_se=_num(results.bse[0]),
        slope_se=_num(results.bse[1]),
        slope_pvalue=_num(results.pvalues[1]),
        f_pvalue=_num(results.f_pvalue),
        r_squared=_num(results.rsquared),
        nobs=int(results.nobs),
        predictions=predictions,
        summary_text=results.summary(xname=["const", x], yname=y).as_text(),
    )


def fit_models(records: Sequence[ComparisonRecord], specs: Sequence[ModelSpec]) -> Tuple[RegressionResult, ...]:
    return tuple(fit_ols(records, s.x, s.y, name=s.name) for s in specs)
