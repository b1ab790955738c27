"""
Filter / validation stage
=========================

Two cases-sign rules:

- global: keep rows with cases > 0 (the series starts at the first case);
- US:     keep rows with cases >= 0 (zero is kept, negative counts dropped).

Negative counts are treated as upstream correction artifacts. That is a policy
choice and a possible source of bias, so every drop is counted in a
`DropReport` and logged rather than silently discarded. Rows with a missing
cases value cannot satisfy either rule and are dropped under their own reason.
"""

from __future__ import annotations
from collections import Counter
from typing import Callable, List, Optional, Sequence, Tuple
import logging

from .models import DropReport, JoinedRecord

logger = logging.getLogger(__name__)


def _apply(
    records: Sequence[JoinedRecord],
    dataset: str,
    rule: str,
    reject: Callable[[JoinedRecord], Optional[str]],
) -> Tuple[Tuple[JoinedRecord, ...], DropReport]:
    kept: List[JoinedRecord] = []
    reasons: Counter = Counter()
    for r in records:
        why = reject(r)
        if why is None:
            kept.append(r)
        else:
            reasons[why] += 1

    report = DropReport(
        dataset=dataset,
        rule=rule,
        examined=len(records),
        kept=len(kept),
        dropped=len(records) - len(kept),
        reasons=tuple(sorted(reasons.items())),
    )
    if report.dropped:
        logger.warning(
            "%s: dropped %d of %d rows (%s): %s",
            dataset, report.dropped, report.examined, rule,
            ", ".join(f"{k}={v}" for k, v in report.reasons),
        )
    else:
        logger.info("%s: all %d rows pass %s", dataset, report.examined, rule)
    return tuple(kept), report


def _global_reason(r: JoinedRecord) -> Optional[str]:
    if r.cases is None:
        return "missing_cases"
    if r.cases <= 0:
        return "non_positive_cases"
    return None


def _us_reason(r: JoinedRecord) -> Optional[str]:
    if r.cases is None:
        return "missing_cases"
    if r.cases < 0:
        return "negative_cases"
    return None


def filter_global(records: Sequence[JoinedRecord]) -> Tuple[Tuple[JoinedRecord, ...], DropReport]:
    return _apply(records, "global", "cases > 0", _global_reason)


def filter_us(records: Sequence[JoinedRecord]) -> Tuple[Tuple[JoinedRecord, ...], DropReport]:
    return _apply(records, "US", "cases >= 0", _us_reason)
