"""
Dataset loader (CSV text -> RawWideTable)
=========================================

This module fetches the five JHU CSSE tables and converts each one into an
immutable `RawWideTable` (or a tuple of `LookupRow` for the lookup table).

Key ideas:
- Column names are canonicalised (`Province/State` and `Province_State` both
  become `province_state`) so global and US tables share one vocabulary.
- Every column that is not a known attribute must be a `M/D/YY` date header.
  Anything else is a ParseFailure: we never guess.
- Count cells are parsed strictly. An empty cell is an explicit missing value
  (None), a non-numeric cell is a ParseFailure. No zero-fill.
- A failed read is fatal. There is no retry.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Dict, List, Optional, Tuple
import csv
import io
import logging
import math
import os
import re
import tempfile

import pandas as pd
import requests

from .config import SourceConfig
from .errors import FetchFailure, ParseFailure
from .models import LookupRow, RawWideTable

logger = logging.getLogger(__name__)

# normalised header -> canonical attribute name
ATTRIBUTE_COLUMNS: Dict[str, str] = {
    "uid": "uid",
    "iso2": "iso2",
    "iso3": "iso3",
    "code3": "code3",
    "fips": "fips",
    "admin2": "county",
    "provincestate": "province_state",
    "countryregion": "country_region",
    "lat": "lat",
    "long": "long",
    "combinedkey": "combined_key",
    "population": "population",
}

SOURCE_ROLES = ("global_cases", "global_deaths", "us_cases", "us_deaths", "lookup")


def _norm(s: str) -> str:
    return re.sub(r"[^a-z0-9]+", "", str(s).lower())


def _col(df: pd.DataFrame, *names: str) -> str:
    cols = list(df.columns)
    for n in names:
        if n in cols:
            return n
    norm_map = {_norm(c): c for c in cols}
    for n in names:
        nn = _norm(n)
        if nn in norm_map:
            return norm_map[nn]
    raise KeyError(f"Missing required column. Tried={names}. Available={cols}")


def _to_str(x) -> Optional[str]:
    s = str(x).strip()
    return s or None


def _to_float(x, table: str, column: str) -> Optional[float]:
    """Convert a cell to float; blank is None, garbage is a ParseFailure."""
    s = str(x).strip()
    if not s:
        return None
    try:
        v = float(s)
    except ValueError:
        raise ParseFailure(table, f"column {column!r}: not a number: {s!r}") from None
    if not math.isfinite(v):
        raise ParseFailure(table, f"column {column!r}: not a finite number: {s!r}")
    return v


def _to_count(x, table: str, column: str) -> Optional[int]:
    """Convert a count cell to int. "12" and "12.0" are fine, "12.5" is not."""
    v = _to_float(x, table, column)
    if v is None:
        return None
    if not v.is_integer():
        raise ParseFailure(table, f"column {column!r}: not an integer count: {x!r}")
    return int(v)


def parse_date_header(header: str, table: str = "table") -> date:
    """Parse a `M/D/YY` column header (4-digit years are accepted too)."""
    h = str(header).strip()
    for fmt in ("%m/%d/%y", "%m/%d/%Y"):
        try:
            return datetime.strptime(h, fmt).date()
        except ValueError:
            continue
    raise ParseFailure(table, f"column header {header!r} is neither a known attribute nor a M/D/YY date")


def _check_field_counts(text: str, source: str) -> None:
    """Every non-blank line must have as many fields as the header."""
    width = None
    reader = csv.reader(io.StringIO(text))
    try:
        for row in reader:
            if not row:
                continue
            if width is None:
                width = len(row)
            elif len(row) != width:
                raise FetchFailure(
                    source,
                    f"malformed CSV (line {reader.line_num} has {len(row)} fields, header has {width})",
                )
    except csv.Error as e:
        raise FetchFailure(source, f"malformed CSV ({e})") from e


def _read_frame(text: str, source: str) -> pd.DataFrame:
    _check_field_counts(text, source)
    try:
        # index_col=False: a longer data row must never turn column 0 into an index
        df = pd.read_csv(io.StringIO(text), dtype=str, keep_default_na=False, index_col=False)
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise FetchFailure(source, f"malformed CSV ({e})") from e
    df.rename(columns={c: str(c).strip() for c in df.columns}, inplace=True)
    return df


def _convert_attribute(name: str, value, table: str):
    if name == "population" or name in ("lat", "long"):
        return _to_float(value, table, name)
    if name in ("uid", "code3"):
        return _to_count(value, table, name)
    return _to_str(value)


def parse_wide_csv(text: str, name: str) -> RawWideTable:
    """Parse one time-series CSV into a RawWideTable.

    Raises:
        FetchFailure: the text is not readable CSV.
        ParseFailure: a date header or a numeric cell cannot be parsed.
    """
    df = _read_frame(text, name)

    attr_pos: List[int] = []
    attr_names: List[str] = []
    date_pos: List[int] = []
    dates: List[date] = []
    for i, c in enumerate(df.columns):
        canon = ATTRIBUTE_COLUMNS.get(_norm(c))
        if canon is not None:
            attr_pos.append(i)
            attr_names.append(canon)
        else:
            date_pos.append(i)
            dates.append(parse_date_header(c, name))

    if "country_region" not in attr_names:
        raise ParseFailure(name, "no Country/Region column")
    if len(set(dates)) != len(dates):
        raise ParseFailure(name, "duplicate date columns")

    headers = list(df.columns)
    rows = []
    for raw in df.itertuples(index=False, name=None):
        attrs = tuple(_convert_attribute(attr_names[k], raw[p], name) for k, p in enumerate(attr_pos))
        values = tuple(_to_count(raw[p], name, headers[p]) for p in date_pos)
        rows.append((attrs, values))

    return RawWideTable(
        name=name,
        attribute_columns=tuple(attr_names),
        date_columns=tuple(dates),
        rows=tuple(rows),
    )


def parse_lookup_csv(text: str, name: str = "lookup") -> Tuple[LookupRow, ...]:
    """Parse the UID/ISO/FIPS lookup table. Only population and the
    display key are kept besides the region identifiers."""
    df = _read_frame(text, name)
    try:
        country_col = _col(df, "Country_Region", "Country/Region")
        province_col = _col(df, "Province_State", "Province/State")
        population_col = _col(df, "Population")
    except KeyError as e:
        raise ParseFailure(name, str(e)) from e
    county_col = next((c for c in df.columns if _norm(c) == "admin2"), None)
    key_col = next((c for c in df.columns if _norm(c) == "combinedkey"), None)

    out: List[LookupRow] = []
    for _, row in df.iterrows():
        country = _to_str(row[country_col])
        if country is None:
            raise ParseFailure(name, f"row {len(out) + 1}: empty Country_Region")
        out.append(LookupRow(
            province_state=_to_str(row[province_col]),
            country_region=country,
            county=_to_str(row[county_col]) if county_col else None,
            population=_to_float(row[population_col], name, "Population"),
            combined_key=_to_str(row[key_col]) if key_col else None,
        ))
    return tuple(out)


# -----------------------------
# Reading sources
# -----------------------------

def fetch_text(url: str, timeout: int = 60) -> str:
    """Blocking HTTP GET. The connection is released on exit either way."""
    try:
        with requests.get(url, timeout=timeout) as resp:
            resp.raise_for_status()
            text = resp.text
    except requests.RequestException as e:
        raise FetchFailure(url, str(e)) from e
    return text.lstrip("\ufeff")


def _read_file(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as e:
        raise FetchFailure(str(path), str(e)) from e


def _write_cache(path: Path, text: str) -> None:
    """Write through a temp file in the same directory, then rename over `path`.

    A crash or a failed write never leaves a truncated file under the cache
    name, so the next run cannot mistake it for a complete download.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=path.name + ".", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as fh:
            fh.write(text)
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


def read_source(role: str, config: SourceConfig) -> str:
    """Return the CSV text for one role: local dir, cache, or network."""
    fname = config.file_for(role)
    if config.data_dir:
        path = Path(config.data_dir) / fname
        logger.info("Reading %s from %s", role, path)
        return _read_file(path)

    cache_path = Path(config.cache_dir) / fname if config.cache_dir else None
    if cache_path is not None and cache_path.exists():
        logger.info("Using cached %s: %s", role, cache_path)
        return _read_file(cache_path)

    url = config.url_for(role)
    logger.info("Downloading %s from %s", role, url)
    text = fetch_text(url, timeout=config.timeout)
    if cache_path is not None:
        _write_cache(cache_path, text)
    return text


@dataclass(frozen=True)
class SourceTables:
    """The five inputs of one run."""
    global_cases: RawWideTable
    global_deaths: RawWideTable
    us_cases: RawWideTable
    us_deaths: RawWideTable
    lookup: Tuple[LookupRow, ...]


def load_sources(config: SourceConfig) -> SourceTables:
    """Read and parse all five tables; the first failure aborts the run."""
    wide: Dict[str, RawWideTable] = {}
    for role in SOURCE_ROLES[:4]:
        table = parse_wide_csv(read_source(role, config), role)
        logger.info("%s: %d rows x %d dates", role, len(table.rows), len(table.date_columns))
        wide[role] = table
    lookup = parse_lookup_csv(read_source("lookup", config))
    logger.info("lookup: %d rows", len(lookup))
    return SourceTables(lookup=lookup, **wide)
