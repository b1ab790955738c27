import os

# charts are rendered off-screen
os.environ.setdefault("MPLBACKEND", "Agg")

import pytest

from covtidy.loader import SourceTables, parse_lookup_csv, parse_wide_csv

from .sample_data import GLOBAL_CASES, GLOBAL_DEATHS, LOOKUP, SOURCE_TEXT, US_CASES, US_DEATHS


@pytest.fixture
def tables() -> SourceTables:
    return SourceTables(
        global_cases=parse_wide_csv(GLOBAL_CASES, "global_cases"),
        global_deaths=parse_wide_csv(GLOBAL_DEATHS, "global_deaths"),
        us_cases=parse_wide_csv(US_CASES, "us_cases"),
        us_deaths=parse_wide_csv(US_DEATHS, "us_deaths"),
        lookup=parse_lookup_csv(LOOKUP),
    )


@pytest.fixture
def data_dir(tmp_path):
    """The five fixture tables written under their JHU file names."""
    from covtidy.config import SourceConfig
    cfg = SourceConfig()
    for role, text in SOURCE_TEXT.items():
        (tmp_path / cfg.file_for(role)).write_text(text, encoding="utf-8")
    return tmp_path
