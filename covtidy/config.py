"""
Configuration
=============

Plain dataclasses with defaults. The CLI overrides fields from its arguments;
tests build them directly.

Source locations are configuration: the five tables keep their role names
(`global_cases`, `global_deaths`, `us_cases`, `us_deaths`, `lookup`) while the
base URL, file names or a local directory can change.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

JHU_BASE_URL = (
    "https://raw.githubusercontent.com/CSSEGISandData/COVID-19/master/"
    "csse_covid_19_data/csse_covid_19_time_series/"
)
JHU_LOOKUP_URL = (
    "https://raw.githubusercontent.com/CSSEGISandData/COVID-19/master/"
    "csse_covid_19_data/UID_ISO_FIPS_LookUp_Table.csv"
)

# Role name -> file name under `base_url` (or `data_dir`)
TIME_SERIES_FILES: Dict[str, str] = {
    "global_cases": "time_series_covid19_confirmed_global.csv",
    "global_deaths": "time_series_covid19_deaths_global.csv",
    "us_cases": "time_series_covid19_confirmed_US.csv",
    "us_deaths": "time_series_covid19_deaths_US.csv",
}
LOOKUP_FILE = "UID_ISO_FIPS_LookUp_Table.csv"


@dataclass
class SourceConfig:
    """Where the five input tables come from."""
    base_url: str = JHU_BASE_URL
    lookup_url: str = JHU_LOOKUP_URL
    files: Dict[str, str] = field(default_factory=lambda: dict(TIME_SERIES_FILES))
    lookup_file: str = LOOKUP_FILE

    # If set, read every table from this directory instead of the network.
    data_dir: Optional[str] = None
    # If set, downloaded text is saved here and reused on the next run.
    cache_dir: Optional[str] = None
    # HTTP timeout in seconds
    timeout: int = 60

    def url_for(self, role: str) -> str:
        if role == "lookup":
            return self.lookup_url
        return self.base_url.rstrip("/") + "/" + self.files[role]

    def file_for(self, role: str) -> str:
        if role == "lookup":
            return self.lookup_file
        return self.files[role]


@dataclass(frozen=True)
class ModelSpec:
    """One regression `y ~ x` over ComparisonRecord columns."""
    name: str
    x: str
    y: str


DEFAULT_MODELS: Tuple[ModelSpec, ...] = (
    ModelSpec(
        name="state_vs_national_deaths",
        x="national_deaths_per_million",
        y="state_deaths_per_million",
    ),
    ModelSpec(
        name="state_deaths_vs_cases",
        x="state_cases_per_million",
        y="state_deaths_per_million",
    ),
)


@dataclass
class AnalysisConfig:
    """Knobs for one analysis run."""
    sources: SourceConfig = field(default_factory=SourceConfig)
    # State compared against the national series
    state: str = "New York"
    models: Tuple[ModelSpec, ...] = DEFAULT_MODELS
