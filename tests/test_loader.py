from datetime import date

import pytest
import requests

from covtidy import loader
from covtidy.config import SourceConfig
from covtidy.errors import FetchFailure, ParseFailure
from covtidy.loader import load_sources, parse_date_header, parse_lookup_csv, parse_wide_csv

from .sample_data import GLOBAL_CASES, LOOKUP, SOURCE_TEXT, US_DEATHS


def test_global_columns_are_canonical():
    t = parse_wide_csv(GLOBAL_CASES, "global_cases")
    assert t.attribute_columns == ("province_state", "country_region", "lat", "long")
    assert t.date_columns == (date(2020, 1, 22), date(2020, 1, 23), date(2020, 1, 24))
    assert t.rows[0][0][:2] == (None, "Alpha")
    assert t.rows[1][1] == (5, 5, 6)
    assert t.cell_count() == 6


def test_us_deaths_population_is_numeric():
    t = parse_wide_csv(US_DEATHS, "us_deaths")
    pos = t.attribute_columns.index("population")
    assert [attrs[pos] for attrs, _ in t.rows] == [100.0, 300.0, 0.0]
    assert "county" in t.attribute_columns
    assert t.rows[0][0][t.attribute_columns.index("uid")] == 1


def test_date_header_formats():
    assert parse_date_header("3/1/21") == date(2021, 3, 1)
    assert parse_date_header("12/31/2020") == date(2020, 12, 31)
    with pytest.raises(ParseFailure):
        parse_date_header("Notes")


def test_unknown_column_is_a_parse_failure():
    text = "Province/State,Country/Region,Remarks,1/22/20\n,Alpha,x,1\n"
    with pytest.raises(ParseFailure, match="Remarks"):
        parse_wide_csv(text, "t")


def test_bad_count_is_fatal_not_zero():
    text = "Province/State,Country/Region,1/22/20,1/23/20\n,Alpha,1,n/a\n"
    with pytest.raises(ParseFailure):
        parse_wide_csv(text, "t")
    text = "Province/State,Country/Region,1/22/20\n,Alpha,1.5\n"
    with pytest.raises(ParseFailure):
        parse_wide_csv(text, "t")


def test_empty_count_is_missing():
    text = "Province/State,Country/Region,1/22/20,1/23/20\n,Alpha,,7.0\n"
    t = parse_wide_csv(text, "t")
    assert t.rows[0][1] == (None, 7)


def test_lookup_keeps_population_and_key():
    rows = parse_lookup_csv(LOOKUP)
    assert len(rows) == 4
    assert rows[1].province_state == "North"
    assert rows[1].combined_key == "North, Beta"
    assert rows[1].population == 2000.0
    assert rows[3].county == "Autauga"


def test_lookup_without_population_column():
    with pytest.raises(ParseFailure):
        parse_lookup_csv("Province_State,Country_Region\n,Alpha\n")


def test_load_sources_from_directory(data_dir):
    tables = load_sources(SourceConfig(data_dir=str(data_dir)))
    assert len(tables.us_cases.rows) == 3
    assert len(tables.lookup) == 4


def test_missing_local_file_is_fetch_failure(tmp_path):
    with pytest.raises(FetchFailure):
        load_sources(SourceConfig(data_dir=str(tmp_path)))


class _Response:
    def __init__(self, text, status=200):
        self.text = text
        self.status = status
        self.closed = False

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f"{self.status} error")

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.closed = True
        return False


def test_download_and_cache(monkeypatch, tmp_path):
    by_file = {SourceConfig().file_for(r): t for r, t in SOURCE_TEXT.items()}
    calls = []

    def fake_get(url, timeout):
        calls.append(url)
        return _Response(by_file[url.rsplit("/", 1)[-1]])

    monkeypatch.setattr(loader.requests, "get", fake_get)
    cfg = SourceConfig(cache_dir=str(tmp_path / "cache"))
    load_sources(cfg)
    assert len(calls) == 5
    assert (tmp_path / "cache" / cfg.file_for("us_deaths")).exists()

    # second run is served from the cache
    load_sources(cfg)
    assert len(calls) == 5


def test_http_error_releases_response_and_fails(monkeypatch):
    resp = _Response("", status=404)
    monkeypatch.setattr(loader.requests, "get", lambda url, timeout: resp)
    with pytest.raises(FetchFailure, match="404"):
        loader.fetch_text("http://example.invalid/x.csv")
    assert resp.closed


def test_connection_error_is_fetch_failure(monkeypatch):
    def boom(url, timeout):
        raise requests.ConnectionError("no route")

    monkeypatch.setattr(loader.requests, "get", boom)
    with pytest.raises(FetchFailure):
        loader.fetch_text("http://example.invalid/x.csv")


@pytest.mark.parametrize("row", [
    ",Alpha,1,2,3",   # one field too many
    ",Alpha,1",       # one field short
])
def test_ragged_row_is_malformed_csv(row):
    text = "Province/State,Country/Region,1/22/20,1/23/20\n" + row + "\n"
    with pytest.raises(FetchFailure, match="malformed CSV"):
        parse_wide_csv(text, "t")


def test_every_row_one_field_long_is_not_shifted():
    # pandas would otherwise read column 0 as an index and shift every value left
    text = "Province/State,Country/Region,1/22/20\nX,Alpha,1,2\nY,Beta,3,4\n"
    with pytest.raises(FetchFailure, match="line 2 has 4 fields, header has 3"):
        parse_wide_csv(text, "t")


def test_ragged_lookup_row_is_malformed_csv():
    with pytest.raises(FetchFailure, match="malformed CSV"):
        parse_lookup_csv("Province_State,Country_Region,Population\n,Alpha,10,extra\n")


@pytest.mark.parametrize("population", ["nan", "NaN", "inf", "-Infinity"])
def test_non_finite_population_is_parse_failure(population):
    text = US_DEATHS.replace('"A1, Alpha State, US",100,', f'"A1, Alpha State, US",{population},')
    assert text != US_DEATHS
    with pytest.raises(ParseFailure, match="finite"):
        parse_wide_csv(text, "us_deaths")
    with pytest.raises(ParseFailure):
        parse_lookup_csv(f"Province_State,Country_Region,Population\n,Alpha,{population}\n")


def test_undecodable_local_file_is_fetch_failure(data_dir):
    cfg = SourceConfig(data_dir=str(data_dir))
    (data_dir / cfg.file_for("us_cases")).write_bytes(b"Province_State,Country_Region\n\xff\xfe,\x80\n")
    with pytest.raises(FetchFailure):
        load_sources(cfg)


def test_failed_cache_write_leaves_no_partial_file(monkeypatch, tmp_path):
    monkeypatch.setattr(loader.requests, "get", lambda url, timeout: _Response(GLOBAL_CASES))

    def broken_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(loader.os, "replace", broken_replace)
    cache = tmp_path / "cache"
    cfg = SourceConfig(cache_dir=str(cache))
    with pytest.raises(OSError, match="disk full"):
        loader.read_source("global_cases", cfg)
    assert list(cache.iterdir()) == []


def test_cache_write_replaces_complete_file(monkeypatch, tmp_path):
    monkeypatch.setattr(loader.requests, "get", lambda url, timeout: _Response(GLOBAL_CASES))
    cache = tmp_path / "cache"
    cfg = SourceConfig(cache_dir=str(cache))
    assert loader.read_source("global_cases", cfg) == GLOBAL_CASES
    assert [p.name for p in cache.iterdir()] == [cfg.file_for("global_cases")]
    assert (cache / cfg.file_for("global_cases")).read_text(encoding="utf-8") == GLOBAL_CASES
