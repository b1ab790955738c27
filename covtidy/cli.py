"""
covtidy Command Line Interface (CLI)
====================================

Run the whole analysis once:

    python -m covtidy.cli --state "New York" --report out/report.docx

or read the five CSV files from a directory instead of downloading them:

    python -m covtidy.cli --data-dir data/ --interactive

The run prints the drop accounting and the regression coefficients. With
`--interactive` it then opens a small REPL over the finished result.
"""

from __future__ import annotations
import argparse
import logging
import os
import shlex
import sys

from .config import AnalysisConfig, SourceConfig
from .errors import CovTidyError
from .export import export_records
from .pipeline import AnalysisResult, run
from .aggregate import rank_states

HELP = """
Commands:
  help
  stats
  drops
  states [prefix]

  show state "<State>" [n]
  show national [n]
  rank <field> [n] [low]        (fields: cases, deaths, cases_per_thousand, deaths_per_thousand)

  model
  compare "<State>"             (refit the regressions against another state)

  export <table> <csv|json|xlsx> "<path>"
      tables: global, us, states, national, summary, comparison
  report "<path.docx>"
  quit
"""

TABLES = ("global", "us", "states", "national", "summary", "comparison")


def _configure_logging() -> None:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO"),
        format="[%(asctime)s] %(levelname)s:%(name)s: %(message)s",
    )


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="covtidy", description="Tidy JHU COVID-19 time series, roll up and regress.")
    ap.add_argument("--data-dir", help="Read the five CSV files from this directory instead of downloading")
    ap.add_argument("--base-url", help="Base URL of the time-series CSV files")
    ap.add_argument("--lookup-url", help="URL of the UID/ISO/FIPS lookup table")
    ap.add_argument("--cache-dir", help="Save downloads here and reuse them on the next run")
    ap.add_argument("--timeout", type=int, default=60, help="HTTP timeout seconds")
    ap.add_argument("--state", default="New York", help="State compared with the national series")
    ap.add_argument("--report", help="Write a DOCX report to this path")
    ap.add_argument("--export-dir", help="Write every tidy table as CSV into this directory")
    ap.add_argument("--interactive", action="store_true", help="Open a REPL after the run")
    return ap


def config_from_args(args: argparse.Namespace) -> AnalysisConfig:
    sources = SourceConfig(data_dir=args.data_dir, cache_dir=args.cache_dir, timeout=args.timeout)
    if args.base_url:
        sources.base_url = args.base_url
    if args.lookup_url:
        sources.lookup_url = args.lookup_url
    return AnalysisConfig(sources=sources, state=args.state)


def main(argv=None) -> int:
    """Entry point.

    1) Run the pipeline
    2) Print the summary
    3) Optionally write report / exports, then start the REPL
    """
    args = build_parser().parse_args(argv)
    _configure_logging()
    config = config_from_args(args)

    try:
        result = run(config)
    except (CovTidyError, KeyError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print_summary(result)

    try:
        if args.export_dir:
            for name in TABLES:
                path = os.path.join(args.export_dir, f"{name}.csv")
                export_records(table_records(result, name), path, "csv")
            print(f"Exported {len(TABLES)} tables to {args.export_dir}")

        if args.report:
            _write_report(result, args.report, config)
    except (CovTidyError, ValueError, ImportError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.interactive:
        repl(result, config)
    return 0


def print_summary(result: AnalysisResult) -> None:
    for rep in (result.global_drops, result.us_drops):
        reasons = ", ".join(f"{k}={v}" for k, v in rep.reasons) or "none"
        print(f"{rep.dataset}: kept {rep.kept}/{rep.examined} rows ({rep.rule}); dropped {rep.dropped} [{reasons}]")
    print(f"{len(result.state_summaries)} states, {len(result.national_rows)} national dates")
    print(f"Comparison: {result.state} vs US, {len(result.comparison)} dates")
    for reg in result.regressions:
        print(
            f"  {reg.name}: {reg.y} = {reg.intercept:.4g} + {reg.slope:.4g} * {reg.x} "
            f"(slope SE={reg.slope_se:.3g}, p={reg.slope_pvalue:.3g}, R2={reg.r_squared:.3f}, n={reg.nobs})"
        )


def table_records(result: AnalysisResult, name: str):
    if name == "global":
        return result.global_records
    if name == "us":
        return result.us_records
    if name == "states":
        return result.state_rows
    if name == "national":
        return result.national_rows
    if name == "summary":
        return result.state_summaries
    if name == "comparison":
        return result.comparison
    raise ValueError(f"table must be one of: {', '.join(TABLES)}")


def _write_report(result: AnalysisResult, path: str, config: AnalysisConfig) -> None:
    from .report import DatasetCitation, ReportConfig, generate_docx_report
    from .loader import SOURCE_ROLES
    src = config.sources
    if src.data_dir:
        sources = [os.path.join(src.data_dir, src.file_for(r)) for r in SOURCE_ROLES]
    else:
        sources = [src.url_for(r) for r in SOURCE_ROLES]
    cfg = ReportConfig(citation=DatasetCitation(sources=sources))
    generate_docx_report(result, path, config=cfg)
    print(f"Report written to {path}")


def repl(result: AnalysisResult, config: AnalysisConfig) -> None:
    print("Type 'help' for commands.")
    while True:
        try:
            line = input("covtidy> ").strip()
        except EOFError:
            break
        if not line:
            continue
        if line.lower() in ("quit", "exit"):
            break
        try:
            result = handle(result, config, line)
        except Exception as e:
            print(f"Error: {e}")


def handle(result: AnalysisResult, config: AnalysisConfig, line: str) -> AnalysisResult:
    """Handle one REPL command; returns the (possibly refitted) result."""
    parts = shlex.split(line)
    cmd = parts[0].lower()

    if cmd == "help":
        print(HELP)
        return result

    if cmd == "stats":
        print_summary(result)
        return result

    if cmd == "drops":
        for rep in (result.global_drops, result.us_drops):
            print(f"{rep.dataset} ({rep.rule}): examined={rep.examined} kept={rep.kept} dropped={rep.dropped}")
            for reason, n in rep.reasons:
                print(f"  {reason}: {n}")
        return result

    if cmd == "states":
        prefix = parts[1].lower() if len(parts) >= 2 else ""
        names = [s for s in result.states() if s.lower().startswith(prefix)]
        for s in names:
            print(s)
        print(f"({len(names)} states)")
        return result

    if cmd == "show":
        if len(parts) >= 3 and parts[1].lower() == "state":
            name = parts[2]
            n = int(parts[3]) if len(parts) >= 4 else 10
            rows = [r for r in result.state_rows if r.province_state == name]
            if not rows:
                raise KeyError(f"No rows for state {name!r}")
        elif len(parts) >= 2 and parts[1].lower() == "national":
            n = int(parts[2]) if len(parts) >= 3 else 10
            rows = list(result.national_rows)
        else:
            raise ValueError('usage: show state "<State>" [n] | show national [n]')
        _print_rows(rows[-n:])
        return result

    if cmd == "rank":
        field = parts[1] if len(parts) >= 2 else "deaths_per_thousand"
        n = int(parts[2]) if len(parts) >= 3 else 10
        lowest = len(parts) >= 4 and parts[3].lower() == "low"
        for s in rank_states(result.state_summaries, field, n, lowest=lowest):
            print(f"{s.province_state:<28} {getattr(s, field)}")
        return result

    if cmd == "model":
        for reg in result.regressions:
            print(reg.summary_text or reg)
        return result

    if cmd == "compare":
        from dataclasses import replace
        from .modeler import compare, fit_models
        state = parts[1]
        comparison = compare(result.state_rows, result.national_rows, state)
        regressions = fit_models(comparison, config.models)
        result = replace(result, state=state, comparison=comparison, regressions=regressions)
        print_summary(result)
        return result

    if cmd == "export":
        if len(parts) < 4:
            print('Usage: export <table> <csv|json|xlsx> "<path>"')
            return result
        export_records(table_records(result, parts[1].lower()), parts[3], parts[2])
        print(f"Exported {parts[1]} to {parts[3]}")
        return result

    if cmd == "report":
        if len(parts) < 2:
            print('Usage: report "<path.docx>"')
            return result
        _write_report(result, parts[1], config)
        return result

    print("Unknown command. Type 'help'.")
    return result


def _print_rows(rows):
    for r in rows:
        region = r.province_state or r.country_region
        print(
            f"{r.date.isoformat()} | {region} | cases={r.cases} deaths={r.deaths} "
            f"new_cases={r.new_cases} new_deaths={r.new_deaths} deaths_per_million={r.deaths_per_million}"
        )


if __name__ == "__main__":
    sys.exit(main())
