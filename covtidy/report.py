from __future__ import annotations

"""
covtidy report generator
------------------------
This module renders charts and a DOCX report from an `AnalysisResult`.

Design goals:
- Keep the pipeline usable even if report dependencies are missing (lazy imports).
- Plots skip missing values instead of drawing them as zero.
- Put the drop counts next to the results, because dropped rows bias them.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Sequence, Tuple
import math
import os
import tempfile

from .aggregate import rank_states
from .models import RegionAggregate
from .pipeline import AnalysisResult


# -----------------------------
# Configuration / citation types
# -----------------------------

@dataclass
class DatasetCitation:
    """Minimal dataset citation metadata for the DOCX report."""
    database_name: str = "COVID-19 Data Repository"
    institutional_author: str = "Center for Systems Science and Engineering (CSSE), Johns Hopkins University"
    website: str = "https://github.com/CSSEGISandData/COVID-19"
    access_date_iso: Optional[str] = None
    sources: List[str] = field(default_factory=list)


@dataclass
class ReportConfig:
    """High-level knobs to control how the report is written."""
    title: str = "COVID-19 Tidy Data Report"
    subtitle: str = "JHU CSSE time series: state vs national"
    citation: DatasetCitation = field(default_factory=DatasetCitation)

    # How many states to show in ranking tables
    top_n: int = 10


# -----------------------------
# Helpers for clean numeric plots
# -----------------------------

def _series(rows: Sequence[RegionAggregate], attr: str, positive_only: bool = False) -> Tuple[List[date], List[float]]:
    """(dates, values) with None / NaN / inf (and non-positive on log axes) skipped."""
    xs: List[date] = []
    ys: List[float] = []
    for r in rows:
        v = getattr(r, attr)
        if v is None:
            continue
        fv = float(v)
        if not math.isfinite(fv) or (positive_only and fv <= 0):
            continue
        xs.append(r.date)
        ys.append(fv)
    return xs, ys


def _fmt(v: Optional[float], digits: int = 4) -> str:
    if v is None or (isinstance(v, float) and not math.isfinite(v)):
        return ""
    return f"{v:.{digits}g}"


def render_charts(result: AnalysisResult, out_dir: str) -> List[Tuple[str, str, str]]:
    """Draw every chart into `out_dir`.

    Returns a list of (title, file_path, why_this_chart).
    """
    try:
        import matplotlib.pyplot as plt
        import numpy as np
    except ImportError as e:
        raise ImportError(
            "Missing dependency: matplotlib (and numpy).\n"
            "Install with: python -m pip install matplotlib numpy"
        ) from e

    os.makedirs(out_dir, exist_ok=True)
    charts: List[Tuple[str, str, str]] = []
    state = result.state
    state_rows = [r for r in result.state_rows if r.province_state == state]

    def _save(filename: str) -> str:
        path = os.path.join(out_dir, filename)
        plt.tight_layout()
        plt.savefig(path, dpi=150)
        plt.close()
        return path

    def _cumulative(title: str, rows: Sequence[RegionAggregate], why: str, filename: str) -> None:
        plt.figure()
        for attr, label in (("cases", "cases"), ("deaths", "deaths")):
            xs, ys = _series(rows, attr, positive_only=True)
            if xs:
                plt.plot(xs, ys, label=label)
        plt.yscale("log")
        plt.xticks(rotation=45, ha="right")
        plt.title(title)
        plt.ylabel("Cumulative count (log scale)")
        plt.legend()
        charts.append((title, _save(filename), why))

    _cumulative(
        f"COVID-19 in {state}",
        state_rows,
        "Log scale shows growth rates; days with zero counts are left out.",
        "state_cumulative.png",
    )
    _cumulative(
        "COVID-19 in the US",
        result.national_rows,
        "National totals are the sum of all state totals on each date.",
        "national_cumulative.png",
    )

    plt.figure()
    for rows, label in ((state_rows, state), (result.national_rows, "US")):
        xs, ys = _series(rows, "new_cases")
        if xs:
            plt.plot(xs, ys, label=label, linewidth=0.8)
    plt.xticks(rotation=45, ha="right")
    plt.title("New cases per day")
    plt.ylabel("New cases")
    plt.legend()
    charts.append((
        "New cases per day",
        _save("new_cases.png"),
        "Day-over-day differences; negative values are upstream corrections.",
    ))

    for i, reg in enumerate(result.regressions):
        xs, ys = [], []
        for rec in result.comparison:
            xv, yv = getattr(rec, reg.x), getattr(rec, reg.y)
            if xv is not None and yv is not None:
                xs.append(float(xv))
                ys.append(float(yv))
        if not xs:
            continue
        line_x = np.linspace(min(xs), max(xs), 50)
        plt.figure()
        plt.scatter(xs, ys, s=6, label="observed")
        plt.plot(line_x, reg.intercept + reg.slope * line_x, color="C1", label="OLS fit")
        plt.title(reg.name)
        plt.xlabel(reg.x)
        plt.ylabel(reg.y)
        plt.legend()
        charts.append((
            f"Regression: {reg.name}",
            _save(f"regression_{i}.png"),
            "Scatter plot of the fitted pairs with the least-squares line.",
        ))
    return charts


# -----------------------------
# Main entry point used by CLI
# -----------------------------

def generate_docx_report(
    result: AnalysisResult,
    out_path: str,
    *,
    config: Optional[ReportConfig] = None,
) -> str:
    """Generate a DOCX report + charts for one analysis run."""
    config = config or ReportConfig()

    # Lazy imports: only required when a report is written.
    try:
        from docx import Document
        from docx.shared import Pt, Inches
        from docx.enum.text import WD_ALIGN_PARAGRAPH
    except ImportError as e:
        raise ImportError(
            "Missing dependency: python-docx.\n"
            "Install it with: python -m pip install python-docx"
        ) from e

    if not result.comparison:
        raise ValueError(f"No comparison rows for {result.state}; nothing to report.")

    charts = render_charts(result, tempfile.mkdtemp(prefix="covtidy_report_"))

    doc = Document()
    style = doc.styles["Normal"]
    style.font.name = "Calibri"
    style.font.size = Pt(11)

    def _center_title(text: str, size: int, bold: bool = False, italic: bool = False) -> None:
        p = doc.add_paragraph()
        r = p.add_run(text)
        r.bold = bold
        r.italic = italic
        r.font.size = Pt(size)
        p.alignment = WD_ALIGN_PARAGRAPH.CENTER

    def _kv(key: str, value: str) -> None:
        p = doc.add_paragraph()
        r = p.add_run(f"{key}: ")
        r.bold = True
        p.add_run(value)

    def _table(header: Sequence[str], rows: Sequence[Sequence[str]]) -> None:
        t = doc.add_table(rows=1, cols=len(header))
        for i, h in enumerate(header):
            t.rows[0].cells[i].text = h
        for row in rows:
            cells = t.add_row().cells
            for i, v in enumerate(row):
                cells[i].text = v

    _center_title(config.title, 22, bold=True)
    _center_title(config.subtitle, 12, italic=True)

    first, last = result.comparison[0].date, result.comparison[-1].date
    doc.add_paragraph("")
    _kv("Compared state", result.state)
    _kv("Date range", f"{first.isoformat()} to {last.isoformat()}")
    _kv("Global rows (after filter)", str(len(result.global_records)))
    _kv("US county rows (after filter)", str(len(result.us_records)))
    _kv("States", str(len(result.state_summaries)))

    doc.add_heading("Data source", level=1)
    cit = config.citation
    access = f" (accessed {cit.access_date_iso})" if cit.access_date_iso else ""
    doc.add_paragraph(f"{cit.institutional_author}{access}. {cit.database_name}. {cit.website}.")
    for src in cit.sources:
        doc.add_paragraph(src, style="List Bullet")

    # Dropped rows are a bias source, so they come before any result.
    doc.add_heading("Dropped rows", level=1)
    doc.add_paragraph(
        "Rows failing the cases-sign rule were dropped. Negative counts are treated as "
        "upstream corrections; they should be investigated, not ignored."
    )
    drop_rows = []
    for rep in (result.global_drops, result.us_drops):
        reasons = ", ".join(f"{k}={v}" for k, v in rep.reasons) or "-"
        drop_rows.append([rep.dataset, rep.rule, str(rep.examined), str(rep.dropped), reasons])
    _table(["Dataset", "Rule", "Examined", "Dropped", "Reasons"], drop_rows)

    doc.add_heading("States by deaths per thousand", level=1)
    for label, lowest in (("Highest", False), ("Lowest", True)):
        ranked = rank_states(result.state_summaries, "deaths_per_thousand", config.top_n, lowest=lowest)
        if not ranked:
            continue
        doc.add_paragraph(f"{label} {len(ranked)} (latest date)")
        _table(
            ["State", "Cases", "Deaths", "Cases / 1000", "Deaths / 1000"],
            [[s.province_state, f"{s.cases:,}", f"{s.deaths:,}",
              _fmt(s.cases_per_thousand), _fmt(s.deaths_per_thousand)] for s in ranked],
        )

    doc.add_heading("Regressions", level=1)
    _table(
        ["Model", "y", "x", "Intercept", "Slope", "Slope SE", "Slope p", "R²", "n"],
        [[r.name, r.y, r.x, _fmt(r.intercept), _fmt(r.slope), _fmt(r.slope_se),
          _fmt(r.slope_pvalue), _fmt(r.r_squared), str(r.nobs)] for r in result.regressions],
    )
    for reg in result.regressions:
        if not reg.summary_text:
            continue
        doc.add_paragraph("")
        doc.add_paragraph(reg.name)
        p = doc.add_paragraph()
        run = p.add_run(reg.summary_text)
        run.font.name = "Courier New"
        run.font.size = Pt(7)

    doc.add_heading("Visualizations", level=1)
    for title, path, why in charts:
        doc.add_paragraph(title)
        doc.add_picture(path, width=Inches(6.0))
        doc.add_paragraph("Note: " + why)

    doc.add_heading("Columns used (data dictionary)", level=1)
    _table(["Field", "Meaning"], [
        ["cases", "Cumulative confirmed cases"],
        ["deaths", "Cumulative deaths"],
        ["population", "Sum of county populations (state) or state populations (nation)"],
        ["deaths_per_million", "deaths x 1,000,000 / population; empty when population is 0 or missing"],
        ["cases_per_million", "cases x 1,000,000 / population; empty when population is 0 or missing"],
        ["new_cases / new_deaths", "Difference to the previous date of the same region; empty on the first date"],
    ])

    doc.add_heading("Reproducibility footer", level=1)
    from . import __version__ as covtidy_version
    from datetime import datetime as _dt
    doc.add_paragraph(f"covtidy version: {covtidy_version}")
    doc.add_paragraph(f"Report generated at: {_dt.now().isoformat(timespec='seconds')}")

    os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)
    doc.save(out_path)
    return out_path
