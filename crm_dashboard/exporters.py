"""Export utilities for lead lists and period reports."""
from __future__ import annotations

import dataclasses
from pathlib import Path
from typing import Dict, Iterable, List, MutableMapping, Optional, Sequence, Union

import pandas as pd

from .metrics import DashboardMetrics, PersonStats
from .models import Lead

PathLike = Union[str, Path]

_CSV_SUFFIXES = {".csv", ".tsv"}
_EXCEL_SUFFIXES = {".xlsx", ".xlsm"}

LEAD_COLUMNS = [field.name for field in dataclasses.fields(Lead)]


def leads_to_dataframe(leads: Sequence[Lead], *, columns: Optional[Sequence[str]] = None) -> pd.DataFrame:
    """Convert leads into a :class:`pandas.DataFrame` with one row per lead."""

    records = [lead.to_record() for lead in leads]
    frame = pd.DataFrame(records, columns=LEAD_COLUMNS)
    if columns:
        frame = frame.reindex(columns=list(columns))
    return frame


def export_leads(
    leads: Sequence[Lead],
    path: PathLike,
    *,
    columns: Optional[Sequence[str]] = None,
    sheet_name: str = "Leads",
    exporter_kwargs: Optional[MutableMapping[str, object]] = None,
) -> Path:
    """Write leads to a CSV or Excel file."""

    output_path = Path(path)
    _write_dataframe(leads_to_dataframe(leads, columns=columns), output_path, sheet_name=sheet_name, exporter_kwargs=exporter_kwargs)
    return output_path


def report_tables(metrics: DashboardMetrics) -> Dict[str, pd.DataFrame]:
    """Return one table per report section, keyed by sheet name."""

    summary = pd.DataFrame(
        [
            ("range", metrics.selector.label()),
            ("agendas", metrics.agenda_count),
            ("sales", metrics.sales_count),
            ("offers", metrics.offers_count),
            ("attended", metrics.attendance_count),
            ("cash_collected", metrics.cash_collected),
            ("gross_revenue", metrics.gross_revenue),
            ("pending_revenue", metrics.pending_revenue),
            ("closure_rate_on_offers", round(metrics.closure_rate_on_offers, 2)),
            ("conversion_rate", round(metrics.conversion_rate, 2)),
            ("average_ticket", round(metrics.average_ticket, 2)),
            ("collection_efficiency", round(metrics.collection_efficiency, 2)),
            ("setter_commissions", metrics.total_setter_commissions),
            ("closer_commissions", metrics.total_closer_commissions),
            ("total_commissions", metrics.total_commissions),
            ("net_margin", metrics.net_margin),
        ],
        columns=["metric", "value"],
    )
    funnel = pd.DataFrame(
        [(step.label, step.count, round(step.percentage, 2)) for step in metrics.funnel],
        columns=["step", "count", "percentage"],
    )
    qualification = pd.DataFrame(
        [(share.level.value, share.count, round(share.percentage, 2)) for share in metrics.qualification_mix],
        columns=["level", "count", "percentage"],
    )
    return {
        "Summary": summary,
        "Funnel": funnel,
        "Qualification": qualification,
        "Setters": _people_frame(metrics.setter_breakdown),
        "Closers": _people_frame(metrics.closer_breakdown),
    }


def export_report(metrics: DashboardMetrics, path: PathLike) -> Path:
    """Write the period report; Excel gets a sheet per section, CSV a single long table."""

    output_path = Path(path)
    tables = report_tables(metrics)
    suffix = output_path.suffix.lower()

    if suffix in _EXCEL_SUFFIXES:
        with pd.ExcelWriter(output_path, engine="openpyxl") as writer:
            for sheet_name, frame in tables.items():
                frame.to_excel(writer, sheet_name=sheet_name, index=False)
        return output_path

    if suffix in _CSV_SUFFIXES:
        sections: List[pd.DataFrame] = []
        for section, frame in tables.items():
            flattened = frame.astype(str)
            flattened.columns = [f"col{index}" for index in range(len(frame.columns))]
            header = pd.DataFrame([list(frame.columns)], columns=flattened.columns)
            block = pd.concat([header, flattened], ignore_index=True)
            block.insert(0, "section", section.lower())
            sections.append(block)
        combined = pd.concat(sections, ignore_index=True).fillna("")
        combined.to_csv(output_path, index=False, sep="\t" if suffix == ".tsv" else ",")
        return output_path

    raise ValueError(f"Unsupported export file extension: {suffix}")


def _people_frame(people: Iterable[PersonStats]) -> pd.DataFrame:
    return pd.DataFrame(
        [(person.name, person.lead_count, person.sale_count, person.commissions) for person in people],
        columns=["name", "leads", "sales", "commissions"],
    )


def _write_dataframe(
    dataframe: pd.DataFrame,
    path: Path,
    *,
    sheet_name: str,
    exporter_kwargs: Optional[MutableMapping[str, object]],
) -> None:
    exporter_kwargs = dict(exporter_kwargs or {})
    suffix = path.suffix.lower()

    if suffix in _CSV_SUFFIXES:
        if suffix == ".tsv":
            exporter_kwargs.setdefault("sep", "\t")
        dataframe.to_csv(path, index=False, **exporter_kwargs)
        return

    if suffix in _EXCEL_SUFFIXES:
        engine = exporter_kwargs.pop("engine", None) or "openpyxl"
        dataframe.to_excel(path, index=False, sheet_name=sheet_name, engine=engine, **exporter_kwargs)
        return

    raise ValueError(f"Unsupported export file extension: {suffix}")


__all__ = ["export_leads", "export_report", "leads_to_dataframe", "report_tables"]
