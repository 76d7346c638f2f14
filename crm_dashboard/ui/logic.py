"""Presentation helpers shared by the desktop views; free of any tkinter import."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ..daterange import DateRange
from ..metrics import DashboardMetrics
from ..models import (
    Confirmation,
    FollowUp,
    Lead,
    LeadOrigin,
    PaymentMethod,
    Qualification,
)

DASHBOARD_PREVIEW_ROWS = 15

RANGE_CHOICES: List[Tuple[str, DateRange]] = [
    ("7D", DateRange.last_7_days()),
    ("Month", DateRange.this_month()),
    ("All", DateRange.all_time()),
]

LEAD_TABLE_COLUMNS = ("qualification", "lead", "call_date", "origin", "status", "collected")
LEAD_TABLE_HEADINGS = ("Q", "Lead", "Call date", "Origin", "Status", "Collected")


@dataclass(frozen=True)
class FieldSpec:
    """Describes one editable field of the lead detail dialog."""

    name: str
    label: str
    kind: str = "text"
    choices: Tuple[str, ...] = ()


def _choices(enum_cls) -> Tuple[str, ...]:
    return tuple(member.value for member in enum_cls)


DETAIL_FIELDS: Tuple[FieldSpec, ...] = (
    FieldSpec("qualification", "Qualification", "choice", _choices(Qualification)),
    FieldSpec("origin", "Origin", "choice", _choices(LeadOrigin)),
    FieldSpec("call_date", "Call date", "date"),
    FieldSpec("whatsapp_confirmed", "WhatsApp confirmed", "choice", _choices(Confirmation)),
    FieldSpec("attended", "Attended", "choice", _choices(Confirmation)),
    FieldSpec("no_attend_reason", "No-show reason"),
    FieldSpec("follow_up", "Follow-up", "choice", _choices(FollowUp)),
    FieldSpec("offer_made", "Offer made", "bool"),
    FieldSpec("second_call", "Second call", "bool"),
    FieldSpec("phone", "Phone"),
    FieldSpec("website", "Website"),
    FieldSpec("monthly_revenue", "Monthly revenue"),
    FieldSpec("ad_spend", "Ad spend"),
    FieldSpec("decision_maker", "Decision maker"),
    FieldSpec("bought", "Sale closed", "bool"),
    FieldSpec("payment_method", "Payment method", "choice", _choices(PaymentMethod)),
    FieldSpec("collected_amount", "Collected", "money"),
    FieldSpec("revenue", "Revenue", "money"),
    FieldSpec("first_payment_date", "First payment", "date"),
    FieldSpec("setter", "Setter"),
    FieldSpec("setter_commission", "Setter commission", "money"),
    FieldSpec("closer", "Closer"),
    FieldSpec("closer_commission", "Closer commission", "money"),
    FieldSpec("triager", "Triager"),
    FieldSpec("notes", "Notes"),
)


def format_money(amount: Optional[float]) -> str:
    return f"${(amount or 0.0):,.0f}"


def format_percent(value: float) -> str:
    return f"{value:.1f}%"


def format_date(moment: Optional[datetime]) -> str:
    if moment is None:
        return "Pending"
    return moment.strftime("%d/%m/%y")


def lead_row(lead: Lead) -> Tuple[str, ...]:
    """Values displayed for a lead in the agenda and leads tables."""

    contact = " · ".join(filter(None, [lead.name, lead.email]))
    return (
        lead.qualification.value if lead.qualification else "?",
        contact,
        format_date(lead.call_date),
        lead.origin.value if lead.origin else "—",
        lead.status.value,
        format_money(lead.collected_amount),
    )


def summary_cards(metrics: DashboardMetrics) -> List[Tuple[str, str, str]]:
    """(title, value, caption) triples for the dashboard header cards."""

    return [
        ("Agendas", str(metrics.agenda_count), "Calls"),
        ("Total closes", str(metrics.sales_count), "Payments"),
        ("Cash collected", format_money(metrics.cash_collected), "Cash"),
        ("Close/offer rate", format_percent(metrics.closure_rate_on_offers), "Efficiency"),
    ]


def report_lines(metrics: DashboardMetrics) -> List[str]:
    """Plain-text rendering of the reports view, also printed by the CLI."""

    lines = [
        f"Period: {metrics.selector.label()}",
        "",
        f"Cash collected:        {format_money(metrics.cash_collected)} "
        f"({format_percent(metrics.collection_efficiency)} collection efficiency)",
        f"Gross revenue:         {format_money(metrics.gross_revenue)}",
        f"Pending collection:    {format_money(metrics.pending_revenue)}",
        f"Average ticket:        {format_money(metrics.average_ticket)}",
        f"Commissions:           {format_money(metrics.total_commissions)} "
        f"(setters {format_money(metrics.total_setter_commissions)}, "
        f"closers {format_money(metrics.total_closer_commissions)})",
        f"Net margin:            {format_money(metrics.net_margin)}",
        f"Close rate on offers:  {format_percent(metrics.closure_rate_on_offers)}",
        f"Conversion rate:       {format_percent(metrics.conversion_rate)}",
        "",
        "Funnel",
    ]
    lines.extend(f"  {step.label:<10} {step.count:>5}  {format_percent(step.percentage):>7}" for step in metrics.funnel)
    lines.append("")
    lines.append("Qualification mix")
    lines.extend(
        f"  {share.level.value:<10} {share.count:>5}  {format_percent(share.percentage):>7}"
        for share in metrics.qualification_mix
    )
    for title, people in (("Setters", metrics.setter_breakdown), ("Closers", metrics.closer_breakdown)):
        lines.append("")
        lines.append(title)
        if not people:
            lines.append("  (no activity)")
        for person in people:
            lines.append(
                f"  {person.name:<20} leads {person.lead_count:>3}  sales {person.sale_count:>3}  "
                f"{format_money(person.commissions)}"
            )
    return lines


def _parse_date(text: str, label: str) -> Optional[str]:
    text = text.strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text).isoformat()
    except ValueError as exc:
        raise ValueError(f"{label} must use the YYYY-MM-DD format") from exc


def _parse_money(text: str, label: str) -> float:
    cleaned = text.strip().replace("$", "").replace(",", "")
    if not cleaned:
        return 0.0
    try:
        return float(cleaned)
    except ValueError as exc:
        raise ValueError(f"{label} must be a number") from exc


def parse_intake_form(values: Mapping[str, str], *, today: Optional[date] = None) -> Dict[str, Any]:
    """Validate intake dialog values and return a draft for ``LeadDataService.create``."""

    name = (values.get("name") or "").strip()
    if not name:
        raise ValueError("Full name is required")

    call_date = _parse_date(values.get("call_date") or "", "Call date") or (today or date.today()).isoformat()
    draft: Dict[str, Any] = {
        "name": name,
        "call_date": call_date,
        "qualification": values.get("qualification") or Qualification.LEVEL1.value,
        "origin": values.get("origin") or LeadOrigin.TIKTOK.value,
        "value": _parse_money(values.get("value") or "", "Estimated value"),
    }
    for key in ("email", "phone", "country", "website", "decision_maker", "ad_spend", "monthly_revenue", "main_problem", "notes"):
        text = (values.get(key) or "").strip()
        if text:
            draft[key] = text
    return draft


def parse_field_value(spec: FieldSpec, raw: Any) -> Any:
    """Convert a detail dialog widget value into the value handed to ``update_field``."""

    if spec.kind == "bool":
        return bool(raw)
    text = "" if raw is None else str(raw)
    if spec.kind == "money":
        return _parse_money(text, spec.label)
    if spec.kind == "date":
        return _parse_date(text, spec.label)
    if spec.kind == "choice" and text and text not in spec.choices:
        raise ValueError(f"{spec.label} must be one of: {', '.join(spec.choices)}")
    return text


def field_display_value(lead: Lead, spec: FieldSpec) -> Any:
    value = getattr(lead, spec.name)
    if spec.kind == "bool":
        return bool(value)
    if spec.kind == "date":
        return value.date().isoformat() if value else ""
    if spec.kind == "money":
        return f"{value or 0:g}"
    if value is None:
        return ""
    return value.value if hasattr(value, "value") else str(value)


def filter_preview(leads: Sequence[Lead], limit: int = DASHBOARD_PREVIEW_ROWS) -> List[Lead]:
    return list(leads[:limit])


__all__ = [
    "DASHBOARD_PREVIEW_ROWS",
    "DETAIL_FIELDS",
    "FieldSpec",
    "LEAD_TABLE_COLUMNS",
    "LEAD_TABLE_HEADINGS",
    "RANGE_CHOICES",
    "field_display_value",
    "filter_preview",
    "format_date",
    "format_money",
    "format_percent",
    "lead_row",
    "parse_field_value",
    "parse_intake_form",
    "report_lines",
    "summary_cards",
]
