"""Aggregation engine deriving period metrics from the in-memory lead list."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

from .daterange import DateRange, RangeKind, Window
from .models import Confirmation, Lead, Qualification
from .staff import StaffDirectory, StaffMember

QUALIFICATION_ORDER = (
    Qualification.LEVEL1,
    Qualification.LEVEL2,
    Qualification.LEVEL3,
    Qualification.NOT_QUALIFIED,
)


@dataclass(frozen=True)
class FunnelStep:
    label: str
    count: int
    percentage: float


@dataclass(frozen=True)
class QualificationShare:
    level: Qualification
    count: int
    percentage: float


@dataclass
class PersonStats:
    """Performance of a single setter or closer within the period."""

    member: StaffMember
    lead_count: int = 0
    sale_count: int = 0
    commissions: float = 0.0

    @property
    def name(self) -> str:
        return self.member.display_name


@dataclass(frozen=True)
class DashboardMetrics:
    """Every figure the dashboard and reports views display for one period."""

    selector: DateRange
    window: Window
    agenda_count: int
    sales_count: int
    offers_count: int
    attendance_count: int
    cash_collected: float
    gross_revenue: float
    closure_rate_on_offers: float
    conversion_rate: float
    funnel: List[FunnelStep] = field(default_factory=list)
    qualification_mix: List[QualificationShare] = field(default_factory=list)
    setter_breakdown: List[PersonStats] = field(default_factory=list)
    closer_breakdown: List[PersonStats] = field(default_factory=list)
    total_setter_commissions: float = 0.0
    total_closer_commissions: float = 0.0
    total_commissions: float = 0.0
    net_margin: float = 0.0
    average_ticket: float = 0.0
    collection_efficiency: float = 0.0
    pending_revenue: float = 0.0


def agenda_leads(leads: Iterable[Lead], window: Window) -> List[Lead]:
    """Leads whose scheduled call falls inside ``window``."""

    return [lead for lead in leads if window.contains(lead.call_date)]


def sales_leads(leads: Iterable[Lead], window: Window) -> List[Lead]:
    """Converted leads whose first payment falls inside ``window``."""

    return [lead for lead in leads if lead.bought and window.contains(lead.first_payment_date)]


def _percentage(part: float, whole: float) -> float:
    return (part / whole) * 100.0 if whole > 0 else 0.0


def _qualification_mix(agendas: Sequence[Lead]) -> List[QualificationShare]:
    total = len(agendas)
    shares = []
    for level in QUALIFICATION_ORDER:
        count = sum(1 for lead in agendas if lead.qualification is level)
        shares.append(QualificationShare(level=level, count=count, percentage=_percentage(count, total)))
    return shares


def _person_breakdown(
    population: Sequence[Lead],
    sale_ids: set[str],
    *,
    role: str,
    staff: StaffDirectory,
) -> List[PersonStats]:
    grouped: Dict[str, PersonStats] = {}
    ordered_keys: List[str] = []
    for lead in population:
        member = staff.resolve(getattr(lead, role))
        stats = grouped.get(member.key)
        if stats is None:
            stats = grouped[member.key] = PersonStats(member=member)
            ordered_keys.append(member.key)
        stats.lead_count += 1
        if lead.id in sale_ids:
            stats.sale_count += 1
            stats.commissions += getattr(lead, f"{role}_commission") or 0.0
    # sorted() is stable, so ties keep first-seen order
    return sorted((grouped[key] for key in ordered_keys), key=lambda stats: stats.commissions, reverse=True)


def compute_metrics(
    leads: Iterable[Lead],
    selector: Optional[DateRange] = None,
    *,
    now: Optional[datetime] = None,
    staff: Optional[StaffDirectory] = None,
) -> DashboardMetrics:
    """Recompute every period metric from scratch for ``selector``."""

    selector = selector or DateRange.this_month()
    staff = staff or StaffDirectory()
    window = selector.resolve(now)
    all_leads = list(leads)

    agendas = agenda_leads(all_leads, window)
    sales = sales_leads(all_leads, window)
    offers = [lead for lead in agendas if lead.offer_made]
    attended = [lead for lead in agendas if lead.attended is Confirmation.YES]

    agenda_count = len(agendas)
    sales_count = len(sales)
    cash_collected = sum(lead.collected_amount or 0.0 for lead in sales)
    gross_revenue = sum(lead.revenue or 0.0 for lead in sales)
    setter_total = sum(lead.setter_commission or 0.0 for lead in sales)
    closer_total = sum(lead.closer_commission or 0.0 for lead in sales)
    total_commissions = setter_total + closer_total

    funnel = [
        FunnelStep(label, count, _percentage(count, agenda_count))
        for label, count in (
            ("Agendas", agenda_count),
            ("Attended", len(attended)),
            ("Offers", len(offers)),
            ("Sales", sales_count),
        )
    ]

    # Period population: agendas plus sales, each lead once
    population: List[Lead] = []
    seen: set[str] = set()
    for lead in (*agendas, *sales):
        if lead.id not in seen:
            seen.add(lead.id)
            population.append(lead)
    sale_ids = {lead.id for lead in sales}

    return DashboardMetrics(
        selector=selector,
        window=window,
        agenda_count=agenda_count,
        sales_count=sales_count,
        offers_count=len(offers),
        attendance_count=len(attended),
        cash_collected=cash_collected,
        gross_revenue=gross_revenue,
        closure_rate_on_offers=_percentage(sales_count, len(offers)),
        conversion_rate=(sales_count / max(agenda_count, 1)) * 100.0,
        funnel=funnel,
        qualification_mix=_qualification_mix(agendas),
        setter_breakdown=_person_breakdown(population, sale_ids, role="setter", staff=staff),
        closer_breakdown=_person_breakdown(population, sale_ids, role="closer", staff=staff),
        total_setter_commissions=setter_total,
        total_closer_commissions=closer_total,
        total_commissions=total_commissions,
        net_margin=cash_collected - total_commissions,
        average_ticket=gross_revenue / sales_count if sales_count else 0.0,
        collection_efficiency=_percentage(cash_collected, gross_revenue),
        pending_revenue=gross_revenue - cash_collected,
    )


def matches_search(lead: Lead, query: str, *, include_country: bool = False) -> bool:
    """Case-insensitive substring match on name and email (and country when enabled)."""

    term = (query or "").strip().casefold()
    if not term:
        return True
    haystacks = [lead.name, lead.email]
    if include_country:
        haystacks.append(lead.country)
    return any(term in value.casefold() for value in haystacks if value)


def filter_leads(
    leads: Iterable[Lead],
    selector: Optional[DateRange] = None,
    query: str = "",
    *,
    now: Optional[datetime] = None,
    include_country: bool = False,
) -> List[Lead]:
    """Leads shown in list views: the search predicate AND the agenda date filter.

    With the ``all`` selector list views show every lead matching the search,
    including leads without a scheduled call.
    """

    selector = selector or DateRange.this_month()
    window = selector.resolve(now)
    results: List[Lead] = []
    for lead in leads:
        if not matches_search(lead, query, include_country=include_country):
            continue
        if selector.kind is not RangeKind.ALL and not window.contains(lead.call_date):
            continue
        results.append(lead)
    return results


__all__ = [
    "DashboardMetrics",
    "FunnelStep",
    "PersonStats",
    "QUALIFICATION_ORDER",
    "QualificationShare",
    "agenda_leads",
    "compute_metrics",
    "filter_leads",
    "matches_search",
    "sales_leads",
]
