from __future__ import annotations

from datetime import datetime, timedelta, timezone

from crm_dashboard.daterange import DateRange
from crm_dashboard.metrics import compute_metrics, filter_leads, matches_search
from crm_dashboard.models import Lead, Qualification
from crm_dashboard.staff import StaffDirectory, UNASSIGNED_LABEL

NOW = datetime(2024, 3, 15, 12, tzinfo=timezone.utc)


def _lead(lead_id: str, **fields) -> Lead:
    record = {"id": lead_id, "name": f"Lead {lead_id}"}
    record.update(fields)
    return Lead.from_record(record, tz=timezone.utc)


def _pipeline() -> list[Lead]:
    return [
        _lead(
            "a",
            call_date=NOW - timedelta(days=2),
            qualification="1",
            attended="Si",
            offer_made=True,
            bought=True,
            first_payment_date=NOW,
            collected_amount=500,
            revenue=1000,
            setter="Maria",
            setter_commission=50,
            closer="Pedro",
            closer_commission=100,
        ),
        _lead("b", call_date=NOW - timedelta(days=3), qualification="2", attended="Si", offer_made=True, setter="maria "),
        _lead("c", call_date=NOW - timedelta(days=40), qualification="3", setter="Jose"),
        _lead(
            "d",
            call_date=NOW - timedelta(days=45),
            bought=True,
            first_payment_date=NOW - timedelta(days=1),
            collected_amount=300,
            revenue=300,
            setter="Jose",
            setter_commission=30,
            closer="Pedro",
            closer_commission=60,
        ),
        _lead("e", qualification="NoCalif"),
    ]


def test_sales_scenario_this_month() -> None:
    leads = [
        _lead("a", bought=True, first_payment_date=NOW, collected_amount=500, revenue=1000, call_date=NOW),
        _lead("b", bought=False, call_date=NOW),
    ]

    metrics = compute_metrics(leads, DateRange.this_month(), now=NOW)

    assert metrics.sales_count == 1
    assert metrics.cash_collected == 500
    assert metrics.gross_revenue == 1000
    assert metrics.agenda_count == 2
    assert metrics.pending_revenue == 500
    assert metrics.collection_efficiency == 50.0


def test_period_metrics_over_pipeline() -> None:
    metrics = compute_metrics(_pipeline(), DateRange.this_month(), now=NOW)

    assert metrics.agenda_count == 2
    assert metrics.offers_count == 2
    assert metrics.attendance_count == 2
    # Sales are dated by first payment, independent of the call date
    assert metrics.sales_count == 2
    assert metrics.cash_collected == 800
    assert metrics.gross_revenue == 1300
    assert metrics.closure_rate_on_offers == 100.0
    assert metrics.conversion_rate == 100.0
    assert metrics.total_setter_commissions == 80
    assert metrics.total_closer_commissions == 160
    assert metrics.total_commissions == 240
    assert metrics.net_margin == 560
    assert metrics.average_ticket == 650


def test_funnel_is_relative_to_agendas() -> None:
    metrics = compute_metrics(_pipeline(), DateRange.this_month(), now=NOW)

    assert [step.label for step in metrics.funnel] == ["Agendas", "Attended", "Offers", "Sales"]
    assert metrics.funnel[0].percentage == 100.0
    assert metrics.funnel[1].count == 2


def test_qualification_mix_counts_agendas() -> None:
    metrics = compute_metrics(_pipeline(), DateRange.all_time(), now=NOW)

    mix = {share.level: share.count for share in metrics.qualification_mix}
    assert mix[Qualification.LEVEL1] == 1
    assert mix[Qualification.LEVEL2] == 1
    assert mix[Qualification.LEVEL3] == 1
    # "e" has no call date, so it is not part of the agenda population
    assert mix[Qualification.NOT_QUALIFIED] == 0
    assert sum(share.percentage for share in metrics.qualification_mix) == 75.0


def test_setter_breakdown_groups_name_variants_and_sorts_by_commission() -> None:
    metrics = compute_metrics(_pipeline(), DateRange.this_month(), now=NOW)

    names = [person.name for person in metrics.setter_breakdown]
    assert names == ["Maria", "Jose"]
    maria = metrics.setter_breakdown[0]
    assert maria.lead_count == 2
    assert maria.sale_count == 1
    assert maria.commissions == 50


def test_staff_aliases_apply_to_breakdowns() -> None:
    staff = StaffDirectory({"Pedrito": "Pedro"})
    leads = [
        _lead("x", bought=True, first_payment_date=NOW, closer="Pedrito", closer_commission=10),
        _lead("y", bought=True, first_payment_date=NOW, closer="pedro", closer_commission=20),
        _lead("z", bought=True, first_payment_date=NOW, closer_commission=5),
    ]

    metrics = compute_metrics(leads, DateRange.this_month(), now=NOW, staff=staff)

    assert [(person.name, person.commissions) for person in metrics.closer_breakdown] == [
        ("Pedro", 30),
        (UNASSIGNED_LABEL, 5),
    ]


def test_shared_staff_directory_does_not_carry_names_between_runs() -> None:
    staff = StaffDirectory()
    compute_metrics([_lead("a", call_date=NOW, setter="maria")], DateRange.this_month(), now=NOW, staff=staff)

    metrics = compute_metrics([_lead("b", call_date=NOW, setter="Maria")], DateRange.this_month(), now=NOW, staff=staff)

    assert [person.name for person in metrics.setter_breakdown] == ["Maria"]
    assert staff.members() == []


def test_literal_unassigned_name_shares_the_blank_row() -> None:
    leads = [_lead("a", call_date=NOW, setter="unassigned"), _lead("b", call_date=NOW)]

    metrics = compute_metrics(leads, DateRange.this_month(), now=NOW)

    assert [(person.name, person.lead_count) for person in metrics.setter_breakdown] == [(UNASSIGNED_LABEL, 2)]


def test_commission_breakdown_sums_to_total() -> None:
    for selector in (DateRange.last_7_days(), DateRange.this_month(), DateRange.all_time()):
        metrics = compute_metrics(_pipeline(), selector, now=NOW)
        assert sum(person.commissions for person in metrics.setter_breakdown) == metrics.total_setter_commissions
        assert sum(person.commissions for person in metrics.closer_breakdown) == metrics.total_closer_commissions


def test_all_range_never_has_fewer_agendas() -> None:
    leads = _pipeline()
    everything = compute_metrics(leads, DateRange.all_time(), now=NOW).agenda_count
    for selector in (DateRange.last_7_days(), DateRange.this_month()):
        assert everything >= compute_metrics(leads, selector, now=NOW).agenda_count


def test_closure_rate_is_zero_without_offers() -> None:
    leads = [_lead("a", call_date=NOW, bought=True, first_payment_date=NOW)]

    metrics = compute_metrics(leads, DateRange.this_month(), now=NOW)

    assert metrics.offers_count == 0
    assert metrics.closure_rate_on_offers == 0
    assert metrics.conversion_rate == 100.0


def test_empty_input_yields_zeroes() -> None:
    metrics = compute_metrics([], DateRange.this_month(), now=NOW)

    assert metrics.agenda_count == 0
    assert metrics.conversion_rate == 0
    assert metrics.average_ticket == 0
    assert all(step.percentage == 0 for step in metrics.funnel)
    assert metrics.setter_breakdown == []


def test_recomputing_is_deterministic() -> None:
    leads = _pipeline()

    assert compute_metrics(leads, DateRange.this_month(), now=NOW) == compute_metrics(
        leads, DateRange.this_month(), now=NOW
    )


def test_filter_leads_combines_search_and_call_date() -> None:
    leads = _pipeline()

    assert [lead.id for lead in filter_leads(leads, DateRange.this_month(), "", now=NOW)] == ["a", "b"]
    assert [lead.id for lead in filter_leads(leads, DateRange.this_month(), "lead b", now=NOW)] == ["b"]
    assert [lead.id for lead in filter_leads(leads, DateRange.all_time(), "", now=NOW)] == ["a", "b", "c", "d", "e"]


def test_matches_search_is_case_insensitive() -> None:
    lead = _lead("s", name="Ana Gomez", email="ana@example.com", country="Chile")

    assert matches_search(lead, "GOMEZ")
    assert matches_search(lead, "example.com")
    assert not matches_search(lead, "chile")
    assert matches_search(lead, "chile", include_country=True)
    assert matches_search(lead, "   ")
