from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from salon360.auth import Principal
from salon360.models import SaleTicket
from salon360.permissions import is_allowed
from salon360.services.payroll_period_service import week_days
from salon360.services.queue_service import normalize_sort_text
from salon360.services.ticket_math_service import ZERO, item_revenue, quantize_money
from salon360.services.timing_service import is_time_deviation_high


@dataclass
class ServiceItemDetail:
    ticket_id: str
    service_code: str
    service_name: str
    price: Decimal
    tip_customer: Decimal
    tip_receptionist: Decimal
    tip_cash: Decimal
    tip_card: Decimal
    payment_method: str
    opened_at: datetime
    closed_at: datetime | None
    duration_min: int
    time_deviation_high: bool = False


@dataclass
class TechnicianSummary:
    technician_id: str
    technician_name: str
    services_count: int = 0
    revenue: Decimal = ZERO
    tips_customer: Decimal = ZERO
    tips_receptionist: Decimal = ZERO
    tips_total: Decimal = ZERO
    tips_cash: Decimal = ZERO
    tips_card: Decimal = ZERO
    items: list[ServiceItemDetail] = field(default_factory=list)


@dataclass
class DayTotals:
    tickets: int = 0
    revenue: Decimal = ZERO
    tips: Decimal = ZERO
    tips_cash: Decimal = ZERO
    tips_card: Decimal = ZERO


@dataclass
class DayReport:
    summaries: list[TechnicianSummary]
    totals: DayTotals


@dataclass
class DayTips:
    tips_cash: Decimal = ZERO
    tips_card: Decimal = ZERO
    tips_total: Decimal = ZERO


@dataclass
class WeeklyTipsRow:
    technician_id: str
    technician_name: str
    days: dict[date, DayTips]
    tips_cash: Decimal = ZERO
    tips_card: Decimal = ZERO
    tips_total: Decimal = ZERO


def _money(value) -> Decimal:
    return Decimal(value) if value is not None else ZERO


def _item_tips(item) -> tuple[Decimal, Decimal, Decimal, Decimal]:
    """Return ``(customer, receptionist, cash, card)`` tips carried by an item."""
    customer_cash = _money(item.tip_customer_cash)
    customer_card = _money(item.tip_customer_card)
    receptionist = _money(item.tip_receptionist)
    return customer_cash + customer_card, receptionist, customer_cash + receptionist, customer_card


def summarize_day(
    tickets,
    *,
    viewer_id: uuid.UUID | None = None,
    now: datetime | None = None,
) -> DayReport:
    """Aggregate one day's tickets per technician.

    When ``viewer_id`` is given only that technician's items are counted and the
    store totals collapse to that technician's own figures.
    """
    summaries: dict = {}
    totals = DayTotals(tickets=len(tickets))

    for ticket in tickets:
        totals.revenue += _money(ticket.total)
        for item in ticket.items:
            if item.employee is None:
                continue
            if viewer_id is not None and item.employee_id != viewer_id:
                continue

            summary = summaries.get(item.employee_id)
            if summary is None:
                summary = TechnicianSummary(
                    technician_id=str(item.employee_id),
                    technician_name=item.employee.display_name,
                )
                summaries[item.employee_id] = summary

            revenue = item_revenue(_money(item.qty), _money(item.price_each), _money(item.addon_price))
            tip_customer, tip_receptionist, tip_cash, tip_card = _item_tips(item)
            summary.services_count += 1
            summary.revenue += revenue
            summary.tips_customer += tip_customer
            summary.tips_receptionist += tip_receptionist
            summary.tips_total += tip_customer + tip_receptionist
            summary.tips_cash += tip_cash
            summary.tips_card += tip_card

            totals.tips += tip_customer + tip_receptionist
            totals.tips_cash += tip_cash
            totals.tips_card += tip_card

            service = item.service
            duration = service.duration_min if service else 0
            summary.items.append(
                ServiceItemDetail(
                    ticket_id=str(ticket.id),
                    service_code=service.code if service else '',
                    service_name=service.name if service else (item.custom_service_name or ''),
                    price=revenue,
                    tip_customer=tip_customer,
                    tip_receptionist=tip_receptionist,
                    tip_cash=tip_cash,
                    tip_card=tip_card,
                    payment_method=ticket.payment_method or '',
                    opened_at=ticket.opened_at,
                    closed_at=ticket.closed_at,
                    duration_min=duration,
                    time_deviation_high=is_time_deviation_high(
                        duration, ticket.opened_at, ticket.closed_at, now=now, rounded=True
                    ),
                )
            )

    ordered = list(summaries.values())
    for summary in ordered:
        summary.items.sort(key=lambda detail: detail.opened_at)

    if viewer_id is not None:
        own = ordered[0] if ordered else None
        totals.revenue = own.revenue if own else ZERO
        totals.tips = own.tips_total if own else ZERO
        totals.tips_cash = own.tips_cash if own else ZERO
        totals.tips_card = own.tips_card if own else ZERO

    totals.revenue = quantize_money(totals.revenue)
    return DayReport(summaries=ordered, totals=totals)


def summarize_week(tickets, week_of: date, *, viewer_id: uuid.UUID | None = None) -> list[WeeklyTipsRow]:
    dates = week_days(week_of)
    rows: dict = {}
    for ticket in tickets:
        if ticket.ticket_date not in dates:
            continue
        for item in ticket.items:
            if item.employee is None:
                continue
            if viewer_id is not None and item.employee_id != viewer_id:
                continue

            row = rows.get(item.employee_id)
            if row is None:
                row = WeeklyTipsRow(
                    technician_id=str(item.employee_id),
                    technician_name=item.employee.display_name,
                    days={},
                )
                rows[item.employee_id] = row

            _customer, _receptionist, tip_cash, tip_card = _item_tips(item)
            day = row.days.setdefault(ticket.ticket_date, DayTips())
            day.tips_cash += tip_cash
            day.tips_card += tip_card
            day.tips_total += tip_cash + tip_card
            row.tips_cash += tip_cash
            row.tips_card += tip_card
            row.tips_total += tip_cash + tip_card

    return sorted(rows.values(), key=lambda row: normalize_sort_text(row.technician_name))


def _load_tickets(db: Session, store_id: uuid.UUID, start: date, end: date) -> list[SaleTicket]:
    return list(
        db.execute(
            select(SaleTicket)
            .options(selectinload(SaleTicket.items))
            .where(
                SaleTicket.store_id == store_id,
                SaleTicket.ticket_date >= start,
                SaleTicket.ticket_date <= end,
            )
        )
        .scalars()
        .all()
    )


def _viewer_filter(principal: Principal) -> uuid.UUID | None:
    if is_allowed(principal.permission_roles, 'end_of_day.view_all'):
        return None
    return principal.employee_id


def end_of_day_report(
    db: Session,
    principal: Principal,
    store_id: uuid.UUID,
    report_date: date,
    *,
    now: datetime | None = None,
) -> DayReport:
    tickets = _load_tickets(db, store_id, report_date, report_date)
    viewer_id = _viewer_filter(principal)
    if viewer_id is not None:
        tickets = [t for t in tickets if any(item.employee_id == viewer_id for item in t.items)]
    return summarize_day(tickets, viewer_id=viewer_id, now=now)


def weekly_tips(db: Session, principal: Principal, store_id: uuid.UUID, week_of: date) -> dict:
    dates = week_days(week_of)
    tickets = _load_tickets(db, store_id, dates[0], dates[-1])
    return {
        'dates': dates,
        'rows': summarize_week(tickets, week_of, viewer_id=_viewer_filter(principal)),
    }
