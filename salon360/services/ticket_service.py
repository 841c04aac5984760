from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from salon360.auth import Principal
from salon360.models import (
    ApprovalStatus,
    CustomerType,
    Employee,
    PaymentMethod,
    SaleTicket,
    Service,
    StoreService,
    TicketAction,
    TicketItem,
)
from salon360.permissions import SPA_EXPERT, can_edit_ticket, can_edit_ticket_notes, is_allowed
from salon360.services.activity_service import list_ticket_activity, log_ticket_activity
from salon360.services.ticket_math_service import (
    ZERO,
    LineInput,
    TicketMathInput,
    TicketTotals,
    calculate_ticket_totals,
    quantize_money,
)
from salon360.services.timing_service import (
    approval_deadline_label,
    elapsed_minutes,
    format_running_duration,
    is_time_deviation_high,
)

logger = logging.getLogger(__name__)

SPA_EXPERT_CATEGORIES = frozenset({'Soins de Pédicure', 'Soins de Manucure', 'Others'})
APPROVAL_FILTERS = ('all', 'open', 'closed', 'pending_approval', 'approved', 'auto_approved', 'rejected')
CLOSABLE_PAYMENT_METHODS = {PaymentMethod.CASH.value, PaymentMethod.CARD.value}
TICKET_PREFIX = 'ST'


@dataclass(frozen=True)
class TicketItemDraft:
    service_id: uuid.UUID | None = None
    custom_service_name: str | None = None
    employee_id: uuid.UUID | None = None
    qty: Decimal = Decimal('1')
    price_each: Decimal | None = None
    item_id: uuid.UUID | None = None

    @property
    def is_custom(self) -> bool:
        return self.service_id is None


@dataclass(frozen=True)
class TicketDraft:
    customer_type: str | None
    technician_id: uuid.UUID | None
    items: list[TicketItemDraft] = field(default_factory=list)
    customer_name: str = ''
    customer_phone: str = ''
    payment_method: str | None = None
    tip_customer: Decimal = ZERO
    tip_receptionist: Decimal = ZERO
    addon_details: str = ''
    addon_price: Decimal = ZERO
    discount_percentage: Decimal = ZERO
    discount_amount: Decimal = ZERO
    notes: str = ''


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _is_approved(ticket: SaleTicket) -> bool:
    return ticket.approval_status in {ApprovalStatus.APPROVED.value, ApprovalStatus.AUTO_APPROVED.value}


def can_employee_perform_service(employee, service) -> bool:
    if employee is None or service is None:
        return True
    if SPA_EXPERT in (employee.role or []):
        return service.category in SPA_EXPERT_CATEGORIES
    return True


def validate_ticket_draft(draft: TicketDraft, *, employees_by_id: dict, services_by_id: dict) -> None:
    if draft.customer_type not in {choice.value for choice in CustomerType}:
        raise ValueError('Customer Type is required')
    if draft.technician_id is None:
        raise ValueError('Technician is required')
    if not draft.items:
        raise ValueError('Service is required')
    if draft.payment_method and draft.payment_method not in {choice.value for choice in PaymentMethod}:
        raise ValueError('Invalid payment method')

    for item in draft.items:
        if item.qty <= 0:
            raise ValueError('Quantity must be greater than 0')
        if item.is_custom:
            if not (item.custom_service_name or '').strip():
                raise ValueError('Custom service name is required')
            if item.price_each is None or item.price_each <= 0:
                raise ValueError('Custom service price must be greater than 0')
            continue

        employee = employees_by_id.get(item.employee_id or draft.technician_id)
        service = services_by_id.get(item.service_id)
        if not can_employee_perform_service(employee, service):
            employee_name = employee.display_name if employee else 'This employee'
            service_name = service.name if service else 'this service'
            raise ValueError(
                f'{employee_name} cannot perform {service_name}. '
                'Spa Experts cannot perform Extensions des Ongles services.'
            )


def ticket_math_input(draft: TicketDraft, prices: list[Decimal]) -> TicketMathInput:
    return TicketMathInput(
        lines=[LineInput(qty=item.qty, price_each=price) for item, price in zip(draft.items, prices)],
        payment_method=draft.payment_method,
        tip_customer=draft.tip_customer,
        tip_receptionist=draft.tip_receptionist,
        addon_price=draft.addon_price,
        discount_percentage=draft.discount_percentage,
        discount_amount=draft.discount_amount,
    )


def format_ticket_number(ticket_date: date, last_ticket_no: str | None) -> str:
    next_num = 1
    if last_ticket_no:
        try:
            next_num = int(last_ticket_no.split('-')[2]) + 1
        except (IndexError, ValueError):
            next_num = 1
    return f'{TICKET_PREFIX}-{ticket_date:%Y%m%d}-{next_num:04d}'


def next_ticket_number(db: Session, ticket_date: date) -> str:
    last_ticket_no = db.execute(
        select(SaleTicket.ticket_no)
        .where(SaleTicket.ticket_no.like(f'{TICKET_PREFIX}-{ticket_date:%Y%m%d}-%'))
        .order_by(SaleTicket.ticket_no.desc())
        .limit(1)
    ).scalar_one_or_none()
    return format_ticket_number(ticket_date, last_ticket_no)


def matches_approval_filter(ticket, approval_filter: str) -> bool:
    if approval_filter == 'all':
        return True
    if approval_filter == 'open':
        return ticket.closed_at is None
    if approval_filter == 'closed':
        return ticket.closed_at is not None and not ticket.approval_status
    return ticket.approval_status == approval_filter


def _first_item(ticket) -> TicketItem | None:
    return ticket.items[0] if ticket.items else None


def ticket_row(ticket, *, now: datetime | None = None) -> dict:
    first = _first_item(ticket)
    service = first.service if first else None
    employee = first.employee if first else None
    duration = service.duration_min if service else 0
    return {
        'id': str(ticket.id),
        'ticket_no': ticket.ticket_no,
        'ticket_date': ticket.ticket_date.isoformat(),
        'customer_type': ticket.customer_type or '-',
        'customer_name': ticket.customer_name,
        'customer_phone': ticket.customer_phone,
        'payment_method': ticket.payment_method,
        'total': quantize_money(ticket.total or ZERO),
        'tip_customer': quantize_money((first.tip_customer_cash + first.tip_customer_card) if first else ZERO),
        'tip_receptionist': quantize_money(first.tip_receptionist if first else ZERO),
        'service_code': service.code if service else '-',
        'technician_name': employee.display_name if employee else '-',
        'opened_at': ticket.opened_at.isoformat(),
        'closed_at': ticket.closed_at.isoformat() if ticket.closed_at else None,
        'completed_at': ticket.completed_at.isoformat() if ticket.completed_at else None,
        'approval_status': ticket.approval_status,
        'approval_deadline_label': approval_deadline_label(ticket.approval_status, ticket.approval_deadline, now=now),
        'elapsed_minutes': elapsed_minutes(ticket.opened_at, ticket.closed_at, ticket.completed_at, now=now),
        'running_duration': format_running_duration(ticket.opened_at, now=now),
        'time_deviation_high': is_time_deviation_high(
            duration, ticket.opened_at, ticket.closed_at, ticket.completed_at, now=now
        ),
    }


def ticket_technicians(tickets) -> list[dict]:
    names: dict[uuid.UUID, str] = {}
    for ticket in tickets:
        for item in ticket.items:
            if item.employee_id and item.employee is not None:
                names[item.employee_id] = item.employee.display_name
    return [
        {'id': str(employee_id), 'name': name}
        for employee_id, name in sorted(names.items(), key=lambda pair: pair[1].lower())
    ]


def list_tickets(
    db: Session,
    principal: Principal,
    *,
    store_id: uuid.UUID,
    ticket_date: date,
    approval_filter: str = 'all',
    technician_id: uuid.UUID | None = None,
    now: datetime | None = None,
) -> dict:
    if approval_filter not in APPROVAL_FILTERS:
        raise ValueError('Invalid approval filter')

    tickets = list(
        db.execute(
            select(SaleTicket)
            .options(selectinload(SaleTicket.items))
            .where(SaleTicket.store_id == store_id, SaleTicket.ticket_date == ticket_date)
            .order_by(SaleTicket.opened_at.desc())
        )
        .scalars()
        .all()
    )

    if principal.is_technician_view:
        tickets = [t for t in tickets if any(item.employee_id == principal.employee_id for item in t.items)]

    technicians = ticket_technicians(tickets)
    filtered = [t for t in tickets if matches_approval_filter(t, approval_filter)]
    if technician_id is not None:
        filtered = [t for t in filtered if any(item.employee_id == technician_id for item in t.items)]

    return {
        'tickets': [ticket_row(ticket, now=now) for ticket in filtered],
        'technicians': technicians,
    }


def _get_ticket(db: Session, ticket_id: uuid.UUID, store_id: uuid.UUID | None = None) -> SaleTicket:
    stmt = select(SaleTicket).options(selectinload(SaleTicket.items)).where(SaleTicket.id == ticket_id)
    if store_id is not None:
        stmt = stmt.where(SaleTicket.store_id == store_id)
    ticket = db.execute(stmt).scalar_one_or_none()
    if not ticket:
        raise LookupError('Ticket not found')
    return ticket


def get_ticket_detail(
    db: Session,
    principal: Principal,
    ticket_id: uuid.UUID,
    *,
    store_id: uuid.UUID | None = None,
    now: datetime | None = None,
) -> dict:
    ticket = _get_ticket(db, ticket_id, store_id)
    if principal.is_technician_view and not any(item.employee_id == principal.employee_id for item in ticket.items):
        raise PermissionError('You do not have permission to view this ticket')

    first = _first_item(ticket)
    roles = principal.permission_roles
    is_closed = ticket.closed_at is not None
    return {
        **ticket_row(ticket, now=now),
        'notes': ticket.notes,
        'technician_id': str(first.employee_id) if first else None,
        'addon_details': first.addon_details if first else '',
        'addon_price': quantize_money(first.addon_price if first else ZERO),
        'discount_percentage': first.discount_percentage if first else ZERO,
        'discount_amount': quantize_money(first.discount_amount if first else ZERO),
        'rejection_reason': ticket.rejection_reason,
        'items': [
            {
                'id': str(item.id),
                'service_id': str(item.service_id) if item.service_id else None,
                'service_name': item.service.name if item.service else item.custom_service_name,
                'is_custom': item.service_id is None,
                'employee_id': str(item.employee_id),
                'employee_name': item.employee.display_name if item.employee else None,
                'qty': item.qty,
                'price_each': quantize_money(item.price_each),
            }
            for item in ticket.items
        ],
        'permissions': {
            'can_edit': can_edit_ticket(roles, is_closed=is_closed, is_approved=_is_approved(ticket)),
            'can_edit_notes': can_edit_ticket_notes(roles, is_closed=is_closed),
            'can_close': is_allowed(roles, 'tickets.close'),
            'can_reopen': is_allowed(roles, 'tickets.reopen'),
            'can_delete': is_allowed(roles, 'tickets.delete'),
        },
        'activity': list_ticket_activity(db, ticket.id),
    }


def _load_lookups(db: Session, draft: TicketDraft) -> tuple[dict, dict]:
    employee_ids = {item.employee_id or draft.technician_id for item in draft.items} | {draft.technician_id}
    employee_ids.discard(None)
    service_ids = {item.service_id for item in draft.items if item.service_id is not None}

    employees_by_id = {}
    if employee_ids:
        employees_by_id = {
            employee.id: employee
            for employee in db.execute(select(Employee).where(Employee.id.in_(employee_ids))).scalars().all()
        }
    services_by_id = {}
    if service_ids:
        services_by_id = {
            service.id: service
            for service in db.execute(select(Service).where(Service.id.in_(service_ids))).scalars().all()
        }
    return employees_by_id, services_by_id


def _store_prices(db: Session, store_id: uuid.UUID | None, services_by_id: dict) -> dict[uuid.UUID, Decimal]:
    prices = {service_id: service.base_price for service_id, service in services_by_id.items()}
    if store_id is None or not services_by_id:
        return prices
    overrides = db.execute(
        select(StoreService.service_id, StoreService.price_override).where(
            StoreService.store_id == store_id,
            StoreService.service_id.in_(list(services_by_id)),
        )
    ).all()
    for service_id, price_override in overrides:
        if price_override is not None:
            prices[service_id] = price_override
    return prices


def _resolve_prices(draft: TicketDraft, store_prices: dict[uuid.UUID, Decimal]) -> list[Decimal]:
    prices = []
    for item in draft.items:
        if item.price_each is not None:
            prices.append(item.price_each)
        else:
            prices.append(store_prices.get(item.service_id, ZERO))
    return prices


def _prepare(db: Session, draft: TicketDraft, store_id: uuid.UUID | None) -> tuple[list[Decimal], TicketTotals]:
    employees_by_id, services_by_id = _load_lookups(db, draft)
    if draft.technician_id is not None and draft.technician_id not in employees_by_id:
        raise LookupError('Technician not found')
    missing = {item.service_id for item in draft.items if item.service_id is not None} - set(services_by_id)
    if missing:
        raise LookupError('Service not found')

    validate_ticket_draft(draft, employees_by_id=employees_by_id, services_by_id=services_by_id)
    prices = _resolve_prices(draft, _store_prices(db, store_id, services_by_id))
    return prices, calculate_ticket_totals(ticket_math_input(draft, prices))


def _apply_items(ticket: SaleTicket, draft: TicketDraft, prices: list[Decimal], totals: TicketTotals) -> None:
    existing = {item.id: item for item in ticket.items}
    base = _now()
    new_items: list[TicketItem] = []

    for index, (item_draft, price) in enumerate(zip(draft.items, prices)):
        if item_draft.item_id is not None:
            item = existing.get(item_draft.item_id)
            if item is None:
                raise LookupError('Ticket item not found')
        else:
            item = TicketItem()

        is_first = index == 0
        item.service_id = item_draft.service_id
        item.custom_service_name = item_draft.custom_service_name.strip() if item_draft.is_custom else None
        item.employee_id = item_draft.employee_id or draft.technician_id
        item.qty = item_draft.qty
        item.price_each = quantize_money(price)
        # Ticket-level amounts live on the first item only.
        item.tip_customer_cash = totals.tip_customer_cash if is_first else ZERO
        item.tip_customer_card = totals.tip_customer_card if is_first else ZERO
        item.tip_receptionist = quantize_money(draft.tip_receptionist) if is_first else ZERO
        item.addon_details = draft.addon_details if is_first else ''
        item.addon_price = quantize_money(draft.addon_price) if is_first else ZERO
        item.discount_percentage = draft.discount_percentage if is_first else ZERO
        item.discount_amount = quantize_money(draft.discount_amount) if is_first else ZERO
        item.created_at = base + timedelta(microseconds=index)
        item.updated_at = base
        new_items.append(item)

    ticket.items = new_items


def create_ticket(
    db: Session,
    principal: Principal,
    *,
    store_id: uuid.UUID,
    ticket_date: date,
    draft: TicketDraft,
) -> SaleTicket:
    if not is_allowed(principal.permission_roles, 'tickets.create'):
        raise PermissionError('You do not have permission to create tickets')

    prices, totals = _prepare(db, draft, store_id)
    ticket = SaleTicket(
        ticket_no=next_ticket_number(db, ticket_date),
        ticket_date=ticket_date,
        store_id=store_id,
        customer_type=draft.customer_type,
        customer_name=draft.customer_name,
        customer_phone=draft.customer_phone,
        payment_method=draft.payment_method or None,
        total=totals.total,
        notes=draft.notes,
        created_by=principal.employee_id,
        saved_by=principal.employee_id,
    )
    _apply_items(ticket, draft, prices, totals)
    db.add(ticket)
    db.flush()

    log_ticket_activity(
        db,
        ticket_id=ticket.id,
        employee_id=principal.employee_id,
        action=TicketAction.CREATED,
        description=f'{principal.display_name} created ticket',
        changes={'ticket_no': ticket.ticket_no, 'customer_name': draft.customer_name, 'total': str(totals.total)},
    )
    logger.info('Ticket %s created by %s', ticket.ticket_no, principal.employee_id)
    return ticket


def update_ticket(
    db: Session,
    principal: Principal,
    ticket_id: uuid.UUID,
    draft: TicketDraft,
    *,
    store_id: uuid.UUID | None = None,
) -> SaleTicket:
    ticket = _get_ticket(db, ticket_id, store_id)
    if not can_edit_ticket(
        principal.permission_roles, is_closed=ticket.closed_at is not None, is_approved=_is_approved(ticket)
    ):
        raise PermissionError('You do not have permission to edit this ticket')
    if ticket.closed_at is not None:
        raise ValueError('Cannot edit closed ticket')

    prices, totals = _prepare(db, draft, ticket.store_id)
    ticket.customer_type = draft.customer_type
    ticket.customer_name = draft.customer_name
    ticket.customer_phone = draft.customer_phone
    ticket.payment_method = draft.payment_method or None
    ticket.total = totals.total
    ticket.notes = draft.notes
    ticket.saved_by = principal.employee_id
    ticket.updated_at = _now()
    _apply_items(ticket, draft, prices, totals)
    db.flush()

    log_ticket_activity(
        db,
        ticket_id=ticket.id,
        employee_id=principal.employee_id,
        action=TicketAction.UPDATED,
        description=f'{principal.display_name} updated ticket',
        changes={'customer_name': draft.customer_name, 'total': str(totals.total)},
    )
    return ticket


def save_ticket_comment(
    db: Session,
    principal: Principal,
    ticket_id: uuid.UUID,
    notes: str,
    *,
    store_id: uuid.UUID | None = None,
) -> SaleTicket:
    ticket = _get_ticket(db, ticket_id, store_id)
    if not can_edit_ticket_notes(principal.permission_roles, is_closed=ticket.closed_at is not None):
        raise PermissionError('You do not have permission to edit notes on this ticket')

    ticket.notes = notes
    ticket.saved_by = principal.employee_id
    ticket.updated_at = _now()
    log_ticket_activity(
        db,
        ticket_id=ticket.id,
        employee_id=principal.employee_id,
        action=TicketAction.UPDATED,
        description=f'{principal.display_name} added a comment',
    )
    return ticket


def close_ticket(
    db: Session,
    principal: Principal,
    ticket_id: uuid.UUID,
    *,
    draft: TicketDraft | None = None,
    store_id: uuid.UUID | None = None,
) -> SaleTicket:
    if not is_allowed(principal.permission_roles, 'tickets.close'):
        raise PermissionError('You do not have permission to close tickets')

    ticket = _get_ticket(db, ticket_id, store_id)
    if ticket.closed_at is not None:
        raise ValueError('Ticket is already closed')

    item_count = len(draft.items) if draft is not None else len(ticket.items)
    if item_count == 0:
        raise ValueError('Cannot close ticket with no items')
    payment_method = draft.payment_method if draft is not None else ticket.payment_method
    if payment_method not in CLOSABLE_PAYMENT_METHODS:
        raise ValueError('Please select a payment method (Cash or Card) before closing the ticket')

    if draft is not None:
        ticket = update_ticket(db, principal, ticket_id, draft, store_id=store_id)
    if (ticket.total or ZERO) < 0:
        raise ValueError('Cannot close ticket with negative total')

    closer_roles = list(principal.roles)
    ticket.closed_at = _now()
    ticket.closed_by = principal.employee_id
    ticket.closed_by_roles = closer_roles
    log_ticket_activity(
        db,
        ticket_id=ticket.id,
        employee_id=principal.employee_id,
        action=TicketAction.CLOSED,
        description=f'{principal.display_name} closed ticket',
        changes={'total': str(quantize_money(ticket.total or ZERO)), 'closed_by_roles': closer_roles},
    )
    logger.info('Ticket %s closed by %s', ticket.ticket_no, principal.employee_id)
    return ticket


def reopen_ticket(
    db: Session,
    principal: Principal,
    ticket_id: uuid.UUID,
    *,
    store_id: uuid.UUID | None = None,
) -> SaleTicket:
    if not is_allowed(principal.permission_roles, 'tickets.reopen'):
        raise PermissionError('You do not have permission to reopen tickets')

    ticket = _get_ticket(db, ticket_id, store_id)
    ticket.closed_at = None
    ticket.closed_by = None
    ticket.closed_by_roles = None
    ticket.requires_higher_approval = False
    ticket.approval_status = None
    ticket.approval_deadline = None
    ticket.approved_at = None
    ticket.approved_by = None
    ticket.rejection_reason = None
    ticket.requires_admin_review = False
    ticket.completed_at = None
    ticket.completed_by = None
    log_ticket_activity(
        db,
        ticket_id=ticket.id,
        employee_id=principal.employee_id,
        action=TicketAction.REOPENED,
        description=f'{principal.display_name} reopened ticket',
        changes={'reopened': True},
    )
    logger.info('Ticket %s reopened by %s', ticket.ticket_no, principal.employee_id)
    return ticket


def mark_ticket_completed(
    db: Session,
    principal: Principal,
    ticket_id: uuid.UUID,
    *,
    store_id: uuid.UUID | None = None,
    description: str | None = None,
) -> SaleTicket:
    ticket = _get_ticket(db, ticket_id, store_id)
    if ticket.closed_at is not None:
        raise ValueError('Cannot mark closed ticket as completed')
    if ticket.completed_at is not None:
        raise ValueError('Ticket is already marked as completed')

    completed_at = _now()
    ticket.completed_at = completed_at
    ticket.completed_by = principal.employee_id
    log_ticket_activity(
        db,
        ticket_id=ticket.id,
        employee_id=principal.employee_id,
        action=TicketAction.UPDATED,
        description=description or f'{principal.display_name} marked ticket as completed',
        changes={'completed_at': completed_at.isoformat()},
    )
    return ticket


def complete_for_reassignment(
    db: Session,
    principal: Principal,
    current_ticket_id: uuid.UUID,
    *,
    store_id: uuid.UUID | None = None,
) -> SaleTicket:
    """Stop the timer on a busy technician's current ticket so they can take a new one."""
    return mark_ticket_completed(
        db,
        principal,
        current_ticket_id,
        store_id=store_id,
        description=(
            f'{principal.display_name} marked service as completed (technician assigned to new ticket)'
        ),
    )


def delete_ticket(
    db: Session,
    principal: Principal,
    ticket_id: uuid.UUID,
    *,
    store_id: uuid.UUID | None = None,
) -> None:
    if not is_allowed(principal.permission_roles, 'tickets.delete'):
        raise PermissionError('You do not have permission to delete tickets')

    ticket = _get_ticket(db, ticket_id, store_id)
    if ticket.closed_at is not None:
        raise ValueError('Cannot delete closed tickets')

    log_ticket_activity(
        db,
        ticket_id=ticket.id,
        employee_id=principal.employee_id,
        action=TicketAction.DELETED,
        description=f'{principal.display_name} deleted ticket',
        changes={
            'ticket_no': ticket.ticket_no,
            'customer_name': ticket.customer_name,
            'total': str(quantize_money(ticket.total or ZERO)),
            'items_count': len(ticket.items),
        },
    )
    db.flush()
    db.delete(ticket)
    logger.info('Ticket %s deleted by %s', ticket.ticket_no, principal.employee_id)
