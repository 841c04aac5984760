from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from salon360.auth import Principal, get_current_principal, require_permission, store_access
from salon360.db import get_db
from salon360.dependencies import http_error, store_today
from salon360.schemas import BusyTechnicianAssignment, TicketClose, TicketComment, TicketCreate, TicketIn
from salon360.security.csrf import verify_csrf
from salon360.services.queue_service import list_sorted_technicians
from salon360.services.ticket_service import (
    close_ticket,
    complete_for_reassignment,
    create_ticket,
    delete_ticket,
    get_ticket_detail,
    list_tickets,
    mark_ticket_completed,
    reopen_ticket,
    save_ticket_comment,
    update_ticket,
)

router = APIRouter(prefix='/stores/{store_id}', tags=['tickets'])

SERVICE_ERRORS = (ValueError, PermissionError, LookupError)


def _saved(ticket) -> dict:
    return {'id': str(ticket.id), 'ticket_no': ticket.ticket_no}


@router.get('/tickets')
def tickets_page(
    ticket_date: date | None = None,
    approval_filter: str = 'all',
    technician_id: uuid.UUID | None = None,
    store_id: uuid.UUID = Depends(store_access),
    principal: Principal = Depends(require_permission('tickets.view')),
    db: Session = Depends(get_db),
):
    try:
        return list_tickets(
            db,
            principal,
            store_id=store_id,
            ticket_date=ticket_date or store_today(),
            approval_filter=approval_filter,
            technician_id=technician_id,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.post('/tickets')
def ticket_create(
    payload: TicketCreate,
    store_id: uuid.UUID = Depends(store_access),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    try:
        ticket = create_ticket(
            db,
            principal,
            store_id=store_id,
            ticket_date=payload.ticket_date or store_today(),
            draft=payload.to_draft(),
        )
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc
    db.commit()
    return _saved(ticket)


@router.get('/tickets/{ticket_id}')
def ticket_detail(
    ticket_id: uuid.UUID,
    store_id: uuid.UUID = Depends(store_access),
    principal: Principal = Depends(require_permission('tickets.view')),
    db: Session = Depends(get_db),
):
    try:
        return get_ticket_detail(db, principal, ticket_id, store_id=store_id)
    except (PermissionError, LookupError) as exc:
        raise http_error(exc) from exc


@router.put('/tickets/{ticket_id}')
def ticket_update(
    ticket_id: uuid.UUID,
    payload: TicketIn,
    store_id: uuid.UUID = Depends(store_access),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    try:
        ticket = update_ticket(db, principal, ticket_id, payload.to_draft(), store_id=store_id)
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc
    db.commit()
    return _saved(ticket)


@router.post('/tickets/{ticket_id}/comment')
def ticket_comment(
    ticket_id: uuid.UUID,
    payload: TicketComment,
    store_id: uuid.UUID = Depends(store_access),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    try:
        ticket = save_ticket_comment(db, principal, ticket_id, payload.notes, store_id=store_id)
    except (PermissionError, LookupError) as exc:
        raise http_error(exc) from exc
    db.commit()
    return _saved(ticket)


@router.post('/tickets/{ticket_id}/close')
def ticket_close(
    ticket_id: uuid.UUID,
    payload: TicketClose,
    store_id: uuid.UUID = Depends(store_access),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    draft = payload.ticket.to_draft() if payload.ticket is not None else None
    try:
        ticket = close_ticket(db, principal, ticket_id, draft=draft, store_id=store_id)
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc
    db.commit()
    return {**_saved(ticket), 'closed_at': ticket.closed_at}


@router.post('/tickets/{ticket_id}/reopen')
def ticket_reopen(
    ticket_id: uuid.UUID,
    store_id: uuid.UUID = Depends(store_access),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    try:
        ticket = reopen_ticket(db, principal, ticket_id, store_id=store_id)
    except (PermissionError, LookupError) as exc:
        raise http_error(exc) from exc
    db.commit()
    return _saved(ticket)


@router.post('/tickets/{ticket_id}/complete')
def ticket_complete(
    ticket_id: uuid.UUID,
    store_id: uuid.UUID = Depends(store_access),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    try:
        ticket = mark_ticket_completed(db, principal, ticket_id, store_id=store_id)
    except (ValueError, LookupError) as exc:
        raise http_error(exc) from exc
    db.commit()
    return {**_saved(ticket), 'completed_at': ticket.completed_at}


@router.post('/tickets/assign-busy-technician')
def ticket_assign_busy_technician(
    payload: BusyTechnicianAssignment,
    store_id: uuid.UUID = Depends(store_access),
    principal: Principal = Depends(require_permission('tickets.create')),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    try:
        ticket = complete_for_reassignment(db, principal, payload.current_ticket_id, store_id=store_id)
    except (ValueError, LookupError) as exc:
        raise http_error(exc) from exc
    db.commit()
    return _saved(ticket)


@router.delete('/tickets/{ticket_id}')
def ticket_delete(
    ticket_id: uuid.UUID,
    store_id: uuid.UUID = Depends(store_access),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    try:
        delete_ticket(db, principal, ticket_id, store_id=store_id)
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc
    db.commit()
    return {'status': 'deleted'}


@router.get('/queue')
def technician_queue(
    store_id: uuid.UUID = Depends(store_access),
    _: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return {'technicians': list_sorted_technicians(db, store_id)}
