from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from salon360.auth import Principal, get_current_principal, require_permission, store_access
from salon360.db import get_db
from salon360.dependencies import store_today
from salon360.schemas import ApprovalIn, RejectionIn
from salon360.security.csrf import verify_csrf
from salon360.services.approval_service import (
    approval_statistics,
    approve_ticket,
    count_pending_approvals,
    list_pending_approvals,
    reject_ticket,
)

router = APIRouter(prefix='/stores/{store_id}/approvals', tags=['approvals'])


@router.get('')
def pending_approvals(
    store_id: uuid.UUID = Depends(store_access),
    principal: Principal = Depends(require_permission('tickets.view_pending_approvals')),
    db: Session = Depends(get_db),
):
    return {'tickets': list_pending_approvals(db, principal, store_id)}


@router.get('/count')
def pending_approvals_count(
    store_id: uuid.UUID = Depends(store_access),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return {'count': count_pending_approvals(db, principal, store_id)}


@router.get('/statistics')
def approvals_statistics(
    start_date: date | None = None,
    end_date: date | None = None,
    store_id: uuid.UUID = Depends(store_access),
    _: Principal = Depends(require_permission('tickets.view_pending_approvals')),
    db: Session = Depends(get_db),
):
    today = store_today()
    start = start_date or today
    end = end_date or today
    if end < start:
        raise HTTPException(status_code=400, detail='Invalid date filter')
    return {'statistics': approval_statistics(db, store_id, start, end)}


@router.post('/{ticket_id}/approve')
def approval_approve(
    ticket_id: uuid.UUID,
    payload: ApprovalIn,
    store_id: uuid.UUID = Depends(store_access),
    principal: Principal = Depends(require_permission('tickets.approve')),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    try:
        message = approve_ticket(db, principal, ticket_id, payload.ticket_no)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    db.commit()
    return {'message': message}


@router.post('/{ticket_id}/reject')
def approval_reject(
    ticket_id: uuid.UUID,
    payload: RejectionIn,
    store_id: uuid.UUID = Depends(store_access),
    principal: Principal = Depends(require_permission('tickets.approve')),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    try:
        message = reject_ticket(db, principal, ticket_id, payload.reason, payload.ticket_no)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    db.commit()
    return {'message': message}
