from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from salon360.auth import principal_from_employee
from salon360.db import get_db
from salon360.dependencies import store_today
from salon360.models import Employee, Store
from salon360.schemas import KioskRequest
from salon360.security.csrf import verify_csrf
from salon360.services.attendance_service import toggle_check_in_out
from salon360.services.pin_auth_service import authenticate_with_pin
from salon360.services.queue_service import leave_queue, ready_for_employee
from salon360.services.store_selection_service import resolve_store, select_store

router = APIRouter(prefix='/kiosk', tags=['kiosk'])


def _authenticate(db: Session, payload: KioskRequest) -> tuple[Employee, Store]:
    employee = authenticate_with_pin(db, payload.pin.strip())
    if employee is None:
        raise HTTPException(status_code=401, detail='Invalid PIN. Please try again.')

    principal = principal_from_employee(employee)
    try:
        if payload.store_id is not None:
            store = select_store(db, principal, payload.store_id)
        else:
            store = resolve_store(db, principal)
    except PermissionError as exc:
        raise HTTPException(status_code=403, detail=str(exc)) from exc
    except LookupError as exc:
        raise HTTPException(status_code=403, detail=str(exc)) from exc
    return employee, store


@router.post('/check-in-out')
def kiosk_check_in_out(payload: KioskRequest, db: Session = Depends(get_db), _: None = Depends(verify_csrf)):
    employee, store = _authenticate(db, payload)
    try:
        result = toggle_check_in_out(db, employee, store.id, store_today())
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    db.commit()
    return {
        'action': result.action,
        'message': result.message,
        'queue_joined': result.queue_joined,
        'store_id': str(store.id),
    }


@router.post('/ready')
def kiosk_ready(payload: KioskRequest, db: Session = Depends(get_db), _: None = Depends(verify_csrf)):
    employee, store = _authenticate(db, payload)
    try:
        result = ready_for_employee(db, employee, store.id, store_today())
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    db.commit()
    return {'status': result.status, 'message': result.message, 'store_id': str(store.id)}


@router.post('/leave-queue')
def kiosk_leave_queue(payload: KioskRequest, db: Session = Depends(get_db), _: None = Depends(verify_csrf)):
    employee, store = _authenticate(db, payload)
    result = leave_queue(db, employee.id, store.id)
    db.commit()
    return {'status': result.status, 'message': result.message, 'store_id': str(store.id)}
