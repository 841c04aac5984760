from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from salon360.auth import Principal, get_current_principal, list_accessible_stores, principal_from_employee
from salon360.config import settings
from salon360.db import get_db
from salon360.dependencies import get_client_ip
from salon360.permissions import accessible_pages
from salon360.schemas import PinChange, PinLogin, StoreSelection
from salon360.security.csrf import verify_csrf
from salon360.security.sessions import create_user_session, revoke_user_session
from salon360.services.pin_auth_service import authenticate_with_pin, change_pin
from salon360.services.store_selection_service import resolve_store, select_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix='/auth', tags=['auth'])


def _store_payload(store) -> dict:
    return {'id': str(store.id), 'name': store.name, 'code': store.code}


def _principal_payload(principal: Principal) -> dict:
    return {
        'employee_id': str(principal.employee_id),
        'display_name': principal.display_name,
        'role': list(principal.roles),
        'role_permission': principal.role_permission,
        'can_reset_pin': principal.can_reset_pin,
        'pages': accessible_pages(principal.permission_roles),
    }


@router.post('/login')
def login_submit(
    payload: PinLogin,
    request: Request,
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    employee = authenticate_with_pin(db, payload.pin.strip())
    if employee is None:
        logger.info('Rejected PIN login from %s', get_client_ip(request))
        raise HTTPException(status_code=401, detail='Invalid PIN. Please try again.')

    principal = principal_from_employee(employee)
    try:
        store = resolve_store(db, principal)
    except LookupError as exc:
        raise HTTPException(status_code=403, detail=str(exc)) from exc

    token = create_user_session(
        db,
        employee.id,
        ip=get_client_ip(request),
        user_agent=request.headers.get('user-agent'),
    )
    db.commit()
    logger.info('Employee %s signed in', employee.id)

    response = JSONResponse(
        {
            'principal': _principal_payload(principal),
            'store': _store_payload(store),
            'stores': [_store_payload(s) for s in list_accessible_stores(db, principal)],
        }
    )
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite=settings.session_cookie_samesite,
        max_age=settings.session_idle_minutes * 60,
    )
    return response


@router.post('/logout')
def logout(request: Request, db: Session = Depends(get_db), _: None = Depends(verify_csrf)):
    token = request.cookies.get(settings.session_cookie_name)
    if token:
        revoke_user_session(db, token)
    db.commit()

    response = JSONResponse({'status': 'ok'})
    response.delete_cookie(settings.session_cookie_name)
    return response


@router.get('/me')
def me(principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    try:
        store = resolve_store(db, principal)
    except LookupError as exc:
        raise HTTPException(status_code=403, detail=str(exc)) from exc
    return {
        'principal': _principal_payload(principal),
        'store': _store_payload(store),
        'stores': [_store_payload(s) for s in list_accessible_stores(db, principal)],
        'refresh_seconds': {
            'tickets': settings.ticket_refresh_seconds,
            'approvals': settings.approvals_refresh_seconds,
            'elapsed': settings.elapsed_refresh_seconds,
        },
    }


@router.post('/store')
def choose_store(
    payload: StoreSelection,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    try:
        store = select_store(db, principal, payload.store_id)
    except PermissionError as exc:
        raise HTTPException(status_code=403, detail=str(exc)) from exc
    db.commit()
    return {'store': _store_payload(store)}


@router.post('/pin')
def change_own_pin(
    payload: PinChange,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    try:
        change_pin(db, principal.employee_id, payload.old_pin, payload.new_pin, payload.confirm_pin)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    db.commit()
    return {'message': 'PIN changed successfully'}
