from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from salon360.auth import Principal, assert_store_scope, list_accessible_stores, require_permission, store_access
from salon360.db import get_db
from salon360.dependencies import http_error
from salon360.schemas import EmployeeIn, StoreServiceIn
from salon360.security.csrf import verify_csrf
from salon360.services.employee_service import list_employees, save_employee
from salon360.services.pin_auth_service import reset_pin
from salon360.services.service_catalog_service import ACTIVE_FILTERS, list_store_services, update_store_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=['admin'])


@router.get('/stores')
def stores_list(
    principal: Principal = Depends(require_permission('tickets.view')),
    db: Session = Depends(get_db),
):
    return {
        'stores': [
            {'id': str(store.id), 'name': store.name, 'code': store.code}
            for store in list_accessible_stores(db, principal)
        ]
    }


@router.get('/employees')
def employees_list(
    store_id: uuid.UUID | None = None,
    search: str | None = None,
    status: str = 'all',
    role: str = 'all',
    principal: Principal = Depends(require_permission('employees.view')),
    db: Session = Depends(get_db),
):
    if store_id is not None:
        assert_store_scope(db, principal, store_id)
    return {
        'employees': list_employees(db, store_id=store_id, search=search, status=status, role=role),
    }


@router.post('/employees')
def employee_create(
    payload: EmployeeIn,
    principal: Principal = Depends(require_permission('employees.create')),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    try:
        employee = save_employee(db, principal, payload.to_draft())
    except (ValueError, PermissionError) as exc:
        raise http_error(exc) from exc
    db.commit()
    return {'id': str(employee.id)}


@router.put('/employees/{employee_id}')
def employee_update(
    employee_id: uuid.UUID,
    payload: EmployeeIn,
    principal: Principal = Depends(require_permission('employees.edit')),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    try:
        employee = save_employee(db, principal, payload.to_draft(), employee_id)
    except (ValueError, PermissionError, LookupError) as exc:
        raise http_error(exc) from exc
    db.commit()
    return {'id': str(employee.id)}


@router.post('/employees/{employee_id}/reset-pin')
def employee_reset_pin(
    employee_id: uuid.UUID,
    principal: Principal = Depends(require_permission('employees.reset_pin')),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    try:
        temp_pin = reset_pin(db, employee_id)
    except (ValueError, LookupError) as exc:
        raise http_error(exc) from exc
    db.commit()
    logger.info('Employee %s reset the PIN for %s', principal.employee_id, employee_id)
    return {'temp_pin': temp_pin}


@router.get('/stores/{store_id}/services')
def services_list(
    search: str | None = None,
    active: str = 'all',
    store_id: uuid.UUID = Depends(store_access),
    _: Principal = Depends(require_permission('services.view')),
    db: Session = Depends(get_db),
):
    if active not in ACTIVE_FILTERS:
        raise HTTPException(status_code=400, detail='Invalid status filter')
    return {'services': list_store_services(db, store_id, search=search, active=active)}


@router.put('/stores/{store_id}/services/{store_service_id}')
def service_update(
    store_service_id: uuid.UUID,
    payload: StoreServiceIn,
    store_id: uuid.UUID = Depends(store_access),
    principal: Principal = Depends(require_permission('services.edit')),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    try:
        update_store_service(db, principal, store_id, store_service_id, payload.to_update())
    except (ValueError, PermissionError, LookupError) as exc:
        raise http_error(exc) from exc
    db.commit()
    return {'status': 'saved'}
