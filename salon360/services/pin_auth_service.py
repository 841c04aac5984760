from __future__ import annotations

import logging
import re
import uuid

from sqlalchemy.orm import Session

from salon360.models import Employee, EmployeeStatus
from salon360.rpc import call_rows, call_scalar

logger = logging.getLogger(__name__)

PIN_PATTERN = re.compile(r'^\d{4}$')


def is_valid_pin(pin: str | None) -> bool:
    return bool(pin) and PIN_PATTERN.match(pin) is not None


def authenticate_with_pin(db: Session, pin: str) -> Employee | None:
    if not is_valid_pin(pin):
        return None

    rows = call_rows(db, 'verify_employee_pin', pin_input=pin)
    if not rows:
        return None

    employee = db.get(Employee, uuid.UUID(str(rows[0]['employee_id'])))
    if employee is None or employee.status != EmployeeStatus.ACTIVE.value:
        logger.info('PIN matched an unavailable employee')
        return None
    return employee


def validate_pin_change(old_pin: str, new_pin: str, confirm_pin: str) -> None:
    if not is_valid_pin(old_pin):
        raise ValueError('Current PIN must be 4 digits')
    if not is_valid_pin(new_pin):
        raise ValueError('New PIN must be 4 digits')
    if new_pin != confirm_pin:
        raise ValueError('New PINs do not match')
    if old_pin == new_pin:
        raise ValueError('New PIN must be different from current PIN')


def change_pin(db: Session, employee_id: uuid.UUID, old_pin: str, new_pin: str, confirm_pin: str) -> None:
    validate_pin_change(old_pin, new_pin, confirm_pin)
    result = call_scalar(db, 'change_employee_pin', emp_id=employee_id, old_pin=old_pin, new_pin=new_pin)
    if not isinstance(result, dict) or not result.get('success'):
        error = result.get('error') if isinstance(result, dict) else None
        raise ValueError(error or 'Failed to change PIN')


def reset_pin(db: Session, employee_id: uuid.UUID) -> str:
    if db.get(Employee, employee_id) is None:
        raise LookupError('Employee not found')

    result = call_scalar(db, 'reset_employee_pin', emp_id=employee_id)
    if not isinstance(result, dict) or not result.get('success'):
        error = result.get('error') if isinstance(result, dict) else None
        raise ValueError(error or 'Failed to reset PIN')
    logger.info('PIN reset for employee %s', employee_id)
    return str(result.get('temp_pin') or '')
