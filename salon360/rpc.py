"""Stored-procedure calls against the hosted database.

The procedures themselves live in the database and are treated as black
boxes: this module only knows their names and how to invoke them with
Postgres named notation (``name(p_arg => :p_arg)``).
"""
from __future__ import annotations

import logging
import re
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

PROCEDURES = frozenset(
    {
        'verify_employee_pin',
        'change_employee_pin',
        'reset_employee_pin',
        'check_in_employee',
        'check_out_employee',
        'can_checkin_now',
        'join_ready_queue_with_checkin',
        'check_queue_status',
        'leave_ready_queue',
        'get_sorted_technicians_for_store',
        'get_services_by_popularity',
        'get_store_attendance',
        'get_pending_approvals_for_technician',
        'get_pending_approvals_for_supervisor',
        'get_pending_approvals_for_management',
        'get_approval_statistics',
        'approve_ticket',
        'reject_ticket',
    }
)

_PARAM_NAME = re.compile(r'^[a-z_][a-z0-9_]*$')


class BackendError(RuntimeError):
    def __init__(self, procedure: str, message: str) -> None:
        super().__init__(f'{procedure} failed: {message}')
        self.procedure = procedure
        self.message = message


def build_call(name: str, params: dict[str, Any]) -> str:
    if name not in PROCEDURES:
        raise ValueError(f'Unknown procedure: {name}')
    for key in params:
        if not _PARAM_NAME.match(key):
            raise ValueError(f'Invalid parameter name: {key}')
    args = ', '.join(f'{key} => :{key}' for key in params)
    return f'{name}({args})'


def _execute(db: Session, name: str, sql: str, params: dict[str, Any]):
    try:
        return db.execute(text(sql), params)
    except DBAPIError as exc:
        message = str(exc.orig) if exc.orig is not None else str(exc)
        logger.error('Procedure %s failed: %s', name, message)
        raise BackendError(name, message) from exc


def call_rows(db: Session, name: str, **params: Any) -> list[dict[str, Any]]:
    """Call a set-returning procedure and return its rows as dicts."""
    sql = f'SELECT * FROM {build_call(name, params)}'
    return [dict(row) for row in _execute(db, name, sql, params).mappings().all()]


def call_scalar(db: Session, name: str, **params: Any) -> Any:
    """Call a procedure returning a single value (boolean, json, uuid, ...)."""
    sql = f'SELECT {build_call(name, params)}'
    return _execute(db, name, sql, params).scalar()
