from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from salon360.models import AttendanceRecord, AttendanceStatus, Employee, QueueStatus, TechnicianReadyQueue
from salon360.permissions import RECEPTIONIST, SUPERVISOR, TECHNICIAN, has_any_role
from salon360.rpc import call_rows, call_scalar
from salon360.services.timing_service import queue_time_remaining

logger = logging.getLogger(__name__)

CHECK_IN_REQUIRED_ROLES = frozenset({TECHNICIAN, RECEPTIONIST, SUPERVISOR})
_STATUS_ORDER = {QueueStatus.READY.value: 0, QueueStatus.NEUTRAL.value: 1, QueueStatus.BUSY.value: 2}
_UNRANKED = 1_000_000


@dataclass(frozen=True)
class QueueResult:
    status: str
    message: str


def normalize_sort_text(value: str | None) -> str:
    return (value or '').strip().lower()


def queue_sort_key(row: dict) -> tuple[int, int, str]:
    status_rank = _STATUS_ORDER.get(row.get('queue_status'), len(_STATUS_ORDER))
    position = row.get('queue_position') or 0
    if status_rank != 0:
        position = 0
    elif position <= 0:
        position = _UNRANKED
    return (status_rank, position, normalize_sort_text(row.get('display_name')))


def sort_technicians(rows: list[dict], *, now: datetime | None = None) -> list[dict]:
    ordered = sorted(rows, key=queue_sort_key)
    result = []
    for row in ordered:
        entry = dict(row)
        entry['time_remaining'] = (
            queue_time_remaining(row.get('ticket_start_time'), row.get('estimated_duration_min'), now=now)
            if row.get('queue_status') == QueueStatus.BUSY.value
            else ''
        )
        result.append(entry)
    return result


def list_sorted_technicians(db: Session, store_id: uuid.UUID, *, now: datetime | None = None) -> list[dict]:
    rows = call_rows(db, 'get_sorted_technicians_for_store', p_store_id=store_id)
    return sort_technicians(rows, now=now)


def is_checked_in_today(db: Session, employee_id: uuid.UUID, work_date) -> bool:
    record_id = db.execute(
        select(AttendanceRecord.id)
        .where(
            AttendanceRecord.employee_id == employee_id,
            AttendanceRecord.work_date == work_date,
            AttendanceRecord.status == AttendanceStatus.CHECKED_IN.value,
        )
        .limit(1)
    ).scalar_one_or_none()
    return record_id is not None


def join_queue(db: Session, employee_id: uuid.UUID, store_id: uuid.UUID) -> QueueResult:
    result = call_scalar(db, 'join_ready_queue_with_checkin', p_employee_id=employee_id, p_store_id=store_id)
    if not isinstance(result, dict) or not result.get('success'):
        message = result.get('message') if isinstance(result, dict) else None
        logger.warning('Employee %s could not join queue at store %s: %s', employee_id, store_id, message)
        raise ValueError(message or 'Unable to join the ready queue. Please ensure you are checked in.')
    return QueueResult(status='joined', message='You have joined the ready queue')


def ready_for_employee(db: Session, employee: Employee, store_id: uuid.UUID, work_date) -> QueueResult:
    """Kiosk "Ready" action: join the queue, or report that the employee is already in it."""
    if has_any_role(employee.role or [], CHECK_IN_REQUIRED_ROLES) and not is_checked_in_today(
        db, employee.id, work_date
    ):
        raise ValueError(
            'You must check in before joining the ready queue. Please use the Check In/Out button first.'
        )

    if call_scalar(db, 'check_queue_status', p_employee_id=employee.id, p_store_id=store_id):
        return QueueResult(status='in_queue', message='You are already in the ready queue')
    return join_queue(db, employee.id, store_id)


def leave_queue(db: Session, employee_id: uuid.UUID, store_id: uuid.UUID) -> QueueResult:
    call_scalar(db, 'leave_ready_queue', p_employee_id=employee_id, p_store_id=store_id)
    return QueueResult(status='left', message='You have left the ready queue')


def remove_from_queue(db: Session, employee_id: uuid.UUID, store_id: uuid.UUID) -> None:
    db.execute(
        delete(TechnicianReadyQueue).where(
            TechnicianReadyQueue.employee_id == employee_id,
            TechnicianReadyQueue.store_id == store_id,
        )
    )
