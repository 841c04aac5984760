from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from salon360.auth import Principal
from salon360.models import AttendanceComment, AttendanceRecord, AttendanceStatus, Employee, PayType
from salon360.rpc import BackendError, call_rows, call_scalar
from salon360.services.queue_service import remove_from_queue

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AttendanceResult:
    action: str
    message: str
    queue_joined: bool = False


def get_today_record(db: Session, employee_id: uuid.UUID, store_id: uuid.UUID, work_date: date) -> AttendanceRecord | None:
    # Several sessions per day are allowed; the latest one decides the state.
    return db.execute(
        select(AttendanceRecord)
        .where(
            AttendanceRecord.employee_id == employee_id,
            AttendanceRecord.store_id == store_id,
            AttendanceRecord.work_date == work_date,
        )
        .order_by(AttendanceRecord.check_in_time.desc())
        .limit(1)
    ).scalar_one_or_none()


def _join_queue_best_effort(db: Session, employee_id: uuid.UUID, store_id: uuid.UUID) -> bool:
    try:
        with db.begin_nested():
            result = call_scalar(
                db, 'join_ready_queue_with_checkin', p_employee_id=employee_id, p_store_id=store_id
            )
    except BackendError as exc:
        logger.warning('Check-in kept but queue join failed for %s: %s', employee_id, exc.message)
        return False

    if not isinstance(result, dict) or not result.get('success'):
        message = result.get('message') if isinstance(result, dict) else None
        logger.warning('Check-in kept but queue join refused for %s: %s', employee_id, message)
        return False
    return True


def check_in(db: Session, employee: Employee, store_id: uuid.UUID) -> AttendanceResult:
    if not call_scalar(db, 'can_checkin_now', p_store_id=store_id):
        raise ValueError('Check-in is only available 15 minutes before opening time')

    call_scalar(
        db,
        'check_in_employee',
        p_employee_id=employee.id,
        p_store_id=store_id,
        p_pay_type=employee.pay_type or PayType.HOURLY.value,
    )
    queue_joined = _join_queue_best_effort(db, employee.id, store_id)
    logger.info('Employee %s checked in at store %s', employee.id, store_id)
    return AttendanceResult(
        action='checked_in',
        message=f'Welcome to work, {employee.display_name}! You are checked in.',
        queue_joined=queue_joined,
    )


def check_out(db: Session, employee: Employee, store_id: uuid.UUID) -> AttendanceResult:
    if not call_scalar(db, 'check_out_employee', p_employee_id=employee.id, p_store_id=store_id):
        raise ValueError('No active check-in found')

    remove_from_queue(db, employee.id, store_id)
    logger.info('Employee %s checked out at store %s', employee.id, store_id)
    return AttendanceResult(
        action='checked_out',
        message=f'Goodbye, {employee.display_name}! You are checked out. See you soon!',
    )


def toggle_check_in_out(db: Session, employee: Employee, store_id: uuid.UUID, work_date: date) -> AttendanceResult:
    record = get_today_record(db, employee.id, store_id, work_date)
    if record is not None and record.status == AttendanceStatus.CHECKED_IN.value:
        return check_out(db, employee, store_id)
    return check_in(db, employee, store_id)


def list_store_attendance(
    db: Session,
    principal: Principal,
    *,
    store_id: uuid.UUID,
    start_date: date,
    end_date: date,
) -> list[dict]:
    if end_date < start_date:
        raise ValueError('End date must be on or after start date')
    return call_rows(
        db,
        'get_store_attendance',
        p_store_id=store_id,
        p_start_date=start_date,
        p_end_date=end_date,
        p_employee_id=principal.employee_id if principal.is_technician_view else None,
    )


def summarize_attendance(rows: list[dict]) -> list[dict]:
    summary: dict = {}
    for row in rows:
        employee = summary.setdefault(
            row['employee_id'],
            {
                'employee_id': row['employee_id'],
                'employee_name': row.get('employee_name') or '',
                'pay_type': row.get('pay_type'),
                'dates': {},
                'total_hours': Decimal('0'),
                'days_present': 0,
            },
        )
        work_date = row['work_date']
        employee['dates'].setdefault(work_date, []).append(
            {
                'attendance_record_id': row.get('attendance_record_id'),
                'check_in_time': row.get('check_in_time'),
                'check_out_time': row.get('check_out_time'),
                'total_hours': row.get('total_hours'),
                'status': row.get('status'),
            }
        )
        if row.get('total_hours'):
            employee['total_hours'] += Decimal(str(row['total_hours']))

    for employee in summary.values():
        employee['days_present'] = len(employee['dates'])
    return list(summary.values())


def _get_store_record(db: Session, store_id: uuid.UUID, attendance_record_id: uuid.UUID) -> AttendanceRecord:
    record = db.get(AttendanceRecord, attendance_record_id)
    if record is None or record.store_id != store_id:
        raise LookupError('Attendance record not found')
    return record


def list_comments(db: Session, store_id: uuid.UUID, attendance_record_id: uuid.UUID) -> list[dict]:
    _get_store_record(db, store_id, attendance_record_id)
    rows = db.execute(
        select(AttendanceComment, Employee.display_name)
        .outerjoin(Employee, Employee.id == AttendanceComment.employee_id)
        .where(AttendanceComment.attendance_record_id == attendance_record_id)
        .order_by(AttendanceComment.created_at.asc())
    ).all()
    return [
        {
            'id': str(comment.id),
            'employee_id': str(comment.employee_id),
            'employee_name': display_name or 'Unknown',
            'comment': comment.comment,
            'created_at': comment.created_at.isoformat() if comment.created_at else None,
        }
        for comment, display_name in rows
    ]


def add_comment(
    db: Session,
    principal: Principal,
    store_id: uuid.UUID,
    attendance_record_id: uuid.UUID,
    text: str,
) -> AttendanceComment:
    comment_text = (text or '').strip()
    if not comment_text:
        raise ValueError('Comment cannot be empty')
    _get_store_record(db, store_id, attendance_record_id)

    comment = AttendanceComment(
        attendance_record_id=attendance_record_id,
        employee_id=principal.employee_id,
        comment=comment_text,
    )
    db.add(comment)
    db.flush()
    return comment


def delete_comment(db: Session, principal: Principal, store_id: uuid.UUID, comment_id: uuid.UUID) -> None:
    comment = db.get(AttendanceComment, comment_id)
    if comment is None:
        raise LookupError('Comment not found')
    try:
        _get_store_record(db, store_id, comment.attendance_record_id)
    except LookupError as exc:
        raise LookupError('Comment not found') from exc
    if comment.employee_id != principal.employee_id:
        raise PermissionError('Only the author can delete this comment')
    db.delete(comment)
