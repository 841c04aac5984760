from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from salon360.auth import Principal, require_permission, store_access
from salon360.db import get_db
from salon360.dependencies import http_error, store_today
from salon360.schemas import AttendanceCommentIn
from salon360.security.csrf import verify_csrf
from salon360.services.attendance_service import (
    add_comment,
    delete_comment,
    list_comments,
    list_store_attendance,
    summarize_attendance,
)
from salon360.services.export_service import attendance_report_csv, attendance_report_filename
from salon360.services.payroll_period_service import next_period, period_for, previous_period

router = APIRouter(prefix='/stores/{store_id}/attendance', tags=['attendance'])


@router.get('')
def attendance_page(
    period_date: date | None = None,
    store_id: uuid.UUID = Depends(store_access),
    principal: Principal = Depends(require_permission('attendance.view')),
    db: Session = Depends(get_db),
):
    period = period_for(period_date or store_today())
    rows = list_store_attendance(
        db,
        principal,
        store_id=store_id,
        start_date=period.start_date,
        end_date=period.end_date,
    )
    return {
        'start_date': period.start_date,
        'end_date': period.end_date,
        'days': period.days,
        'previous_start_date': previous_period(period).start_date,
        'next_start_date': next_period(period).start_date,
        'employees': summarize_attendance(rows),
    }


@router.get('/export.csv')
def attendance_export(
    start_date: date | None = None,
    end_date: date | None = None,
    store_id: uuid.UUID = Depends(store_access),
    principal: Principal = Depends(require_permission('attendance.export')),
    db: Session = Depends(get_db),
):
    if start_date is None or end_date is None:
        period = period_for(store_today())
        start_date = start_date or period.start_date
        end_date = end_date or period.end_date
    try:
        rows = list_store_attendance(db, principal, store_id=store_id, start_date=start_date, end_date=end_date)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    csv_body = attendance_report_csv(summarize_attendance(rows))
    filename = attendance_report_filename(start_date, end_date)
    return StreamingResponse(
        iter([csv_body]),
        media_type='text/csv',
        headers={'Content-Disposition': f'attachment; filename="{filename}"'},
    )


@router.get('/records/{record_id}/comments')
def attendance_comments(
    record_id: uuid.UUID,
    store_id: uuid.UUID = Depends(store_access),
    _: Principal = Depends(require_permission('attendance.view')),
    db: Session = Depends(get_db),
):
    try:
        comments = list_comments(db, store_id, record_id)
    except LookupError as exc:
        raise http_error(exc) from exc
    return {'comments': comments}


@router.post('/records/{record_id}/comments')
def attendance_comment_create(
    record_id: uuid.UUID,
    payload: AttendanceCommentIn,
    store_id: uuid.UUID = Depends(store_access),
    principal: Principal = Depends(require_permission('attendance.comment')),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    try:
        comment = add_comment(db, principal, store_id, record_id, payload.comment)
    except (ValueError, LookupError) as exc:
        raise http_error(exc) from exc
    db.commit()
    return {'id': str(comment.id)}


@router.delete('/comments/{comment_id}')
def attendance_comment_delete(
    comment_id: uuid.UUID,
    store_id: uuid.UUID = Depends(store_access),
    principal: Principal = Depends(require_permission('attendance.comment')),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    try:
        delete_comment(db, principal, store_id, comment_id)
    except (PermissionError, LookupError) as exc:
        raise http_error(exc) from exc
    db.commit()
    return {'status': 'deleted'}
