from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from salon360.auth import Principal, require_permission, store_access
from salon360.db import get_db
from salon360.dependencies import store_today
from salon360.services.attendance_service import list_store_attendance
from salon360.services.end_of_day_service import end_of_day_report, weekly_tips
from salon360.services.export_service import eod_report_csv, eod_report_filename

router = APIRouter(prefix='/stores/{store_id}/end-of-day', tags=['end-of-day'])


@router.get('')
def end_of_day_page(
    report_date: date | None = None,
    store_id: uuid.UUID = Depends(store_access),
    principal: Principal = Depends(require_permission('end_of_day.view')),
    db: Session = Depends(get_db),
):
    target = report_date or store_today()
    report = end_of_day_report(db, principal, store_id, target)
    return {'report_date': target, 'report': report}


@router.get('/weekly')
def end_of_day_weekly(
    week_of: date | None = None,
    store_id: uuid.UUID = Depends(store_access),
    principal: Principal = Depends(require_permission('end_of_day.view')),
    db: Session = Depends(get_db),
):
    return weekly_tips(db, principal, store_id, week_of or store_today())


@router.get('/export.csv')
def end_of_day_export(
    report_date: date | None = None,
    store_id: uuid.UUID = Depends(store_access),
    principal: Principal = Depends(require_permission('end_of_day.export')),
    db: Session = Depends(get_db),
):
    target = report_date or store_today()
    report = end_of_day_report(db, principal, store_id, target)
    attendance_rows = list_store_attendance(db, principal, store_id=store_id, start_date=target, end_date=target)

    return StreamingResponse(
        iter([eod_report_csv(report, attendance_rows)]),
        media_type='text/csv',
        headers={'Content-Disposition': f'attachment; filename="{eod_report_filename(target)}"'},
    )
