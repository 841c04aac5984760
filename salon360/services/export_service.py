from __future__ import annotations

import csv
from datetime import date, datetime
from decimal import Decimal
from io import StringIO
from zoneinfo import ZoneInfo

from salon360.config import settings
from salon360.services.end_of_day_service import DayReport

TECHNICIAN_HEADERS = [
    'Technician',
    'Services Done',
    'Revenue',
    'Tips (Customer)',
    'Tips (Receptionist)',
    'T. (Cash)',
    'T. (Card)',
    'Tips Total',
]
EOD_ATTENDANCE_HEADERS = ['Employee', 'Check In', 'Check Out', 'Hours', 'Status']
ATTENDANCE_HEADERS = ['Employee', 'Date', 'Check In', 'Check Out', 'Hours', 'Status']


def format_money(value: Decimal | int | float | None) -> str:
    return f'{Decimal(str(value or 0)):.2f}'


def format_hours(value) -> str:
    if not value:
        return ''
    return f'{Decimal(str(value)):.2f}'


def format_clock_time(value: datetime | str | None, tz_name: str | None = None) -> str:
    if not value:
        return ''
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    local = value.astimezone(ZoneInfo(tz_name or settings.store_timezone))
    hour = local.hour % 12 or 12
    meridiem = 'AM' if local.hour < 12 else 'PM'
    return f'{hour}:{local.minute:02d} {meridiem}'


def eod_report_filename(report_date: date) -> str:
    return f'eod-report-{report_date.isoformat()}.csv'


def attendance_report_filename(start_date: date, end_date: date) -> str:
    return f'attendance-{start_date.isoformat()}-to-{end_date.isoformat()}.csv'


def eod_report_csv(report: DayReport, attendance_rows: list[dict]) -> str:
    sio = StringIO()
    writer = csv.writer(sio, lineterminator='\n')
    writer.writerow(['Technician Summary'])
    writer.writerow(TECHNICIAN_HEADERS)
    for summary in report.summaries:
        writer.writerow(
            [
                summary.technician_name,
                summary.services_count,
                format_money(summary.revenue),
                format_money(summary.tips_customer),
                format_money(summary.tips_receptionist),
                format_money(summary.tips_cash),
                format_money(summary.tips_card),
                format_money(summary.tips_total),
            ]
        )

    writer.writerow([])
    writer.writerow(['Attendance Summary'])
    writer.writerow(EOD_ATTENDANCE_HEADERS)
    for record in attendance_rows:
        writer.writerow(
            [
                record.get('employee_name') or '',
                format_clock_time(record.get('check_in_time')),
                format_clock_time(record.get('check_out_time')),
                format_hours(record.get('total_hours')),
                record.get('status') or '',
            ]
        )
    return sio.getvalue()


def attendance_report_csv(summary: list[dict]) -> str:
    sio = StringIO()
    writer = csv.writer(sio, lineterminator='\n')
    writer.writerow(ATTENDANCE_HEADERS)
    for employee in summary:
        for work_date, sessions in employee['dates'].items():
            for record in sessions:
                writer.writerow(
                    [
                        employee['employee_name'],
                        work_date.isoformat() if isinstance(work_date, date) else work_date,
                        format_clock_time(record.get('check_in_time')),
                        format_clock_time(record.get('check_out_time')),
                        format_hours(record.get('total_hours')),
                        record.get('status') or '',
                    ]
                )
    return sio.getvalue()
