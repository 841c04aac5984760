from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta

from salon360.config import settings


@dataclass(frozen=True)
class PayrollPeriod:
    start_date: date
    end_date: date

    @property
    def days(self) -> list[date]:
        span = (self.end_date - self.start_date).days
        return [self.start_date + timedelta(days=offset) for offset in range(span + 1)]


def period_for(
    target: date,
    *,
    anchor: date | None = None,
    period_days: int | None = None,
) -> PayrollPeriod:
    if anchor is None:
        anchor = settings.payroll_anchor_date
    if period_days is None:
        period_days = settings.payroll_period_days
    if period_days <= 0:
        raise ValueError('Payroll period length must be greater than zero')

    # Floor division keeps dates before the anchor in the correct earlier period.
    period_number = (target - anchor).days // period_days
    start = anchor + timedelta(days=period_number * period_days)
    return PayrollPeriod(start_date=start, end_date=start + timedelta(days=period_days - 1))


def previous_period(period: PayrollPeriod) -> PayrollPeriod:
    length = (period.end_date - period.start_date).days + 1
    return period_for(period.start_date - timedelta(days=length), anchor=period.start_date, period_days=length)


def next_period(period: PayrollPeriod) -> PayrollPeriod:
    length = (period.end_date - period.start_date).days + 1
    return period_for(period.start_date + timedelta(days=length), anchor=period.start_date, period_days=length)


def week_start(target: date) -> date:
    return target - timedelta(days=target.weekday())


def week_days(target: date) -> list[date]:
    start = week_start(target)
    return [start + timedelta(days=offset) for offset in range(7)]
