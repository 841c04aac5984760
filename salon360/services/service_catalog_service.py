from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy.orm import Session

from salon360.auth import Principal
from salon360.models import StoreService
from salon360.permissions import is_allowed
from salon360.rpc import call_rows
from salon360.services.queue_service import normalize_sort_text
from salon360.services.ticket_math_service import quantize_money

ACTIVE_FILTERS = ('all', 'active', 'inactive')


@dataclass(frozen=True)
class StoreServiceUpdate:
    price: Decimal | None
    duration_min: int | None
    active: bool = True


def filter_services(rows: list[dict], *, search: str | None = None, active: str = 'all') -> list[dict]:
    if active not in ACTIVE_FILTERS:
        raise ValueError('Invalid active filter')

    needle = normalize_sort_text(search)
    result = []
    for row in rows:
        if needle and needle not in normalize_sort_text(row.get('code')) and needle not in normalize_sort_text(
            row.get('name')
        ):
            continue
        if active != 'all' and bool(row.get('active')) != (active == 'active'):
            continue
        result.append(row)
    return result


def list_store_services(
    db: Session,
    store_id: uuid.UUID,
    *,
    search: str | None = None,
    active: str = 'all',
) -> list[dict]:
    rows = call_rows(db, 'get_services_by_popularity', p_store_id=store_id)
    return filter_services(rows, search=search, active=active)


def update_store_service(
    db: Session,
    principal: Principal,
    store_id: uuid.UUID,
    store_service_id: uuid.UUID,
    update: StoreServiceUpdate,
) -> StoreService:
    if not is_allowed(principal.permission_roles, 'services.edit'):
        raise PermissionError('You do not have permission to save services')
    if update.price is None or update.duration_min is None:
        raise ValueError('Please fill in all required fields')
    if update.price < 0:
        raise ValueError('Price cannot be negative')
    if update.duration_min <= 0:
        raise ValueError('Duration must be greater than zero')

    store_service = db.get(StoreService, store_service_id)
    if store_service is None or store_service.store_id != store_id:
        raise LookupError('Service not found')

    store_service.price_override = quantize_money(update.price)
    store_service.duration_override = update.duration_min
    store_service.active = update.active
    store_service.updated_at = datetime.now(tz=timezone.utc)
    return store_service
