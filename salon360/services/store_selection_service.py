from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from salon360.auth import Principal, list_accessible_stores
from salon360.models import Store, UserPreference


def _preference(db: Session, employee_id: uuid.UUID) -> UserPreference | None:
    return db.execute(select(UserPreference).where(UserPreference.employee_id == employee_id)).scalar_one_or_none()


def resolve_store(db: Session, principal: Principal) -> Store:
    """Pick the remembered store when still allowed, else the first accessible one."""
    stores = list_accessible_stores(db, principal)
    if not stores:
        raise LookupError('No store found for this employee.')

    preference = _preference(db, principal.employee_id)
    if preference is not None and preference.default_store_id is not None:
        for store in stores:
            if store.id == preference.default_store_id:
                return store
    return stores[0]


def select_store(db: Session, principal: Principal, store_id: uuid.UUID) -> Store:
    store = next((s for s in list_accessible_stores(db, principal) if s.id == store_id), None)
    if store is None:
        raise PermissionError('Store not available')

    preference = _preference(db, principal.employee_id)
    if preference is None:
        preference = UserPreference(employee_id=principal.employee_id)
        db.add(preference)
    preference.default_store_id = store.id
    preference.updated_at = datetime.now(tz=timezone.utc)
    return store
