from __future__ import annotations

import uuid
from dataclasses import dataclass, field

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from salon360.db import get_db
from salon360.models import Employee, EmployeeStatus, EmployeeStore, Store
from salon360.permissions import ADMIN, MANAGER, OWNER, TECHNICIAN, has_any_role, is_allowed


@dataclass
class Principal:
    employee_id: uuid.UUID
    display_name: str
    roles: tuple[str, ...] = field(default_factory=tuple)
    role_permission: str | None = None
    can_reset_pin: bool = False
    active: bool = True

    @property
    def permission_roles(self) -> tuple[str, ...]:
        # Employment roles plus the assigned permission level.
        if self.role_permission and self.role_permission not in self.roles:
            return (*self.roles, self.role_permission)
        return self.roles

    @property
    def is_technician_view(self) -> bool:
        return self.role_permission == TECHNICIAN

    @property
    def has_all_store_access(self) -> bool:
        return self.role_permission == ADMIN or has_any_role(self.roles, {MANAGER, OWNER})


def principal_from_employee(employee: Employee) -> Principal:
    return Principal(
        employee_id=employee.id,
        display_name=employee.display_name,
        roles=tuple(employee.role or ()),
        role_permission=employee.role_permission,
        can_reset_pin=bool(employee.can_reset_pin),
        active=employee.status == EmployeeStatus.ACTIVE.value,
    )


def get_current_principal(request: Request) -> Principal:
    principal = getattr(request.state, 'principal', None)
    if not principal:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    if not principal.active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN)
    return principal


def require_permission(permission: str):
    def _dep(principal: Principal = Depends(get_current_principal)) -> Principal:
        if not is_allowed(principal.permission_roles, permission):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='Permission denied')
        return principal

    return _dep


def list_accessible_stores(db: Session, principal: Principal) -> list[Store]:
    stmt = select(Store).where(Store.active.is_(True))
    if not principal.has_all_store_access:
        stmt = stmt.join(EmployeeStore, EmployeeStore.store_id == Store.id).where(
            EmployeeStore.employee_id == principal.employee_id
        )
    return list(db.execute(stmt.order_by(Store.name)).scalars().all())


def assert_store_scope(db: Session, principal: Principal, target_store_id: uuid.UUID) -> None:
    if any(store.id == target_store_id for store in list_accessible_stores(db, principal)):
        return
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='Store not available')


def store_access(store_id: uuid.UUID, request: Request, db: Session = Depends(get_db)) -> uuid.UUID:
    principal = get_current_principal(request)
    assert_store_scope(db, principal, store_id)
    return store_id
