from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from salon360.auth import Principal
from salon360.models import Employee, EmployeeRole, EmployeeStatus, EmployeeStore, PayType, RolePermission
from salon360.permissions import is_allowed
from salon360.services.queue_service import normalize_sort_text

LISTED_ROLES = frozenset(
    {
        EmployeeRole.TECHNICIAN.value,
        EmployeeRole.RECEPTIONIST.value,
        EmployeeRole.SUPERVISOR.value,
        EmployeeRole.SPA_EXPERT.value,
    }
)


@dataclass(frozen=True)
class EmployeeDraft:
    display_name: str
    role: list[str] = field(default_factory=lambda: [EmployeeRole.TECHNICIAN.value])
    status: str = EmployeeStatus.ACTIVE.value
    pay_type: str = PayType.HOURLY.value
    store_ids: list[uuid.UUID] = field(default_factory=list)
    notes: str = ''


def derive_role_permission(roles: list[str]) -> str:
    if EmployeeRole.SUPERVISOR.value in roles:
        return RolePermission.SUPERVISOR.value
    if any(role in roles for role in (EmployeeRole.RECEPTIONIST.value, EmployeeRole.MANAGER.value, EmployeeRole.OWNER.value)):
        return RolePermission.RECEPTIONIST.value
    return RolePermission.TECHNICIAN.value


def filter_employees(
    employees,
    stores_by_employee: dict,
    *,
    store_id: uuid.UUID | None = None,
    search: str | None = None,
    status: str = 'all',
    role: str = 'all',
) -> list:
    needle = normalize_sort_text(search)
    result = []
    for employee in employees:
        roles = employee.role or []
        if not any(r in LISTED_ROLES for r in roles):
            continue
        if store_id is not None:
            assigned = stores_by_employee.get(employee.id) or []
            if assigned and store_id not in assigned:
                continue
        if needle and needle not in normalize_sort_text(employee.display_name):
            continue
        if status != 'all' and employee.status != status:
            continue
        if role != 'all' and role not in roles:
            continue
        result.append(employee)
    return result


def _stores_by_employee(db: Session) -> dict[uuid.UUID, list[uuid.UUID]]:
    stores: dict[uuid.UUID, list[uuid.UUID]] = {}
    for employee_id, store_id in db.execute(select(EmployeeStore.employee_id, EmployeeStore.store_id)).all():
        stores.setdefault(employee_id, []).append(store_id)
    return stores


def list_employees(
    db: Session,
    *,
    store_id: uuid.UUID | None = None,
    search: str | None = None,
    status: str = 'all',
    role: str = 'all',
) -> list[dict]:
    employees = db.execute(select(Employee).order_by(Employee.display_name)).scalars().all()
    stores = _stores_by_employee(db)
    return [
        {
            'id': str(employee.id),
            'display_name': employee.display_name,
            'legal_name': employee.legal_name,
            'role': list(employee.role or []),
            'role_permission': employee.role_permission,
            'status': employee.status,
            'pay_type': employee.pay_type,
            'notes': employee.notes,
            'store_ids': [str(s) for s in stores.get(employee.id, [])],
        }
        for employee in filter_employees(
            employees, stores, store_id=store_id, search=search, status=status, role=role
        )
    ]


def _validate_draft(draft: EmployeeDraft) -> None:
    if not draft.display_name.strip():
        raise ValueError('Display name is required')
    valid_roles = {choice.value for choice in EmployeeRole}
    if not draft.role or any(role not in valid_roles for role in draft.role):
        raise ValueError('Invalid role')
    if draft.status not in {choice.value for choice in EmployeeStatus}:
        raise ValueError('Invalid status')
    if draft.pay_type not in {choice.value for choice in PayType}:
        raise ValueError('Invalid pay type')


def save_employee(
    db: Session,
    principal: Principal,
    draft: EmployeeDraft,
    employee_id: uuid.UUID | None = None,
) -> Employee:
    permission = 'employees.edit' if employee_id else 'employees.create'
    if not is_allowed(principal.permission_roles, permission):
        raise PermissionError('You do not have permission to manage employees')
    _validate_draft(draft)

    display_name = draft.display_name.strip()
    if employee_id:
        employee = db.get(Employee, employee_id)
        if employee is None:
            raise LookupError('Employee not found')
        db.execute(delete(EmployeeStore).where(EmployeeStore.employee_id == employee.id))
    else:
        employee = Employee()
        db.add(employee)

    employee.display_name = display_name
    employee.legal_name = display_name
    employee.role = list(draft.role)
    employee.role_permission = derive_role_permission(draft.role)
    employee.status = draft.status
    employee.pay_type = draft.pay_type
    employee.notes = draft.notes
    employee.updated_at = datetime.now(tz=timezone.utc)
    db.flush()

    for store_id in dict.fromkeys(draft.store_ids):
        db.add(EmployeeStore(employee_id=employee.id, store_id=store_id))
    return employee
