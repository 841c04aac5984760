from __future__ import annotations

from collections.abc import Iterable

ADMIN = 'Admin'
OWNER = 'Owner'
MANAGER = 'Manager'
SUPERVISOR = 'Supervisor'
RECEPTIONIST = 'Receptionist'
TECHNICIAN = 'Technician'
SPA_EXPERT = 'Spa Expert'

EVERYONE = frozenset({ADMIN, RECEPTIONIST, TECHNICIAN, SPA_EXPERT, SUPERVISOR, MANAGER, OWNER})
FRONT_DESK = frozenset({ADMIN, RECEPTIONIST, SUPERVISOR, MANAGER, OWNER})
OWNERS = frozenset({ADMIN, OWNER})
APPROVERS = frozenset({ADMIN, TECHNICIAN, SPA_EXPERT, SUPERVISOR, OWNER})
PIN_RESETTERS = frozenset({ADMIN, SUPERVISOR, MANAGER, OWNER})
SERVICE_PROVIDERS = frozenset({TECHNICIAN, SPA_EXPERT})

PERMISSIONS: dict[str, frozenset[str]] = {
    'tickets.view': EVERYONE,
    'tickets.create': FRONT_DESK,
    'tickets.delete': FRONT_DESK,
    'tickets.view_all': FRONT_DESK,
    'tickets.close': FRONT_DESK,
    'tickets.reopen': FRONT_DESK,
    'tickets.approve': APPROVERS,
    'tickets.view_pending_approvals': APPROVERS,
    'tickets.review_rejected': OWNERS,
    'end_of_day.view': EVERYONE,
    'end_of_day.view_all': FRONT_DESK,
    'end_of_day.export': FRONT_DESK,
    'employees.view': FRONT_DESK,
    'employees.create': OWNERS,
    'employees.edit': OWNERS,
    'employees.delete': OWNERS,
    'employees.reset_pin': PIN_RESETTERS,
    'employees.assign_roles': OWNERS,
    'services.view': FRONT_DESK,
    'services.create': OWNERS,
    'services.edit': OWNERS,
    'services.delete': OWNERS,
    'attendance.view': EVERYONE,
    'attendance.comment': EVERYONE,
    'attendance.export': FRONT_DESK,
}

PAGE_PERMISSIONS: dict[str, str | None] = {
    'tickets': 'tickets.view',
    'approvals': 'tickets.view_pending_approvals',
    'eod': 'end_of_day.view',
    'attendance': 'attendance.view',
    'technicians': 'employees.view',
    'services': 'services.view',
    'profile': None,
}


def has_any_role(roles: Iterable[str] | str, allowed: Iterable[str]) -> bool:
    allowed_set = set(allowed)
    if isinstance(roles, str):
        return roles in allowed_set
    return any(role in allowed_set for role in roles)


def is_allowed(roles: Iterable[str] | str, permission: str) -> bool:
    try:
        allowed = PERMISSIONS[permission]
    except KeyError as exc:
        raise ValueError(f'Unknown permission: {permission}') from exc
    return has_any_role(roles, allowed)


def can_edit_ticket(roles: Iterable[str] | str, *, is_closed: bool, is_approved: bool = False) -> bool:
    if has_any_role(roles, OWNERS):
        return True
    if has_any_role(roles, {RECEPTIONIST, SUPERVISOR, MANAGER}):
        return not is_closed and not is_approved
    return False


def can_edit_ticket_notes(roles: Iterable[str] | str, *, is_closed: bool) -> bool:
    if has_any_role(roles, OWNERS):
        return True
    if has_any_role(roles, {RECEPTIONIST, SUPERVISOR, MANAGER, TECHNICIAN, SPA_EXPERT}):
        return not is_closed
    return False


def permission_message(action: str, required_role: str) -> str:
    return f'Permission required: {required_role} only - {action}'


def can_access_page(page: str, roles: Iterable[str] | str) -> bool:
    if page not in PAGE_PERMISSIONS:
        return False
    permission = PAGE_PERMISSIONS[page]
    if permission is None:
        return True
    return is_allowed(roles, permission)


def accessible_pages(roles: Iterable[str] | str) -> list[str]:
    pages = ['tickets', 'profile']
    for page in ('approvals', 'eod', 'attendance', 'technicians', 'services'):
        if can_access_page(page, roles):
            pages.append(page)
    return pages
