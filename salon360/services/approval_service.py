from __future__ import annotations

import logging
import uuid
from datetime import date

from sqlalchemy.orm import Session

from salon360.auth import Principal
from salon360.models import ApprovalStatus, TicketAction
from salon360.permissions import MANAGER, OWNER, SPA_EXPERT, SUPERVISOR, TECHNICIAN, has_any_role
from salon360.rpc import call_rows, call_scalar
from salon360.services.activity_service import log_ticket_activity
from salon360.services.timing_service import format_hours_remaining, urgency_level

logger = logging.getLogger(__name__)


def merge_unique_by_ticket(*row_sets: list[dict]) -> list[dict]:
    # Later rows for the same ticket replace earlier ones; first-seen order is kept.
    merged: dict = {}
    for rows in row_sets:
        for row in rows:
            merged[row['ticket_id']] = row
    return list(merged.values())


def decorate_pending(row: dict) -> dict:
    hours_remaining = float(row.get('hours_remaining') or 0)
    return {
        **row,
        'urgency': urgency_level(hours_remaining),
        'time_remaining': format_hours_remaining(hours_remaining),
    }


def list_pending_approvals(db: Session, principal: Principal, store_id: uuid.UUID) -> list[dict]:
    row_sets: list[list[dict]] = []
    if has_any_role(principal.roles, {TECHNICIAN, SPA_EXPERT}):
        row_sets.append(
            call_rows(
                db,
                'get_pending_approvals_for_technician',
                p_employee_id=principal.employee_id,
                p_store_id=store_id,
            )
        )
    if has_any_role(principal.roles, {SUPERVISOR}):
        row_sets.append(
            call_rows(
                db,
                'get_pending_approvals_for_supervisor',
                p_employee_id=principal.employee_id,
                p_store_id=store_id,
            )
        )
    if has_any_role(principal.roles, {OWNER, MANAGER}):
        row_sets.append(call_rows(db, 'get_pending_approvals_for_management', p_store_id=store_id))

    return [decorate_pending(row) for row in merge_unique_by_ticket(*row_sets)]


def count_pending_approvals(db: Session, principal: Principal, store_id: uuid.UUID) -> int:
    if principal.role_permission in {TECHNICIAN, SUPERVISOR}:
        rows = call_rows(
            db,
            'get_pending_approvals_for_technician',
            p_employee_id=principal.employee_id,
            p_store_id=store_id,
        )
    else:
        rows = call_rows(db, 'get_pending_approvals_for_management', p_store_id=store_id)
    return len(rows)


def approval_statistics(db: Session, store_id: uuid.UUID, start_date: date, end_date: date) -> dict | None:
    rows = call_rows(
        db,
        'get_approval_statistics',
        p_store_id=store_id,
        p_start_date=start_date,
        p_end_date=end_date,
    )
    return rows[0] if rows else None


def _procedure_result(result) -> tuple[bool, str]:
    if not isinstance(result, dict):
        return False, 'Unexpected response from approval service'
    return bool(result.get('success')), str(result.get('message') or '')


def approve_ticket(db: Session, principal: Principal, ticket_id: uuid.UUID, ticket_no: str | None = None) -> str:
    result = call_scalar(db, 'approve_ticket', p_ticket_id=ticket_id, p_employee_id=principal.employee_id)
    success, message = _procedure_result(result)
    if not success:
        raise ValueError(message or 'Failed to approve ticket')

    log_ticket_activity(
        db,
        ticket_id=ticket_id,
        employee_id=principal.employee_id,
        action=TicketAction.APPROVED,
        description=f'{principal.display_name} approved ticket',
        changes={'approval_status': ApprovalStatus.APPROVED.value, 'ticket_no': ticket_no},
    )
    logger.info('Ticket %s approved by %s', ticket_id, principal.employee_id)
    return message or 'Ticket approved successfully'


def reject_ticket(
    db: Session,
    principal: Principal,
    ticket_id: uuid.UUID,
    reason: str,
    ticket_no: str | None = None,
) -> str:
    reason = (reason or '').strip()
    if not reason:
        raise ValueError('Please provide a rejection reason')

    result = call_scalar(
        db,
        'reject_ticket',
        p_ticket_id=ticket_id,
        p_employee_id=principal.employee_id,
        p_rejection_reason=reason,
    )
    success, message = _procedure_result(result)
    if not success:
        raise ValueError(message or 'Failed to reject ticket')

    log_ticket_activity(
        db,
        ticket_id=ticket_id,
        employee_id=principal.employee_id,
        action=TicketAction.REJECTED,
        description=f'{principal.display_name} rejected ticket: {reason}',
        changes={
            'approval_status': ApprovalStatus.REJECTED.value,
            'rejection_reason': reason,
            'ticket_no': ticket_no,
        },
    )
    logger.info('Ticket %s rejected by %s', ticket_id, principal.employee_id)
    return 'Ticket rejected and sent for admin review'
