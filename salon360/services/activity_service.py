from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from salon360.models import Employee, TicketAction, TicketActivityLog


def log_ticket_activity(
    db: Session,
    *,
    ticket_id: uuid.UUID,
    employee_id: uuid.UUID | None,
    action: TicketAction,
    description: str,
    changes: dict | None = None,
) -> None:
    db.add(
        TicketActivityLog(
            ticket_id=ticket_id,
            employee_id=employee_id,
            action=action.value,
            description=description,
            changes=changes or {},
        )
    )


def list_ticket_activity(db: Session, ticket_id: uuid.UUID) -> list[dict]:
    rows = db.execute(
        select(TicketActivityLog, Employee.display_name)
        .outerjoin(Employee, Employee.id == TicketActivityLog.employee_id)
        .where(TicketActivityLog.ticket_id == ticket_id)
        .order_by(TicketActivityLog.created_at.desc())
    ).all()
    return [
        {
            'id': str(entry.id),
            'action': entry.action,
            'description': entry.description,
            'changes': entry.changes or {},
            'employee_name': display_name,
            'created_at': entry.created_at.isoformat() if entry.created_at else None,
        }
        for entry, display_name in rows
    ]
