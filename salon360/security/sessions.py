from __future__ import annotations

import secrets
import uuid
from datetime import datetime, timedelta, timezone

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import delete, select

from salon360.auth import Principal, principal_from_employee
from salon360.config import settings
from salon360.db import SessionLocal
from salon360.models import Employee, UserSession


AUTH_EXEMPT_PATHS = {'/auth/login', '/robots.txt', '/health'}
AUTH_EXEMPT_PREFIXES = ('/kiosk/',)


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _session_expiry(now: datetime | None = None) -> datetime:
    return (now or _now()) + timedelta(minutes=settings.session_idle_minutes)


def create_user_session(db, employee_id: uuid.UUID, ip: str | None, user_agent: str | None) -> str:
    token = secrets.token_urlsafe(48)
    now = _now()
    db.add(
        UserSession(
            employee_id=employee_id,
            session_token=token,
            device_info={'ip': ip, 'user_agent': user_agent},
            last_activity_at=now,
            expires_at=_session_expiry(now),
        )
    )
    db.flush()
    return token


def revoke_user_session(db, token: str) -> None:
    db.execute(delete(UserSession).where(UserSession.session_token == token))


def load_principal_from_token(db, token: str | None) -> Principal | None:
    if not token:
        return None

    row = db.execute(
        select(UserSession, Employee)
        .join(Employee, Employee.id == UserSession.employee_id)
        .where(UserSession.session_token == token)
    ).one_or_none()
    if not row:
        return None

    user_session, employee = row
    now = _now()
    if user_session.expires_at <= now:
        db.delete(user_session)
        return None

    user_session.last_activity_at = now
    user_session.expires_at = _session_expiry(now)
    return principal_from_employee(employee)


def _is_exempt(path: str) -> bool:
    return path in AUTH_EXEMPT_PATHS or path.startswith(AUTH_EXEMPT_PREFIXES)


def install_auth_session_middleware(app: FastAPI) -> None:
    @app.middleware('http')
    async def auth_session_middleware(request: Request, call_next):
        token = request.cookies.get(settings.session_cookie_name)
        with SessionLocal() as db:
            principal = load_principal_from_token(db, token)
            request.state.principal = principal
            db.commit()

        if not _is_exempt(request.url.path) and request.state.principal is None:
            return JSONResponse({'detail': 'Session expired'}, status_code=401)

        return await call_next(request)
