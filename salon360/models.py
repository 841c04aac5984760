from __future__ import annotations

import uuid
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    Text,
    Time,
    Uuid,
    func,
)
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


class EmployeeRole(str, Enum):
    TECHNICIAN = 'Technician'
    RECEPTIONIST = 'Receptionist'
    SUPERVISOR = 'Supervisor'
    MANAGER = 'Manager'
    OWNER = 'Owner'
    SPA_EXPERT = 'Spa Expert'


class RolePermission(str, Enum):
    ADMIN = 'Admin'
    RECEPTIONIST = 'Receptionist'
    TECHNICIAN = 'Technician'
    SUPERVISOR = 'Supervisor'


class EmployeeStatus(str, Enum):
    ACTIVE = 'Active'
    INACTIVE = 'Inactive'


class PayType(str, Enum):
    HOURLY = 'hourly'
    DAILY = 'daily'


class CustomerType(str, Enum):
    APPOINTMENT = 'Appointment'
    REQUESTED = 'Requested'
    ASSIGNED = 'Assigned'


class PaymentMethod(str, Enum):
    CASH = 'Cash'
    CARD = 'Card'
    MIXED = 'Mixed'
    OTHER = 'Other'


class ApprovalStatus(str, Enum):
    PENDING_APPROVAL = 'pending_approval'
    APPROVED = 'approved'
    REJECTED = 'rejected'
    AUTO_APPROVED = 'auto_approved'


class TicketAction(str, Enum):
    CREATED = 'created'
    UPDATED = 'updated'
    CLOSED = 'closed'
    REOPENED = 'reopened'
    APPROVED = 'approved'
    REJECTED = 'rejected'
    DELETED = 'deleted'


class QueueStatus(str, Enum):
    READY = 'ready'
    BUSY = 'busy'
    NEUTRAL = 'neutral'


class AttendanceStatus(str, Enum):
    CHECKED_IN = 'checked_in'
    CHECKED_OUT = 'checked_out'
    AUTO_CHECKED_OUT = 'auto_checked_out'


# Enum-valued columns are text with CHECK constraints in the hosted schema.


class Store(Base):
    __tablename__ = 'stores'

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    code: Mapped[str] = mapped_column(Text, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default='true')
    opening_time: Mapped[time | None] = mapped_column(Time)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Employee(Base):
    __tablename__ = 'employees'

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    legal_name: Mapped[str] = mapped_column(Text, nullable=False)
    display_name: Mapped[str] = mapped_column(Text, nullable=False)
    role: Mapped[list[str]] = mapped_column(ARRAY(Text), nullable=False, default=list)
    role_permission: Mapped[str | None] = mapped_column(Text)
    status: Mapped[str] = mapped_column(Text, nullable=False, default=EmployeeStatus.ACTIVE.value)
    pay_type: Mapped[str | None] = mapped_column(Text, default=PayType.HOURLY.value)
    can_reset_pin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default='false')
    notes: Mapped[str] = mapped_column(Text, nullable=False, default='', server_default='')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class EmployeeStore(Base):
    __tablename__ = 'employee_stores'

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    employee_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey('employees.id', ondelete='CASCADE'), nullable=False)
    store_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey('stores.id', ondelete='CASCADE'), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Service(Base):
    __tablename__ = 'services'

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    code: Mapped[str] = mapped_column(Text, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    base_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal('0.00'))
    duration_min: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    category: Mapped[str] = mapped_column(Text, nullable=False, default='')
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default='true')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class StoreService(Base):
    __tablename__ = 'store_services'

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    store_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey('stores.id', ondelete='CASCADE'), nullable=False)
    service_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey('services.id', ondelete='CASCADE'), nullable=False)
    price_override: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    duration_override: Mapped[int | None] = mapped_column(Integer)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default='true')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class SaleTicket(Base):
    __tablename__ = 'sale_tickets'

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    ticket_no: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    store_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey('stores.id'))
    ticket_date: Mapped[date] = mapped_column(Date, nullable=False)
    opened_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey('employees.id'))
    customer_type: Mapped[str | None] = mapped_column(Text)
    customer_name: Mapped[str] = mapped_column(Text, nullable=False, default='', server_default='')
    customer_phone: Mapped[str] = mapped_column(Text, nullable=False, default='', server_default='')
    payment_method: Mapped[str | None] = mapped_column(Text)
    discount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal('0.00'))
    tax: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal('0.00'))
    total: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal('0.00'))
    location: Mapped[str] = mapped_column(Text, nullable=False, default='', server_default='')
    notes: Mapped[str] = mapped_column(Text, nullable=False, default='', server_default='')
    created_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey('employees.id'))
    saved_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey('employees.id'))
    closed_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey('employees.id'))
    closed_by_roles: Mapped[list | None] = mapped_column(JSON)
    approval_status: Mapped[str | None] = mapped_column(Text)
    approval_deadline: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    approved_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey('employees.id'))
    rejection_reason: Mapped[str | None] = mapped_column(Text)
    requires_admin_review: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default='false')
    requires_higher_approval: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default='false')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    items: Mapped[list[TicketItem]] = relationship(
        back_populates='ticket',
        order_by='TicketItem.created_at',
        cascade='all, delete-orphan',
    )


class TicketItem(Base):
    __tablename__ = 'ticket_items'

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    sale_ticket_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey('sale_tickets.id', ondelete='CASCADE'), nullable=False
    )
    service_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey('services.id'))
    custom_service_name: Mapped[str | None] = mapped_column(Text)
    employee_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey('employees.id'), nullable=False)
    qty: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal('1'))
    price_each: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal('0.00'))
    addon_details: Mapped[str] = mapped_column(Text, nullable=False, default='', server_default='')
    addon_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal('0.00'))
    discount_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal('0.00'))
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal('0.00'))
    tip_customer_cash: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal('0.00'))
    tip_customer_card: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal('0.00'))
    tip_receptionist: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal('0.00'))
    notes: Mapped[str] = mapped_column(Text, nullable=False, default='', server_default='')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    ticket: Mapped[SaleTicket] = relationship(back_populates='items')
    service: Mapped[Service | None] = relationship(lazy='joined')
    employee: Mapped[Employee] = relationship(lazy='joined', foreign_keys=[employee_id])


class TicketActivityLog(Base):
    __tablename__ = 'ticket_activity_log'

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    ticket_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    employee_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey('employees.id'))
    action: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default='', server_default='')
    changes: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class TechnicianReadyQueue(Base):
    __tablename__ = 'technician_ready_queue'

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    employee_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey('employees.id', ondelete='CASCADE'), nullable=False)
    store_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey('stores.id', ondelete='CASCADE'), nullable=False)
    ready_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    status: Mapped[str] = mapped_column(Text, nullable=False, default=QueueStatus.READY.value)
    current_open_ticket_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey('sale_tickets.id'))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class AttendanceRecord(Base):
    __tablename__ = 'attendance_records'

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    employee_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey('employees.id'), nullable=False)
    store_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey('stores.id'), nullable=False)
    work_date: Mapped[date] = mapped_column(Date, nullable=False)
    check_in_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    check_out_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    last_activity_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    pay_type: Mapped[str] = mapped_column(Text, nullable=False, default=PayType.HOURLY.value)
    status: Mapped[str] = mapped_column(Text, nullable=False, default=AttendanceStatus.CHECKED_IN.value)
    total_hours: Mapped[Decimal | None] = mapped_column(Numeric(6, 2))
    notes: Mapped[str] = mapped_column(Text, nullable=False, default='', server_default='')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class AttendanceComment(Base):
    __tablename__ = 'attendance_comments'

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    attendance_record_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey('attendance_records.id', ondelete='CASCADE'), nullable=False
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey('employees.id'), nullable=False)
    comment: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class UserSession(Base):
    __tablename__ = 'user_sessions'

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    employee_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey('employees.id', ondelete='CASCADE'), nullable=False)
    session_token: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    device_info: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    last_activity_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class UserPreference(Base):
    __tablename__ = 'user_preferences'

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    employee_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey('employees.id', ondelete='CASCADE'), nullable=False, unique=True
    )
    locale: Mapped[str] = mapped_column(Text, nullable=False, default='en', server_default='en')
    default_store_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey('stores.id', ondelete='SET NULL'))
    settings: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
