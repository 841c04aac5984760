import uuid
from datetime import date
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from salon360.services.employee_service import EmployeeDraft
from salon360.services.service_catalog_service import StoreServiceUpdate
from salon360.services.ticket_service import TicketDraft, TicketItemDraft


class PinLogin(BaseModel):
    pin: str = Field(..., min_length=1, max_length=8)


class PinChange(BaseModel):
    old_pin: str
    new_pin: str
    confirm_pin: str


class StoreSelection(BaseModel):
    store_id: uuid.UUID


class KioskRequest(BaseModel):
    pin: str
    store_id: Optional[uuid.UUID] = None


class TicketItemIn(BaseModel):
    id: Optional[uuid.UUID] = None
    service_id: Optional[uuid.UUID] = None
    custom_service_name: Optional[str] = None
    employee_id: Optional[uuid.UUID] = None
    qty: Decimal = Decimal('1')
    price_each: Optional[Decimal] = None

    def to_draft(self) -> TicketItemDraft:
        return TicketItemDraft(
            service_id=self.service_id,
            custom_service_name=self.custom_service_name,
            employee_id=self.employee_id,
            qty=self.qty,
            price_each=self.price_each,
            item_id=self.id,
        )


class TicketIn(BaseModel):
    customer_type: Optional[str] = None
    technician_id: Optional[uuid.UUID] = None
    items: List[TicketItemIn] = []
    customer_name: str = ''
    customer_phone: str = ''
    payment_method: Optional[str] = None
    tip_customer: Decimal = Field(default=Decimal('0'), ge=0)
    tip_receptionist: Decimal = Field(default=Decimal('0'), ge=0)
    addon_details: str = ''
    addon_price: Decimal = Field(default=Decimal('0'), ge=0)
    discount_percentage: Decimal = Field(default=Decimal('0'), ge=0, le=100)
    discount_amount: Decimal = Field(default=Decimal('0'), ge=0)
    notes: str = ''

    def to_draft(self) -> TicketDraft:
        return TicketDraft(
            customer_type=self.customer_type or None,
            technician_id=self.technician_id,
            items=[item.to_draft() for item in self.items],
            customer_name=self.customer_name,
            customer_phone=self.customer_phone,
            payment_method=self.payment_method or None,
            tip_customer=self.tip_customer,
            tip_receptionist=self.tip_receptionist,
            addon_details=self.addon_details,
            addon_price=self.addon_price,
            discount_percentage=self.discount_percentage,
            discount_amount=self.discount_amount,
            notes=self.notes,
        )


class TicketCreate(TicketIn):
    ticket_date: Optional[date] = None


class TicketClose(BaseModel):
    ticket: Optional[TicketIn] = None


class TicketComment(BaseModel):
    notes: str = ''


class BusyTechnicianAssignment(BaseModel):
    current_ticket_id: uuid.UUID


class RejectionIn(BaseModel):
    reason: str = ''
    ticket_no: Optional[str] = None


class ApprovalIn(BaseModel):
    ticket_no: Optional[str] = None


class AttendanceCommentIn(BaseModel):
    comment: str


class EmployeeIn(BaseModel):
    display_name: str
    role: List[str] = ['Technician']
    status: str = 'Active'
    pay_type: str = 'hourly'
    store_ids: List[uuid.UUID] = []
    notes: str = ''

    def to_draft(self) -> EmployeeDraft:
        return EmployeeDraft(
            display_name=self.display_name,
            role=list(self.role),
            status=self.status,
            pay_type=self.pay_type,
            store_ids=list(self.store_ids),
            notes=self.notes,
        )


class StoreServiceIn(BaseModel):
    price: Optional[Decimal] = None
    duration_min: Optional[int] = None
    active: bool = True

    def to_update(self) -> StoreServiceUpdate:
        return StoreServiceUpdate(price=self.price, duration_min=self.duration_min, active=self.active)
