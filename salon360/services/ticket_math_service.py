from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from salon360.models import PaymentMethod

CENT = Decimal('0.01')
ZERO = Decimal('0.00')


@dataclass(frozen=True)
class LineInput:
    qty: Decimal
    price_each: Decimal


@dataclass(frozen=True)
class TicketMathInput:
    lines: list[LineInput]
    payment_method: str | None = None
    tip_customer: Decimal = ZERO
    tip_receptionist: Decimal = ZERO
    addon_price: Decimal = ZERO
    discount_percentage: Decimal = ZERO
    discount_amount: Decimal = ZERO


@dataclass(frozen=True)
class TicketTotals:
    subtotal: Decimal
    discount: Decimal
    total: Decimal
    total_tips: Decimal
    cash_tips: Decimal
    card_tips: Decimal
    total_collected: Decimal
    tip_customer_cash: Decimal
    tip_customer_card: Decimal


def quantize_money(value: Decimal) -> Decimal:
    return value.quantize(CENT)


def parse_money(value: object, *, default: Decimal = ZERO) -> Decimal:
    """Lenient numeric parsing for form-style input; blanks and junk become ``default``."""
    if value is None:
        return default
    if isinstance(value, Decimal):
        return value
    text = str(value).strip()
    if not text:
        return default
    try:
        parsed = Decimal(text)
    except InvalidOperation:
        return default
    if not parsed.is_finite():
        return default
    return parsed


def calculate_subtotal(lines: list[LineInput], addon_price: Decimal = ZERO) -> Decimal:
    items_total = sum((line.qty * line.price_each for line in lines), ZERO)
    return items_total + addon_price


def calculate_discount(subtotal: Decimal, discount_percentage: Decimal, discount_amount: Decimal) -> Decimal:
    return subtotal * discount_percentage / Decimal('100') + discount_amount


def split_customer_tip(tip_customer: Decimal, payment_method: str | None) -> tuple[Decimal, Decimal]:
    """Return ``(cash, card)`` portions of the customer tip."""
    if payment_method == PaymentMethod.CARD.value:
        return ZERO, tip_customer
    return tip_customer, ZERO


def calculate_ticket_totals(data: TicketMathInput) -> TicketTotals:
    subtotal = calculate_subtotal(data.lines, data.addon_price)
    discount = calculate_discount(subtotal, data.discount_percentage, data.discount_amount)
    total = max(ZERO, subtotal - discount)

    tip_cash, tip_card = split_customer_tip(data.tip_customer, data.payment_method)
    total_tips = data.tip_customer + data.tip_receptionist
    total_collected = max(ZERO, subtotal + total_tips - discount)

    return TicketTotals(
        subtotal=quantize_money(subtotal),
        discount=quantize_money(discount),
        total=quantize_money(total),
        total_tips=quantize_money(total_tips),
        cash_tips=quantize_money(tip_cash + data.tip_receptionist),
        card_tips=quantize_money(tip_card),
        total_collected=quantize_money(total_collected),
        tip_customer_cash=quantize_money(tip_cash),
        tip_customer_card=quantize_money(tip_card),
    )


def item_revenue(qty: Decimal, price_each: Decimal, addon_price: Decimal = ZERO) -> Decimal:
    return quantize_money(qty * price_each + addon_price)
