from __future__ import annotations

import unittest
import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

from salon360.auth import Principal
from salon360.models import TicketAction
from salon360.services.ticket_math_service import calculate_ticket_totals
from salon360.services.ticket_service import (
    TicketDraft,
    TicketItemDraft,
    _apply_items,
    close_ticket,
    complete_for_reassignment,
    create_ticket,
    delete_ticket,
    format_ticket_number,
    mark_ticket_completed,
    matches_approval_filter,
    reopen_ticket,
    ticket_math_input,
    ticket_row,
    ticket_technicians,
    update_ticket,
    validate_ticket_draft,
)

BASE = datetime(2025, 3, 4, 14, 0, tzinfo=timezone.utc)
TECH_ID = uuid.uuid4()
SERVICE_ID = uuid.uuid4()


def _draft(**overrides) -> TicketDraft:
    values = {
        'customer_type': 'Assigned',
        'technician_id': TECH_ID,
        'items': [TicketItemDraft(service_id=SERVICE_ID)],
    }
    values.update(overrides)
    return TicketDraft(**values)


class TicketValidationTests(unittest.TestCase):
    def setUp(self) -> None:
        self.employees = {TECH_ID: SimpleNamespace(role=['Technician'], display_name='Ann')}
        self.services = {SERVICE_ID: SimpleNamespace(category='Extensions des Ongles', name='Full Set')}

    def _validate(self, draft: TicketDraft) -> None:
        validate_ticket_draft(draft, employees_by_id=self.employees, services_by_id=self.services)

    def test_valid_draft_passes(self) -> None:
        self._validate(_draft())

    def test_required_fields(self) -> None:
        cases = [
            (_draft(customer_type=None), 'Customer Type is required'),
            (_draft(technician_id=None), 'Technician is required'),
            (_draft(items=[]), 'Service is required'),
            (_draft(payment_method='Voucher'), 'Invalid payment method'),
            (_draft(items=[TicketItemDraft(service_id=SERVICE_ID, qty=Decimal('0'))]), 'Quantity must be greater than 0'),
        ]
        for draft, message in cases:
            with self.subTest(message=message):
                with self.assertRaisesRegex(ValueError, message):
                    self._validate(draft)

    def test_custom_service_needs_name_and_price(self) -> None:
        with self.assertRaisesRegex(ValueError, 'Custom service name is required'):
            self._validate(_draft(items=[TicketItemDraft(custom_service_name='  ', price_each=Decimal('10'))]))
        with self.assertRaisesRegex(ValueError, 'Custom service price must be greater than 0'):
            self._validate(_draft(items=[TicketItemDraft(custom_service_name='Gel fix')]))
        self._validate(_draft(items=[TicketItemDraft(custom_service_name='Gel fix', price_each=Decimal('10'))]))

    def test_spa_expert_cannot_perform_extensions(self) -> None:
        self.employees[TECH_ID] = SimpleNamespace(role=['Spa Expert'], display_name='Lina')
        with self.assertRaisesRegex(ValueError, 'Lina cannot perform Full Set'):
            self._validate(_draft())

        self.services[SERVICE_ID] = SimpleNamespace(category='Soins de Pédicure', name='Pedicure')
        self._validate(_draft())


class TicketHelpersTests(unittest.TestCase):
    def test_ticket_number_sequence(self) -> None:
        self.assertEqual(format_ticket_number(date(2025, 3, 4), None), 'ST-20250304-0001')
        self.assertEqual(format_ticket_number(date(2025, 3, 4), 'ST-20250304-0041'), 'ST-20250304-0042')
        self.assertEqual(format_ticket_number(date(2025, 3, 4), 'ST-bad'), 'ST-20250304-0001')

    def test_approval_filters(self) -> None:
        open_ticket = SimpleNamespace(closed_at=None, approval_status=None)
        closed_ticket = SimpleNamespace(closed_at=BASE, approval_status=None)
        pending = SimpleNamespace(closed_at=BASE, approval_status='pending_approval')

        self.assertTrue(matches_approval_filter(open_ticket, 'all'))
        self.assertTrue(matches_approval_filter(open_ticket, 'open'))
        self.assertFalse(matches_approval_filter(closed_ticket, 'open'))
        self.assertTrue(matches_approval_filter(closed_ticket, 'closed'))
        self.assertFalse(matches_approval_filter(pending, 'closed'))
        self.assertTrue(matches_approval_filter(pending, 'pending_approval'))
        self.assertFalse(matches_approval_filter(pending, 'approved'))

    def test_first_item_carries_ticket_level_amounts(self) -> None:
        """Tips, add-on and discount are stored once on the first item, not repeated on every item,
        so per-technician end-of-day figures count them once."""
        other_tech = uuid.uuid4()
        draft = _draft(
            items=[
                TicketItemDraft(service_id=SERVICE_ID),
                TicketItemDraft(service_id=SERVICE_ID, employee_id=other_tech),
            ],
            payment_method='Card',
            tip_customer=Decimal('6'),
            tip_receptionist=Decimal('2'),
            addon_details='Nail art',
            addon_price=Decimal('5'),
            discount_amount=Decimal('3'),
        )
        prices = [Decimal('20'), Decimal('15')]
        totals = calculate_ticket_totals(ticket_math_input(draft, prices))
        ticket = SimpleNamespace(items=[])

        _apply_items(ticket, draft, prices, totals)

        first, second = ticket.items
        self.assertEqual(first.employee_id, TECH_ID)
        self.assertEqual(second.employee_id, other_tech)
        self.assertEqual(first.tip_customer_card, Decimal('6.00'))
        self.assertEqual(first.tip_customer_cash, Decimal('0.00'))
        self.assertEqual(first.tip_receptionist, Decimal('2.00'))
        self.assertEqual(first.addon_price, Decimal('5.00'))
        self.assertEqual(first.discount_amount, Decimal('3.00'))
        self.assertEqual(second.tip_customer_card, Decimal('0.00'))
        self.assertEqual(second.addon_details, '')
        self.assertEqual(second.price_each, Decimal('15.00'))
        self.assertLess(first.created_at, second.created_at)
        self.assertEqual(totals.total, Decimal('37.00'))

    def test_unknown_item_id_is_rejected(self) -> None:
        draft = _draft(items=[TicketItemDraft(service_id=SERVICE_ID, item_id=uuid.uuid4())])
        totals = calculate_ticket_totals(ticket_math_input(draft, [Decimal('10')]))
        with self.assertRaises(LookupError):
            _apply_items(SimpleNamespace(items=[]), draft, [Decimal('10')], totals)

    def test_ticket_row(self) -> None:
        item = SimpleNamespace(
            service=SimpleNamespace(code='MANI', duration_min=30),
            employee=SimpleNamespace(display_name='Ann'),
            tip_customer_cash=Decimal('0'),
            tip_customer_card=Decimal('5'),
            tip_receptionist=Decimal('2'),
        )
        ticket = SimpleNamespace(
            id=uuid.uuid4(),
            ticket_no='ST-20250304-0001',
            ticket_date=date(2025, 3, 4),
            customer_type=None,
            customer_name='Mia',
            customer_phone='',
            payment_method='Card',
            total=Decimal('50'),
            opened_at=BASE,
            closed_at=BASE + timedelta(minutes=45),
            completed_at=None,
            approval_status='pending_approval',
            approval_deadline=BASE + timedelta(minutes=50, hours=24, seconds=1800),
            items=[item],
        )

        row = ticket_row(ticket, now=BASE + timedelta(minutes=50))

        self.assertEqual(row['customer_type'], '-')
        self.assertEqual(row['service_code'], 'MANI')
        self.assertEqual(row['technician_name'], 'Ann')
        self.assertEqual(row['tip_customer'], Decimal('5.00'))
        self.assertEqual(row['total'], Decimal('50.00'))
        self.assertEqual(row['elapsed_minutes'], 45)
        self.assertTrue(row['time_deviation_high'])
        self.assertEqual(row['approval_deadline_label'], '24h 30m remaining')

    def test_ticket_technicians_are_unique_and_sorted(self) -> None:
        ann, bob = uuid.uuid4(), uuid.uuid4()
        tickets = [
            SimpleNamespace(items=[SimpleNamespace(employee_id=bob, employee=SimpleNamespace(display_name='bob'))]),
            SimpleNamespace(
                items=[
                    SimpleNamespace(employee_id=ann, employee=SimpleNamespace(display_name='Ann')),
                    SimpleNamespace(employee_id=bob, employee=SimpleNamespace(display_name='bob')),
                ]
            ),
        ]
        self.assertEqual(
            ticket_technicians(tickets),
            [{'id': str(ann), 'name': 'Ann'}, {'id': str(bob), 'name': 'bob'}],
        )

def _principal(*roles: str) -> Principal:
    return Principal(employee_id=uuid.uuid4(), display_name='Rae', roles=roles)


def _ticket(**overrides) -> SimpleNamespace:
    values = {
        'id': uuid.uuid4(),
        'ticket_no': 'ST-20250304-0001',
        'store_id': uuid.uuid4(),
        'customer_name': 'Mia',
        'payment_method': 'Card',
        'total': Decimal('40'),
        'items': [SimpleNamespace(id=uuid.uuid4())],
        'closed_at': None,
        'closed_by': None,
        'closed_by_roles': None,
        'completed_at': None,
        'completed_by': None,
        'approval_status': None,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


@patch('salon360.services.ticket_service.log_ticket_activity')
@patch('salon360.services.ticket_service._get_ticket')
class TicketLifecycleTests(unittest.TestCase):
    def test_receptionist_cannot_edit_closed_ticket(self, get_ticket_mock, log_mock) -> None:
        get_ticket_mock.return_value = _ticket(closed_at=BASE)
        with self.assertRaises(PermissionError):
            update_ticket(MagicMock(), _principal('Receptionist'), uuid.uuid4(), _draft())
        log_mock.assert_not_called()

    def test_owner_cannot_edit_closed_ticket_either(self, get_ticket_mock, log_mock) -> None:
        get_ticket_mock.return_value = _ticket(closed_at=BASE)
        with self.assertRaisesRegex(ValueError, 'Cannot edit closed ticket'):
            update_ticket(MagicMock(), _principal('Owner'), uuid.uuid4(), _draft())
        log_mock.assert_not_called()

    @patch('salon360.services.ticket_service._prepare')
    def test_update_rewrites_ticket_and_logs(self, prepare_mock, get_ticket_mock, log_mock) -> None:
        draft = _draft(customer_name='Lea', payment_method='Cash')
        prices = [Decimal('25')]
        totals = calculate_ticket_totals(ticket_math_input(draft, prices))
        prepare_mock.return_value = (prices, totals)
        ticket = _ticket(items=[])
        get_ticket_mock.return_value = ticket
        principal = _principal('Receptionist')

        update_ticket(MagicMock(), principal, ticket.id, draft)

        self.assertEqual(ticket.customer_name, 'Lea')
        self.assertEqual(ticket.total, Decimal('25.00'))
        self.assertEqual(ticket.saved_by, principal.employee_id)
        self.assertEqual(len(ticket.items), 1)
        self.assertEqual(log_mock.call_args.kwargs['action'], TicketAction.UPDATED)

    @patch('salon360.services.ticket_service.next_ticket_number')
    @patch('salon360.services.ticket_service._prepare')
    def test_create_numbers_ticket_and_logs(self, prepare_mock, number_mock, get_ticket_mock, log_mock) -> None:
        draft = _draft(customer_name='Lea')
        prices = [Decimal('25')]
        prepare_mock.return_value = (prices, calculate_ticket_totals(ticket_math_input(draft, prices)))
        number_mock.return_value = 'ST-20250304-0007'
        db = MagicMock()
        principal = _principal('Receptionist')

        ticket = create_ticket(db, principal, store_id=uuid.uuid4(), ticket_date=date(2025, 3, 4), draft=draft)

        self.assertEqual(ticket.ticket_no, 'ST-20250304-0007')
        self.assertEqual(ticket.created_by, principal.employee_id)
        db.add.assert_called_once_with(ticket)
        self.assertEqual(log_mock.call_args.kwargs['action'], TicketAction.CREATED)
        self.assertEqual(log_mock.call_args.kwargs['changes']['ticket_no'], 'ST-20250304-0007')

    def test_technician_cannot_create(self, get_ticket_mock, log_mock) -> None:
        with self.assertRaises(PermissionError):
            create_ticket(
                MagicMock(), _principal('Technician'), store_id=uuid.uuid4(), ticket_date=date(2025, 3, 4), draft=_draft()
            )
        log_mock.assert_not_called()

    def test_close_requires_items(self, get_ticket_mock, log_mock) -> None:
        get_ticket_mock.return_value = _ticket(items=[])
        with self.assertRaisesRegex(ValueError, 'Cannot close ticket with no items'):
            close_ticket(MagicMock(), _principal('Receptionist'), uuid.uuid4())

    def test_close_requires_cash_or_card(self, get_ticket_mock, log_mock) -> None:
        for method in (None, 'Gift Card'):
            with self.subTest(method=method):
                get_ticket_mock.return_value = _ticket(payment_method=method)
                with self.assertRaisesRegex(ValueError, 'Cash or Card'):
                    close_ticket(MagicMock(), _principal('Receptionist'), uuid.uuid4())
        log_mock.assert_not_called()

    def test_close_twice_is_refused(self, get_ticket_mock, log_mock) -> None:
        get_ticket_mock.return_value = _ticket(closed_at=BASE)
        with self.assertRaisesRegex(ValueError, 'already closed'):
            close_ticket(MagicMock(), _principal('Receptionist'), uuid.uuid4())

    def test_close_records_closer_roles(self, get_ticket_mock, log_mock) -> None:
        ticket = _ticket(payment_method='Cash')
        get_ticket_mock.return_value = ticket
        principal = _principal('Receptionist', 'Technician')

        close_ticket(MagicMock(), principal, ticket.id)

        self.assertIsNotNone(ticket.closed_at)
        self.assertEqual(ticket.closed_by, principal.employee_id)
        self.assertEqual(ticket.closed_by_roles, ['Receptionist', 'Technician'])
        self.assertEqual(log_mock.call_args.kwargs['action'], TicketAction.CLOSED)
        self.assertEqual(log_mock.call_args.kwargs['changes']['closed_by_roles'], ['Receptionist', 'Technician'])

    def test_technician_cannot_close(self, get_ticket_mock, log_mock) -> None:
        with self.assertRaises(PermissionError):
            close_ticket(MagicMock(), _principal('Technician'), uuid.uuid4())
        get_ticket_mock.assert_not_called()

    def test_reopen_clears_close_approval_and_completion(self, get_ticket_mock, log_mock) -> None:
        ticket = _ticket(
            closed_at=BASE,
            closed_by=uuid.uuid4(),
            closed_by_roles=['Receptionist'],
            requires_higher_approval=True,
            approval_status='approved',
            approval_deadline=BASE + timedelta(hours=48),
            approved_at=BASE,
            approved_by=uuid.uuid4(),
            rejection_reason='Wrong price',
            requires_admin_review=True,
            completed_at=BASE,
            completed_by=uuid.uuid4(),
        )
        get_ticket_mock.return_value = ticket

        reopen_ticket(MagicMock(), _principal('Supervisor'), ticket.id)

        for name in (
            'closed_at',
            'closed_by',
            'closed_by_roles',
            'approval_status',
            'approval_deadline',
            'approved_at',
            'approved_by',
            'rejection_reason',
            'completed_at',
            'completed_by',
        ):
            self.assertIsNone(getattr(ticket, name), name)
        self.assertFalse(ticket.requires_higher_approval)
        self.assertFalse(ticket.requires_admin_review)
        self.assertEqual(log_mock.call_args.kwargs['action'], TicketAction.REOPENED)

    def test_technician_cannot_reopen(self, get_ticket_mock, log_mock) -> None:
        with self.assertRaises(PermissionError):
            reopen_ticket(MagicMock(), _principal('Technician'), uuid.uuid4())
        log_mock.assert_not_called()

    def test_complete_refuses_closed_or_completed(self, get_ticket_mock, log_mock) -> None:
        get_ticket_mock.return_value = _ticket(closed_at=BASE)
        with self.assertRaisesRegex(ValueError, 'Cannot mark closed ticket as completed'):
            mark_ticket_completed(MagicMock(), _principal('Technician'), uuid.uuid4())

        get_ticket_mock.return_value = _ticket(completed_at=BASE)
        with self.assertRaisesRegex(ValueError, 'already marked as completed'):
            mark_ticket_completed(MagicMock(), _principal('Technician'), uuid.uuid4())
        log_mock.assert_not_called()

    def test_complete_stamps_ticket_and_logs(self, get_ticket_mock, log_mock) -> None:
        ticket = _ticket()
        get_ticket_mock.return_value = ticket
        principal = _principal('Technician')

        mark_ticket_completed(MagicMock(), principal, ticket.id)

        self.assertIsNotNone(ticket.completed_at)
        self.assertEqual(ticket.completed_by, principal.employee_id)
        self.assertEqual(log_mock.call_args.kwargs['description'], 'Rae marked ticket as completed')

    def test_reassignment_completes_current_ticket(self, get_ticket_mock, log_mock) -> None:
        ticket = _ticket()
        get_ticket_mock.return_value = ticket

        complete_for_reassignment(MagicMock(), _principal('Receptionist'), ticket.id)

        self.assertIsNotNone(ticket.completed_at)
        self.assertIn('technician assigned to new ticket', log_mock.call_args.kwargs['description'])

    def test_delete_refuses_closed_ticket(self, get_ticket_mock, log_mock) -> None:
        get_ticket_mock.return_value = _ticket(closed_at=BASE)
        db = MagicMock()
        with self.assertRaisesRegex(ValueError, 'Cannot delete closed tickets'):
            delete_ticket(db, _principal('Receptionist'), uuid.uuid4())
        db.delete.assert_not_called()
        log_mock.assert_not_called()

    def test_delete_logs_before_removing(self, get_ticket_mock, log_mock) -> None:
        ticket = _ticket()
        get_ticket_mock.return_value = ticket
        db = MagicMock()

        delete_ticket(db, _principal('Manager'), ticket.id)

        self.assertEqual(log_mock.call_args.kwargs['action'], TicketAction.DELETED)
        self.assertEqual(log_mock.call_args.kwargs['changes']['items_count'], 1)
        db.delete.assert_called_once_with(ticket)

    def test_technician_cannot_delete(self, get_ticket_mock, log_mock) -> None:
        db = MagicMock()
        with self.assertRaises(PermissionError):
            delete_ticket(db, _principal('Technician'), uuid.uuid4())
        db.delete.assert_not_called()


if __name__ == '__main__':
    unittest.main()
