from __future__ import annotations

import unittest
import uuid
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import patch

from salon360.services.queue_service import leave_queue, ready_for_employee, sort_technicians

BASE = datetime(2025, 1, 6, 15, 0, tzinfo=timezone.utc)


class QueueSortingTests(unittest.TestCase):
    def test_ready_then_neutral_then_busy(self) -> None:
        rows = [
            {'display_name': 'Zed', 'queue_status': 'busy', 'ticket_start_time': BASE, 'estimated_duration_min': 45},
            {'display_name': 'Amy', 'queue_status': 'ready', 'queue_position': 2},
            {'display_name': 'Bob', 'queue_status': 'ready', 'queue_position': 1},
            {'display_name': 'carl', 'queue_status': 'neutral', 'queue_position': None},
            {'display_name': 'Anna', 'queue_status': 'neutral', 'queue_position': None},
            {'display_name': 'Al', 'queue_status': 'ready', 'queue_position': None},
        ]

        ordered = sort_technicians(rows, now=BASE + timedelta(minutes=15))

        self.assertEqual([row['display_name'] for row in ordered], ['Bob', 'Amy', 'Al', 'Anna', 'carl', 'Zed'])
        self.assertEqual(ordered[-1]['time_remaining'], '~30min')
        self.assertEqual(ordered[0]['time_remaining'], '')

    def test_sorting_does_not_mutate_input(self) -> None:
        rows = [{'display_name': 'Amy', 'queue_status': 'ready', 'queue_position': 1}]
        sort_technicians(rows)
        self.assertNotIn('time_remaining', rows[0])


class ReadyQueueTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store_id = uuid.uuid4()
        self.technician = SimpleNamespace(id=uuid.uuid4(), role=['Technician'])

    @patch('salon360.services.queue_service.call_scalar')
    @patch('salon360.services.queue_service.is_checked_in_today')
    def test_technician_must_check_in_first(self, checked_in_mock, call_scalar_mock) -> None:
        checked_in_mock.return_value = False
        with self.assertRaisesRegex(ValueError, 'You must check in before joining the ready queue'):
            ready_for_employee(SimpleNamespace(), self.technician, self.store_id, BASE.date())
        call_scalar_mock.assert_not_called()

    @patch('salon360.services.queue_service.call_scalar')
    @patch('salon360.services.queue_service.is_checked_in_today')
    def test_already_in_queue(self, checked_in_mock, call_scalar_mock) -> None:
        checked_in_mock.return_value = True
        call_scalar_mock.return_value = True

        result = ready_for_employee(SimpleNamespace(), self.technician, self.store_id, BASE.date())

        self.assertEqual(result.status, 'in_queue')
        self.assertEqual(call_scalar_mock.call_count, 1)

    @patch('salon360.services.queue_service.call_scalar')
    @patch('salon360.services.queue_service.is_checked_in_today')
    def test_joins_queue(self, checked_in_mock, call_scalar_mock) -> None:
        checked_in_mock.return_value = True
        call_scalar_mock.side_effect = [False, {'success': True}]

        result = ready_for_employee(SimpleNamespace(), self.technician, self.store_id, BASE.date())

        self.assertEqual(result.status, 'joined')
        self.assertEqual(call_scalar_mock.call_args.args[1], 'join_ready_queue_with_checkin')

    @patch('salon360.services.queue_service.call_scalar')
    @patch('salon360.services.queue_service.is_checked_in_today')
    def test_join_refusal_is_reported(self, checked_in_mock, call_scalar_mock) -> None:
        checked_in_mock.return_value = True
        call_scalar_mock.side_effect = [False, {'success': False, 'message': 'Store is closed'}]

        with self.assertRaisesRegex(ValueError, 'Store is closed'):
            ready_for_employee(SimpleNamespace(), self.technician, self.store_id, BASE.date())

    @patch('salon360.services.queue_service.call_scalar')
    @patch('salon360.services.queue_service.is_checked_in_today')
    def test_managers_skip_check_in_requirement(self, checked_in_mock, call_scalar_mock) -> None:
        call_scalar_mock.return_value = True
        manager = SimpleNamespace(id=uuid.uuid4(), role=['Manager'])

        result = ready_for_employee(SimpleNamespace(), manager, self.store_id, BASE.date())

        self.assertEqual(result.status, 'in_queue')
        checked_in_mock.assert_not_called()

    @patch('salon360.services.queue_service.call_scalar')
    def test_leave_queue(self, call_scalar_mock) -> None:
        result = leave_queue(SimpleNamespace(), self.technician.id, self.store_id)
        self.assertEqual(result.status, 'left')
        call_scalar_mock.assert_called_once()


if __name__ == '__main__':
    unittest.main()
