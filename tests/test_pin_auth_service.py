from __future__ import annotations

import unittest
import uuid
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

from salon360.services.pin_auth_service import authenticate_with_pin, change_pin, is_valid_pin, reset_pin, validate_pin_change


class PinValidationTests(unittest.TestCase):
    def test_pin_format(self) -> None:
        self.assertTrue(is_valid_pin('0420'))
        self.assertFalse(is_valid_pin('042'))
        self.assertFalse(is_valid_pin('04a0'))
        self.assertFalse(is_valid_pin(None))

    def test_pin_change_rules(self) -> None:
        cases = [
            (('12', '5678', '5678'), 'Current PIN must be 4 digits'),
            (('1234', '567', '567'), 'New PIN must be 4 digits'),
            (('1234', '5678', '5679'), 'New PINs do not match'),
            (('1234', '1234', '1234'), 'New PIN must be different from current PIN'),
        ]
        for args, message in cases:
            with self.subTest(message=message):
                with self.assertRaisesRegex(ValueError, message):
                    validate_pin_change(*args)
        validate_pin_change('1234', '5678', '5678')


class PinAuthTests(unittest.TestCase):
    @patch('salon360.services.pin_auth_service.call_rows')
    def test_malformed_pin_skips_lookup(self, call_rows_mock) -> None:
        self.assertIsNone(authenticate_with_pin(MagicMock(), '12'))
        call_rows_mock.assert_not_called()

    @patch('salon360.services.pin_auth_service.call_rows')
    def test_inactive_employee_cannot_sign_in(self, call_rows_mock) -> None:
        employee_id = uuid.uuid4()
        call_rows_mock.return_value = [{'employee_id': employee_id}]
        db = MagicMock()
        db.get.return_value = SimpleNamespace(id=employee_id, status='Inactive')

        self.assertIsNone(authenticate_with_pin(db, '1234'))

    @patch('salon360.services.pin_auth_service.call_rows')
    def test_active_employee_signs_in(self, call_rows_mock) -> None:
        employee = SimpleNamespace(id=uuid.uuid4(), status='Active')
        call_rows_mock.return_value = [{'employee_id': str(employee.id)}]
        db = MagicMock()
        db.get.return_value = employee

        self.assertIs(authenticate_with_pin(db, '1234'), employee)

    @patch('salon360.services.pin_auth_service.call_scalar')
    def test_change_pin_reports_backend_error(self, call_scalar_mock) -> None:
        call_scalar_mock.return_value = {'success': False, 'error': 'Current PIN is incorrect'}
        with self.assertRaisesRegex(ValueError, 'Current PIN is incorrect'):
            change_pin(MagicMock(), uuid.uuid4(), '1234', '5678', '5678')

    @patch('salon360.services.pin_auth_service.call_scalar')
    def test_reset_pin_returns_temporary_pin(self, call_scalar_mock) -> None:
        call_scalar_mock.return_value = {'success': True, 'temp_pin': '8412'}
        db = MagicMock()
        db.get.return_value = SimpleNamespace()

        self.assertEqual(reset_pin(db, uuid.uuid4()), '8412')

    def test_reset_pin_for_unknown_employee(self) -> None:
        db = MagicMock()
        db.get.return_value = None
        with self.assertRaises(LookupError):
            reset_pin(db, uuid.uuid4())


if __name__ == '__main__':
    unittest.main()
