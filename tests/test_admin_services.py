from __future__ import annotations

import unittest
import uuid
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

from fastapi import HTTPException

from salon360.auth import Principal, require_permission
from salon360.routers.admin import employee_reset_pin
from salon360.services.employee_service import EmployeeDraft, derive_role_permission, filter_employees, save_employee
from salon360.services.service_catalog_service import StoreServiceUpdate, filter_services, update_store_service


def _employee(name, roles, status='Active'):
    return SimpleNamespace(id=uuid.uuid4(), display_name=name, role=roles, status=status)


class EmployeeServiceTests(unittest.TestCase):
    def test_role_permission_is_derived_from_roles(self) -> None:
        self.assertEqual(derive_role_permission(['Technician', 'Supervisor']), 'Supervisor')
        self.assertEqual(derive_role_permission(['Owner']), 'Receptionist')
        self.assertEqual(derive_role_permission(['Spa Expert']), 'Technician')

    def test_filter_employees(self) -> None:
        store_a, store_b = uuid.uuid4(), uuid.uuid4()
        ann = _employee('Ann', ['Technician'])
        bob = _employee('Bob', ['Receptionist'], status='Inactive')
        owner = _employee('Olga', ['Owner'])
        floater = _employee('Fay', ['Technician'])
        stores = {ann.id: [store_a], bob.id: [store_b]}
        everyone = [ann, bob, owner, floater]

        self.assertEqual(filter_employees(everyone, stores), [ann, bob, floater])
        # Employees without assignments work at every store.
        self.assertEqual(filter_employees(everyone, stores, store_id=store_a), [ann, floater])
        self.assertEqual(filter_employees(everyone, stores, search=' an'), [ann])
        self.assertEqual(filter_employees(everyone, stores, status='Inactive'), [bob])
        self.assertEqual(filter_employees(everyone, stores, role='Receptionist'), [bob])

    def test_save_requires_owner(self) -> None:
        principal = Principal(employee_id=uuid.uuid4(), display_name='Rae', roles=('Receptionist',))
        with self.assertRaises(PermissionError):
            save_employee(MagicMock(), principal, EmployeeDraft(display_name='New'))

    def test_save_validates_draft(self) -> None:
        principal = Principal(employee_id=uuid.uuid4(), display_name='Olga', roles=('Owner',))
        with self.assertRaisesRegex(ValueError, 'Display name is required'):
            save_employee(MagicMock(), principal, EmployeeDraft(display_name='  '))
        with self.assertRaisesRegex(ValueError, 'Invalid role'):
            save_employee(MagicMock(), principal, EmployeeDraft(display_name='New', role=['Wizard']))


class ServiceCatalogTests(unittest.TestCase):
    ROWS = [
        {'code': 'MANI', 'name': 'Manicure', 'active': True},
        {'code': 'PEDI', 'name': 'Pedicure Spa', 'active': False},
    ]

    def test_filter_by_code_name_and_status(self) -> None:
        self.assertEqual(filter_services(self.ROWS, search='mani'), [self.ROWS[0]])
        self.assertEqual(filter_services(self.ROWS, search='spa'), [self.ROWS[1]])
        self.assertEqual(filter_services(self.ROWS, active='inactive'), [self.ROWS[1]])
        self.assertEqual(filter_services(self.ROWS), self.ROWS)
        with self.assertRaises(ValueError):
            filter_services(self.ROWS, active='maybe')

    def test_update_requires_fields(self) -> None:
        principal = Principal(employee_id=uuid.uuid4(), display_name='Ira', roles=('Owner',))
        with self.assertRaisesRegex(ValueError, 'Please fill in all required fields'):
            update_store_service(MagicMock(), principal, uuid.uuid4(), uuid.uuid4(), StoreServiceUpdate(price=None, duration_min=30))

    def test_update_checks_store(self) -> None:
        principal = Principal(employee_id=uuid.uuid4(), display_name='Ira', roles=('Owner',))
        db = MagicMock()
        db.get.return_value = SimpleNamespace(store_id=uuid.uuid4())
        with self.assertRaises(LookupError):
            update_store_service(db, principal, uuid.uuid4(), uuid.uuid4(), StoreServiceUpdate(price=Decimal('10'), duration_min=30))

    def test_update_applies_overrides(self) -> None:
        principal = Principal(employee_id=uuid.uuid4(), display_name='Ira', roles=('Owner',))
        store_id = uuid.uuid4()
        store_service = SimpleNamespace(store_id=store_id)
        db = MagicMock()
        db.get.return_value = store_service

        update_store_service(
            db, principal, store_id, uuid.uuid4(), StoreServiceUpdate(price=Decimal('12.5'), duration_min=40, active=False)
        )

        self.assertEqual(store_service.price_override, Decimal('12.50'))
        self.assertEqual(store_service.duration_override, 40)
        self.assertFalse(store_service.active)

    def test_update_requires_permission(self) -> None:
        principal = Principal(employee_id=uuid.uuid4(), display_name='Rae', roles=('Receptionist',))
        with self.assertRaises(PermissionError):
            update_store_service(MagicMock(), principal, uuid.uuid4(), uuid.uuid4(), StoreServiceUpdate(price=Decimal('1'), duration_min=1))


class PinResetRouteTests(unittest.TestCase):
    def _principal(self, roles, role_permission, can_reset_pin=False) -> Principal:
        return Principal(
            employee_id=uuid.uuid4(),
            display_name='Sue',
            roles=roles,
            role_permission=role_permission,
            can_reset_pin=can_reset_pin,
        )

    @patch('salon360.routers.admin.reset_pin')
    def test_supervisor_can_reset_pin(self, reset_pin_mock) -> None:
        reset_pin_mock.return_value = '8412'
        supervisor = self._principal(('Technician',), 'Supervisor')
        db = MagicMock()
        target = uuid.uuid4()

        allowed = require_permission('employees.reset_pin')(supervisor)
        result = employee_reset_pin(target, principal=allowed, db=db, _=None)

        self.assertEqual(result, {'temp_pin': '8412'})
        reset_pin_mock.assert_called_once_with(db, target)
        db.commit.assert_called_once()

    def test_technician_cannot_reset_pin(self) -> None:
        technician = self._principal(('Technician',), 'Technician', can_reset_pin=True)
        with self.assertRaises(HTTPException) as ctx:
            require_permission('employees.reset_pin')(technician)
        self.assertEqual(ctx.exception.status_code, 403)


if __name__ == '__main__':
    unittest.main()
