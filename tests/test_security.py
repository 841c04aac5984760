from __future__ import annotations

import unittest
from types import SimpleNamespace

from fastapi import HTTPException

from salon360.security.csrf import verify_csrf
from salon360.security.sessions import _is_exempt, load_principal_from_token


def _request(method: str, header: str | None, cookie: str | None) -> SimpleNamespace:
    headers = {'x-csrf-token': header} if header else {}
    cookies = {'csrf_token': cookie} if cookie else {}
    return SimpleNamespace(method=method, headers=headers, cookies=cookies)


class CsrfTests(unittest.TestCase):
    def test_safe_methods_skip_check(self) -> None:
        verify_csrf(_request('GET', None, None))

    def test_matching_token_passes(self) -> None:
        verify_csrf(_request('POST', 'abc', 'abc'))

    def test_missing_or_mismatched_token_fails(self) -> None:
        for header, cookie in ((None, 'abc'), ('abc', None), ('abc', 'abd')):
            with self.subTest(header=header, cookie=cookie):
                with self.assertRaises(HTTPException) as ctx:
                    verify_csrf(_request('POST', header, cookie))
                self.assertEqual(ctx.exception.status_code, 403)


class SessionTests(unittest.TestCase):
    def test_exempt_paths(self) -> None:
        self.assertTrue(_is_exempt('/auth/login'))
        self.assertTrue(_is_exempt('/health'))
        self.assertTrue(_is_exempt('/kiosk/check-in-out'))
        self.assertFalse(_is_exempt('/auth/me'))
        self.assertFalse(_is_exempt('/stores/1/tickets'))

    def test_missing_token_has_no_principal(self) -> None:
        self.assertIsNone(load_principal_from_token(SimpleNamespace(), None))


if __name__ == '__main__':
    unittest.main()
