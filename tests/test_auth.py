"""
Tests for Supabase session token verification.
"""

import unittest

from conftest import JWT_SECRET, make_token
from app.auth import AuthenticatedUser, SupabaseTokenVerifier
from app.exceptions import AuthenticationError, ErrorCode
from src.config import AuthSettings


class TestSupabaseTokenVerifier(unittest.TestCase):

    def setUp(self):
        self.verifier = SupabaseTokenVerifier(JWT_SECRET)

    def test_valid_token(self):
        user = self.verifier.verify(make_token("user-1", "a@example.com"))
        self.assertEqual(user, AuthenticatedUser(id="user-1", email="a@example.com"))

    def test_token_without_email(self):
        self.assertIsNone(self.verifier.verify(make_token("user-1")).email)

    def test_expired(self):
        with self.assertRaises(AuthenticationError) as ctx:
            self.verifier.verify(make_token("user-1", expires_in=-10))
        self.assertEqual(ctx.exception.error_code, ErrorCode.EXPIRED_TOKEN)

    def test_wrong_secret(self):
        with self.assertRaises(AuthenticationError) as ctx:
            self.verifier.verify(make_token("user-1", secret="another-secret-of-sufficient-length"))
        self.assertEqual(ctx.exception.error_code, ErrorCode.INVALID_TOKEN)

    def test_wrong_audience(self):
        with self.assertRaises(AuthenticationError):
            self.verifier.verify(make_token("user-1", audience="anon"))

    def test_garbage(self):
        with self.assertRaises(AuthenticationError):
            self.verifier.verify("not.a.token")

    def test_from_settings(self):
        self.assertIsNone(SupabaseTokenVerifier.from_settings(AuthSettings(supabase_jwt_secret=None)))
        verifier = SupabaseTokenVerifier.from_settings(AuthSettings(supabase_jwt_secret=JWT_SECRET))
        self.assertEqual(verifier.verify(make_token("user-2")).id, "user-2")


if __name__ == "__main__":
    unittest.main()
