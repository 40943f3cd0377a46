import importlib
import os
import unittest
from unittest.mock import patch
import jwt


class JwtAuthorizerTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.env = patch.dict(
            os.environ,
            {"JWT_SECRET": "testsecret", "JWT_ALGORITHM": "HS256"},
            clear=False,
        )
        cls.env.start()
        import handlers.auth.jwt_authorizer as mod
        cls.mod = importlib.reload(mod)

    @classmethod
    def tearDownClass(cls):
        cls.env.stop()

    def setUp(self):
        self.p_decode = patch("handlers.auth.jwt_authorizer.jwt.decode")
        self.mock_decode = self.p_decode.start()

    def tearDown(self):
        self.p_decode.stop()

    def _event(self, token=None, headers=None,
               method_arn="arn:aws:execute-api:ap-south-1:123:api/test/POST/bookings"):
        event = {"methodArn": method_arn}
        if token:
            event["authorizationToken"] = token
        if headers:
            event["headers"] = headers
        return event

    def _effect(self, resp):
        return resp["policyDocument"]["Statement"][0]["Effect"]

    def test_missing_token_denies(self):
        resp = self.mod.lambda_handler(self._event(), None)
        self.assertEqual("Deny", self._effect(resp))
        self.assertEqual("unauthorized", resp["principalId"])
        self.mock_decode.assert_not_called()

    def test_token_in_authorization_token(self):
        self.mock_decode.return_value = {"user_id": "u2", "email": "x@test.com", "role": "Provider"}
        resp = self.mod.lambda_handler(self._event(token="Bearer testtoken"), None)

        self.assertEqual("Allow", self._effect(resp))
        self.assertEqual("u2", resp["principalId"])
        self.assertEqual("provider", resp["context"]["roles"])
        self.assertEqual(
            "arn:aws:execute-api:ap-south-1:123:api/test/*/*",
            resp["policyDocument"]["Statement"][0]["Resource"],
        )
        self.assertEqual("testtoken", self.mock_decode.call_args[0][0])

    def test_token_in_lowercase_header_defaults_to_consumer(self):
        self.mock_decode.return_value = {"sub": "u3"}
        resp = self.mod.lambda_handler(
            self._event(headers={"authorization": "bearer abc"}), None
        )

        self.assertEqual("Allow", self._effect(resp))
        self.assertEqual("u3", resp["context"]["user_id"])
        self.assertEqual("consumer", resp["context"]["roles"])
        self.assertEqual("", resp["context"]["email"])
        self.assertEqual("abc", self.mock_decode.call_args[0][0])

    def test_roles_list_is_deduplicated(self):
        self.mock_decode.return_value = {
            "user_id": "u4",
            "roles": ["consumer", "PROVIDER", "consumer"],
        }
        resp = self.mod.lambda_handler(self._event(token="Bearer t"), None)

        self.assertEqual("consumer,provider", resp["context"]["roles"])

    def test_unknown_role_denies(self):
        self.mock_decode.return_value = {"user_id": "u5", "role": "admin"}
        resp = self.mod.lambda_handler(self._event(token="Bearer t"), None)

        self.assertEqual("Deny", self._effect(resp))

    def test_token_missing_user_id_denies(self):
        self.mock_decode.return_value = {"email": "e@test.com"}
        resp = self.mod.lambda_handler(self._event(token="Bearer testtoken"), None)
        self.assertEqual("Deny", self._effect(resp))

    def test_expired_signature_denies(self):
        self.mock_decode.side_effect = jwt.ExpiredSignatureError()
        resp = self.mod.lambda_handler(self._event(token="Bearer testtoken"), None)
        self.assertEqual("Deny", self._effect(resp))

    def test_invalid_token_denies(self):
        self.mock_decode.side_effect = jwt.InvalidTokenError()
        resp = self.mod.lambda_handler(self._event(token="Bearer testtoken"), None)
        self.assertEqual("Deny", self._effect(resp))

    def test_generic_exception_denies(self):
        self.mock_decode.side_effect = Exception("fail")
        resp = self.mod.lambda_handler(self._event(token="Bearer testtoken"), None)
        self.assertEqual("Deny", self._effect(resp))
        self.assertEqual("unauthorized", resp["principalId"])


if __name__ == "__main__":
    unittest.main()
