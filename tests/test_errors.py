import unittest
from types import SimpleNamespace

from oracle_cli import errors
from oracle_cli.errors import ProviderTransportError, SessionNotFoundError, to_transport_error


class RateLimitError(Exception):
    pass


class APITimeoutError(Exception):
    pass


class APIConnectionError(Exception):
    pass


class _StatusError(Exception):
    def __init__(self, status_code: int, body: object = None):
        super().__init__(f"status {status_code}")
        self.status_code = status_code
        self.body = body


class ToTransportErrorTests(unittest.TestCase):
    def test_model_not_found_code_suggests_fallback(self) -> None:
        error = _StatusError(400, body={"error": {"code": "model_not_found"}})
        mapped = to_transport_error(error, "gpt-5.1-pro")
        self.assertEqual("model-unavailable", mapped.reason)
        self.assertIn("Try gpt-5-pro instead", str(mapped))
        self.assertEqual("gpt-5.1-pro", mapped.model)

    def test_404_without_known_fallback(self) -> None:
        mapped = to_transport_error(_StatusError(404), "claude-nope")
        self.assertEqual("model-unavailable", mapped.reason)
        self.assertNotIn("Try", str(mapped))

    def test_status_read_from_response(self) -> None:
        error = Exception("boom")
        error.response = SimpleNamespace(status_code=404)
        self.assertEqual("model-unavailable", to_transport_error(error, "m").reason)

    def test_rate_limit(self) -> None:
        self.assertEqual("rate-limit", to_transport_error(RateLimitError("slow down"), "m").reason)
        self.assertEqual("rate-limit", to_transport_error(_StatusError(429), "m").reason)

    def test_timeout_and_connection(self) -> None:
        self.assertEqual("timeout", to_transport_error(APITimeoutError("late"), "m").reason)
        self.assertEqual("connection", to_transport_error(APIConnectionError("down"), "m").reason)

    def test_other_status_is_api_error(self) -> None:
        mapped = to_transport_error(_StatusError(500), "m")
        self.assertEqual("api-error", mapped.reason)
        self.assertIn("500", str(mapped))

    def test_unknown(self) -> None:
        self.assertEqual("unknown", to_transport_error(ValueError("weird"), "m").reason)

    def test_transport_errors_pass_through(self) -> None:
        original = ProviderTransportError("timeout", "late", model="m")
        self.assertIs(original, to_transport_error(original, "other"))


class SessionErrorTests(unittest.TestCase):
    def test_session_not_found_carries_id(self) -> None:
        error = SessionNotFoundError("abc")
        self.assertEqual("abc", error.session_id)
        self.assertEqual("Session not found: abc", str(error))


class TaxonomyTests(unittest.TestCase):
    def test_every_category_is_an_oracle_error(self) -> None:
        for cls in (
            errors.FileValidationError,
            errors.PromptValidationError,
            errors.BrowserAutomationError,
            errors.StorageIOError,
            errors.ProviderTransportError,
        ):
            self.assertTrue(issubclass(cls, errors.OracleError), cls.__name__)
