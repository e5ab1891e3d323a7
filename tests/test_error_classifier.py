import asyncio

import httpx
import pytest

from infinet_ai.errors import (
    CapabilityUnavailableError,
    ConfigurationError,
    EmptyResponseError,
    MediaError,
    ProviderError,
)
from infinet_ai.services.error_classifier import ErrorClass, classify


class TestQuotaExhausted:
    @pytest.mark.parametrize("status", [429, 401, 402, 403])
    def test_quota_statuses(self, status):
        error = ProviderError.from_response("gemini", status, "nope")
        assert classify(error) == ErrorClass.QUOTA_EXHAUSTED

    def test_vocabulary_without_status(self):
        assert classify(Exception("Resource exhausted: quota exceeded for model")) == ErrorClass.QUOTA_EXHAUSTED
        assert classify(Exception("Rate limit reached for requests")) == ErrorClass.QUOTA_EXHAUSTED

    def test_429_in_message_text(self):
        assert classify(RuntimeError("upstream said 429")) == ErrorClass.QUOTA_EXHAUSTED

    def test_vocabulary_in_body(self):
        error = ProviderError("groq API error", status_code=500, body='{"error":{"code":"rate_limit_exceeded"}}')
        assert classify(error) == ErrorClass.QUOTA_EXHAUSTED

    def test_quota_wins_over_transient_status(self):
        error = ProviderError("quota exceeded", status_code=503)
        assert classify(error) == ErrorClass.QUOTA_EXHAUSTED


class TestTransient:
    @pytest.mark.parametrize("status", [500, 502, 503, 504, 408])
    def test_server_statuses(self, status):
        error = ProviderError.from_response("gemini", status, "backend error")
        assert classify(error) == ErrorClass.TRANSIENT

    def test_timeouts(self):
        assert classify(asyncio.TimeoutError()) == ErrorClass.TRANSIENT
        assert classify(httpx.ReadTimeout("read timed out")) == ErrorClass.TRANSIENT

    def test_connection_errors(self):
        assert classify(httpx.ConnectError("connection refused")) == ErrorClass.TRANSIENT

    def test_empty_response(self):
        assert classify(EmptyResponseError("Gemini returned no text", provider="gemini")) == ErrorClass.TRANSIENT

    def test_media_error(self):
        assert classify(MediaError("download failed")) == ErrorClass.TRANSIENT

    def test_unknown_error_defaults_to_transient(self):
        assert classify(ValueError("something odd")) == ErrorClass.TRANSIENT

    def test_http_status_error(self):
        request = httpx.Request("POST", "https://example.test")
        response = httpx.Response(502, request=request)
        error = httpx.HTTPStatusError("bad gateway", request=request, response=response)
        assert classify(error) == ErrorClass.TRANSIENT


class TestFatal:
    @pytest.mark.parametrize("status", [400, 404, 422])
    def test_request_errors(self, status):
        error = ProviderError.from_response("gemini", status, "invalid argument")
        assert classify(error) == ErrorClass.FATAL

    def test_configuration_errors(self):
        assert classify(ConfigurationError("GEMINI_API_KEY missing")) == ErrorClass.FATAL
        assert classify(CapabilityUnavailableError("chat")) == ErrorClass.FATAL

    def test_classification_is_stable(self):
        error = ProviderError.from_response("gemini", 400, "invalid argument")
        assert {classify(error) for _ in range(5)} == {ErrorClass.FATAL}
