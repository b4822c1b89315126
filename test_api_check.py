"""
Tests for the API credential check and the connectivity probe.
"""

import pytest
import requests

from conftest import make_response
from services import check_api_config, probe_api_connection


class FakeHttp:
    """Module-like stand-in for requests with a single canned get()."""

    def __init__(self, outcome):
        self.outcome = outcome
        self.calls = []

    def get(self, url, headers=None, timeout=None):
        self.calls.append({"url": url, "headers": headers, "timeout": timeout})
        if isinstance(self.outcome, BaseException):
            raise self.outcome
        return self.outcome


class TestCheckApiConfig:

    def test_real_looking_key_passes(self):
        assert check_api_config("sk-or-v1-0123456789abcdef") is True

    @pytest.mark.parametrize("key", [
        None,
        "",
        "your_api_key_here",
        "YOUR_API_KEY_HERE",
        "changeme",
        "sk-YOUR_KEY-0000000",
        "short",
    ])
    def test_unusable_keys(self, key):
        """Missing keys, template placeholders and short keys are flagged."""
        assert check_api_config(key) is False


class TestProbeApiConnection:

    def test_ok_response(self):
        http = FakeHttp(make_response(200, {"data": [{"id": "openai/gpt-3.5-turbo"}]}))
        assert probe_api_connection("sk-or-test-0123456789", url="https://openrouter.test/api/v1/models", http=http) is True

        call = http.calls[0]
        assert call["url"] == "https://openrouter.test/api/v1/models"
        assert call["headers"]["Authorization"] == "Bearer sk-or-test-0123456789"

    def test_error_status(self):
        http = FakeHttp(make_response(401, {"error": {"message": "No auth credentials found"}}))
        assert probe_api_connection("sk-or-test-0123456789", http=http) is False

    def test_non_json_body(self):
        http = FakeHttp(make_response(200, raw=b"<html>maintenance</html>"))
        assert probe_api_connection("sk-or-test-0123456789", http=http) is False

    def test_network_failure(self):
        http = FakeHttp(requests.ConnectionError("Name or service not known"))
        assert probe_api_connection("sk-or-test-0123456789", http=http) is False


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
