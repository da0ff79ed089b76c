"""Tests for the HTTP surface."""

import json

import pytest
from fastapi.testclient import TestClient

from chatcore.core.answer_generator import AnswerGenerator
from chatcore.core.llm_connector import ProviderError
from chatcore.lib.cache_service import CacheService
from chatcore.lib.config import GenerationSettings
from main import create_app
from tests.mocks import HANG, MockConnector, make_profile


@pytest.fixture(autouse=True)
def reset_sse_app_status():
    """sse-starlette keeps a module-level exit event bound to the first event loop."""
    import sse_starlette.sse as sse

    if hasattr(sse, "AppStatus"):
        sse.AppStatus.should_exit_event = None


@pytest.fixture
def mock_connector():
    return MockConnector(steps=["**Hours**: 7am to 9pm\n\n\n1. Mon-Sat"])


@pytest.fixture
def client(mock_connector):
    generator = AnswerGenerator(
        mock_connector, GenerationSettings(timeout_seconds=0.05), CacheService()
    )
    return TestClient(create_app(generator=generator))


@pytest.fixture
def payload():
    return {
        "profile": make_profile().model_dump(mode="json"),
        "message": "what are your hours",
        "platform": "website",
    }


class TestReplyEndpoint:
    def test_reply(self, client, payload):
        response = client.post("/v1/reply", json=payload)

        assert response.status_code == 200
        data = response.json()
        assert data["reply"] == "**Hours**: 7am to 9pm\n1. Mon-Sat"
        assert data["attempt"] == "primary"
        assert data["language"] == "English"
        assert data["platform"] == "website"
        assert response.headers["X-Reply-Attempt"] == "primary"
        assert "X-Request-ID" in response.headers

    def test_telegram_html(self, client, payload):
        payload.update(platform="telegram", output_format="telegram_html")

        data = client.post("/v1/reply", json=payload).json()

        assert data["reply"] == "<b>Hours</b>: 7am to 9pm\n<b>1.</b> Mon-Sat"

    def test_empty_message_rejected(self, client, payload, mock_connector):
        payload["message"] = ""

        response = client.post("/v1/reply", json=payload)

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["type"] == "invalid_request_error"
        assert error["param"] == "message"
        assert mock_connector.calls == []

    def test_blank_message_rejected(self, client, payload):
        payload["message"] = "   "

        response = client.post("/v1/reply", json=payload)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "validation_error"

    def test_missing_profile_rejected(self, client, payload):
        del payload["profile"]
        assert client.post("/v1/reply", json=payload).status_code == 400

    def test_unknown_platform_rejected(self, client, payload):
        payload["platform"] = "myspace"
        assert client.post("/v1/reply", json=payload).status_code == 400


class TestErrorMapping:
    @pytest.mark.parametrize(
        "step, status_code, code",
        [
            (ProviderError("quota", status=429), 429, "rate_limit_error"),
            (ProviderError("bad key", status=401), 502, "authentication_error"),
            (ProviderError("boom", status=500), 502, "upstream_error"),
        ],
    )
    def test_provider_errors(self, client, payload, mock_connector, step, status_code, code):
        mock_connector.steps = [step]

        response = client.post("/v1/reply", json=payload)

        assert response.status_code == status_code
        assert response.json()["error"]["code"] == code

    def test_double_timeout(self, client, payload, mock_connector):
        mock_connector.steps = [HANG, HANG]

        response = client.post("/v1/reply", json=payload)

        assert response.status_code == 504
        assert response.json()["error"]["type"] == "timeout_error"
        assert len(mock_connector.calls) == 2


class TestStreamEndpoint:
    def test_stream(self, client, payload):
        response = client.post("/v1/reply/stream", json=payload)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        data_lines = [
            line[len("data: "):] for line in response.text.splitlines() if line.startswith("data: ")
        ]
        assert [json.loads(line)["content"] for line in data_lines[:-1]] == [
            "Mock ",
            "stream ",
            "response",
        ]
        assert data_lines[-1] == "[DONE]"

    def test_stream_error_event(self, client, payload, mock_connector):
        mock_connector.stream_chunks = [ProviderError("quota", status=429)]

        response = client.post("/v1/reply/stream", json=payload)

        assert "event: error" in response.text
        assert "rate_limit_error" in response.text
        assert "[DONE]" in response.text

    def test_stream_unexpected_failure_still_closes_stream(self, client, payload, mock_connector):
        mock_connector.stream_chunks = [RuntimeError("socket closed")]

        response = client.post("/v1/reply/stream", json=payload)

        assert "event: error" in response.text
        assert "upstream_error" in response.text
        assert response.text.rstrip().endswith("data: [DONE]")

    def test_stream_validation_is_http_error(self, client, payload):
        payload["message"] = "   "
        assert client.post("/v1/reply/stream", json=payload).status_code == 400


class TestCacheInvalidation:
    def test_invalidate(self, client, payload):
        client.post("/v1/reply", json=payload)

        response = client.post("/v1/cache/invalidate", json={"bot_id": "bot-1"})

        assert response.status_code == 200
        assert response.json() == {"bot_id": "bot-1", "evicted": 2}

    def test_invalidate_requires_bot_id(self, client):
        assert client.post("/v1/cache/invalidate", json={}).status_code == 400


class TestHealthEndpoint:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["services"]["generator"]["status"] == "healthy"
        assert data["services"]["market_data"]["status"] == "unknown"
        assert set(data["caches"]) == {"knowledge", "prompt", "market_quote"}

    def test_health_without_generator(self):
        client = TestClient(create_app())

        assert client.get("/health").json()["status"] == "unhealthy"

    def test_reply_without_generator(self, payload):
        client = TestClient(create_app())

        response = client.post("/v1/reply", json=payload)

        assert response.status_code == 503
        assert response.json()["error"]["type"] == "server_error"


def test_root(client):
    data = client.get("/").json()
    assert data["endpoints"]["reply"] == "/v1/reply"
