# =============================================================================
# Unit Tests — HTTP API
# =============================================================================
#
# Exercises /health and /context through FastAPI's TestClient. The
# pipeline entry point is patched, so no LLM, database or vector store
# is touched.
# =============================================================================

from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient

from context_finder.api.context import GENERIC_ERROR_MESSAGE
from context_finder.errors import LLMUnavailableError
from context_finder.main import app
from context_finder.models.search import RefinedAnswer

client = TestClient(app)

_PIPELINE = "context_finder.api.context.run_retrieval_and_synthesis"
_HEADERS = {"X-User-Id": "user-1"}


class TestHealth:
    def test_health(self):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"


class TestContextEndpoint:
    """Tests for POST /context."""

    def test_returns_answer_and_confidence(self):
        mock_run = AsyncMock(return_value=RefinedAnswer(
            content="Jane Doe owns the Acme account.", confidence=70,
        ))
        with patch(_PIPELINE, mock_run):
            response = client.post(
                "/context",
                json={"query": "Who owns Acme?", "context": {"source": "chat"}},
                headers=_HEADERS,
            )

        assert response.status_code == 200
        assert response.json() == {
            "answer": "Jane Doe owns the Acme account.",
            "confidence": 70,
            "query": "Who owns Acme?",
        }
        mock_run.assert_awaited_once_with(query="Who owns Acme?", user_id="user-1")

    def test_missing_user_is_401(self):
        mock_run = AsyncMock()
        with patch(_PIPELINE, mock_run):
            response = client.post("/context", json={"query": "Who owns Acme?"})

        assert response.status_code == 401
        assert "authentication required" in response.json()["detail"]
        mock_run.assert_not_called()

    def test_empty_query_is_422(self):
        response = client.post("/context", json={"query": ""}, headers=_HEADERS)
        assert response.status_code == 422

    def test_blank_query_is_422(self):
        mock_run = AsyncMock()
        with patch(_PIPELINE, mock_run):
            response = client.post(
                "/context", json={"query": "   \n\t "}, headers=_HEADERS,
            )

        assert response.status_code == 422
        mock_run.assert_not_called()

    def test_query_is_trimmed(self):
        mock_run = AsyncMock(return_value=RefinedAnswer(content="a", confidence=70))
        with patch(_PIPELINE, mock_run):
            response = client.post(
                "/context", json={"query": "  Who owns Acme?  "}, headers=_HEADERS,
            )

        assert response.status_code == 200
        mock_run.assert_awaited_once_with(query="Who owns Acme?", user_id="user-1")

    def test_rate_limit_maps_to_busy_message(self):
        error = LLMUnavailableError("429 from provider: key sk-123", reason="rate_limited")
        with patch(_PIPELINE, AsyncMock(side_effect=error)):
            response = client.post(
                "/context", json={"query": "q"}, headers=_HEADERS,
            )

        assert response.status_code == 503
        detail = response.json()["detail"]
        assert "currently busy" in detail
        assert "sk-123" not in detail

    def test_connection_error_maps_to_connection_message(self):
        error = LLMUnavailableError("connect timeout", reason="connection")
        with patch(_PIPELINE, AsyncMock(side_effect=error)):
            response = client.post(
                "/context", json={"query": "q"}, headers=_HEADERS,
            )

        assert response.status_code == 503
        assert response.json()["detail"].startswith("Connection issue")

    def test_auth_outage_gets_generic_message(self):
        error = LLMUnavailableError("invalid x-api-key", reason="auth")
        with patch(_PIPELINE, AsyncMock(side_effect=error)):
            response = client.post(
                "/context", json={"query": "q"}, headers=_HEADERS,
            )

        assert response.status_code == 503
        assert response.json()["detail"] == GENERIC_ERROR_MESSAGE

    def test_unexpected_error_is_generic_500(self):
        with patch(_PIPELINE, AsyncMock(side_effect=RuntimeError("db password=hunter2"))):
            response = client.post(
                "/context", json={"query": "q"}, headers=_HEADERS,
            )

        assert response.status_code == 500
        assert response.json()["detail"] == GENERIC_ERROR_MESSAGE
