from types import SimpleNamespace

import groq
import httpx
import pytest
import requests

from interview_engine.config import Credential, LLMSettings, Settings
from interview_engine.errors import ServiceError
from interview_engine.llm import GeminiCompletionClient, GroqCompletionClient, build_clients


class FakeResponse:
    def __init__(self, status_code=200, payload=None, reason="OK", text=""):
        self.status_code = status_code
        self._payload = payload
        self.reason = reason
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


@pytest.fixture
def credential():
    return Credential(label="primary", api_key="test-key")


@pytest.fixture
def gemini(credential):
    return GeminiCompletionClient(credential, LLMSettings(provider="gemini"))


def candidate(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def test_gemini_success(monkeypatch, gemini):
    captured = {}

    def fake_post(url, headers=None, json=None, timeout=None):
        captured.update(url=url, headers=headers, json=json, timeout=timeout)
        return FakeResponse(payload=candidate("hello"))

    monkeypatch.setattr("interview_engine.llm.requests.post", fake_post)

    assert gemini.complete("Say hello") == "hello"
    assert captured["url"].endswith("/models/gemini-2.0-flash:generateContent")
    assert captured["headers"]["x-goog-api-key"] == "test-key"
    assert captured["json"]["contents"][0]["parts"][0]["text"] == "Say hello"
    assert captured["json"]["generationConfig"]["maxOutputTokens"] == 2048
    assert captured["timeout"] == 30


def test_gemini_http_error_keeps_status(monkeypatch, gemini):
    payload = {"error": {"code": 503, "message": "The model is overloaded.", "status": "UNAVAILABLE"}}
    monkeypatch.setattr("interview_engine.llm.requests.post",
                        lambda *a, **k: FakeResponse(503, payload, reason="Service Unavailable"))

    with pytest.raises(ServiceError) as exc_info:
        gemini.complete("prompt")
    assert exc_info.value.status == 503
    assert "overloaded" in exc_info.value.reason


def test_gemini_empty_candidate(monkeypatch, gemini):
    monkeypatch.setattr("interview_engine.llm.requests.post",
                        lambda *a, **k: FakeResponse(payload={"candidates": []}))
    with pytest.raises(ServiceError, match="empty response"):
        gemini.complete("prompt")


@pytest.mark.parametrize("exception, reason", [
    (requests.Timeout("read timed out"), "timeout"),
    (requests.ConnectionError("refused"), "connection error"),
])
def test_gemini_network_errors(monkeypatch, gemini, exception, reason):
    def fake_post(*args, **kwargs):
        raise exception

    monkeypatch.setattr("interview_engine.llm.requests.post", fake_post)
    with pytest.raises(ServiceError) as exc_info:
        gemini.complete("prompt")
    assert exc_info.value.status is None
    assert exc_info.value.reason.startswith(reason)


def _groq_with(credential, create):
    client = GroqCompletionClient(credential, LLMSettings(provider="groq"))
    client.client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
    return client


def test_groq_success(credential):
    def create(**kwargs):
        assert kwargs["model"] == "llama-3.3-70b-versatile"
        message = SimpleNamespace(content="answer")
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])

    assert _groq_with(credential, create).complete("prompt") == "answer"


def test_groq_status_error_keeps_status(credential):
    request = httpx.Request("POST", "https://api.groq.com/openai/v1/chat/completions")
    response = httpx.Response(429, request=request)

    def create(**kwargs):
        raise groq.RateLimitError("Rate limit reached", response=response, body=None)

    with pytest.raises(ServiceError) as exc_info:
        _groq_with(credential, create).complete("prompt")
    assert exc_info.value.status == 429


def test_groq_connection_error(credential):
    request = httpx.Request("POST", "https://api.groq.com/openai/v1/chat/completions")

    def create(**kwargs):
        raise groq.APIConnectionError(request=request)

    with pytest.raises(ServiceError) as exc_info:
        _groq_with(credential, create).complete("prompt")
    assert exc_info.value.status is None
    assert exc_info.value.reason.startswith("connection error")


def test_groq_empty_choices(credential):
    client = _groq_with(credential, lambda **kwargs: SimpleNamespace(choices=[]))
    with pytest.raises(ServiceError, match="empty response"):
        client.complete("prompt")


def test_build_clients_in_credential_order():
    settings = Settings(
        credentials=(
            Credential(label="primary", api_key="a"),
            Credential(label="backup", api_key="b"),
        )
    )
    clients = build_clients(settings)
    assert [c.label for c in clients] == ["primary", "backup"]
    assert all(isinstance(c, GeminiCompletionClient) for c in clients)


if __name__ == "__main__":
    pytest.main([__file__])
