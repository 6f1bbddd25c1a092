from __future__ import annotations

import json

import pytest

from config import LlmRoute
from interviewer.gateway import InterviewerReply
from llm_gateway import LlmGatewayError, LlmTimeoutError, chat


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload

    @property
    def text(self):
        return json.dumps(self._payload)


class FakeClient:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def post(self, url, *, json, headers, timeout):
        self.requests.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def _route(**overrides):
    data = {
        "name": "chat",
        "base_url": "http://llm.local",
        "endpoint": "/v1/chat/completions",
        "model": "test-model",
        "timeout_s": 5,
        "max_retries": 1,
        "response_format": "json_object",
        "options": {"temperature": 0.2},
    }
    data.update(overrides)
    return LlmRoute(**data)


def _openai(content):
    return FakeResponse({"choices": [{"message": {"role": "assistant", "content": content}}]})


def test_chat_sends_schema_prompt_and_parses_openai_reply():
    client = FakeClient(_openai('{"question": "Why Postgres?"}'))
    reply = chat([{"role": "user", "content": "Ask"}], InterviewerReply, cfg=_route(), client=client)
    assert reply.question == "Why Postgres?"

    request = client.requests[0]
    assert request["url"] == "http://llm.local/v1/chat/completions"
    assert request["timeout"] == 5
    payload = request["json"]
    assert payload["model"] == "test-model"
    assert payload["stream"] is False
    assert payload["temperature"] == 0.2
    assert payload["response_format"] == {"type": "json_object"}
    assert payload["messages"][0]["role"] == "system"
    assert "schema" in payload["messages"][0]["content"]
    assert payload["messages"][-1] == {"role": "user", "content": "Ask"}


def test_chat_accepts_ollama_reply_in_code_fence():
    client = FakeClient(FakeResponse({"message": {"content": '```json\n{"question": "Go on?"}\n```'}}))
    reply = chat([{"role": "user", "content": "Ask"}], InterviewerReply, cfg=_route(), client=client)
    assert reply.question == "Go on?"


def test_plain_text_question_is_accepted():
    client = FakeClient(_openai("What trade-offs did you weigh?"))
    reply = chat([{"role": "user", "content": "Ask"}], InterviewerReply, cfg=_route(), client=client)
    assert reply.question == "What trade-offs did you weigh?"


def test_invalid_reply_is_retried_with_hint():
    client = FakeClient(_openai('{"question": "  "}'), _openai('{"question": "Second try?"}'))
    reply = chat([{"role": "user", "content": "Ask"}], InterviewerReply, cfg=_route(), client=client)
    assert reply.question == "Second try?"
    assert len(client.requests) == 2
    hint = client.requests[1]["json"]["messages"][-1]
    assert hint["role"] == "system"
    assert "failed validation" in hint["content"]


def test_validation_failures_exhaust_retries():
    client = FakeClient(_openai('{"question": ""}'))
    with pytest.raises(LlmGatewayError):
        chat([{"role": "user", "content": "Ask"}], InterviewerReply, cfg=_route(max_retries=0), client=client)


def test_http_error_status_is_not_retried():
    client = FakeClient(FakeResponse({"error": "overloaded"}, status_code=503), _openai('{"question": "x"}'))
    with pytest.raises(LlmGatewayError):
        chat([{"role": "user", "content": "Ask"}], InterviewerReply, cfg=_route(), client=client)
    assert len(client.requests) == 1


def test_timeout_maps_to_timeout_error():
    client = FakeClient(TimeoutError("read timed out"))
    with pytest.raises(LlmTimeoutError):
        chat([{"role": "user", "content": "Ask"}], InterviewerReply, cfg=_route(), client=client)


def test_missing_content_is_an_error():
    client = FakeClient(FakeResponse({"choices": []}))
    with pytest.raises(LlmGatewayError):
        chat([{"role": "user", "content": "Ask"}], InterviewerReply, cfg=_route(), client=client)


def test_api_key_header_from_environment(monkeypatch):
    monkeypatch.setenv("TEST_LLM_KEY", "secret")
    client = FakeClient(_openai('{"question": "Hi?"}'))
    chat(
        [{"role": "user", "content": "Ask"}],
        InterviewerReply,
        cfg=_route(api_key_env="TEST_LLM_KEY", extra_headers={"X-Team": "hiring"}),
        client=client,
    )
    headers = client.requests[0]["headers"]
    assert headers["Authorization"] == "Bearer secret"
    assert headers["X-Team"] == "hiring"
