# tests/test_llm_client.py

from __future__ import annotations

from types import SimpleNamespace

import httpx
import openai
import pytest

from meeting_taskbot.core.errors import LLMError
from meeting_taskbot.llm.client import OpenAIChatClient
from meeting_taskbot.llm.offline import OfflineLLMClient


def _settings(**overrides) -> SimpleNamespace:
    base = dict(
        openai_api_key="sk-test",
        openai_base_url="http://llm.invalid/v1",
        llm_models=["first", "second"],
        llm_connect_timeout_seconds=1.0,
        llm_read_timeout_seconds=1.0,
    )
    base.update(overrides)
    return SimpleNamespace(**base)


def _status_error(cls, status: int):
    request = httpx.Request("POST", "http://llm.invalid/v1/chat/completions")
    return cls("error", response=httpx.Response(status, request=request), body=None)


def _answer(text: str):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=text))])


def test_missing_configuration_raises() -> None:
    with pytest.raises(LLMError):
        OpenAIChatClient(_settings(openai_api_key=""))
    with pytest.raises(LLMError):
        OpenAIChatClient(_settings(llm_models=[" "]))


def test_falls_back_to_next_model_and_skips_unavailable_one(monkeypatch) -> None:
    client = OpenAIChatClient(_settings())
    tried: list[str] = []

    def fake_create(model, messages):
        tried.append(model)
        if model == "first":
            raise _status_error(openai.NotFoundError, 404)
        return _answer('{"tasks": []}')

    monkeypatch.setattr(client, "_create", fake_create)

    assert client.complete_chat([{"role": "user", "content": "hi"}], "sys") == '{"tasks": []}'
    assert client.complete_chat([{"role": "user", "content": "hi"}], "sys") == '{"tasks": []}'
    # the 404 model is remembered and not retried on the second call
    assert tried == ["first", "second", "second"]


def test_auth_error_fails_fast(monkeypatch) -> None:
    client = OpenAIChatClient(_settings())
    tried: list[str] = []

    def fake_create(model, messages):
        tried.append(model)
        raise _status_error(openai.AuthenticationError, 401)

    monkeypatch.setattr(client, "_create", fake_create)

    with pytest.raises(LLMError, match="authentication"):
        client.complete_chat([], "sys")
    assert tried == ["first"]


def test_all_models_empty_raises(monkeypatch) -> None:
    client = OpenAIChatClient(_settings())
    monkeypatch.setattr(client, "_create", lambda model, messages: _answer("  "))

    with pytest.raises(LLMError):
        client.complete_chat([], "sys")


def test_offline_client_returns_empty_task_list() -> None:
    assert OfflineLLMClient().complete_chat([], "sys") == '{"tasks": []}'
