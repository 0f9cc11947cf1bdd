"""Tests for sciscan/llm.py: async openai SDK wrapper."""

import logging
import os
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from sciscan.llm import WEB_SEARCH_PLUGIN, ChatClient, create_client
from sciscan.models import Config
from sciscan.request import build_request


def _mock_sdk(mock_openai, content='{"k":"v"}'):
    create = AsyncMock(
        return_value=MagicMock(choices=[MagicMock(message=MagicMock(content=content))])
    )
    mock_openai.return_value.chat.completions.create = create
    return create


# ---------------------------------------------------------------------------
# create_client
# ---------------------------------------------------------------------------


def test_create_client_returns_chat_client():
    config = Config(base_url="http://localhost:1234/v1")
    client = create_client(config)
    assert isinstance(client, ChatClient)
    assert client.base_url == "http://localhost:1234/v1"


def test_create_client_uses_config_api_key():
    config = Config(api_key="sk-explicit-key")
    with patch("sciscan.llm._openai.AsyncOpenAI") as mock_openai:
        create_client(config)
    _, kwargs = mock_openai.call_args
    assert kwargs["api_key"] == "sk-explicit-key"


def test_create_client_uses_env_api_key_when_config_key_is_none():
    config = Config(api_key=None)
    with (
        patch("sciscan.llm._openai.AsyncOpenAI") as mock_openai,
        patch.dict(os.environ, {"LLM_API_KEY": "sk-env-key"}),
    ):
        create_client(config)
    _, kwargs = mock_openai.call_args
    assert kwargs["api_key"] == "sk-env-key"


def test_create_client_falls_back_to_dummy_key():
    config = Config(api_key=None)
    env = {k: v for k, v in os.environ.items() if k != "LLM_API_KEY"}
    with (
        patch("sciscan.llm._openai.AsyncOpenAI") as mock_openai,
        patch.dict(os.environ, env, clear=True),
    ):
        create_client(config)
    _, kwargs = mock_openai.call_args
    assert kwargs["api_key"] == "lm-studio"


def test_create_client_adds_openrouter_headers():
    config = Config(base_url="https://openrouter.ai/api/v1")
    with patch("sciscan.llm._openai.AsyncOpenAI") as mock_openai:
        create_client(config)
    headers = mock_openai.call_args.kwargs.get("default_headers", {})
    assert "HTTP-Referer" in headers
    assert headers["X-Title"] == "sciscan"


def test_create_client_no_extra_headers_for_local_url():
    config = Config(base_url="http://localhost:1234/v1")
    with patch("sciscan.llm._openai.AsyncOpenAI") as mock_openai:
        create_client(config)
    headers = mock_openai.call_args.kwargs.get("default_headers", {})
    assert "HTTP-Referer" not in headers


# ---------------------------------------------------------------------------
# complete
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_complete_sends_messages_temperature_and_timeout(config):
    config.timeout_s = 42
    request = build_request("some abstract", None, config)
    with patch("sciscan.llm._openai.AsyncOpenAI") as mock_openai:
        create = _mock_sdk(mock_openai)
        response = await create_client(config).complete(request)

    assert response.text == '{"k":"v"}'
    kwargs = create.call_args.kwargs
    assert kwargs["model"] == "test-model"
    assert kwargs["messages"] == request.to_messages()
    assert kwargs["temperature"] == 0.2
    assert kwargs["timeout"] == 42


@pytest.mark.asyncio
async def test_complete_enables_web_plugin_without_attachment(config):
    request = build_request("https://doi.org/10.1000/example", None, config)
    with patch("sciscan.llm._openai.AsyncOpenAI") as mock_openai:
        create = _mock_sdk(mock_openai)
        await create_client(config).complete(request)
    assert create.call_args.kwargs["extra_body"] == {"plugins": [WEB_SEARCH_PLUGIN]}


@pytest.mark.asyncio
async def test_complete_omits_web_plugin_with_attachment(config, pdf_attachment):
    request = build_request("", pdf_attachment, config)
    with patch("sciscan.llm._openai.AsyncOpenAI") as mock_openai:
        create = _mock_sdk(mock_openai)
        await create_client(config).complete(request)
    assert "extra_body" not in create.call_args.kwargs


@pytest.mark.asyncio
async def test_complete_omits_max_tokens_when_not_configured(config):
    request = build_request("text", None, config)
    with patch("sciscan.llm._openai.AsyncOpenAI") as mock_openai:
        create = _mock_sdk(mock_openai)
        await create_client(config).complete(request)
    assert "max_tokens" not in create.call_args.kwargs


@pytest.mark.asyncio
async def test_complete_passes_max_tokens_when_configured(config):
    config.max_output_tokens = 8192
    request = build_request("text", None, config)
    with patch("sciscan.llm._openai.AsyncOpenAI") as mock_openai:
        create = _mock_sdk(mock_openai)
        await create_client(config).complete(request)
    assert create.call_args.kwargs["max_tokens"] == 8192


@pytest.mark.asyncio
async def test_complete_returns_none_text_for_empty_content(config):
    request = build_request("text", None, config)
    with patch("sciscan.llm._openai.AsyncOpenAI") as mock_openai:
        _mock_sdk(mock_openai, content=None)
        response = await create_client(config).complete(request)
    assert response.text is None


@pytest.mark.asyncio
async def test_complete_propagates_sdk_errors(config):
    request = build_request("text", None, config)
    with patch("sciscan.llm._openai.AsyncOpenAI") as mock_openai:
        mock_openai.return_value.chat.completions.create = AsyncMock(
            side_effect=ConnectionError("connection refused")
        )
        with pytest.raises(ConnectionError, match="connection refused"):
            await create_client(config).complete(request)


@pytest.mark.asyncio
async def test_complete_logs_call_await_and_response(config, caplog):
    request = build_request("text", None, config)
    with (
        patch("sciscan.llm._openai.AsyncOpenAI") as mock_openai,
        caplog.at_level(logging.INFO, logger="sciscan.llm"),
    ):
        _mock_sdk(mock_openai)
        await create_client(config).complete(request)

    messages = [r.message for r in caplog.records]
    assert any("Calling LLM" in m for m in messages)
    assert any("Awaiting" in m for m in messages)
    assert any("Response received" in m for m in messages)
