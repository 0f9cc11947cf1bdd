"""LLM client setup and inference: wraps the openai SDK's async client.

Supports any OpenAI-compatible backend. The default is OpenRouter, whose
``web`` plugin provides the live web search used to resolve links and DOIs;
LM Studio and other local servers work for attachment-only analyses.

The public interface is ``await ChatClient.complete(request)`` returning an
object with a ``.text`` attribute, keeping all call sites and mocks stable.
"""

import logging
import os
import time

import openai as _openai

from sciscan.models import Config
from sciscan.request import AnalysisRequest

logger = logging.getLogger(__name__)

WEB_SEARCH_PLUGIN = {"id": "web"}


# ---------------------------------------------------------------------------
# Client wrapper
# ---------------------------------------------------------------------------


class _CompletionResponse:
    """Thin wrapper presenting an openai chat response as ``response.text``."""

    __slots__ = ("text",)

    def __init__(self, text: str | None) -> None:
        self.text = text


class ChatClient:
    """Async OpenAI-compatible chat client.

    Attributes:
        base_url: Backend URL, kept for log messages.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "lm-studio",
        extra_headers: dict | None = None,
        timeout_s: int = 120,
        max_output_tokens: int | None = None,
    ) -> None:
        self.base_url = base_url
        self.timeout_s = timeout_s
        self.max_output_tokens = max_output_tokens
        self._client = _openai.AsyncOpenAI(
            base_url=base_url,
            api_key=api_key,
            default_headers=extra_headers or {},
        )

    async def complete(self, request: AnalysisRequest) -> _CompletionResponse:
        """Send one chat completion request and return the model's reply.

        SDK exceptions propagate unchanged.
        """
        kwargs: dict = dict(
            model=request.model,
            messages=request.to_messages(),
            temperature=request.temperature,
            timeout=self.timeout_s,
        )
        if self.max_output_tokens is not None:
            kwargs["max_tokens"] = self.max_output_tokens
        if request.web_search:
            kwargs["extra_body"] = {"plugins": [WEB_SEARCH_PLUGIN]}

        logger.info(
            "Calling LLM  model=%s  backend=%s  web_search=%s",
            request.model,
            self.base_url,
            request.web_search,
        )
        logger.info("Awaiting response...")
        t0 = time.monotonic()
        response = await self._client.chat.completions.create(**kwargs)
        text = response.choices[0].message.content if response.choices else None
        logger.info(
            "Response received (%.1fs, %s chars)",
            time.monotonic() - t0,
            f"{len(text or ''):,}",
        )
        return _CompletionResponse(text=text)

    async def close(self) -> None:
        await self._client.close()


# ---------------------------------------------------------------------------
# Public helpers
# ---------------------------------------------------------------------------


def create_client(config: Config) -> ChatClient:
    """Create a client from configuration, resolving API key and headers.

    API key resolution order:
        1. ``config.api_key`` (explicit)
        2. ``LLM_API_KEY`` environment variable
        3. ``"lm-studio"`` fallback (LM Studio ignores the value)

    OpenRouter headers are injected automatically when ``config.base_url``
    contains ``"openrouter.ai"``.
    """
    api_key = config.api_key or os.environ.get("LLM_API_KEY") or "lm-studio"

    extra_headers: dict = {}
    if "openrouter.ai" in config.base_url:
        extra_headers = {
            "HTTP-Referer": "https://github.com/sciscan",
            "X-Title": "sciscan",
        }

    return ChatClient(
        base_url=config.base_url,
        api_key=api_key,
        extra_headers=extra_headers,
        timeout_s=config.timeout_s,
        max_output_tokens=config.max_output_tokens,
    )
