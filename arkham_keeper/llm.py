"""LLM client: streaming HTTP connection to a chat-completion backend.

The orchestrator depends on a client matching the protocol:

    def stream(self, messages: list[PromptMessage]) -> AsyncGenerator[bytes, None]: ...

`stream` is an async generator: it issues the request when first iterated and
yields raw body chunks as they arrive. Decoding the SSE frames is the job of
arkham_keeper.stream, so the client never interprets the body.

Production code builds a ChatCompletionClient from LLMSettings via
from_settings(). Tests pass an httpx.MockTransport through the same
constructor instead of patching the network.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from typing import Any, Protocol

import httpx

from arkham_keeper.config import LLMSettings
from arkham_keeper.prompts import PromptMessage

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com"


# ---------------------------------------------------------------------------
# Protocol: every completion client must match this signature
# ---------------------------------------------------------------------------

class CompletionClient(Protocol):
    def stream(self, messages: list[PromptMessage]) -> AsyncGenerator[bytes, None]: ...


# ---------------------------------------------------------------------------
# ChatCompletionClient: OpenAI-compatible /v1/chat/completions
# ---------------------------------------------------------------------------

class ChatCompletionClient:
    """Async streaming client for OpenAI-compatible chat backends.

    Request:  POST {base_url}/v1/chat/completions
              {"model": ..., "stream": true, "messages": [...]}
    Response: newline-delimited "data: {...}" frames, ended by "data: [DONE]"
              or by the server closing the stream.

    Args:
        model:       Model identifier sent in the body.
        base_url:    Base URL of the backend. Defaults to the OpenAI API.
        api_key:     Bearer token, or empty string if not required.
        temperature: Sampling temperature, omitted from the body when None.
        top_p:       Nucleus sampling, omitted from the body when None.
        timeout:     HTTP timeout in seconds. None disables it.
        transport:   Optional httpx transport (used by tests).
    """

    def __init__(
        self,
        model: str,
        base_url: str | None = None,
        api_key: str = "",
        temperature: float | None = None,
        top_p: float | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        self._api_key = api_key
        self._model = model
        self._temperature = temperature
        self._top_p = top_p
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(
        cls,
        settings: LLMSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> ChatCompletionClient:
        return cls(
            model=settings.model,
            base_url=settings.base_url,
            api_key=settings.api_key or "",
            temperature=settings.temperature,
            top_p=settings.top_p,
            timeout=settings.timeout,
            transport=transport,
        )

    @property
    def url(self) -> str:
        return f"{self._base_url}/v1/chat/completions"

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _build_body(self, messages: list[PromptMessage]) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": self._model,
            "stream": True,
            "messages": messages,
        }
        if self._temperature is not None:
            body["temperature"] = self._temperature
        if self._top_p is not None:
            body["top_p"] = self._top_p
        return body

    async def stream(self, messages: list[PromptMessage]) -> AsyncGenerator[bytes, None]:
        body = self._build_body(messages)
        logger.debug("llm request url=%s messages=%d", self.url, len(messages))

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                async with client.stream(
                    "POST", self.url, json=body, headers=self._headers()
                ) as resp:
                    if not resp.is_success:
                        raise LLMError(
                            f"LLM backend returned HTTP {resp.status_code}"
                        )
                    async for chunk in resp.aiter_bytes():
                        yield chunk
        except httpx.ConnectError as e:
            raise LLMError(f"Cannot connect to LLM backend at {self._base_url}") from e
        except httpx.TimeoutException as e:
            raise LLMError(f"LLM backend timed out after {self._timeout}s") from e
        except httpx.HTTPError as e:
            raise LLMError(f"LLM request failed: {e}") from e


# ---------------------------------------------------------------------------
# LLMError: raised by ChatCompletionClient for all connection and protocol failures
# ---------------------------------------------------------------------------

class LLMError(RuntimeError):
    """Raised when the LLM backend cannot be reached or returns an error."""
