#!/usr/bin/env python3
"""
Chat transports: the request/response seam to the chat backend.
"""

from typing import Any, Dict, List, Optional, Protocol

import httpx
import ollama
import structlog

from .config import Config, default_config
from .errors import NetworkFailure
from .models import ChatRequest

logger = structlog.get_logger(__name__)


class ChatTransport(Protocol):
    async def send(self, request: ChatRequest) -> str:
        """Return the assistant reply text or raise ``NetworkFailure``."""
        ...

    async def aclose(self) -> None: ...


class HttpChatTransport:
    """POSTs ``{message, model?, context?}`` as JSON and expects ``{message}`` back."""

    def __init__(self, config: Optional[Config] = None, client: Optional[httpx.AsyncClient] = None):
        self.config = config or default_config
        self.endpoint = self.config.chat_endpoint
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=self.config.request_timeout_sec)

    async def send(self, request: ChatRequest) -> str:
        try:
            response = await self._client.post(self.endpoint, json=request.to_payload())
        except httpx.HTTPError as e:
            raise NetworkFailure(f"chat request failed: {e!r}") from e

        if not response.is_success:
            raise NetworkFailure(f"chat endpoint returned HTTP {response.status_code}",
                                 status_code=response.status_code)
        try:
            data = response.json()
        except ValueError as e:
            raise NetworkFailure("chat endpoint returned invalid JSON",
                                 status_code=response.status_code) from e

        message = data.get("message") if isinstance(data, dict) else None
        if not isinstance(message, str):
            raise NetworkFailure("chat reply has no 'message' string", status_code=response.status_code)
        return message

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


class OllamaChatTransport:
    """Answers with a local Ollama model instead of a remote endpoint."""

    def __init__(self, config: Optional[Config] = None, client: Optional[Any] = None):
        self.config = config or default_config
        self._client = client or ollama.AsyncClient(host=self.config.ollama_host,
                                                    timeout=self.config.request_timeout_sec)

    def _messages(self, request: ChatRequest) -> List[Dict[str, Any]]:
        messages = [{"role": "system", "content": self.config.system_prompt.strip()}]
        for item in request.context or ():
            messages.append({"role": item["role"], "content": item["content"]})
        messages.append({"role": "user", "content": request.message})
        return messages

    async def send(self, request: ChatRequest) -> str:
        model = self.config.ollama_model
        try:
            response = await self._client.chat(model=model, messages=self._messages(request))
        except ollama.ResponseError as e:
            raise NetworkFailure(f"ollama error: {e.error}", status_code=e.status_code) from e
        except (httpx.HTTPError, ConnectionError) as e:
            raise NetworkFailure(f"ollama unreachable: {e!r}") from e

        try:
            content = response["message"]["content"]
        except (KeyError, TypeError) as e:
            raise NetworkFailure("ollama reply has no message content") from e
        if not isinstance(content, str):
            raise NetworkFailure("ollama reply has no message content")
        return content.strip()

    async def aclose(self) -> None:
        close = getattr(getattr(self._client, "_client", None), "aclose", None)
        if close is not None:
            await close()


def create_transport(config: Optional[Config] = None) -> ChatTransport:
    """Factory function to create the transport named in the configuration."""
    config = config or default_config
    if config.transport == "ollama":
        logger.info("Using ollama transport", model=config.ollama_model)
        return OllamaChatTransport(config)
    logger.info("Using HTTP transport", endpoint=config.chat_endpoint)
    return HttpChatTransport(config)
