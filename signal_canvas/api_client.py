"""
Multi-provider LLM client for Signal Canvas.

Supports:
- Anthropic (Claude Opus, Sonnet, Haiku) - including custom endpoints
- OpenAI (GPT-4o, GPT-4o-mini, reasoning models)

Every failure leaves this module as a GenerationFailure. A missing
credential is not an error at construction time: the request that needs
the provider fails with MissingCredential, so one absent key never takes
the process down.
"""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from collections.abc import AsyncGenerator
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Union

import anthropic
import openai
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Auto-load .env from project root
_project_root = Path(__file__).parent.parent
_env_file = _project_root / ".env"
if _env_file.exists():
    load_dotenv(_env_file)


class GenerationFailure(Exception):
    """A remote generation call failed (network, auth, quota, malformed response)."""

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.cause = cause


class MissingCredential(GenerationFailure):
    """No credential is configured for the provider a request needs."""


class Provider(Enum):
    """LLM provider."""

    ANTHROPIC = "anthropic"
    OPENAI = "openai"


# A prompt is either a flat string or a list of role/content messages
Prompt = Union[str, list[dict[str, Any]]]


@dataclass
class APIResponse:
    """Response from LLM API."""

    content: str
    model: str
    provider: Provider
    input_tokens: int = 0
    output_tokens: int = 0
    stop_reason: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class StreamChunk:
    """A chunk from streaming response."""

    text: str
    is_final: bool = False
    input_tokens: int = 0
    output_tokens: int = 0


# Model registry with provider info
MODEL_REGISTRY: dict[str, tuple[Provider, str]] = {
    # Anthropic models
    "opus": (Provider.ANTHROPIC, "claude-opus-4-5-20251101"),
    "sonnet": (Provider.ANTHROPIC, "claude-sonnet-4-20250514"),
    "haiku": (Provider.ANTHROPIC, "claude-haiku-4-5-20251001"),
    # OpenAI GPT-4 models
    "gpt-4o": (Provider.OPENAI, "gpt-4o"),
    "gpt-4o-mini": (Provider.OPENAI, "gpt-4o-mini"),
    # OpenAI reasoning models
    "o1": (Provider.OPENAI, "o1"),
    "o3-mini": (Provider.OPENAI, "o3-mini"),
}

# Substituted when a model's own provider has no credential
PROVIDER_DEFAULT_MODEL: dict[Provider, str] = {
    Provider.ANTHROPIC: "sonnet",
    Provider.OPENAI: "gpt-4o",
}

# Anthropic rejects temperatures above 1.0
ANTHROPIC_MAX_TEMPERATURE = 1.0


def resolve_model(model: str) -> tuple[Provider, str]:
    """Resolve model shorthand to (provider, full_model_id)."""
    if model in MODEL_REGISTRY:
        return MODEL_REGISTRY[model]
    # Guess provider from model name
    if model.startswith("claude"):
        return (Provider.ANTHROPIC, model)
    if model.startswith(("gpt-", "o1", "o3")):
        return (Provider.OPENAI, model)
    # Default to Anthropic
    return (Provider.ANTHROPIC, model)


def to_messages(prompt: Prompt) -> list[dict[str, Any]]:
    """Convert a flat prompt string into a single user message."""
    if isinstance(prompt, str):
        return [{"role": "user", "content": prompt}]
    return list(prompt)


class BaseLLMClient(ABC):
    """Abstract base class for LLM clients."""

    provider: Provider

    @abstractmethod
    async def complete(
        self,
        messages: list[dict[str, Any]],
        model: str,
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 1.0,
    ) -> APIResponse:
        """Get completion from LLM."""
        pass

    @abstractmethod
    def complete_streaming(
        self,
        messages: list[dict[str, Any]],
        model: str,
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 1.0,
    ) -> AsyncGenerator[StreamChunk, None]:
        """Get streaming completion from LLM."""
        ...


class AnthropicClient(BaseLLMClient):
    """Anthropic Claude API client."""

    provider = Provider.ANTHROPIC

    def __init__(self, api_key: str | None = None, base_url: str | None = None):
        # Support both ANTHROPIC_API_KEY and ANTHROPIC_AUTH_TOKEN
        self.api_key = api_key or os.environ.get("ANTHROPIC_API_KEY") or os.environ.get("ANTHROPIC_AUTH_TOKEN")
        if not self.api_key:
            raise MissingCredential(
                "Anthropic API key required. Set ANTHROPIC_API_KEY or ANTHROPIC_AUTH_TOKEN environment variable."
            )
        # Support custom base URL for alternative endpoints
        self.base_url = base_url or os.environ.get("ANTHROPIC_BASE_URL")
        client_kwargs: dict[str, Any] = {"api_key": self.api_key}
        if self.base_url:
            client_kwargs["base_url"] = self.base_url
        self.client = anthropic.AsyncAnthropic(**client_kwargs)

    def _request_params(
        self,
        messages: list[dict[str, Any]],
        model: str,
        system: str | None,
        max_tokens: int,
        temperature: float,
    ) -> dict[str, Any]:
        request_params: dict[str, Any] = {
            "model": model,
            "max_tokens": max_tokens,
            "temperature": max(0.0, min(temperature, ANTHROPIC_MAX_TEMPERATURE)),
            "messages": messages,
        }
        if system:
            request_params["system"] = system
        return request_params

    async def complete(
        self,
        messages: list[dict[str, Any]],
        model: str,
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 1.0,
    ) -> APIResponse:
        params = self._request_params(messages, model, system, max_tokens, temperature)
        try:
            response = await self.client.messages.create(**params)
        except anthropic.APIError as e:
            raise GenerationFailure(f"Anthropic API error: {e}", cause=e) from e

        content = ""
        for block in response.content:
            if block.type == "text":
                content += block.text

        return APIResponse(
            content=content,
            model=model,
            provider=Provider.ANTHROPIC,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            stop_reason=response.stop_reason,
        )

    async def complete_streaming(
        self,
        messages: list[dict[str, Any]],
        model: str,
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 1.0,
    ) -> AsyncGenerator[StreamChunk, None]:
        params = self._request_params(messages, model, system, max_tokens, temperature)

        input_tokens = 0
        output_tokens = 0

        try:
            async with self.client.messages.stream(**params) as stream:
                async for text in stream.text_stream:
                    yield StreamChunk(text=text)

                final_message = await stream.get_final_message()
                input_tokens = final_message.usage.input_tokens
                output_tokens = final_message.usage.output_tokens
        except anthropic.APIError as e:
            raise GenerationFailure(f"Anthropic API error: {e}", cause=e) from e

        yield StreamChunk(
            text="",
            is_final=True,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )


class OpenAIClient(BaseLLMClient):
    """OpenAI GPT API client."""

    provider = Provider.OPENAI

    def __init__(self, api_key: str | None = None):
        self.api_key = api_key or os.environ.get("OPENAI_API_KEY")
        if not self.api_key:
            raise MissingCredential("OpenAI API key required. Set OPENAI_API_KEY environment variable.")
        self.client = openai.AsyncOpenAI(api_key=self.api_key)

    def _request_params(
        self,
        messages: list[dict[str, Any]],
        model: str,
        system: str | None,
        max_tokens: int,
        temperature: float,
    ) -> dict[str, Any]:
        # OpenAI uses system message in messages array
        full_messages = []
        if system:
            full_messages.append({"role": "system", "content": system})
        full_messages.extend(messages)

        params: dict[str, Any] = {
            "model": model,
            "messages": full_messages,
            "temperature": temperature,
        }
        # Reasoning models use max_completion_tokens instead of max_tokens
        if model.startswith(("o1", "o3")):
            params["max_completion_tokens"] = max_tokens
        else:
            params["max_tokens"] = max_tokens
        return params

    async def complete(
        self,
        messages: list[dict[str, Any]],
        model: str,
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 1.0,
    ) -> APIResponse:
        params = self._request_params(messages, model, system, max_tokens, temperature)
        try:
            response = await self.client.chat.completions.create(**params)
        except openai.OpenAIError as e:
            raise GenerationFailure(f"OpenAI API error: {e}", cause=e) from e

        content = response.choices[0].message.content or ""
        input_tokens = response.usage.prompt_tokens if response.usage else 0
        output_tokens = response.usage.completion_tokens if response.usage else 0

        return APIResponse(
            content=content,
            model=model,
            provider=Provider.OPENAI,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            stop_reason=response.choices[0].finish_reason,
        )

    async def complete_streaming(
        self,
        messages: list[dict[str, Any]],
        model: str,
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 1.0,
    ) -> AsyncGenerator[StreamChunk, None]:
        params = self._request_params(messages, model, system, max_tokens, temperature)

        input_tokens = 0
        output_tokens = 0

        try:
            stream = await self.client.chat.completions.create(
                **params,
                stream=True,
                stream_options={"include_usage": True},
            )
            async for chunk in stream:
                if chunk.choices and chunk.choices[0].delta.content:
                    yield StreamChunk(text=chunk.choices[0].delta.content)
                if chunk.usage:
                    input_tokens = chunk.usage.prompt_tokens
                    output_tokens = chunk.usage.completion_tokens
        except openai.OpenAIError as e:
            raise GenerationFailure(f"OpenAI API error: {e}", cause=e) from e

        yield StreamChunk(
            text="",
            is_final=True,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )


class MultiProviderClient:
    """
    Unified LLM client that routes to the appropriate provider.

    Providers without a credential are skipped. A request for a model
    whose provider is unavailable falls back to any configured provider,
    and fails with MissingCredential when there is none.
    """

    def __init__(
        self,
        anthropic_key: str | None = None,
        openai_key: str | None = None,
        clients: dict[Provider, BaseLLMClient] | None = None,
    ):
        """
        Initialize multi-provider client.

        Args:
            anthropic_key: Anthropic API key (falls back to the environment)
            openai_key: OpenAI API key (falls back to the environment)
            clients: Pre-built provider clients, bypassing credential lookup
        """
        self._clients: dict[Provider, BaseLLMClient] = {}

        if clients is not None:
            self._clients.update(clients)
            return

        try:
            self._clients[Provider.ANTHROPIC] = AnthropicClient(api_key=anthropic_key)
        except MissingCredential:
            logger.debug("Anthropic credential not configured")

        try:
            self._clients[Provider.OPENAI] = OpenAIClient(api_key=openai_key)
        except MissingCredential:
            logger.debug("OpenAI credential not configured")

        if not self._clients:
            logger.warning(
                "No LLM provider available. Set ANTHROPIC_API_KEY or OPENAI_API_KEY; every generation will fail."
            )

    @property
    def providers(self) -> tuple[Provider, ...]:
        """Providers with a usable credential."""
        return tuple(self._clients)

    def _get_client(self, model: str) -> tuple[BaseLLMClient, str]:
        """Get appropriate client for model."""
        provider, full_model = resolve_model(model)

        if provider in self._clients:
            return self._clients[provider], full_model

        # Requested provider not available, fall back to whatever is configured
        if self._clients:
            fallback_provider, fallback = next(iter(self._clients.items()))
            _, fallback_model = resolve_model(PROVIDER_DEFAULT_MODEL[fallback_provider])
            logger.info(
                f"No {provider.value} credential, routing {model} to {fallback_provider.value} as {fallback_model}"
            )
            return fallback, fallback_model

        raise MissingCredential(f"No credential configured for {provider.value} (model {model})")

    async def complete(
        self,
        prompt: Prompt,
        model: str,
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 1.0,
    ) -> APIResponse:
        """Get a single-shot completion, routing to the appropriate provider."""
        client, full_model = self._get_client(model)
        try:
            return await client.complete(
                messages=to_messages(prompt),
                model=full_model,
                system=system,
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except GenerationFailure:
            raise
        except Exception as e:
            raise GenerationFailure(f"LLM call failed: {e}", cause=e) from e

    async def complete_streaming(
        self,
        prompt: Prompt,
        model: str,
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 1.0,
    ) -> AsyncGenerator[StreamChunk, None]:
        """Get streaming completion, routing to the appropriate provider."""
        client, full_model = self._get_client(model)
        try:
            async for chunk in client.complete_streaming(
                messages=to_messages(prompt),
                model=full_model,
                system=system,
                max_tokens=max_tokens,
                temperature=temperature,
            ):
                yield chunk
        except GenerationFailure:
            raise
        except Exception as e:
            raise GenerationFailure(f"LLM stream failed: {e}", cause=e) from e


__all__ = [
    "APIResponse",
    "AnthropicClient",
    "BaseLLMClient",
    "GenerationFailure",
    "MODEL_REGISTRY",
    "MissingCredential",
    "MultiProviderClient",
    "OpenAIClient",
    "PROVIDER_DEFAULT_MODEL",
    "Prompt",
    "Provider",
    "StreamChunk",
    "resolve_model",
    "to_messages",
]
