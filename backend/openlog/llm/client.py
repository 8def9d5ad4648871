"""
OpenLog — LLM provider client.

Groq and Moonshot both speak the OpenAI chat-completions protocol, so a
single ``AsyncOpenAI`` client per provider covers them. The model name
picks the provider.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import AsyncIterator

from openai import AsyncOpenAI, OpenAIError

from openlog.core.config import LLMConfig
from openlog.errors import LLMNotConfiguredError, LLMProviderError
from openlog.llm.prompts import SYSTEM_PROMPT
from openlog.utils.logging import logger


@dataclass(frozen=True)
class ModelInfo:
    id: str
    provider: str
    description: str


MODELS: dict[str, ModelInfo] = {
    "llama-3.3-70b-versatile": ModelInfo(
        id="llama-3.3-70b-versatile",
        provider="groq",
        description="Groq-hosted Llama 3.3 70B. Fast, the default.",
    ),
    "moonshot-v1-8k": ModelInfo(
        id="moonshot-v1-8k",
        provider="moonshot",
        description="Moonshot v1 with an 8k context window.",
    ),
    "kimi-k2-turbo-preview": ModelInfo(
        id="kimi-k2-turbo-preview",
        provider="moonshot",
        description="Moonshot Kimi K2 turbo preview. Large context.",
    ),
}


def list_models() -> list[ModelInfo]:
    return list(MODELS.values())


class ChangelogLLM:
    """Streams chat completions from the provider that serves a model."""

    def __init__(self, config: LLMConfig):
        self.config = config
        self._clients: dict[str, AsyncOpenAI] = {}

    def resolve_model(self, model: str | None) -> str:
        """Known model names pass through; anything else uses the default."""
        if model and model in MODELS:
            return model
        if model:
            logger.warning("  Unknown model %r, using %s", model, self.config.default_model)
        return self.config.default_model

    def _client_for(self, model: str) -> AsyncOpenAI:
        provider = MODELS[model].provider if model in MODELS else "groq"
        if provider not in self._clients:
            if provider == "moonshot":
                key, base_url, env_var = (
                    self.config.moonshot_api_key, self.config.moonshot_base_url, "MOONSHOT_API_KEY",
                )
            else:
                key, base_url, env_var = (
                    self.config.groq_api_key, self.config.groq_base_url, "GROQ_API_KEY",
                )
            if not key:
                raise LLMNotConfiguredError(model, env_var)
            self._clients[provider] = AsyncOpenAI(api_key=key, base_url=base_url)
        return self._clients[provider]

    def ensure_configured(self, model: str) -> None:
        """Raise LLMNotConfiguredError before a stream starts rather than mid-way."""
        self._client_for(model)

    async def stream_text(self, prompt: str, model: str) -> AsyncIterator[str]:
        """Yield content deltas for a single-turn prompt."""
        client = self._client_for(model)
        try:
            stream = await client.chat.completions.create(
                model=model,
                temperature=self.config.temperature,
                max_tokens=self.config.max_tokens,
                stream=True,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
            )
            async for event in stream:
                if not event.choices:
                    continue
                delta = event.choices[0].delta.content
                if delta:
                    yield delta
        except OpenAIError as exc:
            raise LLMProviderError(model, str(exc)) from exc
