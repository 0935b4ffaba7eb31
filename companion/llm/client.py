"""
LLM Client Module

Unified client for OpenAI-compatible chat completion providers
(Groq, OpenRouter, HuggingFace router). Providers are tried in the
configured order: 429 is retried with backoff, then the next provider
takes over; connection errors fail over immediately.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional, List, Dict
from enum import Enum

import httpx

logger = logging.getLogger(__name__)

PROVIDER_BASE_URLS: Dict[str, str] = {
    "groq": "https://api.groq.com/openai/v1",
    "openrouter": "https://openrouter.ai/api/v1",
    "huggingface": "https://router.huggingface.co/v1",
}


class MessageRole(Enum):
    """Chat message roles."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass
class Message:
    """Chat message."""
    role: MessageRole
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role.value, "content": self.content}

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(MessageRole.SYSTEM, content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(MessageRole.USER, content)

    @classmethod
    def assistant(cls, content: str) -> "Message":
        return cls(MessageRole.ASSISTANT, content)


@dataclass
class ChatResponse:
    """LLM chat response."""
    content: str
    model: str
    finish_reason: str
    provider_used: str = ""
    usage: Dict[str, int] = field(default_factory=dict)

    @property
    def total_tokens(self) -> int:
        return self.usage.get("total_tokens", 0)


class LLMError(Exception):
    """All providers failed or the provider rejected the request."""


class RateLimitError(LLMError):
    pass


class EmptyResponseError(LLMError):
    """Provider answered without any message content."""


@dataclass
class ProviderSettings:
    """Credentials and model for one provider."""
    name: str
    api_key: str
    model: str
    base_url: str = ""

    def __post_init__(self):
        if not self.base_url:
            try:
                self.base_url = PROVIDER_BASE_URLS[self.name]
            except KeyError:
                raise ValueError(f"Unknown provider: {self.name}") from None


class _Endpoint:
    """Single OpenAI-compatible endpoint."""

    def __init__(
        self,
        settings: ProviderSettings,
        max_tokens: int = 420,
        temperature: float = 0.75,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.name = settings.name
        self.base_url = settings.base_url
        self.model = settings.model
        self.max_tokens = max_tokens
        self.temperature = temperature

        headers = {}
        if settings.api_key:
            headers["Authorization"] = f"Bearer {settings.api_key}"
        if settings.name == "openrouter":
            headers["HTTP-Referer"] = "https://github.com/tg-companion"
            headers["X-Title"] = "tg-companion"

        self.client = httpx.AsyncClient(
            headers=headers,
            timeout=httpx.Timeout(10.0, read=60.0),
            follow_redirects=True,
            transport=transport,
        )

    async def chat(self, messages: List[Message]) -> ChatResponse:
        """Send request to this endpoint. Raises on failure."""
        payload = {
            "model": self.model,
            "messages": [m.to_dict() for m in messages],
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }

        response = await self.client.post(
            f"{self.base_url}/chat/completions",
            json=payload,
        )

        if response.status_code == 429:
            raise RateLimitError(f"{self.name}: 429 Too Many Requests")

        response.raise_for_status()
        try:
            data = response.json()
        except ValueError as e:
            raise LLMError(f"{self.name}: invalid JSON body") from e
        if not isinstance(data, dict):
            raise LLMError(f"{self.name}: expected a JSON object, got {type(data).__name__}")

        choices = data.get("choices") or []
        content = ""
        finish_reason = "stop"
        if choices:
            try:
                content = (choices[0].get("message") or {}).get("content") or ""
                finish_reason = choices[0].get("finish_reason") or "stop"
            except (AttributeError, TypeError, KeyError, IndexError) as e:
                raise LLMError(f"{self.name}: malformed completion payload") from e
            if not isinstance(content, str):
                raise LLMError(f"{self.name}: completion content is not text")

        return ChatResponse(
            content=content.strip(),
            model=data.get("model", self.model),
            finish_reason=finish_reason,
            provider_used=self.name,
            usage=data["usage"] if isinstance(data.get("usage"), dict) else {},
        )

    async def close(self):
        await self.client.aclose()


class LLMClient:
    """
    LLM client with ordered failover across providers.

    Usage:
        async with LLMClient([ProviderSettings("groq", key, model)]) as llm:
            response = await llm.chat([Message.user("hai")])
    """

    def __init__(
        self,
        providers: List[ProviderSettings],
        max_tokens: int = 420,
        temperature: float = 0.75,
        max_retries: int = 2,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not providers:
            raise ValueError("At least one provider is required")

        self.max_retries = max_retries
        self._endpoints: list[_Endpoint] = [
            _Endpoint(
                p,
                max_tokens=max_tokens,
                temperature=temperature,
                transport=transport,
            )
            for p in providers
        ]

        logger.info(
            f"LLM client initialized: endpoints={[e.name for e in self._endpoints]}"
        )

    @property
    def provider_names(self) -> list[str]:
        return [e.name for e in self._endpoints]

    async def chat(self, messages: List[Message]) -> ChatResponse:
        """
        Send chat completion request with failover.

        Tries each endpoint in order. On rate-limit or connection error,
        falls back to the next endpoint. Non-429 4xx responses are raised
        as LLMError right away.
        """
        last_error: Optional[Exception] = None

        for ep in self._endpoints:
            for attempt in range(self.max_retries):
                try:
                    logger.debug(f"Trying {ep.name} (attempt {attempt + 1})")
                    response = await ep.chat(messages)
                    logger.info(
                        f"LLM [{ep.name}]: {len(response.content)} chars, "
                        f"{response.total_tokens} tokens"
                    )
                    return response

                except RateLimitError as e:
                    last_error = e
                    logger.warning(f"{ep.name}: rate limited, "
                                   f"{'retrying' if attempt < self.max_retries - 1 else 'failing over'}...")
                    if attempt < self.max_retries - 1:
                        await asyncio.sleep(2 ** attempt)
                    else:
                        break

                except (httpx.ConnectError, httpx.ConnectTimeout) as e:
                    last_error = e
                    logger.warning(f"{ep.name}: connection error ({e}), failing over...")
                    break

                except httpx.HTTPStatusError as e:
                    last_error = e
                    if e.response.status_code >= 500:
                        logger.warning(f"{ep.name}: server error {e.response.status_code}")
                        if attempt < self.max_retries - 1:
                            await asyncio.sleep(2 ** attempt)
                    else:
                        raise LLMError(
                            f"{ep.name}: request rejected with {e.response.status_code}"
                        ) from e

                except httpx.HTTPError as e:
                    last_error = e
                    logger.error(f"{ep.name}: transport error: {e}")
                    if attempt < self.max_retries - 1:
                        await asyncio.sleep(1)

        raise LLMError(
            f"All LLM endpoints failed after exhausting retries: {last_error}"
        )

    async def close(self) -> None:
        for ep in self._endpoints:
            await ep.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.close()


def providers_from_config(llm_config) -> List[ProviderSettings]:
    """Build provider settings from an LLMConfig, keeping its failover order."""
    return [
        ProviderSettings(
            name=name,
            api_key=getattr(llm_config, f"{name}_api_key").get_secret_value(),
            model=getattr(llm_config, f"{name}_model"),
        )
        for name in llm_config.providers
    ]
