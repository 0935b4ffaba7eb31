"""
Configuration Module

Loads configuration from YAML file with environment variable override.
"""

from __future__ import annotations

import os
from pathlib import Path
from string import Formatter
from typing import Literal, Optional

import yaml
from pydantic import (
    BaseModel,
    Field,
    SecretStr,
    ValidationInfo,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict


class TelegramConfig(BaseModel):
    """Telegram API configuration."""
    api_id: int = Field(..., description="Telegram API ID from my.telegram.org")
    api_hash: str = Field(..., description="Telegram API hash")
    bot_token: SecretStr = Field(..., description="Bot token from @BotFather")
    session_name: str = Field(default="companion_bot", description="Session file name")
    allowed_chat_ids: list[int] = Field(
        default_factory=list,
        description="Private chats the bot answers. Empty = answer everyone",
    )


class LLMConfig(BaseModel):
    """LLM provider configuration."""
    providers: list[Literal["groq", "openrouter", "huggingface"]] = Field(
        default_factory=lambda: ["groq"],
        description="Providers in failover order",
    )
    groq_api_key: SecretStr = Field(default=SecretStr(""))
    groq_model: str = Field(default="llama-3.3-70b-versatile")
    openrouter_api_key: SecretStr = Field(default=SecretStr(""))
    openrouter_model: str = Field(default="meta-llama/llama-3.3-70b-instruct")
    huggingface_api_key: SecretStr = Field(default=SecretStr(""))
    huggingface_model: str = Field(default="meta-llama/Llama-3.1-8B-Instruct")
    max_tokens: int = Field(default=420, ge=16, le=4000)
    temperature: float = Field(default=0.75, ge=0.0, le=2.0)
    max_retries: int = Field(default=2, ge=1, le=5)

    @model_validator(mode="after")
    def check_providers(self) -> "LLMConfig":
        if not self.providers:
            raise ValueError("At least one LLM provider must be configured")
        return self


class GateConfig(BaseModel):
    """Response cache and per-chat rate limit."""
    max_cache_entries: int = Field(
        default=100, ge=1,
        description="Max cached replies before LRU eviction",
    )
    cache_ttl_seconds: Optional[float] = Field(
        default=None, gt=0,
        description="Optional expiry for cached replies (None = no expiry)",
    )
    cache_cleanup_minutes: int = Field(
        default=30, ge=1, le=1440,
        description="Clear the whole response cache every N minutes",
    )
    rate_window_ms: int = Field(
        default=20_000, ge=1,
        description="Rate limit window length in milliseconds",
    )
    max_requests_per_window: int = Field(
        default=3, ge=1,
        description="LLM calls allowed per chat per window",
    )


class ChatConfig(BaseModel):
    """Conversation behavior."""
    bot_name: str = Field(default="Lumina")
    user_name: str = Field(default="Sayang", description="How the bot addresses its owner")
    system_prompt_path: str = Field(
        default="config/system_prompt.md",
        description="Path to the persona system prompt markdown file",
    )
    history_limit: int = Field(
        default=6, ge=0, le=100,
        description="Recent turns per chat included in the prompt",
    )
    history_path: Optional[str] = Field(
        default="data/history.json",
        description="JSON file for conversation history (None = memory only)",
    )
    persona: str = Field(default="TSUNDERE")
    mood: str = Field(default="NORMAL")
    throttle_reply: str = Field(
        default="{bot_name} lagi sibuk, {user_name}. Mohon sabar ya! Coba lagi {retry_after} detik lagi.",
    )
    error_reply: str = Field(
        default="Maaf, {user_name}. {bot_name} lagi ada gangguan teknis.",
    )
    topic_keywords: Optional[dict[str, list[str]]] = Field(
        default=None,
        description="Topic → keywords map (None = built-in table)",
    )

    @field_validator("throttle_reply", "error_reply")
    @classmethod
    def check_reply_placeholders(cls, value: str, info: ValidationInfo) -> str:
        """Reject templates with placeholders the responder cannot fill."""
        allowed = {"bot_name", "user_name"}
        if info.field_name == "throttle_reply":
            allowed.add("retry_after")
        try:
            names = {name for _, name, _, _ in Formatter().parse(value) if name is not None}
        except ValueError as e:
            raise ValueError(f"Malformed template: {e}") from e
        unknown = names - allowed
        if unknown:
            raise ValueError(
                f"Unknown placeholders {sorted(unknown)}; allowed: {sorted(allowed)}"
            )
        return value


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")
    file: Optional[str] = Field(default="logs/companion.log")


class AppConfig(BaseSettings):
    """
    Main application configuration.

    Usage:
        config = AppConfig.from_yaml("config/config.yaml")
    """
    model_config = SettingsConfigDict(
        env_prefix="COMPANION_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    telegram: TelegramConfig
    llm: LLMConfig = Field(default_factory=LLMConfig)
    gate: GateConfig = Field(default_factory=GateConfig)
    chat: ChatConfig = Field(default_factory=ChatConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "AppConfig":
        """Load configuration from YAML file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        return cls(**data)

    @model_validator(mode="after")
    def check_placeholders(self) -> "AppConfig":
        """Check if credentials are still using placeholder values."""
        placeholders = {
            "your_api_hash_here",
            "your_bot_token_here",
            "your_groq_key",
            "your_openrouter_key",
            "your_huggingface_key",
        }
        if self.telegram.api_id == 12345678:
            raise ValueError("Telegram api_id is still using the placeholder: 12345678")
        if self.telegram.api_hash in placeholders:
            raise ValueError(
                f"Telegram api_hash is still using the placeholder: {self.telegram.api_hash}"
            )
        if self.telegram.bot_token.get_secret_value() in placeholders:
            raise ValueError("Telegram bot_token is still using placeholder value")
        for provider in self.llm.providers:
            key: SecretStr = getattr(self.llm, f"{provider}_api_key")
            if key.get_secret_value() in placeholders:
                raise ValueError(f"{provider} API key is still using placeholder value")
        return self


def load_config(path: Optional[str | Path] = None) -> AppConfig:
    """
    Load configuration from file or environment.

    Tries: explicit path → config/config.yaml → config.yaml → env vars.
    """
    if path:
        return AppConfig.from_yaml(path)

    default_paths = [
        Path("config/config.yaml"),
        Path("config.yaml"),
    ]
    for p in default_paths:
        if p.exists():
            return AppConfig.from_yaml(p)

    # Fall back to environment
    return AppConfig(
        telegram=TelegramConfig(
            api_id=int(os.environ["COMPANION_TELEGRAM__API_ID"]),
            api_hash=os.environ["COMPANION_TELEGRAM__API_HASH"],
            bot_token=os.environ["COMPANION_TELEGRAM__BOT_TOKEN"],
        ),
    )
