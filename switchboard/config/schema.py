"""Configuration schemas using Pydantic"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ProviderKind(str, Enum):
    """Closed set of provider families"""
    AGENT_SDK = "claude-sdk"
    GENERIC_CHAT = "openai-compatible"


class ProviderConfig(BaseModel):
    """Static description of one backend.

    Accepts both snake_case and the camelCase keys used by JSON config files
    (``baseUrl``, ``apiKey``, ``supportsTools`` ...).
    """
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )

    type: ProviderKind
    name: str
    model: str
    api_key: str | None = None
    base_url: str | None = None
    max_tokens: int = 4096
    temperature: float = 0.7
    supports_tools: bool = False
    supports_vision: bool = False
    supports_streaming: bool = True
    options: dict[str, Any] = Field(default_factory=dict)


class RegistryConfig(BaseModel):
    """Primary key, ordered fallback keys and the providers they refer to"""
    primary: str
    fallbacks: list[str] = Field(default_factory=list)
    providers: dict[str, ProviderConfig] = Field(default_factory=dict)


class ApiKeys(BaseModel):
    """API keys per provider family"""
    openai: str | None = None
    google: str | None = None
    nvidia: str | None = None
    groq: str | None = None
    openrouter: str | None = None

    def merged(self, other: dict[str, str | None]) -> "ApiKeys":
        """Return a copy where keys in ``other`` fill in missing values"""
        data = self.model_dump()
        for family, key in other.items():
            if family in data and key and not data[family]:
                data[family] = key
        return ApiKeys(**data)
