"""Common provider configurations"""

from typing import Any

from switchboard.config.schema import ProviderConfig, ProviderKind

ANTHROPIC_URL = "https://api.anthropic.com/v1"
OPENAI_URL = "https://api.openai.com/v1"
GROQ_URL = "https://api.groq.com/openai/v1"
GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/openai"
NVIDIA_URL = "https://integrate.api.nvidia.com/v1"
OPENROUTER_URL = "https://openrouter.ai/api/v1"
OLLAMA_URL = "http://localhost:11434/v1"


def _chat(name: str, model: str, base_url: str, vision: bool, tools: bool = True) -> dict[str, Any]:
    return {
        "type": ProviderKind.GENERIC_CHAT,
        "name": name,
        "model": model,
        "base_url": base_url,
        "supports_vision": vision,
        "supports_streaming": True,
        "supports_tools": tools,
    }


PROVIDER_PRESETS: dict[str, dict[str, Any]] = {
    # Agent runtime with built-in tools
    "claude-sdk": {
        "type": ProviderKind.AGENT_SDK,
        "name": "Claude (Agent SDK)",
        "model": "claude-opus-4-6",
        "supports_tools": True,
        "supports_vision": True,
        "supports_streaming": True,
    },

    # Anthropic through its OpenAI-compatible endpoint
    "claude-opus": _chat("Claude Opus 4", "claude-opus-4-6", ANTHROPIC_URL, vision=True),
    "claude-sonnet": _chat("Claude Sonnet 4", "claude-sonnet-4-20250514", ANTHROPIC_URL, vision=True),
    "claude-haiku": _chat("Claude 3.5 Haiku", "claude-3-5-haiku-20241022", ANTHROPIC_URL, vision=True),

    "groq": _chat("Groq (Llama 3.3 70B)", "llama-3.3-70b-versatile", GROQ_URL, vision=False),
    "groq-llama-3.1-8b": _chat("Llama 3.1 8B (Groq)", "llama-3.1-8b-instant", GROQ_URL, vision=False),
    "groq-mixtral": _chat("Mixtral 8x7B (Groq)", "mixtral-8x7b-32768", GROQ_URL, vision=False),

    "gpt-4o": _chat("GPT-4o", "gpt-4o", OPENAI_URL, vision=True),
    "gpt-4o-mini": _chat("GPT-4o Mini", "gpt-4o-mini", OPENAI_URL, vision=True),
    "gpt-4.1": _chat("GPT-4.1", "gpt-4.1", OPENAI_URL, vision=True),
    "gpt-4.1-mini": _chat("GPT-4.1 Mini", "gpt-4.1-mini", OPENAI_URL, vision=True),
    "o3-mini": _chat("o3 Mini", "o3-mini", OPENAI_URL, vision=False),

    "gemini-2.5-pro": _chat("Gemini 2.5 Pro", "gemini-2.5-pro", GEMINI_URL, vision=True),
    "gemini-2.5-flash": _chat("Gemini 2.5 Flash", "gemini-2.5-flash", GEMINI_URL, vision=True),
    "gemini-3-pro": _chat("Gemini 3 Pro (Preview)", "gemini-3-pro-preview", GEMINI_URL, vision=True),
    "gemini-3-flash": _chat("Gemini 3 Flash (Preview)", "gemini-3-flash-preview", GEMINI_URL, vision=True),

    "nvidia-llama-3.3-70b": _chat("Llama 3.3 70B (NVIDIA)", "meta/llama-3.3-70b-instruct", NVIDIA_URL, vision=False),
    "nvidia-kimi-k2.5": _chat("Kimi K2.5 (NVIDIA)", "moonshotai/kimi-k2.5", NVIDIA_URL, vision=True),

    # Local models; tool support depends on the model, so off by default
    "ollama": _chat("Ollama (Local)", "llama3.2", OLLAMA_URL, vision=False, tools=False),

    "openrouter": _chat("OpenRouter", "anthropic/claude-sonnet-4", OPENROUTER_URL, vision=True),
}

# Presets registered when a key for the family is available
FAMILY_PRESETS: dict[str, list[str]] = {
    "groq": ["groq", "groq-llama-3.1-8b", "groq-mixtral"],
    "openai": ["gpt-4o", "gpt-4o-mini", "gpt-4.1", "gpt-4.1-mini", "o3-mini"],
    "google": ["gemini-2.5-pro", "gemini-2.5-flash", "gemini-3-pro", "gemini-3-flash"],
    "nvidia": ["nvidia-llama-3.3-70b", "nvidia-kimi-k2.5"],
    "openrouter": ["openrouter"],
}


def preset_config(key: str, **overrides: Any) -> ProviderConfig:
    """Build a ProviderConfig from a preset, with field overrides"""
    if key not in PROVIDER_PRESETS:
        raise KeyError(f"Unknown preset: {key}. Available: {', '.join(PROVIDER_PRESETS)}")
    return ProviderConfig(**{**PROVIDER_PRESETS[key], **overrides})
