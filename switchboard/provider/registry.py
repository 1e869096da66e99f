"""Provider registry: model selection, fallback chain, runtime switching.

The registry owns every configured provider, tracks which one is active
(switchable at runtime, e.g. by a /model command) and runs queries through
the ordered fallback chain when the active provider fails.
"""

import logging
from contextlib import aclosing
from dataclasses import dataclass
from typing import TYPE_CHECKING, AsyncIterator

from pydantic import ValidationError

from switchboard.config.schema import ProviderConfig, ProviderKind, RegistryConfig

from .base import Provider, QueryOptions, StreamChunk, create_provider
from .errors import ActiveProviderMissingError, UnknownProviderError
from .presets import FAMILY_PRESETS, preset_config

if TYPE_CHECKING:
    from switchboard.config.config import Settings
    from switchboard.tool.base import ToolExecutor

logger = logging.getLogger(__name__)

ALL_FAILED_MESSAGE = "All providers failed. Check your API keys and configuration."
ABORTED_MESSAGE = "Request aborted"


@dataclass
class ProviderListing:
    key: str
    name: str
    model: str
    status: str
    active: bool


class ProviderRegistry:
    """Registered providers plus the single mutable active key"""

    def __init__(self, config: RegistryConfig, tools: "ToolExecutor | None" = None):
        self.primary_key = config.primary
        self.fallback_keys = list(config.fallbacks)
        self.active_key = config.primary
        self.tools = tools
        self._providers: dict[str, Provider] = {}

        for key, provider_config in config.providers.items():
            self.register(key, provider_config)

    def register(self, key: str, config: ProviderConfig | dict) -> Provider:
        """Build and store the provider for ``config``; replaces an existing key"""
        if isinstance(config, dict):
            kind = config.get("type")
            if kind not in {k.value for k in ProviderKind} and not isinstance(kind, ProviderKind):
                raise UnknownProviderError(f"Unknown provider type for '{key}': {kind}")
            try:
                config = ProviderConfig.model_validate(config)
            except ValidationError as e:
                raise UnknownProviderError(f"Invalid provider config for '{key}': {e}") from e

        provider = create_provider(config, tools=self.tools)
        self.add(key, provider)
        return provider

    def add(self, key: str, provider: Provider):
        """Store an already constructed provider"""
        if key in self._providers:
            logger.debug(f"Replacing existing provider: {key}")
        self._providers[key] = provider
        logger.debug(f"Registered provider: {key} ({provider.config.model})")

    def get(self, key: str) -> Provider | None:
        return self._providers.get(key)

    def keys(self) -> list[str]:
        return list(self._providers)

    def get_active(self) -> Provider:
        provider = self._providers.get(self.active_key)
        if provider is None:
            raise ActiveProviderMissingError(f'Active provider "{self.active_key}" not found')
        return provider

    def get_active_key(self) -> str:
        return self.active_key

    def switch_to(self, key: str) -> bool:
        """Make ``key`` active; returns False and changes nothing if unknown"""
        if key not in self._providers:
            return False
        self.active_key = key
        logger.info(f"Active provider switched to {key}")
        return True

    def reset_to_default(self):
        self.active_key = self.primary_key

    def set_fallback_order(self, primary: str, fallbacks: list[str]):
        """Replace the configured order; takes effect on the next query"""
        self.primary_key = primary
        self.fallback_keys = [k for k in fallbacks if k != primary]

    def attempt_order(self) -> list[str]:
        """Active key first, then the configured fallbacks without it"""
        active = self.active_key
        return [active, *(k for k in self.fallback_keys if k != active)]

    def list_all(self) -> list[ProviderListing]:
        listings = []
        for key, provider in self._providers.items():
            info = provider.get_info()
            listings.append(ProviderListing(
                key=key,
                name=info.name,
                model=info.model,
                status=info.status,
                active=key == self.active_key,
            ))
        return listings

    def status_report(self) -> str:
        lines = []
        for listing in self.list_all():
            marker = "->" if listing.active else "  "
            lines.append(f"{marker} {listing.key}: {listing.name} ({listing.model}) {listing.status}")
        return f"Model: {self.active_key}\n\n" + "\n".join(lines)

    async def _is_available(self, key: str, provider: Provider) -> bool:
        try:
            available = await provider.is_available()
        except Exception as e:
            logger.warning(f'Availability check for "{key}" raised: {e}')
            return False
        if not available:
            logger.info(f'Provider "{key}" not available, skipping')
        return available

    async def query_with_fallback(self, options: QueryOptions) -> AsyncIterator[StreamChunk]:
        """Query the active provider, falling back through the chain on failure.

        Unregistered and unavailable providers are skipped silently. A
        ``fallback`` chunk is emitted only when another provider is actually
        about to be tried. Exhausting the chain yields one final ``error``.
        """
        chain = self.attempt_order()
        failed: tuple[str, str] | None = None

        for key in chain:
            if options.cancelled:
                yield StreamChunk.failure(ABORTED_MESSAGE)
                return

            provider = self._providers.get(key)
            if provider is None:
                logger.debug(f'Provider "{key}" not registered, skipping')
                continue

            if not await self._is_available(key, provider):
                continue

            if failed is not None:
                failed_name, reason = failed
                logger.info(f"Falling back from {failed_name} to {provider.name}")
                yield StreamChunk.fallback(failed_name, provider.name, reason)
                failed = None

            error: str | None = None
            try:
                # closed before the next provider starts
                async with aclosing(provider.query(options)) as stream:
                    async for chunk in stream:
                        if chunk.type == "error":
                            error = chunk.error or "Unknown error"
                            break
                        yield chunk
                        if chunk.type == "done":
                            return
            except Exception as e:
                logger.exception(f'Provider "{key}" raised during query')
                error = str(e) or type(e).__name__

            if error is None:
                # stream ended without a terminal chunk
                return

            if options.cancelled:
                yield StreamChunk.failure(ABORTED_MESSAGE)
                return

            logger.warning(f'Provider "{key}" failed: {error}')
            failed = (provider.name, error)

        yield StreamChunk.failure(ALL_FAILED_MESSAGE)


def create_registry(settings: "Settings", tools: "ToolExecutor | None" = None) -> ProviderRegistry:
    """Build a registry from user settings.

    Providers are auto-registered for every available API key. The agent
    runtime is registered when the chain references it, Ollama always.
    """
    providers: dict[str, ProviderConfig] = {}
    keys = settings.api_keys.model_dump()

    if settings.primary == "claude-sdk" or "claude-sdk" in settings.fallbacks:
        options = {}
        if settings.system_prompt_file:
            options["system_prompt_file"] = str(settings.system_prompt_file)
        providers["claude-sdk"] = preset_config("claude-sdk", model=settings.agent_model, options=options)

    for family, preset_keys in FAMILY_PRESETS.items():
        api_key = keys.get(family)
        if not api_key:
            continue
        if family == "google":
            providers["google"] = preset_config("gemini-2.5-flash", name="Google Gemini", api_key=api_key)
        for preset_key in preset_keys:
            providers[preset_key] = preset_config(preset_key, api_key=api_key)

    providers["ollama"] = preset_config("ollama")
    providers.update(settings.custom_providers)

    registry = ProviderRegistry(
        RegistryConfig(primary=settings.primary, fallbacks=settings.fallbacks, providers=providers),
        tools=tools,
    )
    logger.info(f"Registry ready: {len(providers)} providers, chain {' -> '.join(registry.attempt_order())}")
    return registry
