"""Configuration management"""

import json
import logging
import os
from pathlib import Path

from pydantic import BaseModel, Field

from .fallback_order import FallbackOrderStore, parse_provider_list
from .schema import ApiKeys, ProviderConfig

logger = logging.getLogger(__name__)

ENV_API_KEYS = {
    "openai": "OPENAI_API_KEY",
    "google": "GOOGLE_API_KEY",
    "nvidia": "NVIDIA_API_KEY",
    "groq": "GROQ_API_KEY",
    "openrouter": "OPENROUTER_API_KEY",
}


class Settings(BaseModel):
    primary: str = "groq"
    fallbacks: list[str] = Field(default_factory=list)
    api_keys: ApiKeys = Field(default_factory=ApiKeys)
    custom_providers: dict[str, ProviderConfig] = Field(default_factory=dict)
    working_dir: Path = Field(default_factory=Path.cwd)
    system_prompt_file: Path | None = None
    agent_model: str = "claude-opus-4-6"

    @classmethod
    def load(cls, path: Path | None = None, use_store: bool = True) -> "Settings":
        """Load settings: config file, then environment, then stored state.

        Stored credentials only fill keys that are still missing. A persisted
        fallback order overrides the primary/fallbacks from file and env.
        """
        if path is None:
            candidates = [
                Path.cwd() / "switchboard.json",
                Path.home() / ".config" / "switchboard" / "config.json",
            ]
            for p in candidates:
                if p.exists():
                    path = p
                    break

        data: dict = {}
        if path and path.exists():
            data = json.loads(path.read_text())
            logger.debug(f"Loaded config from {path}")

        settings = cls(**data)
        settings = settings._apply_env()

        if use_store:
            from switchboard.auth.credentials import CredentialStore

            settings.api_keys = settings.api_keys.merged(CredentialStore().api_keys())

            order_store = FallbackOrderStore()
            if order_store.exists():
                order = order_store.get()
                settings.primary = order.primary
                settings.fallbacks = list(order.fallbacks)

        return settings

    def _apply_env(self) -> "Settings":
        update: dict = {}
        if os.environ.get("PRIMARY_PROVIDER"):
            update["primary"] = os.environ["PRIMARY_PROVIDER"]
        if os.environ.get("FALLBACK_PROVIDERS"):
            update["fallbacks"] = parse_provider_list(os.environ["FALLBACK_PROVIDERS"])
        if os.environ.get("SWITCHBOARD_WORKING_DIR"):
            update["working_dir"] = Path(os.environ["SWITCHBOARD_WORKING_DIR"])
        if os.environ.get("SWITCHBOARD_SYSTEM_PROMPT_FILE"):
            update["system_prompt_file"] = Path(os.environ["SWITCHBOARD_SYSTEM_PROMPT_FILE"])

        env_keys = {family: os.environ.get(var) for family, var in ENV_API_KEYS.items()}
        api_keys = ApiKeys(**{
            family: env_keys.get(family) or current
            for family, current in self.api_keys.model_dump().items()
        })
        update["api_keys"] = api_keys

        return self.model_copy(update=update)

    def save(self, path: Path):
        """Save settings to file"""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.model_dump_json(indent=2, by_alias=True))
