"""Credential storage for provider API keys"""

import json
import logging
from pathlib import Path
from typing import Optional

from switchboard.config.paths import data_dir

logger = logging.getLogger(__name__)

KNOWN_FAMILIES = ("openai", "google", "nvidia", "groq", "openrouter")


class CredentialStore:
    """File-based credential storage, one entry per provider family"""

    def __init__(self, directory: Path | None = None):
        self.config_dir = directory or data_dir()
        self.credentials_file = self.config_dir / "credentials.json"

    def _load(self) -> dict:
        if not self.credentials_file.exists():
            return {}
        try:
            return json.loads(self.credentials_file.read_text())
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Ignoring unreadable credentials file {self.credentials_file}: {e}")
            return {}

    def _save(self, data: dict):
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.credentials_file.write_text(json.dumps(data, indent=2))
        self.credentials_file.chmod(0o600)

    def get(self, family: str) -> Optional[dict]:
        """Get credentials for a provider family"""
        return self._load().get(family)

    def set(self, family: str, credentials: dict):
        """Set credentials for a provider family"""
        data = self._load()
        data[family] = credentials
        self._save(data)

    def delete(self, family: str):
        """Delete credentials for a provider family"""
        data = self._load()
        if family in data:
            del data[family]
            self._save(data)

    def get_api_key(self, family: str) -> Optional[str]:
        creds = self.get(family)
        if creds:
            return creds.get("api_key")
        return None

    def api_keys(self) -> dict[str, str]:
        """All stored API keys for the known provider families"""
        data = self._load()
        keys = {}
        for family in KNOWN_FAMILIES:
            key = (data.get(family) or {}).get("api_key")
            if key:
                keys[family] = key
        return keys
