"""Persistent, user-editable provider fallback order.

The order is stored as JSON next to the credentials and, when an ``.env``
file is given, mirrored into its ``PRIMARY_PROVIDER`` and
``FALLBACK_PROVIDERS`` lines so a restart picks the same chain.
"""

import json
import logging
import os
import re
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from .paths import data_dir

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class FallbackOrder(BaseModel):
    primary: str
    fallbacks: list[str] = Field(default_factory=list)
    updated_at: str = Field(default_factory=_now)
    updated_by: str = "env"

    @property
    def chain(self) -> list[str]:
        return [self.primary, *self.fallbacks]


def parse_provider_list(value: str | None) -> list[str]:
    """Split a comma separated provider list, dropping blanks"""
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


class FallbackOrderStore:
    """Reads and rewrites the configured fallback chain"""

    def __init__(self, path: Path | None = None, env_file: Path | None = None):
        self.path = path or data_dir() / "fallback-order.json"
        self.env_file = env_file

    def exists(self) -> bool:
        return self.path.exists()

    def get(self) -> FallbackOrder:
        """Current order, from the JSON file or else the environment"""
        if self.path.exists():
            try:
                return FallbackOrder(**json.loads(self.path.read_text()))
            except (json.JSONDecodeError, OSError, ValidationError) as e:
                logger.warning(f"Ignoring unreadable fallback order {self.path}: {e}")

        return FallbackOrder(
            primary=os.environ.get("PRIMARY_PROVIDER") or "groq",
            fallbacks=parse_provider_list(os.environ.get("FALLBACK_PROVIDERS")),
        )

    def set(self, primary: str, fallbacks: list[str], updated_by: str = "unknown") -> FallbackOrder:
        order = FallbackOrder(
            primary=primary,
            fallbacks=[k for k in fallbacks if k != primary],
            updated_by=updated_by,
        )
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(order.model_dump_json(indent=2))
        logger.info(f"Fallback order updated by {updated_by}: {' -> '.join(order.chain)}")

        if self.env_file is not None:
            self._sync_to_env(order)
        return order

    def move_up(self, key: str, updated_by: str = "unknown") -> FallbackOrder:
        """Swap with the previous entry; the first fallback is promoted to primary"""
        current = self.get()
        fallbacks = list(current.fallbacks)
        primary = current.primary

        if key in fallbacks:
            idx = fallbacks.index(key)
            if idx > 0:
                fallbacks[idx - 1], fallbacks[idx] = fallbacks[idx], fallbacks[idx - 1]
            else:
                fallbacks[0] = primary
                primary = key
        return self.set(primary, fallbacks, updated_by)

    def move_down(self, key: str, updated_by: str = "unknown") -> FallbackOrder:
        """Swap with the next entry; the primary is demoted to first fallback"""
        current = self.get()
        fallbacks = list(current.fallbacks)
        primary = current.primary

        if key == primary and fallbacks:
            primary = fallbacks[0]
            fallbacks[0] = key
        elif key in fallbacks:
            idx = fallbacks.index(key)
            if idx < len(fallbacks) - 1:
                fallbacks[idx], fallbacks[idx + 1] = fallbacks[idx + 1], fallbacks[idx]
        return self.set(primary, fallbacks, updated_by)

    def add(self, key: str, updated_by: str = "unknown") -> FallbackOrder:
        current = self.get()
        fallbacks = list(current.fallbacks)
        if key not in fallbacks and key != current.primary:
            fallbacks.append(key)
        return self.set(current.primary, fallbacks, updated_by)

    def remove(self, key: str, updated_by: str = "unknown") -> FallbackOrder:
        current = self.get()
        fallbacks = [k for k in current.fallbacks if k != key]
        return self.set(current.primary, fallbacks, updated_by)

    def format_order(self) -> str:
        order = self.get()
        lines = [f"1. {order.primary} (Primary)"]
        for i, key in enumerate(order.fallbacks):
            lines.append(f"{i + 2}. {key}")
        return "\n".join(lines)

    def _sync_to_env(self, order: FallbackOrder):
        if not self.env_file.exists():
            return

        env = self.env_file.read_text()
        for name, value in (
            ("PRIMARY_PROVIDER", order.primary),
            ("FALLBACK_PROVIDERS", ",".join(order.fallbacks)),
        ):
            pattern = re.compile(rf"^{name}=.*$", re.MULTILINE)
            line = f"{name}={value}"
            if pattern.search(env):
                env = pattern.sub(lambda _: line, env)
            else:
                if env and not env.endswith("\n"):
                    env += "\n"
                env += line + "\n"
        self.env_file.write_text(env)
