"""Base tool interface"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Protocol, runtime_checkable


class Tool(ABC):
    name: str
    description: str

    @abstractmethod
    def get_parameters_schema(self) -> dict:
        """Return JSON schema for parameters"""
        pass

    @abstractmethod
    async def execute(self, args: dict, context: dict) -> str:
        """Execute the tool and return result"""
        pass


@runtime_checkable
class ToolExecutor(Protocol):
    """What a chat provider needs to run a tool-calling loop"""

    def get_schemas(self) -> list[dict]:
        """Tool catalog in OpenAI function-calling format"""
        ...

    async def execute(self, name: str, args: dict, working_dir: Path | None = None) -> str:
        """Run one tool call; failures come back as text, never raised"""
        ...


def resolve_path(raw: str, context: dict) -> Path:
    """Resolve a tool path argument against the working directory"""
    path = Path(raw).expanduser()
    if path.is_absolute():
        return path
    return Path(context.get("cwd") or ".") / path


def clip(text: str, limit: int, note: str = "truncated") -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + f"\n... ({note}, {len(text)} chars total)"
