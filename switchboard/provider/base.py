"""Provider abstraction for LLM backends"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, AsyncIterator, Awaitable, Literal, TypeVar, Union

from switchboard.config.schema import ProviderConfig, ProviderKind

from .errors import RequestAborted, UnknownProviderError

if TYPE_CHECKING:
    from switchboard.tool.base import ToolExecutor

logger = logging.getLogger(__name__)

T = TypeVar("T")

ChunkType = Literal["text", "tool_use", "tool_result", "done", "error", "fallback"]
EffortLevel = Literal["low", "medium", "high", "max"]
MessageRole = Literal["system", "user", "assistant"]

# Tool input/output previews in chunks are cut to this many characters.
# The model still receives the full tool output.
PREVIEW_CHARS = 200


def truncate_preview(text: str, limit: int = PREVIEW_CHARS) -> str:
    return text[:limit]


async def await_unless_cancelled(coro: Awaitable[T], cancel: asyncio.Event | None) -> T:
    """Await ``coro`` unless ``cancel`` fires first, then raise RequestAborted"""
    if cancel is None:
        return await coro

    if cancel.is_set():
        if asyncio.iscoroutine(coro):
            coro.close()
        raise RequestAborted()

    task = asyncio.ensure_future(coro)
    waiter = asyncio.ensure_future(cancel.wait())
    try:
        done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        task.cancel()
        raise
    finally:
        waiter.cancel()
    if task in done:
        return task.result()

    task.cancel()
    # the inner CancelledError stays in the task
    await asyncio.wait({task})
    if not task.cancelled() and task.exception() is not None:
        logger.debug(f"Cancelled request finished with {task.exception()!r}")
    raise RequestAborted()


@dataclass
class StreamChunk:
    """A fragment of a streamed response.

    ``text`` chunks carry the cumulative text in ``text`` and the new part in
    ``delta``. ``done`` and ``error`` are terminal; a provider yields exactly
    one of them per attempt. ``fallback`` is emitted only by the registry.
    """
    type: ChunkType
    text: str = ""
    delta: str = ""
    tool_name: str = ""
    tool_input: str = ""
    error: str = ""
    session_id: str | None = None
    cost_usd: float | None = None
    provider_name: str = ""
    failed_provider: str = ""

    @property
    def is_terminal(self) -> bool:
        return self.type in ("done", "error")

    @classmethod
    def text_delta(cls, text: str, delta: str, session_id: str | None = None) -> StreamChunk:
        return cls(type="text", text=text, delta=delta, session_id=session_id)

    @classmethod
    def tool_use(cls, name: str, preview: str = "", session_id: str | None = None) -> StreamChunk:
        return cls(type="tool_use", tool_name=name, tool_input=truncate_preview(preview), session_id=session_id)

    @classmethod
    def tool_result(cls, name: str, output: str) -> StreamChunk:
        return cls(type="tool_result", tool_name=name, text=truncate_preview(output))

    @classmethod
    def done(cls, text: str, cost_usd: float = 0.0, session_id: str | None = None) -> StreamChunk:
        return cls(type="done", text=text, cost_usd=max(0.0, cost_usd), session_id=session_id)

    @classmethod
    def failure(cls, message: str) -> StreamChunk:
        return cls(type="error", error=message)

    @classmethod
    def fallback(cls, failed: str, next_provider: str, reason: str = "") -> StreamChunk:
        return cls(type="fallback", failed_provider=failed, provider_name=next_provider, error=reason)

    def to_dict(self) -> dict:
        """Only the fields that carry information for this chunk type"""
        data: dict = {"type": self.type}
        for key in ("text", "delta", "tool_name", "tool_input", "error", "provider_name", "failed_provider"):
            value = getattr(self, key)
            if value:
                data[key] = value
        if self.session_id:
            data["session_id"] = self.session_id
        if self.cost_usd is not None:
            data["cost_usd"] = self.cost_usd
        return data


@dataclass
class ChatMessage:
    role: MessageRole
    content: str
    images: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class Resumable:
    """Server-side session handle, used by agent runtimes that keep history"""
    session_id: str


@dataclass(frozen=True)
class StatelessHistory:
    """Prior turns replayed on every request by stateless endpoints"""
    messages: tuple[ChatMessage, ...] = ()


Continuation = Union[Resumable, StatelessHistory]


@dataclass
class CheckpointCounters:
    """Activity since the caller's last memory checkpoint"""
    message_count: int = 0
    tool_use_count: int = 0


@dataclass
class QueryOptions:
    prompt: str
    system_prompt: str | None = None
    continuation: Continuation = field(default_factory=StatelessHistory)
    working_dir: Path | None = None
    effort: EffortLevel = "high"
    cancel: asyncio.Event | None = None
    checkpoint: CheckpointCounters | None = None

    @property
    def cancelled(self) -> bool:
        return self.cancel is not None and self.cancel.is_set()

    @property
    def history(self) -> tuple[ChatMessage, ...]:
        if isinstance(self.continuation, StatelessHistory):
            return self.continuation.messages
        return ()

    @property
    def resume_id(self) -> str | None:
        if isinstance(self.continuation, Resumable):
            return self.continuation.session_id
        return None


@dataclass
class ProviderInfo:
    name: str
    model: str
    status: str


class Provider(ABC):
    """Base class for LLM providers.

    ``query`` reports ordinary failures as an ``error`` chunk instead of
    raising, so callers handle every backend the same way.
    """

    def __init__(self, config: ProviderConfig):
        self.config = config

    @property
    def name(self) -> str:
        return self.config.name

    @abstractmethod
    def query(self, options: QueryOptions) -> AsyncIterator[StreamChunk]:
        """Stream a response for ``options``"""
        pass

    @abstractmethod
    async def is_available(self) -> bool:
        """Quick, side-effect free check that the backend can be tried"""
        pass

    @abstractmethod
    def get_info(self) -> ProviderInfo:
        pass


def create_provider(config: ProviderConfig, tools: ToolExecutor | None = None) -> Provider:
    """Build the provider implementation for ``config.type``"""
    if config.type == ProviderKind.AGENT_SDK:
        from .agent_sdk import AgentSDKProvider
        return AgentSDKProvider(config)
    elif config.type == ProviderKind.GENERIC_CHAT:
        from .openai_compat import OpenAICompatibleProvider
        return OpenAICompatibleProvider(config, tools=tools)
    else:
        raise UnknownProviderError(
            f"Unknown provider type: {config.type}. "
            f"Supported: {', '.join(k.value for k in ProviderKind)}"
        )
