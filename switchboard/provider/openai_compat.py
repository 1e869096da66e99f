"""OpenAI-compatible chat-completions provider.

Works with OpenAI, Groq, Gemini, NVIDIA NIM, Ollama, OpenRouter, LM Studio and
anything else that implements ``POST /chat/completions``. When a tool executor
is attached and the endpoint is tool-capable, queries run through the
tool-calling loop; otherwise responses are streamed as server-sent events.
"""

import asyncio
import json
import logging
from typing import AsyncIterator

import httpx

from switchboard.agent.loop import ToolLoop
from switchboard.config.schema import ProviderConfig
from switchboard.tool.base import ToolExecutor

from .base import Provider, ProviderInfo, QueryOptions, StreamChunk, await_unless_cancelled
from .errors import ProviderHTTPError, ProviderTransportError, RequestAborted, ToolCallingRejected

logger = logging.getLogger(__name__)

# Hosts known to accept the `tools` field. Matched as substrings of base_url,
# so proxied or self-hosted endpoints need supports_tools set explicitly.
TOOL_CAPABLE_HOSTS = [
    "api.openai.com",
    "api.groq.com",
    "generativelanguage.googleapis.com",
    "openrouter.ai",
    "integrate.api.nvidia.com",
    "api.mistral.ai",
    "api.together.xyz",
    "api.fireworks.ai",
]

LOCAL_HOSTS = ("localhost", "127.0.0.1")

# USD per 1K tokens for the text-length estimate
MODEL_COST_PER_1K = {
    "gpt-4o": 0.01,
    "gpt-4o-mini": 0.0003,
    "gemini-2.5-pro": 0.005,
    "gemini-2.5-flash": 0.0005,
}
DEFAULT_COST_PER_1K = 0.001

AVAILABILITY_TIMEOUT = 3.0

# Generation may take minutes; only connecting is bounded.
REQUEST_TIMEOUT = httpx.Timeout(None, connect=10.0)


def _estimate_tokens(text: str) -> float:
    """Rough token estimation (~4 chars per token)"""
    return len(text) / 4


async def _next_line(lines: AsyncIterator[str]) -> str | None:
    """Next line of the body, or None once the stream is exhausted"""
    try:
        return await lines.__anext__()
    except StopAsyncIteration:
        return None


def _first_choice(event: dict) -> dict:
    choices = event.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        return choices[0]
    return {}


class OpenAICompatibleProvider(Provider):
    """Provider for any OpenAI-style chat-completions endpoint"""

    def __init__(
        self,
        config: ProviderConfig,
        tools: ToolExecutor | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(config)
        self.tools = tools
        self.transport = transport
        self.tool_loop = ToolLoop()

    @property
    def base_url(self) -> str:
        return (self.config.base_url or "").rstrip("/")

    @property
    def is_local(self) -> bool:
        return any(host in self.base_url for host in LOCAL_HOSTS)

    def supports_tool_use(self) -> bool:
        """Explicit flag, or a base URL on the known tool-capable hosts"""
        if self.config.supports_tools:
            return True
        return any(host in self.base_url for host in TOOL_CAPABLE_HOSTS)

    def _client(self, timeout=REQUEST_TIMEOUT) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, transport=self.transport)

    async def query(self, options: QueryOptions) -> AsyncIterator[StreamChunk]:
        if self.tools is not None and self.supports_tool_use():
            try:
                async for chunk in self.tool_loop.execute(
                    self,
                    self.build_messages(options),
                    self.tools,
                    options,
                ):
                    yield chunk
                return
            except ToolCallingRejected as e:
                logger.info(f"{self.name}: tool calling rejected ({e}), retrying without tools")

        async for chunk in self._query_simple(options):
            yield chunk

    # ── Tool-use round ──────────────────────────────────────────────

    async def complete(
        self,
        messages: list[dict],
        tools: list[dict] | None = None,
        cancel: asyncio.Event | None = None,
    ) -> dict:
        """One non-streaming chat-completions request"""
        body: dict = {
            "model": self.config.model,
            "messages": messages,
            "max_tokens": self.config.max_tokens,
            "temperature": self.config.temperature,
        }
        if tools:
            body["tools"] = tools
            body["tool_choice"] = "auto"

        logger.debug(f"{self.name}: POST chat/completions ({len(messages)} messages, tools={bool(tools)})")

        async def send() -> dict:
            async with self._client() as client:
                response = await client.post(
                    f"{self.base_url}/chat/completions",
                    headers=self.build_headers(),
                    json=body,
                )
                if response.status_code >= 300:
                    raise ProviderHTTPError(response.status_code, response.text, self.name)
                try:
                    return response.json()
                except ValueError as e:
                    raise ProviderTransportError(f"Malformed response from {self.name}: {e}") from e

        try:
            return await await_unless_cancelled(send(), cancel)
        except httpx.HTTPError as e:
            raise ProviderTransportError(f"{self.name} request failed: {e}") from e

    # ── Simple streaming query ──────────────────────────────────────

    async def _query_simple(self, options: QueryOptions) -> AsyncIterator[StreamChunk]:
        body = {
            "model": self.config.model,
            "messages": self.build_messages(options),
            "max_tokens": self.config.max_tokens,
            "temperature": self.config.temperature,
            "stream": True,
        }

        accumulated = ""
        logger.info(f"Making {self.name} streaming call with model: {self.config.model}")

        try:
            async with self._client() as client:
                request = client.build_request(
                    "POST",
                    f"{self.base_url}/chat/completions",
                    headers=self.build_headers(),
                    json=body,
                )
                response = await await_unless_cancelled(client.send(request, stream=True), options.cancel)
                try:
                    if response.status_code >= 300:
                        raw = await await_unless_cancelled(response.aread(), options.cancel)
                        yield StreamChunk.failure(
                            f"{self.name} API error ({response.status_code}): {raw.decode(errors='replace')}"
                        )
                        return

                    lines = response.aiter_lines()
                    while True:
                        # a stalled body read must still notice the cancel event
                        line = await await_unless_cancelled(_next_line(lines), options.cancel)
                        if line is None:
                            break

                        line = line.strip()
                        if not line.startswith("data:"):
                            continue

                        data = line[5:].strip()
                        if data == "[DONE]":
                            yield StreamChunk.done(accumulated, cost_usd=self.estimate_cost(accumulated))
                            return

                        try:
                            event = json.loads(data)
                        except json.JSONDecodeError:
                            continue
                        if not isinstance(event, dict):
                            continue

                        choice = _first_choice(event)
                        delta = choice.get("delta")
                        text = delta.get("content") if isinstance(delta, dict) else None
                        if isinstance(text, str) and text:
                            accumulated += text
                            yield StreamChunk.text_delta(accumulated, text)

                        if choice.get("finish_reason"):
                            yield StreamChunk.done(accumulated, cost_usd=self.estimate_cost(accumulated))
                            return
                finally:
                    await response.aclose()
        except RequestAborted:
            yield StreamChunk.failure("Request aborted")
            return
        except httpx.HTTPError as e:
            yield StreamChunk.failure(f"{self.name} error: {e}")
            return

        if accumulated:
            yield StreamChunk.done(accumulated, cost_usd=self.estimate_cost(accumulated))
        else:
            yield StreamChunk.failure(f"{self.name} error: empty response")

    # ── Provider interface ──────────────────────────────────────────

    async def is_available(self) -> bool:
        if self.is_local:
            try:
                async with self._client(timeout=AVAILABILITY_TIMEOUT) as client:
                    response = await client.get(f"{self.base_url}/models")
                return response.is_success
            except httpx.HTTPError:
                return False
        return bool(self.config.api_key)

    def get_info(self) -> ProviderInfo:
        marker = " [tools]" if self.supports_tool_use() else ""
        if self.config.api_key:
            status = "configured"
        elif self.is_local:
            status = "local"
        else:
            status = "no API key"
        return ProviderInfo(name=self.name + marker, model=self.config.model, status=status)

    # ── Helpers ─────────────────────────────────────────────────────

    def build_headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        if "openrouter.ai" in self.base_url:
            headers["HTTP-Referer"] = "https://github.com/switchboard-ai/switchboard"
            headers["X-Title"] = "switchboard"
        return headers

    def build_messages(self, options: QueryOptions) -> list[dict]:
        """System prompt, replayed history, then the new user prompt"""
        messages: list[dict] = []

        if options.system_prompt:
            messages.append({"role": "system", "content": options.system_prompt})

        for msg in options.history:
            if self.config.supports_vision and msg.images:
                content: list[dict] = [{"type": "text", "text": msg.content}]
                for image in msg.images:
                    url = image if image.startswith(("http://", "https://", "data:")) else f"data:image/jpeg;base64,{image}"
                    content.append({"type": "image_url", "image_url": {"url": url}})
                messages.append({"role": msg.role, "content": content})
            else:
                messages.append({"role": msg.role, "content": msg.content})

        messages.append({"role": "user", "content": options.prompt})
        return messages

    def estimate_cost(self, text: str) -> float:
        rate = MODEL_COST_PER_1K.get(self.config.model, DEFAULT_COST_PER_1K)
        return _estimate_tokens(text) / 1000 * rate
