"""Tool-calling loop for chat endpoints without a native agent runtime.

Each round is one stateless chat-completions request carrying the full
message list and the tool catalog. Tool calls are executed locally and their
results appended as ``role: tool`` messages for the next round.
"""

import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, AsyncIterator

from switchboard.provider.base import QueryOptions, StreamChunk
from switchboard.provider.errors import (
    ProviderHTTPError,
    ProviderTransportError,
    RequestAborted,
    ToolCallingRejected,
)
from switchboard.tool.base import ToolExecutor

if TYPE_CHECKING:
    from switchboard.provider.openai_compat import OpenAICompatibleProvider

logger = logging.getLogger(__name__)

MAX_TOOL_ROUNDS = 10

# Status codes that mean "this endpoint does not understand `tools`"
TOOLS_REJECTED_STATUSES = (400, 422)

# Flat rate per 1K tokens; usage-based but not billing grade
USAGE_COST_PER_1K = 0.001


def estimate_cost_from_usage(usage: dict | None) -> float:
    if not isinstance(usage, dict):
        return 0.0
    total = (usage.get("prompt_tokens") or 0) + (usage.get("completion_tokens") or 0)
    return max(0.0, total / 1000 * USAGE_COST_PER_1K)


def _message_of(choices) -> dict | None:
    if not isinstance(choices, list) or not isinstance(choices[0], dict):
        return None
    message = choices[0].get("message") or {}
    return message if isinstance(message, dict) else None


def _parse_arguments(raw) -> dict:
    if isinstance(raw, dict):
        return raw
    try:
        args = json.loads(raw or "{}")
    except json.JSONDecodeError:
        return {}
    return args if isinstance(args, dict) else {}


@dataclass
class ToolLoop:
    """Bounded tool-use loop"""

    max_rounds: int = MAX_TOOL_ROUNDS

    async def execute(
        self,
        provider: "OpenAICompatibleProvider",
        messages: list[dict],
        tools: ToolExecutor,
        options: QueryOptions,
    ) -> AsyncIterator[StreamChunk]:
        """Run rounds until the model answers without tool calls.

        Raises ToolCallingRejected only on the first round and before any
        chunk is yielded, so the caller can retry without tools.
        """
        current_messages = list(messages)
        schemas = tools.get_schemas()
        accumulated = ""
        total_cost = 0.0

        for round_no in range(1, self.max_rounds + 1):
            try:
                data = await provider.complete(current_messages, tools=schemas, cancel=options.cancel)
            except RequestAborted as e:
                yield StreamChunk.failure(str(e))
                return
            except ProviderHTTPError as e:
                if round_no == 1 and e.status_code in TOOLS_REJECTED_STATUSES:
                    raise ToolCallingRejected(str(e)) from e
                yield StreamChunk.failure(str(e))
                return
            except ProviderTransportError as e:
                if round_no == 1:
                    raise ToolCallingRejected(str(e)) from e
                yield StreamChunk.failure(f"Network error: {e}")
                return

            if not isinstance(data, dict):
                yield StreamChunk.failure(f"Malformed response from {provider.name}: expected a JSON object")
                return

            choices = data.get("choices") or []
            if not choices:
                yield StreamChunk.failure("No response from provider")
                return

            message = _message_of(choices)
            if message is None:
                yield StreamChunk.failure(f"Malformed response from {provider.name}: no message in choices")
                return

            total_cost += estimate_cost_from_usage(data.get("usage"))
            content = message.get("content")
            content = content if isinstance(content, str) else ""
            tool_calls = message.get("tool_calls") or []
            if not isinstance(tool_calls, list) or not all(isinstance(c, dict) for c in tool_calls):
                yield StreamChunk.failure(f"Malformed response from {provider.name}: invalid tool_calls")
                return

            if content:
                accumulated += content
                yield StreamChunk.text_delta(accumulated, content)

            if not tool_calls:
                yield StreamChunk.done(accumulated, cost_usd=total_cost)
                return

            logger.debug(f"{provider.name}: round {round_no} requested {len(tool_calls)} tool call(s)")
            current_messages.append({
                "role": "assistant",
                "content": message.get("content"),
                "tool_calls": tool_calls,
            })

            for tool_call in tool_calls:
                function = tool_call.get("function")
                function = function if isinstance(function, dict) else {}
                name = function.get("name", "")
                args = _parse_arguments(function.get("arguments"))

                yield StreamChunk.tool_use(name, json.dumps(args))

                result = await tools.execute(name, args, options.working_dir)

                yield StreamChunk.tool_result(name, result)

                current_messages.append({
                    "role": "tool",
                    "tool_call_id": tool_call.get("id", ""),
                    "content": result,
                })

                if options.cancelled:
                    yield StreamChunk.failure("Request aborted")
                    return

        logger.warning(f"{provider.name}: stopped after {self.max_rounds} tool rounds")
        if accumulated:
            yield StreamChunk.done(accumulated, cost_usd=total_cost)
        else:
            yield StreamChunk.failure("Max tool call rounds reached")
