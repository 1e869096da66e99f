"""Agent runtime provider backed by the Claude Code CLI.

The CLI runs the full agent loop itself (file, shell and web tools built in)
and keeps multi-turn history server side; we only pass a resume handle and
translate its stream-json events into StreamChunks.

Requires: ``claude`` installed and logged in.
"""

import asyncio
import json
import logging
import os
import shutil
from functools import lru_cache
from pathlib import Path
from typing import AsyncIterator

from switchboard.config.schema import ProviderConfig, ProviderKind

from .base import Provider, ProviderInfo, QueryOptions, StreamChunk, await_unless_cancelled
from .errors import RequestAborted

logger = logging.getLogger(__name__)

CHECKPOINT_TOOL_THRESHOLD = 15
CHECKPOINT_MSG_THRESHOLD = 10

ALLOWED_TOOLS = ["Read", "Write", "Edit", "Bash", "Glob", "Grep", "WebSearch", "WebFetch", "Task"]
MAX_TURNS = 50
VERSION_CHECK_TIMEOUT = 5.0

# Variables that make the CLI think it is nested inside another session
NESTED_SESSION_VARS = ("CLAUDECODE", "CLAUDE_CODE_ENTRYPOINT")

THINKING_BUDGET = {"low": None, "medium": "8000", "high": "16000", "max": "31999"}

# stream-json lines carry whole tool outputs
STDOUT_LIMIT = 16 * 1024 * 1024

DEFAULT_CONFIG = ProviderConfig(
    type=ProviderKind.AGENT_SDK,
    name="Claude (Agent SDK)",
    model="claude-opus-4-6",
    supports_tools=True,
    supports_vision=True,
    supports_streaming=True,
)


@lru_cache(maxsize=None)
def load_prompt_document(path: Path) -> str:
    """Read the base instructions once; ``docs/`` references become absolute"""
    try:
        text = path.read_text()
    except OSError:
        logger.debug(f"No base instructions at {path}")
        return ""
    return text.replace("docs/", f"{path.parent}/docs/")


def checkpoint_reminder(options: QueryOptions) -> str | None:
    counters = options.checkpoint
    if counters is None:
        return None
    if (
        counters.tool_use_count < CHECKPOINT_TOOL_THRESHOLD
        and counters.message_count < CHECKPOINT_MSG_THRESHOLD
    ):
        return None
    return (
        f"[CHECKPOINT] You have already made {counters.tool_use_count} tool calls and "
        f"exchanged {counters.message_count} messages in this session. Write a checkpoint "
        "summary to your memory file (docs/memory/YYYY-MM-DD.md) before handling this request."
    )


class AgentSDKProvider(Provider):
    """Provider wrapping the Claude agent runtime"""

    def __init__(self, config: ProviderConfig | None = None):
        super().__init__(config or DEFAULT_CONFIG)
        options = self.config.options
        self.cli_path = options.get("cli_path") or shutil.which("claude") or "claude"
        prompt_file = options.get("system_prompt_file")
        self.prompt_file = Path(prompt_file) if prompt_file else Path.cwd() / "CLAUDE.md"

    @property
    def base_instructions(self) -> str:
        return load_prompt_document(self.prompt_file.resolve())

    def build_prompt(self, options: QueryOptions) -> str:
        reminder = checkpoint_reminder(options)
        if reminder:
            return f"{reminder}\n\n{options.prompt}"
        return options.prompt

    def build_system_prompt(self, options: QueryOptions) -> str:
        base = self.base_instructions
        if options.system_prompt and base:
            return f"{options.system_prompt}\n\n{base}"
        return options.system_prompt or base

    def build_command(self, options: QueryOptions) -> list[str]:
        cmd = [
            self.cli_path,
            "-p", self.build_prompt(options),
            "--output-format", "stream-json",
            "--verbose",
            "--model", self.config.model,
            "--permission-mode", "bypassPermissions",
            "--allowedTools", ",".join(ALLOWED_TOOLS),
            "--max-turns", str(MAX_TURNS),
        ]
        system_prompt = self.build_system_prompt(options)
        if system_prompt:
            cmd += ["--append-system-prompt", system_prompt]
        if options.resume_id:
            cmd += ["--resume", options.resume_id]
        return cmd

    def build_env(self, options: QueryOptions) -> dict[str, str]:
        env = {k: v for k, v in os.environ.items() if k not in NESTED_SESSION_VARS}
        budget = THINKING_BUDGET.get(options.effort)
        if budget:
            env["MAX_THINKING_TOKENS"] = budget
        return env

    async def _spawn(self, cmd: list[str], cwd: Path, env: dict[str, str]) -> asyncio.subprocess.Process:
        return await asyncio.create_subprocess_exec(
            *cmd,
            cwd=str(cwd),
            env=env,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            limit=STDOUT_LIMIT,
        )

    async def query(self, options: QueryOptions) -> AsyncIterator[StreamChunk]:
        cwd = options.working_dir or Path.cwd()
        accumulated = ""
        session_id = options.resume_id or ""
        tool_names: dict[str, str] = {}
        finished = False

        try:
            proc = await self._spawn(self.build_command(options), cwd, self.build_env(options))
        except OSError as e:
            yield StreamChunk.failure(f"Claude SDK error: {e}")
            return

        try:
            while True:
                line = await await_unless_cancelled(proc.stdout.readline(), options.cancel)
                if not line:
                    break

                try:
                    event = json.loads(line)
                except json.JSONDecodeError:
                    logger.debug(f"Skipping non-JSON CLI output: {line[:200]!r}")
                    continue

                event_type = event.get("type")
                session_id = event.get("session_id") or session_id

                if event_type == "assistant":
                    for block in (event.get("message") or {}).get("content") or []:
                        if block.get("type") == "text" and block.get("text"):
                            accumulated += block["text"]
                            yield StreamChunk.text_delta(accumulated, block["text"], session_id=session_id)
                        elif block.get("type") == "tool_use":
                            tool_names[block.get("id", "")] = block.get("name", "")
                            preview = json.dumps(block.get("input") or {})
                            yield StreamChunk.tool_use(block.get("name", ""), preview, session_id=session_id)

                elif event_type == "user":
                    for block in (event.get("message") or {}).get("content") or []:
                        if isinstance(block, dict) and block.get("type") == "tool_result":
                            name = tool_names.get(block.get("tool_use_id", ""), "")
                            yield StreamChunk.tool_result(name, _tool_result_text(block.get("content")))

                elif event_type == "result":
                    finished = True
                    if event.get("is_error"):
                        reason = event.get("result") or event.get("subtype") or "unknown error"
                        yield StreamChunk.failure(f"Claude SDK error: {reason}")
                    else:
                        yield StreamChunk.done(
                            accumulated,
                            cost_usd=float(event.get("total_cost_usd") or 0.0),
                            session_id=session_id or None,
                        )
                    break

            if not finished:
                await await_unless_cancelled(proc.wait(), options.cancel)
                stderr = (await proc.stderr.read()).decode(errors="replace").strip()
                detail = stderr[-500:] or f"exit code {proc.returncode}"
                yield StreamChunk.failure(f"Claude SDK error: {detail}")

        except RequestAborted:
            yield StreamChunk.failure("Request aborted")
        except (OSError, ValueError) as e:
            yield StreamChunk.failure(f"Claude SDK error: {e}")
        finally:
            if proc.returncode is None:
                try:
                    proc.kill()
                except ProcessLookupError:
                    pass
                await proc.wait()

    async def is_available(self) -> bool:
        """Local check that the CLI is installed; no network call"""
        try:
            proc = await asyncio.create_subprocess_exec(
                self.cli_path, "--version",
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError:
            return False
        try:
            await asyncio.wait_for(proc.wait(), timeout=VERSION_CHECK_TIMEOUT)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            return False
        return proc.returncode == 0

    def get_info(self) -> ProviderInfo:
        return ProviderInfo(name=self.name, model=self.config.model, status="Agent SDK (CLI auth)")


def _tool_result_text(content) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "\n".join(
            part.get("text", "") for part in content if isinstance(part, dict)
        )
    return ""
