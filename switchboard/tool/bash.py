"""Shell command tool"""

import asyncio
import os
from .base import Tool, clip

BLOCKED_COMMANDS = ["rm -rf /", "mkfs", "dd if=/dev/zero", "> /dev/sda"]
MAX_OUTPUT = 8000


class BashTool(Tool):
    name = "run_shell"
    description = (
        "Execute a shell command and return the output. Use for running CLI tools, "
        "checking system state, git operations, processing files. Timeout: 30 seconds."
    )

    def get_parameters_schema(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "command": {
                    "type": "string",
                    "description": "The shell command to execute (bash)",
                },
                "workingDir": {
                    "type": "string",
                    "description": "Working directory (optional, defaults to the configured dir)",
                },
            },
            "required": ["command"],
        }

    async def execute(self, args: dict, context: dict) -> str:
        command = args["command"]
        cwd = args.get("workingDir") or context.get("cwd") or "."
        timeout = context.get("shell_timeout", 30)

        if any(blocked in command for blocked in BLOCKED_COMMANDS):
            return "Error: Command blocked for safety."

        try:
            proc = await asyncio.create_subprocess_shell(
                command,
                cwd=str(cwd),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env={**os.environ, "LANG": "en_US.UTF-8"},
            )
            try:
                stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
            except asyncio.TimeoutError:
                proc.kill()
                await proc.wait()
                return f"Error: Command timed out after {timeout}s"
        except OSError as e:
            return f"Error executing command: {e}"

        out = stdout.decode(errors="replace")
        err = stderr.decode(errors="replace")
        if proc.returncode != 0:
            return f"Exit code {proc.returncode}\n{out[:2000]}\n{err[:2000]}".strip()
        return clip(out, MAX_OUTPUT) or "(no output)"
