"""Python script execution tool"""

import asyncio
import os
import sys
import tempfile
from pathlib import Path

from .base import Tool, clip

MAX_OUTPUT = 10000


class PythonTool(Tool):
    name = "python_execute"
    description = (
        "Execute a Python 3 script and return stdout/stderr. Use for data processing, "
        "calculations, file conversion and anything that benefits from Python libraries."
    )

    def get_parameters_schema(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "code": {
                    "type": "string",
                    "description": "Python 3 code to execute. Use print() for output.",
                },
                "workingDir": {
                    "type": "string",
                    "description": "Working directory for the script (optional)",
                },
            },
            "required": ["code"],
        }

    async def execute(self, args: dict, context: dict) -> str:
        cwd = args.get("workingDir") or context.get("cwd") or "."
        timeout = context.get("python_timeout", 60)

        # a temp file avoids shell quoting of the script
        with tempfile.NamedTemporaryFile("w", suffix=".py", delete=False) as f:
            f.write(args["code"])
            script = Path(f.name)

        try:
            proc = await asyncio.create_subprocess_exec(
                sys.executable, str(script),
                cwd=str(cwd),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env={**os.environ, "PYTHONIOENCODING": "utf-8"},
            )
            try:
                stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
            except asyncio.TimeoutError:
                proc.kill()
                await proc.wait()
                return f"Error: Python script timed out after {timeout}s"
        except OSError as e:
            return f"Error executing python: {e}"
        finally:
            script.unlink(missing_ok=True)

        out = stdout.decode(errors="replace")
        err = stderr.decode(errors="replace")
        if proc.returncode != 0:
            return f"Python error (exit {proc.returncode}):\n{err[:3000]}\n{out[:3000]}".strip()
        return clip(out, MAX_OUTPUT) or "(no output)"
