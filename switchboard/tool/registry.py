"""Tool registry"""

import logging
from pathlib import Path

from .base import Tool

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Built-in tool set, exposed to chat providers as a tool executor"""

    def __init__(self, defaults: bool = True, context: dict | None = None):
        self._tools: dict[str, Tool] = {}
        self._context = dict(context or {})
        if defaults:
            self._register_defaults()

    def _register_defaults(self):
        """Register built-in tools"""
        from .bash import BashTool
        from .read import ReadTool
        from .write import WriteTool
        from .edit import EditTool
        from .ls import ListTool
        from .web import WebFetchTool, WebSearchTool
        from .python import PythonTool

        for tool_class in [BashTool, ReadTool, WriteTool, WebFetchTool, WebSearchTool, ListTool, PythonTool, EditTool]:
            tool = tool_class()
            self._tools[tool.name] = tool

    def register(self, tool: Tool):
        """Register a tool"""
        self._tools[tool.name] = tool

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def get_schemas(self) -> list[dict]:
        """Tool schemas in OpenAI function-calling format"""
        return [
            {
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": tool.get_parameters_schema(),
                },
            }
            for tool in self._tools.values()
        ]

    async def execute(self, name: str, args: dict, working_dir: Path | None = None) -> str:
        """Execute a tool by name"""
        tool = self._tools.get(name)
        if not tool:
            return f"Error: Unknown tool '{name}'"

        context = {**self._context, "cwd": working_dir or self._context.get("cwd") or Path.cwd()}
        try:
            return await tool.execute(args, context)
        except KeyError as e:
            return f"Error executing {name}: missing argument {e}"
        except Exception as e:
            logger.warning(f"Tool {name} raised: {e}")
            return f"Error executing {name}: {e}"
