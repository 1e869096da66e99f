"""Tools available to chat providers that run their own tool-calling loop"""

from .base import Tool, ToolExecutor
from .registry import ToolRegistry

__all__ = ["Tool", "ToolExecutor", "ToolRegistry"]
