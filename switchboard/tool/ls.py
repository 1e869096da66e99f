"""List directory tool"""

from pathlib import Path
from .base import Tool, resolve_path

MAX_DEPTH = 3
MAX_CHARS = 8000


def _format_size(size: int) -> str:
    if size < 1024:
        return f"{size}B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f}KB"
    return f"{size / (1024 * 1024):.1f}MB"


class ListTool(Tool):
    name = "list_directory"
    description = "List files and directories at a given path with types and sizes."

    def get_parameters_schema(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Directory path to list (default: current working directory)",
                },
                "recursive": {
                    "type": "boolean",
                    "description": "List recursively (max 3 levels deep, default: false)",
                },
            },
            "required": [],
        }

    async def execute(self, args: dict, context: dict) -> str:
        root = resolve_path(args.get("path") or ".", context)
        recursive = bool(args.get("recursive"))

        if not root.exists():
            return f"Error: Directory not found: {root}"
        if not root.is_dir():
            return f"Error: Not a directory: {root}"

        entries: list[str] = []

        def walk(directory: Path, depth: int) -> None:
            try:
                items = sorted(directory.iterdir(), key=lambda p: (not p.is_dir(), p.name.lower()))
            except PermissionError:
                return
            indent = "  " * depth
            for item in items:
                # dotfiles are noise in large listings
                if item.name.startswith(".") and depth == 0 and len(items) > 20:
                    continue
                if item.is_dir():
                    entries.append(f"{indent}{item.name}/")
                    if recursive and depth < MAX_DEPTH:
                        walk(item, depth + 1)
                else:
                    try:
                        entries.append(f"{indent}{item.name} ({_format_size(item.stat().st_size)})")
                    except OSError:
                        entries.append(f"{indent}{item.name}")

        walk(root, 0)
        if not entries:
            return f"{root}: (empty directory)"

        result = f"{root}:\n" + "\n".join(entries)
        if len(result) > MAX_CHARS:
            result = result[:MAX_CHARS] + "\n..."
        return result
