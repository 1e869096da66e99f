"""Read file tool"""

from .base import Tool, clip, resolve_path

MAX_CHARS = 20000


class ReadTool(Tool):
    name = "read_file"
    description = "Read the contents of a file. Returns the text content."

    def get_parameters_schema(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Absolute or relative path to the file",
                },
                "maxLines": {
                    "type": "integer",
                    "description": "Maximum number of lines to read (optional, default: all)",
                },
            },
            "required": ["path"],
        }

    async def execute(self, args: dict, context: dict) -> str:
        path = resolve_path(args["path"], context)
        max_lines = args.get("maxLines")

        if not path.is_file():
            return f"Error: File not found or not readable: {path}"

        try:
            content = path.read_text(errors="replace")
        except OSError as e:
            return f"Error reading file: {e}"

        if max_lines and max_lines > 0:
            lines = content.split("\n")
            if len(lines) > max_lines:
                content = "\n".join(lines[:max_lines]) + f"\n... ({len(lines)} lines total)"

        return clip(content, MAX_CHARS)
